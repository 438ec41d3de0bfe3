# bloodrequests/serializers.py
from rest_framework import serializers

from algorithms.blood_groups import InvalidBloodGroup, parse_blood_group
from algorithms.haversine import CoordinateError, parse_latitude, parse_longitude
from .models import BloodRequest


class BloodRequestSerializer(serializers.ModelSerializer):
    blood_group = serializers.CharField(max_length=3)
    latitude = serializers.FloatField(required=False, allow_null=True)
    longitude = serializers.FloatField(required=False, allow_null=True)
    requester_name = serializers.SerializerMethodField()

    class Meta:
        model = BloodRequest
        fields = '__all__'
        read_only_fields = [
            'verification_required', 'verification_status', 'verified_by',
            'verified_at', 'verification_notes', 'created_at', 'updated_at',
        ]

    def get_requester_name(self, obj):
        if obj.requester is None:
            return None
        return obj.requester.name or obj.requester.username

    def validate_blood_group(self, value):
        try:
            return parse_blood_group(value, required=True)
        except InvalidBloodGroup as e:
            raise serializers.ValidationError(e.message)

    def validate_latitude(self, value):
        try:
            return parse_latitude(value)
        except CoordinateError as e:
            raise serializers.ValidationError(e.message)

    def validate_longitude(self, value):
        try:
            return parse_longitude(value)
        except CoordinateError as e:
            raise serializers.ValidationError(e.message)

    def validate(self, attrs):
        latitude = attrs.get('latitude', getattr(self.instance, 'latitude', None))
        longitude = attrs.get('longitude', getattr(self.instance, 'longitude', None))
        if (latitude is None) != (longitude is None):
            raise serializers.ValidationError('latitude and longitude must be provided together')
        return attrs
