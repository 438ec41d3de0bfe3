# matching/serializers.py
from django.contrib.auth import get_user_model
from rest_framework import serializers


class DonorContactSerializer(serializers.ModelSerializer):
    """Outreach view of a donor"""

    class Meta:
        model = get_user_model()
        fields = [
            'id', 'name', 'email', 'phone', 'blood_group',
            'location', 'city', 'state', 'last_donation_date',
        ]


class DonorMatchSerializer(DonorContactSerializer):
    """Expects distance_km set on the instance"""
    latitude = serializers.FloatField()
    longitude = serializers.FloatField()
    distance_km = serializers.FloatField()

    class Meta(DonorContactSerializer.Meta):
        fields = [
            'id', 'name', 'email', 'phone', 'blood_group',
            'location', 'city', 'state', 'latitude', 'longitude',
            'last_donation_date', 'distance_km',
        ]
