# donors/serializers.py
from rest_framework import serializers

from algorithms.blood_groups import InvalidBloodGroup, parse_blood_group
from algorithms.eligibility import next_eligible_date
from .models import Donation


class DonationSerializer(serializers.ModelSerializer):
    blood_group = serializers.CharField(max_length=3)
    donor_name = serializers.SerializerMethodField()

    class Meta:
        model = Donation
        fields = '__all__'
        read_only_fields = ['status', 'created_at', 'updated_at']
        extra_kwargs = {
            'donor': {'required': True, 'allow_null': False},
        }

    def get_donor_name(self, obj):
        if obj.donor is None:
            return None
        return obj.donor.name or obj.donor.username

    def validate_blood_group(self, value):
        try:
            return parse_blood_group(value, required=True)
        except InvalidBloodGroup as e:
            raise serializers.ValidationError(e.message)

    def validate(self, attrs):
        donor = attrs.get('donor', getattr(self.instance, 'donor', None))
        blood_group = attrs.get('blood_group', getattr(self.instance, 'blood_group', None))
        donation_date = attrs.get('donation_date', getattr(self.instance, 'donation_date', None))

        if donor is not None and donor.blood_group != blood_group:
            raise serializers.ValidationError('Blood group does not match donor record')

        if donor is not None and donor.last_donation_date and donation_date:
            eligible_on = next_eligible_date(donor.last_donation_date)
            if donation_date < eligible_on:
                raise serializers.ValidationError(f'Donor is eligible again on {eligible_on.isoformat()}')

        return attrs
