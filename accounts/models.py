from django.contrib.auth.models import AbstractUser
from django.db import models
from django.utils import timezone

from algorithms.blood_groups import BLOOD_GROUP_CHOICES
from algorithms.eligibility import is_donor_eligible
from algorithms.haversine import has_location


class User(AbstractUser):
    ROLE_USER = 'user'
    ROLE_HOSPITAL = 'hospital'
    ROLE_BLOOD_BANK = 'blood_bank'
    ROLE_DOCTOR = 'doctor'
    ROLE_ADMIN = 'admin'

    ROLE_CHOICES = (
        (ROLE_USER, 'User'),
        (ROLE_HOSPITAL, 'Hospital'),
        (ROLE_BLOOD_BANK, 'Blood Bank'),
        (ROLE_DOCTOR, 'Doctor'),
        (ROLE_ADMIN, 'Admin'),
    )

    AUTHORITY_ROLES = (ROLE_HOSPITAL, ROLE_BLOOD_BANK, ROLE_DOCTOR, ROLE_ADMIN)

    name = models.CharField(max_length=100, blank=True)
    email = models.EmailField(unique=True)
    phone = models.CharField(max_length=15, blank=True)

    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_USER)
    is_verified = models.BooleanField(default=False)
    facility_id = models.CharField(max_length=64, blank=True)

    blood_group = models.CharField(max_length=3, choices=BLOOD_GROUP_CHOICES, blank=True)

    # Free-text location plus optional geolocation (both or neither)
    location = models.CharField(max_length=200, blank=True)
    city = models.CharField(max_length=100, blank=True)
    state = models.CharField(max_length=100, blank=True)
    latitude = models.DecimalField(max_digits=10, decimal_places=7, null=True, blank=True)
    longitude = models.DecimalField(max_digits=10, decimal_places=7, null=True, blank=True)

    is_donor = models.BooleanField(default=False)
    is_recipient = models.BooleanField(default=False)
    last_donation_date = models.DateField(null=True, blank=True)

    alert_snooze_until = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['is_donor', 'blood_group', 'latitude', 'longitude'], name='user_donor_geo_idx'),
        ]

    def __str__(self):
        return f"{self.name or self.username} ({self.role})"

    @property
    def has_location(self) -> bool:
        return has_location(self.latitude, self.longitude)

    @property
    def can_donate(self) -> bool:
        """Donors can donate every 90 days"""
        return is_donor_eligible(self)

    @property
    def is_verified_authority(self) -> bool:
        return self.is_active and self.is_verified and self.role in self.AUTHORITY_ROLES

    def is_alert_snoozed(self, now=None) -> bool:
        if not self.alert_snooze_until:
            return False
        return self.alert_snooze_until > (now or timezone.now())
