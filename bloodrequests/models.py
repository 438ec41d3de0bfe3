# bloodrequests/models.py
from django.conf import settings
from django.db import models

from algorithms.blood_groups import BLOOD_GROUP_CHOICES
from algorithms.haversine import has_location


class BloodRequest(models.Model):
    URGENCY_LOW = 'Low'
    URGENCY_MEDIUM = 'Medium'
    URGENCY_HIGH = 'High'
    URGENCY_EMERGENCY = 'Emergency'

    URGENCY_CHOICES = [
        (URGENCY_LOW, 'Low'),
        (URGENCY_MEDIUM, 'Medium'),
        (URGENCY_HIGH, 'High'),
        (URGENCY_EMERGENCY, 'Emergency - Life Threatening'),
    ]

    # Urgency levels that trigger a live alert
    ALERT_URGENCIES = (URGENCY_HIGH, URGENCY_EMERGENCY)

    STATUS_PENDING = 'Pending'
    STATUS_IN_PROGRESS = 'In Progress'
    STATUS_COMPLETED = 'Completed'
    STATUS_CANCELLED = 'Cancelled'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_IN_PROGRESS, 'In Progress'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    OPEN_STATUSES = (STATUS_PENDING, STATUS_IN_PROGRESS)

    VERIFICATION_NOT_REQUIRED = 'Not Required'
    VERIFICATION_PENDING = 'Pending Verification'
    VERIFICATION_VERIFIED = 'Verified'
    VERIFICATION_REJECTED = 'Rejected'

    VERIFICATION_CHOICES = [
        (VERIFICATION_NOT_REQUIRED, 'Not Required'),
        (VERIFICATION_PENDING, 'Pending Verification'),
        (VERIFICATION_VERIFIED, 'Verified'),
        (VERIFICATION_REJECTED, 'Rejected'),
    ]

    requester = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='blood_requests'
    )

    patient_name = models.CharField(max_length=100)
    blood_group = models.CharField(max_length=3, choices=BLOOD_GROUP_CHOICES)
    units_required = models.PositiveIntegerField(default=1)
    hospital_name = models.CharField(max_length=200, blank=True)
    hospital_address = models.TextField(blank=True)
    urgency_level = models.CharField(max_length=10, choices=URGENCY_CHOICES, default=URGENCY_MEDIUM)
    contact_person = models.CharField(max_length=100, blank=True)
    contact_phone = models.CharField(max_length=15, blank=True)
    reason = models.TextField(blank=True)
    required_date = models.DateField(null=True, blank=True)

    status = models.CharField(max_length=12, choices=STATUS_CHOICES, default=STATUS_PENDING)

    # Explicit origin; falls back to the requester's location when absent
    latitude = models.DecimalField(max_digits=10, decimal_places=7, null=True, blank=True)
    longitude = models.DecimalField(max_digits=10, decimal_places=7, null=True, blank=True)
    search_radius_km = models.FloatField(null=True, blank=True)

    verification_required = models.BooleanField(default=False)
    verification_status = models.CharField(
        max_length=20,
        choices=VERIFICATION_CHOICES,
        default=VERIFICATION_NOT_REQUIRED
    )
    verified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='verified_requests'
    )
    verified_at = models.DateTimeField(null=True, blank=True)
    verification_notes = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.patient_name} - {self.blood_group} ({self.urgency_level})"

    @property
    def is_alertable(self) -> bool:
        """High/Emergency requests that are cleared for broadcast"""
        if self.urgency_level not in self.ALERT_URGENCIES:
            return False
        if self.verification_required and self.verification_status != self.VERIFICATION_VERIFIED:
            return False
        return True

    @property
    def origin(self):
        """(latitude, longitude) of the request, the requester's, or (None, None)"""
        if has_location(self.latitude, self.longitude):
            return float(self.latitude), float(self.longitude)
        requester = self.requester
        if requester is not None and requester.has_location:
            return float(requester.latitude), float(requester.longitude)
        return None, None

    class Meta:
        ordering = ['-created_at']
        verbose_name = 'Blood Request'
        verbose_name_plural = 'Blood Requests'
        indexes = [
            models.Index(fields=['status', 'urgency_level', '-created_at'], name='request_alert_scan_idx'),
        ]
