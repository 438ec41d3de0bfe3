from django.conf import settings
from django.db import models

from algorithms.blood_groups import BLOOD_GROUP_CHOICES


class Donation(models.Model):
    STATUS_SCHEDULED = 'Scheduled'
    STATUS_COMPLETED = 'Completed'
    STATUS_CANCELLED = 'Cancelled'

    STATUS_CHOICES = [
        (STATUS_SCHEDULED, 'Scheduled'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    donor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='donations'
    )
    blood_request = models.ForeignKey(
        'bloodrequests.BloodRequest',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='donations'
    )

    donation_date = models.DateField()
    blood_group = models.CharField(max_length=3, choices=BLOOD_GROUP_CHOICES)
    units_donated = models.PositiveIntegerField(default=1)
    donation_center = models.CharField(max_length=200, blank=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_SCHEDULED)
    notes = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        donor = self.donor.name if self.donor else 'Unknown donor'
        return f"{donor} | {self.donation_date} ({self.status})"

    class Meta:
        ordering = ['-donation_date']
        verbose_name = 'Donation'
        verbose_name_plural = 'Donations'
