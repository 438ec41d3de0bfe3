# donors/signals.py
"""
Donation writes change who is eligible, so every write drops cached matches.
A completed donation also restarts the donor's 90-day window.
"""
import logging

from django.contrib.auth import get_user_model
from django.db.models import Q
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from matching.cache import invalidate_matching_cache
from .models import Donation

logger = logging.getLogger(__name__)


@receiver(post_save, sender=Donation)
def donation_saved(sender, instance, created, **kwargs):
    if instance.status == Donation.STATUS_COMPLETED and instance.donor_id:
        User = get_user_model()
        updated = User.objects.filter(pk=instance.donor_id).filter(
            Q(last_donation_date__isnull=True) |
            Q(last_donation_date__lt=instance.donation_date)
        ).update(last_donation_date=instance.donation_date, is_donor=True)
        if updated:
            logger.info(f"Donor {instance.donor_id} last donation set to {instance.donation_date}")

    invalidate_matching_cache()


@receiver(post_delete, sender=Donation)
def donation_deleted(sender, instance, **kwargs):
    invalidate_matching_cache()
