# bloodrequests/signals.py
"""
Signals that keep the matching cache coherent and fire live alerts
when a blood request is created
"""
import logging

from django.conf import settings
from django.db.models.signals import post_delete, post_save, pre_save
from django.dispatch import receiver

from matching.cache import invalidate_matching_cache
from .broadcast import broadcast_request
from .models import BloodRequest

logger = logging.getLogger(__name__)


@receiver(pre_save, sender=BloodRequest)
def require_verification(sender, instance, **kwargs):
    """High/Emergency requests wait for a verified authority before broadcast"""
    if not instance._state.adding:
        return
    if not settings.BLOOD_REQUESTS['VERIFICATION_ENABLED']:
        return
    if instance.urgency_level in BloodRequest.ALERT_URGENCIES and \
            instance.verification_status == BloodRequest.VERIFICATION_NOT_REQUIRED:
        instance.verification_required = True
        instance.verification_status = BloodRequest.VERIFICATION_PENDING


@receiver(post_save, sender=BloodRequest)
def blood_request_saved(sender, instance, created, **kwargs):
    invalidate_matching_cache()

    instance.alerts_sent = 0
    if created:
        instance.alerts_sent = broadcast_request(instance)
        logger.info(f"Blood request #{instance.id} created, {instance.alerts_sent} live alert(s) sent")


@receiver(post_delete, sender=BloodRequest)
def blood_request_deleted(sender, instance, **kwargs):
    invalidate_matching_cache()
