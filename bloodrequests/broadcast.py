# bloodrequests/broadcast.py
"""
Bridge from blood request writes to the live alert stream.
"""
import logging

from django.conf import settings

from algorithms.parsing import positive_float
from alerts.stream import get_alert_stream
from .models import BloodRequest

logger = logging.getLogger(__name__)


def alert_radius(blood_request):
    """Emergency requests alert a fixed close radius, others their search radius"""
    config = settings.BLOOD_REQUESTS
    if blood_request.urgency_level == BloodRequest.URGENCY_EMERGENCY:
        return config['EMERGENCY_RADIUS_KM']
    return positive_float(blood_request.search_radius_km, config['DEFAULT_SEARCH_RADIUS_KM'])


def alert_payload(blood_request):
    return {
        'patient_name': blood_request.patient_name,
        'urgency_level': blood_request.urgency_level,
        'units_required': blood_request.units_required,
        'hospital_name': blood_request.hospital_name,
        'required_date': blood_request.required_date.isoformat() if blood_request.required_date else None,
    }


def broadcast_request(blood_request, stream=None, **extra):
    """
    Push a request to live subscribers if it qualifies for an alert.

    Returns:
        Number of subscribers alerted
    """
    if not blood_request.is_alertable:
        return 0

    latitude, longitude = blood_request.origin
    if latitude is None:
        logger.info(f"Blood request {blood_request.id} has no location, skipping live alert")
        return 0

    stream = stream or get_alert_stream()
    return stream.broadcast_emergency_alert(
        request_id=blood_request.id,
        blood_group=blood_request.blood_group,
        latitude=latitude,
        longitude=longitude,
        radius_km=alert_radius(blood_request),
        payload={**alert_payload(blood_request), **extra},
    )
