# alerts/recent.py
"""
Pull-based alerts for clients that cannot hold a stream open.
"""
from django.db.models import Q

from algorithms.haversine import has_location, haversine_distance
from bloodrequests.models import BloodRequest

# Rows fetched per wanted alert; the rest are lost to the radius filter
SCAN_FACTOR = 4


def alertable_requests(blood_group=None):
    """Pending High/Emergency requests cleared for broadcast, newest first"""
    requests = BloodRequest.objects.filter(
        status=BloodRequest.STATUS_PENDING,
        urgency_level__in=BloodRequest.ALERT_URGENCIES,
    ).filter(
        Q(verification_required=False) |
        Q(verification_status=BloodRequest.VERIFICATION_VERIFIED)
    ).select_related('requester').order_by('-created_at', '-id')

    if blood_group:
        requests = requests.filter(blood_group=blood_group)
    return requests


def recent_alerts(blood_group=None, latitude=None, longitude=None, radius_km=5, limit=10):
    """
    Recent alertable requests near the caller.

    Without a caller location every request qualifies and distance_km is
    None; with one, requests lacking a location or outside radius_km are
    skipped.
    """
    can_measure = has_location(latitude, longitude)
    alerts = []

    for blood_request in alertable_requests(blood_group)[:limit * SCAN_FACTOR]:
        distance = None
        if can_measure:
            origin_lat, origin_lon = blood_request.origin
            if origin_lat is None:
                continue

            distance = haversine_distance(latitude, longitude, origin_lat, origin_lon)
            if distance > radius_km:
                continue

        alerts.append({
            'request_id': blood_request.id,
            'patient_name': blood_request.patient_name,
            'blood_group': blood_request.blood_group,
            'urgency_level': blood_request.urgency_level,
            'units_required': blood_request.units_required,
            'hospital_name': blood_request.hospital_name,
            'created_at': blood_request.created_at,
            'distance_km': round(distance, 2) if distance is not None else None,
        })

        if len(alerts) >= limit:
            break

    return alerts
