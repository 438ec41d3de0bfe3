"""
User directory lookups consumed by the matching and alert code.
"""
from django.contrib.auth import get_user_model


def parse_user_id(value):
    """Positive integer id or None"""
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return None
    return parsed if parsed > 0 else None


def lookup_user(user_id):
    """
    Fetch the directory snapshot for one user.

    Returns:
        dict with blood_group, latitude, longitude, role, is_verified,
        is_active, facility_id, alert_snooze_until and alert_snoozed, or
        None when the id is unknown. Partial coordinates are reported as no location.
    """
    user_id = parse_user_id(user_id)
    if user_id is None:
        return None

    User = get_user_model()
    user = User.objects.filter(pk=user_id).first()
    if user is None:
        return None

    located = user.has_location
    return {
        'id': user.id,
        'name': user.name or user.username,
        'blood_group': user.blood_group or None,
        'latitude': float(user.latitude) if located else None,
        'longitude': float(user.longitude) if located else None,
        'role': user.role,
        'is_verified': user.is_verified,
        'is_active': user.is_active,
        'facility_id': user.facility_id or None,
        'alert_snooze_until': user.alert_snooze_until,
        'alert_snoozed': user.is_alert_snoozed(),
    }
