# alerts/context.py
import logging

from django.db import DatabaseError

from accounts.directory import lookup_user, parse_user_id
from algorithms.blood_groups import parse_blood_group
from algorithms.haversine import parse_latitude, parse_longitude

logger = logging.getLogger(__name__)


def _absent(value):
    return value is None or (isinstance(value, str) and not value.strip())


def resolve_alert_context(user_id=None, blood_group=None, latitude=None, longitude=None):
    """
    Work out a subscriber's filter from explicit input and the user directory.

    Explicit values win; the directory only fills what is missing. A failed
    directory lookup is logged and the explicit values are used as-is.

    Returns:
        dict with user_id, blood_group, latitude, longitude, snoozed_until

    Raises:
        CoordinateError, InvalidBloodGroup
    """
    user_id = parse_user_id(user_id)
    snoozed_until = None

    if user_id:
        try:
            user = lookup_user(user_id)
        except DatabaseError as e:
            logger.warning(f"Directory lookup failed for user {user_id}: {e}")
            user = None

        if user is not None:
            if _absent(blood_group):
                blood_group = user['blood_group']
            if _absent(latitude):
                latitude = user['latitude']
            if _absent(longitude):
                longitude = user['longitude']

            if user['alert_snoozed']:
                snoozed_until = user['alert_snooze_until']

    return {
        'user_id': user_id,
        'blood_group': parse_blood_group(blood_group),
        'latitude': parse_latitude(latitude),
        'longitude': parse_longitude(longitude),
        'snoozed_until': snoozed_until,
    }
