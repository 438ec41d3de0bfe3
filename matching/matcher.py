# matching/matcher.py
import logging

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db.models import Case, IntegerField, Q, Value, When

from algorithms.blood_groups import is_valid_blood_group, normalize_blood_group
from algorithms.eligibility import eligibility_cutoff
from algorithms.haversine import find_nearby
from algorithms.parsing import positive_float, positive_int
from bloodrequests.models import BloodRequest
from .serializers import DonorContactSerializer, DonorMatchSerializer

logger = logging.getLogger(__name__)

DEFAULT_RADIUS_KM = settings.MATCHING.get('DEFAULT_RADIUS_KM', 10)
DEFAULT_LIMIT = settings.MATCHING.get('DEFAULT_LIMIT', 50)


def eligible_donors(blood_group, today=None):
    """
    Donors of exactly this blood group who can donate now and have a location.
    Ordered by id so equal distances keep a stable order.
    """
    User = get_user_model()
    return User.objects.filter(
        is_donor=True,
        blood_group=blood_group,
        latitude__isnull=False,
        longitude__isnull=False,
    ).filter(
        Q(last_donation_date__isnull=True) |
        Q(last_donation_date__lte=eligibility_cutoff(today))
    ).order_by('id')


def find_nearby_donors(blood_group, latitude, longitude,
                       radius_km=DEFAULT_RADIUS_KM, limit=DEFAULT_LIMIT, today=None):
    """
    Find eligible donors within radius_km of the origin, closest first.

    Full scan over the eligible candidates, then a haversine filter. No
    cross-group compatibility: only exact blood group matches are returned.

    Args:
        blood_group: Requested group, case-insensitive
        latitude, longitude: Validated origin
        radius_km: Search radius, falls back to 10 when not positive
        limit: Max donors returned, falls back to 50 when not positive
        today: Reference day for the 90-day window

    Returns:
        dict with donors (serialized, with distance_km), candidate_count
        (eligible donors before the radius and limit cut), radius_km and
        error ('Invalid blood group' or None)
    """
    blood_group = normalize_blood_group(blood_group)
    radius_km = positive_float(radius_km, DEFAULT_RADIUS_KM)
    limit = positive_int(limit, DEFAULT_LIMIT)

    if not is_valid_blood_group(blood_group):
        return {
            'donors': [],
            'candidate_count': 0,
            'radius_km': radius_km,
            'error': 'Invalid blood group',
        }

    candidates = list(eligible_donors(blood_group, today))
    nearby = find_nearby(latitude, longitude, candidates, radius_km)[:limit]

    matched = []
    for donor, distance in nearby:
        donor.distance_km = round(distance, 2)
        matched.append(donor)

    logger.info(
        f"{len(matched)} of {len(candidates)} {blood_group} donors within {radius_km}km "
        f"of ({latitude}, {longitude})"
    )

    return {
        'donors': list(DonorMatchSerializer(matched, many=True).data),
        'candidate_count': len(candidates),
        'radius_km': radius_km,
        'error': None,
    }


def nearby_cache_key(blood_group, latitude, longitude, radius_km, limit):
    """Cache key for one search; the origin is rounded to about 11 m"""
    return settings.MATCHING['CACHE_PREFIX'] + ':'.join([
        blood_group,
        f"{latitude:.4f}",
        f"{longitude:.4f}",
        f"{radius_km:.2f}",
        str(limit),
    ])


# ----------------------------------------------------------------------------
# Free-text location search
# ----------------------------------------------------------------------------

URGENCY_RANK = Case(
    When(urgency_level=BloodRequest.URGENCY_EMERGENCY, then=Value(1)),
    When(urgency_level=BloodRequest.URGENCY_HIGH, then=Value(2)),
    When(urgency_level=BloodRequest.URGENCY_MEDIUM, then=Value(3)),
    default=Value(4),
    output_field=IntegerField(),
)


def donors_by_location(location, blood_group=None, limit=20, today=None):
    """
    Eligible donors whose location, city or state contains the text.
    Most recently updated profiles first.
    """
    User = get_user_model()
    donors = User.objects.filter(is_donor=True).filter(
        Q(location__icontains=location) |
        Q(city__icontains=location) |
        Q(state__icontains=location)
    ).filter(
        Q(last_donation_date__isnull=True) |
        Q(last_donation_date__lte=eligibility_cutoff(today))
    )

    if blood_group:
        donors = donors.filter(blood_group=blood_group)

    donors = donors.order_by('-updated_at', '-created_at')[:limit]
    return list(DonorContactSerializer(donors, many=True).data)


def receivers_by_location(location, blood_group=None, limit=20):
    """
    Open blood requests whose hospital or requester location contains the
    text, most urgent first and newest first within an urgency level.
    """
    requests = BloodRequest.objects.filter(
        status__in=BloodRequest.OPEN_STATUSES,
    ).filter(
        Q(hospital_name__icontains=location) |
        Q(hospital_address__icontains=location) |
        Q(requester__location__icontains=location) |
        Q(requester__city__icontains=location) |
        Q(requester__state__icontains=location)
    ).select_related('requester')

    if blood_group:
        requests = requests.filter(blood_group=blood_group)

    requests = requests.annotate(urgency_rank=URGENCY_RANK).order_by('urgency_rank', '-created_at', '-id')

    receivers = []
    for blood_request in requests[:limit]:
        requester = blood_request.requester
        receivers.append({
            'id': blood_request.id,
            'patient_name': blood_request.patient_name,
            'blood_group': blood_request.blood_group,
            'units_required': blood_request.units_required,
            'hospital_name': blood_request.hospital_name,
            'hospital_address': blood_request.hospital_address,
            'urgency_level': blood_request.urgency_level,
            'contact_person': blood_request.contact_person,
            'contact_phone': blood_request.contact_phone,
            'required_date': blood_request.required_date,
            'status': blood_request.status,
            'created_at': blood_request.created_at,
            'requester_id': requester.id if requester else None,
            'requester_name': (requester.name or requester.username) if requester else None,
            'requester_phone': requester.phone if requester else None,
            'requester_location': requester.location if requester else None,
            'requester_city': requester.city if requester else None,
            'requester_state': requester.state if requester else None,
        })
    return receivers
