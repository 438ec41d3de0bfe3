# api/views.py
import logging
import time

from django.conf import settings
from django.utils import timezone
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action, api_view
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated, IsAuthenticatedOrReadOnly
from rest_framework.response import Response

from algorithms.blood_groups import parse_blood_group
from algorithms.haversine import parse_latitude, parse_longitude
from algorithms.parsing import parse_bool, positive_float, positive_int
from alerts.context import resolve_alert_context
from alerts.recent import recent_alerts
from alerts.stream import get_alert_stream
from bloodrequests.broadcast import broadcast_request
from bloodrequests.models import BloodRequest
from bloodrequests.serializers import BloodRequestSerializer
from donors.models import Donation
from donors.serializers import DonationSerializer
from matching.cache import get_cache_service
from matching import matcher
from matching.matcher import find_nearby_donors, nearby_cache_key
from .exceptions import InvalidInput, UpstreamUnavailable
from .params import query_value
from .permissions import IsVerifiedAuthority

logger = logging.getLogger(__name__)

LOCATION_SEARCH_DEFAULT_LIMIT = 20
LOCATION_SEARCH_MAX_LIMIT = 100


def _elapsed_ms(started):
    return round((time.perf_counter() - started) * 1000, 2)


# ============================================================================
# DONOR MATCHING
# ============================================================================

@api_view(['GET'])
def nearby_donors(request):
    """
    Eligible donors of one blood group near a point, closest first.
    Results are cached per rounded (group, origin, radius, limit).
    """
    started = time.perf_counter()
    params = request.query_params
    config = settings.MATCHING

    blood_group = parse_blood_group(query_value(params, 'bloodGroup', 'blood_group'), required=True)
    latitude = parse_latitude(params.get('latitude'), required=True)
    longitude = parse_longitude(params.get('longitude'), required=True)
    radius_km = positive_float(query_value(params, 'radiusKm', 'radius_km'), config['DEFAULT_RADIUS_KM'])
    limit = positive_int(params.get('limit'), config['DEFAULT_LIMIT'])

    cache = get_cache_service()
    cache_key = nearby_cache_key(blood_group, latitude, longitude, radius_km, limit)

    cached = cache.get(cache_key)
    if cached is not None:
        cached['metadata'] = {
            **cached.get('metadata', {}),
            'cacheHit': True,
            'responseMs': _elapsed_ms(started),
        }
        return Response(cached)

    result = find_nearby_donors(blood_group, latitude, longitude, radius_km=radius_km, limit=limit)
    if result['error']:
        raise InvalidInput(result['error'])

    payload = {
        'success': True,
        'blood_group': blood_group,
        'donors': result['donors'],
        'metadata': {
            'cacheHit': False,
            'totalMatched': len(result['donors']),
            'candidateCount': result['candidate_count'],
            'radiusKm': result['radius_km'],
        },
    }
    cache.set(cache_key, payload, config['SEARCH_CACHE_TTL'])

    payload['metadata']['responseMs'] = _elapsed_ms(started)
    return Response(payload)


@api_view(['GET'])
def cache_stats(request):
    return Response({'success': True, 'stats': get_cache_service().stats()})


def _location_filters(params):
    """Validated (location, blood_group, limit) for the text searches"""
    location = (query_value(params, 'location', 'q') or '').strip()
    if not location:
        raise InvalidInput('location query is required')

    blood_group = parse_blood_group(query_value(params, 'bloodGroup', 'blood_group'))
    limit = min(
        positive_int(params.get('limit'), LOCATION_SEARCH_DEFAULT_LIMIT),
        LOCATION_SEARCH_MAX_LIMIT,
    )
    return location, blood_group, limit


@api_view(['GET'])
def donors_by_location(request):
    """Eligible donors whose location, city or state contains the text"""
    location, blood_group, limit = _location_filters(request.query_params)
    donors = matcher.donors_by_location(location, blood_group=blood_group, limit=limit)
    return Response({
        'success': True,
        'filters': {'location': location, 'blood_group': blood_group},
        'donors': donors,
    })


@api_view(['GET'])
def receivers_by_location(request):
    """Open requests near a named place, most urgent first"""
    location, blood_group, limit = _location_filters(request.query_params)
    receivers = matcher.receivers_by_location(location, blood_group=blood_group, limit=limit)
    return Response({
        'success': True,
        'filters': {'location': location, 'blood_group': blood_group},
        'receivers': receivers,
    })


# ============================================================================
# ALERTS
# ============================================================================

@api_view(['GET'])
def alerts_recent(request):
    """Polling fallback for clients without a live stream"""
    params = request.query_params
    config = settings.ALERTS

    context = resolve_alert_context(
        user_id=query_value(params, 'userId', 'user_id'),
        blood_group=query_value(params, 'bloodGroup', 'blood_group'),
        latitude=params.get('latitude'),
        longitude=params.get('longitude'),
    )

    if context['snoozed_until']:
        return Response({
            'success': True,
            'alerts': [],
            'snoozed_until': context['snoozed_until'],
        })

    radius_km = min(
        positive_float(query_value(params, 'radiusKm', 'radius_km'), config['DEFAULT_RADIUS_KM']),
        config['RECENT_MAX_RADIUS_KM'],
    )
    limit = min(
        positive_int(params.get('limit'), config['RECENT_DEFAULT_LIMIT']),
        config['RECENT_MAX_LIMIT'],
    )

    alerts = recent_alerts(
        blood_group=context['blood_group'],
        latitude=context['latitude'],
        longitude=context['longitude'],
        radius_km=radius_km,
        limit=limit,
    )
    return Response({'success': True, 'alerts': alerts})


@api_view(['GET'])
def alert_stats(request):
    return Response({'success': True, **get_alert_stream().stats()})


# ============================================================================
# BLOOD REQUESTS
# ============================================================================

class BloodRequestViewSet(viewsets.ModelViewSet):
    """API endpoint for managing blood requests"""
    queryset = BloodRequest.objects.select_related('requester').order_by('-created_at')
    serializer_class = BloodRequestSerializer
    permission_classes = [IsAuthenticatedOrReadOnly]

    def get_queryset(self):
        queryset = super().get_queryset()
        status_filter = self.request.query_params.get('status')
        if status_filter and status_filter != 'all':
            queryset = queryset.filter(status=status_filter)

        blood_group = parse_blood_group(query_value(self.request.query_params, 'bloodGroup', 'blood_group'))
        if blood_group:
            queryset = queryset.filter(blood_group=blood_group)
        return queryset

    def perform_create(self, serializer):
        requester = serializer.validated_data.get('requester')
        if requester is None and self.request.user.is_authenticated:
            requester = self.request.user
        serializer.save(requester=requester)

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        self.perform_create(serializer)
        blood_request = serializer.instance

        if blood_request.verification_required:
            message = 'Blood request created and awaiting verification before donors are alerted'
        else:
            message = 'Blood request created successfully'

        return Response({
            'success': True,
            'message': message,
            'request_id': blood_request.id,
            'alerts_sent': getattr(blood_request, 'alerts_sent', 0),
            'verification_required': blood_request.verification_required,
            'verification_status': blood_request.verification_status,
            'request': serializer.data,
        }, status=status.HTTP_201_CREATED)

    @action(
        detail=False,
        methods=['get'],
        url_path='pending-verification',
        permission_classes=[IsAuthenticated, IsVerifiedAuthority],
    )
    def pending_verification(self, request):
        """Open requests held for verification, oldest first"""
        if not settings.BLOOD_REQUESTS['VERIFICATION_ENABLED']:
            raise UpstreamUnavailable('Verification workflow is not enabled.')

        pending = BloodRequest.objects.filter(
            verification_required=True,
            verification_status=BloodRequest.VERIFICATION_PENDING,
            status__in=BloodRequest.OPEN_STATUSES,
        ).select_related('requester').order_by('created_at', 'id')

        return Response({
            'success': True,
            'requests': self.get_serializer(pending, many=True).data,
        })

    @action(
        detail=True,
        methods=['post'],
        url_path='verify-broadcast',
        permission_classes=[IsAuthenticated, IsVerifiedAuthority],
    )
    def verify_broadcast(self, request, pk=None):
        """Approve or reject a request held for verification; approval broadcasts it"""
        if not settings.BLOOD_REQUESTS['VERIFICATION_ENABLED']:
            raise UpstreamUnavailable('Verification workflow is not enabled.')

        blood_request = self.get_object()

        if blood_request.status not in BloodRequest.OPEN_STATUSES:
            raise InvalidInput(f'Request cannot be verified in {blood_request.status} state')
        if not blood_request.verification_required:
            raise InvalidInput('This request does not require verification')

        approve = parse_bool(request.data.get('approve'), default=True)
        if approve and blood_request.verification_status == BloodRequest.VERIFICATION_VERIFIED:
            raise InvalidInput('Request is already verified')

        blood_request.verification_status = (
            BloodRequest.VERIFICATION_VERIFIED if approve else BloodRequest.VERIFICATION_REJECTED
        )
        blood_request.verified_by = request.user
        blood_request.verified_at = timezone.now()
        blood_request.verification_notes = str(request.data.get('notes') or '').strip()
        blood_request.save(update_fields=[
            'verification_status', 'verified_by', 'verified_at', 'verification_notes', 'updated_at',
        ])

        alerts_sent = 0
        if approve:
            alerts_sent = broadcast_request(
                blood_request,
                verified_by=request.user.name or request.user.username,
            )

        logger.info(
            f"Blood request #{blood_request.id} {blood_request.verification_status.lower()} "
            f"by {request.user.username}, {alerts_sent} live alert(s) sent"
        )

        return Response({
            'success': True,
            'message': 'Request verified and broadcast' if approve else 'Request rejected',
            'request_id': blood_request.id,
            'verification_status': blood_request.verification_status,
            'alerts_sent': alerts_sent,
        })


# ============================================================================
# DONATIONS
# ============================================================================

class DonationViewSet(mixins.CreateModelMixin,
                      mixins.ListModelMixin,
                      mixins.RetrieveModelMixin,
                      viewsets.GenericViewSet):
    """
    Schedule, complete and cancel donations. Every write changes who is
    eligible, so the donation signals drop cached matches.
    """
    queryset = Donation.objects.select_related('donor', 'blood_request').order_by('-donation_date', '-id')
    serializer_class = DonationSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        queryset = super().get_queryset()
        params = self.request.query_params

        donor_id = query_value(params, 'donor', 'donorId', 'donor_id')
        if donor_id:
            queryset = queryset.filter(donor_id=positive_int(donor_id, 0))

        status_filter = params.get('status')
        if status_filter and status_filter != 'all':
            queryset = queryset.filter(status=status_filter)

        blood_group = parse_blood_group(query_value(params, 'bloodGroup', 'blood_group'))
        if blood_group:
            queryset = queryset.filter(blood_group=blood_group)
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        donation = serializer.save()

        return Response({
            'success': True,
            'message': 'Blood donation scheduled successfully',
            'donation_id': donation.id,
            'donation': serializer.data,
        }, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['post'])
    def schedule(self, request):
        return self.create(request)

    @action(detail=True, methods=['put', 'post'])
    def complete(self, request, pk=None):
        """Mark a donation completed; the donor's 90-day window restarts"""
        if settings.DONATIONS['REQUIRE_AUTHORITY_FOR_COMPLETION'] and \
                not IsVerifiedAuthority().has_permission(request, self):
            raise PermissionDenied(
                'A verified hospital, blood bank, doctor, or admin account must complete donations.'
            )

        donation = self.get_object()
        if donation.status == Donation.STATUS_COMPLETED:
            raise InvalidInput(f'Donation is already {donation.status}')

        donation.status = Donation.STATUS_COMPLETED
        notes = str(request.data.get('notes') or '').strip()
        if notes:
            donation.notes = notes
        donation.save(update_fields=['status', 'notes', 'updated_at'])

        logger.info(f"Donation #{donation.id} completed by {request.user.username}")

        return Response({
            'success': True,
            'message': 'Blood donation completed successfully',
            'donation': self.get_serializer(donation).data,
        })

    @action(detail=True, methods=['put', 'post'])
    def cancel(self, request, pk=None):
        donation = self.get_object()
        if donation.status == Donation.STATUS_COMPLETED:
            raise InvalidInput('Completed donations cannot be cancelled')

        donation.status = Donation.STATUS_CANCELLED
        donation.save(update_fields=['status', 'updated_at'])

        return Response({
            'success': True,
            'message': 'Blood donation cancelled successfully',
            'donation': self.get_serializer(donation).data,
        })
