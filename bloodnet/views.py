# bloodnet/views.py
from django.http import JsonResponse
from django.utils import timezone

from alerts.stream import get_alert_stream
from matching.cache import get_cache_service


def health(request):
    """Liveness probe"""
    return JsonResponse({
        'status': 'ok',
        'timestamp': timezone.now().isoformat(),
        'redisConnected': get_cache_service().redis_connected,
        'alertSubscribers': len(get_alert_stream()),
    })
