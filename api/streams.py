# api/streams.py
"""
Server-Sent Events endpoint for live emergency alerts.

Runs as an async view under ASGI. The response body is the subscriber's
QueueChannel; when the client disconnects Django cancels the iterator and
the subscriber is deregistered.
"""
import logging

from asgiref.sync import sync_to_async
from django.conf import settings
from django.http import HttpResponse, JsonResponse, StreamingHttpResponse
from django.views.decorators.http import require_GET

from algorithms.blood_groups import InvalidBloodGroup
from algorithms.haversine import CoordinateError
from alerts.context import resolve_alert_context
from alerts.stream import QueueChannel, get_alert_stream
from .exceptions import error_body
from .params import query_value

logger = logging.getLogger(__name__)


async def event_source(stream, client_id, channel):
    """Relay queued SSE frames until the client goes away"""
    try:
        async for message in channel.messages():
            yield message
    finally:
        stream.remove_client(client_id)
        channel.close()
        logger.info(f"Alert subscriber disconnected: {client_id}")


@require_GET
async def alert_stream(request):
    params = request.GET

    try:
        context = await sync_to_async(resolve_alert_context)(
            user_id=query_value(params, 'userId', 'user_id'),
            blood_group=query_value(params, 'bloodGroup', 'blood_group'),
            latitude=params.get('latitude'),
            longitude=params.get('longitude'),
        )
    except (CoordinateError, InvalidBloodGroup) as e:
        return JsonResponse(error_body(e.message), status=400)

    if context['snoozed_until']:
        return HttpResponse(status=204)

    stream = get_alert_stream()
    channel = QueueChannel(max_pending=settings.ALERTS['MAX_PENDING_EVENTS'])
    client_id = stream.add_client(
        channel,
        user_id=context['user_id'],
        blood_group=context['blood_group'],
        latitude=context['latitude'],
        longitude=context['longitude'],
        radius_km=query_value(params, 'radiusKm', 'radius_km'),
    )

    response = StreamingHttpResponse(
        event_source(stream, client_id, channel),
        content_type='text/event-stream',
    )
    response['Cache-Control'] = 'no-cache, no-transform'
    response['X-Accel-Buffering'] = 'no'
    return response
