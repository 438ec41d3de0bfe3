# alerts/stream.py
"""
Live emergency alerts over Server-Sent Events.

Each connected client is a Subscriber holding a send-capable channel and a
filter (blood group, location, radius). A broadcast is planned as a pure
function over the registry, then each planned event is written to its
channel; a failed write drops that subscriber.

Broadcasts come from sync request handlers (worker threads) while the
heartbeat runs on the event loop, so the registry is guarded by a lock and
QueueChannel.send() is thread-safe.
"""
import asyncio
import json
import logging
import threading
import uuid
from collections import deque

from django.apps import apps
from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.utils import timezone

from algorithms.blood_groups import normalize_blood_group
from algorithms.haversine import has_location, haversine_distance
from algorithms.parsing import positive_float

logger = logging.getLogger(__name__)

EVENT_CONNECTED = 'connected'
EVENT_HEARTBEAT = 'heartbeat'
EVENT_EMERGENCY_ALERT = 'emergency-alert'

DEFAULT_HEARTBEAT_SECONDS = 25
DEFAULT_RADIUS_KM = 5


class ChannelClosed(Exception):
    """Raised by a channel that can no longer accept events"""


def format_event(event, data):
    """Encode one SSE frame"""
    return f"event: {event}\ndata: {json.dumps(data, cls=DjangoJSONEncoder)}\n\n"


def _timestamp():
    return timezone.now().isoformat()


class QueueChannel:
    """
    Send handle for one streaming HTTP response.

    send() may be called from any thread; messages() is consumed by the
    response on the loop the channel was created on. A reader that falls
    more than max_pending events behind is treated as dead.
    """

    def __init__(self, max_pending=100, loop=None):
        self.max_pending = max_pending
        self.closed = False
        self._loop = loop or asyncio.get_running_loop()
        self._pending = deque()
        self._lock = threading.Lock()
        self._wakeup = asyncio.Event()

    def _notify(self):
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is self._loop:
            self._wakeup.set()
            return

        try:
            self._loop.call_soon_threadsafe(self._wakeup.set)
        except RuntimeError:
            # Loop already closed
            self.closed = True
            raise ChannelClosed('event loop is closed')

    def send(self, message):
        with self._lock:
            if self.closed:
                raise ChannelClosed('channel is closed')
            if len(self._pending) >= self.max_pending:
                raise ChannelClosed('subscriber is not reading')
            self._pending.append(message)
        self._notify()

    def close(self):
        with self._lock:
            if self.closed:
                return
            self.closed = True
        try:
            self._notify()
        except ChannelClosed:
            pass

    async def messages(self):
        """Yield queued frames in send order until the channel is closed"""
        while True:
            self._wakeup.clear()
            while True:
                with self._lock:
                    if not self._pending:
                        break
                    message = self._pending.popleft()
                yield message
            if self.closed:
                return
            await self._wakeup.wait()


class Subscriber:
    def __init__(self, client_id, channel, user_id=None, blood_group=None,
                 latitude=None, longitude=None, radius_km=DEFAULT_RADIUS_KM):
        self.id = client_id
        self.channel = channel
        self.user_id = user_id
        self.blood_group = normalize_blood_group(blood_group) or None

        # Partial coordinates are no location
        if has_location(latitude, longitude):
            self.latitude = float(latitude)
            self.longitude = float(longitude)
        else:
            self.latitude = None
            self.longitude = None

        self.radius_km = radius_km
        self.connected_at = _timestamp()

    @property
    def has_location(self):
        return has_location(self.latitude, self.longitude)

    def __repr__(self):
        return f"<Subscriber {self.id} {self.blood_group or '*'} r={self.radius_km}km>"


def plan_broadcast(subscribers, alert):
    """
    Decide who receives an emergency alert. Pure: performs no I/O.

    A subscriber receives the alert when it has a location, its blood group
    filter is empty or equal to the alert's group, and it lies within
    min(subscriber radius, alert radius) of the alert origin.

    Args:
        subscribers: Iterable of Subscriber
        alert: dict with request_id, blood_group, latitude, longitude,
               radius_km and payload

    Returns:
        List of (subscriber, event payload) tuples in registry order
    """
    if not has_location(alert.get('latitude'), alert.get('longitude')):
        return []

    blood_group = normalize_blood_group(alert.get('blood_group'))
    alert_radius = positive_float(alert.get('radius_km'), DEFAULT_RADIUS_KM)
    timestamp = _timestamp()

    deliveries = []
    for subscriber in subscribers:
        if not subscriber.has_location:
            continue

        if subscriber.blood_group and blood_group and subscriber.blood_group != blood_group:
            continue

        distance = haversine_distance(
            alert['latitude'],
            alert['longitude'],
            subscriber.latitude,
            subscriber.longitude
        )

        if distance > min(subscriber.radius_km, alert_radius):
            continue

        deliveries.append((subscriber, {
            **(alert.get('payload') or {}),
            'request_id': alert.get('request_id'),
            'blood_group': blood_group,
            'distance_km': round(distance, 2),
            'timestamp': timestamp,
        }))

    return deliveries


class AlertStream:
    """Registry of live subscribers and the broadcast/heartbeat engine"""

    def __init__(self, heartbeat_seconds=DEFAULT_HEARTBEAT_SECONDS, default_radius_km=DEFAULT_RADIUS_KM):
        self.heartbeat_seconds = heartbeat_seconds
        self.default_radius_km = positive_float(default_radius_km, DEFAULT_RADIUS_KM)
        self._clients = {}
        self._lock = threading.Lock()
        self._heartbeat_task = None

    @classmethod
    def from_settings(cls):
        config = settings.ALERTS
        return cls(
            heartbeat_seconds=config.get('HEARTBEAT_SECONDS', DEFAULT_HEARTBEAT_SECONDS),
            default_radius_km=config.get('DEFAULT_RADIUS_KM', DEFAULT_RADIUS_KM),
        )

    def __len__(self):
        with self._lock:
            return len(self._clients)

    def _snapshot(self):
        with self._lock:
            return list(self._clients.values())

    def _send(self, subscriber, event, data):
        """Write one event; a failed write drops the subscriber"""
        try:
            subscriber.channel.send(format_event(event, data))
        except (ChannelClosed, OSError, RuntimeError) as e:
            logger.info(f"Dropping alert subscriber {subscriber.id}: {e}")
            self.remove_client(subscriber.id)
            return False
        return True

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------
    def add_client(self, channel, user_id=None, blood_group=None,
                   latitude=None, longitude=None, radius_km=None):
        """
        Register a subscriber and acknowledge it with a 'connected' event.

        Returns:
            The opaque subscriber id

        Raises:
            ChannelClosed if the acknowledgment cannot be written
        """
        subscriber = Subscriber(
            uuid.uuid4().hex,
            channel,
            user_id=user_id,
            blood_group=blood_group,
            latitude=latitude,
            longitude=longitude,
            radius_km=positive_float(radius_km, self.default_radius_km),
        )

        with self._lock:
            self._clients[subscriber.id] = subscriber

        try:
            channel.send(format_event(EVENT_CONNECTED, {
                'clientId': subscriber.id,
                'connectedAt': subscriber.connected_at,
            }))
        except (ChannelClosed, OSError, RuntimeError):
            self.remove_client(subscriber.id)
            raise

        self._ensure_heartbeat()
        logger.info(f"Alert subscriber connected: {subscriber!r} user={user_id}")
        return subscriber.id

    def remove_client(self, client_id):
        """Deregister a subscriber; unknown ids are ignored"""
        with self._lock:
            subscriber = self._clients.pop(client_id, None)
        if subscriber is None:
            return False
        logger.debug(f"Alert subscriber removed: {client_id}")
        return True

    def close(self):
        """Stop the heartbeat and close every channel (process shutdown)"""
        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
            self._heartbeat_task = None

        with self._lock:
            subscribers = list(self._clients.values())
            self._clients.clear()

        for subscriber in subscribers:
            close = getattr(subscriber.channel, 'close', None)
            if close is not None:
                close()

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------
    def broadcast_emergency_alert(self, request_id, blood_group, latitude, longitude,
                                  radius_km=None, payload=None):
        """
        Push an emergency alert to every matching subscriber.

        Returns:
            Number of subscribers the alert was written to. 0 when the
            origin has no coordinates.
        """
        if not has_location(latitude, longitude):
            return 0

        alert = {
            'request_id': request_id,
            'blood_group': blood_group,
            'latitude': float(latitude),
            'longitude': float(longitude),
            'radius_km': positive_float(radius_km, self.default_radius_km),
            'payload': payload or {},
        }

        delivered = 0
        for subscriber, data in plan_broadcast(self._snapshot(), alert):
            if self._send(subscriber, EVENT_EMERGENCY_ALERT, data):
                delivered += 1

        logger.info(
            f"Emergency alert for request {request_id} ({alert['blood_group']}) "
            f"delivered to {delivered} subscriber(s)"
        )
        return delivered

    def send_heartbeat(self):
        """Write a heartbeat to every subscriber. Returns the live count."""
        data = {'timestamp': _timestamp()}
        alive = 0
        for subscriber in self._snapshot():
            if self._send(subscriber, EVENT_HEARTBEAT, data):
                alive += 1
        return alive

    def _ensure_heartbeat(self):
        if self._heartbeat_task is not None and not self._heartbeat_task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Sync caller; the first streamed client starts it
            return
        self._heartbeat_task = loop.create_task(self._heartbeat_loop())

    async def _heartbeat_loop(self):
        while True:
            await asyncio.sleep(self.heartbeat_seconds)
            if not self.send_heartbeat():
                # Restarted by the next add_client
                return

    def stats(self):
        return {
            'connectedClients': len(self),
            'clients': [
                {
                    'id': subscriber.id,
                    'userId': subscriber.user_id,
                    'bloodGroup': subscriber.blood_group,
                    'connectedAt': subscriber.connected_at,
                }
                for subscriber in self._snapshot()
            ],
        }


def get_alert_stream():
    return apps.get_app_config('alerts').stream
