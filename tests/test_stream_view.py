import asyncio
import json

from django.test import RequestFactory

from alerts.stream import QueueChannel
from api import streams
from api.streams import event_source

factory = RequestFactory()


def test_stream_rejects_bad_coordinates():
    request = factory.get('/api/alerts/stream', {'latitude': 'x', 'longitude': '1'})

    response = asyncio.run(streams.alert_stream(request))

    assert response.status_code == 400
    assert json.loads(response.content) == {'success': False, 'message': 'latitude must be a valid number'}


def test_stream_rejects_bad_blood_group():
    request = factory.get('/api/alerts/stream', {'bloodGroup': 'K+'})

    response = asyncio.run(streams.alert_stream(request))

    assert response.status_code == 400


def test_snoozed_user_gets_no_content(monkeypatch):
    def snoozed(**kwargs):
        return {'user_id': 1, 'blood_group': None, 'latitude': None, 'longitude': None,
                'snoozed_until': '2030-01-01T00:00:00Z'}

    monkeypatch.setattr(streams, 'resolve_alert_context', snoozed)

    response = asyncio.run(streams.alert_stream(factory.get('/api/alerts/stream', {'userId': '1'})))

    assert response.status_code == 204


def test_stream_registers_subscriber_and_emits_events(alert_stream):
    request = factory.get('/api/alerts/stream', {
        'bloodGroup': 'o+', 'latitude': '12.9716', 'longitude': '77.5946', 'radiusKm': '5',
    })

    async def scenario():
        response = await streams.alert_stream(request)
        content = response.streaming_content

        connected = await content.__anext__()
        subscribers = alert_stream.stats()['clients']
        alert_stream.broadcast_emergency_alert(9, 'O+', 12.9720, 77.5950)
        alert = await asyncio.wait_for(content.__anext__(), timeout=1)

        alert_stream.close()
        return response, connected, subscribers, alert

    response, connected, subscribers, alert = asyncio.run(scenario())

    assert response['Content-Type'] == 'text/event-stream'
    assert response['Cache-Control'] == 'no-cache, no-transform'
    assert connected.startswith(b'event: connected\n')
    assert subscribers[0]['bloodGroup'] == 'O+'
    assert alert.startswith(b'event: emergency-alert\n')
    data = json.loads(alert.decode().split('data: ', 1)[1])
    assert data['request_id'] == 9
    assert data['distance_km'] == 0.06


def test_closing_the_response_deregisters_the_subscriber(alert_stream):
    async def scenario():
        channel = QueueChannel()
        client_id = alert_stream.add_client(channel)
        source = event_source(alert_stream, client_id, channel)

        await source.__anext__()
        registered = len(alert_stream)
        await source.aclose()
        return registered, channel.closed

    registered, closed = asyncio.run(scenario())

    assert registered == 1
    assert len(alert_stream) == 0
    assert closed
