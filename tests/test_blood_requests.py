import pytest

from bloodrequests.broadcast import alert_radius
from bloodrequests.models import BloodRequest
from helpers import RecordingChannel
from matching.cache import invalidate_matching_cache

URL = '/api/blood-requests/'

KATHMANDU = (27.7172, 85.324)


def listen(stream, blood_group='O+', latitude=KATHMANDU[0], longitude=KATHMANDU[1], radius_km=10):
    channel = RecordingChannel()
    stream.add_client(channel, blood_group=blood_group, latitude=latitude,
                      longitude=longitude, radius_km=radius_km)
    return channel


@pytest.mark.django_db
def test_emergency_request_is_broadcast_on_create(alert_stream, verification_disabled):
    channel = listen(alert_stream)

    blood_request = BloodRequest.objects.create(
        patient_name='Ram', blood_group='O+', urgency_level=BloodRequest.URGENCY_EMERGENCY,
        hospital_name='Bir Hospital', latitude=KATHMANDU[0], longitude=KATHMANDU[1],
    )

    assert blood_request.alerts_sent == 1
    [(_, data)] = channel.events('emergency-alert')
    assert data['request_id'] == blood_request.id
    assert data['hospital_name'] == 'Bir Hospital'
    assert data['urgency_level'] == 'Emergency'


@pytest.mark.django_db
def test_routine_requests_are_not_broadcast(alert_stream, verification_disabled):
    channel = listen(alert_stream)

    blood_request = BloodRequest.objects.create(
        patient_name='Sita', blood_group='O+', urgency_level=BloodRequest.URGENCY_MEDIUM,
        latitude=KATHMANDU[0], longitude=KATHMANDU[1],
    )

    assert blood_request.alerts_sent == 0
    assert channel.events('emergency-alert') == []


@pytest.mark.django_db
def test_request_without_coordinates_uses_requester_location(alert_stream, make_user, verification_disabled):
    channel = listen(alert_stream)
    hospital = make_user(role='hospital', latitude=KATHMANDU[0], longitude=KATHMANDU[1])

    blood_request = BloodRequest.objects.create(
        requester=hospital, patient_name='Hari', blood_group='O+', urgency_level='High',
    )

    assert blood_request.alerts_sent == 1
    assert len(channel.events('emergency-alert')) == 1


@pytest.mark.django_db
def test_request_with_no_location_anywhere_is_not_broadcast(alert_stream, verification_disabled):
    listen(alert_stream)

    blood_request = BloodRequest.objects.create(patient_name='Gita', blood_group='O+', urgency_level='High')

    assert blood_request.alerts_sent == 0


def test_alert_radius():
    emergency = BloodRequest(urgency_level='Emergency', search_radius_km=25)
    high = BloodRequest(urgency_level='High', search_radius_km=25)
    default = BloodRequest(urgency_level='High')

    assert alert_radius(emergency) == 5
    assert alert_radius(high) == 25
    assert alert_radius(default) == 10


@pytest.mark.django_db
def test_saving_a_request_invalidates_cached_matches(cache_service, verification_disabled):
    cache_service.set('matching:nearby:O+:1', {'donors': []})
    blood_request = BloodRequest.objects.create(patient_name='A', blood_group='O+')
    assert cache_service.get('matching:nearby:O+:1') is None

    cache_service.set('matching:nearby:O+:1', {'donors': []})
    blood_request.status = BloodRequest.STATUS_COMPLETED
    blood_request.save()
    assert cache_service.get('matching:nearby:O+:1') is None

    cache_service.set('matching:nearby:O+:1', {'donors': []})
    blood_request.delete()
    assert cache_service.get('matching:nearby:O+:1') is None


@pytest.mark.django_db
def test_invalidate_matching_cache_only_touches_matching_keys(cache_service):
    cache_service.set('matching:nearby:A+:1', 1)
    cache_service.set('sessions:abc', 2)

    assert invalidate_matching_cache() == 1
    assert cache_service.get('sessions:abc') == 2


# ----------------------------------------------------------------------------
# REST API
# ----------------------------------------------------------------------------

@pytest.mark.django_db
def test_create_through_api_reports_alerts(api_client, make_user, alert_stream, verification_disabled):
    listen(alert_stream)
    api_client.force_authenticate(make_user())

    response = api_client.post(URL, {
        'patient_name': 'Maya',
        'blood_group': 'o+',
        'units_required': 2,
        'urgency_level': 'Emergency',
        'latitude': KATHMANDU[0],
        'longitude': KATHMANDU[1],
    }, format='json')

    assert response.status_code == 201
    body = response.json()
    assert body['success'] is True
    assert body['alerts_sent'] == 1
    assert body['request']['blood_group'] == 'O+'
    assert body['request']['latitude'] == KATHMANDU[0]


@pytest.mark.django_db
def test_create_requires_login(api_client):
    response = api_client.post(URL, {'patient_name': 'Maya', 'blood_group': 'O+'}, format='json')

    assert response.status_code in (401, 403)
    assert response.json()['success'] is False


@pytest.mark.django_db
@pytest.mark.parametrize('payload, message', [
    ({'patient_name': 'X', 'blood_group': 'Q+'}, 'blood_group: Invalid blood group'),
    ({'patient_name': 'X', 'blood_group': 'A+', 'latitude': 91, 'longitude': 0},
     'latitude: latitude must be between -90 and 90'),
    ({'patient_name': 'X', 'blood_group': 'A+', 'latitude': 10},
     'latitude and longitude must be provided together'),
])
def test_create_validation_errors(api_client, make_user, payload, message):
    api_client.force_authenticate(make_user())

    response = api_client.post(URL, payload, format='json')

    assert response.status_code == 400
    assert response.json() == {'success': False, 'message': message}


@pytest.mark.django_db
def test_list_filters_by_status_and_group(api_client, verification_disabled):
    BloodRequest.objects.create(patient_name='A', blood_group='A+')
    done = BloodRequest.objects.create(patient_name='B', blood_group='B+', status='Completed')

    by_status = api_client.get(URL, {'status': 'Completed'}).json()
    by_group = api_client.get(URL, {'bloodGroup': 'b+'}).json()

    assert [item['id'] for item in by_status] == [done.id]
    assert [item['id'] for item in by_group] == [done.id]


# ----------------------------------------------------------------------------
# Verification before broadcast
# ----------------------------------------------------------------------------

@pytest.fixture
def held_request(make_user, verification_enabled):
    return BloodRequest.objects.create(
        requester=make_user(),
        patient_name='Held', blood_group='O+', urgency_level='Emergency',
        latitude=KATHMANDU[0], longitude=KATHMANDU[1],
    )


@pytest.fixture
def authority(make_user):
    return make_user(role='hospital', is_verified=True)


@pytest.mark.django_db
def test_urgent_requests_wait_for_verification(alert_stream, held_request):
    assert held_request.verification_required is True
    assert held_request.verification_status == BloodRequest.VERIFICATION_PENDING
    assert held_request.alerts_sent == 0


@pytest.mark.django_db
def test_verified_authority_approves_and_broadcasts(api_client, alert_stream, held_request, authority):
    channel = listen(alert_stream)
    api_client.force_authenticate(authority)

    response = api_client.post(f'{URL}{held_request.id}/verify-broadcast/', {'notes': 'Checked'}, format='json')

    assert response.status_code == 200
    assert response.json()['alerts_sent'] == 1
    [(_, data)] = channel.events('emergency-alert')
    assert data['verified_by'] == authority.name

    held_request.refresh_from_db()
    assert held_request.verification_status == BloodRequest.VERIFICATION_VERIFIED
    assert held_request.verified_by == authority
    assert held_request.verification_notes == 'Checked'

    again = api_client.post(f'{URL}{held_request.id}/verify-broadcast/', {}, format='json')
    assert again.status_code == 400
    assert again.json()['message'] == 'Request is already verified'


@pytest.mark.django_db
def test_rejection_sends_nothing(api_client, alert_stream, held_request, authority):
    channel = listen(alert_stream)
    api_client.force_authenticate(authority)

    response = api_client.post(f'{URL}{held_request.id}/verify-broadcast/', {'approve': False}, format='json')

    assert response.json()['alerts_sent'] == 0
    assert channel.events('emergency-alert') == []
    held_request.refresh_from_db()
    assert held_request.verification_status == BloodRequest.VERIFICATION_REJECTED


@pytest.mark.django_db
def test_only_verified_authorities_can_verify(api_client, held_request, make_user):
    api_client.force_authenticate(make_user(role='hospital', is_verified=False))

    response = api_client.post(f'{URL}{held_request.id}/verify-broadcast/', {}, format='json')

    assert response.status_code == 403
    assert response.json()['success'] is False


@pytest.mark.django_db
def test_closed_requests_cannot_be_verified(api_client, held_request, authority):
    held_request.status = BloodRequest.STATUS_CANCELLED
    held_request.save()
    api_client.force_authenticate(authority)

    response = api_client.post(f'{URL}{held_request.id}/verify-broadcast/', {}, format='json')

    assert response.status_code == 400
    assert response.json()['message'] == 'Request cannot be verified in Cancelled state'


@pytest.mark.django_db
def test_pending_verification_lists_held_requests_oldest_first(api_client, held_request, authority, make_user):
    newer = BloodRequest.objects.create(
        requester=make_user(), patient_name='Newer', blood_group='A+', urgency_level='High',
    )
    BloodRequest.objects.create(patient_name='Routine', blood_group='A+', urgency_level='Low')
    closed = BloodRequest.objects.create(patient_name='Closed', blood_group='B+', urgency_level='Emergency')
    closed.status = BloodRequest.STATUS_CANCELLED
    closed.save()
    api_client.force_authenticate(authority)

    response = api_client.get(f'{URL}pending-verification/')

    assert response.status_code == 200
    assert [item['id'] for item in response.json()['requests']] == [held_request.id, newer.id]


@pytest.mark.django_db
def test_pending_verification_is_for_authorities_only(api_client, held_request, make_user):
    api_client.force_authenticate(make_user(role='user'))

    response = api_client.get(f'{URL}pending-verification/')

    assert response.status_code == 403
    assert response.json()['success'] is False


@pytest.mark.django_db
def test_pending_verification_without_the_workflow(api_client, authority, verification_disabled):
    api_client.force_authenticate(authority)

    response = api_client.get(f'{URL}pending-verification/')

    assert response.status_code == 503
    assert response.json()['message'] == 'Verification workflow is not enabled.'
