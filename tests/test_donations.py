from datetime import date

import pytest

from donors.models import Donation


@pytest.mark.django_db
def test_completed_donation_restarts_eligibility_window(make_donor):
    donor = make_donor('A+', last_donation_date=date(2024, 1, 1))

    Donation.objects.create(donor=donor, donation_date=date(2025, 3, 1), blood_group='A+',
                            status=Donation.STATUS_COMPLETED)

    donor.refresh_from_db()
    assert donor.last_donation_date == date(2025, 3, 1)


@pytest.mark.django_db
def test_older_or_scheduled_donations_do_not_move_the_date(make_donor):
    donor = make_donor('A+', last_donation_date=date(2025, 3, 1))

    Donation.objects.create(donor=donor, donation_date=date(2024, 1, 1), blood_group='A+',
                            status=Donation.STATUS_COMPLETED)
    Donation.objects.create(donor=donor, donation_date=date(2025, 5, 1), blood_group='A+')

    donor.refresh_from_db()
    assert donor.last_donation_date == date(2025, 3, 1)


@pytest.mark.django_db
def test_donation_changes_invalidate_cached_matches(make_donor, cache_service):
    donor = make_donor('A+')
    cache_service.set('matching:nearby:A+:x', {'donors': []})

    donation = Donation.objects.create(donor=donor, donation_date=date(2025, 5, 1), blood_group='A+')
    assert cache_service.get('matching:nearby:A+:x') is None

    cache_service.set('matching:nearby:A+:x', {'donors': []})
    donation.delete()
    assert cache_service.get('matching:nearby:A+:x') is None


# ----------------------------------------------------------------------------
# Donations API
# ----------------------------------------------------------------------------

URL = '/api/donations/'


def schedule(api_client, donor, **fields):
    payload = {'donor': donor.id, 'blood_group': donor.blood_group, 'donation_date': '2025-06-01', **fields}
    return api_client.post(f'{URL}schedule/', payload, format='json')


@pytest.mark.django_db
def test_schedule_donation(api_client, make_donor, make_user):
    donor = make_donor('B-')
    api_client.force_authenticate(make_user())

    response = schedule(api_client, donor, blood_group='b-', donation_center='Central Blood Bank')

    assert response.status_code == 201
    body = response.json()
    assert body['success'] is True
    assert body['donation']['status'] == Donation.STATUS_SCHEDULED
    assert body['donation']['blood_group'] == 'B-'
    assert body['donation']['donor_name'] == donor.name
    assert Donation.objects.get(pk=body['donation_id']).donation_center == 'Central Blood Bank'


@pytest.mark.django_db
def test_schedule_requires_login(api_client, make_donor):
    response = schedule(api_client, make_donor())

    assert response.status_code in (401, 403)
    assert Donation.objects.count() == 0


@pytest.mark.django_db
@pytest.mark.parametrize('fields, message', [
    ({'blood_group': 'AB+'}, 'Blood group does not match donor record'),
    ({'blood_group': 'A'}, 'blood_group: Invalid blood group'),
    ({'donation_date': '2025-03-01'}, 'Donor is eligible again on 2025-04-01'),
])
def test_schedule_validation_errors(api_client, make_donor, make_user, fields, message):
    donor = make_donor('O+', last_donation_date=date(2025, 1, 1))
    api_client.force_authenticate(make_user())

    response = schedule(api_client, donor, **fields)

    assert response.status_code == 400
    assert response.json() == {'success': False, 'message': message}


@pytest.mark.django_db
def test_complete_restarts_the_donor_window(api_client, make_donor, make_user, cache_service):
    donor = make_donor('A+')
    donation = Donation.objects.create(donor=donor, donation_date=date(2025, 6, 1), blood_group='A+')
    cache_service.set('matching:nearby:A+:x', {'donors': [donor.id]})
    api_client.force_authenticate(make_user())

    response = api_client.put(f'{URL}{donation.id}/complete/', {'notes': 'No reaction'}, format='json')

    assert response.status_code == 200
    assert response.json()['donation']['status'] == Donation.STATUS_COMPLETED
    assert cache_service.get('matching:nearby:A+:x') is None

    donor.refresh_from_db()
    donation.refresh_from_db()
    assert donor.last_donation_date == date(2025, 6, 1)
    assert donation.notes == 'No reaction'

    again = api_client.put(f'{URL}{donation.id}/complete/', format='json')
    assert again.status_code == 400
    assert again.json()['message'] == 'Donation is already Completed'


@pytest.mark.django_db
def test_cancel_invalidates_cached_matches(api_client, make_donor, make_user, cache_service):
    donor = make_donor('A+')
    donation = Donation.objects.create(donor=donor, donation_date=date(2025, 6, 1), blood_group='A+')
    cache_service.set('matching:nearby:A+:x', {'donors': []})
    api_client.force_authenticate(make_user())

    response = api_client.post(f'{URL}{donation.id}/cancel/')

    assert response.status_code == 200
    assert cache_service.get('matching:nearby:A+:x') is None
    donation.refresh_from_db()
    assert donation.status == Donation.STATUS_CANCELLED

    donor.refresh_from_db()
    assert donor.last_donation_date is None


@pytest.mark.django_db
def test_completed_donations_cannot_be_cancelled(api_client, make_donor, make_user):
    donation = Donation.objects.create(donor=make_donor('A+'), donation_date=date(2025, 6, 1),
                                       blood_group='A+', status=Donation.STATUS_COMPLETED)
    api_client.force_authenticate(make_user())

    response = api_client.put(f'{URL}{donation.id}/cancel/', format='json')

    assert response.status_code == 400
    assert response.json()['message'] == 'Completed donations cannot be cancelled'


@pytest.mark.django_db
def test_completion_can_require_an_authority(api_client, make_donor, make_user, settings):
    settings.DONATIONS = {**settings.DONATIONS, 'REQUIRE_AUTHORITY_FOR_COMPLETION': True}
    donation = Donation.objects.create(donor=make_donor('A+'), donation_date=date(2025, 6, 1), blood_group='A+')

    api_client.force_authenticate(make_user())
    refused = api_client.put(f'{URL}{donation.id}/complete/', format='json')

    assert refused.status_code == 403
    assert refused.json()['success'] is False

    api_client.force_authenticate(make_user(role='blood_bank', is_verified=True))
    accepted = api_client.put(f'{URL}{donation.id}/complete/', format='json')

    assert accepted.status_code == 200


@pytest.mark.django_db
def test_list_donations_by_donor(api_client, make_donor, make_user):
    donor = make_donor('O-')
    older = Donation.objects.create(donor=donor, donation_date=date(2025, 1, 1), blood_group='O-')
    newer = Donation.objects.create(donor=donor, donation_date=date(2025, 5, 1), blood_group='O-')
    Donation.objects.create(donor=make_donor('O-'), donation_date=date(2025, 3, 1), blood_group='O-')
    api_client.force_authenticate(make_user())

    by_donor = api_client.get(URL, {'donorId': donor.id}).json()

    assert [item['id'] for item in by_donor] == [newer.id, older.id]
    assert len(api_client.get(URL).json()) == 3
    assert api_client.get(f'{URL}{older.id}/').json()['donation_date'] == '2025-01-01'
