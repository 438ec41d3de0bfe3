import itertools

import pytest
from django.apps import apps
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from alerts.stream import AlertStream
from helpers import RecordingChannel
from matching.cache import CacheService

_sequence = itertools.count(1)


@pytest.fixture(autouse=True)
def cache_service():
    """Fresh in-memory cache per test, never touching a real Redis"""
    config = apps.get_app_config('matching')
    original = config.cache
    config.cache = CacheService(redis_url=None)
    yield config.cache
    config.cache = original


@pytest.fixture(autouse=True)
def alert_stream():
    config = apps.get_app_config('alerts')
    original = config.stream
    config.stream = AlertStream(heartbeat_seconds=25, default_radius_km=5)
    yield config.stream
    config.stream.close()
    config.stream = original


@pytest.fixture
def verification_disabled(settings):
    settings.BLOOD_REQUESTS = {**settings.BLOOD_REQUESTS, 'VERIFICATION_ENABLED': False}


@pytest.fixture
def verification_enabled(settings):
    settings.BLOOD_REQUESTS = {**settings.BLOOD_REQUESTS, 'VERIFICATION_ENABLED': True}


@pytest.fixture
def make_user(db):
    User = get_user_model()

    def _make_user(**fields):
        n = next(_sequence)
        fields.setdefault('username', f'user{n}')
        fields.setdefault('email', f'user{n}@example.com')
        fields.setdefault('name', f'User {n}')
        return User.objects.create_user(password='test-pass-123', **fields)

    return _make_user


@pytest.fixture
def make_donor(make_user):
    def _make_donor(blood_group='O+', latitude=27.7172, longitude=85.324, **fields):
        fields.setdefault('is_donor', True)
        return make_user(blood_group=blood_group, latitude=latitude, longitude=longitude, **fields)

    return _make_donor


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def recording_channel():
    return RecordingChannel()
