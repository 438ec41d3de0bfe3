# matching/cache.py
"""
Key/value cache for donor-matching results.

Redis is used when REDIS_URL is configured and reachable; any Redis failure
switches the service to an in-process store until a retry window passes.
Callers never see Redis errors.
"""
import json
import logging
import re
import threading
import time

import redis
from django.apps import apps
from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder

from algorithms.parsing import positive_int

logger = logging.getLogger(__name__)

REDIS_ERRORS = (redis.RedisError, OSError)

SCAN_BATCH_SIZE = 100


def _escape_glob(value):
    return re.sub(r'([*?\[\]\\])', r'\\\1', value)


class CacheService:
    def __init__(self, redis_url=None, retry_seconds=30, default_ttl=120,
                 connect_timeout=2.0, client_factory=None, clock=time.monotonic):
        self.redis_url = redis_url or None
        self.retry_seconds = positive_int(retry_seconds, 30)
        self.default_ttl = positive_int(default_ttl, 120)
        self.connect_timeout = connect_timeout
        self.clock = clock

        self.client = None
        self.redis_connected = False
        self.redis_retry_at = 0

        self._client_factory = client_factory or self._create_client
        self._memory = {}
        self._lock = threading.Lock()
        self._counters = {'hits': 0, 'misses': 0, 'writes': 0}

    @classmethod
    def from_settings(cls):
        config = settings.MATCHING
        return cls(
            redis_url=config.get('REDIS_URL'),
            retry_seconds=config.get('REDIS_RETRY_SECONDS', 30),
            default_ttl=config.get('CACHE_TTL', 120),
            connect_timeout=config.get('REDIS_CONNECT_TIMEOUT', 2.0),
        )

    # ------------------------------------------------------------------
    # Redis connection state
    # ------------------------------------------------------------------
    def _create_client(self):
        return redis.Redis.from_url(
            self.redis_url,
            socket_connect_timeout=self.connect_timeout,
            socket_timeout=self.connect_timeout,
            decode_responses=True,
        )

    def _mark_down(self, error):
        if self.redis_connected:
            logger.warning(f"Redis cache unavailable, falling back to memory: {error}")
        else:
            logger.debug(f"Redis connection attempt failed: {error}")
        self.redis_connected = False
        self.redis_retry_at = self.clock() + self.retry_seconds

    def _ensure_redis(self):
        if self.redis_connected and self.client is not None:
            return True

        if not self.redis_url:
            return False

        if self.clock() < self.redis_retry_at:
            return False

        try:
            if self.client is None:
                self.client = self._client_factory()
            self.client.ping()
        except REDIS_ERRORS as e:
            self._mark_down(e)
            return False

        self.redis_connected = True
        logger.info("Redis cache connected")
        return True

    # ------------------------------------------------------------------
    # In-process store
    # ------------------------------------------------------------------
    def _get_from_memory(self, key):
        with self._lock:
            item = self._memory.get(key)
            if item is None:
                return None

            raw, expires_at = item
            if self.clock() >= expires_at:
                del self._memory[key]
                return None

        return raw

    def _sweep_expired(self, now):
        # Caller holds the lock
        expired = [key for key, (_, expires_at) in self._memory.items() if now >= expires_at]
        for key in expired:
            del self._memory[key]

    def _set_in_memory(self, key, raw, ttl):
        now = self.clock()
        with self._lock:
            self._sweep_expired(now)
            self._memory[key] = (raw, now + ttl)

    def _count(self, counter):
        with self._lock:
            self._counters[counter] += 1

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def get(self, key):
        """Stored value for key, or None on a miss"""
        if self._ensure_redis():
            try:
                raw = self.client.get(key)
            except REDIS_ERRORS as e:
                self._mark_down(e)
            else:
                if raw is None:
                    self._count('misses')
                    return None
                self._count('hits')
                return json.loads(raw)

        raw = self._get_from_memory(key)
        if raw is None:
            self._count('misses')
            return None

        self._count('hits')
        return json.loads(raw)

    def set(self, key, value, ttl=None):
        """Store a JSON-serializable value; ttl defaults to the service TTL"""
        ttl = positive_int(ttl, self.default_ttl)
        raw = json.dumps(value, cls=DjangoJSONEncoder)

        if self._ensure_redis():
            try:
                self.client.setex(key, ttl, raw)
            except REDIS_ERRORS as e:
                self._mark_down(e)
            else:
                self._count('writes')
                return

        self._set_in_memory(key, raw, ttl)
        self._count('writes')

    def invalidate_prefix(self, prefix):
        """
        Delete every key starting with prefix from both stores.

        Returns:
            Number of keys removed
        """
        removed = 0

        if self._ensure_redis():
            try:
                batch = []
                for key in self.client.scan_iter(match=f"{_escape_glob(prefix)}*", count=SCAN_BATCH_SIZE):
                    batch.append(key)
                    if len(batch) >= SCAN_BATCH_SIZE:
                        removed += self.client.delete(*batch)
                        batch = []
                if batch:
                    removed += self.client.delete(*batch)
            except REDIS_ERRORS as e:
                self._mark_down(e)

        with self._lock:
            stale = [key for key in self._memory if key.startswith(prefix)]
            for key in stale:
                del self._memory[key]
        removed += len(stale)

        logger.debug(f"Invalidated {removed} cache entries with prefix {prefix!r}")
        return removed

    def stats(self):
        now = self.clock()
        with self._lock:
            self._sweep_expired(now)
            return {
                'hits': self._counters['hits'],
                'misses': self._counters['misses'],
                'writes': self._counters['writes'],
                'redisConnected': self.redis_connected,
                'fallback': 'redis' if self.redis_connected else 'memory',
                'memoryKeys': len(self._memory),
            }


def get_cache_service():
    return apps.get_app_config('matching').cache


def invalidate_matching_cache():
    """Drop every cached nearby-donor result"""
    return get_cache_service().invalidate_prefix(settings.MATCHING['CACHE_PREFIX'])
