"""
Fixed-window rate limiting per (user, action).

Each key gets a window that starts on its first call. Calls inside the
window are counted until the limit is reached; the first call after the
window has passed starts a new one.

Two backends share the same contract:

    MemoryRateLimiter  - process-local table, bounded and periodically swept
    CacheRateLimiter   - Django cache framework, shared between processes
"""
import logging
import math
import threading
import time
from dataclasses import dataclass

from django.core.cache import caches

from .conf import newsletter_settings

logger = logging.getLogger(__name__)


@dataclass
class RateLimitEntry:
    count: int
    reset_time: float


def make_key(user_id, action):
    return f"{user_id}:{action}"


class MemoryRateLimiter:
    """
    In-process fixed-window limiter.

    The table holds at most ``max_keys`` windows. Expired windows are swept
    every ``sweep_interval`` calls, and when the table is full the window
    closest to expiry is evicted to make room.
    """

    def __init__(self, max_keys=10000, sweep_interval=1000, clock=time.monotonic):
        self.max_keys = max_keys
        self.sweep_interval = sweep_interval
        self.clock = clock
        self._entries = {}
        self._calls = 0
        self._lock = threading.Lock()

    def __len__(self):
        return len(self._entries)

    def is_limited(self, user_id, action, limit=100, window=3600):
        key = make_key(user_id, action)
        with self._lock:
            now = self.clock()
            self._calls += 1
            if self.sweep_interval and self._calls % self.sweep_interval == 0:
                self._sweep(now)

            entry = self._entries.get(key)
            if entry is None or now > entry.reset_time:
                if entry is None and len(self._entries) >= self.max_keys:
                    self._make_room(now)
                self._entries[key] = RateLimitEntry(count=1, reset_time=now + window)
                return False

            if entry.count >= limit:
                return True

            entry.count += 1
            return False

    def reset(self, user_id=None, action=None):
        """Forget one window, or every window when called without arguments."""
        with self._lock:
            if user_id is None:
                self._entries.clear()
            else:
                self._entries.pop(make_key(user_id, action), None)

    def _sweep(self, now):
        expired = [key for key, entry in self._entries.items() if now > entry.reset_time]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Swept %d expired rate limit windows", len(expired))

    def _make_room(self, now):
        self._sweep(now)
        if len(self._entries) >= self.max_keys:
            oldest = min(self._entries, key=lambda k: self._entries[k].reset_time)
            del self._entries[oldest]
            logger.warning("Rate limit table full; evicted window %s", oldest)


class CacheRateLimiter:
    """
    Fixed-window limiter on the Django cache framework.

    Each key stores ``(count, reset_time)`` and is written back with the
    time left in its window as the timeout, so backends whose ``incr``
    re-applies the default timeout (database, file based) cannot shorten
    a window. Use a backend shared between processes (Redis, Memcached,
    database) for multi-instance deployments.

    ``clock`` must be wall-clock time, since windows are shared between
    processes.
    """

    def __init__(self, cache_alias="default", prefix="newsletter-rl", clock=time.time):
        self.cache_alias = cache_alias
        self.prefix = prefix
        self.clock = clock

    @property
    def cache(self):
        return caches[self.cache_alias]

    def cache_key(self, user_id, action):
        return f"{self.prefix}:{make_key(user_id, action)}"

    def is_limited(self, user_id, action, limit=100, window=3600):
        key = self.cache_key(user_id, action)
        cache = self.cache
        now = self.clock()
        if cache.add(key, (1, now + window), timeout=window):
            return False

        entry = cache.get(key)
        if entry is None or now > entry[1]:
            cache.set(key, (1, now + window), timeout=window)
            return False

        count, reset_time = entry
        if count >= limit:
            return True

        cache.set(key, (count + 1, reset_time), timeout=max(1, math.ceil(reset_time - now)))
        return False

    def reset(self, user_id=None, action=None):
        if user_id is None:
            raise ValueError("CacheRateLimiter can only reset a single window")
        self.cache.delete(self.cache_key(user_id, action))


_limiter = None
_limiter_lock = threading.Lock()


def build_rate_limiter():
    """Build a limiter from the RATE_LIMITER_* settings."""
    backend = newsletter_settings.RATE_LIMITER_BACKEND
    if backend == "memory":
        return MemoryRateLimiter(
            max_keys=newsletter_settings.RATE_LIMITER_MAX_KEYS,
            sweep_interval=newsletter_settings.RATE_LIMITER_SWEEP_INTERVAL,
        )
    if backend == "cache":
        return CacheRateLimiter(
            cache_alias=newsletter_settings.RATE_LIMIT_CACHE_ALIAS,
            prefix=newsletter_settings.RATE_LIMIT_CACHE_PREFIX,
        )
    raise ValueError(f"Unknown rate limiter backend: {backend}")


def get_rate_limiter():
    """Return the process-wide limiter, building it on first use."""
    global _limiter
    with _limiter_lock:
        if _limiter is None:
            _limiter = build_rate_limiter()
        return _limiter


def reset_rate_limiter():
    """Drop the process-wide limiter so the next call rebuilds it from settings."""
    global _limiter
    with _limiter_lock:
        _limiter = None
