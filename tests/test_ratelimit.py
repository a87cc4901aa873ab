"""
Tests for fixed-window rate limiting.
"""
import pickle
import time

import pytest
from django.core.cache import cache

from newsletter_engine.ratelimit import (
    CacheRateLimiter,
    MemoryRateLimiter,
    get_rate_limiter,
)


class TestMemoryRateLimiter:
    """Tests for the in-process limiter."""

    @pytest.mark.parametrize("limit", [1, 3, 10])
    def test_call_after_limit_is_limited(self, limiter, limit):
        """The first ``limit`` calls pass and the next one is refused."""
        results = [limiter.is_limited("u1", "create_post", limit, 60) for _ in range(limit + 1)]
        assert results == [False] * limit + [True]

    def test_limited_calls_do_not_count(self, limiter):
        for _ in range(5):
            limiter.is_limited("u1", "act", 2, 60)
        key_entry = limiter._entries["u1:act"]
        assert key_entry.count == 2

    def test_window_resets_after_expiry(self, limiter, clock):
        for _ in range(3):
            limiter.is_limited("u1", "act", 2, 60)
        assert limiter.is_limited("u1", "act", 2, 60)

        clock.advance(60)
        # Still inside the window at exactly reset_time
        assert limiter.is_limited("u1", "act", 2, 60)

        clock.advance(0.001)
        assert not limiter.is_limited("u1", "act", 2, 60)
        assert limiter._entries["u1:act"].count == 1

    def test_keys_are_independent(self, limiter):
        assert not limiter.is_limited("u1", "act", 1, 60)
        assert limiter.is_limited("u1", "act", 1, 60)
        assert not limiter.is_limited("u2", "act", 1, 60)
        assert not limiter.is_limited("u1", "other", 1, 60)

    def test_expired_windows_are_swept(self, clock):
        limiter = MemoryRateLimiter(sweep_interval=3, clock=clock)
        limiter.is_limited("u1", "act", 5, 10)
        limiter.is_limited("u2", "act", 5, 10)
        clock.advance(11)
        # Third call triggers the sweep before u3 is added
        limiter.is_limited("u3", "act", 5, 10)
        assert len(limiter) == 1

    def test_full_table_evicts_window_closest_to_expiry(self, clock):
        limiter = MemoryRateLimiter(max_keys=2, sweep_interval=0, clock=clock)
        limiter.is_limited("u1", "act", 5, 10)
        clock.advance(1)
        limiter.is_limited("u2", "act", 5, 10)
        limiter.is_limited("u3", "act", 5, 10)
        assert len(limiter) == 2
        assert "u1:act" not in limiter._entries

    def test_reset(self, limiter):
        limiter.is_limited("u1", "act", 1, 60)
        limiter.reset("u1", "act")
        assert not limiter.is_limited("u1", "act", 1, 60)

        limiter.reset()
        assert len(limiter) == 0


class TestCacheRateLimiter:
    """Tests for the cache-backed limiter."""

    @pytest.fixture(autouse=True)
    def clear_cache(self):
        cache.clear()
        yield
        cache.clear()

    def test_call_after_limit_is_limited(self):
        limiter = CacheRateLimiter()
        results = [limiter.is_limited("u1", "create_post", 3, 60) for _ in range(4)]
        assert results == [False, False, False, True]

    def test_limited_calls_do_not_count(self):
        limiter = CacheRateLimiter()
        for _ in range(5):
            limiter.is_limited("u1", "act", 2, 60)
        count, _ = cache.get(limiter.cache_key("u1", "act"))
        assert count == 2

    def test_window_resets_after_reset_time(self, clock):
        limiter = CacheRateLimiter(clock=clock)
        limiter.is_limited("u1", "act", 1, 60)
        assert limiter.is_limited("u1", "act", 1, 60)

        clock.advance(60)
        assert limiter.is_limited("u1", "act", 1, 60)

        clock.advance(0.001)
        assert not limiter.is_limited("u1", "act", 1, 60)

    def test_expired_window_starts_over(self):
        limiter = CacheRateLimiter()
        limiter.is_limited("u1", "act", 1, 60)
        assert limiter.is_limited("u1", "act", 1, 60)

        # Simulate the cache expiring the window
        cache.delete(limiter.cache_key("u1", "act"))
        assert not limiter.is_limited("u1", "act", 1, 60)

    def test_counting_keeps_the_window_timeout(self, settings, tmp_path):
        """
        Counting rewrites the entry; on the file based cache the stored
        expiry must still be the end of the window, not the default timeout.
        """
        settings.CACHES = {
            "default": {"BACKEND": "django.core.cache.backends.locmem.LocMemCache"},
            "files": {
                "BACKEND": "django.core.cache.backends.filebased.FileBasedCache",
                "LOCATION": str(tmp_path),
            },
        }
        limiter = CacheRateLimiter(cache_alias="files")
        assert not limiter.is_limited("u1", "act", 10, 3600)
        assert not limiter.is_limited("u1", "act", 10, 3600)

        with open(limiter.cache._key_to_file(limiter.cache_key("u1", "act")), "rb") as f:
            expires_at = pickle.load(f)
        assert expires_at - time.time() > 3500
        count, _ = limiter.cache.get(limiter.cache_key("u1", "act"))
        assert count == 2

    def test_reset_requires_key(self):
        limiter = CacheRateLimiter()
        with pytest.raises(ValueError):
            limiter.reset()


class TestGetRateLimiter:
    def test_default_backend_is_memory(self):
        limiter = get_rate_limiter()
        assert isinstance(limiter, MemoryRateLimiter)
        assert get_rate_limiter() is limiter

    def test_cache_backend_from_settings(self, settings):
        settings.NEWSLETTER_ENGINE = {"RATE_LIMITER_BACKEND": "cache"}
        assert isinstance(get_rate_limiter(), CacheRateLimiter)

    def test_unknown_backend(self, settings):
        settings.NEWSLETTER_ENGINE = {"RATE_LIMITER_BACKEND": "carrier-pigeon"}
        with pytest.raises(ValueError):
            get_rate_limiter()
