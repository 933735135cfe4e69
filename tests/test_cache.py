"""TTLCache tests"""

import pytest

from src.core.cache import TTLCache, maybe_cached


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


class TestExpiry:
    def test_value_served_before_ttl(self, clock):
        cache = TTLCache(10, clock=clock)
        cache.set("k", 1)
        clock.now = 9.9
        assert cache.get("k") == 1

    def test_value_expires_at_ttl(self, clock):
        cache = TTLCache(10, clock=clock)
        cache.set("k", 1)
        clock.now = 10.0
        assert cache.get("k") is None
        assert "k" not in cache

    def test_zero_ttl_never_serves(self, clock):
        cache = TTLCache(0, clock=clock)
        cache.set("k", 1)
        assert cache.get("k", "missing") == "missing"

    def test_negative_ttl_rejected(self):
        with pytest.raises(ValueError):
            TTLCache(-1)


class TestLoad:
    def test_get_or_load_calls_loader_once(self, clock):
        cache = TTLCache(10, clock=clock)
        calls = []

        def loader():
            calls.append(1)
            return "v"

        assert cache.get_or_load("k", loader) == "v"
        assert cache.get_or_load("k", loader) == "v"
        assert len(calls) == 1

    def test_reload_after_expiry(self, clock):
        cache = TTLCache(5, clock=clock)
        values = iter(["first", "second"])
        assert cache.get_or_load("k", lambda: next(values)) == "first"
        clock.now = 6
        assert cache.get_or_load("k", lambda: next(values)) == "second"

    def test_cached_none_is_a_hit(self, clock):
        cache = TTLCache(5, clock=clock)
        calls = []
        cache.get_or_load("k", lambda: calls.append(1))
        cache.get_or_load("k", lambda: calls.append(1))
        assert len(calls) == 1

    def test_maybe_cached_without_cache(self):
        calls = []
        maybe_cached(None, "k", lambda: calls.append(1))
        maybe_cached(None, "k", lambda: calls.append(1))
        assert len(calls) == 2


class TestInvalidation:
    def test_invalidate_single_key(self, clock):
        cache = TTLCache(10, clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)
        assert cache.invalidate("a") is True
        assert cache.invalidate("a") is False
        assert "b" in cache
        assert len(cache) == 1

    def test_clear(self, clock):
        cache = TTLCache(10, clock=clock)
        cache.set("a", 1)
        cache.clear()
        assert len(cache) == 0
