"""Property-based tests for TTLCache expiry and round-trip."""

from __future__ import annotations

from hypothesis import given, strategies as st

from gcmc.app.cache import TTLCache
from gcmc.tests.conftest import FakeClock, ManualExecutor

_keys = st.text(min_size=1, max_size=20)
_values = st.one_of(st.none(), st.booleans(), st.integers(), st.text(), st.lists(st.integers()))


@given(key=_keys, value=_values)
def test_put_then_get_round_trip(key, value):
    cache = TTLCache(clock=FakeClock(), executor=ManualExecutor())
    assert cache.put(key, value) == value
    assert cache.get(key) == value


@given(key=_keys)
def test_never_put_is_absent_and_expired(key):
    cache = TTLCache(clock=FakeClock(), executor=ManualExecutor())
    assert cache.get(key) is None
    assert cache.expired(key) is True


@given(
    ttl=st.integers(min_value=1, max_value=10_000),
    elapsed=st.integers(min_value=0, max_value=20_000),
)
def test_plain_entry_expires_after_ttl(ttl, elapsed):
    clock = FakeClock(start=1_000)
    cache = TTLCache(clock=clock, executor=ManualExecutor())
    cache.put("k", "v", ttl)
    clock.tick(elapsed)

    if elapsed <= ttl:
        assert cache.get("k") == "v"
    else:
        assert cache.get("k") is None
        assert cache.del_expired() == 0


@given(count=st.integers(min_value=0, max_value=30), expired_count=st.integers(min_value=0, max_value=30))
def test_flush_returns_prior_count(count, expired_count):
    clock = FakeClock()
    cache = TTLCache(clock=clock, executor=ManualExecutor())
    for i in range(expired_count):
        cache.put(f"short-{i}", i, 5)
    clock.tick(10)
    for i in range(count):
        cache.put(f"live-{i}", i, 1_000)
    assert cache.flush() == count + expired_count
    assert len(cache) == 0
