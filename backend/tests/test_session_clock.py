"""Tests for the evergreen session clock."""

from countdown.engine.session_clock import (
    EvergreenSessionClock,
    resolve_end_instant,
    resolve_session,
    storage_key,
)
from countdown.models.session import MS_PER_MINUTE, EvergreenSession
from storefront.storage import MemoryStore

TIMER_ID = "a3f1"
T0 = 1_700_000_000_000


class BrokenStore:
    def get(self, key):
        raise OSError("storage disabled")

    def set(self, key, value):
        raise OSError("storage disabled")


class TestResolveSession:
    def test_storage_key_format(self):
        assert storage_key("abc") == "countdown_timer_abc"

    def test_first_visit_persists_start(self):
        store = MemoryStore()
        session = resolve_session(TIMER_ID, 30, store, T0)
        assert session.start_ms == T0
        assert store.get(storage_key(TIMER_ID)) == str(T0)

    def test_existing_window_is_reused(self):
        store = MemoryStore({storage_key(TIMER_ID): str(T0)})
        later = T0 + 10 * MS_PER_MINUTE
        assert resolve_end_instant(TIMER_ID, 30, store, later) == T0 + 30 * MS_PER_MINUTE
        assert store.get(storage_key(TIMER_ID)) == str(T0)

    def test_expired_window_is_rearmed(self):
        store = MemoryStore({storage_key(TIMER_ID): str(T0)})
        later = T0 + 30 * MS_PER_MINUTE
        assert resolve_end_instant(TIMER_ID, 30, store, later) == later + 30 * MS_PER_MINUTE
        assert store.get(storage_key(TIMER_ID)) == str(later)

    def test_future_start_is_rearmed(self):
        store = MemoryStore({storage_key(TIMER_ID): str(T0 + MS_PER_MINUTE)})
        assert resolve_session(TIMER_ID, 30, store, T0).start_ms == T0

    def test_garbage_start_is_rearmed(self):
        store = MemoryStore({storage_key(TIMER_ID): "yesterday"})
        assert resolve_session(TIMER_ID, 30, store, T0).start_ms == T0
        assert store.get(storage_key(TIMER_ID)) == str(T0)

    def test_timers_have_independent_windows(self):
        store = MemoryStore()
        resolve_session("one", 5, store, T0)
        resolve_session("two", 5, store, T0 + 1000)
        assert store.get(storage_key("one")) == str(T0)
        assert store.get(storage_key("two")) == str(T0 + 1000)


class TestEvergreenSession:
    def test_end_and_expiry(self):
        session = EvergreenSession(TIMER_ID, T0, 2)
        assert session.end_ms == T0 + 120_000
        assert not session.is_expired(T0 + 119_999)
        assert session.is_expired(T0 + 120_000)


class TestEvergreenSessionClock:
    def test_uses_store_when_available(self):
        store = MemoryStore()
        clock = EvergreenSessionClock(store, clock=lambda: T0)
        session = clock.session(TIMER_ID, 10)
        assert session.persisted
        assert store.get(storage_key(TIMER_ID)) == str(T0)

    def test_storage_failure_falls_back_to_memory(self):
        now = [T0]
        clock = EvergreenSessionClock(BrokenStore(), clock=lambda: now[0])

        first = clock.session(TIMER_ID, 10)
        assert not first.persisted
        assert first.end_ms == T0 + 10 * MS_PER_MINUTE

        now[0] = T0 + 5 * MS_PER_MINUTE
        assert clock.resolve_end_instant(TIMER_ID, 10) == first.end_ms

        now[0] = T0 + 10 * MS_PER_MINUTE
        assert clock.resolve_end_instant(TIMER_ID, 10) == now[0] + 10 * MS_PER_MINUTE

    def test_no_store_is_session_only(self):
        clock = EvergreenSessionClock(None, clock=lambda: T0)
        assert not clock.session(TIMER_ID, 1).persisted
