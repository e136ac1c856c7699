"""Evergreen session clock.

Each visitor gets an independent countdown window per evergreen timer.  The
window start is persisted in a visitor-scoped key/value store under
``countdown_timer_<timer id>`` and re-armed once the full duration has
elapsed.  Concurrent tabs may race on re-arm; last write wins.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from countdown.models.session import EvergreenSession, SessionStore

logger = logging.getLogger(__name__)

STORAGE_KEY_PREFIX = "countdown_timer_"


def storage_key(timer_id: str) -> str:
    return f"{STORAGE_KEY_PREFIX}{timer_id}"


def now_ms() -> int:
    return time.time_ns() // 1_000_000


def _parse_start(raw: str | None) -> int | None:
    if raw is None:
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        return None


def resolve_session(
    timer_id: str,
    duration_minutes: int,
    store: SessionStore,
    now: int,
) -> EvergreenSession:
    """Load, create or re-arm the visitor's window.  Store errors propagate."""
    key = storage_key(timer_id)
    start = _parse_start(store.get(key))

    if start is not None:
        session = EvergreenSession(timer_id, start, duration_minutes)
        # A start in the future means the stored value drifted; re-arm it too.
        if start <= now and not session.is_expired(now):
            return session

    store.set(key, str(now))
    return EvergreenSession(timer_id, now, duration_minutes)


def resolve_end_instant(
    timer_id: str,
    duration_minutes: int,
    store: SessionStore,
    now: int,
) -> int:
    """Return the epoch-ms end of the visitor's current window.  Store errors propagate."""
    return resolve_session(timer_id, duration_minutes, store, now).end_ms


class EvergreenSessionClock:
    """Session clock bound to one visitor store, with in-memory fallback.

    When the store raises (private browsing, quota, unreadable file) the
    window is kept in memory for the lifetime of this instance instead, so
    the countdown still works without cross-visit continuity.
    """

    def __init__(
        self,
        store: SessionStore | None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store
        self.clock = clock
        self._fallback: dict[str, int] = {}

    def session(self, timer_id: str, duration_minutes: int) -> EvergreenSession:
        now = self.clock()
        if self.store is not None:
            try:
                return resolve_session(timer_id, duration_minutes, self.store, now)
            except Exception as e:
                logger.warning(
                    f"Session store unavailable for timer {timer_id}, "
                    f"using in-memory window: {type(e).__name__}: {e}"
                )

        key = storage_key(timer_id)
        start = self._fallback.get(key)
        if start is not None:
            session = EvergreenSession(timer_id, start, duration_minutes, persisted=False)
            if start <= now and not session.is_expired(now):
                return session

        self._fallback[key] = now
        return EvergreenSession(timer_id, now, duration_minutes, persisted=False)

    def resolve_end_instant(self, timer_id: str, duration_minutes: int) -> int:
        return self.session(timer_id, duration_minutes).end_ms
