"""Evergreen per-visitor session state."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

MS_PER_MINUTE = 60_000


class SessionStore(Protocol):
    """Per-visitor string key/value persistence (browser-local storage, a file, a dict).

    Implementations may raise on any operation when the backing storage is
    unavailable; callers degrade to session-only state.
    """

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


@dataclass(frozen=True)
class EvergreenSession:
    """One visitor's countdown window for one evergreen timer."""

    timer_id: str
    start_ms: int
    duration_minutes: int
    persisted: bool = True

    @property
    def duration_ms(self) -> int:
        return self.duration_minutes * MS_PER_MINUTE

    @property
    def end_ms(self) -> int:
        return self.start_ms + self.duration_ms

    def is_expired(self, now_ms: int) -> bool:
        return now_ms - self.start_ms >= self.duration_ms
