"""Data models for the countdown timer service."""

from .session import EvergreenSession, SessionStore
from .timer import (
    Appearance,
    EvergreenTimer,
    FixedTimer,
    Targeting,
    TargetScope,
    Timer,
    TimerKind,
    TimerStatus,
    normalize_shop,
    parse_instant,
)

__all__ = [
    "Appearance",
    "EvergreenSession",
    "EvergreenTimer",
    "FixedTimer",
    "SessionStore",
    "TargetScope",
    "Targeting",
    "Timer",
    "TimerKind",
    "TimerStatus",
    "normalize_shop",
    "parse_instant",
]
