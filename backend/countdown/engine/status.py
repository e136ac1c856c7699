"""Derived timer status and time eligibility."""

from __future__ import annotations

from datetime import datetime

from countdown.models.timer import (
    EvergreenTimer,
    FixedTimer,
    Timer,
    TimerStatus,
    parse_instant,
)


def fixed_window(timer: FixedTimer) -> tuple[datetime, datetime] | None:
    """Return the parsed ``(start, end)`` of a fixed timer, or ``None`` if malformed."""
    start = parse_instant(timer.start_at)
    end = parse_instant(timer.end_at)
    if start is None or end is None or end <= start:
        return None
    return start, end


def compute_status(timer: Timer | None, now: datetime) -> TimerStatus:
    """Label a timer for *now*.

    ``active=False`` wins over everything.  Evergreen timers have no
    calendar expiry at the record level; visitor expiry lives in the
    session clock.
    """
    if timer is None:
        return TimerStatus.UNKNOWN
    if not timer.active:
        return TimerStatus.INACTIVE
    if isinstance(timer, EvergreenTimer):
        return TimerStatus.ACTIVE

    window = fixed_window(timer)
    current = parse_instant(now)
    if window is None or current is None:
        return TimerStatus.INVALID

    start, end = window
    if current < start:
        return TimerStatus.SCHEDULED
    if current > end:
        return TimerStatus.EXPIRED
    return TimerStatus.ACTIVE


def is_time_eligible(timer: Timer, now: datetime) -> bool:
    """Whether the timer's calendar window admits *now* (ignores ``active``).

    Malformed fixed windows are never eligible.
    """
    if isinstance(timer, EvergreenTimer):
        return True

    window = fixed_window(timer)
    current = parse_instant(now)
    if window is None or current is None:
        return False
    start, end = window
    return start <= current <= end
