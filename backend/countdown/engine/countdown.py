"""Remaining-time arithmetic and display formatting."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CountdownParts:
    days: int
    hours: int
    minutes: int
    seconds: int
    expired: bool = False


def remaining_ms(end_ms: int, now_ms: int) -> int:
    return max(0, end_ms - now_ms)


def decompose(ms: int) -> CountdownParts:
    """Split a duration into d/h/m/s, truncating (a second ticks only once fully elapsed)."""
    if ms <= 0:
        return CountdownParts(0, 0, 0, 0, expired=True)

    total_seconds = ms // 1000
    days, rest = divmod(total_seconds, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)
    return CountdownParts(days, hours, minutes, seconds)


def format_countdown(parts: CountdownParts) -> str:
    """``HH:MM:SS``, prefixed with ``Nd`` once a day or more remains."""
    clock = f"{parts.hours:02d}:{parts.minutes:02d}:{parts.seconds:02d}"
    if parts.days > 0:
        return f"{parts.days}d {clock}"
    return clock
