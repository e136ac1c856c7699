"""Persistence layer for the countdown timer service."""

from .timer import TimerRepository, parse_timer_id, timer_from_row

__all__ = [
    "TimerRepository",
    "parse_timer_id",
    "timer_from_row",
]
