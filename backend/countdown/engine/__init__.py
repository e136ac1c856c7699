"""Timer selection and lifecycle engine.

Pure functions over ``countdown.models``; the only side effects are writes
to the caller-supplied session store.
"""

from .countdown import CountdownParts, decompose, format_countdown, remaining_ms
from .selector import eligible_timers, select_timer
from .session_clock import (
    STORAGE_KEY_PREFIX,
    EvergreenSessionClock,
    resolve_end_instant,
    storage_key,
)
from .status import compute_status, is_time_eligible
from .targeting import matches

__all__ = [
    "STORAGE_KEY_PREFIX",
    "CountdownParts",
    "EvergreenSessionClock",
    "compute_status",
    "decompose",
    "eligible_timers",
    "format_countdown",
    "is_time_eligible",
    "matches",
    "remaining_ms",
    "resolve_end_instant",
    "select_timer",
    "storage_key",
]
