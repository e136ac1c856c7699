"""Timer record model.

A timer is a tagged union over its kind: ``FixedTimer`` carries an absolute
start/end window shared by every visitor, ``EvergreenTimer`` carries a
per-visitor duration.  Status is never stored; see ``countdown.engine.status``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import ClassVar


class TimerKind(StrEnum):
    FIXED = "fixed"
    EVERGREEN = "evergreen"


class TargetScope(StrEnum):
    ALL = "all"
    PRODUCTS = "products"
    COLLECTIONS = "collections"


class TimerStatus(StrEnum):
    INACTIVE = "inactive"
    SCHEDULED = "scheduled"
    ACTIVE = "active"
    EXPIRED = "expired"
    INVALID = "invalid"
    UNKNOWN = "unknown"


POSITIONS = ("top", "above-cart", "below-cart", "bottom")

# #RGB or #RRGGBB
HEX_COLOR = re.compile(r"^#([0-9A-Fa-f]{3}|[0-9A-Fa-f]{6})$")

MIN_DURATION_MINUTES = 1
MAX_DURATION_MINUTES = 10080  # 7 days

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


@dataclass(frozen=True)
class Targeting:
    """Which products or collections a timer applies to."""

    scope: TargetScope = TargetScope.ALL
    ids: frozenset[str] = frozenset()


@dataclass
class Appearance:
    """Display-only attributes, passed through to the widget unchanged."""

    background_color: str = "#000000"
    text_color: str = "#FFFFFF"
    position: str = "above-cart"
    headline: str = "Hurry! Offer ends soon"
    supporting_text: str = ""


@dataclass(kw_only=True)
class _TimerBase:
    kind: ClassVar[TimerKind]

    id: str
    shop: str
    name: str = ""
    targeting: Targeting | None = None
    appearance: Appearance = field(default_factory=Appearance)
    active: bool = True
    impressions: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(kw_only=True)
class FixedTimer(_TimerBase):
    kind: ClassVar[TimerKind] = TimerKind.FIXED

    start_at: datetime | None = None
    end_at: datetime | None = None


@dataclass(kw_only=True)
class EvergreenTimer(_TimerBase):
    kind: ClassVar[TimerKind] = TimerKind.EVERGREEN

    duration_minutes: int


Timer = FixedTimer | EvergreenTimer


def normalize_shop(shop: str | None) -> str:
    """Canonical tenant key: trimmed, lower-cased shop domain."""
    return (shop or "").strip().lower()


def parse_instant(value: object) -> datetime | None:
    """Coerce *value* to an aware UTC datetime.

    Naive datetimes are taken to be UTC.  ISO-8601 strings are parsed (a
    trailing ``Z`` is accepted).  Anything else, including unparseable
    strings, yields ``None``.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_epoch_ms(value: datetime) -> int:
    """Milliseconds since the epoch for an instant (naive means UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return (value - _EPOCH) // timedelta(milliseconds=1)
