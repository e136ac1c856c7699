"""Timer service: business-logic layer for merchant timer configuration."""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any

from countdown.engine.status import compute_status, is_time_eligible
from countdown.engine.targeting import matches
from countdown.models.timer import (
    HEX_COLOR,
    MAX_DURATION_MINUTES,
    MIN_DURATION_MINUTES,
    POSITIONS,
    Appearance,
    EvergreenTimer,
    FixedTimer,
    Targeting,
    TargetScope,
    Timer,
    TimerKind,
    TimerStatus,
    parse_instant,
)
from countdown.repositories.timer import TimerRepository

logger = logging.getLogger(__name__)

NAME_MAX = 100
HEADLINE_MAX = 50
SUPPORTING_TEXT_MAX = 100
PAGE_LIMIT_MAX = 100


class TimerValidationError(ValueError):
    """Input rejected; ``errors`` lists ``{"field", "message"}`` entries."""

    def __init__(self, errors: list[dict[str, str]]):
        super().__init__("Validation failed")
        self.errors = errors


class TimerNotFoundError(LookupError):
    pass


# ============================================
# Input handling
# ============================================


def _clip(value: Any, limit: int) -> Any:
    if isinstance(value, str):
        return " ".join(value.split())[:limit]
    return value


def sanitize_input(data: dict[str, Any]) -> dict[str, Any]:
    """Trim and clip free-text fields; returns a copy."""
    sanitized = dict(data)
    if "name" in sanitized:
        sanitized["name"] = _clip(sanitized["name"], NAME_MAX)
    appearance = sanitized.get("appearance")
    if isinstance(appearance, dict):
        appearance = dict(appearance)
        if "headline" in appearance:
            appearance["headline"] = _clip(appearance["headline"], HEADLINE_MAX)
        if "supporting_text" in appearance:
            appearance["supporting_text"] = _clip(appearance["supporting_text"], SUPPORTING_TEXT_MAX)
        sanitized["appearance"] = appearance
    return sanitized


def validate_timer_input(data: dict[str, Any], is_update: bool = False) -> list[dict[str, str]]:
    """Collect every problem with a timer payload instead of stopping at the first."""
    errors: list[dict[str, str]] = []

    def err(field: str, message: str) -> None:
        errors.append({"field": field, "message": message})

    name = data.get("name")
    kind = data.get("kind")

    if not is_update or "name" in data:
        if not isinstance(name, str) or not name.strip():
            err("name", "Timer name is required")
        elif len(name) > NAME_MAX:
            err("name", f"Name cannot exceed {NAME_MAX} characters")

    if not is_update or "kind" in data:
        if kind not in (TimerKind.FIXED, TimerKind.EVERGREEN):
            err("kind", 'Timer kind must be "fixed" or "evergreen"')

    if kind == TimerKind.FIXED:
        start_raw, end_raw = data.get("start_at"), data.get("end_at")
        if start_raw is None:
            err("start_at", "Start date is required for fixed timers")
        if end_raw is None:
            err("end_at", "End date is required for fixed timers")
        start, end = parse_instant(start_raw), parse_instant(end_raw)
        if start_raw is not None and start is None:
            err("start_at", "Invalid start date format")
        if end_raw is not None and end is None:
            err("end_at", "Invalid end date format")
        if start is not None and end is not None and end <= start:
            err("end_at", "End date must be after start date")

    if kind == TimerKind.EVERGREEN:
        duration = data.get("duration_minutes")
        if not isinstance(duration, int) or isinstance(duration, bool) or duration < MIN_DURATION_MINUTES:
            err("duration_minutes", "Duration must be at least 1 minute")
        elif duration > MAX_DURATION_MINUTES:
            err("duration_minutes", "Duration cannot exceed 7 days")

    appearance = data.get("appearance") or {}
    for color_field in ("background_color", "text_color"):
        color = appearance.get(color_field)
        if color is not None and not HEX_COLOR.match(str(color)):
            err(f"appearance.{color_field}", "Invalid hex color format")
    position = appearance.get("position")
    if position is not None and position not in POSITIONS:
        err("appearance.position", f"Position must be one of: {', '.join(POSITIONS)}")
    headline = appearance.get("headline")
    if headline and len(headline) > HEADLINE_MAX:
        err("appearance.headline", f"Headline cannot exceed {HEADLINE_MAX} characters")
    supporting = appearance.get("supporting_text")
    if supporting and len(supporting) > SUPPORTING_TEXT_MAX:
        err(
            "appearance.supporting_text",
            f"Supporting text cannot exceed {SUPPORTING_TEXT_MAX} characters",
        )

    targeting = data.get("targeting")
    if targeting:
        scope = targeting.get("scope", TargetScope.ALL)
        if scope not in (TargetScope.ALL, TargetScope.PRODUCTS, TargetScope.COLLECTIONS):
            err("targeting.scope", "Invalid targeting scope")
        if scope == TargetScope.PRODUCTS and not _ids(targeting.get("product_ids")):
            err("targeting.product_ids", "At least one product must be selected")
        if scope == TargetScope.COLLECTIONS and not _ids(targeting.get("collection_ids")):
            err("targeting.collection_ids", "At least one collection must be selected")

    return errors


def _ids(values: Any) -> list[str]:
    if not values:
        return []
    return [v.strip() for v in values if isinstance(v, str) and v.strip()]


def _targeting_from_input(targeting: dict[str, Any] | None) -> Targeting:
    if not targeting:
        return Targeting()
    scope = TargetScope(targeting.get("scope") or TargetScope.ALL)
    if scope == TargetScope.PRODUCTS:
        return Targeting(scope, frozenset(_ids(targeting.get("product_ids"))))
    if scope == TargetScope.COLLECTIONS:
        return Targeting(scope, frozenset(_ids(targeting.get("collection_ids"))))
    return Targeting()


def _targeting_to_dict(targeting: Targeting | None) -> dict[str, Any]:
    targeting = targeting or Targeting()
    ids = sorted(targeting.ids)
    return {
        "scope": str(targeting.scope),
        "product_ids": ids if targeting.scope == TargetScope.PRODUCTS else [],
        "collection_ids": ids if targeting.scope == TargetScope.COLLECTIONS else [],
    }


def _appearance_from_input(appearance: dict[str, Any] | None, base: Appearance | None = None) -> Appearance:
    base = base or Appearance()
    values = {k: v for k, v in (appearance or {}).items() if v is not None}
    return replace(base, **{k: v for k, v in values.items() if hasattr(base, k)})


def timer_to_input(timer: Timer) -> dict[str, Any]:
    """Inverse of ``build_timer`` for merging partial updates."""
    data: dict[str, Any] = {
        "name": timer.name,
        "kind": timer.kind,
        "targeting": _targeting_to_dict(timer.targeting),
        "active": timer.active,
    }
    if isinstance(timer, FixedTimer):
        data["start_at"] = timer.start_at
        data["end_at"] = timer.end_at
    else:
        data["duration_minutes"] = timer.duration_minutes
    return data


def build_timer(
    shop: str,
    data: dict[str, Any],
    *,
    timer_id: str = "",
    base: Timer | None = None,
) -> Timer:
    """Model for a validated payload; *base* supplies identity and untouched appearance."""
    common: dict[str, Any] = {
        "id": timer_id,
        "shop": shop,
        "name": data["name"].strip(),
        "targeting": _targeting_from_input(data.get("targeting")),
        "appearance": _appearance_from_input(
            data.get("appearance"), base.appearance if base else None
        ),
        "active": data.get("active") is not False,
    }
    if base is not None:
        common.update(
            impressions=base.impressions,
            created_at=base.created_at,
            updated_at=base.updated_at,
        )
    if data["kind"] == TimerKind.EVERGREEN:
        return EvergreenTimer(duration_minutes=data["duration_minutes"], **common)
    return FixedTimer(
        start_at=parse_instant(data["start_at"]),
        end_at=parse_instant(data["end_at"]),
        **common,
    )


def timer_to_dict(timer: Timer, now: datetime | None = None) -> dict[str, Any]:
    """Admin representation of a timer, with its computed status label."""
    return {
        "id": timer.id,
        "shop": timer.shop,
        "name": timer.name,
        "kind": str(timer.kind),
        "start_at": timer.start_at if isinstance(timer, FixedTimer) else None,
        "end_at": timer.end_at if isinstance(timer, FixedTimer) else None,
        "duration_minutes": timer.duration_minutes if isinstance(timer, EvergreenTimer) else None,
        "targeting": _targeting_to_dict(timer.targeting),
        "appearance": {
            "background_color": timer.appearance.background_color,
            "text_color": timer.appearance.text_color,
            "position": timer.appearance.position,
            "headline": timer.appearance.headline,
            "supporting_text": timer.appearance.supporting_text,
        },
        "active": timer.active,
        "impressions": timer.impressions,
        "status": str(compute_status(timer, now or datetime.now(UTC))),
        "created_at": timer.created_at,
        "updated_at": timer.updated_at,
    }


# ============================================
# Service
# ============================================


class TimerService:
    def __init__(self, pool=None, *, repo: TimerRepository | None = None) -> None:
        if repo is None and pool is None:
            raise ValueError("TimerService needs a pool or a repository")
        self.pool = pool
        self.repo = repo or TimerRepository(pool)

    async def list_timers(
        self,
        shop: str,
        *,
        status: str | None = None,
        kind: str | None = None,
        page: int = 1,
        limit: int = 20,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """One page of timers, newest first, each labelled with its status.

        Status is derived at read time, so a status filter is applied in
        memory over the shop's full list before paginating.
        """
        now = now or datetime.now(UTC)
        page = max(page, 1)
        limit = min(max(limit, 1), PAGE_LIMIT_MAX)
        offset = (page - 1) * limit
        if kind not in (None, TimerKind.FIXED, TimerKind.EVERGREEN):
            kind = None

        if status in {s.value for s in TimerStatus}:
            timers = await self.repo.list_for_shop(shop, kind=kind, limit=None)
            rows = [timer_to_dict(t, now) for t in timers]
            rows = [r for r in rows if r["status"] == status]
            total = len(rows)
            rows = rows[offset : offset + limit]
        else:
            timers = await self.repo.list_for_shop(shop, kind=kind, limit=limit, offset=offset)
            total = await self.repo.count_for_shop(shop, kind=kind)
            rows = [timer_to_dict(t, now) for t in timers]

        return {
            "timers": rows,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": math.ceil(total / limit),
            },
        }

    async def get_timer(self, shop: str, timer_id: str) -> dict[str, Any]:
        timer = await self.repo.get(shop, timer_id)
        if timer is None:
            raise TimerNotFoundError(timer_id)
        return timer_to_dict(timer)

    async def create_timer(self, shop: str, data: dict[str, Any]) -> dict[str, Any]:
        data = sanitize_input(data)
        errors = validate_timer_input(data)
        if errors:
            raise TimerValidationError(errors)

        timer = await self.repo.create(build_timer(shop, data))
        logger.info(f"Shop {shop} created {timer.kind} timer {timer.id}")
        return timer_to_dict(timer)

    async def update_timer(self, shop: str, timer_id: str, data: dict[str, Any]) -> dict[str, Any]:
        existing = await self.repo.get(shop, timer_id)
        if existing is None:
            raise TimerNotFoundError(timer_id)

        data = sanitize_input(data)
        if "kind" in data and data["kind"] != existing.kind:
            raise TimerValidationError(
                [{"field": "kind", "message": "Timer kind cannot be changed"}]
            )

        merged = {**timer_to_input(existing), **{k: v for k, v in data.items() if v is not None}}
        errors = validate_timer_input(merged, is_update=True)
        if errors:
            raise TimerValidationError(errors)

        updated = await self.repo.update(
            build_timer(shop, merged, timer_id=existing.id, base=existing)
        )
        if updated is None:
            raise TimerNotFoundError(timer_id)
        return timer_to_dict(updated)

    async def toggle_timer(self, shop: str, timer_id: str, active: bool | None = None) -> dict[str, Any]:
        """Set ``active`` explicitly, or flip it when *active* is None."""
        if active is None:
            existing = await self.repo.get(shop, timer_id)
            if existing is None:
                raise TimerNotFoundError(timer_id)
            active = not existing.active

        timer = await self.repo.set_active(shop, timer_id, active)
        if timer is None:
            raise TimerNotFoundError(timer_id)
        logger.info(f"Shop {shop} {'activated' if active else 'deactivated'} timer {timer_id}")
        return timer_to_dict(timer)

    async def delete_timer(self, shop: str, timer_id: str) -> bool:
        return await self.repo.delete(shop, timer_id)

    async def preview_match(
        self,
        shop: str,
        timer_id: str,
        product_id: str | None = None,
        collection_ids: list[str] | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Would this timer show for the given product/collection context right now?"""
        timer = await self.repo.get(shop, timer_id)
        if timer is None:
            raise TimerNotFoundError(timer_id)

        now = now or datetime.now(UTC)
        targeted = matches(timer, product_id, collection_ids or [])
        eligible = timer.active and is_time_eligible(timer, now) and targeted
        return {
            "status": str(compute_status(timer, now)),
            "matches": targeted,
            "eligible": eligible,
        }
