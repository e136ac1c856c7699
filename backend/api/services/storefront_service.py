"""Storefront service: public read path and impression tracking."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from countdown.engine.selector import select_timer
from countdown.engine.targeting import clean_ids
from countdown.models.timer import FixedTimer, Timer, normalize_shop
from countdown.repositories.timer import TimerRepository, parse_timer_id

logger = logging.getLogger(__name__)


def parse_collection_ids(raw: str | None) -> list[str]:
    """Split a comma-separated ``collectionIds`` query value."""
    if not raw:
        return []
    return sorted(clean_ids(raw.split(",")))


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def to_storefront_payload(timer: Timer) -> dict[str, Any]:
    """Minimal widget payload: never targeting lists, counters or other shops' data."""
    appearance = timer.appearance
    payload: dict[str, Any] = {
        "id": timer.id,
        "kind": str(timer.kind),
        "appearance": {
            "background_color": appearance.background_color or "#000000",
            "text_color": appearance.text_color or "#FFFFFF",
            "position": appearance.position or "above-cart",
            "headline": appearance.headline or "",
            "supporting_text": appearance.supporting_text or "",
        },
    }
    if isinstance(timer, FixedTimer):
        payload["start_at"] = _iso(timer.start_at)
        payload["end_at"] = _iso(timer.end_at)
    else:
        payload["duration_minutes"] = timer.duration_minutes
    return payload


class StorefrontService:
    def __init__(self, pool=None, *, repo: TimerRepository | None = None) -> None:
        if repo is None and pool is None:
            raise ValueError("StorefrontService needs a pool or a repository")
        self.repo = repo or TimerRepository(pool)

    async def get_display_timer(
        self,
        shop: str,
        product_id: str | None = None,
        collection_ids: list[str] | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any] | None:
        """Payload of the timer this page should show, or None when nothing applies."""
        tenant = normalize_shop(shop)
        if not tenant:
            return None
        candidates = await self.repo.list_active(tenant)
        timer = select_timer(
            tenant,
            now or datetime.now(UTC),
            candidates,
            product_id=product_id,
            collection_ids=collection_ids or [],
        )
        return to_storefront_payload(timer) if timer else None

    async def record_impression(self, timer_id: str, shop: str | None = None) -> bool:
        """Count one view.  Returns False when the id is unknown for the shop."""
        if parse_timer_id(timer_id) is None:
            return False
        return await self.repo.increment_impressions(timer_id, shop)
