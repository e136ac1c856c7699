"""Pick the single timer a storefront context should display."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import UTC, datetime

from countdown.engine.status import is_time_eligible
from countdown.engine.targeting import matches
from countdown.models.timer import Timer, normalize_shop

logger = logging.getLogger(__name__)

_OLDEST = datetime.min.replace(tzinfo=UTC)


def _created_key(timer: Timer) -> datetime:
    created = timer.created_at
    if created is None:
        return _OLDEST
    if created.tzinfo is None:
        return created.replace(tzinfo=UTC)
    return created


def eligible_timers(
    shop: str,
    now: datetime,
    candidates: Iterable[Timer],
    product_id: str | None = None,
    collection_ids: Iterable[str] | None = (),
) -> list[Timer]:
    """All candidates that could display for the context, newest first.

    The sort is stable, so timers with equal ``created_at`` keep their
    candidate order.
    """
    tenant = normalize_shop(shop)
    collections = list(collection_ids or ())
    eligible = [
        t
        for t in candidates
        if normalize_shop(t.shop) == tenant
        and t.active
        and is_time_eligible(t, now)
        and matches(t, product_id, collections)
    ]
    eligible.sort(key=_created_key, reverse=True)
    return eligible


def select_timer(
    shop: str,
    now: datetime,
    candidates: Iterable[Timer],
    product_id: str | None = None,
    collection_ids: Iterable[str] | None = (),
) -> Timer | None:
    """Return the newest eligible timer for the context, or ``None``."""
    if not normalize_shop(shop):
        return None
    eligible = eligible_timers(shop, now, candidates, product_id, collection_ids)
    if len(eligible) > 1:
        logger.debug(
            f"{len(eligible)} timers eligible for {shop}, newest wins: {eligible[0].id}"
        )
    return eligible[0] if eligible else None
