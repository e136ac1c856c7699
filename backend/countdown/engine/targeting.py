"""Targeting matcher: does a timer apply to a product/collection context."""

from __future__ import annotations

from collections.abc import Iterable

from countdown.models.timer import TargetScope, Timer


def clean_ids(ids: Iterable[str] | None) -> set[str]:
    """Trimmed, non-blank ids from a context list."""
    if not ids:
        return set()
    return {i.strip() for i in ids if isinstance(i, str) and i.strip()}


def matches(
    timer: Timer,
    product_id: str | None = None,
    collection_ids: Iterable[str] | None = (),
) -> bool:
    """Exact-id targeting match.  A record without targeting applies everywhere."""
    targeting = timer.targeting
    if targeting is None or targeting.scope == TargetScope.ALL:
        return True

    if targeting.scope == TargetScope.PRODUCTS:
        product = (product_id or "").strip()
        return bool(product) and product in targeting.ids

    if targeting.scope == TargetScope.COLLECTIONS:
        return not clean_ids(collection_ids).isdisjoint(targeting.ids)

    return False
