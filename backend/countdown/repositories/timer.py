"""Repository for the timers table."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from typing import Any

import asyncpg

from countdown.cache import AsyncTTLCache, cached
from countdown.models.timer import (
    Appearance,
    EvergreenTimer,
    FixedTimer,
    Targeting,
    TargetScope,
    Timer,
    TimerKind,
    normalize_shop,
)

logger = logging.getLogger(__name__)

# Storefront candidate lists; short TTL since fixed windows open and close on their own
_active_timers_cache = AsyncTTLCache(maxsize=256, ttl=60)

_COLUMNS = (
    "id, shop, name, kind, start_at, end_at, duration_minutes, "
    "target_scope, target_ids, background_color, text_color, position, "
    "headline, supporting_text, active, impressions, created_at, updated_at"
)


def _active_key(shop: str) -> str:
    return f"active_timers:{normalize_shop(shop)}"


def parse_timer_id(timer_id: str | uuid.UUID) -> uuid.UUID | None:
    """UUID for a path/body id, or ``None`` when malformed."""
    if isinstance(timer_id, uuid.UUID):
        return timer_id
    try:
        return uuid.UUID(str(timer_id))
    except ValueError:
        return None


def timer_from_row(row: Mapping[str, Any]) -> Timer:
    """Build the kind-specific model from a timers row."""
    common = {
        "id": str(row["id"]),
        "shop": row["shop"],
        "name": row["name"],
        "targeting": Targeting(
            scope=TargetScope(row["target_scope"] or TargetScope.ALL),
            ids=frozenset(row["target_ids"] or ()),
        ),
        "appearance": Appearance(
            background_color=row["background_color"],
            text_color=row["text_color"],
            position=row["position"],
            headline=row["headline"],
            supporting_text=row["supporting_text"],
        ),
        "active": row["active"],
        "impressions": row["impressions"],
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
    }
    if row["kind"] == TimerKind.EVERGREEN:
        return EvergreenTimer(duration_minutes=row["duration_minutes"], **common)
    return FixedTimer(start_at=row["start_at"], end_at=row["end_at"], **common)


def _column_values(timer: Timer) -> tuple:
    targeting = timer.targeting or Targeting()
    appearance = timer.appearance
    if isinstance(timer, EvergreenTimer):
        start_at, end_at, duration = None, None, timer.duration_minutes
    else:
        start_at, end_at, duration = timer.start_at, timer.end_at, None
    return (
        timer.name,
        str(timer.kind),
        start_at,
        end_at,
        duration,
        str(targeting.scope),
        sorted(targeting.ids),
        appearance.background_color,
        appearance.text_color,
        appearance.position,
        appearance.headline,
        appearance.supporting_text,
        timer.active,
    )


class TimerRepository:
    """Shop-scoped SQL operations for timers.

    Every query filters on ``shop``; a timer id from another shop behaves
    exactly like an unknown id.
    """

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    # ==================== Admin reads ====================

    async def list_for_shop(
        self,
        shop: str,
        *,
        kind: str | None = None,
        limit: int | None = 20,
        offset: int = 0,
    ) -> list[Timer]:
        """Timers for a shop, newest first.  ``limit=None`` returns all of them."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT {_COLUMNS} FROM timers "
                "WHERE shop = $1 AND ($2::text IS NULL OR kind = $2) "
                "ORDER BY created_at DESC LIMIT $3 OFFSET $4",
                normalize_shop(shop),
                kind,
                limit,
                offset,
            )
            return [timer_from_row(row) for row in rows]

    async def count_for_shop(self, shop: str, *, kind: str | None = None) -> int:
        async with self.pool.acquire() as conn:
            return await conn.fetchval(
                "SELECT COUNT(*) FROM timers WHERE shop = $1 AND ($2::text IS NULL OR kind = $2)",
                normalize_shop(shop),
                kind,
            )

    async def get(self, shop: str, timer_id: str) -> Timer | None:
        tid = parse_timer_id(timer_id)
        if tid is None:
            return None
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_COLUMNS} FROM timers WHERE id = $1 AND shop = $2",
                tid,
                normalize_shop(shop),
            )
            return timer_from_row(row) if row else None

    # ==================== Storefront reads ====================

    @cached(cache=_active_timers_cache, key_func=lambda self, shop: _active_key(shop))
    async def list_active(self, shop: str) -> list[Timer]:
        """Every ``active`` timer of a shop, newest first (selector candidates)."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT {_COLUMNS} FROM timers "
                "WHERE shop = $1 AND active = TRUE ORDER BY created_at DESC",
                normalize_shop(shop),
            )
            return [timer_from_row(row) for row in rows]

    # ==================== Mutations ====================

    async def create(self, timer: Timer) -> Timer:
        """Insert *timer* (its ``id`` is ignored) and return the stored record."""
        shop = normalize_shop(timer.shop)
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO timers (
                    shop, name, kind, start_at, end_at, duration_minutes,
                    target_scope, target_ids, background_color, text_color,
                    position, headline, supporting_text, active
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14)
                RETURNING {_COLUMNS}
                """,
                shop,
                *_column_values(timer),
            )
        self.invalidate_cache(shop)
        return timer_from_row(row)

    async def update(self, timer: Timer) -> Timer | None:
        """Overwrite the mutable columns of an existing timer.  Kind is never changed."""
        tid = parse_timer_id(timer.id)
        if tid is None:
            return None
        shop = normalize_shop(timer.shop)
        values = _column_values(timer)
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE timers SET
                    name             = $3,
                    start_at         = $5,
                    end_at           = $6,
                    duration_minutes = $7,
                    target_scope     = $8,
                    target_ids       = $9,
                    background_color = $10,
                    text_color       = $11,
                    position         = $12,
                    headline         = $13,
                    supporting_text  = $14,
                    active           = $15,
                    updated_at       = NOW()
                WHERE id = $1 AND shop = $2 AND kind = $4
                RETURNING {_COLUMNS}
                """,
                tid,
                shop,
                *values,
            )
        self.invalidate_cache(shop)
        return timer_from_row(row) if row else None

    async def set_active(self, shop: str, timer_id: str, active: bool) -> Timer | None:
        tid = parse_timer_id(timer_id)
        if tid is None:
            return None
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"UPDATE timers SET active = $3, updated_at = NOW() "
                f"WHERE id = $1 AND shop = $2 RETURNING {_COLUMNS}",
                tid,
                normalize_shop(shop),
                active,
            )
        self.invalidate_cache(shop)
        return timer_from_row(row) if row else None

    async def delete(self, shop: str, timer_id: str) -> bool:
        """Hard delete.  Returns True if a row was removed."""
        tid = parse_timer_id(timer_id)
        if tid is None:
            return False
        async with self.pool.acquire() as conn:
            result = await conn.execute(
                "DELETE FROM timers WHERE id = $1 AND shop = $2",
                tid,
                normalize_shop(shop),
            )
        self.invalidate_cache(shop)
        return result == "DELETE 1"

    async def increment_impressions(self, timer_id: str, shop: str | None = None) -> bool:
        """Atomically bump the impression counter.  Returns False for unknown ids."""
        tid = parse_timer_id(timer_id)
        if tid is None:
            return False
        tenant = normalize_shop(shop) or None
        async with self.pool.acquire() as conn:
            result = await conn.execute(
                "UPDATE timers SET impressions = impressions + 1 "
                "WHERE id = $1 AND ($2::text IS NULL OR shop = $2)",
                tid,
                tenant,
            )
        return result == "UPDATE 1"

    def invalidate_cache(self, shop: str) -> None:
        _active_timers_cache.invalidate(_active_key(shop))
