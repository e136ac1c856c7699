"""Timer factories and an in-memory timer repository for tests."""

import uuid
from dataclasses import replace
from datetime import UTC, datetime, timedelta

from countdown.models.timer import (
    EvergreenTimer,
    FixedTimer,
    Targeting,
    TargetScope,
    normalize_shop,
)
from countdown.repositories.timer import parse_timer_id


SHOP = "shop-a.myshopify.com"
OTHER_SHOP = "shop-b.myshopify.com"
NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


def make_fixed(
    *,
    shop: str = SHOP,
    start: datetime | None = None,
    end: datetime | None = None,
    created_at: datetime | None = None,
    targeting: Targeting | None = None,
    active: bool = True,
    **kwargs,
) -> FixedTimer:
    return FixedTimer(
        id=kwargs.pop("id", str(uuid.uuid4())),
        shop=shop,
        name=kwargs.pop("name", "Flash sale"),
        start_at=start if start is not None else NOW - timedelta(hours=1),
        end_at=end if end is not None else NOW + timedelta(hours=1),
        created_at=created_at or NOW - timedelta(days=1),
        targeting=targeting,
        active=active,
        **kwargs,
    )


def make_evergreen(
    *,
    shop: str = SHOP,
    duration_minutes: int = 30,
    created_at: datetime | None = None,
    targeting: Targeting | None = None,
    active: bool = True,
    **kwargs,
) -> EvergreenTimer:
    return EvergreenTimer(
        id=kwargs.pop("id", str(uuid.uuid4())),
        shop=shop,
        name=kwargs.pop("name", "Visitor offer"),
        duration_minutes=duration_minutes,
        created_at=created_at or NOW - timedelta(days=1),
        targeting=targeting,
        active=active,
        **kwargs,
    )


def products(*ids: str) -> Targeting:
    return Targeting(TargetScope.PRODUCTS, frozenset(ids))


def collections(*ids: str) -> Targeting:
    return Targeting(TargetScope.COLLECTIONS, frozenset(ids))


class FakeTimerRepository:
    """Dict-backed stand-in for TimerRepository with the same method surface."""

    def __init__(self, timers=()):
        self.timers = {t.id: t for t in timers}
        self.impressions: list[str] = []
        self.fail_reads = False

    def _for_shop(self, shop, kind=None):
        tenant = normalize_shop(shop)
        rows = [
            t
            for t in self.timers.values()
            if t.shop == tenant and (kind is None or t.kind == kind)
        ]
        rows.sort(key=lambda t: t.created_at, reverse=True)
        return rows

    async def list_for_shop(self, shop, *, kind=None, limit=20, offset=0):
        rows = self._for_shop(shop, kind)
        return rows[offset:] if limit is None else rows[offset : offset + limit]

    async def count_for_shop(self, shop, *, kind=None):
        return len(self._for_shop(shop, kind))

    async def get(self, shop, timer_id):
        timer = self.timers.get(str(timer_id))
        if timer is None or timer.shop != normalize_shop(shop):
            return None
        return timer

    async def list_active(self, shop):
        if self.fail_reads:
            raise ConnectionError("database unavailable")
        return [t for t in self._for_shop(shop) if t.active]

    async def create(self, timer):
        stored = replace(
            timer,
            id=str(uuid.uuid4()),
            shop=normalize_shop(timer.shop),
            created_at=datetime.now(UTC),
            updated_at=datetime.now(UTC),
        )
        self.timers[stored.id] = stored
        return stored

    async def update(self, timer):
        existing = await self.get(timer.shop, timer.id)
        if existing is None or existing.kind != timer.kind:
            return None
        stored = replace(timer, updated_at=datetime.now(UTC))
        self.timers[stored.id] = stored
        return stored

    async def set_active(self, shop, timer_id, active):
        existing = await self.get(shop, timer_id)
        if existing is None:
            return None
        stored = replace(existing, active=active)
        self.timers[stored.id] = stored
        return stored

    async def delete(self, shop, timer_id):
        if await self.get(shop, timer_id) is None:
            return False
        del self.timers[str(timer_id)]
        return True

    async def increment_impressions(self, timer_id, shop=None):
        if parse_timer_id(timer_id) is None:
            return False
        timer = self.timers.get(str(timer_id))
        if timer is None or (shop and timer.shop != normalize_shop(shop)):
            return False
        self.timers[timer.id] = replace(timer, impressions=timer.impressions + 1)
        self.impressions.append(timer.id)
        return True
