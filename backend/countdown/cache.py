"""Per-shop cache of storefront candidates with a last-known-good fallback.

The public timer endpoint is hit on every product page view, so the active
timers of a shop are kept in a cachetools.TTLCache.  A second, TTL-free
LRUCache remembers the last successful load of each shop and is only read
when the database cannot be reached.  Admin mutations discard both, so a
timer that was just switched off is never resurrected from the fallback.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Callable
from typing import Any

from cachetools import LRUCache, TTLCache  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

# A shop with no active timers caches [], so absence needs its own marker
MISSING = object()


class AsyncTTLCache:
    """Fresh entries expire after *ttl* seconds; fallback entries never expire."""

    def __init__(self, maxsize: int = 128, ttl: float = 60.0):
        self._fresh: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl)
        self._fallback: LRUCache = LRUCache(maxsize=maxsize)
        self._locks: dict[str, asyncio.Lock] = {}

    def get(self, key: str) -> Any:
        return self._fresh.get(key, MISSING)

    def get_stale(self, key: str) -> Any:
        return self._fallback.get(key, MISSING)

    def set(self, key: str, value: Any) -> None:
        self._fresh[key] = value
        self._fallback[key] = value

    def invalidate(self, key: str) -> None:
        """Forget *key* entirely, fallback included."""
        self._fresh.pop(key, None)
        self._fallback.pop(key, None)

    def clear(self) -> None:
        self._fresh.clear()
        self._fallback.clear()
        self._locks.clear()

    def lock(self, key: str) -> asyncio.Lock:
        """One loader per key at a time."""
        if key not in self._locks and len(self._locks) >= 2 * self._fallback.maxsize:
            for idle in [k for k, lk in self._locks.items() if not lk.locked()]:
                del self._locks[idle]
        return self._locks.setdefault(key, asyncio.Lock())


def cached(
    cache: AsyncTTLCache,
    key_func: Callable[..., str],
    *,
    retry: int = 2,
    retry_delay: float = 0.5,
):
    """Serve an async loader through *cache*.

    A miss runs the loader up to *retry* times.  When every attempt fails the
    fallback value is returned if the key has one; otherwise the last error
    is raised.
    """

    def decorator(func):
        async def load(key: str, args: tuple, kwargs: dict) -> Any:
            error: Exception | None = None
            for attempt in range(1, retry + 1):
                try:
                    value = await func(*args, **kwargs)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    error = e
                    if attempt < retry:
                        logger.warning(f"Loading {key} failed ({type(e).__name__}), attempt {attempt}/{retry}")
                        await asyncio.sleep(retry_delay * attempt)
                    continue
                cache.set(key, value)
                return value

            fallback = cache.get_stale(key)
            if fallback is MISSING:
                raise error  # type: ignore[misc]
            logger.warning(f"Serving last known value for {key} ({type(error).__name__})")
            return fallback

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            key = key_func(*args, **kwargs)
            value = cache.get(key)
            if value is not MISSING:
                return value
            async with cache.lock(key):
                value = cache.get(key)
                if value is MISSING:
                    value = await load(key, args, kwargs)
                return value

        wrapper.cache = cache  # type: ignore[attr-defined]
        return wrapper

    return decorator
