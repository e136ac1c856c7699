"""HTTP client for the public storefront API"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class StorefrontClient:
    """Single-attempt, fail-open client used by storefront widgets.

    Nothing here raises: a failed fetch means "no timer", a failed impression
    is dropped.
    """

    TIMER_PATH = "/api/storefront/timer"

    def __init__(
        self,
        api_url: str,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 5.0,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        # Shared across the widgets on a page
        self._http = httpx.AsyncClient(base_url=self.api_url, timeout=timeout, transport=transport)

    async def close(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> StorefrontClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def fetch_timer(
        self,
        shop: str,
        product_id: str | None = None,
        collection_ids: Iterable[str] = (),
    ) -> dict[str, Any] | None:
        """Fetch the timer payload for a page context, or None."""
        params = {"shop": shop}
        if product_id:
            params["productId"] = product_id
        collections = ",".join(c for c in collection_ids if c)
        if collections:
            params["collectionIds"] = collections

        try:
            response = await self._http.get(self.TIMER_PATH, params=params)
            if response.status_code == 404:
                return None
            if response.status_code != 200:
                logger.warning(f"Timer fetch for {shop} failed: {response.status_code}")
                return None

            body = response.json()
        except httpx.TimeoutException:
            logger.warning(f"Timeout fetching timer for {shop}")
            return None
        except httpx.HTTPError as e:
            logger.warning(f"Timer fetch for {shop} failed: {type(e).__name__}: {e}")
            return None
        except ValueError as e:
            logger.warning(f"Malformed timer response for {shop}: {e}")
            return None

        if not isinstance(body, dict) or not body.get("success"):
            return None
        data = body.get("data")
        if not isinstance(data, dict) or not data.get("id"):
            logger.warning(f"Timer response for {shop} is missing data")
            return None
        return data

    async def record_impression(self, timer_id: str, shop: str | None = None) -> bool:
        """Report one view.  Returns whether the API accepted it."""
        try:
            response = await self._http.post(
                f"{self.TIMER_PATH}/{timer_id}/impression",
                json={"shop": shop} if shop else {},
            )
        except httpx.HTTPError as e:
            logger.debug(f"Impression for {timer_id} dropped: {type(e).__name__}: {e}")
            return False
        return response.is_success
