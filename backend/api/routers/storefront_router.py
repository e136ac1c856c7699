"""Public storefront API routes (no authentication).

Called from the storefront widget on every page view, so every handler fails
open: a backend problem yields a clean "no timer"/"recorded" answer, never a
broken page.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from api.core.config import get_settings
from api.core.dependencies import get_storefront_service
from api.services.storefront_service import StorefrontService, parse_collection_ids
from countdown.models.timer import normalize_shop
from countdown.repositories.timer import parse_timer_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/storefront", tags=["storefront"])


class ImpressionBody(BaseModel):
    shop: str | None = None


def _cached_json(status_code: int, content: dict, max_age: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=content,
        headers={"Cache-Control": f"public, max-age={max_age}"},
    )


@router.get("/timer")
async def get_storefront_timer(
    shop: str | None = None,
    product_id: str | None = Query(None, alias="productId"),
    collection_ids: str | None = Query(None, alias="collectionIds"),
    service: StorefrontService = Depends(get_storefront_service),
) -> JSONResponse:
    """Return the single timer to display for a shop/product/collection context."""
    settings = get_settings()
    tenant = normalize_shop(shop)
    if not tenant:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Shop parameter is required"},
        )

    try:
        payload = await service.get_display_timer(
            tenant,
            product_id=(product_id or "").strip() or None,
            collection_ids=parse_collection_ids(collection_ids),
            now=datetime.now(UTC),
        )
    except Exception as e:
        logger.exception(f"Storefront timer lookup failed for {tenant}: {e}")
        return _cached_json(
            500,
            {"success": False, "error": "Unable to fetch timer"},
            settings.storefront_error_cache_seconds,
        )

    if payload is None:
        return _cached_json(
            404,
            {"success": False, "error": "No active timer found"},
            settings.storefront_cache_seconds,
        )
    return _cached_json(200, {"success": True, "data": payload}, settings.storefront_cache_seconds)


@router.post("/timer/{timer_id}/impression")
async def record_impression(
    timer_id: str,
    body: ImpressionBody | None = None,
    service: StorefrontService = Depends(get_storefront_service),
) -> JSONResponse:
    """Count one timer view for merchant analytics."""
    if parse_timer_id(timer_id) is None:
        return JSONResponse(status_code=400, content={"success": False, "error": "Invalid timer ID"})

    shop = body.shop if body else None
    try:
        recorded = await service.record_impression(timer_id, shop)
    except Exception as e:
        # Analytics must never break the storefront
        logger.warning(f"Impression tracking failed for {timer_id}: {type(e).__name__}: {e}")
        recorded = True

    if not recorded:
        return JSONResponse(status_code=404, content={"success": False, "error": "Timer not found"})
    return JSONResponse(content={"success": True, "message": "Impression recorded"})


@router.get("/health")
async def storefront_health() -> JSONResponse:
    return _cached_json(
        200,
        {"success": True, "status": "healthy", "timestamp": datetime.now(UTC).isoformat()},
        30,
    )
