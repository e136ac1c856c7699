"""Timer configuration API routes (merchant admin)."""

from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field

from api.core.dependencies import get_current_shop, get_timer_service
from api.services.timer_service import (
    TimerNotFoundError,
    TimerService,
    TimerValidationError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/timers", tags=["timers"])


# ============================================
# Request / Response Models
# ============================================


class TargetingBody(BaseModel):
    scope: str = "all"
    product_ids: list[str] = Field(default_factory=list)
    collection_ids: list[str] = Field(default_factory=list)


class AppearanceBody(BaseModel):
    background_color: str | None = None
    text_color: str | None = None
    position: str | None = None
    headline: str | None = None
    supporting_text: str | None = None


class TimerCreate(BaseModel):
    name: str
    kind: str
    start_at: str | None = None
    end_at: str | None = None
    duration_minutes: int | None = None
    targeting: TargetingBody | None = None
    appearance: AppearanceBody | None = None


class TimerUpdate(BaseModel):
    name: str | None = None
    kind: str | None = None
    start_at: str | None = None
    end_at: str | None = None
    duration_minutes: int | None = None
    targeting: TargetingBody | None = None
    appearance: AppearanceBody | None = None
    active: bool | None = None


class TimerToggle(BaseModel):
    active: bool | None = None


class PreviewRequest(BaseModel):
    product_id: str | None = None
    collection_ids: list[str] = Field(default_factory=list)


class TargetingResponse(BaseModel):
    scope: str
    product_ids: list[str]
    collection_ids: list[str]


class AppearanceResponse(BaseModel):
    background_color: str
    text_color: str
    position: str
    headline: str
    supporting_text: str


class TimerResponse(BaseModel):
    id: str
    shop: str
    name: str
    kind: str
    start_at: datetime | None = None
    end_at: datetime | None = None
    duration_minutes: int | None = None
    targeting: TargetingResponse
    appearance: AppearanceResponse
    active: bool
    impressions: int
    status: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class TimerListResponse(BaseModel):
    timers: list[TimerResponse]
    pagination: Pagination


class PreviewResponse(BaseModel):
    status: str
    matches: bool
    eligible: bool


def _validation_failed(e: TimerValidationError) -> HTTPException:
    return HTTPException(
        status_code=400,
        detail={"error": "Validation failed", "errors": e.errors},
    )


def _not_found() -> HTTPException:
    return HTTPException(status_code=404, detail="Timer not found")


# ============================================
# Endpoints
# ============================================


@router.get("", response_model=TimerListResponse)
async def list_timers(
    status: str | None = None,
    kind: str | None = None,
    page: int = 1,
    limit: int = 20,
    shop: str = Depends(get_current_shop),
    service: TimerService = Depends(get_timer_service),
) -> TimerListResponse:
    """List the shop's timers, newest first, each with its status label."""
    try:
        result = await service.list_timers(shop, status=status, kind=kind, page=page, limit=limit)
    except Exception as e:
        logger.exception(f"Failed to list timers for {shop}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch timers") from None
    return TimerListResponse(**result)


@router.post("", response_model=TimerResponse, status_code=201)
async def create_timer(
    body: TimerCreate,
    shop: str = Depends(get_current_shop),
    service: TimerService = Depends(get_timer_service),
) -> TimerResponse:
    """Create a new timer (active immediately)."""
    try:
        timer = await service.create_timer(shop, body.model_dump(exclude_none=True))
    except TimerValidationError as e:
        raise _validation_failed(e) from e
    except Exception as e:
        logger.exception(f"Failed to create timer for {shop}: {e}")
        raise HTTPException(status_code=500, detail="Failed to create timer") from None
    return TimerResponse(**timer)


@router.get("/{timer_id}", response_model=TimerResponse)
async def get_timer(
    timer_id: str,
    shop: str = Depends(get_current_shop),
    service: TimerService = Depends(get_timer_service),
) -> TimerResponse:
    """Get a single timer."""
    try:
        timer = await service.get_timer(shop, timer_id)
    except TimerNotFoundError:
        raise _not_found() from None
    return TimerResponse(**timer)


@router.put("/{timer_id}", response_model=TimerResponse)
async def update_timer(
    timer_id: str,
    body: TimerUpdate,
    shop: str = Depends(get_current_shop),
    service: TimerService = Depends(get_timer_service),
) -> TimerResponse:
    """Update a timer's settings.  Omitted fields keep their values."""
    try:
        timer = await service.update_timer(shop, timer_id, body.model_dump(exclude_unset=True))
    except TimerNotFoundError:
        raise _not_found() from None
    except TimerValidationError as e:
        raise _validation_failed(e) from e
    except Exception as e:
        logger.exception(f"Failed to update timer {timer_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update timer") from None
    return TimerResponse(**timer)


@router.patch("/{timer_id}/toggle", response_model=TimerResponse)
async def toggle_timer(
    timer_id: str,
    body: TimerToggle | None = None,
    shop: str = Depends(get_current_shop),
    service: TimerService = Depends(get_timer_service),
) -> TimerResponse:
    """Set or flip a timer's active state."""
    try:
        timer = await service.toggle_timer(shop, timer_id, body.active if body else None)
    except TimerNotFoundError:
        raise _not_found() from None
    return TimerResponse(**timer)


@router.delete("/{timer_id}", status_code=204)
async def delete_timer(
    timer_id: str,
    shop: str = Depends(get_current_shop),
    service: TimerService = Depends(get_timer_service),
) -> Response:
    """Delete a timer."""
    deleted = await service.delete_timer(shop, timer_id)
    if not deleted:
        raise _not_found()
    logger.info(f"Shop {shop} deleted timer {timer_id}")
    return Response(status_code=204)


@router.post("/{timer_id}/preview", response_model=PreviewResponse)
async def preview_timer(
    timer_id: str,
    body: PreviewRequest,
    shop: str = Depends(get_current_shop),
    service: TimerService = Depends(get_timer_service),
) -> PreviewResponse:
    """Check whether a timer would show for a product/collection context right now."""
    try:
        result = await service.preview_match(
            shop, timer_id, product_id=body.product_id, collection_ids=body.collection_ids
        )
    except TimerNotFoundError:
        raise _not_found() from None
    return PreviewResponse(**result)
