"""Dependency injection utilities for FastAPI"""

import logging

import asyncpg
from fastapi import Depends, Header, HTTPException

from api.core.config import get_settings
from api.services import AuthService, StorefrontService, TimerService
from countdown.database import get_database_manager
from countdown.repositories.timer import TimerRepository

logger = logging.getLogger(__name__)


# ============================================
# Service Dependencies
# ============================================


def get_auth_service() -> AuthService:
    """Get AuthService instance (dependency injection)"""
    settings = get_settings()
    if not settings.shopify_api_secret:
        logger.error("SHOPIFY_API_SECRET is not configured")
        raise HTTPException(status_code=500, detail="Authentication is not configured")
    return AuthService(
        api_secret=settings.shopify_api_secret,
        api_key=settings.shopify_api_key,
        leeway=settings.session_token_leeway,
    )


def get_db_pool() -> asyncpg.Pool:
    try:
        db_manager = get_database_manager()
    except RuntimeError:
        raise HTTPException(status_code=503, detail="Database not ready") from None
    if not db_manager.is_connected:
        raise HTTPException(status_code=503, detail="Database not ready")
    return db_manager.pool


def get_timer_repository(pool: asyncpg.Pool = Depends(get_db_pool)) -> TimerRepository:
    return TimerRepository(pool)


def get_timer_service(repo: TimerRepository = Depends(get_timer_repository)) -> TimerService:
    return TimerService(repo=repo)


def get_storefront_service(
    repo: TimerRepository = Depends(get_timer_repository),
) -> StorefrontService:
    return StorefrontService(repo=repo)


# ============================================
# Authentication Dependencies
# ============================================


def _bearer_token(authorization: str | None) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        return ""
    return authorization.removeprefix("Bearer ").strip()


async def get_current_shop(authorization: str | None = Header(None)) -> str:
    """Return the shop the admin session token was issued for

    In development a request without a token is attributed to
    ``settings.test_shop`` so the admin can be exercised locally.
    """
    settings = get_settings()
    token = _bearer_token(authorization)

    if not token:
        if settings.is_development:
            logger.debug(f"[DEV MODE] No session token, using shop {settings.test_shop}")
            return settings.test_shop
        logger.warning("Missing or malformed Authorization header")
        raise HTTPException(status_code=401, detail="Missing or invalid authorization header")

    shop = get_auth_service().verify_session_token(token)
    if not shop:
        raise HTTPException(status_code=401, detail="Invalid session token")
    return shop
