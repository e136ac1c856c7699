"""API Routers package

Routers are organized by audience: merchant admin and public storefront.
"""

from . import storefront_router, timers_router

__all__ = [
    "storefront_router",
    "timers_router",
]
