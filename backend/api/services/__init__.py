"""Services layer - Business logic

Services are initialized with their dependencies and accessed through
dependency injection.
"""

from .auth_service import AuthService
from .storefront_service import StorefrontService
from .timer_service import TimerNotFoundError, TimerService, TimerValidationError

__all__ = [
    "AuthService",
    "StorefrontService",
    "TimerNotFoundError",
    "TimerService",
    "TimerValidationError",
]
