"""Version 1 API endpoints."""

from .endpoints import (
    account_router,
    billing_router,
    system_router,
    verify_router,
)

__all__ = [
    "account_router",
    "billing_router",
    "system_router",
    "verify_router",
]
