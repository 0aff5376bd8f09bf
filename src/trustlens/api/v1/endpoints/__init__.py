"""API endpoint modules for version 1."""

from .account import router as account_router
from .billing import router as billing_router
from .system import router as system_router
from .verify import router as verify_router

__all__ = [
    "account_router",
    "billing_router",
    "system_router",
    "verify_router",
]
