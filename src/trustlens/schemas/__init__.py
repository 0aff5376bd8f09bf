# src/trustlens/schemas/__init__.py
"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .account import AccountResponse
from .billing import CheckoutRequest, CheckoutResponse
from .trust import ScoreBreakdown, TrustReport, UserInfo
from .verify import QuotaResponse, VerifyRequest

__all__ = [
    "AccountResponse",
    "CheckoutRequest", "CheckoutResponse",
    "ScoreBreakdown", "TrustReport", "UserInfo",
    "QuotaResponse", "VerifyRequest",
]
