"""Billing schemas for credit pack checkout."""
from pydantic import BaseModel, Field


class CheckoutRequest(BaseModel):
    """Request to purchase one of the configured credit packs."""

    credits: int = Field(..., gt=0, description="Credit amount of the pack to purchase")


class CheckoutResponse(BaseModel):
    """Hosted checkout page the client should redirect to."""

    url: str
