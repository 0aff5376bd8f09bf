"""Verification request/response schemas."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class VerifyRequest(BaseModel):
    """Lookup request body."""

    username: str = Field(..., max_length=64, description="X handle, with or without a leading @")


class QuotaResponse(BaseModel):
    """Free quota status for the calling address."""

    remaining_free_lookups: int = Field(..., alias="remainingFreeLookups")
    next_reset_time: int | None = Field(
        None,
        alias="nextResetTime",
        description="Epoch milliseconds at which the exhausted free quota renews",
    )

    model_config = ConfigDict(populate_by_name=True)
