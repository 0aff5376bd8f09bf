"""Trust report schemas.

Reports are stored and returned in camelCase so cached payloads can be served
back verbatim.
"""
from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

TrustVerdict = Literal["TRUSTED", "CAUTION", "DANGER"]
FactorStatus = Literal["positive", "neutral", "negative"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class UserInfo(_CamelModel):
    """Public account information shown alongside the score."""

    id: str
    username: str
    name: str
    profile_picture: str | None = None
    followers_count: int | None = None
    following_count: int | None = None
    created_at: str
    blue_verified: bool = False
    description: str | None = None


class ScoreBreakdown(_CamelModel):
    """Contribution of one scoring factor to the overall score."""

    factor: str
    score: float
    weight: float
    contribution: int
    status: FactorStatus
    explanation: str


class TrustReport(_CamelModel):
    """Complete trust assessment for one account."""

    user_info: UserInfo
    score: int = Field(..., ge=0, le=100, description="0-100, where 100 is most trustworthy")
    verdict: TrustVerdict
    flags: list[str] = Field(default_factory=list)
    breakdown: list[ScoreBreakdown] = Field(default_factory=list)
    positive_indicators: list[str] | None = None
    confidence: int = Field(..., ge=0, le=100)

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON-ready camelCase payload stored in the cache."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
