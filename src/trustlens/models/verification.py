# src/trustlens/models/verification.py
"""Cached verification results keyed by normalized username."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, CheckConstraint, DateTime, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from trustlens.db.session import Base
from trustlens.db.time import utcnow

VERIFICATION_STATUS_PENDING = "pending"
VERIFICATION_STATUS_COMPLETED = "completed"
VERIFICATION_STATUS_ERROR = "error"

JsonType = JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql")


class Verification(Base):
    """One row per normalized username.

    ``status`` drives the claim protocol: a ``pending`` row means some request
    currently owns the upstream fetch. ``trust_report`` survives a new claim so
    the previous answer can be served while the refresh is in flight.
    """

    __tablename__ = "verifications"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'completed', 'error')",
            name="ck_verifications_status",
        ),
    )

    username: Mapped[str] = mapped_column(Text, primary_key=True)
    status: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default=VERIFICATION_STATUS_PENDING,
        index=True,
    )
    trust_report: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    raw_data: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    # Last successful upstream fetch; null until the first completion.
    fetched_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        index=True,
    )
    # When the current pending claim was taken; used to expire crashed fetches.
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )
