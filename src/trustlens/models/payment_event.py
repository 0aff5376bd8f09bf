# src/trustlens/models/payment_event.py
"""Models supporting idempotent payment webhooks."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from trustlens.db.session import Base
from trustlens.db.time import utcnow


class PaymentEvent(Base):
    """Record indicating that a payment provider event has already been applied."""

    __tablename__ = "payment_events"

    # Existence of the event id means "already processed".
    event_id: Mapped[str] = mapped_column(Text, primary_key=True)
    event_type: Mapped[str] = mapped_column(Text, nullable=False)
    account_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    credits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
