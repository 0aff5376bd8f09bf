"""Paid credit balance access with optimistic concurrency."""

from __future__ import annotations

import logging
from enum import Enum

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from trustlens.db.time import utcnow
from trustlens.models import Profile
from trustlens.services.errors import ProfileNotFoundError

logger = logging.getLogger(__name__)


class InvalidAmountError(ValueError):
    """Raised when a credit grant is not a positive integer."""


class DecrementResult(str, Enum):
    """Outcome of a single conditional decrement."""

    SUCCESS = "success"
    ALREADY_ZERO = "already_zero"
    CONFLICT = "conflict"


class BalanceService:
    """Reads and mutates ``Profile.credits``.

    Decrements go through ``compare_and_swap`` so two concurrent charges
    against the same balance cannot both succeed from one read. Nothing here
    retries; a lost race is reported to the caller.
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def get_balance(self, account_id: str) -> int:
        """Return the stored balance.

        Raises:
            ProfileNotFoundError: If the account has no profile row.
        """
        credits = self._db.execute(
            select(Profile.credits).where(Profile.id == account_id)
        ).scalar_one_or_none()
        if credits is None:
            raise ProfileNotFoundError()
        return int(credits)

    def compare_and_swap(self, account_id: str, expected: int, new: int) -> bool:
        """Set the balance to ``new`` only if it still equals ``expected``."""
        if new < 0:
            return False
        result = self._db.execute(
            update(Profile)
            .where(Profile.id == account_id, Profile.credits == expected)
            .values(credits=new, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        self._db.commit()
        return result.rowcount == 1

    def decrement(self, account_id: str) -> DecrementResult:
        """Charge one credit.

        Raises:
            ProfileNotFoundError: If the account has no profile row.
        """
        current = self.get_balance(account_id)
        if current <= 0:
            return DecrementResult.ALREADY_ZERO
        if self.compare_and_swap(account_id, current, current - 1):
            return DecrementResult.SUCCESS
        logger.warning("Credit decrement lost a race for account %s (read %d)", account_id, current)
        return DecrementResult.CONFLICT

    def increment(self, account_id: str, amount: int) -> int:
        """Grant credits after a confirmed payment and return the new balance.

        Raises:
            InvalidAmountError: If ``amount`` is not a positive integer.
            ProfileNotFoundError: If the account has no profile row.
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAmountError(f"Credit amount must be a positive integer, got {amount!r}")
        result = self._db.execute(
            update(Profile)
            .where(Profile.id == account_id)
            .values(credits=Profile.credits + amount, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self._db.rollback()
            raise ProfileNotFoundError()
        self._db.commit()
        return self.get_balance(account_id)

    def ensure_profile(self, account_id: str, initial_credits: int = 0) -> Profile:
        """Return the account's profile, creating an empty one if missing."""
        profile = self._db.get(Profile, account_id)
        if profile is None:
            profile = Profile(id=account_id, credits=max(0, int(initial_credits)))
            self._db.add(profile)
            try:
                self._db.commit()
            except IntegrityError:
                # Created concurrently by another request.
                self._db.rollback()
                return self._db.get(Profile, account_id, populate_existing=True)
            self._db.refresh(profile)
        return profile
