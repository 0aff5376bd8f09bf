"""Credit pack purchases through Stripe Checkout.

Checkout sessions carry the buying account and the credit amount in their
metadata. The webhook grants those credits once per Stripe event id; the
``payment_events`` row and the balance increment are committed together.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any

import stripe
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from trustlens.core.settings import settings
from trustlens.models import PaymentEvent
from trustlens.services.balance import BalanceService, InvalidAmountError
from trustlens.services.errors import (
    BillingNotConfiguredError,
    CheckoutCreationFailedError,
    InvalidCreditPackError,
    InvalidWebhookError,
    ProfileNotFoundError,
    WebhookProcessingError,
)

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"


class WebhookResult(str, Enum):
    GRANTED = "granted"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"


class PaymentService:
    """Creates checkout sessions and applies completed payments."""

    def __init__(
        self,
        db: Session,
        *,
        secret_key: str | None = None,
        webhook_secret: str | None = None,
        credit_packs: dict[str, int] | None = None,
        app_url: str | None = None,
    ) -> None:
        self._db = db
        self._secret_key = secret_key if secret_key is not None else settings.stripe_secret_key
        self._webhook_secret = (
            webhook_secret if webhook_secret is not None else settings.stripe_webhook_secret
        )
        self._credit_packs = credit_packs if credit_packs is not None else settings.stripe_credit_packs
        self._app_url = (app_url or settings.app_url).rstrip("/")

    @property
    def checkout_enabled(self) -> bool:
        return bool(self._secret_key)

    @property
    def webhook_enabled(self) -> bool:
        return bool(self._webhook_secret)

    def price_for(self, credits: int) -> str:
        """Return the Stripe price id of the pack granting ``credits``.

        Raises:
            InvalidCreditPackError: If no configured pack has that size.
        """
        for price_id, pack_credits in self._credit_packs.items():
            if pack_credits == credits:
                return price_id
        raise InvalidCreditPackError()

    def create_checkout_session(self, account_id: str, credits: int) -> str:
        """Open a hosted checkout page and return its URL.

        Raises:
            BillingNotConfiguredError: If no Stripe secret key is set.
            InvalidCreditPackError: If ``credits`` is not a configured pack.
            CheckoutCreationFailedError: If Stripe rejects the request.
        """
        if not self.checkout_enabled:
            logger.error("Checkout requested but STRIPE_SECRET_KEY is not configured")
            raise BillingNotConfiguredError()
        price_id = self.price_for(credits)

        try:
            session = stripe.checkout.Session.create(
                api_key=self._secret_key,
                mode="payment",
                payment_method_types=["card"],
                line_items=[{"price": price_id, "quantity": 1}],
                success_url=f"{self._app_url}?checkout=success",
                cancel_url=f"{self._app_url}?checkout=canceled",
                client_reference_id=account_id,
                metadata={"accountId": account_id, "credits": str(credits)},
            )
        except stripe.StripeError as err:
            logger.error("Checkout session creation failed for %s: %s", account_id, err)
            raise CheckoutCreationFailedError() from err

        if not session.url:
            logger.error("Stripe returned a checkout session without a URL for %s", account_id)
            raise CheckoutCreationFailedError()
        logger.info("Created checkout session %s for %s (%d credits)", session.id, account_id, credits)
        return session.url

    def construct_event(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        """Verify the ``stripe-signature`` header and decode the event body.

        Raises:
            BillingNotConfiguredError: If no webhook secret is set.
            InvalidWebhookError: If the signature or body is invalid.
        """
        if not self.webhook_enabled:
            logger.error("Webhook received but STRIPE_WEBHOOK_SECRET is not configured")
            raise BillingNotConfiguredError()
        if not signature:
            raise InvalidWebhookError("Missing stripe-signature header")
        try:
            stripe.WebhookSignature.verify_header(
                payload.decode("utf-8"),
                signature,
                self._webhook_secret,
                stripe.Webhook.DEFAULT_TOLERANCE,
            )
            event = json.loads(payload)
        except stripe.SignatureVerificationError as err:
            raise InvalidWebhookError("Invalid signature") from err
        except (UnicodeDecodeError, ValueError) as err:
            raise InvalidWebhookError("Invalid payload") from err
        if not isinstance(event, dict) or not event.get("id") or not event.get("type"):
            raise InvalidWebhookError("Invalid payload")
        return event

    def handle_event(self, event: dict[str, Any]) -> WebhookResult:
        """Apply a verified Stripe event.

        Raises:
            InvalidWebhookError: If a completed checkout lacks usable metadata.
            WebhookProcessingError: If the credits could not be stored.
        """
        event_type = event["type"]
        if event_type != CHECKOUT_COMPLETED:
            logger.debug("Ignoring Stripe event %s of type %s", event["id"], event_type)
            return WebhookResult.IGNORED

        session = (event.get("data") or {}).get("object") or {}
        metadata = session.get("metadata") or {}
        account_id = metadata.get("accountId")
        credits_raw = metadata.get("credits")
        if not account_id or not credits_raw:
            logger.warning("Checkout session %s is missing metadata", session.get("id"))
            raise InvalidWebhookError("Missing metadata")
        try:
            credits = int(credits_raw)
        except (TypeError, ValueError) as err:
            logger.warning("Checkout session %s has invalid credits %r", session.get("id"), credits_raw)
            raise InvalidWebhookError("Invalid credits") from err
        if credits <= 0:
            logger.warning("Checkout session %s has invalid credits %r", session.get("id"), credits_raw)
            raise InvalidWebhookError("Invalid credits")

        return self._grant(event["id"], event_type, account_id, credits)

    def _grant(self, event_id: str, event_type: str, account_id: str, credits: int) -> WebhookResult:
        if self._db.get(PaymentEvent, event_id) is not None:
            logger.info("Stripe event %s already applied", event_id)
            return WebhookResult.DUPLICATE

        # A concurrent delivery can still win between the lookup and the insert.
        self._db.add(
            PaymentEvent(
                event_id=event_id,
                event_type=event_type,
                account_id=account_id,
                credits=credits,
            )
        )
        try:
            self._db.flush()
        except IntegrityError:
            self._db.rollback()
            logger.info("Stripe event %s already applied", event_id)
            return WebhookResult.DUPLICATE

        # increment() commits the event row together with the new balance.
        try:
            balance = BalanceService(self._db).increment(account_id, credits)
        except (ProfileNotFoundError, InvalidAmountError, SQLAlchemyError) as err:
            self._db.rollback()
            logger.error("Failed to grant %d credits to %s for %s: %s", credits, account_id, event_id, err)
            raise WebhookProcessingError("Failed to update credits") from err

        logger.info("Granted %d credits to %s (balance %d, event %s)", credits, account_id, balance, event_id)
        return WebhookResult.GRANTED
