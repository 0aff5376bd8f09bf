"""Credit pack checkout and Stripe webhook endpoints."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Header, Request

from trustlens.api.v1.dependencies import CurrentAccountDep, PaymentServiceDep
from trustlens.schemas.billing import CheckoutRequest, CheckoutResponse
from trustlens.services.errors import InvalidWebhookError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing", tags=["billing"])


@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout(
    payload: CheckoutRequest,
    account_id: CurrentAccountDep,
    payments: PaymentServiceDep,
) -> CheckoutResponse:
    """Start a Stripe Checkout session for one of the configured credit packs."""
    url = payments.create_checkout_session(account_id, payload.credits)
    return CheckoutResponse(url=url)


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    payments: PaymentServiceDep,
    stripe_signature: Annotated[str | None, Header(alias="stripe-signature")] = None,
) -> dict[str, object]:
    """Apply Stripe payment events; completed checkouts grant credits once."""
    body = await request.body()
    try:
        event = payments.construct_event(body, stripe_signature)
        result = payments.handle_event(event)
    except InvalidWebhookError as err:
        logger.warning("Rejected Stripe webhook: %s", err.message)
        raise
    return {"received": True, "result": result.value}
