# tests/v1/test_billing_api.py
"""Tests for credit pack checkout and the Stripe webhook."""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest
from fastapi import status

from tests.helpers import stripe_signature
from trustlens.api.v1.dependencies import get_payment_service
from trustlens.services.balance import BalanceService
from trustlens.services.payments import PaymentService

WEBHOOK_SECRET = "whsec_api_test"


@pytest.fixture()
def configured_billing(app, db_session) -> PaymentService:
    service = PaymentService(
        db_session,
        secret_key="sk_test",
        webhook_secret=WEBHOOK_SECRET,
        credit_packs={"price_small": 10},
        app_url="https://trustlens.test",
    )
    app.dependency_overrides[get_payment_service] = lambda: service
    return service


def _completed_checkout(event_id: str, account_id: str, credits: int) -> bytes:
    return json.dumps(
        {
            "id": event_id,
            "type": "checkout.session.completed",
            "data": {
                "object": {
                    "id": "cs_test_api",
                    "metadata": {"accountId": account_id, "credits": str(credits)},
                }
            },
        }
    ).encode()


def test_checkout_requires_sign_in(client, configured_billing) -> None:
    r = client.post("/api/v1/billing/checkout", json={"credits": 10})
    assert r.status_code == status.HTTP_401_UNAUTHORIZED


def test_checkout_without_stripe_keys(client, auth_headers, app, db_session) -> None:
    app.dependency_overrides[get_payment_service] = lambda: PaymentService(db_session, secret_key="")

    r = client.post("/api/v1/billing/checkout", json={"credits": 10}, headers=auth_headers("acct-1"))
    assert r.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
    assert r.json() == {"error": "Billing is not configured", "code": "BILLING_NOT_CONFIGURED"}


def test_checkout_unknown_pack(client, auth_headers, configured_billing) -> None:
    r = client.post("/api/v1/billing/checkout", json={"credits": 3}, headers=auth_headers("acct-1"))
    assert r.status_code == status.HTTP_400_BAD_REQUEST
    assert r.json()["code"] == "INVALID_CREDIT_PACK"


def test_checkout_returns_hosted_url(client, auth_headers, configured_billing, mocker) -> None:
    create = mocker.patch(
        "stripe.checkout.Session.create",
        return_value=MagicMock(url="https://checkout.stripe.test/cs_api", id="cs_api"),
    )

    r = client.post("/api/v1/billing/checkout", json={"credits": 10}, headers=auth_headers("acct-1"))
    assert r.status_code == status.HTTP_200_OK
    assert r.json() == {"url": "https://checkout.stripe.test/cs_api"}
    assert create.call_args.kwargs["client_reference_id"] == "acct-1"


def test_webhook_grants_credits_once(client, configured_billing, create_profile, db_session) -> None:
    create_profile("acct-1", credits=1)
    body = _completed_checkout("evt_api_1", "acct-1", 10)
    headers = {"stripe-signature": stripe_signature(body, WEBHOOK_SECRET)}

    first = client.post("/api/v1/billing/webhook", content=body, headers=headers)
    second = client.post("/api/v1/billing/webhook", content=body, headers=headers)

    assert first.status_code == status.HTTP_200_OK
    assert first.json() == {"received": True, "result": "granted"}
    assert second.json() == {"received": True, "result": "duplicate"}
    assert BalanceService(db_session).get_balance("acct-1") == 11


def test_webhook_rejects_bad_signature(client, configured_billing, create_profile, db_session) -> None:
    create_profile("acct-1", credits=0)
    body = _completed_checkout("evt_api_2", "acct-1", 10)

    r = client.post(
        "/api/v1/billing/webhook",
        content=body,
        headers={"stripe-signature": stripe_signature(body, "whsec_wrong")},
    )
    assert r.status_code == status.HTTP_400_BAD_REQUEST
    assert r.json() == {"error": "Invalid signature", "code": "INVALID_WEBHOOK"}
    assert BalanceService(db_session).get_balance("acct-1") == 0


def test_webhook_requires_signature(client, configured_billing) -> None:
    r = client.post("/api/v1/billing/webhook", content=b"{}")
    assert r.status_code == status.HTTP_400_BAD_REQUEST
    assert r.json()["code"] == "INVALID_WEBHOOK"


def test_webhook_unknown_account_is_retryable(client, configured_billing) -> None:
    body = _completed_checkout("evt_api_3", "ghost", 10)

    r = client.post(
        "/api/v1/billing/webhook",
        content=body,
        headers={"stripe-signature": stripe_signature(body, WEBHOOK_SECRET)},
    )
    assert r.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert r.json() == {"error": "Failed to update credits", "code": "WEBHOOK_PROCESSING_FAILED"}


def test_webhook_without_stripe_keys(client, app, db_session) -> None:
    app.dependency_overrides[get_payment_service] = lambda: PaymentService(db_session, webhook_secret="")

    r = client.post("/api/v1/billing/webhook", content=b"{}", headers={"stripe-signature": "t=1,v1=x"})
    assert r.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
    assert r.json()["code"] == "BILLING_NOT_CONFIGURED"
