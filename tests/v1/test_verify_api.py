# tests/v1/test_verify_api.py
"""Tests for the verification endpoints."""

from __future__ import annotations

from fastapi import status

from tests.helpers import exhaust_quota
from trustlens.core.settings import settings
from trustlens.services.balance import BalanceService
from trustlens.services.provider import ProviderNotFoundError, ProviderRateLimitedError

# TestClient reports this as the peer address.
CLIENT_ADDRESS = "testclient"


def test_verify_anonymous_uses_free_lookup(client, provider) -> None:
    """First lookup is funded from the free quota and scored fresh."""
    r = client.post("/api/v1/verify", json={"username": "@Alice"})
    assert r.status_code == status.HTTP_200_OK
    data = r.json()

    assert data["cached"] is False
    assert data["remainingFreeLookups"] == 2
    assert data["nextResetTime"] is None
    assert data["userInfo"]["username"] == "alice"
    assert data["verdict"] in {"TRUSTED", "CAUTION", "DANGER"}
    assert 0 <= data["score"] <= 100
    assert "pending" not in data
    assert provider.calls == ["alice"]


def test_verify_cached_result_is_free(client, ledger, provider) -> None:
    """A fresh cached report is served even after the free quota runs out."""
    client.post("/api/v1/verify", json={"username": "alice"})
    while ledger.record_event(CLIENT_ADDRESS):
        pass

    r = client.post("/api/v1/verify", json={"username": "ALICE"})
    assert r.status_code == status.HTTP_200_OK
    data = r.json()

    assert data["cached"] is True
    assert data["remainingFreeLookups"] == 0
    assert provider.calls == ["alice"]


def test_verify_anonymous_without_quota(client, ledger) -> None:
    """Anonymous callers without free lookups must sign in."""
    exhaust_quota(ledger, CLIENT_ADDRESS)

    r = client.post("/api/v1/verify", json={"username": "alice"})
    assert r.status_code == status.HTTP_401_UNAUTHORIZED
    data = r.json()

    assert data["code"] == "AUTH_REQUIRED"
    assert data["nextResetTime"] == ledger.next_reset_time_ms(CLIENT_ADDRESS)


def test_verify_member_without_credits(client, ledger, auth_headers, create_profile) -> None:
    """Signed-in callers with no quota and no credits get 402."""
    create_profile("acct-1", credits=0)
    exhaust_quota(ledger, CLIENT_ADDRESS)

    r = client.post("/api/v1/verify", json={"username": "alice"}, headers=auth_headers("acct-1"))
    assert r.status_code == status.HTTP_402_PAYMENT_REQUIRED
    data = r.json()

    assert data["code"] == "INSUFFICIENT_CREDITS"
    assert data["nextResetTime"] is not None


def test_verify_member_spends_credit(client, ledger, db_session, auth_headers, create_profile) -> None:
    """Once the free quota is gone a credit pays for the lookup."""
    create_profile("acct-1", credits=2)
    exhaust_quota(ledger, CLIENT_ADDRESS)

    r = client.post("/api/v1/verify", json={"username": "alice"}, headers=auth_headers("acct-1"))
    assert r.status_code == status.HTTP_200_OK
    assert r.json()["cached"] is False

    assert BalanceService(db_session).get_balance("acct-1") == 1


def test_verify_rejects_blank_username(client) -> None:
    r = client.post("/api/v1/verify", json={"username": "  @ "})
    assert r.status_code == status.HTTP_400_BAD_REQUEST
    assert r.json()["code"] == "INVALID_INPUT"


def test_verify_rejects_malformed_body(client) -> None:
    r = client.post("/api/v1/verify", json={"handle": "alice"})
    assert r.status_code == status.HTTP_400_BAD_REQUEST
    assert r.json() == {"error": "Invalid request body", "code": "INVALID_INPUT"}


def test_verify_unknown_account(client, provider, ledger) -> None:
    """Provider failures are reported without consuming the free quota."""
    provider.error = ProviderNotFoundError("no such user")

    r = client.post("/api/v1/verify", json={"username": "ghost"})
    assert r.status_code == status.HTTP_404_NOT_FOUND
    assert r.json()["code"] == "ACCOUNT_NOT_FOUND"
    assert ledger.remaining(CLIENT_ADDRESS) == 3


def test_verify_upstream_rate_limited(client, provider) -> None:
    provider.error = ProviderRateLimitedError("slow down")

    r = client.post("/api/v1/verify", json={"username": "alice"})
    assert r.status_code == status.HTTP_429_TOO_MANY_REQUESTS
    assert r.json()["code"] == "RATE_LIMIT_EXCEEDED"


def test_verify_invalid_token(client) -> None:
    """A bad bearer token is rejected rather than treated as anonymous."""
    r = client.post(
        "/api/v1/verify",
        json={"username": "alice"},
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert r.status_code == status.HTTP_401_UNAUTHORIZED
    assert r.json()["code"] == "UNAUTHORIZED"


def test_quota_endpoint_is_read_only(client, ledger) -> None:
    """Reading the quota never consumes a free lookup."""
    for _ in range(2):
        r = client.get("/api/v1/verify/quota")
        assert r.status_code == status.HTTP_200_OK
        assert r.json() == {"remainingFreeLookups": 3, "nextResetTime": None}

    exhaust_quota(ledger, CLIENT_ADDRESS)
    data = client.get("/api/v1/verify/quota").json()
    assert data["remainingFreeLookups"] == 0
    assert data["nextResetTime"] == ledger.next_reset_time_ms(CLIENT_ADDRESS)


def test_forwarded_for_ignored_by_default(client, ledger) -> None:
    client.post(
        "/api/v1/verify",
        json={"username": "alice"},
        headers={"X-Forwarded-For": "203.0.113.7"},
    )
    assert ledger.remaining(CLIENT_ADDRESS) == 2
    assert ledger.remaining("203.0.113.7") == 3


def test_forwarded_for_behind_trusted_proxy(client, ledger, monkeypatch) -> None:
    monkeypatch.setattr(settings, "trust_forwarded_for", True)

    client.post(
        "/api/v1/verify",
        json={"username": "alice"},
        headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1"},
    )
    assert ledger.remaining("203.0.113.7") == 2
    assert ledger.remaining(CLIENT_ADDRESS) == 3


def test_wait_returns_cached_report(client) -> None:
    client.post("/api/v1/verify", json={"username": "alice"})

    r = client.get("/api/v1/verify/@alice/wait", params={"timeout": 0.1})
    assert r.status_code == status.HTTP_200_OK
    data = r.json()
    assert data["cached"] is True
    assert data["userInfo"]["username"] == "alice"


def test_wait_times_out_as_pending(client, provider) -> None:
    r = client.get("/api/v1/verify/alice/wait", params={"timeout": 0.05})
    assert r.status_code == status.HTTP_202_ACCEPTED
    assert r.json()["code"] == "PENDING"
    assert provider.calls == []


def test_wait_rejects_non_positive_timeout(client) -> None:
    r = client.get("/api/v1/verify/alice/wait", params={"timeout": 0})
    assert r.status_code == status.HTTP_400_BAD_REQUEST
