"""Response shaping for the verification endpoints.

Every exit of the lookup flow goes through one of these functions so clients
see a single shape. They only format; ledger and cache state are read by the
caller beforehand.
"""

from __future__ import annotations

from typing import Any

from trustlens.services.errors import VerificationError
from trustlens.services.quota import QuotaSnapshot


def quota_payload(quota: QuotaSnapshot) -> dict[str, Any]:
    return {
        "remainingFreeLookups": quota.remaining,
        "nextResetTime": quota.next_reset_time_ms,
    }


def success_payload(
    report: dict[str, Any],
    quota: QuotaSnapshot,
    *,
    cached: bool,
    pending: bool = False,
) -> dict[str, Any]:
    """Merge a stored report with quota and cache metadata."""
    payload = {**report, **quota_payload(quota), "cached": cached}
    if pending:
        payload["pending"] = True
    return payload


def error_payload(error: VerificationError) -> dict[str, Any]:
    """Render a typed failure as ``{error, code}`` plus quota metadata where relevant."""
    payload: dict[str, Any] = {"error": error.message, "code": error.code.value}
    if error.carries_quota_metadata:
        payload["nextResetTime"] = error.next_reset_time
    return payload
