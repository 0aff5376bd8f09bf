"""System and transparency endpoints for the TrustLens API."""

from __future__ import annotations

import logging
import time

from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from trustlens.api.v1.dependencies import PaymentServiceDep, QuotaLedgerDep, SessionDep
from trustlens.core.settings import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/system", tags=["system", "transparency"])


@router.get("/config")
async def get_public_config(ledger: QuotaLedgerDep, payments: PaymentServiceDep) -> dict[str, object]:
    """Return a sanitized snapshot of public runtime configuration.

    Excludes secrets and connection strings.
    """
    return {
        "app": {
            "name": settings.app_name,
            "version": settings.app_version,
            "debug": settings.debug,
        },
        "quota": {
            "free_lookup_limit": ledger.max_events,
            "window_seconds": ledger.reset_window,
            "backend": settings.quota_backend,
        },
        "cache": {
            "freshness_seconds": settings.cache_freshness_seconds,
            "pending_expiry_seconds": settings.pending_expiry_seconds,
        },
        "funding_preference": settings.funding_preference,
        "billing": {
            "checkout_enabled": payments.checkout_enabled,
            "webhook_enabled": payments.webhook_enabled,
            "credit_packs": sorted(settings.stripe_credit_packs.values()),
        },
        "notify_max_wait_seconds": settings.notify_max_wait_seconds,
    }


@router.get("/health")
async def get_system_health(db: SessionDep) -> dict[str, object]:
    """Health check including database connectivity."""
    try:
        db.execute(text("SELECT 1"))
        db_status = "healthy"
    except SQLAlchemyError as e:
        logger.warning("Database health check failed: %s", e)
        db_status = f"unhealthy: {e}"

    return {
        "status": "healthy" if db_status == "healthy" else "unhealthy",
        "timestamp": int(time.time()),
        "components": {"database": db_status},
        "version": settings.app_version,
    }
