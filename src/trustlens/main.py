# src/trustlens/main.py
"""Main entry point for the TrustLens application."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from trustlens import __version__
from trustlens.api.v1 import (
    account_router,
    billing_router,
    system_router,
    verify_router,
)
from trustlens.core.logging import configure_logging
from trustlens.core.settings import settings
from trustlens.db.session import create_tables
from trustlens.services.errors import ErrorCode, VerificationError
from trustlens.services.provider import get_profile_provider
from trustlens.services.responses import error_payload

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="TrustLens API",
    description="Trust scoring for X accounts with free lookups and paid credits",
    version=__version__,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(verify_router, prefix="/api/v1")
app.include_router(account_router, prefix="/api/v1")
app.include_router(billing_router, prefix="/api/v1")
app.include_router(system_router, prefix="/api/v1")


@app.exception_handler(VerificationError)
async def verification_error_handler(request: Request, exc: VerificationError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=error_payload(exc))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.debug("Rejected malformed request to %s: %s", request.url.path, exc.errors())
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid request body", "code": ErrorCode.INVALID_INPUT.value},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error", "code": ErrorCode.INTERNAL_ERROR.value},
    )


@app.on_event("startup")
async def on_startup() -> None:
    configure_logging(settings.log_level)
    if settings.debug:
        # Migrations own the schema outside of local development.
        create_tables()
    logger.info("%s %s started", settings.app_name, __version__)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await get_profile_provider().close()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": "TrustLens API",
        "version": __version__,
        "description": "Trust scoring for X accounts",
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("trustlens.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
