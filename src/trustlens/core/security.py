"""Bearer token helpers built on python-jose."""
from __future__ import annotations

from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from trustlens.core.settings import settings


class InvalidTokenError(ValueError):
    """Raised when a bearer token cannot be decoded or has no subject."""


def create_access_token(account_id: str, extra_claims: dict[str, str] | None = None) -> str:
    """Create a signed JWT whose subject is the account identifier."""
    to_encode: dict[str, object] = {"sub": account_id}
    if extra_claims:
        to_encode.update(extra_claims)
    expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode["exp"] = expire
    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt


def decode_account_id(token: str) -> str:
    """Return the account identifier stored in a bearer token.

    Raises:
        InvalidTokenError: If the token is malformed, expired, or lacks a subject.
    """
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as err:
        raise InvalidTokenError("Could not validate credentials") from err

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        raise InvalidTokenError("Could not validate credentials")
    return subject
