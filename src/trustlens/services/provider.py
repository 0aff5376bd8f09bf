"""Upstream X profile provider backed by twitterapi.io.

The provider is untrusted and may be slow: every call has a bounded timeout
and every failure is classified into one of three exception types whose message
carries the real cause. Callers decide how much of it the end user sees.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from trustlens.core.settings import settings
from trustlens.schemas.trust import UserInfo

logger = logging.getLogger(__name__)

# HTTP status codes
HTTP_NOT_FOUND = 404
HTTP_TOO_MANY_REQUESTS = 429

_BODY_EXCERPT = 300


class ProviderError(RuntimeError):
    """Base exception raised for upstream provider failures."""


class ProviderNotFoundError(ProviderError):
    """The provider reports that the account does not exist."""


class ProviderRateLimitedError(ProviderError):
    """The provider throttled this request."""


@dataclass(frozen=True)
class XRawData:
    """Profile fields used by the scorer. Counts are None when the provider omits them."""

    id: str
    created_at: str
    blue_verified: bool = False
    followers_count: int | None = None
    friends_count: int | None = None
    listed_count: int | None = None
    statuses_count: int | None = None
    media_count: int | None = None
    favourites_count: int | None = None
    is_automated: bool | None = None
    protected: bool | None = None
    user_info: UserInfo | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-ready copy for audit storage."""
        data: dict[str, Any] = {
            "id": self.id,
            "created_at": self.created_at,
            "blue_verified": self.blue_verified,
            "followers_count": self.followers_count,
            "friends_count": self.friends_count,
            "listed_count": self.listed_count,
            "statuses_count": self.statuses_count,
            "media_count": self.media_count,
            "favourites_count": self.favourites_count,
            "is_automated": self.is_automated,
            "protected": self.protected,
        }
        if self.user_info is not None:
            data["user_info"] = self.user_info.model_dump(mode="json", by_alias=True)
        return data


class ProfileProvider(Protocol):
    """Anything that can fetch raw profile data for a normalized username."""

    async def fetch_profile(self, username: str) -> XRawData: ...


def _optional_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_user_info_payload(payload: Any) -> XRawData:
    """Map a ``/twitter/user/info`` response body to ``XRawData``.

    Raises:
        ProviderNotFoundError: If the payload does not describe an account.
    """
    if not isinstance(payload, dict) or payload.get("status") != "success":
        raise ProviderNotFoundError(f"Provider returned non-success payload: {repr(payload)[:_BODY_EXCERPT]}")
    data = payload.get("data")
    if not isinstance(data, dict) or not data.get("id"):
        raise ProviderNotFoundError("Provider payload has no account data")

    followers = _optional_int(data.get("followers"))
    following = _optional_int(data.get("following"))
    created_at = str(data.get("createdAt") or "")
    blue_verified = bool(data.get("isBlueVerified") or False)

    try:
        user_info = UserInfo(
            id=str(data["id"]),
            username=str(data.get("userName") or ""),
            name=str(data.get("name") or ""),
            profile_picture=data.get("profilePicture"),
            followers_count=followers,
            following_count=following,
            created_at=created_at,
            blue_verified=blue_verified,
            description=data.get("description"),
        )
    except ValidationError as err:
        raise ProviderError(f"Malformed account data: {err}") from err

    automated = data.get("isAutomated")
    protected = data.get("protected")
    return XRawData(
        id=str(data["id"]),
        created_at=created_at,
        blue_verified=blue_verified,
        followers_count=followers,
        friends_count=following,
        # Not exposed by /twitter/user/info.
        listed_count=None,
        statuses_count=_optional_int(data.get("statusesCount")),
        media_count=_optional_int(data.get("mediaCount")),
        favourites_count=_optional_int(data.get("favouritesCount")),
        is_automated=automated if isinstance(automated, bool) else None,
        protected=protected if isinstance(protected, bool) else None,
        user_info=user_info,
    )


class TwitterApiProvider:
    """HTTP client for the twitterapi.io user info endpoint."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key if api_key is not None else settings.twitter_api_key
        self._base_url = (base_url or settings.twitter_api_base_url).rstrip("/")
        self._timeout = timeout_seconds or settings.provider_timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    @property
    def configured(self) -> bool:
        """Return True when an API key is available."""
        return bool(self._api_key)

    async def _get_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self._base_url,
                    timeout=httpx.Timeout(self._timeout),
                    transport=self._transport,
                )
            return self._client

    async def fetch_profile(self, username: str) -> XRawData:
        """Fetch and parse profile fields for ``username``.

        Raises:
            ProviderNotFoundError: Unknown account.
            ProviderRateLimitedError: Upstream throttling.
            ProviderError: Any other failure, including timeouts.
        """
        if not self._api_key:
            raise ProviderError("TWITTER_API_KEY is not configured")

        client = await self._get_client()
        logger.debug("Fetching profile for %s", username)
        try:
            response = await client.get(
                "/twitter/user/info",
                params={"userName": username},
                headers={"X-API-Key": self._api_key, "Content-Type": "application/json"},
            )
        except httpx.TimeoutException as err:
            raise ProviderError(f"Provider timed out after {self._timeout}s") from err
        except httpx.HTTPError as err:
            raise ProviderError(f"Provider request failed: {err}") from err

        if response.status_code == HTTP_TOO_MANY_REQUESTS:
            raise ProviderRateLimitedError(response.text[:_BODY_EXCERPT])
        if response.status_code == HTTP_NOT_FOUND:
            raise ProviderNotFoundError(response.text[:_BODY_EXCERPT])
        if response.is_error:
            raise ProviderError(
                f"Provider returned HTTP {response.status_code}: {response.text[:_BODY_EXCERPT]}"
            )

        try:
            payload = response.json()
        except ValueError as err:
            raise ProviderError(f"Provider returned invalid JSON: {response.text[:_BODY_EXCERPT]}") from err
        return parse_user_info_payload(payload)

    async def close(self) -> None:
        """Clean up underlying HTTP client resources."""
        async with self._client_lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None


class _ProviderSingleton:
    """Singleton wrapper for TwitterApiProvider."""

    _instance: TwitterApiProvider | None = None

    @classmethod
    def get_instance(cls) -> TwitterApiProvider:
        if cls._instance is None:
            cls._instance = TwitterApiProvider()
        return cls._instance


def get_profile_provider() -> TwitterApiProvider:
    """Return the shared profile provider."""
    return _ProviderSingleton.get_instance()
