# tests/services/test_provider.py
from __future__ import annotations

from collections.abc import Callable

import httpx
import pytest

from trustlens.services.provider import (
    ProviderError,
    ProviderNotFoundError,
    ProviderRateLimitedError,
    TwitterApiProvider,
    parse_user_info_payload,
)

USER_PAYLOAD = {
    "status": "success",
    "msg": "success",
    "data": {
        "id": "44196397",
        "userName": "Alice",
        "name": "Alice Example",
        "profilePicture": "https://pbs.example/alice.jpg",
        "description": "hello",
        "followers": 1200,
        "following": 300,
        "createdAt": "Tue Jun 02 20:12:29 +0000 2009",
        "isBlueVerified": True,
        "statusesCount": 5400,
        "mediaCount": 120,
        "favouritesCount": 9000,
        "isAutomated": False,
        "protected": False,
    },
}


def _provider(handler: Callable[[httpx.Request], httpx.Response], api_key: str = "test-key") -> TwitterApiProvider:
    return TwitterApiProvider(
        api_key=api_key,
        base_url="https://api.twitter.test",
        timeout_seconds=1.0,
        transport=httpx.MockTransport(handler),
    )


class TestParseUserInfoPayload:
    """Tests for mapping provider payloads."""

    def test_maps_profile_fields(self) -> None:
        raw = parse_user_info_payload(USER_PAYLOAD)

        assert raw.id == "44196397"
        assert raw.followers_count == 1200
        assert raw.friends_count == 300
        assert raw.statuses_count == 5400
        assert raw.media_count == 120
        assert raw.favourites_count == 9000
        assert raw.listed_count is None
        assert raw.blue_verified is True
        assert raw.is_automated is False
        assert raw.user_info is not None
        assert raw.user_info.username == "Alice"
        assert raw.user_info.profile_picture == "https://pbs.example/alice.jpg"

    def test_missing_counts_are_none(self) -> None:
        payload = {"status": "success", "data": {"id": "1", "userName": "a", "name": "A"}}

        raw = parse_user_info_payload(payload)

        assert raw.followers_count is None
        assert raw.statuses_count is None
        assert raw.is_automated is None

    @pytest.mark.parametrize(
        "payload",
        [
            {"status": "error", "msg": "User not found"},
            {"status": "success", "data": None},
            {"status": "success", "data": {"userName": "a"}},
            ["not", "a", "dict"],
        ],
    )
    def test_non_account_payloads_are_not_found(self, payload: object) -> None:
        with pytest.raises(ProviderNotFoundError):
            parse_user_info_payload(payload)

    def test_to_dict_is_json_ready(self) -> None:
        data = parse_user_info_payload(USER_PAYLOAD).to_dict()

        assert data["followers_count"] == 1200
        assert data["user_info"]["userName"] == "Alice"


class TestTwitterApiProvider:
    """Tests for HTTP error classification."""

    @pytest.mark.asyncio
    async def test_fetch_profile_sends_key_and_username(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=USER_PAYLOAD)

        provider = _provider(handler)
        try:
            raw = await provider.fetch_profile("alice")
        finally:
            await provider.close()

        assert raw.id == "44196397"
        assert seen[0].url.path == "/twitter/user/info"
        assert seen[0].url.params["userName"] == "alice"
        assert seen[0].headers["X-API-Key"] == "test-key"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("status_code", "error_type"),
        [
            (404, ProviderNotFoundError),
            (429, ProviderRateLimitedError),
            (500, ProviderError),
            (401, ProviderError),
        ],
    )
    async def test_http_errors_are_classified(self, status_code: int, error_type: type[Exception]) -> None:
        provider = _provider(lambda request: httpx.Response(status_code, text="upstream says no"))
        try:
            with pytest.raises(error_type) as excinfo:
                await provider.fetch_profile("alice")
        finally:
            await provider.close()

        if error_type is ProviderError:
            assert not isinstance(excinfo.value, (ProviderNotFoundError, ProviderRateLimitedError))
            assert str(status_code) in str(excinfo.value)

    @pytest.mark.asyncio
    async def test_invalid_json(self) -> None:
        provider = _provider(lambda request: httpx.Response(200, text="<html>oops</html>"))
        try:
            with pytest.raises(ProviderError):
                await provider.fetch_profile("alice")
        finally:
            await provider.close()

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        provider = _provider(handler)
        try:
            with pytest.raises(ProviderError, match="timed out"):
                await provider.fetch_profile("alice")
        finally:
            await provider.close()

    @pytest.mark.asyncio
    async def test_missing_api_key(self) -> None:
        provider = _provider(lambda request: httpx.Response(200, json=USER_PAYLOAD), api_key="")

        assert provider.configured is False
        with pytest.raises(ProviderError, match="TWITTER_API_KEY"):
            await provider.fetch_profile("alice")
