"""Tests for the Spotify Web API client using httpx.MockTransport."""

import json
from collections.abc import Callable

import httpx
import pytest

from radiosync.config import SpotifySettings
from radiosync.domain.entities import CatalogItem
from radiosync.domain.exceptions import (
    ConfigurationError,
    ExternalServiceError,
    RateLimitExceededError,
    TokenRefreshException,
)
from radiosync.infrastructure.integrations.spotify_client import SpotifyClient
from radiosync.infrastructure.rate_limiter import RateLimiter, RateLimiterConfig

TOKEN_OK = {"access_token": "access-1", "token_type": "Bearer", "expires_in": 3600}


@pytest.fixture
def spotify_settings() -> SpotifySettings:
    return SpotifySettings(
        client_id="client", client_secret="secret", refresh_token="refresh-1"
    )


def _limiter() -> RateLimiter:
    """Fresh limiter per test so 429 backoff state doesn't leak between tests."""
    return RateLimiter(config=RateLimiterConfig(max_tokens=100, refill_rate=100.0))


def _client(
    settings: SpotifySettings, handler: Callable[[httpx.Request], httpx.Response]
) -> SpotifyClient:
    return SpotifyClient(
        settings,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        rate_limiter=_limiter(),
    )


def _api(routes: dict[str, Callable[[httpx.Request], httpx.Response]]):
    """Token endpoint always succeeds, API paths dispatch to ``routes``."""

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "accounts.spotify.com":
            return httpx.Response(200, json=TOKEN_OK)
        return routes[request.url.path](request)

    return handler


def _track(track_id: str, name: str, *artists: str) -> dict:
    return {
        "id": track_id,
        "name": name,
        "artists": [{"name": a} for a in artists],
        "external_urls": {"spotify": f"https://open.spotify.com/track/{track_id}"},
    }


class TestTokenRefresh:
    """Test the refresh-token grant."""

    async def test_refresh_success_and_rotation(
        self, spotify_settings: SpotifySettings
    ) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={**TOKEN_OK, "refresh_token": "refresh-2"})

        client = _client(spotify_settings, handler)

        assert await client.refresh_access_token() == "access-1"
        body = seen[0].content.decode()
        assert "grant_type=refresh_token" in body
        assert "refresh_token=refresh-1" in body
        assert seen[0].headers["Authorization"].startswith("Basic ")

        await client.refresh_access_token()
        assert "refresh_token=refresh-2" in seen[1].content.decode()
        await client.close()

    async def test_invalid_grant(self, spotify_settings: SpotifySettings) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                400,
                json={"error": "invalid_grant", "error_description": "Refresh token revoked"},
            )

        client = _client(spotify_settings, handler)

        with pytest.raises(TokenRefreshException) as exc_info:
            await client.refresh_access_token()
        assert exc_info.value.error_code == "invalid_grant"
        assert "Refresh token revoked" in exc_info.value.message

    async def test_other_token_error(self, spotify_settings: SpotifySettings) -> None:
        client = _client(spotify_settings, lambda r: httpx.Response(503))

        with pytest.raises(ExternalServiceError) as exc_info:
            await client.refresh_access_token()
        assert exc_info.value.status_code == 503

    async def test_missing_credentials(self) -> None:
        client = _client(SpotifySettings(), lambda r: httpx.Response(200, json=TOKEN_OK))

        with pytest.raises(ConfigurationError):
            await client.refresh_access_token()


class TestSearch:
    """Test search and response mapping."""

    async def test_search_maps_items(self, spotify_settings: SpotifySettings) -> None:
        captured: dict[str, httpx.Request] = {}

        def search(request: httpx.Request) -> httpx.Response:
            captured["request"] = request
            return httpx.Response(
                200,
                json={
                    "tracks": {
                        "items": [
                            _track("t1", "Get Lucky", "Daft Punk", "Pharrell Williams"),
                            None,
                            {"name": "no id"},
                        ]
                    }
                },
            )

        client = _client(spotify_settings, _api({"/v1/search": search}))

        items = await client.search_tracks('artist:"Daft Punk" track:"Get Lucky"', limit=80)

        assert items == [
            CatalogItem(
                id="t1",
                artists=("Daft Punk", "Pharrell Williams"),
                title="Get Lucky",
                external_url="https://open.spotify.com/track/t1",
            )
        ]
        request = captured["request"]
        assert request.url.params["type"] == "track"
        assert request.url.params["limit"] == "50"
        assert request.headers["Authorization"] == "Bearer access-1"

    async def test_429_is_retried(self, spotify_settings: SpotifySettings) -> None:
        calls = {"count": 0}

        def search(request: httpx.Request) -> httpx.Response:
            calls["count"] += 1
            if calls["count"] == 1:
                return httpx.Response(429, headers={"Retry-After": "0"})
            return httpx.Response(200, json={"tracks": {"items": []}})

        client = _client(spotify_settings, _api({"/v1/search": search}))

        assert await client.search_tracks("x") == []
        assert calls["count"] == 2

    async def test_429_exhausted(self, spotify_settings: SpotifySettings) -> None:
        client = _client(
            spotify_settings,
            _api({"/v1/search": lambda r: httpx.Response(429, headers={"Retry-After": "0"})}),
        )

        with pytest.raises(RateLimitExceededError):
            await client.search_tracks("x")

    async def test_401_refreshes_once(self, spotify_settings: SpotifySettings) -> None:
        calls = {"count": 0}

        def search(request: httpx.Request) -> httpx.Response:
            calls["count"] += 1
            if calls["count"] == 1:
                return httpx.Response(401, json={"error": {"status": 401, "message": "expired"}})
            return httpx.Response(200, json={"tracks": {"items": []}})

        client = _client(spotify_settings, _api({"/v1/search": search}))

        assert await client.search_tracks("x") == []
        assert calls["count"] == 2

    async def test_api_error_message(self, spotify_settings: SpotifySettings) -> None:
        client = _client(
            spotify_settings,
            _api(
                {
                    "/v1/search": lambda r: httpx.Response(
                        500, json={"error": {"status": 500, "message": "Server broke"}}
                    )
                }
            ),
        )

        with pytest.raises(ExternalServiceError) as exc_info:
            await client.search_tracks("x")
        assert exc_info.value.message == "Spotify API error: 500 Server broke"


class TestCollections:
    """Test playlist lookup, creation, append and counting."""

    async def test_find_collection_pages_until_match(
        self, spotify_settings: SpotifySettings
    ) -> None:
        offsets: list[str] = []

        def playlists(request: httpx.Request) -> httpx.Response:
            offset = request.url.params["offset"]
            offsets.append(offset)
            if offset == "0":
                items = [{"id": f"p{i}", "name": f"Other {i}"} for i in range(50)]
            else:
                items = [
                    {"id": "lower", "name": "halloween radio - main"},
                    {"id": "wanted", "name": "Halloween Radio - Main"},
                ]
            return httpx.Response(200, json={"items": items})

        client = _client(spotify_settings, _api({"/v1/me/playlists": playlists}))

        playlist = await client.find_collection_by_name("Halloween Radio - Main")

        assert playlist is not None
        assert playlist["id"] == "wanted"
        assert offsets == ["0", "50"]

    async def test_find_collection_none(self, spotify_settings: SpotifySettings) -> None:
        client = _client(
            spotify_settings,
            _api({"/v1/me/playlists": lambda r: httpx.Response(200, json={"items": []})}),
        )

        assert await client.find_collection_by_name("Nope") is None

    async def test_create_collection(self, spotify_settings: SpotifySettings) -> None:
        bodies: list[dict] = []

        def create(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(201, json={"id": "new-pl", "name": "Radio Main"})

        client = _client(
            spotify_settings,
            _api(
                {
                    "/v1/me": lambda r: httpx.Response(200, json={"id": "user-1"}),
                    "/v1/users/user-1/playlists": create,
                }
            ),
        )

        playlist = await client.create_collection("Radio Main", description="d")

        assert playlist["id"] == "new-pl"
        assert bodies == [{"name": "Radio Main", "description": "d", "public": False}]

    async def test_add_to_collection_sends_uri(
        self, spotify_settings: SpotifySettings
    ) -> None:
        bodies: list[dict] = []

        def add(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(201, json={"snapshot_id": "s"})

        client = _client(spotify_settings, _api({"/v1/playlists/pl-1/tracks": add}))

        await client.add_to_collection("pl-1", CatalogItem(id="t1", artists=("A",), title="B"))

        assert bodies == [{"uris": ["spotify:track:t1"]}]

    async def test_count_distinct_tracks(self, spotify_settings: SpotifySettings) -> None:
        def tracks(request: httpx.Request) -> httpx.Response:
            if request.url.params["offset"] == "0":
                items = [{"track": {"id": f"t{i % 60}"}} for i in range(100)]
            else:
                items = [{"track": {"id": "t1"}}, {"track": None}, {"track": {"id": "x"}}]
            return httpx.Response(200, json={"items": items})

        client = _client(spotify_settings, _api({"/v1/playlists/pl-1/tracks": tracks}))

        assert await client.count_collection_tracks("pl-1") == 61
