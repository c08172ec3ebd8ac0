"""Spotify Web API client (refresh-token auth, search, playlist management)."""

import logging
import time
from typing import Any, cast

import httpx

from radiosync.config.settings import SpotifySettings
from radiosync.domain.entities import CatalogItem
from radiosync.domain.exceptions import (
    ConfigurationError,
    ExternalServiceError,
    RateLimitExceededError,
    TokenRefreshException,
)
from radiosync.domain.ports import ICatalogClient
from radiosync.infrastructure.rate_limiter import RateLimiter, get_spotify_limiter

logger = logging.getLogger(__name__)

# Refresh this many seconds before Spotify says the token expires
TOKEN_EXPIRY_MARGIN_SECONDS = 60.0

PLAYLISTS_PAGE_SIZE = 50
PLAYLIST_TRACKS_PAGE_SIZE = 100


class SpotifyClient(ICatalogClient):
    """HTTP client for the Spotify operations the pipeline needs."""

    TOKEN_URL = "https://accounts.spotify.com/api/token"  # nosec B105 - public endpoint URL
    API_BASE_URL = "https://api.spotify.com/v1"

    # Hey future me, the HTTP client is created lazily because building an
    # httpx.AsyncClient outside a running loop causes weird asyncio issues. Tests inject
    # their own client (httpx.MockTransport) through the http_client argument.
    def __init__(
        self,
        settings: SpotifySettings,
        http_client: httpx.AsyncClient | None = None,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        """
        Initialize Spotify client.

        Args:
            settings: Spotify configuration settings
            http_client: Optional pre-built HTTP client
            rate_limiter: Optional limiter (defaults to the shared Spotify limiter)
        """
        self.settings = settings
        self._client = http_client
        self._rate_limiter = rate_limiter or get_spotify_limiter()
        self._refresh_token = settings.refresh_token
        self._access_token: str | None = None
        self._token_expires_at = 0.0
        self._user_id: str | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=30.0)
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # =========================================================================
    # AUTH
    # =========================================================================

    # Hey future me - this is a headless service, there is no browser OAuth dance. The
    # refresh token is obtained once out of band and configured; every access token comes
    # from the refresh-token grant. Spotify may rotate the refresh token in the response,
    # keep the new one or the next refresh fails with invalid_grant.
    async def refresh_access_token(self) -> str:
        """
        Exchange the refresh token for a new access token.

        Returns:
            The new access token

        Raises:
            ConfigurationError: If credentials are not configured
            TokenRefreshException: If the refresh token is invalid/revoked
            ExternalServiceError: For other token endpoint failures
        """
        if not self.settings.is_configured:
            raise ConfigurationError(
                "Spotify credentials not configured. Set RADIOSYNC_SPOTIFY__CLIENT_ID, "
                "RADIOSYNC_SPOTIFY__CLIENT_SECRET and RADIOSYNC_SPOTIFY__REFRESH_TOKEN."
            )

        client = await self._get_client()
        response = await client.post(
            self.TOKEN_URL,
            data={"grant_type": "refresh_token", "refresh_token": self._refresh_token},
            auth=(self.settings.client_id, self.settings.client_secret),
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )

        # Check invalid_grant BEFORE the generic status handling
        if response.status_code == 400:
            error_code = ""
            error_description = "Refresh token is invalid or has been revoked"
            try:
                error_data = response.json()
                error_code = error_data.get("error", "")
                error_description = error_data.get("error_description", error_description)
            except ValueError:
                pass
            if error_code == "invalid_grant":
                raise TokenRefreshException(
                    message=f"Refresh token invalid: {error_description}. "
                    "Configure a new Spotify refresh token.",
                    error_code=error_code,
                    http_status=400,
                )

        if response.status_code in (401, 403):
            raise TokenRefreshException(
                message="Spotify rejected the client credentials.",
                error_code="access_denied",
                http_status=response.status_code,
            )

        if response.is_error:
            raise ExternalServiceError(
                f"Spotify token refresh failed: {response.status_code}",
                status_code=response.status_code,
            )

        payload = cast(dict[str, Any], response.json())
        self._access_token = payload["access_token"]
        self._token_expires_at = (
            time.monotonic()
            + float(payload.get("expires_in", 3600))
            - TOKEN_EXPIRY_MARGIN_SECONDS
        )
        if payload.get("refresh_token"):
            self._refresh_token = payload["refresh_token"]

        logger.info("Spotify access token refreshed")
        return cast(str, self._access_token)

    async def _get_access_token(self) -> str:
        if self._access_token is None or time.monotonic() >= self._token_expires_at:
            return await self.refresh_access_token()
        return self._access_token

    # =========================================================================
    # REQUESTS
    # =========================================================================

    # Hey future me - ALL Spotify API calls go through here! Token bucket first, then the
    # request, then 429 handling with Retry-After (max 3 retries). A 401 means our cached
    # token died early (revoked, clock skew); refresh once and replay.
    async def _api_request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        max_retries: int = 3,
    ) -> httpx.Response:
        """Make a rate-limited API request.

        Args:
            method: HTTP method
            path: Path below API_BASE_URL (or a full URL)
            params: Query parameters
            json: JSON body
            max_retries: Max retries on 429

        Returns:
            Successful response

        Raises:
            RateLimitExceededError: 429 after all retries
            ExternalServiceError: Any other non-2xx response
            httpx.HTTPError: Transport failures
        """
        client = await self._get_client()
        url = path if path.startswith("http") else f"{self.API_BASE_URL}{path}"
        token_refreshed = False
        attempt = 0

        while True:
            access_token = await self._get_access_token()
            async with self._rate_limiter:
                response = await client.request(
                    method,
                    url,
                    params=params,
                    json=json,
                    headers={"Authorization": f"Bearer {access_token}"},
                )

            if response.status_code == 401 and not token_refreshed:
                token_refreshed = True
                self._access_token = None
                continue

            if response.status_code == 429:
                retry_after_str = response.headers.get("Retry-After")
                retry_after = int(retry_after_str) if retry_after_str else None
                if attempt >= max_retries:
                    raise RateLimitExceededError(
                        f"Spotify API rate limited (429) after {max_retries} retries: "
                        f"{method} {path}",
                        retry_after=retry_after,
                    )
                attempt += 1
                await self._rate_limiter.handle_rate_limit_response(retry_after)
                continue

            if response.is_error:
                raise ExternalServiceError(
                    f"Spotify API error: {response.status_code} {_error_message(response)}",
                    status_code=response.status_code,
                )
            return response

    async def _get_user_id(self) -> str:
        if self._user_id is None:
            response = await self._api_request("GET", "/me")
            self._user_id = cast(str, response.json()["id"])
        return self._user_id

    # =========================================================================
    # CATALOG OPERATIONS
    # =========================================================================

    # Yo future me, Spotify search has its own query syntax (artist:"x" track:"y"). Quoting
    # is the caller's job, this just forwards. limit is clamped to Spotify's max of 50.
    async def search_tracks(self, query: str, limit: int = 20) -> list[CatalogItem]:
        response = await self._api_request(
            "GET",
            "/search",
            params={"q": query, "type": "track", "limit": min(limit, 50)},
        )
        items = response.json().get("tracks", {}).get("items", [])
        return [_to_catalog_item(item) for item in items if item and item.get("id")]

    async def add_to_collection(self, collection_id: str, item: CatalogItem) -> None:
        await self._api_request(
            "POST",
            f"/playlists/{collection_id}/tracks",
            json={"uris": [item.uri]},
        )

    # Listen up, Spotify has no "get playlist by name" endpoint. We page through the user's
    # playlists 50 at a time and stop on the first EXACT name match or a short page.
    async def find_collection_by_name(self, name: str) -> dict[str, Any] | None:
        offset = 0
        while True:
            response = await self._api_request(
                "GET",
                "/me/playlists",
                params={"limit": PLAYLISTS_PAGE_SIZE, "offset": offset},
            )
            playlists = response.json().get("items") or []
            logger.debug("Checking %d playlists (offset: %d)", len(playlists), offset)

            for playlist in playlists:
                if playlist and playlist.get("name") == name:
                    return cast(dict[str, Any], playlist)

            if len(playlists) < PLAYLISTS_PAGE_SIZE:
                return None
            offset += PLAYLISTS_PAGE_SIZE

    async def create_collection(
        self, name: str, description: str = "", public: bool = False
    ) -> dict[str, Any]:
        user_id = await self._get_user_id()
        response = await self._api_request(
            "POST",
            f"/users/{user_id}/playlists",
            json={"name": name, "description": description, "public": public},
        )
        return cast(dict[str, Any], response.json())

    async def count_collection_tracks(self, collection_id: str) -> int:
        track_ids: set[str] = set()
        offset = 0
        while True:
            response = await self._api_request(
                "GET",
                f"/playlists/{collection_id}/tracks",
                params={"limit": PLAYLIST_TRACKS_PAGE_SIZE, "offset": offset},
            )
            items = response.json().get("items") or []
            for entry in items:
                track = (entry or {}).get("track") or {}
                if track.get("id"):
                    track_ids.add(track["id"])

            if len(items) < PLAYLIST_TRACKS_PAGE_SIZE:
                return len(track_ids)
            offset += PLAYLIST_TRACKS_PAGE_SIZE

    async def __aenter__(self) -> "SpotifyClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


def _to_catalog_item(track: dict[str, Any]) -> CatalogItem:
    return CatalogItem(
        id=track["id"],
        artists=tuple(
            artist["name"] for artist in track.get("artists") or [] if artist.get("name")
        ),
        title=track.get("name", ""),
        external_url=(track.get("external_urls") or {}).get("spotify"),
    )


def _error_message(response: httpx.Response) -> str:
    try:
        error = response.json().get("error")
    except ValueError:
        return response.reason_phrase
    if isinstance(error, dict):
        return str(error.get("message") or response.reason_phrase)
    if isinstance(error, str):
        return error
    return response.reason_phrase


__all__ = ["SpotifyClient"]
