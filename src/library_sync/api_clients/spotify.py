"""Spotify Web API client implementation."""

import asyncio
import base64
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

import aiohttp

from .base import AlbumInfo, Artist, BaseAPIClient, CursorPage, ImageInfo, OffsetPage, Track
from ..utils.errors import api_error, auth_error, classify
from ..utils.rate_limit import AsyncRateLimiter


DEFAULT_API_BASE_URL = "https://api.spotify.com/v1"
DEFAULT_ACCOUNTS_URL = "https://accounts.spotify.com"


class SpotifyClient(BaseAPIClient):
    """Wire-level Spotify Web API client.

    Every call performs exactly one HTTP request and either returns a typed
    result or raises a ``ClassifiedError``. Retries are the caller's concern.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        api_base_url: str = DEFAULT_API_BASE_URL,
        accounts_url: str = DEFAULT_ACCOUNTS_URL,
        rate_limiter: Optional[AsyncRateLimiter] = None,
        request_timeout: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None,
        **kwargs
    ):
        """Initialize Spotify client.

        Args:
            client_id: Spotify app client ID
            client_secret: Spotify app client secret
            refresh_token: Long-lived refresh token of the account
            api_base_url: Base URL of the Web API
            accounts_url: Base URL of the accounts service
            rate_limiter: Client-side limiter applied to every API request
            request_timeout: Total timeout per request in seconds
            session: Existing aiohttp session to reuse
        """
        super().__init__(**kwargs)
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.api_base_url = api_base_url.rstrip('/')
        self.accounts_url = accounts_url.rstrip('/')
        self.rate_limiter = rate_limiter or AsyncRateLimiter(max_calls=100, time_window=30.0)
        self.request_timeout = request_timeout

        self.session = session
        self._owns_session = session is None
        self.access_token: Optional[str] = None
        self.token_expires_at: Optional[float] = None

    @classmethod
    def from_settings(cls, account, api_settings) -> "SpotifyClient":
        """Build a client from account credentials and API settings."""
        return cls(
            client_id=account.client_id,
            client_secret=account.client_secret,
            refresh_token=account.refresh_token,
            api_base_url=api_settings.api_base_url,
            accounts_url=api_settings.accounts_url,
            rate_limiter=AsyncRateLimiter(
                max_calls=api_settings.rate_limit_calls,
                time_window=api_settings.rate_limit_window
            ),
            request_timeout=api_settings.request_timeout
        )

    def _get_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.request_timeout)
            )
            self._owns_session = True
        return self.session

    async def close(self) -> None:
        if self.session and self._owns_session and not self.session.closed:
            await self.session.close()
        self.session = None

    async def authenticate(self) -> bool:
        """Exchange the refresh token for a fresh access token."""
        await self.refresh_access_token()
        return True

    async def refresh_access_token(self) -> str:
        """Request a new bearer token from the accounts service.

        Raises:
            ClassifiedError: API error carrying the token endpoint's status
        """
        credentials = base64.b64encode(f"{self.client_id}:{self.client_secret}".encode()).decode()
        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Authorization": f"Basic {credentials}"
        }
        data = {
            "grant_type": "refresh_token",
            "refresh_token": self.refresh_token
        }

        try:
            async with self._get_session().post(
                f"{self.accounts_url}/api/token",
                headers=headers,
                data=data
            ) as response:
                if response.status != 200:
                    response_text = await response.text()
                    raise api_error(
                        f"Token refresh failed: {response_text[:200]}",
                        response.status
                    )
                token_data = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise classify(e)

        self.access_token = token_data["access_token"]
        self.token_expires_at = time.time() + token_data.get("expires_in", 3600)

        # Spotify may rotate the refresh token
        if token_data.get("refresh_token"):
            self.refresh_token = token_data["refresh_token"]

        self._authenticated = True
        self.logger.debug("Access token refreshed", expires_in=token_data.get("expires_in"))
        return self.access_token

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Make one authenticated API request."""
        if not self.access_token:
            raise auth_error("No access token available; refresh the token first")

        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Accept": "application/json"
        }
        if params:
            params = {key: value for key, value in params.items() if value is not None}

        url = f"{self.api_base_url}{path}"

        async with self.rate_limiter.limit():
            try:
                async with self._get_session().request(
                    method, url, params=params, json=json, headers=headers
                ) as response:
                    if response.status >= 400:
                        error_text = await response.text()
                        raise api_error(
                            f"{method} {path} failed: {error_text[:200]}",
                            response.status
                        )
                    data = await response.json(content_type=None)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                raise classify(e)

        self.logger.debug("API request completed", method=method, path=path, status=response.status)
        return data or {}

    # Listing endpoints

    async def get_saved_tracks_page(self, offset: int, limit: int) -> OffsetPage[Track]:
        """One page of the account's saved tracks."""
        data = await self._request("GET", "/me/tracks", params={"offset": offset, "limit": limit})
        return self._to_track_page(data, offset, limit)

    async def get_playlist_tracks_page(self, playlist_id: str, offset: int, limit: int) -> OffsetPage[Track]:
        """One page of a playlist's tracks. Entries without a track are skipped."""
        data = await self._request(
            "GET",
            f"/playlists/{playlist_id}/tracks",
            params={"offset": offset, "limit": limit}
        )
        return self._to_track_page(data, offset, limit)

    async def get_followed_artists_page(self, after: Optional[str], limit: int) -> CursorPage[Artist]:
        """One page of followed artists, chained through the ``after`` cursor."""
        data = await self._request(
            "GET",
            "/me/following",
            params={"type": "artist", "after": after, "limit": limit}
        )
        artists = data.get("artists", {})
        return CursorPage(
            items=[self._parse_artist(item) for item in artists.get("items", [])],
            next_cursor=(artists.get("cursors") or {}).get("after")
        )

    # Mutation endpoints

    async def add_tracks_to_playlist(self, playlist_id: str, uris: List[str]) -> Optional[str]:
        """Append tracks to a playlist. Returns the new snapshot id."""
        data = await self._request("POST", f"/playlists/{playlist_id}/tracks", json={"uris": list(uris)})
        return data.get("snapshot_id")

    async def remove_tracks_from_playlist(self, playlist_id: str, uris: List[str]) -> Optional[str]:
        """Remove every occurrence of the given tracks from a playlist."""
        data = await self._request(
            "DELETE",
            f"/playlists/{playlist_id}/tracks",
            json={"tracks": [{"uri": uri} for uri in uris]}
        )
        return data.get("snapshot_id")

    async def follow_artists(self, artist_ids: List[str]) -> None:
        await self._request("PUT", "/me/following", params={"type": "artist"}, json={"ids": list(artist_ids)})

    async def unfollow_artists(self, artist_ids: List[str]) -> None:
        await self._request("DELETE", "/me/following", params={"type": "artist"}, json={"ids": list(artist_ids)})

    async def get_current_user(self) -> Dict[str, Any]:
        return await self._request("GET", "/me")

    async def create_playlist(
        self,
        user_id: str,
        name: str,
        description: Optional[str] = None,
        public: bool = False
    ) -> str:
        """Create a playlist owned by ``user_id``. Returns its id."""
        body: Dict[str, Any] = {"name": name, "public": public}
        if description is not None:
            body["description"] = description
        data = await self._request("POST", f"/users/{user_id}/playlists", json=body)
        return data["id"]

    # Response parsing

    def _to_track_page(self, data: Dict[str, Any], offset: int, limit: int) -> OffsetPage[Track]:
        tracks = [
            self._parse_track(item["track"], item.get("added_at"))
            for item in data.get("items", [])
            if item.get("track")
        ]
        return OffsetPage(
            items=tracks,
            offset=data.get("offset", offset),
            limit=data.get("limit", limit),
            total=data.get("total", 0)
        )

    def _parse_track(self, track_data: Dict[str, Any], added_at: Optional[str]) -> Track:
        album_data = track_data.get("album")
        album = None
        if album_data:
            album = AlbumInfo(
                id=album_data.get("id") or "",
                name=album_data.get("name", ""),
                release_date=album_data.get("release_date"),
                images=[
                    ImageInfo(url=image["url"], height=image.get("height"), width=image.get("width"))
                    for image in album_data.get("images") or []
                ]
            )

        return Track(
            id=track_data.get("id") or "",
            uri=track_data.get("uri", ""),
            name=track_data.get("name", ""),
            artists=[self._parse_artist(artist) for artist in track_data.get("artists", [])],
            added_at=self._parse_timestamp(added_at),
            album=album,
            popularity=track_data.get("popularity")
        )

    def _parse_artist(self, artist_data: Dict[str, Any]) -> Artist:
        return Artist(
            id=artist_data.get("id") or "",
            name=artist_data.get("name", ""),
            uri=artist_data.get("uri") or "",
            popularity=artist_data.get("popularity")
        )

    def _parse_timestamp(self, timestamp_str: Optional[str]) -> Optional[datetime]:
        """Parse an ISO timestamp string to datetime."""
        if not timestamp_str:
            return None
        try:
            return datetime.fromisoformat(timestamp_str.replace('Z', '+00:00'))
        except (ValueError, TypeError):
            self.logger.warning("Failed to parse timestamp", timestamp=timestamp_str)
            return None
