"""Saved tracks of an account."""

from datetime import datetime, timezone
from typing import List, Optional

from .base import BaseService, wrap_api_failure
from ..api_clients.base import Track
from ..config.settings import TrackFilter
from ..core.pagination import PaginationStyle
from ..utils.errors import ClassifiedError, ErrorKind


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def matches_filter(track: Track, track_filter: TrackFilter) -> bool:
    """True when ``track`` passes every set field of ``track_filter``.

    Popularity bounds reject tracks without a popularity. Date bounds are
    inclusive and ignore tracks without ``added_at``.
    """
    if track_filter.min_popularity is not None:
        if track.popularity is None or track.popularity < track_filter.min_popularity:
            return False

    if track_filter.max_popularity is not None:
        if track.popularity is None or track.popularity > track_filter.max_popularity:
            return False

    if track_filter.artists:
        artist_names = {name.lower() for name in track.artist_names}
        if not any(name.lower() in artist_names for name in track_filter.artists):
            return False

    added_at = _as_utc(track.added_at)
    if added_at is not None:
        after = _as_utc(track_filter.after)
        before = _as_utc(track_filter.before)
        if after is not None and added_at < after:
            return False
        if before is not None and added_at > before:
            return False

    return True


class TrackService(BaseService):
    """Reads the saved tracks ("liked songs") of the source account."""

    async def get_saved_tracks(self) -> List[Track]:
        """Every saved track, in library order.

        Raises:
            ClassifiedError: TRACK error wrapping an API failure, or the AUTH
                error of the token refresh
        """
        await self.auth.refresh_token()

        try:
            return await self.fetcher.fetch_all(
                self.client.get_saved_tracks_page,
                style=PaginationStyle.OFFSET,
                description="saved tracks"
            )
        except ClassifiedError as e:
            raise wrap_api_failure(e, ErrorKind.TRACK_FETCH, "Failed to fetch saved tracks")

    async def get_tracks_with_filter(self, track_filter: TrackFilter) -> List[Track]:
        """Saved tracks that pass ``track_filter``."""
        tracks = await self.get_saved_tracks()
        filtered = [track for track in tracks if matches_filter(track, track_filter)]

        self.logger.info(
            "Applied track filter",
            total_tracks=len(tracks),
            matching_tracks=len(filtered),
            track_filter=track_filter.model_dump(exclude_none=True)
        )
        return filtered
