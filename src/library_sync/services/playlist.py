"""Playlist of the target account."""

from typing import List, Optional, Sequence, Union

from .base import BaseService, wrap_api_failure
from ..api_clients.base import Track
from ..core.batch import MutationResult
from ..core.pagination import PaginationStyle
from ..utils.errors import ClassifiedError, ErrorKind


def _uri_of(track: Union[Track, str]) -> str:
    return track if isinstance(track, str) else track.uri


class PlaylistService(BaseService):
    """Reads and edits one playlist of the target account."""

    async def get_playlist_tracks(self, playlist_id: str) -> List[Track]:
        """Every track of the playlist. Entries without a track (local files
        that were removed, unavailable episodes) are skipped."""
        await self.auth.refresh_token()

        try:
            return await self.fetcher.fetch_all(
                lambda offset, limit: self.client.get_playlist_tracks_page(playlist_id, offset, limit),
                style=PaginationStyle.OFFSET,
                description="playlist tracks"
            )
        except ClassifiedError as e:
            raise wrap_api_failure(
                e, ErrorKind.PLAYLIST_MUTATION, "Failed to fetch playlist tracks", {"playlist_id": playlist_id}
            )

    async def add_tracks(self, playlist_id: str, tracks: Sequence[Union[Track, str]]) -> MutationResult:
        """Append tracks to the playlist, 100 per request."""
        return await self._mutate(
            playlist_id,
            tracks,
            lambda chunk: self.client.add_tracks_to_playlist(playlist_id, chunk),
            "Failed to add tracks to playlist",
            "Added tracks to playlist"
        )

    async def remove_tracks(self, playlist_id: str, tracks: Sequence[Union[Track, str]]) -> MutationResult:
        """Remove tracks from the playlist, 100 per request."""
        return await self._mutate(
            playlist_id,
            tracks,
            lambda chunk: self.client.remove_tracks_from_playlist(playlist_id, chunk),
            "Failed to remove tracks from playlist",
            "Removed tracks from playlist"
        )

    async def _mutate(self, playlist_id, tracks, mutate, failure_message, success_message) -> MutationResult:
        uris = [_uri_of(track) for track in tracks]
        if not uris:
            self.logger.info("No tracks to apply", playlist_id=playlist_id, operation=failure_message)
            return MutationResult(total_items=0, chunks_applied=0, items_applied=0, processing_time=0.0)

        await self.auth.refresh_token()

        result = await self.mutator.apply_in_chunks(
            uris,
            mutate,
            ErrorKind.PLAYLIST_MUTATION,
            failure_message,
            details={"playlist_id": playlist_id, "total_items": len(uris)}
        )

        self.logger.info(success_message, playlist_id=playlist_id, tracks_count=result.items_applied)
        return result

    async def create_playlist(self, name: str, description: Optional[str] = None) -> str:
        """Create a private playlist owned by the current user. Returns its id."""
        await self.auth.refresh_token()

        async def _create() -> str:
            user = await self.client.get_current_user()
            return await self.client.create_playlist(user["id"], name, description=description, public=False)

        try:
            playlist_id = await self.retry_executor.execute(_create, description="create playlist")
        except ClassifiedError as e:
            raise wrap_api_failure(e, ErrorKind.PLAYLIST_MUTATION, "Failed to create playlist", {"name": name})

        self.logger.info("Created playlist", playlist_id=playlist_id, name=name)
        return playlist_id
