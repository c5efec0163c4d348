"""Followed artists of an account."""

from typing import List, Sequence, Union

from .base import BaseService, wrap_api_failure
from ..api_clients.base import Artist
from ..core.batch import MutationResult
from ..core.pagination import PaginationStyle
from ..utils.errors import ClassifiedError, ErrorKind


# The follow endpoints accept at most 50 ids per request
FOLLOW_CHUNK_SIZE = 50


def _id_of(artist: Union[Artist, str]) -> str:
    return artist if isinstance(artist, str) else artist.id


class FollowingService(BaseService):
    """Reads and edits the artists an account follows."""

    chunk_size = FOLLOW_CHUNK_SIZE

    async def get_followed_artists(self) -> List[Artist]:
        await self.auth.refresh_token()

        try:
            return await self.fetcher.fetch_all(
                self.client.get_followed_artists_page,
                style=PaginationStyle.CURSOR,
                description="followed artists"
            )
        except ClassifiedError as e:
            raise wrap_api_failure(e, ErrorKind.FOLLOW_MUTATION, "Failed to fetch followed artists")

    async def follow_artists(self, artists: Sequence[Union[Artist, str]]) -> MutationResult:
        return await self._mutate(artists, self.client.follow_artists, "Failed to follow artists")

    async def unfollow_artists(self, artists: Sequence[Union[Artist, str]]) -> MutationResult:
        return await self._mutate(artists, self.client.unfollow_artists, "Failed to unfollow artists")

    async def _mutate(self, artists, mutate, failure_message) -> MutationResult:
        ids = [_id_of(artist) for artist in artists]
        if not ids:
            self.logger.info("No artists to apply", operation=failure_message)
            return MutationResult(total_items=0, chunks_applied=0, items_applied=0, processing_time=0.0)

        await self.auth.refresh_token()

        return await self.mutator.apply_in_chunks(
            ids,
            mutate,
            ErrorKind.FOLLOW_MUTATION,
            failure_message,
            details={"total_items": len(ids)}
        )
