"""Main connector orchestrating both resource pairs of a sync run."""

import functools
from dataclasses import dataclass
from typing import List, Optional

from .sync_engine import SetDiffSynchronizer, SyncResult
from ..config.settings import AppSettings
from ..services.following import FollowingService
from ..services.playlist import PlaylistService
from ..services.tracks import TrackService
from ..utils.logging import get_logger, log_async_execution_time
from ..utils.retry import RetryExecutor


@dataclass
class SyncStats:
    """Statistics for one run over every resource pair."""

    results: List[SyncResult]
    total_duration: float

    @property
    def items_added(self) -> int:
        return sum(result.items_added for result in self.results)

    @property
    def items_removed(self) -> int:
        return sum(result.items_removed for result in self.results)

    @property
    def successful_syncs(self) -> int:
        return sum(1 for result in self.results if result.success)


class LibrarySyncConnector:
    """Copies the source account's library onto the target account.

    Saved tracks go to the target playlist, followed artists to the target's
    follows. The pairs run one after another; the first failure ends the run.
    """

    def __init__(
        self,
        settings: AppSettings,
        source_client,
        target_client,
        retry_executor: Optional[RetryExecutor] = None
    ):
        """Initialize the connector.

        Args:
            settings: Application settings
            source_client: ``SpotifyClient`` of the source account
            target_client: ``SpotifyClient`` of the target account
            retry_executor: Shared executor; built from ``settings.retry`` when omitted
        """
        self.settings = settings
        self.retry_executor = retry_executor or RetryExecutor(settings.retry.to_policy())
        page_size = settings.sync.page_size

        self.source_tracks = TrackService(source_client, self.retry_executor, page_size=page_size)
        self.source_following = FollowingService(source_client, self.retry_executor, page_size=page_size)
        self.target_playlist = PlaylistService(target_client, self.retry_executor, page_size=page_size)
        self.target_following = FollowingService(target_client, self.retry_executor, page_size=page_size)

        self.logger = get_logger(self.__class__.__name__)

    async def _fetch_source_tracks(self):
        track_filter = self.settings.sync.track_filter
        if track_filter.is_empty:
            return await self.source_tracks.get_saved_tracks()
        return await self.source_tracks.get_tracks_with_filter(track_filter)

    @log_async_execution_time
    async def sync_tracks(self) -> SyncResult:
        """Make the target playlist hold exactly the source's saved tracks."""
        playlist_id = self.settings.target.playlist_id
        remover = None
        if self.settings.sync.remove_missing_tracks:
            remover = functools.partial(self.target_playlist.remove_tracks, playlist_id)

        synchronizer = SetDiffSynchronizer("tracks")
        return await synchronizer.sync(
            fetch_source=self._fetch_source_tracks,
            fetch_target=functools.partial(self.target_playlist.get_playlist_tracks, playlist_id),
            adder=functools.partial(self.target_playlist.add_tracks, playlist_id),
            remover=remover
        )

    @log_async_execution_time
    async def sync_followed_artists(self) -> SyncResult:
        """Make the target follow every artist the source follows."""
        remover = None
        if self.settings.sync.unfollow_missing_artists:
            remover = self.target_following.unfollow_artists

        synchronizer = SetDiffSynchronizer("artists")
        return await synchronizer.sync(
            fetch_source=self.source_following.get_followed_artists,
            fetch_target=self.target_following.get_followed_artists,
            adder=self.target_following.follow_artists,
            remover=remover
        )

    async def run_all(self) -> SyncStats:
        """Sync tracks, then followed artists."""
        self.logger.info(
            "Starting library sync",
            playlist_id=self.settings.target.playlist_id,
            remove_missing_tracks=self.settings.sync.remove_missing_tracks,
            unfollow_missing_artists=self.settings.sync.unfollow_missing_artists
        )

        results = [
            await self.sync_tracks(),
            await self.sync_followed_artists(),
        ]
        stats = SyncStats(
            results=results,
            total_duration=sum(result.sync_duration or 0.0 for result in results)
        )

        self.logger.info(
            "Library sync completed",
            items_added=stats.items_added,
            items_removed=stats.items_removed,
            total_duration=f"{stats.total_duration:.2f}s"
        )
        return stats
