"""Per-resource services built on the API client."""

from .base import BaseService, wrap_api_failure
from .following import FOLLOW_CHUNK_SIZE, FollowingService
from .playlist import PlaylistService
from .tracks import TrackService, matches_filter

__all__ = [
    "BaseService",
    "FOLLOW_CHUNK_SIZE",
    "FollowingService",
    "PlaylistService",
    "TrackService",
    "matches_filter",
    "wrap_api_failure",
]
