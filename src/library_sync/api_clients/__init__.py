"""API clients package for the Spotify Web API."""

from .base import (
    AlbumInfo,
    Artist,
    BaseAPIClient,
    CursorPage,
    ImageInfo,
    Item,
    OffsetPage,
    Track,
    identity_of,
)

from .spotify import SpotifyClient

__all__ = [
    # Models
    "AlbumInfo",
    "Artist",
    "ImageInfo",
    "Item",
    "Track",
    "identity_of",

    # Pages
    "CursorPage",
    "OffsetPage",

    # Clients
    "BaseAPIClient",
    "SpotifyClient",
]
