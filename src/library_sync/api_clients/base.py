"""Base API client interface, item models and page structures."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Generic, List, Optional, TypeVar, Union

from ..utils.logging import get_logger


@dataclass
class ImageInfo:
    url: str
    height: Optional[int] = None
    width: Optional[int] = None


@dataclass
class AlbumInfo:
    id: str
    name: str
    release_date: Optional[str] = None
    images: List[ImageInfo] = field(default_factory=list)


@dataclass
class Artist:
    """An artist, either followed or credited on a track."""

    id: str
    name: str = ""
    uri: str = ""
    popularity: Optional[int] = None


@dataclass
class Track:
    """A track from a library or playlist.

    Only ``id`` and ``uri`` take part in identity; the remaining fields are
    metadata used for filtering and display.
    """

    id: str
    uri: str
    name: str = ""
    artists: List[Artist] = field(default_factory=list)
    added_at: Optional[datetime] = None
    album: Optional[AlbumInfo] = None
    popularity: Optional[int] = None

    @property
    def artist_names(self) -> List[str]:
        return [artist.name for artist in self.artists]


Item = Union[Track, Artist, str]

T = TypeVar('T')


def identity_of(item: Any) -> str:
    """Stable identity of an item: ``id``, falling back to ``uri``."""
    if isinstance(item, str):
        return item
    item_id = getattr(item, "id", None)
    if item_id:
        return item_id
    uri = getattr(item, "uri", None)
    if uri:
        return uri
    raise ValueError(f"Item has neither id nor uri: {item!r}")


@dataclass
class OffsetPage(Generic[T]):
    """One page of an offset/limit paginated listing."""

    items: List[T]
    offset: int
    limit: int
    total: int


@dataclass
class CursorPage(Generic[T]):
    """One page of a cursor paginated listing."""

    items: List[T]
    next_cursor: Optional[str] = None


class BaseAPIClient(ABC):
    """Abstract base class for API clients."""

    def __init__(self, **kwargs):
        self.logger = get_logger(self.__class__.__name__)
        self._authenticated = False

    @abstractmethod
    async def authenticate(self) -> bool:
        """Authenticate with the API service.

        Returns:
            True if authentication successful
        """

    @abstractmethod
    async def close(self) -> None:
        """Release network resources."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

