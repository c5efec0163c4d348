"""Shared plumbing of the per-resource services."""

from typing import Any, Dict, Optional

from ..auth.spotify_auth import SpotifyAuth
from ..core.batch import MAX_CHUNK_SIZE, ChunkedBatchMutator
from ..core.pagination import PaginatedFetcher
from ..utils.errors import ClassifiedError, ErrorKind
from ..utils.logging import get_logger
from ..utils.retry import RetryExecutor


def wrap_api_failure(
    error: ClassifiedError,
    kind: ErrorKind,
    message: str,
    details: Optional[Dict[str, Any]] = None
) -> ClassifiedError:
    """Re-tag a raw API failure with a resource kind; other kinds pass through."""
    if error.kind is not ErrorKind.API:
        return error
    return ClassifiedError(kind, message, details=details, cause=error)


class BaseService:
    """Client, token refresh, pagination and chunked mutation for one account."""

    chunk_size = MAX_CHUNK_SIZE

    def __init__(
        self,
        client,
        retry_executor: RetryExecutor,
        page_size: int = 50,
        auth: Optional[SpotifyAuth] = None
    ):
        """Initialize service.

        Args:
            client: ``SpotifyClient`` of the account
            retry_executor: Executor shared by every remote call
            page_size: Items requested per listing page
            auth: Token provider; built from ``client`` when omitted
        """
        self.client = client
        self.retry_executor = retry_executor
        self.auth = auth or SpotifyAuth(client, retry_executor)
        self.fetcher = PaginatedFetcher(retry_executor, page_size=page_size)
        self.mutator = ChunkedBatchMutator(retry_executor, chunk_size=self.chunk_size)
        self.logger = get_logger(self.__class__.__name__)
