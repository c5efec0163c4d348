"""Core sync logic package.

``LibrarySyncConnector`` lives in ``core.connector``; it depends on the
services, which build on this package.
"""

from .batch import MAX_CHUNK_SIZE, ChunkedBatchMutator, MutationResult, chunked
from .pagination import PaginatedFetcher, PaginationStyle
from .sync_engine import Diff, SetDiffSynchronizer, SyncResult, SyncState, compute_diff

__all__ = [
    "MAX_CHUNK_SIZE",
    "ChunkedBatchMutator",
    "MutationResult",
    "chunked",
    "PaginatedFetcher",
    "PaginationStyle",
    "Diff",
    "SetDiffSynchronizer",
    "SyncResult",
    "SyncState",
    "compute_diff",
]
