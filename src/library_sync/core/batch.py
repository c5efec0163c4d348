"""Chunked, sequential dispatch of batch mutations."""

import functools
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

from ..utils.errors import ClassifiedError, ErrorKind
from ..utils.logging import get_logger
from ..utils.retry import RetryExecutor


T = TypeVar('T')

MAX_CHUNK_SIZE = 100


def chunked(items: Sequence[T], size: int) -> List[List[T]]:
    """Split ``items`` into contiguous chunks of ``size``, remainder last."""
    if size < 1:
        raise ValueError("Chunk size must be at least 1")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


@dataclass
class MutationResult:
    """Result of a chunked mutation."""

    total_items: int
    chunks_applied: int
    items_applied: int
    processing_time: float

    @property
    def complete(self) -> bool:
        return self.items_applied == self.total_items


class ChunkedBatchMutator:
    """Applies a mutation over an arbitrarily large id list, 100 ids per call.

    Chunks run one after another in input order. The first chunk that still
    fails after retries stops the run; chunks already applied stay applied.
    """

    def __init__(self, retry_executor: RetryExecutor, chunk_size: int = MAX_CHUNK_SIZE):
        """Initialize the mutator.

        Args:
            retry_executor: Executor wrapping each chunk call
            chunk_size: Ids per call, at most ``MAX_CHUNK_SIZE``
        """
        if not 1 <= chunk_size <= MAX_CHUNK_SIZE:
            raise ValueError(f"chunk_size must be between 1 and {MAX_CHUNK_SIZE}")

        self.retry_executor = retry_executor
        self.chunk_size = chunk_size
        self.logger = get_logger(self.__class__.__name__)

    async def apply_in_chunks(
        self,
        ids: Sequence[str],
        mutate: Callable[[List[str]], Awaitable[Any]],
        error_kind: ErrorKind,
        description: str,
        details: Optional[Dict[str, Any]] = None
    ) -> MutationResult:
        """Apply ``mutate`` to every chunk of ``ids``.

        Args:
            ids: Mutation-addressable identifiers, in application order
            mutate: Async callable applying one chunk
            error_kind: Kind API failures are re-wrapped into
            description: What the mutation does, e.g. "Failed to add tracks"
            details: Context attached to a wrapped failure

        Raises:
            ClassifiedError: The first chunk that failed irrecoverably
        """
        if not ids:
            self.logger.debug("Nothing to apply", operation=description)
            return MutationResult(total_items=0, chunks_applied=0, items_applied=0, processing_time=0.0)

        start_time = time.time()
        chunks = chunked(ids, self.chunk_size)
        items_applied = 0

        self.logger.info(
            "Applying mutation in chunks",
            operation=description,
            total_items=len(ids),
            total_chunks=len(chunks),
            chunk_size=self.chunk_size
        )

        for index, chunk in enumerate(chunks):
            try:
                await self.retry_executor.execute(
                    functools.partial(mutate, chunk),
                    description=f"{description} (chunk {index + 1}/{len(chunks)})"
                )
            except ClassifiedError as e:
                self.logger.error(
                    "Chunk failed, aborting remaining chunks",
                    operation=description,
                    chunk_index=index,
                    chunks_applied=index,
                    items_applied=items_applied,
                    skipped_chunks=len(chunks) - index - 1,
                    error=str(e)
                )
                if e.kind is not ErrorKind.API:
                    raise

                failure_details = dict(details or {})
                failure_details.update(
                    chunk_index=index,
                    chunks_applied=index,
                    items_applied=items_applied
                )
                raise ClassifiedError(error_kind, description, details=failure_details, cause=e) from e

            items_applied += len(chunk)

        result = MutationResult(
            total_items=len(ids),
            chunks_applied=len(chunks),
            items_applied=items_applied,
            processing_time=time.time() - start_time
        )

        self.logger.info(
            "Mutation applied",
            operation=description,
            items_applied=result.items_applied,
            chunks_applied=result.chunks_applied,
            processing_time=f"{result.processing_time:.2f}s"
        )

        return result
