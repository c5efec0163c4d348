"""Exhaustive traversal of paginated listings."""

import functools
from enum import Enum
from typing import AsyncGenerator, Awaitable, Callable, List, Optional, TypeVar

from ..api_clients.base import CursorPage, OffsetPage
from ..utils.logging import get_logger
from ..utils.retry import RetryExecutor


T = TypeVar('T')

OffsetPageRequest = Callable[[int, int], Awaitable[OffsetPage[T]]]
CursorPageRequest = Callable[[Optional[str], int], Awaitable[CursorPage[T]]]


class PaginationStyle(str, Enum):
    OFFSET = "offset"
    CURSOR = "cursor"


class PaginatedFetcher:
    """Drains a paged remote resource into a complete list.

    Every page request goes through the retry executor on its own; a page
    that still fails aborts the traversal.
    """

    def __init__(self, retry_executor: RetryExecutor, page_size: int = 50):
        """Initialize the fetcher.

        Args:
            retry_executor: Executor wrapping each page request
            page_size: Items requested per page
        """
        if page_size < 1:
            raise ValueError("page_size must be at least 1")

        self.retry_executor = retry_executor
        self.page_size = page_size
        self.logger = get_logger(self.__class__.__name__)

    async def iter_offset(
        self,
        request_page: OffsetPageRequest,
        description: str = "listing"
    ) -> AsyncGenerator[T, None]:
        """Yield items of an offset/limit listing page by page.

        ``request_page(offset, limit)`` is called with offsets 0, limit,
        2*limit, ... until the offset reaches the most recently reported total.
        """
        offset = 0
        total: float = float('inf')
        pages = 0

        while offset < total:
            page = await self.retry_executor.execute(
                functools.partial(request_page, offset, self.page_size),
                description=f"{description} (offset {offset})"
            )
            pages += 1
            total = page.total

            self.logger.debug(
                "Fetched page",
                listing=description,
                offset=offset,
                items_count=len(page.items),
                total=total
            )

            for item in page.items:
                yield item

            offset += self.page_size

        self.logger.debug("Listing complete", listing=description, pages=pages)

    async def iter_cursor(
        self,
        request_page: CursorPageRequest,
        description: str = "listing"
    ) -> AsyncGenerator[T, None]:
        """Yield items of a cursor listing, following ``next_cursor`` until it is empty."""
        cursor: Optional[str] = None
        pages = 0

        while True:
            page = await self.retry_executor.execute(
                functools.partial(request_page, cursor, self.page_size),
                description=f"{description} (after {cursor or 'start'})"
            )
            pages += 1

            self.logger.debug(
                "Fetched page",
                listing=description,
                cursor=cursor,
                items_count=len(page.items),
                has_next_page=bool(page.next_cursor)
            )

            for item in page.items:
                yield item

            if not page.next_cursor:
                break
            cursor = page.next_cursor

        self.logger.debug("Listing complete", listing=description, pages=pages)

    async def fetch_all(
        self,
        request_page: Callable[..., Awaitable],
        style: PaginationStyle = PaginationStyle.OFFSET,
        description: str = "listing"
    ) -> List[T]:
        """Materialize a whole listing.

        Returns:
            Every item, in arrival order, once the terminal page was seen

        Raises:
            ClassifiedError: A page request failed after retries; nothing
                fetched so far is returned
        """
        if style == PaginationStyle.CURSOR:
            iterator = self.iter_cursor(request_page, description)
        else:
            iterator = self.iter_offset(request_page, description)

        items: List[T] = [item async for item in iterator]

        self.logger.info("Fetched collection", listing=description, items_count=len(items))
        return items
