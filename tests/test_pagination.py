"""Tests for the paginated fetcher."""

import sys
import os

import pytest
from unittest.mock import AsyncMock

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from library_sync.api_clients.base import CursorPage, OffsetPage
from library_sync.core.pagination import PaginatedFetcher, PaginationStyle
from library_sync.utils.errors import ClassifiedError, api_error
from library_sync.utils.retry import RetryExecutor, RetryPolicy


async def no_sleep(delay):
    return None


def offset_listing(items, reported_total=None):
    """Offset/limit page source over ``items``; records the requested offsets."""
    requested = []

    async def request_page(offset, limit):
        requested.append((offset, limit))
        total = len(items) if reported_total is None else reported_total
        return OffsetPage(items=items[offset:offset + limit], offset=offset, limit=limit, total=total)

    return request_page, requested


class TestOffsetPagination:
    """Test offset/limit traversal."""

    def setup_method(self):
        self.executor = RetryExecutor(RetryPolicy(initial_delay=0), sleep=no_sleep)
        self.fetcher = PaginatedFetcher(self.executor, page_size=50)

    @pytest.mark.asyncio
    async def test_requests_until_total_reached(self):
        items = [f"track_{i}" for i in range(120)]
        request_page, requested = offset_listing(items)

        result = await self.fetcher.fetch_all(request_page)

        assert result == items
        assert requested == [(0, 50), (50, 50), (100, 50)]

    @pytest.mark.asyncio
    async def test_empty_listing_makes_one_request(self):
        request_page, requested = offset_listing([])

        assert await self.fetcher.fetch_all(request_page) == []
        assert requested == [(0, 50)]

    @pytest.mark.asyncio
    async def test_exact_multiple_of_page_size(self):
        items = list(range(100))
        request_page, requested = offset_listing(items)

        assert await self.fetcher.fetch_all(request_page) == items
        assert [offset for offset, _ in requested] == [0, 50]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("total, offsets", [
        (0, [0]),
        (1, [0]),
        (50, [0]),
        (51, [0, 50]),
        (100, [0, 50]),
        (101, [0, 50, 100]),
    ])
    async def test_offsets_at_page_boundaries(self, total, offsets):
        items = [f"track_{i}" for i in range(total)]
        request_page, requested = offset_listing(items)

        assert await self.fetcher.fetch_all(request_page) == items
        assert [offset for offset, _ in requested] == offsets
        assert all(limit == 50 for _, limit in requested)

    @pytest.mark.asyncio
    async def test_latest_total_is_trusted(self):
        pages = [
            OffsetPage(items=list(range(50)), offset=0, limit=50, total=200),
            OffsetPage(items=list(range(50, 60)), offset=50, limit=50, total=60),
        ]
        request_page = AsyncMock(side_effect=pages)

        result = await self.fetcher.fetch_all(request_page)

        assert result == list(range(60))
        assert request_page.await_count == 2

    @pytest.mark.asyncio
    async def test_page_is_retried_individually(self):
        pages = [
            OffsetPage(items=["a", "b"], offset=0, limit=2, total=3),
            api_error("Too Many Requests", 429),
            OffsetPage(items=["c"], offset=2, limit=2, total=3),
        ]
        request_page = AsyncMock(side_effect=pages)
        fetcher = PaginatedFetcher(self.executor, page_size=2)

        assert await fetcher.fetch_all(request_page) == ["a", "b", "c"]
        assert [call.args for call in request_page.await_args_list] == [(0, 2), (2, 2), (2, 2)]

    @pytest.mark.asyncio
    async def test_exhausted_page_aborts_fetch(self):
        error = api_error("Internal Server Error", 500)
        request_page = AsyncMock(side_effect=[
            OffsetPage(items=["a"], offset=0, limit=1, total=5),
            error, error, error,
        ])
        fetcher = PaginatedFetcher(self.executor, page_size=1)

        with pytest.raises(ClassifiedError) as exc_info:
            await fetcher.fetch_all(request_page)

        assert exc_info.value is error
        assert request_page.await_count == 4

    def test_invalid_page_size(self):
        with pytest.raises(ValueError):
            PaginatedFetcher(self.executor, page_size=0)


class TestCursorPagination:
    """Test cursor traversal."""

    def setup_method(self):
        self.executor = RetryExecutor(RetryPolicy(initial_delay=0), sleep=no_sleep)
        self.fetcher = PaginatedFetcher(self.executor, page_size=2)

    @pytest.mark.asyncio
    async def test_follows_cursor_chain(self):
        pages = {
            None: CursorPage(items=["a", "b"], next_cursor="b"),
            "b": CursorPage(items=["c", "d"], next_cursor="d"),
            "d": CursorPage(items=["e"], next_cursor=None),
        }
        cursors = []

        async def request_page(after, limit):
            cursors.append(after)
            return pages[after]

        result = await self.fetcher.fetch_all(request_page, style=PaginationStyle.CURSOR)

        assert result == ["a", "b", "c", "d", "e"]
        assert cursors == [None, "b", "d"]

    @pytest.mark.asyncio
    async def test_empty_cursor_terminates(self):
        request_page = AsyncMock(return_value=CursorPage(items=[], next_cursor=""))

        assert await self.fetcher.fetch_all(request_page, style="cursor") == []
        assert request_page.await_count == 1

    @pytest.mark.asyncio
    async def test_iter_cursor_yields_page_by_page(self):
        request_page = AsyncMock(side_effect=[
            CursorPage(items=["a"], next_cursor="a"),
            CursorPage(items=["b"]),
        ])

        seen = []
        async for item in self.fetcher.iter_cursor(request_page):
            seen.append((item, request_page.await_count))

        assert seen == [("a", 1), ("b", 2)]
