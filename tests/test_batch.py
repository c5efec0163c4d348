"""Tests for chunked batch mutation."""

import sys
import os
import asyncio
import math

import pytest
from unittest.mock import AsyncMock
from hypothesis import given, settings, strategies as st

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from library_sync.core.batch import MAX_CHUNK_SIZE, ChunkedBatchMutator, chunked
from library_sync.utils.errors import ClassifiedError, ErrorKind, api_error, auth_error
from library_sync.utils.retry import RetryExecutor, RetryPolicy


async def no_sleep(delay):
    return None


def make_mutator(chunk_size=MAX_CHUNK_SIZE):
    return ChunkedBatchMutator(RetryExecutor(RetryPolicy(initial_delay=0), sleep=no_sleep), chunk_size)


class TestChunked:
    """Test the partition helper."""

    def test_remainder_last(self):
        assert chunked(list("abcdefg"), 3) == [["a", "b", "c"], ["d", "e", "f"], ["g"]]

    def test_empty(self):
        assert chunked([], 100) == []

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            chunked(["a"], 0)


@given(st.integers(min_value=0, max_value=450))
@settings(max_examples=30, deadline=None)
def test_chunk_partition_reconstructs_input(n):
    """ceil(n/100) calls, each at most 100 ids, concatenating to the input."""
    ids = [f"spotify:track:{i}" for i in range(n)]
    mutate = AsyncMock(return_value=None)

    result = asyncio.run(make_mutator().apply_in_chunks(ids, mutate, ErrorKind.PLAYLIST_MUTATION, "add"))

    calls = [call.args[0] for call in mutate.await_args_list]
    assert len(calls) == math.ceil(n / 100)
    assert all(len(chunk) <= 100 for chunk in calls)
    assert [item for chunk in calls for item in chunk] == ids
    assert result.items_applied == n


class TestChunkedBatchMutator:
    """Test mutation dispatch."""

    @pytest.mark.asyncio
    async def test_empty_input_makes_no_calls(self):
        mutate = AsyncMock()

        result = await make_mutator().apply_in_chunks([], mutate, ErrorKind.PLAYLIST_MUTATION, "add")

        assert mutate.await_count == 0
        assert result.chunks_applied == 0
        assert result.complete

    @pytest.mark.asyncio
    async def test_250_ids_make_three_calls(self):
        ids = [str(i) for i in range(250)]
        mutate = AsyncMock()

        result = await make_mutator().apply_in_chunks(ids, mutate, ErrorKind.PLAYLIST_MUTATION, "add")

        assert [len(call.args[0]) for call in mutate.await_args_list] == [100, 100, 50]
        assert result.chunks_applied == 3
        assert result.items_applied == 250

    @pytest.mark.asyncio
    @pytest.mark.parametrize("count, expected", [
        (1, [1]),
        (99, [99]),
        (100, [100]),
        (101, [100, 1]),
        (150, [100, 50]),
        (200, [100, 100]),
    ])
    async def test_chunk_boundaries(self, count, expected):
        ids = [f"spotify:track:{i}" for i in range(count)]
        mutate = AsyncMock()

        result = await make_mutator().apply_in_chunks(ids, mutate, ErrorKind.PLAYLIST_MUTATION, "add")

        assert [len(call.args[0]) for call in mutate.await_args_list] == expected
        assert result.chunks_applied == len(expected)
        assert result.items_applied == count

    @pytest.mark.asyncio
    async def test_abort_on_first_failed_chunk(self):
        ids = [str(i) for i in range(250)]
        failure = api_error("Internal Server Error", 500)
        mutate = AsyncMock(side_effect=[None, failure, failure, failure])

        with pytest.raises(ClassifiedError) as exc_info:
            await make_mutator().apply_in_chunks(
                ids, mutate, ErrorKind.PLAYLIST_MUTATION, "Failed to add tracks to playlist",
                details={"playlist_id": "p1"}
            )

        # chunk 2 retried three times, chunk 3 never attempted
        assert mutate.await_count == 4
        assert all(call.args[0] == ids[100:200] for call in mutate.await_args_list[1:])

        error = exc_info.value
        assert error.kind is ErrorKind.PLAYLIST_MUTATION
        assert error.cause is failure
        assert error.details == {
            "playlist_id": "p1",
            "chunk_index": 1,
            "chunks_applied": 1,
            "items_applied": 100,
        }

    @pytest.mark.asyncio
    async def test_non_api_failure_propagates_unchanged(self):
        failure = auth_error("Token revoked")
        mutate = AsyncMock(side_effect=failure)

        with pytest.raises(ClassifiedError) as exc_info:
            await make_mutator().apply_in_chunks(["a"], mutate, ErrorKind.FOLLOW_MUTATION, "follow")

        assert exc_info.value is failure
        assert mutate.await_count == 1

    @pytest.mark.asyncio
    async def test_smaller_chunk_size(self):
        mutate = AsyncMock()

        await make_mutator(chunk_size=50).apply_in_chunks(
            [str(i) for i in range(120)], mutate, ErrorKind.FOLLOW_MUTATION, "follow"
        )

        assert [len(call.args[0]) for call in mutate.await_args_list] == [50, 50, 20]

    def test_chunk_size_is_capped(self):
        with pytest.raises(ValueError):
            make_mutator(chunk_size=101)
