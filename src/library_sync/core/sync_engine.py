"""Set-difference synchronization of a source collection onto a target."""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Hashable, List, Optional, Sequence, TypeVar

from ..api_clients.base import identity_of
from ..utils.logging import get_logger, log_async_execution_time


T = TypeVar('T')

CollectionFetcher = Callable[[], Awaitable[List[T]]]
Mutation = Callable[[List[T]], Awaitable[Any]]


@dataclass
class Diff(Generic[T]):
    """Items to add to and remove from the target, each in arrival order."""

    to_add: List[T] = field(default_factory=list)
    to_remove: List[T] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.to_add and not self.to_remove


def compute_diff(
    source: Sequence[T],
    target: Sequence[T],
    key: Callable[[T], Hashable] = identity_of
) -> Diff[T]:
    """Compute ``source - target`` and ``target - source`` by identity.

    Duplicate identities within one side are collapsed to their first
    occurrence.
    """
    source_keys = {key(item) for item in source}
    target_keys = {key(item) for item in target}

    def _only_in(items: Sequence[T], excluded: set) -> List[T]:
        seen = set()
        result = []
        for item in items:
            item_key = key(item)
            if item_key in excluded or item_key in seen:
                continue
            seen.add(item_key)
            result.append(item)
        return result

    return Diff(
        to_add=_only_in(source, target_keys),
        to_remove=_only_in(target, source_keys)
    )


class SyncState(str, Enum):
    IDLE = "idle"
    FETCHING_SOURCE = "fetching_source"
    FETCHING_TARGET = "fetching_target"
    DIFFING = "diffing"
    MUTATING = "mutating"
    DONE = "done"
    FAILED = "failed"


@dataclass
class SyncResult:
    """Result of a sync operation."""

    name: str
    success: bool
    source_count: int = 0
    target_count: int = 0
    items_added: int = 0
    items_removed: int = 0
    state: SyncState = SyncState.IDLE
    error_message: Optional[str] = None
    sync_duration: Optional[float] = None

    @property
    def items_changed(self) -> int:
        return self.items_added + self.items_removed


class SetDiffSynchronizer:
    """Makes a target collection match a source collection.

    A run fetches both sides completely, diffs them and applies the adder and
    then the remover. Each step runs once; failures are not retried here and
    leave the synchronizer in ``SyncState.FAILED``.
    """

    def __init__(self, name: str):
        """Initialize synchronizer.

        Args:
            name: Resource pair name used in log records and results
        """
        self.name = name
        self.state = SyncState.IDLE
        self.logger = get_logger(self.__class__.__name__).bind(pair=name)

    def _transition(self, state: SyncState) -> None:
        self.logger.debug("Sync state changed", previous=self.state.value, state=state.value)
        self.state = state

    @log_async_execution_time
    async def sync(
        self,
        fetch_source: CollectionFetcher,
        fetch_target: CollectionFetcher,
        adder: Mutation,
        remover: Optional[Mutation] = None
    ) -> SyncResult:
        """Run one sync.

        Args:
            fetch_source: Returns the complete source collection
            fetch_target: Returns the complete target collection
            adder: Applies the items missing from the target
            remover: Removes the items missing from the source; ``None`` makes
                the run add-only

        Returns:
            SyncResult with counts of the run

        Raises:
            ClassifiedError: Propagated unchanged from a fetch or mutation
        """
        start_time = time.time()
        result = SyncResult(name=self.name, success=False)
        self.state = SyncState.IDLE

        self.logger.info("Starting sync", removal_enabled=remover is not None)

        try:
            self._transition(SyncState.FETCHING_SOURCE)
            source = await fetch_source()
            result.source_count = len(source)

            self._transition(SyncState.FETCHING_TARGET)
            target = await fetch_target()
            result.target_count = len(target)

            self._transition(SyncState.DIFFING)
            diff = compute_diff(source, target)

            self.logger.info(
                "Computed diff",
                source_count=result.source_count,
                target_count=result.target_count,
                to_add=len(diff.to_add),
                to_remove=len(diff.to_remove) if remover else 0
            )

            self._transition(SyncState.MUTATING)

            if diff.to_add:
                await adder(diff.to_add)
                result.items_added = len(diff.to_add)
            else:
                self.logger.info("No new items to add")

            if remover is None:
                if diff.to_remove:
                    self.logger.debug("Removal disabled, leaving extra items", extra_items=len(diff.to_remove))
            elif diff.to_remove:
                await remover(diff.to_remove)
                result.items_removed = len(diff.to_remove)
            else:
                self.logger.info("No items to remove")

            self._transition(SyncState.DONE)
            result.success = True

        except Exception as e:
            self._transition(SyncState.FAILED)
            result.error_message = str(e)
            self.logger.error(
                "Sync failed",
                error=str(e),
                items_added=result.items_added,
                items_removed=result.items_removed
            )
            raise

        finally:
            result.state = self.state
            result.sync_duration = time.time() - start_time

        self.logger.info(
            "Sync completed",
            items_added=result.items_added,
            items_removed=result.items_removed,
            duration=f"{result.sync_duration:.2f}s"
        )

        return result
