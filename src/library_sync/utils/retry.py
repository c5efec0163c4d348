"""Retry executor with exponential backoff and kind-aware retry eligibility."""

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, FrozenSet, Optional, TypeVar

from .errors import (
    DEFAULT_RETRYABLE_KINDS,
    ClassifiedError,
    ErrorKind,
    api_error,
    classify,
    is_retryable,
)
from .logging import get_logger


T = TypeVar('T')


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff schedule shared by every retryable error kind."""

    max_retries: int = 3
    initial_delay: float = 1.0  # seconds
    backoff_factor: float = 2.0
    retryable_kinds: FrozenSet[ErrorKind] = field(default_factory=lambda: DEFAULT_RETRYABLE_KINDS)

    def delay_for(self, attempt: int) -> float:
        """Wait before the attempt following ``attempt`` (0-based)."""
        return self.initial_delay * self.backoff_factor ** attempt


@dataclass
class RetryAttempt:
    """State of one ``RetryExecutor.execute`` call."""

    attempt: int = 0
    last_error: Optional[ClassifiedError] = None
    next_delay: Optional[float] = None


class RetryExecutor:
    """Runs a fallible async operation up to ``max_retries`` times."""

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_retry: Optional[Callable[[ClassifiedError, int], None]] = None
    ):
        """Initialize the executor.

        Args:
            policy: Default retry policy
            sleep: Awaitable used for the backoff wait
            on_retry: Called with (error, next attempt number) before each wait
        """
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._on_retry = on_retry
        self.logger = get_logger(self.__class__.__name__)

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        policy: Optional[RetryPolicy] = None,
        description: str = "operation"
    ) -> T:
        """Execute ``operation`` with retries.

        Args:
            operation: Zero-argument callable returning an awaitable
            policy: Overrides the executor's default policy for this call
            description: Human-readable name used in log records

        Returns:
            The operation's result

        Raises:
            ClassifiedError: Non-retryable failure, or the last failure once
                attempts are exhausted
        """
        policy = policy or self.policy
        state = RetryAttempt()

        while state.attempt < policy.max_retries:
            try:
                return await operation()
            except Exception as e:
                error = classify(e)
                state.last_error = error

                if not is_retryable(error, policy.retryable_kinds):
                    self.logger.debug(
                        "Non-retryable failure",
                        operation=description,
                        attempt=state.attempt,
                        kind=error.kind.value
                    )
                    raise error

                if state.attempt >= policy.max_retries - 1:
                    break

                state.next_delay = policy.delay_for(state.attempt)
                self.logger.warning(
                    "Retryable failure, backing off",
                    operation=description,
                    attempt=state.attempt + 1,
                    max_retries=policy.max_retries,
                    delay_seconds=state.next_delay,
                    error=str(error)
                )
                if self._on_retry:
                    self._on_retry(error, state.attempt + 1)

                await self._sleep(state.next_delay)
                state.attempt += 1

        if state.last_error is None:
            raise api_error("Retry failed with no error", 500)

        self.logger.error(
            "Retries exhausted",
            operation=description,
            attempts=state.attempt + 1,
            error=str(state.last_error)
        )
        raise state.last_error
