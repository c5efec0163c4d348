"""Shared utilities: logging, error taxonomy, retries and rate limiting."""

from .logging import get_logger, log_async_execution_time, setup_logging
from .errors import (
    DEFAULT_RETRYABLE_KINDS,
    ClassifiedError,
    ErrorKind,
    Severity,
    api_error,
    auth_error,
    classify,
    config_error,
    following_error,
    format_error_message,
    handle_error,
    is_retryable,
    playlist_error,
    severity,
    track_error,
)
from .retry import RetryAttempt, RetryExecutor, RetryPolicy
from .rate_limit import AsyncRateLimiter

__all__ = [
    # Logging
    "get_logger",
    "log_async_execution_time",
    "setup_logging",

    # Error taxonomy
    "DEFAULT_RETRYABLE_KINDS",
    "ClassifiedError",
    "ErrorKind",
    "Severity",
    "api_error",
    "auth_error",
    "classify",
    "config_error",
    "following_error",
    "format_error_message",
    "handle_error",
    "is_retryable",
    "playlist_error",
    "severity",
    "track_error",

    # Retries and rate limiting
    "RetryAttempt",
    "RetryExecutor",
    "RetryPolicy",
    "AsyncRateLimiter",
]
