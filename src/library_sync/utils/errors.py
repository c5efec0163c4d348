"""Error taxonomy: classification, retry eligibility and severity of failures."""

import json
import sys
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, NoReturn, Optional

from .logging import get_logger


class ErrorKind(str, Enum):
    """Category of a failure."""
    API = "SPOTIFY_API"
    CONFIG = "CONFIG"
    AUTH = "AUTHENTICATION"
    PLAYLIST_MUTATION = "PLAYLIST"
    TRACK_FETCH = "TRACK"
    FOLLOW_MUTATION = "FOLLOWING"


class Severity(str, Enum):
    """How loudly a failure is reported by the run handler."""
    FATAL = "fatal"
    WARNING = "warning"


DEFAULT_RETRYABLE_KINDS: FrozenSet[ErrorKind] = frozenset({ErrorKind.API})

INTERNAL_ERROR_STATUS = 500


def format_error_message(
    kind: ErrorKind,
    message: str,
    details: Optional[Dict[str, Any]] = None
) -> str:
    """Render ``[KIND] message`` with optional JSON details appended."""
    formatted_details = f" - {json.dumps(details, default=str)}" if details is not None else ""
    return f"[{kind.value}] {message}{formatted_details}"


class ClassifiedError(Exception):
    """A failure tagged with an ``ErrorKind``.

    Wraps the original exception (``cause``) instead of replacing it. The
    attributes are read-only once the error has been constructed.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None
    ):
        shown_details = dict(details or {})
        if status_code is not None:
            shown_details.setdefault("statusCode", status_code)
        super().__init__(format_error_message(kind, message, shown_details or None))
        object.__setattr__(self, "_kind", kind)
        object.__setattr__(self, "_message", message)
        object.__setattr__(self, "_status_code", status_code)
        object.__setattr__(self, "_details", dict(details) if details else None)
        object.__setattr__(self, "_cause", cause)
        self.__cause__ = cause
        self._frozen = True

    def __setattr__(self, name, value):
        # Traceback machinery still needs to write the dunder attributes.
        if getattr(self, "_frozen", False) and not name.startswith("__"):
            raise AttributeError(f"{self.__class__.__name__} is immutable")
        object.__setattr__(self, name, value)

    def __reduce__(self):
        return (
            self.__class__,
            (self._kind, self._message, self._status_code, self._details, self._cause)
        )

    @property
    def kind(self) -> ErrorKind:
        return self._kind

    @property
    def message(self) -> str:
        return self._message

    @property
    def status_code(self) -> Optional[int]:
        return self._status_code

    @property
    def details(self) -> Optional[Dict[str, Any]]:
        return dict(self._details) if self._details else None

    @property
    def cause(self) -> Optional[BaseException]:
        return self._cause

    def to_log_dict(self) -> Dict[str, Any]:
        """Structured representation for log records."""
        data: Dict[str, Any] = {
            "kind": self.kind.value,
            "error": str(self),
        }
        if self.status_code is not None:
            data["status_code"] = self.status_code
        if self.cause is not None:
            data["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return data


def api_error(message: str, status_code: int, cause: Optional[BaseException] = None) -> ClassifiedError:
    return ClassifiedError(ErrorKind.API, message, status_code=status_code, cause=cause)


def config_error(message: str, cause: Optional[BaseException] = None) -> ClassifiedError:
    return ClassifiedError(ErrorKind.CONFIG, message, cause=cause)


def auth_error(message: str, cause: Optional[BaseException] = None) -> ClassifiedError:
    return ClassifiedError(ErrorKind.AUTH, message, cause=cause)


def playlist_error(
    message: str,
    details: Optional[Dict[str, Any]] = None,
    cause: Optional[BaseException] = None
) -> ClassifiedError:
    return ClassifiedError(ErrorKind.PLAYLIST_MUTATION, message, details=details, cause=cause)


def track_error(
    message: str,
    details: Optional[Dict[str, Any]] = None,
    cause: Optional[BaseException] = None
) -> ClassifiedError:
    return ClassifiedError(ErrorKind.TRACK_FETCH, message, details=details, cause=cause)


def following_error(
    message: str,
    details: Optional[Dict[str, Any]] = None,
    cause: Optional[BaseException] = None
) -> ClassifiedError:
    return ClassifiedError(ErrorKind.FOLLOW_MUTATION, message, details=details, cause=cause)


def _extract_status_code(raw: BaseException) -> Optional[int]:
    """Find an HTTP status carried by a foreign exception, if any."""
    for attribute in ("status_code", "status"):
        value = getattr(raw, attribute, None)
        if isinstance(value, int) and not isinstance(value, bool) and 100 <= value <= 599:
            return value
    return None


def classify(raw: BaseException) -> ClassifiedError:
    """Assign a kind (and a status code for API failures) to any exception."""
    if isinstance(raw, ClassifiedError):
        return raw

    message = str(raw) or f"Unknown error ({type(raw).__name__})"
    status_code = _extract_status_code(raw)
    if status_code is None:
        status_code = INTERNAL_ERROR_STATUS
    return api_error(message, status_code, cause=raw)


def is_retryable(
    error: ClassifiedError,
    retryable_kinds: Iterable[ErrorKind] = DEFAULT_RETRYABLE_KINDS
) -> bool:
    """True when the error's kind belongs to the retryable set."""
    return error.kind in frozenset(retryable_kinds)


def severity(error: ClassifiedError) -> Severity:
    """Server-side API failures and configuration errors are fatal."""
    if error.kind is ErrorKind.API and (error.status_code or 0) >= 500:
        return Severity.FATAL
    if error.kind is ErrorKind.CONFIG:
        return Severity.FATAL
    return Severity.WARNING


def handle_error(error: BaseException, logger=None) -> NoReturn:
    """Log a failure that reached the top of a run and exit non-zero."""
    logger = logger or get_logger("library_sync")
    classified = classify(error)

    if severity(classified) is Severity.FATAL:
        logger.error("Sync run failed", exc_info=classified, **classified.to_log_dict())
    else:
        logger.warning("Sync run aborted", **classified.to_log_dict())

    sys.exit(1)
