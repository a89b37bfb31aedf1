"""Per-operation outcome records for Kubernetes API calls.

Every API call made during a relocation is reduced to an OperationResult
instead of raising, so the caller can decide whether to continue, retry or
abort.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError, TimeoutError as Urllib3TimeoutError


class ErrorKind(str, Enum):
    """Classification of a failed API call."""

    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    FORBIDDEN = "forbidden"
    INVALID = "invalid"
    API_ERROR = "api_error"
    CONNECTION = "connection"
    TIMEOUT = "timeout"

    @property
    def retryable(self) -> bool:
        """Whether repeating the same call could succeed."""
        return self in (ErrorKind.API_ERROR, ErrorKind.CONNECTION, ErrorKind.TIMEOUT)


_STATUS_KINDS = {
    401: ErrorKind.FORBIDDEN,
    403: ErrorKind.FORBIDDEN,
    404: ErrorKind.NOT_FOUND,
    409: ErrorKind.CONFLICT,
    422: ErrorKind.INVALID,
}


def classify_exception(exc: Exception) -> ErrorKind:
    """Map a client exception to an ErrorKind."""
    if isinstance(exc, ApiException):
        if exc.status in _STATUS_KINDS:
            return _STATUS_KINDS[exc.status]
        # Other client errors are rejected requests; 429 is throttling
        if exc.status and 400 <= exc.status < 500 and exc.status != 429:
            return ErrorKind.INVALID
        return ErrorKind.API_ERROR
    if isinstance(exc, Urllib3TimeoutError):
        return ErrorKind.TIMEOUT
    if isinstance(exc, HTTPError):
        return ErrorKind.CONNECTION
    return ErrorKind.API_ERROR


@dataclass
class OperationResult:
    """Outcome of one API operation (delete, create, list, ...)."""

    operation: str
    target: str
    ok: bool = True
    error_kind: Optional[ErrorKind] = None
    status: Optional[int] = None
    reason: Optional[str] = None
    attempts: int = 1

    @classmethod
    def success(cls, operation: str, target: str, attempts: int = 1) -> "OperationResult":
        return cls(operation=operation, target=target, attempts=attempts)

    @classmethod
    def from_exception(
        cls, operation: str, target: str, exc: Exception, attempts: int = 1
    ) -> "OperationResult":
        """Build a failed result from an ApiException or transport error."""
        if isinstance(exc, ApiException):
            status = exc.status
            reason = exc.reason
        else:
            status = None
            reason = str(exc)
        return cls(
            operation=operation,
            target=target,
            ok=False,
            error_kind=classify_exception(exc),
            status=status,
            reason=reason,
            attempts=attempts,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialise to a dictionary."""
        return {
            "operation": self.operation,
            "target": self.target,
            "ok": self.ok,
            "errorKind": self.error_kind.value if self.error_kind else None,
            "status": self.status,
            "reason": self.reason,
            "attempts": self.attempts,
        }


def describe_error(exc: Exception) -> str:
    """Short human-readable form of a client exception."""
    if isinstance(exc, ApiException):
        return f"{exc.status} {exc.reason}"
    return str(exc)
