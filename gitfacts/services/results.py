"""
Result types returned across the service boundary.

Nothing past GitHubAnalyticsService raises; callers get a ServiceResult
holding either a value or an ErrorKind.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Generic, Optional, TypeVar

from gitfacts.core.api_errors import (
    APIError,
    ClientError,
    NetworkError,
    NotFoundError,
    ServerError,
)
from gitfacts.services.exceptions import InternalAggregationError, ValidationError

T = TypeVar("T")


class ErrorKind(str, Enum):
    REMOTE_NOT_FOUND = "remote_not_found"
    REMOTE_CLIENT_ERROR = "remote_client_error"
    REMOTE_SERVER_ERROR = "remote_server_error"
    REMOTE_NETWORK_ERROR = "remote_network_error"
    VALIDATION_ERROR = "validation_error"
    INTERNAL_AGGREGATION_ERROR = "internal_aggregation_error"


def error_kind_for(exc: Exception) -> ErrorKind:
    """Map an exception to its ErrorKind."""
    if isinstance(exc, ValidationError):
        return ErrorKind.VALIDATION_ERROR
    if isinstance(exc, InternalAggregationError):
        return ErrorKind.INTERNAL_AGGREGATION_ERROR
    if isinstance(exc, NotFoundError):
        return ErrorKind.REMOTE_NOT_FOUND
    if isinstance(exc, NetworkError):
        return ErrorKind.REMOTE_NETWORK_ERROR
    if isinstance(exc, ServerError):
        return ErrorKind.REMOTE_SERVER_ERROR
    if isinstance(exc, ClientError):
        return ErrorKind.REMOTE_CLIENT_ERROR
    if isinstance(exc, APIError):
        if exc.status_code == 404:
            return ErrorKind.REMOTE_NOT_FOUND
        if exc.status_code is not None and 400 <= exc.status_code < 500:
            return ErrorKind.REMOTE_CLIENT_ERROR
        return ErrorKind.REMOTE_SERVER_ERROR
    return ErrorKind.INTERNAL_AGGREGATION_ERROR


@dataclass
class ServiceResult(Generic[T]):
    """A value, or the kind of error that prevented producing one."""

    value: Optional[T] = None
    error: Optional[ErrorKind] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "ServiceResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: ErrorKind, message: Optional[str] = None) -> "ServiceResult[T]":
        return cls(error=error, message=message)


@dataclass
class IngestionReport:
    """
    Outcome of one ensure_* run.

    ``degraded`` maps a sub-step name (e.g. ``"commits:alice/proj"``) to the
    error that left it without fresh data. A step absent from the map either
    succeeded or had nothing to do.
    """

    fetched: bool = False
    degraded: Dict[str, ErrorKind] = field(default_factory=dict)

    def record(self, step: str, error: Exception) -> None:
        self.degraded[step] = error_kind_for(error)
