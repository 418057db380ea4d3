"""
Standardized API error classification system.

Every GitHub failure is classified into one of these types. Each type
indicates whether the call should be retried and carries context for
debugging.
"""

from typing import Optional, Dict, Any


class APIError(Exception):
    """
    Base exception for all API-related errors.

    Attributes:
        message: Human-readable error description
        source: API source name (e.g., 'github')
        status_code: HTTP status code if applicable
        response_data: Raw response data for debugging
        retryable: Whether this error should trigger a retry
    """

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        status_code: Optional[int] = None,
        response_data: Optional[Dict[str, Any]] = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.source = source
        self.status_code = status_code
        self.response_data = response_data
        self.retryable = retryable

    def __str__(self) -> str:
        parts = [self.message]
        if self.source:
            parts.insert(0, f"[{self.source}]")
        if self.status_code:
            parts.append(f"(HTTP {self.status_code})")
        return " ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "source": self.source,
            "status_code": self.status_code,
            "retryable": self.retryable,
            "response_data": self.response_data,
        }


class RetryableError(APIError):
    """
    Transient errors that should trigger a retry.
    """

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        status_code: Optional[int] = None,
        response_data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            source=source,
            status_code=status_code,
            response_data=response_data,
            retryable=True,
        )


class ServerError(RetryableError):
    """HTTP 500-599 from the remote API."""


class NetworkError(RetryableError):
    """
    Transport failure: timeout, connection refused or reset, DNS failure.

    No HTTP status is available.
    """

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message=message, source=source)


class FatalError(APIError):
    """
    Non-retryable errors that indicate a permanent problem for this request.

    Examples:
    - Invalid API token (401)
    - Resource not found (404)
    - Invalid request parameters (400/422)
    - Forbidden access (403)
    """

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        status_code: Optional[int] = None,
        response_data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            source=source,
            status_code=status_code,
            response_data=response_data,
            retryable=False,
        )


class ClientError(FatalError):
    """Any 4xx other than 404."""


class RateLimitError(ClientError):
    """
    Quota exhausted (HTTP 429, or 403 with X-RateLimit-Remaining: 0).

    Not retried within a request; reset_at tells the caller when the
    quota comes back.
    """

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        status_code: int = 429,
        reset_at: Optional[int] = None,
        response_data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            source=source,
            status_code=status_code,
            response_data=response_data,
        )
        self.reset_at = reset_at


class AuthenticationError(ClientError):
    """
    Authentication failed - invalid or expired token.
    """

    def __init__(
        self,
        message: str = "Authentication failed - check GITHUB_TOKEN",
        source: Optional[str] = None,
        response_data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message, source=source, status_code=401, response_data=response_data
        )


class NotFoundError(FatalError):
    """
    Requested resource not found.
    """

    def __init__(
        self,
        message: str = "Resource not found",
        source: Optional[str] = None,
        resource_id: Optional[str] = None,
        response_data: Optional[Dict[str, Any]] = None,
    ):
        if resource_id:
            message = f"{message}: {resource_id}"
        super().__init__(
            message=message, source=source, status_code=404, response_data=response_data
        )
        self.resource_id = resource_id


def classify_http_error(
    status_code: int,
    response_text: str = "",
    source: Optional[str] = None,
    rate_limit_remaining: Optional[int] = None,
    rate_limit_reset: Optional[int] = None,
) -> APIError:
    """
    Classify an HTTP error into the appropriate APIError subclass.

    Args:
        status_code: HTTP status code
        response_text: Response body text
        source: API source name
        rate_limit_remaining: Value of X-RateLimit-Remaining, if sent
        rate_limit_reset: Value of X-RateLimit-Reset (epoch seconds), if sent

    Returns:
        Appropriate APIError subclass instance
    """
    if status_code == 429 or (status_code == 403 and rate_limit_remaining == 0):
        return RateLimitError(
            message=f"Rate limited: {response_text[:200]}",
            source=source,
            status_code=status_code,
            reset_at=rate_limit_reset,
        )
    elif status_code == 401:
        return AuthenticationError(
            message=f"Authentication failed: {response_text[:200]}", source=source
        )
    elif status_code == 404:
        return NotFoundError(message=f"Not found: {response_text[:200]}", source=source)
    elif 400 <= status_code < 500:
        return ClientError(
            message=f"Client error: {response_text[:200]}",
            source=source,
            status_code=status_code,
        )
    elif 500 <= status_code < 600:
        return ServerError(
            message=f"Server error: {response_text[:200]}",
            source=source,
            status_code=status_code,
        )
    else:
        return APIError(
            message=f"HTTP error {status_code}: {response_text[:200]}",
            source=source,
            status_code=status_code,
            retryable=False,
        )
