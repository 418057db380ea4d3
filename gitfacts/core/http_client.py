"""
Base HTTP client with bounded retries and error classification.

Synchronous foundation for the GitHub client: explicit per-call timeouts,
exponential backoff with jitter for transient failures only, and every
non-2xx response turned into an APIError subclass.
"""
import logging
import random
import time
from abc import ABC
from typing import Any, Callable, Dict, Optional

import httpx

from gitfacts.core.api_errors import APIError, NetworkError, classify_http_error

logger = logging.getLogger(__name__)


class BaseAPIClient(ABC):
    """
    Base class for external API clients.

    Subclasses set SOURCE_NAME and BASE_URL, add their headers in
    _build_headers() and expose API-specific methods built on get().
    """

    SOURCE_NAME: str = "unknown"
    BASE_URL: str = ""

    DEFAULT_TIMEOUT: float = 30.0
    DEFAULT_CONNECT_TIMEOUT: float = 10.0
    DEFAULT_MAX_RETRIES: int = 3
    DEFAULT_BACKOFF_FACTOR: float = 2.0
    MAX_BACKOFF: float = 30.0
    JITTER_FACTOR: float = 0.25

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
        timeout: float = DEFAULT_TIMEOUT,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            api_key: Optional token sent by subclasses in their headers
            base_url: Override for BASE_URL
            max_retries: Total attempts for a transient failure (at least 1)
            backoff_factor: Exponential backoff multiplier
            timeout: Read timeout in seconds
            connect_timeout: Connect timeout in seconds
            transport: Optional httpx transport (tests use MockTransport)
            sleep: Called with the backoff delay between attempts
        """
        self.api_key = api_key
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.max_retries = max(1, max_retries)
        self.backoff_factor = backoff_factor
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self._transport = transport
        self._sleep = sleep
        self._client: Optional[httpx.Client] = None

        logger.info(
            f"Initialized {self.SOURCE_NAME} client: "
            f"token_present={api_key is not None}, "
            f"max_retries={self.max_retries}, timeout={timeout}s"
        )

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                timeout=httpx.Timeout(self.timeout, connect=self.connect_timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        """Close the pooled connection, if one was opened."""
        if self._client:
            self._client.close()
            self._client = None
            logger.debug(f"{self.SOURCE_NAME} client closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _backoff(self, attempt: int) -> None:
        """Sleep backoff_factor ** attempt seconds (capped), +/- 25% jitter."""
        delay = min(self.backoff_factor ** attempt, self.MAX_BACKOFF)
        delay += delay * self.JITTER_FACTOR * (2 * random.random() - 1)
        delay = max(0.1, delay)
        logger.debug(f"Backing off for {delay:.2f}s (attempt {attempt + 1})")
        self._sleep(delay)

    def _build_headers(self) -> Dict[str, str]:
        return {"Accept": "application/json"}

    def _on_response(self, response: httpx.Response) -> None:
        """Hook called for every HTTP response, before status handling."""
        return None

    def _classify_status(self, response: httpx.Response) -> APIError:
        return classify_http_error(response.status_code, response.text[:500], self.SOURCE_NAME)

    def _send(self, method: str, url: str, params: Optional[Dict[str, Any]], headers: Dict[str, str]) -> Any:
        """One attempt: parsed JSON on 2xx, otherwise raise the classified error."""
        try:
            response = self._get_client().request(method, url, params=params, headers=headers)
        except httpx.RequestError as e:
            raise NetworkError(f"Request failed: {e}", source=self.SOURCE_NAME) from e

        self._on_response(response)
        if not response.is_success:
            raise self._classify_status(response)

        try:
            return response.json()
        except ValueError as e:
            raise APIError(
                message=f"Invalid JSON in response: {e}",
                source=self.SOURCE_NAME,
                status_code=response.status_code,
            ) from e

    def _request(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        resource_id: str = "unknown",
    ) -> Any:
        """
        Make an HTTP request, retrying 5xx and network failures.

        At most max_retries attempts are made. Anything non-retryable
        (404, other 4xx, rate limiting, bad JSON) is raised immediately.

        Raises:
            APIError: the last classified failure
        """
        if not url.startswith("http"):
            url = f"{self.base_url}/{url.lstrip('/')}"
        headers = self._build_headers()

        for attempt in range(self.max_retries):
            logger.debug(
                f"[{self.SOURCE_NAME}] {method} {resource_id} "
                f"(attempt {attempt + 1}/{self.max_retries})"
            )
            try:
                return self._send(method, url, params, headers)
            except APIError as e:
                if not e.retryable:
                    raise
                if attempt == self.max_retries - 1:
                    logger.error(
                        f"[{self.SOURCE_NAME}] Giving up on {resource_id} after "
                        f"{self.max_retries} attempts: {e}"
                    )
                    raise
                logger.warning(
                    f"[{self.SOURCE_NAME}] Retryable error for {resource_id} "
                    f"(attempt {attempt + 1}/{self.max_retries}): {e}"
                )
                self._backoff(attempt)

    def get(self, url: str, params: Optional[Dict[str, Any]] = None, resource_id: str = "unknown") -> Any:
        return self._request("GET", url, params=params, resource_id=resource_id)
