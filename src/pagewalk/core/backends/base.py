"""
Backend base classes and data structures.

Defines the interface contract for HTTP backends used by the dispatcher.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import orjson


@dataclass
class RequestSpec:
    """Specification for a GET request."""

    url: str
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, str] = field(default_factory=dict)
    timeout: float | None = None


@dataclass(frozen=True)
class ApiResponse:
    """Result of a fetch operation.

    The body is fully read, so one instance can be handed to any number
    of callers out of the response cache.
    """

    url: str
    final_url: str
    status_code: int
    content: bytes
    headers: dict[str, str]

    elapsed_ms: float = 0.0
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    from_cache: bool = False

    @property
    def ok(self) -> bool:
        """Check if request was successful (2xx status)."""
        return 200 <= self.status_code < 300

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    def json(self) -> Any:
        """Decode the body as JSON.

        Raises:
            orjson.JSONDecodeError: If the body is not valid JSON
        """
        return orjson.loads(self.content)


class Backend(ABC):
    """Abstract base class for HTTP backends."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend identifier."""
        pass

    @abstractmethod
    async def fetch(self, request: RequestSpec) -> ApiResponse:
        """Fetch a URL and return the response.

        Args:
            request: Request specification

        Returns:
            ApiResponse for a 2xx status

        Raises:
            RateLimitError: On HTTP 429
            HttpStatusError: On any other non-success status
            FetchError: On transport failure
        """
        pass

    async def close(self) -> None:
        """Clean up backend resources."""
        pass

    async def __aenter__(self) -> "Backend":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


class BackendError(Exception):
    """Base exception for backend errors."""

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.cause = cause


class FetchError(BackendError):
    """Transport-level failure (connection, timeout, protocol)."""
    pass


class HttpStatusError(BackendError):
    """Non-success status other than 429. Never retried."""
    pass


class RateLimitError(BackendError):
    """Rate limit hit (HTTP 429)."""

    def __init__(
        self,
        message: str,
        url: str | None = None,
        retry_after: float | None = None,
    ):
        super().__init__(message, url, status_code=429)
        self.retry_after = retry_after
