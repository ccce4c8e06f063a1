"""
HTTP Backend implementation using httpx.

Provides async GET fetching with:
- Persistent connection pooling
- Relative URL resolution against an API base URL
- Rate limit detection (429 + Retry-After)
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import httpx

from ..fetch.throttling import parse_retry_after
from .base import (
    ApiResponse,
    Backend,
    FetchError,
    HttpStatusError,
    RateLimitError,
    RequestSpec,
)

logger = logging.getLogger(__name__)


DEFAULT_USER_AGENT = "pagewalk/0.1"


class HttpBackend(Backend):
    """HTTP backend using httpx for async requests.

    Retries are not done here: rate limiting is reported as
    RateLimitError so the dispatcher can coordinate the shared backoff.
    """

    def __init__(
        self,
        base_url: str = "",
        timeout: float = 30.0,
        default_headers: dict[str, str] | None = None,
        max_connections: int = 20,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize HTTP backend.

        Args:
            base_url: Base URL relative request URLs are resolved against
            timeout: Default request timeout in seconds
            default_headers: Default headers for all requests
            max_connections: Connection pool size
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = base_url
        self.timeout = timeout
        self.max_connections = max_connections
        self._transport = transport

        self.default_headers = {
            "User-Agent": DEFAULT_USER_AGENT,
            "Accept": "application/json",
            **(default_headers or {}),
        }

        self._client: httpx.AsyncClient | None = None

    @property
    def name(self) -> str:
        return "http"

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                headers=self.default_headers,
                limits=httpx.Limits(
                    max_connections=self.max_connections,
                    max_keepalive_connections=max(1, self.max_connections // 2),
                ),
                transport=self._transport,
            )
        return self._client

    def _check_status(self, request: RequestSpec, response: httpx.Response) -> None:
        if response.status_code == 429:
            raise RateLimitError(
                "Rate limit exceeded",
                url=request.url,
                retry_after=parse_retry_after(response.headers.get("Retry-After"), default=None),
            )

        if not response.is_success:
            raise HttpStatusError(
                f"HTTP {response.status_code} for {request.url}",
                url=request.url,
                status_code=response.status_code,
            )

    async def fetch(self, request: RequestSpec) -> ApiResponse:
        """Issue a single GET.

        Args:
            request: Request specification

        Returns:
            ApiResponse with the fully read body
        """
        client = await self._ensure_client()
        start_time = datetime.now(timezone.utc)

        try:
            response = await client.get(
                request.url,
                headers=request.headers or None,
                params=request.params or None,
                timeout=request.timeout if request.timeout is not None else httpx.USE_CLIENT_DEFAULT,
            )
        except httpx.TimeoutException as e:
            raise FetchError(f"Timeout: {e}", url=request.url, cause=e) from e
        except httpx.TransportError as e:
            raise FetchError(f"Transport error: {e}", url=request.url, cause=e) from e

        elapsed_ms = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000
        logger.debug(
            "GET %s -> %s (%.0f ms)",
            request.url,
            response.status_code,
            elapsed_ms,
            extra={"url": request.url, "status_code": response.status_code},
        )

        self._check_status(request, response)

        return ApiResponse(
            url=request.url,
            final_url=str(response.url),
            status_code=response.status_code,
            content=response.content,
            headers=dict(response.headers),
            elapsed_ms=elapsed_ms,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
