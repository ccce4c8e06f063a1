"""Backend implementations for fetching API responses."""

from .base import (
    ApiResponse,
    Backend,
    BackendError,
    FetchError,
    HttpStatusError,
    RateLimitError,
    RequestSpec,
)
from .http_backend import HttpBackend

__all__ = [
    # Base classes
    "Backend",
    "RequestSpec",
    "ApiResponse",
    # Base errors
    "BackendError",
    "FetchError",
    "HttpStatusError",
    "RateLimitError",
    # HTTP backend
    "HttpBackend",
]
