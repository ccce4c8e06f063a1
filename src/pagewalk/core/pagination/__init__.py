"""Cursor pagination: page models and the paginated fetcher."""

from .fetcher import (
    PAGE_SIZE,
    PageStream,
    PaginatedFetcher,
    StreamState,
    build_page_url,
    parse_page,
)
from .models import Page, PageData, PaginatedRoot

__all__ = [
    "PAGE_SIZE",
    "Page",
    "PageData",
    "PageStream",
    "PaginatedFetcher",
    "PaginatedRoot",
    "StreamState",
    "build_page_url",
    "parse_page",
]
