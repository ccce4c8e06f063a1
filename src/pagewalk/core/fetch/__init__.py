"""Fetch utilities - throttling, retries, caching, dispatch."""

from .throttling import (
    BackoffPolicy,
    BackoffWindow,
    ConcurrencyGate,
    parse_retry_after,
)
from .caching import CacheEntry, ResponseCache
from .retries import rate_limit_retrying
from .dispatcher import RequestDispatcher

__all__ = [
    "BackoffPolicy",
    "BackoffWindow",
    "CacheEntry",
    "ConcurrencyGate",
    "RequestDispatcher",
    "ResponseCache",
    "parse_retry_after",
    "rate_limit_retrying",
]
