"""Orchestrator - component wiring and run coordination."""

from .runner import FetchRunner, RunStats, build_dispatcher, build_fetcher

__all__ = [
    "FetchRunner",
    "RunStats",
    "build_dispatcher",
    "build_fetcher",
]
