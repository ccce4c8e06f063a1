"""CLI command modules."""

from . import config, connectors, fetch

__all__ = [
    "config",
    "connectors",
    "fetch",
]
