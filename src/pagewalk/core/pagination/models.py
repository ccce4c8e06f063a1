"""
Page envelope models.

The API wraps every collection page as:

    {"code": "Success", "data": {"items": [...], "next_cursor": "..."}}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class PageData(BaseModel, Generic[T]):
    """The `data` object of a paginated response."""

    model_config = ConfigDict(extra="ignore")

    items: list[T] | None = Field(default=None)
    next_cursor: str | None = Field(default=None)


class PaginatedRoot(BaseModel, Generic[T]):
    """Top-level paginated response."""

    model_config = ConfigDict(extra="ignore")

    code: str | None = None
    message: str | None = None
    data: PageData[T] | None = None


@dataclass
class Page(Generic[T]):
    """One page of items plus the cursor of the page after it."""

    items: list[T] = field(default_factory=list)
    next_cursor: str | None = None

    @property
    def has_next(self) -> bool:
        """A blank or missing cursor ends the traversal; empty items do not."""
        return self.next_cursor is not None and self.next_cursor.strip() != ""

    @classmethod
    def from_root(cls, root: PaginatedRoot[T]) -> "Page[T]":
        if root.data is None:
            return cls()
        return cls(items=list(root.data.items or []), next_cursor=root.data.next_cursor)
