"""Offset pagination request/response models."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
MAX_SEARCH_LENGTH = 200
MAX_SORT_LENGTH = 500


def _clip(value: str | None, limit: int) -> str | None:
    if value is None:
        return None
    cleaned = value.strip()
    if not cleaned:
        return None
    return cleaned[:limit]


@dataclass(frozen=True)
class PageRequest:
    """Page number (1-based), page size, optional sort expression and search text."""

    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    sort: str | None = None
    search: str | None = None

    def normalize(self) -> "PageRequest":
        """Clamp to valid bounds; out-of-range sizes fall back or cap."""
        page_size = self.page_size
        if page_size < 1:
            page_size = DEFAULT_PAGE_SIZE
        elif page_size > MAX_PAGE_SIZE:
            page_size = MAX_PAGE_SIZE
        return replace(
            self,
            page=max(1, self.page),
            page_size=page_size,
            sort=_clip(self.sort, MAX_SORT_LENGTH),
            search=_clip(self.search, MAX_SEARCH_LENGTH),
        )

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    def key_segments(self) -> tuple[str, ...]:
        """Key parameters for list queries: p{page}, s{size}, sort, q."""
        return (
            f"p{self.page}",
            f"s{self.page_size}",
            "sort",
            self.sort or "",
            "q",
            self.search or "",
        )


class PagedResult(BaseModel, Generic[T]):
    items: list[T] = Field(default_factory=list)
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    total_count: int = 0

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return math.ceil(self.total_count / self.page_size)

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages
