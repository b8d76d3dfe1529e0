"""Category cache keys, DTOs and cache-aware requests."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import ClassVar
from uuid import UUID

from pydantic import BaseModel, Field

from learnhub.cache.keys import build_key
from learnhub.features.pagination import PagedResult, PageRequest
from learnhub.pipeline.requests import CacheableQuery, InvalidatingCommand

ENTITY = "categories"


class CategoryCacheKeys:
    """Key and pattern builders for the ``categories`` namespace."""

    @classmethod
    def get_all(cls, page_request: PageRequest) -> str:
        return build_key(ENTITY, "list", *page_request.normalize().key_segments())

    @classmethod
    def by_id(cls, category_id: UUID) -> str:
        return build_key(ENTITY, "id", category_id)

    @classmethod
    def by_slug(cls, slug: str) -> str:
        return build_key(ENTITY, "slug", slug)

    @classmethod
    def tree(cls) -> str:
        return f"{ENTITY}:tree"

    @classmethod
    def lists(cls) -> str:
        return f"{ENTITY}:list:*"

    @classmethod
    def slugs(cls) -> str:
        return f"{ENTITY}:slug:*"

    @classmethod
    def invalidate_all(cls) -> str:
        return f"{ENTITY}:*"


class CategoryListItemDto(BaseModel):
    id: UUID
    name: str
    slug: str
    description: str | None = None
    parent_id: UUID | None = None
    parent_name: str | None = None
    course_count: int = 0


class CategoryDto(BaseModel):
    id: UUID
    name: str
    slug: str
    description: str | None = None
    parent_id: UUID | None = None
    parent_name: str | None = None
    created_at: datetime
    children: list[CategoryListItemDto] = Field(default_factory=list)


class CategoryTreeDto(BaseModel):
    id: UUID
    name: str
    slug: str
    children: list[CategoryTreeDto] = Field(default_factory=list)


# -----------------------------------------------------------------------------
# Queries
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class GetAllCategoriesQuery(CacheableQuery):
    page_request: PageRequest = field(default_factory=PageRequest)
    bypass_cache: bool = field(default=False, kw_only=True)

    response_type: ClassVar = PagedResult[CategoryListItemDto]

    @property
    def cache_key(self) -> str:
        return CategoryCacheKeys.get_all(self.page_request.normalize())


@dataclass(frozen=True)
class GetByIdCategoryQuery(CacheableQuery):
    category_id: UUID
    bypass_cache: bool = field(default=False, kw_only=True)

    response_type: ClassVar = CategoryDto

    @property
    def cache_key(self) -> str:
        return CategoryCacheKeys.by_id(self.category_id)


@dataclass(frozen=True)
class GetBySlugCategoryQuery(CacheableQuery):
    slug: str
    bypass_cache: bool = field(default=False, kw_only=True)

    response_type: ClassVar = CategoryDto

    @property
    def cache_key(self) -> str:
        return CategoryCacheKeys.by_slug(self.slug)


@dataclass(frozen=True)
class GetCategoryTreeQuery(CacheableQuery):
    """Whole category hierarchy under a single fixed key."""

    bypass_cache: bool = field(default=False, kw_only=True)

    response_type: ClassVar = list[CategoryTreeDto]

    @property
    def cache_key(self) -> str:
        return CategoryCacheKeys.tree()


# -----------------------------------------------------------------------------
# Commands
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class CreateCategoryCommand(InvalidatingCommand):
    name: str
    slug: str
    description: str | None = None
    parent_id: UUID | None = None

    @property
    def cache_invalidation_patterns(self) -> Sequence[str]:
        patterns = [CategoryCacheKeys.tree(), CategoryCacheKeys.lists()]
        if self.parent_id is not None:
            # Parent detail lists its children
            patterns.append(CategoryCacheKeys.by_id(self.parent_id))
        return patterns


@dataclass(frozen=True)
class UpdateCategoryCommand(InvalidatingCommand):
    category_id: UUID
    name: str | None = None
    description: str | None = None

    @property
    def cache_invalidation_patterns(self) -> Sequence[str]:
        return [
            CategoryCacheKeys.by_id(self.category_id),
            CategoryCacheKeys.lists(),
            CategoryCacheKeys.tree(),
            CategoryCacheKeys.slugs(),
        ]


@dataclass(frozen=True)
class DeleteCategoryCommand(InvalidatingCommand):
    category_id: UUID

    @property
    def cache_invalidation_patterns(self) -> Sequence[str]:
        return [CategoryCacheKeys.invalidate_all()]
