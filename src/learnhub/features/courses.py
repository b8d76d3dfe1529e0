"""Course cache keys, DTOs and cache-aware requests."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID

from pydantic import BaseModel

from learnhub.cache.keys import build_key
from learnhub.features.pagination import PagedResult, PageRequest
from learnhub.pipeline.requests import CacheableQuery, InvalidatingCommand

ENTITY = "courses"


class CourseCacheKeys:
    """Key and pattern builders for the ``courses`` namespace."""

    @classmethod
    def get_all(cls, page_request: PageRequest) -> str:
        return build_key(ENTITY, "list", *page_request.normalize().key_segments())

    @classmethod
    def by_id(cls, course_id: UUID) -> str:
        return build_key(ENTITY, "id", course_id)

    @classmethod
    def by_slug(cls, slug: str) -> str:
        return build_key(ENTITY, "slug", slug)

    @classmethod
    def by_instructor(cls, instructor_id: UUID, page_request: PageRequest) -> str:
        return build_key(
            ENTITY, "instructor", instructor_id, *page_request.normalize().key_segments()
        )

    @classmethod
    def lists(cls) -> str:
        return f"{ENTITY}:list:*"

    @classmethod
    def instructor_lists(cls, instructor_id: UUID | None = None) -> str:
        if instructor_id is None:
            return f"{ENTITY}:instructor:*"
        return f"{ENTITY}:instructor:{instructor_id}:*"

    @classmethod
    def slugs(cls) -> str:
        return f"{ENTITY}:slug:*"

    @classmethod
    def invalidate_all(cls) -> str:
        return f"{ENTITY}:*"


class CourseListItemDto(BaseModel):
    id: UUID
    title: str
    slug: str
    price: Decimal
    currency: str = "TRY"
    instructor_id: UUID
    instructor_name: str | None = None
    category_id: UUID | None = None
    enrollment_count: int = 0
    is_published: bool = False


class CourseDto(CourseListItemDto):
    description: str | None = None
    lesson_count: int = 0
    created_at: datetime
    updated_at: datetime | None = None


# -----------------------------------------------------------------------------
# Queries
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class GetAllCoursesQuery(CacheableQuery):
    page_request: PageRequest = field(default_factory=PageRequest)
    bypass_cache: bool = field(default=False, kw_only=True)

    response_type: ClassVar = PagedResult[CourseListItemDto]

    @property
    def cache_key(self) -> str:
        return CourseCacheKeys.get_all(self.page_request.normalize())


@dataclass(frozen=True)
class GetByIdCourseQuery(CacheableQuery):
    course_id: UUID
    bypass_cache: bool = field(default=False, kw_only=True)

    response_type: ClassVar = CourseDto

    @property
    def cache_key(self) -> str:
        return CourseCacheKeys.by_id(self.course_id)


@dataclass(frozen=True)
class GetBySlugCourseQuery(CacheableQuery):
    slug: str
    bypass_cache: bool = field(default=False, kw_only=True)

    response_type: ClassVar = CourseDto

    @property
    def cache_key(self) -> str:
        return CourseCacheKeys.by_slug(self.slug)


@dataclass(frozen=True)
class GetByInstructorCourseQuery(CacheableQuery):
    instructor_id: UUID
    page_request: PageRequest = field(default_factory=PageRequest)
    bypass_cache: bool = field(default=False, kw_only=True)

    response_type: ClassVar = PagedResult[CourseListItemDto]

    @property
    def cache_key(self) -> str:
        return CourseCacheKeys.by_instructor(self.instructor_id, self.page_request)


# -----------------------------------------------------------------------------
# Commands
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class CreateCourseCommand(InvalidatingCommand):
    title: str
    slug: str
    price: Decimal
    instructor_id: UUID
    category_id: UUID | None = None
    description: str | None = None

    @property
    def cache_invalidation_patterns(self) -> Sequence[str]:
        return [CourseCacheKeys.lists(), CourseCacheKeys.instructor_lists(self.instructor_id)]


@dataclass(frozen=True)
class UpdateCourseCommand(InvalidatingCommand):
    course_id: UUID
    title: str | None = None
    description: str | None = None
    category_id: UUID | None = None

    @property
    def cache_invalidation_patterns(self) -> Sequence[str]:
        return [
            CourseCacheKeys.by_id(self.course_id),
            CourseCacheKeys.lists(),
            CourseCacheKeys.instructor_lists(),
            CourseCacheKeys.slugs(),
        ]


@dataclass(frozen=True)
class UpdateCoursePriceCommand(InvalidatingCommand):
    course_id: UUID
    price: Decimal

    @property
    def cache_invalidation_patterns(self) -> Sequence[str]:
        return [CourseCacheKeys.by_id(self.course_id), CourseCacheKeys.lists()]
