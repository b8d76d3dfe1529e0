"""Lesson cache keys, DTOs and cache-aware requests.

Lesson writes identify the lesson only by id, so the owning course (whose
lesson list and detail are cached) is looked up from the data store
before the handler runs; a deleted lesson can no longer be read after.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar
from uuid import UUID

from pydantic import BaseModel

from learnhub.cache.keys import build_key
from learnhub.features.courses import CourseCacheKeys
from learnhub.pipeline.requests import (
    CacheableQuery,
    InvalidatingCommand,
    ResolvableInvalidatingCommand,
)

if TYPE_CHECKING:
    from learnhub.persistence.repositories import ReadRepositories

ENTITY = "lessons"


class LessonCacheKeys:
    @classmethod
    def by_id(cls, lesson_id: UUID) -> str:
        return build_key(ENTITY, "id", lesson_id)

    @classmethod
    def by_course(cls, course_id: UUID) -> str:
        return build_key(ENTITY, "course", course_id)

    @classmethod
    def invalidate_all(cls) -> str:
        return f"{ENTITY}:*"


class LessonDto(BaseModel):
    id: UUID
    course_id: UUID
    title: str
    order: int = 0
    duration_minutes: int = 0
    is_free: bool = False
    video_url: str | None = None


@dataclass(frozen=True)
class GetByIdLessonQuery(CacheableQuery):
    lesson_id: UUID
    bypass_cache: bool = field(default=False, kw_only=True)

    response_type: ClassVar = LessonDto

    @property
    def cache_key(self) -> str:
        return LessonCacheKeys.by_id(self.lesson_id)


@dataclass(frozen=True)
class GetByCourseLessonQuery(CacheableQuery):
    course_id: UUID
    bypass_cache: bool = field(default=False, kw_only=True)

    response_type: ClassVar = list[LessonDto]

    @property
    def cache_key(self) -> str:
        return LessonCacheKeys.by_course(self.course_id)


@dataclass(frozen=True)
class CreateLessonCommand(InvalidatingCommand):
    course_id: UUID
    title: str
    order: int = 0
    duration_minutes: int = 0
    is_free: bool = False

    @property
    def cache_invalidation_patterns(self) -> Sequence[str]:
        # Course detail carries the lesson count
        return [
            LessonCacheKeys.by_course(self.course_id),
            CourseCacheKeys.by_id(self.course_id),
        ]


class _LessonCommand(ResolvableInvalidatingCommand):
    """Shared resolution for writes addressed by lesson id."""

    lesson_id: UUID
    # Whether the owning course's detail entry must go too
    touches_course: ClassVar[bool] = False

    @property
    def cache_invalidation_patterns(self) -> Sequence[str]:
        return [LessonCacheKeys.by_id(self.lesson_id)]

    async def resolve_patterns(self, repos: ReadRepositories) -> Sequence[str]:
        lesson = await repos.lessons.get_by_id(self.lesson_id)
        if lesson is None:
            return self.cache_invalidation_patterns
        patterns = [
            LessonCacheKeys.by_id(self.lesson_id),
            LessonCacheKeys.by_course(lesson.course_id),
        ]
        if self.touches_course:
            patterns.append(CourseCacheKeys.by_id(lesson.course_id))
        return patterns


@dataclass(frozen=True)
class UpdateLessonCommand(_LessonCommand):
    lesson_id: UUID
    title: str | None = None
    order: int | None = None
    duration_minutes: int | None = None


@dataclass(frozen=True)
class MarkLessonAsFreeCommand(_LessonCommand):
    lesson_id: UUID
    is_free: bool = True


@dataclass(frozen=True)
class DeleteLessonCommand(_LessonCommand):
    lesson_id: UUID

    touches_course: ClassVar[bool] = True
