"""Enrollment cache keys, DTOs and cache-aware requests.

Enrollment lists are cached per user and per course. Commands that only
carry an enrollment id read the enrollment to find which user and course
lists to drop; if that read fails they fall back to ``enrollments:*``.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, ClassVar
from uuid import UUID

from pydantic import BaseModel

from learnhub.cache.keys import build_key
from learnhub.features.courses import CourseCacheKeys
from learnhub.features.pagination import PagedResult, PageRequest
from learnhub.pipeline.requests import (
    CacheableQuery,
    InvalidatingCommand,
    ResolvableInvalidatingCommand,
)

if TYPE_CHECKING:
    from learnhub.persistence.repositories import ReadRepositories

ENTITY = "enrollments"


class EnrollmentCacheKeys:
    """Key and pattern builders for the ``enrollments`` namespace."""

    @classmethod
    def get_all(cls, page_request: PageRequest) -> str:
        return build_key(ENTITY, "list", *page_request.normalize().key_segments())

    @classmethod
    def by_id(cls, enrollment_id: UUID) -> str:
        return build_key(ENTITY, "id", enrollment_id)

    @classmethod
    def by_user(cls, user_id: UUID, page_request: PageRequest) -> str:
        return build_key(ENTITY, "user", user_id, *page_request.normalize().key_segments())

    @classmethod
    def by_course(cls, course_id: UUID, page_request: PageRequest) -> str:
        return build_key(ENTITY, "course", course_id, *page_request.normalize().key_segments())

    @classmethod
    def by_user_and_course(cls, user_id: UUID, course_id: UUID) -> str:
        return build_key(ENTITY, "user", user_id, "course", course_id)

    @classmethod
    def user_pattern(cls, user_id: UUID) -> str:
        return f"{ENTITY}:user:{user_id}:*"

    @classmethod
    def course_pattern(cls, course_id: UUID) -> str:
        return f"{ENTITY}:course:{course_id}:*"

    @classmethod
    def invalidate_all(cls) -> str:
        return f"{ENTITY}:*"


class EnrollmentStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class EnrollmentDto(BaseModel):
    id: UUID
    user_id: UUID
    course_id: UUID
    course_title: str | None = None
    status: EnrollmentStatus = EnrollmentStatus.ACTIVE
    progress_percent: float = 0.0
    enrolled_at: datetime
    completed_at: datetime | None = None


@dataclass(frozen=True)
class GetByUserEnrollmentQuery(CacheableQuery):
    user_id: UUID
    page_request: PageRequest = field(default_factory=PageRequest)
    bypass_cache: bool = field(default=False, kw_only=True)

    response_type: ClassVar = PagedResult[EnrollmentDto]

    @property
    def cache_key(self) -> str:
        return EnrollmentCacheKeys.by_user(self.user_id, self.page_request)


@dataclass(frozen=True)
class GetByCourseEnrollmentQuery(CacheableQuery):
    course_id: UUID
    page_request: PageRequest = field(default_factory=PageRequest)
    bypass_cache: bool = field(default=False, kw_only=True)

    response_type: ClassVar = PagedResult[EnrollmentDto]

    @property
    def cache_key(self) -> str:
        return EnrollmentCacheKeys.by_course(self.course_id, self.page_request)


def enrollment_patterns(user_id: UUID, course_id: UUID) -> list[str]:
    """Everything cached about one user's enrollment in one course."""
    return [
        EnrollmentCacheKeys.user_pattern(user_id),
        EnrollmentCacheKeys.course_pattern(course_id),
        # Enrollment count is denormalized on the course
        CourseCacheKeys.by_id(course_id),
    ]


@dataclass(frozen=True)
class CreateEnrollmentCommand(InvalidatingCommand):
    user_id: UUID
    course_id: UUID

    @property
    def cache_invalidation_patterns(self) -> Sequence[str]:
        return enrollment_patterns(self.user_id, self.course_id)


class _EnrollmentCommand(ResolvableInvalidatingCommand):
    enrollment_id: UUID

    @property
    def cache_invalidation_patterns(self) -> Sequence[str]:
        return [EnrollmentCacheKeys.invalidate_all()]

    async def resolve_patterns(self, repos: ReadRepositories) -> Sequence[str]:
        enrollment = await repos.enrollments.get_by_id(self.enrollment_id)
        if enrollment is None:
            return self.cache_invalidation_patterns
        return [
            *enrollment_patterns(enrollment.user_id, enrollment.course_id),
            EnrollmentCacheKeys.by_id(self.enrollment_id),
        ]


@dataclass(frozen=True)
class UpdateEnrollmentProgressCommand(_EnrollmentCommand):
    enrollment_id: UUID
    progress_percent: float = 0.0


@dataclass(frozen=True)
class CancelEnrollmentCommand(_EnrollmentCommand):
    enrollment_id: UUID
