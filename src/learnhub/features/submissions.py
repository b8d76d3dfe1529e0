"""Submission cache keys, DTOs and cache-aware requests."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import ClassVar
from uuid import UUID

from pydantic import BaseModel

from learnhub.cache.keys import build_key
from learnhub.pipeline.requests import CacheableQuery, InvalidatingCommand

ENTITY = "submissions"


class SubmissionCacheKeys:
    @classmethod
    def by_id(cls, submission_id: UUID) -> str:
        return build_key(ENTITY, "id", submission_id)

    @classmethod
    def by_student(cls, student_id: UUID) -> str:
        return build_key(ENTITY, "student", student_id)

    @classmethod
    def by_lesson(cls, lesson_id: UUID) -> str:
        return build_key(ENTITY, "lesson", lesson_id)

    @classmethod
    def invalidate_all(cls) -> str:
        return f"{ENTITY}:*"


class SubmissionDto(BaseModel):
    id: UUID
    student_id: UUID
    lesson_id: UUID
    content: str
    grade: int | None = None
    feedback: str | None = None
    submitted_at: datetime
    reviewed_at: datetime | None = None


@dataclass(frozen=True)
class GetByStudentSubmissionQuery(CacheableQuery):
    student_id: UUID
    bypass_cache: bool = field(default=False, kw_only=True)

    response_type: ClassVar = list[SubmissionDto]

    @property
    def cache_key(self) -> str:
        return SubmissionCacheKeys.by_student(self.student_id)


@dataclass(frozen=True)
class CreateSubmissionCommand(InvalidatingCommand):
    student_id: UUID
    lesson_id: UUID
    content: str

    @property
    def cache_invalidation_patterns(self) -> Sequence[str]:
        return [SubmissionCacheKeys.invalidate_all()]


@dataclass(frozen=True)
class ReviewSubmissionCommand(InvalidatingCommand):
    submission_id: UUID
    grade: int
    feedback: str | None = None

    @property
    def cache_invalidation_patterns(self) -> Sequence[str]:
        return [SubmissionCacheKeys.invalidate_all()]
