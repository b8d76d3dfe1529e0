"""Live session cache keys, DTOs and cache-aware requests."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import ClassVar
from uuid import UUID

from pydantic import BaseModel

from learnhub.cache.keys import build_key
from learnhub.pipeline.requests import CacheableQuery, InvalidatingCommand

ENTITY = "livesessions"


class LiveSessionCacheKeys:
    @classmethod
    def by_id(cls, live_session_id: UUID) -> str:
        return build_key(ENTITY, "id", live_session_id)

    @classmethod
    def by_lesson(cls, lesson_id: UUID) -> str:
        return build_key(ENTITY, "lesson", lesson_id)

    @classmethod
    def upcoming(cls) -> str:
        return f"{ENTITY}:upcoming"

    @classmethod
    def invalidate_all(cls) -> str:
        return f"{ENTITY}:*"


class LiveSessionDto(BaseModel):
    id: UUID
    lesson_id: UUID
    title: str
    scheduled_at: datetime
    duration_minutes: int = 60
    status: str = "scheduled"
    join_url: str | None = None


@dataclass(frozen=True)
class GetByIdLiveSessionQuery(CacheableQuery):
    live_session_id: UUID
    bypass_cache: bool = field(default=False, kw_only=True)

    response_type: ClassVar = LiveSessionDto

    @property
    def cache_key(self) -> str:
        return LiveSessionCacheKeys.by_id(self.live_session_id)


@dataclass(frozen=True)
class GetByLessonLiveSessionQuery(CacheableQuery):
    lesson_id: UUID
    bypass_cache: bool = field(default=False, kw_only=True)

    response_type: ClassVar = list[LiveSessionDto]

    @property
    def cache_key(self) -> str:
        return LiveSessionCacheKeys.by_lesson(self.lesson_id)


@dataclass(frozen=True)
class GetUpcomingLiveSessionsQuery(CacheableQuery):
    bypass_cache: bool = field(default=False, kw_only=True)

    response_type: ClassVar = list[LiveSessionDto]

    @property
    def cache_key(self) -> str:
        return LiveSessionCacheKeys.upcoming()


class _LiveSessionCommand(InvalidatingCommand):
    @property
    def cache_invalidation_patterns(self) -> Sequence[str]:
        return [LiveSessionCacheKeys.invalidate_all()]


@dataclass(frozen=True)
class ScheduleLiveSessionCommand(_LiveSessionCommand):
    lesson_id: UUID
    title: str
    scheduled_at: datetime
    duration_minutes: int = 60


@dataclass(frozen=True)
class UpdateLiveSessionCommand(_LiveSessionCommand):
    live_session_id: UUID
    title: str | None = None
    scheduled_at: datetime | None = None


@dataclass(frozen=True)
class StartLiveSessionCommand(_LiveSessionCommand):
    live_session_id: UUID
