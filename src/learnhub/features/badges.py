"""Badge cache keys, DTOs and cache-aware requests."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import ClassVar
from uuid import UUID

from pydantic import BaseModel

from learnhub.cache.keys import build_key
from learnhub.features.pagination import PagedResult, PageRequest
from learnhub.pipeline.requests import CacheableQuery, InvalidatingCommand

ENTITY = "badges"


class BadgeCacheKeys:
    @classmethod
    def get_all(cls, page_request: PageRequest) -> str:
        segments = page_request.normalize().key_segments()
        return build_key(ENTITY, *segments)

    @classmethod
    def by_id(cls, badge_id: UUID) -> str:
        return build_key(ENTITY, "id", badge_id)

    @classmethod
    def lists(cls) -> str:
        return f"{ENTITY}:p*"

    @classmethod
    def invalidate_all(cls) -> str:
        return f"{ENTITY}:*"


class BadgeDto(BaseModel):
    id: UUID
    name: str
    description: str | None = None
    icon_url: str | None = None
    criteria: str | None = None


@dataclass(frozen=True)
class GetAllBadgesQuery(CacheableQuery):
    page_request: PageRequest = field(default_factory=PageRequest)
    bypass_cache: bool = field(default=False, kw_only=True)

    response_type: ClassVar = PagedResult[BadgeDto]

    @property
    def cache_key(self) -> str:
        return BadgeCacheKeys.get_all(self.page_request)


@dataclass(frozen=True)
class GetByIdBadgeQuery(CacheableQuery):
    badge_id: UUID
    bypass_cache: bool = field(default=False, kw_only=True)

    response_type: ClassVar = BadgeDto

    @property
    def cache_key(self) -> str:
        return BadgeCacheKeys.by_id(self.badge_id)


@dataclass(frozen=True)
class CreateBadgeCommand(InvalidatingCommand):
    name: str
    description: str | None = None
    icon_url: str | None = None
    criteria: str | None = None

    @property
    def cache_invalidation_patterns(self) -> Sequence[str]:
        return [BadgeCacheKeys.lists()]


@dataclass(frozen=True)
class UpdateBadgeCommand(InvalidatingCommand):
    badge_id: UUID
    name: str | None = None
    description: str | None = None
    icon_url: str | None = None

    @property
    def cache_invalidation_patterns(self) -> Sequence[str]:
        return [BadgeCacheKeys.invalidate_all()]


@dataclass(frozen=True)
class DeleteBadgeCommand(InvalidatingCommand):
    badge_id: UUID

    @property
    def cache_invalidation_patterns(self) -> Sequence[str]:
        return [BadgeCacheKeys.by_id(self.badge_id), BadgeCacheKeys.lists()]
