"""Certificate cache keys, DTOs and cache-aware requests."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import ClassVar
from uuid import UUID

from pydantic import BaseModel

from learnhub.cache.keys import build_key
from learnhub.pipeline.requests import CacheableQuery, InvalidatingCommand

ENTITY = "certificates"


class CertificateCacheKeys:
    @classmethod
    def by_id(cls, certificate_id: UUID) -> str:
        return build_key(ENTITY, "id", certificate_id)

    @classmethod
    def by_user(cls, user_id: UUID) -> str:
        return build_key(ENTITY, "user", user_id)

    @classmethod
    def invalidate_all(cls) -> str:
        return f"{ENTITY}:*"


class CertificateDto(BaseModel):
    id: UUID
    user_id: UUID
    course_id: UUID
    course_title: str | None = None
    certificate_number: str | None = None
    is_issued: bool = False
    issued_at: datetime | None = None


@dataclass(frozen=True)
class GetByUserCertificateQuery(CacheableQuery):
    user_id: UUID
    bypass_cache: bool = field(default=False, kw_only=True)

    response_type: ClassVar = list[CertificateDto]

    @property
    def cache_key(self) -> str:
        return CertificateCacheKeys.by_user(self.user_id)


@dataclass(frozen=True)
class CreatePendingCertificateCommand(InvalidatingCommand):
    user_id: UUID
    course_id: UUID

    @property
    def cache_invalidation_patterns(self) -> Sequence[str]:
        return [CertificateCacheKeys.invalidate_all()]


@dataclass(frozen=True)
class MarkCertificateAsIssuedCommand(InvalidatingCommand):
    certificate_id: UUID
    certificate_number: str

    @property
    def cache_invalidation_patterns(self) -> Sequence[str]:
        return [CertificateCacheKeys.invalidate_all()]
