"""Coupon cache keys, DTOs and cache-aware requests."""

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

ENTITY = "coupons"


class CouponCacheKeys:
    @classmethod
    def get_all(cls, page_request: PageRequest) -> str:
        segments = page_request.normalize().key_segments()
        return build_key(ENTITY, *segments)

    @classmethod
    def by_id(cls, coupon_id: UUID) -> str:
        return build_key(ENTITY, "id", coupon_id)

    @classmethod
    def by_code(cls, code: str) -> str:
        # Codes are case-insensitive
        return build_key(ENTITY, "code", code)

    @classmethod
    def invalidate_all(cls) -> str:
        return f"{ENTITY}:*"


class CouponDto(BaseModel):
    id: UUID
    code: str
    discount_percent: Decimal | None = None
    discount_amount: Decimal | None = None
    max_uses: int | None = None
    used_count: int = 0
    expires_at: datetime | None = None
    is_active: bool = True


@dataclass(frozen=True)
class GetAllCouponsQuery(CacheableQuery):
    page_request: PageRequest = field(default_factory=PageRequest)
    bypass_cache: bool = field(default=False, kw_only=True)

    response_type: ClassVar = PagedResult[CouponDto]

    @property
    def cache_key(self) -> str:
        return CouponCacheKeys.get_all(self.page_request)


@dataclass(frozen=True)
class GetByIdCouponQuery(CacheableQuery):
    coupon_id: UUID
    bypass_cache: bool = field(default=False, kw_only=True)

    response_type: ClassVar = CouponDto

    @property
    def cache_key(self) -> str:
        return CouponCacheKeys.by_id(self.coupon_id)


@dataclass(frozen=True)
class GetByCodeCouponQuery(CacheableQuery):
    code: str
    bypass_cache: bool = field(default=False, kw_only=True)

    response_type: ClassVar = CouponDto

    @property
    def cache_key(self) -> str:
        return CouponCacheKeys.by_code(self.code)


@dataclass(frozen=True)
class CreateCouponCommand(InvalidatingCommand):
    code: str
    discount_percent: Decimal | None = None
    discount_amount: Decimal | None = None
    max_uses: int | None = None
    expires_at: datetime | None = None

    @property
    def cache_invalidation_patterns(self) -> Sequence[str]:
        return [CouponCacheKeys.invalidate_all()]


@dataclass(frozen=True)
class UpdateCouponCommand(InvalidatingCommand):
    coupon_id: UUID
    is_active: bool | None = None
    max_uses: int | None = None
    expires_at: datetime | None = None

    @property
    def cache_invalidation_patterns(self) -> Sequence[str]:
        # Code lookups are keyed by code, which this command does not carry
        return [CouponCacheKeys.invalidate_all()]
