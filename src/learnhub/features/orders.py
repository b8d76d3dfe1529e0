"""Order cache keys, DTOs and cache-aware requests."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, ClassVar
from uuid import UUID

from pydantic import BaseModel, Field

from learnhub.cache.keys import build_key
from learnhub.features.pagination import PagedResult, PageRequest
from learnhub.pipeline.requests import (
    CacheableQuery,
    InvalidatingCommand,
    ResolvableInvalidatingCommand,
)

if TYPE_CHECKING:
    from learnhub.persistence.repositories import ReadRepositories

ENTITY = "orders"


class OrderCacheKeys:
    @classmethod
    def get_all(cls, page_request: PageRequest) -> str:
        return build_key(ENTITY, "list", *page_request.normalize().key_segments())

    @classmethod
    def by_id(cls, order_id: UUID) -> str:
        return build_key(ENTITY, "id", order_id)

    @classmethod
    def by_user(cls, user_id: UUID, page_request: PageRequest) -> str:
        return build_key(ENTITY, "user", user_id, *page_request.normalize().key_segments())

    @classmethod
    def user_pattern(cls, user_id: UUID) -> str:
        return f"{ENTITY}:user:{user_id}:*"

    @classmethod
    def lists(cls) -> str:
        return f"{ENTITY}:list:*"

    @classmethod
    def invalidate_all(cls) -> str:
        return f"{ENTITY}:*"


class OrderItemDto(BaseModel):
    course_id: UUID
    course_title: str | None = None
    price: Decimal


class OrderDto(BaseModel):
    id: UUID
    user_id: UUID
    status: str = "pending"
    total_amount: Decimal
    discount_amount: Decimal = Decimal("0")
    coupon_code: str | None = None
    items: list[OrderItemDto] = Field(default_factory=list)
    created_at: datetime


@dataclass(frozen=True)
class GetAllOrdersQuery(CacheableQuery):
    page_request: PageRequest = field(default_factory=PageRequest)
    bypass_cache: bool = field(default=False, kw_only=True)

    response_type: ClassVar = PagedResult[OrderDto]

    @property
    def cache_key(self) -> str:
        return OrderCacheKeys.get_all(self.page_request.normalize())


@dataclass(frozen=True)
class GetByIdOrderQuery(CacheableQuery):
    order_id: UUID
    bypass_cache: bool = field(default=False, kw_only=True)

    response_type: ClassVar = OrderDto

    @property
    def cache_key(self) -> str:
        return OrderCacheKeys.by_id(self.order_id)


@dataclass(frozen=True)
class GetByUserOrdersQuery(CacheableQuery):
    user_id: UUID
    page_request: PageRequest = field(default_factory=PageRequest)
    bypass_cache: bool = field(default=False, kw_only=True)

    response_type: ClassVar = PagedResult[OrderDto]

    @property
    def cache_key(self) -> str:
        return OrderCacheKeys.by_user(self.user_id, self.page_request)


@dataclass(frozen=True)
class CreateOrderCommand(InvalidatingCommand):
    user_id: UUID
    course_ids: tuple[UUID, ...]
    coupon_code: str | None = None

    @property
    def cache_invalidation_patterns(self) -> Sequence[str]:
        return [OrderCacheKeys.user_pattern(self.user_id), OrderCacheKeys.lists()]


@dataclass(frozen=True)
class CancelOrderCommand(ResolvableInvalidatingCommand):
    order_id: UUID

    @property
    def cache_invalidation_patterns(self) -> Sequence[str]:
        return [OrderCacheKeys.by_id(self.order_id), OrderCacheKeys.invalidate_all()]

    async def resolve_patterns(self, repos: ReadRepositories) -> Sequence[str]:
        order = await repos.orders.get_by_id(self.order_id)
        if order is None:
            return self.cache_invalidation_patterns
        return [
            OrderCacheKeys.by_id(self.order_id),
            OrderCacheKeys.user_pattern(order.user_id),
            OrderCacheKeys.lists(),
        ]
