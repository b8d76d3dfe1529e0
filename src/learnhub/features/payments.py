"""Payment cache keys, DTOs and cache-aware requests.

A payment is completed from the provider callback, which only knows the
conversation id. The payment row (and with it the order) is located after
the handler has recorded the result, hence ``ResolveStage.AFTER_EXECUTE``.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, ClassVar
from uuid import UUID

from pydantic import BaseModel

from learnhub.cache.keys import build_key
from learnhub.features.orders import OrderCacheKeys
from learnhub.features.pagination import PagedResult, PageRequest
from learnhub.pipeline.requests import (
    CacheableQuery,
    ResolvableInvalidatingCommand,
    ResolveStage,
)

if TYPE_CHECKING:
    from learnhub.persistence.repositories import ReadRepositories

ENTITY = "payments"


class PaymentCacheKeys:
    @classmethod
    def get_all(cls, page_request: PageRequest) -> str:
        return build_key(ENTITY, "list", *page_request.normalize().key_segments())

    @classmethod
    def by_id(cls, payment_id: UUID) -> str:
        return build_key(ENTITY, "id", payment_id)

    @classmethod
    def by_order(cls, order_id: UUID) -> str:
        return build_key(ENTITY, "order", order_id)

    @classmethod
    def by_conversation_id(cls, conversation_id: str) -> str:
        # Provider tokens are case-sensitive; keep them verbatim
        return f"{ENTITY}:conv:{conversation_id.strip() or '_'}"

    @classmethod
    def lists(cls) -> str:
        return f"{ENTITY}:list:*"

    @classmethod
    def invalidate_all(cls) -> str:
        return f"{ENTITY}:*"


class PaymentDto(BaseModel):
    id: UUID
    order_id: UUID
    conversation_id: str
    amount: Decimal
    currency: str = "TRY"
    status: str = "pending"
    paid_at: datetime | None = None


@dataclass(frozen=True)
class GetAllPaymentsQuery(CacheableQuery):
    page_request: PageRequest = field(default_factory=PageRequest)
    bypass_cache: bool = field(default=False, kw_only=True)

    response_type: ClassVar = PagedResult[PaymentDto]

    @property
    def cache_key(self) -> str:
        return PaymentCacheKeys.get_all(self.page_request.normalize())


@dataclass(frozen=True)
class GetByIdPaymentQuery(CacheableQuery):
    payment_id: UUID
    bypass_cache: bool = field(default=False, kw_only=True)

    response_type: ClassVar = PaymentDto

    @property
    def cache_key(self) -> str:
        return PaymentCacheKeys.by_id(self.payment_id)


@dataclass(frozen=True)
class GetByOrderPaymentQuery(CacheableQuery):
    order_id: UUID
    bypass_cache: bool = field(default=False, kw_only=True)

    response_type: ClassVar = PaymentDto

    @property
    def cache_key(self) -> str:
        return PaymentCacheKeys.by_order(self.order_id)


@dataclass(frozen=True)
class CompletePaymentCommand(ResolvableInvalidatingCommand):
    conversation_id: str
    provider_token: str

    resolve_stage: ClassVar[ResolveStage] = ResolveStage.AFTER_EXECUTE

    @property
    def cache_invalidation_patterns(self) -> Sequence[str]:
        return [
            PaymentCacheKeys.by_conversation_id(self.conversation_id),
            PaymentCacheKeys.invalidate_all(),
            OrderCacheKeys.invalidate_all(),
        ]

    async def resolve_patterns(self, repos: ReadRepositories) -> Sequence[str]:
        payment = await repos.payments.get(conversation_id=self.conversation_id)
        if payment is None:
            return self.cache_invalidation_patterns
        return [
            PaymentCacheKeys.by_id(payment.id),
            PaymentCacheKeys.by_order(payment.order_id),
            PaymentCacheKeys.by_conversation_id(self.conversation_id),
            PaymentCacheKeys.lists(),
            OrderCacheKeys.by_id(payment.order_id),
        ]
