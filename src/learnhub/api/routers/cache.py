"""Operator cache endpoints.

- GET  /cache/stats       - tier sizes and configuration of this instance
- GET  /cache/ttl?key=    - which TTL rule a key resolves to
- POST /cache/invalidate  - pattern invalidation (local tiers + broadcast)
"""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from learnhub.api.deps import get_app_cache
from learnhub.cache.keys import MAX_PATTERN_LENGTH, validate_pattern
from learnhub.cache.service import TwoTierCache
from learnhub.observability.logging import current_correlation_id

router = APIRouter(prefix="/cache", tags=["cache"])


def checked_pattern(pattern: str) -> str:
    try:
        return validate_pattern(pattern)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


class CacheStats(BaseModel):
    instance_id: str
    l1_entries: int
    l1_max_size: int
    inflight: int
    l2_enabled: bool
    serializer: str
    distributed_locking: bool


class TtlResolution(BaseModel):
    key: str
    rule_prefix: str | None
    l2_ttl_seconds: float
    l1_ttl_seconds: float


class InvalidationRequest(BaseModel):
    pattern: str


class InvalidationResult(BaseModel):
    pattern: str
    deleted_count: int
    correlation_id: str | None = None
    timestamp: datetime


@router.get("/stats", response_model=CacheStats)
async def get_cache_stats(cache: TwoTierCache = Depends(get_app_cache)) -> CacheStats:
    return CacheStats(**cache.stats())


@router.get("/ttl", response_model=TtlResolution)
async def resolve_ttl(
    key: str = Query(..., min_length=1, max_length=MAX_PATTERN_LENGTH),
    cache: TwoTierCache = Depends(get_app_cache),
) -> TtlResolution:
    """Show the TTL rule that applies to ``key``."""
    rule = cache.ttl_policy.match(key)
    l2 = cache.ttl_policy.resolve(key)
    return TtlResolution(
        key=key,
        rule_prefix=rule.prefix if rule else None,
        l2_ttl_seconds=l2.total_seconds(),
        l1_ttl_seconds=cache.l1_duration(l2).total_seconds(),
    )


@router.post("/invalidate", response_model=InvalidationResult)
async def invalidate(
    body: InvalidationRequest,
    cache: TwoTierCache = Depends(get_app_cache),
) -> InvalidationResult:
    """Invalidate a pattern on this instance and broadcast it to peers."""
    pattern = checked_pattern(body.pattern)
    correlation_id = current_correlation_id()
    deleted = await cache.remove_by_pattern(pattern, correlation_id=correlation_id)
    return InvalidationResult(
        pattern=pattern,
        deleted_count=deleted,
        correlation_id=correlation_id,
        timestamp=datetime.now(timezone.utc),
    )
