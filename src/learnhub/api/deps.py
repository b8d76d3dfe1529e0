"""FastAPI dependencies resolving application-scoped components."""

from __future__ import annotations

from fastapi import HTTPException, Request

from learnhub.cache.service import TwoTierCache


def get_app_cache(request: Request) -> TwoTierCache:
    cache: TwoTierCache | None = getattr(request.app.state, "cache", None)
    if cache is None:
        raise HTTPException(status_code=503, detail="Cache is not initialized")
    return cache
