"""Startup cache warmup.

Sends the hottest read queries through the mediator shortly after startup
so they pass the full pipeline (including QueryCachingBehavior) and land in
both tiers before real traffic arrives. Failures are retried, then logged
and skipped; warmup never blocks or fails application startup.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from learnhub.config import settings
from learnhub.features.badges import GetAllBadgesQuery
from learnhub.features.categories import GetCategoryTreeQuery
from learnhub.features.courses import GetAllCoursesQuery
from learnhub.features.pagination import PageRequest
from learnhub.pipeline.mediator import HandlerNotFoundError, Mediator

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_DELAY = 2.0


@dataclass(frozen=True)
class WarmupTarget:
    name: str
    request: Any


def default_targets() -> list[WarmupTarget]:
    first_page = PageRequest(page=1, page_size=20)
    return [
        WarmupTarget("CategoryTree", GetCategoryTreeQuery()),
        WarmupTarget("CoursesPage1", GetAllCoursesQuery(first_page)),
        WarmupTarget("BadgesPage1", GetAllBadgesQuery(first_page)),
    ]


class CacheWarmup:
    """Runs warmup queries in a background task."""

    def __init__(
        self,
        mediator: Mediator,
        targets: Sequence[WarmupTarget] | None = None,
        delay: float | None = None,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY,
    ):
        self.mediator = mediator
        self.targets = list(targets) if targets is not None else default_targets()
        self.delay = settings.cache_warmup_delay if delay is None else delay
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.succeeded: list[str] = []
        self.failed: list[str] = []
        self._task: asyncio.Task[None] | None = None

    def start(self) -> asyncio.Task[None]:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def run(self) -> None:
        if self.delay > 0:
            await asyncio.sleep(self.delay)
        logger.info("Cache warmup starting (%d targets)", len(self.targets))
        for target in self.targets:
            if await self.warm(target):
                self.succeeded.append(target.name)
            else:
                self.failed.append(target.name)
        logger.info(
            "Cache warmup completed: %d succeeded, %d failed",
            len(self.succeeded),
            len(self.failed),
        )

    async def warm(self, target: WarmupTarget) -> bool:
        """Send one target with retries; True on success."""
        if not self.mediator.handles(type(target.request)):
            logger.info("Cache warmup: no handler for %s, skipping", target.name)
            return False

        for attempt in range(1, self.max_retries + 1):
            try:
                await self.mediator.send(target.request)
            except HandlerNotFoundError:
                return False
            except Exception as e:
                logger.warning(
                    "Cache warmup: %s failed (attempt %d/%d): %s",
                    target.name,
                    attempt,
                    self.max_retries,
                    e,
                )
                if attempt < self.max_retries:
                    await asyncio.sleep(self.retry_delay)
                continue
            logger.info("Cache warmup: %s succeeded (attempt %d)", target.name, attempt)
            return True

        logger.error(
            "Cache warmup: %s failed after %d attempts, skipping", target.name, self.max_retries
        )
        return False
