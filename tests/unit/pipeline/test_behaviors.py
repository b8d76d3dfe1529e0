"""Tests for the query caching and command invalidation behaviors."""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock
from uuid import UUID, uuid4

import pytest

from learnhub.cache.service import TwoTierCache
from learnhub.features.categories import (
    CategoryCacheKeys,
    CategoryTreeDto,
    CreateCategoryCommand,
    GetCategoryTreeQuery,
)
from learnhub.features.courses import CourseCacheKeys
from learnhub.features.enrollments import EnrollmentCacheKeys, UpdateEnrollmentProgressCommand
from learnhub.features.lessons import DeleteLessonCommand, LessonCacheKeys
from learnhub.features.orders import OrderCacheKeys
from learnhub.features.pagination import PageRequest
from learnhub.features.payments import CompletePaymentCommand, PaymentCacheKeys
from learnhub.observability.logging import LogContext
from learnhub.persistence.repositories import InMemoryReadRepository, ReadRepositories
from learnhub.pipeline.behaviors import build_mediator, unique_patterns
from learnhub.pipeline.mediator import Mediator
from learnhub.pipeline.requests import ResolvableInvalidatingCommand


@dataclass(frozen=True)
class TouchCourses(ResolvableInvalidatingCommand):
    resolved: tuple[str, ...] = ()

    @property
    def cache_invalidation_patterns(self) -> Sequence[str]:
        return ["courses:*"]

    async def resolve_patterns(self, repos: ReadRepositories) -> Sequence[str]:
        return list(self.resolved)


@dataclass(frozen=True)
class Echo:
    text: str


def tree(name: str) -> list[CategoryTreeDto]:
    return [CategoryTreeDto(id=UUID(int=1), name=name, slug=name.lower())]


async def seed(cache: TwoTierCache, *keys: str) -> None:
    for key in keys:
        await cache.set(key, "cached")


async def cached(cache: TwoTierCache, key: str) -> bool:
    return cache.memory.contains(key) or await cache.redis.get_bytes(key) is not None


class TestQueryCachingBehavior:
    """Test read-through caching of queries."""

    @pytest.fixture
    def handler(self) -> AsyncMock:
        return AsyncMock(return_value=tree("Development"))

    @pytest.fixture
    def mediator(self, cache: TwoTierCache, handler: AsyncMock) -> Mediator:
        mediator = build_mediator(cache)
        mediator.register(GetCategoryTreeQuery, handler)
        return mediator

    async def test_second_send_served_from_cache(
        self, mediator: Mediator, handler: AsyncMock
    ) -> None:
        first = await mediator.send(GetCategoryTreeQuery())
        second = await mediator.send(GetCategoryTreeQuery())

        assert first == second == tree("Development")
        assert handler.await_count == 1

    async def test_policy_ttl_applied(self, mediator: Mediator, cache: TwoTierCache) -> None:
        await mediator.send(GetCategoryTreeQuery())
        remaining = await cache.redis.pttl(CategoryCacheKeys.tree())
        assert remaining is not None
        assert timedelta(hours=1) < remaining <= timedelta(hours=2)

    async def test_bypass_always_calls_handler_and_writes_through(
        self, mediator: Mediator, handler: AsyncMock
    ) -> None:
        await mediator.send(GetCategoryTreeQuery())
        handler.return_value = tree("Design")

        assert await mediator.send(GetCategoryTreeQuery(bypass_cache=True)) == tree("Design")
        assert handler.await_count == 2

        assert await mediator.send(GetCategoryTreeQuery()) == tree("Design")
        assert handler.await_count == 2

    async def test_handler_error_not_cached(self, mediator: Mediator, handler: AsyncMock) -> None:
        handler.side_effect = [RuntimeError("db down"), tree("Development")]

        with pytest.raises(RuntimeError):
            await mediator.send(GetCategoryTreeQuery())
        assert await mediator.send(GetCategoryTreeQuery()) == tree("Development")

    async def test_plain_requests_pass_through(self, cache: TwoTierCache) -> None:
        mediator = build_mediator(cache)

        async def echo(request: Echo) -> str:
            return request.text

        mediator.register(Echo, echo)

        assert await mediator.send(Echo("hello")) == "hello"
        assert len(cache.memory) == 0


class TestCommandInvalidation:
    """Test invalidation after successful commands."""

    async def test_create_category_refreshes_tree(self, cache: TwoTierCache) -> None:
        """After a write the writer's next read sees the new data."""
        store = {"tree": tree("Development")}
        read_tree = AsyncMock(side_effect=lambda query: store["tree"])

        async def create_category(command: CreateCategoryCommand) -> None:
            store["tree"] = tree(command.name)

        mediator = build_mediator(cache)
        mediator.register(GetCategoryTreeQuery, read_tree)
        mediator.register(CreateCategoryCommand, create_category)

        assert await mediator.send(GetCategoryTreeQuery()) == tree("Development")
        await mediator.send(CreateCategoryCommand(name="Design", slug="design"))

        assert await mediator.send(GetCategoryTreeQuery()) == tree("Design")
        assert read_tree.await_count == 2

    async def test_create_category_drops_lists_only(self, cache: TwoTierCache) -> None:
        list_key = CategoryCacheKeys.get_all(PageRequest().normalize())
        detail_key = CategoryCacheKeys.by_id(uuid4())
        await seed(cache, CategoryCacheKeys.tree(), list_key, detail_key)

        mediator = build_mediator(cache)
        mediator.register(CreateCategoryCommand, AsyncMock(return_value=None))
        await mediator.send(CreateCategoryCommand(name="Design", slug="design"))

        assert not await cached(cache, CategoryCacheKeys.tree())
        assert not await cached(cache, list_key)
        assert await cached(cache, detail_key)

    async def test_failed_command_invalidates_nothing(self, cache: TwoTierCache) -> None:
        await seed(cache, CategoryCacheKeys.tree())

        mediator = build_mediator(cache)
        mediator.register(CreateCategoryCommand, AsyncMock(side_effect=ValueError("duplicate")))

        with pytest.raises(ValueError):
            await mediator.send(CreateCategoryCommand(name="Design", slug="design"))
        assert await cached(cache, CategoryCacheKeys.tree())

    async def test_correlation_id_forwarded_to_broadcast(self, cache: TwoTierCache) -> None:
        publisher = AsyncMock()
        cache.attach_publisher(publisher)
        mediator = build_mediator(cache)
        mediator.register(CreateCategoryCommand, AsyncMock(return_value=None))

        with LogContext(correlation_id="corr-42"):
            await mediator.send(CreateCategoryCommand(name="Design", slug="design"))

        assert publisher.publish.await_count == 2
        for call in publisher.publish.await_args_list:
            assert call.kwargs["correlation_id"] == "corr-42"

    async def test_duplicate_patterns_invalidated_once(self, cache: TwoTierCache) -> None:
        publisher = AsyncMock()
        cache.attach_publisher(publisher)
        mediator = build_mediator(cache)
        mediator.register(TouchCourses, AsyncMock(return_value=None))

        await mediator.send(TouchCourses(resolved=("courses:id:1", "courses:id:1", "")))

        publisher.publish.assert_awaited_once()
        assert publisher.publish.await_args.args[0] == "courses:id:1"

    async def test_empty_resolution_falls_back_to_static(self, cache: TwoTierCache) -> None:
        await seed(cache, "courses:id:1", "courses:list:p1")
        mediator = build_mediator(cache)
        mediator.register(TouchCourses, AsyncMock(return_value=None))

        await mediator.send(TouchCourses())

        assert not await cached(cache, "courses:id:1")
        assert not await cached(cache, "courses:list:p1")


class TestResolvedInvalidation:
    """Test commands whose patterns depend on stored state."""

    async def test_enrollment_update_targets_user_and_course(self, cache: TwoTierCache) -> None:
        user_id, course_id, other_user, enrollment_id = uuid4(), uuid4(), uuid4(), uuid4()
        enrollments = InMemoryReadRepository(
            [SimpleNamespace(id=enrollment_id, user_id=user_id, course_id=course_id)]
        )
        user_key = EnrollmentCacheKeys.by_user(user_id, PageRequest())
        course_key = EnrollmentCacheKeys.by_course(course_id, PageRequest())
        other_key = EnrollmentCacheKeys.by_user(other_user, PageRequest())
        await seed(cache, user_key, course_key, other_key, CourseCacheKeys.by_id(course_id))

        mediator = build_mediator(cache, ReadRepositories(enrollments=enrollments))
        mediator.register(UpdateEnrollmentProgressCommand, AsyncMock(return_value=None))
        await mediator.send(UpdateEnrollmentProgressCommand(enrollment_id, progress_percent=50))

        assert not await cached(cache, user_key)
        assert not await cached(cache, course_key)
        assert not await cached(cache, CourseCacheKeys.by_id(course_id))
        assert await cached(cache, other_key)

    async def test_unresolvable_enrollment_drops_namespace(self, cache: TwoTierCache) -> None:
        """Without a repository the static fallback clears every enrollment entry."""
        user_key = EnrollmentCacheKeys.by_user(uuid4(), PageRequest())
        await seed(cache, user_key, "courses:id:1")

        mediator = build_mediator(cache)
        mediator.register(UpdateEnrollmentProgressCommand, AsyncMock(return_value=None))
        await mediator.send(UpdateEnrollmentProgressCommand(uuid4(), progress_percent=10))

        assert not await cached(cache, user_key)
        assert await cached(cache, "courses:id:1")

    async def test_lesson_delete_resolved_before_handler(self, cache: TwoTierCache) -> None:
        """The lesson is read before the handler deletes it."""
        lesson_id, course_id = uuid4(), uuid4()
        lessons = InMemoryReadRepository([SimpleNamespace(id=lesson_id, course_id=course_id)])
        other_course_lessons = LessonCacheKeys.by_course(uuid4())
        await seed(
            cache,
            LessonCacheKeys.by_id(lesson_id),
            LessonCacheKeys.by_course(course_id),
            CourseCacheKeys.by_id(course_id),
            other_course_lessons,
        )

        async def delete_lesson(command: DeleteLessonCommand) -> None:
            lessons.remove(command.lesson_id)

        mediator = build_mediator(cache, ReadRepositories(lessons=lessons))
        mediator.register(DeleteLessonCommand, delete_lesson)
        await mediator.send(DeleteLessonCommand(lesson_id))

        assert not await cached(cache, LessonCacheKeys.by_course(course_id))
        assert not await cached(cache, CourseCacheKeys.by_id(course_id))
        assert await cached(cache, other_course_lessons)

    async def test_payment_resolved_after_handler(self, cache: TwoTierCache) -> None:
        """The payment row written by the handler drives the patterns."""
        payment_id, order_id, other_order = uuid4(), uuid4(), uuid4()
        payments: InMemoryReadRepository[SimpleNamespace] = InMemoryReadRepository()
        await seed(
            cache,
            PaymentCacheKeys.by_order(order_id),
            OrderCacheKeys.by_id(order_id),
            OrderCacheKeys.by_id(other_order),
        )

        async def complete(command: CompletePaymentCommand) -> None:
            payments.add(
                SimpleNamespace(
                    id=payment_id, order_id=order_id, conversation_id=command.conversation_id
                )
            )

        mediator = build_mediator(cache, ReadRepositories(payments=payments))
        mediator.register(CompletePaymentCommand, complete)
        await mediator.send(CompletePaymentCommand("Conv-1", provider_token="tok"))

        assert not await cached(cache, PaymentCacheKeys.by_order(order_id))
        assert not await cached(cache, OrderCacheKeys.by_id(order_id))
        assert await cached(cache, OrderCacheKeys.by_id(other_order))


class TestUniquePatterns:
    def test_drops_blanks_and_duplicates_in_order(self) -> None:
        assert unique_patterns(["b:*", "a:*", "b:*", "", "  ", "a:*"]) == ["b:*", "a:*"]
