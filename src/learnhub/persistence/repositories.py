"""Read-side repositories used to resolve invalidation patterns.

Commands whose patterns depend on stored state (an enrollment's user and
course, a lesson's course) receive a ``ReadRepositories`` container
explicitly; nothing here is looked up from a global service locator.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Any, Generic, Protocol, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from learnhub.persistence.db import get_session_factory

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)


class ReadRepository(Protocol[T_co]):
    """Minimal read contract: lookup by id or by equality filters."""

    async def get_by_id(self, entity_id: Any) -> T_co | None: ...

    async def get(self, **filters: Any) -> T_co | None: ...


class SqlAlchemyReadRepository(Generic[T]):
    """Reads ORM rows of ``model`` through short-lived async sessions."""

    def __init__(
        self,
        model: type[T],
        session_factory: Callable[[], AsyncSession] | None = None,
    ):
        self.model = model
        self._session_factory = session_factory

    def _new_session(self) -> AsyncSession:
        factory = self._session_factory or get_session_factory()
        return factory()

    async def get_by_id(self, entity_id: Any) -> T | None:
        async with self._new_session() as session:
            return await session.get(self.model, entity_id)

    async def get(self, **filters: Any) -> T | None:
        """First row whose columns equal ``filters``."""
        stmt = select(self.model).filter_by(**filters).limit(1)
        async with self._new_session() as session:
            result = await session.execute(stmt)
            return result.scalars().first()


class InMemoryReadRepository(Generic[T]):
    """Dictionary-backed repository for tests and local runs."""

    def __init__(self, items: Iterable[T] = (), id_attr: str = "id"):
        self.id_attr = id_attr
        self._items: dict[Any, T] = {}
        for item in items:
            self.add(item)

    def add(self, item: T) -> None:
        self._items[getattr(item, self.id_attr)] = item

    def remove(self, entity_id: Any) -> T | None:
        return self._items.pop(entity_id, None)

    async def get_by_id(self, entity_id: Any) -> T | None:
        return self._items.get(entity_id)

    async def get(self, **filters: Any) -> T | None:
        for item in self._items.values():
            if all(getattr(item, name, None) == value for name, value in filters.items()):
                return item
        return None


class ReadRepositories:
    """Named repositories handed to pattern resolution.

    Accessible by attribute (``repos.enrollments``) or item
    (``repos["enrollments"]``).
    """

    def __init__(
        self,
        repositories: Mapping[str, ReadRepository[Any]] | None = None,
        **named: ReadRepository[Any],
    ):
        self._repositories: dict[str, ReadRepository[Any]] = {**(repositories or {}), **named}

    def __getitem__(self, name: str) -> ReadRepository[Any]:
        return self._repositories[name]

    def __getattr__(self, name: str) -> ReadRepository[Any]:
        try:
            return self.__dict__["_repositories"][name]
        except KeyError:
            raise AttributeError(f"No read repository registered for {name!r}") from None

    def __contains__(self, name: object) -> bool:
        return name in self._repositories

    def register(self, name: str, repository: ReadRepository[Any]) -> None:
        self._repositories[name] = repository
