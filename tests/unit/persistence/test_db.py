"""Tests for the lazily created session factory."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from learnhub.persistence import db


@pytest.fixture
def engine(monkeypatch: pytest.MonkeyPatch) -> AsyncMock:
    engine = AsyncMock()
    create = MagicMock(return_value=engine)
    monkeypatch.setattr(db, "create_async_engine", create)
    monkeypatch.setattr(db, "_engine", None)
    monkeypatch.setattr(db, "_session_factory", None)
    return engine


class TestSessionFactory:
    def test_created_once_from_settings(self, engine: AsyncMock) -> None:
        factory = db.get_session_factory()

        assert db.get_session_factory() is factory
        create = db.create_async_engine
        create.assert_called_once()
        kwargs = create.call_args.kwargs
        assert kwargs["pool_size"] == db.settings.db_pool_size
        assert kwargs["max_overflow"] == db.settings.db_max_overflow
        assert factory.kw["autoflush"] is False

    async def test_close_disposes_engine(self, engine: AsyncMock) -> None:
        db.get_session_factory()

        await db.close_db()

        engine.dispose.assert_awaited_once()
        assert db._session_factory is None

    async def test_close_without_engine_is_noop(self, engine: AsyncMock) -> None:
        await db.close_db()
        engine.dispose.assert_not_awaited()
