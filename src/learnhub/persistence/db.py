"""Session factory for the read repositories.

Pattern resolution only reads a handful of foreign keys per command, so
the engine is created on first use and sized from the ``db_*`` settings.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from learnhub.config import settings

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Sessions bound to the shared engine, created on first call."""
    global _engine, _session_factory
    if _session_factory is None:
        _engine = create_async_engine(
            settings.database_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=True,
        )
        # Lookups never write; skip flushes and keep loaded rows usable
        _session_factory = async_sessionmaker(_engine, autoflush=False, expire_on_commit=False)
    return _session_factory


async def close_db() -> None:
    """Dispose the engine behind the session factory, if one was created."""
    global _engine, _session_factory
    if _engine is None:
        return
    engine, _engine, _session_factory = _engine, None, None
    await engine.dispose()
