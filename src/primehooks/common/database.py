"""Async database manager for primehooks."""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from primehooks.common.config import PrimeHooksSettings, get_settings
from primehooks.common.models import Base

# Import all model modules so Base.metadata is complete for create_all().
import primehooks.organizations.models  # noqa: F401
import primehooks.webhooks.models  # noqa: F401
import primehooks.assignments.models  # noqa: F401
import primehooks.executions.models  # noqa: F401


def is_memory_url(url: str) -> bool:
    parsed = make_url(url)
    return parsed.get_backend_name() == "sqlite" and parsed.database in (None, "", ":memory:")


def engine_options(url: str) -> dict[str, Any]:
    """Engine keyword arguments for a database URL.

    An in-memory SQLite database exists only on the connection that created
    it, so every session shares one connection. Those sessions interleave
    their transactions on it: fine for tests that run one operation at a
    time, wrong for concurrent writers. Use a file or server database when
    triggers run concurrently.
    """
    if is_memory_url(url):
        return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    return {}


class DatabaseManager:
    """Manages a single async database engine."""

    def __init__(self, settings: PrimeHooksSettings | None = None):
        self._settings = settings or get_settings()
        self.engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    async def init(self) -> None:
        url = self._settings.db_url
        self.engine = create_async_engine(url, echo=False, **engine_options(url))
        self._session_factory = async_sessionmaker(
            self.engine, expire_on_commit=False
        )

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        if self._session_factory is None:
            raise RuntimeError("DatabaseManager not initialized; call init() first")
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_all(self) -> None:
        if self.engine is None:
            raise RuntimeError("DatabaseManager not initialized; call init() first")
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self._session_factory = None
