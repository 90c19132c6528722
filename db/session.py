from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from db.models import Base
from settings.config import Settings

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """
    Storage handle owning the async engine and the session factory.
    Built once at startup, attached to the app, disposed at shutdown.
    """

    def __init__(
        self,
        dsn: str,
        pool_size: int = 10,
        max_overflow: int = 20,
        pool_timeout: float = 30.0,
        command_timeout: float = 15.0,
        echo: bool = False,
    ) -> None:
        self._dsn = dsn
        self._pool_size = pool_size
        self._max_overflow = max_overflow
        self._pool_timeout = pool_timeout
        self._command_timeout = command_timeout
        self._echo = echo
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(
            settings.database_url,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            command_timeout=settings.DB_COMMAND_TIMEOUT,
            echo=settings.DB_ECHO,
        )

    @property
    def is_sqlite(self) -> bool:
        return make_url(self._dsn).get_backend_name() == "sqlite"

    def _create_engine(self) -> AsyncEngine:
        if self.is_sqlite:
            # busy timeout doubles as the statement bound for SQLite
            engine = create_async_engine(
                self._dsn,
                echo=self._echo,
                connect_args={"timeout": self._command_timeout},
            )
            event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
            return engine
        return create_async_engine(
            self._dsn,
            echo=self._echo,
            pool_size=self._pool_size,
            max_overflow=self._max_overflow,
            pool_timeout=self._pool_timeout,
            pool_pre_ping=True,
            connect_args={"command_timeout": self._command_timeout},
        )

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Database is not connected; call connect() first")
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            raise RuntimeError("Database is not connected; call connect() first")
        return self._session_factory

    async def connect(self) -> None:
        """
        Create the engine and verify connectivity. Safe to call twice.
        """
        if self._engine is not None:
            return
        logger.info("Connecting to %s", make_url(self._dsn).render_as_string(hide_password=True))
        engine = self._create_engine()
        try:
            # no-op transaction for connectivity test
            async with engine.begin() as conn:
                await conn.run_sync(lambda _: None)
        except Exception:
            await engine.dispose()
            raise
        self._engine = engine
        self._session_factory = async_sessionmaker(engine, expire_on_commit=False)

    async def create_all(self) -> None:
        """
        Create every table directly from the ORM metadata (local runs and tests;
        deployed databases go through alembic).
        """
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with self.session_factory() as session:
            yield session

    async def dispose(self) -> None:
        """
        Dispose the engine on application shutdown.
        """
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None


# --- FastAPI dependencies ---
def get_database(request: Request) -> Database:
    return request.app.state.db


async def get_async_session(request: Request) -> AsyncIterator[AsyncSession]:
    """
    FastAPI dependency for request-scoped AsyncSession.
    """
    async with get_database(request).session() as session:
        yield session
