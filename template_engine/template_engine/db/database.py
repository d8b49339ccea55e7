"""Async SQLAlchemy access to the PostgreSQL server hosting the templates.

All administrative work (``CREATE DATABASE``, ``DROP DATABASE``, catalog
lookups) runs on one pooled engine connected to the admin database.
Building a template needs connections *to the template itself*; those use a
short-lived ``NullPool`` engine per transaction so no session lingers on the
template once the build is done.  PostgreSQL refuses to clone a template that
still has connections.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any, Protocol

from sqlalchemy import text
from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool

from template_engine.clone.naming import validate_database_name

logger = logging.getLogger(__name__)


def get_engine(
    database_url: str | URL,
    pool_size: int = 5,
    max_overflow: int = 5,
    pool_timeout: float = 10.0,
) -> AsyncEngine:
    """Create the pooled administrative engine.

    Parameters
    ----------
    database_url:
        ``postgresql+asyncpg://`` URL of the admin database (usually
        ``postgres``).
    pool_size:
        Number of persistent connections.
    max_overflow:
        Extra connections allowed above *pool_size*.
    pool_timeout:
        Seconds to wait for a free connection before SQLAlchemy raises
        ``sqlalchemy.exc.TimeoutError``.
    """
    engine = create_async_engine(
        database_url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_timeout=pool_timeout,
        pool_pre_ping=True,
        echo=False,
    )
    logger.info(
        "Created async engine pool_size=%d max_overflow=%d",
        pool_size,
        max_overflow,
    )
    return engine


class DatabaseServer(Protocol):
    """The database operations the template and clone managers rely on."""

    async def database_exists(self, name: str) -> bool: ...

    async def create_database(self, name: str, template: str | None = None) -> None: ...

    async def drop_database(self, name: str) -> None: ...

    def transaction(self, database: str) -> AbstractAsyncContextManager[Any]: ...

    async def dispose(self) -> None: ...


class PostgresServer:
    """:class:`DatabaseServer` backed by a SQLAlchemy :class:`AsyncEngine`."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        # CREATE/DROP DATABASE cannot run inside a transaction block.
        self._autocommit = engine.execution_options(isolation_level="AUTOCOMMIT")

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    def quote(self, name: str) -> str:
        """Validate *name* and return it as a double-quoted identifier."""
        validate_database_name(name)
        return self._engine.dialect.identifier_preparer.quote_identifier(name)

    async def database_exists(self, name: str) -> bool:
        async with self._engine.connect() as conn:
            result = await conn.execute(
                text("SELECT 1 FROM pg_database WHERE datname = :name"),
                {"name": name},
            )
            return result.scalar() is not None

    async def create_database(self, name: str, template: str | None = None) -> None:
        statement = f"CREATE DATABASE {self.quote(name)}"
        if template is not None:
            statement += f" WITH TEMPLATE {self.quote(template)}"
        async with self._autocommit.connect() as conn:
            await conn.exec_driver_sql(statement)
        logger.debug("Executed: %s", statement)

    async def drop_database(self, name: str) -> None:
        statement = f"DROP DATABASE IF EXISTS {self.quote(name)}"
        async with self._autocommit.connect() as conn:
            await conn.exec_driver_sql(statement)
        logger.debug("Executed: %s", statement)

    @asynccontextmanager
    async def transaction(self, database: str) -> AsyncIterator[AsyncConnection]:
        """Yield a connection to *database* inside one transaction.

        The transaction commits when the block exits normally and rolls back
        when it raises.
        """
        validate_database_name(database)
        engine = create_async_engine(self._engine.url.set(database=database), poolclass=NullPool)
        try:
            async with engine.begin() as conn:
                yield conn
        finally:
            await engine.dispose()

    async def dispose(self) -> None:
        await self._engine.dispose()
