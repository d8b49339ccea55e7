"""Clone a template database with ``CREATE DATABASE ... WITH TEMPLATE``.

Cloning copies the template at file level, which is far cheaper than
replaying every SQL file.  The manager validates both names before building
any SQL, bounds how many clones run at once and how long each may take, and
turns driver failures into the typed errors of :mod:`template_engine.clone.errors`.

Cancellation on timeout is advisory: the awaiting task stops waiting, but the
server may still finish the ``CREATE DATABASE``.  Use
:meth:`CloneManager.clone_database_with_recovery` when a leftover target must
not survive a failure.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import TYPE_CHECKING, TypeVar

from pydantic import BaseModel, Field
from sqlalchemy.exc import DBAPIError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from template_engine.clone.errors import (
    CloneAlreadyExistsError,
    CloneDatabaseError,
    CloneError,
    CloneTimeoutError,
    ConnectionPoolExhaustedError,
    InsufficientPermissionsError,
    TemplateNotFoundError,
)
from template_engine.clone.naming import validate_database_name as _validate_name
from template_engine.db.sqlstate import (
    DUPLICATE_DATABASE,
    INSUFFICIENT_PRIVILEGE,
    INVALID_CATALOG_NAME,
    OBJECT_IN_USE,
    TOO_MANY_CONNECTIONS,
    driver_message,
    sqlstate_of,
)

if TYPE_CHECKING:
    from template_engine.config import Settings
    from template_engine.db.database import DatabaseServer

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CloneConfig(BaseModel):
    """Limits applied to clone and drop operations."""

    clone_timeout_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Maximum time a single CREATE/DROP DATABASE may take.",
    )
    max_concurrent_clones: int = Field(
        default=10,
        ge=1,
        description="Number of clone/drop operations allowed to run at once.",
    )
    queue_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="How long an operation waits for a free slot.",
    )

    @classmethod
    def from_settings(cls, settings: Settings) -> CloneConfig:
        return cls(
            clone_timeout_seconds=settings.clone_timeout_seconds,
            max_concurrent_clones=settings.max_concurrent_clones,
            queue_timeout_seconds=settings.queue_timeout_seconds,
        )

    @property
    def clone_timeout_ms(self) -> int:
        return int(self.clone_timeout_seconds * 1000)


def classify_database_error(exc: Exception, *, template: str | None, target: str) -> CloneError:
    """Map a driver, pool or socket exception to the matching :class:`CloneError`."""
    if isinstance(exc, PoolTimeoutError):
        return ConnectionPoolExhaustedError(f"Timed out waiting for a pooled connection: {exc}")
    if isinstance(exc, OSError):
        # asyncpg raises plain socket errors when the server is unreachable.
        return CloneDatabaseError(str(exc) or type(exc).__name__)

    code = sqlstate_of(exc)
    if code == DUPLICATE_DATABASE:
        return CloneAlreadyExistsError(target)
    if code == INVALID_CATALOG_NAME and template is not None:
        return TemplateNotFoundError(template)
    if code == INSUFFICIENT_PRIVILEGE:
        return InsufficientPermissionsError(target)
    if code == TOO_MANY_CONNECTIONS:
        return ConnectionPoolExhaustedError(f"Server refused connection: {driver_message(exc)}")
    if code == OBJECT_IN_USE:
        busy = template if template is not None else target
        return CloneDatabaseError(f"Database '{busy}' is in use by other sessions: {driver_message(exc)}")
    return CloneDatabaseError(driver_message(exc))


class CloneManager:
    """Create and remove databases cloned from a template."""

    def __init__(self, server: DatabaseServer, config: CloneConfig | None = None) -> None:
        self._server = server
        self._config = config or CloneConfig()
        self._slots = asyncio.Semaphore(self._config.max_concurrent_clones)

    @property
    def config(self) -> CloneConfig:
        return self._config

    @staticmethod
    def validate_database_name(name: str) -> None:
        """Raise :class:`InvalidDatabaseNameError` unless *name* is safe to use."""
        _validate_name(name)

    # -- Operations ----------------------------------------------------------

    async def clone_database(self, template_name: str, clone_name: str) -> None:
        """Create *clone_name* as a copy of *template_name*."""
        self.validate_database_name(template_name)
        self.validate_database_name(clone_name)

        logger.info("Cloning '%s' from template '%s'", clone_name, template_name)
        await self._guarded(
            self._server.create_database(clone_name, template=template_name),
            template=template_name,
            target=clone_name,
        )
        logger.info("Cloned '%s' from template '%s'", clone_name, template_name)

    async def drop_database(self, name: str) -> None:
        """Drop *name* if it exists."""
        self.validate_database_name(name)
        await self._guarded(self._server.drop_database(name), template=None, target=name)
        logger.info("Dropped database '%s'", name)

    async def verify_database_exists(self, name: str) -> bool:
        self.validate_database_name(name)
        try:
            return await self._server.database_exists(name)
        except (DBAPIError, PoolTimeoutError, OSError) as exc:
            raise classify_database_error(exc, template=None, target=name) from exc

    async def verify_database_not_exists(self, name: str) -> bool:
        return not await self.verify_database_exists(name)

    async def clone_database_with_recovery(self, template_name: str, clone_name: str) -> None:
        """Clone, replacing any existing target and removing it again on failure.

        After a successful return *clone_name* is guaranteed to exist.  After
        a failure it is guaranteed not to (as far as the cleanup succeeded).
        """
        self.validate_database_name(template_name)
        self.validate_database_name(clone_name)

        if await self.verify_database_exists(clone_name):
            logger.info("Dropping existing database '%s' before cloning", clone_name)
            await self.drop_database(clone_name)

        try:
            await self.clone_database(template_name, clone_name)
        except CloneError:
            await self._cleanup_after_failure(clone_name)
            raise

        if not await self.verify_database_exists(clone_name):
            raise CloneDatabaseError(f"Clone '{clone_name}' reported success but does not exist")

    # -- Internals -----------------------------------------------------------

    async def _guarded(self, operation: Awaitable[T], *, template: str | None, target: str) -> T:
        """Run *operation* inside a concurrency slot and the clone timeout."""
        config = self._config
        try:
            await asyncio.wait_for(self._slots.acquire(), timeout=config.queue_timeout_seconds)
        except TimeoutError:
            if asyncio.iscoroutine(operation):
                operation.close()
            raise ConnectionPoolExhaustedError(
                f"No clone slot became free within {config.queue_timeout_seconds:g}s "
                f"(limit {config.max_concurrent_clones})"
            ) from None

        try:
            return await asyncio.wait_for(operation, timeout=config.clone_timeout_seconds)
        except TimeoutError as exc:
            raise CloneTimeoutError(config.clone_timeout_ms) from exc
        except (DBAPIError, PoolTimeoutError, OSError) as exc:
            raise classify_database_error(exc, template=template, target=target) from exc
        finally:
            self._slots.release()

    async def _cleanup_after_failure(self, clone_name: str) -> None:
        try:
            if await self.verify_database_exists(clone_name):
                logger.warning("Removing partially created database '%s'", clone_name)
                await self.drop_database(clone_name)
        except CloneError as cleanup_exc:
            logger.error("Cleanup of '%s' failed: %s", clone_name, cleanup_exc)
