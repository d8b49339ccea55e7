"""Build template databases from ordered SQL files.

A template moves through three states as seen by the change detector:

* ``ABSENT`` -- no metadata record (never built, or the last build failed).
* ``STALE`` -- a record exists but the SQL tree has changed since.
* ``CURRENT`` -- the record matches the tree; the template can be cloned.

The build creates a fresh database from ``template0``, then executes each file
in its own transaction, strictly in order.  Metadata is cleared once the new
database has been created and written only after every file succeeded, so an
interrupted or failed build can never look current.
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path

from sqlalchemy.exc import DBAPIError

from template_engine.clone.naming import validate_database_name
from template_engine.db.database import DatabaseServer
from template_engine.db.sqlstate import (
    DUPLICATE_DATABASE,
    INSUFFICIENT_PRIVILEGE,
    driver_message,
    sqlstate_of,
)
from template_engine.loader.sql_repository import RepositoryError, SqlRepository
from template_engine.models.files import TemplateState
from template_engine.parser.statement_splitter import SplitMode, split_statements
from template_engine.state.change_detector import ChangeDetector

logger = logging.getLogger(__name__)

# Pristine system template; never contains objects added to template1.
BASE_TEMPLATE = "template0"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TemplateError(Exception):
    """Base class for template build failures."""


class TemplateExistsError(TemplateError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Template database '{name}' already exists")


class TemplatePermissionError(TemplateError):
    def __init__(self, name: str, details: str) -> None:
        self.name = name
        self.details = details
        super().__init__(f"Insufficient permissions to create template '{name}': {details}")


class TemplateBuildError(TemplateError):
    """The build could not start or a non-SQL step failed."""


class SqlExecutionError(TemplateBuildError):
    """A statement failed; carries the file and 1-based statement index.

    With *at_commit* set, every statement ran and the failure came from the
    COMMIT (deferred constraints, serialization failures); *statement_index*
    is then the file's statement count.
    """

    def __init__(self, file_path: Path, statement_index: int, details: str, at_commit: bool = False) -> None:
        self.file_path = file_path
        self.statement_index = statement_index
        self.details = details
        self.at_commit = at_commit
        where = f"at commit after statement {statement_index}" if at_commit else f"at statement {statement_index}"
        super().__init__(f"SQL error in '{file_path}' {where}: {details}")


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------


class TemplateManager:
    """Create, inspect and drop template databases.

    Parameters
    ----------
    server:
        Database access used for administrative statements and for the
        per-file transactions inside the new template.
    change_detector:
        Records what each template was built from.  Required for
        :meth:`smart_create_template`; optional otherwise.
    repository:
        Used to read file contents.  When omitted, files are read directly.
    split_mode:
        How file contents are cut into statements.
    """

    def __init__(
        self,
        server: DatabaseServer,
        change_detector: ChangeDetector | None = None,
        repository: SqlRepository | None = None,
        split_mode: SplitMode = SplitMode.ADVANCED,
    ) -> None:
        self._server = server
        self._detector = change_detector
        self._repository = repository
        self._split_mode = split_mode

    @property
    def change_detector(self) -> ChangeDetector | None:
        return self._detector

    # -- Queries -------------------------------------------------------------

    async def template_exists(self, name: str) -> bool:
        validate_database_name(name)
        return await self._server.database_exists(name)

    async def list_templates(self) -> list[str]:
        """Names of templates with a stored build record."""
        if self._detector is None:
            return []
        return await self._detector.list_templates()

    async def template_state(self, name: str) -> TemplateState:
        detector = self._require_detector("template_state")
        return await detector.template_state(name)

    # -- Lifecycle -----------------------------------------------------------

    async def create_template(self, name: str, sql_files: list[Path]) -> None:
        """Create *name* and run every file of *sql_files* in order."""
        validate_database_name(name)
        if not sql_files:
            raise TemplateBuildError(f"No SQL files to build template '{name}' from")

        started = time.monotonic()
        logger.info("Building template '%s' from %d file(s)", name, len(sql_files))
        await self._create_database(name)

        # A rejected CREATE leaves the previous record alone.
        if self._detector is not None:
            await self._detector.clear_metadata(name)

        statement_count = 0
        for file_path in sql_files:
            statement_count += await self._execute_file(name, file_path)

        if self._detector is not None:
            files = await self._detector.scan()
            await self._detector.store_metadata(name, files)

        logger.info(
            "Built template '%s': %d file(s), %d statement(s) in %.2fs",
            name,
            len(sql_files),
            statement_count,
            time.monotonic() - started,
        )

    async def smart_create_template(self, name: str, sql_files: list[Path]) -> bool:
        """Rebuild *name* only when needed; return True if it was rebuilt."""
        detector = self._require_detector("smart_create_template")
        validate_database_name(name)

        stale = await detector.needs_rebuild(name)
        if not stale and await self.template_exists(name):
            logger.info("Template '%s' is current; skipping rebuild", name)
            return False

        if stale:
            logger.info("Template '%s' is stale; rebuilding", name)
        else:
            logger.info("Template '%s' has metadata but no database; rebuilding", name)

        await self._drop_database(name)
        await self.create_template(name, sql_files)
        return True

    async def drop_template(self, name: str) -> None:
        """Drop *name* and forget its build record; no error if absent."""
        validate_database_name(name)
        await self._drop_database(name)
        if self._detector is not None:
            await self._detector.clear_metadata(name)
        logger.info("Dropped template '%s'", name)

    # -- Internals -----------------------------------------------------------

    def _require_detector(self, operation: str) -> ChangeDetector:
        if self._detector is None:
            raise TemplateError(f"{operation} requires a change detector")
        return self._detector

    async def _create_database(self, name: str) -> None:
        try:
            await self._server.create_database(name, template=BASE_TEMPLATE)
        except DBAPIError as exc:
            code = sqlstate_of(exc)
            if code == DUPLICATE_DATABASE:
                raise TemplateExistsError(name) from exc
            if code == INSUFFICIENT_PRIVILEGE:
                raise TemplatePermissionError(name, driver_message(exc)) from exc
            raise TemplateBuildError(f"Failed to create template '{name}': {driver_message(exc)}") from exc

    async def _drop_database(self, name: str) -> None:
        try:
            await self._server.drop_database(name)
        except DBAPIError as exc:
            raise TemplateBuildError(f"Failed to drop template '{name}': {driver_message(exc)}") from exc

    async def _load(self, file_path: Path) -> str:
        if self._repository is not None:
            return await self._repository.load_sql_content(file_path)
        try:
            return await asyncio.to_thread(file_path.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise RepositoryError(f"Failed to read SQL file '{file_path}': {exc}") from exc

    async def _execute_file(self, database: str, file_path: Path) -> int:
        """Run one file's statements in a single transaction; return the count."""
        try:
            content = await self._load(file_path)
        except RepositoryError as exc:
            raise TemplateBuildError(str(exc)) from exc

        statements = split_statements(content, self._split_mode)
        if not statements:
            logger.debug("Skipping '%s': no statements", file_path)
            return 0

        logger.debug("Executing '%s' (%d statement(s))", file_path, len(statements))
        index = 0
        committing = False
        try:
            async with self._server.transaction(database) as conn:
                for index, statement in enumerate(statements, start=1):
                    await conn.exec_driver_sql(statement)
                committing = True
        except DBAPIError as exc:
            if index == 0:
                raise TemplateBuildError(
                    f"Failed to open a transaction on '{database}' for '{file_path}': {driver_message(exc)}"
                ) from exc
            raise SqlExecutionError(file_path, index, driver_message(exc), at_commit=committing) from exc
        return len(statements)
