"""Shared state and helpers for pgtemplate commands.

Global options parsed by the Typer callback land in :data:`state`; every
command reads the project configuration and opens the server through the
helpers below so error handling and exit codes stay uniform.

Exit codes: ``1`` for operational failures, ``3`` for configuration problems.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Coroutine
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, NoReturn, TypeVar

import typer
from pydantic import ValidationError
from rich.console import Console
from sqlalchemy.exc import SQLAlchemyError

from template_engine.builder.template_manager import TemplateError
from template_engine.clone.errors import CloneError
from template_engine.config import (
    ConfigError,
    ProjectConfig,
    Settings,
    build_database_url,
    load_project_config,
    load_settings,
)
from template_engine.db.database import PostgresServer, get_engine
from template_engine.loader.sql_repository import RepositoryError, SqlRepository
from template_engine.models.environment import EnvironmentFilter
from template_engine.parser.statement_splitter import SplitMode
from template_engine.scanner.file_scanner import ScanError
from template_engine.state.change_detector import ChangeDetectionError

logger = logging.getLogger(__name__)

console = Console(stderr=True)

T = TypeVar("T")

EXIT_FAILURE = 1
EXIT_CONFIG = 3

# Failures reported as a red message and exit code 1.
ENGINE_ERRORS: tuple[type[BaseException], ...] = (
    TemplateError,
    CloneError,
    RepositoryError,
    ScanError,
    ChangeDetectionError,
    SQLAlchemyError,
    OSError,
)


@dataclass
class CliState:
    config_path: Path | None = None
    verbose: bool = False
    settings: Settings | None = field(default=None, repr=False)


state = CliState()


def fail(message: str, code: int = EXIT_FAILURE) -> NoReturn:
    console.print(f"[red]{message}[/red]")
    raise typer.Exit(code=code)


def run(coro: Coroutine[Any, Any, T]) -> T:
    """Run *coro* to completion on a fresh event loop."""
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def get_settings() -> Settings:
    if state.settings is None:
        try:
            state.settings = load_settings()
        except ValidationError as exc:
            fail(f"Invalid PGTEMPLATE_ environment settings: {exc}", EXIT_CONFIG)
    return state.settings


def config_path() -> Path:
    return state.config_path or get_settings().config_file


def load_project() -> tuple[ProjectConfig, Path]:
    """Return the project config and the directory it was loaded from."""
    path = config_path()
    try:
        project = load_project_config(path)
    except ConfigError as exc:
        fail(str(exc), EXIT_CONFIG)
    return project, path.resolve().parent


def open_repository(project: ProjectConfig, base_dir: Path) -> SqlRepository:
    try:
        return SqlRepository(project.repository_path(base_dir))
    except RepositoryError as exc:
        fail(str(exc), EXIT_CONFIG)


def resolve_environment(project: ProjectConfig, env: str | None) -> tuple[list[str], EnvironmentFilter | None]:
    """Translate ``--env`` into naming-rule environments plus an optional filter.

    Environments configured in ``pgtemplate.toml`` bring their directory
    lists; any other name only takes part in the directory naming rules.
    """
    if env is None:
        return [], None
    if env in project.environments:
        try:
            return [env], project.environment_filter(env)
        except ConfigError as exc:
            fail(str(exc), EXIT_CONFIG)
    return [env], None


def split_mode(project: ProjectConfig) -> SplitMode:
    return SplitMode.ADVANCED if project.database.allow_multi_statement else SplitMode.SIMPLE


@asynccontextmanager
async def open_server(project: ProjectConfig, settings: Settings) -> AsyncIterator[PostgresServer]:
    """Yield a server on the admin database; the engine is disposed on exit."""
    engine = get_engine(
        build_database_url(project, settings),
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        pool_timeout=settings.database_pool_timeout,
    )
    server = PostgresServer(engine)
    try:
        yield server
    finally:
        await server.dispose()
