"""``pgtemplate build`` -- (re)build the template database when stale."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import typer

from cli.display import display_build_result
from cli.runtime import (
    ENGINE_ERRORS,
    console,
    fail,
    get_settings,
    load_project,
    open_repository,
    open_server,
    resolve_environment,
    run,
    split_mode,
)
from template_engine.builder.template_manager import TemplateManager
from template_engine.config import ProjectConfig
from template_engine.db.database import DatabaseServer
from template_engine.state.change_detector import ChangeDetector

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildOutcome:
    template_name: str
    rebuilt: bool
    file_count: int


async def build_template(
    server: DatabaseServer,
    project: ProjectConfig,
    base_dir: Path,
    env: str | None,
    force: bool,
) -> BuildOutcome:
    """Discover files for *env* and build the configured template if needed."""
    repository = open_repository(project, base_dir)
    environments, env_filter = resolve_environment(project, env)
    files = await repository.discover_sql_files(environments, env_filter)

    manager = TemplateManager(
        server,
        change_detector=ChangeDetector(repository.path),
        repository=repository,
        split_mode=split_mode(project),
    )
    name = project.database.template_name

    if force:
        await manager.drop_template(name)
        await manager.create_template(name, files)
        rebuilt = True
    else:
        rebuilt = await manager.smart_create_template(name, files)

    return BuildOutcome(template_name=name, rebuilt=rebuilt, file_count=len(files))


async def _build(project: ProjectConfig, base_dir: Path, env: str | None, force: bool) -> BuildOutcome:
    async with open_server(project, get_settings()) as server:
        return await build_template(server, project, base_dir, env, force)


def build_command(
    env: str | None = typer.Option(
        None,
        "--env",
        "-e",
        help="Environment whose directories take part in the build.",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        help="Rebuild even when no SQL file changed.",
    ),
) -> None:
    """Build the template database from the SQL repository."""
    project, base_dir = load_project()

    try:
        outcome = run(_build(project, base_dir, env, force))
    except ENGINE_ERRORS as exc:
        fail(f"Build failed: {exc}")

    display_build_result(console, outcome.template_name, outcome.rebuilt, outcome.file_count)
