"""``pgtemplate seed`` -- build the template if needed, then clone it."""

from __future__ import annotations

import logging
from pathlib import Path

import typer

from cli.commands.build import build_template
from cli.display import display_build_result
from cli.runtime import (
    ENGINE_ERRORS,
    console,
    fail,
    get_settings,
    load_project,
    open_server,
    run,
)
from template_engine.clone.clone_manager import CloneConfig, CloneManager
from template_engine.clone.errors import InvalidDatabaseNameError
from template_engine.config import ProjectConfig

logger = logging.getLogger(__name__)


async def _seed(project: ProjectConfig, base_dir: Path, output: str, env: str | None, replace: bool) -> None:
    settings = get_settings()
    async with open_server(project, settings) as server:
        outcome = await build_template(server, project, base_dir, env, force=False)
        display_build_result(console, outcome.template_name, outcome.rebuilt, outcome.file_count)

        cloner = CloneManager(server, CloneConfig.from_settings(settings))
        if replace:
            await cloner.clone_database_with_recovery(outcome.template_name, output)
        else:
            await cloner.clone_database(outcome.template_name, output)


def seed_command(
    output: str = typer.Argument(
        ...,
        help="Name of the database to create from the template.",
    ),
    env: str | None = typer.Option(
        None,
        "--env",
        "-e",
        help="Environment whose directories take part in the build.",
    ),
    replace: bool = typer.Option(
        False,
        "--replace",
        help="Drop OUTPUT first if it already exists.",
    ),
) -> None:
    """Create database OUTPUT as a clone of the (freshly built) template."""
    project, base_dir = load_project()

    try:
        CloneManager.validate_database_name(output)
    except InvalidDatabaseNameError as exc:
        fail(str(exc))
    if output == project.database.template_name:
        fail(f"Output database must differ from the template '{output}'")

    try:
        run(_seed(project, base_dir, output, env, replace))
    except ENGINE_ERRORS as exc:
        fail(f"Seed failed: {exc}")

    console.print(f"[green]Created database '{output}' from template '{project.database.template_name}'.[/green]")
