"""``pgtemplate drop`` -- remove a database created by ``seed``."""

from __future__ import annotations

import typer

from cli.runtime import ENGINE_ERRORS, console, fail, get_settings, load_project, open_server, run
from template_engine.clone.clone_manager import CloneConfig, CloneManager
from template_engine.clone.errors import InvalidDatabaseNameError
from template_engine.config import ProjectConfig


async def _drop(project: ProjectConfig, name: str) -> None:
    settings = get_settings()
    async with open_server(project, settings) as server:
        await CloneManager(server, CloneConfig.from_settings(settings)).drop_database(name)


def drop_command(
    name: str = typer.Argument(..., help="Database to drop."),
) -> None:
    """Drop database NAME if it exists (the template itself is refused)."""
    project, _ = load_project()

    try:
        CloneManager.validate_database_name(name)
    except InvalidDatabaseNameError as exc:
        fail(str(exc))
    if name == project.database.template_name:
        fail(f"'{name}' is the template database; use 'pgtemplate build --force' to rebuild it")

    try:
        run(_drop(project, name))
    except ENGINE_ERRORS as exc:
        fail(f"Drop failed: {exc}")

    console.print(f"[green]Dropped database '{name}'.[/green]")
