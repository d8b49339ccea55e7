"""``pgtemplate init`` -- write a starter ``pgtemplate.toml``.

The scaffold points at an existing SQL repository and defines two example
environments, ``local`` and ``production``, with directory include/exclude
lists that can be edited afterwards.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import typer
from rich.panel import Panel

from cli.runtime import EXIT_CONFIG, config_path, console, fail
from template_engine.clone.errors import InvalidDatabaseNameError
from template_engine.clone.naming import validate_database_name
from template_engine.config import ProjectConfig, render_project_config

logger = logging.getLogger(__name__)


def init_command(
    repo_dir: Path = typer.Option(
        ...,
        "--repo-dir",
        "-r",
        help="Directory containing the SQL files.",
    ),
    template_name: str = typer.Option(
        ...,
        "--template-name",
        "-t",
        help="Name of the template database to build.",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        help="Overwrite an existing configuration file.",
    ),
) -> None:
    """Create a pgtemplate.toml for a SQL repository."""
    if not repo_dir.is_dir():
        fail(f"Repository directory not found: '{repo_dir}'", EXIT_CONFIG)

    try:
        validate_database_name(template_name)
    except InvalidDatabaseNameError as exc:
        fail(str(exc), EXIT_CONFIG)

    target = config_path()
    if target.exists() and not force:
        fail(f"'{target}' already exists. Use --force to overwrite it.")

    # Relative paths in the file are resolved against the file's own directory.
    repo_path = Path(os.path.relpath(repo_dir.resolve(), target.resolve().parent)).as_posix()
    project = ProjectConfig.default(repo_path, template_name)

    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(render_project_config(project), encoding="utf-8")
    except OSError as exc:
        fail(f"Failed to write '{target}': {exc}")

    logger.debug("Wrote configuration to %s", target)
    console.print(
        Panel(
            f"[bold]Repository:[/bold] {repo_path}\n"
            f"[bold]Template:[/bold]   {template_name}\n"
            f"[bold]Config:[/bold]     {target}",
            title="Initialised pgtemplate",
            border_style="green",
        )
    )
