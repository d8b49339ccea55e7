"""``pgtemplate status`` -- show configuration, discovery and template state.

Works entirely from the filesystem; no database connection is opened.
"""

from __future__ import annotations

from pathlib import Path

import typer

from cli.display import display_change_report, display_config_summary, display_environment_counts
from cli.runtime import (
    ENGINE_ERRORS,
    EXIT_CONFIG,
    config_path,
    console,
    fail,
    load_project,
    resolve_environment,
    run,
)
from template_engine.config import ProjectConfig
from template_engine.loader.sql_repository import SqlRepository
from template_engine.models.files import ChangeReport
from template_engine.state.change_detector import ChangeDetector


async def _environment_counts(
    project: ProjectConfig,
    repository: SqlRepository,
    env: str | None,
) -> dict[str, int]:
    names = [env] if env is not None else sorted(project.environments)
    counts: dict[str, int] = {}
    for name in names:
        environments, env_filter = resolve_environment(project, name)
        counts[name] = len(await repository.discover_sql_files(environments, env_filter))
    if env is None:
        counts["(all)"] = len(await repository.discover_sql_files())
    return counts


async def _status(
    project: ProjectConfig,
    repository: SqlRepository,
    env: str | None,
) -> tuple[dict[str, int], bool, ChangeReport]:
    counts = await _environment_counts(project, repository, env)
    structured = await repository.is_structured()
    report = await ChangeDetector(repository.path).detect_changes(project.database.template_name)
    return counts, structured, report


def status_command(
    env: str | None = typer.Option(
        None,
        "--env",
        "-e",
        help="Only report on this environment.",
    ),
) -> None:
    """Show configuration, discovered SQL files and template state."""
    project, base_dir = load_project()
    repo_path = project.repository_path(base_dir)
    display_config_summary(console, project, config_path(), repo_path)

    if not repo_path.is_dir():
        fail(f"Repository directory not found: '{repo_path}'", EXIT_CONFIG)

    try:
        counts, structured, report = run(_status(project, SqlRepository(repo_path), env))
    except ENGINE_ERRORS as exc:
        fail(f"Status failed: {exc}")

    display_environment_counts(console, counts, structured)
    display_change_report(console, report)
