"""Rich output formatting for the pgtemplate CLI.

All functions write to a :class:`rich.console.Console` instance (typically
bound to *stderr*).
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

if TYPE_CHECKING:
    from template_engine.config import ProjectConfig
    from template_engine.models.files import ChangeReport, TemplateMetadata


# ---------------------------------------------------------------------------
# State colour mapping
# ---------------------------------------------------------------------------

_STATE_COLOURS: dict[str, str] = {
    "CURRENT": "green",
    "STALE": "yellow",
    "ABSENT": "dim red",
}

_CHANGE_COLOURS: dict[str, str] = {
    "MODIFIED": "yellow",
    "ADDED": "green",
    "DELETED": "red",
}


def _coloured(value: str, colours: dict[str, str]) -> str:
    colour = colours.get(value, "white")
    return f"[{colour}]{value}[/{colour}]"


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def display_config_summary(console: Console, project: ProjectConfig, config_path: Path, repo_path: Path) -> None:
    """Render the configuration panel shown by ``pgtemplate status``."""
    db = project.database
    repo_line = f"{repo_path} ({project.repository.type})"
    if not repo_path.is_dir():
        repo_line += "  [red]not found[/red]"

    lines = [
        f"[bold]Config:[/bold]     {config_path}",
        f"[bold]Server:[/bold]     {db.user}@{db.host}:{db.port}/{db.admin_database}",
        f"[bold]Template:[/bold]   {db.template_name}",
        f"[bold]Repository:[/bold] {repo_line}",
        f"[bold]Splitting:[/bold]  {'quote-aware' if db.allow_multi_statement else 'simple'}",
    ]
    console.print(Panel("\n".join(lines), title="pgtemplate", border_style="blue"))


def display_environment_counts(console: Console, counts: dict[str, int], structured: bool) -> None:
    """Render discovered SQL file counts per environment."""
    table = Table(title="Environments", show_lines=False, pad_edge=True, expand=False)
    table.add_column("Environment", style="bold")
    table.add_column("SQL Files", justify="right")

    for name, count in counts.items():
        table.add_row(name, str(count) if count else "[dim]0[/dim]")

    console.print(table)
    layout = "structured" if structured else "flat (environment filters ignored)"
    console.print(f"[dim]Repository layout: {layout}[/dim]")


# ---------------------------------------------------------------------------
# Template state
# ---------------------------------------------------------------------------


def display_change_report(console: Console, report: ChangeReport) -> None:
    """Render a template's state and, when stale, every changed file."""
    state = report.state.value
    built = report.created_at.isoformat(timespec="seconds") if report.created_at else "never"
    console.print(f"Template [bold]{report.template_name}[/bold]: {_coloured(state, _STATE_COLOURS)} (built: {built})")

    if not report.changes:
        return

    table = Table(title="Changes Since Last Build", show_lines=False, pad_edge=True, expand=False)
    table.add_column("Change")
    table.add_column("File", style="bold")
    table.add_column("Reason")

    for change in report.changes:
        table.add_row(_coloured(change.kind.value, _CHANGE_COLOURS), change.path, change.reason)

    console.print(table)


def display_template_list(console: Console, records: list[TemplateMetadata]) -> None:
    """Render templates that have a stored build record."""
    if not records:
        console.print("[dim]No templates have been built from this repository.[/dim]")
        return

    table = Table(title="Templates", show_lines=False, pad_edge=True, expand=False)
    table.add_column("Template", style="bold")
    table.add_column("Built At")
    table.add_column("Files", justify="right")

    for record in records:
        table.add_row(
            record.template_name,
            record.created_at.isoformat(timespec="seconds"),
            str(len(record.file_hashes)),
        )

    console.print(table)


def display_build_result(console: Console, template_name: str, rebuilt: bool, file_count: int) -> None:
    if rebuilt:
        console.print(f"[green]Built template '{template_name}' from {file_count} file(s).[/green]")
    else:
        console.print(f"[green]Template '{template_name}' is up to date.[/green]")
