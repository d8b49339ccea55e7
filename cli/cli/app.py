"""pgtemplate CLI application -- Typer-based developer interface.

Builds a PostgreSQL template database from a directory of SQL files and
clones it into fresh databases for tests.  Human-readable output goes to
*stderr* via Rich.
"""

from __future__ import annotations

import logging
from pathlib import Path

import typer

from cli.commands.build import build_command
from cli.commands.drop import drop_command
from cli.commands.init import init_command
from cli.commands.seed import seed_command
from cli.commands.status import status_command
from cli.commands.templates import templates_command
from cli.runtime import get_settings, state
from template_engine.logging_config import configure_logging

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

app = typer.Typer(
    name="pgtemplate",
    help="pgtemplate - fast PostgreSQL test databases from cached templates",
    no_args_is_help=True,
)

app.command(name="init")(init_command)
app.command(name="status")(status_command)
app.command(name="build")(build_command)
app.command(name="seed")(seed_command)
app.command(name="drop")(drop_command)
app.command(name="templates")(templates_command)


# ---------------------------------------------------------------------------
# Callback -- global options
# ---------------------------------------------------------------------------


@app.callback()
def _global_options(
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to pgtemplate.toml (default: ./pgtemplate.toml).",
        envvar="PGTEMPLATE_CONFIG_FILE",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log debug output to stderr.",
    ),
) -> None:
    """Global options applied to every command."""
    state.config_path = config
    state.verbose = verbose
    state.settings = None

    settings = get_settings()
    configure_logging(debug=verbose or settings.debug, structured=settings.structured_logging)
    logger.debug("Using configuration file %s", config or settings.config_file)
