"""Discover the SQL files of a repository in execution order.

Two layouts are supported:

* **Structured** -- numbered directories such as ``0_schema/``,
  ``1_seed_common/`` and ``2_seed_dev/``.  Directories run in name order and
  are filtered by environment.
* **Flat** -- every ``.sql`` file directly inside the root.

Files inside a directory always run in lexical order.  The resulting order is
the dependency order of the build, so it must be reproducible.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from pathlib import Path

from template_engine.models.environment import EnvironmentFilter
from template_engine.scanner.file_scanner import is_sql_file

logger = logging.getLogger(__name__)

# Directories containing these markers are always part of a build.
_ALWAYS_INCLUDED: tuple[str, ...] = ("_schema", "_seed_common")

# Markers of environment-specific directories, skipped when no environment
# was requested.
_ENVIRONMENT_MARKERS: tuple[str, ...] = ("_dev", "_test", "_prod", "_staging")


class RepositoryError(Exception):
    """Raised when the repository cannot be read."""


def is_structured_directory_name(name: str) -> bool:
    """Return True for names like ``0_schema`` (leading digit plus underscore)."""
    return bool(name) and name[0].isdigit() and "_" in name


def include_directory(name: str, environments: Iterable[str]) -> bool:
    """Apply the naming-convention rules to one structured directory.

    Schema and common seed directories are always included.  Directories
    tagged ``_seed_<env>`` or ``_<env>`` are included for a requested env.
    With no environments at all, anything not environment-tagged is included.
    """
    if any(marker in name for marker in _ALWAYS_INCLUDED):
        return True

    envs = list(environments)
    for env in envs:
        if f"_seed_{env}" in name or f"_{env}" in name:
            return True

    if not envs:
        return not any(marker in name for marker in _ENVIRONMENT_MARKERS)

    return False


class SqlRepository:
    """A directory of SQL files that makes up one template database."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        if not self._path.exists():
            raise RepositoryError(f"Repository path does not exist: '{self._path}'")
        if not self._path.is_dir():
            raise RepositoryError(f"Repository path is not a directory: '{self._path}'")

    @property
    def path(self) -> Path:
        return self._path

    async def is_structured(self) -> bool:
        return await asyncio.to_thread(self._is_structured)

    async def discover_sql_files(
        self,
        environments: Iterable[str] = (),
        environment_filter: EnvironmentFilter | None = None,
    ) -> list[Path]:
        """Return the SQL files to execute, in order.

        Parameters
        ----------
        environments:
            Environment names such as ``dev``; used by the naming rules of a
            structured repository and ignored for flat ones.
        environment_filter:
            Optional explicit include/exclude lists from the project config.
        """
        envs = tuple(environments)
        files = await asyncio.to_thread(self._discover, envs, environment_filter)
        if not files:
            logger.warning("No SQL files discovered in '%s' (environments=%s)", self._path, list(envs))
        else:
            logger.debug("Discovered %d SQL file(s) in '%s'", len(files), self._path)
        return files

    async def load_sql_content(self, path: Path | str) -> str:
        """Read one SQL file as UTF-8 text."""
        file_path = Path(path)
        try:
            return await asyncio.to_thread(file_path.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise RepositoryError(f"Failed to read SQL file '{file_path}': {exc}") from exc

    # -- Internals -----------------------------------------------------------

    def _subdirectories(self) -> list[Path]:
        try:
            return sorted((p for p in self._path.iterdir() if p.is_dir()), key=lambda p: p.name)
        except OSError as exc:
            raise RepositoryError(f"Failed to read repository directory '{self._path}': {exc}") from exc

    def _is_structured(self) -> bool:
        return any(is_structured_directory_name(d.name) for d in self._subdirectories())

    def _discover(self, environments: tuple[str, ...], environment_filter: EnvironmentFilter | None) -> list[Path]:
        if not self._is_structured():
            return self._sql_files_in(self._path)

        files: list[Path] = []
        for directory in self._subdirectories():
            default = include_directory(directory.name, environments)
            included = environment_filter.allows(directory.name, default) if environment_filter else default
            if included:
                files.extend(self._sql_files_in(directory))
            else:
                logger.debug("Skipping directory '%s'", directory.name)
        return files

    @staticmethod
    def _sql_files_in(directory: Path) -> list[Path]:
        try:
            return sorted(p for p in directory.iterdir() if p.is_file() and is_sql_file(p))
        except OSError as exc:
            raise RepositoryError(f"Failed to read directory '{directory}': {exc}") from exc
