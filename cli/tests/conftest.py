"""Shared fixtures for CLI tests: a project on disk and an in-memory server."""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager
from pathlib import Path
from unittest.mock import patch

import pytest
from sqlalchemy.exc import ProgrammingError

from template_engine.config import ProjectConfig, render_project_config

TEMPLATE = "app_template"

# Statements containing this marker fail with a syntax error.
FAIL_MARKER = "__FAIL__"


class _DriverError(Exception):
    def __init__(self, message: str, sqlstate: str) -> None:
        super().__init__(message)
        self.sqlstate = sqlstate


class _Connection:
    def __init__(self) -> None:
        self.executed: list[str] = []

    async def exec_driver_sql(self, statement: str) -> None:
        if FAIL_MARKER in statement:
            raise ProgrammingError("<fake>", None, _DriverError("syntax error", "42601"))
        self.executed.append(statement)


class MemoryServer:
    """Just enough of the DatabaseServer protocol for command tests."""

    def __init__(self) -> None:
        self.databases: dict[str, list[str]] = {"postgres": [], "template0": []}

    async def database_exists(self, name: str) -> bool:
        return name in self.databases

    async def create_database(self, name: str, template: str | None = None) -> None:
        if name in self.databases:
            raise ProgrammingError("<fake>", None, _DriverError(f'database "{name}" already exists', "42P04"))
        if template is not None and template not in self.databases:
            raise ProgrammingError("<fake>", None, _DriverError(f'database "{template}" does not exist', "3D000"))
        self.databases[name] = list(self.databases.get(template or "template0", []))

    async def drop_database(self, name: str) -> None:
        self.databases.pop(name, None)

    @asynccontextmanager
    async def transaction(self, database: str) -> AsyncIterator[_Connection]:
        conn = _Connection()
        yield conn
        self.databases[database].extend(conn.executed)

    async def dispose(self) -> None:
        return None


@pytest.fixture
def memory_server() -> Iterator[MemoryServer]:
    """Route every command's server through one in-memory instance."""
    server = MemoryServer()

    @asynccontextmanager
    async def _open_server(project, settings) -> AsyncIterator[MemoryServer]:
        yield server

    with (
        patch("cli.commands.build.open_server", _open_server),
        patch("cli.commands.seed.open_server", _open_server),
        patch("cli.commands.drop.open_server", _open_server),
    ):
        yield server


@pytest.fixture
def project_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """A working directory holding pgtemplate.toml and a structured db/ repo."""
    files = {
        "db/0_schema/001_users.sql": "CREATE TABLE users (id INT PRIMARY KEY);\n",
        "db/1_seed_common/101_admin.sql": "INSERT INTO users VALUES (1);\n",
        "db/2_seed_backend/201_backend.sql": "INSERT INTO users VALUES (2);\n",
        "db/2_seed_dev/201_dev.sql": "INSERT INTO users VALUES (3);\n",
    }
    for rel, content in files.items():
        path = tmp_path / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")

    (tmp_path / "pgtemplate.toml").write_text(render_project_config(ProjectConfig.default("db", TEMPLATE)))
    monkeypatch.chdir(tmp_path)
    for var in ("PGTEMPLATE_CONFIG_FILE", "PGTEMPLATE_DATABASE_URL"):
        monkeypatch.delenv(var, raising=False)
    return tmp_path
