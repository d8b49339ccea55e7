"""Shared fixtures: an in-memory stand-in for the PostgreSQL server.

``FakeServer`` implements the ``DatabaseServer`` protocol.  Databases are
lists of executed statements; transactions buffer statements and only apply
them on a clean exit.  Failures are raised as SQLAlchemy ``DBAPIError``s
whose driver error carries a SQLSTATE, like the asyncpg adapter does.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from pathlib import Path

import pytest
from sqlalchemy.exc import ProgrammingError

# Statements containing this marker fail with a syntax error.
FAIL_MARKER = "__FAIL__"


class FakeDriverError(Exception):
    def __init__(self, message: str, sqlstate: str) -> None:
        super().__init__(message)
        self.sqlstate = sqlstate


def db_error(message: str, sqlstate: str) -> ProgrammingError:
    return ProgrammingError("<fake>", None, FakeDriverError(message, sqlstate))


class FakeConnection:
    def __init__(self) -> None:
        self.executed: list[str] = []

    async def exec_driver_sql(self, statement: str) -> None:
        if FAIL_MARKER in statement:
            raise db_error(f'syntax error at or near "{FAIL_MARKER}"', "42601")
        self.executed.append(statement)


class FakeServer:
    def __init__(self) -> None:
        self.databases: dict[str, list[str]] = {"postgres": [], "template0": []}
        self.create_calls: list[tuple[str, str | None]] = []
        self.drop_calls: list[str] = []
        self.open_connections = 0
        self.active_creates = 0
        self.max_active_creates = 0
        self.create_delay = 0.0
        self.create_error: Exception | None = None
        self.leave_database_on_error = False
        self.commit_error: Exception | None = None
        self.disposed = False

    async def database_exists(self, name: str) -> bool:
        return name in self.databases

    async def create_database(self, name: str, template: str | None = None) -> None:
        self.create_calls.append((name, template))
        self.active_creates += 1
        self.max_active_creates = max(self.max_active_creates, self.active_creates)
        try:
            if self.create_delay:
                await asyncio.sleep(self.create_delay)
            if self.create_error is not None:
                if self.leave_database_on_error:
                    self.databases[name] = []
                raise self.create_error
            if name in self.databases:
                raise db_error(f'database "{name}" already exists', "42P04")
            if template is not None and template not in self.databases:
                raise db_error(f'template database "{template}" does not exist', "3D000")
            self.databases[name] = list(self.databases.get(template or "template0", []))
        finally:
            self.active_creates -= 1

    async def drop_database(self, name: str) -> None:
        self.drop_calls.append(name)
        self.databases.pop(name, None)

    @asynccontextmanager
    async def transaction(self, database: str) -> AsyncIterator[FakeConnection]:
        if database not in self.databases:
            raise db_error(f'database "{database}" does not exist', "3D000")
        conn = FakeConnection()
        self.open_connections += 1
        try:
            yield conn
            if self.commit_error is not None:
                raise self.commit_error
            self.databases[database].extend(conn.executed)
        finally:
            self.open_connections -= 1

    async def dispose(self) -> None:
        self.disposed = True


@pytest.fixture
def fake_server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def make_db_error() -> Callable[[str, str], ProgrammingError]:
    return db_error


@pytest.fixture
def fail_marker() -> str:
    return FAIL_MARKER


@pytest.fixture
def write_files() -> Callable[[Path, dict[str, str]], Path]:
    """Return a helper writing ``{relative_path: content}`` below a root."""

    def _write(root: Path, files: dict[str, str]) -> Path:
        for rel, content in files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        return root

    return _write


@pytest.fixture
def structured_repo(tmp_path: Path, write_files: Callable[[Path, dict[str, str]], Path]) -> Path:
    """A structured repository with schema, common seed and per-env seeds."""
    return write_files(
        tmp_path / "db",
        {
            "0_schema/001_users.sql": "CREATE TABLE users (id INT PRIMARY KEY, name TEXT);\n",
            "0_schema/002_posts.sql": "CREATE TABLE posts (id INT PRIMARY KEY, user_id INT);\n",
            "1_seed_common/101_admin.sql": "INSERT INTO users VALUES (1, 'admin');\n",
            "2_seed_dev/201_dev_users.sql": "INSERT INTO users VALUES (2, 'dev');\n",
            "3_seed_prod/301_prod_users.sql": "INSERT INTO users VALUES (3, 'prod');\n",
        },
    )
