"""Tests for template_engine.loader.sql_repository."""

from __future__ import annotations

from pathlib import Path

import pytest

from template_engine.loader.sql_repository import (
    RepositoryError,
    SqlRepository,
    include_directory,
    is_structured_directory_name,
)
from template_engine.models.environment import EnvironmentFilter


def _rel(root: Path, files: list[Path]) -> list[str]:
    return [p.relative_to(root).as_posix() for p in files]


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestConstruction:
    def test_missing_path(self, tmp_path: Path) -> None:
        with pytest.raises(RepositoryError, match="does not exist"):
            SqlRepository(tmp_path / "missing")

    def test_path_is_file(self, tmp_path: Path) -> None:
        file_path = tmp_path / "schema.sql"
        file_path.write_text("SELECT 1;")
        with pytest.raises(RepositoryError, match="not a directory"):
            SqlRepository(file_path)


# ---------------------------------------------------------------------------
# Layout detection and naming rules
# ---------------------------------------------------------------------------


class TestNamingRules:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [("0_schema", True), ("12_seed_dev", True), ("schema", False), ("0schema", False), ("", False)],
    )
    def test_structured_directory_name(self, name: str, expected: bool) -> None:
        assert is_structured_directory_name(name) is expected

    def test_schema_and_common_always_included(self) -> None:
        assert include_directory("0_schema", ["prod"])
        assert include_directory("1_seed_common", ["prod"])

    def test_environment_directories_need_a_request(self) -> None:
        assert include_directory("2_seed_dev", ["dev"])
        assert not include_directory("2_seed_dev", ["prod"])

    def test_underscore_env_suffix_matches(self) -> None:
        assert include_directory("5_backend", ["backend"])

    def test_no_environments_includes_untagged_only(self) -> None:
        assert include_directory("4_functions", [])
        assert not include_directory("2_seed_dev", [])
        assert not include_directory("3_seed_staging", [])

    @pytest.mark.asyncio
    async def test_is_structured(self, structured_repo: Path, tmp_path: Path) -> None:
        flat = tmp_path / "flat"
        flat.mkdir()
        (flat / "schema.sql").write_text("SELECT 1;")

        assert await SqlRepository(structured_repo).is_structured() is True
        assert await SqlRepository(flat).is_structured() is False


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


class TestDiscovery:
    @pytest.mark.asyncio
    async def test_dev_order_schema_common_dev(self, structured_repo: Path) -> None:
        repo = SqlRepository(structured_repo)
        files = await repo.discover_sql_files(["dev"])
        assert _rel(structured_repo, files) == [
            "0_schema/001_users.sql",
            "0_schema/002_posts.sql",
            "1_seed_common/101_admin.sql",
            "2_seed_dev/201_dev_users.sql",
        ]

    @pytest.mark.asyncio
    async def test_order_is_stable(self, structured_repo: Path) -> None:
        repo = SqlRepository(structured_repo)
        assert await repo.discover_sql_files(["dev"]) == await repo.discover_sql_files(["dev"])

    @pytest.mark.asyncio
    async def test_paths_are_under_the_root(self, structured_repo: Path) -> None:
        files = await SqlRepository(structured_repo).discover_sql_files(["dev"])
        assert all(p.is_file() and structured_repo in p.parents for p in files)

    @pytest.mark.asyncio
    async def test_no_environments(self, structured_repo: Path) -> None:
        files = await SqlRepository(structured_repo).discover_sql_files()
        assert _rel(structured_repo, files) == [
            "0_schema/001_users.sql",
            "0_schema/002_posts.sql",
            "1_seed_common/101_admin.sql",
        ]

    @pytest.mark.asyncio
    async def test_several_environments(self, structured_repo: Path) -> None:
        files = await SqlRepository(structured_repo).discover_sql_files(["dev", "prod"])
        assert _rel(structured_repo, files)[-2:] == [
            "2_seed_dev/201_dev_users.sql",
            "3_seed_prod/301_prod_users.sql",
        ]

    @pytest.mark.asyncio
    async def test_structured_ignores_root_files_and_nested_dirs(self, structured_repo: Path) -> None:
        (structured_repo / "loose.sql").write_text("SELECT 1;")
        nested = structured_repo / "0_schema" / "nested"
        nested.mkdir()
        (nested / "deep.sql").write_text("SELECT 2;")

        files = await SqlRepository(structured_repo).discover_sql_files()
        rel = _rel(structured_repo, files)
        assert "loose.sql" not in rel
        assert "0_schema/nested/deep.sql" not in rel

    @pytest.mark.asyncio
    async def test_flat_repository(self, tmp_path: Path, write_files) -> None:
        write_files(tmp_path, {"b.sql": "2", "a.sql": "1", "readme.md": "x", "sub/c.sql": "3"})
        files = await SqlRepository(tmp_path).discover_sql_files(["dev"])
        assert _rel(tmp_path, files) == ["a.sql", "b.sql"]

    @pytest.mark.asyncio
    async def test_empty_repository(self, tmp_path: Path) -> None:
        assert await SqlRepository(tmp_path).discover_sql_files() == []


class TestEnvironmentFilter:
    @pytest.mark.asyncio
    async def test_include_list_replaces_naming_rules(self, structured_repo: Path) -> None:
        env = EnvironmentFilter(name="local", include_directories=["0_schema", "3_seed_prod"])
        files = await SqlRepository(structured_repo).discover_sql_files(["local"], env)
        assert _rel(structured_repo, files) == [
            "0_schema/001_users.sql",
            "0_schema/002_posts.sql",
            "3_seed_prod/301_prod_users.sql",
        ]

    @pytest.mark.asyncio
    async def test_exclude_list_is_subtracted(self, structured_repo: Path) -> None:
        env = EnvironmentFilter(name="dev", exclude_directories=["1_seed_common"])
        files = await SqlRepository(structured_repo).discover_sql_files(["dev"], env)
        assert "1_seed_common/101_admin.sql" not in _rel(structured_repo, files)
        assert "2_seed_dev/201_dev_users.sql" in _rel(structured_repo, files)

    @pytest.mark.asyncio
    async def test_flat_repository_ignores_filter(self, tmp_path: Path) -> None:
        (tmp_path / "a.sql").write_text("SELECT 1;")
        env = EnvironmentFilter(name="x", include_directories=["0_schema"], exclude_directories=["a.sql"])
        files = await SqlRepository(tmp_path).discover_sql_files([], env)
        assert _rel(tmp_path, files) == ["a.sql"]


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


class TestLoadSqlContent:
    @pytest.mark.asyncio
    async def test_reads_utf8(self, tmp_path: Path) -> None:
        path = tmp_path / "seed.sql"
        path.write_text("INSERT INTO t VALUES ('naïve');", encoding="utf-8")
        assert await SqlRepository(tmp_path).load_sql_content(path) == "INSERT INTO t VALUES ('naïve');"

    @pytest.mark.asyncio
    async def test_missing_file_names_the_path(self, tmp_path: Path) -> None:
        with pytest.raises(RepositoryError, match="gone.sql"):
            await SqlRepository(tmp_path).load_sql_content(tmp_path / "gone.sql")

    @pytest.mark.asyncio
    async def test_invalid_utf8(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.sql"
        path.write_bytes(b"\xff\xfe\x00")
        with pytest.raises(RepositoryError, match="bad.sql"):
            await SqlRepository(tmp_path).load_sql_content(path)
