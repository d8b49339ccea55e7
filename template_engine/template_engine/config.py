"""Configuration for pgtemplate.

Two sources feed a run:

* :class:`Settings` -- process-level knobs read from ``PGTEMPLATE_``
  environment variables (and an optional ``.env`` file).
* :class:`ProjectConfig` -- the per-project ``pgtemplate.toml`` describing the
  server, the SQL repository and its environments.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tomllib
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL, make_url

from template_engine.models.environment import EnvironmentFilter

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "pgtemplate.toml"
DRIVERNAME = "postgresql+asyncpg"
_BARE_KEY_RE = re.compile(r"^[A-Za-z0-9_-]+$")


class ConfigError(Exception):
    """Raised when the project configuration is missing or invalid."""


# ---------------------------------------------------------------------------
# Process settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    """Settings loaded from environment variables with PGTEMPLATE_ prefix."""

    model_config = SettingsConfigDict(
        env_prefix="PGTEMPLATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    debug: bool = False
    structured_logging: bool = False

    config_file: Path = Path(DEFAULT_CONFIG_FILE)

    # Database; database_url overrides the [database] section when set.
    database_url: str | None = None
    database_pool_size: int = 5
    database_max_overflow: int = 5
    database_pool_timeout: float = 10.0

    # Cloning
    clone_timeout_seconds: float = Field(default=300.0, gt=0)
    max_concurrent_clones: int = Field(default=10, ge=1)
    queue_timeout_seconds: float = Field(default=60.0, gt=0)


def load_settings(**overrides: object) -> Settings:
    """Load settings from environment, with optional overrides for testing."""
    settings = Settings(**overrides)  # type: ignore[arg-type]

    if settings.debug:
        logger.info("Loaded settings (config_file=%s)", settings.config_file)

    return settings


# ---------------------------------------------------------------------------
# Project file
# ---------------------------------------------------------------------------


class DatabaseConfig(BaseModel):
    host: str = "localhost"
    port: int = Field(default=5432, ge=1, le=65535)
    user: str = "postgres"
    password_env: str | None = Field(
        default="POSTGRES_PASSWORD",
        description="Name of the environment variable holding the password.",
    )
    template_name: str = Field(..., min_length=1)
    allow_multi_statement: bool = Field(
        default=True,
        description="Split files with the quote-aware splitter; False splits naively on ';'.",
    )
    admin_database: str = "postgres"


class RepositoryConfig(BaseModel):
    path: str = Field(..., min_length=1)
    type: str = "structured"


class EnvironmentConfig(BaseModel):
    include_directories: list[str] = Field(default_factory=list)
    exclude_directories: list[str] = Field(default_factory=list)


class ProjectConfig(BaseModel):
    """Contents of ``pgtemplate.toml``."""

    database: DatabaseConfig
    repository: RepositoryConfig
    environments: dict[str, EnvironmentConfig] = Field(default_factory=dict)

    @classmethod
    def default(cls, repo_path: str, template_name: str) -> ProjectConfig:
        """Scaffold written by ``pgtemplate init``."""
        return cls(
            database=DatabaseConfig(template_name=template_name),
            repository=RepositoryConfig(path=repo_path),
            environments={
                "local": EnvironmentConfig(
                    include_directories=["0_schema", "1_seed_common", "2_seed_backend"],
                ),
                "production": EnvironmentConfig(
                    include_directories=["0_schema", "6_migration"],
                    exclude_directories=["1_seed_common", "2_seed_backend"],
                ),
            },
        )

    def environment_filter(self, name: str) -> EnvironmentFilter:
        """Return the filter for environment *name*; ConfigError if unknown."""
        env = self.environments.get(name)
        if env is None:
            known = ", ".join(sorted(self.environments)) or "none"
            raise ConfigError(f"Unknown environment '{name}' (configured: {known})")
        return EnvironmentFilter(
            name=name,
            include_directories=list(env.include_directories),
            exclude_directories=list(env.exclude_directories),
        )

    def repository_path(self, base_dir: Path) -> Path:
        """Resolve the repository path relative to the config file's directory."""
        path = Path(self.repository.path)
        return path if path.is_absolute() else base_dir / path


def load_project_config(path: Path | str) -> ProjectConfig:
    """Parse and validate a ``pgtemplate.toml`` file."""
    config_path = Path(path)
    try:
        with open(config_path, "rb") as fh:
            raw = tomllib.load(fh)
    except FileNotFoundError as exc:
        raise ConfigError(f"Configuration file not found: '{config_path}'") from exc
    except OSError as exc:
        raise ConfigError(f"Failed to read configuration '{config_path}': {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in '{config_path}': {exc}") from exc

    try:
        return ProjectConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in '{config_path}': {exc}") from exc


def _toml_str(value: str) -> str:
    # JSON string escaping is valid TOML basic-string escaping.
    return json.dumps(value)


def _toml_key(value: str) -> str:
    return value if _BARE_KEY_RE.match(value) else _toml_str(value)


def _toml_list(values: list[str]) -> str:
    return "[" + ", ".join(_toml_str(v) for v in values) + "]"


def render_project_config(config: ProjectConfig) -> str:
    """Serialise *config* back to TOML text."""
    db = config.database
    lines = [
        "[database]",
        f"host = {_toml_str(db.host)}",
        f"port = {db.port}",
        f"user = {_toml_str(db.user)}",
    ]
    if db.password_env is not None:
        lines.append(f"password_env = {_toml_str(db.password_env)}")
    lines += [
        f"template_name = {_toml_str(db.template_name)}",
        f"allow_multi_statement = {'true' if db.allow_multi_statement else 'false'}",
        f"admin_database = {_toml_str(db.admin_database)}",
        "",
        "[repository]",
        f"path = {_toml_str(config.repository.path)}",
        f"type = {_toml_str(config.repository.type)}",
    ]
    for name in sorted(config.environments):
        env = config.environments[name]
        lines += [
            "",
            f"[environments.{_toml_key(name)}]",
            f"include_directories = {_toml_list(env.include_directories)}",
            f"exclude_directories = {_toml_list(env.exclude_directories)}",
        ]
    return "\n".join(lines) + "\n"


def build_database_url(project: ProjectConfig, settings: Settings, database: str | None = None) -> URL | str:
    """Return the URL for *database* (default: the admin database).

    ``settings.database_url`` wins over the ``[database]`` section.  When it
    is given and *database* is set, only the database name is swapped.
    """
    if settings.database_url:
        if database is None:
            return settings.database_url
        return make_url(settings.database_url).set(database=database)

    db = project.database
    password: str | None = None
    if db.password_env:
        password = os.environ.get(db.password_env)
        if password is None:
            logger.warning("Password variable %s is not set; connecting without a password", db.password_env)

    return URL.create(
        DRIVERNAME,
        username=db.user,
        password=password,
        host=db.host,
        port=db.port,
        database=database or db.admin_database,
    )
