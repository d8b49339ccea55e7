"""SQL repository discovery and loading."""

from template_engine.loader.sql_repository import RepositoryError, SqlRepository

__all__ = ["RepositoryError", "SqlRepository"]
