"""Template cloning with validated names and typed failures."""

from template_engine.clone.clone_manager import CloneConfig, CloneManager
from template_engine.clone.errors import (
    CloneAlreadyExistsError,
    CloneDatabaseError,
    CloneError,
    CloneTimeoutError,
    ConnectionPoolExhaustedError,
    InsufficientPermissionsError,
    InvalidDatabaseNameError,
    TemplateNotFoundError,
)
from template_engine.clone.naming import is_valid_database_name, validate_database_name

__all__ = [
    "CloneAlreadyExistsError",
    "CloneConfig",
    "CloneDatabaseError",
    "CloneError",
    "CloneManager",
    "CloneTimeoutError",
    "ConnectionPoolExhaustedError",
    "InsufficientPermissionsError",
    "InvalidDatabaseNameError",
    "TemplateNotFoundError",
    "is_valid_database_name",
    "validate_database_name",
]
