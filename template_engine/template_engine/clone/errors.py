"""Exception hierarchy for database cloning.

Callers branch on the exception type rather than on message text.  Every
clone failure is a :class:`CloneError`; the generic
:class:`CloneDatabaseError` keeps the driver text when no more specific
class applies.
"""

from __future__ import annotations


class CloneError(Exception):
    """Base class for all clone manager failures."""


class InvalidDatabaseNameError(CloneError, ValueError):
    """A template or clone name failed validation before any SQL was built."""

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason
        super().__init__(f"Invalid database name: {name!r}. {reason}")


class TemplateNotFoundError(CloneError):
    def __init__(self, template: str) -> None:
        self.template = template
        super().__init__(f"Template database '{template}' does not exist")


class CloneAlreadyExistsError(CloneError):
    def __init__(self, clone: str) -> None:
        self.clone = clone
        super().__init__(f"Clone database '{clone}' already exists")


class CloneTimeoutError(CloneError):
    def __init__(self, timeout_ms: int) -> None:
        self.timeout_ms = timeout_ms
        super().__init__(f"Clone operation timed out after {timeout_ms}ms")


class InsufficientPermissionsError(CloneError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Insufficient permissions to create or drop database '{name}'")


class ConnectionPoolExhaustedError(CloneError):
    def __init__(self, message: str = "Connection pool exhausted during clone operation") -> None:
        super().__init__(message)


class CloneDatabaseError(CloneError):
    """Fallback for database failures with no more specific classification."""

    def __init__(self, details: str) -> None:
        self.details = details
        super().__init__(f"Database error: {details}")
