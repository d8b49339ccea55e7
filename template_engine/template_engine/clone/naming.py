"""Database name validation.

Database names are interpolated into ``CREATE DATABASE`` / ``DROP DATABASE``
statements, which cannot take bound parameters.  Every name must pass
:func:`validate_database_name` before it reaches SQL text.
"""

from __future__ import annotations

from template_engine.clone.errors import InvalidDatabaseNameError

# PostgreSQL truncates identifiers to NAMEDATALEN - 1 bytes.
MAX_NAME_BYTES = 63

_FORBIDDEN_CHARS: frozenset[str] = frozenset({";", "'", '"', "\\", "\0", "\n", "\r"})


def _is_ascii_alpha(char: str) -> bool:
    return char.isascii() and char.isalpha()


def _is_ascii_alnum(char: str) -> bool:
    return char.isascii() and char.isalnum()


def validate_database_name(name: str) -> None:
    """Raise :class:`InvalidDatabaseNameError` unless *name* is a safe identifier.

    Accepted names are 1-63 bytes, start with an ASCII letter or underscore,
    and continue with ASCII letters, digits or underscores only.
    """
    if not name:
        raise InvalidDatabaseNameError(name, "Database name cannot be empty")

    size = len(name.encode("utf-8"))
    if size > MAX_NAME_BYTES:
        raise InvalidDatabaseNameError(
            name,
            f"Database name exceeds PostgreSQL limit of {MAX_NAME_BYTES} bytes (got {size})",
        )

    bad = next((c for c in name if c in _FORBIDDEN_CHARS), None)
    if bad is not None:
        raise InvalidDatabaseNameError(name, f"Database name contains forbidden character {bad!r}")

    first = name[0]
    if not (_is_ascii_alpha(first) or first == "_"):
        raise InvalidDatabaseNameError(name, "Database name must start with a letter or underscore")

    if not all(_is_ascii_alnum(c) or c == "_" for c in name):
        raise InvalidDatabaseNameError(
            name,
            "Database name can only contain letters, digits and underscores",
        )


def is_valid_database_name(name: str) -> bool:
    try:
        validate_database_name(name)
    except InvalidDatabaseNameError:
        return False
    return True
