"""PostgreSQL SQLSTATE codes used to classify driver errors.

Classification keys on the structured code, never on message text, so it
survives driver upgrades and server locale changes.
"""

from __future__ import annotations

DUPLICATE_DATABASE = "42P04"
INVALID_CATALOG_NAME = "3D000"
INSUFFICIENT_PRIVILEGE = "42501"
TOO_MANY_CONNECTIONS = "53300"
OBJECT_IN_USE = "55006"


def sqlstate_of(exc: BaseException) -> str | None:
    """Return the SQLSTATE carried by *exc*, or None.

    SQLAlchemy wraps the driver error in ``exc.orig``; the asyncpg adapter in
    turn chains the native asyncpg exception as ``__cause__``.  All three
    layers are inspected.
    """
    candidates: list[BaseException | None] = [exc]
    orig = getattr(exc, "orig", None)
    if orig is not None:
        candidates.extend([orig, orig.__cause__])
    candidates.append(exc.__cause__)

    for candidate in candidates:
        if candidate is None:
            continue
        for attr in ("sqlstate", "pgcode"):
            code = getattr(candidate, attr, None)
            if isinstance(code, str) and code:
                return code
    return None


def driver_message(exc: BaseException) -> str:
    """Return the driver's own message for *exc* without SQLAlchemy's wrapping."""
    orig = getattr(exc, "orig", None)
    message = str(orig) if orig is not None else str(exc)
    return message.strip() or type(exc).__name__
