"""Split the text of a SQL file into independently executable statements.

PostgreSQL will not run several statements containing ``$$``-quoted
function bodies through one extended-protocol call, so each file is cut into
top-level statements first.  The splitter is an explicit finite-state machine:

* ``NORMAL`` -- ordinary SQL; ``;`` ends a statement.
* ``LINE_COMMENT`` -- ``-- ...`` up to the end of the line (dropped).
* ``BLOCK_COMMENT`` -- ``/* ... */`` with nesting (replaced by one space).
* ``SINGLE_QUOTE`` -- ``'...'`` literals, ``''`` and ``E'\\''`` escapes.
* ``DOUBLE_QUOTE`` -- ``"..."`` quoted identifiers.
* ``DOLLAR_QUOTE`` -- ``$tag$ ... $tag$`` bodies; everything is literal until
  the same tag is seen again.

This is not a SQL parser.  Malformed input such as an unterminated quote is
never an error: whatever remains at the end is returned as a final statement.
"""

from __future__ import annotations

import enum
import logging
import re

logger = logging.getLogger(__name__)

# ``$$`` or ``$name$``.  A tag may not start with a digit, so ``$1`` stays a
# positional parameter.
_DOLLAR_TAG_RE = re.compile(r"\$(?:[A-Za-z_][A-Za-z0-9_]*)?\$")


class SplitMode(str, enum.Enum):
    """How file contents are cut into statements before execution."""

    ADVANCED = "advanced"
    SIMPLE = "simple"


class _State(enum.Enum):
    NORMAL = enum.auto()
    LINE_COMMENT = enum.auto()
    BLOCK_COMMENT = enum.auto()
    SINGLE_QUOTE = enum.auto()
    DOUBLE_QUOTE = enum.auto()
    DOLLAR_QUOTE = enum.auto()


def _is_ident_char(ch: str) -> bool:
    return ch.isalnum() or ch in "_$"


class _Splitter:
    """Single-use state machine over one SQL text."""

    def __init__(self, sql: str) -> None:
        self._sql = sql
        self._pos = 0
        self._state = _State.NORMAL
        self._buffer: list[str] = []
        self._statements: list[str] = []
        self._comment_depth = 0
        self._dollar_tag = ""
        self._backslash_escapes = False

    def run(self) -> list[str]:
        handlers = {
            _State.NORMAL: self._normal,
            _State.LINE_COMMENT: self._line_comment,
            _State.BLOCK_COMMENT: self._block_comment,
            _State.SINGLE_QUOTE: self._single_quote,
            _State.DOUBLE_QUOTE: self._double_quote,
            _State.DOLLAR_QUOTE: self._dollar_quote,
        }
        while self._pos < len(self._sql):
            handlers[self._state]()

        if self._state is not _State.NORMAL:
            logger.debug("Input ended inside %s; keeping remainder as final statement", self._state.name)
        self._flush()
        return self._statements

    # -- Helpers -------------------------------------------------------------

    def _peek(self, offset: int = 1) -> str:
        index = self._pos + offset
        return self._sql[index] if index < len(self._sql) else ""

    def _take(self, count: int = 1) -> None:
        self._buffer.append(self._sql[self._pos : self._pos + count])
        self._pos += count

    def _flush(self) -> None:
        statement = "".join(self._buffer).strip()
        if statement:
            self._statements.append(statement)
        self._buffer = []

    # -- States --------------------------------------------------------------

    def _normal(self) -> None:
        ch = self._sql[self._pos]
        nxt = self._peek()

        if ch == "-" and nxt == "-":
            self._state = _State.LINE_COMMENT
            self._pos += 2
        elif ch == "/" and nxt == "*":
            self._state = _State.BLOCK_COMMENT
            self._comment_depth = 1
            self._buffer.append(" ")
            self._pos += 2
        elif ch == "'":
            prev = self._sql[self._pos - 1] if self._pos > 0 else ""
            before = self._sql[self._pos - 2] if self._pos > 1 else ""
            self._backslash_escapes = prev in ("E", "e") and not _is_ident_char(before)
            self._state = _State.SINGLE_QUOTE
            self._take()
        elif ch == '"':
            self._state = _State.DOUBLE_QUOTE
            self._take()
        elif ch == "$":
            self._dollar()
        elif ch == ";":
            self._pos += 1
            self._flush()
        else:
            self._take()

    def _dollar(self) -> None:
        prev = self._sql[self._pos - 1] if self._pos > 0 else ""
        match = None if _is_ident_char(prev) else _DOLLAR_TAG_RE.match(self._sql, self._pos)
        if match is None:
            self._take()
            return
        self._dollar_tag = match.group(0)
        self._state = _State.DOLLAR_QUOTE
        self._take(len(self._dollar_tag))

    def _line_comment(self) -> None:
        if self._sql[self._pos] == "\n":
            self._state = _State.NORMAL
            self._take()
        else:
            self._pos += 1

    def _block_comment(self) -> None:
        ch = self._sql[self._pos]
        nxt = self._peek()
        if ch == "/" and nxt == "*":
            self._comment_depth += 1
            self._pos += 2
        elif ch == "*" and nxt == "/":
            self._comment_depth -= 1
            self._pos += 2
            if self._comment_depth == 0:
                self._state = _State.NORMAL
        else:
            self._pos += 1

    def _single_quote(self) -> None:
        ch = self._sql[self._pos]
        if ch == "\\" and self._backslash_escapes:
            self._take(2)
        elif ch == "'":
            if self._peek() == "'":
                self._take(2)
            else:
                self._state = _State.NORMAL
                self._take()
        else:
            self._take()

    def _double_quote(self) -> None:
        if self._sql[self._pos] == '"':
            if self._peek() == '"':
                self._take(2)
            else:
                self._state = _State.NORMAL
                self._take()
        else:
            self._take()

    def _dollar_quote(self) -> None:
        tag = self._dollar_tag
        if self._sql.startswith(tag, self._pos):
            self._state = _State.NORMAL
            self._dollar_tag = ""
            self._take(len(tag))
        else:
            self._take()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def split_sql_statements(sql: str) -> list[str]:
    """Split *sql* into top-level statements.

    Each returned statement is trimmed and has no terminating semicolon.
    Semicolons inside quoted or dollar-quoted regions never split.
    """
    return _Splitter(sql).run()


def split_sql_statements_simple(sql: str) -> list[str]:
    """Naive split on every ``;``, for repositories without procedural bodies."""
    return [part.strip() for part in sql.split(";") if part.strip()]


def split_statements(sql: str, mode: SplitMode = SplitMode.ADVANCED) -> list[str]:
    if mode is SplitMode.SIMPLE:
        return split_sql_statements_simple(sql)
    return split_sql_statements(sql)
