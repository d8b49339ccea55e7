"""SQL text handling: top-level statement splitting."""

from template_engine.parser.statement_splitter import (
    SplitMode,
    split_sql_statements,
    split_sql_statements_simple,
    split_statements,
)

__all__ = [
    "SplitMode",
    "split_sql_statements",
    "split_sql_statements_simple",
    "split_statements",
]
