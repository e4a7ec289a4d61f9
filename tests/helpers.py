"""
Test helpers shared across test modules.
"""

from decimal import Decimal
from unittest.mock import MagicMock

from psycopg2 import sql


def render_sql(query) -> str:
    """
    Approximate the SQL text of a composed query.

    Identifiers are double-quoted, string literals single-quoted and numbers
    printed as-is. Good enough to assert on query shape.
    """
    if isinstance(query, str):
        return query
    if isinstance(query, sql.Composed):
        return "".join(render_sql(part) for part in query.seq)
    if isinstance(query, sql.SQL):
        return query.string
    if isinstance(query, sql.Identifier):
        return ".".join(f'"{name}"' for name in query.strings)
    if isinstance(query, sql.Literal):
        value = query.wrapped
        if isinstance(value, str):
            return f"'{value}'"
        if isinstance(value, (int, float, Decimal)):
            return str(value)
        # Adapters such as Json or Binary need a connection to quote
        return f"<{type(value).__name__}>"
    if isinstance(query, sql.Placeholder):
        return "%s"
    raise TypeError(f"Cannot render {query!r}")


def executed_sql(cursor: MagicMock) -> list[str]:
    """Rendered text of every query executed on a mock cursor."""
    return [render_sql(c.args[0]) for c in cursor.execute.call_args_list]
