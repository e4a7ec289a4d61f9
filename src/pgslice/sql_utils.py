"""
SQL building helpers.

Identifiers are validated and composed with ``psycopg2.sql`` so they are never
interpolated as raw text. Values written by the synchronizer are serialized by
the destination column's declared type rather than guessed from the Python
value.
"""

import re
from datetime import UTC, date, datetime
from typing import Any
from uuid import UUID

import psycopg2
from psycopg2 import sql
from psycopg2.extras import Json

from .types import Cast

# Strict ASCII-only pattern for SQL identifiers (no Unicode via \w)
VALID_IDENTIFIER_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_$]*$")

TIMESTAMP_TYPES = frozenset({"timestamp with time zone", "timestamp without time zone"})


def validate_identifier(identifier: str) -> str:
    """
    Check that a schema, table or column name is a plain identifier.

    Raises:
        ValueError: If identifier format is invalid
    """
    if not VALID_IDENTIFIER_PATTERN.match(identifier):
        raise ValueError(f"Invalid identifier format: {identifier}")
    return identifier


def column_list(columns: list[str]) -> sql.Composable:
    """Comma-separated, quoted column names."""
    return sql.SQL(", ").join(sql.Identifier(col) for col in columns)


def format_date_for_sql(value: date | datetime, cast: Cast) -> str:
    """
    Format a partition boundary as a SQL literal string.

    Uses UTC values so the literal is the same on every machine.
    """
    if isinstance(value, datetime) and value.tzinfo is not None:
        value = value.astimezone(UTC)
    text = f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
    if cast == "timestamptz":
        return f"{text} 00:00:00 UTC"
    return text


def value_to_sql(value: Any, data_type: str) -> sql.Composable:
    """
    Convert a row value into a SQL literal for its destination column.

    psycopg2 already returns timestamps and dates as datetime objects, so
    they are passed through; UUID, bytea and json/jsonb columns get typed
    encodings; everything else is adapted as-is.

    Args:
        value: Value as read from the source row
        data_type: Declared type of the destination column

    Returns:
        Composable literal for use in INSERT/UPDATE statements
    """
    if value is None:
        return sql.SQL("NULL")

    if data_type in TIMESTAMP_TYPES:
        if isinstance(value, datetime):
            return sql.Literal(value)
        # 'infinity' and friends come back as strings
        return sql.SQL("{}::{}").format(sql.Literal(str(value)), sql.SQL(_cast_name(data_type)))

    if data_type == "date":
        if isinstance(value, date):
            return sql.Literal(value)
        return sql.SQL("{}::date").format(sql.Literal(str(value)))

    if data_type == "uuid":
        if isinstance(value, UUID):
            value = str(value)
        return sql.SQL("{}::uuid").format(sql.Literal(value))

    if data_type == "bytea":
        return sql.Literal(psycopg2.Binary(bytes(value)))

    if data_type == "jsonb":
        return sql.SQL("{}::jsonb").format(sql.Literal(Json(value)))

    if data_type == "json":
        return sql.SQL("{}::json").format(sql.Literal(Json(value)))

    return sql.Literal(value)


def _cast_name(data_type: str) -> str:
    if data_type == "timestamp with time zone":
        return "timestamptz"
    return "timestamp"
