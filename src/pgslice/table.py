"""
Table metadata provider.

Wraps the catalog queries the batch engines depend on: existence checks,
column lists, primary key discovery, key extrema and partition settings.
Every method takes a live cursor so callers decide which transaction the
lookup belongs to.
"""

import logging
from dataclasses import dataclass
from typing import Any

from opentelemetry import trace
from psycopg2 import sql

from utils.tracing import trace_operation

from .sql_utils import format_date_for_sql, validate_identifier
from .table_settings import TableSettings
from .time_filter import derive_time_filter
from .types import ColumnInfo, IdValue, TimeFilter

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA = "public"


def transform_id_value(value: Any) -> IdValue | None:
    """Normalize a key read from the database: digit strings become ints, ULIDs stay strings."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise TypeError(f"Unsupported key value: {value!r}")
    if isinstance(value, int):
        return value
    text = str(value)
    if text.isdigit():
        return int(text)
    return text


@dataclass(frozen=True)
class PartitionContext:
    settings: TableSettings | None
    partitions: list["Table"]
    time_filter: TimeFilter | None


@dataclass(frozen=True)
class Table:
    """A schema-qualified table reference."""

    schema: str
    name: str

    @classmethod
    def parse(cls, name: str, default_schema: str = DEFAULT_SCHEMA) -> "Table":
        """
        Parse ``table`` or ``schema.table``.

        Raises:
            ValueError: If either part is not a plain identifier
        """
        if "." in name:
            schema, table_name = name.split(".", 1)
        else:
            schema, table_name = default_schema, name
        return cls(validate_identifier(schema), validate_identifier(table_name))

    def __str__(self) -> str:
        return f"{self.schema}.{self.name}"

    @property
    def intermediate(self) -> "Table":
        return Table(self.schema, f"{self.name}_intermediate")

    @property
    def retired(self) -> "Table":
        return Table(self.schema, f"{self.name}_retired")

    @property
    def sql_identifier(self) -> sql.Identifier:
        return sql.Identifier(self.schema, self.name)

    def exists(self, cursor: Any) -> bool:
        cursor.execute(
            "SELECT COUNT(*) FROM pg_catalog.pg_tables WHERE schemaname = %s AND tablename = %s",
            (self.schema, self.name),
        )
        return cursor.fetchone()[0] > 0

    def columns(self, cursor: Any) -> list[ColumnInfo]:
        """Non-generated columns in ordinal order."""
        cursor.execute(
            """
            SELECT column_name, data_type
            FROM information_schema.columns
            WHERE table_schema = %s
              AND table_name = %s
              AND is_generated = 'NEVER'
            ORDER BY ordinal_position
            """,
            (self.schema, self.name),
        )
        return [ColumnInfo(name=row[0], data_type=row[1]) for row in cursor.fetchall()]

    def primary_key(self, cursor: Any) -> list[str]:
        """Primary key columns in index order (empty if the table has none)."""
        cursor.execute(
            """
            SELECT pg_attribute.attname
            FROM pg_index
            JOIN pg_class ON pg_class.oid = pg_index.indrelid
            JOIN pg_namespace ON pg_namespace.oid = pg_class.relnamespace
            JOIN pg_attribute ON pg_attribute.attrelid = pg_class.oid
                AND pg_attribute.attnum = ANY(pg_index.indkey)
            WHERE pg_namespace.nspname = %s
              AND pg_class.relname = %s
              AND pg_index.indisprimary
            ORDER BY array_position(pg_index.indkey::int2[], pg_attribute.attnum)
            """,
            (self.schema, self.name),
        )
        return [row[0] for row in cursor.fetchall()]

    def max_id(
        self, cursor: Any, primary_key: str, below: IdValue | None = None
    ) -> IdValue | None:
        """Largest key, optionally restricted to keys strictly below ``below``."""
        query = sql.SQL("SELECT MAX({pk}) FROM {table}").format(
            pk=sql.Identifier(primary_key), table=self.sql_identifier
        )
        if below is not None:
            query = sql.SQL("{} WHERE {} < {}").format(
                query, sql.Identifier(primary_key), sql.Literal(below)
            )
        cursor.execute(query)
        return transform_id_value(cursor.fetchone()[0])

    def min_id(
        self,
        cursor: Any,
        primary_key: str,
        time_filter: TimeFilter | None = None,
        normalize: bool = True,
    ) -> Any:
        """
        Smallest key, optionally restricted to rows inside a time filter.

        With ``normalize=False`` the key is returned as the driver read it,
        for keys of any ordered type rather than integers and ULIDs.
        """
        query = sql.SQL("SELECT MIN({pk}) FROM {table}").format(
            pk=sql.Identifier(primary_key), table=self.sql_identifier
        )
        if time_filter is not None:
            query = sql.SQL("{} WHERE {}").format(query, time_filter_condition(time_filter))
        cursor.execute(query)
        value = cursor.fetchone()[0]
        return transform_id_value(value) if normalize else value

    def partitions(self, cursor: Any) -> list["Table"]:
        """Child partitions ordered by name (and therefore by date suffix)."""
        cursor.execute(
            """
            SELECT nmsp_child.nspname, child.relname
            FROM pg_inherits
            JOIN pg_class parent ON pg_inherits.inhparent = parent.oid
            JOIN pg_class child ON pg_inherits.inhrelid = child.oid
            JOIN pg_namespace nmsp_parent ON nmsp_parent.oid = parent.relnamespace
            JOIN pg_namespace nmsp_child ON nmsp_child.oid = child.relnamespace
            WHERE nmsp_parent.nspname = %s AND parent.relname = %s
            ORDER BY child.relname ASC
            """,
            (self.schema, self.name),
        )
        return [Table(row[0], row[1]) for row in cursor.fetchall()]

    def comment(self, cursor: Any) -> str | None:
        cursor.execute(
            "SELECT obj_description(to_regclass(%s), 'pg_class')",
            (f'"{self.schema}"."{self.name}"',),
        )
        row = cursor.fetchone()
        return row[0] if row else None

    def fetch_settings(self, cursor: Any) -> TableSettings | None:
        return TableSettings.parse_from_comment(self.comment(cursor))

    def partition_context(self, cursor: Any) -> PartitionContext:
        """Settings, partitions and derived time filter for a destination table."""
        with trace_operation("partition_context", kind=trace.SpanKind.CLIENT, table=str(self)):
            settings = self.fetch_settings(cursor)
            partitions = self.partitions(cursor) if settings else []
            time_filter = derive_time_filter(settings, [p.name for p in partitions])
            return PartitionContext(settings=settings, partitions=partitions, time_filter=time_filter)


def time_filter_condition(time_filter: TimeFilter) -> sql.Composable:
    """``column >= start AND column < end`` for a time filter."""
    column = sql.Identifier(time_filter.column)
    return sql.SQL("{col} >= {start} AND {col} < {end}").format(
        col=column,
        start=sql.Literal(format_date_for_sql(time_filter.starting_time, time_filter.cast)),
        end=sql.Literal(format_date_for_sql(time_filter.ending_time, time_filter.cast)),
    )
