"""
Batch reconciliation engine.

Walks the source table in ascending key windows and makes the target match
it: missing rows are inserted, differing rows updated and target rows absent
from the source deleted. Deletions are only considered between the first and
last key of the current source window, so a pass never scans the target
outside what it has just read from the source.
"""

import json
import logging
import time
from collections.abc import Iterator
from datetime import datetime
from typing import Any

from opentelemetry import trace
from prometheus_client import Counter, Histogram
from psycopg2 import sql
from psycopg2.extras import RealDictCursor

from utils.logging import ContextLogger
from utils.metrics import get_or_create_metric
from utils.tracing import add_span_event, trace_operation

from .errors import EmptySourceError, PrimaryKeyError, SchemaMismatchError, TableNotFoundError
from .sql_utils import column_list, value_to_sql
from .table import DEFAULT_SCHEMA, Table
from .types import ColumnInfo, KeyRange, SynchronizeBatchResult, SynchronizeOptions

logger = logging.getLogger(__name__)


# Metrics
SYNC_ROWS = get_or_create_metric(
    lambda: Counter(
        "pgslice_sync_rows_total",
        "Rows compared by synchronize, by outcome",
        ["table", "operation"],
    ),
    "pgslice_sync_rows",
)

SYNC_BATCHES = get_or_create_metric(
    lambda: Counter(
        "pgslice_sync_batches_total",
        "Synchronize windows processed",
        ["table"],
    ),
    "pgslice_sync_batches",
)

SYNC_BATCH_DURATION = get_or_create_metric(
    lambda: Histogram(
        "pgslice_sync_batch_duration_seconds",
        "Time to reconcile one synchronize window",
        ["table"],
        buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
    ),
    "pgslice_sync_batch_duration_seconds",
)


class Synchronizer:
    """Reconciles ``target`` against ``source`` one window at a time."""

    def __init__(
        self,
        source: Table,
        target: Table,
        primary_key: str,
        columns: list[ColumnInfo],
        starting_id: Any,
        window_size: int = 1000,
        dry_run: bool = False,
        target_columns: list[ColumnInfo] | None = None,
    ):
        if window_size < 1:
            raise ValueError("window_size must be at least 1")

        self.source = source
        self.target = target
        self.primary_key = primary_key
        self.columns = columns
        self.starting_id = starting_id
        self.window_size = window_size
        self.dry_run = dry_run

        # Values are written in the target's declared types
        self._column_types = {
            col.name: col.data_type
            for col in (target_columns if target_columns is not None else columns)
        }
        self._source_key_type = next(
            (col.data_type for col in columns if col.name == primary_key), ""
        )
        self.log = ContextLogger(__name__, table=str(target), operation="synchronize")

    @classmethod
    def init(
        cls,
        cursor: Any,
        options: SynchronizeOptions,
        default_schema: str = DEFAULT_SCHEMA,
    ) -> "Synchronizer":
        """
        Check both tables and resolve the key column and starting cursor.

        Raises:
            TableNotFoundError: If the source or target does not exist
            SchemaMismatchError: If a column exists on only one side
            PrimaryKeyError: If no usable single-column key is found
            EmptySourceError: If no start is given and the source is empty
        """
        with trace_operation("synchronize_init", kind=trace.SpanKind.INTERNAL, table=options.table):
            source = Table.parse(options.table, default_schema)
            target = source.intermediate

            for candidate in (source, target):
                if not candidate.exists(cursor):
                    raise TableNotFoundError(str(candidate))

            source_columns = source.columns(cursor)
            target_columns = target.columns(cursor)
            source_names = {col.name for col in source_columns}
            target_names = {col.name for col in target_columns}

            for col in source_columns:
                if col.name not in target_names:
                    raise SchemaMismatchError(
                        f"Column '{col.name}' exists in {source} but not in {target}"
                    )
            for col in target_columns:
                if col.name not in source_names:
                    raise SchemaMismatchError(
                        f"Column '{col.name}' exists in {target} but not in {source}"
                    )

            if options.primary_key:
                primary_key = options.primary_key
                if primary_key not in source_names:
                    raise PrimaryKeyError(
                        f"Primary key '{primary_key}' not found in source table {source}"
                    )
            else:
                key_columns = source.primary_key(cursor)
                if not key_columns:
                    raise PrimaryKeyError(
                        f"Primary key not found on {source}. Specify with --primary-key"
                    )
                if len(key_columns) > 1:
                    raise PrimaryKeyError(
                        f"Composite primary key on {source} is not supported: "
                        f"{', '.join(key_columns)}. Specify with --primary-key"
                    )
                primary_key = key_columns[0]

            # --start stays text; the window query resolves it against the key column's type
            if options.start is not None:
                starting_id = options.start
            else:
                starting_id = source.min_id(cursor, primary_key, normalize=False)
                if starting_id is None:
                    raise EmptySourceError(str(source))

            logger.info(
                f"Planned synchronize {source} -> {target}: key={primary_key}, "
                f"start={starting_id}, window={options.window_size}, dry_run={options.dry_run}"
            )

            return cls(
                source=source,
                target=target,
                primary_key=primary_key,
                columns=source_columns,
                starting_id=starting_id,
                window_size=options.window_size,
                dry_run=options.dry_run,
                target_columns=target_columns,
            )

    def synchronize(self, pool: Any) -> Iterator[SynchronizeBatchResult]:
        """
        Reconcile windows until the source is exhausted.

        Each window is fetched, compared and fixed inside one transaction.

        Args:
            pool: Connection pool providing ``transaction()``

        Yields:
            One SynchronizeBatchResult per window
        """
        current_id = self.starting_id
        include_start = True
        batch_number = 0

        while True:
            batch_number += 1
            start_time = time.perf_counter()

            with trace_operation(
                "synchronize_batch",
                kind=trace.SpanKind.CLIENT,
                table=str(self.target),
                batch_number=batch_number,
                dry_run=self.dry_run,
            ):
                with pool.transaction(cursor_factory=RealDictCursor) as cursor:
                    source_rows = self._fetch_window(cursor, current_id, include_start)
                    if not source_rows:
                        self.log.debug(f"No source rows past {current_id}, done")
                        break

                    first_id = source_rows[0][self.primary_key]
                    last_id = source_rows[-1][self.primary_key]
                    target_rows = self._fetch_range(cursor, first_id, last_id)
                    add_span_event(
                        "rows_fetched", source=len(source_rows), target=len(target_rows)
                    )

                    counts = self._reconcile(cursor, source_rows, target_rows)

            duration = time.perf_counter() - start_time
            table = str(self.target)
            SYNC_BATCHES.labels(table=table).inc()
            SYNC_BATCH_DURATION.labels(table=table).observe(duration)
            for operation, value in counts.items():
                SYNC_ROWS.labels(table=table, operation=operation).inc(value)

            result = SynchronizeBatchResult(
                batch_number=batch_number,
                batch_duration_ms=duration * 1000,
                primary_key_range=KeyRange(start=first_id, end=last_id),
                rows_compared=len(source_rows),
                matching_rows=counts["matching"],
                rows_inserted=counts["inserted"],
                rows_updated=counts["updated"],
                rows_deleted=counts["deleted"],
            )
            self.log.debug(
                f"Window {batch_number} [{first_id}, {last_id}]: "
                f"{result.matching_rows} matching, {result.rows_inserted} inserted, "
                f"{result.rows_updated} updated, {result.rows_deleted} deleted"
            )

            yield result

            current_id = last_id
            include_start = False

            if len(source_rows) < self.window_size:
                break

    def _reconcile(
        self, cursor: Any, source_rows: list[dict], target_rows: list[dict]
    ) -> dict[str, int]:
        counts = {"matching": 0, "inserted": 0, "updated": 0, "deleted": 0}
        target_by_id = {row[self.primary_key]: row for row in target_rows}
        source_ids = set()

        for source_row in source_rows:
            row_id = source_row[self.primary_key]
            source_ids.add(row_id)
            target_row = target_by_id.get(row_id)

            if target_row is None:
                counts["inserted"] += 1
                if not self.dry_run:
                    self._insert_row(cursor, source_row)
            elif self._compare_rows(source_row, target_row):
                counts["updated"] += 1
                if not self.dry_run:
                    self._update_row(cursor, source_row)
            else:
                counts["matching"] += 1

        for row_id in target_by_id:
            if row_id not in source_ids:
                counts["deleted"] += 1
                if not self.dry_run:
                    self._delete_row(cursor, row_id)

        return counts

    def _fetch_window(self, cursor: Any, current_id: Any, include_start: bool) -> list[dict]:
        """Next ``window_size`` source rows after (or at) the cursor."""
        pk = sql.Identifier(self.primary_key)
        query = sql.SQL(
            "SELECT {columns} FROM {table} WHERE {pk} {op} {start} ORDER BY {pk} LIMIT {limit}"
        ).format(
            columns=column_list([col.name for col in self.columns]),
            table=self.source.sql_identifier,
            pk=pk,
            op=sql.SQL(">=" if include_start else ">"),
            start=value_to_sql(current_id, self._source_key_type),
            limit=sql.Literal(self.window_size),
        )
        cursor.execute(query)
        return list(cursor.fetchall())

    def _fetch_range(self, cursor: Any, first_id: Any, last_id: Any) -> list[dict]:
        """Target rows with keys in [first_id, last_id]."""
        pk = sql.Identifier(self.primary_key)
        query = sql.SQL(
            "SELECT {columns} FROM {table} WHERE {pk} >= {first} AND {pk} <= {last} ORDER BY {pk}"
        ).format(
            columns=column_list([col.name for col in self.columns]),
            table=self.target.sql_identifier,
            pk=pk,
            first=value_to_sql(first_id, self._source_key_type),
            last=value_to_sql(last_id, self._source_key_type),
        )
        cursor.execute(query)
        return list(cursor.fetchall())

    def _compare_rows(self, source_row: dict[str, Any], target_row: dict[str, Any]) -> list[str]:
        """
        Compare two rows and return list of modified columns.

        Returns:
            Empty list if rows are identical, otherwise list of modified column names
        """
        modified = []

        for col in self.columns:
            if col.name == self.primary_key:
                continue
            if not values_equal(source_row.get(col.name), target_row.get(col.name)):
                modified.append(col.name)

        return modified

    def _insert_row(self, cursor: Any, row: dict[str, Any]) -> None:
        query = sql.SQL("INSERT INTO {table} ({columns}) VALUES ({values})").format(
            table=self.target.sql_identifier,
            columns=column_list([col.name for col in self.columns]),
            values=sql.SQL(", ").join(
                value_to_sql(row.get(col.name), self._column_types[col.name])
                for col in self.columns
            ),
        )
        cursor.execute(query)

    def _update_row(self, cursor: Any, row: dict[str, Any]) -> None:
        assignments = [
            sql.SQL("{} = {}").format(
                sql.Identifier(col.name),
                value_to_sql(row.get(col.name), self._column_types[col.name]),
            )
            for col in self.columns
            if col.name != self.primary_key
        ]
        query = sql.SQL("UPDATE {table} SET {assignments} WHERE {pk} = {id}").format(
            table=self.target.sql_identifier,
            assignments=sql.SQL(", ").join(assignments),
            pk=sql.Identifier(self.primary_key),
            id=self._key_literal(row[self.primary_key]),
        )
        cursor.execute(query)

    def _delete_row(self, cursor: Any, row_id: Any) -> None:
        query = sql.SQL("DELETE FROM {table} WHERE {pk} = {id}").format(
            table=self.target.sql_identifier,
            pk=sql.Identifier(self.primary_key),
            id=self._key_literal(row_id),
        )
        cursor.execute(query)

    def _key_literal(self, row_id: Any) -> sql.Composable:
        return value_to_sql(row_id, self._column_types.get(self.primary_key, ""))


def values_equal(source_val: Any, target_val: Any) -> bool:
    """
    Compare two column values as read from PostgreSQL.

    Integers compare by their decimal text, never through float; timestamps
    by instant; binary and JSON values by content.
    """
    if source_val is None and target_val is None:
        return True
    if source_val is None or target_val is None:
        return False

    if isinstance(source_val, int) or isinstance(target_val, int):
        return str(source_val) == str(target_val)

    if isinstance(source_val, datetime) and isinstance(target_val, datetime):
        # Naive and aware values never compare equal
        if (source_val.tzinfo is None) != (target_val.tzinfo is None):
            return False
        return source_val == target_val

    if isinstance(source_val, (bytes, memoryview)) or isinstance(target_val, (bytes, memoryview)):
        return bytes(source_val) == bytes(target_val)

    if isinstance(source_val, (dict, list)) or isinstance(target_val, (dict, list)):
        return _canonical_json(source_val) == _canonical_json(target_val)

    return source_val == target_val


def _canonical_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)
