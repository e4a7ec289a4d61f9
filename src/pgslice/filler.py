"""
Batch copy engine.

Copies rows from a source table into a destination table in key order, one
committed transaction per batch. Progress is never stored anywhere but the
destination itself: a rerun without ``--start`` resumes after the
destination's current maximum key, and ``ON CONFLICT DO NOTHING`` makes
re-scanned rows no-ops.
"""

import logging
import time
from collections.abc import Iterator
from typing import Any

from opentelemetry import trace
from prometheus_client import Counter, Histogram
from psycopg2 import sql

from utils.logging import ContextLogger
from utils.metrics import get_or_create_metric
from utils.tracing import add_span_attributes, trace_operation

from .errors import PrimaryKeyError, TableNotFoundError
from .id_comparator import IdComparator, comparator_for_column
from .sql_utils import column_list
from .table import DEFAULT_SCHEMA, Table, time_filter_condition, transform_id_value
from .types import FillBatchResult, FillOptions, IdValue, TimeFilter

logger = logging.getLogger(__name__)


# Metrics
FILL_ROWS_INSERTED = get_or_create_metric(
    lambda: Counter(
        "pgslice_fill_rows_inserted_total",
        "Rows copied into the destination table",
        ["table"],
    ),
    "pgslice_fill_rows_inserted",
)

FILL_BATCHES = get_or_create_metric(
    lambda: Counter(
        "pgslice_fill_batches_total",
        "Fill batches executed, including batches that skipped over copied rows",
        ["table"],
    ),
    "pgslice_fill_batches",
)

FILL_BATCH_DURATION = get_or_create_metric(
    lambda: Histogram(
        "pgslice_fill_batch_duration_seconds",
        "Time to execute and commit one fill batch",
        ["table"],
        buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
    ),
    "pgslice_fill_batch_duration_seconds",
)


class Filler:
    """
    Copies rows from ``source`` to ``dest`` in batches of ``batch_size``.

    Use ``Filler.init`` to resolve tables and the starting cursor from the
    database; the constructor only stores an already-resolved plan.
    """

    def __init__(
        self,
        source: Table,
        dest: Table,
        comparator: IdComparator,
        columns: list[str],
        batch_size: int = 10_000,
        starting_id: IdValue | None = None,
        include_start: bool = False,
        max_source_id: IdValue | None = None,
        time_filter: TimeFilter | None = None,
    ):
        """
        Args:
            source: Table rows are read from
            dest: Table rows are inserted into
            comparator: Key domain of the primary key column
            columns: Columns copied, in order
            batch_size: Maximum rows per batch
            starting_id: Cursor to start after (or at, see include_start);
                None means there is nothing to copy
            include_start: Whether the first batch includes ``starting_id``
            max_source_id: Largest source key when the run was planned
            time_filter: Restricts copied rows to what the destination's
                partitions accept
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        self.source = source
        self.dest = dest
        self.comparator = comparator
        self.columns = columns
        self.batch_size = batch_size
        self.starting_id = starting_id
        self.include_start = include_start
        self.max_source_id = max_source_id
        self.time_filter = time_filter

        self.log = ContextLogger(__name__, table=str(dest), operation="fill")

    @classmethod
    def init(
        cls, cursor: Any, options: FillOptions, default_schema: str = DEFAULT_SCHEMA
    ) -> "Filler":
        """
        Plan a fill from the current state of the database.

        Args:
            cursor: Cursor inside a (read-only) transaction
            options: Fill options
            default_schema: Schema for table names given without one

        Raises:
            TableNotFoundError: If the source or destination does not exist
            PrimaryKeyError: If the key table has no single-column primary key
            UnsupportedKeyError: If the key is neither an integer nor a ULID
        """
        with trace_operation("fill_init", kind=trace.SpanKind.INTERNAL, table=options.table):
            table = Table.parse(options.table, default_schema)

            if options.source_table:
                source = Table.parse(options.source_table, default_schema)
            else:
                source = table.retired if options.swapped else table

            if options.dest_table:
                dest = Table.parse(options.dest_table, default_schema)
            else:
                dest = table if options.swapped else table.intermediate

            for candidate in (source, dest):
                if not candidate.exists(cursor):
                    raise TableNotFoundError(str(candidate))

            context = dest.partition_context(cursor)

            # A partitioned destination defines its key type on each partition
            if context.settings and context.partitions:
                schema_table = context.partitions[-1]
            else:
                schema_table = table

            primary_key = _single_primary_key(cursor, schema_table)
            key_column = next(
                (col for col in schema_table.columns(cursor) if col.name == primary_key), None
            )
            if key_column is None:
                raise PrimaryKeyError(f"Primary key {primary_key} not found on {schema_table}")

            max_source_id = source.max_id(cursor, primary_key)
            comparator = comparator_for_column(key_column, max_source_id)

            columns = [col.name for col in source.columns(cursor)]

            starting_id: IdValue | None
            include_start = False

            if options.start is not None:
                starting_id = comparator.parse(options.start)
                include_start = True
            else:
                if options.swapped:
                    # Rows above the source maximum were written after the swap
                    starting_id = dest.max_id(cursor, primary_key, below=max_source_id)
                else:
                    starting_id = dest.max_id(cursor, primary_key)

                if starting_id is None:
                    min_source_id = source.min_id(cursor, primary_key, context.time_filter)
                    if min_source_id is not None:
                        starting_id = comparator.predecessor(min_source_id)

            if starting_id is not None:
                comparator.validate(starting_id)

            logger.info(
                f"Planned fill {source} -> {dest}: key={primary_key} "
                f"({type(comparator).__name__}), start={starting_id}, "
                f"inclusive={include_start}, source max={max_source_id}, "
                f"time filter={context.time_filter}"
            )

            return cls(
                source=source,
                dest=dest,
                comparator=comparator,
                columns=columns,
                batch_size=options.batch_size,
                starting_id=starting_id,
                include_start=include_start,
                max_source_id=max_source_id,
                time_filter=context.time_filter,
            )

    @property
    def total_batches(self) -> int | None:
        """Estimated number of batches, or None when the key domain cannot tell."""
        if self.starting_id is None or self.max_source_id is None:
            return 0
        return self.comparator.batch_count(self.starting_id, self.max_source_id, self.batch_size)

    def fill(self, pool: Any) -> Iterator[FillBatchResult]:
        """
        Copy batches until the source is exhausted, yielding after each commit.

        A batch that inserts nothing ends the run, unless source keys remain
        past the cursor (a gap in the key range, rows already copied after an
        explicit start, or rows outside the time filter). In that case the
        cursor skips one stride ahead and the empty batch is still reported.
        A stride that finds no keys past the cursor also ends the run, so
        rows deleted from the source during a run cannot stall it.

        Args:
            pool: Connection pool providing ``transaction()``

        Yields:
            One FillBatchResult per committed batch
        """
        if self.starting_id is None or self.max_source_id is None:
            self.log.info("Nothing to fill")
            return

        total = self.total_batches
        current_id = self.starting_id
        include_start = self.include_start
        batch_number = 0

        while True:
            batch_number += 1
            start_time = time.time()

            with trace_operation(
                "fill_batch",
                kind=trace.SpanKind.CLIENT,
                table=str(self.dest),
                batch_number=batch_number,
            ):
                with pool.transaction() as cursor:
                    rows_inserted, max_id = self._process_batch(cursor, current_id, include_start)

                    if rows_inserted > 0:
                        next_id = max_id
                    elif self.comparator.should_continue(current_id, self.max_source_id):
                        next_id = self.comparator.next_starting_id(
                            current_id,
                            self.batch_size,
                            cursor,
                            self.source,
                            inclusive=include_start,
                        )
                        # No source keys left past the cursor
                        if next_id == current_id and not include_start:
                            next_id = None
                    else:
                        next_id = None

                add_span_attributes(rows_inserted=rows_inserted, end_id=next_id)

            FILL_BATCH_DURATION.labels(table=str(self.dest)).observe(time.time() - start_time)

            if next_id is None:
                self.log.debug(f"Batch {batch_number} inserted no rows, source exhausted")
                break

            FILL_BATCHES.labels(table=str(self.dest)).inc()
            FILL_ROWS_INSERTED.labels(table=str(self.dest)).inc(rows_inserted)

            if total is not None and batch_number > total:
                total = batch_number

            result = FillBatchResult(
                batch_number=batch_number,
                total_batches=total,
                rows_inserted=rows_inserted,
                start_id=current_id,
                end_id=next_id,
            )
            self.log.debug(
                f"Batch {batch_number}: {rows_inserted} rows, keys {current_id} -> {next_id}"
            )

            yield result

            current_id = next_id
            include_start = False

    def _process_batch(
        self, cursor: Any, current_id: IdValue, include_start: bool
    ) -> tuple[int, IdValue | None]:
        """Insert one batch and return (rows inserted, largest key inserted)."""
        conditions = [
            self.comparator.batch_where_condition(current_id, self.batch_size, include_start)
        ]
        if self.time_filter is not None:
            conditions.append(time_filter_condition(self.time_filter))

        columns = column_list(self.columns)
        query = sql.SQL(
            "WITH batch AS ("
            "INSERT INTO {dest} ({columns}) "
            "SELECT {columns} FROM {source} "
            "WHERE {where} "
            "ORDER BY {pk} LIMIT {limit} "
            "ON CONFLICT DO NOTHING "
            "RETURNING {pk}"
            ") SELECT MAX({pk}), COUNT(*) FROM batch"
        ).format(
            dest=self.dest.sql_identifier,
            columns=columns,
            source=self.source.sql_identifier,
            where=sql.SQL(" AND ").join(conditions),
            pk=self.comparator.column,
            limit=sql.Literal(self.batch_size),
        )

        cursor.execute(query)
        max_id, count = cursor.fetchone()
        return int(count), transform_id_value(max_id)


def _single_primary_key(cursor: Any, table: Table) -> str:
    primary_key = table.primary_key(cursor)
    if not primary_key:
        raise PrimaryKeyError(f"No primary key found on {table}")
    if len(primary_key) > 1:
        raise PrimaryKeyError(
            f"Composite primary key on {table} is not supported: {', '.join(primary_key)}"
        )
    return primary_key[0]
