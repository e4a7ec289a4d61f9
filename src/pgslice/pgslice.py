"""
Entry point that wires a connection pool, advisory locks and the batch engines.

Usage:
    with Pgslice.connect("postgres://localhost/app?schema=sales") as pgslice:
        for batch in pgslice.fill(FillOptions(table="posts")):
            print(batch.batch_number, batch.rows_inserted)
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from utils.db_pool import PostgresConnectionPool

from .advisory_lock import advisory_lock
from .errors import ConfigurationError
from .filler import Filler
from .synchronizer import Synchronizer
from .table import DEFAULT_SCHEMA, Table
from .types import FillBatchResult, FillOptions, SynchronizeBatchResult, SynchronizeOptions

logger = logging.getLogger(__name__)

URL_SCHEMES = ("postgres", "postgresql")


def parse_database_url(url: str) -> tuple[str, str]:
    """
    Split the ``schema`` query parameter off a database URL.

    Returns:
        (URL without the schema parameter, schema name)

    Raises:
        ConfigurationError: If the URL is not a PostgreSQL URL
    """
    parts = urlsplit(url)
    if parts.scheme not in URL_SCHEMES:
        raise ConfigurationError(
            f"Invalid database URL scheme '{parts.scheme}', expected postgres:// or postgresql://"
        )

    schema = DEFAULT_SCHEMA
    query = []
    for key, value in parse_qsl(parts.query, keep_blank_values=True):
        if key == "schema":
            schema = value or DEFAULT_SCHEMA
        else:
            query.append((key, value))

    return urlunsplit(parts._replace(query=urlencode(query))), schema


class Pgslice:
    """
    Runs fill and synchronize against one database.

    The pool needs two connections: one holds the advisory lock for the whole
    run while the other carries the per-batch transactions.
    """

    def __init__(self, pool: Any, schema: str = DEFAULT_SCHEMA, advisory_locks: bool = True):
        self.pool = pool
        self.schema = schema
        self.advisory_locks = advisory_locks

    @classmethod
    def connect(
        cls, url: str, advisory_locks: bool = True, application_name: str = "pgslice"
    ) -> "Pgslice":
        dsn, schema = parse_database_url(url)
        pool = PostgresConnectionPool(
            dsn,
            application_name=application_name,
            min_size=1,
            max_size=2,
            pool_name="pgslice",
        )
        logger.info(f"Connected to {urlsplit(dsn).hostname or 'localhost'} (schema={schema})")
        return cls(pool, schema=schema, advisory_locks=advisory_locks)

    def fill(self, options: FillOptions) -> Iterator[FillBatchResult]:
        """Copy rows into the destination table, yielding each committed batch."""
        table = Table.parse(options.table, self.schema)

        with self._lock(table, "fill"):
            with self.pool.transaction() as cursor:
                filler = Filler.init(cursor, options, self.schema)
            yield from filler.fill(self.pool)

    def synchronize(self, options: SynchronizeOptions) -> Iterator[SynchronizeBatchResult]:
        """Reconcile the intermediate table with its source, yielding each window."""
        table = Table.parse(options.table, self.schema)

        with self._lock(table, "synchronize"):
            with self.pool.transaction() as cursor:
                synchronizer = Synchronizer.init(cursor, options, self.schema)
            yield from synchronizer.synchronize(self.pool)

    @contextmanager
    def _lock(self, table: Table, operation: str) -> Iterator[None]:
        if not self.advisory_locks:
            yield
            return

        with self.pool.acquire() as connection:
            with advisory_lock(connection, table, operation):
                yield

    def close(self) -> None:
        self.pool.close()

    def __enter__(self) -> "Pgslice":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
