"""PostgreSQL connection pool implementation."""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import psycopg2
import psycopg2.extensions
from opentelemetry import trace

from utils.tracing import trace_operation

from .base import BaseConnectionPool


class PostgresConnectionPool(BaseConnectionPool):
    """Connection pool for PostgreSQL databases."""

    def __init__(
        self,
        dsn: str,
        application_name: str = "pgslice",
        connect_timeout: int = 10,
        **kwargs: Any,
    ):
        """
        Initialize PostgreSQL connection pool.

        Args:
            dsn: libpq connection string or postgres:// URL
            application_name: Reported in pg_stat_activity
            connect_timeout: Seconds to wait for a new connection
            **kwargs: Additional arguments for BaseConnectionPool
        """
        self.dsn = dsn
        self.application_name = application_name
        self.connect_timeout = connect_timeout

        super().__init__(**kwargs)

    def _create_connection(self) -> psycopg2.extensions.connection:
        """Create a new PostgreSQL connection."""
        with trace_operation("postgres_connect", kind=trace.SpanKind.CLIENT):
            conn = psycopg2.connect(
                self.dsn,
                application_name=self.application_name,
                connect_timeout=self.connect_timeout,
            )
            # Idle pooled connections never sit inside a transaction
            conn.autocommit = True
            return conn

    def _is_connection_healthy(self, conn: psycopg2.extensions.connection) -> bool:
        """Check if PostgreSQL connection is healthy."""
        if conn is None or conn.closed:
            return False

        try:
            with conn.cursor() as cursor:
                cursor.execute("SELECT 1")
                cursor.fetchone()
            return True
        except (psycopg2.Error, psycopg2.Warning):
            return False

    def _close_connection(self, conn: psycopg2.extensions.connection) -> None:
        """Close PostgreSQL connection."""
        if conn is not None and not conn.closed:
            conn.close()

    @contextmanager
    def transaction(self, cursor_factory: Any = None) -> Iterator[Any]:
        """
        Run one unit of work in its own transaction.

        Commits when the block exits normally and rolls back when it raises,
        so each batch is durable on its own.

        Args:
            cursor_factory: Optional psycopg2 cursor class (e.g. RealDictCursor)

        Yields:
            Cursor bound to the transaction
        """
        with self.acquire() as conn:
            conn.autocommit = False
            try:
                # psycopg2's connection context commits or rolls back
                with conn:
                    with conn.cursor(cursor_factory=cursor_factory) as cursor:
                        yield cursor
            finally:
                if not conn.closed:
                    conn.autocommit = True
