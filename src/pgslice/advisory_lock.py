"""
Session-level advisory locks.

Two identical operations on the same table (say, two fills of
``public.posts``) must not run at once. The lock key is
``hashtext('<schema>.<table>:<operation>')``, so different operations on the
same table do not block each other. Session locks belong to the connection,
not to a transaction, and must therefore be held on a connection that is not
used for the per-batch transactions.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from .errors import AdvisoryLockError
from .table import Table

logger = logging.getLogger(__name__)


def lock_key(cursor: Any, table: Table, operation: str) -> int:
    """Numeric lock key for an operation on a table."""
    cursor.execute("SELECT hashtext(%s)::bigint", (f"{table}:{operation}",))
    return cursor.fetchone()[0]


@contextmanager
def advisory_lock(connection: Any, table: Table, operation: str) -> Iterator[int]:
    """
    Hold the advisory lock for ``operation`` on ``table`` for the block.

    Args:
        connection: Connection in autocommit mode, dedicated to the lock
        table: Table the operation works on
        operation: Operation name, e.g. "fill"

    Yields:
        The lock key

    Raises:
        AdvisoryLockError: If another session holds the lock
    """
    with connection.cursor() as cursor:
        key = lock_key(cursor, table, operation)
        cursor.execute("SELECT pg_try_advisory_lock(%s)", (key,))
        if not cursor.fetchone()[0]:
            raise AdvisoryLockError(str(table), operation)

    logger.debug(f"Acquired advisory lock {key} for {operation} on {table}")

    try:
        yield key
    finally:
        with connection.cursor() as cursor:
            cursor.execute("SELECT pg_advisory_unlock(%s)", (key,))
            released = cursor.fetchone()[0]
        if not released:
            logger.warning(f"Advisory lock {key} for {operation} on {table} was not held")
        else:
            logger.debug(f"Released advisory lock {key} for {operation} on {table}")
