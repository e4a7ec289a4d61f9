"""
Database connection pooling for PostgreSQL.

Provides a thread-safe connection pool with health checks, metrics,
and automatic connection recycling to prevent stale connections.
"""

from .base import (
    BaseConnectionPool,
    ConnectionPoolError,
    PoolClosedError,
    PooledConnection,
    PoolExhaustedError,
)
from .postgres import PostgresConnectionPool

__all__ = [
    "BaseConnectionPool",
    "PostgresConnectionPool",
    "PooledConnection",
    "ConnectionPoolError",
    "PoolExhaustedError",
    "PoolClosedError",
]
