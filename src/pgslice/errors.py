"""
Exception hierarchy for pgslice.

Configuration errors are detected once, while an engine is being initialized,
and are never retried. Database errors raised while a batch executes are not
wrapped: they propagate as ``psycopg2.Error`` after the batch transaction has
been rolled back.
"""


class PgsliceError(Exception):
    """Base exception for all pgslice errors."""

    pass


class ConfigurationError(PgsliceError):
    """Raised when tables or options cannot support the requested operation."""

    pass


class TableNotFoundError(ConfigurationError):
    """Raised when a source, destination or target table does not exist."""

    def __init__(self, table: str):
        super().__init__(f"Table not found: {table}")
        self.table = table


class PrimaryKeyError(ConfigurationError):
    """Raised when a primary key is missing, composite or unknown."""

    pass


class UnsupportedKeyError(ConfigurationError):
    """Raised when a key value is neither an integer nor a ULID."""

    pass


class SchemaMismatchError(ConfigurationError):
    """Raised when source and target tables do not have the same columns."""

    pass


class EmptySourceError(ConfigurationError):
    """Raised when the synchronize source table holds no rows."""

    def __init__(self, table: str):
        super().__init__(f"No rows found in source table {table}")
        self.table = table


class AdvisoryLockError(PgsliceError):
    """Raised when another process already holds the operation's advisory lock."""

    def __init__(self, table: str, operation: str):
        super().__init__(
            f'Could not acquire advisory lock for "{operation}" on table "{table}". '
            f"Another pgslice operation may be in progress."
        )
        self.table = table
        self.operation = operation
