"""
pgslice: batch copy and reconciliation for partitioning PostgreSQL tables.

Provides:
- Filler: resumable batch copy from a table into its partitioned replacement
- Synchronizer: windowed diff and fix-up between the two tables
- DateRanges: partition boundaries by day, month or year
- Pgslice: runs the engines over a connection pool under advisory locks
"""

from .date_ranges import DateRange, DateRanges
from .errors import (
    AdvisoryLockError,
    ConfigurationError,
    EmptySourceError,
    PgsliceError,
    PrimaryKeyError,
    SchemaMismatchError,
    TableNotFoundError,
    UnsupportedKeyError,
)
from .filler import Filler
from .id_comparator import IdComparator, NumericComparator, UlidComparator
from .pgslice import Pgslice
from .synchronizer import Synchronizer
from .table import Table
from .types import FillBatchResult, FillOptions, SynchronizeBatchResult, SynchronizeOptions

__version__ = "0.1.0"

__all__ = [
    "Pgslice",
    "Filler",
    "Synchronizer",
    "Table",
    "DateRange",
    "DateRanges",
    "IdComparator",
    "NumericComparator",
    "UlidComparator",
    "FillOptions",
    "SynchronizeOptions",
    "FillBatchResult",
    "SynchronizeBatchResult",
    "PgsliceError",
    "ConfigurationError",
    "TableNotFoundError",
    "PrimaryKeyError",
    "UnsupportedKeyError",
    "SchemaMismatchError",
    "EmptySourceError",
    "AdvisoryLockError",
]
