"""
Shared data types for the batch engines.

Results are immutable once yielded and expose ``to_dict()`` for callers
that log or serialize batch progress.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal, Union

IdValue = Union[int, str]

Period = Literal["day", "month", "year"]
Cast = Literal["date", "timestamptz"]

PERIODS: tuple[str, ...] = ("day", "month", "year")
CASTS: tuple[str, ...] = ("date", "timestamptz")

# Partition name suffix formats, as understood by to_char()
SQL_FORMAT = {
    "day": "YYYYMMDD",
    "month": "YYYYMM",
    "year": "YYYY",
}


def is_period(value: str) -> bool:
    return value in PERIODS


@dataclass(frozen=True)
class ColumnInfo:
    """A non-generated column and its declared type (information_schema.columns.data_type)."""

    name: str
    data_type: str


@dataclass(frozen=True)
class TimeFilter:
    """Instant span that the destination's partitions can accept."""

    column: str
    cast: Cast
    starting_time: datetime
    ending_time: datetime


@dataclass
class FillOptions:
    table: str
    swapped: bool = False
    source_table: str | None = None
    dest_table: str | None = None
    batch_size: int = 10_000
    start: str | None = None


@dataclass
class SynchronizeOptions:
    table: str
    primary_key: str | None = None
    window_size: int = 1000
    start: str | None = None
    dry_run: bool = False


@dataclass(frozen=True)
class FillBatchResult:
    """Outcome of one committed fill batch."""

    batch_number: int
    total_batches: int | None
    rows_inserted: int
    start_id: IdValue | None
    end_id: IdValue | None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "batch_number": self.batch_number,
            "total_batches": self.total_batches,
            "rows_inserted": self.rows_inserted,
            "start_id": self.start_id,
            "end_id": self.end_id,
        }


@dataclass(frozen=True)
class KeyRange:
    """First and last key of a window, as read from the source."""

    start: Any
    end: Any


@dataclass(frozen=True)
class SynchronizeBatchResult:
    """Outcome of one synchronized window."""

    batch_number: int
    batch_duration_ms: float
    primary_key_range: KeyRange
    rows_compared: int
    matching_rows: int
    rows_inserted: int
    rows_updated: int
    rows_deleted: int

    @property
    def differences(self) -> int:
        return self.rows_inserted + self.rows_updated + self.rows_deleted

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "batch_number": self.batch_number,
            "batch_duration_ms": self.batch_duration_ms,
            "primary_key_range": {
                "start": self.primary_key_range.start,
                "end": self.primary_key_range.end,
            },
            "rows_compared": self.rows_compared,
            "matching_rows": self.matching_rows,
            "rows_inserted": self.rows_inserted,
            "rows_updated": self.rows_updated,
            "rows_deleted": self.rows_deleted,
        }
