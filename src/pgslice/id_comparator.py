"""
Primary key domains for batch processing.

Two kinds of primary key are supported: auto-incrementing integers and ULIDs
(26-character Crockford base-32 strings whose string order is also their time
order). All arithmetic that differs between the two lives here, so the batch
engines can work in terms of "the next batch after key K".

A comparator is chosen once per run and only accepts values of its own
domain; handing it a value from the other domain raises TypeError.
"""

import re
from abc import ABC, abstractmethod
from typing import Any

from psycopg2 import sql

from .errors import UnsupportedKeyError
from .types import ColumnInfo, IdValue

# ULID for 1970-01-01T00:00:00Z, the smallest value pgslice generates
DEFAULT_ULID = "00000H5A406P0C3DQMCQ5MV6WQ"

ULID_PATTERN = re.compile(r"^[0123456789ABCDEFGHJKMNPQRSTVWXYZ]{26}$")
NUMERIC_PATTERN = re.compile(r"^\d+$")

INTEGER_TYPES = frozenset({"smallint", "integer", "bigint"})
STRING_TYPES = frozenset({"text", "character varying", "character"})


def is_ulid(value: Any) -> bool:
    """Check whether a value is a ULID string."""
    return isinstance(value, str) and ULID_PATTERN.match(value) is not None


class IdComparator(ABC):
    """
    Key-domain strategy used by the fill engine.

    Args:
        primary_key_column: Name of the (single) primary key column
    """

    def __init__(self, primary_key_column: str):
        self.primary_key_column = primary_key_column

    @property
    def column(self) -> sql.Identifier:
        return sql.Identifier(self.primary_key_column)

    @property
    @abstractmethod
    def min_value(self) -> IdValue:
        """Smallest value of the domain."""

    @abstractmethod
    def validate(self, value: Any) -> IdValue:
        """Return the value if it belongs to this domain, raise TypeError otherwise."""

    @abstractmethod
    def parse(self, text: str) -> IdValue:
        """Parse a user-supplied key (e.g. from --start) into this domain."""

    @abstractmethod
    def predecessor(self, value: IdValue) -> IdValue:
        """Value immediately below ``value``."""

    def should_continue(self, current_id: IdValue, max_id: IdValue) -> bool:
        """True while ``current_id`` precedes ``max_id``."""
        return self.validate(current_id) < self.validate(max_id)

    @abstractmethod
    def batch_count(self, starting_id: IdValue, max_id: IdValue, batch_size: int) -> int | None:
        """Number of batches left, or None when the domain cannot tell."""

    @abstractmethod
    def batch_where_condition(
        self, starting_id: IdValue, batch_size: int, inclusive: bool
    ) -> sql.Composable:
        """WHERE fragment selecting the batch that starts at ``starting_id``."""

    @abstractmethod
    def next_starting_id(
        self,
        current_id: IdValue,
        batch_size: int,
        cursor: Any,
        source_table: Any,
        inclusive: bool = False,
    ) -> IdValue:
        """
        Cursor position one stride after ``current_id``.

        ``inclusive`` must match the bound of the batch just scanned, so the
        stride covers exactly the keys that batch covered.
        """

    @abstractmethod
    def select_suffix(self, batch_size: int) -> sql.Composable | None:
        """ORDER BY/LIMIT clause the batch query needs, if any."""

    def _lower_bound(self, starting_id: IdValue, inclusive: bool) -> sql.Composable:
        operator = sql.SQL(">=") if inclusive else sql.SQL(">")
        return sql.SQL("{} {} {}").format(self.column, operator, sql.Literal(starting_id))


class NumericComparator(IdComparator):
    """Integer keys: ranges are bounded by arithmetic, no extra queries."""

    @property
    def min_value(self) -> int:
        return 1

    def validate(self, value: Any) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"Expected integer key, got {type(value).__name__}: {value!r}")
        return value

    def parse(self, text: str) -> int:
        if not NUMERIC_PATTERN.match(text):
            raise UnsupportedKeyError(
                f"Invalid start value for integer primary key {self.primary_key_column}: {text}"
            )
        return int(text)

    def predecessor(self, value: IdValue) -> int:
        return self.validate(value) - 1

    def batch_count(self, starting_id: IdValue, max_id: IdValue, batch_size: int) -> int:
        diff = self.validate(max_id) - self.validate(starting_id)
        if diff <= 0:
            return 0
        # Integer ceiling division, exact for keys beyond 2**53
        return -(-diff // batch_size)

    def batch_where_condition(
        self, starting_id: IdValue, batch_size: int, inclusive: bool
    ) -> sql.Composable:
        start = self.validate(starting_id)
        return sql.SQL("{} AND {} <= {}").format(
            self._lower_bound(start, inclusive),
            self.column,
            sql.Literal(start + batch_size),
        )

    def next_starting_id(
        self,
        current_id: IdValue,
        batch_size: int,
        cursor: Any,
        source_table: Any,
        inclusive: bool = False,
    ) -> int:
        return self.validate(current_id) + batch_size

    def select_suffix(self, batch_size: int) -> None:
        return None


class UlidComparator(IdComparator):
    """
    ULID keys: string ranges cannot be bounded by arithmetic.

    Batches are open-ended conditions limited with ORDER BY/LIMIT, and the
    stride to the next batch has to be looked up in the source table.
    """

    @property
    def min_value(self) -> str:
        return DEFAULT_ULID

    def validate(self, value: Any) -> str:
        if not isinstance(value, str):
            raise TypeError(f"Expected ULID key, got {type(value).__name__}: {value!r}")
        return value

    def parse(self, text: str) -> str:
        if not is_ulid(text):
            raise UnsupportedKeyError(
                f"Invalid start value for ULID primary key {self.primary_key_column}: {text}"
            )
        return text

    def predecessor(self, value: IdValue) -> str:
        # There is no "ULID minus one"; saturate to the domain minimum
        self.validate(value)
        return DEFAULT_ULID

    def batch_count(self, starting_id: IdValue, max_id: IdValue, batch_size: int) -> None:
        self.validate(starting_id)
        self.validate(max_id)
        return None

    def batch_where_condition(
        self, starting_id: IdValue, batch_size: int, inclusive: bool
    ) -> sql.Composable:
        return self._lower_bound(self.validate(starting_id), inclusive)

    def next_starting_id(
        self,
        current_id: IdValue,
        batch_size: int,
        cursor: Any,
        source_table: Any,
        inclusive: bool = False,
    ) -> str:
        current = self.validate(current_id)
        query = sql.SQL(
            "SELECT MAX({col}) FROM ("
            "SELECT {col} FROM {table} WHERE {bound} ORDER BY {col} LIMIT {limit}"
            ") AS batch"
        ).format(
            col=self.column,
            table=source_table.sql_identifier,
            bound=self._lower_bound(current, inclusive),
            limit=sql.Literal(batch_size),
        )
        cursor.execute(query)
        row = cursor.fetchone()
        if row is None or row[0] is None:
            return current
        return row[0]

    def select_suffix(self, batch_size: int) -> sql.Composable:
        return sql.SQL("ORDER BY {} LIMIT {}").format(self.column, sql.Literal(batch_size))


def comparator_for(primary_key_column: str, sample: Any) -> IdComparator:
    """
    Choose a comparator from a sampled key value.

    Integers (and digit-only strings, as typed on the command line) select
    the numeric domain; ULID strings select the ULID domain.

    Raises:
        UnsupportedKeyError: For any other kind of value
    """
    if isinstance(sample, int) and not isinstance(sample, bool):
        return NumericComparator(primary_key_column)
    if isinstance(sample, str):
        if NUMERIC_PATTERN.match(sample):
            return NumericComparator(primary_key_column)
        if is_ulid(sample):
            return UlidComparator(primary_key_column)
    raise UnsupportedKeyError(
        f"Unsupported primary key value for {primary_key_column}: {sample!r} "
        f"(expected an integer or a ULID)"
    )


def comparator_for_column(column: ColumnInfo, sample: Any = None) -> IdComparator:
    """
    Choose a comparator from the key column's declared type.

    String columns need a sample to confirm they hold ULIDs. With no sample
    (an empty table) the ULID domain is assumed, since nothing will be copied.

    Raises:
        UnsupportedKeyError: If the type or the sample is not supported
    """
    if column.data_type in INTEGER_TYPES:
        return NumericComparator(column.name)
    if column.data_type in STRING_TYPES:
        if sample is None:
            return UlidComparator(column.name)
        if is_ulid(sample):
            return UlidComparator(column.name)
        raise UnsupportedKeyError(
            f"Primary key {column.name} holds non-ULID string values: {sample!r}"
        )
    raise UnsupportedKeyError(
        f"Unsupported primary key type for {column.name}: {column.data_type}"
    )
