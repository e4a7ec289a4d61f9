"""
Calendar arithmetic for partition boundaries.

All dates are rounded and advanced in UTC so that partition boundaries do not
drift with the local timezone of the machine running the command or across
daylight-saving transitions.
"""

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta

from .types import Period


@dataclass(frozen=True)
class DateRange:
    """Boundaries of a single partition."""

    start: datetime  # inclusive
    end: datetime  # exclusive
    suffix: str


def _as_utc(value: date | datetime) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)
    return datetime(value.year, value.month, value.day, tzinfo=UTC)


def round_date(value: date | datetime, period: Period) -> datetime:
    """
    Round a date down to the start of its period.

    Naive datetimes are taken to be UTC already.

    Args:
        value: Date or datetime to round
        period: 'day', 'month' or 'year'

    Returns:
        Timezone-aware UTC datetime at midnight of the period start
    """
    utc = _as_utc(value)

    if period == "day":
        return datetime(utc.year, utc.month, utc.day, tzinfo=UTC)
    elif period == "month":
        return datetime(utc.year, utc.month, 1, tzinfo=UTC)
    elif period == "year":
        return datetime(utc.year, 1, 1, tzinfo=UTC)
    raise ValueError(f"Invalid period: {period}")


def advance_date(value: date | datetime, period: Period, count: int) -> datetime:
    """
    Move a date forward (or backward, for negative counts) by whole periods.

    Month and year arithmetic land on the first of the month/year, matching
    the rounded boundaries produced by round_date().
    """
    utc = _as_utc(value)

    if period == "day":
        start = datetime(utc.year, utc.month, utc.day, tzinfo=UTC)
        return start + timedelta(days=count)
    elif period == "month":
        months = utc.year * 12 + (utc.month - 1) + count
        return datetime(months // 12, months % 12 + 1, 1, tzinfo=UTC)
    elif period == "year":
        return datetime(utc.year + count, 1, 1, tzinfo=UTC)
    raise ValueError(f"Invalid period: {period}")


def format_date_suffix(value: date | datetime, period: Period) -> str:
    """Format a date as a partition name suffix (YYYYMMDD, YYYYMM or YYYY)."""
    utc = _as_utc(value)

    if period == "day":
        return f"{utc.year:04d}{utc.month:02d}{utc.day:02d}"
    elif period == "month":
        return f"{utc.year:04d}{utc.month:02d}"
    elif period == "year":
        return f"{utc.year:04d}"
    raise ValueError(f"Invalid period: {period}")


def parse_partition_date(partition_name: str, period: Period) -> datetime:
    """
    Extract the start date from a partition name such as ``posts_202601``.

    The suffix is the last underscore-separated component of the name.

    Raises:
        ValueError: If the suffix does not match the period's format
    """
    suffix = partition_name.rsplit("_", 1)[-1]
    expected = {"day": 8, "month": 6, "year": 4}.get(period)
    if expected is None:
        raise ValueError(f"Invalid period: {period}")
    if len(suffix) != expected or not suffix.isdigit():
        raise ValueError(f"Invalid partition name: {partition_name}")

    year = int(suffix[0:4])
    month = int(suffix[4:6]) if period in ("day", "month") else 1
    day = int(suffix[6:8]) if period == "day" else 1
    return datetime(year, month, day, tzinfo=UTC)


class DateRanges:
    """
    Iterable of partition boundaries around a reference date.

    Yields ``past + future + 1`` ranges, oldest first. Iteration is lazy and
    can be restarted: every call to ``iter()`` starts from the beginning.

    Example:
        >>> ranges = DateRanges(period="month", past=1, future=2, today=date(2026, 1, 15))
        >>> [r.suffix for r in ranges]
        ['202512', '202601', '202602', '202603']
    """

    def __init__(
        self,
        period: Period,
        past: int = 0,
        future: int = 0,
        today: date | datetime | None = None,
    ):
        if past < 0 or future < 0:
            raise ValueError("past and future must be non-negative")

        self.period = period
        self.past = past
        self.future = future
        self.today = round_date(today if today is not None else datetime.now(UTC), period)

    def __iter__(self) -> Iterator[DateRange]:
        for n in range(-self.past, self.future + 1):
            start = advance_date(self.today, self.period, n)
            end = advance_date(start, self.period, 1)
            yield DateRange(
                start=start,
                end=end,
                suffix=format_date_suffix(start, self.period),
            )

    def __len__(self) -> int:
        return self.past + self.future + 1
