"""
Time window derivation for partitioned destinations.

A partitioned table only accepts rows whose partition column falls inside one
of its partitions, so fill has to skip source rows outside the span covered
by the oldest and newest partitions.
"""

import logging
from collections.abc import Sequence

from .date_ranges import advance_date, parse_partition_date
from .table_settings import TableSettings
from .types import TimeFilter

logger = logging.getLogger(__name__)


def derive_time_filter(
    settings: TableSettings | None, partition_names: Sequence[str]
) -> TimeFilter | None:
    """
    Compute the instant span a partitioned table can accept.

    Args:
        settings: Partitioning settings from the table comment
        partition_names: Names of the child partitions

    Returns:
        TimeFilter from the start of the oldest partition (inclusive) to the
        end of the newest one (exclusive), or None when the table is not
        partitioned by pgslice
    """
    if settings is None or not partition_names:
        return None

    starts = sorted(parse_partition_date(name, settings.period) for name in partition_names)
    starting_time = starts[0]
    ending_time = advance_date(starts[-1], settings.period, 1)

    logger.debug(
        f"Time filter on {settings.column}: {starting_time.isoformat()} "
        f"to {ending_time.isoformat()} ({len(partition_names)} partitions)"
    )

    return TimeFilter(
        column=settings.column,
        cast=settings.cast,
        starting_time=starting_time,
        ending_time=ending_time,
    )
