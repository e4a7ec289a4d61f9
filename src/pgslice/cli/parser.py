"""
Command-line argument parser configuration.

Defines the pgslice commands and their options.
"""

import argparse

from ..types import PERIODS


def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1: {value}")
    return number


def non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must not be negative: {value}")
    return number


def non_negative_float(value: str) -> float:
    number = float(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must not be negative: {value}")
    return number


def create_parser() -> argparse.ArgumentParser:
    """
    Create and configure the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="pgslice",
        description="Batch copy and reconciliation for partitioning PostgreSQL tables",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Copy posts into posts_intermediate
  pgslice fill posts --url postgres://localhost/app

  # Resume from a specific key with smaller batches
  pgslice fill posts --start 12345 --batch-size 5000

  # Copy rows written to posts_retired after the swap
  pgslice fill posts --swapped

  # Preview what synchronize would change
  pgslice synchronize posts --dry-run

  # Synchronize with a pause proportional to batch time
  pgslice synchronize posts --delay 1 --delay-multiplier 0.5

  # Monthly partition boundaries around today
  pgslice date-ranges --period month --past 1 --future 3
        """
    )

    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default=None,
        help='Logging level (default: LOG_LEVEL or INFO)'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Options shared by commands that talk to the database
    database = argparse.ArgumentParser(add_help=False)
    database.add_argument(
        '--url',
        help='Database URL, e.g. postgres://user@host/db?schema=public (default: PGSLICE_URL)'
    )
    database.add_argument(
        '--no-advisory-locks',
        dest='advisory_locks',
        action='store_false',
        help='Do not take an advisory lock for the operation'
    )
    database.add_argument(
        '--metrics-port',
        type=int,
        help='Expose Prometheus metrics on this port while running'
    )

    # ========== Fill command ==========
    fill_parser = subparsers.add_parser(
        'fill',
        parents=[database],
        help='Copy rows into the destination table in batches'
    )
    fill_parser.add_argument('table', help='Table to fill, optionally schema-qualified')
    fill_parser.add_argument(
        '--batch-size',
        type=positive_int,
        default=10_000,
        help='Rows per batch (default: 10000)'
    )
    fill_parser.add_argument(
        '--swapped',
        action='store_true',
        help='Fill the original table from the retired table'
    )
    fill_parser.add_argument('--source-table', help='Override the source table')
    fill_parser.add_argument('--dest-table', help='Override the destination table')
    fill_parser.add_argument(
        '--start',
        help='Primary key to start from, inclusive (integer or ULID)'
    )
    fill_parser.add_argument(
        '--sleep',
        type=non_negative_float,
        default=0.0,
        help='Seconds to sleep between batches'
    )

    # ========== Synchronize command ==========
    sync_parser = subparsers.add_parser(
        'synchronize',
        parents=[database],
        help='Make the intermediate table match the source table'
    )
    sync_parser.add_argument('table', help='Source table, optionally schema-qualified')
    sync_parser.add_argument(
        '--primary-key',
        help='Key column to synchronize on (default: the primary key)'
    )
    sync_parser.add_argument('--start', help='Primary key to start at, inclusive')
    sync_parser.add_argument(
        '--window-size',
        type=positive_int,
        default=1000,
        help='Rows compared per batch (default: 1000)'
    )
    sync_parser.add_argument(
        '--delay',
        type=non_negative_float,
        default=0.0,
        help='Base delay in seconds between batches'
    )
    sync_parser.add_argument(
        '--delay-multiplier',
        type=non_negative_float,
        default=0.0,
        help='Extra delay per second of batch time'
    )
    sync_parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Report differences without changing the target'
    )

    # ========== Date ranges command ==========
    ranges_parser = subparsers.add_parser(
        'date-ranges',
        help='Print partition boundaries around a date'
    )
    ranges_parser.add_argument('--period', choices=PERIODS, required=True, help='Partition period')
    ranges_parser.add_argument(
        '--past',
        type=non_negative_int,
        default=0,
        help='Periods before the reference date (default: 0)'
    )
    ranges_parser.add_argument(
        '--future',
        type=non_negative_int,
        default=0,
        help='Periods after the reference date (default: 0)'
    )
    ranges_parser.add_argument('--today', help='Reference date as YYYY-MM-DD (default: today, UTC)')

    return parser
