"""
CLI command implementations.

Commands print progress to stdout; logging goes to stderr.
- fill: batch copy
- synchronize: windowed reconciliation
- date-ranges: partition boundaries (no database needed)
"""

import argparse
import logging
import time
from datetime import UTC, date, datetime
from importlib.metadata import PackageNotFoundError, version

from utils.metrics import ApplicationInfo, MetricsPublisher

from ..date_ranges import DateRanges
from ..pgslice import Pgslice
from ..types import FillOptions, SynchronizeBatchResult, SynchronizeOptions
from .config import resolve_url

logger = logging.getLogger(__name__)


def cmd_fill(args: argparse.Namespace) -> None:
    """
    Copy rows into the destination table

    Args:
        args: Parsed command-line arguments
    """
    options = FillOptions(
        table=args.table,
        swapped=args.swapped,
        source_table=args.source_table,
        dest_table=args.dest_table,
        batch_size=args.batch_size,
        start=args.start,
    )
    app_info = start_metrics(args)

    with Pgslice.connect(resolve_url(args), advisory_locks=args.advisory_locks) as pgslice:
        has_batches = False
        for batch in pgslice.fill(options):
            has_batches = True
            if batch.total_batches is not None:
                label = f"{batch.batch_number} of {batch.total_batches}"
            else:
                label = f"batch {batch.batch_number}"
            print(f"/* {label} */", flush=True)

            if app_info is not None:
                app_info.update_uptime()
            if args.sleep:
                time.sleep(args.sleep)

        if not has_batches:
            print("/* nothing to fill */")


def cmd_synchronize(args: argparse.Namespace) -> None:
    """
    Reconcile the intermediate table with its source

    Args:
        args: Parsed command-line arguments
    """
    options = SynchronizeOptions(
        table=args.table,
        primary_key=args.primary_key,
        window_size=args.window_size,
        start=args.start,
        dry_run=args.dry_run,
    )
    app_info = start_metrics(args)

    stats = {
        "total_batches": 0,
        "rows_compared": 0,
        "matching_rows": 0,
        "rows_with_differences": 0,
        "missing_rows": 0,
        "extra_rows": 0,
    }

    with Pgslice.connect(resolve_url(args), advisory_locks=args.advisory_locks) as pgslice:
        header_printed = False
        for batch in pgslice.synchronize(options):
            if not header_printed:
                print_sync_header(args.table, args.dry_run)
                header_printed = True

            stats["total_batches"] += 1
            stats["rows_compared"] += batch.rows_compared
            stats["matching_rows"] += batch.matching_rows
            stats["rows_with_differences"] += batch.rows_updated
            stats["missing_rows"] += batch.rows_inserted
            stats["extra_rows"] += batch.rows_deleted

            print_sync_batch(batch)

            if app_info is not None:
                app_info.update_uptime()

            sleep_time = args.delay + (batch.batch_duration_ms / 1000) * args.delay_multiplier
            if sleep_time > 0:
                time.sleep(sleep_time)

    print_sync_summary(stats)


def cmd_date_ranges(args: argparse.Namespace) -> None:
    """
    Print one ``suffix start end`` line per partition

    Args:
        args: Parsed command-line arguments
    """
    today = date.fromisoformat(args.today) if args.today else datetime.now(UTC)
    for date_range in DateRanges(args.period, past=args.past, future=args.future, today=today):
        print(
            f"{date_range.suffix} {date_range.start.date().isoformat()} "
            f"{date_range.end.date().isoformat()}"
        )


def print_sync_header(table: str, dry_run: bool) -> None:
    mode = "DRY RUN (logging only)" if dry_run else "WRITE (executing changes)"
    print(f"Synchronizing {table} to {table}_intermediate")
    print(f"Mode: {mode}")
    print()


def print_sync_batch(batch: SynchronizeBatchResult) -> None:
    timestamp = datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S")
    start, end = batch.primary_key_range.start, batch.primary_key_range.end
    key_range = str(start) if start == end else f"{start}...{end}"

    if batch.differences > 0:
        print(
            f"[{timestamp}] Batch {batch.batch_number}: Found {batch.differences} differences "
            f"(keys in range {key_range})",
            flush=True,
        )
    else:
        print(
            f"[{timestamp}] Batch {batch.batch_number}: All {batch.rows_compared} rows match "
            f"(keys in range {key_range})",
            flush=True,
        )


def print_sync_summary(stats: dict[str, int]) -> None:
    print()
    print("Synchronization complete")
    print("=" * 50)
    print(f"Total batches: {stats['total_batches']}")
    print(f"Total rows compared: {stats['rows_compared']}")
    print(f"Matching rows: {stats['matching_rows']}")
    print(f"Rows with differences: {stats['rows_with_differences']}")
    print(f"Missing rows: {stats['missing_rows']}")
    print(f"Extra rows: {stats['extra_rows']}")


def start_metrics(args: argparse.Namespace) -> ApplicationInfo | None:
    """Expose metrics over HTTP when --metrics-port is given."""
    port = getattr(args, "metrics_port", None)
    if not port:
        return None

    MetricsPublisher(port=port).start()
    app_info = ApplicationInfo(version=package_version())
    app_info.update_uptime()
    return app_info


def package_version() -> str:
    try:
        return version("pgslice")
    except PackageNotFoundError:
        return "unknown"
