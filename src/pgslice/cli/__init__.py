"""
Command-line interface for pgslice.

Available commands:
- fill: Copy rows into the destination table in batches
- synchronize: Make the intermediate table match its source
- date-ranges: Print partition boundaries
"""

import sys

import psycopg2

from utils.db_pool import ConnectionPoolError
from utils.logging import configure_from_env
from utils.tracing import initialize_tracing, shutdown_tracing

from ..errors import PgsliceError
from .commands import cmd_date_ranges, cmd_fill, cmd_synchronize
from .parser import create_parser

COMMANDS = {
    'fill': cmd_fill,
    'synchronize': cmd_synchronize,
    'date-ranges': cmd_date_ranges,
}


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the pgslice CLI"""
    parser = create_parser()
    args = parser.parse_args(argv)

    command = COMMANDS.get(args.command)
    if command is None:
        parser.print_help()
        sys.exit(1)

    configure_from_env(args.log_level)
    initialize_tracing()

    try:
        command(args)
    except (PgsliceError, ConnectionPoolError, psycopg2.Error, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        sys.exit(130)
    finally:
        shutdown_tracing()


__all__ = [
    'main',
    'create_parser',
    'cmd_fill',
    'cmd_synchronize',
    'cmd_date_ranges',
]


if __name__ == '__main__':
    main()
