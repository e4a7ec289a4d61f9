"""
Connection settings for the CLI.

The database URL comes from ``--url`` or the ``PGSLICE_URL`` environment
variable.
"""

import argparse
import os

from ..errors import ConfigurationError

URL_ENV_VAR = "PGSLICE_URL"


def resolve_url(args: argparse.Namespace) -> str:
    """
    Get the database URL from args or environment

    Raises:
        ConfigurationError: If neither is set
    """
    url = getattr(args, "url", None) or os.getenv(URL_ENV_VAR)
    if not url:
        raise ConfigurationError(f"Set a database URL with --url or {URL_ENV_VAR}")
    return url
