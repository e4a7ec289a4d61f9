"""
Fixtures for tests against a real PostgreSQL server.

Connection settings come from POSTGRES_HOST, POSTGRES_PORT, POSTGRES_DB,
POSTGRES_USER and POSTGRES_PASSWORD. Tests are skipped when the server
cannot be reached. Each test works in a throwaway schema.
"""

import os
import uuid
from collections.abc import Iterator
from urllib.parse import quote

import psycopg2
import pytest

from pgslice import Pgslice


def database_url() -> str:
    user = quote(os.getenv("POSTGRES_USER", "postgres"))
    password = quote(os.getenv("POSTGRES_PASSWORD", "postgres"))
    host = os.getenv("POSTGRES_HOST", "localhost")
    port = os.getenv("POSTGRES_PORT", "5432")
    database = os.getenv("POSTGRES_DB", "postgres")
    return f"postgresql://{user}:{password}@{host}:{port}/{database}"


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


@pytest.fixture(scope="session")
def admin_connection() -> Iterator[psycopg2.extensions.connection]:
    try:
        conn = psycopg2.connect(database_url(), connect_timeout=3)
    except psycopg2.OperationalError as e:
        pytest.skip(f"PostgreSQL not available: {e}")
    conn.autocommit = True
    yield conn
    conn.close()


@pytest.fixture
def schema(admin_connection) -> Iterator[str]:
    name = f"pgslice_test_{uuid.uuid4().hex[:8]}"
    with admin_connection.cursor() as cursor:
        cursor.execute(f'CREATE SCHEMA "{name}"')
    yield name
    with admin_connection.cursor() as cursor:
        cursor.execute(f'DROP SCHEMA "{name}" CASCADE')


@pytest.fixture
def db(admin_connection, schema):
    """Cursor with search_path set to the test schema."""
    with admin_connection.cursor() as cursor:
        cursor.execute(f'SET search_path TO "{schema}"')
        yield cursor
        cursor.execute("SET search_path TO DEFAULT")


@pytest.fixture
def url(schema) -> str:
    return f"{database_url()}?schema={schema}"


@pytest.fixture
def pgslice(url) -> Iterator[Pgslice]:
    with Pgslice.connect(url) as instance:
        yield instance
