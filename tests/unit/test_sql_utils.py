"""
Unit tests for SQL building helpers.
"""

from datetime import UTC, date, datetime, timedelta, timezone
from uuid import UUID

import pytest
from psycopg2 import sql
from psycopg2.extras import Json

from helpers import render_sql
from pgslice.sql_utils import column_list, format_date_for_sql, validate_identifier, value_to_sql


class TestIdentifiers:

    @pytest.mark.parametrize("name", ["posts", "_posts", "Posts2", "a$b"])
    def test_valid(self, name):
        assert validate_identifier(name) == name

    @pytest.mark.parametrize("name", ["", "1posts", "posts;drop", 'po"sts', "pöst", "a b"])
    def test_invalid(self, name):
        with pytest.raises(ValueError, match="Invalid identifier"):
            validate_identifier(name)

    def test_column_list(self):
        assert render_sql(column_list(["id", "title"])) == '"id", "title"'


class TestFormatDateForSql:

    def test_date_cast(self):
        assert format_date_for_sql(datetime(2026, 1, 1, tzinfo=UTC), "date") == "2026-01-01"

    def test_timestamptz_cast(self):
        value = datetime(2026, 1, 1, tzinfo=UTC)
        assert format_date_for_sql(value, "timestamptz") == "2026-01-01 00:00:00 UTC"

    def test_converts_to_utc(self):
        value = datetime(2026, 1, 1, 1, 0, tzinfo=timezone(timedelta(hours=2)))
        assert format_date_for_sql(value, "date") == "2025-12-31"

    def test_plain_date(self):
        assert format_date_for_sql(date(2026, 2, 3), "date") == "2026-02-03"


class TestValueToSql:

    def test_null(self):
        assert render_sql(value_to_sql(None, "text")) == "NULL"

    def test_timestamp_passes_datetime_through(self):
        value = datetime(2026, 1, 1, tzinfo=UTC)
        literal = value_to_sql(value, "timestamp with time zone")

        assert isinstance(literal, sql.Literal)
        assert literal.wrapped is value

    def test_timestamp_from_text(self):
        rendered = render_sql(value_to_sql("infinity", "timestamp without time zone"))
        assert rendered == "'infinity'::timestamp"

    def test_large_integer_in_timestamp_free_column_is_untouched(self):
        """A bigint that looks like epoch milliseconds stays a number."""
        literal = value_to_sql(1_700_000_000_000, "bigint")
        assert literal.wrapped == 1_700_000_000_000

    def test_date(self):
        value = date(2026, 1, 1)
        assert value_to_sql(value, "date").wrapped is value
        assert render_sql(value_to_sql("2026-01-01", "date")) == "'2026-01-01'::date"

    def test_uuid(self):
        value = UUID("12345678-1234-5678-1234-567812345678")
        rendered = render_sql(value_to_sql(value, "uuid"))
        assert rendered == "'12345678-1234-5678-1234-567812345678'::uuid"

    def test_bytea(self):
        literal = value_to_sql(memoryview(b"\x00\xff"), "bytea")
        assert bytes(literal.wrapped.adapted) == b"\x00\xff"

    @pytest.mark.parametrize("data_type", ["json", "jsonb"])
    def test_json(self, data_type):
        composed = value_to_sql({"a": [1, 2]}, data_type)

        assert render_sql(composed).endswith(f"::{data_type}")
        literal = composed.seq[0]
        assert isinstance(literal.wrapped, Json)
        assert literal.wrapped.adapted == {"a": [1, 2]}

    def test_other_types_pass_through(self):
        assert value_to_sql("hello", "text").wrapped == "hello"
        assert value_to_sql(True, "boolean").wrapped is True
