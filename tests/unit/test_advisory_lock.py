"""
Unit tests for advisory locks.
"""

from unittest.mock import MagicMock

import pytest

from pgslice.advisory_lock import advisory_lock, lock_key
from pgslice.errors import AdvisoryLockError
from pgslice.table import Table

TABLE = Table("public", "posts")


def mock_connection(*results):
    connection = MagicMock()
    cursor = connection.cursor.return_value.__enter__.return_value
    cursor.fetchone.side_effect = list(results)
    connection.cursor.return_value.__exit__.return_value = False
    return connection, cursor


class TestAdvisoryLock:

    def test_lock_key_hashes_table_and_operation(self):
        _, cursor = mock_connection((1234,))

        assert lock_key(cursor, TABLE, "fill") == 1234
        cursor.execute.assert_called_once_with(
            "SELECT hashtext(%s)::bigint", ("public.posts:fill",)
        )

    def test_acquire_and_release(self):
        connection, cursor = mock_connection((1234,), (True,), (True,))

        with advisory_lock(connection, TABLE, "fill") as key:
            assert key == 1234
            queries = [c.args[0] for c in cursor.execute.call_args_list]
            assert "pg_try_advisory_lock" in queries[-1]

        assert cursor.execute.call_args.args == ("SELECT pg_advisory_unlock(%s)", (1234,))

    def test_released_when_block_raises(self):
        connection, cursor = mock_connection((1234,), (True,), (True,))

        with pytest.raises(RuntimeError):
            with advisory_lock(connection, TABLE, "synchronize"):
                raise RuntimeError("batch failed")

        assert "pg_advisory_unlock" in cursor.execute.call_args.args[0]

    def test_held_elsewhere(self):
        connection, cursor = mock_connection((1234,), (False,))

        with pytest.raises(AdvisoryLockError, match='"fill" on table "public.posts"'):
            with advisory_lock(connection, TABLE, "fill"):
                pytest.fail("lock should not be acquired")

        assert all("unlock" not in c.args[0] for c in cursor.execute.call_args_list)
