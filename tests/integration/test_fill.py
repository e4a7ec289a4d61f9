"""
Fill against a real PostgreSQL server.
"""

import pytest

from pgslice import FillOptions, Pgslice
from pgslice.errors import AdvisoryLockError, TableNotFoundError


def create_posts(db, key_type="bigint", rows=0):
    db.execute(f"CREATE TABLE posts (id {key_type} PRIMARY KEY, title text, created_at timestamptz)")
    db.execute(f"CREATE TABLE posts_intermediate (id {key_type} PRIMARY KEY, title text, created_at timestamptz)")
    if rows:
        db.execute(
            "INSERT INTO posts SELECT n, 'post ' || n, now() FROM generate_series(1, %s) AS n",
            (rows,),
        )


def copied_ids(db, table="posts_intermediate"):
    db.execute(f"SELECT id FROM {table} ORDER BY id")
    return [row[0] for row in db.fetchall()]


class TestNumericFill:

    def test_copies_all_rows_in_batches(self, db, pgslice):
        create_posts(db, rows=25)

        batches = list(pgslice.fill(FillOptions(table="posts", batch_size=10)))

        assert [b.batch_number for b in batches] == [1, 2, 3]
        assert {b.total_batches for b in batches} == {3}
        assert sum(b.rows_inserted for b in batches) == 25
        assert copied_ids(db) == list(range(1, 26))

    def test_second_fill_is_a_no_op(self, db, pgslice):
        create_posts(db, rows=25)
        list(pgslice.fill(FillOptions(table="posts", batch_size=10)))

        batches = list(pgslice.fill(FillOptions(table="posts", batch_size=10)))

        assert batches == []
        assert len(copied_ids(db)) == 25

    def test_resumes_after_partial_copy(self, db, pgslice):
        create_posts(db, rows=25)
        db.execute("INSERT INTO posts_intermediate SELECT * FROM posts WHERE id <= 12")

        batches = list(pgslice.fill(FillOptions(table="posts", batch_size=10)))

        assert batches[0].start_id == 12
        assert copied_ids(db) == list(range(1, 26))

    def test_explicit_start_is_inclusive(self, db, pgslice):
        create_posts(db, rows=25)

        list(pgslice.fill(FillOptions(table="posts", batch_size=10, start="20")))

        assert copied_ids(db) == list(range(20, 26))

    def test_gaps_in_keys_are_skipped(self, db, pgslice):
        create_posts(db)
        db.execute("INSERT INTO posts (id, title) VALUES (1, 'a'), (2, 'b'), (500, 'c')")

        batches = list(pgslice.fill(FillOptions(table="posts", batch_size=10)))

        assert copied_ids(db) == [1, 2, 500]
        assert sum(b.rows_inserted for b in batches) == 3

    def test_swapped_copies_rows_written_after_swap(self, db, pgslice):
        db.execute("CREATE TABLE posts (id bigint PRIMARY KEY, title text, created_at timestamptz)")
        db.execute("CREATE TABLE posts_retired (id bigint PRIMARY KEY, title text, created_at timestamptz)")
        db.execute("INSERT INTO posts_retired SELECT n, 'old', now() FROM generate_series(1, 30) AS n")
        db.execute("INSERT INTO posts SELECT n, 'old', now() FROM generate_series(1, 20) AS n")
        db.execute("INSERT INTO posts VALUES (1000, 'new since swap', now())")

        list(pgslice.fill(FillOptions(table="posts", swapped=True, batch_size=10)))

        assert copied_ids(db, "posts") == list(range(1, 31)) + [1000]

    def test_empty_source(self, db, pgslice):
        create_posts(db)

        assert list(pgslice.fill(FillOptions(table="posts"))) == []

    def test_missing_destination(self, db, pgslice):
        db.execute("CREATE TABLE posts (id bigint PRIMARY KEY)")

        with pytest.raises(TableNotFoundError, match="posts_intermediate"):
            list(pgslice.fill(FillOptions(table="posts")))


class TestUlidFill:

    ULIDS = [
        "01ARZ3NDEKTSV4RRFFQ69G5FAV",
        "01BX5ZZKBKACTAV9WEVGEMMVRZ",
        "01BX5ZZKBKACTAV9WEVGEMMVS0",
        "01E0000000000000000000000A",
        "01HQ7ZQ8XJ3G9V1Y2M4N5P6R7S",
    ]

    def test_copies_in_key_order(self, db, pgslice):
        create_posts(db, key_type="text")
        for ulid in reversed(self.ULIDS):
            db.execute("INSERT INTO posts (id, title) VALUES (%s, 'p')", (ulid,))

        batches = list(pgslice.fill(FillOptions(table="posts", batch_size=2)))

        assert copied_ids(db) == sorted(self.ULIDS)
        assert all(b.total_batches is None for b in batches)
        assert sum(b.rows_inserted for b in batches) == len(self.ULIDS)

    def test_start_over_partly_copied_destination(self, db, pgslice):
        create_posts(db, key_type="text")
        for ulid in self.ULIDS:
            db.execute("INSERT INTO posts (id, title) VALUES (%s, 'p')", (ulid,))
        db.execute("INSERT INTO posts_intermediate SELECT * FROM posts WHERE id <= %s", (self.ULIDS[1],))

        batches = list(
            pgslice.fill(FillOptions(table="posts", batch_size=2, start=self.ULIDS[0]))
        )

        assert copied_ids(db) == self.ULIDS
        assert sum(b.rows_inserted for b in batches) == 3


class TestAdvisoryLock:

    def test_concurrent_fill_is_rejected(self, db, pgslice, url):
        create_posts(db, rows=25)
        first = pgslice.fill(FillOptions(table="posts", batch_size=10))
        next(first)

        with Pgslice.connect(url) as other:
            with pytest.raises(AdvisoryLockError):
                list(other.fill(FillOptions(table="posts", batch_size=10)))

        list(first)
        assert len(copied_ids(db)) == 25

    def test_lock_released_after_fill(self, db, pgslice, url):
        create_posts(db, rows=5)
        list(pgslice.fill(FillOptions(table="posts")))

        with Pgslice.connect(url) as other:
            assert list(other.fill(FillOptions(table="posts"))) == []
