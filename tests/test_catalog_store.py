import pytest

from repositories.catalog_store import CatalogStore


class FakeCursor:
    def __init__(self, fetchone_result=None, rowcount=0, error=None):
        self.fetchone_result = fetchone_result
        self.rowcount = rowcount
        self.error = error
        self.executed = []
        self.closed = False

    def execute(self, query, params=None):
        self.executed.append((query, params))
        if self.error is not None:
            raise self.error

    def fetchone(self):
        return self.fetchone_result

    def fetchall(self):
        return []

    def close(self):
        self.closed = True


class FakeConnection:
    def __init__(self, cursor):
        self._cursor = cursor
        self.autocommit = False

    def cursor(self, cursor_factory=None):  # noqa: ARG002 - matches psycopg2 signature
        return self._cursor


class FakePool:
    def __init__(self, conn):
        self.conn = conn
        self.borrowed = 0
        self.returned = 0

    def getconn(self):
        self.borrowed += 1
        return self.conn

    def putconn(self, conn):
        assert conn is self.conn
        self.returned += 1


def test_calls_borrow_autocommit_connection_and_return_it():
    cursor = FakeCursor(fetchone_result={"posted": 1705314600})
    pool = FakePool(FakeConnection(cursor))

    assert CatalogStore(pool).get_last_posted() == 1705314600
    assert pool.conn.autocommit is True
    assert (pool.borrowed, pool.returned) == (1, 1)


def test_connection_is_returned_when_the_statement_fails():
    pool = FakePool(FakeConnection(FakeCursor(error=RuntimeError("boom"))))

    with pytest.raises(RuntimeError):
        CatalogStore(pool).mark_removed(42)

    assert pool.returned == 1


def test_mark_replaced_group_is_a_single_group_scoped_statement():
    cursor = FakeCursor(rowcount=2)
    pool = FakePool(FakeConnection(cursor))

    changed = CatalogStore(pool).mark_replaced_group(100)

    assert changed == 2
    assert len(cursor.executed) == 1
    query, params = cursor.executed[0]
    assert "COALESCE(g.root_gid, g.gid) = %s" in query
    assert params == (100, 100)


def test_failed_group_mark_issues_no_partial_writes():
    cursor = FakeCursor(error=RuntimeError("deadlock detected"))
    pool = FakePool(FakeConnection(cursor))

    with pytest.raises(RuntimeError):
        CatalogStore(pool).mark_replaced_group(100)

    assert len(cursor.executed) == 1
    assert pool.returned == 1


def test_run_lock_holds_connection_until_released():
    cursor = FakeCursor(fetchone_result={"locked": True})
    pool = FakePool(FakeConnection(cursor))
    store = CatalogStore(pool)

    conn = store.try_acquire_run_lock(734001)

    assert conn is pool.conn
    assert pool.returned == 0
    assert "pg_try_advisory_lock" in cursor.executed[0][0]

    store.release_run_lock(conn, 734001)

    assert "pg_advisory_unlock" in cursor.executed[-1][0]
    assert pool.returned == 1


def test_run_lock_held_elsewhere_returns_none():
    pool = FakePool(FakeConnection(FakeCursor(fetchone_result={"locked": False})))

    assert CatalogStore(pool).try_acquire_run_lock(734001) is None
    assert pool.returned == 1


def test_release_failure_is_logged_and_connection_returned(caplog):
    pool = FakePool(FakeConnection(FakeCursor(error=RuntimeError("gone"))))

    CatalogStore(pool).release_run_lock(pool.conn, 734001)

    assert pool.returned == 1
    assert "Failed to release run lock" in caplog.text
