"""
Tests for schema setup and expired-account cleanup, against a stub connection.
"""

from datetime import datetime, timezone

import pytest
from palate import database


class StubCursor:
    def __init__(self, conn):
        self.conn = conn
        self.rowcount = 3

    def execute(self, sql, params=None):
        self.conn.executed.append((" ".join(sql.split()), params))

    def fetchone(self):
        return (4,)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class StubConnection:
    def __init__(self):
        self.executed = []
        self.committed = False
        self.rolled_back = False

    def cursor(self):
        return StubCursor(self)

    def commit(self):
        self.committed = True

    def rollback(self):
        self.rolled_back = True


@pytest.fixture
def conn(monkeypatch):
    stub = StubConnection()
    returned = []
    monkeypatch.setattr(database, "get_connection", lambda: stub)
    monkeypatch.setattr(database, "return_connection", returned.append)
    stub.returned = returned
    return stub


class TestSchema:
    """Test the DDL statements."""

    def test_constraints_present(self):
        ddl = "\n".join(database.SCHEMA_STATEMENTS)
        for constraint in ("unique_event_code", "unique_user_event_wine", "unique_buddy_pair", "unique_org_member"):
            assert constraint in ddl

    def test_init_runs_every_statement(self, conn):
        count = database.init_database()
        assert count == len(database.SCHEMA_STATEMENTS) + len(database.INDEX_STATEMENTS)
        assert conn.committed is True
        assert conn.returned == [conn]


class TestPurge:
    """Test expired temporary account cleanup."""

    now = datetime(2025, 6, 20, tzinfo=timezone.utc)

    def test_count(self, conn):
        assert database.count_expired_accounts(self.now) == 4
        sql, params = conn.executed[0]
        assert sql.startswith("SELECT COUNT(*) FROM profiles")
        assert params == (self.now,)

    def test_purge(self, conn):
        assert database.purge_expired_accounts(self.now) == 3
        sql, _ = conn.executed[0]
        assert sql.startswith("DELETE FROM profiles WHERE is_temp_account")
        assert conn.committed is True
        assert conn.returned == [conn]
