"""
Shared fixtures.

FakeSupabase is an in-memory stand-in for the Supabase client that supports
the query-builder calls the repositories make. Joined columns are not
resolved: rows stored with nested dicts are returned as stored.
"""

import itertools
from types import SimpleNamespace

import pytest
from postgrest.exceptions import APIError

from palate.constants import Tables

UNIQUE_KEYS = {
    Tables.EVENTS: [("event_code",)],
    Tables.RATINGS: [("user_id", "event_wine_id")],
    Tables.BUDDY_CODES: [("user_id", "event_id")],
    Tables.BUDDIES: [("user_a_id", "user_b_id")],
    Tables.BUDDY_SESSIONS: [("event_id", "user_id", "buddy_id")],
    Tables.ORG_MEMBERS: [("organization_id", "profile_id")],
}


class FakeQuery:
    """One chained query against a FakeSupabase table."""

    def __init__(self, db, table):
        self.db = db
        self.table_name = table
        self.action = "select"
        self.payload = None
        self.filters = []
        self.order_by = []
        self.row_limit = None
        self.count_mode = None

    # --- actions ---

    def select(self, columns="*", count=None):
        self.count_mode = count
        return self

    def insert(self, rows):
        self.action, self.payload = "insert", rows
        return self

    def update(self, changes):
        self.action, self.payload = "update", changes
        return self

    def upsert(self, rows):
        self.action, self.payload = "upsert", rows
        return self

    def delete(self):
        self.action = "delete"
        return self

    # --- filters ---

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def gt(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and str(row.get(column)) > str(value))
        return self

    def or_(self, expression):
        clauses = []
        for clause in expression.split(","):
            column, operator, pattern = clause.split(".", 2)
            assert operator == "ilike"
            clauses.append((column, pattern.strip("%").lower()))
        self.filters.append(
            lambda row: any(term in str(row.get(column) or "").lower() for column, term in clauses)
        )
        return self

    def order(self, column, desc=False):
        self.order_by.append((column, desc))
        return self

    def limit(self, count):
        self.row_limit = count
        return self

    # --- execution ---

    def _matches(self, row):
        return all(check(row) for check in self.filters)

    def execute(self):
        if self.table_name in self.db.failing_tables:
            raise RuntimeError(f"connection lost while querying {self.table_name}")

        self.db.calls.append((self.table_name, self.action, self.payload))
        rows = self.db.tables.setdefault(self.table_name, [])

        if self.action == "select":
            matched = [dict(row) for row in rows if self._matches(row)]
            for column, desc in reversed(self.order_by):
                matched.sort(key=lambda row: (row.get(column) is None, row.get(column)), reverse=desc)
            total = len(matched)
            if self.row_limit is not None:
                matched = matched[:self.row_limit]
            return SimpleNamespace(data=matched, count=total if self.count_mode else None)

        if self.action == "insert":
            inserted = [self.db.insert_row(self.table_name, row) for row in _as_list(self.payload)]
            return SimpleNamespace(data=inserted, count=None)

        if self.action == "upsert":
            stored = [self.db.upsert_row(self.table_name, row) for row in _as_list(self.payload)]
            return SimpleNamespace(data=stored, count=None)

        if self.action == "update":
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(self.payload)
                    updated.append(dict(row))
            return SimpleNamespace(data=updated, count=None)

        kept = [row for row in rows if not self._matches(row)]
        deleted = [dict(row) for row in rows if self._matches(row)]
        self.db.tables[self.table_name] = kept
        return SimpleNamespace(data=deleted, count=None)


def _as_list(payload):
    return payload if isinstance(payload, list) else [payload]


class FakeAuth:
    def __init__(self, accounts):
        self.accounts = accounts
        self.signed_out = False

    def sign_in_with_password(self, credentials):
        user_id = self.accounts.get((credentials["email"], credentials["password"]))
        if user_id is None:
            raise RuntimeError("Invalid login credentials")
        return SimpleNamespace(
            session=SimpleNamespace(access_token="token"),
            user=SimpleNamespace(id=user_id),
        )

    def sign_up(self, credentials):
        email = credentials["email"]
        if any(known == email for known, _ in self.accounts):
            raise RuntimeError("User already registered")
        user_id = f"auth-{len(self.accounts) + 1}"
        self.accounts[(email, credentials["password"])] = user_id
        self.sign_up_options = credentials.get("options")
        return SimpleNamespace(user=SimpleNamespace(id=user_id), session=None)

    def sign_out(self):
        self.signed_out = True


class FakeSupabase:
    """In-memory Supabase client."""

    def __init__(self, tables=None, accounts=None):
        self.tables = {name: [dict(row) for row in rows] for name, rows in (tables or {}).items()}
        self.auth = FakeAuth(accounts or {})
        self.calls = []
        self.failing_tables = set()
        self._ids = itertools.count(1)

    def table(self, name):
        return FakeQuery(self, name)

    def rows(self, name):
        return self.tables.get(name, [])

    def _conflict(self, table, row):
        for key in UNIQUE_KEYS.get(table, []):
            if any(row.get(column) is None for column in key):
                continue
            for existing in self.tables.setdefault(table, []):
                if all(existing.get(column) == row.get(column) for column in key):
                    return existing
        return None

    def insert_row(self, table, row):
        if self._conflict(table, row) is not None:
            raise APIError({
                "code": "23505",
                "message": f"duplicate key value violates unique constraint on {table}",
                "details": None,
                "hint": None,
            })
        stored = dict(row)
        stored.setdefault("id", f"{table}-{next(self._ids)}")
        self.tables[table].append(stored)
        return dict(stored)

    def upsert_row(self, table, row):
        existing = self._conflict(table, row)
        if existing is None:
            return self.insert_row(table, row)
        existing.update(row)
        return dict(existing)


@pytest.fixture
def fake_sb():
    """Empty in-memory backend."""
    return FakeSupabase()


@pytest.fixture
def event_wines():
    """Three wines poured at one event."""
    return [
        {"id": "w1", "event_id": "e1", "wine_name": "Sancerre", "producer": "Domaine Vacheron",
         "wine_type": "white", "region": "Loire", "country": "France", "tasting_order": 1,
         "wine_master_id": "m1"},
        {"id": "w2", "event_id": "e1", "wine_name": "Barolo", "producer": "Vietti",
         "wine_type": "red", "region": "Piedmont", "country": "Italy", "tasting_order": 2,
         "wine_master_id": None},
        {"id": "w3", "event_id": "e1", "wine_name": "Cava Brut", "producer": "Raventós",
         "wine_type": "sparkling", "region": "Penedès", "country": "Spain", "tasting_order": 3,
         "wine_master_id": ""},
    ]


@pytest.fixture
def event_ratings():
    """Ratings of the event wines by three tasters."""
    return [
        {"id": "r1", "event_wine_id": "w1", "user_id": "u1", "rating": 5, "would_buy": True,
         "created_at": "2025-06-14T18:00:00+00:00"},
        {"id": "r2", "event_wine_id": "w1", "user_id": "u2", "rating": 4, "would_buy": True,
         "created_at": "2025-06-14T18:05:00+00:00"},
        {"id": "r3", "event_wine_id": "w2", "user_id": "u1", "rating": 1, "would_buy": False,
         "created_at": "2025-06-14T18:10:00+00:00"},
        {"id": "r4", "event_wine_id": "w2", "user_id": "u3", "rating": 5, "would_buy": False,
         "created_at": "2025-06-14T18:15:00+00:00"},
        {"id": "r5", "event_wine_id": "w3", "user_id": "u2", "rating": 3, "would_buy": False,
         "created_at": "2025-06-14T18:20:00+00:00"},
    ]


@pytest.fixture
def make_sb():
    """Factory for a backend seeded with table rows: make_sb({table: rows}, accounts)."""
    return FakeSupabase
