# Shared pytest fixtures: temp local store and an in-memory Supabase client
from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest

from core.enums import OwnerKind
from core.models import Owner
from storage.identity import IdentityResolver
from storage.local import LocalBackend, LocalStore
from storage.remote import SupabaseRowStore
from storage.sync import DataSync


class FakeQuery:
    """Chainable stand-in for the supabase-py query builder"""

    def __init__(self, client: "FakeSupabase", table: str):
        self.client = client
        self.table = table
        self.action = "select"
        self.payload: Any = None
        self.filters: List[tuple] = []
        self.ordering: Optional[tuple] = None
        self.row_limit: Optional[int] = None

    def select(self, columns: str = "*"):
        self.action = "select"
        return self

    def insert(self, rows):
        self.action = "insert"
        self.payload = rows if isinstance(rows, list) else [rows]
        return self

    def update(self, changes: Dict[str, Any]):
        self.action = "update"
        self.payload = changes
        return self

    def delete(self):
        self.action = "delete"
        return self

    def eq(self, column: str, value: Any):
        self.filters.append((column, value))
        return self

    def order(self, column: str, desc: bool = False):
        self.ordering = (column, desc)
        return self

    def limit(self, count: int):
        self.row_limit = count
        return self

    def _matches(self, row: Dict[str, Any]) -> bool:
        return all(row.get(column) == value for column, value in self.filters)

    def execute(self):
        if self.table in self.client.failing_tables:
            raise RuntimeError(f"{self.table} unavailable")
        rows = self.client.tables.setdefault(self.table, [])
        self.client.calls.append((self.table, self.action))

        if self.action == "insert":
            rows.extend(dict(row) for row in self.payload)
            return SimpleNamespace(data=[dict(row) for row in self.payload], error=None)

        if self.action == "delete":
            removed = [row for row in rows if self._matches(row)]
            self.client.tables[self.table] = [row for row in rows if not self._matches(row)]
            return SimpleNamespace(data=removed, error=None)

        if self.action == "update":
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(self.payload)
                    updated.append(dict(row))
            return SimpleNamespace(data=updated, error=None)

        selected = [dict(row) for row in rows if self._matches(row)]
        if self.ordering:
            column, desc = self.ordering
            selected.sort(key=lambda row: row.get(column) or 0, reverse=desc)
        if self.row_limit is not None:
            selected = selected[: self.row_limit]
        return SimpleNamespace(data=selected, error=None)


class FakeAuth:
    def __init__(self, users: Dict[str, Dict[str, str]]):
        self.users = users

    def get_user(self, token: str):
        user = self.users.get(token)
        if user is None:
            raise ValueError("invalid JWT")
        return SimpleNamespace(user=SimpleNamespace(**user))


class FakeSupabase:
    """Minimal in-memory Supabase client"""

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.calls: List[tuple] = []
        self.failing_tables: set = set()
        self.auth = FakeAuth({"valid-token": {"id": "user-1", "email": "ana@example.com"}})

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)


@pytest.fixture()
def local_store(tmp_path: Path) -> LocalStore:
    return LocalStore(tmp_path / "local_store.json")


@pytest.fixture()
def local_backend(local_store: LocalStore) -> LocalBackend:
    return LocalBackend(local_store)


@pytest.fixture()
def fake_supabase() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture()
def remote_backend(fake_supabase: FakeSupabase) -> SupabaseRowStore:
    return SupabaseRowStore(fake_supabase)


@pytest.fixture()
def guest() -> Owner:
    return Owner(key="guest_1700000000000_abcdefghi", kind=OwnerKind.GUEST)


@pytest.fixture()
def user() -> Owner:
    return Owner(key="user-1", kind=OwnerKind.AUTHENTICATED, email="ana@example.com")


@pytest.fixture()
def make_sync(local_store: LocalStore, local_backend: LocalBackend, fake_supabase: FakeSupabase):
    def _make(with_remote: bool = True, cookies: Optional[Dict[str, str]] = None) -> DataSync:
        resolver = IdentityResolver(local_store, auth_client=fake_supabase, cookies=cookies)
        remote = SupabaseRowStore(fake_supabase) if with_remote else None
        return DataSync(resolver, local_backend, remote)

    return _make
