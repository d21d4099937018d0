import asyncio
import os
from collections import defaultdict
from typing import Optional
from uuid import uuid4

os.environ.setdefault("EXPENSES_DATABASE_URL", "sqlite://")
os.environ.setdefault("EXPENSES_RESYNC_MINUTES", "0")

import pytest  # noqa: E402

from datasource import DataSourceError  # noqa: E402


class FakeDataSource:
    """In-memory store with manual change notifications and fetch gates."""

    def __init__(self, tables: Optional[dict[str, list[dict]]] = None) -> None:
        self.tables: dict[str, list[dict]] = {
            "expenses": [],
            "incomes": [],
            "categories": [],
        }
        for name, rows in (tables or {}).items():
            self.tables[name] = [dict(r) for r in rows]
        self.subscribers: dict[str, list] = defaultdict(list)
        self.fetch_calls: dict[str, int] = defaultdict(int)
        self.gates: dict[str, asyncio.Event] = {}
        self.failures: dict[str, str] = {}
        self.subscribe_failures: dict[str, str] = {}

    def hold(self, table: str) -> asyncio.Event:
        gate = asyncio.Event()
        self.gates[table] = gate
        return gate

    async def fetch_all(self, table, *, order_by, ascending=True):
        self.fetch_calls[table] += 1
        rows = [dict(r) for r in self.tables[table]]
        gate = self.gates.get(table)
        if gate is not None:
            await gate.wait()
        if table in self.failures:
            raise DataSourceError(self.failures[table], table=table)
        rows.sort(key=lambda r: str(r[order_by]), reverse=not ascending)
        return rows

    async def subscribe(self, table, callback):
        if table in self.subscribe_failures:
            raise DataSourceError(self.subscribe_failures[table], table=table)
        self.subscribers[table].append(callback)

        def unsubscribe():
            if callback in self.subscribers[table]:
                self.subscribers[table].remove(callback)

        return unsubscribe

    def emit(self, table: str) -> None:
        for callback in list(self.subscribers[table]):
            callback()

    async def insert(self, table, row):
        row = dict(row)
        row.setdefault("id", uuid4().hex)
        self.tables[table].append(row)
        self.emit(table)
        return row

    async def update(self, table, row_id, values):
        for row in self.tables[table]:
            if row["id"] == row_id:
                row.update(values)
                self.emit(table)
                return dict(row)
        return None

    async def delete(self, table, row_id):
        before = len(self.tables[table])
        self.tables[table] = [r for r in self.tables[table] if r["id"] != row_id]
        if len(self.tables[table]) == before:
            return False
        self.emit(table)
        return True


@pytest.fixture
def fake_source() -> FakeDataSource:
    return FakeDataSource(
        {
            "categories": [
                {"id": "food", "name": "Food & Dining", "color": "#10b981"},
                {"id": "bills", "name": "Bills & Utilities", "color": "#3b82f6"},
                {"id": "other", "name": "Other", "color": "#6b7280"},
            ]
        }
    )


@pytest.fixture
def source_factory():
    return FakeDataSource
