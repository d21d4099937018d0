"""Store collaborator used by the sync layer.

The sync layer only relies on the ``DataSource`` protocol: ordered full
fetches, payload-free change subscriptions and plain row writes. The
SQLAlchemy implementation below plays the hosted store for a single
process and publishes a change notification after every committed write.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Any, Callable, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database import SessionLocal, session_scope
from models import Category, Expense, Income

logger = logging.getLogger(__name__)

Row = dict[str, Any]
ChangeCallback = Callable[[], None]
Unsubscribe = Callable[[], None]


class DataSourceError(RuntimeError):
    """Fetch, subscribe or write failure reported by the store."""

    def __init__(self, message: str, *, table: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.table = table


class DataSource(Protocol):
    async def fetch_all(
        self, table: str, *, order_by: str, ascending: bool = True
    ) -> list[Row]: ...

    async def subscribe(self, table: str, callback: ChangeCallback) -> Unsubscribe: ...

    async def insert(self, table: str, row: Row) -> Row: ...

    async def update(self, table: str, row_id: str, values: Row) -> Optional[Row]: ...

    async def delete(self, table: str, row_id: str) -> bool: ...


class ChangeHub:
    def __init__(self) -> None:
        self._subscribers: dict[str, list[ChangeCallback]] = defaultdict(list)

    def subscribe(self, table: str, callback: ChangeCallback) -> Unsubscribe:
        self._subscribers[table].append(callback)

        def unsubscribe() -> None:
            try:
                self._subscribers[table].remove(callback)
            except ValueError:
                pass

        return unsubscribe

    def subscriber_count(self, table: str) -> int:
        return len(self._subscribers.get(table, ()))

    def publish(self, table: str) -> None:
        for callback in list(self._subscribers.get(table, ())):
            try:
                callback()
            except Exception:
                logger.exception(f"change_callback_failed: table={table}")


TABLES = {
    "expenses": Expense,
    "incomes": Income,
    "categories": Category,
}

_PROTECTED_COLUMNS = {"user_id", "created_at", "updated_at"}


def get_current_user_id() -> int:
    return 1


def _to_row(obj) -> Row:
    return {column.key: getattr(obj, column.key) for column in obj.__table__.columns}


class SQLDataSource:
    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        user_id: Optional[int] = None,
    ) -> None:
        self.session_factory = session_factory
        self.user_id = user_id or get_current_user_id()
        self.hub = ChangeHub()

    def _model(self, table: str):
        model = TABLES.get(table)
        if model is None:
            raise DataSourceError(f"Unknown table: {table}", table=table)
        return model

    async def _run(self, table: str, action: str, fn, *args):
        try:
            return await asyncio.to_thread(fn, *args)
        except SQLAlchemyError as exc:
            logger.warning(f"datasource_error: table={table} action={action} error={exc}")
            raise DataSourceError(
                f"Failed to {action} {table}: {exc.__class__.__name__}", table=table
            ) from exc

    async def fetch_all(
        self, table: str, *, order_by: str, ascending: bool = True
    ) -> list[Row]:
        return await self._run(
            table, "fetch", self._fetch_all_sync, table, order_by, ascending
        )

    def _fetch_all_sync(self, table: str, order_by: str, ascending: bool) -> list[Row]:
        model = self._model(table)
        if order_by not in model.__table__.columns:
            raise DataSourceError(f"Unknown column: {table}.{order_by}", table=table)
        column = getattr(model, order_by)
        stmt = (
            select(model)
            .where(model.user_id == self.user_id)
            .order_by(
                column.asc() if ascending else column.desc(),
                model.created_at.asc() if ascending else model.created_at.desc(),
            )
        )
        with session_scope(self.session_factory) as session:
            return [_to_row(obj) for obj in session.scalars(stmt).all()]

    async def subscribe(self, table: str, callback: ChangeCallback) -> Unsubscribe:
        self._model(table)
        return self.hub.subscribe(table, callback)

    async def insert(self, table: str, row: Row) -> Row:
        created = await self._run(table, "insert", self._insert_sync, table, row)
        self.hub.publish(table)
        return created

    def _insert_sync(self, table: str, row: Row) -> Row:
        model = self._model(table)
        values = {k: v for k, v in row.items() if k not in _PROTECTED_COLUMNS}
        with session_scope(self.session_factory) as session:
            obj = model(user_id=self.user_id, **values)
            session.add(obj)
            session.flush()
            return _to_row(obj)

    async def update(self, table: str, row_id: str, values: Row) -> Optional[Row]:
        updated = await self._run(
            table, "update", self._update_sync, table, row_id, values
        )
        if updated is not None:
            self.hub.publish(table)
        return updated

    def _update_sync(self, table: str, row_id: str, values: Row) -> Optional[Row]:
        model = self._model(table)
        with session_scope(self.session_factory) as session:
            obj = session.get(model, row_id)
            if obj is None or obj.user_id != self.user_id:
                return None
            for key, value in values.items():
                if key in _PROTECTED_COLUMNS or key == "id":
                    continue
                setattr(obj, key, value)
            session.flush()
            return _to_row(obj)

    async def delete(self, table: str, row_id: str) -> bool:
        deleted = await self._run(table, "delete", self._delete_sync, table, row_id)
        if deleted:
            self.hub.publish(table)
        return deleted

    def _delete_sync(self, table: str, row_id: str) -> bool:
        model = self._model(table)
        with session_scope(self.session_factory) as session:
            obj = session.get(model, row_id)
            if obj is None or obj.user_id != self.user_id:
                return False
            session.delete(obj)
            return True
