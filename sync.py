"""Keeps in-memory collections in step with the store.

Each watched table gets a ``CollectionSync``. Every change notification is
treated as "refetch everything"; the fetched set replaces the previous one
wholesale. At most one fetch per collection is in flight, and notifications
that arrive during a fetch collapse into a single follow-up fetch.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from datasource import DataSource, DataSourceError, Unsubscribe
from domain import Category, Transaction
from transforms import categories_from_rows, expenses_from_rows, incomes_from_rows

logger = logging.getLogger(__name__)

T = TypeVar("T")
Listener = Callable[["CollectionSync"], None]


class SyncState(str, Enum):
    idle = "idle"
    fetching = "fetching"
    error = "error"


class CollectionSync(Generic[T]):
    def __init__(
        self,
        name: str,
        loader: Callable[[], Awaitable[list[T]]],
        *,
        on_change: Optional[Listener] = None,
    ) -> None:
        self.name = name
        self._loader = loader
        self._on_change = on_change
        self.state = SyncState.idle
        self.items: tuple[T, ...] = ()
        self.last_error: Optional[str] = None
        self.subscription_error: Optional[str] = None
        self.version = 0
        self.fetch_count = 0
        self._task: Optional[asyncio.Task] = None
        self._pending = False
        self._closed = False
        self._unsubscribe: Optional[Unsubscribe] = None

    @property
    def is_loading(self) -> bool:
        return self.state == SyncState.fetching

    @property
    def has_error(self) -> bool:
        return self.last_error is not None or self.subscription_error is not None

    @property
    def subscribed(self) -> bool:
        return self._unsubscribe is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def request_refresh(self) -> Optional[asyncio.Task]:
        """Start a fetch, or mark one follow-up if a fetch is already running."""
        if self._closed:
            return None
        if self._task is not None and not self._task.done():
            if not self._pending:
                logger.debug(f"sync_coalesced: collection={self.name}")
            self._pending = True
            return self._task
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"sync-{self.name}"
        )
        return self._task

    async def refresh(self) -> None:
        task = self.request_refresh()
        if task is not None:
            await asyncio.shield(task)

    async def _run(self) -> None:
        try:
            while True:
                self._pending = False
                await self._fetch_once()
                if self._closed or not self._pending:
                    return
        finally:
            if self.state == SyncState.fetching:
                self._set_state(SyncState.idle)

    async def _fetch_once(self) -> None:
        self._set_state(SyncState.fetching)
        self.fetch_count += 1
        try:
            items = await self._loader()
        except DataSourceError as exc:
            if self._closed:
                return
            self.last_error = exc.message
            logger.warning(
                f"sync_failed: collection={self.name} error={exc.message} "
                f"kept={len(self.items)}"
            )
            self._set_state(SyncState.error)
            self._set_state(SyncState.idle)
            return
        except Exception as exc:
            if self._closed:
                return
            self.last_error = str(exc) or exc.__class__.__name__
            logger.exception(f"sync_crashed: collection={self.name}")
            self._set_state(SyncState.error)
            self._set_state(SyncState.idle)
            return
        if self._closed:
            logger.debug(f"sync_discarded: collection={self.name}")
            return
        self.items = tuple(items)
        self.last_error = None
        self.version += 1
        logger.info(
            f"sync_applied: collection={self.name} items={len(self.items)} "
            f"version={self.version}"
        )
        self._set_state(SyncState.idle)

    def _set_state(self, state: SyncState) -> None:
        if self._closed:
            return
        self.state = state
        if self._on_change is not None:
            self._on_change(self)

    def attach(self, unsubscribe: Unsubscribe) -> None:
        self._unsubscribe = unsubscribe
        self.subscription_error = None

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._pending = False
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._task = None


@dataclass(frozen=True)
class SyncSnapshot:
    expenses: tuple[Transaction, ...]
    incomes: tuple[Transaction, ...]
    categories: tuple[Category, ...]
    status: dict[str, dict[str, Any]]

    @property
    def is_loading(self) -> bool:
        return any(s["loading"] for s in self.status.values())

    @property
    def has_error(self) -> bool:
        return any(
            s["error"] is not None or s["subscription_error"] is not None
            for s in self.status.values()
        )


class SyncCoordinator:
    """Owns the watched collections for one store.

    The store is injected so tests can drive the coordinator with a fake.
    """

    def __init__(self, source: DataSource) -> None:
        self.source = source
        self._listeners: list[Listener] = []
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._started = False
        self._closed = False
        self.expenses: CollectionSync[Transaction] = CollectionSync(
            "expenses", self._load_expenses, on_change=self._notify
        )
        self.incomes: CollectionSync[Transaction] = CollectionSync(
            "incomes", self._load_incomes, on_change=self._notify
        )
        self.categories: CollectionSync[Category] = CollectionSync(
            "categories", self._load_categories, on_change=self._notify
        )

    @property
    def collections(self) -> tuple[CollectionSync, ...]:
        return (self.expenses, self.incomes, self.categories)

    async def _load_expenses(self) -> list[Transaction]:
        rows = await self.source.fetch_all("expenses", order_by="date", ascending=False)
        return expenses_from_rows(rows)

    async def _load_incomes(self) -> list[Transaction]:
        rows = await self.source.fetch_all("incomes", order_by="date", ascending=False)
        return incomes_from_rows(rows)

    async def _load_categories(self) -> list[Category]:
        rows = await self.source.fetch_all("categories", order_by="name", ascending=True)
        return categories_from_rows(rows)

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _notify(self, collection: CollectionSync) -> None:
        for listener in list(self._listeners):
            listener(collection)

    def _change_handler(self, collection: CollectionSync) -> Callable[[], None]:
        loop = self._loop

        def on_change() -> None:
            if collection.closed or loop is None or loop.is_closed():
                return
            loop.call_soon_threadsafe(collection.request_refresh)

        return on_change

    async def start(self) -> None:
        if self._started:
            return
        self._started = True
        self._loop = asyncio.get_running_loop()
        for collection in self.collections:
            await self._subscribe(collection)
        await asyncio.gather(*(c.refresh() for c in self.collections))
        logger.info("sync_started: collections=expenses,incomes,categories")

    async def _subscribe(self, collection: CollectionSync) -> bool:
        retry = collection.subscription_error is not None
        try:
            unsubscribe = await self.source.subscribe(
                collection.name, self._change_handler(collection)
            )
        except DataSourceError as exc:
            # A successful fetch does not clear this; only a new subscription does.
            collection.subscription_error = exc.message
            logger.warning(
                f"subscribe_failed: collection={collection.name} error={exc.message}"
            )
            return False
        if collection.closed:
            unsubscribe()
            return False
        collection.attach(unsubscribe)
        if retry:
            logger.info(f"subscribe_restored: collection={collection.name}")
        return True

    async def resubscribe_missing(self) -> None:
        if not self._started or self._closed:
            return
        for collection in self.collections:
            if not collection.subscribed and not collection.closed:
                await self._subscribe(collection)

    def request_refresh_all(self) -> None:
        for collection in self.collections:
            collection.request_refresh()

    async def refresh_all(self) -> None:
        await self.resubscribe_missing()
        await asyncio.gather(*(c.refresh() for c in self.collections))

    def snapshot(self) -> SyncSnapshot:
        return SyncSnapshot(
            expenses=self.expenses.items,
            incomes=self.incomes.items,
            categories=self.categories.items,
            status={
                c.name: {
                    "state": c.state.value,
                    "loading": c.is_loading,
                    "error": c.last_error,
                    "subscribed": c.subscribed,
                    "subscription_error": c.subscription_error,
                    "version": c.version,
                }
                for c in self.collections
            },
        )

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        for collection in self.collections:
            await collection.aclose()
        self._listeners.clear()
        logger.info("sync_stopped")
