"""SQLite-backed persistence helpers for the work order system."""

from __future__ import annotations

import logging
import pickle
import sqlite3
import threading
from contextlib import contextmanager, suppress
from typing import Callable, Generic, Iterator, List, Optional, TypeVar

from .domain import LogEntry, WorkOrder
from .errors import DuplicateRecordError, StoreError
from .repository import RecordNotFoundError

T = TypeVar("T")

logger = logging.getLogger(__name__)


class SQLiteRepository(Generic[T]):
    """Repository implementation that persists records inside SQLite."""

    def __init__(
        self,
        connection: sqlite3.Connection,
        table: str,
        lock: Optional[threading.RLock] = None,
    ) -> None:
        self._connection = connection
        self._table = table
        self._lock = lock or threading.RLock()
        with self._guard():
            self._connection.execute(
                f"CREATE TABLE IF NOT EXISTS {table} ("  # nosec - static table names
                "id TEXT PRIMARY KEY, payload BLOB NOT NULL)"
            )
            self._connection.commit()

    @contextmanager
    def _guard(self) -> Iterator[None]:
        with self._lock:
            try:
                yield
            except sqlite3.Error as exc:
                with suppress(sqlite3.Error):
                    self._connection.rollback()
                logger.error("SQLite failure on table %s: %s", self._table, exc)
                raise StoreError(f"Store failure on {self._table}: {exc}") from exc

    def __contains__(self, item_id: object) -> bool:
        if not isinstance(item_id, str):
            return False
        with self._guard():
            cursor = self._connection.execute(
                f"SELECT 1 FROM {self._table} WHERE id = ? LIMIT 1", (item_id,)
            )
            return cursor.fetchone() is not None

    def __iter__(self) -> Iterator[T]:
        return iter(self.list())

    def __len__(self) -> int:
        with self._guard():
            cursor = self._connection.execute(f"SELECT COUNT(1) FROM {self._table}")
            value = cursor.fetchone()
        return int(value[0]) if value else 0

    # ------------------------------------------------------------------
    # CRUD operations
    # ------------------------------------------------------------------
    def add(self, item_id: str, item: T) -> None:
        with self._guard():
            if item_id in self:
                raise DuplicateRecordError(f"Record with id {item_id!r} already exists")
            self._connection.execute(
                f"INSERT INTO {self._table} (id, payload) VALUES (?, ?)",
                (item_id, pickle.dumps(item)),
            )
            self._connection.commit()

    def upsert(self, item_id: str, item: T) -> None:
        with self._guard():
            self._connection.execute(
                f"INSERT INTO {self._table} (id, payload) VALUES (?, ?) "
                "ON CONFLICT(id) DO UPDATE SET payload = excluded.payload",
                (item_id, pickle.dumps(item)),
            )
            self._connection.commit()

    def get(self, item_id: str) -> T:
        with self._guard():
            cursor = self._connection.execute(
                f"SELECT payload FROM {self._table} WHERE id = ?", (item_id,)
            )
            row = cursor.fetchone()
        if row is None:
            raise RecordNotFoundError(f"Record with id {item_id!r} not found")
        return pickle.loads(row[0])

    def remove(self, item_id: str) -> None:
        with self._guard():
            cursor = self._connection.execute(
                f"DELETE FROM {self._table} WHERE id = ?", (item_id,)
            )
            if cursor.rowcount == 0:
                raise RecordNotFoundError(f"Record with id {item_id!r} not found")
            self._connection.commit()

    def list(self) -> List[T]:
        with self._guard():
            cursor = self._connection.execute(
                f"SELECT payload FROM {self._table} ORDER BY id"
            )
            rows = cursor.fetchall()
        return [pickle.loads(row[0]) for row in rows]

    def find(self, predicate: Callable[[T], bool]) -> List[T]:
        return [item for item in self.list() if predicate(item)]


class WorkOrderDatabase:
    """Convenience facade bundling the SQLite repositories."""

    def __init__(self, path: str) -> None:
        connection = sqlite3.connect(path, check_same_thread=False)
        self._connection = connection
        self._lock = threading.RLock()
        self.orders = SQLiteRepository[WorkOrder](connection, "work_orders", self._lock)
        self.logs = SQLiteRepository[LogEntry](connection, "log_entries", self._lock)

    @property
    def connection(self) -> sqlite3.Connection:
        return self._connection

    def close(self) -> None:
        with self._lock:
            self._connection.close()

    def __enter__(self) -> "WorkOrderDatabase":
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        traceback: Optional[BaseException],
    ) -> None:
        self.close()


__all__ = ["SQLiteRepository", "WorkOrderDatabase"]
