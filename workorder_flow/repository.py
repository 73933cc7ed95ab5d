"""Simple in-memory repositories used by the service layer."""

from __future__ import annotations

import threading
from typing import Callable, Generic, Iterator, List, MutableMapping, TypeVar

from .errors import DuplicateRecordError, NotFoundError

T = TypeVar("T")


class RecordNotFoundError(NotFoundError):
    """Raised when a requested record is missing."""


class InMemoryRepository(Generic[T]):
    """Generic repository backed by a simple dictionary."""

    def __init__(self) -> None:
        self._items: MutableMapping[str, T] = {}
        self._lock = threading.RLock()

    def __contains__(self, item_id: object) -> bool:
        with self._lock:
            return item_id in self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def add(self, item_id: str, item: T) -> None:
        with self._lock:
            if item_id in self._items:
                raise DuplicateRecordError(f"Record with id {item_id!r} already exists")
            self._items[item_id] = item

    def upsert(self, item_id: str, item: T) -> None:
        with self._lock:
            self._items[item_id] = item

    def get(self, item_id: str) -> T:
        with self._lock:
            try:
                return self._items[item_id]
            except KeyError as exc:
                raise RecordNotFoundError(f"Record with id {item_id!r} not found") from exc

    def remove(self, item_id: str) -> None:
        with self._lock:
            if item_id not in self._items:
                raise RecordNotFoundError(f"Record with id {item_id!r} not found")
            del self._items[item_id]

    def list(self) -> List[T]:
        with self._lock:
            return list(self._items.values())

    def find(self, predicate: Callable[[T], bool]) -> List[T]:
        return [item for item in self.list() if predicate(item)]

    def __iter__(self) -> Iterator[T]:  # pragma: no cover - convenience
        return iter(self.list())


__all__ = [
    "InMemoryRepository",
    "DuplicateRecordError",
    "RecordNotFoundError",
]
