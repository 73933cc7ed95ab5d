"""Append-only activity log for work order transitions."""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from typing import List, Optional, Union
from uuid import uuid4

from .domain import LogEntry, utc_now
from .errors import ValidationError
from .repository import InMemoryRepository

logger = logging.getLogger(__name__)

DateInput = Union[datetime, str, int, float]

# Epoch values above this are taken as milliseconds.
_EPOCH_MILLIS_THRESHOLD = 10**11


def normalize_date(value: Optional[DateInput]) -> datetime:
    """Coerce a datetime, ISO-8601 string or epoch number into an aware UTC datetime."""

    if value is None or isinstance(value, bool):
        raise ValidationError("date is required")
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        seconds = value / 1000 if abs(value) > _EPOCH_MILLIS_THRESHOLD else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as exc:
            raise ValidationError(f"date {value!r} is out of range") from exc
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValidationError("date is required")
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ValidationError(f"date {value!r} is not ISO-8601") from exc
    else:
        raise ValidationError(f"Unsupported date value {value!r}")
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _chronological_key(entry: LogEntry):
    return (entry.date, entry.sequence)


def _require_text(name: str, value: Optional[str]) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{name} is required")
    return str(value).strip()


class LogRecorder:
    """Writer and reader over ``LogEntry`` records."""

    def __init__(self, repository: Optional[InMemoryRepository[LogEntry]] = None) -> None:
        self.entries = repository if repository is not None else InMemoryRepository()
        self._sequence_lock = threading.Lock()
        self._last_sequence = 0

    def _next_sequence(self) -> int:
        # Orders entries sharing the same date by insertion.
        with self._sequence_lock:
            self._last_sequence = max(time.time_ns(), self._last_sequence + 1)
            return self._last_sequence

    def record(
        self,
        order_number: Optional[str],
        sector: Optional[str],
        description: Optional[str],
        date: Optional[DateInput] = None,
    ) -> LogEntry:
        """Insert one entry. ``date`` defaults to now for entries written by the service."""

        entry = LogEntry(
            id=str(uuid4()),
            order_number=_require_text("order_number", order_number),
            sector=_require_text("sector", sector),
            description=_require_text("description", description),
            date=normalize_date(utc_now() if date is None else date),
            sequence=self._next_sequence(),
        )
        self.entries.add(entry.id, entry)
        logger.debug("Logged %s for order %s: %s", entry.sector, entry.order_number, entry.description)
        return entry

    def create(
        self,
        order_number: Optional[str],
        sector: Optional[str],
        description: Optional[str],
        date: Optional[DateInput],
    ) -> LogEntry:
        """Caller-facing insert: every field, ``date`` included, must be supplied."""

        if date is None:
            raise ValidationError("date is required")
        return self.record(order_number, sector, description, date)

    def list_all(self) -> List[LogEntry]:
        return sorted(self.entries.list(), key=_chronological_key, reverse=True)

    def list_for(self, order_number: str) -> List[LogEntry]:
        matches = self.entries.find(lambda entry: entry.order_number == order_number)
        return sorted(matches, key=_chronological_key, reverse=True)

    def delete(self, entry_id: str) -> None:
        self.entries.remove(entry_id)
        logger.info("Deleted log entry %s", entry_id)

    def rename_order_number(self, old: Optional[str], new: Optional[str]) -> int:
        """Repoint every entry referencing ``old`` to ``new`` (which may be ``None``)."""

        if new is not None and not new.strip():
            new = None
        renamed = 0
        for entry in self.entries.find(lambda item: item.order_number == old):
            entry.order_number = new
            self.entries.upsert(entry.id, entry)
            renamed += 1
        logger.info("Renamed %d log entries from %r to %r", renamed, old, new)
        return renamed


__all__ = ["LogRecorder", "normalize_date"]
