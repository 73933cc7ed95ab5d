"""Time-triggered sweep that pauses every order still in production."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from typing import Callable, List, Optional
from zoneinfo import ZoneInfo

from .domain import SYSTEM_SECTOR, WorkOrder, utc_now
from .errors import StoreError, WorkOrderError
from .services import WorkOrderService

logger = logging.getLogger(__name__)

PAUSE_DESCRIPTION = "Production paused automatically at end of shift"


@dataclass(slots=True)
class SweepResult:
    """Outcome of one sweep run."""

    started_at: datetime
    paused: List[WorkOrder] = field(default_factory=list)
    logged: int = 0
    log_failures: List[str] = field(default_factory=list)

    @property
    def paused_count(self) -> int:
        return len(self.paused)

    def to_dict(self) -> dict:
        return {
            "started_at": self.started_at.isoformat(),
            "paused": [order.order_number for order in self.paused],
            "logged": self.logged,
            "log_failures": list(self.log_failures),
        }


def run_sweep(service: WorkOrderService, *, now: Optional[datetime] = None) -> SweepResult:
    """Pause all in-production orders, then write one "System" log entry per paused order.

    A failing scan or status update aborts the run before any log entry is
    written. A failing log insert is reported and the run carries on; the
    status change already applied stays.
    """

    result = SweepResult(started_at=now or utc_now())
    try:
        candidates = service.in_production_orders()
    except WorkOrderError:
        logger.error("Sweep aborted: scanning in-production orders failed")
        raise
    if not candidates:
        logger.info("Sweep found no orders in production")
        return result

    try:
        for order in candidates:
            paused = service.pause_if_in_production(order.order_number)
            if paused is not None:
                result.paused.append(paused)
    except StoreError:
        logger.error(
            "Sweep aborted after pausing %d of %d orders; no log entries written",
            len(result.paused),
            len(candidates),
        )
        raise

    for order in result.paused:
        try:
            service.logs.record(order.order_number, SYSTEM_SECTOR, PAUSE_DESCRIPTION)
        except WorkOrderError:
            logger.exception("Could not log automatic pause of order %s", order.order_number)
            result.log_failures.append(order.order_number)
        else:
            result.logged += 1

    logger.info(
        "Sweep paused %d order(s), %d log failure(s)",
        result.paused_count,
        len(result.log_failures),
    )
    return result


def next_trigger(now: datetime, at: time, tz: ZoneInfo) -> datetime:
    """Return the next wall-clock occurrence of ``at`` in ``tz`` strictly after ``now``."""

    local_now = now.astimezone(tz)
    candidate = datetime.combine(local_now.date(), at, tzinfo=tz)
    if candidate <= local_now:
        candidate = datetime.combine(local_now.date() + timedelta(days=1), at, tzinfo=tz)
    return candidate


class SweepScheduler:
    """Daemon thread firing ``run_sweep`` once per day at a fixed time."""

    def __init__(
        self,
        service: WorkOrderService,
        at: time,
        timezone_name: str = "UTC",
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.service = service
        self.at = at
        self.tz = ZoneInfo(timezone_name)
        self._clock = clock
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.last_result: Optional[SweepResult] = None
        self.last_trigger: Optional[datetime] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="pause-sweep", daemon=True)
        self._thread.start()
        logger.info("Sweep scheduler started, daily at %s %s", self.at.strftime("%H:%M"), self.tz.key)

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Sweep scheduler stopped")

    def _loop(self) -> None:
        while not self._stop.is_set():
            now = self._clock()
            reference = now
            if self.last_trigger is not None and self.last_trigger > now:
                reference = self.last_trigger
            trigger = next_trigger(reference, self.at, self.tz)
            wait_seconds = max((trigger - now).total_seconds(), 0.0)
            logger.debug("Next sweep at %s", trigger.isoformat())
            if self._stop.wait(wait_seconds):
                break
            self.last_trigger = trigger
            try:
                self.last_result = run_sweep(self.service)
            except Exception:
                logger.exception("Scheduled sweep failed")


__all__ = ["SweepResult", "SweepScheduler", "run_sweep", "next_trigger", "PAUSE_DESCRIPTION"]
