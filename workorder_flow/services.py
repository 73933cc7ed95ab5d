"""Service layer that implements the work order routing state machine."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Union

from .access import Action, require
from .activity_log import DateInput, LogRecorder
from .domain import (
    ADMIN_ROLE,
    PCP_ROLE,
    CallerContext,
    LogEntry,
    OrderPriority,
    OrderStatus,
    RoutingStep,
    WorkOrder,
    utc_now,
)
from .errors import ForbiddenError, InvalidStateError, ValidationError
from .repository import InMemoryRepository
from .visibility import Page, VisibilityPolicy, filter_for_sector, is_visible, paginate

logger = logging.getLogger(__name__)

PATCHABLE_FIELDS: Mapping[str, frozenset] = {
    PCP_ROLE: frozenset(
        {
            "part_name",
            "part_number",
            "quantity",
            "note",
            "priority",
            "status",
            "current_sector",
            "order_number",
        }
    ),
    ADMIN_ROLE: frozenset({"part_name", "part_number", "quantity", "note", "priority"}),
}

# Statuses that may be set directly through ``patch_order``.
PATCHABLE_STATUSES = frozenset(
    {OrderStatus.CREATED, OrderStatus.IN_PROGRESS, OrderStatus.PAUSED, OrderStatus.REPROVED}
)


def parse_status(value: Union[str, OrderStatus]) -> OrderStatus:
    if isinstance(value, OrderStatus):
        return value
    for status in OrderStatus:
        if value in {status.value, status.name}:
            return status
    raise ValidationError(f"Unknown status {value!r}")


def parse_priority(value: Union[int, str, OrderPriority]) -> OrderPriority:
    if isinstance(value, OrderPriority):
        return value
    try:
        if isinstance(value, str) and not value.strip().isdigit():
            return OrderPriority[value.strip().upper()]
        return OrderPriority(int(value))
    except (KeyError, TypeError, ValueError) as exc:
        raise ValidationError(f"Unknown priority {value!r}") from exc


def _require_text(name: str, value: Any) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{name} is required")
    return str(value).strip()


def _require_count(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer")
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{name} must be an integer") from exc
    if number < 0:
        raise ValidationError(f"{name} must not be negative")
    return number


class OrderLocks:
    """One mutex per order number; every single-order mutation runs under it.

    Entries are reference counted and dropped once no thread holds or waits
    on them, so unknown or deleted order numbers do not accumulate.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, List[Any]] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, order_number: str) -> Iterator[None]:
        with self._guard:
            entry = self._locks.get(order_number)
            if entry is None:
                entry = self._locks[order_number] = [threading.Lock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[order_number]


class WorkOrderService:
    """Facade that exposes the work order use-cases to clients."""

    def __init__(
        self,
        order_repo: Optional[InMemoryRepository[WorkOrder]] = None,
        log_repo: Optional[InMemoryRepository[LogEntry]] = None,
        *,
        policy: Optional[VisibilityPolicy] = None,
        default_page_size: int = 20,
        max_page_size: int = 100,
    ) -> None:
        self.orders = order_repo if order_repo is not None else InMemoryRepository()
        self.logs = LogRecorder(log_repo)
        self.policy = policy or VisibilityPolicy()
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size
        self._locks = OrderLocks()

    # ------------------------------------------------------------------
    # Creation and reads
    # ------------------------------------------------------------------
    def create_order(
        self,
        caller: CallerContext,
        order_number: str,
        part_name: str,
        part_number: str,
        quantity: int,
        routing: Sequence[str],
        *,
        note: str = "",
        priority: Union[int, str, OrderPriority] = OrderPriority.NORMAL,
        status: Optional[Union[str, OrderStatus]] = None,
        current_sector: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> WorkOrder:
        require(caller, Action.CREATE)
        order_number = _require_text("order_number", order_number)
        sectors = [_require_text("routing sector", sector) for sector in routing]
        if not sectors:
            raise ValidationError("routing must contain at least one sector")
        if len(set(sectors)) != len(sectors):
            raise ValidationError("routing must not repeat a sector")
        initial_status = OrderStatus.CREATED if status is None else parse_status(status)
        if initial_status in {OrderStatus.PENDING_REVIEW, OrderStatus.FINALIZED}:
            raise ValidationError(f"Orders cannot be created as {initial_status.value!r}")
        if current_sector is not None and current_sector not in sectors:
            raise ValidationError(f"current_sector {current_sector!r} is not in the routing")
        if initial_status == OrderStatus.IN_PROGRESS and current_sector is None:
            raise ValidationError("An order in production needs a current_sector")
        order = WorkOrder(
            order_number=order_number,
            part_name=_require_text("part_name", part_name),
            part_number=_require_text("part_number", part_number),
            quantity=_require_count("quantity", quantity),
            routing=[RoutingStep(sector=sector) for sector in sectors],
            status=initial_status,
            priority=parse_priority(priority),
            note=note or "",
            created_at=created_at or utc_now(),
            current_sector=current_sector,
        )
        self.orders.add(order.order_number, order)
        self.logs.record(order.order_number, caller.role, "Work order created")
        logger.info(
            "Created order %s with routing %s as %s",
            order.order_number,
            "/".join(sectors),
            order.status.value,
        )
        return order

    def _sorted_orders(self) -> List[WorkOrder]:
        return sorted(self.orders.list(), key=lambda order: (order.created_at, order.order_number))

    def list_all(self, caller: CallerContext) -> List[WorkOrder]:
        require(caller, Action.READ)
        orders = self._sorted_orders()
        if self.policy.sees_everything(caller.role):
            return orders
        return filter_for_sector(orders, caller.role, self.policy)

    def list_by_sector(
        self,
        caller: CallerContext,
        sector: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Page[WorkOrder]:
        """Paginated listing. Only unfiltered roles may look at another sector."""

        require(caller, Action.READ)
        privileged = self.policy.sees_everything(caller.role)
        orders = self._sorted_orders()
        if not privileged:
            orders = filter_for_sector(orders, caller.role, self.policy)
        elif sector:
            orders = filter_for_sector(orders, sector, self.policy)
        return paginate(
            orders,
            page,
            self.default_page_size if limit is None else limit,
            max_limit=self.max_page_size,
        )

    def get_order(self, caller: CallerContext, order_number: str) -> WorkOrder:
        require(caller, Action.READ)
        order = self.orders.get(order_number)
        if not self.policy.sees_everything(caller.role) and not is_visible(
            order, caller.role, self.policy
        ):
            raise ForbiddenError(f"Order {order_number!r} is not visible to {caller.role!r}")
        return order

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------
    def report_production(
        self,
        caller: CallerContext,
        order_number: str,
        quantity: int,
        defective_quantity: int,
        operator_name: str,
    ) -> WorkOrder:
        require(caller, Action.REPORT_PRODUCTION)
        operator_name = _require_text("operator_name", operator_name)
        good = _require_count("quantity", quantity)
        defective = _require_count("defective_quantity", defective_quantity)
        with self._locks.hold(order_number):
            order = self.orders.get(order_number)
            if order.status == OrderStatus.FINALIZED:
                raise ForbiddenError(f"Order {order_number!r} is already finalized")
            if order.status != OrderStatus.IN_PROGRESS:
                raise InvalidStateError(
                    f"Order {order_number!r} is {order.status.value!r}, not in production"
                )
            if order.current_sector != caller.role:
                raise ForbiddenError(
                    f"Order {order_number!r} is at {order.current_sector!r}, not {caller.role!r}"
                )
            updated = replace(
                order,
                status=OrderStatus.PENDING_REVIEW,
                pending_sector=caller.role,
                current_quantity=good,
                defective_quantity=defective,
                operator_name=operator_name,
            )
            self.orders.upsert(order_number, updated)
        self.logs.record(
            order_number,
            caller.role,
            f"Production reported by {operator_name}: {good} good, {defective} defective",
        )
        logger.info("Order %s reported by %s, awaiting PCP review", order_number, caller.role)
        return updated

    def validate_production(
        self, caller: CallerContext, order_number: str, approved: bool
    ) -> WorkOrder:
        require(caller, Action.VALIDATE)
        with self._locks.hold(order_number):
            order = self.orders.get(order_number)
            if order.status != OrderStatus.PENDING_REVIEW:
                raise InvalidStateError(
                    f"Order {order_number!r} is {order.status.value!r}, not awaiting review"
                )
            sector = order.pending_sector or order.current_sector
            if sector is None or not order.touches(sector):
                raise InvalidStateError(
                    f"Order {order_number!r} has no pending sector in its routing"
                )
            if approved:
                next_sector = order.next_sector_after(sector)
                if next_sector is None:
                    updated = replace(
                        order,
                        status=OrderStatus.FINALIZED,
                        current_sector=None,
                        pending_sector=None,
                    )
                    description = f"Production from {sector} approved, order finalized"
                else:
                    updated = replace(
                        order,
                        status=OrderStatus.IN_PROGRESS,
                        current_sector=next_sector,
                        pending_sector=None,
                    )
                    description = f"Production from {sector} approved, moved to {next_sector}"
            else:
                updated = replace(order, status=OrderStatus.REPROVED)
                description = f"Production from {sector} rejected"
            self.orders.upsert(order_number, updated)
        self.logs.record(order_number, caller.role, description)
        logger.info("Order %s: %s", order_number, description)
        return updated

    def finalize_order(self, caller: CallerContext, order_number: str) -> WorkOrder:
        require(caller, Action.FINALIZE)
        with self._locks.hold(order_number):
            order = self.orders.get(order_number)
            if order.status == OrderStatus.FINALIZED:
                return order
            previous = order.status
            updated = replace(
                order,
                status=OrderStatus.FINALIZED,
                current_sector=None,
                pending_sector=None,
            )
            self.orders.upsert(order_number, updated)
        self.logs.record(
            order_number, caller.role, f"Order finalized by planning (was {previous.value})"
        )
        logger.info("Order %s force-finalized from %s", order_number, previous.value)
        return updated

    def delete_order(self, caller: CallerContext, order_number: str) -> None:
        require(caller, Action.DELETE)
        with self._locks.hold(order_number):
            self.orders.remove(order_number)
        self.logs.record(order_number, caller.role, "Work order deleted")
        logger.info("Deleted order %s; its log entries are kept", order_number)

    def patch_order(
        self, caller: CallerContext, order_number: str, fields: Mapping[str, Any]
    ) -> WorkOrder:
        """Apply an allow-listed partial update. This is also the manual resume path."""

        require(caller, Action.PATCH)
        if not fields:
            raise ValidationError("No fields to update")
        allowed = PATCHABLE_FIELDS.get(caller.role, frozenset())
        rejected = sorted(set(fields) - allowed)
        if rejected:
            raise ValidationError(
                f"Role {caller.role!r} may not update: {', '.join(rejected)}"
            )
        with self._locks.hold(order_number):
            order = self.orders.get(order_number)
            changes = self._patch_changes(order, fields)
            updated = replace(order, **changes)
            if updated.order_number != order_number:
                self.orders.add(updated.order_number, updated)
                self.orders.remove(order_number)
            else:
                self.orders.upsert(order_number, updated)
        moved = updated.status != order.status or updated.current_sector != order.current_sector
        if moved:
            self.logs.record(
                updated.order_number,
                caller.role,
                f"Order updated: status {order.status.value} -> {updated.status.value}, "
                f"sector {order.current_sector or '-'} -> {updated.current_sector or '-'}",
            )
        logger.info("Patched order %s fields %s", order_number, ", ".join(sorted(fields)))
        return updated

    def _patch_changes(self, order: WorkOrder, fields: Mapping[str, Any]) -> Dict[str, Any]:
        changes: Dict[str, Any] = {}
        for name in ("part_name", "part_number", "order_number"):
            if name in fields:
                changes[name] = _require_text(name, fields[name])
        if "quantity" in fields:
            changes["quantity"] = _require_count("quantity", fields["quantity"])
        if "note" in fields:
            changes["note"] = fields["note"] or ""
        if "priority" in fields:
            changes["priority"] = parse_priority(fields["priority"])

        if "status" in fields or "current_sector" in fields:
            if order.status == OrderStatus.FINALIZED:
                raise InvalidStateError(f"Order {order.order_number!r} is finalized")
        if "status" in fields:
            status = parse_status(fields["status"])
            if status not in PATCHABLE_STATUSES:
                raise ValidationError(f"Status {status.value!r} cannot be set directly")
            changes["status"] = status
            changes["pending_sector"] = None
        if "current_sector" in fields:
            sector = fields["current_sector"]
            if sector is not None and not order.touches(sector):
                raise ValidationError(f"current_sector {sector!r} is not in the routing")
            changes["current_sector"] = sector
        status = changes.get("status", order.status)
        sector = changes.get("current_sector", order.current_sector)
        if status == OrderStatus.IN_PROGRESS and sector is None:
            raise ValidationError("An order in production needs a current_sector")
        return changes

    # ------------------------------------------------------------------
    # Sweep primitives
    # ------------------------------------------------------------------
    def in_production_orders(self) -> List[WorkOrder]:
        return self.orders.find(lambda order: order.status == OrderStatus.IN_PROGRESS)

    def pause_if_in_production(self, order_number: str) -> Optional[WorkOrder]:
        """Pause the order if it is still in production; ``None`` when it moved on."""

        with self._locks.hold(order_number):
            if order_number not in self.orders:
                return None
            order = self.orders.get(order_number)
            if order.status != OrderStatus.IN_PROGRESS:
                return None
            updated = replace(order, status=OrderStatus.PAUSED)
            self.orders.upsert(order_number, updated)
        return updated

    # ------------------------------------------------------------------
    # Activity log
    # ------------------------------------------------------------------
    def list_logs(self, caller: CallerContext) -> List[LogEntry]:
        require(caller, Action.READ_LOGS)
        return self.logs.list_all()

    def list_logs_for(self, caller: CallerContext, order_number: str) -> List[LogEntry]:
        require(caller, Action.READ_LOGS)
        return self.logs.list_for(order_number)

    def create_log(
        self,
        caller: CallerContext,
        order_number: Optional[str],
        sector: Optional[str],
        description: Optional[str],
        date: Optional[DateInput],
    ) -> LogEntry:
        require(caller, Action.CREATE_LOG)
        return self.logs.create(order_number, sector, description, date)

    def delete_log(self, caller: CallerContext, entry_id: str) -> None:
        require(caller, Action.DELETE_LOG)
        self.logs.delete(entry_id)

    def rename_logs(
        self, caller: CallerContext, old: Optional[str], new: Optional[str]
    ) -> int:
        require(caller, Action.RENAME_LOGS)
        return self.logs.rename_order_number(old, new)


__all__ = [
    "WorkOrderService",
    "OrderLocks",
    "PATCHABLE_FIELDS",
    "PATCHABLE_STATUSES",
    "parse_status",
    "parse_priority",
]
