"""Work order routing for a shop floor organised in production sectors.

This package provides the work order data model, the routing and PCP
validation state machine, per-sector visibility, an append-only activity
log and the scheduled sweep that pauses orders left in production.
"""

from .domain import (
    CallerContext,
    LogEntry,
    OrderPriority,
    OrderStatus,
    RoutingStep,
    WorkOrder,
)
from .services import WorkOrderService
from .sweep import SweepResult, run_sweep
from .visibility import Page, VisibilityPolicy

__all__ = [
    "CallerContext",
    "LogEntry",
    "OrderPriority",
    "OrderStatus",
    "RoutingStep",
    "WorkOrder",
    "WorkOrderService",
    "SweepResult",
    "run_sweep",
    "Page",
    "VisibilityPolicy",
]
