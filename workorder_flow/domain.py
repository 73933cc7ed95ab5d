"""Core data structures for the work order routing system."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import List, Optional, Tuple

PCP_ROLE = "PCP"
ADMIN_ROLE = "ADMIN"
SYSTEM_SECTOR = "System"

DEFAULT_SECTORS: Tuple[str, ...] = (
    "Electrical",
    "Mechanical",
    "Test",
    "Assembly",
    "Warehouse",
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class OrderStatus(str, Enum):
    """Lifecycle stages for a work order."""

    CREATED = "Created"
    IN_PROGRESS = "In Production"
    PENDING_REVIEW = "Awaiting PCP Review"
    REPROVED = "Reproved"
    PAUSED = "Paused"
    FINALIZED = "Finalized"

    @property
    def is_terminal(self) -> bool:
        return self is OrderStatus.FINALIZED


class OrderPriority(IntEnum):
    """Priority levels assigned by planning when the order is created."""

    LOW = 1
    NORMAL = 2
    HIGH = 3
    CRITICAL = 4

    @property
    def label(self) -> str:
        return {
            OrderPriority.LOW: "Low",
            OrderPriority.NORMAL: "Normal",
            OrderPriority.HIGH: "High",
            OrderPriority.CRITICAL: "Critical",
        }[self]


@dataclass(slots=True)
class RoutingStep:
    """A single station an order has to pass through."""

    sector: str


@dataclass(slots=True, frozen=True)
class CallerContext:
    """Identity handed over by the identity service, already verified."""

    id: str
    role: str

    @property
    def is_pcp(self) -> bool:
        return self.role == PCP_ROLE


@dataclass(slots=True)
class WorkOrder:
    """A work order ("OS") travelling through its routing."""

    order_number: str
    part_name: str
    part_number: str
    quantity: int
    routing: List[RoutingStep]
    status: OrderStatus = OrderStatus.CREATED
    priority: OrderPriority = OrderPriority.NORMAL
    note: str = ""
    created_at: datetime = field(default_factory=utc_now)
    current_sector: Optional[str] = None
    pending_sector: Optional[str] = None
    current_quantity: Optional[int] = None
    defective_quantity: Optional[int] = None
    operator_name: Optional[str] = None

    @property
    def sectors(self) -> List[str]:
        return [step.sector for step in self.routing]

    def touches(self, sector: str) -> bool:
        return any(step.sector == sector for step in self.routing)

    def next_sector_after(self, sector: str) -> Optional[str]:
        """Return the routing step following ``sector`` or ``None`` if it is the last one."""

        sectors = self.sectors
        index = sectors.index(sector)
        if index + 1 < len(sectors):
            return sectors[index + 1]
        return None

    def to_dict(self) -> dict:
        return {
            "order_number": self.order_number,
            "part_name": self.part_name,
            "part_number": self.part_number,
            "quantity": self.quantity,
            "note": self.note,
            "created_at": self.created_at.isoformat(),
            "priority": int(self.priority),
            "priority_label": self.priority.label,
            "status": self.status.value,
            "routing": [{"sector": step.sector} for step in self.routing],
            "current_sector": self.current_sector,
            "pending_sector": self.pending_sector,
            "current_quantity": self.current_quantity,
            "defective_quantity": self.defective_quantity,
            "operator_name": self.operator_name,
        }


@dataclass(slots=True)
class LogEntry:
    """Activity log line. ``order_number`` is a plain reference, not a foreign key."""

    id: str
    order_number: Optional[str]
    sector: str
    description: str
    date: datetime
    sequence: int = 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "sector": self.sector,
            "description": self.description,
            "date": self.date.isoformat(),
        }


__all__ = [
    "PCP_ROLE",
    "ADMIN_ROLE",
    "SYSTEM_SECTOR",
    "DEFAULT_SECTORS",
    "utc_now",
    "OrderStatus",
    "OrderPriority",
    "RoutingStep",
    "CallerContext",
    "WorkOrder",
    "LogEntry",
]
