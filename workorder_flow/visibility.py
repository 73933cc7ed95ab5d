"""Per-sector visibility of work orders and pagination of the result."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import FrozenSet, Generic, Iterable, List, TypeVar

from .domain import ADMIN_ROLE, PCP_ROLE, OrderStatus, WorkOrder
from .errors import ValidationError

T = TypeVar("T")


@dataclass(frozen=True)
class VisibilityPolicy:
    """Static sector-group configuration used by the filter.

    ``assembly_sector`` additionally sees every order currently sitting at one
    of ``upstream_sectors`` and every finalized order whose routing touched one
    of them. Roles in ``unfiltered_roles`` bypass the filter entirely.
    """

    assembly_sector: str = "Assembly"
    upstream_sectors: FrozenSet[str] = field(
        default_factory=lambda: frozenset({"Electrical", "Mechanical"})
    )
    unfiltered_roles: FrozenSet[str] = field(
        default_factory=lambda: frozenset({PCP_ROLE, "Warehouse", ADMIN_ROLE})
    )

    def sees_everything(self, role: str) -> bool:
        return role in self.unfiltered_roles


@dataclass(slots=True)
class Page(Generic[T]):
    page: int
    limit: int
    total: int
    total_pages: int
    data: List[T]


def is_visible(order: WorkOrder, sector: str, policy: VisibilityPolicy) -> bool:
    if order.current_sector == sector:
        return True
    finalized = order.status == OrderStatus.FINALIZED
    if finalized and order.touches(sector):
        return True
    if sector == policy.assembly_sector:
        if order.current_sector in policy.upstream_sectors:
            return True
        if finalized and any(step in policy.upstream_sectors for step in order.sectors):
            return True
    return False


def filter_for_sector(
    orders: Iterable[WorkOrder], sector: str, policy: VisibilityPolicy
) -> List[WorkOrder]:
    return [order for order in orders if is_visible(order, sector, policy)]


def paginate(items: List[T], page: int, limit: int, *, max_limit: int = 0) -> Page[T]:
    """Slice ``items`` into a 1-indexed page. ``limit`` is clamped to ``max_limit`` when set."""

    if page < 1:
        raise ValidationError("page must be 1 or greater")
    if limit < 1:
        raise ValidationError("limit must be 1 or greater")
    if max_limit > 0:
        limit = min(limit, max_limit)
    total = len(items)
    start = (page - 1) * limit
    return Page(
        page=page,
        limit=limit,
        total=total,
        total_pages=math.ceil(total / limit),
        data=list(items[start : start + limit]),
    )


__all__ = ["VisibilityPolicy", "Page", "is_visible", "filter_for_sector", "paginate"]
