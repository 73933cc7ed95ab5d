import pytest

from workorder_flow.domain import OrderPriority, OrderStatus
from workorder_flow.errors import (
    DuplicateRecordError,
    ForbiddenError,
    InvalidStateError,
    ValidationError,
)

from conftest import ADMIN, ELECTRICAL, MECHANICAL, PCP


def test_pcp_resumes_paused_order(service, make_order):
    make_order("R-1", status=OrderStatus.PAUSED)

    order = service.patch_order(PCP, "R-1", {"status": "In Production"})

    assert order.status == OrderStatus.IN_PROGRESS
    assert service.logs.list_for("R-1")[0].description.startswith("Order updated")
    assert service.report_production(ELECTRICAL, "R-1", 1, 0, "Ana").status == (
        OrderStatus.PENDING_REVIEW
    )


def test_pcp_reopens_reproved_order_at_the_rejected_sector(service, make_order):
    make_order("R-2")
    service.report_production(ELECTRICAL, "R-2", 1, 1, "Ana")
    service.validate_production(PCP, "R-2", approved=False)

    order = service.patch_order(PCP, "R-2", {"status": "IN_PROGRESS"})

    assert order.current_sector == "Electrical"
    assert order.pending_sector is None


def test_admin_is_limited_to_descriptive_fields(service, make_order):
    make_order("R-3")

    order = service.patch_order(ADMIN, "R-3", {"note": "rush", "priority": "HIGH"})
    assert order.priority == OrderPriority.HIGH
    assert order.note == "rush"

    with pytest.raises(ValidationError):
        service.patch_order(ADMIN, "R-3", {"status": "Paused"})


def test_sector_roles_cannot_patch(service, make_order):
    make_order("R-4")

    with pytest.raises(ForbiddenError):
        service.patch_order(MECHANICAL, "R-4", {"note": "x"})


@pytest.mark.parametrize(
    "fields",
    [
        {"routing": ["Test"]},
        {"operator_name": "Ana"},
        {"status": "Finalized"},
        {"status": "Awaiting PCP Review"},
        {"status": "Bogus"},
        {"current_sector": "Warehouse"},
        {"quantity": -5},
        {"priority": None},
        {"priority": "Urgent"},
        {"part_name": ""},
        {"status": "In Production", "current_sector": None},
        {},
    ],
)
def test_patch_rejects_fields_outside_allow_list_or_range(service, make_order, fields):
    make_order("R-5")

    with pytest.raises(ValidationError):
        service.patch_order(PCP, "R-5", fields)
    assert service.orders.get("R-5").status == OrderStatus.IN_PROGRESS


def test_patch_cannot_move_finalized_order(service, make_order):
    make_order("R-6")
    service.finalize_order(PCP, "R-6")

    with pytest.raises(InvalidStateError):
        service.patch_order(PCP, "R-6", {"current_sector": "Electrical"})
    assert service.patch_order(PCP, "R-6", {"note": "archived"}).note == "archived"


def test_renumber_leaves_logs_until_renamed(service, make_order):
    make_order("R-7")
    make_order("R-8")

    order = service.patch_order(PCP, "R-7", {"order_number": "R-70"})

    assert order.order_number == "R-70"
    assert "R-7" not in service.orders
    assert len(service.logs.list_for("R-7")) == 1
    assert service.logs.list_for("R-70") == []
    with pytest.raises(DuplicateRecordError):
        service.patch_order(PCP, "R-70", {"order_number": "R-8"})
