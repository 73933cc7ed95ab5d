"""Demonstration script for the work order routing service."""

from __future__ import annotations

from pprint import pprint

from . import CallerContext, WorkOrderService, run_sweep

PCP = CallerContext(id="u-1", role="PCP")
ELECTRICAL = CallerContext(id="u-2", role="Electrical")
MECHANICAL = CallerContext(id="u-3", role="Mechanical")


def main() -> None:
    service = WorkOrderService()

    # Planning releases an order straight into the first sector
    service.create_order(
        PCP,
        "1001",
        part_name="Control cabinet",
        part_number="CC-220",
        quantity=10,
        routing=["Electrical", "Mechanical", "Test"],
        status="In Production",
        current_sector="Electrical",
    )
    service.create_order(
        PCP,
        "1002",
        part_name="Motor bracket",
        part_number="MB-17",
        quantity=40,
        routing=["Mechanical", "Assembly"],
        status="In Production",
        current_sector="Mechanical",
    )

    service.report_production(ELECTRICAL, "1001", 10, 0, "Ana")
    service.validate_production(PCP, "1001", approved=True)
    service.report_production(MECHANICAL, "1001", 9, 1, "Bruno")
    service.validate_production(PCP, "1001", approved=False)
    pprint(service.get_order(PCP, "1001").to_dict())

    # End of shift: whatever is still in production gets paused
    result = run_sweep(service)
    pprint(result.to_dict())

    service.finalize_order(PCP, "1001")
    page = service.list_by_sector(CallerContext(id="u-4", role="Assembly"), limit=10)
    print(f"Assembly sees {page.total} order(s)")
    for entry in service.list_logs(PCP):
        print(f"{entry.date:%H:%M:%S} {entry.order_number} [{entry.sector}] {entry.description}")


if __name__ == "__main__":
    main()
