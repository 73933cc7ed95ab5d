"""FastAPI-based JSON interface for the work order service."""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware

from ..access import Action, require
from ..config import Settings
from ..domain import CallerContext
from ..errors import WorkOrderError
from ..logging_conf import configure_logging
from ..services import WorkOrderService
from ..storage import WorkOrderDatabase
from ..sweep import SweepScheduler, run_sweep
from ..visibility import Page
from .auth import get_caller
from .schemas import (
    CreateLogRequest,
    CreateOrderRequest,
    PatchOrderRequest,
    ProductionReportRequest,
    RenameLogsRequest,
    ValidationDecisionRequest,
)

logger = logging.getLogger(__name__)


def _error_body(code: str, message: str) -> dict:
    return {"error": {"code": code, "message": message}}


def _page_body(page: Page) -> dict:
    return {
        "page": page.page,
        "limit": page.limit,
        "total": page.total,
        "totalPages": page.total_pages,
        "data": [order.to_dict() for order in page.data],
    }


def build_service(settings: Settings, database: WorkOrderDatabase) -> WorkOrderService:
    return WorkOrderService(
        order_repo=database.orders,
        log_repo=database.logs,
        policy=settings.visibility_policy(),
        default_page_size=settings.default_page_size,
        max_page_size=settings.max_page_size,
    )


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[WorkOrderDatabase] = None,
    service: Optional[WorkOrderService] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    owns_database = service is None and database is None
    if service is None:
        if database is None:
            database = WorkOrderDatabase(settings.db_path)
        service = build_service(settings, database)
    scheduler = SweepScheduler(service, settings.sweep_time, settings.sweep_timezone)

    app = FastAPI(title="Work Order Routing")
    if settings.cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.cors_allow_origins),
            allow_methods=["*"],
            allow_headers=["*"],
        )
    app.state.settings = settings
    app.state.service = service
    app.state.database = database
    app.state.scheduler = scheduler

    @app.on_event("startup")
    async def startup_event() -> None:  # pragma: no cover - framework hook
        if settings.sweep_enabled:
            scheduler.start()

    @app.on_event("shutdown")
    async def shutdown_event() -> None:  # pragma: no cover - framework hook
        scheduler.stop()
        if owns_database and database is not None:
            database.close()

    @app.exception_handler(WorkOrderError)
    async def handle_work_order_error(request: Request, exc: WorkOrderError):
        if exc.http_status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=exc.http_status, content=_error_body(exc.code, exc.message)
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        details = "; ".join(
            f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
            for error in exc.errors()
        )
        return JSONResponse(status_code=422, content=_error_body("VALIDATION_ERROR", details))

    @app.get("/health")
    async def health():
        return {"status": "ok", "sweep_running": scheduler.running}

    # ------------------------------------------------------------------
    # Work orders
    # ------------------------------------------------------------------
    @app.post("/os", status_code=201)
    def create_order(body: CreateOrderRequest, caller: CallerContext = Depends(get_caller)):
        order = service.create_order(
            caller,
            body.order_number,
            body.part_name,
            body.part_number,
            body.quantity,
            body.sectors(),
            note=body.note,
            priority=body.priority,
            status=body.status,
            current_sector=body.current_sector,
            created_at=body.created_at,
        )
        return order.to_dict()

    @app.get("/os")
    def list_orders(caller: CallerContext = Depends(get_caller)) -> List[dict]:
        return [order.to_dict() for order in service.list_all(caller)]

    @app.get("/os/sector")
    def list_sector_orders(
        sector: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
        caller: CallerContext = Depends(get_caller),
    ):
        return _page_body(service.list_by_sector(caller, sector, page, limit))

    @app.get("/os/{order_number}")
    def get_order(order_number: str, caller: CallerContext = Depends(get_caller)):
        return service.get_order(caller, order_number).to_dict()

    @app.patch("/os/{order_number}")
    def patch_order(
        order_number: str,
        body: PatchOrderRequest,
        caller: CallerContext = Depends(get_caller),
    ):
        fields = body.model_dump(exclude_unset=True)
        return service.patch_order(caller, order_number, fields).to_dict()

    @app.delete("/os/{order_number}")
    def delete_order(order_number: str, caller: CallerContext = Depends(get_caller)):
        service.delete_order(caller, order_number)
        return {"deleted": order_number}

    @app.post("/os/{order_number}/production")
    def report_production(
        order_number: str,
        body: ProductionReportRequest,
        caller: CallerContext = Depends(get_caller),
    ):
        order = service.report_production(
            caller,
            order_number,
            body.quantity,
            body.defective_quantity,
            body.operator_name,
        )
        return order.to_dict()

    @app.post("/os/{order_number}/validation")
    def validate_production(
        order_number: str,
        body: ValidationDecisionRequest,
        caller: CallerContext = Depends(get_caller),
    ):
        return service.validate_production(caller, order_number, body.approved).to_dict()

    @app.post("/os/{order_number}/finalize")
    def finalize_order(order_number: str, caller: CallerContext = Depends(get_caller)):
        return service.finalize_order(caller, order_number).to_dict()

    # ------------------------------------------------------------------
    # Activity log
    # ------------------------------------------------------------------
    @app.get("/logs")
    def list_logs(caller: CallerContext = Depends(get_caller)) -> List[dict]:
        return [entry.to_dict() for entry in service.list_logs(caller)]

    @app.get("/logs/{order_number}")
    def list_logs_for(order_number: str, caller: CallerContext = Depends(get_caller)):
        return [entry.to_dict() for entry in service.list_logs_for(caller, order_number)]

    @app.post("/logs", status_code=201)
    def create_log(body: CreateLogRequest, caller: CallerContext = Depends(get_caller)):
        entry = service.create_log(
            caller, body.order_number, body.sector, body.description, body.date
        )
        return entry.to_dict()

    @app.delete("/logs/{log_id}")
    def delete_log(log_id: str, caller: CallerContext = Depends(get_caller)):
        service.delete_log(caller, log_id)
        return {"deleted": log_id}

    @app.post("/logs/rename")
    def rename_logs(body: RenameLogsRequest, caller: CallerContext = Depends(get_caller)):
        renamed = service.rename_logs(caller, body.old_order_number, body.new_order_number)
        return {"renamed": renamed}

    @app.post("/sweep/run")
    def trigger_sweep(caller: CallerContext = Depends(get_caller)):
        require(caller, Action.RUN_SWEEP)
        return run_sweep(service).to_dict()

    return app


def main() -> None:  # pragma: no cover - process entry point
    import uvicorn

    settings = Settings.from_env()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=8000)


if __name__ == "__main__":  # pragma: no cover
    main()
