import pathlib
import sys
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from workorder_flow.config import Settings
from workorder_flow.domain import CallerContext, OrderStatus
from workorder_flow.services import WorkOrderService
from workorder_flow.web.app import create_app
from workorder_flow.web.auth import issue_token

JWT_SECRET = "jwt_test_secret"

PCP = CallerContext(id="1", role="PCP")
ADMIN = CallerContext(id="2", role="ADMIN")
ELECTRICAL = CallerContext(id="3", role="Electrical")
MECHANICAL = CallerContext(id="4", role="Mechanical")
TEST_SECTOR = CallerContext(id="5", role="Test")
ASSEMBLY = CallerContext(id="6", role="Assembly")
WAREHOUSE = CallerContext(id="7", role="Warehouse")

BASE_TIME = datetime(2024, 5, 6, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def service() -> WorkOrderService:
    return WorkOrderService()


@pytest.fixture
def make_order(service):
    counter = {"n": 0}

    def _make(
        order_number,
        routing=("Electrical", "Mechanical", "Test"),
        status=OrderStatus.IN_PROGRESS,
        current_sector="__first__",
    ):
        counter["n"] += 1
        if current_sector == "__first__":
            current_sector = routing[0]
        return service.create_order(
            PCP,
            order_number,
            part_name="Housing",
            part_number=f"PN-{order_number}",
            quantity=10,
            routing=list(routing),
            status=status,
            current_sector=current_sector,
            created_at=BASE_TIME + timedelta(minutes=counter["n"]),
        )

    return _make


class AuthenticatedClient:
    """Wraps TestClient and signs every request as the given caller."""

    def __init__(self, client: TestClient, *, jwt_secret: str):
        self._client = client
        self._jwt_secret = jwt_secret

    def as_caller(self, caller: CallerContext) -> dict:
        token = issue_token(caller, self._jwt_secret)
        return {"Authorization": f"Bearer {token}"}

    def request(self, method: str, url: str, caller: CallerContext = PCP, **kwargs):
        headers = dict(kwargs.pop("headers", {}) or {})
        if "Authorization" not in headers:
            headers.update(self.as_caller(caller))
        return self._client.request(method, url, headers=headers, **kwargs)

    def get(self, url: str, caller: CallerContext = PCP, **kwargs):
        return self.request("GET", url, caller, **kwargs)

    def post(self, url: str, caller: CallerContext = PCP, **kwargs):
        return self.request("POST", url, caller, **kwargs)

    def patch(self, url: str, caller: CallerContext = PCP, **kwargs):
        return self.request("PATCH", url, caller, **kwargs)

    def delete(self, url: str, caller: CallerContext = PCP, **kwargs):
        return self.request("DELETE", url, caller, **kwargs)

    @property
    def raw(self) -> TestClient:
        return self._client


@pytest.fixture
def settings() -> Settings:
    return Settings(jwt_secret=JWT_SECRET, sweep_enabled=False, default_page_size=2)


@pytest.fixture
def client(settings) -> AuthenticatedClient:
    service = WorkOrderService(
        policy=settings.visibility_policy(),
        default_page_size=settings.default_page_size,
        max_page_size=settings.max_page_size,
    )
    app = create_app(settings, service=service)
    return AuthenticatedClient(TestClient(app), jwt_secret=JWT_SECRET)
