import jwt

from conftest import ASSEMBLY, ELECTRICAL, JWT_SECRET, MECHANICAL, PCP, WAREHOUSE


def _create(client, number, routing=("Electrical", "Mechanical", "Test"), **extra):
    body = {
        "order_number": number,
        "part_name": "Control cabinet",
        "part_number": f"CC-{number}",
        "quantity": 10,
        "routing": [{"sector": sector} for sector in routing],
        "status": "In Production",
        "current_sector": routing[0],
    }
    body.update(extra)
    return client.post("/os", json=body)


def test_health_needs_no_token(client):
    response = client.raw.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_missing_token_is_401_and_bad_token_is_403(client):
    assert client.raw.get("/os").status_code == 401
    bad = client.raw.get("/os", headers={"Authorization": "Bearer not-a-token"})
    assert bad.status_code == 403
    assert bad.json()["error"]["code"] == "FORBIDDEN"


def test_token_without_role_is_rejected(client):
    token = jwt.encode({"id": "9"}, JWT_SECRET, algorithm="HS256")

    response = client.raw.get("/os", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 403


def test_order_lifecycle_over_http(client):
    created = _create(client, "1001")
    assert created.status_code == 201
    assert created.json()["status"] == "In Production"

    reported = client.post(
        "/os/1001/production",
        caller=ELECTRICAL,
        json={"quantity": 10, "defective_quantity": 0, "operator_name": "Ana"},
    )
    assert reported.status_code == 200
    assert reported.json()["pending_sector"] == "Electrical"

    approved = client.post("/os/1001/validation", json={"approved": True})
    assert approved.json()["current_sector"] == "Mechanical"

    client.post(
        "/os/1001/production",
        caller=MECHANICAL,
        json={"quantity": 9, "defective_quantity": 1, "operator_name": "Bruno"},
    )
    rejected = client.post("/os/1001/validation", json={"approved": False})
    assert rejected.json()["status"] == "Reproved"

    finalized = client.post("/os/1001/finalize")
    assert finalized.json()["status"] == "Finalized"
    assert finalized.json()["current_sector"] is None

    logs = client.get("/logs/1001").json()
    assert len(logs) == 6
    assert logs[0]["description"].startswith("Order finalized")


def test_error_envelope_and_status_codes(client):
    _create(client, "2001")

    forbidden = client.post(
        "/os/2001/production",
        json={"quantity": 1, "defective_quantity": 0, "operator_name": "Planner"},
    )
    assert forbidden.status_code == 403

    invalid = client.post("/os/2001/validation", json={"approved": True})
    assert invalid.status_code == 409
    assert invalid.json()["error"]["code"] == "INVALID_STATE"

    missing = client.post("/os/nope/finalize")
    assert missing.status_code == 404

    blank = client.post(
        "/os/2001/production",
        caller=ELECTRICAL,
        json={"quantity": 1, "defective_quantity": 0, "operator_name": " "},
    )
    assert blank.status_code == 422
    assert blank.json()["error"]["code"] == "VALIDATION_ERROR"

    duplicate = _create(client, "2001")
    assert duplicate.status_code == 409


def test_sector_listing_returns_page_envelope(client):
    for number in ("A", "B", "C"):
        _create(client, number, routing=("Mechanical", "Assembly"))
    _create(client, "D", routing=("Test", "Assembly"))

    response = client.get("/os/sector", caller=ASSEMBLY, params={"page": 2})

    body = response.json()
    assert response.status_code == 200
    assert body["page"] == 2
    assert body["limit"] == 2
    assert body["total"] == 3
    assert body["totalPages"] == 2
    assert [order["order_number"] for order in body["data"]] == ["C"]


def test_list_all_is_filtered_for_sector_roles(client):
    _create(client, "E-1")
    _create(client, "M-1", routing=("Mechanical",))

    assert len(client.get("/os", caller=WAREHOUSE).json()) == 2
    assert [order["order_number"] for order in client.get("/os", caller=ELECTRICAL).json()] == [
        "E-1"
    ]
    assert client.get("/os/M-1", caller=ELECTRICAL).status_code == 403


def test_patch_rejects_unknown_fields(client):
    _create(client, "P-1")

    unknown = client.patch("/os/P-1", json={"routing": []})
    assert unknown.status_code == 422

    paused = client.patch("/os/P-1", json={"status": "Paused"})
    assert paused.json()["status"] == "Paused"


def test_delete_keeps_logs_and_rename_repoints_them(client):
    _create(client, "X-1")

    assert client.delete("/os/X-1").status_code == 200
    assert client.get("/os/X-1").status_code == 404
    assert len(client.get("/logs/X-1").json()) == 2

    renamed = client.post(
        "/logs/rename", json={"old_order_number": "X-1", "new_order_number": "X-2"}
    )
    assert renamed.json() == {"renamed": 2}
    assert len(client.get("/logs/X-2").json()) == 2


def test_manual_log_entries(client):
    created = client.post(
        "/logs",
        caller=ELECTRICAL,
        json={
            "order_number": "7",
            "sector": "Electrical",
            "description": "Waiting for cables",
            "date": 1714989600000,
        },
    )
    assert created.status_code == 201
    assert created.json()["date"] == "2024-05-06T10:00:00+00:00"

    incomplete = client.post("/logs", json={"order_number": "7", "sector": "Electrical"})
    assert incomplete.status_code == 422

    entry_id = created.json()["id"]
    assert client.delete(f"/logs/{entry_id}", caller=ELECTRICAL).status_code == 403
    assert client.delete(f"/logs/{entry_id}").status_code == 200
    assert client.get("/logs").json() == []


def test_manual_sweep_trigger(client):
    _create(client, "S-1")
    _create(client, "S-2")

    assert client.post("/sweep/run", caller=ELECTRICAL).status_code == 403
    result = client.post("/sweep/run").json()

    assert sorted(result["paused"]) == ["S-1", "S-2"]
    assert result["logged"] == 2
    assert client.get("/os/S-1").json()["status"] == "Paused"


def test_null_priority_patch_is_a_validation_error(client):
    _create(client, "P-2")

    response = client.patch("/os/P-2", json={"priority": None})

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_cors_preflight_is_answered(client):
    response = client.raw.options(
        "/os",
        headers={"Origin": "http://shop.local", "Access-Control-Request-Method": "GET"},
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
