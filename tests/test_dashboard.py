from __future__ import annotations

from collections.abc import Generator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel, create_engine

from jalrakshak import main as app_main
from jalrakshak.domain.models import ReadingStatus, SensorSnapshot
from jalrakshak.infra import audit, db, events, redis_state
from jalrakshak.services.dashboard_service import build_metrics


class FakeRedis:
    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    def set(self, key: str, value: str) -> bool:
        self._store[key] = value
        return True

    def get(self, key: str) -> str | None:
        return self._store.get(key)

    def ping(self) -> bool:
        return True


@pytest.fixture()
def dashboard_client(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> Generator[TestClient, None, None]:
    db_path = tmp_path / "dashboard_test.db"
    test_engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )
    SQLModel.metadata.create_all(test_engine)
    fake_redis = FakeRedis()

    monkeypatch.setattr(db, "engine", test_engine)
    monkeypatch.setattr(audit, "engine", test_engine)
    monkeypatch.setattr(events, "engine", test_engine)
    monkeypatch.setattr(redis_state, "get_redis", lambda: fake_redis)

    client = TestClient(app_main.app)
    yield client
    client.close()


def _auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _tokens(client: TestClient) -> tuple[str, str]:
    utility_id = client.post("/api/identity/utilities", json={"name": "dashboard-scheme"}).json()["id"]
    client.post(
        "/api/identity/bootstrap-admin",
        json={"utility_id": utility_id, "email": "admin@d.in", "password": "admin-pass"},
    )
    client.post(
        "/api/identity/register",
        json={"utility_id": utility_id, "email": "resident@d.in", "password": "citizen-pass"},
    )
    tokens = []
    for email, password in (("admin@d.in", "admin-pass"), ("resident@d.in", "citizen-pass")):
        response = client.post(
            "/api/identity/login",
            json={"utility_id": utility_id, "email": email, "password": password},
        )
        tokens.append(response.json()["access_token"])
    return tokens[0], tokens[1]


def test_build_metrics_statuses() -> None:
    metrics = build_metrics(
        SensorSnapshot(water_flow=40.0, pressure=3.0, quality=90.0, temperature=26.123, ph=9.1)
    )
    by_key = {item.key: item for item in metrics}

    # Cards stay normal only strictly above their cutoffs.
    assert by_key["water_flow"].status == ReadingStatus.WARNING
    assert by_key["pressure"].status == ReadingStatus.CRITICAL
    assert by_key["quality"].status == ReadingStatus.WARNING
    assert by_key["temperature"].value == 26.12
    assert by_key["temperature"].unit == "°C"
    assert by_key["ph"].status == ReadingStatus.NORMAL
    assert by_key["solar_pump_status"].value == "active"
    assert [item.key for item in metrics] == [
        "water_flow",
        "pressure",
        "quality",
        "temperature",
        "ph",
        "turbidity",
        "solar_pump_status",
    ]


def test_metrics_default_snapshot_is_normal(dashboard_client: TestClient) -> None:
    _, citizen_token = _tokens(dashboard_client)
    response = dashboard_client.get("/api/dashboard/metrics", headers=_auth_header(citizen_token))
    assert response.status_code == 200
    assert {item["status"] for item in response.json()} == {"normal"}


def test_overview_counts(dashboard_client: TestClient) -> None:
    admin_token, citizen_token = _tokens(dashboard_client)
    admin = _auth_header(admin_token)

    dashboard_client.post(
        "/api/sensors/readings",
        json={
            "sensor_id": "PRESS_001",
            "sensor_type": "pressure",
            "value": 2.6,
            "unit": "bar",
            "location": "Main Distribution",
        },
        headers=admin,
    )
    dashboard_client.post(
        "/api/sensors/readings",
        json={
            "sensor_id": "FLOW_001",
            "sensor_type": "flow",
            "value": 50.0,
            "unit": "L/min",
            "location": "Main Distribution",
        },
        headers=admin,
    )

    open_complaint = dashboard_client.post(
        "/api/complaint/complaints",
        data={"description": "Low pressure at tap", "location": "Ward 2"},
        headers=_auth_header(citizen_token),
    ).json()
    closed_complaint = dashboard_client.post(
        "/api/complaint/complaints",
        data={"description": "Meter leaking", "location": "Ward 5"},
        headers=_auth_header(citizen_token),
    ).json()
    dashboard_client.patch(
        f"/api/complaint/complaints/{closed_complaint['id']}/status",
        json={"status": "resolved"},
        headers=admin,
    )
    assert open_complaint["status"] == "pending"

    today = datetime.now(UTC).date()
    for task, days in (("Overdue valve check", -3), ("Upcoming tank clean", 4), ("Done already", -10)):
        created = dashboard_client.post(
            "/api/maintenance/tasks",
            json={"task": task, "due_date": (today + timedelta(days=days)).isoformat(), "location": "Plant"},
            headers=admin,
        ).json()
        if task == "Done already":
            dashboard_client.post(f"/api/maintenance/tasks/{created['id']}/complete", headers=admin)

    response = dashboard_client.get("/api/dashboard/overview", headers=_auth_header(citizen_token))
    assert response.status_code == 200
    body = response.json()
    assert body["snapshot"]["pressure"] == 2.6
    assert body["snapshot"]["water_flow"] == 50.0
    assert body["alerts"]["critical_active"] == 1
    assert body["open_complaints"] == 1
    assert body["pending_maintenance"] == 2
    assert body["overdue_maintenance"] == 1
    assert body["sensor_health"] == {"flow": "normal", "pressure": "critical"}
    metrics = {item["key"]: item for item in body["metrics"]}
    assert metrics["pressure"]["status"] == "critical"


def test_dashboard_websocket_pushes_overview(dashboard_client: TestClient) -> None:
    _, citizen_token = _tokens(dashboard_client)
    with dashboard_client.websocket_connect(f"/ws/dashboard?token={citizen_token}") as websocket:
        payload = websocket.receive_json()
    assert payload["open_complaints"] == 0
    assert payload["alerts"]["total_active"] == 0
