from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine, select

from jalrakshak import main as app_main
from jalrakshak.domain.models import EventRecord, SensorSnapshot
from jalrakshak.infra import audit, db, events, redis_state
from jalrakshak.services.alert_service import AlertService


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
def alert_client(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> Generator[TestClient, None, None]:
    db_path = tmp_path / "alert_test.db"
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


def _setup(client: TestClient, name: str) -> tuple[str, str, str]:
    utility_id = client.post("/api/identity/utilities", json={"name": name}).json()["id"]
    client.post(
        "/api/identity/bootstrap-admin",
        json={"utility_id": utility_id, "email": "admin@alerts.in", "password": "admin-pass"},
    )
    client.post(
        "/api/identity/register",
        json={"utility_id": utility_id, "email": "citizen@alerts.in", "password": "citizen-pass"},
    )
    admin = client.post(
        "/api/identity/login",
        json={"utility_id": utility_id, "email": "admin@alerts.in", "password": "admin-pass"},
    ).json()["access_token"]
    citizen = client.post(
        "/api/identity/login",
        json={"utility_id": utility_id, "email": "citizen@alerts.in", "password": "citizen-pass"},
    ).json()["access_token"]
    return utility_id, admin, citizen


def _pressure(value: float) -> dict[str, object]:
    return {
        "sensor_id": "PRESS_001",
        "sensor_type": "pressure",
        "value": value,
        "unit": "bar",
        "location": "Pump House",
    }


def test_low_pressure_raises_alert_and_lifecycle(alert_client: TestClient) -> None:
    _, admin, citizen = _setup(alert_client, "alert-scheme")

    ingest = alert_client.post("/api/sensors/readings", json=_pressure(2.4), headers=_auth_header(admin))
    assert ingest.status_code == 201
    assert ingest.json()["status"] == "critical"

    alerts = alert_client.get("/api/alert/alerts", headers=_auth_header(citizen)).json()
    assert len(alerts) == 1
    alert = alerts[0]
    assert alert["alert_type"] == "critical"
    assert alert["title"] == "Low System Pressure Detected"
    assert alert["source"] == "Pressure Sensor P1"
    assert alert["current_value"] == 2.4
    assert alert["threshold_value"] == 3.0
    assert alert["location"] == "Pump House"
    assert alert["severity_score"] == 3
    assert alert["actions"]

    citizen_ack = alert_client.post(
        f"/api/alert/alerts/{alert['id']}/acknowledge",
        headers=_auth_header(citizen),
    )
    assert citizen_ack.status_code == 403

    acked = alert_client.post(f"/api/alert/alerts/{alert['id']}/acknowledge", headers=_auth_header(admin))
    assert acked.status_code == 200
    assert acked.json()["acknowledged"] is True
    assert acked.json()["acknowledged_by"] is not None
    assert acked.json()["resolved"] is False

    resolved = alert_client.post(f"/api/alert/alerts/{alert['id']}/resolve", headers=_auth_header(admin))
    assert resolved.status_code == 200
    assert resolved.json()["resolved"] is True
    assert resolved.json()["resolved_at"] is not None

    again = alert_client.post(f"/api/alert/alerts/{alert['id']}/acknowledge", headers=_auth_header(admin))
    assert again.status_code == 409

    summary = alert_client.get("/api/alert/alerts/summary", headers=_auth_header(citizen)).json()
    assert summary == {"critical_active": 0, "warning_active": 0, "total_active": 0, "resolved": 1}


def test_repeated_breach_refreshes_instead_of_duplicating(alert_client: TestClient) -> None:
    _, admin, citizen = _setup(alert_client, "dedupe-scheme")
    alert_client.post("/api/sensors/readings", json=_pressure(2.8), headers=_auth_header(admin))
    alert_client.post("/api/sensors/readings", json=_pressure(2.2), headers=_auth_header(admin))

    alerts = alert_client.get("/api/alert/alerts", params={"resolved": False}, headers=_auth_header(citizen)).json()
    assert len(alerts) == 1
    assert alerts[0]["current_value"] == 2.2
    assert "2.2 bar" in alerts[0]["description"]

    alert_client.post(f"/api/alert/alerts/{alerts[0]['id']}/resolve", headers=_auth_header(admin))
    alert_client.post("/api/sensors/readings", json=_pressure(2.0), headers=_auth_header(admin))
    all_alerts = alert_client.get("/api/alert/alerts", headers=_auth_header(citizen)).json()
    assert len(all_alerts) == 2
    assert [item["resolved"] for item in all_alerts] == [False, True]


def test_filters_manual_alert_and_not_found(alert_client: TestClient) -> None:
    _, admin, citizen = _setup(alert_client, "manual-scheme")
    alert_client.post(
        "/api/sensors/readings",
        json={"sensor_id": "QUAL_001", "sensor_type": "quality", "value": 82.0, "unit": "%", "location": "Tank"},
        headers=_auth_header(admin),
    )
    manual = alert_client.post(
        "/api/alert/alerts",
        json={
            "alert_type": "info",
            "title": "Filter cleaning due",
            "description": "Scheduled filter cleaning tomorrow",
            "source": "Maintenance System",
        },
        headers=_auth_header(admin),
    )
    assert manual.status_code == 201
    assert manual.json()["severity_score"] == 1

    warnings = alert_client.get(
        "/api/alert/alerts",
        params={"alert_type": "warning"},
        headers=_auth_header(citizen),
    ).json()
    assert [item["title"] for item in warnings] == ["Water Quality Below Standard"]

    summary = alert_client.get("/api/alert/alerts/summary", headers=_auth_header(citizen)).json()
    assert summary["warning_active"] == 1
    assert summary["total_active"] == 2

    missing = alert_client.get("/api/alert/alerts/does-not-exist", headers=_auth_header(citizen))
    assert missing.status_code == 404
    missing_resolve = alert_client.post("/api/alert/alerts/does-not-exist/resolve", headers=_auth_header(admin))
    assert missing_resolve.status_code == 404


def test_evaluate_snapshot_publishes_alert_events(alert_client: TestClient) -> None:
    utility_id, _, _ = _setup(alert_client, "service-scheme")
    service = AlertService()

    first = service.evaluate_snapshot(utility_id, SensorSnapshot(water_flow=20.0, ph=5.9), location="Ward 1")
    second = service.evaluate_snapshot(utility_id, SensorSnapshot(water_flow=21.0, ph=5.9))

    assert {item.sensor_id for item in first.created} == {"FLOW_001", "PH_001"}
    assert first.refreshed == []
    assert second.created == []
    assert {item.current_value for item in second.refreshed} == {21.0, 5.9}

    with Session(db.engine) as session:
        rows = session.exec(
            select(EventRecord)
            .where(EventRecord.utility_id == utility_id)
            .where(EventRecord.event_type == "alert.created")
        ).all()
    assert len(rows) == 2
