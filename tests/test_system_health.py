from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine, select

from jalrakshak import main as app_main
from jalrakshak.domain.models import EventRecord
from jalrakshak.infra import audit, db, events, redis_state


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
def health_client(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> Generator[TestClient, None, None]:
    db_path = tmp_path / "system_health_test.db"
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
    utility_id = client.post("/api/identity/utilities", json={"name": "health-scheme"}).json()["id"]
    client.post(
        "/api/identity/bootstrap-admin",
        json={"utility_id": utility_id, "email": "admin@h.in", "password": "admin-pass"},
    )
    client.post(
        "/api/identity/register",
        json={"utility_id": utility_id, "email": "resident@h.in", "password": "citizen-pass"},
    )
    tokens = []
    for email, password in (("admin@h.in", "admin-pass"), ("resident@h.in", "citizen-pass")):
        response = client.post(
            "/api/identity/login",
            json={"utility_id": utility_id, "email": email, "password": password},
        )
        tokens.append(response.json()["access_token"])
    return tokens[0], tokens[1]


def test_ping_upserts_component(health_client: TestClient) -> None:
    admin_token, _ = _tokens(health_client)
    headers = _auth_header(admin_token)

    first = health_client.post(
        "/api/system-health/components/ping",
        json={
            "component": "solar_pump",
            "status": "online",
            "uptime_percentage": 99.5,
            "location": "Pump house",
            "metadata": {"panel_voltage": 48},
        },
        headers=headers,
    )
    assert first.status_code == 200
    assert first.json()["error_count"] == 0

    failed = health_client.post(
        "/api/system-health/components/ping",
        json={"component": "solar_pump", "status": "error", "metadata": {"fault": "inverter"}},
        headers=headers,
    )
    assert failed.status_code == 200
    body = failed.json()
    assert body["id"] == first.json()["id"]
    assert body["status"] == "error"
    assert body["error_count"] == 1
    assert body["uptime_percentage"] == 99.5
    assert body["location"] == "Pump house"
    assert body["metadata"] == {"panel_voltage": 48, "fault": "inverter"}

    health_client.post(
        "/api/system-health/components/ping",
        json={"component": "flow_gateway", "status": "online"},
        headers=headers,
    )
    listed = health_client.get("/api/system-health/components", headers=headers).json()
    assert [item["component"] for item in listed] == ["flow_gateway", "solar_pump"]

    fetched = health_client.get("/api/system-health/components/solar_pump", headers=headers)
    assert fetched.status_code == 200
    assert fetched.json()["status"] == "error"

    missing = health_client.get("/api/system-health/components/unknown", headers=headers)
    assert missing.status_code == 404

    with Session(db.engine) as session:
        changes = session.exec(
            select(EventRecord).where(EventRecord.event_type == "system_health.status_changed")
        ).all()
    # solar_pump: new -> online -> error, flow_gateway: new -> online
    assert len(changes) == 3


def test_citizen_cannot_read_or_ping(health_client: TestClient) -> None:
    _, citizen_token = _tokens(health_client)
    headers = _auth_header(citizen_token)

    assert health_client.get("/api/system-health/components", headers=headers).status_code == 403
    ping = health_client.post(
        "/api/system-health/components/ping",
        json={"component": "solar_pump", "status": "online"},
        headers=headers,
    )
    assert ping.status_code == 403


def test_ping_rejects_invalid_uptime(health_client: TestClient) -> None:
    admin_token, _ = _tokens(health_client)
    response = health_client.post(
        "/api/system-health/components/ping",
        json={"component": "solar_pump", "status": "online", "uptime_percentage": 120},
        headers=_auth_header(admin_token),
    )
    assert response.status_code == 422
