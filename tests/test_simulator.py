from __future__ import annotations

import asyncio
import logging
from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel, create_engine

from jalrakshak import main as app_main
from jalrakshak.adapters.sensor_simulator import SIMULATED_SENSORS, SensorSimulator
from jalrakshak.domain.models import SensorSnapshot, SensorType
from jalrakshak.infra import audit, db, events, redis_state
from jalrakshak.services.simulation_service import SimulationService


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
def simulation_client(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> Generator[TestClient, None, None]:
    db_path = tmp_path / "simulation_test.db"
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


def test_simulator_stream_stays_in_range() -> None:
    simulator = SensorSimulator(
        interval_seconds=0,
        max_samples=200,
        seed=7,
        initial=SensorSnapshot(quality=99.5, ph=8.45),
    )

    async def _collect() -> list[SensorSnapshot]:
        return [item async for item in simulator.start_stream()]

    samples = asyncio.run(_collect())
    assert len(samples) == 200
    assert simulator.tick == 200
    for sample in samples:
        assert 85.0 <= sample.quality <= 100.0
        assert 6.5 <= sample.ph <= 8.5
        assert sample.pressure >= 0.0
        assert sample.turbidity >= 0.0
        assert sample.solar_pump_status == "active"
        assert sample.updated_at is not None


def test_simulator_is_repeatable_with_seed() -> None:
    first = SensorSimulator(interval_seconds=0, seed=42)
    second = SensorSimulator(interval_seconds=0, seed=42)
    for _ in range(5):
        a, b = first.step(), second.step()
        assert (a.water_flow, a.pressure, a.ph) == (b.water_flow, b.pressure, b.ph)


def test_triggers_pin_values_outside_thresholds() -> None:
    simulator = SensorSimulator(interval_seconds=0, seed=1)
    simulator.set_trigger(low_pressure=True, low_flow=True, poor_quality=True, ph_drift=True)
    snapshot = simulator.step()
    assert snapshot.pressure <= 2.5
    assert snapshot.water_flow <= 30.0
    assert snapshot.quality <= 86.0
    assert snapshot.ph == 9.0

    simulator.clear_triggers()
    recovered = simulator.step()
    # Without the pin, pH is clamped back into the safe band.
    assert recovered.ph == 8.5


def test_to_readings_covers_every_sensor() -> None:
    simulator = SensorSimulator(interval_seconds=0, seed=3, location="Tank T1")
    snapshot = simulator.step()
    readings = simulator.to_readings(snapshot)

    assert [item.sensor_id for item in readings] == [sensor.sensor_id for sensor in SIMULATED_SENSORS]
    by_type = {item.sensor_type: item for item in readings}
    assert by_type[SensorType.PRESSURE].value == snapshot.pressure
    assert by_type[SensorType.FLOW].unit == "L/min"
    assert by_type[SensorType.TURBIDITY].value == snapshot.turbidity
    assert all(item.location == "Tank T1" for item in readings)
    assert all(item.timestamp == snapshot.updated_at for item in readings)
    assert all(item.device_id == f"SIM-{item.sensor_id}" for item in readings)


def test_simulate_endpoint_ingests_and_raises_alerts(simulation_client: TestClient) -> None:
    utility_id = simulation_client.post("/api/identity/utilities", json={"name": "sim-scheme"}).json()["id"]
    simulation_client.post(
        "/api/identity/bootstrap-admin",
        json={"utility_id": utility_id, "email": "admin@sim.in", "password": "admin-pass"},
    )
    simulation_client.post(
        "/api/identity/register",
        json={"utility_id": utility_id, "email": "resident@sim.in", "password": "citizen-pass"},
    )
    admin_token = simulation_client.post(
        "/api/identity/login",
        json={"utility_id": utility_id, "email": "admin@sim.in", "password": "admin-pass"},
    ).json()["access_token"]
    citizen_token = simulation_client.post(
        "/api/identity/login",
        json={"utility_id": utility_id, "email": "resident@sim.in", "password": "citizen-pass"},
    ).json()["access_token"]

    forbidden = simulation_client.post(
        "/api/sensors/simulate",
        json={"ticks": 1},
        headers=_auth_header(citizen_token),
    )
    assert forbidden.status_code == 403

    drifted = simulation_client.post(
        "/api/sensors/simulate",
        json={"ticks": 2, "low_pressure": True, "ph_drift": True},
        headers=_auth_header(admin_token),
    )
    assert drifted.status_code == 200
    body = drifted.json()
    assert body["ticks"] == 2
    assert body["readings"] == 12
    # The second tick refreshes the alerts raised by the first.
    assert body["alerts_created"] == 2
    assert body["snapshot"]["pressure"] <= 2.5
    assert body["snapshot"]["ph"] == 9.0

    summary = simulation_client.get("/api/alert/alerts/summary", headers=_auth_header(admin_token)).json()
    assert summary["critical_active"] == 1
    assert summary["warning_active"] == 1

    readings = simulation_client.get(
        "/api/sensors/readings",
        params={"limit": 50},
        headers=_auth_header(admin_token),
    ).json()
    assert len(readings) == 12

    too_many = simulation_client.post(
        "/api/sensors/simulate",
        json={"ticks": 500},
        headers=_auth_header(admin_token),
    )
    assert too_many.status_code == 422


class RecordingSensorService:
    def __init__(self, fail_on_call: int) -> None:
        self.batches: list[list] = []
        self._fail_on_call = fail_on_call

    def insert_readings(self, utility_id: str, readings: list) -> dict:
        self.batches.append(readings)
        if len(self.batches) == self._fail_on_call:
            raise RuntimeError("database unavailable")
        return {"utility_id": utility_id, "count": len(readings)}

    def live_snapshot(self, utility_id: str) -> SensorSnapshot:
        return SensorSnapshot()


def test_run_forever_ingests_each_tick_and_survives_failures(caplog: pytest.LogCaptureFixture) -> None:
    sensor_service = RecordingSensorService(fail_on_call=2)
    service = SimulationService(sensor_service=sensor_service)  # type: ignore[arg-type]
    service._simulators["utility-a"] = SensorSimulator(interval_seconds=0, max_samples=3, seed=11)
    ingested: list[tuple[str, dict]] = []

    async def _on_ingest(utility_id: str, result: dict) -> None:
        ingested.append((utility_id, result))

    with caplog.at_level(logging.ERROR, logger="jalrakshak.services.simulation_service"):
        asyncio.run(service.run_forever("utility-a", on_ingest=_on_ingest))

    assert len(sensor_service.batches) == 3
    for batch in sensor_service.batches:
        assert [item.sensor_id for item in batch] == [sensor.sensor_id for sensor in SIMULATED_SENSORS]
    assert ingested == [
        ("utility-a", {"utility_id": "utility-a", "count": len(SIMULATED_SENSORS)}),
        ("utility-a", {"utility_id": "utility-a", "count": len(SIMULATED_SENSORS)}),
    ]
    assert "simulation tick 2 failed for utility utility-a" in caplog.text
