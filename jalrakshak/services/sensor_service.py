from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlmodel import Session, col, select

from jalrakshak.domain.models import (
    ConsumptionPoint,
    ReadingStatus,
    SensorReading,
    SensorReadingCreate,
    SensorSnapshot,
    SensorType,
    now_utc,
)
from jalrakshak.domain.thresholds import SNAPSHOT_FIELD_BY_TYPE, classify_reading
from jalrakshak.infra import redis_state
from jalrakshak.infra.db import get_engine
from jalrakshak.infra.events import event_log
from jalrakshak.services.alert_service import AlertEvaluation, AlertService

logger = logging.getLogger(__name__)

LATEST_READINGS_LIMIT = 50
READINGS_BY_TYPE_LIMIT = 100
HEALTH_SAMPLE_SIZE = 100


def _as_utc(value: datetime) -> datetime:
    # SQLite hands timestamps back naive; they are stored as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class SensorError(Exception):
    pass


@dataclass
class IngestResult:
    readings: list[SensorReading]
    snapshot: SensorSnapshot
    alerts: AlertEvaluation


class SensorService:
    def __init__(self, *, alert_service: AlertService | None = None) -> None:
        self._alert_service = alert_service or AlertService()

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    @staticmethod
    def _build_reading(utility_id: str, payload: SensorReadingCreate) -> SensorReading:
        return SensorReading(
            utility_id=utility_id,
            sensor_id=payload.sensor_id,
            sensor_type=payload.sensor_type,
            value=payload.value,
            unit=payload.unit,
            location=payload.location,
            timestamp=_as_utc(payload.timestamp) if payload.timestamp is not None else now_utc(),
            status=payload.status or classify_reading(payload.sensor_type, payload.value),
            device_id=payload.device_id,
            battery_level=payload.battery_level,
            signal_strength=payload.signal_strength,
        )

    @staticmethod
    def _apply_reading(snapshot: SensorSnapshot, reading: SensorReading) -> SensorSnapshot:
        field_name = SNAPSHOT_FIELD_BY_TYPE[SensorType(reading.sensor_type)]
        observed = _as_utc(reading.timestamp)
        current = snapshot.observed_at.get(field_name)
        if current is not None and _as_utc(current) > observed:
            return snapshot
        updated_at = snapshot.updated_at
        if updated_at is None or _as_utc(updated_at) < observed:
            updated_at = observed
        return snapshot.model_copy(
            update={
                field_name: reading.value,
                "updated_at": updated_at,
                "observed_at": {**snapshot.observed_at, field_name: observed},
            }
        )

    def insert_readings(
        self,
        utility_id: str,
        payloads: list[SensorReadingCreate],
        *,
        actor_id: str | None = None,
    ) -> IngestResult:
        if not payloads:
            raise SensorError("no readings supplied")
        with self._session() as session:
            readings = [self._build_reading(utility_id, item) for item in payloads]
            for reading in readings:
                session.add(reading)
            session.commit()
            for reading in readings:
                session.refresh(reading)

        snapshot = self.live_snapshot(utility_id)
        for reading in sorted(readings, key=lambda item: _as_utc(item.timestamp)):
            snapshot = self._apply_reading(snapshot, reading)
        try:
            redis_state.store_snapshot(utility_id, snapshot)
        except Exception:
            logger.warning("could not cache live snapshot for utility %s", utility_id, exc_info=True)

        for reading in readings:
            event_log.record(
                "sensor.reading_inserted",
                utility_id,
                {
                    "reading_id": reading.id,
                    "sensor_id": reading.sensor_id,
                    "sensor_type": reading.sensor_type,
                    "value": reading.value,
                    "status": reading.status,
                },
                actor_id=actor_id,
            )

        alerts = self._alert_service.evaluate_snapshot(utility_id, snapshot, location=readings[-1].location)
        return IngestResult(readings=readings, snapshot=snapshot, alerts=alerts)

    def insert_reading(
        self,
        utility_id: str,
        payload: SensorReadingCreate,
        *,
        actor_id: str | None = None,
    ) -> IngestResult:
        return self.insert_readings(utility_id, [payload], actor_id=actor_id)

    def latest_readings(self, utility_id: str, *, limit: int = LATEST_READINGS_LIMIT) -> list[SensorReading]:
        with self._session() as session:
            statement = (
                select(SensorReading)
                .where(SensorReading.utility_id == utility_id)
                .order_by(col(SensorReading.timestamp).desc())
                .limit(limit)
            )
            return list(session.exec(statement).all())

    def readings_by_type(
        self,
        utility_id: str,
        sensor_type: SensorType,
        *,
        limit: int = READINGS_BY_TYPE_LIMIT,
    ) -> list[SensorReading]:
        with self._session() as session:
            statement = (
                select(SensorReading)
                .where(SensorReading.utility_id == utility_id)
                .where(SensorReading.sensor_type == sensor_type)
                .order_by(col(SensorReading.timestamp).desc())
                .limit(limit)
            )
            return list(session.exec(statement).all())

    def rebuild_snapshot(self, utility_id: str) -> SensorSnapshot:
        snapshot = SensorSnapshot()
        for reading in self.latest_readings(utility_id):
            snapshot = self._apply_reading(snapshot, reading)
        return snapshot

    def live_snapshot(self, utility_id: str) -> SensorSnapshot:
        try:
            cached = redis_state.load_snapshot(utility_id)
        except Exception:
            logger.warning("live snapshot cache unavailable for utility %s", utility_id, exc_info=True)
            cached = None
        if cached is not None:
            return cached
        return self.rebuild_snapshot(utility_id)

    def consumption_analytics(self, utility_id: str, *, days: int = 7) -> list[ConsumptionPoint]:
        since = now_utc() - timedelta(days=days)
        with self._session() as session:
            statement = (
                select(SensorReading)
                .where(SensorReading.utility_id == utility_id)
                .where(SensorReading.sensor_type == SensorType.FLOW)
                .where(SensorReading.timestamp >= since)
                .order_by(col(SensorReading.timestamp).asc())
            )
            rows = list(session.exec(statement).all())
        return [ConsumptionPoint(value=row.value, timestamp=row.timestamp) for row in rows]

    def sensor_type_health(self, utility_id: str) -> dict[str, str]:
        health: dict[str, str] = {}
        for reading in self.latest_readings(utility_id, limit=HEALTH_SAMPLE_SIZE):
            key = SensorType(reading.sensor_type).value
            if key not in health:
                health[key] = ReadingStatus(reading.status).value
        return health
