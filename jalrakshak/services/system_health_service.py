from __future__ import annotations

from sqlmodel import Session, col, select

from jalrakshak.domain.models import (
    ComponentStatus,
    SystemHealth,
    SystemHealthPing,
    SystemHealthRead,
    now_utc,
)
from jalrakshak.infra.db import get_engine
from jalrakshak.infra.events import event_log


class SystemHealthError(Exception):
    pass


class NotFoundError(SystemHealthError):
    pass


def to_read_model(row: SystemHealth) -> SystemHealthRead:
    return SystemHealthRead(
        id=row.id,
        utility_id=row.utility_id,
        component=row.component,
        status=row.status,
        last_ping=row.last_ping,
        uptime_percentage=row.uptime_percentage,
        error_count=row.error_count,
        location=row.location,
        metadata=dict(row.meta),
    )


class SystemHealthService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def record_ping(self, utility_id: str, payload: SystemHealthPing) -> SystemHealth:
        with self._session() as session:
            row = session.exec(
                select(SystemHealth)
                .where(SystemHealth.utility_id == utility_id)
                .where(SystemHealth.component == payload.component)
            ).first()
            previous_status = row.status if row is not None else None
            if row is None:
                row = SystemHealth(utility_id=utility_id, component=payload.component, status=payload.status)
            row.status = payload.status
            row.last_ping = now_utc()
            if payload.uptime_percentage is not None:
                row.uptime_percentage = payload.uptime_percentage
            if payload.location is not None:
                row.location = payload.location
            if payload.metadata:
                row.meta = {**row.meta, **payload.metadata}
            if payload.status == ComponentStatus.ERROR:
                row.error_count += 1
            session.add(row)
            session.commit()
            session.refresh(row)

        if previous_status != row.status:
            event_log.record(
                "system_health.status_changed",
                utility_id,
                {
                    "component": row.component,
                    "from_status": previous_status,
                    "to_status": row.status,
                    "error_count": row.error_count,
                },
            )
        return row

    def list_components(self, utility_id: str) -> list[SystemHealth]:
        with self._session() as session:
            statement = (
                select(SystemHealth)
                .where(SystemHealth.utility_id == utility_id)
                .order_by(col(SystemHealth.component).asc())
            )
            return list(session.exec(statement).all())

    def get_component(self, utility_id: str, component: str) -> SystemHealth:
        with self._session() as session:
            row = session.exec(
                select(SystemHealth)
                .where(SystemHealth.utility_id == utility_id)
                .where(SystemHealth.component == component)
            ).first()
            if row is None:
                raise NotFoundError("component not found")
            return row
