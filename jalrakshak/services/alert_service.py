from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlmodel import Session, col, select

from jalrakshak.domain.models import (
    Alert,
    AlertCreate,
    AlertSummaryRead,
    AlertType,
    SensorSnapshot,
    now_utc,
)
from jalrakshak.domain.thresholds import derive_alerts
from jalrakshak.infra.db import get_engine
from jalrakshak.infra.events import event_log

logger = logging.getLogger(__name__)


class AlertError(Exception):
    pass


class NotFoundError(AlertError):
    pass


class ConflictError(AlertError):
    pass


@dataclass
class AlertEvaluation:
    created: list[Alert] = field(default_factory=list)
    refreshed: list[Alert] = field(default_factory=list)


class AlertService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_scoped_alert(self, session: Session, utility_id: str, alert_id: str) -> Alert | None:
        return session.exec(
            select(Alert)
            .where(Alert.utility_id == utility_id)
            .where(Alert.id == alert_id)
        ).first()

    def evaluate_snapshot(
        self,
        utility_id: str,
        snapshot: SensorSnapshot,
        *,
        location: str | None = None,
    ) -> AlertEvaluation:
        derived = derive_alerts(snapshot)
        result = AlertEvaluation()
        if not derived:
            return result

        now = now_utc()
        with self._session() as session:
            unresolved = list(
                session.exec(
                    select(Alert)
                    .where(Alert.utility_id == utility_id)
                    .where(Alert.resolved == False)  # noqa: E712
                ).all()
            )
            active_by_key = {(item.sensor_id, item.title): item for item in unresolved}

            for item in derived:
                active = active_by_key.get((item.sensor_id, item.title))
                if active is not None:
                    active.current_value = item.current_value
                    active.description = item.description
                    active.severity_score = item.severity_score
                    active.timestamp = now
                    session.add(active)
                    result.refreshed.append(active)
                    continue
                record = Alert(
                    utility_id=utility_id,
                    alert_type=item.alert_type,
                    title=item.title,
                    description=item.description,
                    source=item.source,
                    timestamp=now,
                    sensor_id=item.sensor_id,
                    threshold_value=item.threshold_value,
                    current_value=item.current_value,
                    location=location,
                    severity_score=item.severity_score,
                    actions=list(item.actions),
                )
                session.add(record)
                result.created.append(record)

            session.commit()
            for record in [*result.created, *result.refreshed]:
                session.refresh(record)

        for record in result.created:
            logger.info("alert raised for utility %s: %s (%s)", utility_id, record.title, record.current_value)
            event_log.record(
                "alert.created",
                utility_id,
                {
                    "alert_id": record.id,
                    "alert_type": record.alert_type,
                    "sensor_id": record.sensor_id,
                    "current_value": record.current_value,
                    "threshold_value": record.threshold_value,
                },
            )
        return result

    def create_alert(self, utility_id: str, payload: AlertCreate, actor_id: str | None = None) -> Alert:
        with self._session() as session:
            record = Alert(
                utility_id=utility_id,
                alert_type=payload.alert_type,
                title=payload.title,
                description=payload.description,
                source=payload.source,
                sensor_id=payload.sensor_id,
                threshold_value=payload.threshold_value,
                current_value=payload.current_value,
                location=payload.location,
                severity_score=payload.severity_score,
                actions=list(payload.actions),
            )
            session.add(record)
            session.commit()
            session.refresh(record)
        event_log.record(
            "alert.created",
            utility_id,
            {"alert_id": record.id, "alert_type": record.alert_type, "manual": True},
            actor_id=actor_id,
        )
        return record

    def list_alerts(
        self,
        utility_id: str,
        *,
        alert_type: AlertType | None = None,
        resolved: bool | None = None,
        limit: int | None = None,
    ) -> list[Alert]:
        with self._session() as session:
            statement = select(Alert).where(Alert.utility_id == utility_id)
            if alert_type is not None:
                statement = statement.where(Alert.alert_type == alert_type)
            if resolved is not None:
                statement = statement.where(Alert.resolved == resolved)
            statement = statement.order_by(col(Alert.timestamp).desc())
            if limit is not None:
                statement = statement.limit(limit)
            return list(session.exec(statement).all())

    def get_alert(self, utility_id: str, alert_id: str) -> Alert:
        with self._session() as session:
            record = self._get_scoped_alert(session, utility_id, alert_id)
            if record is None:
                raise NotFoundError("alert not found")
            return record

    def summary(self, utility_id: str) -> AlertSummaryRead:
        rows = self.list_alerts(utility_id)
        active = [item for item in rows if not item.resolved]
        return AlertSummaryRead(
            critical_active=len([item for item in active if item.alert_type == AlertType.CRITICAL]),
            warning_active=len([item for item in active if item.alert_type == AlertType.WARNING]),
            total_active=len(active),
            resolved=len(rows) - len(active),
        )

    def acknowledge(self, utility_id: str, alert_id: str, actor_id: str) -> Alert:
        published = False
        with self._session() as session:
            record = self._get_scoped_alert(session, utility_id, alert_id)
            if record is None:
                raise NotFoundError("alert not found")
            if record.resolved:
                raise ConflictError("alert already resolved")
            if not record.acknowledged:
                record.acknowledged = True
                record.acknowledged_by = actor_id
                record.acknowledged_at = now_utc()
                published = True
            session.add(record)
            session.commit()
            session.refresh(record)

        if published:
            event_log.record(
                "alert.acknowledged",
                utility_id,
                {"alert_id": record.id, "acknowledged_by": actor_id},
                actor_id=actor_id,
            )
        return record

    def resolve(self, utility_id: str, alert_id: str, actor_id: str) -> Alert:
        published = False
        with self._session() as session:
            record = self._get_scoped_alert(session, utility_id, alert_id)
            if record is None:
                raise NotFoundError("alert not found")
            if not record.resolved:
                now = now_utc()
                if not record.acknowledged:
                    record.acknowledged = True
                    record.acknowledged_by = actor_id
                    record.acknowledged_at = now
                record.resolved = True
                record.resolved_by = actor_id
                record.resolved_at = now
                published = True
            session.add(record)
            session.commit()
            session.refresh(record)

        if published:
            event_log.record(
                "alert.resolved",
                utility_id,
                {"alert_id": record.id, "resolved_by": actor_id},
                actor_id=actor_id,
            )
        return record
