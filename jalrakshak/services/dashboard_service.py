from __future__ import annotations

from datetime import date

from jalrakshak.domain.models import (
    DashboardMetricRead,
    DashboardOverviewRead,
    ReadingStatus,
    SensorSnapshot,
)
from jalrakshak.domain.state_machine import ComplaintStatus, MaintenanceStatus
from jalrakshak.domain.thresholds import metric_status
from jalrakshak.services.alert_service import AlertService
from jalrakshak.services.complaint_service import ComplaintService
from jalrakshak.services.maintenance_service import MaintenanceService, is_overdue
from jalrakshak.services.sensor_service import SensorService

# (snapshot field, card label, unit)
METRIC_CARDS: tuple[tuple[str, str, str], ...] = (
    ("water_flow", "Water Flow", "L/min"),
    ("pressure", "Pressure", "bar"),
    ("quality", "Water Quality", "%"),
    ("temperature", "Temperature", "°C"),
    ("ph", "pH Level", "pH"),
    ("turbidity", "Turbidity", "NTU"),
)


def build_metrics(snapshot: SensorSnapshot) -> list[DashboardMetricRead]:
    metrics: list[DashboardMetricRead] = []
    for key, label, unit in METRIC_CARDS:
        value = float(getattr(snapshot, key))
        metrics.append(
            DashboardMetricRead(
                key=key,
                label=label,
                value=round(value, 2),
                unit=unit,
                status=metric_status(key, value),
            )
        )
    metrics.append(
        DashboardMetricRead(
            key="solar_pump_status",
            label="Solar Pump",
            value=snapshot.solar_pump_status,
            unit="",
            status=ReadingStatus.NORMAL,
        )
    )
    return metrics


class DashboardService:
    def __init__(
        self,
        *,
        sensor_service: SensorService | None = None,
        alert_service: AlertService | None = None,
        complaint_service: ComplaintService | None = None,
        maintenance_service: MaintenanceService | None = None,
    ) -> None:
        self._alert_service = alert_service or AlertService()
        self._sensor_service = sensor_service or SensorService(alert_service=self._alert_service)
        self._complaint_service = complaint_service or ComplaintService()
        self._maintenance_service = maintenance_service or MaintenanceService()

    def metrics(self, utility_id: str) -> list[DashboardMetricRead]:
        return build_metrics(self._sensor_service.live_snapshot(utility_id))

    def overview(self, utility_id: str, *, today: date | None = None) -> DashboardOverviewRead:
        snapshot = self._sensor_service.live_snapshot(utility_id)
        complaints = self._complaint_service.list_complaints(utility_id)
        tasks = self._maintenance_service.list_tasks(utility_id)
        open_tasks = [item for item in tasks if item.status != MaintenanceStatus.COMPLETED]
        return DashboardOverviewRead(
            snapshot=snapshot,
            metrics=build_metrics(snapshot),
            alerts=self._alert_service.summary(utility_id),
            open_complaints=len([item for item in complaints if item.status != ComplaintStatus.RESOLVED]),
            pending_maintenance=len(open_tasks),
            overdue_maintenance=len([item for item in open_tasks if is_overdue(item, today)]),
            sensor_health=self._sensor_service.sensor_type_health(utility_id),
        )
