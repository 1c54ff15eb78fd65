from __future__ import annotations

from enum import StrEnum


class ComplaintStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    RESOLVED = "resolved"


COMPLAINT_ALLOWED_TRANSITIONS: dict[ComplaintStatus, set[ComplaintStatus]] = {
    ComplaintStatus.PENDING: {ComplaintStatus.IN_PROGRESS, ComplaintStatus.RESOLVED},
    ComplaintStatus.IN_PROGRESS: {ComplaintStatus.PENDING, ComplaintStatus.RESOLVED},
    ComplaintStatus.RESOLVED: set(),
}


def can_complaint_transition(source: ComplaintStatus, target: ComplaintStatus) -> bool:
    return target in COMPLAINT_ALLOWED_TRANSITIONS.get(source, set())


class MaintenanceStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


MAINTENANCE_ALLOWED_TRANSITIONS: dict[MaintenanceStatus, set[MaintenanceStatus]] = {
    MaintenanceStatus.PENDING: {MaintenanceStatus.IN_PROGRESS, MaintenanceStatus.COMPLETED},
    MaintenanceStatus.IN_PROGRESS: {MaintenanceStatus.COMPLETED},
    MaintenanceStatus.COMPLETED: set(),
}


def can_maintenance_transition(source: MaintenanceStatus, target: MaintenanceStatus) -> bool:
    return target in MAINTENANCE_ALLOWED_TRANSITIONS.get(source, set())
