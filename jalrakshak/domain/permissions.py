from __future__ import annotations

from typing import Any

from jalrakshak.domain.models import UserRole

PERM_WILDCARD = "*"
PERM_IDENTITY_READ = "identity.read"
PERM_IDENTITY_WRITE = "identity.write"
PERM_SENSOR_READ = "sensor.read"
PERM_SENSOR_WRITE = "sensor.write"
PERM_COMPLAINT_READ = "complaint.read"
PERM_COMPLAINT_SUBMIT = "complaint.submit"
PERM_COMPLAINT_MANAGE = "complaint.manage"
PERM_MAINTENANCE_READ = "maintenance.read"
PERM_MAINTENANCE_WRITE = "maintenance.write"
PERM_ALERT_READ = "alert.read"
PERM_ALERT_WRITE = "alert.write"
PERM_HEALTH_READ = "health.read"
PERM_HEALTH_WRITE = "health.write"
PERM_DASHBOARD_READ = "dashboard.read"
PERM_MAP_READ = "map.read"
PERM_MAP_WRITE = "map.write"

CITIZEN_PERMISSIONS = [
    PERM_SENSOR_READ,
    PERM_COMPLAINT_READ,
    PERM_COMPLAINT_SUBMIT,
    PERM_ALERT_READ,
    PERM_DASHBOARD_READ,
    PERM_MAP_READ,
]

STAFF_PERMISSIONS = [
    *CITIZEN_PERMISSIONS,
    PERM_SENSOR_WRITE,
    PERM_COMPLAINT_MANAGE,
    PERM_MAINTENANCE_READ,
    PERM_MAINTENANCE_WRITE,
    PERM_ALERT_WRITE,
    PERM_HEALTH_READ,
    PERM_HEALTH_WRITE,
    PERM_MAP_WRITE,
]

ROLE_PERMISSIONS: dict[UserRole, list[str]] = {
    UserRole.ADMIN: [PERM_WILDCARD],
    UserRole.STAFF: STAFF_PERMISSIONS,
    UserRole.CITIZEN: CITIZEN_PERMISSIONS,
}


def permissions_for_role(role: UserRole) -> list[str]:
    return list(ROLE_PERMISSIONS.get(role, []))


def has_permission(claims: dict[str, Any], permission: str) -> bool:
    permissions = claims.get("permissions", [])
    if not isinstance(permissions, list):
        return False
    return permission in permissions or PERM_WILDCARD in permissions
