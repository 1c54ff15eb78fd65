from __future__ import annotations

from datetime import UTC, date, datetime
from enum import StrEnum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict
from pydantic import Field as PydanticField
from sqlalchemy import JSON, Column, Index, UniqueConstraint
from sqlmodel import Field, SQLModel

from jalrakshak.domain.state_machine import ComplaintStatus, MaintenanceStatus


def now_utc() -> datetime:
    return datetime.now(UTC)


class EventRecord(SQLModel, table=True):
    __tablename__ = "events"

    event_id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    event_type: str = Field(index=True)
    utility_id: str = Field(index=True)
    ts: datetime = Field(default_factory=now_utc, index=True)
    actor_id: str | None = Field(default=None, index=True)
    payload: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    utility_id: str = Field(index=True)
    actor_id: str | None = Field(default=None, index=True)
    action: str
    resource: str
    method: str
    status_code: int
    ts: datetime = Field(default_factory=now_utc, index=True)
    detail: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )


class UserRole(StrEnum):
    ADMIN = "admin"
    STAFF = "staff"
    CITIZEN = "citizen"


class SensorType(StrEnum):
    FLOW = "flow"
    PRESSURE = "pressure"
    QUALITY = "quality"
    TEMPERATURE = "temperature"
    PH = "ph"
    TURBIDITY = "turbidity"


class ReadingStatus(StrEnum):
    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"


class Priority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ComplaintCategory(StrEnum):
    LEAK = "leak"
    QUALITY = "quality"
    PRESSURE = "pressure"
    OUTAGE = "outage"
    GENERAL = "general"


class AlertType(StrEnum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class ComponentStatus(StrEnum):
    ONLINE = "online"
    OFFLINE = "offline"
    MAINTENANCE = "maintenance"
    ERROR = "error"


class NetworkAssetType(StrEnum):
    TANK = "tank"
    PUMP = "pump"
    HOUSEHOLD = "household"
    SENSOR = "sensor"
    LEAK = "leak"


class MapLayerName(StrEnum):
    ALL = "all"
    INFRASTRUCTURE = "infrastructure"
    HOUSEHOLDS = "households"
    SENSORS = "sensors"
    ISSUES = "issues"


class Utility(SQLModel, table=True):
    __tablename__ = "utilities"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    name: str = Field(index=True, unique=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)


class User(SQLModel, table=True):
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("utility_id", "email", name="uq_users_utility_email"),)

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    utility_id: str = Field(foreign_key="utilities.id", index=True)
    email: str = Field(index=True)
    full_name: str | None = None
    role: UserRole = Field(default=UserRole.CITIZEN, index=True)
    phone: str | None = None
    location: str | None = None
    password_hash: str
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class SensorReading(SQLModel, table=True):
    __tablename__ = "sensor_readings"
    __table_args__ = (Index("ix_sensor_readings_utility_type_ts", "utility_id", "sensor_type", "timestamp"),)

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    utility_id: str = Field(foreign_key="utilities.id", index=True)
    sensor_id: str = Field(index=True)
    sensor_type: SensorType = Field(index=True)
    value: float
    unit: str
    location: str = Field(index=True)
    timestamp: datetime = Field(default_factory=now_utc, index=True)
    status: ReadingStatus = Field(default=ReadingStatus.NORMAL)
    device_id: str | None = None
    battery_level: int | None = None
    signal_strength: int | None = None


class Complaint(SQLModel, table=True):
    __tablename__ = "complaints"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    utility_id: str = Field(foreign_key="utilities.id", index=True)
    description: str
    location: str
    priority: Priority = Field(default=Priority.MEDIUM)
    status: ComplaintStatus = Field(default=ComplaintStatus.PENDING, index=True)
    category: ComplaintCategory = Field(default=ComplaintCategory.GENERAL)
    submitted_by: str = Field(foreign_key="users.id", index=True)
    submitted_at: datetime = Field(default_factory=now_utc, index=True)
    photo_urls: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )
    gps_coordinates: str | None = None
    gps_accuracy: float | None = None
    resolved_at: datetime | None = None
    assigned_to: str | None = Field(default=None, foreign_key="users.id")
    resolution_notes: str | None = None


class MaintenanceTask(SQLModel, table=True):
    __tablename__ = "maintenance_tasks"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    utility_id: str = Field(foreign_key="utilities.id", index=True)
    task: str
    description: str | None = None
    priority: Priority = Field(default=Priority.MEDIUM)
    status: MaintenanceStatus = Field(default=MaintenanceStatus.PENDING, index=True)
    due_date: date = Field(index=True)
    assigned_to: str | None = Field(default=None, foreign_key="users.id")
    completed_at: datetime | None = None
    location: str
    estimated_duration: int | None = None
    actual_duration: int | None = None
    cost: float | None = None
    notes: str | None = None
    photo_urls: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )
    created_by: str | None = None
    created_at: datetime = Field(default_factory=now_utc)


class Alert(SQLModel, table=True):
    __tablename__ = "alerts"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    utility_id: str = Field(foreign_key="utilities.id", index=True)
    alert_type: AlertType = Field(index=True)
    title: str
    description: str
    source: str
    timestamp: datetime = Field(default_factory=now_utc, index=True)
    acknowledged: bool = Field(default=False)
    resolved: bool = Field(default=False, index=True)
    acknowledged_by: str | None = None
    acknowledged_at: datetime | None = None
    resolved_by: str | None = None
    resolved_at: datetime | None = None
    sensor_id: str | None = Field(default=None, index=True)
    threshold_value: float | None = None
    current_value: float | None = None
    location: str | None = None
    severity_score: int = Field(default=1)
    actions: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )


class SystemHealth(SQLModel, table=True):
    __tablename__ = "system_health"
    __table_args__ = (UniqueConstraint("utility_id", "component", name="uq_system_health_utility_component"),)

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    utility_id: str = Field(foreign_key="utilities.id", index=True)
    component: str
    status: ComponentStatus
    last_ping: datetime = Field(default_factory=now_utc)
    uptime_percentage: float | None = None
    error_count: int = Field(default=0)
    location: str | None = None
    meta: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column("metadata", JSON, nullable=False),
    )


class NetworkAsset(SQLModel, table=True):
    __tablename__ = "network_assets"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    utility_id: str = Field(foreign_key="utilities.id", index=True)
    name: str
    asset_type: NetworkAssetType = Field(index=True)
    status: str = Field(default="normal")
    lat: float
    lon: float
    detail: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )
    created_at: datetime = Field(default_factory=now_utc)


class EventEnvelope(BaseModel):
    event_id: str = PydanticField(default_factory=lambda: str(uuid4()))
    event_type: str
    utility_id: str
    ts: datetime = PydanticField(default_factory=now_utc)
    actor_id: str | None = None
    payload: dict[str, Any]


class SensorSnapshot(BaseModel):
    water_flow: float = 45.2
    pressure: float = 3.8
    quality: float = 95.0
    temperature: float = 24.5
    ph: float = 7.2
    turbidity: float = 0.8
    solar_pump_status: str = "active"
    updated_at: datetime | None = None
    # Timestamp of the reading behind each field, keyed by snapshot field name.
    observed_at: dict[str, datetime] = PydanticField(default_factory=dict)


class ORMReadModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class UtilityCreate(BaseModel):
    name: str = PydanticField(min_length=1)


class UtilityRead(ORMReadModel):
    id: str
    name: str
    created_at: datetime


class BootstrapAdminRequest(BaseModel):
    utility_id: str
    email: str = PydanticField(min_length=3)
    password: str = PydanticField(min_length=1)
    full_name: str | None = None


class RegisterRequest(BaseModel):
    utility_id: str
    email: str = PydanticField(min_length=3)
    password: str = PydanticField(min_length=1)
    full_name: str | None = None
    phone: str | None = None
    location: str | None = None


class UserCreate(BaseModel):
    email: str = PydanticField(min_length=3)
    password: str = PydanticField(min_length=1)
    role: UserRole = UserRole.CITIZEN
    full_name: str | None = None
    phone: str | None = None
    location: str | None = None


class UserProfileUpdate(BaseModel):
    full_name: str | None = None
    phone: str | None = None
    location: str | None = None
    password: str | None = None


class UserRead(ORMReadModel):
    id: str
    utility_id: str
    email: str
    full_name: str | None
    role: UserRole
    phone: str | None
    location: str | None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class LoginRequest(BaseModel):
    utility_id: str
    email: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: UserRole
    permissions: list[str]


class SensorReadingCreate(BaseModel):
    sensor_id: str = PydanticField(min_length=1)
    sensor_type: SensorType
    value: float
    unit: str = PydanticField(min_length=1)
    location: str = PydanticField(min_length=1)
    timestamp: datetime | None = None
    status: ReadingStatus | None = None
    device_id: str | None = None
    battery_level: int | None = PydanticField(default=None, ge=0, le=100)
    signal_strength: int | None = None


class SensorReadingRead(ORMReadModel):
    id: str
    utility_id: str
    sensor_id: str
    sensor_type: SensorType
    value: float
    unit: str
    location: str
    timestamp: datetime
    status: ReadingStatus
    device_id: str | None
    battery_level: int | None
    signal_strength: int | None


class ConsumptionPoint(BaseModel):
    value: float
    timestamp: datetime


class GpsFix(BaseModel):
    latitude: float = PydanticField(ge=-90, le=90)
    longitude: float = PydanticField(ge=-180, le=180)
    accuracy: float | None = PydanticField(default=None, ge=0)

    def to_wkt(self) -> str:
        return f"POINT({self.longitude} {self.latitude})"


class ComplaintCreate(BaseModel):
    description: str = PydanticField(min_length=1)
    location: str = PydanticField(min_length=1)
    priority: Priority = Priority.MEDIUM
    category: ComplaintCategory = ComplaintCategory.GENERAL
    gps: GpsFix | None = None


class ComplaintStatusUpdate(BaseModel):
    status: ComplaintStatus
    assigned_to: str | None = None
    resolution_notes: str | None = None


class ComplaintRead(ORMReadModel):
    id: str
    utility_id: str
    description: str
    location: str
    priority: Priority
    status: ComplaintStatus
    category: ComplaintCategory
    submitted_by: str
    submitted_at: datetime
    photo_urls: list[str]
    gps_coordinates: str | None
    gps_accuracy: float | None
    resolved_at: datetime | None
    assigned_to: str | None
    resolution_notes: str | None


class MaintenanceTaskCreate(BaseModel):
    task: str = PydanticField(min_length=1)
    description: str | None = None
    priority: Priority = Priority.MEDIUM
    due_date: date
    assigned_to: str | None = None
    location: str = PydanticField(min_length=1)
    estimated_duration: int | None = PydanticField(default=None, ge=0)
    notes: str | None = None


class MaintenanceTaskComplete(BaseModel):
    actual_duration: int | None = PydanticField(default=None, ge=0)
    cost: float | None = PydanticField(default=None, ge=0)
    notes: str | None = None


class MaintenanceTaskRead(ORMReadModel):
    id: str
    utility_id: str
    task: str
    description: str | None
    priority: Priority
    status: MaintenanceStatus
    due_date: date
    assigned_to: str | None
    completed_at: datetime | None
    location: str
    estimated_duration: int | None
    actual_duration: int | None
    cost: float | None
    notes: str | None
    photo_urls: list[str]
    created_by: str | None
    created_at: datetime
    overdue: bool = False


class AlertCreate(BaseModel):
    alert_type: AlertType
    title: str = PydanticField(min_length=1)
    description: str = PydanticField(min_length=1)
    source: str = PydanticField(min_length=1)
    sensor_id: str | None = None
    threshold_value: float | None = None
    current_value: float | None = None
    location: str | None = None
    severity_score: int = PydanticField(default=1, ge=1)
    actions: list[str] = PydanticField(default_factory=list)


class AlertRead(ORMReadModel):
    id: str
    utility_id: str
    alert_type: AlertType
    title: str
    description: str
    source: str
    timestamp: datetime
    acknowledged: bool
    resolved: bool
    acknowledged_by: str | None
    acknowledged_at: datetime | None
    resolved_by: str | None
    resolved_at: datetime | None
    sensor_id: str | None
    threshold_value: float | None
    current_value: float | None
    location: str | None
    severity_score: int
    actions: list[str]


class AlertSummaryRead(BaseModel):
    critical_active: int
    warning_active: int
    total_active: int
    resolved: int


class SystemHealthPing(BaseModel):
    component: str = PydanticField(min_length=1)
    status: ComponentStatus
    uptime_percentage: float | None = PydanticField(default=None, ge=0, le=100)
    location: str | None = None
    metadata: dict[str, Any] = PydanticField(default_factory=dict)


class SystemHealthRead(BaseModel):
    id: str
    utility_id: str
    component: str
    status: ComponentStatus
    last_ping: datetime
    uptime_percentage: float | None
    error_count: int
    location: str | None
    metadata: dict[str, Any]


class DashboardMetricRead(BaseModel):
    key: str
    label: str
    value: float | str
    unit: str
    status: ReadingStatus


class DashboardOverviewRead(BaseModel):
    snapshot: SensorSnapshot
    metrics: list[DashboardMetricRead]
    alerts: AlertSummaryRead
    open_complaints: int
    pending_maintenance: int
    overdue_maintenance: int
    sensor_health: dict[str, str]


class NetworkAssetCreate(BaseModel):
    name: str = PydanticField(min_length=1)
    asset_type: NetworkAssetType
    status: str = "normal"
    lat: float = PydanticField(ge=-90, le=90)
    lon: float = PydanticField(ge=-180, le=180)
    detail: dict[str, Any] = PydanticField(default_factory=dict)


class NetworkAssetRead(ORMReadModel):
    id: str
    utility_id: str
    name: str
    asset_type: NetworkAssetType
    status: str
    lat: float
    lon: float
    detail: dict[str, Any]
    created_at: datetime


class MapPointRead(BaseModel):
    lat: float
    lon: float


class MapItemRead(BaseModel):
    id: str
    category: str
    label: str
    status: str
    point: MapPointRead | None = None
    detail: dict[str, Any] = PydanticField(default_factory=dict)


class MapLayerRead(BaseModel):
    layer: MapLayerName
    total: int
    counts: dict[str, int]
    items: list[MapItemRead]


class GeocodeResultRead(BaseModel):
    display_name: str
    lat: float
    lon: float


class SimulationRequest(BaseModel):
    ticks: int = PydanticField(default=1, ge=1, le=100)
    low_pressure: bool | None = None
    low_flow: bool | None = None
    poor_quality: bool | None = None
    ph_drift: bool | None = None


class SimulationRunRead(BaseModel):
    ticks: int
    readings: int
    alerts_created: int
    snapshot: SensorSnapshot
