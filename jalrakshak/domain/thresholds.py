from __future__ import annotations

from dataclasses import dataclass, field

from jalrakshak.domain.models import (
    AlertType,
    ReadingStatus,
    SensorSnapshot,
    SensorType,
)

PRESSURE_CRITICAL_BAR = 3.0
FLOW_WARNING_LPM = 35.0
QUALITY_WARNING_PCT = 90.0
PH_SAFE_MIN = 6.5
PH_SAFE_MAX = 8.5

DASHBOARD_FLOW_NORMAL_ABOVE = 40.0
DASHBOARD_PRESSURE_NORMAL_ABOVE = 3.0
DASHBOARD_QUALITY_NORMAL_ABOVE = 90.0

SNAPSHOT_FIELD_BY_TYPE: dict[SensorType, str] = {
    SensorType.FLOW: "water_flow",
    SensorType.PRESSURE: "pressure",
    SensorType.QUALITY: "quality",
    SensorType.TEMPERATURE: "temperature",
    SensorType.PH: "ph",
    SensorType.TURBIDITY: "turbidity",
}


@dataclass
class DerivedAlert:
    alert_type: AlertType
    title: str
    description: str
    source: str
    sensor_id: str
    threshold_value: float
    current_value: float
    actions: list[str] = field(default_factory=list)

    @property
    def severity_score(self) -> int:
        return 3 if self.alert_type == AlertType.CRITICAL else 2


def _rule_low_pressure(snapshot: SensorSnapshot) -> DerivedAlert | None:
    if snapshot.pressure >= PRESSURE_CRITICAL_BAR:
        return None
    return DerivedAlert(
        alert_type=AlertType.CRITICAL,
        title="Low System Pressure Detected",
        description=(
            f"Pressure has dropped to {snapshot.pressure:.1f} bar, "
            f"below the critical threshold of {PRESSURE_CRITICAL_BAR:.1f} bar."
        ),
        source="Pressure Sensor P1",
        sensor_id="PRESS_001",
        threshold_value=PRESSURE_CRITICAL_BAR,
        current_value=snapshot.pressure,
        actions=["Check pump operation", "Inspect for leaks", "Contact maintenance team"],
    )


def _rule_low_flow(snapshot: SensorSnapshot) -> DerivedAlert | None:
    if snapshot.water_flow >= FLOW_WARNING_LPM:
        return None
    return DerivedAlert(
        alert_type=AlertType.WARNING,
        title="Low Water Flow Rate",
        description=f"Flow rate is {snapshot.water_flow:.1f} L/min, below optimal range.",
        source="Flow Sensor F1",
        sensor_id="FLOW_001",
        threshold_value=FLOW_WARNING_LPM,
        current_value=snapshot.water_flow,
        actions=["Check filter condition", "Verify pump settings", "Inspect inlet valve"],
    )


def _rule_low_quality(snapshot: SensorSnapshot) -> DerivedAlert | None:
    if snapshot.quality >= QUALITY_WARNING_PCT:
        return None
    return DerivedAlert(
        alert_type=AlertType.WARNING,
        title="Water Quality Below Standard",
        description=(
            f"Quality index is {snapshot.quality:.0f}%, "
            f"below the recommended {QUALITY_WARNING_PCT:.0f}% threshold."
        ),
        source="Quality Sensor Q1",
        sensor_id="QUAL_001",
        threshold_value=QUALITY_WARNING_PCT,
        current_value=snapshot.quality,
        actions=["Test chlorine levels", "Check filtration system", "Schedule water sampling"],
    )


def _rule_ph_out_of_range(snapshot: SensorSnapshot) -> DerivedAlert | None:
    if PH_SAFE_MIN <= snapshot.ph <= PH_SAFE_MAX:
        return None
    breached = PH_SAFE_MIN if snapshot.ph < PH_SAFE_MIN else PH_SAFE_MAX
    return DerivedAlert(
        alert_type=AlertType.WARNING,
        title="pH Level Out of Range",
        description=(
            f"pH level is {snapshot.ph:.1f}, outside the safe range of {PH_SAFE_MIN}-{PH_SAFE_MAX}."
        ),
        source="pH Sensor",
        sensor_id="PH_001",
        threshold_value=breached,
        current_value=snapshot.ph,
        actions=["Test pH manually", "Check sensor calibration", "Adjust treatment system"],
    )


def derive_alerts(snapshot: SensorSnapshot) -> list[DerivedAlert]:
    candidates = [
        _rule_low_pressure(snapshot),
        _rule_low_flow(snapshot),
        _rule_low_quality(snapshot),
        _rule_ph_out_of_range(snapshot),
    ]
    return [item for item in candidates if item is not None]


def classify_reading(sensor_type: SensorType, value: float) -> ReadingStatus:
    """Status a single reading gets when the sender does not supply one.

    Mirrors the alert rules: the pressure rule is the only critical one.
    """
    if sensor_type == SensorType.PRESSURE and value < PRESSURE_CRITICAL_BAR:
        return ReadingStatus.CRITICAL
    if sensor_type == SensorType.FLOW and value < FLOW_WARNING_LPM:
        return ReadingStatus.WARNING
    if sensor_type == SensorType.QUALITY and value < QUALITY_WARNING_PCT:
        return ReadingStatus.WARNING
    if sensor_type == SensorType.PH and not PH_SAFE_MIN <= value <= PH_SAFE_MAX:
        return ReadingStatus.WARNING
    return ReadingStatus.NORMAL


def metric_status(key: str, value: float) -> ReadingStatus:
    if key == "water_flow":
        return ReadingStatus.NORMAL if value > DASHBOARD_FLOW_NORMAL_ABOVE else ReadingStatus.WARNING
    if key == "pressure":
        return ReadingStatus.NORMAL if value > DASHBOARD_PRESSURE_NORMAL_ABOVE else ReadingStatus.CRITICAL
    if key == "quality":
        return ReadingStatus.NORMAL if value > DASHBOARD_QUALITY_NORMAL_ABOVE else ReadingStatus.WARNING
    return ReadingStatus.NORMAL
