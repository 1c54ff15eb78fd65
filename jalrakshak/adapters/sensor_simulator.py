from __future__ import annotations

import asyncio
import random
from collections.abc import AsyncIterator
from dataclasses import dataclass

from jalrakshak.domain.models import (
    SensorReadingCreate,
    SensorSnapshot,
    SensorType,
    now_utc,
)
from jalrakshak.domain.thresholds import SNAPSHOT_FIELD_BY_TYPE

QUALITY_MIN = 85.0
QUALITY_MAX = 100.0
PH_MIN = 6.5
PH_MAX = 8.5


@dataclass(frozen=True)
class SimulatedSensor:
    sensor_id: str
    sensor_type: SensorType
    unit: str


SIMULATED_SENSORS: tuple[SimulatedSensor, ...] = (
    SimulatedSensor("FLOW_001", SensorType.FLOW, "L/min"),
    SimulatedSensor("PRESS_001", SensorType.PRESSURE, "bar"),
    SimulatedSensor("QUAL_001", SensorType.QUALITY, "%"),
    SimulatedSensor("TEMP_001", SensorType.TEMPERATURE, "°C"),
    SimulatedSensor("PH_001", SensorType.PH, "pH"),
    SimulatedSensor("TURB_001", SensorType.TURBIDITY, "NTU"),
)


@dataclass
class SimTriggers:
    low_pressure: bool = False
    low_flow: bool = False
    poor_quality: bool = False
    ph_drift: bool = False


class SensorSimulator:
    """Random-walk drift over a live snapshot, one step per tick."""

    def __init__(
        self,
        *,
        location: str = "Main Distribution",
        interval_seconds: float = 3.0,
        max_samples: int | None = None,
        seed: int | None = None,
        initial: SensorSnapshot | None = None,
    ) -> None:
        self._location = location
        self._interval_seconds = max(interval_seconds, 0.0)
        self._max_samples = max_samples
        self._rng = random.Random(seed)
        self._snapshot = initial.model_copy() if initial is not None else SensorSnapshot()
        self._triggers = SimTriggers()
        self.tick = 0

    def set_trigger(
        self,
        *,
        low_pressure: bool | None = None,
        low_flow: bool | None = None,
        poor_quality: bool | None = None,
        ph_drift: bool | None = None,
    ) -> None:
        if low_pressure is not None:
            self._triggers.low_pressure = low_pressure
        if low_flow is not None:
            self._triggers.low_flow = low_flow
        if poor_quality is not None:
            self._triggers.poor_quality = poor_quality
        if ph_drift is not None:
            self._triggers.ph_drift = ph_drift

    def clear_triggers(self) -> None:
        self._triggers = SimTriggers()

    def _drift(self, spread: float) -> float:
        return self._rng.uniform(-spread, spread)

    def step(self) -> SensorSnapshot:
        current = self._snapshot
        flow = current.water_flow + self._drift(1.0)
        pressure = max(0.0, current.pressure + self._drift(0.1))
        quality = min(QUALITY_MAX, max(QUALITY_MIN, current.quality + self._drift(1.0)))
        temperature = current.temperature + self._drift(0.25)
        ph = min(PH_MAX, max(PH_MIN, current.ph + self._drift(0.05)))
        turbidity = max(0.0, current.turbidity + self._drift(0.05))

        # Triggers pin values outside the alert thresholds.
        if self._triggers.low_pressure:
            pressure = min(pressure, 2.5)
        if self._triggers.low_flow:
            flow = min(flow, 30.0)
        if self._triggers.poor_quality:
            quality = min(quality, 86.0)
        if self._triggers.ph_drift:
            ph = 9.0

        self.tick += 1
        self._snapshot = current.model_copy(
            update={
                "water_flow": round(flow, 2),
                "pressure": round(pressure, 2),
                "quality": round(quality, 2),
                "temperature": round(temperature, 2),
                "ph": round(ph, 2),
                "turbidity": round(turbidity, 3),
                "updated_at": now_utc(),
            }
        )
        return self._snapshot

    def to_readings(self, snapshot: SensorSnapshot) -> list[SensorReadingCreate]:
        timestamp = snapshot.updated_at or now_utc()
        return [
            SensorReadingCreate(
                sensor_id=sensor.sensor_id,
                sensor_type=sensor.sensor_type,
                value=float(getattr(snapshot, SNAPSHOT_FIELD_BY_TYPE[sensor.sensor_type])),
                unit=sensor.unit,
                location=self._location,
                timestamp=timestamp,
                device_id=f"SIM-{sensor.sensor_id}",
            )
            for sensor in SIMULATED_SENSORS
        ]

    async def start_stream(self) -> AsyncIterator[SensorSnapshot]:
        produced = 0
        while self._max_samples is None or produced < self._max_samples:
            yield self.step()
            produced += 1
            if self._interval_seconds > 0:
                await asyncio.sleep(self._interval_seconds)
