from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Awaitable, Callable

from jalrakshak.adapters.sensor_simulator import SensorSimulator
from jalrakshak.domain.models import SimulationRequest
from jalrakshak.services.sensor_service import IngestResult, SensorService

logger = logging.getLogger(__name__)

SENSOR_SIMULATION_ENABLED = os.getenv("SENSOR_SIMULATION_ENABLED", "false").lower() in {"1", "true", "yes"}
SENSOR_SIMULATION_INTERVAL_SECONDS = float(os.getenv("SENSOR_SIMULATION_INTERVAL_SECONDS", "3"))
SENSOR_SIMULATION_UTILITY_ID = os.getenv("SENSOR_SIMULATION_UTILITY_ID", "")

IngestCallback = Callable[[str, IngestResult], Awaitable[None]]


class SimulationService:
    """Feeds simulator ticks through the normal reading ingest path."""

    def __init__(self, *, sensor_service: SensorService | None = None) -> None:
        self._sensor_service = sensor_service or SensorService()
        self._simulators: dict[str, SensorSimulator] = {}

    def simulator_for(self, utility_id: str) -> SensorSimulator:
        simulator = self._simulators.get(utility_id)
        if simulator is None:
            simulator = SensorSimulator(
                interval_seconds=SENSOR_SIMULATION_INTERVAL_SECONDS,
                initial=self._sensor_service.live_snapshot(utility_id),
            )
            self._simulators[utility_id] = simulator
        return simulator

    def run(self, utility_id: str, request: SimulationRequest) -> list[IngestResult]:
        simulator = self.simulator_for(utility_id)
        simulator.set_trigger(
            low_pressure=request.low_pressure,
            low_flow=request.low_flow,
            poor_quality=request.poor_quality,
            ph_drift=request.ph_drift,
        )
        return [self.tick(utility_id) for _ in range(request.ticks)]

    def tick(self, utility_id: str) -> IngestResult:
        simulator = self.simulator_for(utility_id)
        snapshot = simulator.step()
        result = self._sensor_service.insert_readings(utility_id, simulator.to_readings(snapshot))
        logger.debug("simulation tick %s for utility %s", simulator.tick, utility_id)
        return result

    async def run_forever(self, utility_id: str, *, on_ingest: IngestCallback | None = None) -> None:
        simulator = self.simulator_for(utility_id)
        logger.info("sensor simulation started for utility %s", utility_id)
        async for snapshot in simulator.start_stream():
            try:
                result = await asyncio.to_thread(
                    self._sensor_service.insert_readings,
                    utility_id,
                    simulator.to_readings(snapshot),
                )
                if on_ingest is not None:
                    await on_ingest(utility_id, result)
            except Exception:
                logger.exception("simulation tick %s failed for utility %s", simulator.tick, utility_id)


simulation_service = SimulationService()
