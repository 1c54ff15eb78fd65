from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, status

from jalrakshak.api.deps import get_current_claims, require_perm
from jalrakshak.api.routers.alerts import broadcast_evaluation
from jalrakshak.domain.models import (
    ConsumptionPoint,
    SensorReadingCreate,
    SensorReadingRead,
    SensorSnapshot,
    SensorType,
    SimulationRequest,
    SimulationRunRead,
)
from jalrakshak.domain.permissions import PERM_SENSOR_READ, PERM_SENSOR_WRITE
from jalrakshak.infra.change_feed import ChangeTable, ChangeType, change_feed_hub
from jalrakshak.services.sensor_service import IngestResult, SensorError, SensorService
from jalrakshak.services.simulation_service import simulation_service

router = APIRouter()


def get_sensor_service() -> SensorService:
    return SensorService()


Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Service = Annotated[SensorService, Depends(get_sensor_service)]


def _handle_sensor_error(exc: Exception) -> None:
    if isinstance(exc, SensorError):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    raise exc


async def broadcast_ingest(utility_id: str, result: IngestResult) -> None:
    for reading in result.readings:
        await change_feed_hub.broadcast(
            utility_id,
            ChangeTable.SENSOR_READINGS,
            ChangeType.INSERT,
            SensorReadingRead.model_validate(reading).model_dump(mode="json"),
        )
    await broadcast_evaluation(utility_id, result.alerts)


@router.get(
    "/readings",
    response_model=list[SensorReadingRead],
    dependencies=[Depends(require_perm(PERM_SENSOR_READ))],
)
def latest_readings(
    claims: Claims,
    service: Service,
    limit: int = Query(default=50, ge=1, le=500),
) -> list[SensorReadingRead]:
    rows = service.latest_readings(claims["utility_id"], limit=limit)
    return [SensorReadingRead.model_validate(item) for item in rows]


@router.get(
    "/readings/{sensor_type}",
    response_model=list[SensorReadingRead],
    dependencies=[Depends(require_perm(PERM_SENSOR_READ))],
)
def readings_by_type(
    sensor_type: SensorType,
    claims: Claims,
    service: Service,
    limit: int = Query(default=100, ge=1, le=500),
) -> list[SensorReadingRead]:
    rows = service.readings_by_type(claims["utility_id"], sensor_type, limit=limit)
    return [SensorReadingRead.model_validate(item) for item in rows]


@router.post(
    "/readings",
    response_model=SensorReadingRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_SENSOR_WRITE))],
)
async def insert_reading(payload: SensorReadingCreate, claims: Claims, service: Service) -> SensorReadingRead:
    try:
        result = service.insert_reading(claims["utility_id"], payload, actor_id=claims["sub"])
    except SensorError as exc:
        _handle_sensor_error(exc)
        raise
    await broadcast_ingest(claims["utility_id"], result)
    return SensorReadingRead.model_validate(result.readings[0])


@router.post(
    "/readings/batch",
    response_model=list[SensorReadingRead],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_SENSOR_WRITE))],
)
async def insert_readings(
    payload: list[SensorReadingCreate],
    claims: Claims,
    service: Service,
) -> list[SensorReadingRead]:
    try:
        result = service.insert_readings(claims["utility_id"], payload, actor_id=claims["sub"])
    except SensorError as exc:
        _handle_sensor_error(exc)
        raise
    await broadcast_ingest(claims["utility_id"], result)
    return [SensorReadingRead.model_validate(item) for item in result.readings]


@router.get(
    "/snapshot",
    response_model=SensorSnapshot,
    dependencies=[Depends(require_perm(PERM_SENSOR_READ))],
)
def live_snapshot(claims: Claims, service: Service) -> SensorSnapshot:
    return service.live_snapshot(claims["utility_id"])


@router.get(
    "/analytics/consumption",
    response_model=list[ConsumptionPoint],
    dependencies=[Depends(require_perm(PERM_SENSOR_READ))],
)
def consumption_analytics(
    claims: Claims,
    service: Service,
    days: int = Query(default=7, ge=1, le=365),
) -> list[ConsumptionPoint]:
    return service.consumption_analytics(claims["utility_id"], days=days)


@router.get(
    "/health",
    response_model=dict[str, str],
    dependencies=[Depends(require_perm(PERM_SENSOR_READ))],
)
def sensor_type_health(claims: Claims, service: Service) -> dict[str, str]:
    return service.sensor_type_health(claims["utility_id"])


@router.post(
    "/simulate",
    response_model=SimulationRunRead,
    dependencies=[Depends(require_perm(PERM_SENSOR_WRITE))],
)
async def run_simulation(payload: SimulationRequest, claims: Claims) -> SimulationRunRead:
    results = simulation_service.run(claims["utility_id"], payload)
    for result in results:
        await broadcast_ingest(claims["utility_id"], result)
    return SimulationRunRead(
        ticks=len(results),
        readings=sum(len(item.readings) for item in results),
        alerts_created=sum(len(item.alerts.created) for item in results),
        snapshot=results[-1].snapshot,
    )
