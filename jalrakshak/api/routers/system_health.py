from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, status

from jalrakshak.api.deps import get_current_claims, require_perm
from jalrakshak.domain.models import SystemHealthPing, SystemHealthRead
from jalrakshak.domain.permissions import PERM_HEALTH_READ, PERM_HEALTH_WRITE
from jalrakshak.services.system_health_service import NotFoundError, SystemHealthService, to_read_model

router = APIRouter()


def get_system_health_service() -> SystemHealthService:
    return SystemHealthService()


Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Service = Annotated[SystemHealthService, Depends(get_system_health_service)]


@router.post(
    "/components/ping",
    response_model=SystemHealthRead,
    dependencies=[Depends(require_perm(PERM_HEALTH_WRITE))],
)
def record_ping(payload: SystemHealthPing, claims: Claims, service: Service) -> SystemHealthRead:
    return to_read_model(service.record_ping(claims["utility_id"], payload))


@router.get(
    "/components",
    response_model=list[SystemHealthRead],
    dependencies=[Depends(require_perm(PERM_HEALTH_READ))],
)
def list_components(claims: Claims, service: Service) -> list[SystemHealthRead]:
    return [to_read_model(item) for item in service.list_components(claims["utility_id"])]


@router.get(
    "/components/{component}",
    response_model=SystemHealthRead,
    dependencies=[Depends(require_perm(PERM_HEALTH_READ))],
)
def get_component(component: str, claims: Claims, service: Service) -> SystemHealthRead:
    try:
        return to_read_model(service.get_component(claims["utility_id"], component))
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
