from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, status

from jalrakshak.api.deps import get_current_claims, require_perm
from jalrakshak.domain.models import (
    Alert,
    AlertCreate,
    AlertRead,
    AlertSummaryRead,
    AlertType,
)
from jalrakshak.domain.permissions import PERM_ALERT_READ, PERM_ALERT_WRITE
from jalrakshak.infra.change_feed import ChangeTable, ChangeType, change_feed_hub
from jalrakshak.services.alert_service import AlertEvaluation, AlertService, ConflictError, NotFoundError

router = APIRouter()


def get_alert_service() -> AlertService:
    return AlertService()


Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Service = Annotated[AlertService, Depends(get_alert_service)]


def _handle_alert_error(exc: Exception) -> None:
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, ConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    raise exc


async def broadcast_alert(utility_id: str, change: ChangeType, alert: Alert) -> None:
    await change_feed_hub.broadcast(
        utility_id,
        ChangeTable.ALERTS,
        change,
        AlertRead.model_validate(alert).model_dump(mode="json"),
    )


async def broadcast_evaluation(utility_id: str, evaluation: AlertEvaluation) -> None:
    for alert in evaluation.created:
        await broadcast_alert(utility_id, ChangeType.INSERT, alert)
    for alert in evaluation.refreshed:
        await broadcast_alert(utility_id, ChangeType.UPDATE, alert)


@router.get(
    "/alerts",
    response_model=list[AlertRead],
    dependencies=[Depends(require_perm(PERM_ALERT_READ))],
)
def list_alerts(
    claims: Claims,
    service: Service,
    alert_type: AlertType | None = None,
    resolved: bool | None = None,
) -> list[AlertRead]:
    rows = service.list_alerts(claims["utility_id"], alert_type=alert_type, resolved=resolved)
    return [AlertRead.model_validate(item) for item in rows]


@router.get(
    "/alerts/summary",
    response_model=AlertSummaryRead,
    dependencies=[Depends(require_perm(PERM_ALERT_READ))],
)
def alert_summary(claims: Claims, service: Service) -> AlertSummaryRead:
    return service.summary(claims["utility_id"])


@router.post(
    "/alerts",
    response_model=AlertRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_ALERT_WRITE))],
)
async def create_alert(payload: AlertCreate, claims: Claims, service: Service) -> AlertRead:
    row = service.create_alert(claims["utility_id"], payload, claims["sub"])
    await broadcast_alert(claims["utility_id"], ChangeType.INSERT, row)
    return AlertRead.model_validate(row)


@router.get(
    "/alerts/{alert_id}",
    response_model=AlertRead,
    dependencies=[Depends(require_perm(PERM_ALERT_READ))],
)
def get_alert(alert_id: str, claims: Claims, service: Service) -> AlertRead:
    try:
        return AlertRead.model_validate(service.get_alert(claims["utility_id"], alert_id))
    except (NotFoundError, ConflictError) as exc:
        _handle_alert_error(exc)
        raise


@router.post(
    "/alerts/{alert_id}/acknowledge",
    response_model=AlertRead,
    dependencies=[Depends(require_perm(PERM_ALERT_WRITE))],
)
async def acknowledge_alert(alert_id: str, claims: Claims, service: Service) -> AlertRead:
    try:
        row = service.acknowledge(claims["utility_id"], alert_id, claims["sub"])
    except (NotFoundError, ConflictError) as exc:
        _handle_alert_error(exc)
        raise
    await broadcast_alert(claims["utility_id"], ChangeType.UPDATE, row)
    return AlertRead.model_validate(row)


@router.post(
    "/alerts/{alert_id}/resolve",
    response_model=AlertRead,
    dependencies=[Depends(require_perm(PERM_ALERT_WRITE))],
)
async def resolve_alert(alert_id: str, claims: Claims, service: Service) -> AlertRead:
    try:
        row = service.resolve(claims["utility_id"], alert_id, claims["sub"])
    except (NotFoundError, ConflictError) as exc:
        _handle_alert_error(exc)
        raise
    await broadcast_alert(claims["utility_id"], ChangeType.UPDATE, row)
    return AlertRead.model_validate(row)
