from __future__ import annotations

import asyncio
import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect

from jalrakshak.api.deps import authenticate_websocket, get_current_claims, require_perm
from jalrakshak.domain.models import DashboardMetricRead, DashboardOverviewRead
from jalrakshak.domain.permissions import PERM_DASHBOARD_READ
from jalrakshak.services.dashboard_service import DashboardService

logger = logging.getLogger(__name__)

DASHBOARD_PUSH_INTERVAL_SECONDS = 2.0

router = APIRouter()
ws_router = APIRouter()


def get_dashboard_service() -> DashboardService:
    return DashboardService()


Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Service = Annotated[DashboardService, Depends(get_dashboard_service)]


@router.get(
    "/metrics",
    response_model=list[DashboardMetricRead],
    dependencies=[Depends(require_perm(PERM_DASHBOARD_READ))],
)
def get_metrics(claims: Claims, service: Service) -> list[DashboardMetricRead]:
    return service.metrics(claims["utility_id"])


@router.get(
    "/overview",
    response_model=DashboardOverviewRead,
    dependencies=[Depends(require_perm(PERM_DASHBOARD_READ))],
)
def get_overview(claims: Claims, service: Service) -> DashboardOverviewRead:
    return service.overview(claims["utility_id"])


@ws_router.websocket("/ws/dashboard")
async def ws_dashboard(websocket: WebSocket, token: str | None = Query(default=None)) -> None:
    claims = await authenticate_websocket(websocket, token, PERM_DASHBOARD_READ)
    if claims is None:
        return
    utility_id: str = claims["utility_id"]

    await websocket.accept()
    service = DashboardService()
    try:
        while True:
            overview = service.overview(utility_id)
            await websocket.send_json(overview.model_dump(mode="json"))
            await asyncio.sleep(DASHBOARD_PUSH_INTERVAL_SECONDS)
    except WebSocketDisconnect:
        return
    except Exception:
        logger.exception("dashboard push failed for utility %s", utility_id)
        await websocket.close(code=1011)
