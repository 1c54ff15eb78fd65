from __future__ import annotations

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from jalrakshak.api.deps import authenticate_websocket
from jalrakshak.domain.permissions import (
    PERM_ALERT_READ,
    PERM_COMPLAINT_READ,
    PERM_MAINTENANCE_READ,
    PERM_SENSOR_READ,
)
from jalrakshak.infra.change_feed import ChangeTable, change_feed_hub

ws_router = APIRouter()

TABLE_PERMISSIONS: dict[ChangeTable, str] = {
    ChangeTable.SENSOR_READINGS: PERM_SENSOR_READ,
    ChangeTable.COMPLAINTS: PERM_COMPLAINT_READ,
    ChangeTable.ALERTS: PERM_ALERT_READ,
    ChangeTable.MAINTENANCE_TASKS: PERM_MAINTENANCE_READ,
}

WS_CLOSE_UNKNOWN_TABLE = 4404


@ws_router.websocket("/ws/changes")
async def ws_changes(
    websocket: WebSocket,
    table: str = Query(...),
    token: str | None = Query(default=None),
) -> None:
    try:
        change_table = ChangeTable(table)
    except ValueError:
        await websocket.close(code=WS_CLOSE_UNKNOWN_TABLE)
        return
    claims = await authenticate_websocket(websocket, token, TABLE_PERMISSIONS[change_table])
    if claims is None:
        return
    utility_id: str = claims["utility_id"]

    await change_feed_hub.connect(utility_id, change_table, websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        change_feed_hub.disconnect(utility_id, change_table, websocket)
