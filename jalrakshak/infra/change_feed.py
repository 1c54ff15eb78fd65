"""Push channel for row changes, one subscription per (utility, table).

Clients open ``/ws/changes?table=...`` and receive ``INSERT``/``UPDATE``
payloads shaped like a database change feed: ``{"table", "event_type", "new"}``.
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ChangeTable(StrEnum):
    SENSOR_READINGS = "sensor_readings"
    COMPLAINTS = "complaints"
    ALERTS = "alerts"
    MAINTENANCE_TASKS = "maintenance_tasks"


class ChangeType(StrEnum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"


class ChangeFeedHub:
    def __init__(self) -> None:
        self._connections: dict[tuple[str, ChangeTable], set[WebSocket]] = {}

    async def connect(self, utility_id: str, table: ChangeTable, websocket: WebSocket) -> None:
        await websocket.accept()
        self._connections.setdefault((utility_id, table), set()).add(websocket)

    def disconnect(self, utility_id: str, table: ChangeTable, websocket: WebSocket) -> None:
        key = (utility_id, table)
        conns = self._connections.get(key, set())
        if websocket in conns:
            conns.remove(websocket)
        if not conns and key in self._connections:
            del self._connections[key]

    async def broadcast(
        self,
        utility_id: str,
        table: ChangeTable,
        change: ChangeType,
        row: dict[str, Any],
    ) -> None:
        payload = {"table": table.value, "event_type": change.value, "new": row}
        for connection in list(self._connections.get((utility_id, table), set())):
            try:
                await connection.send_json(payload)
            except Exception:
                logger.info("dropping change feed subscriber for %s/%s", utility_id, table.value)
                self.disconnect(utility_id, table, connection)


change_feed_hub = ChangeFeedHub()
