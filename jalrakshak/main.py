from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException

from jalrakshak.api.routers import (
    alerts,
    changes,
    complaints,
    dashboard,
    identity,
    maintenance,
    map_router,
    photos,
    sensors,
    system_health,
)
from jalrakshak.infra.audit import AuditMiddleware
from jalrakshak.infra.db import DATABASE_AUTO_CREATE, check_db_ready, create_all_tables
from jalrakshak.infra.redis_state import check_redis_ready
from jalrakshak.services.simulation_service import (
    SENSOR_SIMULATION_ENABLED,
    SENSOR_SIMULATION_UTILITY_ID,
    simulation_service,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    if DATABASE_AUTO_CREATE:
        create_all_tables()
    simulation_task: asyncio.Task[None] | None = None
    if SENSOR_SIMULATION_ENABLED:
        if SENSOR_SIMULATION_UTILITY_ID:
            simulation_task = asyncio.create_task(
                simulation_service.run_forever(
                    SENSOR_SIMULATION_UTILITY_ID,
                    on_ingest=sensors.broadcast_ingest,
                )
            )
        else:
            logger.warning("sensor simulation enabled without SENSOR_SIMULATION_UTILITY_ID; not starting")
    try:
        yield
    finally:
        if simulation_task is not None:
            simulation_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await simulation_task


app = FastAPI(
    title="jalrakshak",
    description="Water utility monitoring: sensors, alerts, complaints, maintenance and network map.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(AuditMiddleware)

app.include_router(identity.router, prefix="/api/identity", tags=["identity"])
app.include_router(sensors.router, prefix="/api/sensors", tags=["sensors"])
app.include_router(alerts.router, prefix="/api/alert", tags=["alert"])
app.include_router(complaints.router, prefix="/api/complaint", tags=["complaint"])
app.include_router(maintenance.router, prefix="/api/maintenance", tags=["maintenance"])
app.include_router(system_health.router, prefix="/api/system-health", tags=["system-health"])
app.include_router(dashboard.router, prefix="/api/dashboard", tags=["dashboard"])
app.include_router(dashboard.ws_router, tags=["dashboard-ws"])
app.include_router(changes.ws_router, tags=["changes-ws"])
app.include_router(map_router.router, prefix="/api/map", tags=["map"])
app.include_router(photos.router, prefix="/api/photos", tags=["photos"])


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/readyz")
def readyz() -> dict[str, object]:
    db_ok = check_db_ready()
    redis_ok = check_redis_ready()
    checks = {
        "db": "ok" if db_ok else "fail",
        "redis": "ok" if redis_ok else "fail",
    }
    if not (db_ok and redis_ok):
        raise HTTPException(
            status_code=503,
            detail={"status": "not_ready", "checks": checks},
        )
    return {"status": "ready", "checks": checks}
