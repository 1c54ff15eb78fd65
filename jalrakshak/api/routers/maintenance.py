from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile, status

from jalrakshak.api.deps import get_current_claims, require_perm
from jalrakshak.domain.models import (
    MaintenanceTask,
    MaintenanceTaskComplete,
    MaintenanceTaskCreate,
    MaintenanceTaskRead,
)
from jalrakshak.domain.permissions import PERM_MAINTENANCE_READ, PERM_MAINTENANCE_WRITE
from jalrakshak.domain.state_machine import MaintenanceStatus
from jalrakshak.infra.audit import set_audit_context
from jalrakshak.infra.change_feed import ChangeTable, ChangeType, change_feed_hub
from jalrakshak.services.maintenance_service import (
    ConflictError,
    MaintenanceService,
    NotFoundError,
    to_read_model,
)
from jalrakshak.services.photo_storage_service import PhotoStorageError, PhotoUpload

router = APIRouter()


def get_maintenance_service() -> MaintenanceService:
    return MaintenanceService()


Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Service = Annotated[MaintenanceService, Depends(get_maintenance_service)]


def _handle_maintenance_error(exc: Exception) -> None:
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, ConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if isinstance(exc, PhotoStorageError):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    raise exc


async def _broadcast(utility_id: str, change: ChangeType, task: MaintenanceTask) -> MaintenanceTaskRead:
    read = to_read_model(task)
    await change_feed_hub.broadcast(
        utility_id,
        ChangeTable.MAINTENANCE_TASKS,
        change,
        read.model_dump(mode="json"),
    )
    return read


@router.get(
    "/tasks",
    response_model=list[MaintenanceTaskRead],
    dependencies=[Depends(require_perm(PERM_MAINTENANCE_READ))],
)
def list_tasks(
    claims: Claims,
    service: Service,
    task_status: MaintenanceStatus | None = None,
    assigned_to: str | None = None,
    overdue: bool | None = None,
) -> list[MaintenanceTaskRead]:
    rows = [
        to_read_model(item)
        for item in service.list_tasks(claims["utility_id"], status=task_status, assigned_to=assigned_to)
    ]
    if overdue is not None:
        rows = [item for item in rows if item.overdue == overdue]
    return rows


@router.post(
    "/tasks",
    response_model=MaintenanceTaskRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_MAINTENANCE_WRITE))],
)
async def create_task(payload: MaintenanceTaskCreate, claims: Claims, service: Service) -> MaintenanceTaskRead:
    try:
        row = service.create_task(claims["utility_id"], claims["sub"], payload)
    except (NotFoundError, ConflictError) as exc:
        _handle_maintenance_error(exc)
        raise
    return await _broadcast(claims["utility_id"], ChangeType.INSERT, row)


@router.get(
    "/tasks/{task_id}",
    response_model=MaintenanceTaskRead,
    dependencies=[Depends(require_perm(PERM_MAINTENANCE_READ))],
)
def get_task(task_id: str, claims: Claims, service: Service) -> MaintenanceTaskRead:
    try:
        return to_read_model(service.get_task(claims["utility_id"], task_id))
    except (NotFoundError, ConflictError) as exc:
        _handle_maintenance_error(exc)
        raise


@router.post(
    "/tasks/{task_id}/start",
    response_model=MaintenanceTaskRead,
    dependencies=[Depends(require_perm(PERM_MAINTENANCE_WRITE))],
)
async def start_task(task_id: str, claims: Claims, service: Service) -> MaintenanceTaskRead:
    try:
        row = service.start_task(claims["utility_id"], task_id, claims["sub"])
    except (NotFoundError, ConflictError) as exc:
        _handle_maintenance_error(exc)
        raise
    return await _broadcast(claims["utility_id"], ChangeType.UPDATE, row)


@router.post(
    "/tasks/{task_id}/complete",
    response_model=MaintenanceTaskRead,
    dependencies=[Depends(require_perm(PERM_MAINTENANCE_WRITE))],
)
async def complete_task(
    task_id: str,
    request: Request,
    claims: Claims,
    service: Service,
    payload: MaintenanceTaskComplete | None = None,
) -> MaintenanceTaskRead:
    set_audit_context(request, action="maintenance.task.complete", detail={"what": {"task_id": task_id}})
    try:
        row = service.complete_task(claims["utility_id"], task_id, claims["sub"], payload)
    except (NotFoundError, ConflictError) as exc:
        _handle_maintenance_error(exc)
        raise
    return await _broadcast(claims["utility_id"], ChangeType.UPDATE, row)


@router.post(
    "/tasks/{task_id}/photos",
    response_model=MaintenanceTaskRead,
    dependencies=[Depends(require_perm(PERM_MAINTENANCE_WRITE))],
)
async def add_task_photo(
    task_id: str,
    claims: Claims,
    service: Service,
    photo: Annotated[UploadFile, File()],
) -> MaintenanceTaskRead:
    upload = PhotoUpload(
        file_name=photo.filename or "photo.jpg",
        content=await photo.read(),
        content_type=photo.content_type or "application/octet-stream",
    )
    try:
        row = service.add_photo(claims["utility_id"], task_id, upload)
    except (NotFoundError, ConflictError, PhotoStorageError) as exc:
        _handle_maintenance_error(exc)
        raise
    return await _broadcast(claims["utility_id"], ChangeType.UPDATE, row)
