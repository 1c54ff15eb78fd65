from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from jalrakshak.api.deps import get_current_claims, require_perm
from jalrakshak.domain.models import (
    Complaint,
    ComplaintCategory,
    ComplaintCreate,
    ComplaintRead,
    ComplaintStatusUpdate,
    GpsFix,
    Priority,
)
from jalrakshak.domain.permissions import (
    PERM_COMPLAINT_MANAGE,
    PERM_COMPLAINT_READ,
    PERM_COMPLAINT_SUBMIT,
    has_permission,
)
from jalrakshak.domain.state_machine import ComplaintStatus
from jalrakshak.infra.audit import set_audit_context
from jalrakshak.infra.change_feed import ChangeTable, ChangeType, change_feed_hub
from jalrakshak.services.complaint_service import (
    ComplaintService,
    ConflictError,
    NotFoundError,
    ValidationError as ComplaintValidationError,
)
from jalrakshak.services.photo_storage_service import PhotoStorageError, PhotoUpload

router = APIRouter()


def get_complaint_service() -> ComplaintService:
    return ComplaintService()


Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Service = Annotated[ComplaintService, Depends(get_complaint_service)]


def _handle_complaint_error(exc: Exception) -> None:
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, ConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if isinstance(exc, (ComplaintValidationError, PhotoStorageError)):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    raise exc


async def _broadcast(utility_id: str, change: ChangeType, complaint: Complaint) -> None:
    await change_feed_hub.broadcast(
        utility_id,
        ChangeTable.COMPLAINTS,
        change,
        ComplaintRead.model_validate(complaint).model_dump(mode="json"),
    )


async def _read_upload(upload: UploadFile) -> PhotoUpload:
    return PhotoUpload(
        file_name=upload.filename or "photo.jpg",
        content=await upload.read(),
        content_type=upload.content_type or "application/octet-stream",
    )


def _build_payload(
    description: str,
    location: str,
    priority: Priority,
    category: ComplaintCategory,
    latitude: float | None,
    longitude: float | None,
    accuracy: float | None,
) -> ComplaintCreate:
    if (latitude is None) != (longitude is None):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="latitude and longitude must be supplied together",
        )
    try:
        gps = None
        if latitude is not None and longitude is not None:
            gps = GpsFix(latitude=latitude, longitude=longitude, accuracy=accuracy)
        return ComplaintCreate(
            description=description,
            location=location,
            priority=priority,
            category=category,
            gps=gps,
        )
    except ValidationError as exc:
        raise RequestValidationError(exc.errors()) from exc


@router.get(
    "/complaints",
    response_model=list[ComplaintRead],
    dependencies=[Depends(require_perm(PERM_COMPLAINT_READ))],
)
def list_complaints(
    claims: Claims,
    service: Service,
    complaint_status: ComplaintStatus | None = None,
    mine: bool = False,
) -> list[ComplaintRead]:
    rows = service.list_complaints(
        claims["utility_id"],
        status=complaint_status,
        submitted_by=claims["sub"] if mine else None,
    )
    return [ComplaintRead.model_validate(item) for item in rows]


@router.post(
    "/complaints",
    response_model=ComplaintRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_COMPLAINT_SUBMIT))],
)
async def submit_complaint(
    claims: Claims,
    service: Service,
    description: Annotated[str, Form()],
    location: Annotated[str, Form()],
    priority: Annotated[Priority, Form()] = Priority.MEDIUM,
    category: Annotated[ComplaintCategory, Form()] = ComplaintCategory.GENERAL,
    latitude: Annotated[float | None, Form()] = None,
    longitude: Annotated[float | None, Form()] = None,
    accuracy: Annotated[float | None, Form()] = None,
    photos: Annotated[list[UploadFile] | None, File()] = None,
) -> ComplaintRead:
    payload = _build_payload(description, location, priority, category, latitude, longitude, accuracy)
    uploads = [await _read_upload(item) for item in photos or []]
    try:
        row = service.submit_complaint(claims["utility_id"], claims["sub"], payload, uploads)
    except (NotFoundError, ConflictError, ComplaintValidationError) as exc:
        _handle_complaint_error(exc)
        raise
    await _broadcast(claims["utility_id"], ChangeType.INSERT, row)
    return ComplaintRead.model_validate(row)


@router.get(
    "/complaints/{complaint_id}",
    response_model=ComplaintRead,
    dependencies=[Depends(require_perm(PERM_COMPLAINT_READ))],
)
def get_complaint(complaint_id: str, claims: Claims, service: Service) -> ComplaintRead:
    try:
        return ComplaintRead.model_validate(service.get_complaint(claims["utility_id"], complaint_id))
    except (NotFoundError, ConflictError) as exc:
        _handle_complaint_error(exc)
        raise


@router.post(
    "/complaints/{complaint_id}/photos",
    response_model=ComplaintRead,
    dependencies=[Depends(require_perm(PERM_COMPLAINT_SUBMIT))],
)
async def add_complaint_photo(
    complaint_id: str,
    claims: Claims,
    service: Service,
    photo: Annotated[UploadFile, File()],
) -> ComplaintRead:
    upload = await _read_upload(photo)
    try:
        owner = None if has_permission(claims, PERM_COMPLAINT_MANAGE) else claims["sub"]
        row = service.add_photo(claims["utility_id"], complaint_id, upload, submitted_by=owner)
    except (NotFoundError, ConflictError, PhotoStorageError) as exc:
        _handle_complaint_error(exc)
        raise
    await _broadcast(claims["utility_id"], ChangeType.UPDATE, row)
    return ComplaintRead.model_validate(row)


@router.patch(
    "/complaints/{complaint_id}/status",
    response_model=ComplaintRead,
    dependencies=[Depends(require_perm(PERM_COMPLAINT_MANAGE))],
)
async def update_complaint_status(
    complaint_id: str,
    payload: ComplaintStatusUpdate,
    request: Request,
    claims: Claims,
    service: Service,
) -> ComplaintRead:
    set_audit_context(
        request,
        action="complaint.status_update",
        detail={"what": {"complaint_id": complaint_id, "status": payload.status.value}},
    )
    try:
        row = service.update_status(claims["utility_id"], complaint_id, claims["sub"], payload)
    except (NotFoundError, ConflictError) as exc:
        _handle_complaint_error(exc)
        raise
    await _broadcast(claims["utility_id"], ChangeType.UPDATE, row)
    return ComplaintRead.model_validate(row)
