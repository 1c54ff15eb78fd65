from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import FileResponse

from jalrakshak.api.deps import get_current_claims
from jalrakshak.services.photo_storage_service import (
    PhotoBucket,
    PhotoNotFoundError,
    PhotoStorageError,
    PhotoStorageService,
)

router = APIRouter()


def get_photo_storage_service() -> PhotoStorageService:
    return PhotoStorageService()


Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Service = Annotated[PhotoStorageService, Depends(get_photo_storage_service)]


@router.get("/{bucket}/{object_key:path}")
def download_photo(bucket: PhotoBucket, object_key: str, claims: Claims, service: Service) -> FileResponse:
    # Object keys are namespaced by utility; never serve another utility's files.
    if not object_key.startswith(f"utilities/{claims['utility_id']}/"):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="photo not found")
    try:
        path = service.get_photo_path(bucket=bucket, object_key=object_key)
    except PhotoNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except PhotoStorageError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return FileResponse(path)
