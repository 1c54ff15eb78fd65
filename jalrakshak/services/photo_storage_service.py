from __future__ import annotations

import hashlib
import logging
import os
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path, PurePosixPath
from uuid import uuid4

logger = logging.getLogger(__name__)


class PhotoBucket(StrEnum):
    COMPLAINT_PHOTOS = "complaint_photos"
    MAINTENANCE_PHOTOS = "maintenance_photos"


class PhotoStorageError(Exception):
    pass


class PhotoNotFoundError(PhotoStorageError):
    pass


@dataclass(frozen=True)
class PhotoUpload:
    file_name: str
    content: bytes
    content_type: str


@dataclass(frozen=True)
class StoredPhoto:
    bucket: str
    object_key: str
    size_bytes: int
    etag: str
    content_type: str
    url: str


class LocalObjectStorageAdapter:
    def __init__(self, root_dir: Path) -> None:
        self._root_dir = root_dir
        self._root_dir.mkdir(parents=True, exist_ok=True)

    def _safe_object_path(self, bucket: str, object_key: str) -> Path:
        normalized_bucket = bucket.strip()
        if not normalized_bucket:
            raise PhotoStorageError("bucket is empty")
        key_path = PurePosixPath(object_key)
        if key_path.is_absolute() or ".." in key_path.parts:
            raise PhotoStorageError("invalid object key")
        if not key_path.parts:
            raise PhotoStorageError("object key is empty")
        return self._root_dir / normalized_bucket / Path(*key_path.parts)

    def put_bytes(self, *, bucket: str, object_key: str, content: bytes) -> tuple[int, str]:
        path = self._safe_object_path(bucket, object_key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return len(content), hashlib.sha256(content).hexdigest()

    def get_path(self, *, bucket: str, object_key: str) -> Path:
        path = self._safe_object_path(bucket, object_key)
        if not path.exists() or not path.is_file():
            raise PhotoNotFoundError("photo not found")
        return path


class PhotoStorageService:
    def __init__(self, root_dir: Path | None = None) -> None:
        backend = os.getenv("OBJECT_STORAGE_BACKEND", "local").strip().lower()
        if backend != "local":
            raise PhotoStorageError(f"unsupported storage backend: {backend}")
        root = root_dir or Path(os.getenv("OBJECT_STORAGE_ROOT", "data/object_storage"))
        self._adapter = LocalObjectStorageAdapter(root)
        self.public_base_url = os.getenv("OBJECT_STORAGE_PUBLIC_BASE_URL", "/api/photos").rstrip("/")
        max_bytes = os.getenv("PHOTO_MAX_BYTES", "10485760").strip()
        self.max_bytes = int(max_bytes) if max_bytes.isdigit() else 10 * 1024 * 1024

    @staticmethod
    def build_object_key(*, utility_id: str, owner_id: str, file_name: str) -> str:
        safe_file_name = Path(file_name).name.replace("\\", "_").replace("/", "_").strip()
        if not safe_file_name:
            safe_file_name = "photo.jpg"
        return f"utilities/{utility_id}/{owner_id}/{uuid4().hex[:12]}-{safe_file_name}"

    def public_url(self, bucket: PhotoBucket, object_key: str) -> str:
        return f"{self.public_base_url}/{bucket.value}/{object_key}"

    def upload_photo(
        self,
        *,
        bucket: PhotoBucket,
        utility_id: str,
        owner_id: str,
        file_name: str,
        content: bytes,
        content_type: str,
    ) -> StoredPhoto:
        if not content_type.startswith("image/"):
            raise PhotoStorageError(f"unsupported content type: {content_type}")
        if not content:
            raise PhotoStorageError("photo is empty")
        if len(content) > self.max_bytes:
            raise PhotoStorageError("photo exceeds size limit")
        object_key = self.build_object_key(utility_id=utility_id, owner_id=owner_id, file_name=file_name)
        size_bytes, etag = self._adapter.put_bytes(bucket=bucket.value, object_key=object_key, content=content)
        logger.debug("stored photo %s/%s (%d bytes)", bucket.value, object_key, size_bytes)
        return StoredPhoto(
            bucket=bucket.value,
            object_key=object_key,
            size_bytes=size_bytes,
            etag=etag,
            content_type=content_type,
            url=self.public_url(bucket, object_key),
        )

    def get_photo_path(self, *, bucket: PhotoBucket, object_key: str) -> Path:
        return self._adapter.get_path(bucket=bucket.value, object_key=object_key)
