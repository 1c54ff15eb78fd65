from __future__ import annotations

import logging

from sqlmodel import Session, col, select

from jalrakshak.domain.models import (
    Complaint,
    ComplaintCreate,
    ComplaintStatusUpdate,
    User,
    now_utc,
)
from jalrakshak.domain.state_machine import ComplaintStatus, can_complaint_transition
from jalrakshak.infra.db import get_engine
from jalrakshak.infra.events import event_log
from jalrakshak.services.photo_storage_service import (
    PhotoBucket,
    PhotoStorageError,
    PhotoStorageService,
    PhotoUpload,
)

logger = logging.getLogger(__name__)


class ComplaintError(Exception):
    pass


class NotFoundError(ComplaintError):
    pass


class ConflictError(ComplaintError):
    pass


class ValidationError(ComplaintError):
    pass


class ComplaintService:
    def __init__(self, *, photo_storage: PhotoStorageService | None = None) -> None:
        self._photo_storage = photo_storage

    @property
    def photo_storage(self) -> PhotoStorageService:
        if self._photo_storage is None:
            self._photo_storage = PhotoStorageService()
        return self._photo_storage

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_scoped_complaint(self, session: Session, utility_id: str, complaint_id: str) -> Complaint:
        complaint = session.exec(
            select(Complaint)
            .where(Complaint.utility_id == utility_id)
            .where(Complaint.id == complaint_id)
        ).first()
        if complaint is None:
            raise NotFoundError("complaint not found")
        return complaint

    def _ensure_scoped_user(self, session: Session, utility_id: str, user_id: str) -> None:
        user = session.exec(select(User).where(User.utility_id == utility_id).where(User.id == user_id)).first()
        if user is None:
            raise NotFoundError("assignee not found")

    def _upload_photos(self, utility_id: str, complaint_id: str, photos: list[PhotoUpload]) -> list[str]:
        urls: list[str] = []
        for photo in photos:
            try:
                stored = self.photo_storage.upload_photo(
                    bucket=PhotoBucket.COMPLAINT_PHOTOS,
                    utility_id=utility_id,
                    owner_id=complaint_id,
                    file_name=photo.file_name,
                    content=photo.content,
                    content_type=photo.content_type,
                )
            except (PhotoStorageError, OSError):
                # The complaint is already stored; a lost photo does not undo it.
                logger.warning(
                    "dropping photo %s for complaint %s",
                    photo.file_name,
                    complaint_id,
                    exc_info=True,
                )
                continue
            urls.append(stored.url)
        return urls

    def submit_complaint(
        self,
        utility_id: str,
        actor_id: str,
        payload: ComplaintCreate,
        photos: list[PhotoUpload] | None = None,
    ) -> Complaint:
        if not payload.description.strip():
            raise ValidationError("description is required")
        if not payload.location.strip():
            raise ValidationError("location is required")
        with self._session() as session:
            complaint = Complaint(
                utility_id=utility_id,
                description=payload.description.strip(),
                location=payload.location.strip(),
                priority=payload.priority,
                category=payload.category,
                status=ComplaintStatus.PENDING,
                submitted_by=actor_id,
                submitted_at=now_utc(),
                gps_coordinates=payload.gps.to_wkt() if payload.gps is not None else None,
                gps_accuracy=payload.gps.accuracy if payload.gps is not None else None,
            )
            session.add(complaint)
            session.commit()
            session.refresh(complaint)

            if photos:
                urls = self._upload_photos(utility_id, complaint.id, photos)
                if urls:
                    complaint.photo_urls = [*complaint.photo_urls, *urls]
                    session.add(complaint)
                    session.commit()
                    session.refresh(complaint)

        event_log.record(
            "complaint.submitted",
            utility_id,
            {
                "complaint_id": complaint.id,
                "category": complaint.category,
                "priority": complaint.priority,
                "photos": len(complaint.photo_urls),
                "has_gps": complaint.gps_coordinates is not None,
            },
            actor_id=actor_id,
        )
        return complaint

    def add_photo(
        self,
        utility_id: str,
        complaint_id: str,
        photo: PhotoUpload,
        *,
        submitted_by: str | None = None,
    ) -> Complaint:
        with self._session() as session:
            complaint = self._get_scoped_complaint(session, utility_id, complaint_id)
            # Citizens may only attach photos to their own complaints.
            if submitted_by is not None and complaint.submitted_by != submitted_by:
                raise NotFoundError("complaint not found")
            stored = self.photo_storage.upload_photo(
                bucket=PhotoBucket.COMPLAINT_PHOTOS,
                utility_id=utility_id,
                owner_id=complaint.id,
                file_name=photo.file_name,
                content=photo.content,
                content_type=photo.content_type,
            )
            complaint.photo_urls = [*complaint.photo_urls, stored.url]
            session.add(complaint)
            session.commit()
            session.refresh(complaint)
            return complaint

    def list_complaints(
        self,
        utility_id: str,
        *,
        status: ComplaintStatus | None = None,
        submitted_by: str | None = None,
    ) -> list[Complaint]:
        with self._session() as session:
            statement = select(Complaint).where(Complaint.utility_id == utility_id)
            if status is not None:
                statement = statement.where(Complaint.status == status)
            if submitted_by is not None:
                statement = statement.where(Complaint.submitted_by == submitted_by)
            statement = statement.order_by(col(Complaint.submitted_at).desc())
            return list(session.exec(statement).all())

    def get_complaint(self, utility_id: str, complaint_id: str) -> Complaint:
        with self._session() as session:
            return self._get_scoped_complaint(session, utility_id, complaint_id)

    def update_status(
        self,
        utility_id: str,
        complaint_id: str,
        actor_id: str,
        payload: ComplaintStatusUpdate,
    ) -> Complaint:
        with self._session() as session:
            complaint = self._get_scoped_complaint(session, utility_id, complaint_id)
            source = ComplaintStatus(complaint.status)
            target = payload.status
            if source != target and not can_complaint_transition(source, target):
                raise ConflictError(f"cannot move complaint from {source.value} to {target.value}")
            if payload.assigned_to is not None:
                self._ensure_scoped_user(session, utility_id, payload.assigned_to)
                complaint.assigned_to = payload.assigned_to
            if payload.resolution_notes is not None:
                complaint.resolution_notes = payload.resolution_notes
            complaint.status = target
            if target == ComplaintStatus.RESOLVED and complaint.resolved_at is None:
                complaint.resolved_at = now_utc()
            session.add(complaint)
            session.commit()
            session.refresh(complaint)

        event_log.record(
            "complaint.status_changed",
            utility_id,
            {
                "complaint_id": complaint.id,
                "from_status": source,
                "to_status": target,
                "assigned_to": complaint.assigned_to,
            },
            actor_id=actor_id,
        )
        return complaint
