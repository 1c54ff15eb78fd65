from __future__ import annotations

from datetime import UTC, date, datetime

from sqlmodel import Session, col, select

from jalrakshak.domain.models import (
    MaintenanceTask,
    MaintenanceTaskComplete,
    MaintenanceTaskCreate,
    MaintenanceTaskRead,
    User,
    now_utc,
)
from jalrakshak.domain.state_machine import MaintenanceStatus, can_maintenance_transition
from jalrakshak.infra.db import get_engine
from jalrakshak.infra.events import event_log
from jalrakshak.services.photo_storage_service import PhotoBucket, PhotoStorageService, PhotoUpload


class MaintenanceError(Exception):
    pass


class NotFoundError(MaintenanceError):
    pass


class ConflictError(MaintenanceError):
    pass


def is_overdue(task: MaintenanceTask, today: date | None = None) -> bool:
    if task.status == MaintenanceStatus.COMPLETED:
        return False
    return task.due_date < (today or datetime.now(UTC).date())


def to_read_model(task: MaintenanceTask, today: date | None = None) -> MaintenanceTaskRead:
    read = MaintenanceTaskRead.model_validate(task)
    read.overdue = is_overdue(task, today)
    return read


class MaintenanceService:
    def __init__(self, *, photo_storage: PhotoStorageService | None = None) -> None:
        self._photo_storage = photo_storage

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_scoped_task(self, session: Session, utility_id: str, task_id: str) -> MaintenanceTask:
        task = session.exec(
            select(MaintenanceTask)
            .where(MaintenanceTask.utility_id == utility_id)
            .where(MaintenanceTask.id == task_id)
        ).first()
        if task is None:
            raise NotFoundError("maintenance task not found")
        return task

    def _transition(self, task: MaintenanceTask, target: MaintenanceStatus) -> MaintenanceStatus:
        source = MaintenanceStatus(task.status)
        if not can_maintenance_transition(source, target):
            raise ConflictError(f"cannot move task from {source.value} to {target.value}")
        task.status = target
        return source

    def create_task(self, utility_id: str, actor_id: str, payload: MaintenanceTaskCreate) -> MaintenanceTask:
        with self._session() as session:
            if payload.assigned_to is not None:
                assignee = session.exec(
                    select(User).where(User.utility_id == utility_id).where(User.id == payload.assigned_to)
                ).first()
                if assignee is None:
                    raise NotFoundError("assignee not found")
            task = MaintenanceTask(
                utility_id=utility_id,
                task=payload.task,
                description=payload.description,
                priority=payload.priority,
                status=MaintenanceStatus.PENDING,
                due_date=payload.due_date,
                assigned_to=payload.assigned_to,
                location=payload.location,
                estimated_duration=payload.estimated_duration,
                notes=payload.notes,
                created_by=actor_id,
            )
            session.add(task)
            session.commit()
            session.refresh(task)

        event_log.record(
            "maintenance.task_created",
            utility_id,
            {"task_id": task.id, "due_date": task.due_date.isoformat(), "priority": task.priority},
            actor_id=actor_id,
        )
        return task

    def list_tasks(
        self,
        utility_id: str,
        *,
        status: MaintenanceStatus | None = None,
        assigned_to: str | None = None,
    ) -> list[MaintenanceTask]:
        with self._session() as session:
            statement = select(MaintenanceTask).where(MaintenanceTask.utility_id == utility_id)
            if status is not None:
                statement = statement.where(MaintenanceTask.status == status)
            if assigned_to is not None:
                statement = statement.where(MaintenanceTask.assigned_to == assigned_to)
            statement = statement.order_by(col(MaintenanceTask.due_date).asc())
            return list(session.exec(statement).all())

    def get_task(self, utility_id: str, task_id: str) -> MaintenanceTask:
        with self._session() as session:
            return self._get_scoped_task(session, utility_id, task_id)

    def start_task(self, utility_id: str, task_id: str, actor_id: str) -> MaintenanceTask:
        with self._session() as session:
            task = self._get_scoped_task(session, utility_id, task_id)
            self._transition(task, MaintenanceStatus.IN_PROGRESS)
            if task.assigned_to is None:
                task.assigned_to = actor_id
            session.add(task)
            session.commit()
            session.refresh(task)

        event_log.record(
            "maintenance.task_started",
            utility_id,
            {"task_id": task.id, "assigned_to": task.assigned_to},
            actor_id=actor_id,
        )
        return task

    def complete_task(
        self,
        utility_id: str,
        task_id: str,
        actor_id: str,
        payload: MaintenanceTaskComplete | None = None,
    ) -> MaintenanceTask:
        with self._session() as session:
            task = self._get_scoped_task(session, utility_id, task_id)
            self._transition(task, MaintenanceStatus.COMPLETED)
            task.completed_at = now_utc()
            if payload is not None:
                if payload.actual_duration is not None:
                    task.actual_duration = payload.actual_duration
                if payload.cost is not None:
                    task.cost = payload.cost
                if payload.notes is not None:
                    task.notes = payload.notes
            session.add(task)
            session.commit()
            session.refresh(task)

        event_log.record(
            "maintenance.task_completed",
            utility_id,
            {"task_id": task.id, "actual_duration": task.actual_duration, "cost": task.cost},
            actor_id=actor_id,
        )
        return task

    def add_photo(self, utility_id: str, task_id: str, photo: PhotoUpload) -> MaintenanceTask:
        storage = self._photo_storage or PhotoStorageService()
        with self._session() as session:
            task = self._get_scoped_task(session, utility_id, task_id)
            stored = storage.upload_photo(
                bucket=PhotoBucket.MAINTENANCE_PHOTOS,
                utility_id=utility_id,
                owner_id=task.id,
                file_name=photo.file_name,
                content=photo.content,
                content_type=photo.content_type,
            )
            task.photo_urls = [*task.photo_urls, stored.url]
            session.add(task)
            session.commit()
            session.refresh(task)
            return task
