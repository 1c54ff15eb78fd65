from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine, select

from jalrakshak import main as app_main
from jalrakshak.domain.models import AuditLog, EventRecord
from jalrakshak.infra import audit, db, events, redis_state


class FakeRedis:
    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    def set(self, key: str, value: str) -> bool:
        self._store[key] = value
        return True

    def get(self, key: str) -> str | None:
        return self._store.get(key)

    def ping(self) -> bool:
        return True


@pytest.fixture()
def complaint_client(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> Generator[TestClient, None, None]:
    db_path = tmp_path / "complaint_test.db"
    test_engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )
    SQLModel.metadata.create_all(test_engine)
    fake_redis = FakeRedis()

    monkeypatch.setattr(db, "engine", test_engine)
    monkeypatch.setattr(audit, "engine", test_engine)
    monkeypatch.setattr(events, "engine", test_engine)
    monkeypatch.setattr(redis_state, "get_redis", lambda: fake_redis)
    monkeypatch.setenv("OBJECT_STORAGE_ROOT", str(tmp_path / "object_storage"))

    client = TestClient(app_main.app)
    yield client
    client.close()


def _auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _login(client: TestClient, utility_id: str, email: str, password: str) -> str:
    response = client.post(
        "/api/identity/login",
        json={"utility_id": utility_id, "email": email, "password": password},
    )
    assert response.status_code == 200
    return response.json()["access_token"]


def _setup(client: TestClient, name: str) -> dict[str, str]:
    utility_id = client.post("/api/identity/utilities", json={"name": name}).json()["id"]
    client.post(
        "/api/identity/bootstrap-admin",
        json={"utility_id": utility_id, "email": "admin@c.in", "password": "admin-pass"},
    )
    admin = _login(client, utility_id, "admin@c.in", "admin-pass")
    staff = client.post(
        "/api/identity/users",
        json={"email": "plumber@c.in", "password": "staff-pass", "role": "staff"},
        headers=_auth_header(admin),
    ).json()
    for email in ("asha@c.in", "ravi@c.in"):
        client.post(
            "/api/identity/register",
            json={"utility_id": utility_id, "email": email, "password": "citizen-pass"},
        )
    return {
        "utility_id": utility_id,
        "admin": admin,
        "staff": _login(client, utility_id, "plumber@c.in", "staff-pass"),
        "staff_id": staff["id"],
        "asha": _login(client, utility_id, "asha@c.in", "citizen-pass"),
        "ravi": _login(client, utility_id, "ravi@c.in", "citizen-pass"),
    }


def test_submit_complaint_with_gps_and_photos(complaint_client: TestClient) -> None:
    ctx = _setup(complaint_client, "complaint-scheme")
    response = complaint_client.post(
        "/api/complaint/complaints",
        data={
            "description": "Water leaking from main line",
            "location": "Ward 3, Temple Street",
            "priority": "high",
            "category": "leak",
            "latitude": "18.5204",
            "longitude": "73.8567",
            "accuracy": "12.5",
        },
        files=[
            ("photos", ("leak.jpg", b"\xff\xd8\xff\xe0fake-jpeg", "image/jpeg")),
            ("photos", ("notes.txt", b"not an image", "text/plain")),
        ],
        headers=_auth_header(ctx["asha"]),
    )
    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "pending"
    assert body["priority"] == "high"
    assert body["category"] == "leak"
    assert body["gps_coordinates"] == "POINT(73.8567 18.5204)"
    assert body["gps_accuracy"] == 12.5
    assert body["resolved_at"] is None
    # The text file is rejected by storage and dropped; the complaint still lands.
    assert len(body["photo_urls"]) == 1
    photo_url = body["photo_urls"][0]
    assert photo_url.startswith(f"/api/photos/complaint_photos/utilities/{ctx['utility_id']}/{body['id']}/")

    download = complaint_client.get(photo_url, headers=_auth_header(ctx["ravi"]))
    assert download.status_code == 200
    assert download.content == b"\xff\xd8\xff\xe0fake-jpeg"

    other_utility = _setup(complaint_client, "other-scheme")
    cross = complaint_client.get(photo_url, headers=_auth_header(other_utility["asha"]))
    assert cross.status_code == 404

    with Session(db.engine) as session:
        rows = session.exec(select(EventRecord).where(EventRecord.event_type == "complaint.submitted")).all()
    assert len(rows) == 1
    assert rows[0].payload["photos"] == 1


def test_submit_complaint_validation(complaint_client: TestClient) -> None:
    ctx = _setup(complaint_client, "validation-scheme")
    headers = _auth_header(ctx["asha"])

    blank = complaint_client.post(
        "/api/complaint/complaints",
        data={"description": "   ", "location": "Ward 1"},
        headers=headers,
    )
    assert blank.status_code == 422

    bad_lat = complaint_client.post(
        "/api/complaint/complaints",
        data={"description": "No water", "location": "Ward 1", "latitude": "95", "longitude": "73"},
        headers=headers,
    )
    assert bad_lat.status_code == 422

    half_fix = complaint_client.post(
        "/api/complaint/complaints",
        data={"description": "No water", "location": "Ward 1", "latitude": "18.5"},
        headers=headers,
    )
    assert half_fix.status_code == 422

    negative_accuracy = complaint_client.post(
        "/api/complaint/complaints",
        data={
            "description": "No water",
            "location": "Ward 1",
            "latitude": "18.5",
            "longitude": "73.8",
            "accuracy": "-1",
        },
        headers=headers,
    )
    assert negative_accuracy.status_code == 422

    no_gps = complaint_client.post(
        "/api/complaint/complaints",
        data={"description": "No water since morning", "location": "Ward 1"},
        headers=headers,
    )
    assert no_gps.status_code == 201
    assert no_gps.json()["gps_coordinates"] is None
    assert no_gps.json()["category"] == "general"
    assert no_gps.json()["priority"] == "medium"


def test_list_complaints_newest_first_and_mine(complaint_client: TestClient) -> None:
    ctx = _setup(complaint_client, "list-scheme")
    first = complaint_client.post(
        "/api/complaint/complaints",
        data={"description": "Low pressure", "location": "Ward 2", "category": "pressure"},
        headers=_auth_header(ctx["asha"]),
    ).json()
    second = complaint_client.post(
        "/api/complaint/complaints",
        data={"description": "Dirty water", "location": "Ward 4", "category": "quality"},
        headers=_auth_header(ctx["ravi"]),
    ).json()

    listed = complaint_client.get("/api/complaint/complaints", headers=_auth_header(ctx["asha"])).json()
    assert [item["id"] for item in listed] == [second["id"], first["id"]]

    mine = complaint_client.get(
        "/api/complaint/complaints",
        params={"mine": True},
        headers=_auth_header(ctx["asha"]),
    ).json()
    assert [item["id"] for item in mine] == [first["id"]]


def test_status_workflow(complaint_client: TestClient) -> None:
    ctx = _setup(complaint_client, "workflow-scheme")
    complaint = complaint_client.post(
        "/api/complaint/complaints",
        data={"description": "Burst pipe", "location": "Market Road", "category": "leak"},
        headers=_auth_header(ctx["asha"]),
    ).json()
    url = f"/api/complaint/complaints/{complaint['id']}/status"

    citizen_update = complaint_client.patch(url, json={"status": "resolved"}, headers=_auth_header(ctx["asha"]))
    assert citizen_update.status_code == 403

    unknown_assignee = complaint_client.patch(
        url,
        json={"status": "in-progress", "assigned_to": "nobody"},
        headers=_auth_header(ctx["staff"]),
    )
    assert unknown_assignee.status_code == 404

    in_progress = complaint_client.patch(
        url,
        json={"status": "in-progress", "assigned_to": ctx["staff_id"]},
        headers=_auth_header(ctx["staff"]),
    )
    assert in_progress.status_code == 200
    assert in_progress.json()["status"] == "in-progress"
    assert in_progress.json()["assigned_to"] == ctx["staff_id"]
    assert in_progress.json()["resolved_at"] is None

    resolved = complaint_client.patch(
        url,
        json={"status": "resolved", "resolution_notes": "Pipe joint replaced"},
        headers=_auth_header(ctx["staff"]),
    )
    assert resolved.status_code == 200
    assert resolved.json()["resolved_at"] is not None
    assert resolved.json()["resolution_notes"] == "Pipe joint replaced"

    reopen = complaint_client.patch(url, json={"status": "pending"}, headers=_auth_header(ctx["staff"]))
    assert reopen.status_code == 409

    missing = complaint_client.patch(
        "/api/complaint/complaints/missing/status",
        json={"status": "resolved"},
        headers=_auth_header(ctx["staff"]),
    )
    assert missing.status_code == 404

    with Session(db.engine) as session:
        audited = session.exec(
            select(AuditLog)
            .where(AuditLog.utility_id == ctx["utility_id"])
            .where(AuditLog.action == "complaint.status_update")
        ).all()
    assert len(audited) == 5
    assert {item.status_code for item in audited} == {200, 404, 409}


def test_add_photo_to_existing_complaint(complaint_client: TestClient) -> None:
    ctx = _setup(complaint_client, "photo-scheme")
    complaint = complaint_client.post(
        "/api/complaint/complaints",
        data={"description": "Meter broken", "location": "House 12"},
        headers=_auth_header(ctx["asha"]),
    ).json()
    assert complaint["photo_urls"] == []

    added = complaint_client.post(
        f"/api/complaint/complaints/{complaint['id']}/photos",
        files={"photo": ("meter.png", b"\x89PNG-data", "image/png")},
        headers=_auth_header(ctx["asha"]),
    )
    assert added.status_code == 200
    assert len(added.json()["photo_urls"]) == 1

    rejected = complaint_client.post(
        f"/api/complaint/complaints/{complaint['id']}/photos",
        files={"photo": ("meter.pdf", b"%PDF", "application/pdf")},
        headers=_auth_header(ctx["asha"]),
    )
    assert rejected.status_code == 422


def test_only_submitter_or_staff_can_add_photos(complaint_client: TestClient) -> None:
    ctx = _setup(complaint_client, "photo-owner-scheme")
    complaint = complaint_client.post(
        "/api/complaint/complaints",
        data={"description": "Leaking valve", "location": "Ward 3"},
        headers=_auth_header(ctx["asha"]),
    ).json()
    url = f"/api/complaint/complaints/{complaint['id']}/photos"

    other_citizen = complaint_client.post(
        url,
        files={"photo": ("valve.png", b"\x89PNG-other", "image/png")},
        headers=_auth_header(ctx["ravi"]),
    )
    assert other_citizen.status_code == 404

    staff = complaint_client.post(
        url,
        files={"photo": ("valve.png", b"\x89PNG-staff", "image/png")},
        headers=_auth_header(ctx["staff"]),
    )
    assert staff.status_code == 200
    assert len(staff.json()["photo_urls"]) == 1

    detail = complaint_client.get(
        f"/api/complaint/complaints/{complaint['id']}",
        headers=_auth_header(ctx["asha"]),
    )
    assert detail.status_code == 200
    assert len(detail.json()["photo_urls"]) == 1
