from __future__ import annotations

import asyncio
import os
from datetime import UTC, datetime, timedelta

import httpx

from demo_common import assert_status, auth_headers, bootstrap_admin, register_citizen, wait_ok


async def _run() -> None:
    base_url = os.getenv("APP_BASE_URL", "http://app:8000").rstrip("/")
    timeout = httpx.Timeout(20.0)
    async with httpx.AsyncClient(base_url=base_url, timeout=timeout) as client:
        await wait_ok(client, "/healthz")
        await wait_ok(client, "/readyz")

        utility_id, admin_token = await bootstrap_admin(client, "e2e")
        citizen_token = await register_citizen(client, utility_id, "e2e")

        reading_resp = await client.post(
            "/api/sensors/readings",
            json={
                "sensor_id": "PRESS_001",
                "sensor_type": "pressure",
                "value": 2.4,
                "unit": "bar",
                "location": "Main Distribution",
            },
            headers=auth_headers(admin_token),
        )
        assert_status(reading_resp, 201)
        if reading_resp.json()["status"] != "critical":
            raise RuntimeError("low pressure reading was not classified critical")

        alerts_resp = await client.get(
            "/api/alert/alerts",
            params={"resolved": False},
            headers=auth_headers(citizen_token),
        )
        assert_status(alerts_resp, 200)
        pressure_alerts = [item for item in alerts_resp.json() if item["sensor_id"] == "PRESS_001"]
        if not pressure_alerts:
            raise RuntimeError("low pressure alert not raised")

        ack_resp = await client.post(
            f"/api/alert/alerts/{pressure_alerts[0]['id']}/acknowledge",
            headers=auth_headers(admin_token),
        )
        assert_status(ack_resp, 200)

        complaint_resp = await client.post(
            "/api/complaint/complaints",
            data={
                "description": "Pipe burst near the school",
                "location": "Ward 3, School Road",
                "priority": "high",
                "category": "leak",
                "latitude": "18.5204",
                "longitude": "73.8567",
                "accuracy": "8",
            },
            files=[("photos", ("leak.jpg", b"\xff\xd8\xff\xe0demo", "image/jpeg"))],
            headers=auth_headers(citizen_token),
        )
        assert_status(complaint_resp, 201)
        complaint = complaint_resp.json()

        status_resp = await client.patch(
            f"/api/complaint/complaints/{complaint['id']}/status",
            json={"status": "resolved", "resolution_notes": "Joint replaced"},
            headers=auth_headers(admin_token),
        )
        assert_status(status_resp, 200)

        due = (datetime.now(UTC).date() + timedelta(days=3)).isoformat()
        task_resp = await client.post(
            "/api/maintenance/tasks",
            json={"task": "Flush storage tank", "due_date": due, "location": "Tank T1"},
            headers=auth_headers(admin_token),
        )
        assert_status(task_resp, 201)
        task_id = task_resp.json()["id"]
        assert_status(
            await client.post(f"/api/maintenance/tasks/{task_id}/start", headers=auth_headers(admin_token)),
            200,
        )
        assert_status(
            await client.post(
                f"/api/maintenance/tasks/{task_id}/complete",
                json={"actual_duration": 45, "cost": 1200},
                headers=auth_headers(admin_token),
            ),
            200,
        )

        overview_resp = await client.get("/api/dashboard/overview", headers=auth_headers(citizen_token))
        assert_status(overview_resp, 200)
        if overview_resp.json()["alerts"]["critical_active"] < 1:
            raise RuntimeError("dashboard does not report the active pressure alert")

    print("demo_e2e: water monitoring flow ok")


def main() -> None:
    asyncio.run(_run())


if __name__ == "__main__":
    main()
