from __future__ import annotations

import asyncio
import os

import httpx

from demo_common import assert_status, auth_headers, bootstrap_admin, wait_ok


async def _run() -> None:
    base_url = os.getenv("APP_BASE_URL", "http://app:8000").rstrip("/")
    async with httpx.AsyncClient(base_url=base_url, timeout=httpx.Timeout(20.0)) as client:
        await wait_ok(client, "/healthz")
        _, token = await bootstrap_admin(client, "sim")

        normal_resp = await client.post(
            "/api/sensors/simulate",
            json={"ticks": 5},
            headers=auth_headers(token),
        )
        assert_status(normal_resp, 200)
        if normal_resp.json()["readings"] != 30:
            raise RuntimeError("expected six readings per simulated tick")

        drift_resp = await client.post(
            "/api/sensors/simulate",
            json={"ticks": 2, "low_pressure": True, "ph_drift": True},
            headers=auth_headers(token),
        )
        assert_status(drift_resp, 200)

        summary_resp = await client.get("/api/alert/alerts/summary", headers=auth_headers(token))
        assert_status(summary_resp, 200)
        summary = summary_resp.json()
        if summary["critical_active"] < 1 or summary["warning_active"] < 1:
            raise RuntimeError(f"forced drift did not raise alerts: {summary}")

        layer_resp = await client.get("/api/map/layers/issues", headers=auth_headers(token))
        assert_status(layer_resp, 200)

    print("demo_simulation: drift and alert flow ok")


def main() -> None:
    asyncio.run(_run())


if __name__ == "__main__":
    main()
