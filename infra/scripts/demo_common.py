from __future__ import annotations

import asyncio
import time
from uuid import uuid4

import httpx


def assert_status(response: httpx.Response, expected: int | tuple[int, ...]) -> None:
    expected_codes = (expected,) if isinstance(expected, int) else expected
    if response.status_code not in expected_codes:
        raise RuntimeError(
            f"{response.request.method} {response.request.url} expected {expected_codes}, "
            f"got {response.status_code}: {response.text}"
        )


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


async def wait_ok(client: httpx.AsyncClient, path: str, timeout_seconds: float = 60.0) -> None:
    deadline = time.monotonic() + timeout_seconds
    last_status = "n/a"
    while time.monotonic() < deadline:
        try:
            response = await client.get(path)
            if response.status_code == 200:
                return
            last_status = str(response.status_code)
        except httpx.HTTPError as exc:
            last_status = f"http_error: {exc}"
        await asyncio.sleep(1.0)
    raise RuntimeError(f"timeout waiting for {path}, last_status={last_status}")


async def login(client: httpx.AsyncClient, utility_id: str, email: str, password: str) -> str:
    resp = await client.post(
        "/api/identity/login",
        json={"utility_id": utility_id, "email": email, "password": password},
    )
    assert_status(resp, 200)
    return resp.json()["access_token"]


async def bootstrap_admin(client: httpx.AsyncClient, prefix: str) -> tuple[str, str]:
    run_id = uuid4().hex[:8]
    email = f"{prefix}-admin-{run_id}@jalrakshak.test"
    password = f"pass-{run_id}"

    utility_resp = await client.post("/api/identity/utilities", json={"name": f"{prefix}-scheme-{run_id}"})
    assert_status(utility_resp, 201)
    utility_id = utility_resp.json()["id"]

    bootstrap_resp = await client.post(
        "/api/identity/bootstrap-admin",
        json={"utility_id": utility_id, "email": email, "password": password, "full_name": "Scheme Admin"},
    )
    assert_status(bootstrap_resp, 201)
    return utility_id, await login(client, utility_id, email, password)


async def register_citizen(client: httpx.AsyncClient, utility_id: str, prefix: str) -> str:
    run_id = uuid4().hex[:8]
    email = f"{prefix}-citizen-{run_id}@jalrakshak.test"
    password = f"pass-{run_id}"
    resp = await client.post(
        "/api/identity/register",
        json={
            "utility_id": utility_id,
            "email": email,
            "password": password,
            "full_name": "Village Resident",
            "location": "Ward 3",
        },
    )
    assert_status(resp, 201)
    return await login(client, utility_id, email, password)
