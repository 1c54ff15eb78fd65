from __future__ import annotations

import os
from functools import lru_cache

from redis import Redis

from jalrakshak.domain.models import SensorSnapshot

REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")


@lru_cache(maxsize=1)
def get_redis() -> Redis:
    return Redis.from_url(REDIS_URL, decode_responses=True)


def check_redis_ready() -> bool:
    try:
        return bool(get_redis().ping())
    except Exception:
        return False


def snapshot_key(utility_id: str) -> str:
    return f"snapshot:{utility_id}"


def load_snapshot(utility_id: str) -> SensorSnapshot | None:
    raw = get_redis().get(snapshot_key(utility_id))
    if raw is None:
        return None
    if isinstance(raw, bytes):
        raw = raw.decode()
    if not isinstance(raw, str):
        return None
    return SensorSnapshot.model_validate_json(raw)


def store_snapshot(utility_id: str, snapshot: SensorSnapshot) -> None:
    get_redis().set(snapshot_key(utility_id), snapshot.model_dump_json())
