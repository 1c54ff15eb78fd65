from __future__ import annotations

import os
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    "postgresql+psycopg://jalrakshak:jalrakshak@db:5432/jalrakshak",
)
DATABASE_AUTO_CREATE = os.getenv("DATABASE_AUTO_CREATE", "false").strip().lower() in {"1", "true", "yes"}


def _engine_kwargs(url: str) -> dict[str, Any]:
    if url.startswith("sqlite"):
        # Sessions are opened from the simulation task as well as request threads.
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


engine = create_engine(DATABASE_URL, **_engine_kwargs(DATABASE_URL))


def get_engine() -> Engine:
    return engine


def create_all_tables() -> None:
    from jalrakshak.domain import models  # noqa: F401

    SQLModel.metadata.create_all(get_engine())


def check_db_ready() -> bool:
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
