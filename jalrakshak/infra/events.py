from __future__ import annotations

import logging
from typing import Any

from sqlmodel import Session

from jalrakshak.domain.models import EventEnvelope, EventRecord
from jalrakshak.infra.db import engine

logger = logging.getLogger(__name__)


class EventLog:
    """Append-only log of domain events in the ``events`` table.

    Live pushes to connected views go through the change feed hub; this log
    is the durable record of what happened per utility.
    """

    def append(self, event: EventEnvelope, session: Session | None = None) -> EventRecord:
        record = EventRecord(
            event_id=event.event_id,
            event_type=event.event_type,
            utility_id=event.utility_id,
            ts=event.ts,
            actor_id=event.actor_id,
            payload=event.payload,
        )
        if session is not None:
            # Caller owns the transaction.
            session.add(record)
            return record
        with Session(engine, expire_on_commit=False) as own_session:
            own_session.add(record)
            own_session.commit()
        logger.debug("event %s recorded for utility %s", event.event_type, event.utility_id)
        return record

    def record(
        self,
        event_type: str,
        utility_id: str,
        payload: dict[str, Any],
        *,
        actor_id: str | None = None,
    ) -> EventEnvelope:
        event = EventEnvelope(
            event_type=event_type,
            utility_id=utility_id,
            actor_id=actor_id,
            payload=payload,
        )
        self.append(event)
        return event


event_log = EventLog()
