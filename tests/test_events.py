from __future__ import annotations

from sqlmodel import Session, SQLModel, create_engine, select

from jalrakshak.domain.models import EventEnvelope, EventRecord
from jalrakshak.infra import events
from jalrakshak.infra.events import EventLog


def test_append_joins_caller_session() -> None:
    engine = create_engine("sqlite:///:memory:")
    SQLModel.metadata.create_all(engine)

    log = EventLog()
    event = EventEnvelope(
        event_type="sensor.reading_inserted",
        utility_id="utility-a",
        payload={"sensor_id": "FLOW_001"},
    )

    with Session(engine) as session:
        log.append(event, session=session)
        session.rollback()
    with Session(engine) as session:
        assert session.exec(select(EventRecord)).all() == []

    with Session(engine) as session:
        log.append(event, session=session)
        session.commit()
    with Session(engine) as session:
        stored = session.exec(select(EventRecord)).all()

    assert len(stored) == 1
    assert stored[0].event_id == event.event_id
    assert stored[0].utility_id == "utility-a"


def test_record_commits_on_its_own(monkeypatch) -> None:
    engine = create_engine("sqlite:///:memory:")
    SQLModel.metadata.create_all(engine)
    monkeypatch.setattr(events, "engine", engine)

    log = EventLog()
    created = log.record("alert.created", "utility-a", {"alert_id": "a-1"})
    log.record("alert.resolved", "utility-a", {"alert_id": "a-1"}, actor_id="user-1")

    with Session(engine) as session:
        stored = session.exec(select(EventRecord)).all()

    assert created.event_type == "alert.created"
    assert {item.event_type for item in stored} == {"alert.created", "alert.resolved"}
    assert [item.actor_id for item in stored if item.event_type == "alert.resolved"] == ["user-1"]
    assert [item.payload for item in stored if item.event_id == created.event_id] == [{"alert_id": "a-1"}]
