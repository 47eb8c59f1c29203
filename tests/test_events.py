from __future__ import annotations

from sqlmodel import Session, SQLModel, create_engine, select

from app.domain.models import EventEnvelope, EventRecord
from app.infra import events
from app.infra.events import EventBus
from app.infra.request_context import set_request_context


def test_event_bus_publish_and_subscribe() -> None:
    engine = create_engine("sqlite:///:memory:")
    SQLModel.metadata.create_all(engine)

    bus = EventBus()
    seen: list[str] = []

    def handler(event: EventEnvelope) -> None:
        seen.append(event.event_id)

    event = EventEnvelope(
        event_type="asset.assigned",
        actor_id="admin-1",
        payload={"asset_id": "asset-1", "employee_id": "emp1"},
    )
    bus.subscribe("asset.assigned", handler)

    with Session(engine) as session:
        bus.publish(event, session=session)
        session.commit()

    with Session(engine) as session:
        stored = session.exec(select(EventRecord)).all()

    assert len(stored) == 1
    assert stored[0].event_id == event.event_id
    assert stored[0].payload["employee_id"] == "emp1"
    assert seen == [event.event_id]

    bus.unsubscribe("asset.assigned", handler)
    with Session(engine) as session:
        bus.publish(EventEnvelope(event_type="asset.assigned", payload={}), session=session)
        session.commit()
    assert seen == [event.event_id]


def test_publish_dict_uses_request_context(monkeypatch) -> None:
    engine = create_engine("sqlite:///:memory:")
    SQLModel.metadata.create_all(engine)
    monkeypatch.setattr(events, "engine", engine)

    bus = EventBus()
    wildcard: list[str] = []
    bus.subscribe("*", lambda event: wildcard.append(event.event_type))

    set_request_context("admin-2", "req-7")
    try:
        published = bus.publish_dict("asset.returned", {"asset_id": "asset-9"})
        explicit = bus.publish_dict("asset.deleted", {"asset_id": "asset-9"}, actor_id="admin-3")
    finally:
        set_request_context(None)

    assert published.actor_id == "admin-2"
    assert published.correlation_id == "req-7"
    assert explicit.actor_id == "admin-3"
    assert wildcard == ["asset.returned", "asset.deleted"]

    with Session(engine) as session:
        stored = session.exec(select(EventRecord).where(EventRecord.event_type == "asset.returned")).one()
    assert stored.correlation_id == "req-7"
