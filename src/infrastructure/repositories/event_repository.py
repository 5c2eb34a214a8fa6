# src/infrastructure/repositories/event_repository.py

from sqlalchemy.orm import Session
from sqlalchemy import func, select

from src.infrastructure.db.models import Event


class EventRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, event_id: int) -> Event | None:
        stmt = select(Event).where(Event.id == event_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_ids(self, event_ids: set[int]) -> dict[int, Event]:
        if not event_ids:
            return {}
        stmt = select(Event).where(Event.id.in_(event_ids))
        return {event.id: event for event in self.db.execute(stmt).scalars().all()}

    def list_events(self, offset: int, limit: int) -> list[Event]:
        stmt = (
            select(Event)
            .order_by(Event.date, Event.id)
            .offset(offset)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def count(self) -> int:
        return int(self.db.execute(select(func.count(Event.pk))).scalar_one())

    def add(self, event: Event) -> Event:
        self.db.add(event)
        self.db.flush()
        return event

    def delete(self, event: Event) -> None:
        self.db.delete(event)
        self.db.flush()
