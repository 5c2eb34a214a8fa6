import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import select

from src.application.event_service import EventDraft, EventService
from src.domain.identity import ADMIN_ROLE, Requester
from src.infrastructure.db.models import Base, Event
from src.infrastructure.db.session import SessionLocal, engine

logger = logging.getLogger(__name__)

SEED_ADMIN = Requester(user_id="seed-admin", role=ADMIN_ROLE)


def _dt(days_from_now: int, hour: int, minute: int) -> datetime:
    target = datetime.now(timezone.utc) + timedelta(days=days_from_now)
    return target.replace(hour=hour, minute=minute, second=0, microsecond=0)


EVENT_DEFS = [
    EventDraft(
        name="Open Air Jazz Night",
        description="An evening of live jazz by the river.",
        category="Music",
        venue="Riverside Amphitheatre",
        date=_dt(days_from_now=10, hour=19, minute=30),
        price=Decimal("45.00"),
        total_tickets=400,
    ),
    EventDraft(
        name="City Tech Meetup",
        description="Lightning talks and networking for local developers.",
        category="Technology",
        venue="Innovation Hub, Hall B",
        date=_dt(days_from_now=15, hour=18, minute=0),
        price=Decimal("0.00"),
        total_tickets=120,
    ),
    EventDraft(
        name="Spring Food Festival",
        description="Street food stalls from over forty vendors.",
        category="Food",
        venue="Central Park Grounds",
        date=_dt(days_from_now=21, hour=11, minute=0),
        price=Decimal("12.50"),
        total_tickets=700,
    ),
]


def seed_events(service: EventService) -> int:
    created = 0
    for draft in EVENT_DEFS:
        with SessionLocal() as db:
            existing = db.execute(
                select(Event.id).where(Event.name == draft.name)
            ).scalar_one_or_none()
        if existing is not None:
            logger.info("Skipping %s, already seeded as event %s.", draft.name, existing)
            continue
        service.create_event(SEED_ADMIN, draft)
        created += 1
    return created


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    Base.metadata.create_all(bind=engine)
    created = seed_events(EventService(SessionLocal))
    print(f"Seed complete: {created} demo events added.")


if __name__ == "__main__":
    main()
