import logging
import math
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy.orm import sessionmaker

from src import config
from src.domain.exceptions import (
    EventNotFoundError,
    ForbiddenError,
    ValidationError,
)
from src.domain.identity import Requester
from src.infrastructure.db.models import Event
from src.infrastructure.db.session import unit_of_work
from src.infrastructure.repositories.booking_repository import BookingRepository
from src.infrastructure.repositories.event_repository import EventRepository
from src.infrastructure.repositories.inventory_ledger import (
    InventoryLedger,
    InventorySnapshot,
)
from src.infrastructure.repositories.sequence_repository import (
    EVENT_NAMESPACE,
    SequenceAllocator,
)

logger = logging.getLogger(__name__)

CATALOG_FIELDS = {"name", "description", "category", "venue", "date", "price"}


@dataclass
class EventDraft:
    name: str
    description: str
    category: str
    venue: str
    date: datetime
    price: Decimal
    total_tickets: int


@dataclass
class EventPage:
    items: list[Event]
    current_page: int
    total_pages: int
    total_events: int


class EventService:
    """
    Catalog side of events.

    Ticket counts are never assigned here directly: creation seeds
    available_tickets from total_tickets, and capacity changes go through
    the inventory ledger.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        ledger: InventoryLedger | None = None,
        allocator: SequenceAllocator | None = None,
    ):
        self.session_factory = session_factory
        self.ledger = ledger or InventoryLedger(session_factory)
        self.allocator = allocator or SequenceAllocator(session_factory)

    def get_event(self, event_id: int) -> Event:
        with unit_of_work(self.session_factory) as db:
            event = EventRepository(db).get_by_id(event_id)
            if not event:
                raise EventNotFoundError(event_id)
            return event

    def list_events(self, page: int = 1, limit: int | None = None) -> EventPage:
        limit = config.DEFAULT_PAGE_SIZE if limit is None else limit
        if page < 1 or not 1 <= limit <= config.MAX_PAGE_SIZE:
            raise ValidationError("Invalid pagination parameters")

        with unit_of_work(self.session_factory) as db:
            repo = EventRepository(db)
            total = repo.count()
            events = repo.list_events(offset=(page - 1) * limit, limit=limit)

        return EventPage(
            items=events,
            current_page=page,
            total_pages=math.ceil(total / limit),
            total_events=total,
        )

    def create_event(self, requester: Requester, draft: EventDraft) -> Event:
        self._require_admin(requester)
        if not 1 <= draft.total_tickets <= config.MAX_INTEGER:
            raise ValidationError(f"total_tickets must be between 1 and {config.MAX_INTEGER}")
        if draft.price < 0:
            raise ValidationError("price must not be negative")

        event_id = self.allocator.next_value(EVENT_NAMESPACE)
        with unit_of_work(self.session_factory) as db:
            event = EventRepository(db).add(
                Event(
                    id=event_id,
                    name=draft.name,
                    description=draft.description,
                    category=draft.category,
                    venue=draft.venue,
                    date=draft.date,
                    price=draft.price,
                    total_tickets=draft.total_tickets,
                    available_tickets=draft.total_tickets,
                    created_by=requester.user_id,
                )
            )
            db.refresh(event)

        logger.info(
            "Event %s created by %s with %s tickets.",
            event.id,
            requester.user_id,
            event.total_tickets,
        )
        return event

    def update_event(
        self,
        requester: Requester,
        event_id: int,
        changes: dict[str, Any],
    ) -> Event:
        """
        Apply catalog changes. Existing bookings keep their frozen price.
        """
        self._require_admin(requester)
        unknown = set(changes) - CATALOG_FIELDS - {"total_tickets"}
        if unknown:
            raise ValidationError(f"Unknown event fields: {', '.join(sorted(unknown))}")
        if changes.get("price") is not None and changes["price"] < 0:
            raise ValidationError("price must not be negative")

        with unit_of_work(self.session_factory) as db:
            new_total = changes.get("total_tickets")
            if new_total is not None:
                self.ledger.resize(event_id, new_total, session=db)

            event = EventRepository(db).get_by_id(event_id)
            if not event:
                raise EventNotFoundError(event_id)

            for field_name in CATALOG_FIELDS:
                value = changes.get(field_name)
                if value is not None:
                    setattr(event, field_name, value)
            db.flush()
            db.refresh(event)

        logger.info("Event %s updated by %s.", event_id, requester.user_id)
        return event

    def delete_event(self, requester: Requester, event_id: int) -> None:
        self._require_admin(requester)
        with unit_of_work(self.session_factory) as db:
            repo = EventRepository(db)
            event = repo.get_by_id(event_id)
            if not event:
                raise EventNotFoundError(event_id)
            if BookingRepository(db).exists_for_event(event_id):
                raise ValidationError("Cannot delete an event that has bookings")
            repo.delete(event)

        logger.info("Event %s deleted by %s.", event_id, requester.user_id)

    def inventory(self, event_id: int) -> InventorySnapshot:
        return self.ledger.snapshot(event_id)

    @staticmethod
    def _require_admin(requester: Requester) -> None:
        if not requester.is_admin:
            raise ForbiddenError("Admin access required")
