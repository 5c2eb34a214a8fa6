# src/infrastructure/repositories/inventory_ledger.py

import logging
from dataclasses import dataclass

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, sessionmaker

from src.config import MAX_INTEGER
from src.domain.exceptions import (
    EventNotFoundError,
    InsufficientInventoryError,
    ValidationError,
)
from src.domain.state_machine import BookingStatus
from src.infrastructure.db.models import Booking, Event
from src.infrastructure.db.session import unit_of_work

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InventorySnapshot:
    event_id: int
    total_tickets: int
    available_tickets: int
    booked_tickets: int

    @property
    def consistent(self) -> bool:
        return self.available_tickets + self.booked_tickets == self.total_tickets


class InventoryLedger:
    """
    Owns events.available_tickets.

    Every mutation is a single conditional UPDATE evaluated by the database,
    never a read followed by a write from Python. Passing `session` joins the
    caller's transaction; otherwise each call commits on its own.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def reserve(
        self,
        event_id: int,
        quantity: int,
        session: Session | None = None,
    ) -> None:
        """
        Decrement available tickets by `quantity` iff enough remain.
        """
        stmt = (
            update(Event)
            .where(Event.id == event_id)
            .where(Event.available_tickets >= quantity)
            .values(available_tickets=Event.available_tickets - quantity)
            .execution_options(synchronize_session=False)
        )

        with unit_of_work(self.session_factory, session) as db:
            result = db.execute(stmt)
            if result.rowcount == 1:
                return
            if not self._exists(db, event_id):
                raise EventNotFoundError(event_id)
            raise InsufficientInventoryError(event_id, quantity)

    def release(
        self,
        event_id: int,
        quantity: int,
        session: Session | None = None,
    ) -> None:
        """
        Return `quantity` tickets to the pool, never exceeding total_tickets.

        Both paths are conditional UPDATEs with complementary predicates, so
        whichever one matches is evaluated against the row it writes. If a
        concurrent reservation moves the row between them, neither matches
        and the pair is tried again.
        """
        stmt = (
            update(Event)
            .where(Event.id == event_id)
            .where(Event.available_tickets + quantity <= Event.total_tickets)
            .values(available_tickets=Event.available_tickets + quantity)
            .execution_options(synchronize_session=False)
        )
        clamp_stmt = (
            update(Event)
            .where(Event.id == event_id)
            .where(Event.available_tickets + quantity > Event.total_tickets)
            .values(available_tickets=Event.total_tickets)
            .execution_options(synchronize_session=False)
        )

        with unit_of_work(self.session_factory, session) as db:
            while True:
                if db.execute(stmt).rowcount == 1:
                    return
                if db.execute(clamp_stmt).rowcount == 1:
                    logger.warning(
                        "Release of %s tickets on event %s clamped at total_tickets; possible duplicate release.",
                        quantity,
                        event_id,
                    )
                    return
                if not self._exists(db, event_id):
                    raise EventNotFoundError(event_id)

    def resize(
        self,
        event_id: int,
        new_total: int,
        session: Session | None = None,
    ) -> None:
        """
        Change capacity, shifting available tickets by the same difference.
        """
        if new_total < 1:
            raise ValidationError("total_tickets must be at least 1")
        if new_total > MAX_INTEGER:
            raise ValidationError(f"total_tickets must not exceed {MAX_INTEGER}")

        diff = new_total - Event.total_tickets
        stmt = (
            update(Event)
            .where(Event.id == event_id)
            .where(Event.available_tickets + diff >= 0)
            .values(
                total_tickets=new_total,
                available_tickets=Event.available_tickets + diff,
            )
            .execution_options(synchronize_session=False)
        )

        with unit_of_work(self.session_factory, session) as db:
            if db.execute(stmt).rowcount == 1:
                return
            if not self._exists(db, event_id):
                raise EventNotFoundError(event_id)
            raise ValidationError(
                "Cannot reduce total tickets below the number of tickets already booked"
            )

    def snapshot(self, event_id: int) -> InventorySnapshot:
        with unit_of_work(self.session_factory) as db:
            event = db.execute(
                select(Event).where(Event.id == event_id)
            ).scalar_one_or_none()
            if not event:
                raise EventNotFoundError(event_id)

            booked = db.execute(
                select(func.coalesce(func.sum(Booking.quantity), 0))
                .where(Booking.event_id == event_id)
                .where(Booking.status == BookingStatus.ACTIVE)
            ).scalar_one()

            return InventorySnapshot(
                event_id=event.id,
                total_tickets=event.total_tickets,
                available_tickets=event.available_tickets,
                booked_tickets=int(booked),
            )

    @staticmethod
    def _exists(db: Session, event_id: int) -> bool:
        found = db.execute(
            select(Event.pk).where(Event.id == event_id)
        ).scalar_one_or_none()
        return found is not None
