import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.orm import sessionmaker

from src import config
from src.application.consistency import ConsistencyGuard
from src.application.event_service import EventService
from src.domain.exceptions import (
    AlreadyCancelledError,
    BookingNotFoundError,
    ForbiddenError,
    InvalidStateTransitionError,
    ValidationError,
)
from src.domain.identity import Requester
from src.domain.state_machine import BookingStatus, next_status
from src.infrastructure.db.models import Booking, Event
from src.infrastructure.db.session import unit_of_work
from src.infrastructure.repositories.booking_repository import BookingRepository
from src.infrastructure.repositories.event_repository import EventRepository
from src.infrastructure.repositories.inventory_ledger import InventoryLedger
from src.infrastructure.repositories.sequence_repository import (
    BOOKING_NAMESPACE,
    SequenceAllocator,
)

logger = logging.getLogger(__name__)


@dataclass
class BookingPage:
    items: list[tuple[Booking, Event | None]]
    current_page: int
    total_pages: int
    total_bookings: int


class BookingService:
    """
    Application service coordinating the booking lifecycle.

    Creation reserves inventory first and only then allocates an id and
    stores the booking; a failure after the reservation is compensated by
    the ConsistencyGuard. Cancellation flips the status and releases the
    tickets inside one transaction.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        ledger: InventoryLedger | None = None,
        allocator: SequenceAllocator | None = None,
        guard: ConsistencyGuard | None = None,
        catalog: EventService | None = None,
    ):
        self.session_factory = session_factory
        self.ledger = ledger or InventoryLedger(session_factory)
        self.allocator = allocator or SequenceAllocator(session_factory)
        self.guard = guard or ConsistencyGuard(session_factory, self.ledger)
        self.catalog = catalog or EventService(
            session_factory,
            ledger=self.ledger,
            allocator=self.allocator,
        )

    def create_booking(
        self,
        user_id: str,
        event_id: int,
        quantity: int,
    ) -> Booking:
        if not 1 <= quantity <= config.MAX_INTEGER:
            raise ValidationError(f"Quantity must be between 1 and {config.MAX_INTEGER}")

        event = self.catalog.get_event(event_id)

        self.ledger.reserve(event_id, quantity)

        booking_id: int | None = None
        try:
            booking_id = self.allocator.next_value(BOOKING_NAMESPACE)
            with unit_of_work(self.session_factory) as db:
                booking = BookingRepository(db).create_booking(
                    booking_id=booking_id,
                    user_id=user_id,
                    event_id=event_id,
                    quantity=quantity,
                    total_price=event.price * quantity,
                    booking_date=datetime.now(timezone.utc),
                )
        except Exception as exc:
            logger.error(
                "Booking could not be stored after reservation. event_id=%s quantity=%s booking_id=%s error=%s",
                event_id,
                quantity,
                booking_id,
                exc,
            )
            self.guard.compensate_release(
                event_id=event_id,
                quantity=quantity,
                reason=f"booking persistence failed: {exc}",
                booking_id=booking_id,
            )
            raise

        logger.info(
            "Booking %s created. user_id=%s event_id=%s quantity=%s",
            booking.id,
            user_id,
            event_id,
            quantity,
        )
        return booking

    def cancel_booking(
        self,
        requester: Requester,
        booking_id: int,
    ) -> Booking:
        with unit_of_work(self.session_factory) as db:
            repo = BookingRepository(db)
            booking = self._load_owned(repo, requester, booking_id)

            try:
                target = next_status(booking.status, BookingStatus.CANCELLED)
            except InvalidStateTransitionError as exc:
                raise AlreadyCancelledError(booking_id) from exc

            changed = repo.transition_status(
                booking_id,
                from_status=booking.status,
                to_status=target,
                changed_at=datetime.now(timezone.utc),
            )
            if not changed:
                # A concurrent cancel won the compare-and-set.
                raise AlreadyCancelledError(booking_id)

            self.ledger.release(booking.event_id, booking.quantity, session=db)
            db.refresh(booking)

        logger.info(
            "Booking %s cancelled by %s. event_id=%s released=%s",
            booking_id,
            requester.user_id,
            booking.event_id,
            booking.quantity,
        )
        return booking

    def get_booking(
        self,
        requester: Requester,
        booking_id: int,
    ) -> tuple[Booking, Event | None]:
        with unit_of_work(self.session_factory) as db:
            booking = self._load_owned(BookingRepository(db), requester, booking_id)
            event = EventRepository(db).get_by_id(booking.event_id)
            return booking, event

    def list_bookings(
        self,
        user_id: str,
        page: int = 1,
        limit: int | None = None,
    ) -> BookingPage:
        limit = config.DEFAULT_PAGE_SIZE if limit is None else limit
        if page < 1:
            raise ValidationError("page must be at least 1")
        if not 1 <= limit <= config.MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {config.MAX_PAGE_SIZE}")

        with unit_of_work(self.session_factory) as db:
            repo = BookingRepository(db)
            total = repo.count_for_user(user_id)
            bookings = repo.list_for_user(user_id, offset=(page - 1) * limit, limit=limit)
            events = EventRepository(db).get_by_ids({b.event_id for b in bookings})

        return BookingPage(
            items=[(booking, events.get(booking.event_id)) for booking in bookings],
            current_page=page,
            total_pages=math.ceil(total / limit),
            total_bookings=total,
        )

    @staticmethod
    def _load_owned(
        repo: BookingRepository,
        requester: Requester,
        booking_id: int,
    ) -> Booking:
        booking = repo.get_by_id(booking_id)
        if not booking:
            raise BookingNotFoundError(booking_id)
        if not requester.can_access(booking.user_id):
            raise ForbiddenError("Not authorized to access this booking")
        return booking
