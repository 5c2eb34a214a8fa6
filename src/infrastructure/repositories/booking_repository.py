# src/infrastructure/repositories/booking_repository.py

from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session
from sqlalchemy import func, select, update

from src.infrastructure.db.models import Booking
from src.domain.state_machine import BookingStatus


class BookingRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(
        self,
        booking_id: int,
    ) -> Booking | None:

        stmt = select(Booking).where(Booking.id == booking_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def create_booking(
        self,
        booking_id: int,
        user_id: str,
        event_id: int,
        quantity: int,
        total_price: Decimal,
        booking_date: datetime,
    ) -> Booking:

        booking = Booking(
            id=booking_id,
            user_id=user_id,
            event_id=event_id,
            quantity=quantity,
            total_price=total_price,
            booking_date=booking_date,
            status=BookingStatus.ACTIVE,
        )

        self.db.add(booking)
        self.db.flush()
        return booking

    def transition_status(
        self,
        booking_id: int,
        from_status: BookingStatus,
        to_status: BookingStatus,
        changed_at: datetime,
    ) -> bool:
        """
        Compare-and-set on status. False when another request got there first.
        """
        values = {"status": to_status}
        if to_status == BookingStatus.CANCELLED:
            values["cancelled_at"] = changed_at

        stmt = (
            update(Booking)
            .where(Booking.id == booking_id)
            .where(Booking.status == from_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount == 1

    def list_for_user(
        self,
        user_id: str,
        offset: int,
        limit: int,
    ) -> list[Booking]:
        stmt = (
            select(Booking)
            .where(Booking.user_id == user_id)
            .order_by(Booking.booking_date.desc(), Booking.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def count_for_user(self, user_id: str) -> int:
        stmt = select(func.count(Booking.pk)).where(Booking.user_id == user_id)
        return int(self.db.execute(stmt).scalar_one())

    def exists_for_event(self, event_id: int) -> bool:
        stmt = select(Booking.pk).where(Booking.event_id == event_id).limit(1)
        return self.db.execute(stmt).first() is not None
