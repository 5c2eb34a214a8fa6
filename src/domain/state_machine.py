# src/domain/state_machine.py

from enum import Enum

from src.domain.exceptions import InvalidStateTransitionError


class BookingStatus(str, Enum):
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"


# A booking is created ACTIVE and may be cancelled once.
_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.ACTIVE: frozenset({BookingStatus.CANCELLED}),
    BookingStatus.CANCELLED: frozenset(),
}


def next_status(current: BookingStatus, target: BookingStatus) -> BookingStatus:
    """
    Return `target` if a booking in `current` may move there.

    Raises InvalidStateTransitionError otherwise; the booking service turns
    the CANCELLED -> CANCELLED case into AlreadyCancelledError.
    """
    if not isinstance(current, BookingStatus) or not isinstance(target, BookingStatus):
        raise TypeError(f"Expected BookingStatus, got {type(current)} -> {type(target)}")
    if target not in _TRANSITIONS[current]:
        raise InvalidStateTransitionError(from_state=current.value, to_state=target.value)
    return target
