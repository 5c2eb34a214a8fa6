

class TicketingError(Exception):
    """
    Base exception for all domain-level errors
    inside the ticket booking core.
    """


class ValidationError(TicketingError):
    """Raised for malformed input, before any state is touched."""


class NotFoundError(TicketingError):
    """Raised when a referenced entity does not exist."""


class EventNotFoundError(NotFoundError):

    def __init__(self, event_id: int):
        self.event_id = event_id
        super().__init__(f"Event {event_id} not found")


class BookingNotFoundError(NotFoundError):

    def __init__(self, booking_id: int):
        self.booking_id = booking_id
        super().__init__(f"Booking {booking_id} not found")


class InsufficientInventoryError(TicketingError):
    """Raised when an event does not have enough tickets left."""

    def __init__(self, event_id: int, requested: int):
        self.event_id = event_id
        self.requested = requested
        super().__init__("Not enough tickets available")


class ForbiddenError(TicketingError):
    """Raised when the requester is neither the owner nor an admin."""


class AlreadyCancelledError(TicketingError):
    """Raised when cancelling a booking that is already cancelled."""

    def __init__(self, booking_id: int):
        self.booking_id = booking_id
        super().__init__("Booking is already cancelled")


class InvalidStateTransitionError(TicketingError):
    """
    Raised when an illegal booking state transition is attempted.
    """

    def __init__(self, from_state: str, to_state: str):
        self.from_state = from_state
        self.to_state = to_state

        message = (
            f"Illegal state transition attempted: "
            f"{from_state} -> {to_state}"
        )
        super().__init__(message)


class PersistenceError(TicketingError):
    """Raised when storage is unreachable or a transaction aborted."""


class ReconciliationRequired(TicketingError):
    """
    Raised when a compensating action could not be applied.

    The ledger and booking records disagree until the pending
    reconciliation entry is replayed.
    """

    def __init__(self, message: str, entry_id: str | None = None):
        self.entry_id = entry_id
        super().__init__(message)
