import logging

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from src import config
from src.api.dependencies import (
    get_admin,
    get_booking_service,
    get_consistency_guard,
    get_event_service,
    get_requester,
)
from src.api.schemas.schemas import (
    BookingDetailResponse,
    BookingListResponse,
    BookingRequest,
    BookingResponse,
    EventCreate,
    EventListResponse,
    EventResponse,
    EventSummary,
    EventUpdate,
    InventoryResponse,
    ReconciliationEntryResponse,
    ReconciliationReplayResponse,
)
from src.application.booking_service import BookingService
from src.application.consistency import ConsistencyGuard
from src.application.event_service import EventDraft, EventService
from src.domain.exceptions import (
    AlreadyCancelledError,
    ForbiddenError,
    InsufficientInventoryError,
    NotFoundError,
    PersistenceError,
    ReconciliationRequired,
    TicketingError,
    ValidationError,
)
from src.domain.identity import Requester
from src.infrastructure.db.models import Booking, Event


router = APIRouter()
logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: list[tuple[type[TicketingError], int]] = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (InsufficientInventoryError, status.HTTP_400_BAD_REQUEST),
    (AlreadyCancelledError, status.HTTP_400_BAD_REQUEST),
    (ForbiddenError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (PersistenceError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def _to_http(exc: TicketingError) -> HTTPException:
    if isinstance(exc, ReconciliationRequired):
        # Neither a success nor a plain failure: the caller's tickets are
        # parked until the reconciliation entry is replayed.
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "status": "RECONCILIATION_PENDING",
                "reference": exc.entry_id,
                "message": "The booking could not be completed and is awaiting reconciliation.",
            },
        )

    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            if status_code >= 500:
                return HTTPException(
                    status_code=status_code,
                    detail="Storage temporarily unavailable",
                )
            return HTTPException(status_code=status_code, detail=str(exc))

    logger.error("Unmapped domain error %s", type(exc).__name__)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal error",
    )


def _event_summary(event: Event | None) -> EventSummary | None:
    if event is None:
        return None
    return EventSummary(
        id=event.id,
        name=event.name,
        date=event.date,
        venue=event.venue,
        category=event.category,
        price=event.price,
    )


def _booking_response(booking: Booking) -> BookingResponse:
    return BookingResponse(
        id=booking.id,
        event_id=booking.event_id,
        user_id=booking.user_id,
        quantity=booking.quantity,
        total_price=booking.total_price,
        status=booking.status.value,
        booking_date=booking.booking_date,
        cancelled_at=booking.cancelled_at,
    )


def _booking_detail(booking: Booking, event: Event | None) -> BookingDetailResponse:
    return BookingDetailResponse(
        **_booking_response(booking).model_dump(),
        event=_event_summary(event),
    )


def _event_response(event: Event) -> EventResponse:
    return EventResponse(
        id=event.id,
        name=event.name,
        description=event.description,
        category=event.category,
        venue=event.venue,
        date=event.date,
        price=event.price,
        total_tickets=event.total_tickets,
        available_tickets=event.available_tickets,
        created_by=event.created_by,
    )


@router.get("/health")
def health():
    return {"message": "Ticket booking core is running"}


# -----------------------------
# Bookings
# -----------------------------
@router.post(
    "/bookings",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_booking(
    request: BookingRequest,
    requester: Requester = Depends(get_requester),
    service: BookingService = Depends(get_booking_service),
):
    try:
        booking = service.create_booking(
            user_id=requester.user_id,
            event_id=request.event_id,
            quantity=request.quantity,
        )
    except TicketingError as exc:
        raise _to_http(exc) from exc

    return _booking_response(booking)


@router.get("/bookings/my-bookings", response_model=BookingListResponse)
def list_my_bookings(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=config.DEFAULT_PAGE_SIZE, ge=1, le=config.MAX_PAGE_SIZE),
    requester: Requester = Depends(get_requester),
    service: BookingService = Depends(get_booking_service),
):
    try:
        result = service.list_bookings(requester.user_id, page=page, limit=limit)
    except TicketingError as exc:
        raise _to_http(exc) from exc

    return BookingListResponse(
        bookings=[_booking_detail(booking, event) for booking, event in result.items],
        current_page=result.current_page,
        total_pages=result.total_pages,
        total_bookings=result.total_bookings,
    )


@router.put("/bookings/{booking_id}/cancel", response_model=BookingResponse)
def cancel_booking(
    booking_id: int = Path(le=config.MAX_INTEGER),
    requester: Requester = Depends(get_requester),
    service: BookingService = Depends(get_booking_service),
):
    try:
        booking = service.cancel_booking(requester, booking_id)
    except TicketingError as exc:
        raise _to_http(exc) from exc

    return _booking_response(booking)


@router.get("/bookings/{booking_id}", response_model=BookingDetailResponse)
def get_booking(
    booking_id: int = Path(le=config.MAX_INTEGER),
    requester: Requester = Depends(get_requester),
    service: BookingService = Depends(get_booking_service),
):
    try:
        booking, event = service.get_booking(requester, booking_id)
    except TicketingError as exc:
        raise _to_http(exc) from exc

    return _booking_detail(booking, event)


# -----------------------------
# Events
# -----------------------------
@router.post(
    "/events",
    response_model=EventResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_event(
    request: EventCreate,
    admin: Requester = Depends(get_admin),
    service: EventService = Depends(get_event_service),
):
    try:
        event = service.create_event(admin, EventDraft(**request.model_dump()))
    except TicketingError as exc:
        raise _to_http(exc) from exc

    return _event_response(event)


@router.get("/events", response_model=EventListResponse)
def list_events(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=config.DEFAULT_PAGE_SIZE, ge=1, le=config.MAX_PAGE_SIZE),
    service: EventService = Depends(get_event_service),
):
    try:
        result = service.list_events(page=page, limit=limit)
    except TicketingError as exc:
        raise _to_http(exc) from exc

    return EventListResponse(
        events=[_event_response(event) for event in result.items],
        current_page=result.current_page,
        total_pages=result.total_pages,
        total_events=result.total_events,
    )


@router.get("/events/{event_id}", response_model=EventResponse)
def get_event(
    event_id: int = Path(le=config.MAX_INTEGER),
    service: EventService = Depends(get_event_service),
):
    try:
        event = service.get_event(event_id)
    except TicketingError as exc:
        raise _to_http(exc) from exc

    return _event_response(event)


@router.put("/events/{event_id}", response_model=EventResponse)
def update_event(
    request: EventUpdate,
    event_id: int = Path(le=config.MAX_INTEGER),
    admin: Requester = Depends(get_admin),
    service: EventService = Depends(get_event_service),
):
    try:
        event = service.update_event(
            admin,
            event_id,
            request.model_dump(exclude_none=True),
        )
    except TicketingError as exc:
        raise _to_http(exc) from exc

    return _event_response(event)


@router.delete("/events/{event_id}")
def delete_event(
    event_id: int = Path(le=config.MAX_INTEGER),
    admin: Requester = Depends(get_admin),
    service: EventService = Depends(get_event_service),
):
    try:
        service.delete_event(admin, event_id)
    except TicketingError as exc:
        raise _to_http(exc) from exc

    return {"message": "Event deleted successfully"}


@router.get("/events/{event_id}/inventory", response_model=InventoryResponse)
def get_event_inventory(
    event_id: int = Path(le=config.MAX_INTEGER),
    service: EventService = Depends(get_event_service),
):
    try:
        snapshot = service.inventory(event_id)
    except TicketingError as exc:
        raise _to_http(exc) from exc

    return InventoryResponse(
        event_id=snapshot.event_id,
        total_tickets=snapshot.total_tickets,
        available_tickets=snapshot.available_tickets,
        booked_tickets=snapshot.booked_tickets,
        consistent=snapshot.consistent,
    )


# -----------------------------
# Reconciliation
# -----------------------------
@router.get(
    "/admin/reconciliation",
    response_model=list[ReconciliationEntryResponse],
)
def list_reconciliation_entries(
    limit: int = Query(default=50, ge=1, le=200),
    admin: Requester = Depends(get_admin),
    guard: ConsistencyGuard = Depends(get_consistency_guard),
):
    try:
        entries = guard.list_pending(limit=limit)
    except TicketingError as exc:
        raise _to_http(exc) from exc

    return [
        ReconciliationEntryResponse(
            id=entry.pk,
            action=entry.action,
            event_id=entry.event_id,
            quantity=entry.quantity,
            booking_id=entry.booking_id,
            reason=entry.reason,
            status=entry.status,
            attempts=entry.attempts,
            last_error=entry.last_error,
            created_at=entry.created_at.isoformat(),
        )
        for entry in entries
    ]


@router.post(
    "/admin/reconciliation/replay",
    response_model=ReconciliationReplayResponse,
)
def replay_reconciliation_entries(
    limit: int = Query(default=100, ge=1, le=500),
    admin: Requester = Depends(get_admin),
    guard: ConsistencyGuard = Depends(get_consistency_guard),
):
    try:
        summary = guard.replay_pending(limit=limit)
    except TicketingError as exc:
        raise _to_http(exc) from exc

    logger.info(
        "Reconciliation replay requested by %s. resolved=%s failed=%s",
        admin.user_id,
        len(summary.resolved),
        len(summary.failed),
    )
    return ReconciliationReplayResponse(
        resolved=summary.resolved,
        failed=summary.failed,
    )
