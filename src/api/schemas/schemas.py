from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from src.config import MAX_INTEGER


class BookingRequest(BaseModel):
    event_id: int = Field(ge=1, le=MAX_INTEGER)
    quantity: int = Field(gt=0, le=MAX_INTEGER)


class EventSummary(BaseModel):
    id: int
    name: str
    date: datetime
    venue: str
    category: str
    price: Decimal


class BookingResponse(BaseModel):
    id: int
    event_id: int
    user_id: str
    quantity: int
    total_price: Decimal
    status: str
    booking_date: datetime
    cancelled_at: datetime | None = None


class BookingDetailResponse(BookingResponse):
    event: EventSummary | None = None


class BookingListResponse(BaseModel):
    bookings: list[BookingDetailResponse]
    current_page: int
    total_pages: int
    total_bookings: int


class EventCreate(BaseModel):
    name: str = Field(min_length=1)
    description: str = Field(min_length=1)
    category: str = Field(min_length=1)
    venue: str = Field(min_length=1)
    date: datetime
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    total_tickets: int = Field(ge=1, le=MAX_INTEGER)


class EventUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    description: str | None = Field(default=None, min_length=1)
    category: str | None = Field(default=None, min_length=1)
    venue: str | None = Field(default=None, min_length=1)
    date: datetime | None = None
    price: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    total_tickets: int | None = Field(default=None, ge=1, le=MAX_INTEGER)


class EventResponse(BaseModel):
    id: int
    name: str
    description: str
    category: str
    venue: str
    date: datetime
    price: Decimal
    total_tickets: int
    available_tickets: int
    created_by: str


class EventListResponse(BaseModel):
    events: list[EventResponse]
    current_page: int
    total_pages: int
    total_events: int


class InventoryResponse(BaseModel):
    event_id: int
    total_tickets: int
    available_tickets: int
    booked_tickets: int
    consistent: bool


class ReconciliationEntryResponse(BaseModel):
    id: str
    action: str
    event_id: int
    quantity: int
    booking_id: int | None = None
    reason: str
    status: str
    attempts: int
    last_error: str | None = None
    created_at: str


class ReconciliationReplayResponse(BaseModel):
    resolved: list[str]
    failed: list[str]
