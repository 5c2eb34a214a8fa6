import os
import tempfile
from datetime import datetime, timedelta, timezone
from decimal import Decimal

# Point the application engine at a throwaway SQLite file before src is imported.
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite:///{os.path.join(tempfile.gettempdir(), 'ticket_booking_app_test.db')}",
)
os.environ.setdefault("DB_CONNECT_MAX_RETRIES", "1")

import pytest
from fastapi.testclient import TestClient

from src.application.booking_service import BookingService
from src.application.consistency import ConsistencyGuard
from src.application.event_service import EventDraft, EventService
from src.domain.identity import ADMIN_ROLE, Requester
from src.infrastructure.db.models import Base
from src.infrastructure.db.session import (
    build_engine,
    build_session_factory,
    get_session_factory,
)
from src.infrastructure.repositories.inventory_ledger import InventoryLedger
from src.infrastructure.repositories.sequence_repository import SequenceAllocator
from src.main import app

ADMIN = Requester(user_id="admin-1", role=ADMIN_ROLE)
ALICE = Requester(user_id="alice")
BOB = Requester(user_id="bob")


@pytest.fixture
def engine(tmp_path):
    # File-backed so that worker threads get their own connections.
    engine = build_engine(f"sqlite:///{tmp_path / 'booking.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def ledger(session_factory):
    return InventoryLedger(session_factory)


@pytest.fixture
def allocator(session_factory):
    return SequenceAllocator(session_factory)


@pytest.fixture
def event_service(session_factory, ledger, allocator):
    return EventService(session_factory, ledger=ledger, allocator=allocator)


@pytest.fixture
def guard(session_factory, ledger):
    return ConsistencyGuard(session_factory, ledger, max_attempts=3, sleep=lambda _: None)


@pytest.fixture
def booking_service(session_factory, ledger, allocator, guard, event_service):
    return BookingService(
        session_factory,
        ledger=ledger,
        allocator=allocator,
        guard=guard,
        catalog=event_service,
    )


@pytest.fixture
def make_event(event_service):
    def _make(total_tickets=10, price="25.00", name="Summer Concert", days_ahead=30):
        return event_service.create_event(
            ADMIN,
            EventDraft(
                name=name,
                description="Outdoor concert",
                category="Music",
                venue="City Arena",
                date=datetime.now(timezone.utc) + timedelta(days=days_ahead),
                price=Decimal(price),
                total_tickets=total_tickets,
            ),
        )

    return _make


@pytest.fixture
def client(session_factory):
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"X-User-Id": ADMIN.user_id, "X-User-Role": "admin"}


@pytest.fixture
def alice_headers():
    return {"X-User-Id": ALICE.user_id}


@pytest.fixture
def bob_headers():
    return {"X-User-Id": BOB.user_id}
