from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import sessionmaker

from src.application.booking_service import BookingService
from src.application.consistency import ConsistencyGuard
from src.application.event_service import EventService
from src.domain.identity import ADMIN_ROLE, USER_ROLE, Requester
from src.infrastructure.db.session import get_session_factory
from src.infrastructure.repositories.inventory_ledger import InventoryLedger


def get_requester(
    x_user_id: str | None = Header(default=None),
    x_user_role: str = Header(default=USER_ROLE),
) -> Requester:
    """
    Identity forwarded by the authentication layer in front of this service.
    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    role = x_user_role.lower()
    if role not in {USER_ROLE, ADMIN_ROLE}:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Unknown role",
        )
    return Requester(user_id=x_user_id, role=role)


def get_admin(requester: Requester = Depends(get_requester)) -> Requester:
    if not requester.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return requester


def get_booking_service(
    session_factory: sessionmaker = Depends(get_session_factory),
) -> BookingService:
    return BookingService(session_factory)


def get_event_service(
    session_factory: sessionmaker = Depends(get_session_factory),
) -> EventService:
    return EventService(session_factory)


def get_consistency_guard(
    session_factory: sessionmaker = Depends(get_session_factory),
) -> ConsistencyGuard:
    return ConsistencyGuard(session_factory, InventoryLedger(session_factory))
