# src/infrastructure/repositories/reconciliation_repository.py

from datetime import datetime, timezone

from sqlalchemy.orm import Session
from sqlalchemy import select

from src.infrastructure.db.models import ReconciliationEntry

RELEASE_ACTION = "RELEASE"


class ReconciliationRepository:

    def __init__(self, db: Session):
        self.db = db

    def add_entry(
        self,
        action: str,
        event_id: int,
        quantity: int,
        reason: str,
        booking_id: int | None = None,
        last_error: str | None = None,
    ) -> ReconciliationEntry:
        entry = ReconciliationEntry(
            action=action,
            event_id=event_id,
            quantity=quantity,
            booking_id=booking_id,
            reason=reason,
            status="PENDING",
            attempts=0,
            last_error=last_error,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def list_pending(self, limit: int = 100) -> list[ReconciliationEntry]:
        stmt = (
            select(ReconciliationEntry)
            .where(ReconciliationEntry.status == "PENDING")
            .order_by(ReconciliationEntry.created_at, ReconciliationEntry.pk)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def get_by_pk(self, entry_pk: str) -> ReconciliationEntry | None:
        return self.db.get(ReconciliationEntry, entry_pk)

    def mark_resolved(self, entry: ReconciliationEntry) -> None:
        entry.status = "RESOLVED"
        entry.attempts += 1
        entry.last_error = None
        entry.resolved_at = datetime.now(timezone.utc)

    def mark_failed(self, entry: ReconciliationEntry, error: str) -> None:
        entry.attempts += 1
        entry.last_error = error
