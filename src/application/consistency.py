import logging
import time
from dataclasses import dataclass, field
from typing import Callable

from sqlalchemy.orm import sessionmaker

from src import config
from src.domain.exceptions import (
    EventNotFoundError,
    PersistenceError,
    ReconciliationRequired,
)
from src.infrastructure.db.models import ReconciliationEntry
from src.infrastructure.db.session import unit_of_work
from src.infrastructure.repositories.inventory_ledger import InventoryLedger
from src.infrastructure.repositories.reconciliation_repository import (
    RELEASE_ACTION,
    ReconciliationRepository,
)

logger = logging.getLogger(__name__)


@dataclass
class ReplaySummary:
    resolved: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class ConsistencyGuard:
    """
    Keeps ledger and booking records in step when a unit of work fails
    halfway.

    A reservation whose booking could not be stored is undone with a
    release. That release is retried; when it still cannot be applied the
    pending release is written to the reconciliation log and the caller gets
    ReconciliationRequired.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        ledger: InventoryLedger,
        max_attempts: int | None = None,
        retry_delay: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.session_factory = session_factory
        self.ledger = ledger
        self.max_attempts = max(1, max_attempts or config.COMPENSATION_MAX_ATTEMPTS)
        self.retry_delay = (
            config.COMPENSATION_RETRY_DELAY if retry_delay is None else retry_delay
        )
        self._sleep = sleep

    def compensate_release(
        self,
        event_id: int,
        quantity: int,
        reason: str,
        booking_id: int | None = None,
    ) -> None:
        last_error: Exception | None = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                self.ledger.release(event_id, quantity)
                logger.info(
                    "Compensating release applied. event_id=%s quantity=%s attempt=%s",
                    event_id,
                    quantity,
                    attempt,
                )
                return
            except EventNotFoundError:
                logger.warning(
                    "Compensating release skipped, event %s no longer exists.",
                    event_id,
                )
                return
            except PersistenceError as exc:
                last_error = exc
                logger.warning(
                    "Compensating release failed (attempt %s/%s). event_id=%s quantity=%s error=%s",
                    attempt,
                    self.max_attempts,
                    event_id,
                    quantity,
                    exc,
                )
                if attempt < self.max_attempts:
                    self._sleep(self.retry_delay * attempt)

        entry_id = self.record_release(
            event_id=event_id,
            quantity=quantity,
            reason=reason,
            booking_id=booking_id,
            error=str(last_error),
        )
        raise ReconciliationRequired(
            f"Release of {quantity} tickets for event {event_id} is pending reconciliation",
            entry_id=entry_id,
        ) from last_error

    def record_release(
        self,
        event_id: int,
        quantity: int,
        reason: str,
        booking_id: int | None = None,
        error: str | None = None,
    ) -> str | None:
        try:
            with unit_of_work(self.session_factory) as db:
                entry = ReconciliationRepository(db).add_entry(
                    action=RELEASE_ACTION,
                    event_id=event_id,
                    quantity=quantity,
                    reason=reason,
                    booking_id=booking_id,
                    last_error=error,
                )
                entry_id = entry.pk
        except PersistenceError:
            logger.critical(
                "Could not persist reconciliation entry. action=%s event_id=%s quantity=%s booking_id=%s reason=%s error=%s",
                RELEASE_ACTION,
                event_id,
                quantity,
                booking_id,
                reason,
                error,
                exc_info=True,
            )
            return None

        logger.error(
            "Reconciliation entry %s recorded. event_id=%s quantity=%s booking_id=%s reason=%s",
            entry_id,
            event_id,
            quantity,
            booking_id,
            reason,
        )
        return entry_id

    def list_pending(self, limit: int = 100) -> list[ReconciliationEntry]:
        with unit_of_work(self.session_factory) as db:
            return ReconciliationRepository(db).list_pending(limit=limit)

    def replay_pending(self, limit: int = 100) -> ReplaySummary:
        summary = ReplaySummary()

        for pending in self.list_pending(limit=limit):
            try:
                with unit_of_work(self.session_factory) as db:
                    repo = ReconciliationRepository(db)
                    entry = repo.get_by_pk(pending.pk)
                    if entry is None or entry.status != "PENDING":
                        continue
                    self._apply(entry, db)
                    repo.mark_resolved(entry)
                summary.resolved.append(pending.pk)
            except PersistenceError as exc:
                logger.warning(
                    "Reconciliation entry %s still failing: %s",
                    pending.pk,
                    exc,
                )
                self._mark_failed(pending.pk, str(exc))
                summary.failed.append(pending.pk)

        logger.info(
            "Reconciliation replay finished. resolved=%s failed=%s",
            len(summary.resolved),
            len(summary.failed),
        )
        return summary

    def _apply(self, entry: ReconciliationEntry, db) -> None:
        if entry.action != RELEASE_ACTION:
            raise PersistenceError(f"Unknown reconciliation action {entry.action}")
        try:
            self.ledger.release(entry.event_id, entry.quantity, session=db)
        except EventNotFoundError:
            # Nothing left to return the tickets to.
            logger.warning(
                "Reconciliation entry %s resolved without release, event %s no longer exists.",
                entry.pk,
                entry.event_id,
            )

    def _mark_failed(self, entry_pk: str, error: str) -> None:
        try:
            with unit_of_work(self.session_factory) as db:
                repo = ReconciliationRepository(db)
                entry = repo.get_by_pk(entry_pk)
                if entry is not None:
                    repo.mark_failed(entry, error)
        except PersistenceError:
            logger.exception("Could not update reconciliation entry %s", entry_pk)
