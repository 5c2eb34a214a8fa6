# src/infrastructure/repositories/sequence_repository.py

import logging

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from src.domain.exceptions import PersistenceError
from src.infrastructure.db.models import SequenceCounter

logger = logging.getLogger(__name__)

EVENT_NAMESPACE = "event"
BOOKING_NAMESPACE = "booking"


class SequenceAllocator:
    """
    Hands out strictly increasing integers per namespace.

    The increment and the read of the new value are one UPDATE ... RETURNING
    statement, so concurrent callers (threads or processes) never see the
    same value.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def next_value(self, namespace: str) -> int:
        while True:
            try:
                value = self._increment(namespace)
                if value is not None:
                    return value
                self._create(namespace)
                return 1
            except IntegrityError:
                # Another caller created the counter first; increment theirs.
                logger.debug("Sequence %s created concurrently, retrying", namespace)
                continue
            except SQLAlchemyError as exc:
                raise PersistenceError(
                    f"Could not allocate next value for {namespace}"
                ) from exc

    def _increment(self, namespace: str) -> int | None:
        stmt = (
            update(SequenceCounter)
            .where(SequenceCounter.name == namespace)
            .values(seq=SequenceCounter.seq + 1)
            .returning(SequenceCounter.seq)
            .execution_options(synchronize_session=False)
        )
        with self.session_factory.begin() as session:
            return session.execute(stmt).scalar_one_or_none()

    def _create(self, namespace: str) -> None:
        with self.session_factory.begin() as session:
            session.add(SequenceCounter(name=namespace, seq=1))
