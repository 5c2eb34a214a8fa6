from concurrent.futures import ThreadPoolExecutor

import pytest

from src.domain.exceptions import PersistenceError
from src.infrastructure.db.session import build_engine, build_session_factory
from src.infrastructure.repositories.sequence_repository import (
    BOOKING_NAMESPACE,
    EVENT_NAMESPACE,
    SequenceAllocator,
)


def test_first_value_starts_at_one(allocator):
    assert allocator.next_value(BOOKING_NAMESPACE) == 1
    assert allocator.next_value(BOOKING_NAMESPACE) == 2
    assert allocator.next_value(BOOKING_NAMESPACE) == 3


def test_namespaces_are_independent(allocator):
    allocator.next_value(EVENT_NAMESPACE)
    allocator.next_value(EVENT_NAMESPACE)

    assert allocator.next_value(BOOKING_NAMESPACE) == 1
    assert allocator.next_value(EVENT_NAMESPACE) == 3


def test_concurrent_allocation_is_unique_and_gapless(allocator):
    calls = 40

    with ThreadPoolExecutor(max_workers=8) as pool:
        values = list(pool.map(lambda _: allocator.next_value(BOOKING_NAMESPACE), range(calls)))

    assert len(set(values)) == calls
    assert sorted(values) == list(range(1, calls + 1))


def test_concurrent_allocation_continues_existing_sequence(allocator):
    for _ in range(5):
        allocator.next_value(BOOKING_NAMESPACE)

    with ThreadPoolExecutor(max_workers=6) as pool:
        values = list(pool.map(lambda _: allocator.next_value(BOOKING_NAMESPACE), range(12)))

    assert sorted(values) == list(range(6, 18))


def test_unreachable_store_raises_persistence_error(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'missing' / 'nowhere.db'}")
    broken = SequenceAllocator(build_session_factory(engine))

    with pytest.raises(PersistenceError):
        broken.next_value(BOOKING_NAMESPACE)

    engine.dispose()
