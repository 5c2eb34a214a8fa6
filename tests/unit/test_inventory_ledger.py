import logging
from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import event as sa_event

from src.domain.exceptions import (
    EventNotFoundError,
    InsufficientInventoryError,
    ValidationError,
)


def _available(ledger, event_id):
    return ledger.snapshot(event_id).available_tickets


def test_reserve_decrements_available_tickets(ledger, make_event):
    event = make_event(total_tickets=10)

    ledger.reserve(event.id, 3)

    assert _available(ledger, event.id) == 7


def test_reserve_exact_remaining_tickets(ledger, make_event):
    event = make_event(total_tickets=4)

    ledger.reserve(event.id, 4)

    assert _available(ledger, event.id) == 0


def test_insufficient_inventory_leaves_state_untouched(ledger, make_event):
    event = make_event(total_tickets=2)

    with pytest.raises(InsufficientInventoryError):
        ledger.reserve(event.id, 3)

    assert _available(ledger, event.id) == 2


def test_reserve_unknown_event(ledger):
    with pytest.raises(EventNotFoundError):
        ledger.reserve(999, 1)


def test_release_returns_tickets(ledger, make_event):
    event = make_event(total_tickets=10)
    ledger.reserve(event.id, 5)

    ledger.release(event.id, 2)

    assert _available(ledger, event.id) == 7


def test_release_is_clamped_at_total(ledger, make_event):
    event = make_event(total_tickets=10)
    ledger.reserve(event.id, 2)

    ledger.release(event.id, 2)
    ledger.release(event.id, 2)  # duplicate release

    assert _available(ledger, event.id) == 10


def test_release_unknown_event(ledger):
    with pytest.raises(EventNotFoundError):
        ledger.release(999, 1)


def test_resize_shifts_available_by_difference(ledger, make_event):
    event = make_event(total_tickets=10)
    ledger.reserve(event.id, 4)

    ledger.resize(event.id, 15)
    snapshot = ledger.snapshot(event.id)
    assert (snapshot.total_tickets, snapshot.available_tickets) == (15, 11)

    ledger.resize(event.id, 4)
    snapshot = ledger.snapshot(event.id)
    assert (snapshot.total_tickets, snapshot.available_tickets) == (4, 0)


def test_resize_below_booked_is_rejected(ledger, make_event):
    event = make_event(total_tickets=10)
    ledger.reserve(event.id, 6)

    with pytest.raises(ValidationError):
        ledger.resize(event.id, 5)

    snapshot = ledger.snapshot(event.id)
    assert (snapshot.total_tickets, snapshot.available_tickets) == (10, 4)


def test_resize_unknown_event(ledger):
    with pytest.raises(EventNotFoundError):
        ledger.resize(999, 5)


def test_concurrent_reservations_never_oversell(ledger, make_event):
    tickets = 5
    attempts = 20
    event = make_event(total_tickets=tickets)

    def attempt(_):
        try:
            ledger.reserve(event.id, 1)
            return True
        except InsufficientInventoryError:
            return False

    with ThreadPoolExecutor(max_workers=10) as pool:
        results = list(pool.map(attempt, range(attempts)))

    assert results.count(True) == tickets
    assert results.count(False) == attempts - tickets
    assert _available(ledger, event.id) == 0


def test_clamp_is_logged(ledger, make_event, caplog):
    event = make_event(total_tickets=10)
    ledger.reserve(event.id, 1)

    with caplog.at_level(logging.WARNING):
        ledger.release(event.id, 2)

    assert _available(ledger, event.id) == 10
    assert "clamped at total_tickets" in caplog.text


def test_clamp_does_not_erase_reservation_landing_between_statements(engine, ledger, make_event):
    event = make_event(total_tickets=10)
    ledger.reserve(event.id, 1)
    fired = []

    def reserve_in_between(conn, cursor, statement, parameters, context, executemany):
        # After the plain release misses, another reservation of 3 lands
        # before the clamp statement runs.
        if fired or not statement.startswith("UPDATE events") or "<=" not in statement:
            return
        if cursor.rowcount == 0:
            fired.append(True)
            cursor.connection.execute(
                "UPDATE events SET available_tickets = available_tickets - 3 WHERE id = ?",
                (event.id,),
            )

    sa_event.listen(engine, "after_cursor_execute", reserve_in_between)
    try:
        ledger.release(event.id, 2)
    finally:
        sa_event.remove(engine, "after_cursor_execute", reserve_in_between)

    assert fired
    # 9 - 3 + 2, not reset to total_tickets.
    assert _available(ledger, event.id) == 8


def test_resize_beyond_integer_column_is_rejected(ledger, make_event):
    event = make_event(total_tickets=10)

    with pytest.raises(ValidationError):
        ledger.resize(event.id, 2**31)

    assert ledger.snapshot(event.id).total_tickets == 10
