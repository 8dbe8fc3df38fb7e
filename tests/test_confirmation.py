from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import Mock

import pytest

from booking_core.core.exceptions import (
    AlreadyConfirmedException,
    BookingNotFoundException,
    DuplicateRentalException,
    InventoryConflictException,
    InventoryUpdateFailedException,
)
from booking_core.core.guards import InFlightRegistry
from booking_core.core.utils import ensure_utc
from booking_core.services.confirmation import ConfirmPaymentSaga
from booking_core.services.inventory import InventoryService
from booking_core.services.notification import NotificationService
from rental_store.models import Booking, Rental, StationInventory, Transaction
from rental_store.repositories import (
    BookingRepository,
    InventoryRepository,
    RentalRepository,
    StationRepository,
    TransactionRepository,
)


def _state(db_session, booking_id):
    db_session.expire_all()
    booking = db_session.get(Booking, booking_id)
    rentals = db_session.query(Rental).filter(Rental.booking_id == booking_id).all()
    transactions = db_session.query(Transaction).all()
    inventory = db_session.get(StationInventory, "inv-1")
    return booking, rentals, transactions, inventory


# ---------- Happy path ----------


def test_confirm_payment_creates_rental_transaction_and_takes_stock(
    db_session, seed, saga, make_booking, notifications
):
    booking = make_booking()
    before = datetime.now(timezone.utc)

    result = saga.confirm_payment(booking.id)
    db_session.commit()

    assert result.booking.status == "confirmed"

    rental = result.rental
    assert rental.status == "active"
    assert rental.booking_id == booking.id
    assert rental.total_amount == 2400
    end_time = ensure_utc(rental.end_time)
    assert before + timedelta(days=1) <= end_time <= datetime.now(timezone.utc) + timedelta(days=1)

    transaction = result.transaction
    assert transaction.rental_id == rental.id
    assert transaction.amount == 2400
    assert transaction.status == "completed"
    assert transaction.payment_method == "bank_transfer"
    assert transaction.payment_reference == booking.order_id

    _, rentals, transactions, inventory = _state(db_session, booking.id)
    assert len(rentals) == 1
    assert len(transactions) == 1
    assert inventory.available_units == 4

    assert notifications.get_admin_notifications() == []
    saga.notify(result)

    [admin_note] = notifications.get_admin_notifications()
    assert admin_note.type == "booking_confirmed"
    assert "Ada Obi" in admin_note.message
    assert notifications.get_user_notifications("user-1") == []


def test_confirm_payment_uses_requested_return_time(db_session, seed, saga, make_booking):
    booking = make_booking()
    return_time = datetime.now(timezone.utc) + timedelta(hours=4)

    result = saga.confirm_payment(booking.id, return_time)

    assert ensure_utc(result.rental.end_time) == return_time


# ---------- Guards ----------


def test_second_confirmation_is_rejected(db_session, seed, saga, make_booking):
    booking = make_booking()
    saga.confirm_payment(booking.id)
    db_session.commit()

    with pytest.raises(AlreadyConfirmedException):
        saga.confirm_payment(booking.id)

    _, rentals, transactions, inventory = _state(db_session, booking.id)
    assert len(rentals) == 1
    assert len(transactions) == 1
    assert inventory.available_units == 4


def test_confirmation_in_flight_is_rejected(db_session, seed, saga, make_booking, in_flight):
    booking = make_booking()
    assert in_flight.try_claim(booking.id)

    with pytest.raises(AlreadyConfirmedException):
        saga.confirm_payment(booking.id)

    in_flight.release(booking.id)
    saga.confirm_payment(booking.id)
    assert not in_flight.is_claimed(booking.id)


def test_in_flight_claim_is_released_after_failure(seed, saga, in_flight):
    with pytest.raises(BookingNotFoundException):
        saga.confirm_payment("missing")

    assert not in_flight.is_claimed("missing")


def test_existing_rental_for_booking_is_duplicate(
    db_session, seed, saga, make_booking, make_rental
):
    booking = make_booking()
    make_rental(user_id="someone-else", booking_id=booking.id)

    with pytest.raises(DuplicateRentalException):
        saga.confirm_payment(booking.id)

    booking, _, _, inventory = _state(db_session, booking.id)
    assert booking.status == "pending"
    assert inventory.available_units == 5


def test_recent_active_rental_for_same_tuple_is_duplicate(
    db_session, seed, saga, make_booking, make_rental
):
    make_rental(created_at=datetime.now(timezone.utc) - timedelta(minutes=3))
    booking = make_booking()

    with pytest.raises(DuplicateRentalException):
        saga.confirm_payment(booking.id)


def test_old_active_rental_does_not_block(db_session, seed, saga, make_booking, make_rental):
    make_rental(created_at=datetime.now(timezone.utc) - timedelta(minutes=30))
    booking = make_booking()

    result = saga.confirm_payment(booking.id)

    assert result.booking.status == "confirmed"


# ---------- Compensation ----------


def test_out_of_stock_rolls_everything_back(db_session, seed, saga, make_booking):
    seed.inventory.available_units = 0
    db_session.commit()
    booking = make_booking()

    with pytest.raises(InventoryUpdateFailedException) as exc_info:
        saga.confirm_payment(booking.id)

    assert not isinstance(exc_info.value, InventoryConflictException)
    assert "Transaction has been cancelled" in exc_info.value.message

    booking, rentals, transactions, inventory = _state(db_session, booking.id)
    assert booking.status == "pending"
    assert rentals == []
    assert transactions == []
    assert inventory.available_units == 0


def test_lost_inventory_race_rolls_everything_back(
    db_session, seed, saga, make_booking, monkeypatch
):
    seed.inventory.available_units = 1
    db_session.commit()

    winner = make_booking(user_id="user-1")
    loser = make_booking(user_id="user-2")

    # both confirmations read available_units=1 before either writes
    stale = SimpleNamespace(id="inv-1", available_units=1)
    saga.confirm_payment(winner.id)

    monkeypatch.setattr(
        saga.inventory_service.inventory_repo,
        "get_by_station_and_type",
        lambda station_id, type_id: stale,
    )
    with pytest.raises(InventoryConflictException):
        saga.confirm_payment(loser.id)
    db_session.commit()

    booking, rentals, _, inventory = _state(db_session, loser.id)
    assert booking.status == "pending"
    assert rentals == []
    assert inventory.available_units == 0
    assert db_session.query(Transaction).count() == 1


def test_failed_transaction_insert_removes_rental(
    db_session, seed, saga, make_booking, monkeypatch
):
    booking = make_booking()
    monkeypatch.setattr(
        saga.transaction_repo,
        "create_transaction",
        Mock(side_effect=RuntimeError("transactions table unavailable")),
    )

    with pytest.raises(RuntimeError, match="transactions table unavailable"):
        saga.confirm_payment(booking.id)

    booking, rentals, transactions, inventory = _state(db_session, booking.id)
    assert booking.status == "pending"
    assert rentals == []
    assert transactions == []
    assert inventory.available_units == 5


def test_failing_compensation_does_not_mask_original_error(
    db_session, seed, saga, make_booking, monkeypatch
):
    booking = make_booking()
    monkeypatch.setattr(
        saga.transaction_repo,
        "create_transaction",
        Mock(side_effect=RuntimeError("insert failed")),
    )
    monkeypatch.setattr(
        saga.rental_repo, "delete_rental", Mock(side_effect=RuntimeError("delete failed"))
    )

    with pytest.raises(RuntimeError, match="insert failed"):
        saga.confirm_payment(booking.id)

    booking, _, _, _ = _state(db_session, booking.id)
    assert booking.status == "pending"


def test_failed_confirmation_can_be_retried(db_session, seed, saga, make_booking):
    seed.inventory.available_units = 0
    db_session.commit()
    booking = make_booking()

    with pytest.raises(InventoryUpdateFailedException):
        saga.confirm_payment(booking.id)

    seed.inventory.available_units = 2
    db_session.commit()

    result = saga.confirm_payment(booking.id)
    assert result.inventory.available_units == 1


def test_notification_failure_does_not_fail_confirmation(
    db_session, seed, saga, make_booking, monkeypatch
):
    booking = make_booking()
    monkeypatch.setattr(
        saga.notifications,
        "create_admin_notification",
        Mock(side_effect=RuntimeError("hub down")),
    )

    result = saga.confirm_payment(booking.id)
    saga.notify(result)

    assert result.booking.status == "confirmed"


# ---------- Две сессии ----------


def _pending_booking(id, user_id):
    return Booking(
        id=id,
        order_id=f"BK-{id[-1] * 9}",
        user_id=user_id,
        station_id="st-1",
        power_bank_type_id="pbt-10k",
        total_amount=2400,
        payment_method="bank_transfer",
        status="pending",
        created_at=datetime.now(timezone.utc),
    )


def _saga_for(session):
    inventory_repo = InventoryRepository(session)
    rental_repo = RentalRepository(session)
    station_repo = StationRepository(session)
    return ConfirmPaymentSaga(
        BookingRepository(session),
        rental_repo,
        TransactionRepository(session),
        station_repo,
        InventoryService(inventory_repo, rental_repo, station_repo),
        NotificationService(),
        in_flight=InFlightRegistry(),
    )


def test_interleaved_confirmations_take_the_last_unit_once(store_sessions):
    setup = store_sessions()
    try:
        setup.add_all([_pending_booking("bk-a", "user-1"), _pending_booking("bk-b", "user-2")])
        setup.commit()
    finally:
        setup.close()

    first = store_sessions()
    second = store_sessions()
    try:
        # the second request reads the row while one unit is still free
        inventory = InventoryRepository(second).get_by_station_and_type("st-1", "pbt-10k")
        assert inventory.available_units == 1

        _saga_for(first).confirm_payment("bk-a")
        first.commit()

        with pytest.raises(InventoryConflictException):
            _saga_for(second).confirm_payment("bk-b")
        second.rollback()
    finally:
        first.close()
        second.close()

    check = store_sessions()
    try:
        assert check.get(StationInventory, "inv-1").available_units == 0
        assert check.get(Booking, "bk-b").status == "pending"
        assert [r.booking_id for r in check.query(Rental).all()] == ["bk-a"]
        assert check.query(Transaction).count() == 1
    finally:
        check.close()
