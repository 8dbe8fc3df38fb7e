from types import SimpleNamespace

import pytest
from sqlalchemy.exc import IntegrityError

from booking_core.core.exceptions import (
    InvalidInventoryException,
    InventoryConflictException,
    InventoryUpdateFailedException,
    OutOfStockException,
    StationNotFoundException,
)
from rental_store.models import StationInventory


# ---------- Conditional decrement ----------


def test_decrement_takes_one_unit(db_session, seed, inventory_service):
    inventory = inventory_service.decrement("st-1", "pbt-10k")
    db_session.commit()

    assert inventory.available_units == 4
    assert db_session.get(StationInventory, "inv-1").available_units == 4


def test_decrement_without_stock_is_out_of_stock(db_session, seed, inventory_service):
    seed.inventory.available_units = 0
    db_session.commit()

    with pytest.raises(OutOfStockException):
        inventory_service.decrement("st-1", "pbt-10k")


def test_decrement_without_inventory_row_is_out_of_stock(seed, inventory_service):
    with pytest.raises(OutOfStockException):
        inventory_service.decrement("st-1", "no-such-type")


def test_decrement_with_stale_read_is_conflict(db_session, seed, inventory_service, monkeypatch):
    # Another writer took a unit between our read and our write
    stale = SimpleNamespace(id="inv-1", available_units=6)
    monkeypatch.setattr(
        inventory_service.inventory_repo,
        "get_by_station_and_type",
        lambda station_id, type_id: stale,
    )

    with pytest.raises(InventoryConflictException) as exc_info:
        inventory_service.decrement("st-1", "pbt-10k")

    assert isinstance(exc_info.value, InventoryUpdateFailedException)
    db_session.expire_all()
    assert db_session.get(StationInventory, "inv-1").available_units == 5


def test_repository_decrement_refuses_mismatched_value(db_session, seed, repositories):
    repo = repositories["inventory"]

    assert repo.decrement_available("inv-1", expected_available=4) is False
    assert repo.decrement_available("inv-1", expected_available=5) is True
    db_session.commit()

    db_session.expire_all()
    assert db_session.get(StationInventory, "inv-1").available_units == 4


def test_inventory_bounds_are_enforced_by_the_store(db_session, seed):
    seed.inventory.available_units = seed.inventory.total_units + 1

    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()


# ---------- Reconciliation ----------


def test_sync_recomputes_available_from_active_rentals(
    db_session, seed, inventory_service, make_rental
):
    seed.inventory.available_units = 1
    db_session.commit()
    make_rental(status="active")
    make_rental(status="active")
    make_rental(status="completed")

    response = inventory_service.sync_inventory()
    db_session.commit()

    assert response.synced == 2
    by_id = {r.inventory_id: r for r in response.results}

    standard = by_id["inv-1"]
    assert standard.success is True
    assert standard.old == 1
    assert standard.new == 3
    assert standard.station == "Ikeja Mall"
    assert standard.power_bank == "10000mAh Standard"

    # premium: 3 total, no active rentals, 1 available
    assert by_id["inv-2"].new == 3
    assert db_session.get(StationInventory, "inv-1").available_units == 3


def test_sync_skips_rows_already_correct(db_session, seed, inventory_service):
    seed.premium_inventory.available_units = 3
    db_session.commit()

    response = inventory_service.sync_inventory()

    assert response.synced == 0
    assert response.results == []


def test_sync_never_goes_negative(db_session, seed, inventory_service, make_rental):
    for _ in range(4):
        make_rental(type_id="pbt-20k", status="active")

    inventory_service.sync_inventory()
    db_session.commit()

    assert db_session.get(StationInventory, "inv-2").available_units == 0


def test_sync_ignores_reserved_units(db_session, seed, inventory_service):
    seed.inventory.reserved_units = 2
    seed.inventory.available_units = 2
    db_session.commit()

    inventory_service.sync_inventory()
    db_session.commit()

    assert db_session.get(StationInventory, "inv-1").available_units == 5


def test_sync_reports_failed_rows_and_continues(
    db_session, seed, inventory_service, monkeypatch
):
    seed.inventory.available_units = 0
    seed.premium_inventory.available_units = 0
    db_session.commit()

    original = inventory_service.inventory_repo.set_available

    def flaky_set_available(inventory_id, available_units):
        if inventory_id == "inv-1":
            raise RuntimeError("row locked")
        return original(inventory_id, available_units)

    monkeypatch.setattr(inventory_service.inventory_repo, "set_available", flaky_set_available)

    response = inventory_service.sync_inventory()

    by_id = {r.inventory_id: r for r in response.results}
    assert by_id["inv-1"].success is False
    assert by_id["inv-1"].error == "row locked"
    assert by_id["inv-2"].success is True
    assert response.synced == 1


# ---------- Admin edits and availability ----------


def test_set_units_updates_existing_row(db_session, seed, inventory_service):
    inventory = inventory_service.set_units("st-1", "pbt-10k", 10, 7)
    db_session.commit()

    assert (inventory.total_units, inventory.available_units) == (10, 7)


def test_set_units_creates_missing_row(db_session, seed, inventory_service):
    db_session.delete(seed.premium_inventory)
    db_session.commit()

    inventory = inventory_service.set_units("st-1", "pbt-20k", 4)
    db_session.commit()

    assert inventory.available_units == 4
    assert inventory.reserved_units == 0


@pytest.mark.parametrize("total, available", [(3, 4), (3, -1), (-1, 0)])
def test_set_units_rejects_invalid_counts(seed, inventory_service, total, available):
    with pytest.raises(InvalidInventoryException):
        inventory_service.set_units("st-1", "pbt-10k", total, available)


def test_set_units_unknown_station(seed, inventory_service):
    with pytest.raises(StationNotFoundException):
        inventory_service.set_units("nowhere", "pbt-10k", 3)


def test_station_availability_flags_low_stock(seed, inventory_service):
    [station] = inventory_service.list_station_availability()

    assert station.total_available == 6
    assert station.low_stock_alert is True
    assert {row.power_bank_type.capacity_mah for row in station.inventory} == {10000, 20000}


def test_station_availability_without_low_stock(db_session, seed, inventory_service):
    seed.premium_inventory.available_units = 3
    db_session.commit()

    [station] = inventory_service.list_station_availability()

    assert station.low_stock_alert is False
