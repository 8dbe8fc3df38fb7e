from datetime import datetime, timezone

import pytest

from booking_core.core.exceptions import StationNotFoundException
from booking_core.services.catalog import capacity_from_name
from rental_store.models import Station, StationInventory, Transaction


def _transaction(id, amount, created_at, status="completed"):
    return Transaction(
        id=id,
        rental_id="r-1",
        amount=amount,
        payment_method="bank_transfer",
        payment_reference=f"ref-{id}",
        status=status,
        created_at=created_at,
    )


@pytest.mark.parametrize(
    "name, capacity",
    [
        ("20000mAh Premium", 20000),
        ("Standard 10000", 10000),
        ("Slim 20k", 20000),
        ("10K pocket", 10000),
        ("Mystery brick", 10000),
    ],
)
def test_capacity_from_name(name, capacity):
    assert capacity_from_name(name) == capacity


def test_create_station_with_inventory(db_session, seed, catalog_service):
    station = catalog_service.create_station(
        "Lekki Phase 1",
        "Admiralty Way",
        latitude=6.44,
        longitude=3.47,
        units_by_capacity={10000: 4, 20000: 2},
    )
    db_session.commit()

    assert station.total_power_banks == 6
    rows = {
        row.power_bank_type_id: row
        for row in db_session.query(StationInventory).filter_by(station_id=station.id)
    }
    assert rows["pbt-10k"].available_units == 4
    assert rows["pbt-20k"].total_units == 2


def test_create_station_skips_empty_and_unknown_capacities(db_session, seed, catalog_service):
    station = catalog_service.create_station(
        "Yaba", "Herbert Macaulay Way", units_by_capacity={10000: 0, 5000: 3}
    )
    db_session.commit()

    assert station.total_power_banks == 3
    assert db_session.query(StationInventory).filter_by(station_id=station.id).count() == 0


def test_update_and_delete_station(db_session, seed, catalog_service):
    assert catalog_service.update_station_power_banks("st-1", 12).total_power_banks == 12

    catalog_service.delete_station("st-1")
    db_session.commit()

    assert db_session.get(Station, "st-1") is None
    assert db_session.query(StationInventory).count() == 0

    with pytest.raises(StationNotFoundException):
        catalog_service.delete_station("st-1")


def test_create_power_bank_type_derives_pricing(seed, catalog_service):
    power_bank_type = catalog_service.create_power_bank_type("20000mAh Ultra", 7200)

    assert power_bank_type.capacity_mah == 20000
    assert power_bank_type.category == "premium"
    assert power_bank_type.price_per_hour == 300
    assert power_bank_type.target_devices == "phones,tablets,laptops"
    assert len(catalog_service.list_power_bank_types()) == 3


def test_loyalty_is_initialised_on_first_read(db_session, seed, catalog_service):
    loyalty = catalog_service.get_loyalty("user-1")
    db_session.commit()

    assert loyalty.loyalty_tier == "bronze"
    assert loyalty.discount_percentage == 0
    assert catalog_service.get_loyalty("user-1").id == loyalty.id


def test_monthly_earnings_groups_completed_transactions(db_session, seed, catalog_service):
    db_session.add_all(
        [
            _transaction("t-1", 2400, datetime(2024, 3, 2, tzinfo=timezone.utc)),
            _transaction("t-2", 4800, datetime(2024, 3, 20, tzinfo=timezone.utc)),
            _transaction("t-3", 1000, datetime(2024, 3, 21, tzinfo=timezone.utc), "failed"),
            _transaction("t-4", 2400, datetime(2024, 5, 1, tzinfo=timezone.utc)),
            _transaction("t-5", 9999, datetime(2023, 1, 1, tzinfo=timezone.utc)),
        ]
    )
    db_session.commit()

    earnings = catalog_service.monthly_earnings(datetime(2024, 6, 1, tzinfo=timezone.utc))

    assert [(e.month, e.earnings, e.transactions) for e in earnings] == [
        ("Mar 2024", 7200, 2),
        ("May 2024", 2400, 1),
    ]


def test_list_transactions_newest_first(db_session, seed, catalog_service):
    db_session.add_all(
        [
            _transaction("t-1", 100, datetime(2024, 1, 1, tzinfo=timezone.utc)),
            _transaction("t-2", 200, datetime(2024, 2, 1, tzinfo=timezone.utc)),
            _transaction("t-3", 300, datetime(2024, 3, 1, tzinfo=timezone.utc)),
        ]
    )
    db_session.commit()

    assert [t.id for t in catalog_service.list_transactions(limit=2)] == ["t-3", "t-2"]
