from collections import OrderedDict
from datetime import datetime, timedelta
from typing import List, Optional

from loguru import logger

from booking_core.core.exceptions import StationNotFoundException
from booking_core.core.utils import ensure_utc, utcnow, uuid4
from booking_core.schemas import MonthlyEarnings
from rental_store.models import PowerBankType, Station, StationInventory, Transaction, UserLoyalty
from rental_store.repositories import (
    InventoryRepository,
    LoyaltyRepository,
    StationRepository,
    TransactionRepository,
)

STANDARD_CAPACITY = 10000
PREMIUM_CAPACITY = 20000


def capacity_from_name(name: str) -> int:
    lowered = name.lower()
    if "10000" in lowered:
        return STANDARD_CAPACITY
    if "20000" in lowered:
        return PREMIUM_CAPACITY
    if "10k" in lowered:
        return STANDARD_CAPACITY
    if "20k" in lowered:
        return PREMIUM_CAPACITY
    return STANDARD_CAPACITY


class CatalogService:
    """Stations, power bank types, loyalty and the admin earnings views."""

    def __init__(
        self,
        station_repo: StationRepository,
        inventory_repo: InventoryRepository,
        transaction_repo: TransactionRepository,
        loyalty_repo: LoyaltyRepository,
    ):
        self.station_repo = station_repo
        self.inventory_repo = inventory_repo
        self.transaction_repo = transaction_repo
        self.loyalty_repo = loyalty_repo

    # --- Станции ---

    def create_station(
        self,
        name: str,
        address: str,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        price_per_hour: int = 50,
        units_by_capacity: Optional[dict] = None,
    ) -> Station:
        units_by_capacity = {c: n for c, n in (units_by_capacity or {}).items() if n > 0}
        now = utcnow()
        station = Station(
            id=uuid4(),
            name=name,
            address=address,
            latitude=latitude,
            longitude=longitude,
            total_power_banks=sum(units_by_capacity.values()),
            price_per_hour=price_per_hour,
            created_at=now,
        )
        self.station_repo.create_station(station)

        for capacity, units in sorted(units_by_capacity.items()):
            power_bank_type = self.station_repo.find_type_by_capacity(capacity)
            if power_bank_type is None:
                logger.warning(f"No power bank type with capacity {capacity}, skipping inventory")
                continue
            self.inventory_repo.create(
                StationInventory(
                    id=uuid4(),
                    station_id=station.id,
                    power_bank_type_id=power_bank_type.id,
                    total_units=units,
                    available_units=units,
                    reserved_units=0,
                    updated_at=now,
                )
            )

        logger.info(f"Station {station.name} created with {station.total_power_banks} power banks")
        return station

    def update_station_power_banks(self, station_id: str, total_power_banks: int) -> Station:
        station = self.station_repo.get_by_id(station_id)
        if station is None:
            raise StationNotFoundException()
        station.total_power_banks = total_power_banks
        self.station_repo.session.flush()
        return station

    def delete_station(self, station_id: str) -> None:
        station = self.station_repo.get_by_id(station_id)
        if station is None:
            raise StationNotFoundException()
        self.station_repo.delete_station(station)
        logger.info(f"Station {station_id} deleted")

    # --- Типы павербанков ---

    def list_power_bank_types(self) -> List[PowerBankType]:
        return self.station_repo.list_power_bank_types()

    def create_power_bank_type(self, name: str, daily_rate: int) -> PowerBankType:
        capacity = capacity_from_name(name)
        standard = capacity == STANDARD_CAPACITY
        power_bank_type = PowerBankType(
            id=uuid4(),
            name=name,
            category="standard" if standard else "premium",
            capacity_mah=capacity,
            price_per_hour=daily_rate // 24,
            price_per_day=daily_rate,
            target_devices="phones,tablets" if standard else "phones,tablets,laptops",
        )
        self.station_repo.create_power_bank_type(power_bank_type)
        return power_bank_type

    # --- Лояльность и выручка ---

    def get_loyalty(self, user_id: str) -> UserLoyalty:
        loyalty = self.loyalty_repo.get_for_user(user_id)
        if loyalty is None:
            loyalty = self.loyalty_repo.initialize(user_id)
        return loyalty

    def list_transactions(self, limit: int = 100) -> List[Transaction]:
        return self.transaction_repo.list_transactions()[:limit]

    def monthly_earnings(self, now: Optional[datetime] = None) -> List[MonthlyEarnings]:
        """Completed transactions of the last year grouped by calendar month."""
        since = (now or utcnow()) - timedelta(days=365)
        buckets: "OrderedDict[str, MonthlyEarnings]" = OrderedDict()

        transactions = sorted(
            (t for t in self.transaction_repo.list_transactions(since) if t.status == "completed"),
            key=lambda t: ensure_utc(t.created_at),
        )
        for transaction in transactions:
            month = ensure_utc(transaction.created_at).strftime("%b %Y")
            bucket = buckets.setdefault(
                month, MonthlyEarnings(month=month, earnings=0, transactions=0)
            )
            bucket.earnings += transaction.amount
            bucket.transactions += 1

        return list(buckets.values())
