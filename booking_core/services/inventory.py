from typing import List, Optional

from loguru import logger

from booking_core.core.exceptions import (
    InvalidInventoryException,
    InventoryConflictException,
    OutOfStockException,
    PowerBankTypeNotFoundException,
    StationNotFoundException,
)
from booking_core.core.utils import utcnow, uuid4
from booking_core.monitoring.metrics import MetricsCollector
from booking_core.schemas import (
    InventorySyncResponse,
    InventorySyncResult,
    InventoryWithType,
    StationWithInventory,
)
from rental_store.models import StationInventory
from rental_store.repositories import InventoryRepository, RentalRepository, StationRepository


class InventoryService:
    def __init__(
        self,
        inventory_repo: InventoryRepository,
        rental_repo: RentalRepository,
        station_repo: StationRepository,
        low_stock_threshold: int = 3,
    ):
        self.inventory_repo = inventory_repo
        self.rental_repo = rental_repo
        self.station_repo = station_repo
        self.low_stock_threshold = low_stock_threshold

    def decrement(self, station_id: str, power_bank_type_id: str) -> StationInventory:
        """
        Takes one unit out of the (station, type) row.

        The write is conditional on ``available_units`` still holding the value
        read here; losing that race raises ``InventoryConflictException``.
        """
        inventory = self.inventory_repo.get_by_station_and_type(station_id, power_bank_type_id)
        if inventory is None or inventory.available_units <= 0:
            logger.warning(
                f"No stock for type {power_bank_type_id} at station {station_id}"
            )
            raise OutOfStockException(
                "Cannot confirm payment: power bank is out of stock at this station."
            )

        expected = inventory.available_units
        if not self.inventory_repo.decrement_available(inventory.id, expected):
            logger.warning(
                f"Inventory {inventory.id} changed concurrently (expected available={expected})"
            )
            raise InventoryConflictException()

        self.inventory_repo.session.refresh(inventory)
        logger.info(
            f"Inventory {inventory.id}: available {expected} -> {inventory.available_units}"
        )
        return inventory

    def sync_inventory(self) -> InventorySyncResponse:
        """Recomputes available units from the number of active rentals per row."""
        active_counts = self.rental_repo.count_active_by_station_type()
        results: List[InventorySyncResult] = []

        for inventory in self.inventory_repo.list_all():
            active = active_counts.get((inventory.station_id, inventory.power_bank_type_id), 0)
            correct = max(0, inventory.total_units - active)
            if correct == inventory.available_units:
                continue

            station_name = inventory.station.name if inventory.station else None
            type_name = inventory.power_bank_type.name if inventory.power_bank_type else None
            old = inventory.available_units
            try:
                self.inventory_repo.set_available(inventory.id, correct)
                results.append(
                    InventorySyncResult(
                        inventory_id=inventory.id,
                        station=station_name,
                        power_bank=type_name,
                        old=old,
                        new=correct,
                    )
                )
                logger.info(f"Inventory {inventory.id} synced: {old} -> {correct}")
            except Exception as e:
                logger.error(f"Failed to sync inventory {inventory.id}: {e}")
                results.append(
                    InventorySyncResult(
                        inventory_id=inventory.id,
                        station=station_name,
                        power_bank=type_name,
                        old=old,
                        success=False,
                        error=str(e),
                    )
                )

        synced = sum(1 for r in results if r.success)
        MetricsCollector.record_inventory_corrections(synced)
        return InventorySyncResponse(synced=synced, results=results)

    def set_units(
        self,
        station_id: str,
        power_bank_type_id: str,
        total_units: int,
        available_units: Optional[int] = None,
    ) -> StationInventory:
        if available_units is None:
            available_units = total_units
        if total_units < 0 or not 0 <= available_units <= total_units:
            raise InvalidInventoryException()

        if self.station_repo.get_by_id(station_id) is None:
            raise StationNotFoundException()
        if self.station_repo.get_power_bank_type(power_bank_type_id) is None:
            raise PowerBankTypeNotFoundException()

        inventory = self.inventory_repo.get_by_station_and_type(station_id, power_bank_type_id)
        if inventory is None:
            inventory = StationInventory(
                id=uuid4(),
                station_id=station_id,
                power_bank_type_id=power_bank_type_id,
                total_units=total_units,
                available_units=available_units,
                reserved_units=0,
                updated_at=utcnow(),
            )
            self.inventory_repo.create(inventory)
            logger.info(f"Created inventory for station {station_id}, type {power_bank_type_id}")
        else:
            inventory.total_units = total_units
            inventory.available_units = available_units
            inventory.updated_at = utcnow()
            self.inventory_repo.session.flush()
            logger.info(
                f"Inventory {inventory.id} set to {available_units}/{total_units}"
            )
        return inventory

    def list_station_availability(self) -> List[StationWithInventory]:
        stations = []
        for station in self.station_repo.list_with_inventory():
            rows = [InventoryWithType.model_validate(inv) for inv in station.inventory]
            stations.append(
                StationWithInventory(
                    id=station.id,
                    name=station.name,
                    address=station.address,
                    latitude=station.latitude,
                    longitude=station.longitude,
                    total_power_banks=station.total_power_banks,
                    price_per_hour=station.price_per_hour,
                    inventory=rows,
                    total_available=sum(r.available_units for r in rows),
                    low_stock_alert=any(
                        r.available_units < self.low_stock_threshold for r in rows
                    ),
                )
            )
        return stations
