from datetime import datetime, timezone
from typing import List, Optional

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from rental_store.events import record_change
from rental_store.models import StationInventory


class InventoryRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, inventory_id: str) -> Optional[StationInventory]:
        return self.session.get(StationInventory, inventory_id)

    def get_by_station_and_type(
        self, station_id: str, power_bank_type_id: str
    ) -> Optional[StationInventory]:
        return self.session.execute(
            select(StationInventory).where(
                StationInventory.station_id == station_id,
                StationInventory.power_bank_type_id == power_bank_type_id,
            )
        ).scalar_one_or_none()

    def list_all(self) -> List[StationInventory]:
        return list(self.session.execute(select(StationInventory)).scalars().all())

    def create(self, inventory: StationInventory) -> None:
        self.session.add(inventory)
        self.session.flush()

    def decrement_available(self, inventory_id: str, expected_available: int) -> bool:
        """
        Conditional decrement: only applies when available_units still equals
        the value the caller read. False means another writer got there first.
        """
        result = self.session.execute(
            update(StationInventory)
            .where(
                StationInventory.id == inventory_id,
                StationInventory.available_units == expected_available,
                StationInventory.available_units > 0,
            )
            .values(
                available_units=expected_available - 1,
                updated_at=datetime.now(timezone.utc),
            )
        )

        updated = result.rowcount > 0
        if updated:
            record_change(self.session, StationInventory.__tablename__, "UPDATE", inventory_id)
            logger.debug(
                f"Inventory {inventory_id} decremented: {expected_available} -> {expected_available - 1}"
            )
        else:
            logger.debug(
                f"Inventory {inventory_id} not decremented, expected available={expected_available}"
            )
        return updated

    def set_available(self, inventory_id: str, available_units: int) -> bool:
        result = self.session.execute(
            update(StationInventory)
            .where(StationInventory.id == inventory_id)
            .values(
                available_units=available_units,
                updated_at=datetime.now(timezone.utc),
            )
        )
        updated = result.rowcount > 0
        if updated:
            record_change(self.session, StationInventory.__tablename__, "UPDATE", inventory_id)
        return updated
