from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from rental_store.models import PowerBankType, Profile, Station, StationInventory


class StationRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, station_id: str) -> Optional[Station]:
        return self.session.get(Station, station_id)

    def list_with_inventory(self) -> List[Station]:
        return list(
            self.session.execute(
                select(Station)
                .options(
                    selectinload(Station.inventory).selectinload(
                        StationInventory.power_bank_type
                    )
                )
                .order_by(Station.name)
            )
            .scalars()
            .all()
        )

    def create_station(self, station: Station) -> None:
        self.session.add(station)
        self.session.flush()

    def delete_station(self, station: Station) -> None:
        self.session.delete(station)
        self.session.flush()

    # --- Типы павербанков ---

    def get_power_bank_type(self, type_id: str) -> Optional[PowerBankType]:
        return self.session.get(PowerBankType, type_id)

    def list_power_bank_types(self) -> List[PowerBankType]:
        return list(
            self.session.execute(
                select(PowerBankType).order_by(PowerBankType.capacity_mah)
            )
            .scalars()
            .all()
        )

    def find_type_by_capacity(self, capacity_mah: int) -> Optional[PowerBankType]:
        return (
            self.session.execute(
                select(PowerBankType).where(PowerBankType.capacity_mah == capacity_mah)
            )
            .scalars()
            .first()
        )

    def create_power_bank_type(self, power_bank_type: PowerBankType) -> None:
        self.session.add(power_bank_type)
        self.session.flush()

    # --- Профили ---

    def get_profile(self, user_id: str) -> Optional[Profile]:
        return self.session.get(Profile, user_id)
