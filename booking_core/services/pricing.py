from datetime import datetime
from typing import Optional

from loguru import logger

from booking_core.clients.external import ExternalClient
from booking_core.core.exceptions import PowerBankTypeNotFoundException
from booking_core.schemas import PricingBreakdown
from rental_store.repositories import StationRepository


class PricingService:
    def __init__(self, external_client: ExternalClient, station_repo: StationRepository):
        self.external_client = external_client
        self.station_repo = station_repo

    def _ensure_type(self, power_bank_type_id: str) -> None:
        if self.station_repo.get_power_bank_type(power_bank_type_id) is None:
            raise PowerBankTypeNotFoundException()

    def calculate(
        self,
        power_bank_type_id: str,
        rental_duration_hours: int,
        rental_type: str,
        scheduled_start_time: Optional[datetime] = None,
        user_id: Optional[str] = None,
    ) -> PricingBreakdown:
        self._ensure_type(power_bank_type_id)
        breakdown = self.external_client.calculate_rental_pricing(
            power_bank_type_id,
            rental_duration_hours,
            rental_type,
            scheduled_start_time,
            user_id,
        )
        logger.info(
            f"Priced {rental_duration_hours}h {rental_type} rental of type "
            f"{power_bank_type_id}: total {breakdown.total_amount}"
        )
        return breakdown

    def preview(
        self,
        power_bank_type_id: str,
        rental_duration_hours: int,
        rental_type: str,
        scheduled_start_time: Optional[datetime] = None,
        user_id: Optional[str] = None,
    ) -> PricingBreakdown:
        self._ensure_type(power_bank_type_id)
        return self.external_client.preview_rental_pricing(
            power_bank_type_id,
            rental_duration_hours,
            rental_type,
            scheduled_start_time,
            user_id,
        )
