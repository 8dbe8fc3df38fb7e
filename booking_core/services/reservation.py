from datetime import timedelta
from typing import List, Optional

from loguru import logger
from sqlalchemy.exc import IntegrityError

from booking_core.core.exceptions import (
    DuplicateActiveReservationException,
    InvalidStateException,
    OutOfStockException,
    ReservationNotFoundException,
)
from booking_core.core.utils import ensure_utc, utcnow, uuid4
from booking_core.monitoring.metrics import MetricsCollector
from rental_store.models import Reservation
from rental_store.repositories import InventoryRepository, ReservationRepository


class ReservationService:
    """
    Short-lived advisory holds.

    A reservation never touches inventory columns: the hold is enforced only
    by allowing one active reservation per user.
    """

    def __init__(
        self,
        reservation_repo: ReservationRepository,
        inventory_repo: InventoryRepository,
        ttl_sec: int = 300,
    ):
        self.reservation_repo = reservation_repo
        self.inventory_repo = inventory_repo
        self.ttl_sec = ttl_sec

    def create_reservation(
        self, user_id: str, station_id: str, power_bank_type_id: str
    ) -> Reservation:
        existing = self.reservation_repo.get_active_for_user(user_id)
        if existing and ensure_utc(existing.expires_at) <= utcnow():
            # past its expiry but not swept yet
            self.reservation_repo.set_status(existing.id, "expired", expected="active")
            existing = None
        if existing:
            logger.info(f"User {user_id} already holds reservation {existing.id}")
            MetricsCollector.record_reservation("duplicate")
            raise DuplicateActiveReservationException()

        inventory = self.inventory_repo.get_by_station_and_type(station_id, power_bank_type_id)
        if inventory is None or inventory.available_units <= 0:
            MetricsCollector.record_reservation("out_of_stock")
            raise OutOfStockException()

        now = utcnow()
        reservation = Reservation(
            id=uuid4(),
            user_id=user_id,
            station_id=station_id,
            power_bank_type_id=power_bank_type_id,
            status="active",
            expires_at=now + timedelta(seconds=self.ttl_sec),
            created_at=now,
        )
        try:
            self.reservation_repo.create_reservation(reservation)
        except IntegrityError as e:
            # another request committed an active hold for this user first
            logger.info(f"User {user_id} lost the race for an active reservation")
            MetricsCollector.record_reservation("duplicate")
            raise DuplicateActiveReservationException() from e
        MetricsCollector.record_reservation("created")

        logger.info(
            f"Reservation {reservation.id} created for user {user_id} "
            f"at station {station_id}, expires {reservation.expires_at.isoformat()}"
        )
        return reservation

    def _transition(self, reservation_id: str, status: str) -> Reservation:
        reservation = self.reservation_repo.get_by_id(reservation_id)
        if reservation is None:
            raise ReservationNotFoundException()
        if not self.reservation_repo.set_status(reservation_id, status, expected="active"):
            raise InvalidStateException(
                f"Reservation is {reservation.status}, only active reservations can change"
            )
        self.reservation_repo.session.refresh(reservation)
        return reservation

    def complete_reservation(self, reservation_id: str) -> Reservation:
        reservation = self._transition(reservation_id, "completed")
        MetricsCollector.record_reservation("completed")
        return reservation

    def cancel_reservation(self, reservation_id: str) -> Reservation:
        reservation = self._transition(reservation_id, "expired")
        MetricsCollector.record_reservation("cancelled")
        return reservation

    def expire_reservations(self) -> int:
        return self.reservation_repo.expire_reservations(utcnow())

    def list_active(self, user_id: Optional[str] = None) -> List[Reservation]:
        return self.reservation_repo.list_active(user_id)
