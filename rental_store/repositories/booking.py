from typing import Optional

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from rental_store.events import record_change
from rental_store.models import Booking


class BookingRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, booking_id: str) -> Optional[Booking]:
        return self.session.get(Booking, booking_id)

    def get_by_order_id(self, order_id: str) -> Optional[Booking]:
        return self.session.execute(
            select(Booking).where(Booking.order_id == order_id)
        ).scalar_one_or_none()

    def create_booking(self, booking: Booking) -> None:
        self.session.add(booking)
        self.session.flush()

    def transition_status(self, booking_id: str, from_status: str, to_status: str) -> bool:
        result = self.session.execute(
            update(Booking)
            .where(Booking.id == booking_id, Booking.status == from_status)
            .values(status=to_status)
        )
        updated = result.rowcount > 0
        if updated:
            record_change(self.session, Booking.__tablename__, "UPDATE", booking_id)
            logger.info(f"Booking {booking_id}: {from_status} -> {to_status}")
        return updated
