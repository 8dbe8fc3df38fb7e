from collections import Counter
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from rental_store.events import record_change
from rental_store.models import Rental


class RentalRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, rental_id: str) -> Optional[Rental]:
        return self.session.get(Rental, rental_id)

    def get_by_booking_id(self, booking_id: str) -> Optional[Rental]:
        return (
            self.session.execute(select(Rental).where(Rental.booking_id == booking_id))
            .scalars()
            .first()
        )

    def create_rental(self, rental: Rental) -> None:
        self.session.add(rental)
        self.session.flush()

    def delete_rental(self, rental_id: str) -> bool:
        rental = self.get_by_id(rental_id)
        if not rental:
            return False
        self.session.delete(rental)
        self.session.flush()
        return True

    def list_rentals(
        self, user_id: Optional[str] = None, status: Optional[str] = None
    ) -> List[Rental]:
        query = select(Rental)
        if user_id:
            query = query.where(Rental.user_id == user_id)
        if status:
            query = query.where(Rental.status == status)
        return list(
            self.session.execute(query.order_by(Rental.created_at.desc())).scalars().all()
        )

    def find_recent_active(
        self, user_id: str, station_id: str, power_bank_type_id: str, since: datetime
    ) -> Optional[Rental]:
        return (
            self.session.execute(
                select(Rental)
                .where(
                    Rental.user_id == user_id,
                    Rental.station_id == station_id,
                    Rental.power_bank_type_id == power_bank_type_id,
                    Rental.status == "active",
                    Rental.created_at >= since,
                )
                .limit(1)
            )
            .scalars()
            .first()
        )

    def count_active_by_station_type(self) -> Dict[Tuple[str, str], int]:
        rows = self.session.execute(
            select(Rental.station_id, Rental.power_bank_type_id).where(
                Rental.status == "active"
            )
        ).all()
        return dict(Counter((row.station_id, row.power_bank_type_id) for row in rows))

    def finish_rental(
        self,
        rental_id: str,
        status: str = "completed",
        only_from: Optional[Iterable[str]] = None,
    ) -> bool:
        now = datetime.now(timezone.utc)
        query = update(Rental).where(Rental.id == rental_id)
        if only_from is not None:
            query = query.where(Rental.status.in_(list(only_from)))

        result = self.session.execute(query.values(status=status, end_time=now))

        updated = result.rowcount > 0
        if updated:
            record_change(self.session, Rental.__tablename__, "UPDATE", rental_id)
            logger.info(f"Finished rental {rental_id} with status {status}")
        return updated

    def set_end_time(self, rental_id: str, end_time: datetime) -> bool:
        result = self.session.execute(
            update(Rental).where(Rental.id == rental_id).values(end_time=end_time)
        )
        updated = result.rowcount > 0
        if updated:
            record_change(self.session, Rental.__tablename__, "UPDATE", rental_id)
        return updated
