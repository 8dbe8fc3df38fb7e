from datetime import datetime, timezone
from typing import List, Optional

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from rental_store.events import record_change
from rental_store.models import Reservation


class ReservationRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, reservation_id: str) -> Optional[Reservation]:
        return self.session.get(Reservation, reservation_id)

    def get_active_for_user(self, user_id: str) -> Optional[Reservation]:
        return (
            self.session.execute(
                select(Reservation)
                .where(Reservation.user_id == user_id, Reservation.status == "active")
                .order_by(Reservation.created_at.desc())
            )
            .scalars()
            .first()
        )

    def list_active(self, user_id: Optional[str] = None) -> List[Reservation]:
        query = select(Reservation).where(Reservation.status == "active")
        if user_id:
            query = query.where(Reservation.user_id == user_id)
        return list(
            self.session.execute(query.order_by(Reservation.created_at.desc()))
            .scalars()
            .all()
        )

    def create_reservation(self, reservation: Reservation) -> None:
        self.session.add(reservation)
        self.session.flush()

    def set_status(self, reservation_id: str, status: str, expected: str = "active") -> bool:
        result = self.session.execute(
            update(Reservation)
            .where(Reservation.id == reservation_id, Reservation.status == expected)
            .values(status=status)
        )
        updated = result.rowcount > 0
        if updated:
            record_change(self.session, Reservation.__tablename__, "UPDATE", reservation_id)
            logger.info(f"Reservation {reservation_id}: {expected} -> {status}")
        return updated

    def expire_reservations(self, now: Optional[datetime] = None) -> int:
        """Flip every active reservation past its expiry to expired."""
        now = now or datetime.now(timezone.utc)
        expired_ids = list(
            self.session.execute(
                select(Reservation.id).where(
                    Reservation.status == "active", Reservation.expires_at < now
                )
            )
            .scalars()
            .all()
        )
        if not expired_ids:
            return 0

        self.session.execute(
            update(Reservation)
            .where(Reservation.id.in_(expired_ids), Reservation.status == "active")
            .values(status="expired"),
            execution_options={"synchronize_session": "fetch"},
        )
        for reservation_id in expired_ids:
            record_change(self.session, Reservation.__tablename__, "UPDATE", reservation_id)

        logger.info(f"Expired {len(expired_ids)} reservations")
        return len(expired_ids)
