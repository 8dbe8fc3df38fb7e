from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from rental_store.models import UserLoyalty


class LoyaltyRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_for_user(self, user_id: str) -> Optional[UserLoyalty]:
        return self.session.execute(
            select(UserLoyalty).where(UserLoyalty.user_id == user_id)
        ).scalar_one_or_none()

    def initialize(self, user_id: str) -> UserLoyalty:
        now = datetime.now(timezone.utc)
        loyalty = UserLoyalty(
            id=str(uuid4()),
            user_id=user_id,
            total_bookings=0,
            loyalty_tier="bronze",
            discount_percentage=0,
            created_at=now,
            updated_at=now,
        )
        self.session.add(loyalty)
        self.session.flush()
        return loyalty
