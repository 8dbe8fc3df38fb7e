from loguru import logger

from booking_core.core.exceptions import (
    BookingNotFoundException,
    InvalidOrderIdException,
    PowerBankTypeNotFoundException,
    StationNotFoundException,
)
from booking_core.core.utils import generate_order_id, is_valid_order_id, utcnow, uuid4
from booking_core.services.notification import NotificationService, notify_booking_created
from rental_store.models import Booking
from rental_store.repositories import BookingRepository, StationRepository


class BookingService:
    def __init__(
        self,
        booking_repo: BookingRepository,
        station_repo: StationRepository,
        notifications: NotificationService,
    ):
        self.booking_repo = booking_repo
        self.station_repo = station_repo
        self.notifications = notifications

    def create_booking(
        self,
        user_id: str,
        station_id: str,
        power_bank_type_id: str,
        payment_method: str = "bank_transfer",
    ) -> Booking:
        station = self.station_repo.get_by_id(station_id)
        if station is None:
            raise StationNotFoundException()
        power_bank_type = self.station_repo.get_power_bank_type(power_bank_type_id)
        if power_bank_type is None:
            raise PowerBankTypeNotFoundException()

        booking = Booking(
            id=uuid4(),
            order_id=generate_order_id(),
            user_id=user_id,
            station_id=station_id,
            power_bank_type_id=power_bank_type_id,
            total_amount=power_bank_type.price_per_day,
            payment_method=payment_method,
            status="pending",
            created_at=utcnow(),
        )
        self.booking_repo.create_booking(booking)
        logger.info(
            f"Booking {booking.order_id} created for user {user_id}, amount {booking.total_amount}"
        )

        try:
            notify_booking_created(
                self.notifications,
                booking,
                profile=self.station_repo.get_profile(user_id),
                station=station,
                power_bank_type=power_bank_type,
            )
        except Exception as e:
            logger.warning(f"Failed to send booking notification for {booking.order_id}: {e}")

        return booking

    def find_by_order_id(self, order_id: str) -> Booking:
        order_id = (order_id or "").strip()
        if not is_valid_order_id(order_id):
            raise InvalidOrderIdException()

        booking = self.booking_repo.get_by_order_id(order_id)
        if booking is None:
            raise BookingNotFoundException(f"No booking found with order ID {order_id}")
        return booking
