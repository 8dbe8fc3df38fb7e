from datetime import datetime, timedelta
from typing import List, Optional

from loguru import logger

from booking_core.clients.external import ExternalClient
from booking_core.core.exceptions import (
    InvalidExtensionException,
    InvalidStateException,
    PaymentFailedException,
    PowerBankTypeNotFoundException,
    RentalNotFoundException,
    StationNotFoundException,
)
from booking_core.core.utils import ensure_utc, payment_reference, utcnow, uuid4
from booking_core.monitoring.metrics import MetricsCollector
from booking_core.schemas import PricingBreakdown
from booking_core.services.notification import (
    NotificationService,
    notify_force_return,
    notify_return_confirmed,
)
from booking_core.services.pricing import PricingService
from rental_store.models import Rental, Transaction
from rental_store.repositories import RentalRepository, StationRepository, TransactionRepository

EXTENSION_UNITS = ("hours", "days")


class RentalService:
    def __init__(
        self,
        rental_repo: RentalRepository,
        station_repo: StationRepository,
        transaction_repo: TransactionRepository,
        pricing_service: PricingService,
        external_client: ExternalClient,
        notifications: NotificationService,
        cancellation_notice_hours: int = 1,
    ):
        self.rental_repo = rental_repo
        self.station_repo = station_repo
        self.transaction_repo = transaction_repo
        self.pricing_service = pricing_service
        self.external_client = external_client
        self.notifications = notifications
        self.cancellation_notice_hours = cancellation_notice_hours

    def get_rental(self, rental_id: str) -> Rental:
        rental = self.rental_repo.get_by_id(rental_id)
        if rental is None:
            logger.error(f"Rental {rental_id} not found")
            raise RentalNotFoundException()
        return rental

    def list_rentals(
        self, user_id: Optional[str] = None, status: Optional[str] = None
    ) -> List[Rental]:
        return self.rental_repo.list_rentals(user_id, status)

    # --- Действия администратора ---

    def confirm_return(self, rental_id: str) -> Rental:
        """
        Marks an active rental completed.

        Inventory is left alone: a returned unit only comes back through
        inventory reconciliation.
        """
        rental = self.get_rental(rental_id)
        if not self.rental_repo.finish_rental(rental_id, "completed", only_from=("active",)):
            raise InvalidStateException(
                f"Rental is {rental.status}, only active rentals can be returned"
            )
        self.rental_repo.session.refresh(rental)
        MetricsCollector.record_return("confirm")
        logger.info(f"Return confirmed for rental {rental_id}")

        self._send_return_notification(rental, notify_return_confirmed)
        return rental

    def force_return(self, rental_id: str) -> Rental:
        rental = self.get_rental(rental_id)
        self.rental_repo.finish_rental(rental_id, "completed")
        self.rental_repo.session.refresh(rental)
        MetricsCollector.record_return("force")
        logger.warning(f"Rental {rental_id} force-returned")

        self._send_return_notification(rental, notify_force_return)
        return rental

    def _send_return_notification(self, rental: Rental, sender) -> None:
        try:
            power_bank_type = (
                self.station_repo.get_power_bank_type(rental.power_bank_type_id)
                if rental.power_bank_type_id
                else None
            )
            sender(
                self.notifications,
                rental,
                profile=self.station_repo.get_profile(rental.user_id),
                station=self.station_repo.get_by_id(rental.station_id),
                power_bank_type=power_bank_type,
            )
        except Exception as e:
            logger.warning(f"Failed to send return notification for rental {rental.id}: {e}")

    def extend_rental(self, rental_id: str, amount: int, unit: str) -> Rental:
        if unit not in EXTENSION_UNITS or amount <= 0:
            raise InvalidExtensionException()

        rental = self.get_rental(rental_id)
        if rental.end_time is None:
            raise InvalidStateException("Rental has no end time to extend")

        new_end = ensure_utc(rental.end_time) + timedelta(**{unit: amount})
        self.rental_repo.set_end_time(rental_id, new_end)
        self.rental_repo.session.refresh(rental)

        logger.info(f"Rental {rental_id} extended by {amount} {unit} until {new_end.isoformat()}")
        return rental

    # --- Действия клиента ---

    def create_rental(
        self,
        user_id: str,
        station_id: str,
        power_bank_type_id: str,
        rental_duration_hours: int = 1,
        rental_type: str = "hourly",
        scheduled_start_time: Optional[datetime] = None,
        pricing: Optional[PricingBreakdown] = None,
    ) -> Rental:
        if self.station_repo.get_by_id(station_id) is None:
            raise StationNotFoundException()
        if self.station_repo.get_power_bank_type(power_bank_type_id) is None:
            raise PowerBankTypeNotFoundException()

        scheduled_start_time = ensure_utc(scheduled_start_time)
        if pricing is None:
            pricing = self.pricing_service.calculate(
                power_bank_type_id,
                rental_duration_hours,
                rental_type,
                scheduled_start_time or utcnow(),
                user_id,
            )

        now = utcnow()
        start = scheduled_start_time or now
        rental = Rental(
            id=uuid4(),
            user_id=user_id,
            station_id=station_id,
            power_bank_type_id=power_bank_type_id,
            start_time=start,
            status="scheduled" if scheduled_start_time else "active",
            rental_duration_hours=rental_duration_hours,
            rental_type=rental_type,
            base_price=pricing.base_price,
            surcharges=pricing.surcharges,
            peak_hour_surcharge=pricing.peak_surcharge,
            weekend_premium=pricing.weekend_premium,
            loyalty_discount=pricing.loyalty_discount,
            security_deposit=pricing.security_deposit,
            total_amount=pricing.total_amount,
            scheduled_start_time=scheduled_start_time,
            cancellation_deadline=start - timedelta(hours=self.cancellation_notice_hours),
            created_at=now,
        )
        self.rental_repo.create_rental(rental)
        logger.info(f"Rental {rental.id} {rental.status} for user {user_id}")
        return rental

    def cancel_rental(self, rental_id: str) -> Rental:
        rental = self.get_rental(rental_id)
        if not self.rental_repo.finish_rental(
            rental_id, "cancelled", only_from=("scheduled", "active")
        ):
            raise InvalidStateException(f"Rental is already {rental.status}")
        self.rental_repo.session.refresh(rental)
        return rental

    def complete_rental(self, rental_id: str) -> Rental:
        rental = self.get_rental(rental_id)
        if not self.rental_repo.finish_rental(
            rental_id, "completed", only_from=("scheduled", "active")
        ):
            raise InvalidStateException(f"Rental is already {rental.status}")
        self.rental_repo.session.refresh(rental)
        return rental

    def pay_rental(self, rental_id: str, amount: int, phone: str) -> Transaction:
        rental = self.get_rental(rental_id)
        reference = payment_reference("opay")

        result = self.external_client.invoke_payment(
            amount, phone, reference, f"Power bank rental {rental.id}"
        )
        if not result.success:
            raise PaymentFailedException(result.message or "Payment was declined")

        transaction = Transaction(
            id=uuid4(),
            rental_id=rental.id,
            amount=amount,
            payment_method="opay",
            payment_reference=reference,
            status="completed",
            created_at=utcnow(),
        )
        self.transaction_repo.create_transaction(transaction)

        rental.total_amount = amount
        self.rental_repo.session.flush()
        return transaction
