import time
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

from loguru import logger

from booking_core.core.exceptions import (
    AlreadyConfirmedException,
    BookingNotFoundException,
    DuplicateRentalException,
    InventoryUpdateFailedException,
    OutOfStockException,
)
from booking_core.core.guards import InFlightRegistry, confirmations_in_flight
from booking_core.core.utils import ensure_utc, utcnow, uuid4
from booking_core.monitoring.metrics import MetricsCollector
from booking_core.services.inventory import InventoryService
from booking_core.services.notification import NotificationService, notify_booking_confirmed
from rental_store.models import Booking, Rental, StationInventory, Transaction
from rental_store.repositories import (
    BookingRepository,
    RentalRepository,
    StationRepository,
    TransactionRepository,
)

Compensation = Tuple[str, Callable[[], object]]


class ConfirmationResult:
    def __init__(
        self,
        booking: Booking,
        rental: Rental,
        transaction: Transaction,
        inventory: StationInventory,
    ):
        self.booking = booking
        self.rental = rental
        self.transaction = transaction
        self.inventory = inventory


class ConfirmPaymentSaga:
    """
    Turns a pending booking into a confirmed rental, a completed transaction
    and one unit less in the station inventory.

    Each step that writes registers an undo action. If a later step fails the
    undo actions run newest first and the original error is re-raised; a
    failing undo is logged and skipped.
    """

    def __init__(
        self,
        booking_repo: BookingRepository,
        rental_repo: RentalRepository,
        transaction_repo: TransactionRepository,
        station_repo: StationRepository,
        inventory_service: InventoryService,
        notifications: NotificationService,
        duplicate_window_sec: int = 600,
        default_rental_days: int = 1,
        in_flight: InFlightRegistry = confirmations_in_flight,
    ):
        self.booking_repo = booking_repo
        self.rental_repo = rental_repo
        self.transaction_repo = transaction_repo
        self.station_repo = station_repo
        self.inventory_service = inventory_service
        self.notifications = notifications
        self.duplicate_window_sec = duplicate_window_sec
        self.default_rental_days = default_rental_days
        self.in_flight = in_flight

    def confirm_payment(
        self, booking_id: str, return_time: Optional[datetime] = None
    ) -> ConfirmationResult:
        started = time.perf_counter()
        logger.info(f"Confirming payment for booking {booking_id}")

        try:
            with self.in_flight.claim(booking_id, AlreadyConfirmedException()):
                result = self._run(booking_id, return_time)
        except AlreadyConfirmedException:
            MetricsCollector.record_confirmation("already_confirmed")
            raise
        except DuplicateRentalException:
            MetricsCollector.record_confirmation("duplicate_rental")
            raise
        except InventoryUpdateFailedException:
            MetricsCollector.record_confirmation("inventory_failed")
            raise
        except Exception:
            MetricsCollector.record_confirmation("error")
            raise

        MetricsCollector.record_confirmation("confirmed", time.perf_counter() - started)
        return result

    def _run(self, booking_id: str, return_time: Optional[datetime]) -> ConfirmationResult:
        booking = self.booking_repo.get_by_id(booking_id)
        if booking is None:
            raise BookingNotFoundException()
        if booking.status == "confirmed":
            raise AlreadyConfirmedException()

        self._check_duplicate_rental(booking)

        compensations: List[Compensation] = []
        try:
            if not self.booking_repo.transition_status(booking.id, "pending", "confirmed"):
                raise AlreadyConfirmedException()
            compensations.append(
                (
                    "revert_booking",
                    lambda: self.booking_repo.transition_status(
                        booking.id, "confirmed", "pending"
                    ),
                )
            )

            rental = self._create_rental(booking, return_time)
            compensations.append(
                ("delete_rental", lambda: self.rental_repo.delete_rental(rental.id))
            )

            transaction = self._create_transaction(booking, rental)
            compensations.append(
                (
                    "delete_transaction",
                    lambda: self.transaction_repo.delete_transaction(transaction.id),
                )
            )

            inventory = self._decrement_inventory(booking)
        except Exception as e:
            logger.warning(f"Confirmation of booking {booking_id} failed: {e}")
            self._compensate(booking_id, compensations)
            raise

        self.booking_repo.session.refresh(booking)
        logger.info(
            f"Booking {booking.order_id} confirmed: rental {rental.id}, "
            f"transaction {transaction.id}, available units left {inventory.available_units}"
        )
        return ConfirmationResult(booking, rental, transaction, inventory)

    def _check_duplicate_rental(self, booking: Booking) -> None:
        if self.rental_repo.get_by_booking_id(booking.id) is not None:
            raise DuplicateRentalException()

        since = utcnow() - timedelta(seconds=self.duplicate_window_sec)
        recent = self.rental_repo.find_recent_active(
            booking.user_id, booking.station_id, booking.power_bank_type_id, since
        )
        if recent is not None:
            raise DuplicateRentalException(
                "A recent rental for this user, station, and power bank type already "
                "exists. Cannot create duplicate rental."
            )

    def _create_rental(self, booking: Booking, return_time: Optional[datetime]) -> Rental:
        start = utcnow()
        end = ensure_utc(return_time) if return_time else start + timedelta(
            days=self.default_rental_days
        )
        rental = Rental(
            id=uuid4(),
            user_id=booking.user_id,
            station_id=booking.station_id,
            power_bank_type_id=booking.power_bank_type_id,
            booking_id=booking.id,
            start_time=start,
            end_time=end,
            status="active",
            total_amount=booking.total_amount,
            created_at=start,
        )
        self.rental_repo.create_rental(rental)
        return rental

    def _create_transaction(self, booking: Booking, rental: Rental) -> Transaction:
        transaction = Transaction(
            id=uuid4(),
            rental_id=rental.id,
            amount=booking.total_amount,
            payment_method="bank_transfer",
            payment_reference=booking.order_id,
            status="completed",
            created_at=utcnow(),
        )
        self.transaction_repo.create_transaction(transaction)
        return transaction

    def _decrement_inventory(self, booking: Booking) -> StationInventory:
        try:
            return self.inventory_service.decrement(
                booking.station_id, booking.power_bank_type_id
            )
        except OutOfStockException as e:
            raise InventoryUpdateFailedException(
                f"Inventory update failed: {e.message} Transaction has been cancelled."
            ) from e

    def _compensate(self, booking_id: str, compensations: List[Compensation]) -> None:
        for step, action in reversed(compensations):
            try:
                action()
                MetricsCollector.record_compensation(step, True)
                logger.info(f"Compensation {step} applied for booking {booking_id}")
            except Exception:
                MetricsCollector.record_compensation(step, False)
                logger.exception(f"Compensation {step} failed for booking {booking_id}")

    def notify(self, result: ConfirmationResult) -> None:
        """Admin alert for a confirmed booking; call once the unit of work is committed."""
        try:
            notify_booking_confirmed(
                self.notifications,
                result.booking,
                result.rental,
                profile=self.station_repo.get_profile(result.booking.user_id),
            )
        except Exception as e:
            logger.warning(
                f"Failed to send confirmation notification for {result.booking.order_id}: {e}"
            )
