from threading import Lock
from typing import Any, Callable, Dict, List, Optional, Set

from loguru import logger

from booking_core.core.utils import utcnow, uuid4
from booking_core.schemas import NotificationData

ADMIN_USER_ID = "admin_user"
ALL_USERS = "all_users"

Listener = Callable[[NotificationData], None]


class NotificationService:
    """
    In-process notification hub for the admin dashboard and customers.

    Admin and user notifications live in separate stores, each capped at the
    newest ``limit`` entries. Every new notification is fanned out to the
    subscribers; a failing subscriber is logged and skipped.
    """

    def __init__(self, limit: int = 50):
        self.limit = limit
        self._admin: List[NotificationData] = []
        self._user: List[NotificationData] = []
        # broadcast ids each user has read
        self._broadcast_reads: Dict[str, Set[str]] = {}
        self._listeners: List[Listener] = []
        self._lock = Lock()

    def create_admin_notification(
        self, type: str, title: str, message: str, data: Optional[Dict[str, Any]] = None
    ) -> NotificationData:
        notification = NotificationData(
            id=f"notification_{uuid4()}",
            type=type,
            title=title,
            message=message,
            data=data or {},
            created_at=utcnow(),
            user_id=ADMIN_USER_ID,
        )
        with self._lock:
            self._admin = [notification] + self._admin[: self.limit - 1]
        self._broadcast(notification)
        return notification

    def create_user_notification(
        self,
        user_id: str,
        type: str,
        title: str,
        message: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> NotificationData:
        notification = NotificationData(
            id=f"user_notification_{uuid4()}",
            type=type,
            title=title,
            message=message,
            data=data or {},
            created_at=utcnow(),
            user_id=user_id,
        )
        with self._lock:
            self._user = [notification] + self._user[: self.limit - 1]
            live = {n.id for n in self._user}
            for read in self._broadcast_reads.values():
                read.intersection_update(live)
        self._broadcast(notification)
        return notification

    def subscribe(self, callback: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return _unsubscribe

    def _broadcast(self, notification: NotificationData) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for callback in listeners:
            try:
                callback(notification)
            except Exception:
                logger.exception(f"Notification listener failed for {notification.id}")

    def get_admin_notifications(self) -> List[NotificationData]:
        with self._lock:
            return list(self._admin)

    def get_user_notifications(self, user_id: str) -> List[NotificationData]:
        """
        The user's own notifications plus broadcasts. Broadcasts are shared
        objects, so their ``read`` flag is projected from the caller's read set.
        """
        with self._lock:
            read = self._broadcast_reads.get(user_id, set())
            visible = []
            for notification in self._user:
                if notification.user_id == user_id:
                    visible.append(notification)
                elif notification.user_id == ALL_USERS:
                    visible.append(
                        notification.model_copy(update={"read": notification.id in read})
                    )
            return visible

    def mark_as_read(self, notification_id: str, user_id: Optional[str] = None) -> bool:
        """
        A broadcast is only marked for ``user_id``; without one it is left
        untouched and reported as not found.
        """
        found = False
        with self._lock:
            for notification in self._admin + self._user:
                if notification.id != notification_id:
                    continue
                if notification.user_id == ALL_USERS:
                    if user_id is None:
                        continue
                    self._broadcast_reads.setdefault(user_id, set()).add(notification.id)
                else:
                    notification.read = True
                found = True
        return found

    def mark_all_as_read(self, user_id: Optional[str] = None) -> int:
        """Marks the admin store (no user_id) or one user's view as read."""
        with self._lock:
            if user_id is None:
                unread = [n for n in self._admin if not n.read]
                for notification in unread:
                    notification.read = True
                return len(unread)

            unread = [n for n in self._user if n.user_id == user_id and not n.read]
            for notification in unread:
                notification.read = True

            read = self._broadcast_reads.setdefault(user_id, set())
            broadcasts = [
                n.id for n in self._user if n.user_id == ALL_USERS and n.id not in read
            ]
            read.update(broadcasts)
        return len(unread) + len(broadcasts)

    def clear(self) -> None:
        with self._lock:
            self._admin = []
            self._user = []
            self._broadcast_reads = {}


def _customer_name(profile) -> str:
    if profile is None:
        return "Unknown Customer"
    return profile.full_name or profile.email or "Unknown Customer"


def _payment_method_label(method: str) -> str:
    return "Bank Transfer" if method == "bank_transfer" else "Card Payment"


# --- Уведомления по бизнес-событиям ---


def notify_booking_created(
    service: NotificationService, booking, profile=None, station=None, power_bank_type=None
) -> NotificationData:
    customer = _customer_name(profile)
    station_name = station.name if station else "Unknown Station"
    power_bank_name = power_bank_type.name if power_bank_type else "Unknown Power Bank"
    payment_method = _payment_method_label(booking.payment_method)

    return service.create_admin_notification(
        type="booking_created",
        title="New Booking Alert",
        message=(
            f"New booking {booking.order_id} created by {customer} for {power_bank_name} "
            f"at {station_name}. Amount: {booking.total_amount} ({payment_method})"
        ),
        data={
            "booking_id": booking.id,
            "order_id": booking.order_id,
            "customer_name": customer,
            "station_name": station_name,
            "power_bank_name": power_bank_name,
            "amount": booking.total_amount,
            "payment_method": payment_method,
            "urgency": "high",
            "action_required": "confirm_payment",
        },
    )


def notify_booking_confirmed(
    service: NotificationService, booking, rental, profile=None
) -> NotificationData:
    customer = _customer_name(profile)
    return_time = rental.end_time.isoformat() if rental.end_time else "Not set"

    return service.create_admin_notification(
        type="booking_confirmed",
        title="Booking Confirmed",
        message=f"Booking {booking.order_id} confirmed for {customer}. Return time: {return_time}",
        data={
            "booking_id": booking.id,
            "order_id": booking.order_id,
            "rental_id": rental.id,
            "customer_name": customer,
            "return_time": return_time,
            "urgency": "medium",
            "action_required": "none",
        },
    )


def _notify_customer_return(
    service: NotificationService, rental, station_name: str, details: Dict[str, Any]
) -> None:
    if not rental.user_id:
        return
    service.create_user_notification(
        user_id=rental.user_id,
        type="return_confirmed",
        title="Return Confirmed",
        message=(
            f"Your power bank return has been confirmed at {station_name}. "
            "Thank you for using our service!"
        ),
        data=details,
    )


def notify_return_confirmed(
    service: NotificationService, rental, profile=None, station=None, power_bank_type=None
) -> NotificationData:
    customer = _customer_name(profile)
    station_name = station.name if station else "Unknown Station"
    power_bank_name = power_bank_type.name if power_bank_type else "Unknown Power Bank"
    return_time = utcnow().isoformat()
    details = {
        "rental_id": rental.id,
        "station_name": station_name,
        "power_bank_name": power_bank_name,
        "return_time": return_time,
        "urgency": "low",
        "action_required": "none",
        "notification_type": "return_confirmation",
    }

    notification = service.create_admin_notification(
        type="rental_completed",
        title="Return Confirmed",
        message=(
            f"Return confirmed for {customer} at {station_name}. "
            f"Power bank: {power_bank_name}. Return time: {return_time}"
        ),
        data={**details, "customer_name": customer},
    )
    _notify_customer_return(service, rental, station_name, details)
    return notification


def notify_force_return(
    service: NotificationService, rental, profile=None, station=None, power_bank_type=None
) -> NotificationData:
    customer = _customer_name(profile)
    station_name = station.name if station else "Unknown Station"
    power_bank_name = power_bank_type.name if power_bank_type else "Unknown Power Bank"
    return_time = utcnow().isoformat()
    details = {
        "rental_id": rental.id,
        "station_name": station_name,
        "power_bank_name": power_bank_name,
        "return_time": return_time,
        "urgency": "medium",
        "action_required": "none",
        "notification_type": "force_return",
    }

    notification = service.create_admin_notification(
        type="rental_completed",
        title="Rental Force-Returned",
        message=(
            f"Rental of {power_bank_name} by {customer} at {station_name} was "
            f"force-returned by an admin at {return_time}"
        ),
        data={**details, "customer_name": customer},
    )
    _notify_customer_return(service, rental, station_name, details)
    return notification


def notify_promotional_update(
    service: NotificationService,
    title: str,
    message: str,
    discount_percentage: Optional[int] = None,
) -> NotificationData:
    details = {
        "promo_title": title,
        "promo_message": message,
        "discount_percentage": discount_percentage,
        "urgency": "medium",
        "action_required": "none",
    }

    service.create_admin_notification(
        type="promotional_update",
        title="Promotional Update Created",
        message=f'New promotional update "{title}" has been created and sent to all customers.',
        data={**details, "notification_type": "promotional_update_created"},
    )

    if discount_percentage:
        title = f"{title} - {discount_percentage}% OFF!"
        message = f"{message} Get {discount_percentage}% off!"

    return service.create_user_notification(
        user_id=ALL_USERS,
        type="promotional_update",
        title=title,
        message=message,
        data={**details, "notification_type": "promotional_update"},
    )


notification_service = NotificationService()
