from .booking import BookingRepository
from .inventory import InventoryRepository
from .loyalty import LoyaltyRepository
from .rental import RentalRepository
from .reservation import ReservationRepository
from .station import StationRepository
from .transaction import TransactionRepository

__all__ = [
    "BookingRepository",
    "InventoryRepository",
    "LoyaltyRepository",
    "RentalRepository",
    "ReservationRepository",
    "StationRepository",
    "TransactionRepository",
]
