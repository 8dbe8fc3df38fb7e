from .database import get_engine, get_sessionmaker, init_db
from .events import TableChange, change_feed
from .models import (
    Base,
    Booking,
    PowerBankType,
    Profile,
    Rental,
    Reservation,
    Station,
    StationInventory,
    Transaction,
    UserLoyalty,
)

__all__ = [
    "Base",
    "Booking",
    "PowerBankType",
    "Profile",
    "Rental",
    "Reservation",
    "Station",
    "StationInventory",
    "Transaction",
    "UserLoyalty",
    "TableChange",
    "change_feed",
    "get_engine",
    "get_sessionmaker",
    "init_db",
]
