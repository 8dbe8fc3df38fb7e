from datetime import datetime, timezone
from typing import Generator
from unittest.mock import Mock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from booking_core.clients.external import ExternalClient
from booking_core.core.guards import InFlightRegistry
from booking_core.schemas import PricingBreakdown
from booking_core.services.booking import BookingService
from booking_core.services.catalog import CatalogService
from booking_core.services.confirmation import ConfirmPaymentSaga
from booking_core.services.inventory import InventoryService
from booking_core.services.notification import NotificationService
from booking_core.services.pricing import PricingService
from booking_core.services.rental import RentalService
from booking_core.services.reservation import ReservationService
from rental_store.database import get_engine, get_sessionmaker, init_db
from rental_store.models import (
    Base,
    Booking,
    PowerBankType,
    Profile,
    Rental,
    Station,
    StationInventory,
)
from rental_store.repositories import (
    BookingRepository,
    InventoryRepository,
    LoyaltyRepository,
    RentalRepository,
    ReservationRepository,
    StationRepository,
    TransactionRepository,
)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )


@pytest.fixture
def db_session(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# ---------- Данные ----------


class Seed:
    def __init__(self, station, standard, premium, inventory, premium_inventory, customer):
        self.station = station
        self.standard = standard
        self.premium = premium
        self.inventory = inventory
        self.premium_inventory = premium_inventory
        self.customer = customer


@pytest.fixture
def seed(db_session) -> Seed:
    now = datetime.now(timezone.utc)
    station = Station(
        id="st-1",
        name="Ikeja Mall",
        address="Obafemi Awolowo Way, Ikeja",
        total_power_banks=8,
        price_per_hour=50,
        created_at=now,
    )
    standard = PowerBankType(
        id="pbt-10k",
        name="10000mAh Standard",
        category="standard",
        capacity_mah=10000,
        price_per_hour=100,
        price_per_day=2400,
        target_devices="phones,tablets",
    )
    premium = PowerBankType(
        id="pbt-20k",
        name="20000mAh Premium",
        category="premium",
        capacity_mah=20000,
        price_per_hour=200,
        price_per_day=4800,
        target_devices="phones,tablets,laptops",
    )
    inventory = StationInventory(
        id="inv-1",
        station_id=station.id,
        power_bank_type_id=standard.id,
        total_units=5,
        available_units=5,
        reserved_units=0,
        updated_at=now,
    )
    premium_inventory = StationInventory(
        id="inv-2",
        station_id=station.id,
        power_bank_type_id=premium.id,
        total_units=3,
        available_units=1,
        reserved_units=0,
        updated_at=now,
    )
    customer = Profile(id="user-1", full_name="Ada Obi", email="ada@example.com")

    db_session.add_all([station, standard, premium, inventory, premium_inventory, customer])
    db_session.commit()
    return Seed(station, standard, premium, inventory, premium_inventory, customer)


@pytest.fixture
def make_booking(db_session):
    counter = {"n": 0}

    def _make(user_id="user-1", station_id="st-1", type_id="pbt-10k", amount=2400):
        counter["n"] += 1
        booking = Booking(
            id=f"bk-{counter['n']}",
            order_id=f"BK-000000{counter['n']:03d}",
            user_id=user_id,
            station_id=station_id,
            power_bank_type_id=type_id,
            total_amount=amount,
            payment_method="bank_transfer",
            status="pending",
            created_at=datetime.now(timezone.utc),
        )
        db_session.add(booking)
        db_session.commit()
        return booking

    return _make


@pytest.fixture
def make_rental(db_session):
    counter = {"n": 0}

    def _make(
        user_id="user-1",
        station_id="st-1",
        type_id="pbt-10k",
        status="active",
        end_time=None,
        created_at=None,
        booking_id=None,
    ):
        counter["n"] += 1
        now = datetime.now(timezone.utc)
        rental = Rental(
            id=f"r-{counter['n']}",
            user_id=user_id,
            station_id=station_id,
            power_bank_type_id=type_id,
            booking_id=booking_id,
            start_time=now,
            end_time=end_time,
            status=status,
            total_amount=2400,
            created_at=created_at or now,
        )
        db_session.add(rental)
        db_session.commit()
        return rental

    return _make


# ---------- Файловая БД для нескольких сессий ----------


@pytest.fixture
def store_sessions(tmp_path) -> Generator[sessionmaker, None, None]:
    """
    Sessionmaker over a file-backed SQLite database, so independent sessions
    use separate connections and see each other only after a commit.
    """
    database_url = f"sqlite:///{tmp_path / 'store.db'}"
    init_db(database_url)
    factory = get_sessionmaker(database_url)

    now = datetime.now(timezone.utc)
    session = factory()
    try:
        session.add_all(
            [
                Station(id="st-1", name="Ikeja Mall", address="Ikeja", created_at=now),
                PowerBankType(
                    id="pbt-10k",
                    name="10000mAh Standard",
                    category="standard",
                    capacity_mah=10000,
                    price_per_hour=100,
                    price_per_day=2400,
                ),
                StationInventory(
                    id="inv-1",
                    station_id="st-1",
                    power_bank_type_id="pbt-10k",
                    total_units=5,
                    available_units=1,
                    reserved_units=0,
                    updated_at=now,
                ),
            ]
        )
        session.commit()
    finally:
        session.close()

    yield factory
    get_engine(database_url).dispose()


# ---------- Сервисы ----------


@pytest.fixture
def repositories(db_session):
    return {
        "station": StationRepository(db_session),
        "inventory": InventoryRepository(db_session),
        "reservation": ReservationRepository(db_session),
        "booking": BookingRepository(db_session),
        "rental": RentalRepository(db_session),
        "transaction": TransactionRepository(db_session),
        "loyalty": LoyaltyRepository(db_session),
    }


@pytest.fixture
def notifications() -> NotificationService:
    return NotificationService(limit=50)


@pytest.fixture
def external_client():
    client = Mock(spec=ExternalClient)
    client.calculate_rental_pricing.return_value = PricingBreakdown(
        base_price=2400, security_deposit=1000, total_amount=3400
    )
    client.preview_rental_pricing.return_value = PricingBreakdown(
        base_price=2400, security_deposit=1000, total_amount=3400
    )
    return client


@pytest.fixture
def inventory_service(repositories) -> InventoryService:
    return InventoryService(
        repositories["inventory"], repositories["rental"], repositories["station"]
    )


@pytest.fixture
def reservation_service(repositories) -> ReservationService:
    return ReservationService(repositories["reservation"], repositories["inventory"])


@pytest.fixture
def booking_service(repositories, notifications) -> BookingService:
    return BookingService(repositories["booking"], repositories["station"], notifications)


@pytest.fixture
def in_flight() -> InFlightRegistry:
    return InFlightRegistry()


@pytest.fixture
def saga(repositories, inventory_service, notifications, in_flight) -> ConfirmPaymentSaga:
    return ConfirmPaymentSaga(
        repositories["booking"],
        repositories["rental"],
        repositories["transaction"],
        repositories["station"],
        inventory_service,
        notifications,
        in_flight=in_flight,
    )


@pytest.fixture
def pricing_service(external_client, repositories) -> PricingService:
    return PricingService(external_client, repositories["station"])


@pytest.fixture
def rental_service(repositories, pricing_service, external_client, notifications) -> RentalService:
    return RentalService(
        repositories["rental"],
        repositories["station"],
        repositories["transaction"],
        pricing_service,
        external_client,
        notifications,
    )


@pytest.fixture
def catalog_service(repositories) -> CatalogService:
    return CatalogService(
        repositories["station"],
        repositories["inventory"],
        repositories["transaction"],
        repositories["loyalty"],
    )


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")
