from functools import lru_cache

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from booking_core.clients.external import ExternalClient
from booking_core.config.settings import Settings
from booking_core.services.booking import BookingService
from booking_core.services.catalog import CatalogService
from booking_core.services.confirmation import ConfirmPaymentSaga
from booking_core.services.inventory import InventoryService
from booking_core.services.notification import NotificationService, notification_service
from booking_core.services.pricing import PricingService
from booking_core.services.rental import RentalService
from booking_core.services.reservation import ReservationService
from rental_store.database import get_sessionmaker
from rental_store.repositories import (
    BookingRepository,
    InventoryRepository,
    LoyaltyRepository,
    RentalRepository,
    ReservationRepository,
    StationRepository,
    TransactionRepository,
)


@lru_cache()
def get_settings() -> Settings:
    return Settings()


def get_session(settings: Settings = Depends(get_settings)) -> Session:
    sessionmaker = get_sessionmaker(settings.database_url)
    session = sessionmaker()
    try:
        yield session
    finally:
        session.close()


def get_external_client(request: Request) -> ExternalClient:
    return request.app.state.external_client


def get_notification_service() -> NotificationService:
    return notification_service


# --- Репозитории ---


def get_station_repository(session: Session = Depends(get_session)) -> StationRepository:
    return StationRepository(session)


def get_inventory_repository(session: Session = Depends(get_session)) -> InventoryRepository:
    return InventoryRepository(session)


def get_reservation_repository(
    session: Session = Depends(get_session),
) -> ReservationRepository:
    return ReservationRepository(session)


def get_booking_repository(session: Session = Depends(get_session)) -> BookingRepository:
    return BookingRepository(session)


def get_rental_repository(session: Session = Depends(get_session)) -> RentalRepository:
    return RentalRepository(session)


def get_transaction_repository(
    session: Session = Depends(get_session),
) -> TransactionRepository:
    return TransactionRepository(session)


def get_loyalty_repository(session: Session = Depends(get_session)) -> LoyaltyRepository:
    return LoyaltyRepository(session)


# --- Сервисы ---


def get_inventory_service(
    inventory_repo: InventoryRepository = Depends(get_inventory_repository),
    rental_repo: RentalRepository = Depends(get_rental_repository),
    station_repo: StationRepository = Depends(get_station_repository),
    settings: Settings = Depends(get_settings),
) -> InventoryService:
    return InventoryService(
        inventory_repo, rental_repo, station_repo, settings.low_stock_threshold
    )


def get_reservation_service(
    reservation_repo: ReservationRepository = Depends(get_reservation_repository),
    inventory_repo: InventoryRepository = Depends(get_inventory_repository),
    settings: Settings = Depends(get_settings),
) -> ReservationService:
    return ReservationService(reservation_repo, inventory_repo, settings.reservation_ttl_sec)


def get_booking_service(
    booking_repo: BookingRepository = Depends(get_booking_repository),
    station_repo: StationRepository = Depends(get_station_repository),
    notifications: NotificationService = Depends(get_notification_service),
) -> BookingService:
    return BookingService(booking_repo, station_repo, notifications)


def get_confirmation_saga(
    booking_repo: BookingRepository = Depends(get_booking_repository),
    rental_repo: RentalRepository = Depends(get_rental_repository),
    transaction_repo: TransactionRepository = Depends(get_transaction_repository),
    station_repo: StationRepository = Depends(get_station_repository),
    inventory_service: InventoryService = Depends(get_inventory_service),
    notifications: NotificationService = Depends(get_notification_service),
    settings: Settings = Depends(get_settings),
) -> ConfirmPaymentSaga:
    return ConfirmPaymentSaga(
        booking_repo,
        rental_repo,
        transaction_repo,
        station_repo,
        inventory_service,
        notifications,
        duplicate_window_sec=settings.duplicate_rental_window_sec,
        default_rental_days=settings.default_rental_days,
    )


def get_pricing_service(
    external_client: ExternalClient = Depends(get_external_client),
    station_repo: StationRepository = Depends(get_station_repository),
) -> PricingService:
    return PricingService(external_client, station_repo)


def get_rental_service(
    rental_repo: RentalRepository = Depends(get_rental_repository),
    station_repo: StationRepository = Depends(get_station_repository),
    transaction_repo: TransactionRepository = Depends(get_transaction_repository),
    pricing_service: PricingService = Depends(get_pricing_service),
    external_client: ExternalClient = Depends(get_external_client),
    notifications: NotificationService = Depends(get_notification_service),
    settings: Settings = Depends(get_settings),
) -> RentalService:
    return RentalService(
        rental_repo,
        station_repo,
        transaction_repo,
        pricing_service,
        external_client,
        notifications,
        cancellation_notice_hours=settings.cancellation_notice_hours,
    )


def get_catalog_service(
    station_repo: StationRepository = Depends(get_station_repository),
    inventory_repo: InventoryRepository = Depends(get_inventory_repository),
    transaction_repo: TransactionRepository = Depends(get_transaction_repository),
    loyalty_repo: LoyaltyRepository = Depends(get_loyalty_repository),
) -> CatalogService:
    return CatalogService(station_repo, inventory_repo, transaction_repo, loyalty_repo)
