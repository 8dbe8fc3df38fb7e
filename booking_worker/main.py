import time
from contextlib import contextmanager

from loguru import logger

from booking_core.config.logging import setup_logging
from booking_core.services.inventory import InventoryService
from booking_core.services.reservation import ReservationService
from booking_worker.config.settings import Settings
from booking_worker.monitoring.metrics import (
    MetricsCollector,
    init_app_info,
    start_metrics_server,
)
from rental_store.database import get_sessionmaker
from rental_store.repositories import (
    InventoryRepository,
    RentalRepository,
    ReservationRepository,
    StationRepository,
)


@contextmanager
def get_services(settings: Settings):
    sessionmaker = get_sessionmaker(settings.database_url)
    session = sessionmaker()
    try:
        inventory_repo = InventoryRepository(session)
        reservation_service = ReservationService(ReservationRepository(session), inventory_repo)
        inventory_service = InventoryService(
            inventory_repo, RentalRepository(session), StationRepository(session)
        )
        yield reservation_service, inventory_service, session
    finally:
        session.close()


def sweep_reservations(settings: Settings) -> int:
    start_time = time.time()

    with get_services(settings) as (reservation_service, _, session):
        try:
            expired = reservation_service.expire_reservations()
            session.commit()
        except Exception as e:
            session.rollback()
            MetricsCollector.record_worker_error("reservation_sweep_failed")
            logger.error(f"Reservation sweep failed: {e}")
            raise

    duration = time.time() - start_time
    MetricsCollector.record_sweep(duration, expired)
    logger.info(f"Reservation sweep: expired={expired}, duration={duration:.2f}s")
    return expired


def sync_inventory(settings: Settings):
    start_time = time.time()

    with get_services(settings) as (_, inventory_service, session):
        try:
            response = inventory_service.sync_inventory()
            session.commit()
        except Exception as e:
            session.rollback()
            MetricsCollector.record_worker_error("inventory_sync_failed")
            logger.error(f"Inventory sync failed: {e}")
            raise

    failed = sum(1 for r in response.results if not r.success)
    duration = time.time() - start_time
    MetricsCollector.record_inventory_sync(duration, response.synced, failed)
    logger.info(
        f"Inventory sync: corrected={response.synced}, failed={failed}, "
        f"duration={duration:.2f}s"
    )
    return response


def tick_once(settings: Settings, run_inventory_sync: bool = False) -> dict:
    result = {"expired": sweep_reservations(settings), "synced": None}
    if run_inventory_sync and settings.inventory_sync_enabled:
        result["synced"] = sync_inventory(settings).synced
    return result


def main():
    settings = Settings()
    setup_logging(settings.log_level)

    start_metrics_server(settings.metrics_port)
    init_app_info("1.0.0")

    logger.info(
        f"Starting booking worker: sweep_sec={settings.reservation_sweep_sec}, "
        f"inventory_sync_sec={settings.inventory_sync_sec}, "
        f"inventory_sync_enabled={settings.inventory_sync_enabled}"
    )
    logger.info(f"Metrics server started on port {settings.metrics_port}")

    last_sync = None
    while True:
        now = time.monotonic()
        sync_due = last_sync is None or now - last_sync >= settings.inventory_sync_sec
        try:
            tick_once(settings, run_inventory_sync=sync_due)
            if sync_due:
                last_sync = now
        except Exception as e:
            MetricsCollector.record_worker_error("tick_error")
            logger.error(f"Tick error: {e}")

        time.sleep(settings.reservation_sweep_sec)


if __name__ == "__main__":
    main()
