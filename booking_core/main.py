from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from booking_core.api.dependencies import get_settings
from booking_core.api.v1 import admin, bookings, health, notifications, rentals, reservations, stations
from booking_core.clients.external import ExternalClient
from booking_core.config.logging import setup_logging
from booking_core.monitoring.metrics import init_app_info, setup_instrumentator
from booking_core.services.notification import notification_service
from rental_store.database import init_db


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting booking-core service")

    settings = get_settings()
    if settings.create_schema:
        init_db(settings.database_url)
        logger.info("Database schema created")

    notification_service.limit = settings.notification_limit
    app.state.external_client = ExternalClient(settings)

    yield
    logger.info("Shutting down booking-core service")


def create_app() -> FastAPI:
    setup_logging(get_settings().log_level)

    app = FastAPI(
        title="Booking Core Service",
        description="Reservations, bookings and rentals for the power bank rental network",
        version="1.0.0",
        lifespan=lifespan,
    )

    instrumentator = setup_instrumentator()
    instrumentator.instrument(app).expose(app)

    init_app_info("1.0.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router, prefix="/api/v1", tags=["health"])
    app.include_router(stations.router, prefix="/api/v1", tags=["stations"])
    app.include_router(reservations.router, prefix="/api/v1", tags=["reservations"])
    app.include_router(bookings.router, prefix="/api/v1", tags=["bookings"])
    app.include_router(rentals.router, prefix="/api/v1", tags=["rentals"])
    app.include_router(admin.router, prefix="/api/v1", tags=["admin"])
    app.include_router(notifications.router, prefix="/api/v1", tags=["notifications"])

    return app


def main():
    import uvicorn

    uvicorn.run(
        "booking_core.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_config=None,
    )


app = create_app()


if __name__ == "__main__":
    main()
