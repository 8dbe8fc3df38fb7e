from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


def find_env_file() -> str:
    env_file = ".env" if Path("/.dockerenv").exists() else ".env.local"

    current_path = Path.cwd()

    for path in [current_path] + list(current_path.parents):
        env_path = path / env_file
        if env_path.exists():
            return str(env_path)

    return env_file


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=find_env_file(),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_url: str = "postgresql+psycopg2://app:app@db:5432/powerbank"
    create_schema: bool = False  # create tables on startup (dev only)

    # External services: pricing RPC + payment gateway
    external_base: str = "http://external-stubs:3629"
    http_timeout_sec: float = 1.5
    pricing_preview_ttl_sec: int = 30

    # Circuit Breaker settings
    cb_pricing_fail_max: int = 5
    cb_pricing_reset_timeout: int = 30  # seconds
    cb_payment_fail_max: int = 3
    cb_payment_reset_timeout: int = 60  # seconds

    # Reservations
    reservation_ttl_sec: int = 300  # 5 minutes

    # Booking confirmation
    duplicate_rental_window_sec: int = 600  # 10 minutes
    default_rental_days: int = 1
    cancellation_notice_hours: int = 1  # advance bookings

    # Inventory
    low_stock_threshold: int = 3

    # Notifications
    notification_limit: int = 50

    # Logging
    log_level: str = "INFO"
