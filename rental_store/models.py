from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class Profile(Base):
    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    full_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(String(16), default="customer")  # customer / admin


class Station(Base):
    __tablename__ = "stations"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    address: Mapped[str] = mapped_column(String(512))
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    total_power_banks: Mapped[int] = mapped_column(Integer, default=0)
    price_per_hour: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    inventory: Mapped[List["StationInventory"]] = relationship(
        back_populates="station", cascade="all, delete-orphan"
    )


class PowerBankType(Base):
    __tablename__ = "power_bank_types"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    category: Mapped[str] = mapped_column(String(32))  # standard / premium
    capacity_mah: Mapped[int] = mapped_column(Integer)
    price_per_hour: Mapped[int] = mapped_column(Integer)
    price_per_day: Mapped[int] = mapped_column(Integer)
    target_devices: Mapped[str] = mapped_column(String(255), default="")


class StationInventory(Base):
    __tablename__ = "station_inventory"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    station_id: Mapped[str] = mapped_column(ForeignKey("stations.id"), index=True)
    power_bank_type_id: Mapped[str] = mapped_column(ForeignKey("power_bank_types.id"))
    total_units: Mapped[int] = mapped_column(Integer, default=0)
    available_units: Mapped[int] = mapped_column(Integer, default=0)
    reserved_units: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    station: Mapped[Station] = relationship(back_populates="inventory")
    power_bank_type: Mapped[PowerBankType] = relationship()

    __table_args__ = (
        UniqueConstraint("station_id", "power_bank_type_id", name="uq_inventory_station_type"),
        CheckConstraint(
            "available_units >= 0 AND available_units <= total_units",
            name="ck_inventory_available_bounds",
        ),
    )


class Reservation(Base):
    __tablename__ = "reservations"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    station_id: Mapped[str] = mapped_column(String(64))
    power_bank_type_id: Mapped[str] = mapped_column(String(64))
    status: Mapped[str] = mapped_column(String(16), default="active")  # active / expired / completed
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


Index("ix_reservations_status_expires_at", Reservation.status, Reservation.expires_at)
Index(
    "uq_reservations_user_active",
    Reservation.user_id,
    unique=True,
    postgresql_where=Reservation.status == "active",
    sqlite_where=Reservation.status == "active",
)


class Booking(Base):
    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    order_id: Mapped[str] = mapped_column(String(64), unique=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    station_id: Mapped[str] = mapped_column(String(64))
    power_bank_type_id: Mapped[str] = mapped_column(String(64))
    total_amount: Mapped[int] = mapped_column(Integer, default=0)
    payment_method: Mapped[str] = mapped_column(String(32))  # bank_transfer / card
    status: Mapped[str] = mapped_column(String(16), default="pending")  # pending / confirmed
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class Rental(Base):
    __tablename__ = "rentals"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    station_id: Mapped[str] = mapped_column(String(64))
    power_bank_type_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    booking_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    # scheduled / active / completed / cancelled
    status: Mapped[str] = mapped_column(String(16))
    rental_duration_hours: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    rental_type: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    base_price: Mapped[int] = mapped_column(Integer, default=0)
    surcharges: Mapped[int] = mapped_column(Integer, default=0)
    peak_hour_surcharge: Mapped[int] = mapped_column(Integer, default=0)
    weekend_premium: Mapped[int] = mapped_column(Integer, default=0)
    loyalty_discount: Mapped[int] = mapped_column(Integer, default=0)
    security_deposit: Mapped[int] = mapped_column(Integer, default=0)
    total_amount: Mapped[int] = mapped_column(Integer, default=0)
    scheduled_start_time: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    cancellation_deadline: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


Index(
    "ix_rentals_station_type_status",
    Rental.station_id,
    Rental.power_bank_type_id,
    Rental.status,
)


class Transaction(Base):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    rental_id: Mapped[str] = mapped_column(String(64), index=True)
    amount: Mapped[int] = mapped_column(Integer)
    payment_method: Mapped[str] = mapped_column(String(32))
    payment_reference: Mapped[str] = mapped_column(String(128))
    status: Mapped[str] = mapped_column(String(16))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class UserLoyalty(Base):
    __tablename__ = "user_loyalty"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), unique=True)
    total_bookings: Mapped[int] = mapped_column(Integer, default=0)
    loyalty_tier: Mapped[str] = mapped_column(String(16), default="bronze")
    discount_percentage: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
