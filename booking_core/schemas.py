from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

RentalType = Literal["hourly", "daily"]
DurationUnit = Literal["hours", "days"]
PaymentMethod = Literal["bank_transfer", "card"]


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# --- Requests ---


class ReservationRequest(BaseModel):
    user_id: str
    station_id: str
    power_bank_type_id: str


class BookingRequest(BaseModel):
    user_id: str
    station_id: str
    power_bank_type_id: str
    payment_method: PaymentMethod = "bank_transfer"


class ConfirmPaymentRequest(BaseModel):
    return_time: Optional[datetime] = Field(
        None, description="Planned return time, defaults to one day from now"
    )


class ExtendRentalRequest(BaseModel):
    amount: int = Field(..., gt=0)
    unit: DurationUnit = "hours"


class PricingRequest(BaseModel):
    power_bank_type_id: str
    rental_duration_hours: int = Field(1, gt=0)
    rental_type: RentalType = "hourly"
    scheduled_start_time: Optional[datetime] = None
    user_id: Optional[str] = None


class CreateRentalRequest(BaseModel):
    user_id: str
    station_id: str
    power_bank_type_id: str
    rental_duration_hours: int = Field(1, gt=0)
    rental_type: RentalType = "hourly"
    scheduled_start_time: Optional[datetime] = None


class PayRentalRequest(BaseModel):
    amount: int = Field(..., gt=0, description="Amount in minor units")
    phone: str


class StationCreateRequest(BaseModel):
    name: str
    address: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    price_per_hour: int = 50
    inventory_10000mah: int = Field(0, ge=0)
    inventory_20000mah: int = Field(0, ge=0)


class StationUpdateRequest(BaseModel):
    total_power_banks: int = Field(..., ge=0)


class PowerBankTypeCreateRequest(BaseModel):
    category: str = Field(..., description="Free-form name, e.g. '20000mAh Premium'")
    daily_rate: int = Field(..., gt=0)


class InventoryUpdateRequest(BaseModel):
    total_units: int = Field(..., ge=0)
    available_units: Optional[int] = Field(None, ge=0)


class PromotionRequest(BaseModel):
    title: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    discount_percentage: Optional[int] = Field(None, ge=1, le=100)


# --- Domain data ---


class PowerBankTypeData(ORMModel):
    id: str
    name: str
    category: str
    capacity_mah: int
    price_per_hour: int
    price_per_day: int
    target_devices: str


class StationData(ORMModel):
    id: str
    name: str
    address: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    total_power_banks: int
    price_per_hour: int
    created_at: Optional[datetime] = None


class InventoryData(ORMModel):
    id: str
    station_id: str
    power_bank_type_id: str
    total_units: int
    available_units: int
    reserved_units: int
    updated_at: Optional[datetime] = None


class InventoryWithType(InventoryData):
    power_bank_type: Optional[PowerBankTypeData] = None


class StationWithInventory(BaseModel):
    id: str
    name: str
    address: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    total_power_banks: int
    price_per_hour: int
    inventory: List[InventoryWithType] = []
    total_available: int = 0
    low_stock_alert: bool = False


class ReservationData(ORMModel):
    id: str
    user_id: str
    station_id: str
    power_bank_type_id: str
    status: str
    expires_at: datetime
    created_at: datetime


class BookingData(ORMModel):
    id: str
    order_id: str
    user_id: str
    station_id: str
    power_bank_type_id: str
    total_amount: int
    payment_method: str
    status: str
    created_at: datetime


class RentalData(ORMModel):
    id: str
    user_id: str
    station_id: str
    power_bank_type_id: Optional[str] = None
    booking_id: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    status: str
    rental_duration_hours: Optional[int] = None
    rental_type: Optional[str] = None
    base_price: int = 0
    surcharges: int = 0
    peak_hour_surcharge: int = 0
    weekend_premium: int = 0
    loyalty_discount: int = 0
    security_deposit: int = 0
    total_amount: int = 0
    scheduled_start_time: Optional[datetime] = None
    cancellation_deadline: Optional[datetime] = None
    created_at: datetime


class TransactionData(ORMModel):
    id: str
    rental_id: str
    amount: int
    payment_method: str
    payment_reference: str
    status: str
    created_at: datetime


class LoyaltyData(ORMModel):
    user_id: str
    total_bookings: int
    loyalty_tier: str
    discount_percentage: int


class PricingBreakdown(BaseModel):
    base_price: int = 0
    surcharges: int = 0
    peak_surcharge: int = 0
    weekend_premium: int = 0
    discounts: int = 0
    loyalty_discount: int = 0
    loyalty_discount_percentage: float = 0
    security_deposit: int = 0
    total_amount: int = 0


class NotificationData(BaseModel):
    id: str
    type: str
    title: str
    message: str
    data: Dict[str, Any] = {}
    read: bool = False
    created_at: datetime
    user_id: str


# --- Responses ---


class ConfirmPaymentResponse(BaseModel):
    booking: BookingData
    rental: RentalData
    transaction: TransactionData
    inventory: InventoryData


class InventorySyncResult(BaseModel):
    inventory_id: str
    station: Optional[str] = None
    power_bank: Optional[str] = None
    old: Optional[int] = None
    new: Optional[int] = None
    success: bool = True
    error: Optional[str] = None


class InventorySyncResponse(BaseModel):
    synced: int
    results: List[InventorySyncResult] = []


class ExpireReservationsResponse(BaseModel):
    expired: int


class PaymentResponse(BaseModel):
    success: bool
    payment_reference: str
    transaction: TransactionData
    message: str = "Payment processed successfully"


class MonthlyEarnings(BaseModel):
    month: str
    earnings: int
    transactions: int


class HealthResponse(BaseModel):
    ok: bool = True
