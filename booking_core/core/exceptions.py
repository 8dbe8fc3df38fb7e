from fastapi import HTTPException


class BookingCoreException(Exception):
    message = "Booking operation failed"

    def __init__(self, message: str = None):
        super().__init__(message or self.message)
        self.message = message or self.message


# --- Not found ---


class BookingNotFoundException(BookingCoreException):
    message = "Booking not found"


class RentalNotFoundException(BookingCoreException):
    message = "Rental not found"


class ReservationNotFoundException(BookingCoreException):
    message = "Reservation not found"


class StationNotFoundException(BookingCoreException):
    message = "Station not found"


class PowerBankTypeNotFoundException(BookingCoreException):
    message = "Power bank type not found"


# --- Conflicts ---


class DuplicateActiveReservationException(BookingCoreException):
    message = (
        "You already have an active reservation. Complete or cancel it first."
    )


class OutOfStockException(BookingCoreException):
    message = "This power bank type is currently out of stock at this station."


class AlreadyConfirmedException(BookingCoreException):
    message = (
        "This booking has already been confirmed or is being processed. "
        "Cannot process duplicate payment."
    )


class DuplicateRentalException(BookingCoreException):
    message = "A rental for this booking already exists. Cannot create duplicate rental."


class InvalidStateException(BookingCoreException):
    message = "Operation not allowed in the current state"


class InventoryUpdateFailedException(BookingCoreException):
    message = "Inventory update failed. Transaction has been cancelled."


class InventoryConflictException(InventoryUpdateFailedException):
    message = (
        "Inventory changed while the payment was being confirmed. "
        "Transaction has been cancelled."
    )


# --- Validation ---


class InvalidOrderIdException(BookingCoreException):
    message = "Invalid order ID format"


class InvalidInventoryException(BookingCoreException):
    message = "Available units must be between 0 and total units"


class InvalidExtensionException(BookingCoreException):
    message = "Extension must be a positive number of hours or days"


# --- External ---


class PricingFailedException(BookingCoreException):
    message = "Failed to calculate pricing"


class PaymentFailedException(BookingCoreException):
    message = "Payment failed"


NOT_FOUND = (
    BookingNotFoundException,
    RentalNotFoundException,
    ReservationNotFoundException,
    StationNotFoundException,
    PowerBankTypeNotFoundException,
)

CONFLICTS = (
    DuplicateActiveReservationException,
    OutOfStockException,
    AlreadyConfirmedException,
    DuplicateRentalException,
    InvalidStateException,
    InventoryUpdateFailedException,
)

VALIDATION = (
    InvalidOrderIdException,
    InvalidInventoryException,
    InvalidExtensionException,
)

UPSTREAM = (PricingFailedException, PaymentFailedException)


def not_found_exception(e: BookingCoreException):
    return HTTPException(status_code=404, detail=e.message)


def conflict_exception(e: BookingCoreException):
    return HTTPException(status_code=409, detail=e.message)


def validation_exception(e: BookingCoreException):
    return HTTPException(status_code=400, detail=e.message)


def upstream_exception(e: BookingCoreException):
    return HTTPException(status_code=502, detail=e.message)


def to_http_exception(e: BookingCoreException) -> HTTPException:
    if isinstance(e, NOT_FOUND):
        return not_found_exception(e)
    if isinstance(e, CONFLICTS):
        return conflict_exception(e)
    if isinstance(e, VALIDATION):
        return validation_exception(e)
    if isinstance(e, UPSTREAM):
        return upstream_exception(e)
    return HTTPException(status_code=500, detail=e.message)
