from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger
from sqlalchemy.orm import Session

from booking_core.api.dependencies import (
    get_booking_service,
    get_confirmation_saga,
    get_session,
)
from booking_core.core.exceptions import BookingCoreException, to_http_exception
from booking_core.schemas import (
    BookingData,
    BookingRequest,
    ConfirmPaymentRequest,
    ConfirmPaymentResponse,
    InventoryData,
    RentalData,
    TransactionData,
)
from booking_core.services.booking import BookingService
from booking_core.services.confirmation import ConfirmPaymentSaga

router = APIRouter()


@router.post("/bookings", response_model=BookingData, status_code=201)
def create_booking(
    request: BookingRequest,
    booking_service: BookingService = Depends(get_booking_service),
    session: Session = Depends(get_session),
):
    try:
        booking = booking_service.create_booking(
            request.user_id,
            request.station_id,
            request.power_bank_type_id,
            request.payment_method,
        )
        session.commit()
        return BookingData.model_validate(booking)
    except BookingCoreException as e:
        session.rollback()
        raise to_http_exception(e)
    except Exception as e:
        session.rollback()
        logger.exception(f"Error creating booking: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/bookings/search", response_model=BookingData)
def search_booking(
    order_id: str = Query(..., description="Order ID quoted by the customer"),
    booking_service: BookingService = Depends(get_booking_service),
):
    try:
        return BookingData.model_validate(booking_service.find_by_order_id(order_id))
    except BookingCoreException as e:
        raise to_http_exception(e)


@router.post("/bookings/{booking_id}/confirm-payment", response_model=ConfirmPaymentResponse)
def confirm_payment(
    booking_id: str,
    request: Optional[ConfirmPaymentRequest] = None,
    saga: ConfirmPaymentSaga = Depends(get_confirmation_saga),
    session: Session = Depends(get_session),
):
    return_time = request.return_time if request else None
    try:
        result = saga.confirm_payment(booking_id, return_time)
        session.commit()
        saga.notify(result)
        return ConfirmPaymentResponse(
            booking=BookingData.model_validate(result.booking),
            rental=RentalData.model_validate(result.rental),
            transaction=TransactionData.model_validate(result.transaction),
            inventory=InventoryData.model_validate(result.inventory),
        )
    except BookingCoreException as e:
        session.rollback()
        raise to_http_exception(e)
    except Exception as e:
        session.rollback()
        logger.exception(f"Error confirming payment for booking {booking_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))
