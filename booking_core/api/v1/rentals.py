from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger
from sqlalchemy.orm import Session

from booking_core.api.dependencies import get_pricing_service, get_rental_service, get_session
from booking_core.core.exceptions import BookingCoreException, to_http_exception
from booking_core.schemas import (
    CreateRentalRequest,
    ExtendRentalRequest,
    PaymentResponse,
    PayRentalRequest,
    PricingBreakdown,
    PricingRequest,
    RentalData,
    TransactionData,
)
from booking_core.services.pricing import PricingService
from booking_core.services.rental import RentalService

router = APIRouter()


def _run_and_commit(session: Session, action, description: str) -> RentalData:
    try:
        rental = action()
        session.commit()
        return RentalData.model_validate(rental)
    except BookingCoreException as e:
        session.rollback()
        raise to_http_exception(e)
    except Exception as e:
        session.rollback()
        logger.exception(f"Error during {description}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/pricing/quote", response_model=PricingBreakdown)
def quote_pricing(
    request: PricingRequest,
    pricing_service: PricingService = Depends(get_pricing_service),
):
    try:
        return pricing_service.preview(
            request.power_bank_type_id,
            request.rental_duration_hours,
            request.rental_type,
            request.scheduled_start_time,
            request.user_id,
        )
    except BookingCoreException as e:
        raise to_http_exception(e)


@router.post("/rentals", response_model=RentalData, status_code=201)
def create_rental(
    request: CreateRentalRequest,
    rental_service: RentalService = Depends(get_rental_service),
    session: Session = Depends(get_session),
):
    return _run_and_commit(
        session,
        lambda: rental_service.create_rental(
            request.user_id,
            request.station_id,
            request.power_bank_type_id,
            request.rental_duration_hours,
            request.rental_type,
            request.scheduled_start_time,
        ),
        "rental creation",
    )


@router.get("/rentals", response_model=List[RentalData])
def list_rentals(
    user_id: Optional[str] = None,
    status: Optional[str] = None,
    rental_service: RentalService = Depends(get_rental_service),
):
    return [RentalData.model_validate(r) for r in rental_service.list_rentals(user_id, status)]


@router.post("/rentals/{rental_id}/confirm-return", response_model=RentalData)
def confirm_return(
    rental_id: str,
    rental_service: RentalService = Depends(get_rental_service),
    session: Session = Depends(get_session),
):
    return _run_and_commit(
        session, lambda: rental_service.confirm_return(rental_id), "return confirmation"
    )


@router.post("/rentals/{rental_id}/force-return", response_model=RentalData)
def force_return(
    rental_id: str,
    rental_service: RentalService = Depends(get_rental_service),
    session: Session = Depends(get_session),
):
    return _run_and_commit(
        session, lambda: rental_service.force_return(rental_id), "force return"
    )


@router.post("/rentals/{rental_id}/extend", response_model=RentalData)
def extend_rental(
    rental_id: str,
    request: ExtendRentalRequest,
    rental_service: RentalService = Depends(get_rental_service),
    session: Session = Depends(get_session),
):
    return _run_and_commit(
        session,
        lambda: rental_service.extend_rental(rental_id, request.amount, request.unit),
        "rental extension",
    )


@router.post("/rentals/{rental_id}/cancel", response_model=RentalData)
def cancel_rental(
    rental_id: str,
    rental_service: RentalService = Depends(get_rental_service),
    session: Session = Depends(get_session),
):
    return _run_and_commit(
        session, lambda: rental_service.cancel_rental(rental_id), "rental cancellation"
    )


@router.post("/rentals/{rental_id}/complete", response_model=RentalData)
def complete_rental(
    rental_id: str,
    rental_service: RentalService = Depends(get_rental_service),
    session: Session = Depends(get_session),
):
    return _run_and_commit(
        session, lambda: rental_service.complete_rental(rental_id), "rental completion"
    )


@router.post("/rentals/{rental_id}/pay", response_model=PaymentResponse)
def pay_rental(
    rental_id: str,
    request: PayRentalRequest,
    rental_service: RentalService = Depends(get_rental_service),
    session: Session = Depends(get_session),
):
    try:
        transaction = rental_service.pay_rental(rental_id, request.amount, request.phone)
        session.commit()
        return PaymentResponse(
            success=True,
            payment_reference=transaction.payment_reference,
            transaction=TransactionData.model_validate(transaction),
        )
    except BookingCoreException as e:
        session.rollback()
        raise to_http_exception(e)
    except Exception as e:
        session.rollback()
        logger.exception(f"Error processing payment for rental {rental_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))
