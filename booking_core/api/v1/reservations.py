from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger
from sqlalchemy.orm import Session

from booking_core.api.dependencies import get_reservation_service, get_session
from booking_core.core.exceptions import BookingCoreException, to_http_exception
from booking_core.schemas import (
    ExpireReservationsResponse,
    ReservationData,
    ReservationRequest,
)
from booking_core.services.reservation import ReservationService

router = APIRouter()


@router.post("/reservations", response_model=ReservationData, status_code=201)
def create_reservation(
    request: ReservationRequest,
    reservation_service: ReservationService = Depends(get_reservation_service),
    session: Session = Depends(get_session),
):
    try:
        reservation = reservation_service.create_reservation(
            request.user_id, request.station_id, request.power_bank_type_id
        )
        session.commit()
        return ReservationData.model_validate(reservation)
    except BookingCoreException as e:
        session.rollback()
        raise to_http_exception(e)
    except Exception as e:
        session.rollback()
        logger.exception(f"Error creating reservation: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/reservations", response_model=List[ReservationData])
def list_active_reservations(
    user_id: Optional[str] = None,
    reservation_service: ReservationService = Depends(get_reservation_service),
):
    return [
        ReservationData.model_validate(r) for r in reservation_service.list_active(user_id)
    ]


@router.post("/reservations/expire", response_model=ExpireReservationsResponse)
def expire_reservations(
    reservation_service: ReservationService = Depends(get_reservation_service),
    session: Session = Depends(get_session),
):
    try:
        expired = reservation_service.expire_reservations()
        session.commit()
        return ExpireReservationsResponse(expired=expired)
    except Exception as e:
        session.rollback()
        logger.exception(f"Error expiring reservations: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/reservations/{reservation_id}/complete", response_model=ReservationData)
def complete_reservation(
    reservation_id: str,
    reservation_service: ReservationService = Depends(get_reservation_service),
    session: Session = Depends(get_session),
):
    try:
        reservation = reservation_service.complete_reservation(reservation_id)
        session.commit()
        return ReservationData.model_validate(reservation)
    except BookingCoreException as e:
        session.rollback()
        raise to_http_exception(e)


@router.post("/reservations/{reservation_id}/cancel", response_model=ReservationData)
def cancel_reservation(
    reservation_id: str,
    reservation_service: ReservationService = Depends(get_reservation_service),
    session: Session = Depends(get_session),
):
    try:
        reservation = reservation_service.cancel_reservation(reservation_id)
        session.commit()
        return ReservationData.model_validate(reservation)
    except BookingCoreException as e:
        session.rollback()
        raise to_http_exception(e)
