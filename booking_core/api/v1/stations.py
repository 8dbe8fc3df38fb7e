from typing import List

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger
from sqlalchemy.orm import Session

from booking_core.api.dependencies import (
    get_catalog_service,
    get_inventory_service,
    get_session,
)
from booking_core.core.exceptions import BookingCoreException, to_http_exception
from booking_core.schemas import (
    InventoryData,
    InventoryUpdateRequest,
    PowerBankTypeCreateRequest,
    PowerBankTypeData,
    StationCreateRequest,
    StationData,
    StationUpdateRequest,
    StationWithInventory,
)
from booking_core.services.catalog import CatalogService
from booking_core.services.inventory import InventoryService

router = APIRouter()


@router.get("/stations", response_model=List[StationWithInventory])
def list_stations(inventory_service: InventoryService = Depends(get_inventory_service)):
    return inventory_service.list_station_availability()


@router.post("/stations", response_model=StationData, status_code=201)
def create_station(
    request: StationCreateRequest,
    catalog_service: CatalogService = Depends(get_catalog_service),
    session: Session = Depends(get_session),
):
    try:
        station = catalog_service.create_station(
            request.name,
            request.address,
            latitude=request.latitude,
            longitude=request.longitude,
            price_per_hour=request.price_per_hour,
            units_by_capacity={
                10000: request.inventory_10000mah,
                20000: request.inventory_20000mah,
            },
        )
        session.commit()
        return StationData.model_validate(station)
    except Exception as e:
        session.rollback()
        logger.exception(f"Error creating station: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.patch("/stations/{station_id}", response_model=StationData)
def update_station(
    station_id: str,
    request: StationUpdateRequest,
    catalog_service: CatalogService = Depends(get_catalog_service),
    session: Session = Depends(get_session),
):
    try:
        station = catalog_service.update_station_power_banks(
            station_id, request.total_power_banks
        )
        session.commit()
        return StationData.model_validate(station)
    except BookingCoreException as e:
        session.rollback()
        raise to_http_exception(e)


@router.delete("/stations/{station_id}")
def delete_station(
    station_id: str,
    catalog_service: CatalogService = Depends(get_catalog_service),
    session: Session = Depends(get_session),
):
    try:
        catalog_service.delete_station(station_id)
        session.commit()
        return {"deleted": station_id}
    except BookingCoreException as e:
        session.rollback()
        raise to_http_exception(e)


@router.put(
    "/stations/{station_id}/inventory/{power_bank_type_id}", response_model=InventoryData
)
def set_station_inventory(
    station_id: str,
    power_bank_type_id: str,
    request: InventoryUpdateRequest,
    inventory_service: InventoryService = Depends(get_inventory_service),
    session: Session = Depends(get_session),
):
    try:
        inventory = inventory_service.set_units(
            station_id, power_bank_type_id, request.total_units, request.available_units
        )
        session.commit()
        return InventoryData.model_validate(inventory)
    except BookingCoreException as e:
        session.rollback()
        raise to_http_exception(e)


@router.get("/power-bank-types", response_model=List[PowerBankTypeData])
def list_power_bank_types(catalog_service: CatalogService = Depends(get_catalog_service)):
    return [PowerBankTypeData.model_validate(t) for t in catalog_service.list_power_bank_types()]


@router.post("/power-bank-types", response_model=PowerBankTypeData, status_code=201)
def create_power_bank_type(
    request: PowerBankTypeCreateRequest,
    catalog_service: CatalogService = Depends(get_catalog_service),
    session: Session = Depends(get_session),
):
    try:
        power_bank_type = catalog_service.create_power_bank_type(
            request.category, request.daily_rate
        )
        session.commit()
        return PowerBankTypeData.model_validate(power_bank_type)
    except Exception as e:
        session.rollback()
        logger.exception(f"Error creating power bank type: {e}")
        raise HTTPException(status_code=500, detail=str(e))
