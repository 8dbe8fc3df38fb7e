from typing import List

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger
from sqlalchemy.orm import Session

from booking_core.api.dependencies import (
    get_catalog_service,
    get_inventory_service,
    get_notification_service,
    get_session,
)
from booking_core.schemas import (
    InventorySyncResponse,
    LoyaltyData,
    MonthlyEarnings,
    NotificationData,
    PromotionRequest,
    TransactionData,
)
from booking_core.services.catalog import CatalogService
from booking_core.services.inventory import InventoryService
from booking_core.services.notification import NotificationService, notify_promotional_update

router = APIRouter()


@router.post("/admin/inventory/sync", response_model=InventorySyncResponse)
def sync_inventory(
    inventory_service: InventoryService = Depends(get_inventory_service),
    session: Session = Depends(get_session),
):
    try:
        response = inventory_service.sync_inventory()
        session.commit()
        return response
    except Exception as e:
        session.rollback()
        logger.exception(f"Error syncing inventory: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/admin/transactions", response_model=List[TransactionData])
def list_transactions(
    limit: int = 100,
    catalog_service: CatalogService = Depends(get_catalog_service),
):
    return [TransactionData.model_validate(t) for t in catalog_service.list_transactions(limit)]


@router.get("/admin/earnings/monthly", response_model=List[MonthlyEarnings])
def monthly_earnings(catalog_service: CatalogService = Depends(get_catalog_service)):
    return catalog_service.monthly_earnings()


@router.post("/admin/promotions", response_model=NotificationData, status_code=201)
def create_promotion(
    request: PromotionRequest,
    notifications: NotificationService = Depends(get_notification_service),
):
    return notify_promotional_update(
        notifications, request.title, request.message, request.discount_percentage
    )


@router.get("/loyalty/{user_id}", response_model=LoyaltyData)
def get_loyalty(
    user_id: str,
    catalog_service: CatalogService = Depends(get_catalog_service),
    session: Session = Depends(get_session),
):
    loyalty = catalog_service.get_loyalty(user_id)
    session.commit()
    return LoyaltyData.model_validate(loyalty)
