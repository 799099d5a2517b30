# distribuidora/modules/inventory/router.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from distribuidora.config.database import get_db
from distribuidora.core.auth.dependencies import get_admin_actor, get_staff_actor
from .service import InventoryService
from .schemas import (
    BulkPriceUpdateRequest, BulkPriceUpdateResponse, LowStockResponse,
    PurchaseCreateRequest, PurchaseResponse, ShrinkageCreateRequest, ShrinkageResponse
)

router = APIRouter()

@router.post("/shrinkages", response_model=ShrinkageResponse, status_code=201)
async def register_shrinkage(
    request: ShrinkageCreateRequest,
    actor = Depends(get_admin_actor),
    db: Session = Depends(get_db)
):
    """Registrar merma (rotura, vencimiento, robo, etc.)"""
    service = InventoryService(db)
    return await service.register_shrinkage(request, actor)

@router.post("/purchases", response_model=PurchaseResponse, status_code=201)
async def register_purchase(
    request: PurchaseCreateRequest,
    actor = Depends(get_admin_actor),
    db: Session = Depends(get_db)
):
    """
    Registrar compra a proveedor

    - Ingresa stock de todos los items en una transacción
    - Guarda stock anterior y nuevo por item
    """
    service = InventoryService(db)
    return await service.register_purchase(request, actor)

@router.put("/prices", response_model=BulkPriceUpdateResponse)
async def bulk_update_prices(
    request: BulkPriceUpdateRequest,
    actor = Depends(get_admin_actor),
    db: Session = Depends(get_db)
):
    """Actualización masiva de precios; informa productos inexistentes"""
    service = InventoryService(db)
    return await service.bulk_update_prices(request, actor)

@router.get("/low-stock", response_model=LowStockResponse)
async def get_low_stock(
    actor = Depends(get_staff_actor),
    db: Session = Depends(get_db)
):
    service = InventoryService(db)
    return await service.get_low_stock()
