# distribuidora/modules/delivery_exceptions/router.py
from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from distribuidora.config.database import get_db
from distribuidora.core.auth.dependencies import get_admin_actor, get_courier_actor, get_staff_actor
from .service import DeliveryExceptionService
from .schemas import (
    DeliveryExceptionListResponse, DeliveryExceptionResponse, ExceptionRegisterRequest,
    ExceptionResolveRequest, ExceptionStatisticsResponse, ExceptionVoidRequest
)

router = APIRouter()

@router.post("", response_model=DeliveryExceptionResponse, status_code=201)
async def register_exception(
    request: ExceptionRegisterRequest,
    actor = Depends(get_courier_actor),
    db: Session = Depends(get_db)
):
    """
    Registrar salvedad en un item de pedido

    **Efectos:**
    - Reduce o elimina el item y recalcula el total del pedido
    - Ajusta la cuenta corriente del cliente
    - Devuelve stock solo para customer_rejects, order_error, price_difference
    """
    service = DeliveryExceptionService(db)
    return await service.register_exception(request, actor)

@router.get("/statistics", response_model=ExceptionStatisticsResponse)
async def get_statistics(
    date_from: Optional[date] = Query(None, description="Desde (inclusive)"),
    date_to: Optional[date] = Query(None, description="Hasta (inclusive)"),
    actor = Depends(get_admin_actor),
    db: Session = Depends(get_db)
):
    """Conteos por estado y motivo, impacto y rankings por producto y transportista"""
    service = DeliveryExceptionService(db)
    return await service.get_statistics(date_from, date_to)

@router.get("/order/{order_id}", response_model=DeliveryExceptionListResponse)
async def list_by_order(
    order_id: int = Path(..., description="ID del pedido"),
    actor = Depends(get_staff_actor),
    db: Session = Depends(get_db)
):
    service = DeliveryExceptionService(db)
    return await service.list_by_order(order_id)

@router.get("/{exception_id}", response_model=DeliveryExceptionResponse)
async def get_exception(
    exception_id: int = Path(..., description="ID de la salvedad"),
    actor = Depends(get_staff_actor),
    db: Session = Depends(get_db)
):
    """Salvedad con su historial"""
    service = DeliveryExceptionService(db)
    return await service.get_exception(exception_id)

@router.post("/{exception_id}/resolve", response_model=DeliveryExceptionResponse)
async def resolve_exception(
    request: ExceptionResolveRequest,
    exception_id: int = Path(..., description="ID de la salvedad"),
    actor = Depends(get_admin_actor),
    db: Session = Depends(get_db)
):
    service = DeliveryExceptionService(db)
    return await service.resolve_exception(exception_id, request, actor)

@router.post("/{exception_id}/void", response_model=DeliveryExceptionResponse)
async def void_exception(
    request: ExceptionVoidRequest,
    exception_id: int = Path(..., description="ID de la salvedad"),
    actor = Depends(get_admin_actor),
    db: Session = Depends(get_db)
):
    """Anular salvedad revirtiendo item, total, saldo y stock"""
    service = DeliveryExceptionService(db)
    return await service.void_exception(exception_id, request, actor)
