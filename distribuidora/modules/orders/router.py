# distribuidora/modules/orders/router.py
from typing import Optional
from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from distribuidora.config.database import get_db
from distribuidora.core.auth.dependencies import get_admin_actor, get_staff_actor
from .service import OrderService
from .schemas import (
    CourierAssignmentRequest, DeletedOrdersResponse, OrderCreateRequest,
    OrderDeletedResponse, OrderHistoryResponse, OrderItemsUpdateRequest,
    OrderPaymentUpdateRequest, OrderResponse, OrderStatusUpdateRequest
)

router = APIRouter()

@router.post("", response_model=OrderResponse, status_code=201)
async def create_order(
    request: OrderCreateRequest,
    actor = Depends(get_staff_actor),
    db: Session = Depends(get_db)
):
    """
    Crear pedido completo

    **Incluye:**
    - Validación de stock de TODOS los items (errores itemizados)
    - Descuento atómico de stock
    - Actualización de cuenta corriente del cliente
    - Registro en historial
    """
    service = OrderService(db)
    return await service.create_order(request, actor)

@router.get("/deleted", response_model=DeletedOrdersResponse)
async def list_deleted_orders(
    limit: int = Query(100, ge=1, le=500),
    actor = Depends(get_admin_actor),
    db: Session = Depends(get_db)
):
    """Archivo de pedidos eliminados"""
    service = OrderService(db)
    return await service.list_deleted_orders(limit)

@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: int = Path(..., description="ID del pedido"),
    actor = Depends(get_staff_actor),
    db: Session = Depends(get_db)
):
    service = OrderService(db)
    return await service.get_order(order_id)

@router.put("/{order_id}/items", response_model=OrderResponse)
async def edit_order_items(
    request: OrderItemsUpdateRequest,
    order_id: int = Path(..., description="ID del pedido"),
    actor = Depends(get_staff_actor),
    db: Session = Depends(get_db)
):
    """
    Reemplazar items del pedido

    Solo se mueve el stock de las diferencias. No permitido en pedidos entregados.
    """
    service = OrderService(db)
    return await service.edit_order_items(order_id, request, actor)

@router.put("/{order_id}/payment", response_model=OrderResponse)
async def update_payment(
    request: OrderPaymentUpdateRequest,
    order_id: int = Path(..., description="ID del pedido"),
    actor = Depends(get_staff_actor),
    db: Session = Depends(get_db)
):
    service = OrderService(db)
    return await service.update_payment(order_id, request, actor)

@router.patch("/{order_id}/status", response_model=OrderResponse)
async def change_status(
    request: OrderStatusUpdateRequest,
    order_id: int = Path(..., description="ID del pedido"),
    actor = Depends(get_staff_actor),
    db: Session = Depends(get_db)
):
    service = OrderService(db)
    return await service.change_status(order_id, request, actor)

@router.patch("/{order_id}/courier", response_model=OrderResponse)
async def assign_courier(
    request: CourierAssignmentRequest,
    order_id: int = Path(..., description="ID del pedido"),
    actor = Depends(get_admin_actor),
    db: Session = Depends(get_db)
):
    service = OrderService(db)
    return await service.assign_courier(order_id, request, actor)

@router.delete("/{order_id}", response_model=OrderDeletedResponse)
async def delete_order(
    order_id: int = Path(..., description="ID del pedido"),
    restore_stock: bool = Query(True, description="Devolver stock de los items"),
    reason: Optional[str] = Query(None, max_length=500),
    actor = Depends(get_admin_actor),
    db: Session = Depends(get_db)
):
    """
    Eliminar pedido (solo administradores)

    Archiva un snapshot, devuelve stock si corresponde y revierte la cuenta corriente.
    """
    service = OrderService(db)
    return await service.delete_order(order_id, actor, restore_stock, reason)

@router.get("/{order_id}/history", response_model=OrderHistoryResponse)
async def get_history(
    order_id: int = Path(..., description="ID del pedido"),
    actor = Depends(get_staff_actor),
    db: Session = Depends(get_db)
):
    service = OrderService(db)
    return await service.get_history(order_id)
