# distribuidora/modules/orders/schemas.py
from pydantic import BaseModel, Field, field_validator
from typing import List, Optional, Dict, Any
from decimal import Decimal
from datetime import datetime
from enum import Enum

from distribuidora.shared.schemas.common import BaseResponse, OrderItemInfo, PaymentMethod

class OrderStatus(str, Enum):
    PENDING = "pending"
    PREPARING = "preparing"
    ASSIGNED = "assigned"
    DELIVERED = "delivered"

class PaymentStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"

class OrderItemRequest(BaseModel):
    product_id: int = Field(..., description="ID del producto")
    quantity: int = Field(..., gt=0, description="Cantidad")
    unit_price: Decimal = Field(..., ge=0, description="Precio unitario")

    @property
    def subtotal(self) -> Decimal:
        return self.quantity * self.unit_price

def _unique_products(items: List[OrderItemRequest]) -> List[OrderItemRequest]:
    seen = set()
    duplicated = []
    for item in items:
        if item.product_id in seen:
            duplicated.append(str(item.product_id))
        seen.add(item.product_id)
    if duplicated:
        raise ValueError(f"Productos repetidos en el pedido: {', '.join(duplicated)}")
    return items

class OrderCreateRequest(BaseModel):
    customer_id: int = Field(..., description="ID del cliente")
    items: List[OrderItemRequest] = Field(..., min_length=1, description="Items del pedido")
    expected_total: Optional[Decimal] = Field(None, ge=0, description="Total calculado por el cliente")
    notes: Optional[str] = Field(None, max_length=500, description="Notas para preparación")
    payment_method: PaymentMethod = Field(PaymentMethod.CASH, description="Forma de pago")
    payment_status: Optional[PaymentStatus] = Field(None, description="Estado de pago informado")
    amount_paid: Optional[Decimal] = Field(None, ge=0, description="Monto ya cobrado")

    @field_validator('items')
    @classmethod
    def validate_unique_products(cls, v):
        return _unique_products(v)

class OrderItemsUpdateRequest(BaseModel):
    items: List[OrderItemRequest] = Field(..., min_length=1, description="Nuevo set completo de items")

    @field_validator('items')
    @classmethod
    def validate_unique_products(cls, v):
        return _unique_products(v)

class OrderPaymentUpdateRequest(BaseModel):
    amount_paid: Decimal = Field(..., ge=0, description="Monto total cobrado del pedido")
    payment_method: Optional[PaymentMethod] = None

class OrderStatusUpdateRequest(BaseModel):
    status: OrderStatus

class CourierAssignmentRequest(BaseModel):
    courier_id: int = Field(..., description="ID del transportista")
    advance_status: bool = Field(False, description="Pasar también el pedido a 'assigned'")

class OrderDetail(BaseModel):
    id: int
    customer_id: int
    status: str
    payment_status: str
    payment_method: str
    total: Decimal
    amount_paid: Decimal
    stock_deducted: bool
    courier_id: Optional[int] = None
    creator_id: Optional[int] = None
    delivery_sequence: Optional[int] = None
    notes: Optional[str] = None
    delivered_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    items: List[OrderItemInfo] = []

class OrderResponse(BaseResponse):
    order: OrderDetail
    customer_balance: Optional[Decimal] = None

class OrderHistoryEntryInfo(BaseModel):
    id: int
    field: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    user_id: Optional[int] = None
    created_at: Optional[datetime] = None

class OrderHistoryResponse(BaseResponse):
    order_id: int
    history: List[OrderHistoryEntryInfo]

class OrderDeletedResponse(BaseResponse):
    order_id: int
    archive_id: int
    stock_restored: bool

class DeletedOrdersResponse(BaseResponse):
    deleted_orders: List[Dict[str, Any]]
    count: int
