# distribuidora/modules/delivery_exceptions/schemas.py
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from decimal import Decimal
from datetime import date, datetime
from enum import Enum

from distribuidora.shared.schemas.common import BaseResponse

class ExceptionReason(str, Enum):
    STOCK_SHORTAGE = "stock_shortage"
    PRODUCT_DAMAGED = "product_damaged"
    CUSTOMER_REJECTS = "customer_rejects"
    ORDER_ERROR = "order_error"
    PRODUCT_EXPIRED = "product_expired"
    PRICE_DIFFERENCE = "price_difference"
    OTHER = "other"

# El producto vuelve al depósito solo con estos motivos
STOCK_RETURN_REASONS = {
    ExceptionReason.CUSTOMER_REJECTS.value,
    ExceptionReason.ORDER_ERROR.value,
    ExceptionReason.PRICE_DIFFERENCE.value,
}

class ResolutionStatus(str, Enum):
    PENDING = "pending"
    RESCHEDULED = "rescheduled"
    CREDIT_NOTE = "credit_note"
    COURIER_DISCOUNT = "courier_discount"
    COMPANY_ABSORPTION = "company_absorption"
    OTHER_RESOLVED = "other_resolved"
    VOIDED = "voided"

class TerminalResolution(str, Enum):
    """Resoluciones aceptadas por resolve (voided va por void)"""
    RESCHEDULED = "rescheduled"
    CREDIT_NOTE = "credit_note"
    COURIER_DISCOUNT = "courier_discount"
    COMPANY_ABSORPTION = "company_absorption"
    OTHER_RESOLVED = "other_resolved"

class ExceptionRegisterRequest(BaseModel):
    order_id: int = Field(..., description="ID del pedido")
    order_item_id: int = Field(..., description="ID del item afectado")
    affected_quantity: int = Field(..., gt=0, description="Unidades no entregadas")
    reason: ExceptionReason
    description: Optional[str] = Field(None, max_length=1000)
    photo_url: Optional[str] = Field(None, description="URL de la foto de evidencia")
    return_stock: bool = Field(True, description="Devolver stock si el motivo lo permite")

class ExceptionResolveRequest(BaseModel):
    resolution_status: TerminalResolution
    notes: Optional[str] = Field(None, max_length=1000)
    rescheduled_order_id: Optional[int] = None

class ExceptionVoidRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=1000)

class ExceptionHistoryInfo(BaseModel):
    id: int
    action: str
    old_status: Optional[str] = None
    new_status: Optional[str] = None
    notes: Optional[str] = None
    user_id: Optional[int] = None
    created_at: Optional[datetime] = None

class DeliveryExceptionInfo(BaseModel):
    id: int
    order_id: int
    order_item_id: int
    product_id: int
    product_name: Optional[str] = None
    original_quantity: int
    affected_quantity: int
    delivered_quantity: int
    reason: str
    description: Optional[str] = None
    photo_url: Optional[str] = None
    unit_price: Decimal
    monetary_impact: Decimal
    resolution_status: str
    resolution_notes: Optional[str] = None
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[int] = None
    rescheduled_order_id: Optional[int] = None
    stock_returned: bool
    reported_by: int
    created_at: Optional[datetime] = None
    history: List[ExceptionHistoryInfo] = []

class DeliveryExceptionResponse(BaseResponse):
    delivery_exception: DeliveryExceptionInfo
    order_total: Optional[Decimal] = None

class DeliveryExceptionListResponse(BaseResponse):
    order_id: int
    delivery_exceptions: List[DeliveryExceptionInfo]
    count: int

class ExceptionStatisticsParams(BaseModel):
    date_from: Optional[date] = None
    date_to: Optional[date] = None

class ExceptionStatisticsResponse(BaseResponse):
    total: int
    pending: int
    resolved: int
    voided: int
    total_impact: Decimal
    pending_impact: Decimal
    by_reason: Dict[str, int]
    by_resolution: Dict[str, int]
    by_product: List[Dict[str, Any]]
    by_courier: List[Dict[str, Any]]
