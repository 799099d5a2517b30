# distribuidora/modules/routes/schemas.py
from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from decimal import Decimal
from datetime import date, datetime

from distribuidora.shared.schemas.common import BaseResponse

class RouteStopRequest(BaseModel):
    order_id: int = Field(..., description="ID del pedido")
    delivery_sequence: int = Field(..., ge=1, description="Orden de entrega")

class RouteCreateRequest(BaseModel):
    courier_id: int = Field(..., description="ID del transportista")
    orders: List[RouteStopRequest] = Field(..., min_length=1)
    distance_km: Optional[Decimal] = Field(None, ge=0)
    duration_minutes: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator('orders')
    @classmethod
    def validate_unique_orders(cls, v):
        order_ids = [stop.order_id for stop in v]
        if len(order_ids) != len(set(order_ids)):
            raise ValueError("Un pedido no puede aparecer dos veces en el recorrido")
        return v

class RouteStopInfo(BaseModel):
    order_id: int
    delivery_sequence: int
    delivery_status: str
    delivered_at: Optional[datetime] = None
    order_total: Optional[Decimal] = None

class RouteInfo(BaseModel):
    id: int
    courier_id: int
    route_date: date
    status: str
    distance_km: Optional[Decimal] = None
    duration_minutes: Optional[int] = None
    total_orders: int
    delivered_orders: int
    total_invoiced: Decimal
    total_collected: Decimal
    completed_at: Optional[datetime] = None
    stops: List[RouteStopInfo] = []

class RouteResponse(BaseResponse):
    route: RouteInfo
