# distribuidora/shared/schemas/common.py
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime
from decimal import Decimal
from enum import Enum

class BaseResponse(BaseModel):
    success: bool
    message: str = ""
    timestamp: datetime = Field(default_factory=datetime.now)

class ErrorResponse(BaseResponse):
    success: bool = False
    error_code: Optional[str] = None
    errors: List[str] = []
    details: Optional[Dict[str, Any]] = None

class PaymentMethod(str, Enum):
    CASH = "cash"
    TRANSFER = "transfer"
    CHECK = "check"
    CARD = "card"
    CURRENT_ACCOUNT = "current_account"

class StockItem(BaseModel):
    """Par producto/cantidad para operaciones de stock"""
    product_id: int
    quantity: int

class OrderItemInfo(BaseModel):
    id: int
    product_id: int
    product_name: Optional[str] = None
    quantity: int
    unit_price: Decimal
    subtotal: Decimal

class ActorInfo(BaseModel):
    id: int
    name: Optional[str] = None
    role: Optional[str] = None
