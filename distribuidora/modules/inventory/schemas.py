# distribuidora/modules/inventory/schemas.py
from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from decimal import Decimal
from datetime import date, datetime
from enum import Enum

from distribuidora.shared.schemas.common import BaseResponse, PaymentMethod

class ShrinkageReason(str, Enum):
    BREAKAGE = "breakage"
    EXPIRY = "expiry"
    THEFT = "theft"
    SEIZURE = "seizure"
    RETURN = "return"
    INVENTORY_ERROR = "inventory_error"
    SAMPLE = "sample"
    OTHER = "other"

class ShrinkageCreateRequest(BaseModel):
    product_id: int = Field(..., description="ID del producto")
    quantity: int = Field(..., gt=0, description="Unidades dadas de baja")
    reason: ShrinkageReason
    notes: Optional[str] = Field(None, max_length=500)

class ShrinkageResponse(BaseResponse):
    shrinkage_id: int
    product_id: int
    product_name: str
    quantity: int
    reason: str
    stock_before: int
    stock_after: int

class PurchaseItemRequest(BaseModel):
    product_id: int
    quantity: int = Field(..., gt=0)
    unit_cost: Decimal = Field(Decimal('0'), ge=0)

class PurchaseCreateRequest(BaseModel):
    supplier_name: Optional[str] = Field(None, max_length=200)
    invoice_number: Optional[str] = Field(None, max_length=100)
    purchase_date: Optional[date] = None
    items: List[PurchaseItemRequest] = Field(..., min_length=1)
    vat: Decimal = Field(Decimal('0'), ge=0, description="IVA")
    other_taxes: Decimal = Field(Decimal('0'), ge=0)
    payment_method: PaymentMethod = PaymentMethod.CASH
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator('items')
    @classmethod
    def validate_unique_products(cls, v):
        product_ids = [item.product_id for item in v]
        if len(product_ids) != len(set(product_ids)):
            raise ValueError("Productos repetidos en la compra")
        return v

class PurchaseItemInfo(BaseModel):
    product_id: int
    quantity: int
    unit_cost: Decimal
    subtotal: Decimal
    stock_before: int
    stock_after: int

class PurchaseResponse(BaseResponse):
    purchase_id: int
    purchase_date: date
    subtotal: Decimal
    vat: Decimal
    other_taxes: Decimal
    total: Decimal
    items: List[PurchaseItemInfo]

class PriceUpdateItem(BaseModel):
    product_id: int
    net_price: Optional[Decimal] = Field(None, ge=0)
    internal_taxes: Optional[Decimal] = Field(None, ge=0)
    price: Optional[Decimal] = Field(None, ge=0, description="Precio final")

class BulkPriceUpdateRequest(BaseModel):
    items: List[PriceUpdateItem] = Field(..., min_length=1)

class BulkPriceUpdateResponse(BaseResponse):
    updated: int
    errors: List[str] = []

class LowStockProduct(BaseModel):
    product_id: int
    code: Optional[str] = None
    name: str
    stock: int
    min_stock: int

class LowStockResponse(BaseResponse):
    products: List[LowStockProduct]
    count: int
    generated_at: datetime = Field(default_factory=datetime.now)
