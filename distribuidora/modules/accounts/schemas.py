# distribuidora/modules/accounts/schemas.py
from pydantic import BaseModel, Field
from typing import List, Optional
from decimal import Decimal
from datetime import datetime

from distribuidora.shared.schemas.common import BaseResponse, PaymentMethod

class PaymentCreateRequest(BaseModel):
    customer_id: int = Field(..., description="ID del cliente")
    amount: Decimal = Field(..., gt=0, description="Monto del pago")
    method: PaymentMethod = Field(PaymentMethod.CASH)
    order_id: Optional[int] = Field(None, description="Pedido asociado (opcional)")
    reference: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = Field(None, max_length=500)

class PaymentInfo(BaseModel):
    id: int
    customer_id: int
    order_id: Optional[int] = None
    amount: Decimal
    method: str
    reference: Optional[str] = None
    notes: Optional[str] = None
    user_id: Optional[int] = None
    created_at: Optional[datetime] = None

class PaymentResponse(BaseResponse):
    payment: PaymentInfo
    customer_balance: Decimal

class PaymentDeletedResponse(BaseResponse):
    payment_id: int
    customer_balance: Decimal

class UnpaidOrderInfo(BaseModel):
    order_id: int
    total: Decimal
    amount_paid: Decimal
    pending_amount: Decimal
    payment_status: str
    created_at: Optional[datetime] = None

class AccountSummary(BaseModel):
    customer_id: int
    customer_name: str
    balance: Decimal
    credit_limit: Decimal
    available_credit: Decimal
    order_count: int
    purchases_total: Decimal
    payments_total: Decimal
    unpaid_orders: List[UnpaidOrderInfo] = []
    last_order_at: Optional[datetime] = None
    last_payment_at: Optional[datetime] = None

class AccountSummaryResponse(BaseResponse):
    account: AccountSummary

class BalanceDriftInfo(BaseModel):
    customer_id: int
    stored_balance: Decimal
    computed_balance: Decimal
    drift: Decimal

class BalanceDriftResponse(BaseResponse):
    drift: BalanceDriftInfo
    repaired: bool = False
