# distribuidora/modules/cash_reconciliation/schemas.py
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from decimal import Decimal
from datetime import date, datetime
from enum import Enum

from distribuidora.shared.schemas.common import BaseResponse

class ReconciliationStatus(str, Enum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    WITH_OBSERVATIONS = "with_observations"

SUBMITTABLE_STATUSES = {ReconciliationStatus.PENDING.value, ReconciliationStatus.WITH_OBSERVATIONS.value}
EDITABLE_STATUSES = SUBMITTABLE_STATUSES | {ReconciliationStatus.SUBMITTED.value}

class ReviewAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    OBSERVE = "observe"

REVIEW_RESULT = {
    ReviewAction.APPROVE.value: ReconciliationStatus.APPROVED.value,
    ReviewAction.REJECT.value: ReconciliationStatus.REJECTED.value,
    ReviewAction.OBSERVE.value: ReconciliationStatus.WITH_OBSERVATIONS.value,
}

class AdjustmentType(str, Enum):
    SHORTAGE = "shortage"
    SURPLUS = "surplus"
    CHANGE_NOT_GIVEN = "change_not_given"
    BILLING_ERROR = "billing_error"
    AUTHORIZED_DISCOUNT = "authorized_discount"
    OTHER = "other"

class ReconciliationCreateRequest(BaseModel):
    route_id: int = Field(..., description="ID del recorrido")
    courier_id: Optional[int] = Field(None, description="Solo administradores: transportista de la rendición")

class ReconciliationSubmitRequest(BaseModel):
    declared_amount: Decimal = Field(..., ge=0, description="Efectivo rendido")
    justification: Optional[str] = Field(None, max_length=1000)

class AdjustmentCreateRequest(BaseModel):
    adjustment_type: AdjustmentType
    amount: Decimal = Field(..., description="Monto del ajuste")
    description: str = Field(..., min_length=1, max_length=1000)
    photo_url: Optional[str] = None

class ReconciliationReviewRequest(BaseModel):
    action: ReviewAction
    notes: Optional[str] = Field(None, max_length=1000)

class ReconciliationItemInfo(BaseModel):
    id: int
    order_id: Optional[int] = None
    amount_collected: Decimal
    payment_method: str

class AdjustmentInfo(BaseModel):
    id: int
    adjustment_type: str
    amount: Decimal
    description: str
    photo_url: Optional[str] = None
    approved: Optional[bool] = None
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None

class ReconciliationInfo(BaseModel):
    id: int
    route_id: int
    courier_id: int
    reconciliation_date: date
    expected_cash: Decimal
    expected_other: Decimal
    declared_amount: Decimal
    difference: Decimal
    status: str
    courier_justification: Optional[str] = None
    reviewer_notes: Optional[str] = None
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[int] = None
    items: List[ReconciliationItemInfo] = []
    adjustments: List[AdjustmentInfo] = []

class ReconciliationResponse(BaseResponse):
    reconciliation: ReconciliationInfo

class ReconciliationSubmitResponse(ReconciliationResponse):
    difference: Decimal
    justification_required: bool

class AdjustmentResponse(BaseResponse):
    reconciliation_id: int
    adjustment: AdjustmentInfo

class ReconciliationStatisticsResponse(BaseResponse):
    total: int
    pending: int
    approved: int
    rejected: int
    with_observations: int
    total_expected_cash: Decimal
    total_declared_approved: Decimal
    total_difference_approved: Decimal
    by_courier: List[Dict[str, Any]]
