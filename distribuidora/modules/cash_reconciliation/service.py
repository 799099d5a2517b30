# distribuidora/modules/cash_reconciliation/service.py
from datetime import date
from decimal import Decimal
from typing import Optional
from sqlalchemy.orm import Session
import logging

from distribuidora.core.auth.schemas import Actor
from distribuidora.core.exceptions import NotFoundError, PermissionDeniedError
from distribuidora.shared.database.models import CashReconciliation, CashReconciliationAdjustment
from .repository import CashReconciliationRepository
from .schemas import (
    AdjustmentCreateRequest, AdjustmentInfo, AdjustmentResponse, ReconciliationCreateRequest,
    ReconciliationInfo, ReconciliationItemInfo, ReconciliationResponse, ReconciliationReviewRequest,
    ReconciliationStatisticsResponse, ReconciliationSubmitRequest, ReconciliationSubmitResponse
)

logger = logging.getLogger(__name__)

class CashReconciliationService:
    def __init__(self, db: Session):
        self.db = db
        self.repository = CashReconciliationRepository(db)

    @staticmethod
    def _adjustment_info(adjustment: CashReconciliationAdjustment) -> AdjustmentInfo:
        return AdjustmentInfo(
            id=adjustment.id,
            adjustment_type=adjustment.adjustment_type,
            amount=adjustment.amount,
            description=adjustment.description,
            photo_url=adjustment.photo_url,
            approved=adjustment.approved,
            created_by=adjustment.created_by,
            created_at=adjustment.created_at
        )

    def _build_info(self, reconciliation: CashReconciliation) -> ReconciliationInfo:
        return ReconciliationInfo(
            id=reconciliation.id,
            route_id=reconciliation.route_id,
            courier_id=reconciliation.courier_id,
            reconciliation_date=reconciliation.reconciliation_date,
            expected_cash=reconciliation.expected_cash,
            expected_other=reconciliation.expected_other,
            declared_amount=reconciliation.declared_amount,
            difference=reconciliation.difference,
            status=reconciliation.status,
            courier_justification=reconciliation.courier_justification,
            reviewer_notes=reconciliation.reviewer_notes,
            submitted_at=reconciliation.submitted_at,
            reviewed_at=reconciliation.reviewed_at,
            reviewed_by=reconciliation.reviewed_by,
            items=[
                ReconciliationItemInfo(
                    id=item.id,
                    order_id=item.order_id,
                    amount_collected=item.amount_collected,
                    payment_method=item.payment_method
                )
                for item in reconciliation.items
            ],
            adjustments=[self._adjustment_info(adjustment) for adjustment in reconciliation.adjustments]
        )

    async def create_from_route(self, request: ReconciliationCreateRequest, actor: Actor) -> ReconciliationResponse:
        logger.info(f"Usuario {actor.id} crea rendición del recorrido {request.route_id}")

        reconciliation = self.repository.create_from_route_atomic(
            request.route_id, request.courier_id, actor.id, actor.is_admin
        )
        return ReconciliationResponse(
            success=True,
            message=f"Rendición #{reconciliation.id} creada",
            reconciliation=self._build_info(reconciliation)
        )

    async def submit(self, reconciliation_id: int, request: ReconciliationSubmitRequest, actor: Actor) -> ReconciliationSubmitResponse:
        """Presentar monto rendido; informa si la diferencia requiere justificación"""
        reconciliation = self.repository.submit_atomic(
            reconciliation_id, request.declared_amount, request.justification, actor.id, actor.is_admin
        )
        difference = Decimal(reconciliation.difference)

        return ReconciliationSubmitResponse(
            success=True,
            message="Rendición presentada" if difference == 0 else f"Rendición presentada con diferencia de {difference}",
            reconciliation=self._build_info(reconciliation),
            difference=difference,
            justification_required=difference != 0
        )

    async def add_adjustment(self, reconciliation_id: int, request: AdjustmentCreateRequest, actor: Actor) -> AdjustmentResponse:
        adjustment = self.repository.add_adjustment_atomic(
            reconciliation_id,
            {
                'adjustment_type': request.adjustment_type.value,
                'amount': request.amount,
                'description': request.description,
                'photo_url': request.photo_url
            },
            actor.id,
            actor.is_admin
        )
        return AdjustmentResponse(
            success=True,
            message="Ajuste registrado",
            reconciliation_id=reconciliation_id,
            adjustment=self._adjustment_info(adjustment)
        )

    async def review(self, reconciliation_id: int, request: ReconciliationReviewRequest, actor: Actor) -> ReconciliationResponse:
        if not actor.is_admin:
            raise PermissionDeniedError("Solo administradores pueden revisar rendiciones")

        reconciliation = self.repository.review_atomic(
            reconciliation_id, request.action.value, request.notes, actor.id
        )
        return ReconciliationResponse(
            success=True,
            message=f"Rendición {reconciliation.status}",
            reconciliation=self._build_info(reconciliation)
        )

    async def get_reconciliation(self, reconciliation_id: int, actor: Actor) -> ReconciliationResponse:
        reconciliation = self.repository.get_reconciliation(reconciliation_id)
        if not reconciliation:
            raise NotFoundError(f"Rendición {reconciliation_id} no encontrada")
        if not actor.is_admin and reconciliation.courier_id != actor.id:
            raise PermissionDeniedError("Solo el transportista de la rendición o un administrador")

        return ReconciliationResponse(
            success=True,
            message="Rendición obtenida",
            reconciliation=self._build_info(reconciliation)
        )

    async def get_statistics(
        self,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        courier_id: Optional[int] = None
    ) -> ReconciliationStatisticsResponse:
        stats = self.repository.get_statistics(date_from, date_to, courier_id)
        return ReconciliationStatisticsResponse(
            success=True,
            message="Estadísticas de rendiciones",
            **stats
        )
