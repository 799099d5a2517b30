# distribuidora/modules/cash_reconciliation/repository.py
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional
from sqlalchemy import case, func
from sqlalchemy.orm import Session
import logging

from distribuidora.config.settings import settings
from distribuidora.core.exceptions import ConflictError, NotFoundError, PermissionDeniedError, StateError
from distribuidora.shared.database.models import (
    CashReconciliation, CashReconciliationAdjustment, CashReconciliationItem,
    DeliveryRoute, DeliveryRouteOrder, Order, User
)
from distribuidora.shared.database.transaction import atomic
from .schemas import EDITABLE_STATUSES, REVIEW_RESULT, SUBMITTABLE_STATUSES

logger = logging.getLogger(__name__)

ZERO = Decimal('0')

class CashReconciliationRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_reconciliation(self, reconciliation_id: int) -> Optional[CashReconciliation]:
        return self.db.query(CashReconciliation).filter(
            CashReconciliation.id == reconciliation_id
        ).first()

    def _lock_reconciliation(self, reconciliation_id: int) -> CashReconciliation:
        reconciliation = self.db.query(CashReconciliation).filter(
            CashReconciliation.id == reconciliation_id
        ).with_for_update().first()
        if not reconciliation:
            raise NotFoundError(f"Rendición {reconciliation_id} no encontrada")
        return reconciliation

    @staticmethod
    def _ensure_owner(reconciliation: CashReconciliation, user_id: int, is_privileged: bool) -> None:
        if not is_privileged and reconciliation.courier_id != user_id:
            raise PermissionDeniedError("Solo el transportista de la rendición o un administrador")

    def create_from_route_atomic(
        self,
        route_id: int,
        courier_id: Optional[int],
        user_id: int,
        is_privileged: bool
    ) -> CashReconciliation:
        """
        Crear rendición a partir de los pedidos entregados del recorrido.

        Efectivo esperado = cobrado en efectivo; el resto de medios se
        informa aparte. Cada pedido entregado queda como item inmutable.
        """
        with atomic(self.db, f"Crear rendición recorrido #{route_id}"):
            route = self.db.query(DeliveryRoute).filter(
                DeliveryRoute.id == route_id
            ).with_for_update().first()
            if not route:
                raise NotFoundError(f"Recorrido {route_id} no encontrado")

            if is_privileged:
                courier_id = courier_id or route.courier_id
            else:
                courier_id = user_id
                if route.courier_id != user_id:
                    raise PermissionDeniedError("Recorrido no válido o no pertenece al transportista")

            existing = self.db.query(CashReconciliation.id).filter(
                CashReconciliation.route_id == route_id
            ).first()
            if existing:
                raise ConflictError(f"Ya existe una rendición para el recorrido {route_id}")

            delivered_orders = self.db.query(Order).join(
                DeliveryRouteOrder, DeliveryRouteOrder.order_id == Order.id
            ).filter(
                DeliveryRouteOrder.route_id == route_id,
                DeliveryRouteOrder.delivery_status == 'delivered',
                Order.status == 'delivered'
            ).order_by(DeliveryRouteOrder.delivery_sequence).all()

            expected_cash = ZERO
            expected_other = ZERO
            for order in delivered_orders:
                amount = Decimal(order.amount_paid or 0)
                if (order.payment_method or settings.cash_payment_method) == settings.cash_payment_method:
                    expected_cash += amount
                else:
                    expected_other += amount

            reconciliation = CashReconciliation(
                route_id=route_id,
                courier_id=courier_id,
                reconciliation_date=date.today(),
                expected_cash=expected_cash,
                expected_other=expected_other,
                declared_amount=ZERO,
                status='pending',
                items=[
                    CashReconciliationItem(
                        order_id=order.id,
                        amount_collected=Decimal(order.amount_paid or 0),
                        payment_method=order.payment_method or settings.cash_payment_method
                    )
                    for order in delivered_orders
                ]
            )
            self.db.add(reconciliation)
            self.db.flush()
            logger.info(
                f"Rendición #{reconciliation.id}: {len(delivered_orders)} pedidos, "
                f"efectivo {expected_cash}, otros {expected_other}"
            )

        self.db.refresh(reconciliation)
        return reconciliation

    def submit_atomic(
        self,
        reconciliation_id: int,
        declared_amount: Decimal,
        justification: Optional[str],
        user_id: int,
        is_privileged: bool
    ) -> CashReconciliation:
        with atomic(self.db, f"Presentar rendición #{reconciliation_id}"):
            reconciliation = self._lock_reconciliation(reconciliation_id)
            self._ensure_owner(reconciliation, user_id, is_privileged)

            if reconciliation.status not in SUBMITTABLE_STATUSES:
                raise StateError(
                    f"La rendición no está en estado editable ({reconciliation.status})"
                )

            reconciliation.declared_amount = Decimal(declared_amount)
            reconciliation.courier_justification = justification
            reconciliation.status = 'submitted'
            reconciliation.submitted_at = datetime.now()

        self.db.refresh(reconciliation)
        return reconciliation

    def add_adjustment_atomic(
        self,
        reconciliation_id: int,
        adjustment_data: Dict[str, Any],
        user_id: int,
        is_privileged: bool
    ) -> CashReconciliationAdjustment:
        with atomic(self.db, f"Agregar ajuste rendición #{reconciliation_id}"):
            reconciliation = self._lock_reconciliation(reconciliation_id)
            self._ensure_owner(reconciliation, user_id, is_privileged)

            if reconciliation.status not in EDITABLE_STATUSES:
                raise StateError(
                    f"No se pueden agregar ajustes a una rendición {reconciliation.status}"
                )

            adjustment = CashReconciliationAdjustment(
                reconciliation_id=reconciliation.id,
                adjustment_type=adjustment_data['adjustment_type'],
                amount=Decimal(adjustment_data['amount']),
                description=adjustment_data['description'],
                photo_url=adjustment_data.get('photo_url'),
                created_by=user_id
            )
            self.db.add(adjustment)

        self.db.refresh(adjustment)
        return adjustment

    def review_atomic(
        self,
        reconciliation_id: int,
        action: str,
        notes: Optional[str],
        user_id: int
    ) -> CashReconciliation:
        """Aprobar, rechazar u observar. Aprobar cierra el recorrido."""
        with atomic(self.db, f"Revisar rendición #{reconciliation_id}"):
            reconciliation = self._lock_reconciliation(reconciliation_id)

            if reconciliation.status != 'submitted':
                raise StateError(f"La rendición no está presentada ({reconciliation.status})")

            new_status = REVIEW_RESULT[action]
            now = datetime.now()
            reconciliation.status = new_status
            reconciliation.reviewer_notes = notes
            reconciliation.reviewed_at = now
            reconciliation.reviewed_by = user_id

            if new_status == 'approved':
                route = self.db.query(DeliveryRoute).filter(
                    DeliveryRoute.id == reconciliation.route_id
                ).with_for_update().first()
                if route:
                    route.status = 'completed'
                    route.completed_at = now

                for adjustment in reconciliation.adjustments:
                    if adjustment.approved is None:
                        adjustment.approved = True
                        adjustment.approved_by = user_id
                        adjustment.approved_at = now

            logger.info(f"Rendición #{reconciliation.id}: {action} -> {new_status}")

        self.db.refresh(reconciliation)
        return reconciliation

    def get_statistics(
        self,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        courier_id: Optional[int] = None
    ) -> Dict[str, Any]:
        filters = []
        if date_from:
            filters.append(CashReconciliation.reconciliation_date >= date_from)
        if date_to:
            filters.append(CashReconciliation.reconciliation_date <= date_to)
        if courier_id:
            filters.append(CashReconciliation.courier_id == courier_id)

        is_approved = CashReconciliation.status == 'approved'
        by_status = dict(
            self.db.query(CashReconciliation.status, func.count(CashReconciliation.id))
            .filter(*filters).group_by(CashReconciliation.status).all()
        )

        expected, declared, difference = self.db.query(
            func.coalesce(func.sum(CashReconciliation.expected_cash), 0),
            func.coalesce(func.sum(case((is_approved, CashReconciliation.declared_amount), else_=0)), 0),
            func.coalesce(func.sum(case((is_approved, CashReconciliation.difference), else_=0)), 0)
        ).filter(*filters).one()

        by_courier = self.db.query(
            CashReconciliation.courier_id,
            User.name,
            func.count(CashReconciliation.id),
            func.sum(CashReconciliation.declared_amount),
            func.sum(CashReconciliation.difference)
        ).join(
            User, User.id == CashReconciliation.courier_id
        ).filter(*filters).group_by(
            CashReconciliation.courier_id, User.name
        ).order_by(CashReconciliation.courier_id).all()

        return {
            "total": sum(by_status.values()),
            "pending": by_status.get('pending', 0) + by_status.get('submitted', 0),
            "approved": by_status.get('approved', 0),
            "rejected": by_status.get('rejected', 0),
            "with_observations": by_status.get('with_observations', 0),
            "total_expected_cash": Decimal(str(expected)),
            "total_declared_approved": Decimal(str(declared)),
            "total_difference_approved": Decimal(str(difference)),
            "by_courier": [
                {
                    "courier_id": row_courier_id,
                    "courier_name": name,
                    "reconciliations": count,
                    "total_declared": Decimal(str(total_declared or 0)),
                    "total_difference": Decimal(str(total_difference or 0))
                }
                for row_courier_id, name, count, total_declared, total_difference in by_courier
            ]
        }
