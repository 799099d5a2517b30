# distribuidora/modules/delivery_exceptions/service.py
from datetime import date
from typing import Optional
from sqlalchemy.orm import Session
import logging

from distribuidora.core.auth.schemas import Actor
from distribuidora.core.exceptions import NotFoundError, PermissionDeniedError
from distribuidora.shared.database.models import DeliveryException, Order, Product
from .repository import DeliveryExceptionRepository
from .schemas import (
    DeliveryExceptionInfo, DeliveryExceptionListResponse, DeliveryExceptionResponse,
    ExceptionHistoryInfo, ExceptionRegisterRequest, ExceptionResolveRequest,
    ExceptionStatisticsResponse, ExceptionVoidRequest
)

logger = logging.getLogger(__name__)

class DeliveryExceptionService:
    def __init__(self, db: Session):
        self.db = db
        self.repository = DeliveryExceptionRepository(db)

    def _build_info(self, delivery_exception: DeliveryException, with_history: bool = False) -> DeliveryExceptionInfo:
        product = self.db.get(Product, delivery_exception.product_id)
        history = []
        if with_history:
            history = [
                ExceptionHistoryInfo(
                    id=entry.id,
                    action=entry.action,
                    old_status=entry.old_status,
                    new_status=entry.new_status,
                    notes=entry.notes,
                    user_id=entry.user_id,
                    created_at=entry.created_at
                )
                for entry in delivery_exception.history
            ]

        return DeliveryExceptionInfo(
            id=delivery_exception.id,
            order_id=delivery_exception.order_id,
            order_item_id=delivery_exception.order_item_id,
            product_id=delivery_exception.product_id,
            product_name=product.name if product else None,
            original_quantity=delivery_exception.original_quantity,
            affected_quantity=delivery_exception.affected_quantity,
            delivered_quantity=delivery_exception.delivered_quantity,
            reason=delivery_exception.reason,
            description=delivery_exception.description,
            photo_url=delivery_exception.photo_url,
            unit_price=delivery_exception.unit_price,
            monetary_impact=delivery_exception.monetary_impact,
            resolution_status=delivery_exception.resolution_status,
            resolution_notes=delivery_exception.resolution_notes,
            resolved_at=delivery_exception.resolved_at,
            resolved_by=delivery_exception.resolved_by,
            rescheduled_order_id=delivery_exception.rescheduled_order_id,
            stock_returned=delivery_exception.stock_returned,
            reported_by=delivery_exception.reported_by,
            created_at=delivery_exception.created_at,
            history=history
        )

    def _response(self, delivery_exception: DeliveryException, message: str) -> DeliveryExceptionResponse:
        order = self.db.get(Order, delivery_exception.order_id)
        return DeliveryExceptionResponse(
            success=True,
            message=message,
            delivery_exception=self._build_info(delivery_exception, with_history=True),
            order_total=order.total if order else None
        )

    async def register_exception(self, request: ExceptionRegisterRequest, actor: Actor) -> DeliveryExceptionResponse:
        """Registrar salvedad (transportista del pedido o administrador)"""
        logger.info(
            f"Usuario {actor.id} registra salvedad en pedido {request.order_id}, "
            f"item {request.order_item_id}: {request.affected_quantity} u. ({request.reason.value})"
        )

        delivery_exception = self.repository.register_atomic(
            {
                'order_id': request.order_id,
                'order_item_id': request.order_item_id,
                'affected_quantity': request.affected_quantity,
                'reason': request.reason.value,
                'description': request.description,
                'photo_url': request.photo_url,
                'return_stock': request.return_stock
            },
            user_id=actor.id,
            is_privileged=actor.is_admin
        )

        return self._response(delivery_exception, "Salvedad registrada")

    async def resolve_exception(self, exception_id: int, request: ExceptionResolveRequest, actor: Actor) -> DeliveryExceptionResponse:
        if not actor.is_admin:
            raise PermissionDeniedError("Solo administradores pueden resolver salvedades")

        delivery_exception = self.repository.resolve_atomic(
            exception_id,
            request.resolution_status.value,
            request.notes,
            request.rescheduled_order_id,
            actor.id
        )
        return self._response(delivery_exception, f"Salvedad resuelta: {delivery_exception.resolution_status}")

    async def void_exception(self, exception_id: int, request: ExceptionVoidRequest, actor: Actor) -> DeliveryExceptionResponse:
        if not actor.is_admin:
            raise PermissionDeniedError("Solo administradores pueden anular salvedades")

        delivery_exception = self.repository.void_atomic(exception_id, request.notes, actor.id)
        return self._response(delivery_exception, "Salvedad anulada correctamente")

    async def get_exception(self, exception_id: int) -> DeliveryExceptionResponse:
        delivery_exception = self.repository.get_exception(exception_id)
        if not delivery_exception:
            raise NotFoundError(f"Salvedad {exception_id} no encontrada")
        return self._response(delivery_exception, "Salvedad obtenida")

    async def list_by_order(self, order_id: int) -> DeliveryExceptionListResponse:
        exceptions = self.repository.get_by_order(order_id)
        return DeliveryExceptionListResponse(
            success=True,
            message=f"{len(exceptions)} salvedades",
            order_id=order_id,
            delivery_exceptions=[self._build_info(item) for item in exceptions],
            count=len(exceptions)
        )

    async def get_statistics(self, date_from: Optional[date] = None, date_to: Optional[date] = None) -> ExceptionStatisticsResponse:
        stats = self.repository.get_statistics(date_from, date_to)
        return ExceptionStatisticsResponse(
            success=True,
            message="Estadísticas de salvedades",
            **stats
        )
