# distribuidora/modules/orders/service.py
from decimal import Decimal
from typing import Optional
from sqlalchemy.orm import Session
import logging

from distribuidora.core.auth.schemas import Actor
from distribuidora.core.exceptions import NotFoundError, PermissionDeniedError
from distribuidora.shared.database.models import Customer, DeletedOrder, Order, Product
from distribuidora.shared.schemas.common import OrderItemInfo
from distribuidora.shared.services.audit_log import AuditLog
from .repository import OrdersRepository
from .schemas import (
    CourierAssignmentRequest, DeletedOrdersResponse, OrderCreateRequest,
    OrderDeletedResponse, OrderDetail, OrderHistoryEntryInfo, OrderHistoryResponse,
    OrderItemsUpdateRequest, OrderPaymentUpdateRequest, OrderResponse, OrderStatusUpdateRequest
)

logger = logging.getLogger(__name__)

class OrderService:
    def __init__(self, db: Session):
        self.db = db
        self.repository = OrdersRepository(db)

    def _build_order_detail(self, order: Order) -> OrderDetail:
        items = []
        for item in self.repository.get_order_items(order.id):
            product = self.db.get(Product, item.product_id)
            items.append(OrderItemInfo(
                id=item.id,
                product_id=item.product_id,
                product_name=product.name if product else None,
                quantity=item.quantity,
                unit_price=item.unit_price,
                subtotal=item.subtotal
            ))

        return OrderDetail(
            id=order.id,
            customer_id=order.customer_id,
            status=order.status,
            payment_status=order.payment_status,
            payment_method=order.payment_method,
            total=Decimal(order.total),
            amount_paid=Decimal(order.amount_paid),
            stock_deducted=order.stock_deducted,
            courier_id=order.courier_id,
            creator_id=order.creator_id,
            delivery_sequence=order.delivery_sequence,
            notes=order.notes,
            delivered_at=order.delivered_at,
            created_at=order.created_at,
            items=items
        )

    def _order_response(self, order: Order, message: str) -> OrderResponse:
        customer = self.db.get(Customer, order.customer_id)
        return OrderResponse(
            success=True,
            message=message,
            order=self._build_order_detail(order),
            customer_balance=customer.balance if customer else None
        )

    @staticmethod
    def _items_payload(items) -> list:
        return [
            {'product_id': item.product_id, 'quantity': item.quantity, 'unit_price': item.unit_price}
            for item in items
        ]

    async def create_order(self, request: OrderCreateRequest, actor: Actor) -> OrderResponse:
        """Crear pedido con descuento de stock y cuenta corriente"""
        logger.info(f"Creando pedido para cliente {request.customer_id} - {len(request.items)} items")

        order = self.repository.create_order_atomic({
            'customer_id': request.customer_id,
            'creator_id': actor.id,
            'items': self._items_payload(request.items),
            'expected_total': request.expected_total,
            'notes': request.notes,
            'payment_method': request.payment_method.value,
            'payment_status': request.payment_status.value if request.payment_status else None,
            'amount_paid': request.amount_paid
        })

        return self._order_response(order, f"Pedido #{order.id} creado exitosamente")

    async def get_order(self, order_id: int) -> OrderResponse:
        order = self.repository.get_order(order_id)
        if not order:
            raise NotFoundError(f"Pedido {order_id} no encontrado")
        return self._order_response(order, "Pedido obtenido")

    async def edit_order_items(self, order_id: int, request: OrderItemsUpdateRequest, actor: Actor) -> OrderResponse:
        order = self.repository.update_items_atomic(order_id, self._items_payload(request.items), actor.id)
        return self._order_response(order, f"Items del pedido #{order.id} actualizados")

    async def update_payment(self, order_id: int, request: OrderPaymentUpdateRequest, actor: Actor) -> OrderResponse:
        order = self.repository.update_payment_atomic(
            order_id,
            request.amount_paid,
            request.payment_method.value if request.payment_method else None,
            actor.id
        )
        return self._order_response(order, f"Pago del pedido #{order.id} actualizado ({order.payment_status})")

    async def change_status(self, order_id: int, request: OrderStatusUpdateRequest, actor: Actor) -> OrderResponse:
        order = self.repository.change_status_atomic(order_id, request.status.value, actor.id)
        return self._order_response(order, f"Pedido #{order.id} en estado {order.status}")

    async def assign_courier(self, order_id: int, request: CourierAssignmentRequest, actor: Actor) -> OrderResponse:
        order = self.repository.assign_courier_atomic(
            order_id, request.courier_id, request.advance_status, actor.id
        )
        return self._order_response(order, f"Transportista asignado al pedido #{order.id}")

    async def delete_order(
        self,
        order_id: int,
        actor: Actor,
        restore_stock: bool = True,
        reason: Optional[str] = None
    ) -> OrderDeletedResponse:
        """Solo administradores pueden eliminar pedidos"""
        if not actor.is_admin:
            raise PermissionDeniedError("Solo un administrador puede eliminar pedidos")

        archive = self.repository.delete_order_atomic(order_id, restore_stock, actor.id, reason)

        return OrderDeletedResponse(
            success=True,
            message=f"Pedido #{order_id} eliminado",
            order_id=order_id,
            archive_id=archive.id,
            stock_restored=archive.stock_restored
        )

    async def get_history(self, order_id: int) -> OrderHistoryResponse:
        if not self.repository.get_order(order_id):
            raise NotFoundError(f"Pedido {order_id} no encontrado")

        history = AuditLog.get_order_history(self.db, order_id)
        return OrderHistoryResponse(
            success=True,
            message=f"{len(history)} cambios registrados",
            order_id=order_id,
            history=[
                OrderHistoryEntryInfo(
                    id=entry.id,
                    field=entry.field,
                    old_value=entry.old_value,
                    new_value=entry.new_value,
                    user_id=entry.user_id,
                    created_at=entry.created_at
                )
                for entry in history
            ]
        )

    async def list_deleted_orders(self, limit: int = 100) -> DeletedOrdersResponse:
        archives = self.repository.list_deleted_orders(limit)
        return DeletedOrdersResponse(
            success=True,
            message=f"{len(archives)} pedidos eliminados",
            deleted_orders=[self._archive_to_dict(archive) for archive in archives],
            count=len(archives)
        )

    @staticmethod
    def _archive_to_dict(archive: DeletedOrder) -> dict:
        return {
            "id": archive.id,
            "order_id": archive.order_id,
            "customer_id": archive.customer_id,
            "customer_name": archive.customer_name,
            "total": archive.total,
            "status": archive.status,
            "payment_status": archive.payment_status,
            "amount_paid": archive.amount_paid,
            "items": archive.items,
            "creator_name": archive.creator_name,
            "courier_name": archive.courier_name,
            "deleted_by_id": archive.deleted_by_id,
            "deleted_by_name": archive.deleted_by_name,
            "deleted_at": archive.deleted_at,
            "reason": archive.reason,
            "stock_restored": archive.stock_restored
        }
