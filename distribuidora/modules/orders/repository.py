# distribuidora/modules/orders/repository.py
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
import logging

from distribuidora.config.settings import settings
from distribuidora.core.exceptions import NotFoundError, StateError, ValidationError
from distribuidora.shared.database.models import (
    CashReconciliationItem, Customer, DeletedOrder, DeliveryException,
    DeliveryExceptionHistory, Order, OrderItem, Payment, User
)
from distribuidora.shared.database.transaction import atomic
from distribuidora.shared.services.audit_log import AuditLog, items_snapshot, money
from distribuidora.shared.services.balance_ledger import BalanceLedger, refresh_payment_status
from distribuidora.shared.services.stock_ledger import StockLedger
from distribuidora.modules.routes.repository import RouteRepository
from .policy import OrderStatusPolicy

logger = logging.getLogger(__name__)

ZERO = Decimal('0')

class OrdersRepository:
    def __init__(self, db: Session, policy: Optional[OrderStatusPolicy] = None):
        self.db = db
        self.policy = policy or OrderStatusPolicy()

    # ==================== LECTURAS ====================

    def get_order(self, order_id: int) -> Optional[Order]:
        return self.db.query(Order).filter(Order.id == order_id).first()

    def get_order_items(self, order_id: int) -> List[OrderItem]:
        return self.db.query(OrderItem).filter(
            OrderItem.order_id == order_id
        ).order_by(OrderItem.id).all()

    def list_deleted_orders(self, limit: int = 100) -> List[DeletedOrder]:
        return self.db.query(DeletedOrder).order_by(
            DeletedOrder.deleted_at.desc(), DeletedOrder.id.desc()
        ).limit(limit).all()

    def _lock_order(self, order_id: int) -> Order:
        order = self.db.query(Order).filter(
            Order.id == order_id
        ).with_for_update().first()

        if not order:
            raise NotFoundError(f"Pedido {order_id} no encontrado")

        return order

    # ==================== ESCRITURAS ====================

    def create_order_atomic(self, order_data: Dict[str, Any]) -> Order:
        """
        Crear pedido completo en una transacción.

        1. Validar cliente
        2. Validar y descontar stock de todo el lote
        3. Insertar pedido e items
        4. Actualizar cuenta corriente
        5. Registrar historial
        """
        items = order_data['items']

        with atomic(self.db, f"Crear pedido cliente {order_data['customer_id']}"):
            customer = self.db.get(Customer, order_data['customer_id'])
            if not customer:
                raise NotFoundError(f"Cliente {order_data['customer_id']} no encontrado")

            total = sum((Decimal(item['quantity']) * Decimal(item['unit_price']) for item in items), ZERO)
            expected_total = order_data.get('expected_total')
            if expected_total is not None and abs(Decimal(expected_total) - total) > Decimal(str(settings.total_tolerance)):
                raise ValidationError(
                    f"El total informado ({expected_total}) no coincide con la suma de items ({total})",
                    message="Total inconsistente"
                )

            logger.info(f"Reservando stock para {len(items)} items")
            StockLedger.decrement_atomic(self.db, items)

            amount_paid = order_data.get('amount_paid')
            if amount_paid is None:
                amount_paid = total if order_data.get('payment_status') == 'paid' else ZERO

            order = Order(
                customer_id=customer.id,
                creator_id=order_data.get('creator_id'),
                status='pending',
                total=total,
                amount_paid=Decimal(amount_paid),
                payment_method=order_data.get('payment_method') or settings.cash_payment_method,
                stock_deducted=True,
                notes=order_data.get('notes'),
                items=[
                    OrderItem(
                        product_id=item['product_id'],
                        quantity=item['quantity'],
                        unit_price=Decimal(item['unit_price']),
                        subtotal=Decimal(item['quantity']) * Decimal(item['unit_price'])
                    )
                    for item in items
                ]
            )
            refresh_payment_status(order)
            self.db.add(order)
            self.db.flush()
            logger.info(f"Pedido creado con ID: {order.id}")

            BalanceLedger.order_created(self.db, order)

            AuditLog.record(
                self.db, order.id, 'creation', None,
                {'status': order.status, 'total': money(order.total), 'items': len(items)},
                order_data.get('creator_id')
            )

        self.db.refresh(order)
        return order

    def update_items_atomic(self, order_id: int, new_items: List[Dict[str, Any]], user_id: Optional[int]) -> Order:
        """
        Reemplazar los items de un pedido aplicando solo las diferencias de stock.

        Items quitados devuelven stock, items que suben cantidad o nuevos
        lo descuentan (con validación completa antes de tocar nada).
        """
        with atomic(self.db, f"Editar items pedido #{order_id}"):
            order = self._lock_order(order_id)
            OrderStatusPolicy.ensure_items_editable(order.status)

            current = {item.product_id: item for item in order.items}
            requested = {item['product_id']: item for item in new_items}
            old_snapshot = items_snapshot(self.db, order.items)
            old_total = Decimal(order.total)
            old_pending = order.pending_amount

            deltas: Dict[int, int] = {}
            for product_id, item in current.items():
                new_quantity = requested[product_id]['quantity'] if product_id in requested else 0
                if new_quantity != item.quantity:
                    deltas[product_id] = new_quantity - item.quantity
            for product_id, item in requested.items():
                if product_id not in current:
                    deltas[product_id] = item['quantity']

            if order.stock_deducted and deltas:
                StockLedger.apply_deltas(self.db, deltas)

            for product_id, item in list(current.items()):
                if product_id not in requested:
                    order.items.remove(item)
                    continue
                data = requested[product_id]
                item.quantity = data['quantity']
                item.unit_price = Decimal(data['unit_price'])
                item.subtotal = Decimal(data['quantity']) * Decimal(data['unit_price'])

            for product_id, data in requested.items():
                if product_id not in current:
                    order.items.append(OrderItem(
                        product_id=product_id,
                        quantity=data['quantity'],
                        unit_price=Decimal(data['unit_price']),
                        subtotal=Decimal(data['quantity']) * Decimal(data['unit_price'])
                    ))

            order.total = sum((Decimal(item.subtotal) for item in order.items), ZERO)
            refresh_payment_status(order)
            self.db.flush()

            BalanceLedger.order_updated(self.db, order.customer_id, old_pending, order.pending_amount)
            RouteRepository(self.db).sync_order(order)

            AuditLog.record(self.db, order.id, 'items', old_snapshot, items_snapshot(self.db, order.items), user_id)
            AuditLog.record_changes(self.db, order.id, {'total': (money(old_total), money(order.total))}, user_id)
            logger.info(f"Pedido #{order.id}: {len(deltas)} productos con cambios, total {old_total} -> {order.total}")

        self.db.refresh(order)
        return order

    def update_payment_atomic(
        self,
        order_id: int,
        amount_paid: Decimal,
        payment_method: Optional[str],
        user_id: Optional[int]
    ) -> Order:
        with atomic(self.db, f"Actualizar pago pedido #{order_id}"):
            order = self._lock_order(order_id)
            old_pending = order.pending_amount
            old_values = {
                'amount_paid': money(order.amount_paid),
                'payment_status': order.payment_status,
                'payment_method': order.payment_method
            }

            order.amount_paid = Decimal(amount_paid)
            if payment_method:
                order.payment_method = payment_method
            refresh_payment_status(order)

            BalanceLedger.order_updated(self.db, order.customer_id, old_pending, order.pending_amount)
            RouteRepository(self.db).sync_order(order)

            AuditLog.record_changes(self.db, order.id, {
                'amount_paid': (old_values['amount_paid'], money(order.amount_paid)),
                'payment_status': (old_values['payment_status'], order.payment_status),
                'payment_method': (old_values['payment_method'], order.payment_method)
            }, user_id)

        self.db.refresh(order)
        return order

    def delete_order_atomic(
        self,
        order_id: int,
        restore_stock: bool,
        deleted_by_id: Optional[int],
        reason: Optional[str]
    ) -> DeletedOrder:
        """
        Eliminar pedido en una sola transacción:
        archivo, stock, saldo, dependencias y pedido.
        """
        with atomic(self.db, f"Eliminar pedido #{order_id}"):
            order = self._lock_order(order_id)
            items = list(order.items)
            stock_restored = bool(restore_stock and order.stock_deducted and items)

            archive = AuditLog.archive_deleted_order(
                self.db, order, items, deleted_by_id, reason, stock_restored
            )

            if stock_restored:
                StockLedger.restore_atomic(self.db, items)

            BalanceLedger.order_deleted(self.db, order)

            exception_ids = [
                row.id for row in self.db.query(DeliveryException.id).filter(
                    DeliveryException.order_id == order.id
                ).all()
            ]
            if exception_ids:
                self.db.query(DeliveryExceptionHistory).filter(
                    DeliveryExceptionHistory.delivery_exception_id.in_(exception_ids)
                ).delete(synchronize_session=False)
                self.db.query(DeliveryException).filter(
                    DeliveryException.id.in_(exception_ids)
                ).delete(synchronize_session=False)

            self.db.query(DeliveryException).filter(
                DeliveryException.rescheduled_order_id == order.id
            ).update({DeliveryException.rescheduled_order_id: None}, synchronize_session=False)

            RouteRepository(self.db).remove_order_links(order)

            self.db.query(Payment).filter(
                Payment.order_id == order.id
            ).update({Payment.order_id: None}, synchronize_session=False)
            self.db.query(CashReconciliationItem).filter(
                CashReconciliationItem.order_id == order.id
            ).update({CashReconciliationItem.order_id: None}, synchronize_session=False)

            AuditLog.purge_order_history(self.db, order.id)
            self.db.delete(order)
            logger.info(
                f"Pedido #{order_id} eliminado ({len(items)} items, stock devuelto: {stock_restored})"
            )

        return archive

    def change_status_atomic(self, order_id: int, new_status: str, user_id: Optional[int]) -> Order:
        with atomic(self.db, f"Cambiar estado pedido #{order_id}"):
            order = self._lock_order(order_id)
            old_status = order.status
            self.policy.ensure_transition(old_status, new_status)

            if old_status == new_status:
                return order

            routes = RouteRepository(self.db)
            order.status = new_status
            if new_status == 'delivered':
                order.delivered_at = datetime.now()
                routes.register_delivery(order)
            else:
                if old_status == 'delivered':
                    routes.revert_delivery(order)
                order.delivered_at = None

            AuditLog.record(self.db, order.id, 'status', old_status, new_status, user_id)
            logger.info(f"Pedido #{order.id}: {old_status} -> {new_status}")

        self.db.refresh(order)
        return order

    def assign_courier_atomic(
        self,
        order_id: int,
        courier_id: int,
        advance_status: bool,
        user_id: Optional[int]
    ) -> Order:
        with atomic(self.db, f"Asignar transportista pedido #{order_id}"):
            order = self._lock_order(order_id)

            courier = self.db.get(User, courier_id)
            if not courier:
                raise NotFoundError(f"Transportista {courier_id} no encontrado")
            if courier.role != settings.courier_role:
                raise ValidationError(f"El usuario {courier.name} no es transportista")

            changes = {'courier_id': (order.courier_id, courier.id)}
            order.courier_id = courier.id

            if advance_status and order.status != 'assigned':
                self.policy.ensure_transition(order.status, 'assigned')
                if order.status == 'delivered':
                    RouteRepository(self.db).revert_delivery(order)
                    order.delivered_at = None
                changes['status'] = (order.status, 'assigned')
                order.status = 'assigned'

            AuditLog.record_changes(self.db, order.id, changes, user_id)

        self.db.refresh(order)
        return order
