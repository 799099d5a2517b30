# distribuidora/modules/delivery_exceptions/repository.py
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional
from sqlalchemy import case, func
from sqlalchemy.orm import Session
import logging

from distribuidora.core.exceptions import NotFoundError, PermissionDeniedError, StateError, ValidationError
from distribuidora.shared.database.models import DeliveryException, Order, OrderItem, Product, User
from distribuidora.shared.database.transaction import atomic
from distribuidora.shared.services.audit_log import AuditLog
from distribuidora.shared.services.balance_ledger import BalanceLedger, refresh_payment_status
from distribuidora.shared.services.stock_ledger import StockLedger
from distribuidora.modules.routes.repository import RouteRepository
from .schemas import STOCK_RETURN_REASONS

logger = logging.getLogger(__name__)

ZERO = Decimal('0')

class DeliveryExceptionRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_exception(self, exception_id: int) -> Optional[DeliveryException]:
        return self.db.query(DeliveryException).filter(DeliveryException.id == exception_id).first()

    def get_by_order(self, order_id: int) -> List[DeliveryException]:
        return self.db.query(DeliveryException).filter(
            DeliveryException.order_id == order_id
        ).order_by(DeliveryException.id).all()

    def _lock_exception(self, exception_id: int) -> DeliveryException:
        delivery_exception = self.db.query(DeliveryException).filter(
            DeliveryException.id == exception_id
        ).with_for_update().first()
        if not delivery_exception:
            raise NotFoundError(f"Salvedad {exception_id} no encontrada")
        return delivery_exception

    def _lock_order(self, order_id: int) -> Order:
        order = self.db.query(Order).filter(Order.id == order_id).with_for_update().first()
        if not order:
            raise NotFoundError(f"Pedido {order_id} no encontrado")
        return order

    def _find_item(self, order_id: int, item_id: int, product_id: int) -> Optional[OrderItem]:
        """Item referenciado por la salvedad, o el item vigente del mismo producto"""
        item = self.db.query(OrderItem).filter(
            OrderItem.id == item_id,
            OrderItem.order_id == order_id,
            OrderItem.product_id == product_id
        ).first()
        if item:
            return item
        return self.db.query(OrderItem).filter(
            OrderItem.order_id == order_id,
            OrderItem.product_id == product_id
        ).order_by(OrderItem.id).first()

    def _recalculate_order(self, order: Order, old_pending: Decimal) -> None:
        """Total = Σ subtotales restantes; saldo y estado de pago acompañan"""
        self.db.flush()
        order.total = sum((Decimal(item.subtotal) for item in order.items), ZERO)
        refresh_payment_status(order)
        BalanceLedger.order_updated(self.db, order.customer_id, old_pending, order.pending_amount)
        RouteRepository(self.db).sync_order(order)

    def register_atomic(self, data: Dict[str, Any], user_id: int, is_privileged: bool) -> DeliveryException:
        """
        Registrar salvedad sobre un item entregado parcialmente.

        Ajusta item, total, saldo y, según el motivo, devuelve stock.
        """
        with atomic(self.db, f"Registrar salvedad pedido #{data['order_id']}"):
            order = self._lock_order(data['order_id'])

            if not is_privileged and order.courier_id != user_id:
                raise PermissionDeniedError("No autorizado para registrar salvedad en este pedido")

            item = self.db.query(OrderItem).filter(
                OrderItem.id == data['order_item_id'],
                OrderItem.order_id == order.id
            ).first()
            if not item:
                raise NotFoundError(f"Item {data['order_item_id']} no encontrado en el pedido {order.id}")

            affected = data['affected_quantity']
            if affected <= 0:
                raise ValidationError("La cantidad afectada debe ser mayor a 0")
            if affected > item.quantity:
                raise ValidationError(
                    f"Cantidad afectada ({affected}) mayor a la cantidad del item ({item.quantity})"
                )

            product = self.db.get(Product, item.product_id)
            item_id, product_id = item.id, item.product_id
            original_quantity = item.quantity
            delivered = original_quantity - affected
            unit_price = Decimal(item.unit_price)
            old_pending = order.pending_amount

            if delivered > 0:
                item.quantity = delivered
                item.subtotal = delivered * unit_price
            else:
                order.items.remove(item)

            self._recalculate_order(order, old_pending)

            returns_stock = bool(data.get('return_stock')) and data['reason'] in STOCK_RETURN_REASONS
            if returns_stock:
                StockLedger.restore_atomic(self.db, [(product_id, affected)])

            delivery_exception = DeliveryException(
                order_id=order.id,
                order_item_id=item_id,
                product_id=product_id,
                original_quantity=original_quantity,
                affected_quantity=affected,
                delivered_quantity=delivered,
                reason=data['reason'],
                description=data.get('description'),
                photo_url=data.get('photo_url'),
                unit_price=unit_price,
                monetary_impact=affected * unit_price,
                resolution_status='pending',
                stock_returned=returns_stock,
                stock_returned_at=datetime.now() if returns_stock else None,
                reported_by=user_id
            )
            self.db.add(delivery_exception)
            self.db.flush()

            AuditLog.record_exception_event(
                self.db, delivery_exception, 'created', None, 'pending', data.get('description'), user_id
            )
            AuditLog.record(
                self.db, order.id, 'exception_item',
                f"{original_quantity} unidades de {product.name if product else product_id}",
                f"{delivered} unidades (salvedad: {data['reason']})",
                user_id
            )
            logger.info(
                f"Salvedad #{delivery_exception.id}: {affected} u. de item {item_id}, "
                f"impacto {delivery_exception.monetary_impact}, stock devuelto: {returns_stock}"
            )

        self.db.refresh(delivery_exception)
        return delivery_exception

    def resolve_atomic(
        self,
        exception_id: int,
        resolution_status: str,
        notes: Optional[str],
        rescheduled_order_id: Optional[int],
        user_id: int
    ) -> DeliveryException:
        with atomic(self.db, f"Resolver salvedad #{exception_id}"):
            delivery_exception = self._lock_exception(exception_id)

            if resolution_status in ('pending', 'voided'):
                raise ValidationError(f"Estado de resolución no válido: {resolution_status}")
            if delivery_exception.resolution_status != 'pending':
                raise StateError(
                    f"La salvedad ya fue resuelta ({delivery_exception.resolution_status})"
                )
            if rescheduled_order_id is not None and not self.db.get(Order, rescheduled_order_id):
                raise NotFoundError(f"Pedido reprogramado {rescheduled_order_id} no encontrado")

            old_status = delivery_exception.resolution_status
            delivery_exception.resolution_status = resolution_status
            delivery_exception.resolution_notes = notes
            delivery_exception.resolved_at = datetime.now()
            delivery_exception.resolved_by = user_id
            delivery_exception.rescheduled_order_id = rescheduled_order_id

            AuditLog.record_exception_event(
                self.db, delivery_exception, 'resolved', old_status, resolution_status, notes, user_id
            )

        self.db.refresh(delivery_exception)
        return delivery_exception

    def void_atomic(self, exception_id: int, notes: Optional[str], user_id: int) -> DeliveryException:
        """
        Anular salvedad deshaciendo todos sus efectos.

        El item se recrea si había sido eliminado y la salvedad pasa a
        apuntar al item nuevo. Si se había devuelto stock, se vuelve a
        descontar y falla si ya no está disponible.
        """
        with atomic(self.db, f"Anular salvedad #{exception_id}"):
            delivery_exception = self._lock_exception(exception_id)

            if delivery_exception.resolution_status == 'voided':
                raise StateError("La salvedad ya está anulada")

            order = self._lock_order(delivery_exception.order_id)
            old_pending = order.pending_amount
            unit_price = Decimal(delivery_exception.unit_price)

            old_item_id = delivery_exception.order_item_id
            affected = delivery_exception.affected_quantity
            item = self._find_item(order.id, old_item_id, delivery_exception.product_id)

            if item:
                item.quantity = item.quantity + affected
                item.subtotal = item.quantity * Decimal(item.unit_price)
            else:
                # Solo las unidades de esta salvedad; las demás vuelven al anular las suyas
                item = OrderItem(
                    product_id=delivery_exception.product_id,
                    quantity=affected,
                    unit_price=unit_price,
                    subtotal=affected * unit_price
                )
                order.items.append(item)
                self.db.flush()
                logger.info(f"Item recreado #{item.id} para salvedad #{delivery_exception.id}")

            if item.id != old_item_id:
                delivery_exception.order_item_id = item.id
                self.db.query(DeliveryException).filter(
                    DeliveryException.order_id == order.id,
                    DeliveryException.order_item_id == old_item_id,
                    DeliveryException.id != delivery_exception.id
                ).update({DeliveryException.order_item_id: item.id}, synchronize_session=False)

            self._recalculate_order(order, old_pending)

            if delivery_exception.stock_returned:
                StockLedger.decrement_atomic(
                    self.db, [(delivery_exception.product_id, delivery_exception.affected_quantity)]
                )

            old_status = delivery_exception.resolution_status
            delivery_exception.resolution_status = 'voided'
            delivery_exception.resolution_notes = notes
            delivery_exception.resolved_at = datetime.now()
            delivery_exception.resolved_by = user_id

            AuditLog.record_exception_event(
                self.db, delivery_exception, 'voided', old_status, 'voided', notes, user_id
            )
            AuditLog.record(
                self.db, order.id, 'exception_voided',
                f"salvedad #{delivery_exception.id}",
                f"{item.quantity} unidades restauradas",
                user_id
            )

        self.db.refresh(delivery_exception)
        return delivery_exception

    # ==================== ESTADÍSTICAS ====================

    def _date_filters(self, date_from: Optional[date], date_to: Optional[date]) -> list:
        filters = []
        if date_from:
            filters.append(DeliveryException.created_at >= datetime.combine(date_from, time.min))
        if date_to:
            filters.append(DeliveryException.created_at < datetime.combine(date_to + timedelta(days=1), time.min))
        return filters

    def get_statistics(self, date_from: Optional[date] = None, date_to: Optional[date] = None) -> Dict[str, Any]:
        filters = self._date_filters(date_from, date_to)

        by_resolution = dict(
            self.db.query(DeliveryException.resolution_status, func.count(DeliveryException.id))
            .filter(*filters).group_by(DeliveryException.resolution_status).all()
        )
        by_reason = dict(
            self.db.query(DeliveryException.reason, func.count(DeliveryException.id))
            .filter(*filters).group_by(DeliveryException.reason).all()
        )

        total_impact, pending_impact = self.db.query(
            func.coalesce(func.sum(DeliveryException.monetary_impact), 0),
            func.coalesce(func.sum(case(
                (DeliveryException.resolution_status == 'pending', DeliveryException.monetary_impact),
                else_=0
            )), 0)
        ).filter(*filters).one()

        product_count = func.count(DeliveryException.id).label('count')
        by_product = self.db.query(
            DeliveryException.product_id,
            Product.name,
            product_count,
            func.sum(DeliveryException.monetary_impact),
            func.sum(DeliveryException.affected_quantity)
        ).join(
            Product, Product.id == DeliveryException.product_id
        ).filter(*filters).group_by(
            DeliveryException.product_id, Product.name
        ).order_by(product_count.desc()).limit(10).all()

        courier_count = func.count(DeliveryException.id).label('count')
        by_courier = self.db.query(
            Order.courier_id,
            User.name,
            courier_count,
            func.sum(DeliveryException.monetary_impact)
        ).join(
            Order, Order.id == DeliveryException.order_id
        ).join(
            User, User.id == Order.courier_id
        ).filter(*filters).group_by(
            Order.courier_id, User.name
        ).order_by(courier_count.desc()).limit(10).all()

        total = sum(by_resolution.values())
        pending = by_resolution.get('pending', 0)
        voided = by_resolution.get('voided', 0)

        return {
            "total": total,
            "pending": pending,
            "resolved": total - pending - voided,
            "voided": voided,
            "total_impact": Decimal(str(total_impact)),
            "pending_impact": Decimal(str(pending_impact)),
            "by_reason": by_reason,
            "by_resolution": by_resolution,
            "by_product": [
                {
                    "product_id": product_id,
                    "product_name": name,
                    "count": count,
                    "impact": Decimal(str(impact or 0)),
                    "affected_units": units or 0
                }
                for product_id, name, count, impact, units in by_product
            ],
            "by_courier": [
                {
                    "courier_id": courier_id,
                    "courier_name": name,
                    "count": count,
                    "impact": Decimal(str(impact or 0))
                }
                for courier_id, name, count, impact in by_courier
            ]
        }
