import json
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple
from sqlalchemy.orm import Session
import logging

from distribuidora.shared.database.models import (
    Customer, DeletedOrder, DeliveryException, DeliveryExceptionHistory,
    Order, OrderHistory, OrderItem, Product, User
)

logger = logging.getLogger(__name__)


def _to_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (list, dict)):
        return json.dumps(value, default=str, ensure_ascii=False)
    return str(value)


def items_snapshot(db: Session, items: Iterable[OrderItem]) -> List[Dict[str, Any]]:
    """Items como JSON serializable, con nombre y código del producto"""
    snapshot = []
    for item in items:
        product = db.get(Product, item.product_id)
        snapshot.append({
            'product_id': item.product_id,
            'product_name': product.name if product else None,
            'product_code': product.code if product else None,
            'quantity': item.quantity,
            'unit_price': str(item.unit_price),
            'subtotal': str(item.subtotal)
        })
    return snapshot


class AuditLog:
    """Historial append-only de pedidos, archivo de eliminados y auditoría de salvedades"""

    @staticmethod
    def user_name(db: Session, user_id: Optional[int]) -> Optional[str]:
        """Nombre del usuario o None si la referencia falta"""
        if user_id is None:
            return None
        user = db.get(User, user_id)
        return user.name if user else None

    @staticmethod
    def record(
        db: Session,
        order_id: int,
        field: str,
        old_value: Any,
        new_value: Any,
        user_id: Optional[int] = None
    ) -> OrderHistory:
        entry = OrderHistory(
            order_id=order_id,
            user_id=user_id,
            field=field,
            old_value=_to_text(old_value),
            new_value=_to_text(new_value)
        )
        db.add(entry)
        return entry

    @staticmethod
    def record_changes(
        db: Session,
        order_id: int,
        changes: Dict[str, Tuple[Any, Any]],
        user_id: Optional[int] = None
    ) -> List[OrderHistory]:
        """Registrar solo los campos que realmente cambiaron"""
        entries = []
        for field, (old_value, new_value) in changes.items():
            if old_value != new_value:
                entries.append(AuditLog.record(db, order_id, field, old_value, new_value, user_id))
        return entries

    @staticmethod
    def get_order_history(db: Session, order_id: int) -> List[OrderHistory]:
        return db.query(OrderHistory).filter(
            OrderHistory.order_id == order_id
        ).order_by(OrderHistory.id.asc()).all()

    @staticmethod
    def purge_order_history(db: Session, order_id: int) -> int:
        """Solo como parte de la eliminación completa de un pedido"""
        return db.query(OrderHistory).filter(
            OrderHistory.order_id == order_id
        ).delete(synchronize_session=False)

    @staticmethod
    def archive_deleted_order(
        db: Session,
        order: Order,
        items: List[OrderItem],
        deleted_by_id: Optional[int],
        reason: Optional[str],
        stock_restored: bool
    ) -> DeletedOrder:
        """
        Snapshot desnormalizado del pedido antes de eliminarlo.

        Todas las referencias opcionales (transportista, creador, quien
        elimina, incluso el cliente) se resuelven a None si faltan.
        """
        customer = db.get(Customer, order.customer_id) if order.customer_id else None

        archive = DeletedOrder(
            order_id=order.id,
            customer_id=order.customer_id,
            customer_name=customer.trade_name if customer else None,
            customer_address=customer.address if customer else None,
            total=order.total,
            status=order.status,
            payment_status=order.payment_status,
            payment_method=order.payment_method,
            amount_paid=order.amount_paid,
            notes=order.notes,
            items=items_snapshot(db, items),
            creator_id=order.creator_id,
            creator_name=AuditLog.user_name(db, order.creator_id),
            courier_id=order.courier_id,
            courier_name=AuditLog.user_name(db, order.courier_id),
            ordered_at=order.created_at,
            delivered_at=order.delivered_at,
            deleted_by_id=deleted_by_id,
            deleted_by_name=AuditLog.user_name(db, deleted_by_id),
            reason=reason,
            stock_restored=stock_restored
        )
        db.add(archive)
        db.flush()
        logger.info(f"Pedido {order.id} archivado como eliminado #{archive.id}")
        return archive

    @staticmethod
    def record_exception_event(
        db: Session,
        delivery_exception: DeliveryException,
        action: str,
        old_status: Optional[str],
        new_status: Optional[str],
        notes: Optional[str],
        user_id: Optional[int]
    ) -> DeliveryExceptionHistory:
        entry = DeliveryExceptionHistory(
            delivery_exception_id=delivery_exception.id,
            action=action,
            old_status=old_status,
            new_status=new_status,
            notes=notes,
            user_id=user_id
        )
        db.add(entry)
        return entry


def money(value: Any) -> str:
    """Formato estable para valores monetarios en el historial"""
    return str(Decimal(value or 0).quantize(Decimal('0.01')))
