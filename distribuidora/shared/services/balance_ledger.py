from decimal import Decimal
from typing import Any, Dict, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session
import logging

from distribuidora.shared.database.models import Customer, Order, Payment
from distribuidora.core.exceptions import NotFoundError

logger = logging.getLogger(__name__)

ZERO = Decimal('0')


def derive_payment_status(amount_paid: Optional[Decimal], total: Optional[Decimal]) -> str:
    """paid si cubre el total, partial si hay algo pagado, pending si nada"""
    amount_paid = Decimal(amount_paid or 0)
    total = Decimal(total or 0)

    if amount_paid >= total:
        return 'paid'
    if amount_paid > 0:
        return 'partial'
    return 'pending'


def refresh_payment_status(order: Order) -> str:
    """Recalcular payment_status tras escribir total o amount_paid"""
    order.payment_status = derive_payment_status(order.amount_paid, order.total)
    return order.payment_status


class BalanceLedger:
    """
    Cuenta corriente de clientes.

    Se llama explícitamente desde cada repository que crea, modifica o
    elimina pedidos y pagos, dentro de la misma transacción. Nunca hace commit.
    """

    @staticmethod
    def _lock_customer(db: Session, customer_id: int) -> Customer:
        customer = db.query(Customer).filter(
            Customer.id == customer_id
        ).with_for_update().first()

        if not customer:
            raise NotFoundError(f"Cliente {customer_id} no encontrado")

        return customer

    @staticmethod
    def apply_delta(db: Session, customer_id: int, delta: Decimal) -> Customer:
        customer = BalanceLedger._lock_customer(db, customer_id)
        delta = Decimal(delta or 0)

        if delta != 0:
            customer.balance = Decimal(customer.balance or 0) + delta
            logger.info(f"Saldo cliente {customer_id}: {delta:+} -> {customer.balance}")

        return customer

    @staticmethod
    def order_created(db: Session, order: Order) -> Customer:
        return BalanceLedger.apply_delta(db, order.customer_id, order.pending_amount)

    @staticmethod
    def order_deleted(db: Session, order: Order) -> Customer:
        return BalanceLedger.apply_delta(db, order.customer_id, -order.pending_amount)

    @staticmethod
    def order_updated(db: Session, customer_id: int, old_pending: Decimal, new_pending: Decimal) -> Customer:
        return BalanceLedger.apply_delta(db, customer_id, Decimal(new_pending) - Decimal(old_pending))

    @staticmethod
    def payment_created(db: Session, payment: Payment) -> Customer:
        return BalanceLedger.apply_delta(db, payment.customer_id, -Decimal(payment.amount))

    @staticmethod
    def payment_deleted(db: Session, payment: Payment) -> Customer:
        return BalanceLedger.apply_delta(db, payment.customer_id, Decimal(payment.amount))

    @staticmethod
    def compute_balance(db: Session, customer_id: int) -> Decimal:
        """saldo = Σ(total - pagado) de pedidos - Σ pagos"""
        db.flush()
        orders_pending = db.query(
            func.coalesce(func.sum(Order.total - Order.amount_paid), 0)
        ).filter(Order.customer_id == customer_id).scalar()

        payments_total = db.query(
            func.coalesce(func.sum(Payment.amount), 0)
        ).filter(Payment.customer_id == customer_id).scalar()

        return (Decimal(str(orders_pending)) - Decimal(str(payments_total))).quantize(Decimal('0.01'))

    @staticmethod
    def check_drift(db: Session, customer_id: int) -> Dict[str, Any]:
        """Comparar saldo incremental contra recálculo completo"""
        customer = db.query(Customer).filter(Customer.id == customer_id).first()
        if not customer:
            raise NotFoundError(f"Cliente {customer_id} no encontrado")

        stored = Decimal(customer.balance or 0).quantize(Decimal('0.01'))
        computed = BalanceLedger.compute_balance(db, customer_id)

        return {
            "customer_id": customer_id,
            "stored_balance": stored,
            "computed_balance": computed,
            "drift": stored - computed
        }

    @staticmethod
    def recompute(db: Session, customer_id: int) -> Customer:
        """Reparar el saldo con el recálculo completo"""
        customer = BalanceLedger._lock_customer(db, customer_id)
        computed = BalanceLedger.compute_balance(db, customer_id)

        if Decimal(customer.balance or 0) != computed:
            logger.warning(
                f"Corrigiendo saldo cliente {customer_id}: {customer.balance} -> {computed}"
            )
        customer.balance = computed
        return customer
