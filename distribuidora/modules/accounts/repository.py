# distribuidora/modules/accounts/repository.py
from decimal import Decimal
from typing import Any, Dict, List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session
import logging

from distribuidora.core.exceptions import NotFoundError, ValidationError
from distribuidora.shared.database.models import Customer, Order, Payment
from distribuidora.shared.database.transaction import atomic
from distribuidora.shared.services.balance_ledger import BalanceLedger

logger = logging.getLogger(__name__)

class AccountsRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_customer(self, customer_id: int) -> Optional[Customer]:
        return self.db.query(Customer).filter(Customer.id == customer_id).first()

    def get_payment(self, payment_id: int) -> Optional[Payment]:
        return self.db.query(Payment).filter(Payment.id == payment_id).first()

    def create_payment_atomic(self, payment_data: Dict[str, Any]) -> Payment:
        with atomic(self.db, f"Registrar pago cliente {payment_data['customer_id']}"):
            if not self.get_customer(payment_data['customer_id']):
                raise NotFoundError(f"Cliente {payment_data['customer_id']} no encontrado")

            order_id = payment_data.get('order_id')
            if order_id is not None:
                order = self.db.get(Order, order_id)
                if not order:
                    raise NotFoundError(f"Pedido {order_id} no encontrado")
                if order.customer_id != payment_data['customer_id']:
                    raise ValidationError(f"El pedido {order_id} no pertenece al cliente {payment_data['customer_id']}")

            payment = Payment(
                customer_id=payment_data['customer_id'],
                order_id=order_id,
                amount=Decimal(payment_data['amount']),
                method=payment_data['method'],
                reference=payment_data.get('reference'),
                notes=payment_data.get('notes'),
                user_id=payment_data.get('user_id')
            )
            self.db.add(payment)
            self.db.flush()

            BalanceLedger.payment_created(self.db, payment)
            logger.info(f"Pago #{payment.id} de {payment.amount} registrado")

        self.db.refresh(payment)
        return payment

    def delete_payment_atomic(self, payment_id: int) -> Customer:
        with atomic(self.db, f"Eliminar pago #{payment_id}"):
            payment = self.db.query(Payment).filter(
                Payment.id == payment_id
            ).with_for_update().first()
            if not payment:
                raise NotFoundError(f"Pago {payment_id} no encontrado")

            customer = BalanceLedger.payment_deleted(self.db, payment)
            self.db.delete(payment)

        self.db.refresh(customer)
        return customer

    def get_account_totals(self, customer_id: int) -> Dict[str, Any]:
        order_count, purchases_total, last_order_at = self.db.query(
            func.count(Order.id),
            func.coalesce(func.sum(Order.total), 0),
            func.max(Order.created_at)
        ).filter(Order.customer_id == customer_id).one()

        payments_total, last_payment_at = self.db.query(
            func.coalesce(func.sum(Payment.amount), 0),
            func.max(Payment.created_at)
        ).filter(Payment.customer_id == customer_id).one()

        return {
            "order_count": order_count,
            "purchases_total": Decimal(str(purchases_total)),
            "payments_total": Decimal(str(payments_total)),
            "last_order_at": last_order_at,
            "last_payment_at": last_payment_at
        }

    def get_unpaid_orders(self, customer_id: int) -> List[Order]:
        return self.db.query(Order).filter(
            Order.customer_id == customer_id,
            Order.payment_status != 'paid'
        ).order_by(Order.created_at.asc(), Order.id.asc()).all()

    def check_drift(self, customer_id: int) -> Dict[str, Any]:
        return BalanceLedger.check_drift(self.db, customer_id)

    def recompute_balance_atomic(self, customer_id: int) -> Dict[str, Any]:
        with atomic(self.db, f"Recalcular saldo cliente {customer_id}"):
            drift = BalanceLedger.check_drift(self.db, customer_id)
            BalanceLedger.recompute(self.db, customer_id)
        return drift
