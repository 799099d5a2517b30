# distribuidora/modules/accounts/service.py
from decimal import Decimal
from sqlalchemy.orm import Session
import logging

from distribuidora.core.auth.schemas import Actor
from distribuidora.core.exceptions import NotFoundError
from distribuidora.shared.database.models import Payment
from .repository import AccountsRepository
from .schemas import (
    AccountSummary, AccountSummaryResponse, BalanceDriftInfo, BalanceDriftResponse,
    PaymentCreateRequest, PaymentDeletedResponse, PaymentInfo, PaymentResponse,
    UnpaidOrderInfo
)

logger = logging.getLogger(__name__)

class AccountsService:
    def __init__(self, db: Session):
        self.db = db
        self.repository = AccountsRepository(db)

    @staticmethod
    def _payment_info(payment: Payment) -> PaymentInfo:
        return PaymentInfo(
            id=payment.id,
            customer_id=payment.customer_id,
            order_id=payment.order_id,
            amount=payment.amount,
            method=payment.method,
            reference=payment.reference,
            notes=payment.notes,
            user_id=payment.user_id,
            created_at=payment.created_at
        )

    async def create_payment(self, request: PaymentCreateRequest, actor: Actor) -> PaymentResponse:
        payment = self.repository.create_payment_atomic({
            'customer_id': request.customer_id,
            'order_id': request.order_id,
            'amount': request.amount,
            'method': request.method.value,
            'reference': request.reference,
            'notes': request.notes,
            'user_id': actor.id
        })
        customer = self.repository.get_customer(payment.customer_id)

        return PaymentResponse(
            success=True,
            message=f"Pago de {payment.amount} registrado",
            payment=self._payment_info(payment),
            customer_balance=customer.balance
        )

    async def delete_payment(self, payment_id: int, actor: Actor) -> PaymentDeletedResponse:
        logger.info(f"Usuario {actor.id} elimina pago #{payment_id}")
        customer = self.repository.delete_payment_atomic(payment_id)

        return PaymentDeletedResponse(
            success=True,
            message=f"Pago #{payment_id} eliminado",
            payment_id=payment_id,
            customer_balance=customer.balance
        )

    async def account_summary(self, customer_id: int) -> AccountSummaryResponse:
        """Resumen de cuenta corriente del cliente"""
        customer = self.repository.get_customer(customer_id)
        if not customer:
            raise NotFoundError(f"Cliente {customer_id} no encontrado")

        totals = self.repository.get_account_totals(customer_id)
        balance = Decimal(customer.balance or 0)
        credit_limit = Decimal(customer.credit_limit or 0)

        unpaid = [
            UnpaidOrderInfo(
                order_id=order.id,
                total=order.total,
                amount_paid=order.amount_paid,
                pending_amount=order.pending_amount,
                payment_status=order.payment_status,
                created_at=order.created_at
            )
            for order in self.repository.get_unpaid_orders(customer_id)
        ]

        return AccountSummaryResponse(
            success=True,
            message="Cuenta corriente obtenida",
            account=AccountSummary(
                customer_id=customer.id,
                customer_name=customer.trade_name,
                balance=balance,
                credit_limit=credit_limit,
                available_credit=credit_limit - balance,
                order_count=totals['order_count'],
                purchases_total=totals['purchases_total'],
                payments_total=totals['payments_total'],
                unpaid_orders=unpaid,
                last_order_at=totals['last_order_at'],
                last_payment_at=totals['last_payment_at']
            )
        )

    async def check_drift(self, customer_id: int) -> BalanceDriftResponse:
        drift = self.repository.check_drift(customer_id)
        return BalanceDriftResponse(
            success=True,
            message="Saldo consistente" if drift['drift'] == 0 else "Saldo con diferencias",
            drift=BalanceDriftInfo(**drift)
        )

    async def recompute_balance(self, customer_id: int, actor: Actor) -> BalanceDriftResponse:
        logger.info(f"Usuario {actor.id} recalcula saldo del cliente {customer_id}")
        drift = self.repository.recompute_balance_atomic(customer_id)
        return BalanceDriftResponse(
            success=True,
            message=f"Saldo recalculado: {drift['computed_balance']}",
            drift=BalanceDriftInfo(**drift),
            repaired=drift['drift'] != 0
        )
