# distribuidora/modules/accounts/router.py
from fastapi import APIRouter, Depends, Path
from sqlalchemy.orm import Session

from distribuidora.config.database import get_db
from distribuidora.core.auth.dependencies import get_admin_actor, get_staff_actor
from .service import AccountsService
from .schemas import (
    AccountSummaryResponse, BalanceDriftResponse, PaymentCreateRequest,
    PaymentDeletedResponse, PaymentResponse
)

router = APIRouter()

@router.post("/payments", response_model=PaymentResponse, status_code=201)
async def create_payment(
    request: PaymentCreateRequest,
    actor = Depends(get_staff_actor),
    db: Session = Depends(get_db)
):
    """Registrar pago de cliente (descuenta de la cuenta corriente)"""
    service = AccountsService(db)
    return await service.create_payment(request, actor)

@router.delete("/payments/{payment_id}", response_model=PaymentDeletedResponse)
async def delete_payment(
    payment_id: int = Path(..., description="ID del pago"),
    actor = Depends(get_admin_actor),
    db: Session = Depends(get_db)
):
    service = AccountsService(db)
    return await service.delete_payment(payment_id, actor)

@router.get("/customers/{customer_id}", response_model=AccountSummaryResponse)
async def account_summary(
    customer_id: int = Path(..., description="ID del cliente"),
    actor = Depends(get_staff_actor),
    db: Session = Depends(get_db)
):
    """
    Resumen de cuenta corriente

    Saldo, límite y crédito disponible, totales y pedidos impagos.
    """
    service = AccountsService(db)
    return await service.account_summary(customer_id)

@router.get("/customers/{customer_id}/drift", response_model=BalanceDriftResponse)
async def check_drift(
    customer_id: int = Path(..., description="ID del cliente"),
    actor = Depends(get_admin_actor),
    db: Session = Depends(get_db)
):
    """Comparar saldo almacenado contra recálculo completo"""
    service = AccountsService(db)
    return await service.check_drift(customer_id)

@router.post("/customers/{customer_id}/recompute", response_model=BalanceDriftResponse)
async def recompute_balance(
    customer_id: int = Path(..., description="ID del cliente"),
    actor = Depends(get_admin_actor),
    db: Session = Depends(get_db)
):
    service = AccountsService(db)
    return await service.recompute_balance(customer_id, actor)
