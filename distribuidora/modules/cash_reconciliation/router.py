# distribuidora/modules/cash_reconciliation/router.py
from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from distribuidora.config.database import get_db
from distribuidora.core.auth.dependencies import get_admin_actor, get_courier_actor
from .service import CashReconciliationService
from .schemas import (
    AdjustmentCreateRequest, AdjustmentResponse, ReconciliationCreateRequest,
    ReconciliationResponse, ReconciliationReviewRequest, ReconciliationStatisticsResponse,
    ReconciliationSubmitRequest, ReconciliationSubmitResponse
)

router = APIRouter()

@router.post("", response_model=ReconciliationResponse, status_code=201)
async def create_reconciliation(
    request: ReconciliationCreateRequest,
    actor = Depends(get_courier_actor),
    db: Session = Depends(get_db)
):
    """
    Crear rendición desde un recorrido

    - Una sola rendición por recorrido
    - Efectivo esperado y otros medios según pedidos entregados
    """
    service = CashReconciliationService(db)
    return await service.create_from_route(request, actor)

@router.get("/statistics", response_model=ReconciliationStatisticsResponse)
async def get_statistics(
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    courier_id: Optional[int] = Query(None),
    actor = Depends(get_admin_actor),
    db: Session = Depends(get_db)
):
    service = CashReconciliationService(db)
    return await service.get_statistics(date_from, date_to, courier_id)

@router.get("/{reconciliation_id}", response_model=ReconciliationResponse)
async def get_reconciliation(
    reconciliation_id: int = Path(..., description="ID de la rendición"),
    actor = Depends(get_courier_actor),
    db: Session = Depends(get_db)
):
    """Rendición con items y ajustes"""
    service = CashReconciliationService(db)
    return await service.get_reconciliation(reconciliation_id, actor)

@router.post("/{reconciliation_id}/submit", response_model=ReconciliationSubmitResponse)
async def submit_reconciliation(
    request: ReconciliationSubmitRequest,
    reconciliation_id: int = Path(..., description="ID de la rendición"),
    actor = Depends(get_courier_actor),
    db: Session = Depends(get_db)
):
    service = CashReconciliationService(db)
    return await service.submit(reconciliation_id, request, actor)

@router.post("/{reconciliation_id}/adjustments", response_model=AdjustmentResponse, status_code=201)
async def add_adjustment(
    request: AdjustmentCreateRequest,
    reconciliation_id: int = Path(..., description="ID de la rendición"),
    actor = Depends(get_courier_actor),
    db: Session = Depends(get_db)
):
    service = CashReconciliationService(db)
    return await service.add_adjustment(reconciliation_id, request, actor)

@router.post("/{reconciliation_id}/review", response_model=ReconciliationResponse)
async def review_reconciliation(
    request: ReconciliationReviewRequest,
    reconciliation_id: int = Path(..., description="ID de la rendición"),
    actor = Depends(get_admin_actor),
    db: Session = Depends(get_db)
):
    """Aprobar (cierra el recorrido), rechazar u observar"""
    service = CashReconciliationService(db)
    return await service.review(reconciliation_id, request, actor)
