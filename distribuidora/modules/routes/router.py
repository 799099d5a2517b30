# distribuidora/modules/routes/router.py
from fastapi import APIRouter, Depends, Path
from sqlalchemy.orm import Session

from distribuidora.config.database import get_db
from distribuidora.core.auth.dependencies import get_admin_actor, get_courier_actor
from .service import RouteService
from .schemas import RouteCreateRequest, RouteResponse

router = APIRouter()

@router.post("", response_model=RouteResponse, status_code=201)
async def create_route(
    request: RouteCreateRequest,
    actor = Depends(get_admin_actor),
    db: Session = Depends(get_db)
):
    """
    Crear recorrido de entrega

    - Calcula total facturado del recorrido
    - Asigna transportista y secuencia a cada pedido
    """
    service = RouteService(db)
    return await service.create_route(request, actor)

@router.get("/{route_id}", response_model=RouteResponse)
async def get_route(
    route_id: int = Path(..., description="ID del recorrido"),
    actor = Depends(get_courier_actor),
    db: Session = Depends(get_db)
):
    """Obtener recorrido con sus paradas"""
    service = RouteService(db)
    return await service.get_route(route_id, actor)
