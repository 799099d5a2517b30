# distribuidora/modules/routes/service.py
from decimal import Decimal
from sqlalchemy.orm import Session
import logging

from distribuidora.core.auth.schemas import Actor
from distribuidora.core.exceptions import NotFoundError, PermissionDeniedError
from distribuidora.shared.database.models import DeliveryRoute, Order
from .repository import RouteRepository
from .schemas import RouteCreateRequest, RouteInfo, RouteResponse, RouteStopInfo

logger = logging.getLogger(__name__)

class RouteService:
    def __init__(self, db: Session):
        self.db = db
        self.repository = RouteRepository(db)

    def _build_route_info(self, route: DeliveryRoute) -> RouteInfo:
        stops = []
        for stop in self.repository.get_route_orders(route.id):
            order = self.db.get(Order, stop.order_id)
            stops.append(RouteStopInfo(
                order_id=stop.order_id,
                delivery_sequence=stop.delivery_sequence,
                delivery_status=stop.delivery_status,
                delivered_at=stop.delivered_at,
                order_total=order.total if order else None
            ))

        return RouteInfo(
            id=route.id,
            courier_id=route.courier_id,
            route_date=route.route_date,
            status=route.status,
            distance_km=route.distance_km,
            duration_minutes=route.duration_minutes,
            total_orders=route.total_orders,
            delivered_orders=route.delivered_orders,
            total_invoiced=Decimal(route.total_invoiced or 0),
            total_collected=Decimal(route.total_collected or 0),
            completed_at=route.completed_at,
            stops=stops
        )

    async def create_route(self, request: RouteCreateRequest, actor: Actor) -> RouteResponse:
        """Armar recorrido del día para un transportista"""
        logger.info(f"Usuario {actor.id} crea recorrido para transportista {request.courier_id}")

        route = self.repository.create_route_atomic({
            'courier_id': request.courier_id,
            'orders': [stop.model_dump() for stop in request.orders],
            'distance_km': request.distance_km,
            'duration_minutes': request.duration_minutes,
            'notes': request.notes
        })

        return RouteResponse(
            success=True,
            message=f"Recorrido creado con {route.total_orders} pedidos",
            route=self._build_route_info(route)
        )

    async def get_route(self, route_id: int, actor: Actor) -> RouteResponse:
        route = self.repository.get_route(route_id)
        if not route:
            raise NotFoundError(f"Recorrido {route_id} no encontrado")

        if not actor.is_admin and route.courier_id != actor.id:
            raise PermissionDeniedError("Solo el transportista del recorrido puede consultarlo")

        return RouteResponse(
            success=True,
            message="Recorrido obtenido",
            route=self._build_route_info(route)
        )
