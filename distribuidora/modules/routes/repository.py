# distribuidora/modules/routes/repository.py
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
import logging

from distribuidora.config.settings import settings
from distribuidora.core.exceptions import NotFoundError, ValidationError
from distribuidora.shared.database.models import DeliveryRoute, DeliveryRouteOrder, Order, User
from distribuidora.shared.database.transaction import atomic

logger = logging.getLogger(__name__)

class RouteRepository:
    def __init__(self, db: Session):
        self.db = db

    def create_route_atomic(self, route_data: Dict[str, Any]) -> DeliveryRoute:
        """
        Crear recorrido con sus pedidos en una transacción.

        total_invoiced = suma de totales; cada pedido toma el transportista
        y la secuencia del recorrido.
        """
        with atomic(self.db, f"Crear recorrido transportista {route_data['courier_id']}"):
            courier = self.db.get(User, route_data['courier_id'])
            if not courier or courier.role != settings.courier_role:
                raise NotFoundError(f"Transportista {route_data['courier_id']} no encontrado")

            order_ids = [stop['order_id'] for stop in route_data['orders']]
            orders = {
                order.id: order for order in self.db.query(Order).filter(
                    Order.id.in_(order_ids)
                ).order_by(Order.id).with_for_update().all()
            }

            missing = [f"Pedido {order_id} no encontrado" for order_id in order_ids if order_id not in orders]
            if missing:
                raise NotFoundError(missing, message="Pedidos no encontrados")

            already_delivered = [
                f"Pedido {order_id} ya fue entregado"
                for order_id in order_ids if orders[order_id].status == 'delivered'
            ]
            if already_delivered:
                raise ValidationError(already_delivered, message="Pedidos no asignables")

            route = DeliveryRoute(
                courier_id=courier.id,
                route_date=route_data.get('route_date') or date.today(),
                distance_km=route_data.get('distance_km'),
                duration_minutes=route_data.get('duration_minutes'),
                total_orders=len(order_ids),
                delivered_orders=0,
                total_invoiced=sum((Decimal(o.total) for o in orders.values()), Decimal('0')),
                total_collected=Decimal('0'),
                status='in_progress',
                notes=route_data.get('notes')
            )
            self.db.add(route)
            self.db.flush()

            for stop in route_data['orders']:
                order = orders[stop['order_id']]
                order.courier_id = courier.id
                order.delivery_sequence = stop['delivery_sequence']
                self.db.add(DeliveryRouteOrder(
                    route_id=route.id,
                    order_id=order.id,
                    delivery_sequence=stop['delivery_sequence'],
                    delivery_status='pending'
                ))

            logger.info(f"Recorrido #{route.id} con {len(order_ids)} pedidos")

        self.db.refresh(route)
        return route

    def _active_stop(self, order_id: int) -> Optional[DeliveryRouteOrder]:
        return self.db.query(DeliveryRouteOrder).join(
            DeliveryRoute, DeliveryRouteOrder.route_id == DeliveryRoute.id
        ).filter(
            DeliveryRouteOrder.order_id == order_id,
            DeliveryRoute.status == 'in_progress'
        ).order_by(DeliveryRoute.id.desc()).first()

    def refresh_totals(self, route_id: int) -> DeliveryRoute:
        """
        Recalcular contadores del recorrido desde sus paradas.

        total_invoiced = Σ totales de los pedidos del recorrido;
        total_collected = Σ cobrado de las paradas entregadas.
        """
        route = self.db.query(DeliveryRoute).filter(
            DeliveryRoute.id == route_id
        ).with_for_update().one()
        self.db.flush()

        rows = self.db.query(
            DeliveryRouteOrder.delivery_status, Order.total, Order.amount_paid
        ).join(
            Order, Order.id == DeliveryRouteOrder.order_id
        ).filter(DeliveryRouteOrder.route_id == route_id).all()

        delivered = [row for row in rows if row.delivery_status == 'delivered']
        route.total_orders = len(rows)
        route.delivered_orders = len(delivered)
        route.total_invoiced = sum((Decimal(row.total or 0) for row in rows), Decimal('0'))
        route.total_collected = sum((Decimal(row.amount_paid or 0) for row in delivered), Decimal('0'))
        return route

    def sync_order(self, order: Order) -> int:
        """Actualizar los recorridos del pedido tras cambiar su total o lo cobrado. No hace commit."""
        self.db.flush()
        route_ids = [
            route_id for (route_id,) in self.db.query(DeliveryRouteOrder.route_id).filter(
                DeliveryRouteOrder.order_id == order.id
            ).distinct().all()
        ]
        for route_id in route_ids:
            self.refresh_totals(route_id)
        return len(route_ids)

    def register_delivery(self, order: Order) -> Optional[DeliveryRoute]:
        """
        Marcar la parada del pedido como entregada y actualizar contadores
        del recorrido en curso. No hace commit.
        """
        stop = self._active_stop(order.id)
        if stop is None or stop.delivery_status == 'delivered':
            return None

        stop.delivery_status = 'delivered'
        stop.delivered_at = order.delivered_at or datetime.now()
        route = self.refresh_totals(stop.route_id)

        logger.info(f"Recorrido #{route.id}: pedido {order.id} entregado")
        return route

    def revert_delivery(self, order: Order) -> Optional[DeliveryRoute]:
        """Inverso de register_delivery cuando el pedido sale de delivered"""
        stop = self._active_stop(order.id)
        if stop is None or stop.delivery_status != 'delivered':
            return None

        stop.delivery_status = 'pending'
        stop.delivered_at = None
        return self.refresh_totals(stop.route_id)

    def remove_order_links(self, order: Order) -> int:
        """Quitar el pedido de todos sus recorridos (eliminación de pedido)"""
        stops = self.db.query(DeliveryRouteOrder).filter(
            DeliveryRouteOrder.order_id == order.id
        ).all()
        route_ids = {stop.route_id for stop in stops}

        for stop in stops:
            self.db.delete(stop)
        for route_id in sorted(route_ids):
            self.refresh_totals(route_id)

        return len(stops)

    def get_route(self, route_id: int) -> Optional[DeliveryRoute]:
        return self.db.query(DeliveryRoute).filter(DeliveryRoute.id == route_id).first()

    def get_route_orders(self, route_id: int) -> List[DeliveryRouteOrder]:
        return self.db.query(DeliveryRouteOrder).filter(
            DeliveryRouteOrder.route_id == route_id
        ).order_by(DeliveryRouteOrder.delivery_sequence).all()
