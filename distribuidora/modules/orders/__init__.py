# distribuidora/modules/orders/__init__.py
"""
Módulo de Pedidos - Ciclo de vida completo

Este módulo maneja:
- Creación de pedidos con descuento atómico de stock
- Edición de items con movimiento de stock por diferencias
- Pagos, estados y asignación de transportista
- Eliminación con archivo y reversión de stock y saldo
- Historial de cambios

Arquitectura:
- router.py: Endpoints de pedidos
- service.py: Lógica de negocio de pedidos
- repository.py: Transacciones sobre pedidos, stock y cuenta corriente
- policy.py: Transiciones de estado permitidas
- schemas.py: Modelos de request/response
"""

from .router import router
from .service import OrderService
from .repository import OrdersRepository

__all__ = [
    "router",
    "OrderService",
    "OrdersRepository"
]
