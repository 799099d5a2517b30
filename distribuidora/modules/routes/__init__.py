# distribuidora/modules/routes/__init__.py
"""
Módulo de Recorridos - Entregas diarias por transportista

Este módulo maneja:
- Armado de recorridos con secuencia de entrega
- Registro de entregas (contadores de pedidos entregados y cobrado)
- Consulta de recorridos

Arquitectura:
- router.py: Endpoints de recorridos
- service.py: Lógica de negocio de recorridos
- repository.py: Acceso a datos y registro de entregas
- schemas.py: Modelos de request/response
"""

from .router import router
from .service import RouteService
from .repository import RouteRepository

__all__ = [
    "router",
    "RouteService",
    "RouteRepository"
]
