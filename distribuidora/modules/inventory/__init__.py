# distribuidora/modules/inventory/__init__.py
"""
Módulo de Inventario - Mantenimiento de stock y precios

Este módulo maneja:
- Mermas con baja atómica de stock
- Compras a proveedores con ingreso de stock
- Actualización masiva de precios
- Alertas de stock bajo

Arquitectura:
- router.py: Endpoints de inventario
- service.py: Lógica de negocio
- repository.py: Transacciones de stock
- schemas.py: Modelos de request/response
"""

from .router import router
from .service import InventoryService
from .repository import InventoryRepository

__all__ = [
    "router",
    "InventoryService",
    "InventoryRepository"
]
