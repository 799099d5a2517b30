# distribuidora/modules/delivery_exceptions/__init__.py
"""
Módulo de Salvedades - Diferencias de entrega por item

Este módulo maneja:
- Registro de salvedades con ajuste de item, total y saldo
- Devolución de stock según motivo
- Resolución y anulación (inverso exacto del registro)
- Estadísticas por motivo, producto y transportista

Arquitectura:
- router.py: Endpoints de salvedades
- service.py: Lógica de negocio y permisos
- repository.py: Transacciones sobre pedidos, stock y saldo
- schemas.py: Modelos de request/response
"""

from .router import router
from .service import DeliveryExceptionService
from .repository import DeliveryExceptionRepository

__all__ = [
    "router",
    "DeliveryExceptionService",
    "DeliveryExceptionRepository"
]
