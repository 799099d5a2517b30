# distribuidora/modules/cash_reconciliation/__init__.py
"""
Módulo de Rendiciones - Control de efectivo de transportistas

Este módulo maneja:
- Creación de rendiciones desde recorridos
- Presentación del monto rendido y diferencias
- Ajustes y justificaciones
- Revisión por administración y cierre del recorrido
- Estadísticas

Arquitectura:
- router.py: Endpoints de rendiciones
- service.py: Lógica de negocio
- repository.py: Acceso a datos y transiciones de estado
- schemas.py: Modelos de request/response
"""

from .router import router
from .service import CashReconciliationService
from .repository import CashReconciliationRepository

__all__ = [
    "router",
    "CashReconciliationService",
    "CashReconciliationRepository"
]
