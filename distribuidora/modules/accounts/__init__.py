# distribuidora/modules/accounts/__init__.py
"""
Módulo de Cuentas Corrientes

Este módulo maneja:
- Registro y eliminación de pagos de clientes
- Resumen de cuenta corriente
- Control y reparación de diferencias de saldo

Arquitectura:
- router.py: Endpoints de cuentas
- service.py: Lógica de negocio
- repository.py: Acceso a datos de pagos y saldos
- schemas.py: Modelos de request/response
"""

from .router import router
from .service import AccountsService
from .repository import AccountsRepository

__all__ = [
    "router",
    "AccountsService",
    "AccountsRepository"
]
