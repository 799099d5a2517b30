# distribuidora/api/v1/router.py
from fastapi import APIRouter
from distribuidora.modules.orders.router import router as orders_router
from distribuidora.modules.accounts.router import router as accounts_router
from distribuidora.modules.delivery_exceptions.router import router as delivery_exceptions_router
from distribuidora.modules.routes.router import router as routes_router
from distribuidora.modules.cash_reconciliation.router import router as cash_reconciliation_router
from distribuidora.modules.inventory.router import router as inventory_router

# Crear router principal de la API v1
api_router = APIRouter()

api_router.include_router(
    orders_router,
    prefix="/orders",
    tags=["Orders"]
)

api_router.include_router(
    accounts_router,
    prefix="/accounts",
    tags=["Accounts"]
)

api_router.include_router(
    delivery_exceptions_router,
    prefix="/delivery-exceptions",
    tags=["Delivery Exceptions"]
)

api_router.include_router(
    routes_router,
    prefix="/routes",
    tags=["Delivery Routes"]
)

api_router.include_router(
    cash_reconciliation_router,
    prefix="/cash-reconciliations",
    tags=["Cash Reconciliations"]
)

api_router.include_router(
    inventory_router,
    prefix="/inventory",
    tags=["Inventory Management"]
)

@api_router.get("/")
async def api_root():
    """Root endpoint de la API"""
    return {
        "message": "Distribuidora API v1",
        "status": "active",
        "docs": "/docs",
        "available_endpoints": {
            "orders": "/api/v1/orders",
            "accounts": "/api/v1/accounts",
            "delivery_exceptions": "/api/v1/delivery-exceptions",
            "routes": "/api/v1/routes",
            "cash_reconciliations": "/api/v1/cash-reconciliations",
            "inventory": "/api/v1/inventory"
        }
    }
