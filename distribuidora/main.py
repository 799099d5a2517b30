# distribuidora/main.py
import logging
from fastapi import FastAPI
from contextlib import asynccontextmanager

from distribuidora.config.settings import settings
from distribuidora.core.exceptions import DomainError, domain_error_handler
from distribuidora.core.middleware import setup_middleware
from distribuidora.api.v1.router import api_router

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"{settings.app_name} iniciando - versión {settings.version}")
    logger.info(f"Entorno: {'Development' if settings.debug else 'Production'}")
    logger.info(f"Política de estados de pedidos: {settings.order_status_policy}")
    logger.info(f"Database: {settings.database_url.split('@')[1] if '@' in settings.database_url else settings.database_url}")

    yield

    # Shutdown
    logger.info(f"{settings.app_name} detenida")

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="Pedidos, stock, cuentas corrientes, salvedades y rendiciones de una distribuidora",
    docs_url="/docs",
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan
)

# Setup middleware
setup_middleware(app)

# Errores de negocio -> ErrorResponse
app.add_exception_handler(DomainError, domain_error_handler)

# Include routers
app.include_router(api_router, prefix="/api/v1")

@app.get("/")
async def root():
    return {
        "message": settings.app_name,
        "version": settings.version,
        "status": "running",
        "environment": "production" if not settings.debug else "development",
        "docs": "/docs",
        "api": "/api/v1"
    }

@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "version": settings.version,
        "app": settings.app_name,
        "environment": "production" if not settings.debug else "development"
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "distribuidora.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
