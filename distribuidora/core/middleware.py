# distribuidora/core/middleware.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import time
import logging

from distribuidora.config.settings import settings

logger = logging.getLogger(__name__)

def setup_middleware(app: FastAPI):
    """Configure all middleware for the application"""

    origins = [origin.strip() for origin in settings.allowed_origins.split(",")] if settings.allowed_origins else ["*"]

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request, call_next):
        start_time = time.time()

        response = await call_next(request)

        process_time = time.time() - start_time
        logger.info(
            f"{request.method} {request.url.path} - "
            f"Status: {response.status_code} - "
            f"Time: {process_time:.4f}s"
        )

        return response
