import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from azure_lens.api import chat, health, storage, translation, vision
from azure_lens.api.errors import now_iso, register_error_handlers
from azure_lens.api.middleware import (
    FixedWindowRateLimiter,
    default_rate_limiter,
    register_middleware,
)
from azure_lens.core import config
from azure_lens.core.clients import initialize_azure_clients
from azure_lens.core.logger import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(config.LOG_LEVEL, config.LOG_FILE)
    initialize_azure_clients()
    logger.info("%s starting on port %s", config.APP_NAME, config.PORT)
    logger.info("Environment: %s", config.ENVIRONMENT)

    yield

    logger.info("Shutdown signal received, shutting down gracefully...")


def create_app(
    rate_limiter: Optional[FixedWindowRateLimiter] = None, use_lifespan: bool = True
) -> FastAPI:
    app = FastAPI(
        title=config.APP_NAME,
        description="Azure Lens backend API service with AI capabilities",
        version=config.APP_VERSION,
        lifespan=lifespan if use_lifespan else None,
    )

    app.state.rate_limiter = rate_limiter or default_rate_limiter()

    app.add_middleware(GZipMiddleware, minimum_size=1000)
    register_middleware(app, app.state.rate_limiter)
    # Outermost, so preflights skip the limiter and 429s carry CORS headers
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    )
    register_error_handlers(app)

    # Include API routes
    app.include_router(health.router, prefix="/health", tags=["health"])
    app.include_router(vision.router, prefix="/api/vision", tags=["vision"])
    app.include_router(translation.router, prefix="/api/translation", tags=["translation"])
    app.include_router(chat.router, prefix="/api/chat", tags=["chat"])
    app.include_router(storage.router, prefix="/api/storage", tags=["storage"])

    # Legacy route for backward compatibility
    app.include_router(vision.router, prefix="/analyze", include_in_schema=False)

    @app.get("/")
    async def root():
        return {
            "name": config.APP_NAME,
            "version": config.APP_VERSION,
            "status": "running",
            "timestamp": now_iso(),
            "endpoints": {
                "health": "/health",
                "vision": "/api/vision",
                "translation": "/api/translation",
                "chat": "/api/chat",
            },
        }

    return app


app = create_app()
