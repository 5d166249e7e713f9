# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI Application Factory.

This module provides the main application factory for the classreg API.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from classreg import __version__
from classreg.api.middleware.auth import GatewayAuthMiddleware
from classreg.api.routes import health
from classreg.api.v1 import router as v1_router
from classreg.core.config import get_settings
from classreg.infrastructure.database.connection import close_database, init_database
from classreg.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Configures logging and opens the database pool on startup; closes the
    pool on shutdown.

    Args:
        app: The FastAPI application instance.

    Yields:
        None during application runtime.
    """
    settings = get_settings()
    setup_logging(settings)
    logger.info("api_starting", environment=settings.environment)

    try:
        await init_database(settings)
        logger.info("database_ready")
    except Exception as e:
        logger.warning("database_init_failed", error=str(e))

    yield

    try:
        await close_database()
        logger.info("database_closed")
    except Exception as e:
        logger.warning("database_close_failed", error=str(e))

    logger.info("api_stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.api.title,
        description="Class registration: admission, waitlist and scheduling",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
        redirect_slashes=False,
    )

    app.add_middleware(GatewayAuthMiddleware)

    app.include_router(health.router, tags=["Health"])
    app.include_router(v1_router)

    return app
