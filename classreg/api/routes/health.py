# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Health check endpoint."""

import time
from datetime import datetime

from fastapi import APIRouter
from pydantic import BaseModel, Field

from classreg import __version__
from classreg.core.config import get_settings
from classreg.infrastructure.database.connection import check_database_connection
from classreg.utils.datetime import utc_now

router = APIRouter()

_server_start_time = time.time()


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(description="Overall health status")
    timestamp: datetime = Field(description="Current server timestamp")
    version: str = Field(description="API version")
    environment: str = Field(description="Deployment environment")
    uptime_seconds: int = Field(description="Server uptime in seconds")
    database: str = Field(description="Database status")


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Liveness check with database reachability."""
    settings = get_settings()
    database_ok = await check_database_connection()
    return HealthResponse(
        status="healthy" if database_ok else "degraded",
        timestamp=utc_now(),
        version=__version__,
        environment=settings.environment,
        uptime_seconds=int(time.time() - _server_start_time),
        database="healthy" if database_ok else "unavailable",
    )
