# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI dependencies: database session, store, services and auth.

Example:
    @router.get("/classes/{class_id}/roster")
    async def roster(
        class_id: str,
        current_user: CurrentUser = Depends(require_auth),
        service: EnrollmentService = Depends(get_enrollment_service),
    ):
        ...
"""

import secrets
from typing import AsyncGenerator

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from classreg.api.middleware.auth import CurrentUser, get_current_user
from classreg.core.config import get_settings
from classreg.domains.class_ import ClassService
from classreg.domains.enrollment import EnrollmentService
from classreg.domains.exceptions import RegistrationError
from classreg.domains.payments import PaymentService
from classreg.infrastructure.database.connection import get_session
from classreg.infrastructure.database.store import RegistrationStore

WEBHOOK_SECRET_HEADER = "X-Webhook-Secret"

# Error code -> HTTP status
STATUS_BY_CODE = {
    "validation": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "duplicate": status.HTTP_409_CONFLICT,
    "blocked": status.HTTP_403_FORBIDDEN,
    "forbidden": status.HTTP_403_FORBIDDEN,
    "not_found": status.HTTP_404_NOT_FOUND,
    "store": status.HTTP_503_SERVICE_UNAVAILABLE,
}


# =========================================================================
# Database Dependencies
# =========================================================================


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get a database session for the request."""
    async with get_session() as session:
        yield session


def get_store(db: AsyncSession = Depends(get_db)) -> RegistrationStore:
    """Get the registration store bound to the request session."""
    return RegistrationStore(db)


def get_class_service(store: RegistrationStore = Depends(get_store)) -> ClassService:
    return ClassService(store, get_settings())


def get_enrollment_service(store: RegistrationStore = Depends(get_store)) -> EnrollmentService:
    return EnrollmentService(store, get_settings())


def get_payment_service(store: RegistrationStore = Depends(get_store)) -> PaymentService:
    return PaymentService(store, get_settings())


# =========================================================================
# Authentication Dependencies
# =========================================================================


def require_auth(request: Request) -> CurrentUser:
    """Require authenticated user.

    Raises:
        HTTPException: If not authenticated.
    """
    user = get_current_user(request)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return user


def require_admin(request: Request) -> CurrentUser:
    """Require admin or super admin user.

    Raises:
        HTTPException: If not authenticated or not admin.
    """
    user = require_auth(request)
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user


def require_webhook_secret(request: Request) -> None:
    """Require the shared payment webhook secret.

    Raises:
        HTTPException: 503 if no secret is configured, 401 if the header is
            missing or does not match.
    """
    expected = get_settings().payment.webhook_secret
    if expected is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Payment webhook is not configured",
        )

    provided = request.headers.get(WEBHOOK_SECRET_HEADER, "")
    if not secrets.compare_digest(provided.encode(), expected.get_secret_value().encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid webhook secret",
        )


# =========================================================================
# Error mapping
# =========================================================================


def status_for_code(code: str) -> int:
    """HTTP status for a domain error code."""
    return STATUS_BY_CODE.get(code, status.HTTP_400_BAD_REQUEST)


def to_http_exception(error: RegistrationError) -> HTTPException:
    """Translate a domain error into an HTTPException."""
    return HTTPException(
        status_code=status_for_code(error.code),
        detail={"code": error.code, "message": error.message},
    )
