# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Gateway identity middleware.

Authentication happens upstream in the API gateway, which forwards the
verified identity as headers. This middleware reads them and populates
request.state.user.

Example:
    GET /api/v1/classes/board
    X-User-Id: 6f1c...
    X-User-Role: parent
"""

import logging
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from classreg.models.actor import Actor
from classreg.models.common import ActorRole
from classreg.utils.logging import bind_context, clear_context

logger = logging.getLogger(__name__)

USER_ID_HEADER = "X-User-Id"
USER_ROLE_HEADER = "X-User-Role"

# Paths that don't require authentication
PUBLIC_PATHS = frozenset({
    "/",
    "/health",
    "/docs",
    "/redoc",
    "/openapi.json",
})

_KNOWN_ROLES = frozenset(r.value for r in ActorRole)


class CurrentUser(Actor):
    """Current authenticated user as forwarded by the gateway."""

    @classmethod
    def from_headers(cls, user_id: str | None, role: str | None) -> "CurrentUser | None":
        """Build a user from gateway headers.

        Returns:
            CurrentUser, or None when the id is missing or the role unknown.
        """
        if not user_id or not role:
            return None
        role = role.strip().lower()
        if role not in _KNOWN_ROLES:
            logger.warning("Unknown role in gateway header: %s", role)
            return None
        return cls(id=user_id.strip(), role=role)


def get_current_user(request: Request) -> CurrentUser | None:
    """Get the current user from request state.

    Args:
        request: HTTP request.

    Returns:
        CurrentUser or None if not authenticated.
    """
    return getattr(request.state, "user", None)


class GatewayAuthMiddleware(BaseHTTPMiddleware):
    """Populates request.state.user from gateway identity headers.

    Requests without identity continue with request.state.user = None and
    the endpoint's dependencies decide whether that is acceptable.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Response],
    ) -> Response:
        request.state.user = None
        clear_context()

        if request.url.path not in PUBLIC_PATHS:
            request.state.user = CurrentUser.from_headers(
                request.headers.get(USER_ID_HEADER),
                request.headers.get(USER_ROLE_HEADER),
            )
            if request.state.user is not None:
                bind_context(user_id=request.state.user.id, role=request.state.user.role)
                logger.debug("User authenticated: %s", request.state.user.id)

        return await call_next(request)
