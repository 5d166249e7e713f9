# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Class management API endpoints.

This module provides endpoints for class offering management:
- POST / - Create a draft class
- GET /board - Schedule board with conflict indicators
- GET /{class_id} - Get class details with seat counts
- PATCH /{class_id} - Update class
- DELETE /{class_id} - Delete a draft class
- POST /{class_id}/publish - Open for enrollment
- POST /{class_id}/cancel - Soft-cancel
- POST /{class_id}/complete - Mark completed

Roster endpoints:
- GET /{class_id}/roster - Seated students and waitlist
- POST /{class_id}/reconcile - Demote over-admitted pending rows (admin)
"""

import logging

from fastapi import APIRouter, Depends, status

from classreg.api.dependencies import (
    get_class_service,
    get_enrollment_service,
    require_admin,
    require_auth,
    to_http_exception,
)
from classreg.api.middleware.auth import CurrentUser
from classreg.domains.class_ import ClassService
from classreg.domains.enrollment import EnrollmentService
from classreg.domains.exceptions import RegistrationError
from classreg.models.class_ import (
    ClassCreateRequest,
    ClassResponse,
    ClassUpdateRequest,
    ScheduleBoard,
)
from classreg.models.enrollment import ClassRoster, EnrollmentResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "",
    response_model=ClassResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create class",
)
async def create_class(
    data: ClassCreateRequest,
    current_user: CurrentUser = Depends(require_auth),
    service: ClassService = Depends(get_class_service),
) -> ClassResponse:
    """Create a draft class after validating its slot and conflicts."""
    logger.info("Creating class: %s by %s", data.name, current_user.id)
    try:
        return await service.create_class(data, current_user)
    except RegistrationError as e:
        raise to_http_exception(e) from e


@router.get("/board", response_model=ScheduleBoard, summary="Schedule board")
async def schedule_board(
    current_user: CurrentUser = Depends(require_auth),
    service: ClassService = Depends(get_class_service),
) -> ScheduleBoard:
    """All active classes with the ids that collide on teacher or room."""
    try:
        return await service.schedule_board()
    except RegistrationError as e:
        raise to_http_exception(e) from e


@router.get("/{class_id}", response_model=ClassResponse, summary="Get class")
async def get_class(
    class_id: str,
    current_user: CurrentUser = Depends(require_auth),
    service: ClassService = Depends(get_class_service),
) -> ClassResponse:
    try:
        return await service.get_class(class_id)
    except RegistrationError as e:
        raise to_http_exception(e) from e


@router.patch("/{class_id}", response_model=ClassResponse, summary="Update class")
async def update_class(
    class_id: str,
    data: ClassUpdateRequest,
    current_user: CurrentUser = Depends(require_auth),
    service: ClassService = Depends(get_class_service),
) -> ClassResponse:
    try:
        return await service.update_class(class_id, data, current_user)
    except RegistrationError as e:
        raise to_http_exception(e) from e


@router.delete(
    "/{class_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete draft class",
)
async def delete_class(
    class_id: str,
    current_user: CurrentUser = Depends(require_auth),
    service: ClassService = Depends(get_class_service),
) -> None:
    try:
        await service.delete_class(class_id, current_user)
    except RegistrationError as e:
        raise to_http_exception(e) from e


@router.post("/{class_id}/publish", response_model=ClassResponse, summary="Publish class")
async def publish_class(
    class_id: str,
    current_user: CurrentUser = Depends(require_auth),
    service: ClassService = Depends(get_class_service),
) -> ClassResponse:
    try:
        return await service.publish_class(class_id, current_user)
    except RegistrationError as e:
        raise to_http_exception(e) from e


@router.post("/{class_id}/cancel", response_model=ClassResponse, summary="Cancel class")
async def cancel_class(
    class_id: str,
    current_user: CurrentUser = Depends(require_auth),
    service: ClassService = Depends(get_class_service),
) -> ClassResponse:
    try:
        return await service.cancel_class(class_id, current_user)
    except RegistrationError as e:
        raise to_http_exception(e) from e


@router.post("/{class_id}/complete", response_model=ClassResponse, summary="Complete class")
async def complete_class(
    class_id: str,
    current_user: CurrentUser = Depends(require_auth),
    service: ClassService = Depends(get_class_service),
) -> ClassResponse:
    try:
        return await service.complete_class(class_id, current_user)
    except RegistrationError as e:
        raise to_http_exception(e) from e


@router.get("/{class_id}/roster", response_model=ClassRoster, summary="Class roster")
async def get_roster(
    class_id: str,
    current_user: CurrentUser = Depends(require_auth),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> ClassRoster:
    """Roster for the class teacher, schedulers and admins."""
    try:
        return await service.get_class_roster(class_id, current_user)
    except RegistrationError as e:
        raise to_http_exception(e) from e


@router.post(
    "/{class_id}/reconcile",
    response_model=list[EnrollmentResponse],
    summary="Reconcile over-admission",
)
async def reconcile_class(
    class_id: str,
    current_user: CurrentUser = Depends(require_admin),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> list[EnrollmentResponse]:
    """Demote excess pending enrollments back to the waitlist."""
    try:
        return await service.reconcile_class(class_id, current_user)
    except RegistrationError as e:
        raise to_http_exception(e) from e
