# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Student block endpoints.

- /classes/{class_id}/blocks - Per-class blocks (class teacher or admin)
- /teachers/{teacher_id}/blocks - Blocks across all of a teacher's classes
  (that teacher or admin)
"""

from fastapi import APIRouter, Depends, status

from classreg.api.dependencies import get_enrollment_service, require_auth, to_http_exception
from classreg.api.middleware.auth import CurrentUser
from classreg.domains.enrollment import EnrollmentService
from classreg.domains.exceptions import RegistrationError
from classreg.models.enrollment import BlockRequest, BlockResponse

router = APIRouter()
teacher_router = APIRouter()


@router.post(
    "/{class_id}/blocks",
    response_model=BlockResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Block student",
)
async def block_student(
    class_id: str,
    data: BlockRequest,
    current_user: CurrentUser = Depends(require_auth),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> BlockResponse:
    """Block a student from the class (class teacher or admin)."""
    try:
        return await service.block_student(class_id, data, current_user)
    except RegistrationError as e:
        raise to_http_exception(e) from e


@router.get("/{class_id}/blocks", response_model=list[BlockResponse], summary="List blocks")
async def list_blocks(
    class_id: str,
    current_user: CurrentUser = Depends(require_auth),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> list[BlockResponse]:
    try:
        return await service.list_blocks(class_id, current_user)
    except RegistrationError as e:
        raise to_http_exception(e) from e


@router.delete(
    "/{class_id}/blocks/{student_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Unblock student",
)
async def unblock_student(
    class_id: str,
    student_id: str,
    current_user: CurrentUser = Depends(require_auth),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> None:
    try:
        await service.unblock_student(class_id, student_id, current_user)
    except RegistrationError as e:
        raise to_http_exception(e) from e


@teacher_router.post(
    "/{teacher_id}/blocks",
    response_model=BlockResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Block student from all of a teacher's classes",
)
async def block_student_teacher_wide(
    teacher_id: str,
    data: BlockRequest,
    current_user: CurrentUser = Depends(require_auth),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> BlockResponse:
    try:
        return await service.block_student_teacher_wide(teacher_id, data, current_user)
    except RegistrationError as e:
        raise to_http_exception(e) from e


@teacher_router.get(
    "/{teacher_id}/blocks",
    response_model=list[BlockResponse],
    summary="List teacher-wide blocks",
)
async def list_teacher_blocks(
    teacher_id: str,
    current_user: CurrentUser = Depends(require_auth),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> list[BlockResponse]:
    try:
        return await service.list_teacher_blocks(teacher_id, current_user)
    except RegistrationError as e:
        raise to_http_exception(e) from e


@teacher_router.delete(
    "/{teacher_id}/blocks/{student_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove teacher-wide block",
)
async def unblock_student_teacher_wide(
    teacher_id: str,
    student_id: str,
    current_user: CurrentUser = Depends(require_auth),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> None:
    try:
        await service.unblock_student_teacher_wide(teacher_id, student_id, current_user)
    except RegistrationError as e:
        raise to_http_exception(e) from e
