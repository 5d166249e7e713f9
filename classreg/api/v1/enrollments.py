# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment API endpoints.

- POST / - Request a seat (admission result for every outcome)
- POST /force - Admin force-enroll
- POST /{enrollment_id}/cancel - Cancel (owner or admin)
- POST /{enrollment_id}/refund - Admin refund of the completed payment
- DELETE /{enrollment_id} - Admin hard delete
- GET /students/{student_id} - Enrollments of a student
"""

import logging

from fastapi import APIRouter, Depends, Response, status

from classreg.api.dependencies import (
    get_enrollment_service,
    get_payment_service,
    require_admin,
    require_auth,
    status_for_code,
    to_http_exception,
)
from classreg.api.middleware.auth import CurrentUser
from classreg.domains.enrollment import EnrollmentService
from classreg.domains.exceptions import RegistrationError
from classreg.domains.payments import PaymentService
from classreg.models.enrollment import (
    AdmissionResult,
    EnrollmentResponse,
    EnrollStudentRequest,
    ForceEnrollRequest,
    PaymentResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "",
    response_model=AdmissionResult,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll student",
    description="Admit, waitlist or reject an enrollment request.",
)
async def enroll_student(
    data: EnrollStudentRequest,
    response: Response,
    current_user: CurrentUser = Depends(require_auth),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> AdmissionResult:
    """Request a seat.

    The body is always an AdmissionResult. Rejections carry ``error`` and
    ``error_code`` and use the matching HTTP status.
    """
    result = await service.enroll_student(data, current_user)
    if result.error_code is not None:
        response.status_code = status_for_code(result.error_code)
    return result


@router.post(
    "/force",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Force-enroll student",
)
async def force_enroll(
    data: ForceEnrollRequest,
    current_user: CurrentUser = Depends(require_admin),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> EnrollmentResponse:
    """Seat a student as confirmed regardless of capacity and blocks."""
    logger.info(
        "Force-enroll: student=%s, class=%s, by=%s",
        data.student_id,
        data.class_id,
        current_user.id,
    )
    try:
        return await service.force_enroll(data, current_user)
    except RegistrationError as e:
        raise to_http_exception(e) from e


@router.post(
    "/{enrollment_id}/cancel",
    response_model=EnrollmentResponse,
    summary="Cancel enrollment",
)
async def cancel_enrollment(
    enrollment_id: str,
    current_user: CurrentUser = Depends(require_auth),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> EnrollmentResponse:
    """Cancel an enrollment and promote from the waitlist."""
    try:
        return await service.cancel_enrollment(enrollment_id, current_user)
    except RegistrationError as e:
        raise to_http_exception(e) from e


@router.post(
    "/{enrollment_id}/refund",
    response_model=PaymentResponse,
    summary="Refund enrollment",
)
async def refund_enrollment(
    enrollment_id: str,
    current_user: CurrentUser = Depends(require_admin),
    service: PaymentService = Depends(get_payment_service),
) -> PaymentResponse:
    """Refund the completed payment, cancel the seat and promote from the waitlist."""
    try:
        return await service.refund_enrollment(enrollment_id, current_user)
    except RegistrationError as e:
        raise to_http_exception(e) from e


@router.delete(
    "/{enrollment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete enrollment",
)
async def delete_enrollment(
    enrollment_id: str,
    current_user: CurrentUser = Depends(require_admin),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> None:
    try:
        await service.admin_delete_enrollment(enrollment_id, current_user)
    except RegistrationError as e:
        raise to_http_exception(e) from e


@router.get(
    "/students/{student_id}",
    response_model=list[EnrollmentResponse],
    summary="List student enrollments",
)
async def list_student_enrollments(
    student_id: str,
    current_user: CurrentUser = Depends(require_auth),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> list[EnrollmentResponse]:
    try:
        return await service.list_student_enrollments(student_id, current_user)
    except RegistrationError as e:
        raise to_http_exception(e) from e
