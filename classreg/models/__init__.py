# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pydantic request/response models and shared enumerations."""

from classreg.models.actor import Actor
from classreg.models.class_ import (
    ClassCreateRequest,
    ClassResponse,
    ClassUpdateRequest,
    ScheduleBoard,
)
from classreg.models.common import (
    ActorRole,
    AdmissionStatus,
    ClassStatus,
    EnrollmentStatus,
    PaymentStatus,
)
from classreg.models.enrollment import (
    AdmissionResult,
    BlockRequest,
    BlockResponse,
    ClassRoster,
    ClassSummary,
    EnrollmentResponse,
    EnrollmentWithStudentAndClass,
    EnrollStudentRequest,
    ForceEnrollRequest,
    PaymentResponse,
    PaymentWebhookEvent,
    StudentSummary,
)

__all__ = [
    "Actor",
    "ActorRole",
    "AdmissionStatus",
    "ClassStatus",
    "EnrollmentStatus",
    "PaymentStatus",
    "ClassCreateRequest",
    "ClassResponse",
    "ClassUpdateRequest",
    "ScheduleBoard",
    "AdmissionResult",
    "BlockRequest",
    "BlockResponse",
    "ClassRoster",
    "ClassSummary",
    "EnrollmentResponse",
    "EnrollmentWithStudentAndClass",
    "EnrollStudentRequest",
    "ForceEnrollRequest",
    "PaymentResponse",
    "PaymentWebhookEvent",
    "StudentSummary",
]
