# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment, block and payment webhook models."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from classreg.models.common import AdmissionStatus, EnrollmentStatus


class EnrollStudentRequest(BaseModel):
    """Request to enroll a student in a class."""

    student_id: str
    class_id: str


class ForceEnrollRequest(BaseModel):
    """Admin request to enroll a student regardless of capacity and blocks."""

    student_id: str
    class_id: str
    reason: str | None = Field(None, max_length=500)


class EnrollmentResponse(BaseModel):
    """A single enrollment row."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    student_id: str
    class_id: str
    status: EnrollmentStatus
    waitlist_position: int | None = None
    is_override: bool = False
    override_by: str | None = None
    created_at: datetime
    updated_at: datetime


class AdmissionResult(BaseModel):
    """Outcome of an admission request.

    ``status`` is set for every decided outcome (confirmed, pending,
    waitlisted, blocked). ``error`` and ``error_code`` are set when the
    request was rejected.
    """

    status: AdmissionStatus | None = None
    enrollment: EnrollmentResponse | None = None
    error: str | None = None
    error_code: str | None = None

    @property
    def ok(self) -> bool:
        return self.enrollment is not None


class StudentSummary(BaseModel):
    """Student fields shown on a roster."""

    id: str
    first_name: str
    last_name: str
    full_name: str
    parent_id: str


class ClassSummary(BaseModel):
    """Class fields shown next to an enrollment."""

    id: str
    name: str
    day: str
    block: str
    teacher_id: str
    location: str | None = None


class EnrollmentWithStudentAndClass(BaseModel):
    """Enrollment joined with its student and class."""

    enrollment: EnrollmentResponse
    student: StudentSummary
    class_: ClassSummary = Field(..., alias="class", serialization_alias="class")
    is_blocked: bool = False

    model_config = ConfigDict(populate_by_name=True)


class ClassRoster(BaseModel):
    """Roster of a class grouped by status."""

    class_id: str
    capacity: int
    enrolled: list[EnrollmentWithStudentAndClass]
    waitlisted: list[EnrollmentWithStudentAndClass]
    demoted: int = 0


class BlockRequest(BaseModel):
    """Request to block a student from a class."""

    student_id: str
    reason: str | None = Field(None, max_length=500)


class BlockResponse(BaseModel):
    """A block record."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    class_id: str | None = None
    teacher_id: str | None = None
    student_id: str
    reason: str | None = None
    created_by: str | None = None
    created_at: datetime


class PaymentWebhookEvent(BaseModel):
    """Payment processor callback, authenticated by the shared webhook secret."""

    type: Literal["payment.completed", "payment.refunded"]
    enrollment_id: str
    external_id: str | None = None


class PaymentResponse(BaseModel):
    """A payment row after a webhook was applied."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    enrollment_id: str
    amount: int
    status: str
    external_id: str | None = None
