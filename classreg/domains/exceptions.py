# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Error taxonomy shared by the registration domains.

Every error carries a stable ``code`` so the HTTP layer and the admission
result contract can report a specific reason instead of a generic failure.
"""

from __future__ import annotations

from typing import Any


class RegistrationError(Exception):
    """Base exception for registration domain errors.

    Attributes:
        message: Human-readable error description.
        code: Stable machine-readable error code.
        context: Extra structured data about the failure.
    """

    code = "error"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        return self.message


# =============================================================================
# Validation
# =============================================================================


class ValidationError(RegistrationError):
    """Raised when a request is rejected before any write."""

    code = "validation"


class MissingFieldError(ValidationError):
    """Raised when a required schedule field is absent."""

    def __init__(self, field: str) -> None:
        super().__init__(f"{field.capitalize()} is required", field=field)
        self.field = field


class InvalidDayError(ValidationError):
    """Raised when a day is outside the legal day patterns."""

    def __init__(self, day: str) -> None:
        super().__init__(
            "Classes can only be scheduled on Tuesday/Thursday, Tuesday only, "
            "Wednesday only, or Thursday only",
            day=day,
        )
        self.day = day


class InvalidBlockError(ValidationError):
    """Raised when a block is outside Blocks 1-5 (Lunch included)."""

    def __init__(self, block: str) -> None:
        super().__init__("Classes can only be scheduled in Blocks 1-5", block=block)
        self.block = block


class ScheduleConflictError(ValidationError):
    """Raised when a slot collides with another active offering."""

    def __init__(self, scope: str, conflicting_id: str, conflicting_name: str, day: str, block: str) -> None:
        label = "Teacher" if scope == "teacher" else "Room"
        super().__init__(
            f"{label} Conflict: {conflicting_name} at {day} {block}",
            scope=scope,
            conflicting_id=conflicting_id,
        )
        self.scope = scope
        self.conflicting_id = conflicting_id


class InvalidTransitionError(ValidationError):
    """Raised when a lifecycle transition is not allowed from the current status."""

    pass


class ClassNotOpenError(ValidationError):
    """Raised when a class is not accepting enrollments."""

    pass


class NotAStudentError(ValidationError):
    """Raised when the family member is not a student."""

    pass


class RegistrationClosedError(ValidationError):
    """Raised when a request falls outside the registration window."""

    pass


# =============================================================================
# Admission outcomes
# =============================================================================


class DuplicateEnrollmentError(RegistrationError):
    """Raised when a non-cancelled enrollment already exists for the pair."""

    code = "duplicate"

    def __init__(self, enrollment_id: str | None = None, status: str | None = None) -> None:
        super().__init__(
            "Student is already enrolled in this class",
            enrollment_id=enrollment_id,
            status=status,
        )
        self.enrollment_id = enrollment_id
        self.status = status


class StudentBlockedError(RegistrationError):
    """Raised when a student is barred from enrolling in a class."""

    code = "blocked"


# =============================================================================
# Lookup
# =============================================================================


class NotFoundError(RegistrationError):
    """Raised when an id does not resolve."""

    code = "not_found"


class ClassNotFoundError(NotFoundError):
    """Raised when class is not found."""

    pass


class StudentNotFoundError(NotFoundError):
    """Raised when student is not found."""

    pass


class EnrollmentNotFoundError(NotFoundError):
    """Raised when enrollment is not found."""

    pass


class PaymentNotFoundError(NotFoundError):
    """Raised when payment is not found."""

    pass


class BlockNotFoundError(NotFoundError):
    """Raised when block is not found."""

    pass


# =============================================================================
# Access and storage
# =============================================================================


class AuthorizationError(RegistrationError):
    """Raised when the actor lacks permission for the requested transition."""

    code = "forbidden"


class StoreError(RegistrationError):
    """Raised when an underlying read or write fails.

    Attributes:
        original_error: The SQLAlchemy error that caused this failure.
    """

    code = "store"

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        super().__init__(message)
        self.original_error = original_error

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message
