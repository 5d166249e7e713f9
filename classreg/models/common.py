# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Shared enumerations used by ORM models, DTOs and services."""

from enum import Enum


class ClassStatus(str, Enum):
    """Lifecycle status of a class offering."""

    DRAFT = "draft"
    PUBLISHED = "published"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class EnrollmentStatus(str, Enum):
    """Lifecycle status of an enrollment row."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    WAITLISTED = "waitlisted"
    CANCELLED = "cancelled"


class AdmissionStatus(str, Enum):
    """Outcome reported to the caller for an admission request."""

    CONFIRMED = "confirmed"
    PENDING = "pending"
    WAITLISTED = "waitlisted"
    BLOCKED = "blocked"


class PaymentStatus(str, Enum):
    """Status of a payment as reported by the external processor."""

    PENDING = "pending"
    COMPLETED = "completed"
    REFUNDED = "refunded"


class ActorRole(str, Enum):
    """Roles an authenticated actor can hold."""

    PARENT = "parent"
    STUDENT = "student"
    TEACHER = "teacher"
    CLASS_SCHEDULER = "class_scheduler"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


# Statuses that hold (or wait for) a seat
ACTIVE_ENROLLMENT_STATUSES = (
    EnrollmentStatus.PENDING,
    EnrollmentStatus.CONFIRMED,
    EnrollmentStatus.WAITLISTED,
)

# Statuses that occupy a seat
SEATED_ENROLLMENT_STATUSES = (
    EnrollmentStatus.PENDING,
    EnrollmentStatus.CONFIRMED,
)

# Class statuses ignored by conflict detection
INACTIVE_CLASS_STATUSES = (
    ClassStatus.CANCELLED,
    ClassStatus.COMPLETED,
)

STUDENT_RELATIONSHIP = "Student"
