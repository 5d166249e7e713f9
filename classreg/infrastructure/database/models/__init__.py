# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy ORM models for the registration database."""

from classreg.infrastructure.database.models.base import Base, TimestampMixin, UUIDMixin, new_id
from classreg.infrastructure.database.models.registration import (
    ACTIVE_PAIR_INDEX,
    AuditLog,
    ClassBlock,
    ClassOffering,
    Enrollment,
    FamilyMember,
    Payment,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    "new_id",
    "ACTIVE_PAIR_INDEX",
    "AuditLog",
    "ClassBlock",
    "ClassOffering",
    "Enrollment",
    "FamilyMember",
    "Payment",
]
