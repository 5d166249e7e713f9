# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Registration models: offerings, students, enrollments, blocks, payments, audit."""

from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from classreg.infrastructure.database.models.base import Base, TimestampMixin, UUIDMixin
from classreg.models.common import ClassStatus, EnrollmentStatus, PaymentStatus

ACTIVE_PAIR_INDEX = "uq_enrollments_active_pair"


class FamilyMember(UUIDMixin, TimestampMixin, Base):
    """A member of a parent's family; only ``Student`` members can enroll."""

    __tablename__ = "family_members"

    parent_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    relationship: Mapped[str] = mapped_column(String(30), nullable=False, default="Student")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class ClassOffering(UUIDMixin, TimestampMixin, Base):
    """A scheduled class with a fixed (day, block) slot."""

    __tablename__ = "classes"
    __table_args__ = (
        CheckConstraint("capacity >= 1", name="ck_classes_capacity_positive"),
        Index("idx_classes_slot", "day", "block"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    teacher_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    location: Mapped[str | None] = mapped_column(String(100), nullable=True)
    day: Mapped[str] = mapped_column(String(30), nullable=False)
    block: Mapped[str] = mapped_column(String(20), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # cents
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ClassStatus.DRAFT.value, index=True
    )
    created_by: Mapped[str | None] = mapped_column(String(36), nullable=True)

    def __repr__(self) -> str:
        return f"<ClassOffering(id={self.id}, name={self.name}, {self.day} {self.block})>"


class Enrollment(UUIDMixin, TimestampMixin, Base):
    """One student's claim on a seat in one class."""

    __tablename__ = "enrollments"
    __table_args__ = (
        # At most one non-cancelled enrollment per (student, class)
        Index(
            ACTIVE_PAIR_INDEX,
            "student_id",
            "class_id",
            unique=True,
            postgresql_where=text("status <> 'cancelled'"),
            sqlite_where=text("status <> 'cancelled'"),
        ),
        CheckConstraint(
            "waitlist_position IS NULL OR waitlist_position >= 0",
            name="ck_enrollments_waitlist_position",
        ),
        Index("idx_enrollments_class_status", "class_id", "status"),
        Index("idx_enrollments_student_class", "student_id", "class_id"),
    )

    student_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("family_members.id", ondelete="CASCADE"), nullable=False
    )
    class_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("classes.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=EnrollmentStatus.PENDING.value
    )
    waitlist_position: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_override: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    override_by: Mapped[str | None] = mapped_column(String(36), nullable=True)

    def __repr__(self) -> str:
        return f"<Enrollment(id={self.id}, student={self.student_id}, class={self.class_id}, status={self.status})>"


class ClassBlock(UUIDMixin, TimestampMixin, Base):
    """A durable bar on a student enrolling in a class, or in a teacher's classes."""

    __tablename__ = "class_blocks"
    __table_args__ = (
        UniqueConstraint("class_id", "student_id", name="uq_class_blocks_class_student"),
        UniqueConstraint("teacher_id", "student_id", name="uq_class_blocks_teacher_student"),
        CheckConstraint(
            "class_id IS NOT NULL OR teacher_id IS NOT NULL",
            name="ck_class_blocks_scope",
        ),
    )

    class_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("classes.id", ondelete="CASCADE"), nullable=True
    )
    teacher_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    student_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("family_members.id", ondelete="CASCADE"), nullable=False, index=True
    )
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(36), nullable=True)


class Payment(UUIDMixin, TimestampMixin, Base):
    """Payment record mirrored from the external processor."""

    __tablename__ = "payments"

    enrollment_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("enrollments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentStatus.PENDING.value
    )
    external_id: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)


class AuditLog(UUIDMixin, TimestampMixin, Base):
    """Record of an administrative override."""

    __tablename__ = "audit_logs"

    actor_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    target_type: Mapped[str] = mapped_column(String(50), nullable=False)
    target_id: Mapped[str] = mapped_column(String(36), nullable=False)
    details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
