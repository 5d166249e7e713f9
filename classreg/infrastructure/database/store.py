# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Storage boundary for the registration engine.

RegistrationStore exposes the handful of reads and writes the admission,
promotion and schedule logic needs: point reads, filtered reads and
counts, insert, update, delete and commit. Every SQLAlchemy failure is
surfaced as StoreError; a failed write rolls the session back so no
partial row is left behind.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any

from sqlalchemy import Select, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from classreg.domains.exceptions import DuplicateEnrollmentError, StoreError
from classreg.infrastructure.database.models import (
    ACTIVE_PAIR_INDEX,
    AuditLog,
    ClassBlock,
    ClassOffering,
    Enrollment,
    FamilyMember,
    Payment,
)
from classreg.models.common import EnrollmentStatus

logger = logging.getLogger(__name__)


def _values(statuses: Iterable[Any]) -> list[str]:
    return [getattr(s, "value", s) for s in statuses]


def _is_active_pair_violation(error: IntegrityError) -> bool:
    # PostgreSQL names the index; SQLite lists the indexed columns
    message = str(error.orig)
    return ACTIVE_PAIR_INDEX in message or "enrollments.student_id, enrollments.class_id" in message


class RegistrationStore:
    """SQLAlchemy-backed store for classes, enrollments, blocks and payments.

    Attributes:
        db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # =========================================================================
    # Low-level helpers
    # =========================================================================

    async def _scalar_one_or_none(self, query: Select) -> Any:
        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            logger.error("Store read failed: %s", str(e))
            raise StoreError("Failed to read from store", e) from e
        return result.scalar_one_or_none()

    async def _scalars(self, query: Select) -> list[Any]:
        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            logger.error("Store read failed: %s", str(e))
            raise StoreError("Failed to read from store", e) from e
        return list(result.scalars().all())

    async def _flush(self, action: str) -> None:
        try:
            await self.db.flush()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Store %s failed: %s", action, str(e))
            raise StoreError(f"Failed to {action}", e) from e

    async def commit(self) -> None:
        """Make everything written so far durable."""
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Store commit failed: %s", str(e))
            raise StoreError("Failed to commit", e) from e

    async def rollback(self) -> None:
        """Discard uncommitted writes."""
        await self.db.rollback()

    async def insert(self, obj: Any) -> Any:
        """Insert a new row and flush it.

        Raises:
            DuplicateEnrollmentError: If an enrollment insert collides with an
                active row for the same (student, class) pair.
            StoreError: On any other database failure.
        """
        self.db.add(obj)
        try:
            await self.db.flush()
        except IntegrityError as e:
            await self.db.rollback()
            if isinstance(obj, Enrollment) and _is_active_pair_violation(e):
                logger.info(
                    "Concurrent duplicate enrollment: student=%s, class=%s",
                    obj.student_id,
                    obj.class_id,
                )
                raise DuplicateEnrollmentError() from e
            logger.error("Store insert %s failed: %s", type(obj).__name__, str(e))
            raise StoreError(f"Failed to insert {type(obj).__name__}", e) from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Store insert %s failed: %s", type(obj).__name__, str(e))
            raise StoreError(f"Failed to insert {type(obj).__name__}", e) from e
        return obj

    async def update(self, obj: Any) -> Any:
        """Flush pending changes on an already loaded row."""
        await self._flush(f"update {type(obj).__name__}")
        return obj

    async def delete(self, obj: Any) -> None:
        """Delete a row and flush."""
        try:
            await self.db.delete(obj)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreError(f"Failed to delete {type(obj).__name__}", e) from e
        await self._flush(f"delete {type(obj).__name__}")

    # =========================================================================
    # Classes
    # =========================================================================

    async def get_class(self, class_id: str, for_update: bool = False) -> ClassOffering | None:
        """Read a class by id, optionally taking a row lock until commit."""
        query = select(ClassOffering).where(ClassOffering.id == str(class_id))
        if for_update:
            query = query.with_for_update()
        return await self._scalar_one_or_none(query)

    async def list_classes(self, exclude_statuses: Sequence[Any] = ()) -> list[ClassOffering]:
        """List classes, optionally leaving out some statuses."""
        query = select(ClassOffering)
        if exclude_statuses:
            query = query.where(ClassOffering.status.not_in(_values(exclude_statuses)))
        query = query.order_by(ClassOffering.day, ClassOffering.block, ClassOffering.created_at)
        return await self._scalars(query)

    # =========================================================================
    # Students
    # =========================================================================

    async def get_student(self, student_id: str) -> FamilyMember | None:
        """Read a family member by id."""
        query = select(FamilyMember).where(FamilyMember.id == str(student_id))
        return await self._scalar_one_or_none(query)

    # =========================================================================
    # Enrollments
    # =========================================================================

    async def get_enrollment(self, enrollment_id: str) -> Enrollment | None:
        """Read an enrollment by id."""
        query = select(Enrollment).where(Enrollment.id == str(enrollment_id))
        return await self._scalar_one_or_none(query)

    async def find_active_enrollment(self, student_id: str, class_id: str) -> Enrollment | None:
        """Find the non-cancelled enrollment for a (student, class) pair."""
        query = (
            select(Enrollment)
            .where(
                Enrollment.student_id == str(student_id),
                Enrollment.class_id == str(class_id),
                Enrollment.status != EnrollmentStatus.CANCELLED.value,
            )
            .order_by(Enrollment.created_at.desc())
            .limit(1)
        )
        return await self._scalar_one_or_none(query)

    async def count_enrollments(
        self,
        class_id: str,
        statuses: Sequence[Any],
        is_override: bool | None = None,
    ) -> int:
        """Count enrollments of a class in the given statuses."""
        query = select(func.count(Enrollment.id)).where(
            Enrollment.class_id == str(class_id),
            Enrollment.status.in_(_values(statuses)),
        )
        if is_override is not None:
            query = query.where(Enrollment.is_override.is_(is_override))
        count = await self._scalar_one_or_none(query)
        return int(count or 0)

    async def max_waitlist_position(self, class_id: str) -> int | None:
        """Highest recorded position among waitlisted rows of a class."""
        query = select(func.max(Enrollment.waitlist_position)).where(
            Enrollment.class_id == str(class_id),
            Enrollment.status == EnrollmentStatus.WAITLISTED.value,
        )
        return await self._scalar_one_or_none(query)

    async def list_waitlist(self, class_id: str, limit: int | None = None) -> list[Enrollment]:
        """Waitlisted rows of a class in join order (position, then creation time)."""
        query = (
            select(Enrollment)
            .where(
                Enrollment.class_id == str(class_id),
                Enrollment.status == EnrollmentStatus.WAITLISTED.value,
            )
            .order_by(Enrollment.waitlist_position.asc(), Enrollment.created_at.asc())
        )
        if limit is not None:
            query = query.limit(limit)
        return await self._scalars(query)

    async def list_enrollments(
        self,
        class_id: str,
        statuses: Sequence[Any],
        is_override: bool | None = None,
    ) -> list[Enrollment]:
        """Enrollments of a class in the given statuses, oldest first."""
        query = select(Enrollment).where(
            Enrollment.class_id == str(class_id),
            Enrollment.status.in_(_values(statuses)),
        )
        if is_override is not None:
            query = query.where(Enrollment.is_override.is_(is_override))
        query = query.order_by(Enrollment.created_at.asc())
        return await self._scalars(query)

    async def list_student_enrollments(self, student_id: str) -> list[Enrollment]:
        """All enrollments of a student, newest first."""
        query = (
            select(Enrollment)
            .where(Enrollment.student_id == str(student_id))
            .order_by(Enrollment.created_at.desc())
        )
        return await self._scalars(query)

    async def list_teacher_enrollments(
        self,
        teacher_id: str,
        student_id: str,
        statuses: Sequence[Any],
    ) -> list[Enrollment]:
        """A student's enrollments across every class of a teacher, oldest first."""
        query = (
            select(Enrollment)
            .join(ClassOffering, ClassOffering.id == Enrollment.class_id)
            .where(
                ClassOffering.teacher_id == str(teacher_id),
                Enrollment.student_id == str(student_id),
                Enrollment.status.in_(_values(statuses)),
            )
            .order_by(Enrollment.created_at.asc())
        )
        return await self._scalars(query)

    async def list_roster_rows(
        self,
        class_id: str,
        statuses: Sequence[Any],
    ) -> list[tuple[Enrollment, FamilyMember]]:
        """Enrollments of a class joined with their student, oldest first."""
        query = (
            select(Enrollment, FamilyMember)
            .join(FamilyMember, FamilyMember.id == Enrollment.student_id)
            .where(
                Enrollment.class_id == str(class_id),
                Enrollment.status.in_(_values(statuses)),
            )
            .order_by(Enrollment.created_at.asc())
        )
        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            logger.error("Store roster read failed: %s", str(e))
            raise StoreError("Failed to read roster", e) from e
        return [(row[0], row[1]) for row in result.all()]

    # =========================================================================
    # Blocks
    # =========================================================================

    async def find_class_block(self, class_id: str, student_id: str) -> ClassBlock | None:
        """Find the per-class block of a student."""
        query = select(ClassBlock).where(
            ClassBlock.class_id == str(class_id),
            ClassBlock.student_id == str(student_id),
        )
        return await self._scalar_one_or_none(query)

    async def find_teacher_block(self, teacher_id: str, student_id: str) -> ClassBlock | None:
        """Find the teacher-scope block of a student."""
        query = select(ClassBlock).where(
            ClassBlock.teacher_id == str(teacher_id),
            ClassBlock.class_id.is_(None),
            ClassBlock.student_id == str(student_id),
        )
        return await self._scalar_one_or_none(query)

    async def list_class_blocks(self, class_id: str) -> list[ClassBlock]:
        """All per-class blocks of a class."""
        query = (
            select(ClassBlock)
            .where(ClassBlock.class_id == str(class_id))
            .order_by(ClassBlock.created_at.desc())
        )
        return await self._scalars(query)

    async def list_teacher_blocks(self, teacher_id: str) -> list[ClassBlock]:
        """All teacher-scope blocks of a teacher."""
        query = (
            select(ClassBlock)
            .where(ClassBlock.teacher_id == str(teacher_id), ClassBlock.class_id.is_(None))
            .order_by(ClassBlock.created_at.desc())
        )
        return await self._scalars(query)

    # =========================================================================
    # Payments and audit
    # =========================================================================

    async def get_payment_for_enrollment(self, enrollment_id: str) -> Payment | None:
        """Most recent payment attached to an enrollment."""
        query = (
            select(Payment)
            .where(Payment.enrollment_id == str(enrollment_id))
            .order_by(Payment.created_at.desc())
            .limit(1)
        )
        return await self._scalar_one_or_none(query)

    async def insert_audit_log(self, entry: AuditLog) -> AuditLog:
        """Insert an audit row inside a savepoint so a failure leaves the outer work intact."""
        try:
            async with self.db.begin_nested():
                self.db.add(entry)
        except SQLAlchemyError as e:
            raise StoreError("Failed to write audit log", e) from e
        return entry
