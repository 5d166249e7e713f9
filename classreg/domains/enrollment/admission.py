# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Admission engine: decides what a new enrollment request becomes.

Checks run in order and short-circuit on the first decisive one:

1. Registration window, class and student lookups.
2. Duplicate: a non-cancelled enrollment already exists for the pair.
3. Block: the student is barred from the class. Runs before capacity so
   a blocked student never takes a waitlist slot either.
4. Capacity: a free regular seat admits as ``pending`` (``confirmed`` for
   free classes when configured); otherwise the request joins the
   waitlist at ``max(position) + 1``.

When ``lock_class_on_admission`` is set the class row is locked for the
capacity check and insert, so racing requests for the last seat are
serialized by the database. Without the lock, over-admission is bounded
by the number of racers and is repaired by the ReconciliationService.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date
from typing import TYPE_CHECKING

from classreg.core.config import EnrollmentSettings, RegistrationSettings
from classreg.domains.blocking import BlockRegistry
from classreg.domains.enrollment.capacity import CapacityCounter
from classreg.domains.enrollment.notifications import EnrollmentNotifier
from classreg.domains.exceptions import (
    ClassNotFoundError,
    ClassNotOpenError,
    DuplicateEnrollmentError,
    NotAStudentError,
    RegistrationClosedError,
    StudentBlockedError,
    StudentNotFoundError,
)
from classreg.infrastructure.database.models import ClassOffering, Enrollment, FamilyMember, new_id
from classreg.models.common import (
    INACTIVE_CLASS_STATUSES,
    STUDENT_RELATIONSHIP,
    ClassStatus,
    EnrollmentStatus,
)
from classreg.utils.datetime import utc_now, utc_today

if TYPE_CHECKING:
    from classreg.infrastructure.database.store import RegistrationStore

logger = logging.getLogger(__name__)


class AdmissionEngine:
    """Writes the initial enrollment row for a request.

    Attributes:
        store: Registration store.
        settings: Enrollment policy settings.
        registration: Registration window settings.
    """

    def __init__(
        self,
        store: RegistrationStore,
        settings: EnrollmentSettings | None = None,
        registration: RegistrationSettings | None = None,
        blocks: BlockRegistry | None = None,
        capacity: CapacityCounter | None = None,
        notifier: EnrollmentNotifier | None = None,
        today: Callable[[], date] = utc_today,
    ) -> None:
        self.store = store
        self.settings = settings or EnrollmentSettings()
        self.registration = registration or RegistrationSettings()
        self.blocks = blocks or BlockRegistry(store, self.settings)
        self.capacity = capacity or CapacityCounter(store, self.settings)
        self.notifier = notifier or EnrollmentNotifier()
        self._today = today

    async def _load_class(self, class_id: str) -> ClassOffering:
        offering = await self.store.get_class(
            class_id, for_update=self.settings.lock_class_on_admission
        )
        if offering is None:
            raise ClassNotFoundError(f"Class {class_id} not found")
        return offering

    async def _load_student(self, student_id: str) -> FamilyMember:
        student = await self.store.get_student(student_id)
        if student is None:
            raise StudentNotFoundError(f"Student {student_id} not found")
        if student.relationship != STUDENT_RELATIONSHIP:
            raise NotAStudentError(f"{student.full_name} is not registered as a student")
        return student

    async def admit(self, student_id: str, class_id: str) -> Enrollment:
        """Admit, waitlist or reject a request.

        Args:
            student_id: Family member requesting a seat.
            class_id: Class being requested.

        Returns:
            The new enrollment row (pending, confirmed or waitlisted),
            already committed.

        Raises:
            RegistrationClosedError: Outside the registration window.
            ClassNotFoundError: If the class does not exist.
            ClassNotOpenError: If the class is not published.
            StudentNotFoundError: If the student does not exist.
            NotAStudentError: If the family member is not a student.
            DuplicateEnrollmentError: If an active enrollment exists.
            StudentBlockedError: If the student is blocked.
            StoreError: If the insert fails; no row is left behind.
        """
        if not self.registration.accepts(self._today()):
            raise RegistrationClosedError("Registration is currently closed")

        offering = await self._load_class(class_id)
        if offering.status != ClassStatus.PUBLISHED.value:
            raise ClassNotOpenError(f"{offering.name} is not open for enrollment")

        await self._load_student(student_id)

        existing = await self.store.find_active_enrollment(student_id, class_id)
        if existing is not None:
            raise DuplicateEnrollmentError(existing.id, existing.status)

        if await self.blocks.is_blocked(class_id, student_id, offering.teacher_id):
            raise StudentBlockedError(
                f"Student is not permitted to enroll in {offering.name}",
                class_id=class_id,
                student_id=student_id,
            )

        # Re-derived immediately before the insert
        occupied = await self.capacity.regular_occupancy(class_id)
        if occupied < offering.capacity:
            status = EnrollmentStatus.PENDING
            if offering.price == 0 and self.settings.auto_confirm_free_classes:
                status = EnrollmentStatus.CONFIRMED
            position = None
        else:
            status = EnrollmentStatus.WAITLISTED
            position = await self.capacity.next_waitlist_position(class_id)

        now = utc_now()
        enrollment = Enrollment(
            id=new_id(),
            student_id=str(student_id),
            class_id=str(class_id),
            status=status.value,
            waitlist_position=position,
            is_override=False,
            override_by=None,
            created_at=now,
            updated_at=now,
        )
        await self.store.insert(enrollment)
        await self.store.commit()

        logger.info(
            "Admission: student=%s, class=%s, status=%s, position=%s, occupied=%d/%d",
            student_id,
            class_id,
            status.value,
            position,
            occupied,
            offering.capacity,
        )

        if status == EnrollmentStatus.WAITLISTED:
            await self.notifier.waitlisted(enrollment)
        else:
            await self.notifier.admitted(enrollment)
        return enrollment

    async def force_enroll(
        self,
        student_id: str,
        class_id: str,
        admin_id: str,
    ) -> tuple[Enrollment, str | None]:
        """Seat a student as ``confirmed`` regardless of capacity and blocks.

        The registration window is ignored. A confirmed enrollment is still a
        duplicate. A pending or waitlisted enrollment is upgraded in place,
        which keeps at most one non-cancelled row per pair. The caller audits
        the override and commits.

        Returns:
            Tuple of the confirmed enrollment and the status it had before
            (None when a new row was inserted).

        Raises:
            ClassNotFoundError: If the class does not exist.
            ClassNotOpenError: If the class is cancelled or completed.
            StudentNotFoundError: If the student does not exist.
            NotAStudentError: If the family member is not a student.
            DuplicateEnrollmentError: If the student is already confirmed.
        """
        offering = await self._load_class(class_id)
        if offering.status in {s.value for s in INACTIVE_CLASS_STATUSES}:
            raise ClassNotOpenError(f"{offering.name} is {offering.status}")

        await self._load_student(student_id)

        existing = await self.store.find_active_enrollment(student_id, class_id)
        if existing is not None:
            if existing.status == EnrollmentStatus.CONFIRMED.value:
                raise DuplicateEnrollmentError(existing.id, existing.status)

            previous = existing.status
            existing.status = EnrollmentStatus.CONFIRMED.value
            existing.waitlist_position = None
            existing.is_override = True
            existing.override_by = str(admin_id)
            existing.updated_at = utc_now()
            await self.store.update(existing)
            logger.info(
                "Force-enroll upgraded enrollment %s from %s: admin=%s",
                existing.id,
                previous,
                admin_id,
            )
            return existing, previous

        now = utc_now()
        enrollment = Enrollment(
            id=new_id(),
            student_id=str(student_id),
            class_id=str(class_id),
            status=EnrollmentStatus.CONFIRMED.value,
            waitlist_position=None,
            is_override=True,
            override_by=str(admin_id),
            created_at=now,
            updated_at=now,
        )
        await self.store.insert(enrollment)
        logger.info(
            "Force-enrolled student %s in class %s: admin=%s",
            student_id,
            class_id,
            admin_id,
        )
        return enrollment, None
