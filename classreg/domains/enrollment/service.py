# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment service for class registration.

This module provides the EnrollmentService class for:
- Student enrollment requests (admitted, waitlisted or rejected)
- Self-service and administrative cancellation with waitlist promotion
- Admin force-enroll and hard delete, both audited
- Blocking and unblocking students, per class or across a teacher's classes
- Class rosters with over-admission reconciliation
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from classreg.core.config import Settings, get_settings
from classreg.domains.audit import AuditAction, AuditService
from classreg.domains.blocking import BlockRegistry
from classreg.domains.enrollment.admission import AdmissionEngine
from classreg.domains.enrollment.capacity import CapacityCounter
from classreg.domains.enrollment.notifications import EnrollmentNotifier
from classreg.domains.enrollment.promotion import PromotionEngine
from classreg.domains.enrollment.reconciliation import ReconciliationService
from classreg.domains.exceptions import (
    AuthorizationError,
    ClassNotFoundError,
    EnrollmentNotFoundError,
    RegistrationError,
    StudentBlockedError,
    StudentNotFoundError,
    ValidationError,
)
from classreg.models.common import (
    ACTIVE_ENROLLMENT_STATUSES,
    ActorRole,
    AdmissionStatus,
    EnrollmentStatus,
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
    StudentSummary,
)

if TYPE_CHECKING:
    from classreg.infrastructure.database.models import (
        ClassOffering,
        Enrollment,
        FamilyMember,
    )
    from classreg.infrastructure.database.store import RegistrationStore
    from classreg.models.actor import Actor

logger = logging.getLogger(__name__)


class EnrollmentService:
    """Service for managing class enrollments.

    Wires the admission, promotion and reconciliation engines together and
    enforces who may do what. Every admission outcome is returned as an
    AdmissionResult; other operations raise RegistrationError subclasses.

    Attributes:
        store: Registration store.
        settings: Application settings.
    """

    def __init__(
        self,
        store: RegistrationStore,
        settings: Settings | None = None,
        notifier: EnrollmentNotifier | None = None,
    ) -> None:
        """Initialize enrollment service.

        Args:
            store: Registration store bound to the request's session.
            settings: Application settings; defaults to get_settings().
            notifier: Notification publisher; defaults to the global event bus.
        """
        self.store = store
        self.settings = settings or get_settings()
        policy = self.settings.enrollment

        self.notifier = notifier or EnrollmentNotifier()
        self.capacity = CapacityCounter(store, policy)
        self.blocks = BlockRegistry(store, policy)
        self.audit = AuditService(store)
        self.admission = AdmissionEngine(
            store,
            settings=policy,
            registration=self.settings.registration,
            blocks=self.blocks,
            capacity=self.capacity,
            notifier=self.notifier,
        )
        self.promotion = PromotionEngine(store, policy, self.capacity, self.notifier)
        self.reconciliation = ReconciliationService(store, policy, self.capacity, self.notifier)

    # =========================================================================
    # Admission
    # =========================================================================

    async def enroll_student(
        self,
        request: EnrollStudentRequest,
        actor: Actor,
    ) -> AdmissionResult:
        """Request a seat for a student.

        Args:
            request: Student and class to enroll.
            actor: Parent (owner of the student) or admin.

        Returns:
            AdmissionResult with status confirmed, pending, waitlisted or
            blocked, or with ``error``/``error_code`` when rejected.
        """
        try:
            student = await self.store.get_student(request.student_id)
            if student is not None:
                self._ensure_owner(actor, student)
            enrollment = await self.admission.admit(request.student_id, request.class_id)
        except StudentBlockedError as e:
            await self.store.rollback()
            logger.info(
                "Admission blocked: student=%s, class=%s",
                request.student_id,
                request.class_id,
            )
            return AdmissionResult(
                status=AdmissionStatus.BLOCKED,
                error=e.message,
                error_code=e.code,
            )
        except RegistrationError as e:
            await self.store.rollback()
            logger.info(
                "Admission rejected: student=%s, class=%s, code=%s, reason=%s",
                request.student_id,
                request.class_id,
                e.code,
                e.message,
            )
            return AdmissionResult(error=e.message, error_code=e.code)

        return AdmissionResult(
            status=AdmissionStatus(enrollment.status),
            enrollment=self._to_response(enrollment),
        )

    async def force_enroll(
        self,
        request: ForceEnrollRequest,
        actor: Actor,
    ) -> EnrollmentResponse:
        """Seat a student as confirmed, bypassing capacity and blocks.

        Raises:
            AuthorizationError: If the actor is not an admin.
            DuplicateEnrollmentError: If the student is already confirmed.
        """
        self._ensure_admin(actor)

        enrollment, previous = await self.admission.force_enroll(
            request.student_id, request.class_id, actor.id
        )
        action = AuditAction.FORCE_ENROLL if previous is None else AuditAction.FORCE_ENROLL_UPDATE
        await self.audit.record(
            actor.id,
            action,
            "enrollment",
            enrollment.id,
            {
                "student_id": request.student_id,
                "class_id": request.class_id,
                "previous_status": previous,
                "reason": request.reason,
            },
        )
        await self.store.commit()
        await self.notifier.confirmed(enrollment)

        # An upgraded pending row no longer holds a regular seat
        overrides_count = self.settings.enrollment.count_overrides_toward_capacity
        if previous == EnrollmentStatus.PENDING.value and not overrides_count:
            await self.promotion.fill_open_seats(enrollment.class_id)

        return self._to_response(enrollment)

    # =========================================================================
    # Cancellation
    # =========================================================================

    async def cancel_enrollment(
        self,
        enrollment_id: str,
        actor: Actor,
    ) -> EnrollmentResponse:
        """Cancel an enrollment on behalf of its owner.

        A parent may cancel a pending or waitlisted enrollment of their own
        student. Confirmed (paid) seats need a refund, which is admin-gated.
        Admins are routed through admin_cancel_enrollment.

        Raises:
            EnrollmentNotFoundError: If the enrollment does not exist.
            AuthorizationError: If the actor does not own the student, or
                the enrollment is confirmed.
        """
        if actor.is_admin:
            return await self.admin_cancel_enrollment(enrollment_id, actor)

        enrollment = await self._get_enrollment(enrollment_id)
        student = await self._get_student(enrollment.student_id)
        self._ensure_owner(actor, student)

        if enrollment.status == EnrollmentStatus.CONFIRMED.value:
            raise AuthorizationError(
                "Confirmed enrollments must be refunded by an administrator"
            )

        await self.promotion.vacate(enrollment)
        return self._to_response(enrollment)

    async def admin_cancel_enrollment(
        self,
        enrollment_id: str,
        actor: Actor,
    ) -> EnrollmentResponse:
        """Cancel any enrollment and promote from the waitlist.

        Raises:
            AuthorizationError: If the actor is not an admin.
            EnrollmentNotFoundError: If the enrollment does not exist.
        """
        self._ensure_admin(actor)
        enrollment = await self._get_enrollment(enrollment_id)
        if enrollment.status == EnrollmentStatus.CANCELLED.value:
            return self._to_response(enrollment)

        await self.audit.record(
            actor.id,
            AuditAction.ADMIN_CANCEL_ENROLLMENT,
            "enrollment",
            enrollment.id,
            {
                "student_id": enrollment.student_id,
                "class_id": enrollment.class_id,
                "previous_status": enrollment.status,
            },
        )
        await self.promotion.vacate(enrollment)
        return self._to_response(enrollment)

    async def admin_delete_enrollment(self, enrollment_id: str, actor: Actor) -> None:
        """Hard-delete an enrollment and refill its seat.

        Raises:
            AuthorizationError: If the actor is not an admin.
            EnrollmentNotFoundError: If the enrollment does not exist.
        """
        self._ensure_admin(actor)
        enrollment = await self._get_enrollment(enrollment_id)

        await self.audit.record(
            actor.id,
            AuditAction.ADMIN_DELETE_ENROLLMENT,
            "enrollment",
            enrollment.id,
            {
                "student_id": enrollment.student_id,
                "class_id": enrollment.class_id,
                "previous_status": enrollment.status,
            },
        )
        await self.promotion.remove(enrollment)

    # =========================================================================
    # Blocking
    # =========================================================================

    async def block_student(
        self,
        class_id: str,
        request: BlockRequest,
        actor: Actor,
    ) -> BlockResponse:
        """Block a student from a class.

        When ``cancel_enrollment_on_block`` is set, the student's active
        enrollment in the class is cancelled and its seat refilled.

        Raises:
            ClassNotFoundError: If the class does not exist.
            StudentNotFoundError: If the student does not exist.
            AuthorizationError: If the actor is neither the class teacher nor an admin.
        """
        offering = await self._get_class(class_id)
        self._ensure_teacher_or_admin(actor, offering.teacher_id)
        await self._get_student(request.student_id)

        block = await self.blocks.block(
            class_id, request.student_id, reason=request.reason, created_by=actor.id
        )
        await self.audit.record(
            actor.id,
            AuditAction.BLOCK_STUDENT,
            "class",
            class_id,
            {"student_id": request.student_id, "reason": request.reason},
        )
        await self.store.commit()

        if self.settings.enrollment.cancel_enrollment_on_block:
            active = await self.store.find_active_enrollment(request.student_id, class_id)
            if active is not None:
                await self.promotion.vacate(active)

        return BlockResponse.model_validate(block)

    async def unblock_student(self, class_id: str, student_id: str, actor: Actor) -> None:
        """Remove a student's block from a class.

        Raises:
            ClassNotFoundError: If the class does not exist.
            BlockNotFoundError: If the student is not blocked.
            AuthorizationError: If the actor is neither the class teacher nor an admin.
        """
        offering = await self._get_class(class_id)
        self._ensure_teacher_or_admin(actor, offering.teacher_id)

        await self.blocks.unblock(class_id, student_id)
        await self.audit.record(
            actor.id,
            AuditAction.UNBLOCK_STUDENT,
            "class",
            class_id,
            {"student_id": student_id},
        )
        await self.store.commit()

    async def list_blocks(self, class_id: str, actor: Actor) -> list[BlockResponse]:
        offering = await self._get_class(class_id)
        self._ensure_teacher_or_admin(actor, offering.teacher_id)
        blocks = await self.blocks.list_blocks(class_id)
        return [BlockResponse.model_validate(b) for b in blocks]

    async def block_student_teacher_wide(
        self,
        teacher_id: str,
        request: BlockRequest,
        actor: Actor,
    ) -> BlockResponse:
        """Block a student from every class of a teacher.

        When ``cancel_enrollment_on_block`` is set, the student's active
        enrollments in all of the teacher's classes are cancelled and their
        seats refilled.

        Raises:
            AuthorizationError: If the actor is neither that teacher nor an admin.
            ValidationError: If teacher-wide blocks are disabled.
            StudentNotFoundError: If the student does not exist.
        """
        self._ensure_teacher_or_admin(actor, teacher_id)
        if not self.settings.enrollment.teacher_wide_blocks:
            raise ValidationError("Teacher-wide blocks are not enabled")
        await self._get_student(request.student_id)

        block = await self.blocks.block_teacher_wide(
            teacher_id, request.student_id, reason=request.reason, created_by=actor.id
        )
        await self.audit.record(
            actor.id,
            AuditAction.BLOCK_STUDENT_TEACHER_WIDE,
            "teacher",
            teacher_id,
            {"student_id": request.student_id, "reason": request.reason},
        )
        await self.store.commit()

        if self.settings.enrollment.cancel_enrollment_on_block:
            active = await self.store.list_teacher_enrollments(
                teacher_id, request.student_id, ACTIVE_ENROLLMENT_STATUSES
            )
            for enrollment in active:
                await self.promotion.vacate(enrollment)
            if active:
                logger.info(
                    "Teacher-wide block cancelled %d enrollment(s) of student %s",
                    len(active),
                    request.student_id,
                )

        return BlockResponse.model_validate(block)

    async def unblock_student_teacher_wide(
        self,
        teacher_id: str,
        student_id: str,
        actor: Actor,
    ) -> None:
        """Remove a teacher-wide block.

        Raises:
            AuthorizationError: If the actor is neither that teacher nor an admin.
            BlockNotFoundError: If the student is not blocked by the teacher.
        """
        self._ensure_teacher_or_admin(actor, teacher_id)

        await self.blocks.unblock_teacher_wide(teacher_id, student_id)
        await self.audit.record(
            actor.id,
            AuditAction.UNBLOCK_STUDENT_TEACHER_WIDE,
            "teacher",
            teacher_id,
            {"student_id": student_id},
        )
        await self.store.commit()

    async def list_teacher_blocks(self, teacher_id: str, actor: Actor) -> list[BlockResponse]:
        self._ensure_teacher_or_admin(actor, teacher_id)
        blocks = await self.blocks.list_teacher_blocks(teacher_id)
        return [BlockResponse.model_validate(b) for b in blocks]

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_class_roster(self, class_id: str, actor: Actor) -> ClassRoster:
        """Roster of a class: seated students and the waitlist in join order.

        Runs over-admission reconciliation first when ``reconcile_on_read``
        is set.

        Raises:
            ClassNotFoundError: If the class does not exist.
            AuthorizationError: If the actor may not view the roster.
        """
        offering = await self._get_class(class_id)
        self._ensure_can_view_roster(actor, offering)

        demoted: list[Enrollment] = []
        if self.settings.enrollment.reconcile_on_read:
            demoted = await self.reconciliation.reconcile(class_id)

        rows = await self.store.list_roster_rows(class_id, ACTIVE_ENROLLMENT_STATUSES)
        blocked_ids = {b.student_id for b in await self.blocks.list_blocks(class_id)}

        enrolled: list[EnrollmentWithStudentAndClass] = []
        waitlisted: list[EnrollmentWithStudentAndClass] = []
        for enrollment, student in rows:
            entry = self._to_roster_entry(enrollment, student, offering, blocked_ids)
            if enrollment.status == EnrollmentStatus.WAITLISTED.value:
                waitlisted.append(entry)
            else:
                enrolled.append(entry)

        # Rows arrive in creation order; waitlist position breaks ties first
        waitlisted.sort(key=lambda e: e.enrollment.waitlist_position or 0)

        return ClassRoster(
            class_id=offering.id,
            capacity=offering.capacity,
            enrolled=enrolled,
            waitlisted=waitlisted,
            demoted=len(demoted),
        )

    async def list_student_enrollments(
        self,
        student_id: str,
        actor: Actor,
    ) -> list[EnrollmentResponse]:
        """All enrollments of a student, newest first.

        Raises:
            StudentNotFoundError: If the student does not exist.
            AuthorizationError: If the actor does not own the student.
        """
        student = await self._get_student(student_id)
        self._ensure_owner(actor, student)
        enrollments = await self.store.list_student_enrollments(student_id)
        return [self._to_response(e) for e in enrollments]

    async def reconcile_class(self, class_id: str, actor: Actor) -> list[EnrollmentResponse]:
        """Run over-admission reconciliation on demand.

        Raises:
            AuthorizationError: If the actor is not an admin.
            ClassNotFoundError: If the class does not exist.
        """
        self._ensure_admin(actor)
        demoted = await self.reconciliation.reconcile(class_id)
        if demoted:
            await self.audit.record(
                actor.id,
                AuditAction.RECONCILE_CLASS,
                "class",
                class_id,
                {"demoted": [e.id for e in demoted]},
            )
            await self.store.commit()
        return [self._to_response(e) for e in demoted]

    # =========================================================================
    # Private helpers
    # =========================================================================

    async def _get_class(self, class_id: str) -> ClassOffering:
        offering = await self.store.get_class(class_id)
        if offering is None:
            raise ClassNotFoundError(f"Class {class_id} not found")
        return offering

    async def _get_student(self, student_id: str) -> FamilyMember:
        student = await self.store.get_student(student_id)
        if student is None:
            raise StudentNotFoundError(f"Student {student_id} not found")
        return student

    async def _get_enrollment(self, enrollment_id: str) -> Enrollment:
        enrollment = await self.store.get_enrollment(enrollment_id)
        if enrollment is None:
            raise EnrollmentNotFoundError(f"Enrollment {enrollment_id} not found")
        return enrollment

    @staticmethod
    def _ensure_admin(actor: Actor) -> None:
        if not actor.is_admin:
            raise AuthorizationError("Admin access required")

    @staticmethod
    def _ensure_owner(actor: Actor, student: FamilyMember) -> None:
        if actor.is_admin:
            return
        if str(actor.id) not in (str(student.parent_id), str(student.id)):
            raise AuthorizationError("You can only manage enrollments for your own family")

    @staticmethod
    def _ensure_teacher_or_admin(actor: Actor, teacher_id: str) -> None:
        if actor.is_admin:
            return
        if actor.has_role(ActorRole.TEACHER) and str(actor.id) == str(teacher_id):
            return
        raise AuthorizationError("Only the class teacher or an admin can do this")

    @staticmethod
    def _ensure_can_view_roster(actor: Actor, offering: ClassOffering) -> None:
        if actor.is_admin or actor.has_role(ActorRole.CLASS_SCHEDULER):
            return
        if str(actor.id) == str(offering.teacher_id):
            return
        raise AuthorizationError("You do not have access to this roster")

    def _to_response(self, enrollment: Enrollment) -> EnrollmentResponse:
        return EnrollmentResponse(
            id=enrollment.id,
            student_id=enrollment.student_id,
            class_id=enrollment.class_id,
            status=EnrollmentStatus(enrollment.status),
            waitlist_position=enrollment.waitlist_position,
            is_override=bool(enrollment.is_override),
            override_by=enrollment.override_by,
            created_at=enrollment.created_at,
            updated_at=enrollment.updated_at,
        )

    def _to_roster_entry(
        self,
        enrollment: Enrollment,
        student: FamilyMember,
        offering: ClassOffering,
        blocked_ids: set[str],
    ) -> EnrollmentWithStudentAndClass:
        return EnrollmentWithStudentAndClass(
            enrollment=self._to_response(enrollment),
            student=StudentSummary(
                id=student.id,
                first_name=student.first_name,
                last_name=student.last_name,
                full_name=student.full_name,
                parent_id=student.parent_id,
            ),
            class_=ClassSummary(
                id=offering.id,
                name=offering.name,
                day=offering.day,
                block=offering.block,
                teacher_id=offering.teacher_id,
                location=offering.location,
            ),
            is_blocked=student.id in blocked_ids,
        )
