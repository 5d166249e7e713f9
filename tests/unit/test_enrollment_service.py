# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the Enrollment service."""

from unittest.mock import AsyncMock

import pytest

from classreg.domains.audit import AuditAction
from classreg.domains.enrollment import EnrollmentNotifier, EnrollmentService
from classreg.domains.exceptions import (
    AuthorizationError,
    BlockNotFoundError,
    DuplicateEnrollmentError,
    EnrollmentNotFoundError,
    ValidationError,
)
from classreg.domains.payments import PaymentService
from classreg.models.common import AdmissionStatus, EnrollmentStatus
from classreg.models.enrollment import (
    BlockRequest,
    EnrollStudentRequest,
    ForceEnrollRequest,
)


@pytest.fixture
def enrollment_service(store, settings):
    """Create enrollment service over the in-memory store."""
    return EnrollmentService(store, settings=settings)


@pytest.fixture
def payment_service(store, settings):
    return PaymentService(store, settings=settings)


@pytest.fixture
def offering(store):
    """A published paid class with a single seat, taught by teacher-1."""
    return store.add_class(capacity=1, price=5000, teacher_id="teacher-1")


@pytest.fixture
def students(store):
    """Three students of parent-1."""
    return [store.add_student(first_name=name) for name in ("S1", "S2", "S3")]


def request(student, offering):
    return EnrollStudentRequest(student_id=student.id, class_id=offering.id)


class TestEnrollStudent:
    """Tests for enrolling students."""

    @pytest.mark.asyncio
    async def test_enroll_returns_pending_then_waitlisted(
        self, enrollment_service, offering, students, parent
    ):
        """Test seats fill first, then the waitlist grows in order."""
        results = [
            await enrollment_service.enroll_student(request(s, offering), parent)
            for s in students
        ]

        assert [r.status for r in results] == [
            AdmissionStatus.PENDING,
            AdmissionStatus.WAITLISTED,
            AdmissionStatus.WAITLISTED,
        ]
        assert [r.enrollment.waitlist_position for r in results] == [None, 1, 2]
        assert all(r.ok for r in results)

    @pytest.mark.asyncio
    async def test_enroll_free_class_confirmed(self, store, enrollment_service, students, parent):
        """Test free classes are confirmed immediately."""
        free = store.add_class(capacity=5, price=0)

        result = await enrollment_service.enroll_student(request(students[0], free), parent)

        assert result.status == AdmissionStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_enroll_duplicate_reports_code(
        self, enrollment_service, offering, students, parent
    ):
        """Test a second request for the same pair is rejected as duplicate."""
        await enrollment_service.enroll_student(request(students[0], offering), parent)

        result = await enrollment_service.enroll_student(request(students[0], offering), parent)

        assert result.ok is False
        assert result.status is None
        assert result.error_code == "duplicate"
        assert result.error == "Student is already enrolled in this class"

    @pytest.mark.asyncio
    async def test_enroll_blocked_student(
        self, store, enrollment_service, offering, students, parent, teacher
    ):
        """Test a blocked student gets the blocked outcome and no row."""
        await enrollment_service.block_student(
            offering.id, BlockRequest(student_id=students[0].id), teacher
        )

        result = await enrollment_service.enroll_student(request(students[0], offering), parent)

        assert result.status == AdmissionStatus.BLOCKED
        assert result.error_code == "blocked"
        assert result.enrollment is None
        assert store.enrollments == {}

    @pytest.mark.asyncio
    async def test_enroll_other_family_forbidden(
        self, enrollment_service, offering, students, other_parent
    ):
        """Test parents cannot enroll someone else's child."""
        result = await enrollment_service.enroll_student(request(students[0], offering), other_parent)

        assert result.error_code == "forbidden"

    @pytest.mark.asyncio
    async def test_student_may_enroll_self(self, store, enrollment_service, offering, students):
        from classreg.models.actor import Actor

        actor = Actor(id=students[0].id, role="student")
        result = await enrollment_service.enroll_student(request(students[0], offering), actor)

        assert result.status == AdmissionStatus.PENDING

    @pytest.mark.asyncio
    async def test_enroll_unknown_class(self, enrollment_service, students, parent):
        result = await enrollment_service.enroll_student(
            EnrollStudentRequest(student_id=students[0].id, class_id="missing"), parent
        )

        assert result.error_code == "not_found"

    @pytest.mark.asyncio
    async def test_store_failure_hides_database_detail(
        self, store, enrollment_service, offering, students, parent
    ):
        store.fail_inserts = True

        result = await enrollment_service.enroll_student(request(students[0], offering), parent)

        assert result.error_code == "store"
        assert result.error == "Failed to insert"
        assert "connection reset" not in result.error
        assert store.rollbacks == 1

    @pytest.mark.asyncio
    async def test_notification_failure_does_not_fail_admission(
        self, store, settings, offering, students, parent
    ):
        """Test the admission stands even when the event bus is down."""
        bus = AsyncMock()
        bus.publish.side_effect = RuntimeError("broker unavailable")
        service = EnrollmentService(store, settings=settings, notifier=EnrollmentNotifier(bus))

        result = await service.enroll_student(request(students[0], offering), parent)

        assert result.status == AdmissionStatus.PENDING
        assert len(store.enrollments) == 1
        bus.publish.assert_awaited_once()


class TestForceEnroll:
    """Tests for admin force-enroll."""

    @pytest.mark.asyncio
    async def test_force_enroll_requires_admin(self, enrollment_service, offering, students, parent):
        with pytest.raises(AuthorizationError):
            await enrollment_service.force_enroll(
                ForceEnrollRequest(student_id=students[0].id, class_id=offering.id), parent
            )

    @pytest.mark.asyncio
    async def test_force_enroll_over_capacity_is_audited(
        self, store, enrollment_service, offering, students, parent, admin
    ):
        """Test an override seat beyond capacity leaves an audit record."""
        await enrollment_service.enroll_student(request(students[0], offering), parent)

        response = await enrollment_service.force_enroll(
            ForceEnrollRequest(student_id=students[1].id, class_id=offering.id, reason="sibling"),
            admin,
        )

        assert response.status == EnrollmentStatus.CONFIRMED
        assert response.is_override is True
        assert response.override_by == admin.id
        assert [a.action for a in store.audit_logs] == [AuditAction.FORCE_ENROLL]
        assert store.audit_logs[0].details["reason"] == "sibling"

    @pytest.mark.asyncio
    async def test_force_enroll_pending_row_frees_regular_seat(
        self, store, enrollment_service, offering, students, parent, admin
    ):
        """Test upgrading a pending row lets the waitlist head take its seat."""
        first = await enrollment_service.enroll_student(request(students[0], offering), parent)
        second = await enrollment_service.enroll_student(request(students[1], offering), parent)

        await enrollment_service.force_enroll(
            ForceEnrollRequest(student_id=students[0].id, class_id=offering.id), admin
        )

        assert store.enrollments[first.enrollment.id].status == EnrollmentStatus.CONFIRMED.value
        assert store.enrollments[second.enrollment.id].status == EnrollmentStatus.PENDING.value
        assert [a.action for a in store.audit_logs] == [AuditAction.FORCE_ENROLL_UPDATE]

    @pytest.mark.asyncio
    async def test_force_enroll_confirmed_is_duplicate(
        self, store, enrollment_service, offering, students, admin
    ):
        store.add_enrollment(students[0], offering, EnrollmentStatus.CONFIRMED)

        with pytest.raises(DuplicateEnrollmentError):
            await enrollment_service.force_enroll(
                ForceEnrollRequest(student_id=students[0].id, class_id=offering.id), admin
            )


class TestEndToEndWaitlist:
    """Capacity-one class through enrollment, override, payment and refund."""

    @pytest.mark.asyncio
    async def test_refund_promotes_head_and_keeps_override(
        self, store, enrollment_service, payment_service, offering, students, parent, admin
    ):
        s1, s2, s3 = students
        r1 = await enrollment_service.enroll_student(request(s1, offering), parent)
        r2 = await enrollment_service.enroll_student(request(s2, offering), parent)
        r3 = await enrollment_service.enroll_student(request(s3, offering), parent)
        assert (r1.status, r2.status, r3.status) == (
            AdmissionStatus.PENDING,
            AdmissionStatus.WAITLISTED,
            AdmissionStatus.WAITLISTED,
        )

        await enrollment_service.force_enroll(
            ForceEnrollRequest(student_id=s3.id, class_id=offering.id), admin
        )
        await payment_service.handle_payment_completed(r1.enrollment.id, external_id="pi_1")
        assert store.enrollments[r1.enrollment.id].status == EnrollmentStatus.CONFIRMED.value

        await payment_service.handle_payment_refunded(r1.enrollment.id)

        e1 = store.enrollments[r1.enrollment.id]
        e2 = store.enrollments[r2.enrollment.id]
        e3 = store.enrollments[r3.enrollment.id]
        assert e1.status == EnrollmentStatus.CANCELLED.value
        assert e2.status == EnrollmentStatus.PENDING.value
        assert e2.waitlist_position is None
        assert e3.status == EnrollmentStatus.CONFIRMED.value
        assert e3.is_override is True


class TestCancelEnrollment:
    """Tests for cancellation."""

    @pytest.mark.asyncio
    async def test_parent_cancels_pending_and_head_promoted(
        self, store, enrollment_service, offering, students, parent
    ):
        r1 = await enrollment_service.enroll_student(request(students[0], offering), parent)
        r2 = await enrollment_service.enroll_student(request(students[1], offering), parent)

        response = await enrollment_service.cancel_enrollment(r1.enrollment.id, parent)

        assert response.status == EnrollmentStatus.CANCELLED
        assert store.enrollments[r2.enrollment.id].status == EnrollmentStatus.PENDING.value

    @pytest.mark.asyncio
    async def test_parent_cannot_cancel_confirmed(
        self, store, enrollment_service, offering, students, parent
    ):
        enrollment = store.add_enrollment(students[0], offering, EnrollmentStatus.CONFIRMED)

        with pytest.raises(AuthorizationError):
            await enrollment_service.cancel_enrollment(enrollment.id, parent)

        assert enrollment.status == EnrollmentStatus.CONFIRMED.value

    @pytest.mark.asyncio
    async def test_other_parent_cannot_cancel(
        self, store, enrollment_service, offering, students, other_parent
    ):
        enrollment = store.add_enrollment(students[0], offering)

        with pytest.raises(AuthorizationError):
            await enrollment_service.cancel_enrollment(enrollment.id, other_parent)

    @pytest.mark.asyncio
    async def test_admin_cancel_confirmed_is_audited(
        self, store, enrollment_service, offering, students, admin
    ):
        enrollment = store.add_enrollment(students[0], offering, EnrollmentStatus.CONFIRMED)
        waiting = store.add_enrollment(students[1], offering, EnrollmentStatus.WAITLISTED, 1)

        await enrollment_service.cancel_enrollment(enrollment.id, admin)

        assert enrollment.status == EnrollmentStatus.CANCELLED.value
        assert waiting.status == EnrollmentStatus.PENDING.value
        assert [a.action for a in store.audit_logs] == [AuditAction.ADMIN_CANCEL_ENROLLMENT]

    @pytest.mark.asyncio
    async def test_cancel_unknown_enrollment(self, enrollment_service, parent):
        with pytest.raises(EnrollmentNotFoundError):
            await enrollment_service.cancel_enrollment("missing", parent)

    @pytest.mark.asyncio
    async def test_admin_delete_refills_seat(
        self, store, enrollment_service, offering, students, admin
    ):
        seated = store.add_enrollment(students[0], offering)
        waiting = store.add_enrollment(students[1], offering, EnrollmentStatus.WAITLISTED, 1)

        await enrollment_service.admin_delete_enrollment(seated.id, admin)

        assert seated.id not in store.enrollments
        assert waiting.status == EnrollmentStatus.PENDING.value
        assert [a.action for a in store.audit_logs] == [AuditAction.ADMIN_DELETE_ENROLLMENT]

    @pytest.mark.asyncio
    async def test_admin_delete_requires_admin(
        self, store, enrollment_service, offering, students, parent
    ):
        seated = store.add_enrollment(students[0], offering)

        with pytest.raises(AuthorizationError):
            await enrollment_service.admin_delete_enrollment(seated.id, parent)


class TestBlocking:
    """Tests for blocking students through the service."""

    @pytest.mark.asyncio
    async def test_block_cancels_active_enrollment(
        self, store, enrollment_service, offering, students, teacher
    ):
        """Test blocking a seated student frees the seat for the waitlist."""
        seated = store.add_enrollment(students[0], offering)
        waiting = store.add_enrollment(students[1], offering, EnrollmentStatus.WAITLISTED, 1)

        response = await enrollment_service.block_student(
            offering.id, BlockRequest(student_id=students[0].id, reason="conduct"), teacher
        )

        assert response.student_id == students[0].id
        assert seated.status == EnrollmentStatus.CANCELLED.value
        assert waiting.status == EnrollmentStatus.PENDING.value
        assert [a.action for a in store.audit_logs] == [AuditAction.BLOCK_STUDENT]

    @pytest.mark.asyncio
    async def test_block_keeps_enrollment_when_disabled(
        self, store, settings, offering, students, teacher
    ):
        settings.enrollment.cancel_enrollment_on_block = False
        service = EnrollmentService(store, settings=settings)
        seated = store.add_enrollment(students[0], offering)

        await service.block_student(offering.id, BlockRequest(student_id=students[0].id), teacher)

        assert seated.status == EnrollmentStatus.PENDING.value

    @pytest.mark.asyncio
    async def test_other_teacher_cannot_block(self, enrollment_service, offering, students):
        from classreg.models.actor import Actor

        with pytest.raises(AuthorizationError):
            await enrollment_service.block_student(
                offering.id,
                BlockRequest(student_id=students[0].id),
                Actor(id="teacher-2", role="teacher"),
            )

    @pytest.mark.asyncio
    async def test_unblock_allows_enrollment_again(
        self, enrollment_service, offering, students, parent, admin
    ):
        await enrollment_service.block_student(
            offering.id, BlockRequest(student_id=students[0].id), admin
        )
        await enrollment_service.unblock_student(offering.id, students[0].id, admin)

        result = await enrollment_service.enroll_student(request(students[0], offering), parent)

        assert result.status == AdmissionStatus.PENDING


class TestTeacherWideBlocking:
    """Tests for blocks that span every class of a teacher."""

    @pytest.fixture
    def service(self, store, settings):
        settings.enrollment.teacher_wide_blocks = True
        return EnrollmentService(store, settings=settings)

    @pytest.mark.asyncio
    async def test_block_cancels_across_teacher_classes(
        self, store, service, offering, students, teacher
    ):
        other_class = store.add_class(capacity=1, teacher_id="teacher-1", name="Chess")
        elsewhere = store.add_class(capacity=1, teacher_id="teacher-2", name="Art")
        seated = store.add_enrollment(students[0], offering)
        queued = store.add_enrollment(students[0], other_class, EnrollmentStatus.WAITLISTED, 1)
        untouched = store.add_enrollment(students[0], elsewhere)
        waiting = store.add_enrollment(students[1], offering, EnrollmentStatus.WAITLISTED, 1)

        response = await service.block_student_teacher_wide(
            "teacher-1", BlockRequest(student_id=students[0].id, reason="conduct"), teacher
        )

        assert response.class_id is None
        assert response.teacher_id == "teacher-1"
        assert seated.status == EnrollmentStatus.CANCELLED.value
        assert queued.status == EnrollmentStatus.CANCELLED.value
        assert untouched.status == EnrollmentStatus.PENDING.value
        assert waiting.status == EnrollmentStatus.PENDING.value
        assert [a.action for a in store.audit_logs] == [AuditAction.BLOCK_STUDENT_TEACHER_WIDE]
        assert store.audit_logs[0].target_id == "teacher-1"

    @pytest.mark.asyncio
    async def test_blocked_student_rejected_from_any_teacher_class(
        self, store, service, students, parent, admin
    ):
        new_class = store.add_class(capacity=5, teacher_id="teacher-1", name="Drama")
        await service.block_student_teacher_wide(
            "teacher-1", BlockRequest(student_id=students[0].id), admin
        )

        result = await service.enroll_student(request(students[0], new_class), parent)

        assert result.status == AdmissionStatus.BLOCKED

    @pytest.mark.asyncio
    async def test_disabled_setting_rejected(self, store, enrollment_service, students, admin):
        with pytest.raises(ValidationError):
            await enrollment_service.block_student_teacher_wide(
                "teacher-1", BlockRequest(student_id=students[0].id), admin
            )

        assert store.blocks == {}

    @pytest.mark.asyncio
    async def test_other_teacher_cannot_block(self, service, students):
        from classreg.models.actor import Actor

        with pytest.raises(AuthorizationError):
            await service.block_student_teacher_wide(
                "teacher-1",
                BlockRequest(student_id=students[0].id),
                Actor(id="teacher-2", role="teacher"),
            )

    @pytest.mark.asyncio
    async def test_unblock_and_list(self, store, service, students, teacher):
        await service.block_student_teacher_wide("teacher-1", BlockRequest(student_id=students[0].id), teacher)
        await service.block_student_teacher_wide("teacher-1", BlockRequest(student_id=students[1].id), teacher)

        listed = await service.list_teacher_blocks("teacher-1", teacher)
        assert {b.student_id for b in listed} == {students[0].id, students[1].id}

        await service.unblock_student_teacher_wide("teacher-1", students[0].id, teacher)

        listed = await service.list_teacher_blocks("teacher-1", teacher)
        assert [b.student_id for b in listed] == [students[1].id]
        assert store.audit_logs[-1].action == AuditAction.UNBLOCK_STUDENT_TEACHER_WIDE

    @pytest.mark.asyncio
    async def test_unblock_missing(self, service, students, admin):
        with pytest.raises(BlockNotFoundError):
            await service.unblock_student_teacher_wide("teacher-1", students[0].id, admin)


class TestRosterAndReads:
    """Tests for roster and listing reads."""

    @pytest.mark.asyncio
    async def test_roster_reconciles_over_admission(
        self, store, enrollment_service, offering, students, teacher
    ):
        """Test a raced second pending row is demoted when the roster is read."""
        first = store.add_enrollment(students[0], offering)
        raced = store.add_enrollment(students[1], offering)

        roster = await enrollment_service.get_class_roster(offering.id, teacher)

        assert roster.demoted == 1
        assert [e.enrollment.id for e in roster.enrolled] == [first.id]
        assert [e.enrollment.id for e in roster.waitlisted] == [raced.id]
        assert roster.waitlisted[0].student.full_name == "S2 Lovelace"

    @pytest.mark.asyncio
    async def test_roster_orders_waitlist_by_position(
        self, store, enrollment_service, offering, students, admin
    ):
        later = store.add_enrollment(students[0], offering, EnrollmentStatus.WAITLISTED, 9)
        sooner = store.add_enrollment(students[1], offering, EnrollmentStatus.WAITLISTED, 2)

        roster = await enrollment_service.get_class_roster(offering.id, admin)

        assert [e.enrollment.id for e in roster.waitlisted] == [sooner.id, later.id]

    @pytest.mark.asyncio
    async def test_roster_flags_blocked_students(
        self, store, enrollment_service, offering, students, admin
    ):
        store.add_enrollment(students[0], offering, EnrollmentStatus.CONFIRMED)
        await enrollment_service.blocks.block(offering.id, students[0].id)

        roster = await enrollment_service.get_class_roster(offering.id, admin)

        assert roster.enrolled[0].is_blocked is True

    @pytest.mark.asyncio
    async def test_parent_cannot_view_roster(self, enrollment_service, offering, parent):
        with pytest.raises(AuthorizationError):
            await enrollment_service.get_class_roster(offering.id, parent)

    @pytest.mark.asyncio
    async def test_list_student_enrollments(
        self, store, enrollment_service, students, parent
    ):
        a = store.add_class(name="A")
        b = store.add_class(name="B", block="Block 2")
        store.add_enrollment(students[0], a)
        newest = store.add_enrollment(students[0], b, EnrollmentStatus.WAITLISTED, 1)

        listed = await enrollment_service.list_student_enrollments(students[0].id, parent)

        assert [e.id for e in listed][0] == newest.id
        assert len(listed) == 2

    @pytest.mark.asyncio
    async def test_reconcile_class_audits_demotions(
        self, store, enrollment_service, offering, students, admin
    ):
        store.add_enrollment(students[0], offering)
        store.add_enrollment(students[1], offering)

        demoted = await enrollment_service.reconcile_class(offering.id, admin)

        assert len(demoted) == 1
        assert demoted[0].status == EnrollmentStatus.WAITLISTED
        assert [a.action for a in store.audit_logs] == [AuditAction.RECONCILE_CLASS]
