# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

Provides an in-memory RegistrationStore double so the admission,
promotion and reconciliation engines can be exercised without a database,
plus settings, actor and event bus fixtures.
"""

from __future__ import annotations

import asyncio
import itertools
from collections import defaultdict
from collections.abc import Generator, Iterable, Sequence
from datetime import timedelta
from typing import Any

import pytest

from classreg.core.config import EnrollmentSettings, RegistrationSettings, Settings
from classreg.domains.exceptions import DuplicateEnrollmentError, StoreError
from classreg.infrastructure.database.models import (
    AuditLog,
    ClassBlock,
    ClassOffering,
    Enrollment,
    FamilyMember,
    Payment,
    new_id,
)
from classreg.infrastructure.events import EventData, get_event_bus, reset_event_bus
from classreg.models.actor import Actor
from classreg.models.common import ClassStatus, EnrollmentStatus, PaymentStatus
from classreg.utils.datetime import utc_now


def _values(statuses: Iterable[Any]) -> set[str]:
    return {getattr(s, "value", s) for s in statuses}


class FakeRegistrationStore:
    """In-memory implementation of the RegistrationStore surface.

    Rows are real ORM instances kept in dictionaries. Creation times are
    strictly increasing so ordering by created_at is deterministic.
    """

    def __init__(self) -> None:
        self.classes: dict[str, ClassOffering] = {}
        self.students: dict[str, FamilyMember] = {}
        self.enrollments: dict[str, Enrollment] = {}
        self.blocks: dict[str, ClassBlock] = {}
        self.payments: dict[str, Payment] = {}
        self.audit_logs: list[AuditLog] = []
        self.commits = 0
        self.rollbacks = 0
        self.locked_class_ids: list[str] = []
        self.fail_inserts = False
        self.fail_audit = False
        self._clock = utc_now()
        self._ticks = itertools.count(1)

    # ---------------------------------------------------------------------
    # Seeding helpers
    # ---------------------------------------------------------------------

    def _next_time(self):
        return self._clock + timedelta(milliseconds=next(self._ticks))

    def _stamp(self, obj: Any) -> None:
        if getattr(obj, "id", None) is None:
            obj.id = new_id()
        now = self._next_time()
        obj.created_at = now
        obj.updated_at = now

    def add_class(
        self,
        capacity: int = 1,
        price: int = 5000,
        status: ClassStatus = ClassStatus.PUBLISHED,
        teacher_id: str = "teacher-1",
        day: str = "Tuesday",
        block: str = "Block 1",
        location: str | None = "Room 101",
        name: str = "Robotics",
    ) -> ClassOffering:
        offering = ClassOffering(
            name=name,
            teacher_id=teacher_id,
            location=location,
            day=day,
            block=block,
            capacity=capacity,
            price=price,
            status=status.value,
        )
        self._stamp(offering)
        self.classes[offering.id] = offering
        return offering

    def add_student(
        self,
        parent_id: str = "parent-1",
        first_name: str = "Ada",
        last_name: str = "Lovelace",
        relationship: str = "Student",
    ) -> FamilyMember:
        student = FamilyMember(
            parent_id=parent_id,
            first_name=first_name,
            last_name=last_name,
            relationship=relationship,
        )
        self._stamp(student)
        self.students[student.id] = student
        return student

    def add_enrollment(
        self,
        student: FamilyMember,
        offering: ClassOffering,
        status: EnrollmentStatus = EnrollmentStatus.PENDING,
        waitlist_position: int | None = None,
        is_override: bool = False,
    ) -> Enrollment:
        enrollment = Enrollment(
            student_id=student.id,
            class_id=offering.id,
            status=status.value,
            waitlist_position=waitlist_position,
            is_override=is_override,
        )
        self._stamp(enrollment)
        self.enrollments[enrollment.id] = enrollment
        return enrollment

    def add_payment(
        self,
        enrollment: Enrollment,
        status: PaymentStatus = PaymentStatus.COMPLETED,
        amount: int = 5000,
    ) -> Payment:
        payment = Payment(enrollment_id=enrollment.id, amount=amount, status=status.value)
        self._stamp(payment)
        self.payments[payment.id] = payment
        return payment

    def enrollments_for(self, class_id: str, *statuses: EnrollmentStatus) -> list[Enrollment]:
        wanted = _values(statuses) if statuses else None
        rows = [
            e for e in self.enrollments.values()
            if e.class_id == class_id and (wanted is None or e.status in wanted)
        ]
        return sorted(rows, key=lambda e: e.created_at)

    # ---------------------------------------------------------------------
    # Store surface
    # ---------------------------------------------------------------------

    async def commit(self) -> None:
        self.commits += 1

    async def rollback(self) -> None:
        self.rollbacks += 1

    async def insert(self, obj: Any) -> Any:
        if self.fail_inserts:
            raise StoreError("Failed to insert", RuntimeError("connection reset"))
        # Mirrors the partial unique index on active (student, class) pairs
        if isinstance(obj, Enrollment) and obj.status != EnrollmentStatus.CANCELLED.value:
            if await FakeRegistrationStore.find_active_enrollment(self, obj.student_id, obj.class_id):
                raise DuplicateEnrollmentError()
        if getattr(obj, "id", None) is None:
            obj.id = new_id()
        now = self._next_time()
        # Keep monotonic ordering even when callers stamp times themselves
        obj.created_at = now
        obj.updated_at = now
        self._table(obj)[obj.id] = obj
        return obj

    async def update(self, obj: Any) -> Any:
        return obj

    async def delete(self, obj: Any) -> None:
        self._table(obj).pop(obj.id, None)

    def _table(self, obj: Any) -> dict[str, Any]:
        tables = {
            ClassOffering: self.classes,
            FamilyMember: self.students,
            Enrollment: self.enrollments,
            ClassBlock: self.blocks,
            Payment: self.payments,
        }
        return tables[type(obj)]

    async def get_class(self, class_id: str, for_update: bool = False) -> ClassOffering | None:
        if for_update:
            self.locked_class_ids.append(class_id)
        return self.classes.get(class_id)

    async def list_classes(self, exclude_statuses: Sequence[Any] = ()) -> list[ClassOffering]:
        excluded = _values(exclude_statuses)
        rows = [c for c in self.classes.values() if c.status not in excluded]
        return sorted(rows, key=lambda c: c.created_at)

    async def get_student(self, student_id: str) -> FamilyMember | None:
        return self.students.get(student_id)

    async def get_enrollment(self, enrollment_id: str) -> Enrollment | None:
        return self.enrollments.get(enrollment_id)

    async def find_active_enrollment(self, student_id: str, class_id: str) -> Enrollment | None:
        rows = [
            e for e in self.enrollments.values()
            if e.student_id == student_id
            and e.class_id == class_id
            and e.status != EnrollmentStatus.CANCELLED.value
        ]
        rows.sort(key=lambda e: e.created_at, reverse=True)
        return rows[0] if rows else None

    async def count_enrollments(
        self,
        class_id: str,
        statuses: Sequence[Any],
        is_override: bool | None = None,
    ) -> int:
        return len(await self.list_enrollments(class_id, statuses, is_override=is_override))

    async def max_waitlist_position(self, class_id: str) -> int | None:
        positions = [
            e.waitlist_position for e in self.enrollments_for(class_id, EnrollmentStatus.WAITLISTED)
            if e.waitlist_position is not None
        ]
        return max(positions) if positions else None

    async def list_waitlist(self, class_id: str, limit: int | None = None) -> list[Enrollment]:
        rows = self.enrollments_for(class_id, EnrollmentStatus.WAITLISTED)
        rows.sort(key=lambda e: (e.waitlist_position or 0, e.created_at))
        return rows[:limit] if limit is not None else rows

    async def list_enrollments(
        self,
        class_id: str,
        statuses: Sequence[Any],
        is_override: bool | None = None,
    ) -> list[Enrollment]:
        rows = self.enrollments_for(class_id, *statuses)
        if is_override is not None:
            rows = [e for e in rows if bool(e.is_override) is is_override]
        return rows

    async def list_student_enrollments(self, student_id: str) -> list[Enrollment]:
        rows = [e for e in self.enrollments.values() if e.student_id == student_id]
        return sorted(rows, key=lambda e: e.created_at, reverse=True)

    async def list_teacher_enrollments(
        self,
        teacher_id: str,
        student_id: str,
        statuses: Sequence[Any],
    ) -> list[Enrollment]:
        wanted = _values(statuses)
        rows = [
            e for e in self.enrollments.values()
            if e.student_id == student_id
            and e.status in wanted
            and e.class_id in self.classes
            and self.classes[e.class_id].teacher_id == teacher_id
        ]
        return sorted(rows, key=lambda e: e.created_at)

    async def list_roster_rows(
        self,
        class_id: str,
        statuses: Sequence[Any],
    ) -> list[tuple[Enrollment, FamilyMember]]:
        return [
            (e, self.students[e.student_id])
            for e in self.enrollments_for(class_id, *statuses)
            if e.student_id in self.students
        ]

    async def find_class_block(self, class_id: str, student_id: str) -> ClassBlock | None:
        for block in self.blocks.values():
            if block.class_id == class_id and block.student_id == student_id:
                return block
        return None

    async def find_teacher_block(self, teacher_id: str, student_id: str) -> ClassBlock | None:
        for block in self.blocks.values():
            if block.class_id is None and block.teacher_id == teacher_id and block.student_id == student_id:
                return block
        return None

    async def list_class_blocks(self, class_id: str) -> list[ClassBlock]:
        return [b for b in self.blocks.values() if b.class_id == class_id]

    async def list_teacher_blocks(self, teacher_id: str) -> list[ClassBlock]:
        return [
            b for b in self.blocks.values()
            if b.class_id is None and b.teacher_id == teacher_id
        ]

    async def get_payment_for_enrollment(self, enrollment_id: str) -> Payment | None:
        rows = [p for p in self.payments.values() if p.enrollment_id == enrollment_id]
        rows.sort(key=lambda p: p.created_at, reverse=True)
        return rows[0] if rows else None

    async def insert_audit_log(self, entry: AuditLog) -> AuditLog:
        if self.fail_audit:
            raise StoreError("Failed to write audit log", RuntimeError("savepoint failed"))
        self._stamp(entry)
        self.audit_logs.append(entry)
        return entry


class RacingRegistrationStore(FakeRegistrationStore):
    """Store double that lets concurrent requests interleave.

    Every read and insert yields to the event loop first, so coroutines
    gathered together observe each other's half-finished work the way
    separate database sessions would. ``get_class(for_update=True)`` takes a
    per-class lock held by the calling task until its next commit or
    rollback, like SELECT ... FOR UPDATE.
    """

    def __init__(self) -> None:
        super().__init__()
        self._class_locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._held: dict[asyncio.Task, list[str]] = defaultdict(list)

    def _release(self) -> None:
        for class_id in self._held.pop(asyncio.current_task(), []):
            self._class_locks[class_id].release()

    async def commit(self) -> None:
        self._release()
        await super().commit()

    async def rollback(self) -> None:
        self._release()
        await super().rollback()

    async def get_class(self, class_id: str, for_update: bool = False) -> ClassOffering | None:
        if for_update:
            held = self._held[asyncio.current_task()]
            if class_id not in held:
                await self._class_locks[class_id].acquire()
                held.append(class_id)
        await asyncio.sleep(0)
        return await super().get_class(class_id, for_update)

    async def find_active_enrollment(self, student_id: str, class_id: str) -> Enrollment | None:
        await asyncio.sleep(0)
        return await super().find_active_enrollment(student_id, class_id)

    async def count_enrollments(
        self,
        class_id: str,
        statuses: Sequence[Any],
        is_override: bool | None = None,
    ) -> int:
        await asyncio.sleep(0)
        return await super().count_enrollments(class_id, statuses, is_override=is_override)

    async def insert(self, obj: Any) -> Any:
        await asyncio.sleep(0)
        return await super().insert(obj)


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )


# =============================================================================
# Store and Settings Fixtures
# =============================================================================


@pytest.fixture
def store() -> FakeRegistrationStore:
    """Provide an empty in-memory registration store."""
    return FakeRegistrationStore()


@pytest.fixture
def racing_store() -> RacingRegistrationStore:
    """Provide a store whose calls interleave across gathered coroutines."""
    return RacingRegistrationStore()


@pytest.fixture
def enrollment_settings() -> EnrollmentSettings:
    """Default enrollment policy."""
    return EnrollmentSettings()


@pytest.fixture
def settings(enrollment_settings: EnrollmentSettings) -> Settings:
    """Application settings with an open registration window."""
    return Settings(
        enrollment=enrollment_settings,
        registration=RegistrationSettings(open=True),
    )


# =============================================================================
# Actor Fixtures
# =============================================================================


@pytest.fixture
def admin() -> Actor:
    return Actor(id="admin-1", role="admin")


@pytest.fixture
def parent() -> Actor:
    return Actor(id="parent-1", role="parent")


@pytest.fixture
def other_parent() -> Actor:
    return Actor(id="parent-2", role="parent")


@pytest.fixture
def teacher() -> Actor:
    return Actor(id="teacher-1", role="teacher")


# =============================================================================
# Event Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_event_bus() -> Generator[None, None, None]:
    """Reset the global event bus around every test."""
    reset_event_bus()
    yield
    reset_event_bus()


@pytest.fixture
def published_events() -> list[EventData]:
    """Collect every event published on the global bus."""
    events: list[EventData] = []

    async def collect(event: EventData) -> None:
        events.append(event)

    get_event_bus().subscribe("*", collect)
    return events
