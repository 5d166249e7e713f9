# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for seat counting, the block registry and the audit trail."""

import pytest

from classreg.core.config import EnrollmentSettings
from classreg.domains.audit import AuditAction, AuditService
from classreg.domains.blocking import BlockRegistry
from classreg.domains.enrollment import CapacityCounter
from classreg.domains.exceptions import BlockNotFoundError
from classreg.models.common import EnrollmentStatus


class TestCapacityCounter:
    """Tests for CapacityCounter."""

    @pytest.fixture
    def seeded(self, store):
        offering = store.add_class(capacity=3)
        store.add_enrollment(store.add_student(first_name="P"), offering, EnrollmentStatus.PENDING)
        store.add_enrollment(store.add_student(first_name="C"), offering, EnrollmentStatus.CONFIRMED)
        store.add_enrollment(
            store.add_student(first_name="O"), offering, EnrollmentStatus.CONFIRMED, is_override=True
        )
        store.add_enrollment(store.add_student(first_name="W"), offering, EnrollmentStatus.WAITLISTED, 3)
        store.add_enrollment(store.add_student(first_name="X"), offering, EnrollmentStatus.CANCELLED)
        return offering

    @pytest.mark.asyncio
    async def test_counts_by_status(self, store, seeded):
        counter = CapacityCounter(store, EnrollmentSettings())

        assert await counter.confirmed_count(seeded.id) == 2
        assert await counter.pending_count(seeded.id) == 1
        assert await counter.waitlist_count(seeded.id) == 1

    @pytest.mark.asyncio
    async def test_regular_occupancy_excludes_overrides(self, store, seeded):
        counter = CapacityCounter(store, EnrollmentSettings())

        assert await counter.regular_occupancy(seeded.id) == 2
        assert await counter.open_seats(seeded) == 1
        assert await counter.has_open_seat(seeded) is True

    @pytest.mark.asyncio
    async def test_regular_occupancy_with_overrides_counted(self, store, seeded):
        counter = CapacityCounter(store, EnrollmentSettings(count_overrides_toward_capacity=True))

        assert await counter.regular_occupancy(seeded.id) == 3
        assert await counter.has_open_seat(seeded) is False

    @pytest.mark.asyncio
    async def test_next_waitlist_position(self, store, seeded):
        counter = CapacityCounter(store, EnrollmentSettings())

        assert await counter.next_waitlist_position(seeded.id) == 4
        assert await counter.next_waitlist_position("empty-class") == 1


class TestBlockRegistry:
    """Tests for BlockRegistry."""

    @pytest.mark.asyncio
    async def test_block_and_check(self, store):
        registry = BlockRegistry(store)
        offering = store.add_class()
        student = store.add_student()

        assert await registry.is_blocked(offering.id, student.id) is False
        block = await registry.block(offering.id, student.id, reason="disruptive", created_by="t1")

        assert await registry.is_blocked(offering.id, student.id) is True
        assert block.reason == "disruptive"

    @pytest.mark.asyncio
    async def test_block_is_idempotent(self, store):
        registry = BlockRegistry(store)
        offering = store.add_class()
        student = store.add_student()

        first = await registry.block(offering.id, student.id)
        second = await registry.block(offering.id, student.id, reason="again")

        assert second is first
        assert len(store.blocks) == 1

    @pytest.mark.asyncio
    async def test_block_scoped_to_class(self, store):
        registry = BlockRegistry(store)
        blocked_in = store.add_class(name="A")
        other = store.add_class(name="B", block="Block 2")
        student = store.add_student()
        await registry.block(blocked_in.id, student.id)

        assert await registry.is_blocked(other.id, student.id) is False

    @pytest.mark.asyncio
    async def test_unblock(self, store):
        registry = BlockRegistry(store)
        offering = store.add_class()
        student = store.add_student()
        await registry.block(offering.id, student.id)

        await registry.unblock(offering.id, student.id)

        assert await registry.is_blocked(offering.id, student.id) is False

    @pytest.mark.asyncio
    async def test_unblock_missing_raises(self, store):
        registry = BlockRegistry(store)
        with pytest.raises(BlockNotFoundError):
            await registry.unblock("class", "student")

    @pytest.mark.asyncio
    async def test_teacher_wide_block(self, store):
        registry = BlockRegistry(store, EnrollmentSettings(teacher_wide_blocks=True))
        offering = store.add_class(teacher_id="t7")
        student = store.add_student()

        await registry.block_teacher_wide("t7", student.id)

        assert await registry.is_blocked(offering.id, student.id, teacher_id="t7") is True
        assert await registry.is_blocked(offering.id, student.id, teacher_id="t8") is False

        await registry.unblock_teacher_wide("t7", student.id)
        assert await registry.is_blocked(offering.id, student.id, teacher_id="t7") is False

    @pytest.mark.asyncio
    async def test_list_blocks(self, store):
        registry = BlockRegistry(store)
        offering = store.add_class()
        await registry.block(offering.id, store.add_student(first_name="A").id)
        await registry.block(offering.id, store.add_student(first_name="B").id)

        assert len(await registry.list_blocks(offering.id)) == 2


class TestAuditService:
    """Tests for AuditService."""

    @pytest.mark.asyncio
    async def test_record_writes_entry(self, store):
        entry = await AuditService(store).record(
            "admin-1", AuditAction.FORCE_ENROLL, "enrollment", "e1", {"reason": "sibling"}
        )

        assert entry is not None
        assert store.audit_logs == [entry]
        assert entry.details == {"reason": "sibling"}

    @pytest.mark.asyncio
    async def test_record_failure_is_swallowed(self, store):
        store.fail_audit = True

        entry = await AuditService(store).record("admin-1", AuditAction.BLOCK_STUDENT, "class", "c1")

        assert entry is None
        assert store.audit_logs == []
