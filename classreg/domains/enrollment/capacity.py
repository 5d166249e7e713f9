# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Read-side seat and waitlist counts for a class."""

from __future__ import annotations

from typing import TYPE_CHECKING

from classreg.core.config import EnrollmentSettings
from classreg.models.common import SEATED_ENROLLMENT_STATUSES, EnrollmentStatus

if TYPE_CHECKING:
    from classreg.infrastructure.database.models import ClassOffering
    from classreg.infrastructure.database.store import RegistrationStore


class CapacityCounter:
    """Derives occupancy figures from enrollment rows. Never writes.

    ``regular_occupancy`` is what admission, promotion and reconciliation
    compare against capacity: pending plus confirmed rows, leaving out
    force-enrolled overrides unless ``count_overrides_toward_capacity``
    is set.
    """

    def __init__(self, store: RegistrationStore, settings: EnrollmentSettings | None = None) -> None:
        self.store = store
        self.settings = settings or EnrollmentSettings()

    async def confirmed_count(self, class_id: str) -> int:
        return await self.store.count_enrollments(class_id, [EnrollmentStatus.CONFIRMED])

    async def pending_count(self, class_id: str) -> int:
        return await self.store.count_enrollments(class_id, [EnrollmentStatus.PENDING])

    async def waitlist_count(self, class_id: str) -> int:
        return await self.store.count_enrollments(class_id, [EnrollmentStatus.WAITLISTED])

    async def next_waitlist_position(self, class_id: str) -> int:
        """max(recorded waitlist positions, default 0) + 1."""
        current = await self.store.max_waitlist_position(class_id)
        return (current or 0) + 1

    async def regular_occupancy(self, class_id: str) -> int:
        """Seats held by pending and confirmed rows that count toward capacity."""
        is_override = None if self.settings.count_overrides_toward_capacity else False
        return await self.store.count_enrollments(
            class_id, SEATED_ENROLLMENT_STATUSES, is_override=is_override
        )

    async def open_seats(self, offering: ClassOffering) -> int:
        occupied = await self.regular_occupancy(offering.id)
        return max(0, offering.capacity - occupied)

    async def has_open_seat(self, offering: ClassOffering) -> bool:
        return await self.open_seats(offering) > 0
