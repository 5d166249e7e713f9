# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Promotion engine: refills seats from the waitlist.

A vacancy is handled in two durable steps. The vacating row is marked
``cancelled`` and committed first, so a crash before promotion can never
double-promote. Then, while a regular seat is free, the head of the
waitlist (lowest position, earliest join) moves to ``pending`` with its
position cleared and is committed. Remaining positions are not renumbered.
Notifications go out after each commit and never undo it.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from classreg.core.config import EnrollmentSettings
from classreg.domains.enrollment.capacity import CapacityCounter
from classreg.domains.enrollment.notifications import EnrollmentNotifier
from classreg.models.common import SEATED_ENROLLMENT_STATUSES, ClassStatus, EnrollmentStatus
from classreg.utils.datetime import utc_now

if TYPE_CHECKING:
    from classreg.infrastructure.database.models import Enrollment
    from classreg.infrastructure.database.store import RegistrationStore

logger = logging.getLogger(__name__)

_SEATED = frozenset(s.value for s in SEATED_ENROLLMENT_STATUSES)


class PromotionEngine:
    """Handles seat vacancies and waitlist promotion.

    Attributes:
        store: Registration store.
        settings: Enrollment policy settings.
    """

    def __init__(
        self,
        store: RegistrationStore,
        settings: EnrollmentSettings | None = None,
        capacity: CapacityCounter | None = None,
        notifier: EnrollmentNotifier | None = None,
    ) -> None:
        self.store = store
        self.settings = settings or EnrollmentSettings()
        self.capacity = capacity or CapacityCounter(store, self.settings)
        self.notifier = notifier or EnrollmentNotifier()

    async def vacate(self, enrollment: Enrollment) -> list[Enrollment]:
        """Cancel an enrollment and promote from the waitlist if a seat freed up.

        Cancelling an already cancelled row is a no-op. Cancelling a
        waitlisted row frees no seat, so nobody is promoted.

        Returns:
            The enrollments promoted as a result (at most one per freed seat).
        """
        if enrollment.status == EnrollmentStatus.CANCELLED.value:
            logger.debug("Enrollment %s already cancelled", enrollment.id)
            return []

        previous = enrollment.status
        enrollment.status = EnrollmentStatus.CANCELLED.value
        enrollment.waitlist_position = None
        enrollment.updated_at = utc_now()
        await self.store.update(enrollment)
        await self.store.commit()

        logger.info(
            "Vacated enrollment %s (was %s) in class %s",
            enrollment.id,
            previous,
            enrollment.class_id,
        )
        await self.notifier.cancelled(enrollment)

        if previous not in _SEATED:
            return []
        return await self.fill_open_seats(enrollment.class_id)

    async def remove(self, enrollment: Enrollment) -> list[Enrollment]:
        """Physically delete an enrollment, then refill any seat it held."""
        previous = enrollment.status
        class_id = enrollment.class_id
        await self.store.delete(enrollment)
        await self.store.commit()
        logger.info("Deleted enrollment %s (was %s) in class %s", enrollment.id, previous, class_id)

        if previous not in _SEATED:
            return []
        return await self.fill_open_seats(class_id)

    async def fill_open_seats(self, class_id: str) -> list[Enrollment]:
        """Promote waitlist heads while regular seats are free.

        Each promotion is committed before the next seat is looked at.
        Classes that are not published are left alone.

        Returns:
            The promoted enrollments, in promotion order.
        """
        promoted: list[Enrollment] = []

        while True:
            offering = await self.store.get_class(
                class_id, for_update=self.settings.lock_class_on_admission
            )
            if offering is None or offering.status != ClassStatus.PUBLISHED.value:
                break

            occupied = await self.capacity.regular_occupancy(class_id)
            if occupied >= offering.capacity:
                break

            heads = await self.store.list_waitlist(class_id, limit=1)
            if not heads:
                break

            head = heads[0]
            position = head.waitlist_position
            head.status = EnrollmentStatus.PENDING.value
            head.waitlist_position = None
            head.updated_at = utc_now()
            await self.store.update(head)
            await self.store.commit()
            promoted.append(head)

            logger.info(
                "Promoted enrollment %s from waitlist position %s in class %s",
                head.id,
                position,
                class_id,
            )
            await self.notifier.promoted(head)

        # Releases the class lock when nothing was promoted
        await self.store.commit()
        return promoted
