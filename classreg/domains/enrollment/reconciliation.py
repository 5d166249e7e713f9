# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Over-admission reconciliation.

Without a class lock, two requests racing for the last seat can both pass
the capacity check. This pass repairs that: while regular occupancy
exceeds capacity, the most recently admitted ``pending`` rows are moved
back to ``waitlisted``. In a free class racers are auto-confirmed, so when
pending rows do not cover the excess the newest non-override ``confirmed``
rows are demoted too; there is no payment behind them to reverse. Paid
confirmed rows and force-enrolled overrides are never demoted. Demoted rows
are appended after the current highest waitlist position, keeping their
original join order among themselves.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from classreg.core.config import EnrollmentSettings
from classreg.domains.enrollment.capacity import CapacityCounter
from classreg.domains.enrollment.notifications import EnrollmentNotifier
from classreg.domains.exceptions import ClassNotFoundError
from classreg.models.common import EnrollmentStatus
from classreg.utils.datetime import utc_now

if TYPE_CHECKING:
    from classreg.infrastructure.database.models import Enrollment
    from classreg.infrastructure.database.store import RegistrationStore

logger = logging.getLogger(__name__)


class ReconciliationService:
    """Demotes excess unpaid enrollments of an over-admitted class."""

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

    async def reconcile(self, class_id: str) -> list[Enrollment]:
        """Bring a class back within capacity.

        Returns:
            The demoted enrollments in their new waitlist order.

        Raises:
            ClassNotFoundError: If the class does not exist.
        """
        offering = await self.store.get_class(
            class_id, for_update=self.settings.lock_class_on_admission
        )
        if offering is None:
            raise ClassNotFoundError(f"Class {class_id} not found")

        excess = await self.capacity.regular_occupancy(class_id) - offering.capacity
        if excess <= 0:
            await self.store.commit()
            return []

        pending = await self.store.list_enrollments(
            class_id, [EnrollmentStatus.PENDING], is_override=False
        )
        # Oldest first, so the tail holds the most recent admissions
        demoted = pending[-excess:]
        shortfall = excess - len(demoted)
        if shortfall > 0 and offering.price == 0:
            confirmed = await self.store.list_enrollments(
                class_id, [EnrollmentStatus.CONFIRMED], is_override=False
            )
            demoted = sorted(confirmed[-shortfall:] + demoted, key=lambda e: e.created_at)
        if not demoted:
            await self.store.commit()
            logger.warning(
                "Class %s is over capacity by %d with no unpaid rows to demote",
                class_id,
                excess,
            )
            return []

        position = await self.capacity.next_waitlist_position(class_id)
        for enrollment in demoted:
            enrollment.status = EnrollmentStatus.WAITLISTED.value
            enrollment.waitlist_position = position
            enrollment.updated_at = utc_now()
            await self.store.update(enrollment)
            position += 1
        await self.store.commit()

        logger.warning(
            "Reconciled class %s: demoted %d enrollment(s) to the waitlist",
            class_id,
            len(demoted),
        )
        for enrollment in demoted:
            await self.notifier.demoted(enrollment)
        return list(demoted)
