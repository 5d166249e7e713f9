# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Fire-and-forget enrollment notifications.

Events are published on the in-process event bus after the store write
they describe has been committed. Delivery is best-effort: any failure is
logged and swallowed so it can never roll back an admission or promotion.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from classreg.infrastructure.events import EventBus, EventTypes, get_event_bus

if TYPE_CHECKING:
    from classreg.infrastructure.database.models import Enrollment

logger = logging.getLogger(__name__)

# Short event names carried in the payload, keyed by event type
_EVENT_NAMES = {
    EventTypes.Enrollment.ADMITTED: "admitted",
    EventTypes.Enrollment.WAITLISTED: "waitlisted",
    EventTypes.Enrollment.PROMOTED: "promoted",
    EventTypes.Enrollment.CONFIRMED: "confirmed",
    EventTypes.Enrollment.CANCELLED: "cancelled",
    EventTypes.Enrollment.DEMOTED: "demoted",
}


class EnrollmentNotifier:
    """Publishes enrollment lifecycle events."""

    def __init__(self, event_bus: EventBus | None = None) -> None:
        self._event_bus = event_bus

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus or get_event_bus()

    async def notify(self, event_type: str, enrollment: Enrollment, **extra: Any) -> bool:
        """Publish an event about an enrollment.

        Returns:
            True if the event was handed to the bus, False if publishing failed.
        """
        payload: dict[str, Any] = {
            "event": _EVENT_NAMES.get(event_type, event_type),
            "student_id": enrollment.student_id,
            "class_id": enrollment.class_id,
            "enrollment_id": enrollment.id,
            "status": enrollment.status,
            "waitlist_position": enrollment.waitlist_position,
            **extra,
        }
        try:
            await self.event_bus.publish(event_type, payload)
        except Exception as e:
            logger.error(
                "Failed to publish %s for enrollment %s: %s",
                event_type,
                enrollment.id,
                str(e),
            )
            return False
        return True

    async def admitted(self, enrollment: Enrollment) -> bool:
        return await self.notify(EventTypes.Enrollment.ADMITTED, enrollment)

    async def waitlisted(self, enrollment: Enrollment) -> bool:
        return await self.notify(EventTypes.Enrollment.WAITLISTED, enrollment)

    async def promoted(self, enrollment: Enrollment) -> bool:
        return await self.notify(EventTypes.Enrollment.PROMOTED, enrollment)

    async def confirmed(self, enrollment: Enrollment) -> bool:
        return await self.notify(EventTypes.Enrollment.CONFIRMED, enrollment)

    async def cancelled(self, enrollment: Enrollment) -> bool:
        return await self.notify(EventTypes.Enrollment.CANCELLED, enrollment)

    async def demoted(self, enrollment: Enrollment) -> bool:
        return await self.notify(EventTypes.Enrollment.DEMOTED, enrollment)
