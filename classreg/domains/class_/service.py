# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Class service for managing class offerings.

This module provides the ClassService class for:
- Class CRUD with slot validation and teacher/room conflict checks
- Lifecycle transitions (draft, published, cancelled, completed)
- Seat counts and the schedule board
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from classreg.core.config import Settings, get_settings
from classreg.domains.enrollment.capacity import CapacityCounter
from classreg.domains.enrollment.notifications import EnrollmentNotifier
from classreg.domains.enrollment.promotion import PromotionEngine
from classreg.domains.exceptions import (
    AuthorizationError,
    ClassNotFoundError,
    InvalidTransitionError,
    ValidationError,
)
from classreg.domains.schedule import check_slot_available, detect_batch_conflicts, validate_slot
from classreg.infrastructure.database.models import ClassOffering, new_id
from classreg.infrastructure.events import EventTypes, get_event_bus
from classreg.models.class_ import (
    ClassCreateRequest,
    ClassResponse,
    ClassUpdateRequest,
    ScheduleBoard,
)
from classreg.models.common import (
    INACTIVE_CLASS_STATUSES,
    ActorRole,
    ClassStatus,
    EnrollmentStatus,
)
from classreg.utils.datetime import utc_now

if TYPE_CHECKING:
    from classreg.infrastructure.database.store import RegistrationStore
    from classreg.models.actor import Actor

logger = logging.getLogger(__name__)

# Allowed lifecycle transitions: target -> permitted source statuses
_TRANSITIONS: dict[ClassStatus, tuple[ClassStatus, ...]] = {
    ClassStatus.PUBLISHED: (ClassStatus.DRAFT, ClassStatus.CANCELLED),
    ClassStatus.CANCELLED: (ClassStatus.DRAFT, ClassStatus.PUBLISHED),
    ClassStatus.COMPLETED: (ClassStatus.PUBLISHED,),
}

_SCHEDULE_FIELDS = ("day", "block", "teacher_id", "location")


class ClassService:
    """Service for managing class offerings.

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
        """Initialize class service.

        Args:
            store: Registration store bound to the request's session.
            settings: Application settings; defaults to get_settings().
            notifier: Notification publisher used for waitlist promotions.
        """
        self.store = store
        self.settings = settings or get_settings()
        self.capacity = CapacityCounter(store, self.settings.enrollment)
        self.promotion = PromotionEngine(
            store,
            self.settings.enrollment,
            self.capacity,
            notifier or EnrollmentNotifier(),
        )

    async def create_class(
        self,
        request: ClassCreateRequest,
        actor: Actor,
    ) -> ClassResponse:
        """Create a draft class.

        Args:
            request: Class creation data.
            actor: Teacher (for their own classes), scheduler or admin.

        Returns:
            Created class response.

        Raises:
            AuthorizationError: If the actor may not schedule this class.
            MissingFieldError: If day or block is absent.
            InvalidDayError: If the day is not a legal pattern.
            InvalidBlockError: If the block is not Block 1-5.
            ScheduleConflictError: If the teacher or room is already booked.
        """
        self._ensure_can_schedule(actor, request.teacher_id)
        validate_slot(request.day, request.block)
        await self._check_conflicts(request.day, request.block, request.teacher_id, request.location)

        now = utc_now()
        offering = ClassOffering(
            id=new_id(),
            name=request.name,
            teacher_id=request.teacher_id,
            location=request.location,
            day=request.day,
            block=request.block,
            capacity=request.capacity,
            price=request.price,
            status=ClassStatus.DRAFT.value,
            created_by=actor.id,
            created_at=now,
            updated_at=now,
        )
        await self.store.insert(offering)
        await self.store.commit()

        logger.info("Created class: %s (%s) by %s", offering.name, offering.id, actor.id)
        await self._publish(EventTypes.Class.CREATED, offering)
        return await self._to_response(offering)

    async def get_class(self, class_id: str) -> ClassResponse:
        """Get a class with its seat counts.

        Raises:
            ClassNotFoundError: If class not found.
        """
        return await self._to_response(await self._get_by_id(class_id))

    async def update_class(
        self,
        class_id: str,
        request: ClassUpdateRequest,
        actor: Actor,
    ) -> ClassResponse:
        """Update a draft or published class.

        The slot is re-validated when day, block, teacher or room change. A
        capacity increase on a published class fills the new seats from the
        waitlist.

        Raises:
            ClassNotFoundError: If class not found.
            InvalidTransitionError: If the class is cancelled or completed.
            ValidationError: If capacity drops below the confirmed seats.
            ScheduleConflictError: If the new slot is already booked.
        """
        offering = await self._get_by_id(class_id)
        self._ensure_can_schedule(actor, offering.teacher_id)
        if offering.status in {s.value for s in INACTIVE_CLASS_STATUSES}:
            raise InvalidTransitionError(f"Cannot edit a {offering.status} class")

        changes: dict[str, Any] = request.model_dump(exclude_unset=True)
        if "teacher_id" in changes:
            self._ensure_can_schedule(actor, changes["teacher_id"])

        if any(field in changes for field in _SCHEDULE_FIELDS):
            day = changes.get("day", offering.day)
            block = changes.get("block", offering.block)
            teacher_id = changes.get("teacher_id", offering.teacher_id)
            location = changes.get("location", offering.location)
            validate_slot(day, block)
            await self._check_conflicts(day, block, teacher_id, location, exclude_id=offering.id)

        old_capacity = offering.capacity
        new_capacity = changes.get("capacity")
        if new_capacity is not None and new_capacity < old_capacity:
            confirmed = await self.store.count_enrollments(
                offering.id, [EnrollmentStatus.CONFIRMED], is_override=False
            )
            if new_capacity < confirmed:
                raise ValidationError(
                    f"Capacity cannot be lower than the {confirmed} confirmed seats"
                )

        for field, value in changes.items():
            if value is not None or field == "location":
                setattr(offering, field, value)
        offering.updated_at = utc_now()
        await self.store.update(offering)
        await self.store.commit()

        logger.info("Updated class: %s", class_id)

        if offering.capacity > old_capacity:
            promoted = await self.promotion.fill_open_seats(offering.id)
            if promoted:
                logger.info(
                    "Capacity increase on class %s promoted %d enrollment(s)",
                    class_id,
                    len(promoted),
                )
        return await self._to_response(offering)

    async def publish_class(self, class_id: str, actor: Actor) -> ClassResponse:
        """Open a draft (or re-open a cancelled) class for enrollment.

        Raises:
            ClassNotFoundError: If class not found.
            InvalidTransitionError: If the class cannot be published.
            ScheduleConflictError: If the slot collides with an active class.
        """
        offering = await self._get_by_id(class_id)
        self._ensure_can_schedule(actor, offering.teacher_id)
        self._ensure_transition(offering, ClassStatus.PUBLISHED)

        validate_slot(offering.day, offering.block)
        await self._check_conflicts(
            offering.day, offering.block, offering.teacher_id, offering.location,
            exclude_id=offering.id,
        )
        return await self._transition(offering, ClassStatus.PUBLISHED, EventTypes.Class.PUBLISHED)

    async def cancel_class(self, class_id: str, actor: Actor) -> ClassResponse:
        """Soft-cancel a class.

        Raises:
            ClassNotFoundError: If class not found.
            InvalidTransitionError: If the class is already cancelled or completed.
        """
        offering = await self._get_by_id(class_id)
        self._ensure_can_schedule(actor, offering.teacher_id)
        self._ensure_transition(offering, ClassStatus.CANCELLED)
        return await self._transition(offering, ClassStatus.CANCELLED, EventTypes.Class.CANCELLED)

    async def complete_class(self, class_id: str, actor: Actor) -> ClassResponse:
        """Mark a published class as completed.

        Raises:
            ClassNotFoundError: If class not found.
            InvalidTransitionError: If the class is not published.
        """
        offering = await self._get_by_id(class_id)
        self._ensure_can_schedule(actor, offering.teacher_id)
        self._ensure_transition(offering, ClassStatus.COMPLETED)
        return await self._transition(offering, ClassStatus.COMPLETED, EventTypes.Class.COMPLETED)

    async def delete_class(self, class_id: str, actor: Actor) -> None:
        """Delete a class that never left draft.

        Raises:
            ClassNotFoundError: If class not found.
            InvalidTransitionError: If the class is not a draft.
        """
        offering = await self._get_by_id(class_id)
        self._ensure_can_schedule(actor, offering.teacher_id)
        if offering.status != ClassStatus.DRAFT.value:
            raise InvalidTransitionError("Only draft classes can be deleted; cancel it instead")

        await self.store.delete(offering)
        await self.store.commit()
        logger.info("Deleted draft class: %s", class_id)

    async def schedule_board(self) -> ScheduleBoard:
        """All active classes and the ids that collide on teacher or room."""
        offerings = await self.store.list_classes(exclude_statuses=INACTIVE_CLASS_STATUSES)
        conflicting = detect_batch_conflicts(offerings)
        classes = [await self._to_response(o) for o in offerings]
        return ScheduleBoard(
            classes=classes,
            conflicting_ids=sorted(conflicting),
            total=len(classes),
        )

    # =========================================================================
    # Private helpers
    # =========================================================================

    async def _get_by_id(self, class_id: str) -> ClassOffering:
        offering = await self.store.get_class(class_id)
        if offering is None:
            raise ClassNotFoundError(f"Class {class_id} not found")
        return offering

    async def _check_conflicts(
        self,
        day: str,
        block: str,
        teacher_id: str | None,
        location: str | None,
        exclude_id: str | None = None,
    ) -> None:
        existing = await self.store.list_classes(exclude_statuses=INACTIVE_CLASS_STATUSES)
        check_slot_available(day, block, teacher_id, location, existing, exclude_id=exclude_id)

    @staticmethod
    def _ensure_can_schedule(actor: Actor, teacher_id: str | None) -> None:
        if actor.is_admin or actor.has_role(ActorRole.CLASS_SCHEDULER):
            return
        if actor.has_role(ActorRole.TEACHER) and str(actor.id) == str(teacher_id):
            return
        raise AuthorizationError("You cannot schedule classes for this teacher")

    @staticmethod
    def _ensure_transition(offering: ClassOffering, target: ClassStatus) -> None:
        allowed = {s.value for s in _TRANSITIONS[target]}
        if offering.status not in allowed:
            raise InvalidTransitionError(
                f"Cannot move class from {offering.status} to {target.value}"
            )

    async def _transition(
        self,
        offering: ClassOffering,
        target: ClassStatus,
        event_type: str,
    ) -> ClassResponse:
        previous = offering.status
        offering.status = target.value
        offering.updated_at = utc_now()
        await self.store.update(offering)
        await self.store.commit()

        logger.info("Class %s: %s -> %s", offering.id, previous, target.value)
        await self._publish(event_type, offering)
        return await self._to_response(offering)

    async def _publish(self, event_type: str, offering: ClassOffering) -> None:
        try:
            await get_event_bus().publish(
                event_type,
                {"class_id": offering.id, "name": offering.name, "status": offering.status},
            )
        except Exception as e:
            logger.error("Failed to publish %s for class %s: %s", event_type, offering.id, str(e))

    async def _to_response(self, offering: ClassOffering) -> ClassResponse:
        return ClassResponse(
            id=offering.id,
            name=offering.name,
            teacher_id=offering.teacher_id,
            location=offering.location,
            day=offering.day,
            block=offering.block,
            capacity=offering.capacity,
            price=offering.price,
            status=ClassStatus(offering.status),
            confirmed_count=await self.capacity.confirmed_count(offering.id),
            pending_count=await self.capacity.pending_count(offering.id),
            waitlist_count=await self.capacity.waitlist_count(offering.id),
            created_at=offering.created_at,
            updated_at=offering.updated_at,
        )
