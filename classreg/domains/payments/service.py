# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Payment service: applies processor callbacks to enrollments.

A completed payment confirms a pending enrollment. A completion for an
enrollment that holds no seat (waitlisted or cancelled) leaves the payment
``pending`` so the captured amount is not booked against a seat the student
does not have. A refund of a completed payment vacates the enrollment's seat
through the promotion engine. Processor callbacks tolerate replays; admin
refunds are audited.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from classreg.core.config import Settings, get_settings
from classreg.domains.audit import AuditAction, AuditService
from classreg.domains.enrollment.capacity import CapacityCounter
from classreg.domains.enrollment.notifications import EnrollmentNotifier
from classreg.domains.enrollment.promotion import PromotionEngine
from classreg.domains.exceptions import (
    AuthorizationError,
    EnrollmentNotFoundError,
    InvalidTransitionError,
    PaymentNotFoundError,
)
from classreg.infrastructure.database.models import Payment, new_id
from classreg.models.common import SEATED_ENROLLMENT_STATUSES, EnrollmentStatus, PaymentStatus
from classreg.models.enrollment import PaymentResponse
from classreg.utils.datetime import utc_now

if TYPE_CHECKING:
    from classreg.infrastructure.database.store import RegistrationStore
    from classreg.models.actor import Actor

logger = logging.getLogger(__name__)

SEATED_STATUSES = {s.value for s in SEATED_ENROLLMENT_STATUSES}


class PaymentService:
    """Service for payment status transitions.

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
        self.store = store
        self.settings = settings or get_settings()
        self.notifier = notifier or EnrollmentNotifier()
        self.audit = AuditService(store)
        self.promotion = PromotionEngine(
            store,
            self.settings.enrollment,
            CapacityCounter(store, self.settings.enrollment),
            self.notifier,
        )

    async def handle_payment_completed(
        self,
        enrollment_id: str,
        external_id: str | None = None,
    ) -> PaymentResponse:
        """Mark a payment completed and confirm its pending enrollment.

        A payment row is created from the class price when the processor
        reports a payment we have not seen.

        Raises:
            EnrollmentNotFoundError: If the enrollment does not exist.
        """
        enrollment = await self.store.get_enrollment(enrollment_id)
        if enrollment is None:
            raise EnrollmentNotFoundError(f"Enrollment {enrollment_id} not found")

        payment = await self.store.get_payment_for_enrollment(enrollment_id)
        if payment is None:
            offering = await self.store.get_class(enrollment.class_id)
            now = utc_now()
            payment = Payment(
                id=new_id(),
                enrollment_id=enrollment.id,
                amount=offering.price if offering is not None else 0,
                status=PaymentStatus.PENDING.value,
                external_id=external_id,
                created_at=now,
                updated_at=now,
            )
            await self.store.insert(payment)

        if payment.status == PaymentStatus.REFUNDED.value:
            logger.warning("Ignoring completion for refunded payment %s", payment.id)
            await self.store.commit()
            return PaymentResponse.model_validate(payment)

        if enrollment.status not in SEATED_STATUSES:
            # No seat to pay for; the payment stays pending for manual refund
            if external_id and not payment.external_id:
                payment.external_id = external_id
                await self.store.update(payment)
            await self.store.commit()
            logger.warning(
                "Payment %s for enrollment %s in status %s left pending; needs refund",
                payment.id,
                enrollment.id,
                enrollment.status,
            )
            return PaymentResponse.model_validate(payment)

        payment.status = PaymentStatus.COMPLETED.value
        if external_id and not payment.external_id:
            payment.external_id = external_id
        payment.updated_at = utc_now()
        await self.store.update(payment)

        confirmed = False
        if enrollment.status == EnrollmentStatus.PENDING.value:
            enrollment.status = EnrollmentStatus.CONFIRMED.value
            enrollment.updated_at = utc_now()
            await self.store.update(enrollment)
            confirmed = True
        await self.store.commit()

        logger.info("Payment completed for enrollment: %s", enrollment.id)
        if confirmed:
            await self.notifier.confirmed(enrollment)
        return PaymentResponse.model_validate(payment)

    async def handle_payment_refunded(self, enrollment_id: str) -> PaymentResponse:
        """Refund a completed payment and vacate the enrollment's seat.

        Raises:
            PaymentNotFoundError: If the enrollment has no payment.
            InvalidTransitionError: If the payment was never completed.
        """
        payment = await self.store.get_payment_for_enrollment(enrollment_id)
        if payment is None:
            raise PaymentNotFoundError(f"No payment found for enrollment {enrollment_id}")

        if payment.status == PaymentStatus.REFUNDED.value:
            logger.info("Refund already applied for payment %s", payment.id)
            return PaymentResponse.model_validate(payment)
        if payment.status != PaymentStatus.COMPLETED.value:
            raise InvalidTransitionError(
                f"Only completed payments can be refunded (payment is {payment.status})"
            )

        payment.status = PaymentStatus.REFUNDED.value
        payment.updated_at = utc_now()
        await self.store.update(payment)

        enrollment = await self.store.get_enrollment(enrollment_id)
        if enrollment is None:
            await self.store.commit()
            return PaymentResponse.model_validate(payment)

        # vacate() commits the refund together with the cancellation
        promoted = await self.promotion.vacate(enrollment)
        await self.store.commit()
        logger.info(
            "Refunded enrollment %s; promoted %d from the waitlist",
            enrollment_id,
            len(promoted),
        )
        return PaymentResponse.model_validate(payment)

    async def refund_enrollment(self, enrollment_id: str, actor: Actor) -> PaymentResponse:
        """Admin-initiated refund of an enrollment's completed payment.

        Applies the same transition as a processor refund callback and leaves
        an audit record when the payment actually moved to ``refunded``.

        Raises:
            AuthorizationError: If the actor is not an admin.
            PaymentNotFoundError: If the enrollment has no payment.
            InvalidTransitionError: If the payment was never completed.
        """
        if not actor.is_admin:
            raise AuthorizationError("Only an administrator can refund an enrollment")

        payment = await self.store.get_payment_for_enrollment(enrollment_id)
        already_refunded = payment is not None and payment.status == PaymentStatus.REFUNDED.value

        response = await self.handle_payment_refunded(enrollment_id)
        if not already_refunded:
            await self.audit.record(
                actor.id,
                AuditAction.REFUND_ENROLLMENT,
                "enrollment",
                enrollment_id,
                {"payment_id": response.id, "amount": response.amount},
            )
            await self.store.commit()
        return response
