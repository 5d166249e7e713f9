# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Payment processor webhook.

Callbacks must carry the shared secret in the X-Webhook-Secret header;
anything else is rejected before the payload is looked at. Admin-initiated
refunds go through POST /enrollments/{enrollment_id}/refund instead.
"""

import logging

from fastapi import APIRouter, Depends

from classreg.api.dependencies import (
    get_payment_service,
    require_webhook_secret,
    to_http_exception,
)
from classreg.domains.exceptions import RegistrationError
from classreg.domains.payments import PaymentService
from classreg.models.enrollment import PaymentResponse, PaymentWebhookEvent

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/webhook",
    response_model=PaymentResponse,
    summary="Payment webhook",
    dependencies=[Depends(require_webhook_secret)],
)
async def payment_webhook(
    event: PaymentWebhookEvent,
    service: PaymentService = Depends(get_payment_service),
) -> PaymentResponse:
    """Apply a payment.completed or payment.refunded callback."""
    logger.info("Payment webhook: %s for enrollment %s", event.type, event.enrollment_id)
    try:
        if event.type == "payment.completed":
            return await service.handle_payment_completed(event.enrollment_id, event.external_id)
        return await service.handle_payment_refunded(event.enrollment_id)
    except RegistrationError as e:
        raise to_http_exception(e) from e
