# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Audit trail for administrative overrides.

Every force-enroll, admin cancel/delete, refund, block change and manual
reconciliation leaves an AuditLog row. Writing the trail is best-effort:
a failure is logged and never undoes the action being audited.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from classreg.domains.exceptions import StoreError
from classreg.infrastructure.database.models import AuditLog, new_id

if TYPE_CHECKING:
    from classreg.infrastructure.database.store import RegistrationStore

logger = logging.getLogger(__name__)


class AuditAction:
    """Audit action codes."""

    FORCE_ENROLL = "force_enroll"
    FORCE_ENROLL_UPDATE = "force_enroll_update"
    ADMIN_CANCEL_ENROLLMENT = "admin_cancel_enrollment"
    ADMIN_DELETE_ENROLLMENT = "admin_delete_enrollment"
    BLOCK_STUDENT = "block_student"
    UNBLOCK_STUDENT = "unblock_student"
    BLOCK_STUDENT_TEACHER_WIDE = "block_student_teacher_wide"
    UNBLOCK_STUDENT_TEACHER_WIDE = "unblock_student_teacher_wide"
    REFUND_ENROLLMENT = "refund_enrollment"
    RECONCILE_CLASS = "reconcile_class"


class AuditService:
    """Writes audit records through the registration store.

    Attributes:
        store: Registration store.
    """

    def __init__(self, store: RegistrationStore) -> None:
        self.store = store

    async def record(
        self,
        actor_id: str,
        action: str,
        target_type: str,
        target_id: str,
        metadata: dict[str, Any] | None = None,
    ) -> AuditLog | None:
        """Record an administrative action.

        Args:
            actor_id: Admin performing the action.
            action: One of the AuditAction codes.
            target_type: Kind of row acted on ("enrollment", "class", ...).
            target_id: Id of the row acted on.
            metadata: Extra details stored as JSON.

        Returns:
            The audit row, or None when it could not be written.
        """
        entry = AuditLog(
            id=new_id(),
            actor_id=str(actor_id),
            action=action,
            target_type=target_type,
            target_id=str(target_id),
            details=metadata or {},
        )
        try:
            await self.store.insert_audit_log(entry)
        except StoreError as e:
            logger.error(
                "Failed to write audit log: action=%s, target=%s:%s, error=%s",
                action,
                target_type,
                target_id,
                str(e),
            )
            return None

        logger.info(
            "Audit: actor=%s, action=%s, target=%s:%s",
            actor_id,
            action,
            target_type,
            target_id,
        )
        return entry
