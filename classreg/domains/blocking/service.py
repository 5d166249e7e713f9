# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Block registry: durable bars on a student enrolling.

Blocks are scoped per (class, student). Teacher-wide blocks bar a student from
every class of a teacher; admission consults them only when
``teacher_wide_blocks`` is enabled. Blocks never expire;
they are removed by an explicit unblock. The registry does not commit; the
calling service owns the unit of work.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from classreg.core.config import EnrollmentSettings
from classreg.domains.exceptions import BlockNotFoundError
from classreg.infrastructure.database.models import ClassBlock, new_id

if TYPE_CHECKING:
    from classreg.infrastructure.database.store import RegistrationStore

logger = logging.getLogger(__name__)


class BlockRegistry:
    """Answers and records whether a student is blocked.

    Attributes:
        store: Registration store.
        settings: Enrollment settings (teacher-wide block toggle).
    """

    def __init__(self, store: RegistrationStore, settings: EnrollmentSettings | None = None) -> None:
        self.store = store
        self.settings = settings or EnrollmentSettings()

    async def is_blocked(
        self,
        class_id: str,
        student_id: str,
        teacher_id: str | None = None,
    ) -> bool:
        """Whether the student is barred from the class.

        Args:
            class_id: Class identifier.
            student_id: Student identifier.
            teacher_id: Teacher of the class; only used when teacher-wide
                blocks are enabled.
        """
        if await self.store.find_class_block(class_id, student_id) is not None:
            return True
        if self.settings.teacher_wide_blocks and teacher_id:
            return await self.store.find_teacher_block(teacher_id, student_id) is not None
        return False

    async def block(
        self,
        class_id: str,
        student_id: str,
        reason: str | None = None,
        created_by: str | None = None,
    ) -> ClassBlock:
        """Block a student from a class. Blocking twice returns the existing record."""
        existing = await self.store.find_class_block(class_id, student_id)
        if existing is not None:
            return existing

        block = ClassBlock(
            id=new_id(),
            class_id=str(class_id),
            teacher_id=None,
            student_id=str(student_id),
            reason=reason,
            created_by=created_by,
        )
        await self.store.insert(block)
        logger.info("Blocked student %s from class %s", student_id, class_id)
        return block

    async def unblock(self, class_id: str, student_id: str) -> None:
        """Remove a per-class block.

        Raises:
            BlockNotFoundError: If the student is not blocked from the class.
        """
        existing = await self.store.find_class_block(class_id, student_id)
        if existing is None:
            raise BlockNotFoundError(f"Student {student_id} is not blocked from class {class_id}")
        await self.store.delete(existing)
        logger.info("Unblocked student %s from class %s", student_id, class_id)

    async def block_teacher_wide(
        self,
        teacher_id: str,
        student_id: str,
        reason: str | None = None,
        created_by: str | None = None,
    ) -> ClassBlock:
        """Block a student from every class of a teacher."""
        existing = await self.store.find_teacher_block(teacher_id, student_id)
        if existing is not None:
            return existing

        block = ClassBlock(
            id=new_id(),
            class_id=None,
            teacher_id=str(teacher_id),
            student_id=str(student_id),
            reason=reason,
            created_by=created_by,
        )
        await self.store.insert(block)
        logger.info("Blocked student %s from teacher %s", student_id, teacher_id)
        return block

    async def unblock_teacher_wide(self, teacher_id: str, student_id: str) -> None:
        """Remove a teacher-wide block.

        Raises:
            BlockNotFoundError: If no teacher-wide block exists.
        """
        existing = await self.store.find_teacher_block(teacher_id, student_id)
        if existing is None:
            raise BlockNotFoundError(f"Student {student_id} is not blocked by teacher {teacher_id}")
        await self.store.delete(existing)
        logger.info("Unblocked student %s from teacher %s", student_id, teacher_id)

    async def list_teacher_blocks(self, teacher_id: str) -> list[ClassBlock]:
        return await self.store.list_teacher_blocks(teacher_id)

    async def list_blocks(self, class_id: str) -> list[ClassBlock]:
        return await self.store.list_class_blocks(class_id)
