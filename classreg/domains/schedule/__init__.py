# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Schedule domain: slot validation and teacher/room conflict detection."""

from classreg.domains.schedule.validator import (
    BLOCKS,
    DAYS,
    LUNCH,
    check_slot_available,
    days_overlap,
    detect_batch_conflicts,
    find_conflict,
    validate_slot,
)

__all__ = [
    "BLOCKS",
    "DAYS",
    "LUNCH",
    "check_slot_available",
    "days_overlap",
    "detect_batch_conflicts",
    "find_conflict",
    "validate_slot",
]
