# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Schedule slot validation and conflict detection.

A slot is a (day, block) pair drawn from fixed legal sets. Two offerings
collide when their day patterns share a weekday, they sit in the same
block, and they share a teacher or a room. Cancelled and completed
offerings never collide.

Example:
    validate_slot("Tuesday/Thursday", "Block 2")

    clash = find_conflict("Tuesday", "Block 2", teacher_id, existing, scope="teacher")
    if clash is not None:
        ...

    conflicting_ids = detect_batch_conflicts(all_offerings)
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from typing import Any, Literal, Protocol

from classreg.domains.exceptions import (
    InvalidBlockError,
    InvalidDayError,
    MissingFieldError,
    ScheduleConflictError,
)
from classreg.models.common import INACTIVE_CLASS_STATUSES

DAYS = ("Tuesday/Thursday", "Tuesday", "Wednesday", "Thursday")
BLOCKS = ("Block 1", "Block 2", "Block 3", "Block 4", "Block 5")
LUNCH = "Lunch"

# Weekdays each day pattern occupies
DAY_COVERAGE: dict[str, frozenset[str]] = {
    "Tuesday/Thursday": frozenset({"Tuesday", "Thursday"}),
    "Tuesday": frozenset({"Tuesday"}),
    "Wednesday": frozenset({"Wednesday"}),
    "Thursday": frozenset({"Thursday"}),
}

Scope = Literal["teacher", "room"]

_INACTIVE = frozenset(s.value for s in INACTIVE_CLASS_STATUSES)


class Offering(Protocol):
    """Fields of a class offering the validator reads."""

    id: Any
    day: str
    block: str
    teacher_id: Any
    location: str | None
    status: str


def validate_slot(day: str | None, block: str | None) -> None:
    """Validate a (day, block) pair.

    Raises:
        MissingFieldError: If day or block is absent.
        InvalidDayError: If day is not a legal day pattern.
        InvalidBlockError: If block is not Block 1-5 (Lunch included).
    """
    if not day:
        raise MissingFieldError("day")
    if not block:
        raise MissingFieldError("block")
    if day not in DAYS:
        raise InvalidDayError(day)
    if block not in BLOCKS:
        raise InvalidBlockError(block)


def days_overlap(first: str, second: str) -> bool:
    """Whether two day patterns share at least one weekday."""
    if first == second:
        return True
    return bool(DAY_COVERAGE.get(first, frozenset()) & DAY_COVERAGE.get(second, frozenset()))


def normalize_location(location: str | None) -> str:
    return (location or "").strip().casefold()


def _scope_key(offering: Offering, scope: Scope) -> str:
    if scope == "teacher":
        return str(offering.teacher_id or "")
    return normalize_location(offering.location)


def _is_active(offering: Offering) -> bool:
    return getattr(offering.status, "value", offering.status) not in _INACTIVE


def find_conflict(
    day: str,
    block: str,
    scope_key: str | None,
    existing: Iterable[Offering],
    scope: Scope = "teacher",
    exclude_id: Any = None,
) -> Offering | None:
    """Find the first active offering that collides with a candidate slot.

    Args:
        day: Candidate day pattern.
        block: Candidate block.
        scope_key: Teacher id or room name, depending on ``scope``.
        existing: Offerings to check against.
        scope: Which key to compare; call once per scope.
        exclude_id: Id of the offering being moved, skipped during the scan.

    Returns:
        The first conflicting offering, or None.
    """
    key = str(scope_key or "") if scope == "teacher" else normalize_location(scope_key)
    if not key:
        return None

    for offering in existing:
        if exclude_id is not None and str(offering.id) == str(exclude_id):
            continue
        if not _is_active(offering):
            continue
        if offering.block != block or not days_overlap(offering.day, day):
            continue
        if _scope_key(offering, scope) == key:
            return offering
    return None


def check_slot_available(
    day: str,
    block: str,
    teacher_id: str | None,
    location: str | None,
    existing: Iterable[Offering],
    exclude_id: Any = None,
) -> None:
    """Raise ScheduleConflictError if the slot collides on teacher or room."""
    offerings = list(existing)
    for scope, key in (("teacher", teacher_id), ("room", location)):
        clash = find_conflict(day, block, key, offerings, scope=scope, exclude_id=exclude_id)
        if clash is not None:
            raise ScheduleConflictError(
                scope=scope,
                conflicting_id=str(clash.id),
                conflicting_name=getattr(clash, "name", str(clash.id)),
                day=clash.day,
                block=clash.block,
            )


def detect_batch_conflicts(offerings: Iterable[Offering]) -> set[str]:
    """Ids of every active offering that collides with another one.

    Single pass: each offering is bucketed under every weekday its pattern
    covers, once keyed by teacher and once keyed by room. Any bucket holding
    two or more distinct offerings marks all of them.
    """
    buckets: dict[tuple[str, str, str, str], set[str]] = defaultdict(set)

    for offering in offerings:
        if not _is_active(offering):
            continue
        for weekday in DAY_COVERAGE.get(offering.day, frozenset({offering.day})):
            for scope in ("teacher", "room"):
                key = _scope_key(offering, scope)
                if key:
                    buckets[(weekday, offering.block, scope, key)].add(str(offering.id))

    conflicting: set[str] = set()
    for members in buckets.values():
        if len(members) >= 2:
            conflicting.update(members)
    return conflicting
