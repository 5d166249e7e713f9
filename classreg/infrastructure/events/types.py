# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Event type constants for classreg."""


class EventTypes:
    """All event types in classreg organized by domain."""

    class Enrollment:
        """Enrollment lifecycle events."""

        ADMITTED = "enrollment.admitted"
        WAITLISTED = "enrollment.waitlisted"
        PROMOTED = "enrollment.promoted"
        CONFIRMED = "enrollment.confirmed"
        CANCELLED = "enrollment.cancelled"
        DEMOTED = "enrollment.demoted"

    class Class:
        """Class offering lifecycle events."""

        CREATED = "class.created"
        PUBLISHED = "class.published"
        CANCELLED = "class.cancelled"
        COMPLETED = "class.completed"


class EventPatterns:
    """Wildcard patterns for subscribing to groups of events."""

    ALL_ENROLLMENT = "enrollment.*"
    ALL_CLASS = "class.*"
