# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""In-process event bus and event type constants."""

from classreg.infrastructure.events.bus import (
    EventBus,
    EventData,
    EventHandler,
    get_event_bus,
    reset_event_bus,
)
from classreg.infrastructure.events.types import EventPatterns, EventTypes

__all__ = [
    "EventBus",
    "EventData",
    "EventHandler",
    "get_event_bus",
    "reset_event_bus",
    "EventPatterns",
    "EventTypes",
]
