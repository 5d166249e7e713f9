# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""In-memory event bus for classreg.

Enrollment and class lifecycle changes are published here after they are
committed. Subscribers (mailers, dashboards, tests) receive them by exact
event type or by wildcard pattern.

Example:
    from classreg.infrastructure.events import get_event_bus, EventTypes

    event_bus = get_event_bus()

    async def on_promoted(event):
        print(f"Promoted: {event.payload['enrollment_id']}")

    event_bus.subscribe(EventTypes.Enrollment.PROMOTED, on_promoted)
    event_bus.subscribe("enrollment.*", on_any_enrollment_event)

    await event_bus.publish(
        EventTypes.Enrollment.PROMOTED,
        {"enrollment_id": "123", "class_id": "456"},
    )
"""

import asyncio
import fnmatch
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable
from uuid import uuid4

from classreg.utils.datetime import utc_now

logger = logging.getLogger(__name__)

EventHandler = Callable[["EventData"], Awaitable[None]]


def _is_pattern(event_type: str) -> bool:
    return "*" in event_type or "?" in event_type


@dataclass
class EventData:
    """A published event.

    Attributes:
        event_type: The event type string.
        payload: The event payload data.
        event_id: Unique event identifier.
        timestamp: When the event was published.
    """

    event_type: str
    payload: dict[str, Any]
    event_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "payload": self.payload,
            "timestamp": self.timestamp.isoformat(),
        }


class EventBus:
    """In-memory async event bus with wildcard subscriptions.

    Designed for single-process async use. A failing handler is logged and
    never affects the publisher or the other handlers.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}
        self._pattern_handlers: dict[str, list[EventHandler]] = {}
        self._event_count = 0

    def _registry(self, event_type: str) -> dict[str, list[EventHandler]]:
        return self._pattern_handlers if _is_pattern(event_type) else self._handlers

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """Subscribe a handler to an event type or pattern.

        Args:
            event_type: Event type string, or a pattern such as "enrollment.*".
            handler: Async function called with the EventData.
        """
        self._registry(event_type).setdefault(event_type, []).append(handler)
        logger.debug("Subscribed handler to: %s", event_type)

    def unsubscribe(self, event_type: str, handler: EventHandler) -> bool:
        """Unsubscribe a handler.

        Returns:
            True if the handler was found and removed, False otherwise.
        """
        registry = self._registry(event_type)
        handlers = registry.get(event_type)
        if not handlers or handler not in handlers:
            return False
        handlers.remove(handler)
        if not handlers:
            del registry[event_type]
        return True

    def _matching_handlers(self, event_type: str) -> list[EventHandler]:
        handlers = list(self._handlers.get(event_type, []))
        for pattern, pattern_handlers in self._pattern_handlers.items():
            if fnmatch.fnmatch(event_type, pattern):
                handlers.extend(pattern_handlers)
        return handlers

    async def publish(self, event_type: str, payload: dict[str, Any]) -> EventData:
        """Publish an event to all matching subscribers.

        Handlers run concurrently. Errors in individual handlers are logged
        and do not stop other handlers.

        Args:
            event_type: The event type string.
            payload: Event data dictionary.

        Returns:
            The published EventData.
        """
        event = EventData(event_type=event_type, payload=payload)
        self._event_count += 1

        handlers = self._matching_handlers(event_type)
        if not handlers:
            logger.debug("No handlers for event: %s", event_type)
            return event

        logger.debug("Publishing event %s to %d handlers", event_type, len(handlers))

        async def safe_call(handler: EventHandler) -> None:
            try:
                await handler(event)
            except Exception as e:
                logger.error(
                    "Handler error for event %s: %s",
                    event_type,
                    str(e),
                    exc_info=True,
                )

        await asyncio.gather(*[safe_call(h) for h in handlers])
        return event

    def clear(self) -> None:
        """Remove all subscriptions."""
        self._handlers.clear()
        self._pattern_handlers.clear()

    def get_stats(self) -> dict[str, Any]:
        """Subscription and publish counters."""
        return {
            "exact_subscriptions": len(self._handlers),
            "pattern_subscriptions": len(self._pattern_handlers),
            "total_handlers": sum(len(h) for h in self._handlers.values())
            + sum(len(h) for h in self._pattern_handlers.values()),
            "events_published": self._event_count,
        }


_event_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    """Get the singleton event bus instance."""
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus


def reset_event_bus() -> None:
    """Reset the event bus singleton.

    Useful for testing to ensure clean state between tests.
    """
    global _event_bus
    if _event_bus is not None:
        _event_bus.clear()
    _event_bus = None
