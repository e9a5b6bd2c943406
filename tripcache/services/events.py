"""
Cache events - typed publish/subscribe for context changes.

Collaborators publish what changed ("destination changed", "user logged
out") and caches subscribe to drop entries that no longer apply. Declarative
InvalidationRules cover the common cases; arbitrary handlers can subscribe
for the rest.
"""

import inspect
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Union

from loguru import logger
from pydantic import BaseModel


class CacheEvent(str, Enum):
    """Events that invalidate cached context."""

    USER_LOGIN = "user_login"
    USER_LOGOUT = "user_logout"
    USER_SWITCH = "user_switch"
    DESTINATION_CHANGE = "destination_change"
    ITINERARY_CHANGE = "itinerary_change"
    CONVERSATION_RESET = "conversation_reset"
    PREFERENCES_UPDATE = "preferences_update"


class EventPayload(BaseModel):
    """Base class for event payloads."""

    pass


class UserChanged(EventPayload):
    user_id: str | None = None
    previous_user_id: str | None = None


class DestinationChanged(EventPayload):
    destination: str
    previous_destination: str | None = None


class ItineraryChanged(EventPayload):
    itinerary_id: str


class ConversationReset(EventPayload):
    conversation_id: str | None = None


class PreferencesUpdated(EventPayload):
    user_id: str | None = None


EVENT_PAYLOADS: dict[CacheEvent, type[EventPayload]] = {
    CacheEvent.USER_LOGIN: UserChanged,
    CacheEvent.USER_LOGOUT: UserChanged,
    CacheEvent.USER_SWITCH: UserChanged,
    CacheEvent.DESTINATION_CHANGE: DestinationChanged,
    CacheEvent.ITINERARY_CHANGE: ItineraryChanged,
    CacheEvent.CONVERSATION_RESET: ConversationReset,
    CacheEvent.PREFERENCES_UPDATE: PreferencesUpdated,
}

EventHandler = Callable[[EventPayload], Union[None, Awaitable[None]]]


@dataclass
class InvalidationRule:
    """
    Clears cache entries when an event fires.

    targets: namespaces to act on.
    condition: optional gate on the payload.
    key_pattern: optional payload -> substring; when given, only entries
        whose key contains the substring are removed, otherwise the whole
        namespace is cleared.
    """

    trigger: CacheEvent
    targets: list[str]
    condition: Callable[[EventPayload], bool] | None = None
    key_pattern: Callable[[EventPayload], str | None] | None = None


def coerce_payload(event: CacheEvent, payload: Any) -> EventPayload:
    """Validate payload against the event's payload model."""
    model = EVENT_PAYLOADS[event]
    if isinstance(payload, model):
        return payload
    if payload is None:
        return model()
    if isinstance(payload, BaseModel):
        payload = payload.model_dump()
    return model.model_validate(payload)


class EventBus:
    """
    Explicit publish/subscribe channel for cache events.

    Usage:
        bus = EventBus()
        bus.subscribe(CacheEvent.DESTINATION_CHANGE, on_destination_change)
        await bus.emit(
            CacheEvent.DESTINATION_CHANGE,
            DestinationChanged(destination="Porto", previous_destination="Lisbon"),
        )
    """

    def __init__(self, debug: bool = False):
        self._handlers: dict[CacheEvent, list[EventHandler]] = {}
        self._debug = debug
        self._emitted: dict[CacheEvent, int] = {}

    def subscribe(self, event: CacheEvent, handler: EventHandler) -> Callable[[], None]:
        """Register handler; returns a function that unsubscribes it."""
        self._handlers.setdefault(event, []).append(handler)
        self._log(f"SUBSCRIBE: {event.value}")
        return lambda: self.unsubscribe(event, handler)

    def unsubscribe(self, event: CacheEvent, handler: EventHandler) -> bool:
        """Remove a handler."""
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)
            return True
        return False

    async def emit(self, event: CacheEvent, payload: Any = None) -> int:
        """
        Publish an event to every subscriber, in subscription order.

        A failing handler is logged and does not stop the others.

        Returns:
            Number of handlers that completed successfully
        """
        typed = coerce_payload(event, payload)
        self._emitted[event] = self._emitted.get(event, 0) + 1
        logger.info(f"Cache event {event.value}: {typed.model_dump()}")

        delivered = 0
        for handler in list(self._handlers.get(event, [])):
            try:
                result = handler(typed)
                if inspect.isawaitable(result):
                    await result
                delivered += 1
            except Exception as e:
                logger.error(f"Error in cache event handler for {event.value}: {e}")
        return delivered

    def subscriber_count(self, event: CacheEvent) -> int:
        return len(self._handlers.get(event, []))

    def get_stats(self) -> dict[str, int]:
        """Emit counts per event."""
        return {event.value: count for event, count in self._emitted.items()}

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[EventBus] {message}")
