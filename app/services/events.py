"""Domain events and a synchronous listener registry.

Events are dispatched after the state change they describe has been
committed. Listeners run in registration order on the caller's thread.
"""

import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from app.models.user import User

logger = logging.getLogger("authgate.events")


@dataclass(frozen=True)
class UserRegistered:
    user: User


@dataclass(frozen=True)
class PasswordWasReset:
    user: User


@dataclass(frozen=True)
class EmailVerified:
    user: User


Listener = Callable[[Any], None]


class EventDispatcher:
    """Maps event types to listener callbacks."""

    def __init__(self) -> None:
        self._listeners: dict[type, list[Listener]] = defaultdict(list)

    def listen(self, event_type: type, listener: Listener) -> None:
        self._listeners[event_type].append(listener)

    def forget(self, event_type: type) -> None:
        self._listeners.pop(event_type, None)

    def listeners_for(self, event_type: type) -> list[Listener]:
        return list(self._listeners.get(event_type, []))

    def dispatch(self, event: Any) -> None:
        listeners = self.listeners_for(type(event))
        logger.debug("Dispatching %s to %d listener(s)", type(event).__name__, len(listeners))
        for listener in listeners:
            listener(event)


_event_dispatcher: EventDispatcher | None = None


def get_event_dispatcher() -> EventDispatcher:
    """Get singleton event dispatcher instance."""
    global _event_dispatcher
    if _event_dispatcher is None:
        _event_dispatcher = EventDispatcher()
    return _event_dispatcher
