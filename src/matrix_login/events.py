"""Notifications emitted while negotiating a login.

Observers subscribe a callable to an ``EventEmitter`` and receive every event
in emission order. A failing observer is logged and skipped so that the
remaining observers still see the event.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from .errors import ErrorKind
from .state import LoginFlowSet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HomeserverChanged:
    base_url: str
    validated: bool


@dataclass(frozen=True)
class LookingUpChanged:
    looking_up: bool


@dataclass(frozen=True)
class VersionLookedUp:
    flows: LoginFlowSet


@dataclass(frozen=True)
class LoggingInChanged:
    logging_in: bool


@dataclass(frozen=True)
class ErrorOccurred:
    kind: ErrorKind
    message: str


LoginEvent = (
    HomeserverChanged
    | LookingUpChanged
    | VersionLookedUp
    | LoggingInChanged
    | ErrorOccurred
)
Handler = Callable[[LoginEvent], None]


class EventEmitter:
    def __init__(self) -> None:
        self._handlers: list[Handler] = []

    def subscribe(self, handler: Handler) -> None:
        self._handlers.append(handler)

    def unsubscribe(self, handler: Handler) -> bool:
        """Remove ``handler``. Returns ``True`` if it was subscribed."""
        try:
            self._handlers.remove(handler)
            return True
        except ValueError:
            return False

    def emit(self, event: LoginEvent) -> None:
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Error in handler %r for %s", handler, type(event).__name__
                )
