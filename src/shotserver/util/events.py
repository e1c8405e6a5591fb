"""Typed event bus - decoupled inter-service communication.

The shot executor announces shot lifecycle events here; the server wires
them to the history store and the broadcaster.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional, TypeVar, Type

from shotserver.models.geometry import Point

if TYPE_CHECKING:
    from shotserver.models.shot import ShotResult

T = TypeVar("T")


# -- Shot events ---------------------------------------------------------

@dataclass(frozen=True)
class ShotFired:
    """A shot started executing."""
    shot_id: str
    shooter_ref: Optional[str]
    source: Point
    direction: float
    weapon_label: str


@dataclass(frozen=True)
class ShotCompleted:
    """A shot finished and its result is frozen."""
    result: ShotResult


@dataclass(frozen=True)
class ShotFailed:
    """A shot was aborted by a configuration fault."""
    shot_id: str
    error: str
    result: ShotResult


# -- Event Bus -----------------------------------------------------------

class EventBus:
    """Simple synchronous event bus with typed events.

    Usage:
        bus = EventBus()
        bus.on(ShotCompleted, lambda e: store.add(e.result))
        bus.emit(ShotCompleted(result=result))
    """

    def __init__(self) -> None:
        self._handlers: dict[type, list[Callable[[Any], None]]] = defaultdict(list)

    def on(self, event_type: Type[T], handler: Callable[[T], None]) -> None:
        """Register a handler for an event type."""
        self._handlers[event_type].append(handler)

    def off(self, event_type: Type[T], handler: Callable[[T], None]) -> None:
        """Unregister a handler."""
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: object) -> None:
        """Emit an event to all registered handlers."""
        for handler in self._handlers.get(type(event), []):
            handler(event)

    def clear(self) -> None:
        """Remove all handlers."""
        self._handlers.clear()
