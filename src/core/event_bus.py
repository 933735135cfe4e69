"""EventBus - synchronous notifications between services

Rules:
- Services never import each other; they talk through events
- Events carry identifiers and small scalars only
- Propagation depth is capped at MAX_DEPTH
- Events are emitted after the DB transaction commits
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List

from src.core.logging import get_logger

logger = get_logger(__name__)

MAX_DEPTH = 5  # nested emits allowed from inside handlers


@dataclass
class GameEvent:
    """Event payload container

    Args:
        event_type: one of EventTypes (e.g. "record_bought")
        data: ids and scalars, no ORM objects
        source: name of the emitting service
    """

    event_type: str
    data: Dict[str, Any]
    source: str

    _depth: int = field(default=0, repr=False)


EventHandler = Callable[[GameEvent], None]


class EventBus:
    """Synchronous event bus

    Usage:
        bus = EventBus()
        bus.subscribe(EventTypes.HOUR_ADVANCED, notifier.on_hour_advanced)
        bus.emit(GameEvent(event_type=EventTypes.HOUR_ADVANCED,
                           data={"game_id": "g1", "new_hour": 23},
                           source="turn_service"))
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, List[EventHandler]] = defaultdict(list)
        self._current_depth: int = 0

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        self._handlers[event_type].append(handler)
        logger.debug("EventBus subscribe: %s -> %s", event_type, handler.__qualname__)

    def unsubscribe(self, event_type: str, handler: EventHandler) -> None:
        try:
            self._handlers[event_type].remove(handler)
        except ValueError:
            logger.warning(
                "EventBus handler not registered: %s -> %s",
                event_type,
                handler.__qualname__,
            )

    def emit(self, event: GameEvent) -> None:
        """Call every handler for the event type, in subscription order.

        A failing handler is logged and skipped; the emitter's work has
        already been committed and must not be undone by a listener.
        """
        if self._current_depth >= MAX_DEPTH:
            logger.warning(
                "EventBus depth limit (%d) reached, dropping %s:%s",
                MAX_DEPTH,
                event.source,
                event.event_type,
            )
            return

        event._depth = self._current_depth
        handlers = list(self._handlers.get(event.event_type, []))
        if not handlers:
            logger.debug("EventBus: no subscribers for %s", event.event_type)
            return

        self._current_depth += 1
        try:
            for handler in handlers:
                try:
                    handler(event)
                except Exception:
                    logger.exception(
                        "EventBus handler failed: %s (event=%s)",
                        handler.__qualname__,
                        event.event_type,
                    )
        finally:
            self._current_depth -= 1

    def clear(self) -> None:
        """Drop every subscription (tests)"""
        self._handlers.clear()
        self._current_depth = 0

    @property
    def handler_count(self) -> int:
        return sum(len(h) for h in self._handlers.values())
