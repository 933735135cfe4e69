"""NYC Vinyl Trader core"""
__version__ = "0.1.0"

from src.core.errors import (
    ConcurrentModificationError,
    DomainRuleViolation,
    GameError,
    NotFoundError,
    ValidationError,
)
from src.core.event_bus import EventBus, GameEvent
from src.core.event_types import EventTypes

__all__ = [
    "ConcurrentModificationError",
    "DomainRuleViolation",
    "GameError",
    "NotFoundError",
    "ValidationError",
    "EventBus",
    "GameEvent",
    "EventTypes",
]
