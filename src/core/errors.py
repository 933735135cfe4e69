"""Domain error taxonomy.

Four families, each mapped to one caller reaction:

- ValidationError: bad input shape. Fatal to the call, do not retry.
- NotFoundError: missing player/game/item/listing. Fatal to the call.
- DomainRuleViolation: a game rule refused the action (funds, capacity,
  duplicate condition, price cap, stale quote...). Show the message,
  nothing changed.
- ConcurrentModificationError: optimistic lock lost or the game row is held
  by another action. Retry the whole call.

None of them leave partial state behind; the service layer rolls the
transaction back before the error reaches the caller.
"""

from typing import Any, Optional


class GameError(Exception):
    """Base class for every error the core raises on purpose."""

    code = "GAME_ERROR"
    retryable = False

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ── Validation ───────────────────────────────────────────────


class ValidationError(GameError):
    code = "VALIDATION_ERROR"


# ── Not found ────────────────────────────────────────────────


class NotFoundError(GameError):
    code = "NOT_FOUND"


class GameNotFoundError(NotFoundError):
    code = "GAME_NOT_FOUND"


class PlayerNotFoundError(NotFoundError):
    code = "PLAYER_NOT_FOUND"


class ProductNotFoundError(NotFoundError):
    code = "PRODUCT_NOT_FOUND"


class StoreNotFoundError(NotFoundError):
    code = "STORE_NOT_FOUND"


class BoroughNotFoundError(NotFoundError):
    code = "BOROUGH_NOT_FOUND"


class ListingNotFoundError(NotFoundError):
    code = "LISTING_NOT_FOUND"


class ItemNotFoundError(NotFoundError):
    code = "ITEM_NOT_FOUND"


# ── Domain rules ─────────────────────────────────────────────


class DomainRuleViolation(GameError):
    code = "RULE_VIOLATION"


class DuplicateConditionError(DomainRuleViolation):
    code = "DUPLICATE_CONDITION"


class CapacityExceededError(DomainRuleViolation):
    code = "CAPACITY_EXCEEDED"


class InsufficientFundsError(DomainRuleViolation):
    code = "INSUFFICIENT_FUNDS"


class PriceExceedsCapError(DomainRuleViolation):
    code = "PRICE_EXCEEDS_CAP"


class PriceMismatchError(DomainRuleViolation):
    """The price the client showed is not the price that would settle."""

    code = "PRICE_MISMATCH"


class OutOfStockError(DomainRuleViolation):
    code = "OUT_OF_STOCK"


class StoreClosedError(DomainRuleViolation):
    code = "STORE_CLOSED"


class GameNotActiveError(DomainRuleViolation):
    code = "GAME_NOT_ACTIVE"


class RouteNotFoundError(DomainRuleViolation):
    code = "ROUTE_NOT_FOUND"


class NotAtStoreError(DomainRuleViolation):
    """The store is in another borough than the player."""

    code = "NOT_AT_STORE"


class TurnCompletedError(DomainRuleViolation):
    """The player already ended this hour and waits for the others."""

    code = "TURN_COMPLETED"


class PlayerNotActiveError(DomainRuleViolation):
    """The player left the game."""

    code = "PLAYER_NOT_ACTIVE"


# ── Concurrency ──────────────────────────────────────────────


class ConcurrentModificationError(GameError):
    code = "CONCURRENT_MODIFICATION"
    retryable = True
