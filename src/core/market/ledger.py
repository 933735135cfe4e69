"""Inventory ledger rules — capacity, one row per (product, condition), funds.

Pure checks over core models. The service layer runs them inside the DB
transaction, then applies the mutation only when every check passed.
"""

import logging
from decimal import Decimal
from typing import Iterable, Optional

from src.core.errors import (
    CapacityExceededError,
    DuplicateConditionError,
    InsufficientFundsError,
    OutOfStockError,
    PriceExceedsCapError,
    PriceMismatchError,
)

from .models import Condition, InventoryItem, PlayerState, StoreListing, TradeSide

logger = logging.getLogger(__name__)


def total_units(items: Iterable[InventoryItem]) -> int:
    return sum(item.quantity for item in items)


def find_item(
    items: Iterable[InventoryItem], product_id: str, condition: Condition
) -> Optional[InventoryItem]:
    condition = Condition(condition)
    for item in items:
        if item.product_id == product_id and item.condition == condition:
            return item
    return None


def can_acquire(
    player: PlayerState,
    items: list[InventoryItem],
    product_id: str,
    condition: Condition,
) -> bool:
    """False when the player already holds this (product, condition) or is full."""
    if find_item(items, product_id, condition) is not None:
        return False
    return total_units(items) + 1 <= player.inventory_capacity


def check_acquire(
    player: PlayerState,
    items: list[InventoryItem],
    product_id: str,
    condition: Condition,
) -> None:
    """can_acquire, but raising the specific refusal."""
    condition = Condition(condition)
    if find_item(items, product_id, condition) is not None:
        raise DuplicateConditionError(
            f"Already holding {product_id} in {condition.value} condition",
            {"product_id": product_id, "condition": condition.value},
        )
    held = total_units(items)
    if held + 1 > player.inventory_capacity:
        raise CapacityExceededError(
            f"Inventory full ({held}/{player.inventory_capacity})",
            {"held": held, "capacity": player.inventory_capacity},
        )


def check_funds(player: PlayerState, price: Decimal) -> None:
    if player.cash < price:
        raise InsufficientFundsError(
            f"Need ${price}, have ${player.cash}",
            {"cash": str(player.cash), "price": str(price)},
        )


def check_stock(listing: StoreListing, quantity: int = 1) -> None:
    if listing.quantity < quantity:
        raise OutOfStockError(
            f"Store has {listing.quantity} left of {listing.product_id}",
            {"listing_id": listing.listing_id, "available": listing.quantity},
        )


def check_expected_price(
    expected: Optional[Decimal], settled: Decimal, side: TradeSide = TradeSide.SELL
) -> None:
    """Abort unless the client-side expected price equals the settlement.

    Any difference means the client acted on a stale quote. Asking a store
    for more than it pays is reported as PriceExceedsCapError, every other
    difference as PriceMismatchError.
    """
    if expected is None or expected == settled:
        return
    details = {"expected": str(expected), "settled": str(settled), "side": side.value}
    if side is TradeSide.SELL and expected > settled:
        raise PriceExceedsCapError(
            f"Quoted ${expected} but the store pays at most ${settled}", details
        )
    raise PriceMismatchError(
        f"Quoted ${expected} but the {side.value} settles at ${settled}", details
    )


def inventory_value(items: Iterable[InventoryItem]) -> Decimal:
    """Holdings valued at what was paid for them."""
    return sum(
        (item.purchase_price * item.quantity for item in items), Decimal("0")
    )


def net_worth(player: PlayerState, items: Iterable[InventoryItem]) -> Decimal:
    return player.cash - player.loan_amount + inventory_value(items)
