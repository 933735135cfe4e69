"""Pricing engine — buy/sell quotes for a record in a given store and hour.

One function produces both the price shown to the player and the price
used at settlement, so the two can never disagree. Inputs only, no I/O,
no randomness.

Buy:  base_price    x condition x specialty? x borough x peak?
Sell: posted price  x SELL_MARGIN x condition x specialty? x borough x peak?
      then capped at SAME_STORE_CAP x purchase price when the player's
      latest purchase of the product was at this same store.

The posted price is normalised back to Good condition first (divided by the
listing's own condition multiplier); with no listing the product's base
price is used instead.
"""

from __future__ import annotations

import logging
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import Optional

from .clock import clock_hour
from .models import (
    Borough,
    Condition,
    PriceQuote,
    Product,
    PurchaseRecord,
    Store,
    StoreListing,
    TradeSide,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

CONDITION_MULTIPLIERS: dict[Condition, Decimal] = {
    Condition.MINT: Decimal("1.5"),
    Condition.GOOD: Decimal("1.0"),
    Condition.FAIR: Decimal("0.7"),
    Condition.POOR: Decimal("0.5"),
}

SPECIALTY_BONUS = Decimal("1.5")

PEAK_START_HOUR = 12
PEAK_END_HOUR = 18  # clock hours, inclusive
PEAK_FACTOR = Decimal("1.2")

SELL_MARGIN = Decimal("0.75")
SAME_STORE_CAP = Decimal("0.75")


def to_money(value: Decimal) -> Decimal:
    """Round to cents, half up."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def condition_multiplier(condition: Condition) -> Decimal:
    return CONDITION_MULTIPLIERS[Condition(condition)]


def is_peak_hour(current_hour: int) -> bool:
    """Peak window is on the time of day, not on hours remaining."""
    return PEAK_START_HOUR <= clock_hour(current_hour) <= PEAK_END_HOUR


def specialty_matches(product: Product, store: Store) -> bool:
    if not store.specialty_genre or not product.genre:
        return False
    return store.specialty_genre.strip().lower() == product.genre.strip().lower()


def market_multiplier(
    product: Product,
    condition: Condition,
    store: Store,
    borough: Optional[Borough],
    current_hour: int,
) -> Decimal:
    """Product of every factor that applies to both sides of the market."""
    factor = condition_multiplier(condition)
    if specialty_matches(product, store):
        factor *= SPECIALTY_BONUS
    if borough is not None and borough.price_modifier is not None:
        factor *= borough.price_modifier
    if is_peak_hour(current_hour):
        factor *= PEAK_FACTOR
    return factor


def sell_reference_price(
    product: Product, posted_listing: Optional[StoreListing]
) -> Decimal:
    """Good-condition equivalent of what the store currently asks."""
    if posted_listing is None:
        return product.base_price
    return posted_listing.current_price / condition_multiplier(
        posted_listing.condition
    )


def same_store_cap(
    store: Store, history: Optional[PurchaseRecord]
) -> Optional[Decimal]:
    """Upper bound for selling back where the item was bought, else None."""
    if history is None or history.store_id != store.store_id:
        return None
    # rounded down so the cap never exceeds the exact fraction
    cap = history.unit_price * SAME_STORE_CAP
    return cap.quantize(CENT, rounding=ROUND_DOWN)


def quote(
    product: Product,
    condition: Condition,
    store: Store,
    borough: Optional[Borough],
    current_hour: int,
    side: TradeSide,
    history: Optional[PurchaseRecord] = None,
    posted_listing: Optional[StoreListing] = None,
) -> PriceQuote:
    """Quote one unit of `product` in `condition` at `store`.

    history: the player's most recent purchase of this product (sell side).
    posted_listing: the store's listing used as sell-side reference.
    """
    side = TradeSide(side)
    condition = Condition(condition)
    factor = market_multiplier(product, condition, store, borough, current_hour)

    if side is TradeSide.BUY:
        reference = product.base_price
        price = to_money(reference * factor)
        return PriceQuote(
            side=side,
            product_id=product.product_id,
            store_id=store.store_id,
            condition=condition,
            price=price,
            reference_price=reference,
            multiplier=factor,
        )

    reference = sell_reference_price(product, posted_listing)
    factor *= SELL_MARGIN
    price = to_money(reference * factor)

    cap = same_store_cap(store, history)
    capped = cap is not None and price > cap
    if capped:
        logger.debug(
            "Same-store cap on %s at %s: %s -> %s",
            product.product_id,
            store.store_id,
            price,
            cap,
        )
        price = cap

    return PriceQuote(
        side=side,
        product_id=product.product_id,
        store_id=store.store_id,
        condition=condition,
        price=price,
        reference_price=to_money(reference),
        multiplier=factor,
        capped=capped,
        cap_price=cap,
    )


def quote_buy_price(
    product: Product,
    condition: Condition,
    store: Store,
    borough: Optional[Borough],
    current_hour: int,
) -> Decimal:
    return quote(
        product, condition, store, borough, current_hour, TradeSide.BUY
    ).price


def quote_sell_price(
    product: Product,
    condition: Condition,
    store: Store,
    borough: Optional[Borough],
    current_hour: int,
    history: Optional[PurchaseRecord] = None,
    posted_listing: Optional[StoreListing] = None,
) -> Decimal:
    return quote(
        product,
        condition,
        store,
        borough,
        current_hour,
        TradeSide.SELL,
        history=history,
        posted_listing=posted_listing,
    ).price
