"""Market seed — reference tables and the opening stock of every new game"""

import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any

from .models import Condition, Product
from .pricing import condition_multiplier, to_money

logger = logging.getLogger(__name__)

REFERENCE_KEYS = (
    "boroughs",
    "transportation_methods",
    "stores",
    "products",
    "borough_distances",
)


@dataclass(frozen=True)
class ListingTemplate:
    """Opening stock line copied into each new game."""

    store_id: str
    product_id: str
    condition: Condition
    quantity: int


def posted_price(product: Product, condition: Condition) -> Decimal:
    """Opening shelf price: base price in the listing's condition."""
    return to_money(product.base_price * condition_multiplier(condition))


@dataclass
class MarketSeed:
    reference: dict[str, list[dict[str, Any]]] = field(default_factory=dict)
    listings: list[ListingTemplate] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "MarketSeed":
        seed = cls(reference={key: list(raw.get(key, [])) for key in REFERENCE_KEYS})
        for line in raw.get("listings", []):
            try:
                seed.listings.append(
                    ListingTemplate(
                        store_id=line["store_id"],
                        product_id=line["product_id"],
                        condition=Condition(line["condition"]),
                        quantity=int(line["quantity"]),
                    )
                )
            except (KeyError, ValueError) as e:
                logger.warning(
                    "Skipping listing %s/%s: %s",
                    line.get("store_id", "?"),
                    line.get("product_id", "?"),
                    e,
                )
        return seed

    @classmethod
    def load_from_json(cls, path: str | Path) -> "MarketSeed":
        path = Path(path)
        with path.open("r", encoding="utf-8") as f:
            raw = json.load(f)
        seed = cls.from_dict(raw)
        logger.info(
            "Loaded market seed from %s (%d products, %d listings)",
            path,
            len(seed.reference.get("products", [])),
            len(seed.listings),
        )
        return seed
