"""Market domain models (DB independent)"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional


class Condition(str, Enum):
    MINT = "Mint"
    GOOD = "Good"
    FAIR = "Fair"
    POOR = "Poor"


class TradeSide(str, Enum):
    BUY = "buy"
    SELL = "sell"


class TransactionType(str, Enum):
    BUY = "buy"
    SELL = "sell"
    TRANSPORT = "transport"


class GameStatus(str, Enum):
    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"


# ── Reference data ───────────────────────────────────────────


@dataclass(frozen=True)
class Product:
    """A record title. Condition lives on listings and inventory, not here."""

    product_id: str
    name: str
    base_price: Decimal
    genre: str = ""
    artist: str = ""
    year: Optional[int] = None
    rarity: float = 0.0  # 0..1


@dataclass(frozen=True)
class Borough:
    borough_id: str
    name: str
    price_modifier: Optional[Decimal] = None  # None = no regional effect


@dataclass(frozen=True)
class Store:
    store_id: str
    name: str
    borough_id: str
    specialty_genre: Optional[str] = None
    open_hour: int = 0  # clock hour, inclusive
    close_hour: int = 24  # clock hour, exclusive


@dataclass(frozen=True)
class TransportMethod:
    transport_id: str
    name: str  # "Walk", "Bike", "Subway", "Taxi"
    base_cost: Decimal = Decimal("0")
    speed_factor: float = 1.0


@dataclass(frozen=True)
class BoroughDistance:
    """Travel times between two boroughs, valid in both directions."""

    from_borough_id: str
    to_borough_id: str
    walking_time: Optional[int] = None
    bike_time: Optional[int] = None
    subway_time: Optional[int] = None
    taxi_time: Optional[int] = None
    taxi_cost: Optional[Decimal] = None

    def connects(self, a: str, b: str) -> bool:
        return {self.from_borough_id, self.to_borough_id} == {a, b}


# ── Game state ───────────────────────────────────────────────


@dataclass
class GameState:
    game_id: str
    name: str
    status: GameStatus
    current_hour: int
    max_hours: int


@dataclass
class PlayerState:
    player_id: str
    game_id: str
    username: str
    cash: Decimal
    loan_amount: Decimal
    inventory_capacity: int
    current_borough_id: Optional[str]
    actions_used_this_hour: int = 0
    actions_overflow: int = 0
    turn_completed: bool = False
    active: bool = True


@dataclass
class StoreListing:
    listing_id: str
    game_id: str
    store_id: str
    product_id: str
    condition: Condition
    quantity: int
    current_price: Decimal


@dataclass
class InventoryItem:
    item_id: str
    player_id: str
    product_id: str
    condition: Condition
    quantity: int
    purchase_price: Decimal  # unit price paid


# ── History ──────────────────────────────────────────────────


@dataclass(frozen=True)
class TransactionRecord:
    """Append-only log row. Never mutated after creation."""

    game_id: str
    player_id: str
    transaction_type: TransactionType
    quantity: int
    unit_price: Decimal
    hour: int
    product_id: Optional[str] = None
    store_id: Optional[str] = None
    condition: Optional[Condition] = None


@dataclass(frozen=True)
class PurchaseRecord:
    """Where and at what price a player last bought a product."""

    store_id: str
    unit_price: Decimal
    hour: int


# ── Pricing output ───────────────────────────────────────────


@dataclass(frozen=True)
class PriceQuote:
    side: TradeSide
    product_id: str
    store_id: str
    condition: Condition
    price: Decimal
    reference_price: Decimal  # base price (buy) or posted price (sell)
    multiplier: Decimal  # product of every factor applied
    capped: bool = False  # same-store anti-arbitrage cap applied
    cap_price: Optional[Decimal] = None
