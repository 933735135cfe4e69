"""API request/response schemas."""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from src.core.market.actions import ActionDecision, OverflowChoice
from src.core.market.models import (
    Condition,
    GameState,
    InventoryItem,
    PlayerState,
    PriceQuote,
    StoreListing,
    TradeSide,
)
from src.core.market.turns import TurnResult


# === Request Schemas ===


class CreateGameRequest(BaseModel):
    """New game with its host"""

    host_name: str = Field(..., min_length=1, max_length=50)
    name: Optional[str] = Field(None, max_length=100)
    max_hours: Optional[int] = Field(None, ge=1, le=240)


class JoinGameRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=50)


class PlayerRequest(BaseModel):
    player_id: str = Field(..., min_length=1)


class QuoteRequestBody(BaseModel):
    player_id: str
    store_id: str
    product_id: str
    condition: Condition
    side: TradeSide = TradeSide.BUY


class BuyRequest(BaseModel):
    player_id: str
    store_id: str
    product_id: str
    condition: Condition
    expected_price: Optional[Decimal] = Field(
        None, ge=0, decimal_places=2, description="Price the client displayed"
    )


class SellRequest(BaseModel):
    player_id: str
    item_id: str
    store_id: str
    expected_price: Optional[Decimal] = Field(
        None, ge=0, decimal_places=2, description="Price the client displayed"
    )


class ActionRequest(BaseModel):
    player_id: str
    cost: int = Field(..., ge=1, description="Action points")


class OverflowRequest(BaseModel):
    player_id: str
    cost: int = Field(..., ge=1)
    choice: OverflowChoice


class TravelRequest(BaseModel):
    player_id: str
    to_borough_id: str
    transport_id: str
    confirm_overflow: bool = False


class RepayLoanRequest(BaseModel):
    player_id: str
    amount: Decimal = Field(..., gt=0, decimal_places=2)


# === Response Schemas ===


class GameInfo(BaseModel):
    game_id: str
    name: str
    status: str
    current_hour: int
    max_hours: int

    @classmethod
    def from_core(cls, game: GameState) -> "GameInfo":
        return cls(
            game_id=game.game_id,
            name=game.name,
            status=game.status.value,
            current_hour=game.current_hour,
            max_hours=game.max_hours,
        )


class PlayerInfo(BaseModel):
    player_id: str
    game_id: str
    username: str
    cash: Decimal
    loan_amount: Decimal
    inventory_capacity: int
    current_borough_id: Optional[str]
    actions_used_this_hour: int
    actions_overflow: int
    turn_completed: bool
    active: bool

    @classmethod
    def from_core(cls, player: PlayerState) -> "PlayerInfo":
        return cls(
            player_id=player.player_id,
            game_id=player.game_id,
            username=player.username,
            cash=player.cash,
            loan_amount=player.loan_amount,
            inventory_capacity=player.inventory_capacity,
            current_borough_id=player.current_borough_id,
            actions_used_this_hour=player.actions_used_this_hour,
            actions_overflow=player.actions_overflow,
            turn_completed=player.turn_completed,
            active=player.active,
        )


class InventoryItemInfo(BaseModel):
    item_id: str
    product_id: str
    condition: str
    quantity: int
    purchase_price: Decimal

    @classmethod
    def from_core(cls, item: InventoryItem) -> "InventoryItemInfo":
        return cls(
            item_id=item.item_id,
            product_id=item.product_id,
            condition=item.condition.value,
            quantity=item.quantity,
            purchase_price=item.purchase_price,
        )


class CreateGameResponse(BaseModel):
    game: GameInfo
    host: PlayerInfo


class GameDetailResponse(BaseModel):
    game: GameInfo
    players: list[PlayerInfo]
    phase: str
    game_time: str


class PlayerStateResponse(BaseModel):
    player: PlayerInfo
    game: GameInfo
    inventory: list[InventoryItemInfo]
    net_worth: Decimal
    game_time: str
    actions_remaining: int
    phase: str


class QuoteResponse(BaseModel):
    side: str
    product_id: str
    store_id: str
    condition: str
    price: Decimal
    reference_price: Decimal
    capped: bool = False
    cap_price: Optional[Decimal] = None

    @classmethod
    def from_core(cls, quote: PriceQuote) -> "QuoteResponse":
        return cls(
            side=quote.side.value,
            product_id=quote.product_id,
            store_id=quote.store_id,
            condition=quote.condition.value,
            price=quote.price,
            reference_price=quote.reference_price,
            capped=quote.capped,
            cap_price=quote.cap_price,
        )


class CatalogEntryInfo(BaseModel):
    listing_id: str
    product_id: str
    condition: str
    quantity: int
    posted_price: Decimal
    buy_price: Decimal

    @classmethod
    def from_core(cls, listing: StoreListing, quote: PriceQuote) -> "CatalogEntryInfo":
        return cls(
            listing_id=listing.listing_id,
            product_id=listing.product_id,
            condition=listing.condition.value,
            quantity=listing.quantity,
            posted_price=listing.current_price,
            buy_price=quote.price,
        )


class SaleResponse(BaseModel):
    item_id: str
    product_id: str
    condition: str
    unit_price: Decimal
    cash_delta: Decimal
    cash_after: Decimal
    remaining_quantity: int
    capped: bool


class ActionDecisionInfo(BaseModel):
    kind: str
    cost: int
    actions_used: int
    actions_available: int
    remaining: int
    overflow: int = 0

    @classmethod
    def from_core(cls, decision: ActionDecision) -> "ActionDecisionInfo":
        return cls(
            kind=decision.kind.value,
            cost=decision.cost,
            actions_used=decision.actions_used,
            actions_available=decision.actions_available,
            remaining=decision.remaining,
            overflow=decision.overflow,
        )


class TurnResultInfo(BaseModel):
    all_completed: bool
    new_hour: int
    game_over: bool
    waiting_on: list[str] = []

    @classmethod
    def from_core(cls, result: TurnResult) -> "TurnResultInfo":
        return cls(
            all_completed=result.all_completed,
            new_hour=result.new_hour,
            game_over=result.game_over,
            waiting_on=list(result.waiting_on),
        )


class OverflowResponse(BaseModel):
    choice: str
    overflow: int
    actions_used: int
    turn: Optional[TurnResultInfo] = None


class TravelPlanInfo(BaseModel):
    from_borough_id: str
    to_borough_id: str
    transport_id: str
    action_cost: int
    fare: Decimal
    affordable: bool
    decision: ActionDecisionInfo


class TravelResponse(BaseModel):
    plan: TravelPlanInfo
    moved: bool
    cash_after: Decimal
    turn: Optional[TurnResultInfo] = None


class LeaveResponse(BaseModel):
    player_id: str
    turn: Optional[TurnResultInfo] = None
