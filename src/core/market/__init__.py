"""Market Core — pricing, ledger, action budget, turn barrier. Pure Python, DB independent"""

from .actions import (
    ACTIONS_PER_HOUR,
    ActionBudget,
    ActionDecision,
    DecisionKind,
    OverflowChoice,
)
from .models import (
    Borough,
    BoroughDistance,
    Condition,
    GameState,
    GameStatus,
    InventoryItem,
    PlayerState,
    PriceQuote,
    Product,
    PurchaseRecord,
    Store,
    StoreListing,
    TradeSide,
    TransactionRecord,
    TransactionType,
    TransportMethod,
)
from .pricing import quote
from .turns import TurnPhase, TurnResult, check_barrier

__all__ = [
    "ACTIONS_PER_HOUR",
    "ActionBudget",
    "ActionDecision",
    "DecisionKind",
    "OverflowChoice",
    "Borough",
    "BoroughDistance",
    "Condition",
    "GameState",
    "GameStatus",
    "InventoryItem",
    "PlayerState",
    "PriceQuote",
    "Product",
    "PurchaseRecord",
    "Store",
    "StoreListing",
    "TradeSide",
    "TransactionRecord",
    "TransactionType",
    "TransportMethod",
    "quote",
    "TurnPhase",
    "TurnResult",
    "check_barrier",
]
