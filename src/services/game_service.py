"""Game Service — lifecycle, roster, player state and loan

A game is created in `waiting` with its host, gets its own copy of the
opening market stock, and starts counting down once start_game() is called.
Players may join or leave at any time; leaving re-runs the barrier so a
departed player never holds up the clock.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.orm import Session

from src.config import settings
from src.core.cache import TTLCache
from src.core.errors import (
    GameNotActiveError,
    InsufficientFundsError,
    ValidationError,
)
from src.core.event_bus import EventBus
from src.core.event_types import EventTypes
from src.core.logging import get_logger
from src.core.market.actions import budget_for
from src.core.market.clock import format_game_time
from src.core.market.ledger import net_worth
from src.core.market.models import (
    GameState,
    GameStatus,
    InventoryItem,
    PlayerState,
    StoreListing,
)
from src.core.market.pricing import CENT
from src.core.market.seed import MarketSeed, posted_price
from src.core.market.turns import TurnPhase, TurnResult, turn_phase
from src.db.repository import GameRepository, new_id
from src.services.common import emit_all, resolve_barrier

logger = get_logger(__name__)

SOURCE = "game_service"


@dataclass(frozen=True)
class PlayerView:
    """Everything a client needs to render one player's screen."""

    player: PlayerState
    game: GameState
    inventory: list[InventoryItem]
    net_worth: Decimal
    game_time: str
    actions_remaining: int
    phase: TurnPhase


@dataclass(frozen=True)
class GameView:
    game: GameState
    players: list[PlayerState]
    phase: TurnPhase
    game_time: str


class GameService:
    """Game creation, roster and per-player finances"""

    def __init__(
        self,
        db: Session,
        event_bus: EventBus,
        seed: Optional[MarketSeed] = None,
        cache: Optional[TTLCache] = None,
    ):
        self._db = db
        self._bus = event_bus
        self._seed = seed or MarketSeed()
        self._repo = GameRepository(db, cache)

    # === Reference data ===

    def sync_reference_data(self) -> int:
        """Seed → DB. Called at startup; rows already present are kept."""
        with self._repo.transaction() as repo:
            return repo.add_reference_data(self._seed.reference)

    def _new_player(self, game_id: str, username: str) -> PlayerState:
        username = username.strip()
        if not username:
            raise ValidationError("Username must not be empty")
        borough = self._repo.get_borough_by_name(settings.STARTING_BOROUGH)
        if borough is None:
            boroughs = self._repo.list_boroughs()
            borough = boroughs[0] if boroughs else None
        return PlayerState(
            player_id=new_id(),
            game_id=game_id,
            username=username,
            cash=settings.STARTING_CASH,
            loan_amount=settings.STARTING_LOAN,
            inventory_capacity=settings.INVENTORY_CAPACITY,
            current_borough_id=borough.borough_id if borough else None,
        )

    def _stock_market(self, repo: GameRepository, game_id: str) -> int:
        count = 0
        for line in self._seed.listings:
            product = repo.get_product(line.product_id)
            if product is None or repo.get_store(line.store_id) is None:
                logger.warning(
                    "Seed listing refers to unknown %s/%s",
                    line.store_id,
                    line.product_id,
                )
                continue
            repo.create_store_listing(
                StoreListing(
                    listing_id=new_id(),
                    game_id=game_id,
                    store_id=line.store_id,
                    product_id=line.product_id,
                    condition=line.condition,
                    quantity=line.quantity,
                    current_price=posted_price(product, line.condition),
                )
            )
            count += 1
        return count

    # === Lifecycle ===

    def create_game(
        self,
        host_name: str,
        name: Optional[str] = None,
        max_hours: Optional[int] = None,
    ) -> tuple[GameState, PlayerState]:
        max_hours = settings.DEFAULT_MAX_HOURS if max_hours is None else max_hours
        if max_hours < 1:
            raise ValidationError("max_hours must be at least 1", {"max_hours": max_hours})

        with self._repo.transaction() as repo:
            game = repo.create_game(
                GameState(
                    game_id=new_id(),
                    name=name or f"{host_name.strip()}'s game",
                    status=GameStatus.WAITING,
                    current_hour=max_hours,
                    max_hours=max_hours,
                )
            )
            host = repo.create_player(self._new_player(game.game_id, host_name))
            listings = self._stock_market(repo, game.game_id)

        logger.info(
            "Game %s created by %s (%d hours, %d listings)",
            game.game_id,
            host.username,
            max_hours,
            listings,
        )
        emit_all(
            self._bus,
            SOURCE,
            [
                (EventTypes.GAME_CREATED, {"game_id": game.game_id}),
                (
                    EventTypes.PLAYER_JOINED,
                    {"game_id": game.game_id, "player_id": host.player_id},
                ),
            ],
        )
        return game, host

    def join_game(self, game_id: str, username: str) -> PlayerState:
        """Add a player. The next barrier check already counts them."""
        with self._repo.transaction() as repo:
            game = repo.get_game(game_id)
            if game.status is GameStatus.COMPLETED:
                raise GameNotActiveError(
                    f"Game {game_id} is over", {"game_id": game_id}
                )
            taken = {p.username.lower() for p in repo.list_players(game_id)}
            if username.strip().lower() in taken:
                raise ValidationError(
                    f"Username already taken: {username}", {"username": username}
                )
            player = repo.create_player(self._new_player(game_id, username))

        logger.info("Player %s joined game %s", player.username, game_id)
        emit_all(
            self._bus,
            SOURCE,
            [
                (
                    EventTypes.PLAYER_JOINED,
                    {"game_id": game_id, "player_id": player.player_id},
                )
            ],
        )
        return player

    def leave_game(self, player_id: str) -> Optional[TurnResult]:
        """Deactivate the player; returns the barrier outcome for an active game."""
        events: list[tuple[str, dict[str, Any]]] = []
        result: Optional[TurnResult] = None

        with self._repo.transaction() as repo:
            player = repo.get_player(player_id, lock=True)
            if not player.active:
                return None
            repo.update_player(player_id, active=False)
            events.append(
                (EventTypes.PLAYER_LEFT, {"game_id": player.game_id, "player_id": player_id})
            )
            game = repo.get_game(player.game_id)
            if game.status is GameStatus.ACTIVE:
                result, advanced = resolve_barrier(
                    repo, game, settings.ACTIONS_PER_HOUR
                )
                events.extend(advanced)

        logger.info("Player %s left game %s", player_id, player.game_id)
        emit_all(self._bus, SOURCE, events)
        return result

    def start_game(self, game_id: str) -> GameState:
        with self._repo.transaction() as repo:
            game = repo.get_game(game_id)
            if game.status is not GameStatus.WAITING:
                raise GameNotActiveError(
                    f"Game {game_id} is already {game.status.value}",
                    {"game_id": game_id, "status": game.status.value},
                )
            game = repo.update_game(
                game_id,
                status=GameStatus.ACTIVE,
                current_hour=game.max_hours,
                started_at=datetime.utcnow(),
            )

        logger.info("Game %s started at hour %d", game_id, game.current_hour)
        emit_all(self._bus, SOURCE, [(EventTypes.GAME_STARTED, {"game_id": game_id})])
        return game

    # === Queries ===

    def get_game(self, game_id: str) -> GameView:
        game = self._repo.get_game(game_id)
        players = self._repo.list_players(game_id)
        return GameView(
            game=game,
            players=players,
            phase=turn_phase(game, players),
            game_time=format_game_time(game.current_hour, game.max_hours),
        )

    def get_state(self, player_id: str) -> PlayerView:
        player = self._repo.get_player(player_id)
        game = self._repo.get_game(player.game_id)
        inventory = self._repo.list_inventory(player_id)
        budget = budget_for(
            player.actions_used_this_hour,
            player.actions_overflow,
            settings.ACTIONS_PER_HOUR,
        )
        return PlayerView(
            player=player,
            game=game,
            inventory=inventory,
            net_worth=net_worth(player, inventory),
            game_time=format_game_time(game.current_hour, game.max_hours),
            actions_remaining=budget.remaining,
            phase=turn_phase(game, self._repo.list_players(game.game_id)),
        )

    # === Loan ===

    def repay_loan(self, player_id: str, amount: Decimal) -> PlayerState:
        amount = Decimal(amount)
        if amount != amount.quantize(CENT):
            raise ValidationError(
                "Repayment must be whole cents", {"amount": str(amount)}
            )
        with self._repo.transaction() as repo:
            player = repo.get_player(player_id, lock=True)
            if amount <= 0 or amount > player.loan_amount:
                raise ValidationError(
                    f"Repayment must be between $0.01 and ${player.loan_amount}",
                    {"amount": str(amount), "loan": str(player.loan_amount)},
                )
            if player.cash < amount:
                raise InsufficientFundsError(
                    f"Need ${amount}, have ${player.cash}",
                    {"cash": str(player.cash), "amount": str(amount)},
                )
            player = repo.update_player(
                player_id,
                cash=player.cash - amount,
                loan_amount=player.loan_amount - amount,
            )

        logger.info(
            "Player %s repaid %s, loan now %s", player_id, amount, player.loan_amount
        )
        emit_all(
            self._bus,
            SOURCE,
            [
                (
                    EventTypes.LOAN_REPAID,
                    {
                        "game_id": player.game_id,
                        "player_id": player_id,
                        "amount": str(amount),
                    },
                )
            ],
        )
        return player
