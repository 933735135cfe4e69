"""Turn Service — action points, overflow, end of turn, travel

Decision points are queries: request_action() and travel() answer with a
NEEDS_OVERFLOW_DECISION instead of mutating when the hour's budget is too
small. The caller comes back with confirm_overflow() / travel(confirm=True)
or simply drops the action.

The barrier is evaluated on the roster read inside the same unit of work
that applies the hour advance.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.orm import Session

from src.config import settings
from src.core.cache import TTLCache
from src.core.errors import BoroughNotFoundError, ValidationError
from src.core.event_bus import EventBus
from src.core.event_types import EventTypes
from src.core.logging import get_logger
from src.core.market.actions import (
    ActionDecision,
    DecisionKind,
    OverflowChoice,
    budget_for,
)
from src.core.market.ledger import check_funds
from src.core.market.models import (
    PlayerState,
    TransactionRecord,
    TransactionType,
)
from src.core.market.travel import TravelCost, plan_route
from src.core.market.turns import TurnResult, check_barrier, mark_player_done
from src.db.repository import GameRepository
from src.services.common import emit_all, load_actor, resolve_barrier

logger = get_logger(__name__)

SOURCE = "turn_service"


@dataclass(frozen=True)
class OverflowResult:
    choice: OverflowChoice
    overflow: int  # actions booked on the next hour
    actions_used: int
    turn: Optional[TurnResult] = None  # set when borrowing ended the turn


@dataclass(frozen=True)
class TravelPlan:
    from_borough_id: str
    to_borough_id: str
    transport_id: str
    cost: TravelCost
    decision: ActionDecision
    affordable: bool


@dataclass(frozen=True)
class TravelResult:
    plan: TravelPlan
    moved: bool
    cash_after: Decimal
    turn: Optional[TurnResult] = None


class TurnService:
    """Per-hour action budget and the shared clock"""

    def __init__(
        self,
        db: Session,
        event_bus: EventBus,
        cache: Optional[TTLCache] = None,
        actions_per_hour: Optional[int] = None,
    ):
        self._db = db
        self._bus = event_bus
        self._repo = GameRepository(db, cache)
        self._allotment = actions_per_hour or settings.ACTIONS_PER_HOUR

    # === Actions ===

    def request_action(self, player_id: str, cost: int) -> ActionDecision:
        """Spend `cost` actions if they fit in this hour.

        When they do not fit nothing is written and the decision carries
        the overflow the player would borrow from the next hour.
        """
        with self._repo.transaction() as repo:
            player, _ = load_actor(repo, player_id)
            budget = budget_for(
                player.actions_used_this_hour, player.actions_overflow, self._allotment
            )
            decision = budget.try_consume(cost)
            if decision.consumed:
                repo.update_player(player_id, actions_used_this_hour=budget.actions_used)

        logger.debug(
            "Player %s action cost=%d -> %s (%d/%d)",
            player_id,
            cost,
            decision.kind.value,
            decision.actions_used,
            decision.actions_available,
        )
        return decision

    def confirm_overflow(
        self, player_id: str, cost: int, choice: OverflowChoice
    ) -> OverflowResult:
        """Second phase of an action that did not fit.

        ABORT leaves every row as it was. BORROW spends what is left of the
        hour, books the remainder on the next one and ends the player's turn,
        which may advance the clock.
        """
        try:
            choice = OverflowChoice(choice)
        except ValueError:
            raise ValidationError(
                f"Unknown overflow choice: {choice!r}",
                {"allowed": [c.value for c in OverflowChoice]},
            ) from None

        events: list[tuple[str, dict[str, Any]]] = []
        turn: Optional[TurnResult] = None

        with self._repo.transaction() as repo:
            player, game = load_actor(repo, player_id)
            budget = budget_for(
                player.actions_used_this_hour, player.actions_overflow, self._allotment
            )
            if choice is OverflowChoice.ABORT:
                budget.evaluate(cost)
                return OverflowResult(
                    choice=choice, overflow=0, actions_used=budget.actions_used
                )

            overflow = budget.commit_overflow(cost)
            if overflow == 0:
                repo.update_player(player_id, actions_used_this_hour=budget.actions_used)
            else:
                repo.update_player(
                    player_id,
                    actions_used_this_hour=budget.actions_used,
                    actions_overflow=budget.overflow_into_next_hour,
                    turn_completed=True,
                )
                events.append(
                    (
                        EventTypes.TURN_ENDED,
                        {"game_id": game.game_id, "player_id": player_id},
                    )
                )
                turn, advanced = resolve_barrier(repo, game, self._allotment)
                events.extend(advanced)

        if overflow:
            logger.info(
                "Player %s borrowed %d action(s) from the next hour", player_id, overflow
            )
        emit_all(self._bus, SOURCE, events)
        return OverflowResult(
            choice=choice,
            overflow=overflow,
            actions_used=budget.actions_used,
            turn=turn,
        )

    # === End of turn ===

    def end_turn(self, player_id: str) -> TurnResult:
        """Mark the player done and advance the clock if everyone is."""
        with self._repo.transaction() as repo:
            player, game = load_actor(repo, player_id, require_open_turn=False)
            if not player.turn_completed:
                mark_player_done(player)
                repo.update_player(player_id, turn_completed=player.turn_completed)
            result, events = resolve_barrier(repo, game, self._allotment)

        logger.info(
            "Player %s ended turn in game %s (advanced=%s, hour=%d)",
            player_id,
            game.game_id,
            result.all_completed,
            result.new_hour,
        )
        emit_all(
            self._bus,
            SOURCE,
            [(EventTypes.TURN_ENDED, {"game_id": game.game_id, "player_id": player_id})]
            + events,
        )
        return result

    def barrier_reached(self, game_id: str) -> bool:
        """Fresh roster check, no side effects."""
        return check_barrier(self._repo.list_players(game_id))

    # === Travel ===

    def _plan(
        self,
        repo: GameRepository,
        player: PlayerState,
        to_borough_id: str,
        transport_id: str,
    ) -> TravelPlan:
        if repo.get_borough(to_borough_id) is None:
            raise BoroughNotFoundError(
                f"Borough not found: {to_borough_id}", {"borough_id": to_borough_id}
            )
        transport = repo.get_transport_method(transport_id)
        if transport is None:
            raise ValidationError(
                f"Unknown transport method: {transport_id}",
                {"transport_id": transport_id},
            )
        cost = plan_route(
            repo.list_distances(), player.current_borough_id, to_borough_id, transport
        )
        budget = budget_for(
            player.actions_used_this_hour, player.actions_overflow, self._allotment
        )
        return TravelPlan(
            from_borough_id=player.current_borough_id or "",
            to_borough_id=to_borough_id,
            transport_id=transport_id,
            cost=cost,
            decision=budget.evaluate(cost.action_cost),
            affordable=player.cash >= cost.monetary_cost,
        )

    def plan_travel(
        self, player_id: str, to_borough_id: str, transport_id: str
    ) -> TravelPlan:
        """What a trip would cost right now. Writes nothing."""
        player = self._repo.get_player(player_id)
        return self._plan(self._repo, player, to_borough_id, transport_id)

    def travel(
        self,
        player_id: str,
        to_borough_id: str,
        transport_id: str,
        confirm_overflow: bool = False,
    ) -> TravelResult:
        """Move the player, paying the fare and the action cost.

        If the trip does not fit in this hour and confirm_overflow is False,
        nothing changes and the result has moved=False with the decision.
        """
        events: list[tuple[str, dict[str, Any]]] = []
        turn: Optional[TurnResult] = None

        with self._repo.transaction() as repo:
            player, game = load_actor(repo, player_id)
            plan = self._plan(repo, player, to_borough_id, transport_id)
            check_funds(player, plan.cost.monetary_cost)

            if (
                plan.decision.kind is DecisionKind.NEEDS_OVERFLOW_DECISION
                and not confirm_overflow
            ):
                return TravelResult(plan=plan, moved=False, cash_after=player.cash)

            budget = budget_for(
                player.actions_used_this_hour, player.actions_overflow, self._allotment
            )
            overflow = budget.commit_overflow(plan.cost.action_cost)
            player = repo.update_player(
                player_id,
                cash=player.cash - plan.cost.monetary_cost,
                current_borough_id=to_borough_id,
                actions_used_this_hour=budget.actions_used,
                actions_overflow=budget.overflow_into_next_hour,
                turn_completed=overflow > 0,
            )
            repo.append_transaction(
                TransactionRecord(
                    game_id=game.game_id,
                    player_id=player_id,
                    transaction_type=TransactionType.TRANSPORT,
                    quantity=1,
                    unit_price=plan.cost.monetary_cost,
                    hour=game.current_hour,
                )
            )
            events.append(
                (
                    EventTypes.PLAYER_TRAVELED,
                    {
                        "game_id": game.game_id,
                        "player_id": player_id,
                        "from_borough_id": plan.from_borough_id,
                        "to_borough_id": to_borough_id,
                        "transport_id": transport_id,
                    },
                )
            )
            if overflow:
                events.append(
                    (
                        EventTypes.TURN_ENDED,
                        {"game_id": game.game_id, "player_id": player_id},
                    )
                )
                turn, advanced = resolve_barrier(repo, game, self._allotment)
                events.extend(advanced)

        logger.info(
            "Player %s traveled %s -> %s by %s (%d actions, $%s)",
            player_id,
            plan.from_borough_id,
            to_borough_id,
            transport_id,
            plan.cost.action_cost,
            plan.cost.monetary_cost,
        )
        emit_all(self._bus, SOURCE, events)
        return TravelResult(plan=plan, moved=True, cash_after=player.cash, turn=turn)
