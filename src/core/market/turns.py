"""Turn barrier — the shared clock moves only when every player is done.

WAITING_FOR_PLAYERS -> ALL_PLAYERS_ACTING -> BARRIER_REACHED
    -> HOUR_ADVANCED -> (ALL_PLAYERS_ACTING | GAME_OVER)

The roster handed to these functions must be read fresh inside the same
transaction that applies the advance. Players who left (active=False) do
not hold the barrier.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from src.core.errors import GameNotActiveError

from .actions import ACTIONS_PER_HOUR, budget_for
from .models import GameState, GameStatus, PlayerState

logger = logging.getLogger(__name__)


class TurnPhase(str, Enum):
    WAITING_FOR_PLAYERS = "waiting_for_players"
    ALL_PLAYERS_ACTING = "all_players_acting"
    BARRIER_REACHED = "barrier_reached"
    HOUR_ADVANCED = "hour_advanced"
    GAME_OVER = "game_over"


@dataclass(frozen=True)
class TurnResult:
    all_completed: bool
    new_hour: int
    game_over: bool
    waiting_on: tuple[str, ...] = ()


def active_players(players: Iterable[PlayerState]) -> list[PlayerState]:
    return [p for p in players if p.active]


def check_barrier(players: Iterable[PlayerState]) -> bool:
    """True iff there is at least one active player and all are done."""
    roster = active_players(players)
    return bool(roster) and all(p.turn_completed for p in roster)


def pending_players(players: Iterable[PlayerState]) -> tuple[str, ...]:
    return tuple(p.player_id for p in active_players(players) if not p.turn_completed)


def turn_phase(game: GameState, players: Iterable[PlayerState]) -> TurnPhase:
    if game.status is GameStatus.COMPLETED:
        return TurnPhase.GAME_OVER
    if game.status is GameStatus.WAITING:
        return TurnPhase.WAITING_FOR_PLAYERS
    if check_barrier(players):
        return TurnPhase.BARRIER_REACHED
    return TurnPhase.ALL_PLAYERS_ACTING


def ensure_active(game: GameState) -> None:
    if game.status is not GameStatus.ACTIVE or game.current_hour <= 0:
        raise GameNotActiveError(
            f"Game {game.game_id} is {game.status.value}",
            {"game_id": game.game_id, "status": game.status.value},
        )


def mark_player_done(player: PlayerState) -> None:
    player.turn_completed = True


def advance_hour(
    game: GameState,
    players: Iterable[PlayerState],
    allotment: int = ACTIONS_PER_HOUR,
) -> TurnResult:
    """Apply the barrier transition to `game` and `players` in place.

    Callers check the barrier first; this only refuses finished games.
    """
    ensure_active(game)
    roster = list(players)

    game.current_hour -= 1
    if game.current_hour <= 0:
        game.current_hour = 0
        game.status = GameStatus.COMPLETED
        logger.info("Game %s completed", game.game_id)
        return TurnResult(all_completed=True, new_hour=0, game_over=True)

    for player in roster:
        player.turn_completed = False
        budget = budget_for(
            player.actions_used_this_hour, player.actions_overflow, allotment
        )
        budget.reset_for_new_hour(player.actions_overflow, allotment)
        player.actions_used_this_hour = budget.actions_used
        player.actions_overflow = budget.overflow_into_next_hour

    logger.info("Game %s advanced to hour %d", game.game_id, game.current_hour)
    return TurnResult(all_completed=True, new_hour=game.current_hour, game_over=False)


def resolve_turn(
    game: GameState,
    players: Iterable[PlayerState],
    allotment: int = ACTIONS_PER_HOUR,
) -> TurnResult:
    """Advance if the barrier is reached, otherwise report who is pending."""
    roster = list(players)
    if not check_barrier(roster):
        return TurnResult(
            all_completed=False,
            new_hour=game.current_hour,
            game_over=False,
            waiting_on=pending_players(roster),
        )
    return advance_hour(game, roster, allotment)

