"""Shared guards and barrier resolution for services acting for a player"""

from datetime import datetime
from typing import Any

from src.core.errors import PlayerNotActiveError, TurnCompletedError, ValidationError
from src.core.event_bus import EventBus, GameEvent
from src.core.event_types import EventTypes
from src.core.market.models import Condition, GameState, GameStatus, PlayerState
from src.core.market.turns import TurnResult, ensure_active, resolve_turn
from src.db.repository import GameRepository


def load_actor(
    repo: GameRepository, player_id: str, require_open_turn: bool = True
) -> tuple[PlayerState, GameState]:
    """Lock the player row and check they may act right now.

    Raises PlayerNotFoundError, PlayerNotActiveError, GameNotActiveError and,
    unless require_open_turn is False, TurnCompletedError.
    """
    player = repo.get_player(player_id, lock=True)
    if not player.active:
        raise PlayerNotActiveError(
            f"Player {player_id} left the game", {"player_id": player_id}
        )
    game = repo.get_game(player.game_id)
    ensure_active(game)
    if require_open_turn and player.turn_completed:
        raise TurnCompletedError(
            "Turn already ended, waiting for the other players",
            {"player_id": player_id, "hour": game.current_hour},
        )
    return player, game


def parse_condition(value: Any) -> Condition:
    try:
        return Condition(value)
    except ValueError:
        raise ValidationError(
            f"Unknown condition: {value!r}",
            {"allowed": [c.value for c in Condition]},
        ) from None


def emit_all(bus: EventBus, source: str, events: list[tuple[str, dict[str, Any]]]) -> None:
    """Emit events collected during a committed unit of work."""
    for event_type, data in events:
        bus.emit(GameEvent(event_type=event_type, data=data, source=source))


def resolve_barrier(
    repo: GameRepository, game: GameState, allotment: int
) -> tuple[TurnResult, list[tuple[str, dict[str, Any]]]]:
    """Advance the game if every active player is done.

    Locks the game row before reading the roster, so two players ending
    the same hour at once cannot both see the other as still pending.
    Runs inside the caller's transaction. Returns the result and the events
    to emit once that transaction has committed.
    """
    game = repo.lock_game(game.game_id)
    if game.status is not GameStatus.ACTIVE:
        # finished by another unit of work since the caller's read
        return (
            TurnResult(
                all_completed=False,
                new_hour=game.current_hour,
                game_over=game.status is GameStatus.COMPLETED,
            ),
            [],
        )

    players = repo.list_players(game.game_id)
    result = resolve_turn(game, players, allotment)
    if not result.all_completed:
        return result, []

    fields: dict[str, Any] = {
        "current_hour": game.current_hour,
        "status": game.status,
    }
    if result.game_over:
        fields["ended_at"] = datetime.utcnow()
    repo.update_game(game.game_id, **fields)

    if result.game_over:
        return result, [(EventTypes.GAME_COMPLETED, {"game_id": game.game_id})]

    for player in players:
        repo.update_player(
            player.player_id,
            turn_completed=player.turn_completed,
            actions_used_this_hour=player.actions_used_this_hour,
            actions_overflow=player.actions_overflow,
        )
    return result, [
        (
            EventTypes.HOUR_ADVANCED,
            {"game_id": game.game_id, "new_hour": result.new_hour},
        )
    ]
