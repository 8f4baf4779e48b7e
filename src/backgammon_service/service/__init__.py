"""Game service: turn workflow, game registry, move history and HTTP API."""

from backgammon_service.service.game import (
    Game,
    GameError,
    GameState,
    GameStatus,
    IllegalMoveError,
    MoveRequest,
    create_game,
)
from backgammon_service.service.store import GameStore

__all__ = [
    "Game",
    "GameError",
    "GameState",
    "GameStatus",
    "IllegalMoveError",
    "MoveRequest",
    "create_game",
    "GameStore",
]
