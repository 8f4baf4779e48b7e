"""In-memory game registry."""

import itertools
import threading
from typing import Dict, List, Optional

import numpy as np

from backgammon_service.core.types import RulesOptions, DEFAULT_RULES
from backgammon_service.service.game import Game, GameError, GameStatus, create_game
from backgammon_service.service.history import MoveHistoryLogger


class GameStore:
    """Thread-safe registry of games, keyed by id.

    Each game draws its dice from its own generator, spawned from one seed
    sequence so a seeded store replays the same games.
    """

    def __init__(
        self,
        seed: Optional[int] = None,
        rules: RulesOptions = DEFAULT_RULES,
        history: Optional[MoveHistoryLogger] = None,
    ):
        self.rules = rules
        self.history = history
        self._seed_sequence = np.random.SeedSequence(seed)
        self._ids = itertools.count(1)
        self._games: Dict[int, Game] = {}
        self._lock = threading.Lock()

    def create(self, player1: str, player2: str) -> Game:
        with self._lock:
            rng = np.random.default_rng(self._seed_sequence.spawn(1)[0])
            game = create_game(
                next(self._ids),
                player1,
                player2,
                rng=rng,
                rules=self.rules,
                history=self.history,
            )
            self._games[game.game_id] = game
            return game

    def get(self, game_id: int) -> Game:
        with self._lock:
            game = self._games.get(game_id)
        if game is None:
            raise GameError("Game not found", 404)
        return game

    def active_games(self, player: str) -> List[Game]:
        """Pending and in-progress games the player takes part in."""
        with self._lock:
            games = list(self._games.values())
        return [
            game for game in games
            if game.has_player(player)
            and game.status in (GameStatus.PENDING, GameStatus.IN_PROGRESS)
        ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._games)
