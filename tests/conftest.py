"""Pytest configuration and shared fixtures."""

import pytest
import numpy as np

from backgammon_service.core.types import Color


def _build_board(points=None):
    from backgammon_service.core.board import empty_board
    board = empty_board()
    for point, count in (points or {}).items():
        board[point - 1] = count
    return board


@pytest.fixture
def sample_board():
    """Create the standard opening position."""
    from backgammon_service.core.board import initial_board
    return initial_board()


@pytest.fixture
def rng():
    """Seeded NumPy generator for deterministic dice."""
    return np.random.default_rng(42)


@pytest.fixture
def game():
    """In-progress game: alice plays white and moves first."""
    from backgammon_service.service.game import Game
    g = Game(
        game_id=1,
        player1="alice",
        player2="bob",
        colors={"alice": Color.WHITE, "bob": Color.BLACK},
        current_turn="alice",
        rng=np.random.default_rng(3),
    )
    g.start("alice")
    return g


@pytest.fixture
def flask_app():
    from backgammon_service.config import ServerConfig
    from backgammon_service.service.server import create_app
    application = create_app(ServerConfig(seed=7))
    application.config['TESTING'] = True
    return application


@pytest.fixture
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture
def make_board():
    """Builder: {point: signed count} -> board, positive white, negative black."""
    return _build_board
