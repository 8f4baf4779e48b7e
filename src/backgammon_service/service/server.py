"""JSON HTTP API for playing backgammon games.

The acting player is named by the ``X-Player`` header. Every move is
re-validated by the rules engine before it is committed; rule violations
come back as 400 responses carrying the violation's code.

Usage:
    backgammon-service serve --port 8002
"""

from typing import Optional

from flask import Blueprint, Flask, current_app, jsonify, request

from backgammon_service.config import ServerConfig
from backgammon_service.service.game import GameError, IllegalMoveError, MoveRequest
from backgammon_service.service.history import MoveHistoryLogger
from backgammon_service.service.store import GameStore


games = Blueprint('games', __name__)


# ==============================================================================
# HELPERS
# ==============================================================================

def _store() -> GameStore:
    return current_app.extensions['backgammon_store']


def _player() -> str:
    player = request.headers.get('X-Player', '').strip()
    if not player:
        raise GameError("User not authenticated", 401)
    return player


def _game_for_player(game_id: int):
    game = _store().get(game_id)
    if not game.has_player(_player()):
        raise GameError("You are not a player in this game", 403)
    return game


# ==============================================================================
# API ENDPOINTS
# ==============================================================================

@games.route('', methods=['POST'])
def create_game():
    """Create a pending game between two players.

    Request JSON:
        player1, player2: Player names; the caller must be one of them
    """
    player = _player()
    data = request.get_json(silent=True) or {}
    player1 = data.get('player1')
    player2 = data.get('player2')
    if not isinstance(player1, str) or not isinstance(player2, str):
        raise GameError("player1 and player2 are required")
    if player not in (player1, player2):
        raise GameError("You can only create games you play in", 403)

    game = _store().create(player1, player2)
    current_app.logger.info("Created game %d: %s vs %s", game.game_id, player1, player2)
    return jsonify(game.to_dict()), 201


@games.route('', methods=['GET'])
def active_games():
    """List the caller's pending and in-progress games."""
    player = _player()
    return jsonify({'games': [game.to_dict() for game in _store().active_games(player)]})


@games.route('/<int:game_id>', methods=['GET'])
def game_details(game_id: int):
    return jsonify(_game_for_player(game_id).to_dict())


@games.route('/<int:game_id>/start', methods=['POST'])
def start_game(game_id: int):
    game = _store().get(game_id)
    game.start(_player())
    return jsonify({'message': 'Game started successfully'})


@games.route('/<int:game_id>/state', methods=['GET'])
def game_state(game_id: int):
    return jsonify(_game_for_player(game_id).state_dict())


@games.route('/<int:game_id>/roll', methods=['POST'])
def roll_dice(game_id: int):
    """Roll dice for the player to move.

    Returns:
        JSON state plus ``turnPassed`` when the roll could not be played
    """
    game = _store().get(game_id)
    outcome = game.roll(_player())
    return jsonify({
        **game.state_dict(),
        'diceRoll': outcome.dice,
        'turnPassed': outcome.turn_passed,
    })


@games.route('/<int:game_id>/legal-moves', methods=['GET'])
def legal_moves(game_id: int):
    game = _store().get(game_id)
    moves = game.legal_moves(_player())
    return jsonify({'moves': [move.to_dict() for move in moves]})


@games.route('/<int:game_id>/move', methods=['POST'])
def make_move(game_id: int):
    """Commit a move.

    Request JSON:
        fromPoint, toPoint, dieUsed, diceIndices, isCombinedMove

    Returns:
        JSON with the updated state and what the move did
    """
    game = _store().get(game_id)
    player = _player()
    move_request = MoveRequest.from_dict(request.get_json(silent=True))
    outcome = game.move(player, move_request)
    return jsonify({
        **game.state_dict(),
        'hitOpponent': outcome.record.hit_opponent,
        'turnEnded': outcome.turn_ended,
        'winner': outcome.winner,
    })


@games.route('/<int:game_id>/forfeit', methods=['POST'])
def forfeit_game(game_id: int):
    game = _store().get(game_id)
    game.forfeit(_player())
    return jsonify({'message': 'Game forfeited successfully'})


# ==============================================================================
# APP FACTORY
# ==============================================================================

def handle_game_error(error: GameError):
    body = {'error': error.message}
    if isinstance(error, IllegalMoveError):
        body['code'] = error.error.kind.name
        current_app.logger.warning(
            "Rejected move %s->%s (die %s): %s",
            error.error.from_point, error.error.to_point, error.error.die_value, error.message,
        )
    elif error.status_code >= 500:
        current_app.logger.error("Game failure: %s", error.message)
    return jsonify(body), error.status_code


def create_app(config: Optional[ServerConfig] = None, store: Optional[GameStore] = None) -> Flask:
    """Build the Flask application.

    Args:
        config: Service configuration (defaults to ServerConfig.from_env())
        store: Game registry to serve (a fresh one is built from config if None)

    Returns:
        Configured Flask app
    """
    if config is None:
        config = ServerConfig.from_env()

    app = Flask(__name__)
    app.config['BACKGAMMON'] = config

    history = None
    if store is None:
        if config.history_dir:
            history = MoveHistoryLogger(
                log_dir=config.history_dir,
                console_interval=config.history_console_interval,
            )
        store = GameStore(seed=config.seed, rules=config.rules, history=history)

    app.extensions['backgammon_store'] = store
    app.register_blueprint(games, url_prefix='/api/v1/games')
    app.register_error_handler(GameError, handle_game_error)

    @app.errorhandler(404)
    def not_found(_error):
        return jsonify({'error': 'Endpoint not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(_error):
        return jsonify({'error': 'Method not allowed'}), 405

    return app
