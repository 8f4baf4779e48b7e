"""Command-line entrypoint for backgammon-service.

Subcommands:
    serve   run the JSON HTTP API
    moves   print the legal moves of the opening position for a roll
"""

from __future__ import annotations

import argparse
from typing import List, Optional

from backgammon_service import __version__
from backgammon_service.config import ServerConfig
from backgammon_service.core.board import initial_board, board_to_string
from backgammon_service.core.dice import dice_values, dice_to_string
from backgammon_service.core.rules import get_legal_moves
from backgammon_service.core.types import Color


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level argument parser."""
    parser = argparse.ArgumentParser(
        prog="backgammon-service",
        description="Two-player backgammon service",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"backgammon-service {__version__}",
    )
    subparsers = parser.add_subparsers(dest="command")

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", type=str, default=None, help="Host to bind to (default: localhost)")
    serve.add_argument("--port", type=int, default=None, help="Port to bind to (default: 8002)")
    serve.add_argument("--debug", action="store_true", default=None, help="Run in debug mode")
    serve.add_argument("--seed", type=int, default=None, help="Seed for dice rolls")
    serve.add_argument("--history-dir", type=str, default=None, help="Directory for the move history JSONL")

    moves = subparsers.add_parser("moves", help="List legal moves from the opening position")
    moves.add_argument("--color", choices=[c.value for c in Color], default="white")
    moves.add_argument("--dice", type=int, nargs=2, required=True, metavar=("DIE1", "DIE2"))
    moves.add_argument("--bar", type=int, default=0, help="Checkers of --color on the bar")
    moves.add_argument("--show-board", action="store_true", help="Print the board first")

    return parser


def run_moves(args: argparse.Namespace) -> int:
    """Print legal moves for the opening position."""
    color = Color.parse(args.color)
    board = initial_board()
    dice = dice_values(tuple(args.dice))
    if args.show_board:
        print(board_to_string(board, bar={color: args.bar}))

    legal = get_legal_moves(board, color, dice, [False] * len(dice), args.bar)
    print(f"{color} to play {dice_to_string(dice)}: {len(legal)} legal moves")
    for move in legal:
        combined = " (combined)" if move.is_combined_move else ""
        print(f"  {move.from_point:2d} -> {move.to_point:2d}  die {move.die_used:2d}  "
              f"dice {list(move.dice_indices)}{combined}")
    return 0


def run_server(args: argparse.Namespace) -> int:
    """Start the HTTP API."""
    from backgammon_service.service.server import create_app

    config = ServerConfig.from_env().with_overrides(
        host=args.host,
        port=args.port,
        debug=args.debug,
        seed=args.seed,
        history_dir=args.history_dir,
    )
    app = create_app(config)

    print("\nBackgammon server starting...")
    print(f"   URL: http://{config.host}:{config.port}/api/v1/games")
    if config.history_dir:
        print(f"   Move history: {config.history_dir}")
    print()

    app.run(host=config.host, port=config.port, debug=config.debug)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entrypoint used by the `backgammon-service` console script."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "serve":
        return run_server(args)
    if args.command == "moves":
        return run_moves(args)

    parser.print_help()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
