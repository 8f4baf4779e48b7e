"""
Backgammon Service - two-player backgammon with a pure rules engine behind a JSON API.
"""

__version__ = "0.1.0"

# Core exports
from backgammon_service.core.types import (
    Board,
    Color,
    LegalMove,
    MoveError,
    MoveErrorKind,
    MoveResult,
)

__all__ = [
    "Board",
    "Color",
    "LegalMove",
    "MoveError",
    "MoveErrorKind",
    "MoveResult",
]
