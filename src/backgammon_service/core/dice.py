"""Dice utilities for backgammon.

This module handles dice rolling, the dice sequence a turn is played
with, and the "used" flags that track which dice are spent.
"""

from typing import List, Sequence, Tuple
import numpy as np
from backgammon_service.core.types import IndexedDie


# Two dice as rolled
Roll = Tuple[int, int]


def is_doubles(roll: Roll) -> bool:
    """Check if dice roll is doubles."""
    return roll[0] == roll[1]


def dice_values(roll: Roll) -> List[int]:
    """Get the dice sequence to play.

    For doubles, you get 4 moves. For non-doubles, you get 2 moves.

    Args:
        roll: Dice roll tuple

    Returns:
        List of dice values (length 2 or 4)

    Examples:
        >>> dice_values((3, 5))
        [3, 5]
        >>> dice_values((4, 4))
        [4, 4, 4, 4]
    """
    for die in roll:
        if not 1 <= die <= 6:
            raise ValueError(f"Invalid die value: {die}")
    if is_doubles(roll):
        return [roll[0]] * 4
    return [roll[0], roll[1]]


def roll_dice(rng: np.random.Generator) -> Roll:
    """Roll two dice.

    Args:
        rng: NumPy random generator

    Returns:
        Tuple of (die1, die2) where each is 1-6
    """
    die1 = int(rng.integers(1, 7))
    die2 = int(rng.integers(1, 7))
    return (die1, die2)


def new_turn_dice(rng: np.random.Generator) -> Tuple[List[int], List[bool]]:
    """Roll for a new turn: the dice sequence plus all-false used flags."""
    values = dice_values(roll_dice(rng))
    return values, [False] * len(values)


def unused_dice(dice: Sequence[int], dice_used: Sequence[bool]) -> List[IndexedDie]:
    """Dice not yet spent this turn, tagged with their original index."""
    if len(dice) != len(dice_used):
        raise ValueError(
            f"dice and dice_used differ in length: {len(dice)} vs {len(dice_used)}"
        )
    return [
        IndexedDie(value=int(value), index=i)
        for i, (value, used) in enumerate(zip(dice, dice_used))
        if not used
    ]


def all_dice_used(dice_used: Sequence[bool]) -> bool:
    """True iff every die of the turn has been spent."""
    return all(dice_used)


def dice_to_string(dice: Sequence[int]) -> str:
    """Convert a dice sequence to readable string.

    Examples:
        >>> dice_to_string([3, 5])
        '3-5'
        >>> dice_to_string([4, 4, 4, 4])
        'Double 4s'
    """
    if len(dice) == 4 and len(set(dice)) == 1:
        return f"Double {dice[0]}s"
    return "-".join(str(d) for d in dice)
