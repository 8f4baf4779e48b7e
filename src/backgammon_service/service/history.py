"""Move history logging.

Every committed move is appended as one JSON object to a JSONL file, and
every Nth record is echoed to the console.
"""

import json
import threading
import time
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class MoveRecord:
    """One committed move as stored in the history.

    Attributes:
        game_id: Game the move belongs to
        move_number: 1-based move counter within the game
        player: Name of the player who moved
        color: "white" or "black"
        from_point: 0=bar, 1-24=points
        to_point: 1-24=points, 25=off
        die_used: Die value, or dice sum for a combined move
        dice_indices: Dice consumed, in play order
        hit_opponent: Whether any step of the move hit a blot
    """
    game_id: int
    move_number: int
    player: str
    color: str
    from_point: int
    to_point: int
    die_used: int
    dice_indices: Tuple[int, ...]
    hit_opponent: bool

    def to_dict(self) -> Dict[str, Any]:
        record = asdict(self)
        record["dice_indices"] = list(self.dice_indices)
        return record


@dataclass
class MoveHistoryLogger:
    """Append-only JSONL log of committed moves.

    Args:
        log_dir: Directory for the history file
        run_name: File prefix; records go to ``<run_name>_moves.jsonl``
        console_interval: Echo every Nth record to the console (0 = never)
    """

    log_dir: Path
    run_name: str = "backgammon"
    console_interval: int = 50

    # Internal state
    _jsonl_file: Optional[Any] = field(default=None, init=False, repr=False)
    _record_count: int = field(default=0, init=False, repr=False)
    _start_time: float = field(default_factory=time.time, init=False, repr=False)
    # Shared by every game in a store; guards the file and the counter
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def __post_init__(self):
        self.log_dir = Path(self.log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self._jsonl_file = open(self.path, 'a')

    @property
    def path(self) -> Path:
        return self.log_dir / f"{self.run_name}_moves.jsonl"

    def log_move(self, record: MoveRecord) -> None:
        """Append a move record."""
        with self._lock:
            self._write({
                "timestamp": time.time() - self._start_time,
                **record.to_dict(),
            })
            self._record_count += 1
            if self.console_interval and self._record_count % self.console_interval == 0:
                self._log_console(record)

    def log_event(self, game_id: int, event: str, **details: Any) -> None:
        """Append a non-move game event (start, forfeit, win, turn pass)."""
        with self._lock:
            self._write({
                "type": "event",
                "timestamp": time.time() - self._start_time,
                "game_id": game_id,
                "event": event,
                **details,
            })

    def _write(self, log_entry: Dict[str, Any]) -> None:
        # Caller holds the lock
        if self._jsonl_file is None:
            raise ValueError("Move history logger is closed")
        self._jsonl_file.write(json.dumps(log_entry) + '\n')
        self._jsonl_file.flush()

    def _log_console(self, record: MoveRecord) -> None:
        elapsed = time.time() - self._start_time
        hit = " (hit)" if record.hit_opponent else ""
        print(
            f"[Game {record.game_id:5d} move {record.move_number:4d}] [{elapsed:8.1f}s] "
            f"{record.player} ({record.color}): {record.from_point}->{record.to_point} "
            f"die {record.die_used}{hit}"
        )

    def close(self) -> None:
        with self._lock:
            if self._jsonl_file is not None:
                self._jsonl_file.close()
                self._jsonl_file = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def read_history(path: Path, game_id: Optional[int] = None) -> List[Dict[str, Any]]:
    """Load move records (events excluded) from a history file.

    Args:
        path: JSONL file written by MoveHistoryLogger
        game_id: Only return moves of this game

    Returns:
        Records in file order
    """
    records = []
    with open(path) as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            entry = json.loads(line)
            if entry.get("type") == "event":
                continue
            if game_id is not None and entry["game_id"] != game_id:
                continue
            records.append(entry)
    return records
