"""Server configuration.

Defaults live on the dataclass; ``from_env`` overlays ``BACKGAMMON_*``
environment variables, and the CLI overlays its flags on top of that.
"""

import os
from dataclasses import dataclass, asdict, replace
from typing import Optional

from backgammon_service.core.types import RulesOptions


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ServerConfig:
    """Service configuration."""

    # Network
    host: str = "localhost"
    port: int = 8002
    debug: bool = False

    # Dice RNG seed (None = fresh entropy)
    seed: Optional[int] = None

    # Move history JSONL directory (None = no history file)
    history_dir: Optional[str] = None
    history_console_interval: int = 50

    # Rules engine switches
    try_all_orders: bool = True
    chain_bar_entry: bool = False

    @property
    def rules(self) -> RulesOptions:
        return RulesOptions(
            try_all_orders=self.try_all_orders,
            chain_bar_entry=self.chain_bar_entry,
        )

    @classmethod
    def from_env(cls, environ=None) -> "ServerConfig":
        """Build a config from defaults plus BACKGAMMON_* variables."""
        env = os.environ if environ is None else environ
        config = cls()

        if "BACKGAMMON_HOST" in env:
            config.host = env["BACKGAMMON_HOST"]
        if "BACKGAMMON_PORT" in env:
            config.port = int(env["BACKGAMMON_PORT"])
        if "BACKGAMMON_DEBUG" in env:
            config.debug = _env_bool(env["BACKGAMMON_DEBUG"])
        if "BACKGAMMON_SEED" in env:
            config.seed = int(env["BACKGAMMON_SEED"])
        if "BACKGAMMON_HISTORY_DIR" in env:
            config.history_dir = env["BACKGAMMON_HISTORY_DIR"] or None
        if "BACKGAMMON_TRY_ALL_ORDERS" in env:
            config.try_all_orders = _env_bool(env["BACKGAMMON_TRY_ALL_ORDERS"])
        if "BACKGAMMON_CHAIN_BAR_ENTRY" in env:
            config.chain_bar_entry = _env_bool(env["BACKGAMMON_CHAIN_BAR_ENTRY"])

        return config

    def with_overrides(self, **overrides) -> "ServerConfig":
        """Copy with the non-None overrides applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def to_dict(self) -> dict:
        return asdict(self)
