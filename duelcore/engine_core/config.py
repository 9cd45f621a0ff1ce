"""
Combat rules configuration.

Values come from code (CombatConfig(...)) or from the environment
(CombatConfig.from_env()). Environment variables:

    DUELCORE_HAND_SIZE          cards held per side (1-5, default 3)
    DUELCORE_RESOURCE_REGEN     resource restored at each own turn start (default 1)
    DUELCORE_RECYCLE_DISCARD    reshuffle discards into an empty deck (default true)
    DUELCORE_FIRST_TURN         "player" or "enemy" (default player)
    DUELCORE_PLAYER_HEALTH      player max health (default 30)
    DUELCORE_PLAYER_RESOURCE    player resource pool size (default 3)
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Mapping
import os

from .errors import InvalidArgumentError
from .slots import MAX_HAND_SIZE
from .turns import TurnType

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class CombatConfig:
    hand_size: int = 3
    resource_regen_per_turn: int = 1
    recycle_discard_pile: bool = True
    first_turn: TurnType = TurnType.PLAYER
    player_max_health: int = 30
    player_resource_max: int = 3
    resource_name: str = "mana"

    def __post_init__(self):
        if not 1 <= self.hand_size <= MAX_HAND_SIZE:
            raise InvalidArgumentError(f"hand_size must be in [1, {MAX_HAND_SIZE}] (got {self.hand_size})")
        if self.resource_regen_per_turn < 0:
            raise InvalidArgumentError("resource_regen_per_turn must be >= 0")
        if self.player_max_health < 1:
            raise InvalidArgumentError("player_max_health must be >= 1")
        if self.player_resource_max < 0:
            raise InvalidArgumentError("player_resource_max must be >= 0")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> CombatConfig:
        """Build a config from DUELCORE_* variables, falling back to defaults."""
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            hand_size=_int(env, "DUELCORE_HAND_SIZE", defaults.hand_size),
            resource_regen_per_turn=_int(env, "DUELCORE_RESOURCE_REGEN", defaults.resource_regen_per_turn),
            recycle_discard_pile=_bool(env, "DUELCORE_RECYCLE_DISCARD", defaults.recycle_discard_pile),
            first_turn=_turn_type(env, "DUELCORE_FIRST_TURN", defaults.first_turn),
            player_max_health=_int(env, "DUELCORE_PLAYER_HEALTH", defaults.player_max_health),
            player_resource_max=_int(env, "DUELCORE_PLAYER_RESOURCE", defaults.player_resource_max),
        )


def _int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise InvalidArgumentError(f"{key} must be an integer (got {raw!r})") from None


def _bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise InvalidArgumentError(f"{key} must be a boolean (got {raw!r})")


def _turn_type(env: Mapping[str, str], key: str, default: TurnType) -> TurnType:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return TurnType(raw.strip().lower())
    except ValueError:
        raise InvalidArgumentError(f"{key} must be 'player' or 'enemy' (got {raw!r})") from None
