"""
Collaborator interfaces.

The core never builds card or enemy content itself. It asks a
CardContentProvider for card definitions and an EnemySpawner for the
enemy to put in front of the player next.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Protocol, TYPE_CHECKING

from .errors import InvalidArgumentError

if TYPE_CHECKING:
    from .effect_dsl import CardDefinition
    from .stage import Stage


@dataclass(frozen=True)
class EnemyDefinition:
    """Everything needed to spawn one enemy."""
    enemy_id: str
    name: str
    max_health: int
    card_ids: tuple[str, ...] = ()
    description: str = ""

    def __post_init__(self):
        if not self.enemy_id:
            raise InvalidArgumentError("enemy_id is required")
        if self.max_health < 1:
            raise InvalidArgumentError(f"max_health must be >= 1 (got {self.max_health})")
        object.__setattr__(self, "card_ids", tuple(self.card_ids))


class CardContentProvider(Protocol):
    def get_card(self, card_id: str) -> CardDefinition | None:
        """Definition for card_id, or None if unknown."""
        ...


class EnemySpawner(Protocol):
    def peek_next_enemy_data(self, stage: Stage) -> EnemyDefinition | None:
        """Definition of the stage's current enemy, without side effects."""
        ...

    def spawn_next_enemy(self, stage: Stage) -> EnemyDefinition | None:
        """Definition to spawn for the stage's current enemy (None if the stage is exhausted)."""
        ...
