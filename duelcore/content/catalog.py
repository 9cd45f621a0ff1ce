"""
Content Catalog - Card, enemy and stage definitions in one place.

The catalog is the default CardContentProvider for a CombatSession and
backs CatalogEnemySpawner, which hands the session the enemy a stage
is currently on.
"""

from __future__ import annotations
from dataclasses import dataclass, field
import logging

from ..engine_core.effect_dsl import CardDefinition
from ..engine_core.errors import InvalidArgumentError
from ..engine_core.providers import EnemyDefinition
from ..engine_core.stage import Stage, StageDefinition

logger = logging.getLogger(__name__)


@dataclass
class ContentCatalog:
    """
    Registry of static content, keyed by id.

    Registration rejects duplicate ids; cross-references (a stage naming
    an unknown enemy) are left to validate_catalog.
    """
    name: str = "catalog"
    cards: dict[str, CardDefinition] = field(default_factory=dict)
    enemies: dict[str, EnemyDefinition] = field(default_factory=dict)
    stages: dict[str, StageDefinition] = field(default_factory=dict)

    # =========================================================================
    # Registration
    # =========================================================================

    def add_card(self, card: CardDefinition) -> CardDefinition:
        if card.card_id in self.cards:
            raise InvalidArgumentError(f"Duplicate card id: {card.card_id}")
        self.cards[card.card_id] = card
        return card

    def add_enemy(self, enemy: EnemyDefinition) -> EnemyDefinition:
        if enemy.enemy_id in self.enemies:
            raise InvalidArgumentError(f"Duplicate enemy id: {enemy.enemy_id}")
        self.enemies[enemy.enemy_id] = enemy
        return enemy

    def add_stage(self, stage: StageDefinition) -> StageDefinition:
        if stage.stage_id in self.stages:
            raise InvalidArgumentError(f"Duplicate stage id: {stage.stage_id}")
        self.stages[stage.stage_id] = stage
        return stage

    def extend(self, cards=(), enemies=(), stages=()) -> ContentCatalog:
        for card in cards:
            self.add_card(card)
        for enemy in enemies:
            self.add_enemy(enemy)
        for stage in stages:
            self.add_stage(stage)
        return self

    # =========================================================================
    # Lookup
    # =========================================================================

    def get_card(self, card_id: str) -> CardDefinition | None:
        return self.cards.get(card_id)

    def get_enemy(self, enemy_id: str) -> EnemyDefinition | None:
        return self.enemies.get(enemy_id)

    def get_stage(self, stage_id: str) -> StageDefinition | None:
        return self.stages.get(stage_id)

    def require_stage(self, stage_id: str) -> StageDefinition:
        stage = self.get_stage(stage_id)
        if stage is None:
            raise InvalidArgumentError(f"Unknown stage: {stage_id}")
        return stage

    def list_cards(self) -> list[CardDefinition]:
        return list(self.cards.values())

    def list_enemies(self) -> list[EnemyDefinition]:
        return list(self.enemies.values())

    def list_stages(self) -> list[StageDefinition]:
        """Stages in play order."""
        return sorted(self.stages.values(), key=lambda s: (s.number, s.stage_id))

    def next_stage(self, stage_id: str) -> StageDefinition | None:
        """The stage after stage_id in play order, if any."""
        ordered = self.list_stages()
        for index, stage in enumerate(ordered):
            if stage.stage_id == stage_id and index + 1 < len(ordered):
                return ordered[index + 1]
        return None

    def __len__(self) -> int:
        return len(self.cards)


@dataclass
class CatalogEnemySpawner:
    """
    EnemySpawner over a ContentCatalog.

    Both methods look at the stage's current enemy; the stage index is
    only ever moved by the stage itself.
    """
    catalog: ContentCatalog

    def peek_next_enemy_data(self, stage: Stage) -> EnemyDefinition | None:
        enemy_id = stage.peek_next_enemy_id()
        if enemy_id is None:
            return None
        return self._lookup(enemy_id)

    def spawn_next_enemy(self, stage: Stage) -> EnemyDefinition | None:
        definition = self.peek_next_enemy_data(stage)
        if definition is not None:
            logger.debug("Spawning %s for stage %s", definition.enemy_id, stage.stage_id)
        return definition

    def _lookup(self, enemy_id: str) -> EnemyDefinition:
        definition = self.catalog.get_enemy(enemy_id)
        if definition is None:
            raise InvalidArgumentError(f"Stage references unknown enemy: {enemy_id}")
        return definition
