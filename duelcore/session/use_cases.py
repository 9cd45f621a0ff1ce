"""
Use Cases - Application-level entry points into a combat session.

Each use case wraps one player-visible operation. They hold no state of
their own beyond the session they act on, so callers may build them on
demand or keep them around.
"""

from __future__ import annotations
from dataclasses import dataclass
import logging

from ..engine_core.cards import CardInstance
from ..engine_core.combat import CombatSession, ExecutionOutcome, PlayResult
from ..engine_core.errors import InvalidOperationError
from ..engine_core.slots import CombatSlot, SlotPosition
from ..engine_core.state import Side
from ..engine_core.turns import Turn, TurnType

logger = logging.getLogger(__name__)


@dataclass
class UseCase:
    session: CombatSession


# =============================================================================
# Stage
# =============================================================================

class StartStageUseCase(UseCase):
    """
    Begin the session's stage and put its first enemy on the table.

    Returns the id of the enemy now being fought.
    """

    def execute(self) -> str:
        stage = self.session.stage
        if stage is None:
            raise InvalidOperationError("Session has no stage")
        if stage.progress_state.is_terminal:
            raise InvalidOperationError(f"Stage {stage.stage_id} is already {stage.progress_state.value}")

        stage.begin()
        enemy_id = stage.peek_next_enemy_id()
        enemy = self.session.enemy
        if self.session.spawner is not None and (enemy is None or enemy.is_dead):
            definition = self.session.spawner.spawn_next_enemy(stage)
            if definition is not None:
                self.session.spawn_enemy(definition)
        logger.info("Stage %s begins with %s", stage.stage_id, enemy_id)
        return enemy_id


class AdvanceEnemyUseCase(UseCase):
    """
    Move past a defeated enemy.

    Returns the next enemy id, or None once the stage is complete.
    """

    def execute(self) -> str | None:
        return self.session.advance_stage()


# =============================================================================
# Turns
# =============================================================================

class StartCombatUseCase(UseCase):
    def execute(self, first_turn: TurnType | None = None) -> Turn:
        return self.session.start_combat(first_turn)


class EndTurnUseCase(UseCase):
    """Resolve the acting side's slots and hand over. None when the combat ended."""

    def execute(self) -> Turn | None:
        return self.session.end_turn()


# =============================================================================
# Cards
# =============================================================================

class ExecuteCardUseCase(UseCase):
    def execute(self, position: SlotPosition = SlotPosition.BATTLE_SLOT) -> ExecutionOutcome:
        return self.session.execute_slot(position)


class MoveSlotUseCase(UseCase):
    def execute(self, from_position: SlotPosition, to_position: SlotPosition) -> CombatSlot:
        return self.session.move_slot(from_position, to_position)


class DrawCardUseCase(UseCase):
    def execute(self, side: Side = Side.PLAYER) -> CardInstance | None:
        return self.session.draw(side)


class PlayCardUseCase(UseCase):
    def execute(self, instance_id: str, position: SlotPosition | None = None) -> PlayResult:
        result = self.session.play_card(instance_id, position)
        if not result.success:
            logger.warning("Play of %s rejected: %s", instance_id, result.rejection.value)
        return result


class DiscardCardUseCase(UseCase):
    def execute(self, instance_id: str) -> bool:
        return self.session.discard(instance_id)


class ShuffleDeckUseCase(UseCase):
    def execute(self, side: Side = Side.PLAYER):
        self.session.shuffle_deck(side)
