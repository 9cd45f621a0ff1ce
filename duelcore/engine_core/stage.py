"""
Stage Progression - Walks an ordered list of enemies.

The enemy at the current index is the one being fought (or about to be).
advance_to_next_enemy() records that enemy's defeat and moves on; the
advance that passes the last enemy completes the stage.

Progress only moves forward:
    NOT_STARTED -> IN_PROGRESS -> COMPLETED
    any non-terminal state -> FAILED
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
import logging

from .errors import InvalidArgumentError, InvalidOperationError

logger = logging.getLogger(__name__)


class ProgressState(Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ProgressState.COMPLETED, ProgressState.FAILED)


@dataclass(frozen=True)
class StageDefinition:
    """Static stage content: an ordered, non-empty enemy id list."""
    stage_id: str
    number: int
    name: str
    enemy_ids: tuple[str, ...]
    description: str = ""
    auto_progress_to_next: bool = False

    def __post_init__(self):
        if not self.stage_id:
            raise InvalidArgumentError("stage_id is required")
        if self.number < 1:
            raise InvalidArgumentError(f"stage number must be >= 1 (got {self.number})")
        object.__setattr__(self, "enemy_ids", tuple(self.enemy_ids))
        if not self.enemy_ids:
            raise InvalidArgumentError(f"stage {self.stage_id} has no enemies")
        if any(not enemy_id for enemy_id in self.enemy_ids):
            raise InvalidArgumentError(f"stage {self.stage_id} has an empty enemy id")

    @property
    def enemy_count(self) -> int:
        return len(self.enemy_ids)


class Stage:
    """Runtime progress through one StageDefinition."""

    def __init__(self, definition: StageDefinition):
        if definition is None:
            raise InvalidArgumentError("definition is required")
        self.definition = definition
        self._index = 0
        self._state = ProgressState.NOT_STARTED

    @property
    def stage_id(self) -> str:
        return self.definition.stage_id

    @property
    def progress_state(self) -> ProgressState:
        return self._state

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def defeated_count(self) -> int:
        return self._index

    @property
    def is_completed(self) -> bool:
        return self._state is ProgressState.COMPLETED

    @property
    def is_failed(self) -> bool:
        return self._state is ProgressState.FAILED

    def begin(self) -> bool:
        """Mark the stage started. Returns False if it already was."""
        if self._state is not ProgressState.NOT_STARTED:
            return False
        self._state = ProgressState.IN_PROGRESS
        logger.info("Stage %s started", self.stage_id)
        return True

    def has_next_enemy(self) -> bool:
        """True while an enemy remains at the current index. A failed or completed stage has none."""
        return self._index < len(self.definition.enemy_ids) and not self._state.is_terminal

    def peek_next_enemy_id(self) -> str | None:
        """The enemy at the current index, without moving. None when exhausted."""
        if not self.has_next_enemy():
            return None
        return self.definition.enemy_ids[self._index]

    def advance_to_next_enemy(self) -> str | None:
        """
        Record the current enemy's defeat and move the index on.

        Returns the new current enemy id, or None if the stage just
        completed.
        """
        if not self.has_next_enemy():
            raise InvalidOperationError(f"Stage {self.stage_id} has no next enemy")
        if self._state is ProgressState.NOT_STARTED:
            self._state = ProgressState.IN_PROGRESS
        self._index += 1
        if self._index == len(self.definition.enemy_ids):
            self._state = ProgressState.COMPLETED
            logger.info("Stage %s completed", self.stage_id)
            return None
        return self.definition.enemy_ids[self._index]

    def mark_failed(self):
        """Fail a running stage. Completed and already-failed stages both raise InvalidOperationError."""
        if self._state.is_terminal:
            raise InvalidOperationError(f"Stage {self.stage_id} is already {self._state.value}")
        self._state = ProgressState.FAILED
        logger.info("Stage %s failed at enemy %d", self.stage_id, self._index)

    def restore(self, index: int, state: ProgressState):
        """Set progress directly (snapshot restore only)."""
        total = len(self.definition.enemy_ids)
        if not 0 <= index <= total:
            raise InvalidArgumentError(f"stage index {index} out of range [0, {total}]")
        if (state is ProgressState.COMPLETED) != (index == total):
            raise InvalidArgumentError("a completed stage must have passed every enemy")
        if state is ProgressState.NOT_STARTED and index != 0:
            raise InvalidArgumentError("a stage that has not started must be at index 0")
        self._index = index
        self._state = state

    def __repr__(self):
        return f"Stage({self.stage_id!r}, index={self._index}, state={self._state.value})"
