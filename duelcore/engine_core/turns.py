"""
Turn / Phase State Machine.

Phases:
    NONE -> PREPARATION -> {PLAYER_TURN <-> ENEMY_TURN} -> RESOLUTION
         -> {VICTORY | DEFEAT} -> ENDED

PAUSED is reachable from any active phase and returns to it.
Transitions are explicit calls; nothing is inferred.

Turns are numbered from 1 with no gaps and never overlap: the current
turn must be completed before the next one starts.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
import logging

from .errors import InvalidArgumentError, InvalidOperationError
from .state import Side

logger = logging.getLogger(__name__)


class CombatPhase(Enum):
    """Single current value per session."""
    NONE = "none"
    PREPARATION = "preparation"
    PLAYER_TURN = "player_turn"
    ENEMY_TURN = "enemy_turn"
    RESOLUTION = "resolution"
    VICTORY = "victory"
    DEFEAT = "defeat"
    ENDED = "ended"
    PAUSED = "paused"


class TurnType(Enum):
    """Whose turn it is."""
    PLAYER = "player"
    ENEMY = "enemy"

    @property
    def side(self) -> Side:
        return Side.PLAYER if self is TurnType.PLAYER else Side.ENEMY

    @property
    def phase(self) -> CombatPhase:
        return CombatPhase.PLAYER_TURN if self is TurnType.PLAYER else CombatPhase.ENEMY_TURN

    @property
    def other(self) -> TurnType:
        return TurnType.ENEMY if self is TurnType.PLAYER else TurnType.PLAYER

    @classmethod
    def for_side(cls, side: Side) -> TurnType:
        return cls.PLAYER if side is Side.PLAYER else cls.ENEMY


ACTIVE_PHASES = frozenset({
    CombatPhase.PREPARATION,
    CombatPhase.PLAYER_TURN,
    CombatPhase.ENEMY_TURN,
    CombatPhase.RESOLUTION,
})

TERMINAL_PHASES = frozenset({CombatPhase.VICTORY, CombatPhase.DEFEAT, CombatPhase.ENDED})

_OUTCOMES = {CombatPhase.VICTORY, CombatPhase.DEFEAT, CombatPhase.ENDED}

PHASE_TRANSITIONS: dict[CombatPhase, frozenset[CombatPhase]] = {
    CombatPhase.NONE: frozenset({CombatPhase.PREPARATION, CombatPhase.ENDED}),
    CombatPhase.PREPARATION: frozenset({CombatPhase.PLAYER_TURN, CombatPhase.ENEMY_TURN, CombatPhase.ENDED}),
    CombatPhase.PLAYER_TURN: frozenset({CombatPhase.ENEMY_TURN, CombatPhase.RESOLUTION, *_OUTCOMES}),
    CombatPhase.ENEMY_TURN: frozenset({CombatPhase.PLAYER_TURN, CombatPhase.RESOLUTION, *_OUTCOMES}),
    CombatPhase.RESOLUTION: frozenset({CombatPhase.PLAYER_TURN, CombatPhase.ENEMY_TURN, *_OUTCOMES}),
    CombatPhase.VICTORY: frozenset({CombatPhase.ENDED}),
    CombatPhase.DEFEAT: frozenset({CombatPhase.ENDED}),
    CombatPhase.ENDED: frozenset(),
    CombatPhase.PAUSED: frozenset(),
}


@dataclass
class PhaseMachine:
    """Holds the current phase and enforces the transition table."""
    phase: CombatPhase = CombatPhase.NONE
    _paused_from: CombatPhase | None = None

    @property
    def is_paused(self) -> bool:
        return self.phase is CombatPhase.PAUSED

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES

    @property
    def is_active(self) -> bool:
        return self.phase in ACTIVE_PHASES

    @property
    def paused_from(self) -> CombatPhase | None:
        return self._paused_from

    def can_transition(self, new_phase: CombatPhase) -> bool:
        return new_phase in PHASE_TRANSITIONS[self.phase]

    def change_phase(self, new_phase: CombatPhase) -> CombatPhase:
        """Move to new_phase. Returns the old phase. Same-phase calls are no-ops."""
        if new_phase is None:
            raise InvalidArgumentError("new_phase is required")
        if new_phase is CombatPhase.PAUSED:
            return self.pause()
        if self.is_paused:
            raise InvalidOperationError("Combat is paused - resume before changing phase")
        old = self.phase
        if new_phase is old:
            return old
        if not self.can_transition(new_phase):
            raise InvalidOperationError(f"Illegal phase transition: {old.value} -> {new_phase.value}")
        self.phase = new_phase
        return old

    def pause(self) -> CombatPhase:
        if not self.is_active:
            raise InvalidOperationError(f"Cannot pause from {self.phase.value}")
        old = self.phase
        self._paused_from = old
        self.phase = CombatPhase.PAUSED
        return old

    def resume(self) -> CombatPhase:
        """Return to the phase that was active when pause() was called."""
        if not self.is_paused:
            raise InvalidOperationError("Combat is not paused")
        self.phase = self._paused_from
        self._paused_from = None
        return CombatPhase.PAUSED

    def restore(self, phase: CombatPhase, paused_from: CombatPhase | None = None):
        """Set phase directly (snapshot restore only)."""
        if phase is CombatPhase.PAUSED and paused_from not in ACTIVE_PHASES:
            raise InvalidArgumentError("a paused phase needs an active phase to resume into")
        self.phase = phase
        self._paused_from = paused_from if phase is CombatPhase.PAUSED else None


@dataclass
class Turn:
    """One numbered unit of combat. Only is_completed ever changes, and only false -> true."""
    number: int
    turn_type: TurnType
    phase: CombatPhase
    is_completed: bool = False

    def __post_init__(self):
        if self.number < 1:
            raise InvalidArgumentError(f"turn number must be >= 1 (got {self.number})")

    def complete(self):
        if self.is_completed:
            raise InvalidOperationError(f"Turn {self.number} is already completed")
        self.is_completed = True


@dataclass
class TurnContext:
    """
    Scratch flags for one turn.

    A fresh context is created by every start_next_turn; nothing here
    survives into the next turn. The mark_* methods return True only the
    first time, so callers can use them to fire one-shot side effects.
    """
    turn_number: int
    was_enemy_defeated: bool = False
    was_hand_cards_vanished: bool = False
    defeated_character_ids: set[str] = field(default_factory=set)
    vanished_character_ids: set[str] = field(default_factory=set)
    ticked_character_ids: set[str] = field(default_factory=set)

    def mark_enemy_defeated(self, character_id: str) -> bool:
        """Record an enemy death. False if this enemy was already handled this turn."""
        if character_id in self.defeated_character_ids:
            return False
        self.defeated_character_ids.add(character_id)
        self.was_enemy_defeated = True
        return True

    def mark_hand_cards_vanished(self, character_id: str) -> bool:
        if character_id in self.vanished_character_ids:
            return False
        self.vanished_character_ids.add(character_id)
        self.was_hand_cards_vanished = True
        return True

    def mark_ticked(self, character_id: str) -> bool:
        """Record a per-turn effect tick for character_id. False if it already ticked this turn."""
        if character_id in self.ticked_character_ids:
            return False
        self.ticked_character_ids.add(character_id)
        return True


@dataclass
class TurnManager:
    """
    Turn history plus the narrow pre-commit mutators.

    Invariant: current_turn_number == len(turns).
    """
    _turns: list[Turn] = field(default_factory=list)
    context: TurnContext | None = None
    reserved_enemy_slot: object | None = None  # SlotPosition
    player_guard_registered: bool = False

    @property
    def turns(self) -> list[Turn]:
        return list(self._turns)

    @property
    def current_turn(self) -> Turn | None:
        return self._turns[-1] if self._turns else None

    @property
    def current_turn_number(self) -> int:
        return len(self._turns)

    @property
    def is_turn_active(self) -> bool:
        turn = self.current_turn
        return turn is not None and not turn.is_completed

    def start_next_turn(self, turn_type: TurnType, phase: CombatPhase) -> Turn:
        if turn_type is None:
            raise InvalidArgumentError("turn_type is required")
        if self.is_turn_active:
            raise InvalidOperationError(
                f"Turn {self.current_turn_number} is still active - complete it first"
            )
        turn = Turn(number=len(self._turns) + 1, turn_type=turn_type, phase=phase)
        self._turns.append(turn)
        self.context = TurnContext(turn_number=turn.number)
        logger.info("Turn %d started (%s)", turn.number, turn_type.value)
        return turn

    def complete_current_turn(self) -> Turn:
        turn = self.current_turn
        if turn is None:
            raise InvalidOperationError("No turn has been started")
        if turn.is_completed:
            raise InvalidOperationError(f"Turn {turn.number} is not active")
        turn.complete()
        logger.info("Turn %d completed", turn.number)
        return turn

    def reserve_next_enemy_slot(self, position) -> bool:
        """Record the combat slot the enemy will play into. False if one is already reserved."""
        if position is None:
            raise InvalidArgumentError("position is required")
        if self.reserved_enemy_slot is not None:
            return False
        self.reserved_enemy_slot = position
        return True

    def register_player_guard(self) -> bool:
        if self.player_guard_registered:
            return False
        self.player_guard_registered = True
        return True

    def reset_guard_and_reservation(self):
        self.reserved_enemy_slot = None
        self.player_guard_registered = False

    def restore(self, turns: list[Turn], reserved_enemy_slot=None, player_guard_registered: bool = False):
        """Replace history wholesale (snapshot restore only)."""
        for expected, turn in enumerate(turns, start=1):
            if turn.number != expected:
                raise InvalidArgumentError(f"turn numbers must run 1..n without gaps (found {turn.number} at {expected})")
        if any(turn.is_completed is False for turn in turns[:-1]):
            raise InvalidArgumentError("only the last turn may be active")
        self._turns = list(turns)
        self.context = TurnContext(turn_number=len(turns)) if turns else None
        self.reserved_enemy_slot = reserved_enemy_slot
        self.player_guard_registered = player_guard_registered
