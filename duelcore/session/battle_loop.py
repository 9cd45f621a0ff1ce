"""
Battle Loop - Drives a combat between a human player and a scripted enemy.

The loop:
1. Begin the stage and put its first enemy on the table
2. Start the combat
3. Player plays cards and ends the turn (through the reducer)
4. Enemy turn runs to completion using the card selector
5. Repeat until victory or defeat

Every mutation goes through the session's Reducer, so a loop shared by
several request threads still applies one command at a time.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING
import logging

from ..engine_core.action import Action, ActionResult, ActionType
from ..engine_core.reducer import Reducer
from ..engine_core.slots import COMBAT_ORDER, SlotPosition
from ..engine_core.stage import ProgressState
from ..engine_core.state import Side
from ..engine_core.turns import CombatPhase, TurnType
from .selectors import EnemyCardSelector, FirstReadyCardSelector
from .use_cases import StartCombatUseCase, StartStageUseCase

if TYPE_CHECKING:
    from ..engine_core.combat import CombatSession

logger = logging.getLogger(__name__)


class LoopState(Enum):
    """State of the battle loop."""
    NOT_STARTED = "not_started"
    PLAYER_TURN = "player_turn"
    ENEMY_TURN = "enemy_turn"
    PAUSED = "paused"
    GAME_OVER = "game_over"


@dataclass
class TurnResult:
    """
    Result of one player step.

    Contains what the player did, what the enemy did in response and
    whether the combat is over.
    """
    success: bool
    loop_state: LoopState
    turn_number: int = 0

    player_actions: list[str] = field(default_factory=list)
    enemy_actions: list[str] = field(default_factory=list)

    errors: list[str] = field(default_factory=list)
    error_code: str | None = None

    # Game over info
    victory: bool | None = None


class BattleLoop:
    """
    The main battle driver.

    Usage:
        loop = BattleLoop(session)
        loop.start()

        result = loop.play_card(card.instance_id)
        result = loop.end_turn()  # also runs the enemy's turn

        if result.loop_state is LoopState.GAME_OVER:
            show_outcome(result.victory)
    """

    # Upper bound on enemy turns run back to back before returning control
    MAX_ENEMY_TURNS = 10

    def __init__(
        self,
        session: CombatSession,
        selector: EnemyCardSelector | None = None,
        reducer: Reducer | None = None,
        reserve_enemy_slot: bool = True,
    ):
        self.session = session
        self.selector = selector or FirstReadyCardSelector()
        self.reducer = reducer or Reducer(session=session)
        self.reserve_enemy_slot = reserve_enemy_slot

    @property
    def state(self) -> LoopState:
        phase = self.session.phase
        if self.session.is_over:
            return LoopState.GAME_OVER
        if phase is CombatPhase.PAUSED:
            return LoopState.PAUSED
        if phase is CombatPhase.NONE:
            return LoopState.NOT_STARTED
        if self.session.acting_side is Side.ENEMY:
            return LoopState.ENEMY_TURN
        return LoopState.PLAYER_TURN

    def start(self, first_turn: TurnType | None = None) -> TurnResult:
        """Begin the stage (if any) and the combat; runs the enemy first if it opens."""
        stage = self.session.stage
        if stage is not None and stage.progress_state is ProgressState.NOT_STARTED:
            StartStageUseCase(self.session).execute()
        turn = StartCombatUseCase(self.session).execute(first_turn)

        result = TurnResult(success=True, loop_state=self.state, turn_number=turn.number)
        result.player_actions.append(f"Combat started against {self.session.enemy.name}")
        self._run_enemy_turns(result)
        return self._finish(result)

    def play_card(self, instance_id: str, position: SlotPosition | None = None) -> TurnResult:
        return self.apply(Action.play_card(instance_id, position))

    def end_turn(self) -> TurnResult:
        return self.apply(Action.end_turn())

    def apply(self, action: Action) -> TurnResult:
        """
        Apply a player action.

        Ending the turn hands control to the enemy, whose whole turn runs
        before this returns.
        """
        if self.state is LoopState.ENEMY_TURN:
            return TurnResult(
                success=False,
                loop_state=self.state,
                turn_number=self.session.current_turn_number,
                errors=["It is the enemy's turn"],
                error_code="NOT_YOUR_TURN",
            )

        outcome = self.reducer.apply(action)
        result = TurnResult(
            success=outcome.success,
            loop_state=self.state,
            turn_number=self.session.current_turn_number,
            player_actions=list(outcome.changes),
        )
        if not outcome.success:
            result.errors.append(outcome.error)
            result.error_code = outcome.error_code
            return self._finish(result)

        if action.action_type == ActionType.END_TURN:
            self._run_enemy_turns(result)
        return self._finish(result)

    def _run_enemy_turns(self, result: TurnResult):
        turns_run = 0
        while self.state is LoopState.ENEMY_TURN and turns_run < self.MAX_ENEMY_TURNS:
            self._play_enemy_cards(result)
            if self.state is not LoopState.ENEMY_TURN:
                break
            self._record(result, self.reducer.apply(Action.end_turn()), enemy=True)
            turns_run += 1

        if self.state is LoopState.PLAYER_TURN and self.reserve_enemy_slot:
            self._reserve_for_enemy(result)

    def _play_enemy_cards(self, result: TurnResult):
        # One card per free combat slot at most
        for _ in range(len(COMBAT_ORDER)):
            choice = self.selector.select(self.session)
            if choice is None:
                return
            outcome = self.reducer.apply(Action.play_card(choice.instance_id, choice.position))
            self._record(result, outcome, enemy=True)
            if not outcome.success:
                logger.warning("Enemy play of %s failed: %s", choice.instance_id, outcome.error)
                return

    def _reserve_for_enemy(self, result: TurnResult):
        if self.session.turn_manager.reserved_enemy_slot is not None:
            return
        outcome = self.reducer.apply(Action.reserve_enemy_slot())
        if outcome.success:
            result.enemy_actions.extend(outcome.changes)

    def _record(self, result: TurnResult, outcome: ActionResult, enemy: bool):
        target = result.enemy_actions if enemy else result.player_actions
        if outcome.success:
            target.extend(outcome.changes)
        else:
            result.errors.append(outcome.error)

    def _finish(self, result: TurnResult) -> TurnResult:
        result.loop_state = self.state
        result.turn_number = self.session.current_turn_number
        if result.loop_state is LoopState.GAME_OVER:
            result.victory = self.session.phase is CombatPhase.VICTORY
        return result
