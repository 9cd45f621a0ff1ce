"""
Reducer - Applies actions to a combat session.

The reducer is the serialized command path: outer layers that may run
on several threads (the HTTP server's worker pool) submit Actions here,
and the reducer applies them one at a time under a lock.

Design principles:
- Validates before dispatching
- Returns ActionResult with success/failure
- Expected rejections and CombatErrors become failures with an error code
- Anything else is a bug and propagates
"""

from __future__ import annotations
from dataclasses import dataclass, field
import logging
import threading

from .action import Action, ActionResult, ActionType
from .combat import CombatSession
from .errors import CombatError
from .turns import CombatPhase

logger = logging.getLogger(__name__)

# Actions still allowed while the combat is paused
_PAUSE_SAFE = {ActionType.RESUME, ActionType.PAUSE}


@dataclass
class Reducer:
    """
    Applies actions to the session it was created for.

    Keeps the history of successfully applied actions.
    """
    session: CombatSession
    history: list[Action] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def apply(self, action: Action) -> ActionResult:
        """
        Apply an action to the session.

        Returns ActionResult describing what happened.
        """
        with self._lock:
            validation_error = self._validate_action(action)
            if validation_error:
                return ActionResult.failure(validation_error, error_code="INVALID_ACTION")

            handler = self._get_handler(action.action_type)
            if not handler:
                return ActionResult.failure(
                    f"No handler for action type: {action.action_type}",
                    error_code="NO_HANDLER",
                )

            try:
                result = handler(action)
            except CombatError as e:
                logger.warning("%s failed: %s", action.action_type.value, e)
                return ActionResult.failure(str(e), error_code=e.error_code)

            if result.success:
                self.history.append(action)
            return result

    def _validate_action(self, action: Action) -> str | None:
        """
        Check the action is well-formed for the session's phase.

        Returns error message if invalid, None if valid.
        """
        if action is None:
            return "Action is required"

        phase = self.session.phase
        if phase is CombatPhase.PAUSED and action.action_type not in _PAUSE_SAFE:
            return "Combat is paused - only resume is allowed"
        if self.session.is_over:
            return f"Combat is over ({phase.value}) - no actions allowed"

        payload = action.payload
        needs_card = {ActionType.PLAY_CARD, ActionType.DISCARD}
        if action.action_type in needs_card and not payload.instance_id:
            return f"{action.action_type.value} needs an instance_id"
        if action.action_type == ActionType.EXECUTE_SLOT and payload.position is None:
            return "execute_slot needs a position"
        if action.action_type == ActionType.MOVE_SLOT:
            if payload.position is None or payload.target_position is None:
                return "move_slot needs a position and a target_position"

        return None

    def _get_handler(self, action_type: ActionType):
        """Get the handler function for an action type."""
        handlers = {
            ActionType.DRAW: self._handle_draw,
            ActionType.PLAY_CARD: self._handle_play_card,
            ActionType.DISCARD: self._handle_discard,
            ActionType.SHUFFLE_DECK: self._handle_shuffle_deck,
            ActionType.MOVE_SLOT: self._handle_move_slot,
            ActionType.EXECUTE_SLOT: self._handle_execute_slot,
            ActionType.END_TURN: self._handle_end_turn,
            ActionType.REGISTER_GUARD: self._handle_register_guard,
            ActionType.RESERVE_ENEMY_SLOT: self._handle_reserve_enemy_slot,
            ActionType.PAUSE: self._handle_pause,
            ActionType.RESUME: self._handle_resume,
        }
        return handlers.get(action_type)

    def _handle_draw(self, action: Action) -> ActionResult:
        side = action.payload.side or self.session.acting_side
        card = self.session.draw(side)
        if card is None:
            # Empty deck or full hand: nothing drawn, nothing wrong
            return ActionResult.ok(["Nothing to draw"], card=None)
        return ActionResult.ok([f"{side.value} drew {card.name}"], card=card)

    def _handle_play_card(self, action: Action) -> ActionResult:
        result = self.session.play_card(action.payload.instance_id, action.payload.position)
        if not result.success:
            return ActionResult.failure(
                f"{result.card.name} cannot be played: {result.rejection.value}",
                error_code="REJECTED",
                rejection=result.rejection,
            )
        return ActionResult.ok(
            [f"{result.card.owner.value} played {result.card.name} into {result.position.value}"],
            card=result.card,
            position=result.position,
        )

    def _handle_discard(self, action: Action) -> ActionResult:
        discarded = self.session.discard(action.payload.instance_id)
        changes = [f"Discarded {action.payload.instance_id}"] if discarded else []
        return ActionResult.ok(changes, discarded=discarded)

    def _handle_shuffle_deck(self, action: Action) -> ActionResult:
        side = action.payload.side or self.session.acting_side
        self.session.shuffle_deck(side)
        return ActionResult.ok([f"Shuffled the {side.value} deck"])

    def _handle_move_slot(self, action: Action) -> ActionResult:
        moved = self.session.move_slot(action.payload.position, action.payload.target_position)
        return ActionResult.ok(
            [f"Moved {moved.card_id} from {action.payload.position.value} to {moved.position.value}"],
            slot=moved,
        )

    def _handle_execute_slot(self, action: Action) -> ActionResult:
        outcome = self.session.execute_slot(action.payload.position)
        if outcome.skipped:
            return ActionResult.ok([f"Skipped {action.payload.position.value}: {outcome.skipped_reason}"], outcome=outcome)
        report = outcome.report
        changes = [f"{report.card_id}: {a.kind.value} -> {a.recipient_id} ({a.amount})" for a in report.applied]
        if report.aborted:
            changes.append(f"{report.card_id} aborted: {report.rejection.value}")
        return ActionResult.ok(changes, outcome=outcome)

    def _handle_end_turn(self, action: Action) -> ActionResult:
        finished = self.session.current_turn.number if self.session.current_turn else 0
        next_turn = self.session.end_turn()
        if next_turn is None:
            return ActionResult.ok([f"Turn {finished} ended the combat ({self.session.phase.value})"], turn=None)
        return ActionResult.ok(
            [f"Turn {finished} ended, turn {next_turn.number} ({next_turn.turn_type.value}) started"],
            turn=next_turn,
        )

    def _handle_register_guard(self, action: Action) -> ActionResult:
        registered = self.session.register_player_guard()
        return ActionResult.ok(["Player guard registered"] if registered else [], registered=registered)

    def _handle_reserve_enemy_slot(self, action: Action) -> ActionResult:
        position = self.session.reserve_next_enemy_slot(action.payload.position)
        if position is None:
            return ActionResult.failure("No combat slot could be reserved", error_code="REJECTED")
        return ActionResult.ok([f"Enemy reserved {position.value}"], position=position)

    def _handle_pause(self, action: Action) -> ActionResult:
        self.session.pause()
        return ActionResult.ok(["Combat paused"])

    def _handle_resume(self, action: Action) -> ActionResult:
        self.session.resume()
        return ActionResult.ok(["Combat resumed"])


def apply_action(session: CombatSession, action: Action) -> ActionResult:
    """
    Convenience function to apply a single action.

    Creates a Reducer and applies the action.
    """
    reducer = Reducer(session=session)
    return reducer.apply(action)
