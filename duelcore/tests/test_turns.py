"""
Tests for the phase machine and turn bookkeeping.
"""

import pytest

from ..engine_core.errors import InvalidArgumentError, InvalidOperationError
from ..engine_core.turns import CombatPhase, PhaseMachine, Turn, TurnContext, TurnManager, TurnType


class TestPhaseMachine:
    """Tests for PhaseMachine."""

    def test_starts_at_none(self):
        assert PhaseMachine().phase is CombatPhase.NONE

    def test_legal_path(self):
        """The usual path through a combat is accepted."""
        machine = PhaseMachine()
        for phase in (
            CombatPhase.PREPARATION,
            CombatPhase.PLAYER_TURN,
            CombatPhase.RESOLUTION,
            CombatPhase.ENEMY_TURN,
            CombatPhase.PLAYER_TURN,
            CombatPhase.VICTORY,
            CombatPhase.ENDED,
        ):
            machine.change_phase(phase)
        assert machine.phase is CombatPhase.ENDED
        assert machine.is_terminal

    def test_illegal_transition_raises(self):
        machine = PhaseMachine()
        with pytest.raises(InvalidOperationError):
            machine.change_phase(CombatPhase.PLAYER_TURN)
        assert machine.phase is CombatPhase.NONE

    def test_terminal_phases_are_final(self):
        """Nothing leaves ENDED."""
        machine = PhaseMachine()
        machine.change_phase(CombatPhase.ENDED)
        with pytest.raises(InvalidOperationError):
            machine.change_phase(CombatPhase.PREPARATION)

    def test_same_phase_is_noop(self):
        machine = PhaseMachine()
        machine.change_phase(CombatPhase.PREPARATION)
        assert machine.change_phase(CombatPhase.PREPARATION) is CombatPhase.PREPARATION

    def test_none_phase_rejected(self):
        with pytest.raises(InvalidArgumentError):
            PhaseMachine().change_phase(None)

    def test_pause_and_resume(self):
        """Resume returns to the phase that was paused."""
        machine = PhaseMachine()
        machine.change_phase(CombatPhase.PREPARATION)
        machine.change_phase(CombatPhase.ENEMY_TURN)

        machine.change_phase(CombatPhase.PAUSED)
        assert machine.is_paused
        assert machine.paused_from is CombatPhase.ENEMY_TURN
        with pytest.raises(InvalidOperationError):
            machine.change_phase(CombatPhase.PLAYER_TURN)

        machine.resume()
        assert machine.phase is CombatPhase.ENEMY_TURN
        assert machine.paused_from is None

    def test_pause_needs_active_phase(self):
        with pytest.raises(InvalidOperationError):
            PhaseMachine().pause()

    def test_resume_when_not_paused(self):
        with pytest.raises(InvalidOperationError):
            PhaseMachine().resume()

    def test_restore_paused_needs_resume_target(self):
        with pytest.raises(InvalidArgumentError):
            PhaseMachine().restore(CombatPhase.PAUSED, None)


class TestTurnManager:
    """Tests for TurnManager."""

    def test_numbers_run_from_one(self):
        manager = TurnManager()
        first = manager.start_next_turn(TurnType.PLAYER, CombatPhase.PLAYER_TURN)
        manager.complete_current_turn()
        second = manager.start_next_turn(TurnType.ENEMY, CombatPhase.ENEMY_TURN)

        assert (first.number, second.number) == (1, 2)
        assert manager.current_turn_number == 2
        assert manager.current_turn is second

    def test_turns_never_overlap(self):
        """A turn cannot start while the current one is active."""
        manager = TurnManager()
        manager.start_next_turn(TurnType.PLAYER, CombatPhase.PLAYER_TURN)
        with pytest.raises(InvalidOperationError):
            manager.start_next_turn(TurnType.ENEMY, CombatPhase.ENEMY_TURN)

    def test_complete_twice_raises(self):
        manager = TurnManager()
        manager.start_next_turn(TurnType.PLAYER, CombatPhase.PLAYER_TURN)
        manager.complete_current_turn()
        with pytest.raises(InvalidOperationError):
            manager.complete_current_turn()

    def test_complete_without_turn(self):
        with pytest.raises(InvalidOperationError):
            TurnManager().complete_current_turn()

    def test_fresh_context_per_turn(self):
        manager = TurnManager()
        manager.start_next_turn(TurnType.PLAYER, CombatPhase.PLAYER_TURN)
        manager.context.mark_enemy_defeated("e1")
        manager.complete_current_turn()
        manager.start_next_turn(TurnType.ENEMY, CombatPhase.ENEMY_TURN)

        assert manager.context.turn_number == 2
        assert not manager.context.was_enemy_defeated

    def test_reserve_once(self):
        manager = TurnManager()
        assert manager.reserve_next_enemy_slot("battle")
        assert not manager.reserve_next_enemy_slot("wait")
        assert manager.reserved_enemy_slot == "battle"

        manager.reset_guard_and_reservation()
        assert manager.reserved_enemy_slot is None

    def test_register_guard_once(self):
        manager = TurnManager()
        assert manager.register_player_guard()
        assert not manager.register_player_guard()

    def test_restore_rejects_gaps(self):
        turns = [Turn(1, TurnType.PLAYER, CombatPhase.PLAYER_TURN, True),
                 Turn(3, TurnType.ENEMY, CombatPhase.ENEMY_TURN)]
        with pytest.raises(InvalidArgumentError):
            TurnManager().restore(turns)

    def test_restore_rejects_open_earlier_turn(self):
        turns = [Turn(1, TurnType.PLAYER, CombatPhase.PLAYER_TURN),
                 Turn(2, TurnType.ENEMY, CombatPhase.ENEMY_TURN)]
        with pytest.raises(InvalidArgumentError):
            TurnManager().restore(turns)

    def test_turn_number_must_be_positive(self):
        with pytest.raises(InvalidArgumentError):
            Turn(0, TurnType.PLAYER, CombatPhase.PLAYER_TURN)


class TestTurnContext:
    """Tests for the per-turn one-shot markers."""

    def test_markers_fire_once_per_character(self):
        context = TurnContext(turn_number=1)
        assert context.mark_enemy_defeated("e1")
        assert not context.mark_enemy_defeated("e1")
        assert context.mark_enemy_defeated("e2")
        assert context.was_enemy_defeated

    def test_hand_vanish_marker(self):
        context = TurnContext(turn_number=1)
        assert context.mark_hand_cards_vanished("e1")
        assert not context.mark_hand_cards_vanished("e1")

    def test_tick_marker(self):
        context = TurnContext(turn_number=1)
        assert context.mark_ticked("hero")
        assert not context.mark_ticked("hero")
