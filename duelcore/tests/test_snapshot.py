"""
Tests for snapshot capture and atomic restore.
"""

import pytest

from ..engine_core.errors import InvalidArgumentError
from ..engine_core.slots import SlotPosition
from ..engine_core.snapshot import (
    CombatSnapshot,
    capture_snapshot,
    restore_snapshot,
    snapshot_from_json,
    snapshot_to_json,
)
from ..engine_core.state import Side
from ..engine_core.status_effects import BleedEffect
from ..engine_core.turns import CombatPhase, TurnType


@pytest.fixture
def mid_combat(make_combat):
    """Turn 3: the enemy is bleeding and a player card waits in a slot."""
    session = make_combat(deck=("rend", "jab", "jab", "rend", "jab"))
    session.start_combat()
    rend = next(c for c in session.hand(Side.PLAYER) if c.card_id == "rend")
    session.play_card(rend.instance_id)
    session.end_turn()
    session.end_turn()
    session.play_card(session.hand(Side.PLAYER)[0].instance_id, SlotPosition.WAIT_SLOT_2)
    return session


class TestCapture:
    """Tests for capture_snapshot."""

    def test_captures_turns_and_phase(self, mid_combat):
        snapshot = capture_snapshot(mid_combat)
        assert snapshot.turn_number == 3
        assert snapshot.phase is CombatPhase.PLAYER_TURN
        assert [t.turn_type for t in snapshot.turns] == [TurnType.PLAYER, TurnType.ENEMY, TurnType.PLAYER]
        assert snapshot.turns[-1].is_completed is False

    def test_captures_characters_and_effects(self, mid_combat):
        snapshot = capture_snapshot(mid_combat)
        enemy = next(c for c in snapshot.characters if c.side is Side.ENEMY)
        assert enemy.current_health == 8
        assert enemy.effects[0].kind == "bleed"
        assert enemy.effects[0].amount == 2
        assert enemy.effects[0].remaining_turns == 1

    def test_captures_every_card(self, mid_combat):
        snapshot = capture_snapshot(mid_combat)
        player_cards = [c for c in snapshot.cards if c.owner is Side.PLAYER]
        assert len(player_cards) == 5
        in_play = [c for c in player_cards if c.zone == "in_play"]
        assert len(in_play) == 1
        assert in_play[0].combat_slot is SlotPosition.WAIT_SLOT_2

    def test_json_round_trip(self, mid_combat):
        snapshot = capture_snapshot(mid_combat)
        assert snapshot_from_json(snapshot_to_json(snapshot)) == snapshot


class TestRestore:
    """Tests for restore_snapshot."""

    def test_restore_rewinds(self, mid_combat):
        """Everything changed after the capture is undone."""
        session = mid_combat
        before = capture_snapshot(session)

        session.end_turn()
        session.end_turn()
        assert session.current_turn_number == 5

        restore_snapshot(session, before)

        assert capture_snapshot(session).model_dump() == before.model_dump()
        assert session.current_turn_number == 3
        assert session.enemy.current_health == 8
        assert session.enemy.has_effect(BleedEffect)
        assert session.slots.get_slot(SlotPosition.WAIT_SLOT_2).card_id is not None

    def test_restored_session_keeps_playing(self, mid_combat):
        session = mid_combat
        before = capture_snapshot(session)
        session.end_turn()
        restore_snapshot(session, before)

        session.end_turn()
        assert session.enemy.current_health == 4
        assert session.acting_side is Side.ENEMY

    def test_restore_from_dict(self, mid_combat):
        data = capture_snapshot(mid_combat).model_dump(mode="json")
        mid_combat.end_turn()
        restore_snapshot(mid_combat, data)
        assert mid_combat.current_turn_number == 3

    def test_restore_paused(self, mid_combat):
        mid_combat.pause()
        snapshot = capture_snapshot(mid_combat)
        mid_combat.resume()
        restore_snapshot(mid_combat, snapshot)
        assert mid_combat.phase is CombatPhase.PAUSED
        mid_combat.resume()
        assert mid_combat.phase is CombatPhase.PLAYER_TURN


class TestRestoreAtomicity:
    """A bad snapshot raises and leaves the session untouched."""

    def assert_rejected(self, session, snapshot):
        before = capture_snapshot(session).model_dump()
        with pytest.raises(InvalidArgumentError):
            restore_snapshot(session, snapshot)
        assert capture_snapshot(session).model_dump() == before

    def test_unknown_card(self, mid_combat):
        data = capture_snapshot(mid_combat).model_dump(mode="json")
        data["cards"][0]["card_id"] = "no_such_card"
        self.assert_rejected(mid_combat, data)

    def test_card_in_two_slots(self, mid_combat):
        snapshot = capture_snapshot(mid_combat)
        data = snapshot.model_dump(mode="json")
        slot = next(s for s in data["slots"] if s["position"] == "wait_slot_2")
        data["slots"].append(dict(slot, position="wait_slot_4"))
        self.assert_rejected(mid_combat, data)

    def test_turn_number_mismatch(self, mid_combat):
        data = capture_snapshot(mid_combat).model_dump(mode="json")
        data["turn_number"] = 7
        self.assert_rejected(mid_combat, data)

    def test_gap_in_turns(self, mid_combat):
        data = capture_snapshot(mid_combat).model_dump(mode="json")
        data["turns"][1]["number"] = 5
        self.assert_rejected(mid_combat, data)

    def test_health_out_of_range(self, mid_combat):
        data = capture_snapshot(mid_combat).model_dump(mode="json")
        data["characters"][0]["current_health"] = 500
        self.assert_rejected(mid_combat, data)

    def test_malformed_dict(self, mid_combat):
        self.assert_rejected(mid_combat, {"phase": "not-a-phase"})

    def test_wrong_schema_version(self, mid_combat):
        data = capture_snapshot(mid_combat).model_dump(mode="json")
        data["schema_version"] = 99
        self.assert_rejected(mid_combat, data)

    def test_stage_mismatch(self, make_combat, mid_combat):
        """Stage progress cannot be restored into a session without a stage."""
        staged = make_combat(enemy_id="imp", with_stage=True)
        staged.start_combat()
        data = capture_snapshot(staged).model_dump(mode="json")
        self.assert_rejected(mid_combat, data)

    def test_missing_session(self):
        with pytest.raises(InvalidArgumentError):
            restore_snapshot(None, CombatSnapshot(phase=CombatPhase.NONE, turn_number=0))
