"""
Tests for the slot registry.
"""

import pytest

from ..engine_core.errors import InvalidArgumentError, InvalidOperationError
from ..engine_core.slots import (
    COMBAT_ORDER,
    CombatSlot,
    SlotPosition,
    SlotRegistry,
    character_position,
    hand_positions,
)
from ..engine_core.state import Side


def card_slot(position, card_id, owner=Side.PLAYER):
    return CombatSlot(position).occupy_card(card_id, owner)


class TestSlotPosition:
    """Tests for position classification."""

    def test_combat_order_starts_at_battle_slot(self):
        assert COMBAT_ORDER[0] is SlotPosition.BATTLE_SLOT
        assert all(p.is_combat for p in COMBAT_ORDER)

    def test_hand_positions(self):
        positions = hand_positions(Side.ENEMY, 3)
        assert positions == (SlotPosition.ENEMY_HAND_1, SlotPosition.ENEMY_HAND_2, SlotPosition.ENEMY_HAND_3)
        assert all(p.hand_side is Side.ENEMY for p in positions)
        with pytest.raises(InvalidArgumentError):
            hand_positions(Side.PLAYER, 6)

    def test_character_position(self):
        assert character_position(Side.PLAYER).is_character
        assert not SlotPosition.BATTLE_SLOT.is_hand


class TestSlotRegistry:
    """Tests for SlotRegistry."""

    def test_unset_positions_read_empty(self):
        registry = SlotRegistry()
        slot = registry.get_slot(SlotPosition.WAIT_SLOT_2)
        assert slot.is_empty
        assert slot.position is SlotPosition.WAIT_SLOT_2

    def test_set_and_clear(self):
        registry = SlotRegistry()
        registry.set_slot(card_slot(SlotPosition.BATTLE_SLOT, "c1"))
        assert registry.get_slot(SlotPosition.BATTLE_SLOT).card_id == "c1"
        assert registry.find_card("c1").position is SlotPosition.BATTLE_SLOT

        registry.clear_slot(SlotPosition.BATTLE_SLOT)
        assert registry.get_slot(SlotPosition.BATTLE_SLOT).is_empty
        assert len(registry) == 0

    def test_setting_an_empty_slot_clears(self):
        registry = SlotRegistry()
        registry.set_slot(card_slot(SlotPosition.BATTLE_SLOT, "c1"))
        registry.set_slot(CombatSlot(SlotPosition.BATTLE_SLOT))
        assert len(registry) == 0

    def test_none_position_rejected(self):
        with pytest.raises(InvalidArgumentError):
            SlotRegistry().set_slot(card_slot(SlotPosition.NONE, "c1"))

    def test_card_and_character_exclusive(self):
        """A slot holds a card or a character, never both."""
        with pytest.raises(InvalidArgumentError):
            CombatSlot(SlotPosition.BATTLE_SLOT, card_id="c1", character_id="hero")

    def test_move_card(self):
        registry = SlotRegistry()
        registry.set_slot(card_slot(SlotPosition.WAIT_SLOT_1, "c1"))
        moved = registry.move_card(SlotPosition.WAIT_SLOT_1, SlotPosition.WAIT_SLOT_3)
        assert moved.position is SlotPosition.WAIT_SLOT_3
        assert registry.get_slot(SlotPosition.WAIT_SLOT_1).is_empty

    def test_move_card_errors(self):
        """Moving needs a card at the source and room at the destination."""
        registry = SlotRegistry()
        registry.set_slot(card_slot(SlotPosition.BATTLE_SLOT, "c1"))
        registry.set_slot(card_slot(SlotPosition.WAIT_SLOT_1, "c2"))

        with pytest.raises(InvalidOperationError):
            registry.move_card(SlotPosition.BATTLE_SLOT, SlotPosition.WAIT_SLOT_1)
        with pytest.raises(InvalidOperationError):
            registry.move_card(SlotPosition.WAIT_SLOT_4, SlotPosition.WAIT_SLOT_3)
        with pytest.raises(InvalidOperationError):
            registry.move_card(SlotPosition.BATTLE_SLOT, SlotPosition.BATTLE_SLOT)

    def test_shift_forward_closes_one_step(self):
        """Cards slide one step toward the battle slot per call."""
        registry = SlotRegistry()
        registry.set_slot(card_slot(SlotPosition.WAIT_SLOT_2, "c1"))

        moves = registry.shift_forward()
        assert moves == [(SlotPosition.WAIT_SLOT_2, SlotPosition.WAIT_SLOT_1)]
        registry.shift_forward()
        assert registry.get_slot(SlotPosition.BATTLE_SLOT).card_id == "c1"
        assert registry.shift_forward() == []

    def test_clear_owner(self):
        registry = SlotRegistry()
        registry.set_slot(card_slot(SlotPosition.BATTLE_SLOT, "p1", Side.PLAYER))
        registry.set_slot(card_slot(SlotPosition.WAIT_SLOT_1, "e1", Side.ENEMY))
        registry.set_slot(CombatSlot(SlotPosition.ENEMY_CHARACTER).occupy_character("brute", Side.ENEMY))

        removed = registry.clear_owner(Side.ENEMY)

        assert [slot.card_id for slot in removed] == ["e1"]
        assert registry.get_slot(SlotPosition.BATTLE_SLOT).card_id == "p1"
        assert registry.get_slot(SlotPosition.ENEMY_CHARACTER).character_id == "brute"

    def test_occupied_slots_in_declaration_order(self):
        registry = SlotRegistry()
        registry.set_slot(card_slot(SlotPosition.WAIT_SLOT_3, "c2"))
        registry.set_slot(card_slot(SlotPosition.BATTLE_SLOT, "c1"))
        assert [s.card_id for s in registry.occupied_slots()] == ["c1", "c2"]
