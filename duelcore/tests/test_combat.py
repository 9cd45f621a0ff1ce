"""
Tests for the combat session.

Tests:
- Starting combat and dealing hands
- Playing cards into combat slots
- Turn resolution and the execution queue
- Guard registration and enemy slot reservation
- Victory, defeat, pause and abandon
"""

import pytest

from ..engine_core.cards import PlayRejection
from ..engine_core.config import CombatConfig
from ..engine_core.errors import InvalidOperationError
from ..engine_core.events import (
    CardPlayed,
    CardResolved,
    CombatStarted,
    DeckRecycled,
    EnemyDefeated,
    GameOver,
    RewardRequested,
    TurnStarted,
)
from ..engine_core.slots import COMBAT_ORDER, SlotPosition
from ..engine_core.state import Side
from ..engine_core.status_effects import BleedEffect
from ..engine_core.turns import CombatPhase, TurnType
from .conftest import card_in_hand


def pass_enemy_turn(session):
    """End the enemy's turn without playing anything."""
    assert session.acting_side is Side.ENEMY
    return session.end_turn()


class TestStartCombat:
    """Tests for combat setup."""

    def test_start_deals_hands(self, started_combat):
        """Both sides hold a full hand and the player acts first."""
        session = started_combat
        assert session.phase is CombatPhase.PLAYER_TURN
        assert session.current_turn_number == 1
        assert session.acting_side is Side.PLAYER
        assert len(session.hand(Side.PLAYER)) == 3
        assert len(session.hand(Side.ENEMY)) == 3
        assert len(session.zones(Side.PLAYER).deck) == 2

    def test_hands_seated_in_hand_slots(self, started_combat):
        """Identity shuffle: the last deck card is drawn first, into slot 1."""
        slot = started_combat.slots.get_slot(SlotPosition.PLAYER_HAND_1)
        assert slot.card_id == "player-jab-5"
        assert started_combat.find_card("player-jab-5").hand_slot is SlotPosition.PLAYER_HAND_1

    def test_events_published(self, started_combat):
        bus = started_combat.bus
        assert len(bus.events_of(CombatStarted)) == 1
        assert bus.events_of(TurnStarted)[0].turn_type is TurnType.PLAYER

    def test_enemy_first(self, make_combat):
        session = make_combat()
        session.start_combat(TurnType.ENEMY)
        assert session.phase is CombatPhase.ENEMY_TURN

    def test_needs_an_enemy(self, make_combat):
        session = make_combat(enemy_id=None)
        with pytest.raises(InvalidOperationError):
            session.start_combat()

    def test_start_twice(self, started_combat):
        with pytest.raises(InvalidOperationError):
            started_combat.start_combat()

    def test_enemy_spawn_needs_dead_predecessor(self, make_combat, test_catalog):
        session = make_combat()
        with pytest.raises(InvalidOperationError):
            session.spawn_enemy(test_catalog.get_enemy("imp"))


class TestPlayCard:
    """Tests for moving hand cards into combat slots."""

    def test_play_into_battle_slot(self, started_combat):
        session = started_combat
        card = card_in_hand(session, "jab")

        result = session.play_card(card.instance_id)

        assert result.success
        assert result.position is SlotPosition.BATTLE_SLOT
        assert session.zones(Side.PLAYER).locate(card) == "in_play"
        assert card.combat_slot is SlotPosition.BATTLE_SLOT
        assert card.hand_slot is None
        assert session.slots.get_slot(SlotPosition.BATTLE_SLOT).card_id == card.instance_id
        assert session.slots.get_slot(SlotPosition.PLAYER_HAND_1).is_empty
        assert session.bus.events_of(CardPlayed)[0].card_id == "jab"

    def test_second_card_takes_next_slot(self, started_combat):
        session = started_combat
        first, second = session.hand(Side.PLAYER)[:2]
        session.play_card(first.instance_id)
        result = session.play_card(second.instance_id)
        assert result.position is SlotPosition.WAIT_SLOT_1

    def test_resource_cost(self, make_combat):
        """A card that costs more than the pool holds is rejected, not raised."""
        session = make_combat(deck=("heavy",) * 5)
        session.start_combat()
        first, second = session.hand(Side.PLAYER)[:2]

        assert session.play_card(first.instance_id).success
        assert session.player.resource.current_amount == 1

        result = session.play_card(second.instance_id)
        assert not result.success
        assert result.rejection is PlayRejection.INSUFFICIENT_RESOURCE
        assert session.zones(Side.PLAYER).locate(second) == "hand"

    def test_not_your_turn(self, started_combat):
        enemy_card = started_combat.hand(Side.ENEMY)[0]
        result = started_combat.play_card(enemy_card.instance_id)
        assert result.rejection is PlayRejection.NOT_YOUR_TURN

    def test_occupied_slot(self, started_combat):
        session = started_combat
        first, second = session.hand(Side.PLAYER)[:2]
        session.play_card(first.instance_id, SlotPosition.WAIT_SLOT_2)
        result = session.play_card(second.instance_id, SlotPosition.WAIT_SLOT_2)
        assert result.rejection is PlayRejection.SLOT_OCCUPIED

    def test_hand_position_is_not_a_combat_slot(self, started_combat):
        card = started_combat.hand(Side.PLAYER)[0]
        result = started_combat.play_card(card.instance_id, SlotPosition.PLAYER_HAND_5)
        assert result.rejection is PlayRejection.NOT_A_COMBAT_SLOT

    def test_card_not_in_hand(self, started_combat):
        deck_card = started_combat.zones(Side.PLAYER).deck.top
        result = started_combat.play_card(deck_card.instance_id)
        assert result.rejection is PlayRejection.NOT_IN_HAND

    def test_each_card_in_at_most_one_slot(self, started_combat):
        session = started_combat
        for card in session.hand(Side.PLAYER):
            session.play_card(card.instance_id)
        session.end_turn()
        for zones in (session.zones(Side.PLAYER), session.zones(Side.ENEMY)):
            for card in zones.all_cards():
                assert len(session.slots.positions_of(card.instance_id)) <= 1


class TestEndTurn:
    """Tests for turn resolution."""

    def test_resolves_and_hands_over(self, started_combat):
        session = started_combat
        session.play_card(card_in_hand(session, "jab").instance_id)

        next_turn = session.end_turn()

        assert session.enemy.current_health == 8
        assert next_turn.number == 2
        assert next_turn.turn_type is TurnType.ENEMY
        assert session.phase is CombatPhase.ENEMY_TURN
        assert session.turns[0].is_completed
        assert len(session.zones(Side.PLAYER).discard) == 1

    def test_slots_resolve_front_to_back(self, make_combat):
        """Drain before Jab: order follows the combat line, not play order."""
        session = make_combat(deck=("jab", "drain", "jab"))
        session.start_combat()
        session.player.take_damage(5)

        session.play_card(card_in_hand(session, "jab").instance_id, SlotPosition.WAIT_SLOT_1)
        session.play_card(card_in_hand(session, "drain").instance_id, SlotPosition.BATTLE_SLOT)
        session.end_turn()

        played = [event.card_id for event in session.bus.events_of(CardPlayed)]
        resolved = [event.card_id for event in session.bus.events_of(CardResolved)]
        assert played == ["jab", "drain"]
        assert resolved == ["drain", "jab"]
        assert session.enemy.current_health == 6
        assert session.player.current_health == 27

    def test_only_the_acting_side_resolves(self, started_combat):
        """The enemy's cards wait for the end of the enemy's own turn."""
        session = started_combat
        session.end_turn()
        session.play_card(session.hand(Side.ENEMY)[0].instance_id)
        session.end_turn()
        assert session.player.current_health == 29
        assert session.current_turn.turn_type is TurnType.PLAYER

    def test_cooldown_card_returns_to_hand(self, make_combat):
        session = make_combat(deck=("mend",) * 4)
        session.start_combat()
        card = session.hand(Side.PLAYER)[0]
        session.play_card(card.instance_id)

        session.end_turn()
        assert session.zones(Side.PLAYER).locate(card) == "hand"
        assert card.current_cooldown == 1
        assert card.hand_slot is not None

        pass_enemy_turn(session)
        assert card.current_cooldown == 0

    def test_discard_pile_recycled(self, make_combat):
        """An empty deck is refilled from the discard pile when drawing."""
        session = make_combat(deck=("jab",) * 3)
        session.start_combat()
        session.play_card(session.hand(Side.PLAYER)[0].instance_id)
        session.end_turn()
        pass_enemy_turn(session)

        assert len(session.hand(Side.PLAYER)) == 3
        recycled = [e for e in session.bus.events_of(DeckRecycled) if e.owner is Side.PLAYER]
        assert len(recycled) == 1

    def test_resource_regenerates(self, make_combat):
        session = make_combat(deck=("heavy",) * 4)
        session.start_combat()
        session.play_card(session.hand(Side.PLAYER)[0].instance_id)
        session.end_turn()
        pass_enemy_turn(session)
        assert session.player.resource.current_amount == 2

    def test_enemy_card_in_wait_slot_resolves(self, started_combat):
        session = started_combat
        session.end_turn()
        enemy_card = session.hand(Side.ENEMY)[0]
        session.play_card(enemy_card.instance_id, SlotPosition.WAIT_SLOT_2)

        session.end_turn()
        assert session.player.current_health == 29
        assert all(session.slots.get_slot(p).is_empty for p in COMBAT_ORDER)

    def test_end_turn_needs_active_combat(self, make_combat):
        with pytest.raises(InvalidOperationError):
            make_combat().end_turn()


class TestExecuteAndMove:
    """Tests for direct slot execution and moves."""

    def test_execute_slot(self, started_combat):
        session = started_combat
        card = session.hand(Side.PLAYER)[0]
        session.play_card(card.instance_id)

        outcome = session.execute_slot(SlotPosition.BATTLE_SLOT)

        assert not outcome.skipped
        assert outcome.report.total_damage == 2
        assert session.slots.get_slot(SlotPosition.BATTLE_SLOT).is_empty
        assert session.zones(Side.PLAYER).locate(card) == "discard"
        assert session.phase is CombatPhase.PLAYER_TURN

    def test_execute_empty_slot(self, started_combat):
        with pytest.raises(InvalidOperationError):
            started_combat.execute_slot(SlotPosition.WAIT_SLOT_3)

    def test_move_slot(self, started_combat):
        session = started_combat
        card = session.hand(Side.PLAYER)[0]
        session.play_card(card.instance_id, SlotPosition.WAIT_SLOT_3)

        moved = session.move_slot(SlotPosition.WAIT_SLOT_3, SlotPosition.BATTLE_SLOT)

        assert moved.card_id == card.instance_id
        assert card.combat_slot is SlotPosition.BATTLE_SLOT
        assert session.slots.get_slot(SlotPosition.WAIT_SLOT_3).is_empty

    def test_move_slot_same_position(self, started_combat):
        with pytest.raises(InvalidOperationError):
            started_combat.move_slot(SlotPosition.BATTLE_SLOT, SlotPosition.BATTLE_SLOT)


class TestDrawAndDiscard:
    """Tests for drawing and discarding during combat."""

    def test_draw_into_full_hand(self, started_combat):
        assert started_combat.draw(Side.PLAYER) is None

    def test_discard_then_draw(self, started_combat):
        session = started_combat
        card = session.hand(Side.PLAYER)[0]
        slot = card.hand_slot

        assert session.discard(card.instance_id)
        assert session.zones(Side.PLAYER).locate(card) == "discard"
        assert session.slots.get_slot(slot).is_empty
        assert not session.discard(card.instance_id)

        drawn = session.draw(Side.PLAYER)
        assert drawn is not None
        assert drawn.hand_slot is slot

    def test_shuffle_deck(self, started_combat):
        session = started_combat
        before = [c.instance_id for c in session.zones(Side.PLAYER).deck]
        session.shuffle_deck(Side.PLAYER)
        after = [c.instance_id for c in session.zones(Side.PLAYER).deck]
        assert sorted(before) == sorted(after)


class TestStatusEffectsInCombat:
    """Tests for effects ticking at turn starts."""

    def test_bleed_ticks_at_owner_turn_start(self, make_combat):
        session = make_combat(deck=("rend",) * 3)
        session.start_combat()
        session.play_card(session.hand(Side.PLAYER)[0].instance_id)

        session.end_turn()
        assert session.enemy.current_health == 8

        pass_enemy_turn(session)
        session.end_turn()
        assert session.enemy.current_health == 6
        assert not session.enemy.has_effect(BleedEffect)

    def test_stunned_enemy_cannot_play(self, make_combat):
        session = make_combat(deck=("daze",) * 3)
        session.start_combat()
        session.play_card(session.hand(Side.PLAYER)[0].instance_id)
        session.end_turn()

        assert session.enemy.is_stunned
        result = session.play_card(session.hand(Side.ENEMY)[0].instance_id)
        assert result.rejection is PlayRejection.STUNNED


class TestGuardAndReservation:
    """Tests for the pre-commit mutators."""

    def test_registered_guard_blocks_enemy_hit(self, started_combat):
        session = started_combat
        assert session.register_player_guard()
        assert not session.register_player_guard()
        assert session.player.is_guarded

        session.end_turn()
        session.play_card(session.hand(Side.ENEMY)[0].instance_id)
        session.end_turn()

        assert session.player.current_health == 30
        assert not session.turn_manager.player_guard_registered

    def test_unused_guard_released(self, started_combat):
        session = started_combat
        session.register_player_guard()
        session.end_turn()
        pass_enemy_turn(session)
        assert not session.player.is_guarded

    def test_reserved_slot(self, started_combat):
        session = started_combat
        assert session.reserve_next_enemy_slot() is SlotPosition.BATTLE_SLOT
        assert session.reserve_next_enemy_slot() is None

        card, other = session.hand(Side.PLAYER)[:2]
        assert session.play_card(card.instance_id).position is SlotPosition.WAIT_SLOT_1
        blocked = session.play_card(other.instance_id, SlotPosition.BATTLE_SLOT)
        assert blocked.rejection is PlayRejection.SLOT_RESERVED

        session.end_turn()
        result = session.play_card(session.hand(Side.ENEMY)[0].instance_id)
        assert result.position is SlotPosition.BATTLE_SLOT
        assert session.turn_manager.reserved_enemy_slot is None


class TestOutcomes:
    """Tests for victory, defeat and session control."""

    def test_victory_without_stage(self, make_combat):
        session = make_combat(enemy_id="imp")
        session.start_combat()
        for card in session.hand(Side.PLAYER)[:2]:
            session.play_card(card.instance_id)

        assert session.end_turn() is None
        assert session.phase is CombatPhase.VICTORY
        assert session.is_over
        assert session.bus.events_of(GameOver)[0].victory
        assert len(session.bus.events_of(EnemyDefeated)) == 1
        assert len(session.bus.events_of(RewardRequested)) == 1

    def test_enemy_cards_vanish_on_death(self, make_combat):
        session = make_combat(enemy_id="imp")
        session.start_combat()
        session.enemy.take_damage(3)
        assert session.hand(Side.ENEMY) == []
        assert not any(
            slot.owner is Side.ENEMY and slot.card_id for slot in session.slots.occupied_slots()
        )

    def test_defeat(self, make_combat):
        session = make_combat(config=CombatConfig(player_max_health=1))
        session.start_combat()
        session.end_turn()
        session.play_card(session.hand(Side.ENEMY)[0].instance_id)

        assert session.end_turn() is None
        assert session.phase is CombatPhase.DEFEAT
        assert not session.bus.events_of(GameOver)[0].victory

    def test_no_play_after_game_over(self, make_combat):
        session = make_combat(enemy_id="imp")
        session.start_combat()
        session.enemy.take_damage(3)
        session.end_turn()
        with pytest.raises(InvalidOperationError):
            session.draw(Side.PLAYER)

    def test_pause_blocks_commands(self, started_combat):
        session = started_combat
        session.pause()
        assert session.phase is CombatPhase.PAUSED
        with pytest.raises(InvalidOperationError):
            session.play_card(session.hand(Side.PLAYER)[0].instance_id)

        session.resume()
        assert session.phase is CombatPhase.PLAYER_TURN

    def test_end_combat(self, started_combat):
        started_combat.end_combat()
        assert started_combat.phase is CombatPhase.ENDED
        with pytest.raises(InvalidOperationError):
            started_combat.end_turn()

    def test_abandon_before_start(self, make_combat):
        session = make_combat()
        session.end_combat()
        assert session.phase is CombatPhase.ENDED
