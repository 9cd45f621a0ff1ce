"""
Tests for the effect resolver.

Tests:
- Damage, multi-hit, guard and counter interaction
- Effect ordering
- Abort on a dead target
- Status effect registration
"""

import pytest

from ..engine_core.cards import CardInstance
from ..engine_core.effect_dsl import (
    CardDefinition,
    EffectKind,
    EffectSpec,
    EffectTarget,
    bleed,
    damage,
    guard,
    heal,
)
from ..engine_core.effect_resolver import CardExecutionContext, EffectResolver, RejectionReason
from ..engine_core.errors import InvalidArgumentError
from ..engine_core.events import EffectPlayed, EventBus
from ..engine_core.state import Side
from ..engine_core.status_effects import AttackPowerBuff, BleedEffect, CounterBuff, GuardBuff, InvincibilityBuff


def play(definition, source, target, power_bonus=0, resolver=None):
    card = CardInstance(f"{definition.card_id}-1", definition, source.side, power_bonus=power_bonus)
    resolver = resolver or EffectResolver()
    return resolver.resolve(CardExecutionContext(card=card, source=source, target=target))


class TestDamage:
    """Tests for damage effects."""

    def test_single_hit(self, hero, brute):
        report = play(CardDefinition("hit", "Hit", effects=(damage(4),)), hero, brute)
        assert brute.current_health == 6
        assert report.total_damage == 4
        assert not report.aborted

    def test_multi_hit(self, hero, brute):
        play(CardDefinition("flurry", "Flurry", effects=(damage(2, hits=3),)), hero, brute)
        assert brute.current_health == 4

    def test_guard_absorbs_first_hit_only(self, hero, brute):
        """A guard stops one hit of a multi-hit effect."""
        brute.set_guarded(True)
        report = play(CardDefinition("flurry", "Flurry", effects=(damage(2, hits=2),)), hero, brute)
        assert brute.current_health == 8
        assert report.applied[0].amount == 2
        assert not brute.is_guarded

    def test_ignore_guard(self, hero, brute):
        brute.set_guarded(True)
        play(CardDefinition("pierce", "Pierce", effects=(damage(3, ignore_guard=True),)), hero, brute)
        assert brute.current_health == 7
        assert brute.is_guarded

    def test_attack_buff_adds_to_damage(self, hero, brute):
        hero.register_effect(AttackPowerBuff(3, duration=1))
        report = play(CardDefinition("hit", "Hit", effects=(damage(2),)), hero, brute)
        assert brute.current_health == 5
        assert report.applied[0].power == 5

    def test_power_bonus(self, hero, brute):
        play(CardDefinition("hit", "Hit", effects=(damage(2),)), hero, brute, power_bonus=1)
        assert brute.current_health == 7

    def test_hits_stop_at_death(self, hero, brute):
        """No hit lands after the target dies."""
        report = play(CardDefinition("flurry", "Flurry", effects=(damage(6, hits=3),)), hero, brute)
        assert brute.is_dead
        assert report.applied[0].amount == 10


class TestCounter:
    """Tests for damage reflection."""

    def test_counter_reflects_damage_dealt(self, hero, brute):
        brute.register_effect(CounterBuff(duration=1))
        play(CardDefinition("hit", "Hit", effects=(damage(4),)), hero, brute)
        assert brute.current_health == 6
        assert hero.current_health == 16

    def test_counter_reflects_nothing_through_guard(self, hero, brute):
        """A hit absorbed by guard deals nothing, so nothing is reflected."""
        brute.register_effect(CounterBuff(duration=1))
        brute.set_guarded(True)
        play(CardDefinition("hit", "Hit", effects=(damage(4),)), hero, brute)
        assert hero.current_health == 20

    def test_reflection_killing_attacker_stops_remaining_hits(self, hero, brute):
        """An attacker killed by a counter lands no further hits."""
        hero.take_damage(18)
        brute.register_effect(CounterBuff(duration=1))

        play(CardDefinition("flurry", "Flurry", effects=(damage(2, hits=3),)), hero, brute)

        assert hero.is_dead
        assert brute.current_health == 8

    def test_ignore_counter(self, hero, brute):
        brute.register_effect(CounterBuff(duration=1))
        play(CardDefinition("feint", "Feint", effects=(damage(4, ignore_counter=True),)), hero, brute)
        assert hero.current_health == 20


class TestOrderingAndAbort:
    """Tests for effect order and early abort."""

    def test_effects_apply_in_order(self, hero, brute):
        """Effects run by `order`, not declaration position."""
        hero.take_damage(5)
        definition = CardDefinition(
            "drain", "Drain",
            effects=(
                EffectSpec(EffectKind.DAMAGE, value=2, order=1),
                EffectSpec(EffectKind.HEAL, value=2, order=0),
            ),
        )
        report = play(definition, hero, brute)
        assert [a.kind for a in report.applied] == [EffectKind.HEAL, EffectKind.DAMAGE]
        assert hero.current_health == 17
        assert brute.current_health == 8

    def test_dead_target_aborts(self, hero, brute):
        brute.take_damage(10)
        report = play(CardDefinition("hit", "Hit", effects=(damage(2), heal(2))), hero, brute)
        assert report.rejection is RejectionReason.TARGET_DEAD
        assert report.aborted_at == 0
        assert report.applied == []

    def test_abort_after_kill(self, hero, brute):
        """An effect that kills the target stops the rest of the card."""
        hero.take_damage(5)
        definition = CardDefinition("finisher", "Finisher", effects=(damage(10), heal(3, order=1)))
        report = play(definition, hero, brute)
        assert report.aborted_at == 1
        assert hero.current_health == 15

    def test_missing_target(self, hero):
        report = play(CardDefinition("hit", "Hit", effects=(damage(2),)), hero, None)
        assert report.rejection is RejectionReason.TARGET_MISSING

    def test_dead_source(self, hero, brute):
        hero.take_damage(20)
        report = play(CardDefinition("hit", "Hit", effects=(damage(2),)), hero, brute)
        assert report.rejection is RejectionReason.SOURCE_DEAD

    def test_missing_context_raises(self):
        with pytest.raises(InvalidArgumentError):
            EffectResolver().resolve(None)


class TestStatusRegistration:
    """Tests for effects that attach status effects."""

    def test_guard_registers_buff(self, hero, brute):
        play(CardDefinition("brace", "Brace", effects=(guard(duration=1),)), hero, brute)
        assert hero.is_guarded
        assert hero.has_effect(GuardBuff)

    def test_bleed_lands_on_opponent(self, hero, brute):
        report = play(CardDefinition("rend", "Rend", effects=(bleed(2, duration=3),)), hero, brute)
        assert report.applied[0].recipient_id == "brute"
        effect = brute.effects_of(BleedEffect)[0]
        assert effect.amount == 2
        assert effect.remaining_turns == 3

    def test_invincible_target_refuses_bleed(self, hero, brute):
        brute.register_effect(InvincibilityBuff(duration=1))
        report = play(CardDefinition("rend", "Rend", effects=(bleed(2),)), hero, brute)
        assert report.applied[0].registered is False
        assert not brute.has_effect(BleedEffect)

    def test_self_targeted_damage(self, hero, brute):
        definition = CardDefinition(
            "backlash", "Backlash", effects=(EffectSpec(EffectKind.DAMAGE, value=3, target=EffectTarget.SELF),)
        )
        play(definition, hero, brute)
        assert hero.current_health == 17
        assert brute.current_health == 10

    def test_effect_played_events(self, hero, brute):
        """Every applied effect is published."""
        bus = EventBus()
        play(CardDefinition("drain", "Drain", effects=(damage(2), heal(1, order=1))),
             hero, brute, resolver=EffectResolver(bus=bus))
        events = bus.events_of(EffectPlayed)
        assert [e.kind for e in events] == [EffectKind.DAMAGE, EffectKind.HEAL]
        assert events[0].recipient_id == "brute"
        assert events[0].source_id == "hero"
