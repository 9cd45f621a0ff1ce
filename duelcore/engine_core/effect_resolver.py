"""
Effect Resolver - Turns a played card into character-state changes.

For one card the resolver:
1. Binds (card, source, target) into a CardExecutionContext
2. Walks the card's effects in `order` (ties keep declaration order)
3. Validates before each effect; the first failed check aborts the
   rest of the card
4. Computes magnitude with CardInstance.get_effect_power
5. Dispatches on EffectKind
6. Publishes EffectPlayed for presentation layers

Expected failures (dead target) are reported in the ResolutionReport.
A missing context or card is a caller bug and raises.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, TYPE_CHECKING
import logging

from .effect_dsl import EffectKind, EffectSpec, EffectTarget
from .errors import InvalidArgumentError
from .events import EffectPlayed
from .status_effects import (
    AttackPowerBuff,
    BleedEffect,
    CounterBuff,
    GuardBuff,
    InvincibilityBuff,
    StunDebuff,
)

if TYPE_CHECKING:
    from .cards import CardInstance
    from .events import EventBus
    from .state import Character

logger = logging.getLogger(__name__)


class RejectionReason(Enum):
    """Why a card stopped resolving."""
    TARGET_MISSING = "target_missing"
    TARGET_DEAD = "target_dead"
    SOURCE_DEAD = "source_dead"


@dataclass
class CardExecutionContext:
    """
    The resolved roles for one card execution.

    source is the owner's character, target the opposing one.
    """
    card: CardInstance
    source: Character
    target: Character | None

    def recipient(self, effect: EffectSpec) -> Character | None:
        if effect.resolved_target is EffectTarget.SELF:
            return self.source
        return self.target


@dataclass
class AppliedEffect:
    """Outcome of one effect."""
    kind: EffectKind
    recipient_id: str
    power: int
    amount: int = 0  # Health removed/restored, 0 for buffs
    registered: bool = True  # False when a status effect was refused


@dataclass
class ResolutionReport:
    """What happened when a card resolved."""
    instance_id: str
    card_id: str
    applied: list[AppliedEffect] = field(default_factory=list)
    rejection: RejectionReason | None = None
    aborted_at: int | None = None  # Index into the ordered effect list

    @property
    def aborted(self) -> bool:
        return self.rejection is not None

    @property
    def total_damage(self) -> int:
        return sum(a.amount for a in self.applied if a.kind is EffectKind.DAMAGE)

    @property
    def total_healing(self) -> int:
        return sum(a.amount for a in self.applied if a.kind is EffectKind.HEAL)


@dataclass
class EffectResolver:
    """
    Stateless effect pipeline.

    Holds only the bus it reports to; all state lives on the
    characters in the context.
    """
    bus: EventBus | None = None

    def resolve(self, context: CardExecutionContext) -> ResolutionReport:
        """Resolve every effect of context.card. Never raises for expected conditions."""
        if context is None:
            raise InvalidArgumentError("context is required")
        if context.card is None:
            raise InvalidArgumentError("context.card is required")
        if context.source is None:
            raise InvalidArgumentError("context.source is required")

        card = context.card
        report = ResolutionReport(instance_id=card.instance_id, card_id=card.card_id)

        for index, effect in enumerate(card.definition.ordered_effects()):
            rejection = self.validate(context)
            if rejection is not None:
                report.rejection = rejection
                report.aborted_at = index
                logger.debug("%s aborted at effect %d: %s", card.card_id, index, rejection.value)
                break

            power = card.get_effect_power(effect)
            handler = self._get_handler(effect.kind)
            applied = handler(context, effect, power)
            report.applied.append(applied)

            self._publish(EffectPlayed(
                instance_id=card.instance_id,
                card_id=card.card_id,
                kind=effect.kind,
                source_id=context.source.character_id,
                recipient_id=applied.recipient_id,
                power=applied.power,
                hits=effect.hits,
            ))
            logger.debug(
                "%s: %s -> %s power=%d amount=%d",
                card.card_id, effect.kind.value, applied.recipient_id, applied.power, applied.amount,
            )

        return report

    def validate(self, context: CardExecutionContext) -> RejectionReason | None:
        """Preconditions checked before every effect."""
        if context.target is None:
            return RejectionReason.TARGET_MISSING
        if context.target.is_dead:
            return RejectionReason.TARGET_DEAD
        if context.source.is_dead:
            return RejectionReason.SOURCE_DEAD
        return None

    def _get_handler(self, kind: EffectKind) -> Callable[[CardExecutionContext, EffectSpec, int], AppliedEffect]:
        handlers = {
            EffectKind.DAMAGE: self._apply_damage,
            EffectKind.HEAL: self._apply_heal,
            EffectKind.GUARD: self._apply_guard,
            EffectKind.BLEED: self._apply_bleed,
            EffectKind.COUNTER: self._apply_counter,
            EffectKind.ATTACK_BUFF: self._apply_attack_buff,
            EffectKind.INVINCIBILITY: self._apply_invincibility,
            EffectKind.STUN: self._apply_stun,
        }
        return handlers[kind]

    # -------------------------------------------------------------------------
    # Handlers
    # -------------------------------------------------------------------------

    def _apply_damage(self, context: CardExecutionContext, effect: EffectSpec, power: int) -> AppliedEffect:
        source = context.source
        recipient = context.recipient(effect)
        power += source.attack_bonus
        total = 0

        for _ in range(effect.hits):
            if power <= 0 or recipient.is_dead or source.is_dead:
                break
            if effect.ignore_guard:
                dealt = recipient.take_damage_ignore_guard(power)
            else:
                dealt = recipient.take_damage(power)
            total += dealt

            if dealt and not effect.ignore_counter and recipient is not source:
                self._reflect(recipient, source, dealt)

        return AppliedEffect(EffectKind.DAMAGE, recipient.character_id, power, amount=total)

    def _reflect(self, defender: Character, attacker: Character, dealt: int):
        counters = defender.effects_of(CounterBuff)
        if not counters or attacker.is_dead:
            return
        reflected = counters[0].reflected(dealt)
        if reflected > 0:
            attacker.take_damage_ignore_guard(reflected)
            logger.debug("%s countered %d damage onto %s", defender.character_id, reflected, attacker.character_id)

    def _apply_heal(self, context: CardExecutionContext, effect: EffectSpec, power: int) -> AppliedEffect:
        recipient = context.recipient(effect)
        healed = recipient.heal(power) if power > 0 else 0
        return AppliedEffect(EffectKind.HEAL, recipient.character_id, power, amount=healed)

    def _apply_guard(self, context: CardExecutionContext, effect: EffectSpec, power: int) -> AppliedEffect:
        return self._register(context, effect, power, GuardBuff(effect.duration, context.card.card_id))

    def _apply_bleed(self, context: CardExecutionContext, effect: EffectSpec, power: int) -> AppliedEffect:
        if power <= 0:
            return self._not_registered(context, effect, power)
        return self._register(context, effect, power, BleedEffect(power, effect.duration, context.card.card_id))

    def _apply_counter(self, context: CardExecutionContext, effect: EffectSpec, power: int) -> AppliedEffect:
        return self._register(context, effect, power, CounterBuff(effect.duration, source_card_id=context.card.card_id))

    def _apply_attack_buff(self, context: CardExecutionContext, effect: EffectSpec, power: int) -> AppliedEffect:
        if power <= 0:
            return self._not_registered(context, effect, power)
        return self._register(context, effect, power, AttackPowerBuff(power, effect.duration, context.card.card_id))

    def _apply_invincibility(self, context: CardExecutionContext, effect: EffectSpec, power: int) -> AppliedEffect:
        return self._register(context, effect, power, InvincibilityBuff(effect.duration, context.card.card_id))

    def _apply_stun(self, context: CardExecutionContext, effect: EffectSpec, power: int) -> AppliedEffect:
        return self._register(context, effect, power, StunDebuff(effect.duration, context.card.card_id))

    def _register(self, context, effect, power, status) -> AppliedEffect:
        recipient = context.recipient(effect)
        registered = recipient.register_effect(status)
        return AppliedEffect(effect.kind, recipient.character_id, power, registered=registered)

    def _not_registered(self, context, effect, power) -> AppliedEffect:
        recipient = context.recipient(effect)
        return AppliedEffect(effect.kind, recipient.character_id, power, registered=False)

    def _publish(self, event):
        if self.bus is not None:
            self.bus.publish(event)
