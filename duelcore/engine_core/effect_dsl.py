"""
Effect DSL - Declarative card content.

A CardDefinition is static, immutable and shared by every CardInstance
created from it. Its effects are EffectSpec records:
- Typed: each has an EffectKind the resolver dispatches on
- Ordered: an explicit non-negative `order`, ties broken by declaration order
- Targeted: SELF (the caster) or OPPONENT

Effects never run logic themselves - the engine's EffectResolver
interprets them.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum

from .errors import InvalidArgumentError


class EffectKind(Enum):
    """What an effect does when resolved."""
    DAMAGE = "damage"
    HEAL = "heal"
    GUARD = "guard"
    BLEED = "bleed"
    COUNTER = "counter"
    ATTACK_BUFF = "attack_buff"
    INVINCIBILITY = "invincibility"
    STUN = "stun"


class EffectTarget(Enum):
    """Who receives an effect, relative to the caster."""
    SELF = "self"
    OPPONENT = "opponent"


# Effects whose value is a magnitude; the rest only use duration
MAGNITUDE_KINDS = frozenset({EffectKind.DAMAGE, EffectKind.HEAL, EffectKind.BLEED, EffectKind.ATTACK_BUFF})

DEFAULT_TARGETS = {
    EffectKind.DAMAGE: EffectTarget.OPPONENT,
    EffectKind.HEAL: EffectTarget.SELF,
    EffectKind.GUARD: EffectTarget.SELF,
    EffectKind.BLEED: EffectTarget.OPPONENT,
    EffectKind.COUNTER: EffectTarget.SELF,
    EffectKind.ATTACK_BUFF: EffectTarget.SELF,
    EffectKind.INVINCIBILITY: EffectTarget.SELF,
    EffectKind.STUN: EffectTarget.OPPONENT,
}


@dataclass(frozen=True)
class EffectSpec:
    """
    A single effect on a card.

    Examples:
    - EffectSpec(EffectKind.DAMAGE, value=4, hits=2)
    - EffectSpec(EffectKind.BLEED, value=2, duration=3)
    - EffectSpec(EffectKind.GUARD, duration=1, order=0)
    """
    kind: EffectKind
    value: int = 0
    order: int = 0
    target: EffectTarget | None = None  # None means the kind's default
    hits: int = 1
    duration: int = 1
    ignore_guard: bool = False
    ignore_counter: bool = False
    description: str = ""

    def __post_init__(self):
        if self.order < 0:
            raise InvalidArgumentError(f"order must be >= 0 (got {self.order})")
        if self.value < 0:
            raise InvalidArgumentError(f"value must be >= 0 (got {self.value})")
        if self.hits < 1:
            raise InvalidArgumentError(f"hits must be >= 1 (got {self.hits})")
        if self.duration < 1:
            raise InvalidArgumentError(f"duration must be >= 1 (got {self.duration})")

    @property
    def resolved_target(self) -> EffectTarget:
        return self.target or DEFAULT_TARGETS[self.kind]

    @property
    def uses_magnitude(self) -> bool:
        return self.kind in MAGNITUDE_KINDS


@dataclass(frozen=True)
class CardDefinition:
    """
    Static card metadata.

    Immutable and shared by reference across every instance of the card.
    """
    card_id: str
    name: str
    description: str = ""
    effects: tuple[EffectSpec, ...] = ()
    resource_cost: int = 0
    base_cooldown: int = 0
    tags: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self):
        if not self.card_id:
            raise InvalidArgumentError("card_id is required")
        if self.resource_cost < 0:
            raise InvalidArgumentError(f"resource_cost must be >= 0 (got {self.resource_cost})")
        if self.base_cooldown < 0:
            raise InvalidArgumentError(f"base_cooldown must be >= 0 (got {self.base_cooldown})")
        # Accept lists from content authors
        object.__setattr__(self, "effects", tuple(self.effects))
        object.__setattr__(self, "tags", frozenset(self.tags))

    @property
    def has_cooldown(self) -> bool:
        return self.base_cooldown > 0

    def ordered_effects(self) -> list[EffectSpec]:
        """Effects sorted by `order`; equal orders keep declaration order."""
        indexed = list(enumerate(self.effects))
        indexed.sort(key=lambda pair: (pair[1].order, pair[0]))
        return [effect for _, effect in indexed]


# =============================================================================
# Factory functions for common effects
# =============================================================================

def damage(value: int, hits: int = 1, order: int = 0, ignore_guard: bool = False,
           ignore_counter: bool = False) -> EffectSpec:
    """Deal `value` damage `hits` times to the opponent."""
    return EffectSpec(
        EffectKind.DAMAGE, value=value, hits=hits, order=order,
        ignore_guard=ignore_guard, ignore_counter=ignore_counter,
    )


def heal(value: int, order: int = 0) -> EffectSpec:
    return EffectSpec(EffectKind.HEAL, value=value, order=order)


def guard(duration: int = 1, order: int = 0) -> EffectSpec:
    """Raise the caster's guard; it drops when the buff expires or absorbs a hit."""
    return EffectSpec(EffectKind.GUARD, duration=duration, order=order)


def bleed(value: int, duration: int = 2, order: int = 0) -> EffectSpec:
    return EffectSpec(EffectKind.BLEED, value=value, duration=duration, order=order)


def counter(duration: int = 1, order: int = 0) -> EffectSpec:
    return EffectSpec(EffectKind.COUNTER, duration=duration, order=order)


def attack_buff(value: int, duration: int = 2, order: int = 0) -> EffectSpec:
    return EffectSpec(EffectKind.ATTACK_BUFF, value=value, duration=duration, order=order)


def invincibility(duration: int = 1, order: int = 0) -> EffectSpec:
    return EffectSpec(EffectKind.INVINCIBILITY, duration=duration, order=order)


def stun(duration: int = 1, order: int = 0) -> EffectSpec:
    return EffectSpec(EffectKind.STUN, duration=duration, order=order)
