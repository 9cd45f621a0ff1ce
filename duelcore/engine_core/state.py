"""
Character State - HP, guard, resource pool and status effects.

One Character type covers both sides; the Side tag decides which
slots and hands belong to it. Stats and Resource are immutable values:
every change produces a new instance that replaces the old one.

Design principles:
- Mutations go through take_damage / heal / set_guarded only
- Death is derived from current health, never stored twice
- The death notification fires once per life
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING

from .errors import InvalidArgumentError, require, require_positive
from .events import (
    CharacterDied,
    GuardStateChanged,
    HealthChanged,
    InvincibilityChanged,
    ResourceChanged,
)

if TYPE_CHECKING:
    from .events import EventBus
    from .status_effects import PerTurnEffect


class Side(Enum):
    """Which side of the table a character, card or slot belongs to."""
    PLAYER = "player"
    ENEMY = "enemy"

    @property
    def opponent(self) -> Side:
        return Side.ENEMY if self is Side.PLAYER else Side.PLAYER


@dataclass(frozen=True)
class CharacterStats:
    """Health pair. Invariant: 0 <= current_health <= max_health, max_health >= 1."""
    max_health: int
    current_health: int

    def __post_init__(self):
        if self.max_health < 1:
            raise InvalidArgumentError(f"max_health must be >= 1 (got {self.max_health})")
        if not 0 <= self.current_health <= self.max_health:
            raise InvalidArgumentError(
                f"current_health must be in [0, {self.max_health}] (got {self.current_health})"
            )

    @classmethod
    def full(cls, max_health: int) -> CharacterStats:
        return cls(max_health=max_health, current_health=max_health)

    @property
    def is_dead(self) -> bool:
        return self.current_health == 0

    def with_current_health(self, value: int) -> CharacterStats:
        """Return new stats with current health clamped into range."""
        return CharacterStats(self.max_health, max(0, min(self.max_health, value)))


@dataclass(frozen=True)
class Resource:
    """A named pool (mana, charges). Invariant: 0 <= current_amount <= max_amount."""
    name: str
    max_amount: int
    current_amount: int

    def __post_init__(self):
        if self.max_amount < 0:
            raise InvalidArgumentError(f"max_amount must be >= 0 (got {self.max_amount})")
        if not 0 <= self.current_amount <= self.max_amount:
            raise InvalidArgumentError(
                f"current_amount must be in [0, {self.max_amount}] (got {self.current_amount})"
            )

    @classmethod
    def full(cls, name: str, max_amount: int) -> Resource:
        return cls(name=name, max_amount=max_amount, current_amount=max_amount)

    def with_current_amount(self, amount: int) -> Resource:
        return replace(self, current_amount=amount)

    def with_amounts(self, current_amount: int, max_amount: int) -> Resource:
        return Resource(self.name, max_amount=max_amount, current_amount=current_amount)

    def can_afford(self, cost: int) -> bool:
        return self.current_amount >= cost

    def spend(self, amount: int) -> Resource:
        """Return a new pool with amount removed. Overspending is a caller bug."""
        if amount < 0:
            raise InvalidArgumentError(f"amount must be >= 0 (got {amount})")
        if amount > self.current_amount:
            raise InvalidArgumentError(
                f"cannot spend {amount} {self.name}, only {self.current_amount} available"
            )
        return self.with_current_amount(self.current_amount - amount)

    def restore(self, amount: int) -> Resource:
        """Return a new pool refilled by amount, clamped at max."""
        if amount < 0:
            raise InvalidArgumentError(f"amount must be >= 0 (got {amount})")
        return self.with_current_amount(min(self.max_amount, self.current_amount + amount))


@dataclass(eq=False)
class Character:
    """
    A combatant.

    Owned by the combat session. When attached to an EventBus the
    character publishes HealthChanged, GuardStateChanged and
    CharacterDied itself, so every path that changes health reports it.
    """
    character_id: str
    name: str
    side: Side
    stats: CharacterStats
    resource: Resource | None = None
    is_guarded: bool = False
    is_invincible: bool = False
    is_stunned: bool = False
    definition_id: str | None = None  # EnemyDefinition id for spawned enemies
    bus: EventBus | None = field(default=None, repr=False)
    _effects: list[PerTurnEffect] = field(default_factory=list, init=False, repr=False)
    _death_reported: bool = field(default=False, init=False, repr=False)

    def __post_init__(self):
        require(self.character_id, "character_id")
        # A character restored at 0 HP has already had its death handled
        self._death_reported = self.stats.is_dead

    # -------------------------------------------------------------------------
    # Derived state
    # -------------------------------------------------------------------------

    @property
    def is_dead(self) -> bool:
        return self.stats.is_dead

    @property
    def is_alive(self) -> bool:
        return not self.stats.is_dead

    @property
    def current_health(self) -> int:
        return self.stats.current_health

    @property
    def max_health(self) -> int:
        return self.stats.max_health

    # -------------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------------

    def take_damage(self, amount: int) -> int:
        """
        Apply a guardable hit.

        A guarded character loses its guard instead of health. Returns the
        health actually removed.
        """
        require_positive(amount)
        if self.is_dead or self.is_invincible:
            return 0
        if self.is_guarded:
            self.set_guarded(False)
            return 0
        return self._change_health(-amount)

    def take_damage_ignore_guard(self, amount: int) -> int:
        """Apply a hit that bypasses guard. Returns the health actually removed."""
        require_positive(amount)
        if self.is_dead or self.is_invincible:
            return 0
        return self._change_health(-amount)

    def heal(self, amount: int) -> int:
        """Restore health up to max. Dead characters stay dead. Returns the health gained."""
        require_positive(amount)
        if self.is_dead:
            return 0
        return self._change_health(amount)

    def _change_health(self, delta: int) -> int:
        old_stats = self.stats
        self.stats = old_stats.with_current_health(old_stats.current_health + delta)
        changed = self.stats.current_health - old_stats.current_health

        if changed:
            self._publish(HealthChanged(
                character_id=self.character_id,
                side=self.side,
                old_health=old_stats.current_health,
                new_health=self.stats.current_health,
                max_health=self.stats.max_health,
            ))

        if self.stats.is_dead and not self._death_reported:
            self._death_reported = True
            self._publish(CharacterDied(character_id=self.character_id, side=self.side))

        return abs(changed)

    # -------------------------------------------------------------------------
    # Flags
    # -------------------------------------------------------------------------

    def set_guarded(self, guarded: bool) -> bool:
        """Set guard. Returns True only if the flag actually flipped."""
        if self.is_guarded == guarded:
            return False
        self.is_guarded = guarded
        self._publish(GuardStateChanged(self.character_id, self.side, guarded))
        return True

    def set_invincible(self, invincible: bool) -> bool:
        if self.is_invincible == invincible:
            return False
        self.is_invincible = invincible
        self._publish(InvincibilityChanged(self.character_id, self.side, invincible))
        return True

    def set_resource(self, resource: Resource):
        """Swap in a new resource value and report the change."""
        old = self.resource
        self.resource = resource
        if old is None or old.current_amount != resource.current_amount:
            self._publish(ResourceChanged(
                character_id=self.character_id,
                resource_name=resource.name,
                old_amount=old.current_amount if old else 0,
                new_amount=resource.current_amount,
                max_amount=resource.max_amount,
            ))

    # -------------------------------------------------------------------------
    # Per-turn effects
    # -------------------------------------------------------------------------

    @property
    def effects(self) -> tuple[PerTurnEffect, ...]:
        return tuple(self._effects)

    def register_effect(self, effect: PerTurnEffect) -> bool:
        """
        Attach a per-turn effect.

        Returns False when the effect is refused (dead character, or a
        harmful effect against an invincible one).
        """
        require(effect, "effect")
        if self.is_dead:
            return False
        if effect.is_harmful and self.is_invincible:
            return False
        self._effects.append(effect)
        effect.on_register(self)
        return True

    def tick_effects(self) -> list[PerTurnEffect]:
        """
        Run one turn-start tick over every registered effect.

        Walks the list back to front so expired entries can be removed
        in place. Returns the effects that expired.
        """
        self.is_stunned = False
        expired: list[PerTurnEffect] = []
        for index in range(len(self._effects) - 1, -1, -1):
            effect = self._effects[index]
            effect.on_turn_start(self)
            if effect.is_expired:
                del self._effects[index]
                expired.append(effect)
        return expired

    def has_effect(self, effect_type: type) -> bool:
        return any(isinstance(effect, effect_type) for effect in self._effects)

    def effects_of(self, effect_type: type) -> list:
        return [effect for effect in self._effects if isinstance(effect, effect_type)]

    def clear_effects(self):
        self._effects.clear()

    def restore_effects(self, effects: list[PerTurnEffect]):
        """Replace the effect list without triggering registration hooks (snapshot restore)."""
        self._effects = list(effects)

    @property
    def attack_bonus(self) -> int:
        return sum(getattr(effect, "amount", 0) for effect in self._effects if effect.adds_attack)

    def _publish(self, event):
        if self.bus is not None:
            self.bus.publish(event)
