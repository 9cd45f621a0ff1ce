"""
Per-turn status effects.

Each effect lives on a character and ticks once at the start of its
owner's turn. An effect reports itself expired once its remaining
turns reach zero; the character then drops it.
"""

from __future__ import annotations
from typing import TYPE_CHECKING

from .errors import InvalidArgumentError

if TYPE_CHECKING:
    from .state import Character


class PerTurnEffect:
    """Base class. Subclasses set `kind` and override the hooks they need."""

    kind = "effect"
    is_harmful = False
    adds_attack = False

    def __init__(self, duration: int = 1, source_card_id: str | None = None):
        if duration < 1:
            raise InvalidArgumentError(f"duration must be >= 1 (got {duration})")
        self.remaining_turns = duration
        self.source_card_id = source_card_id

    @property
    def is_expired(self) -> bool:
        return self.remaining_turns <= 0

    def on_register(self, character: Character):
        """Called once when the effect is attached."""

    def on_turn_start(self, character: Character):
        """Called once per owner turn start."""
        self.remaining_turns = max(0, self.remaining_turns - 1)

    @property
    def amount(self) -> int:
        return 0

    def __repr__(self):
        return f"{type(self).__name__}(remaining_turns={self.remaining_turns})"


class GuardBuff(PerTurnEffect):
    """Raises guard while active; drops it when the last guard buff expires."""

    kind = "guard"

    def on_register(self, character: Character):
        character.set_guarded(True)

    def on_turn_start(self, character: Character):
        super().on_turn_start(character)
        character.set_guarded(any(not e.is_expired for e in character.effects_of(GuardBuff)))


class InvincibilityBuff(PerTurnEffect):
    """Blocks every hit, guard-ignoring ones included."""

    kind = "invincibility"

    def on_register(self, character: Character):
        character.set_invincible(True)

    def on_turn_start(self, character: Character):
        super().on_turn_start(character)
        character.set_invincible(any(not e.is_expired for e in character.effects_of(InvincibilityBuff)))


class BleedEffect(PerTurnEffect):
    """Deals fixed guard-ignoring damage at each of the owner's turn starts."""

    kind = "bleed"
    is_harmful = True

    def __init__(self, amount: int, duration: int = 1, source_card_id: str | None = None):
        super().__init__(duration, source_card_id)
        if amount <= 0:
            raise InvalidArgumentError(f"bleed amount must be > 0 (got {amount})")
        self._amount = amount

    @property
    def amount(self) -> int:
        return self._amount

    def on_turn_start(self, character: Character):
        if character.is_alive:
            character.take_damage_ignore_guard(self._amount)
        super().on_turn_start(character)

    def __repr__(self):
        return f"BleedEffect(amount={self._amount}, remaining_turns={self.remaining_turns})"


class CounterBuff(PerTurnEffect):
    """While active, damage taken is reflected to the attacker."""

    kind = "counter"

    def __init__(self, duration: int = 1, reflect_percent: int = 100, source_card_id: str | None = None):
        super().__init__(duration, source_card_id)
        if not 0 < reflect_percent <= 100:
            raise InvalidArgumentError(f"reflect_percent must be in (0, 100] (got {reflect_percent})")
        self.reflect_percent = reflect_percent

    @property
    def amount(self) -> int:
        return self.reflect_percent

    def reflected(self, damage_taken: int) -> int:
        return damage_taken * self.reflect_percent // 100


class AttackPowerBuff(PerTurnEffect):
    """Adds a flat bonus to the owner's outgoing damage."""

    kind = "attack_buff"
    adds_attack = True

    def __init__(self, amount: int, duration: int = 1, source_card_id: str | None = None):
        super().__init__(duration, source_card_id)
        if amount <= 0:
            raise InvalidArgumentError(f"attack bonus must be > 0 (got {amount})")
        self._amount = amount

    @property
    def amount(self) -> int:
        return self._amount


class StunDebuff(PerTurnEffect):
    """The owner cannot play cards during the turn in which this ticks."""

    kind = "stun"
    is_harmful = True

    def on_turn_start(self, character: Character):
        character.is_stunned = True
        super().on_turn_start(character)


EFFECT_TYPES: dict[str, type[PerTurnEffect]] = {
    cls.kind: cls
    for cls in (GuardBuff, InvincibilityBuff, BleedEffect, CounterBuff, AttackPowerBuff, StunDebuff)
}


def rebuild_effect(kind: str, remaining_turns: int, amount: int = 0,
                   source_card_id: str | None = None) -> PerTurnEffect:
    """Recreate an effect from captured fields without running on_register."""
    effect_type = EFFECT_TYPES.get(kind)
    if effect_type is None:
        raise InvalidArgumentError(f"Unknown status effect kind: {kind}")
    if remaining_turns < 1:
        raise InvalidArgumentError(f"remaining_turns must be >= 1 (got {remaining_turns})")

    if effect_type in (BleedEffect, AttackPowerBuff):
        effect = effect_type(amount, duration=remaining_turns, source_card_id=source_card_id)
    elif effect_type is CounterBuff:
        effect = CounterBuff(duration=remaining_turns, reflect_percent=amount or 100,
                             source_card_id=source_card_id)
    else:
        effect = effect_type(duration=remaining_turns, source_card_id=source_card_id)
    return effect
