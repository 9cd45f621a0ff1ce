"""
Combat Statistics - Aggregates a combat from its event stream.

Statistics only listen; they never touch session state. Attach to a
bus before the combat starts to see everything.
"""

from __future__ import annotations
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable

from ..engine_core.events import (
    CardPlayed,
    EffectPlayed,
    EnemyDefeated,
    EventBus,
    GameOver,
    HealthChanged,
    ResourceChanged,
    TurnStarted,
)
from ..engine_core.state import Side
from ..engine_core.turns import TurnType


@dataclass
class CombatStatistics:
    """Running totals for one combat."""
    player_turns: int = 0
    enemy_turns: int = 0
    damage_dealt: int = 0  # To enemies
    damage_taken: int = 0  # By the player
    healing_done: int = 0  # To the player
    enemy_healing: int = 0
    effects_applied: int = 0
    resource_spent: int = 0
    resource_gained: int = 0
    enemies_defeated: int = 0
    cards_played: Counter = field(default_factory=Counter)
    enemy_cards_played: Counter = field(default_factory=Counter)
    outcome: str | None = None
    _unsubscribers: list[Callable[[], None]] = field(default_factory=list, repr=False)

    def attach(self, bus: EventBus) -> CombatStatistics:
        handlers = {
            TurnStarted: self._on_turn_started,
            HealthChanged: self._on_health_changed,
            CardPlayed: self._on_card_played,
            EffectPlayed: self._on_effect_played,
            ResourceChanged: self._on_resource_changed,
            EnemyDefeated: self._on_enemy_defeated,
            GameOver: self._on_game_over,
        }
        for event_type, handler in handlers.items():
            self._unsubscribers.append(bus.subscribe(event_type, handler))
        return self

    def detach(self):
        while self._unsubscribers:
            self._unsubscribers.pop()()

    @property
    def total_turns(self) -> int:
        return self.player_turns + self.enemy_turns

    def _on_turn_started(self, event: TurnStarted):
        if event.turn_type is TurnType.PLAYER:
            self.player_turns += 1
        else:
            self.enemy_turns += 1

    def _on_health_changed(self, event: HealthChanged):
        delta = event.delta
        if event.side is Side.PLAYER:
            if delta < 0:
                self.damage_taken -= delta
            else:
                self.healing_done += delta
        else:
            if delta < 0:
                self.damage_dealt -= delta
            else:
                self.enemy_healing += delta

    def _on_card_played(self, event: CardPlayed):
        if event.owner is Side.PLAYER:
            self.cards_played[event.card_id] += 1
        else:
            self.enemy_cards_played[event.card_id] += 1

    def _on_effect_played(self, event: EffectPlayed):
        self.effects_applied += 1

    def _on_resource_changed(self, event: ResourceChanged):
        change = event.new_amount - event.old_amount
        if change < 0:
            self.resource_spent -= change
        else:
            self.resource_gained += change

    def _on_enemy_defeated(self, event: EnemyDefeated):
        self.enemies_defeated += 1

    def _on_game_over(self, event: GameOver):
        self.outcome = "victory" if event.victory else "defeat"

    def snapshot(self) -> dict[str, Any]:
        """Plain-dict copy for JSON responses and logs."""
        return {
            "player_turns": self.player_turns,
            "enemy_turns": self.enemy_turns,
            "total_turns": self.total_turns,
            "damage_dealt": self.damage_dealt,
            "damage_taken": self.damage_taken,
            "healing_done": self.healing_done,
            "enemy_healing": self.enemy_healing,
            "effects_applied": self.effects_applied,
            "resource_spent": self.resource_spent,
            "resource_gained": self.resource_gained,
            "enemies_defeated": self.enemies_defeated,
            "cards_played": dict(self.cards_played),
            "enemy_cards_played": dict(self.enemy_cards_played),
            "outcome": self.outcome,
        }
