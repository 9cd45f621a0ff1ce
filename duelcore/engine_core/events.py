"""
Event Bus - Notifications from the combat core to its collaborators.

The core publishes discrete, already-committed facts (health changed,
effect played, turn started, game over). Presentation, audio, statistics
and autosave subscribe and react on their own schedule; none of them can
veto or block a state change.

Delivery is synchronous and in subscription order. A subscriber that
raises is logged and skipped so the remaining subscribers still run.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, TYPE_CHECKING, TypeVar
import logging

if TYPE_CHECKING:
    from .state import Side, CharacterStats
    from .slots import SlotPosition
    from .turns import CombatPhase, TurnType
    from .effect_dsl import EffectKind

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")


# =============================================================================
# Base
# =============================================================================

@dataclass
class Event:
    """Base class for every combat notification."""

    @property
    def event_name(self) -> str:
        return type(self).__name__


Subscriber = Callable[[Event], None]


# =============================================================================
# Character Events
# =============================================================================

@dataclass
class HealthChanged(Event):
    """A character's health moved (damage or healing)."""
    character_id: str
    side: Side
    old_health: int
    new_health: int
    max_health: int

    @property
    def delta(self) -> int:
        return self.new_health - self.old_health


@dataclass
class GuardStateChanged(Event):
    """Guard flipped on or off."""
    character_id: str
    side: Side
    is_guarded: bool


@dataclass
class InvincibilityChanged(Event):
    character_id: str
    side: Side
    is_invincible: bool


@dataclass
class CharacterDied(Event):
    """Fired exactly once when a character's health reaches 0."""
    character_id: str
    side: Side


@dataclass
class ResourceChanged(Event):
    character_id: str
    resource_name: str
    old_amount: int
    new_amount: int
    max_amount: int


# =============================================================================
# Card Events
# =============================================================================

@dataclass
class CardDrawn(Event):
    instance_id: str
    card_id: str
    owner: Side


@dataclass
class CardPlayed(Event):
    """A card left the hand and now sits in a combat slot."""
    instance_id: str
    card_id: str
    owner: Side
    position: SlotPosition
    turn_number: int


@dataclass
class CardResolved(Event):
    """A queued card finished resolving (all, some or none of its effects ran)."""
    instance_id: str
    card_id: str
    owner: Side
    position: SlotPosition
    effects_applied: int
    aborted: bool = False


@dataclass
class CardDiscarded(Event):
    instance_id: str
    card_id: str
    owner: Side


@dataclass
class DeckShuffled(Event):
    owner: Side
    card_count: int


@dataclass
class DeckRecycled(Event):
    """The discard pile was shuffled back into an empty deck."""
    owner: Side
    card_count: int


@dataclass
class EffectPlayed(Event):
    """
    One effect of a card was applied.

    This is the hook for per-effect sound, VFX and UI feedback.
    """
    instance_id: str
    card_id: str
    kind: EffectKind
    source_id: str
    recipient_id: str
    power: int
    hits: int = 1


@dataclass
class SlotChanged(Event):
    position: SlotPosition
    card_id: str | None
    owner: Side | None


# =============================================================================
# Turn / Combat Events
# =============================================================================

@dataclass
class CombatStarted(Event):
    first_turn: TurnType
    enemy_id: str


@dataclass
class TurnStarted(Event):
    turn_number: int
    turn_type: TurnType


@dataclass
class TurnCompleted(Event):
    turn_number: int
    turn_type: TurnType


@dataclass
class PhaseChanged(Event):
    old_phase: CombatPhase
    new_phase: CombatPhase


@dataclass
class EnemySpawned(Event):
    enemy_id: str
    character_id: str
    enemy_name: str


@dataclass
class EnemyDefeated(Event):
    enemy_id: str
    character_id: str
    turn_number: int


@dataclass
class RewardRequested(Event):
    """Ask the reward layer to grant the reward for a defeated enemy."""
    enemy_id: str
    turn_number: int


@dataclass
class StageAdvanced(Event):
    stage_id: str
    defeated_count: int
    next_enemy_id: str | None


@dataclass
class GameOver(Event):
    victory: bool
    turn_number: int
    reason: str = ""


# =============================================================================
# Event Bus
# =============================================================================

@dataclass
class EventBus:
    """
    Synchronous publish/subscribe hub.

    Subscribing to a base class receives all of its subclasses, so
    subscribe(Event, fn) observes everything.

    Usage:
        bus = EventBus()
        bus.subscribe(HealthChanged, lambda e: print(e.delta))
        bus.publish(HealthChanged("p1", Side.PLAYER, 10, 6, 10))
    """
    record_history: bool = True
    history_limit: int = 1000
    _subscribers: dict[type, list[Subscriber]] = field(default_factory=dict)
    _history: list[Event] = field(default_factory=list)

    def subscribe(self, event_type: type[E], callback: Callable[[E], Any]) -> Callable[[], bool]:
        """
        Register callback for event_type.

        Returns a zero-argument function that removes the subscription.
        """
        self._subscribers.setdefault(event_type, []).append(callback)
        return lambda: self.unsubscribe(event_type, callback)

    def unsubscribe(self, event_type: type[Event], callback: Callable[..., Any]) -> bool:
        """Remove a subscription. Returns False if it was not registered."""
        callbacks = self._subscribers.get(event_type, [])
        if callback in callbacks:
            callbacks.remove(callback)
            return True
        return False

    def publish(self, event: Event) -> int:
        """
        Deliver event to every matching subscriber.

        Returns the number of subscribers that handled it without raising.
        """
        if self.record_history:
            self._history.append(event)
            if len(self._history) > self.history_limit:
                del self._history[: len(self._history) - self.history_limit]

        delivered = 0
        for event_type in type(event).__mro__:
            # Snapshot the list: a callback may unsubscribe itself
            for callback in list(self._subscribers.get(event_type, ())):
                try:
                    callback(event)
                except Exception:
                    logger.exception("Subscriber %r failed on %s", callback, event.event_name)
                    continue
                delivered += 1
        return delivered

    def subscriber_count(self, event_type: type[Event] | None = None) -> int:
        if event_type is None:
            return sum(len(callbacks) for callbacks in self._subscribers.values())
        return len(self._subscribers.get(event_type, []))

    @property
    def history(self) -> list[Event]:
        return list(self._history)

    def events_of(self, event_type: type[E]) -> list[E]:
        """History filtered to one event type (subclasses included)."""
        return [event for event in self._history if isinstance(event, event_type)]

    def clear_history(self):
        self._history.clear()
