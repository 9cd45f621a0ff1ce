"""
Card Instance & Lifecycle.

CardInstance is the mutable runtime record for one physical card; it
points at a shared, immutable CardDefinition.

Lifecycle:
    InDeck -> InHand -> Played -> (OnCooldown -> InHand) | Discarded

The functions in this module are the primitive moves. The combat
session sequences them and keeps the slot registry in sync.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, TYPE_CHECKING
import logging

from .errors import InvalidArgumentError, require
from .rng import RandomSource, fisher_yates_shuffle
from .state import Side

if TYPE_CHECKING:
    from .effect_dsl import CardDefinition, EffectSpec
    from .slots import SlotPosition
    from .state import Resource

logger = logging.getLogger(__name__)


class PlayRejection(Enum):
    """Why a card cannot be played right now. These are not errors."""
    ON_COOLDOWN = "on_cooldown"
    INSUFFICIENT_RESOURCE = "insufficient_resource"
    NOT_IN_HAND = "not_in_hand"
    NOT_YOUR_TURN = "not_your_turn"
    SLOT_OCCUPIED = "slot_occupied"
    SLOT_RESERVED = "slot_reserved"
    NOT_A_COMBAT_SLOT = "not_a_combat_slot"
    STUNNED = "stunned"
    OWNER_DEAD = "owner_dead"


@dataclass(eq=False)
class CardInstance:
    """
    One card at runtime.

    Note: identity is the instance_id; two instances of the same
    definition are different cards.
    """
    instance_id: str
    definition: CardDefinition
    owner: Side
    current_cooldown: int = 0
    hand_slot: SlotPosition | None = None
    combat_slot: SlotPosition | None = None
    power_bonus: int = 0  # Set by balancing layers (items, difficulty)

    def __post_init__(self):
        require(self.definition, "definition")
        if self.current_cooldown < 0:
            raise InvalidArgumentError(f"current_cooldown must be >= 0 (got {self.current_cooldown})")

    @property
    def card_id(self) -> str:
        return self.definition.card_id

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def is_ready(self) -> bool:
        return self.current_cooldown == 0

    def get_effect_power(self, effect: EffectSpec) -> int:
        """Magnitude for one effect of this card, including the instance's power bonus."""
        return max(0, effect.value + self.power_bonus)

    def activate_cooldown(self):
        """Start the cooldown once the card has left the hand."""
        if self.definition.has_cooldown:
            self.current_cooldown = self.definition.base_cooldown

    def tick_cooldown(self) -> bool:
        """Reduce cooldown by one. Returns True if it changed."""
        if self.current_cooldown > 0:
            self.current_cooldown -= 1
            return True
        return False

    def __repr__(self):
        return f"CardInstance({self.instance_id!r}, {self.card_id!r}, {self.owner.value}, cd={self.current_cooldown})"


@dataclass
class Pile:
    """
    Ordered list of cards. The tail is the top.

    Used for deck, hand, discard and in-play piles.
    """
    name: str
    cards: list[CardInstance] = field(default_factory=list)

    def push(self, card: CardInstance):
        self.cards.append(card)

    def pop(self) -> CardInstance | None:
        return self.cards.pop() if self.cards else None

    def remove(self, card: CardInstance) -> bool:
        """Remove card if present. Returns False when it was not here."""
        for index, existing in enumerate(self.cards):
            if existing is card:
                del self.cards[index]
                return True
        return False

    def contains(self, card: CardInstance) -> bool:
        return any(existing is card for existing in self.cards)

    def find(self, instance_id: str) -> CardInstance | None:
        for card in self.cards:
            if card.instance_id == instance_id:
                return card
        return None

    def clear(self) -> list[CardInstance]:
        removed, self.cards = self.cards, []
        return removed

    @property
    def is_empty(self) -> bool:
        return not self.cards

    @property
    def top(self) -> CardInstance | None:
        return self.cards[-1] if self.cards else None

    def __len__(self) -> int:
        return len(self.cards)

    def __iter__(self) -> Iterator[CardInstance]:
        return iter(list(self.cards))


ZONE_NAMES = ("deck", "hand", "in_play", "discard")


@dataclass
class CardZones:
    """Every pile one side owns."""
    owner: Side
    deck: Pile = field(default_factory=lambda: Pile("deck"))
    hand: Pile = field(default_factory=lambda: Pile("hand"))
    in_play: Pile = field(default_factory=lambda: Pile("in_play"))
    discard: Pile = field(default_factory=lambda: Pile("discard"))

    def pile(self, name: str) -> Pile:
        if name not in ZONE_NAMES:
            raise InvalidArgumentError(f"Unknown zone: {name}")
        return getattr(self, name)

    def locate(self, card: CardInstance) -> str | None:
        """Name of the pile currently holding card, or None."""
        for name in ZONE_NAMES:
            if self.pile(name).contains(card):
                return name
        return None

    def find(self, instance_id: str) -> CardInstance | None:
        for name in ZONE_NAMES:
            card = self.pile(name).find(instance_id)
            if card is not None:
                return card
        return None

    def all_cards(self) -> list[CardInstance]:
        return [card for name in ZONE_NAMES for card in self.pile(name)]

    def clear(self):
        for name in ZONE_NAMES:
            self.pile(name).clear()


# =============================================================================
# Lifecycle primitives
# =============================================================================

def draw_card(deck: Pile, hand: Pile) -> CardInstance | None:
    """
    Move the top (tail) card of deck into hand.

    Returns None on an empty deck - an expected condition, not an error.
    """
    require(deck, "deck")
    require(hand, "hand")
    card = deck.pop()
    if card is None:
        return None
    hand.push(card)
    return card


def check_playable(card: CardInstance, resource: Resource | None = None) -> PlayRejection | None:
    """Return why card cannot be played, or None if it can."""
    require(card, "card")
    if card.current_cooldown > 0:
        return PlayRejection.ON_COOLDOWN
    cost = card.definition.resource_cost
    if cost > 0 and (resource is None or not resource.can_afford(cost)):
        return PlayRejection.INSUFFICIENT_RESOURCE
    return None


def tick_cooldowns(hand: Pile) -> int:
    """Reduce every hand card's cooldown by one (floor 0). Returns how many changed."""
    require(hand, "hand")
    return sum(1 for card in hand if card.tick_cooldown())


def discard_card(card: CardInstance, hand: Pile, discard_pile: Pile | None = None) -> bool:
    """
    Remove card from hand, optionally appending it to discard_pile.

    A card that is not in hand is a silent no-op (returns False).
    """
    require(card, "card")
    require(hand, "hand")
    if not hand.remove(card):
        return False
    card.hand_slot = None
    card.combat_slot = None
    if discard_pile is not None:
        discard_pile.push(card)
    return True


def shuffle_deck(deck: Pile, rng: RandomSource):
    """Fisher-Yates shuffle of deck in place."""
    require(deck, "deck")
    fisher_yates_shuffle(deck.cards, rng)
    logger.debug("Shuffled %s (%d cards)", deck.name, len(deck))
