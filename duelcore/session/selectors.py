"""
Enemy Card Selection - Interface for choosing the enemy's plays.

A selector looks at the session and proposes one card to play. The
choice policy is pluggable; FirstReadyCardSelector is a deterministic
default good enough for tests and the CLI.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..engine_core.cards import check_playable
from ..engine_core.slots import COMBAT_ORDER, SlotPosition
from ..engine_core.state import Side

if TYPE_CHECKING:
    from ..engine_core.combat import CombatSession


@dataclass
class CardChoice:
    """
    A card the selector wants played.

    position None lets the session pick (the reserved slot, if any).
    """
    instance_id: str
    position: SlotPosition | None = None
    explanation: str = ""


class EnemyCardSelector(ABC):
    """
    Abstract base class for enemy card policies.

    Implementations can range from fixed scripts to search.
    """

    @abstractmethod
    def select(self, session: CombatSession) -> CardChoice | None:
        """
        Pick the next card for the enemy.

        Returns None when the enemy should stop playing this turn.
        """
        pass

    def get_name(self) -> str:
        return self.__class__.__name__


class FirstReadyCardSelector(EnemyCardSelector):
    """
    Plays hand cards in hand-slot order, skipping any that cannot be paid for.

    Defaults to the enemy side; the CLI's autoplay also drives the player with it.
    """

    def __init__(self, side: Side = Side.ENEMY):
        self.side = side

    def select(self, session: CombatSession) -> CardChoice | None:
        character = session.character(self.side)
        if character is None or character.is_dead or character.is_stunned:
            return None
        if session.acting_side is not self.side:
            return None

        reserved = session.turn_manager.reserved_enemy_slot
        if self.side is Side.ENEMY and reserved is not None:
            position = reserved
        else:
            position = _first_free(session, exclude=reserved)
        if position is None:
            return None

        hand = sorted(session.hand(self.side), key=_hand_order)
        for card in hand:
            if check_playable(card, character.resource) is None:
                return CardChoice(card.instance_id, position, explanation=f"first ready card: {card.name}")
        return None


def _first_free(session: CombatSession, exclude: SlotPosition | None = None) -> SlotPosition | None:
    for position in COMBAT_ORDER:
        if position is not exclude and session.slots.get_slot(position).is_empty:
            return position
    return None


def _hand_order(card) -> int:
    if card.hand_slot is None:
        return len(SlotPosition)
    return list(SlotPosition).index(card.hand_slot)
