"""
Slot Registry - Positional storage for hand, combat and character slots.

A slot holds at most one card or one character. The registry itself only
stores values; the combat session checks the one-slot-per-card rule
before it writes.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
import logging

from .errors import InvalidArgumentError, InvalidOperationError
from .state import Side

logger = logging.getLogger(__name__)

MAX_HAND_SIZE = 5


class SlotPosition(Enum):
    """Every addressable position on the table."""
    NONE = "none"

    # Shared combat line, front to back
    BATTLE_SLOT = "battle_slot"
    WAIT_SLOT_1 = "wait_slot_1"
    WAIT_SLOT_2 = "wait_slot_2"
    WAIT_SLOT_3 = "wait_slot_3"
    WAIT_SLOT_4 = "wait_slot_4"

    # Hands
    PLAYER_HAND_1 = "player_hand_1"
    PLAYER_HAND_2 = "player_hand_2"
    PLAYER_HAND_3 = "player_hand_3"
    PLAYER_HAND_4 = "player_hand_4"
    PLAYER_HAND_5 = "player_hand_5"
    ENEMY_HAND_1 = "enemy_hand_1"
    ENEMY_HAND_2 = "enemy_hand_2"
    ENEMY_HAND_3 = "enemy_hand_3"
    ENEMY_HAND_4 = "enemy_hand_4"
    ENEMY_HAND_5 = "enemy_hand_5"

    # Character placement
    PLAYER_CHARACTER = "player_character"
    ENEMY_CHARACTER = "enemy_character"

    @property
    def is_combat(self) -> bool:
        return self in COMBAT_ORDER

    @property
    def is_hand(self) -> bool:
        return self in _HAND_SIDES

    @property
    def is_character(self) -> bool:
        return self in (SlotPosition.PLAYER_CHARACTER, SlotPosition.ENEMY_CHARACTER)

    @property
    def hand_side(self) -> Side | None:
        """The side a hand position belongs to, None for non-hand positions."""
        return _HAND_SIDES.get(self)


COMBAT_ORDER: tuple[SlotPosition, ...] = (
    SlotPosition.BATTLE_SLOT,
    SlotPosition.WAIT_SLOT_1,
    SlotPosition.WAIT_SLOT_2,
    SlotPosition.WAIT_SLOT_3,
    SlotPosition.WAIT_SLOT_4,
)

_PLAYER_HAND = (
    SlotPosition.PLAYER_HAND_1,
    SlotPosition.PLAYER_HAND_2,
    SlotPosition.PLAYER_HAND_3,
    SlotPosition.PLAYER_HAND_4,
    SlotPosition.PLAYER_HAND_5,
)
_ENEMY_HAND = (
    SlotPosition.ENEMY_HAND_1,
    SlotPosition.ENEMY_HAND_2,
    SlotPosition.ENEMY_HAND_3,
    SlotPosition.ENEMY_HAND_4,
    SlotPosition.ENEMY_HAND_5,
)
_HAND_SIDES = {
    **{position: Side.PLAYER for position in _PLAYER_HAND},
    **{position: Side.ENEMY for position in _ENEMY_HAND},
}


def hand_positions(side: Side, count: int = MAX_HAND_SIZE) -> tuple[SlotPosition, ...]:
    """First `count` hand positions for a side."""
    if not 1 <= count <= MAX_HAND_SIZE:
        raise InvalidArgumentError(f"hand size must be in [1, {MAX_HAND_SIZE}] (got {count})")
    positions = _PLAYER_HAND if side is Side.PLAYER else _ENEMY_HAND
    return positions[:count]


def character_position(side: Side) -> SlotPosition:
    return SlotPosition.PLAYER_CHARACTER if side is Side.PLAYER else SlotPosition.ENEMY_CHARACTER


@dataclass(frozen=True)
class CombatSlot:
    """
    The value stored at one position.

    Holds a card instance id or a character id, never both.
    """
    position: SlotPosition
    card_id: str | None = None
    owner: Side | None = None
    character_id: str | None = None

    def __post_init__(self):
        if self.card_id is not None and self.character_id is not None:
            raise InvalidArgumentError(f"{self.position.value} cannot hold a card and a character")

    @property
    def is_empty(self) -> bool:
        return self.card_id is None and self.character_id is None

    def occupy_card(self, card_id: str, owner: Side) -> CombatSlot:
        return CombatSlot(self.position, card_id=card_id, owner=owner)

    def occupy_character(self, character_id: str, owner: Side) -> CombatSlot:
        return CombatSlot(self.position, owner=owner, character_id=character_id)

    def cleared(self) -> CombatSlot:
        return CombatSlot(self.position)


@dataclass
class SlotRegistry:
    """
    Map of position -> CombatSlot.

    Unset positions read back as empty slots.
    """
    _slots: dict[SlotPosition, CombatSlot] = field(default_factory=dict)

    def get_slot(self, position: SlotPosition) -> CombatSlot:
        """Return the slot at position; an empty slot if nothing was ever set."""
        return self._slots.get(position) or CombatSlot(position)

    def set_slot(self, slot: CombatSlot):
        """Overwrite the value stored at slot.position."""
        if slot is None:
            raise InvalidArgumentError("slot is required")
        if slot.position is SlotPosition.NONE:
            raise InvalidArgumentError("cannot store a slot at position NONE")
        if slot.is_empty:
            self._slots.pop(slot.position, None)
        else:
            self._slots[slot.position] = slot
        logger.debug("Slot %s -> %s", slot.position.value, slot.card_id or slot.character_id)

    def clear_slot(self, position: SlotPosition):
        self._slots.pop(position, None)

    def clear_all_slots(self):
        self._slots.clear()

    def occupied_slots(self) -> list[CombatSlot]:
        """Non-empty slots in declaration order of SlotPosition."""
        return [self._slots[p] for p in SlotPosition if p in self._slots]

    def find_card(self, card_id: str) -> CombatSlot | None:
        for slot in self._slots.values():
            if slot.card_id == card_id:
                return slot
        return None

    def positions_of(self, card_id: str) -> list[SlotPosition]:
        """Every position holding card_id; more than one means the registry is corrupt."""
        return [slot.position for slot in self._slots.values() if slot.card_id == card_id]

    def clear_owner(self, side: Side, positions: tuple[SlotPosition, ...] | None = None) -> list[CombatSlot]:
        """Empty every card slot owned by side (optionally limited to positions). Returns the removed slots."""
        removed = []
        for position, slot in list(self._slots.items()):
            if slot.owner is not side or slot.card_id is None:
                continue
            if positions is not None and position not in positions:
                continue
            removed.append(slot)
            del self._slots[position]
        return removed

    def move_card(self, from_position: SlotPosition, to_position: SlotPosition) -> CombatSlot:
        """Move a card between two positions. The destination must be empty."""
        if from_position == to_position:
            raise InvalidOperationError("source and destination slots are the same")
        source = self.get_slot(from_position)
        if source.card_id is None:
            raise InvalidOperationError(f"no card in {from_position.value}")
        if not self.get_slot(to_position).is_empty:
            raise InvalidOperationError(f"{to_position.value} is occupied")

        moved = CombatSlot(to_position, card_id=source.card_id, owner=source.owner)
        self.clear_slot(from_position)
        self.set_slot(moved)
        return moved

    def shift_forward(self) -> list[tuple[SlotPosition, SlotPosition]]:
        """
        Slide combat cards one step toward BATTLE_SLOT where the next slot is free.

        Processes front to back, so a gap closes one step per call.
        Returns the (from, to) moves made.
        """
        moves = []
        for index in range(1, len(COMBAT_ORDER)):
            source, destination = COMBAT_ORDER[index], COMBAT_ORDER[index - 1]
            if self.get_slot(source).card_id is not None and self.get_slot(destination).is_empty:
                self.move_card(source, destination)
                moves.append((source, destination))
        return moves

    def __len__(self):
        return len(self._slots)
