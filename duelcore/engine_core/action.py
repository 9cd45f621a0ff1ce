"""
Action System - Commands, payloads and results.

Actions are the serialized command path into a combat session. Outer
layers that run on other threads (an HTTP server, a UI loop) build an
Action and hand it to the Reducer, which applies commands one at a time.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .slots import SlotPosition
from .state import Side


class ActionType(Enum):
    """Commands a session accepts."""
    # Card actions
    DRAW = "draw"
    PLAY_CARD = "play_card"
    DISCARD = "discard"
    SHUFFLE_DECK = "shuffle_deck"
    MOVE_SLOT = "move_slot"
    EXECUTE_SLOT = "execute_slot"

    # Turn actions
    END_TURN = "end_turn"
    REGISTER_GUARD = "register_guard"
    RESERVE_ENEMY_SLOT = "reserve_enemy_slot"

    # System actions
    PAUSE = "pause"
    RESUME = "resume"


@dataclass
class ActionPayload:
    """
    Parameters for an action.

    Different action types use different fields; the reducer validates.
    """
    side: Side | None = None
    instance_id: str | None = None
    position: SlotPosition | None = None
    target_position: SlotPosition | None = None
    params: dict[str, Any] = field(default_factory=dict)


@dataclass
class Action:
    """
    A command for the reducer.

    Successful actions are kept in the reducer's history in the order
    they were applied.
    """
    action_type: ActionType
    payload: ActionPayload = field(default_factory=ActionPayload)
    action_id: str | None = None

    @classmethod
    def draw(cls, side: Side = Side.PLAYER) -> Action:
        return cls(ActionType.DRAW, ActionPayload(side=side))

    @classmethod
    def play_card(cls, instance_id: str, position: SlotPosition | None = None) -> Action:
        """Factory for playing a hand card into a combat slot."""
        return cls(ActionType.PLAY_CARD, ActionPayload(instance_id=instance_id, position=position))

    @classmethod
    def discard(cls, instance_id: str) -> Action:
        return cls(ActionType.DISCARD, ActionPayload(instance_id=instance_id))

    @classmethod
    def shuffle_deck(cls, side: Side = Side.PLAYER) -> Action:
        return cls(ActionType.SHUFFLE_DECK, ActionPayload(side=side))

    @classmethod
    def move_slot(cls, from_position: SlotPosition, to_position: SlotPosition) -> Action:
        return cls(ActionType.MOVE_SLOT, ActionPayload(position=from_position, target_position=to_position))

    @classmethod
    def execute_slot(cls, position: SlotPosition) -> Action:
        return cls(ActionType.EXECUTE_SLOT, ActionPayload(position=position))

    @classmethod
    def end_turn(cls) -> Action:
        return cls(ActionType.END_TURN)

    @classmethod
    def register_guard(cls) -> Action:
        return cls(ActionType.REGISTER_GUARD)

    @classmethod
    def reserve_enemy_slot(cls, position: SlotPosition | None = None) -> Action:
        return cls(ActionType.RESERVE_ENEMY_SLOT, ActionPayload(position=position))

    @classmethod
    def pause(cls) -> Action:
        return cls(ActionType.PAUSE)

    @classmethod
    def resume(cls) -> Action:
        return cls(ActionType.RESUME)


@dataclass
class ActionResult:
    """
    Result of applying an action.

    Contains:
    - Whether the action succeeded
    - Error text and code (if it failed)
    - Human-readable changes (for logs and UI)
    - Action-specific data (the played card, the new turn number, ...)
    """
    success: bool
    error: str | None = None
    error_code: str | None = None
    changes: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def failure(cls, error: str, error_code: str | None = None, **data: Any) -> ActionResult:
        """Create a failure result."""
        return cls(success=False, error=error, error_code=error_code, data=data)

    @classmethod
    def ok(cls, changes: list[str] | None = None, **data: Any) -> ActionResult:
        """Create a success result."""
        return cls(success=True, changes=changes or [], data=data)
