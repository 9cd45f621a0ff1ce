"""
Snapshot / Restore - Serializable capture of a combat session.

capture_snapshot() reads committed state only. restore_snapshot() is
atomic: it rebuilds every character, card, slot and turn into scratch
objects, checks them against each other, and only then swaps them into
the session. Any failure raises InvalidArgumentError and leaves the
session exactly as it was.

The snapshot covers turn number and history, phase, every slot, every
card (pile, order, cooldown, slot assignment) and every character
(stats, flags, resource, status effects). The RNG is not captured;
callers that need reproducible shuffles after a restore inject a fresh
seeded source.
"""

from __future__ import annotations
from typing import Optional, TYPE_CHECKING

from pydantic import BaseModel, Field, ValidationError

from .cards import ZONE_NAMES, CardInstance, CardZones
from .combat import SessionState
from .errors import InvalidArgumentError
from .slots import CombatSlot, SlotPosition, SlotRegistry, character_position, hand_positions
from .stage import ProgressState, Stage
from .state import Character, CharacterStats, Resource, Side
from .status_effects import rebuild_effect
from .turns import CombatPhase, PhaseMachine, Turn, TurnManager, TurnType

if TYPE_CHECKING:
    from .combat import CombatSession

SCHEMA_VERSION = 1


# =============================================================================
# Models
# =============================================================================

class StatusEffectSnapshot(BaseModel):
    kind: str
    remaining_turns: int = Field(ge=1)
    amount: int = 0
    source_card_id: Optional[str] = None


class ResourceSnapshot(BaseModel):
    name: str
    max_amount: int = Field(ge=0)
    current_amount: int = Field(ge=0)


class CharacterSnapshot(BaseModel):
    character_id: str
    name: str
    side: Side
    max_health: int = Field(ge=1)
    current_health: int = Field(ge=0)
    is_guarded: bool = False
    is_invincible: bool = False
    is_stunned: bool = False
    definition_id: Optional[str] = None
    resource: Optional[ResourceSnapshot] = None
    effects: list[StatusEffectSnapshot] = Field(default_factory=list)


class CardSnapshot(BaseModel):
    """One card. Cards are listed pile by pile, bottom to top."""
    instance_id: str
    card_id: str
    owner: Side
    zone: str = Field(description="deck, hand, in_play or discard")
    current_cooldown: int = Field(default=0, ge=0)
    hand_slot: Optional[SlotPosition] = None
    combat_slot: Optional[SlotPosition] = None
    power_bonus: int = 0


class SlotSnapshot(BaseModel):
    position: SlotPosition
    card_id: Optional[str] = None
    owner: Optional[Side] = None
    character_id: Optional[str] = None


class TurnSnapshot(BaseModel):
    number: int = Field(ge=1)
    turn_type: TurnType
    phase: CombatPhase
    is_completed: bool = False


class StageSnapshot(BaseModel):
    stage_id: str
    current_index: int = Field(ge=0)
    progress_state: ProgressState


class CombatSnapshot(BaseModel):
    """Everything needed to put a session back exactly where it was."""
    schema_version: int = SCHEMA_VERSION
    phase: CombatPhase
    paused_from: Optional[CombatPhase] = None
    turn_number: int = Field(ge=0)
    turns: list[TurnSnapshot] = Field(default_factory=list)
    characters: list[CharacterSnapshot] = Field(default_factory=list)
    cards: list[CardSnapshot] = Field(default_factory=list)
    slots: list[SlotSnapshot] = Field(default_factory=list)
    reserved_enemy_slot: Optional[SlotPosition] = None
    player_guard_registered: bool = False
    next_instance_number: int = Field(default=1, ge=1)
    pending_stage_advances: int = Field(default=0, ge=0)
    stage: Optional[StageSnapshot] = None


# =============================================================================
# Capture
# =============================================================================

def capture_snapshot(session: CombatSession) -> CombatSnapshot:
    """Read the session's committed state into a CombatSnapshot."""
    if session is None:
        raise InvalidArgumentError("session is required")

    characters = [_capture_character(c) for c in (session.player, session.enemy) if c is not None]

    cards = []
    for side in Side:
        zones = session.zones(side)
        for zone_name in ZONE_NAMES:
            for card in zones.pile(zone_name):
                cards.append(CardSnapshot(
                    instance_id=card.instance_id,
                    card_id=card.card_id,
                    owner=card.owner,
                    zone=zone_name,
                    current_cooldown=card.current_cooldown,
                    hand_slot=card.hand_slot,
                    combat_slot=card.combat_slot,
                    power_bonus=card.power_bonus,
                ))

    slots = [
        SlotSnapshot(position=s.position, card_id=s.card_id, owner=s.owner, character_id=s.character_id)
        for s in session.slots.occupied_slots()
    ]

    turns = [
        TurnSnapshot(number=t.number, turn_type=t.turn_type, phase=t.phase, is_completed=t.is_completed)
        for t in session.turns
    ]

    stage = None
    if session.stage is not None:
        stage = StageSnapshot(
            stage_id=session.stage.stage_id,
            current_index=session.stage.current_index,
            progress_state=session.stage.progress_state,
        )

    return CombatSnapshot(
        phase=session.phase,
        paused_from=session.phases.paused_from,
        turn_number=session.current_turn_number,
        turns=turns,
        characters=characters,
        cards=cards,
        slots=slots,
        reserved_enemy_slot=session.turn_manager.reserved_enemy_slot,
        player_guard_registered=session.turn_manager.player_guard_registered,
        next_instance_number=session.next_instance_number,
        pending_stage_advances=session.pending_stage_advances,
        stage=stage,
    )


def _capture_character(character: Character) -> CharacterSnapshot:
    resource = None
    if character.resource is not None:
        resource = ResourceSnapshot(
            name=character.resource.name,
            max_amount=character.resource.max_amount,
            current_amount=character.resource.current_amount,
        )
    return CharacterSnapshot(
        character_id=character.character_id,
        name=character.name,
        side=character.side,
        max_health=character.max_health,
        current_health=character.current_health,
        is_guarded=character.is_guarded,
        is_invincible=character.is_invincible,
        is_stunned=character.is_stunned,
        definition_id=character.definition_id,
        resource=resource,
        effects=[
            StatusEffectSnapshot(
                kind=effect.kind,
                remaining_turns=effect.remaining_turns,
                amount=effect.amount,
                source_card_id=effect.source_card_id,
            )
            for effect in character.effects
        ],
    )


# =============================================================================
# Restore
# =============================================================================

def restore_snapshot(session: CombatSession, snapshot: CombatSnapshot | dict) -> None:
    """
    Replace the session's state with snapshot.

    Either the whole snapshot is applied or nothing is.
    """
    if session is None:
        raise InvalidArgumentError("session is required")
    if snapshot is None:
        raise InvalidArgumentError("snapshot is required")
    if isinstance(snapshot, dict):
        try:
            snapshot = CombatSnapshot.model_validate(snapshot)
        except ValidationError as e:
            raise InvalidArgumentError(f"Malformed snapshot: {e}") from e
    if snapshot.schema_version != SCHEMA_VERSION:
        raise InvalidArgumentError(f"Unsupported snapshot schema version {snapshot.schema_version}")

    characters = _build_characters(snapshot)
    zones, cards_by_id = _build_cards(session, snapshot)
    slots = _build_slots(snapshot, characters, cards_by_id)
    turns = _build_turns(snapshot)
    stage_index, stage_state = _check_stage(session, snapshot)

    if snapshot.reserved_enemy_slot is not None and not snapshot.reserved_enemy_slot.is_combat:
        raise InvalidArgumentError("reserved_enemy_slot must be a combat slot")

    session.install_state(SessionState(
        characters=characters,
        zones=zones,
        slots=slots,
        phase=snapshot.phase,
        paused_from=snapshot.paused_from,
        turns=turns,
        reserved_enemy_slot=snapshot.reserved_enemy_slot,
        player_guard_registered=snapshot.player_guard_registered,
        next_instance_number=snapshot.next_instance_number,
        pending_stage_advances=snapshot.pending_stage_advances,
        stage_index=stage_index,
        stage_state=stage_state,
    ))


def _build_characters(snapshot: CombatSnapshot) -> dict[Side, Character]:
    characters: dict[Side, Character] = {}
    for data in snapshot.characters:
        if data.side in characters:
            raise InvalidArgumentError(f"Snapshot has two {data.side.value} characters")
        resource = None
        if data.resource is not None:
            resource = Resource(data.resource.name, data.resource.max_amount, data.resource.current_amount)
        character = Character(
            character_id=data.character_id,
            name=data.name,
            side=data.side,
            stats=CharacterStats(data.max_health, data.current_health),
            resource=resource,
            is_guarded=data.is_guarded,
            is_invincible=data.is_invincible,
            is_stunned=data.is_stunned,
            definition_id=data.definition_id,
        )
        character.restore_effects([
            rebuild_effect(e.kind, e.remaining_turns, e.amount, e.source_card_id) for e in data.effects
        ])
        characters[data.side] = character
    return characters


def _build_cards(session: CombatSession, snapshot: CombatSnapshot) -> tuple[dict[Side, CardZones], dict[str, CardInstance]]:
    zones = {side: CardZones(side) for side in Side}
    cards_by_id: dict[str, CardInstance] = {}

    for data in snapshot.cards:
        if data.instance_id in cards_by_id:
            raise InvalidArgumentError(f"Duplicate card instance {data.instance_id}")
        if data.zone not in ZONE_NAMES:
            raise InvalidArgumentError(f"Card {data.instance_id} is in unknown zone {data.zone!r}")
        definition = session.content.get_card(data.card_id)
        if definition is None:
            raise InvalidArgumentError(f"Card {data.instance_id} references unknown card {data.card_id}")

        if data.zone == "hand":
            if data.hand_slot not in hand_positions(data.owner, session.config.hand_size) or data.combat_slot:
                raise InvalidArgumentError(f"Hand card {data.instance_id} needs one of its side's hand slots")
        elif data.zone == "in_play":
            if data.combat_slot is None or not data.combat_slot.is_combat or data.hand_slot:
                raise InvalidArgumentError(f"In-play card {data.instance_id} needs a combat slot")
        elif data.hand_slot is not None or data.combat_slot is not None:
            raise InvalidArgumentError(f"Card {data.instance_id} in {data.zone} cannot hold a slot")

        card = CardInstance(
            instance_id=data.instance_id,
            definition=definition,
            owner=data.owner,
            current_cooldown=data.current_cooldown,
            hand_slot=data.hand_slot,
            combat_slot=data.combat_slot,
            power_bonus=data.power_bonus,
        )
        zones[data.owner].pile(data.zone).push(card)
        cards_by_id[card.instance_id] = card

    return zones, cards_by_id


def _build_slots(snapshot: CombatSnapshot, characters: dict[Side, Character],
                 cards_by_id: dict[str, CardInstance]) -> SlotRegistry:
    registry = SlotRegistry()
    seen_positions: set[SlotPosition] = set()
    seen_cards: set[str] = set()

    for data in snapshot.slots:
        if data.position in seen_positions:
            raise InvalidArgumentError(f"Slot {data.position.value} appears twice")
        seen_positions.add(data.position)
        slot = CombatSlot(data.position, card_id=data.card_id, owner=data.owner, character_id=data.character_id)

        if slot.card_id is not None:
            card = cards_by_id.get(slot.card_id)
            if card is None:
                raise InvalidArgumentError(f"Slot {slot.position.value} holds unknown card {slot.card_id}")
            if slot.card_id in seen_cards:
                raise InvalidArgumentError(f"Card {slot.card_id} occupies more than one slot")
            if slot.owner is not card.owner:
                raise InvalidArgumentError(f"Slot {slot.position.value} owner does not match its card")
            if slot.position not in (card.hand_slot, card.combat_slot):
                raise InvalidArgumentError(f"Card {slot.card_id} does not agree it sits in {slot.position.value}")
            seen_cards.add(slot.card_id)
        elif slot.character_id is not None:
            character = characters.get(slot.owner) if slot.owner else None
            if character is None or character.character_id != slot.character_id:
                raise InvalidArgumentError(f"Slot {slot.position.value} holds unknown character {slot.character_id}")
            if slot.position is not character_position(character.side):
                raise InvalidArgumentError(f"Character {slot.character_id} is in the wrong slot")
        registry.set_slot(slot)

    for card in cards_by_id.values():
        if (card.hand_slot or card.combat_slot) and card.instance_id not in seen_cards:
            raise InvalidArgumentError(f"Card {card.instance_id} claims a slot the registry does not hold")

    return registry


def _build_turns(snapshot: CombatSnapshot) -> list[Turn]:
    if snapshot.turn_number != len(snapshot.turns):
        raise InvalidArgumentError("turn_number must equal the number of turns")
    turns = [Turn(t.number, t.turn_type, t.phase, t.is_completed) for t in snapshot.turns]

    # Dry-run the same checks install_state will make
    TurnManager().restore(turns)
    PhaseMachine().restore(snapshot.phase, snapshot.paused_from)
    return turns


def _check_stage(session: CombatSession, snapshot: CombatSnapshot) -> tuple[int | None, ProgressState | None]:
    if session.stage is None:
        if snapshot.stage is not None:
            raise InvalidArgumentError("Snapshot has stage progress but the session has no stage")
        return None, None
    if snapshot.stage is None:
        raise InvalidArgumentError("Snapshot is missing stage progress")
    if snapshot.stage.stage_id != session.stage.stage_id:
        raise InvalidArgumentError(
            f"Snapshot is for stage {snapshot.stage.stage_id}, session is on {session.stage.stage_id}"
        )
    Stage(session.stage.definition).restore(snapshot.stage.current_index, snapshot.stage.progress_state)
    return snapshot.stage.current_index, snapshot.stage.progress_state


# =============================================================================
# JSON helpers
# =============================================================================

def snapshot_to_json(snapshot: CombatSnapshot, indent: int | None = None) -> str:
    return snapshot.model_dump_json(indent=indent)


def snapshot_from_json(text: str) -> CombatSnapshot:
    try:
        return CombatSnapshot.model_validate_json(text)
    except ValidationError as e:
        raise InvalidArgumentError(f"Malformed snapshot: {e}") from e
