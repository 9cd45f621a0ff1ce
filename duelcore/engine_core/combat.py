"""
Combat Session - The single owner of all mutable combat state.

The session holds the characters, each side's card piles, the slot
registry, the phase machine, the turn history and the execution queue.
Every public method runs to completion before returning; there is no
internal concurrency and no waiting on wall-clock time.

Typical flow:
    session = CombatSession(content=catalog, rng=SeededRandomSource(7))
    session.add_player("Hero", deck_card_ids=[...])
    session.spawn_enemy(enemy_definition)
    session.start_combat()

    result = session.play_card(card.instance_id)
    session.end_turn()  # resolves the acting side's slots, starts the next turn

Faults (bad references, wrong sequencing) raise CombatError subclasses.
Expected outcomes (empty deck, card on cooldown) are return values.
"""

from __future__ import annotations
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING
import logging

from .cards import (
    CardInstance,
    CardZones,
    PlayRejection,
    check_playable,
    discard_card,
    draw_card,
    shuffle_deck,
    tick_cooldowns,
)
from .config import CombatConfig
from .effect_resolver import CardExecutionContext, EffectResolver, ResolutionReport
from .errors import InvalidArgumentError, InvalidOperationError, require
from .events import (
    CardDiscarded,
    CardDrawn,
    CardPlayed,
    CardResolved,
    CharacterDied,
    CombatStarted,
    DeckRecycled,
    DeckShuffled,
    EnemyDefeated,
    EnemySpawned,
    EventBus,
    GameOver,
    PhaseChanged,
    RewardRequested,
    SlotChanged,
    StageAdvanced,
    TurnCompleted,
    TurnStarted,
)
from .rng import RandomSource, SystemRandomSource
from .slots import COMBAT_ORDER, CombatSlot, SlotPosition, SlotRegistry, character_position, hand_positions
from .state import Character, CharacterStats, Resource, Side
from .status_effects import GuardBuff
from .turns import CombatPhase, PhaseMachine, Turn, TurnContext, TurnManager, TurnType

if TYPE_CHECKING:
    from .providers import CardContentProvider, EnemyDefinition, EnemySpawner
    from .stage import Stage

logger = logging.getLogger(__name__)

_TURN_PHASES = (CombatPhase.PLAYER_TURN, CombatPhase.ENEMY_TURN)


@dataclass
class PlayResult:
    """Outcome of play_card. A rejection is an expected condition, not an error."""
    success: bool
    card: CardInstance
    position: SlotPosition | None = None
    rejection: PlayRejection | None = None

    @classmethod
    def rejected(cls, card: CardInstance, rejection: PlayRejection) -> PlayResult:
        return cls(success=False, card=card, rejection=rejection)


@dataclass(frozen=True)
class ExecutionRequest:
    """A pending resolution of whatever card sits at position."""
    position: SlotPosition
    owner: Side


@dataclass
class ExecutionOutcome:
    request: ExecutionRequest
    report: ResolutionReport | None = None
    skipped_reason: str | None = None

    @property
    def skipped(self) -> bool:
        return self.report is None


@dataclass
class SessionState:
    """A complete replacement for a session's mutable state, built by snapshot restore."""
    characters: dict[Side, Character]
    zones: dict[Side, CardZones]
    slots: SlotRegistry
    phase: CombatPhase
    paused_from: CombatPhase | None
    turns: list[Turn]
    reserved_enemy_slot: SlotPosition | None
    player_guard_registered: bool
    next_instance_number: int
    pending_stage_advances: int
    stage_index: int | None = None
    stage_state: object | None = None  # ProgressState


class CombatSession:
    """
    Owns and sequences one combat.

    Collaborators are injected: card content, the enemy spawner, the RNG
    and the event bus. With a stage and auto_advance=True the session
    advances the stage and spawns the next enemy itself after each
    enemy death; otherwise callers settle defeats via advance_stage().
    """

    def __init__(
        self,
        content: CardContentProvider,
        config: CombatConfig | None = None,
        rng: RandomSource | None = None,
        bus: EventBus | None = None,
        stage: Stage | None = None,
        spawner: EnemySpawner | None = None,
        auto_advance: bool = True,
    ):
        self.content = require(content, "content")
        self.config = config or CombatConfig()
        self.rng = rng or SystemRandomSource()
        self.bus = bus or EventBus()
        self.stage = stage
        self.spawner = spawner
        self.auto_advance = auto_advance

        self.slots = SlotRegistry()
        self.phases = PhaseMachine()
        self.turn_manager = TurnManager()
        self.resolver = EffectResolver(bus=self.bus)

        self._characters: dict[Side, Character] = {}
        self._zones: dict[Side, CardZones] = {side: CardZones(side) for side in Side}
        self._queue: deque[ExecutionRequest] = deque()
        self._executing = False
        self._pending_advances = 0
        self._next_instance_number = 1
        self._spawn_count = 0

        self.bus.subscribe(CharacterDied, self._on_character_died)

    # =========================================================================
    # Read access
    # =========================================================================

    @property
    def phase(self) -> CombatPhase:
        return self.phases.phase

    @property
    def is_over(self) -> bool:
        return self.phases.is_terminal

    @property
    def player(self) -> Character | None:
        return self._characters.get(Side.PLAYER)

    @property
    def enemy(self) -> Character | None:
        return self._characters.get(Side.ENEMY)

    def character(self, side: Side) -> Character | None:
        return self._characters.get(side)

    def zones(self, side: Side) -> CardZones:
        return self._zones[side]

    def hand(self, side: Side) -> list[CardInstance]:
        return list(self._zones[side].hand)

    @property
    def current_turn(self) -> Turn | None:
        return self.turn_manager.current_turn

    @property
    def current_turn_number(self) -> int:
        return self.turn_manager.current_turn_number

    @property
    def turns(self) -> list[Turn]:
        return self.turn_manager.turns

    @property
    def turn_context(self) -> TurnContext | None:
        return self.turn_manager.context

    @property
    def pending_stage_advances(self) -> int:
        return self._pending_advances

    @property
    def queued_requests(self) -> tuple[ExecutionRequest, ...]:
        return tuple(self._queue)

    @property
    def acting_side(self) -> Side | None:
        turn = self.current_turn
        if turn is None or turn.is_completed:
            return None
        return turn.turn_type.side

    def find_card(self, instance_id: str) -> CardInstance | None:
        for zones in self._zones.values():
            card = zones.find(instance_id)
            if card is not None:
                return card
        return None

    def get_card(self, instance_id: str) -> CardInstance:
        """Like find_card, but a missing card is a caller error."""
        card = self.find_card(instance_id)
        if card is None:
            raise InvalidArgumentError(f"Unknown card instance: {instance_id}")
        return card

    # =========================================================================
    # Setup
    # =========================================================================

    def add_player(
        self,
        name: str,
        deck_card_ids: list[str],
        character_id: str = "player",
        max_health: int | None = None,
    ) -> Character:
        """Create the player character and its shuffled deck."""
        if Side.PLAYER in self._characters:
            raise InvalidOperationError("Player already added")
        resource = None
        if self.config.player_resource_max > 0:
            resource = Resource.full(self.config.resource_name, self.config.player_resource_max)

        player = Character(
            character_id=character_id,
            name=name,
            side=Side.PLAYER,
            stats=CharacterStats.full(max_health or self.config.player_max_health),
            resource=resource,
            bus=self.bus,
        )
        self._place_character(player)
        self._build_deck(Side.PLAYER, deck_card_ids)
        logger.info("Player %s joined with %d cards", name, len(deck_card_ids))
        return player

    def spawn_enemy(self, definition: EnemyDefinition) -> Character:
        """Put a new enemy on the table. The previous one must be dead or absent."""
        require(definition, "definition")
        current = self.enemy
        if current is not None and current.is_alive:
            raise InvalidOperationError(f"Enemy {current.character_id} is still alive")
        if self.phases.is_terminal:
            raise InvalidOperationError(f"Combat is over ({self.phase.value})")

        self._spawn_count += 1
        enemy = Character(
            character_id=f"enemy-{definition.enemy_id}-{self._spawn_count}",
            name=definition.name,
            side=Side.ENEMY,
            stats=CharacterStats.full(definition.max_health),
            definition_id=definition.enemy_id,
            bus=self.bus,
        )
        self._zones[Side.ENEMY].clear()
        self.slots.clear_owner(Side.ENEMY)
        self._place_character(enemy)
        self._build_deck(Side.ENEMY, list(definition.card_ids))
        self._refill_hand(Side.ENEMY)

        self.bus.publish(EnemySpawned(definition.enemy_id, enemy.character_id, enemy.name))
        logger.info("Enemy %s spawned (%d HP)", definition.enemy_id, definition.max_health)
        return enemy

    def _place_character(self, character: Character):
        character.bus = self.bus
        self._characters[character.side] = character
        self.slots.set_slot(
            CombatSlot(character_position(character.side)).occupy_character(character.character_id, character.side)
        )

    def _build_deck(self, side: Side, card_ids: list[str]):
        deck = self._zones[side].deck
        for card_id in card_ids:
            deck.push(self.create_instance(card_id, side))
        shuffle_deck(deck, self.rng)

    def create_instance(self, card_id: str, owner: Side) -> CardInstance:
        """New runtime card from the content provider's definition."""
        definition = self.content.get_card(card_id)
        if definition is None:
            raise InvalidArgumentError(f"Unknown card: {card_id}")
        instance_id = f"{owner.value}-{card_id}-{self._next_instance_number}"
        self._next_instance_number += 1
        return CardInstance(instance_id=instance_id, definition=definition, owner=owner)

    # =========================================================================
    # Phases
    # =========================================================================

    def change_phase(self, new_phase: CombatPhase) -> CombatPhase:
        """Explicit phase transition. Returns the previous phase."""
        old = self.phases.change_phase(new_phase)
        if self.phases.phase is not old:
            self.bus.publish(PhaseChanged(old, self.phases.phase))
            logger.debug("Phase %s -> %s", old.value, self.phases.phase.value)
        return old

    def pause(self):
        old = self.phases.pause()
        self.bus.publish(PhaseChanged(old, CombatPhase.PAUSED))

    def resume(self):
        self.phases.resume()
        self.bus.publish(PhaseChanged(CombatPhase.PAUSED, self.phases.phase))

    def end_combat(self):
        """Close the session. From an outcome phase this is the normal exit; otherwise it abandons."""
        if self.phases.is_paused:
            self.phases.resume()
        if self.phase is CombatPhase.ENDED:
            return
        self._queue.clear()
        self.change_phase(CombatPhase.ENDED)
        logger.info("Combat ended")

    def _ensure_running(self):
        if self.phases.is_paused:
            raise InvalidOperationError("Combat is paused")
        if self.phases.is_terminal:
            raise InvalidOperationError(f"Combat is over ({self.phase.value})")
        if self.phase is CombatPhase.NONE:
            raise InvalidOperationError("Combat has not started")

    def _ensure_turn_active(self):
        self._ensure_running()
        if not self.turn_manager.is_turn_active:
            raise InvalidOperationError("No turn is active")

    # =========================================================================
    # Turns
    # =========================================================================

    def start_combat(self, first_turn: TurnType | None = None) -> Turn:
        """Preparation: begin the stage, deal opening hands and start turn 1."""
        if self.phase is not CombatPhase.NONE:
            raise InvalidOperationError("Combat has already started")
        if self.player is None or self.player.is_dead:
            raise InvalidOperationError("Combat needs a living player")
        if self.enemy is None or self.enemy.is_dead:
            raise InvalidOperationError("Combat needs a living enemy")

        first = first_turn or self.config.first_turn
        if self.stage is not None:
            self.stage.begin()

        self.change_phase(CombatPhase.PREPARATION)
        for side in Side:
            self._refill_hand(side)

        self.bus.publish(CombatStarted(first, self.enemy.definition_id or self.enemy.character_id))
        logger.info("Combat started, %s goes first", first.value)
        return self.start_next_turn(first)

    def start_next_turn(self, turn_type: TurnType) -> Turn:
        """
        Open the next numbered turn for turn_type.

        Ticks the acting side's cooldowns and status effects, restores its
        resource and refills its hand.
        """
        require(turn_type, "turn_type")
        self._ensure_running()
        if self.turn_manager.is_turn_active:
            raise InvalidOperationError(
                f"Turn {self.current_turn_number} is still active - complete it first"
            )

        self.change_phase(turn_type.phase)
        turn = self.turn_manager.start_next_turn(turn_type, self.phase)
        self.bus.publish(TurnStarted(turn.number, turn_type))

        side = turn_type.side
        tick_cooldowns(self._zones[side].hand)

        character = self._characters.get(side)
        if character is not None and character.is_alive:
            if character.resource is not None and self.config.resource_regen_per_turn:
                character.set_resource(character.resource.restore(self.config.resource_regen_per_turn))
            if self.turn_manager.context.mark_ticked(character.character_id):
                character.tick_effects()

        if not self.phases.is_terminal and character is not None and character.is_alive:
            self._refill_hand(side)
        self._settle()
        return turn

    def complete_current_turn(self) -> Turn:
        if self.phases.is_paused:
            raise InvalidOperationError("Combat is paused")
        turn = self.turn_manager.complete_current_turn()
        if turn.turn_type is TurnType.ENEMY:
            self._release_registered_guard()
            self.turn_manager.reset_guard_and_reservation()
        self.bus.publish(TurnCompleted(turn.number, turn.turn_type))
        return turn

    def end_turn(self) -> Turn | None:
        """
        Resolve the acting side's combat slots front to back, complete
        the turn and start the other side's.

        Returns the new turn, or None when the combat ended.
        """
        self._ensure_turn_active()
        acting = self.current_turn.turn_type

        for position in COMBAT_ORDER:
            slot = self.slots.get_slot(position)
            if slot.card_id is not None and slot.owner is acting.side:
                self.enqueue_execution(position, acting.side)
        self.process_execution_queue()

        self.complete_current_turn()
        if self.phases.is_terminal:
            return None
        self.slots.shift_forward()
        self._sync_combat_slots()
        return self.start_next_turn(acting.other)

    # =========================================================================
    # Pre-commit mutators
    # =========================================================================

    def register_player_guard(self) -> bool:
        """Raise the player's guard ahead of the enemy's damage. False if already registered."""
        self._ensure_turn_active()
        if self.phase is CombatPhase.RESOLUTION:
            raise InvalidOperationError("Guard must be registered before resolution")
        player = self.player
        if player is None or player.is_dead:
            raise InvalidOperationError("No living player to guard")
        if not self.turn_manager.register_player_guard():
            return False
        player.set_guarded(True)
        return True

    def reserve_next_enemy_slot(self, position: SlotPosition | None = None) -> SlotPosition | None:
        """
        Claim the combat slot the enemy will play into next.

        Returns the reserved position, or None if no slot is free or one
        is already reserved.
        """
        self._ensure_turn_active()
        if position is None:
            position = self._first_free_combat_slot()
            if position is None:
                return None
        if not position.is_combat:
            raise InvalidArgumentError(f"{position.value} is not a combat slot")
        if not self.slots.get_slot(position).is_empty:
            return None
        if not self.turn_manager.reserve_next_enemy_slot(position):
            return None
        return position

    def _release_registered_guard(self):
        player = self.player
        if self.turn_manager.player_guard_registered and player is not None:
            if not player.has_effect(GuardBuff):
                player.set_guarded(False)

    # =========================================================================
    # Cards
    # =========================================================================

    def draw(self, side: Side) -> CardInstance | None:
        """Draw one card into side's hand. None if the deck is empty or the hand is full."""
        self._ensure_running()
        return self._draw(side)

    def shuffle_deck(self, side: Side):
        self._ensure_running()
        deck = self._zones[side].deck
        shuffle_deck(deck, self.rng)
        self.bus.publish(DeckShuffled(side, len(deck)))

    def discard(self, instance_id: str) -> bool:
        """Discard a hand card. A card not in hand is a no-op (False)."""
        self._ensure_running()
        card = self.get_card(instance_id)
        zones = self._zones[card.owner]
        hand_slot = card.hand_slot
        if not discard_card(card, zones.hand, zones.discard):
            return False
        if hand_slot is not None:
            self.slots.clear_slot(hand_slot)
        self.bus.publish(CardDiscarded(card.instance_id, card.card_id, card.owner))
        return True

    def play_card(self, instance_id: str, position: SlotPosition | None = None) -> PlayResult:
        """
        Move a hand card into a combat slot.

        Defaults: the enemy plays into its reserved slot, anyone else into
        the first free unreserved combat slot.
        """
        self._ensure_turn_active()
        if self.phase not in _TURN_PHASES:
            raise InvalidOperationError(f"Cards cannot be played during {self.phase.value}")

        card = self.get_card(instance_id)
        side = card.owner
        zones = self._zones[side]
        character = self._characters.get(side)
        reserved = self.turn_manager.reserved_enemy_slot

        if side is not self.acting_side:
            return PlayResult.rejected(card, PlayRejection.NOT_YOUR_TURN)
        if character is None or character.is_dead:
            return PlayResult.rejected(card, PlayRejection.OWNER_DEAD)
        if character.is_stunned:
            return PlayResult.rejected(card, PlayRejection.STUNNED)
        if not zones.hand.contains(card):
            return PlayResult.rejected(card, PlayRejection.NOT_IN_HAND)

        if position is None:
            if side is Side.ENEMY and reserved is not None:
                position = reserved
            else:
                position = self._first_free_combat_slot(exclude=reserved if side is Side.PLAYER else None)
            if position is None:
                return PlayResult.rejected(card, PlayRejection.SLOT_OCCUPIED)
        if not position.is_combat:
            return PlayResult.rejected(card, PlayRejection.NOT_A_COMBAT_SLOT)
        if not self.slots.get_slot(position).is_empty:
            return PlayResult.rejected(card, PlayRejection.SLOT_OCCUPIED)
        if side is Side.PLAYER and position is reserved:
            return PlayResult.rejected(card, PlayRejection.SLOT_RESERVED)

        rejection = check_playable(card, character.resource)
        if rejection is not None:
            logger.debug("Play of %s rejected: %s", card.instance_id, rejection.value)
            return PlayResult.rejected(card, rejection)

        stray = [p for p in self.slots.positions_of(card.instance_id) if p is not card.hand_slot]
        if stray:
            raise InvalidOperationError(f"{card.instance_id} already occupies {stray[0].value}")

        # Commit
        if card.hand_slot is not None:
            self.slots.clear_slot(card.hand_slot)
        zones.hand.remove(card)
        zones.in_play.push(card)
        card.hand_slot = None
        card.combat_slot = position
        self.slots.set_slot(CombatSlot(position).occupy_card(card.instance_id, side))
        card.activate_cooldown()

        cost = card.definition.resource_cost
        if cost > 0:
            character.set_resource(character.resource.spend(cost))
        if side is Side.ENEMY and position is reserved:
            self.turn_manager.reserved_enemy_slot = None

        self.bus.publish(SlotChanged(position, card.instance_id, side))
        self.bus.publish(CardPlayed(card.instance_id, card.card_id, side, position, self.current_turn_number))
        logger.info("%s played %s into %s", side.value, card.card_id, position.value)
        return PlayResult(success=True, card=card, position=position)

    def move_slot(self, from_position: SlotPosition, to_position: SlotPosition) -> CombatSlot:
        """Move the acting side's card between combat slots."""
        self._ensure_turn_active()
        if from_position is to_position:
            raise InvalidOperationError("Source and destination slots are the same")
        if not (from_position.is_combat and to_position.is_combat):
            raise InvalidArgumentError("Only combat slots can be moved between")
        source = self.slots.get_slot(from_position)
        if source.card_id is None:
            raise InvalidOperationError(f"No card in {from_position.value}")
        if source.owner is not self.acting_side:
            raise InvalidOperationError(f"The card in {from_position.value} is not the acting side's")

        moved = self.slots.move_card(from_position, to_position)
        self.get_card(moved.card_id).combat_slot = to_position
        self.bus.publish(SlotChanged(from_position, None, None))
        self.bus.publish(SlotChanged(to_position, moved.card_id, moved.owner))
        return moved

    def _draw(self, side: Side) -> CardInstance | None:
        zones = self._zones[side]
        free = self._free_hand_positions(side)
        if not free:
            return None

        card = draw_card(zones.deck, zones.hand)
        if card is None and self.config.recycle_discard_pile and not zones.discard.is_empty:
            recycled = zones.discard.clear()
            for returned in recycled:
                returned.current_cooldown = 0
                zones.deck.push(returned)
            shuffle_deck(zones.deck, self.rng)
            self.bus.publish(DeckRecycled(side, len(recycled)))
            card = draw_card(zones.deck, zones.hand)
        if card is None:
            return None

        self._seat_in_hand(card, free[0])
        self.bus.publish(CardDrawn(card.instance_id, card.card_id, side))
        return card

    def _refill_hand(self, side: Side):
        while len(self._zones[side].hand) < self.config.hand_size:
            if self._draw(side) is None:
                break

    def _seat_in_hand(self, card: CardInstance, position: SlotPosition):
        card.hand_slot = position
        card.combat_slot = None
        self.slots.set_slot(CombatSlot(position).occupy_card(card.instance_id, card.owner))

    def _free_hand_positions(self, side: Side) -> list[SlotPosition]:
        return [
            position for position in hand_positions(side, self.config.hand_size)
            if self.slots.get_slot(position).is_empty
        ]

    def _first_free_combat_slot(self, exclude: SlotPosition | None = None) -> SlotPosition | None:
        for position in COMBAT_ORDER:
            if position is not exclude and self.slots.get_slot(position).is_empty:
                return position
        return None

    def _sync_combat_slots(self):
        """Point each card's combat_slot at wherever the registry now holds it."""
        for position in COMBAT_ORDER:
            slot = self.slots.get_slot(position)
            if slot.card_id is not None:
                self.get_card(slot.card_id).combat_slot = position

    # =========================================================================
    # Execution queue
    # =========================================================================

    def enqueue_execution(self, position: SlotPosition, owner: Side) -> ExecutionRequest:
        """Append a resolution request. Requests drain strictly first-in, first-out."""
        require(position, "position")
        require(owner, "owner")
        if not position.is_combat:
            raise InvalidArgumentError(f"{position.value} is not a combat slot")
        request = ExecutionRequest(position, owner)
        self._queue.append(request)
        return request

    def process_execution_queue(self) -> list[ExecutionOutcome]:
        """Resolve every queued request in enqueue order."""
        if self._executing:
            raise InvalidOperationError("The execution queue is already being processed")
        self._ensure_running()

        outcomes: list[ExecutionOutcome] = []
        if not self._queue:
            return outcomes

        return_phase = self.phase
        if return_phase in _TURN_PHASES:
            self.change_phase(CombatPhase.RESOLUTION)

        self._executing = True
        try:
            while self._queue and not self.phases.is_terminal:
                outcomes.append(self._execute(self._queue.popleft()))
        finally:
            self._executing = False
            self._queue.clear()

        if self.phase is CombatPhase.RESOLUTION and return_phase in _TURN_PHASES:
            self.change_phase(return_phase)
        self._settle()
        return outcomes

    def execute_slot(self, position: SlotPosition) -> ExecutionOutcome:
        """Enqueue and immediately resolve one slot."""
        if self._executing:
            raise InvalidOperationError("A card is already executing")
        slot = self.slots.get_slot(position)
        if slot.card_id is None:
            raise InvalidOperationError(f"No card in {position.value}")
        self.enqueue_execution(position, slot.owner)
        outcomes = self.process_execution_queue()
        return outcomes[-1]

    def _execute(self, request: ExecutionRequest) -> ExecutionOutcome:
        slot = self.slots.get_slot(request.position)
        if slot.card_id is None:
            logger.warning("Skipping %s: slot is empty", request.position.value)
            return ExecutionOutcome(request, skipped_reason="slot_empty")
        if slot.owner is not request.owner:
            logger.warning("Skipping %s: owner mismatch", request.position.value)
            return ExecutionOutcome(request, skipped_reason="owner_mismatch")

        card = self.get_card(slot.card_id)
        source = self._characters.get(request.owner)
        if source is None:
            return ExecutionOutcome(request, skipped_reason="no_source")

        context = CardExecutionContext(card=card, source=source, target=self._characters.get(request.owner.opponent))
        report = self.resolver.resolve(context)
        self._retire(card, request.position)
        self.bus.publish(CardResolved(
            card.instance_id, card.card_id, card.owner, request.position,
            effects_applied=len(report.applied), aborted=report.aborted,
        ))
        return ExecutionOutcome(request, report=report)

    def _retire(self, card: CardInstance, position: SlotPosition):
        """After resolution a card goes back to hand (cooldown running) or to the discard pile."""
        zones = self._zones[card.owner]
        if self.slots.get_slot(position).card_id == card.instance_id:
            self.slots.clear_slot(position)
            self.bus.publish(SlotChanged(position, None, None))
        if not zones.in_play.remove(card):
            # Vanished mid-resolution (owner died)
            return
        card.combat_slot = None

        free = self._free_hand_positions(card.owner)
        if card.definition.has_cooldown and free:
            zones.hand.push(card)
            self._seat_in_hand(card, free[0])
        else:
            zones.discard.push(card)

    # =========================================================================
    # Death and stage progression
    # =========================================================================

    def _on_character_died(self, event: CharacterDied):
        character = self._characters.get(event.side)
        if character is None or character.character_id != event.character_id:
            return
        if event.side is Side.PLAYER:
            self._handle_player_death()
        else:
            self._handle_enemy_death(character)

    def _handle_player_death(self):
        logger.info("Player died on turn %d", self.current_turn_number)
        if self.stage is not None and not self.stage.progress_state.is_terminal:
            self.stage.mark_failed()
        self._queue.clear()
        self._finish(victory=False, reason="player_defeated")

    def _handle_enemy_death(self, enemy: Character):
        context = self.turn_manager.context
        turn_number = self.current_turn_number
        enemy_id = enemy.definition_id or enemy.character_id

        if context is None or context.mark_hand_cards_vanished(enemy.character_id):
            self._vanish_cards(Side.ENEMY)
        else:
            logger.debug("Enemy cards already vanished this turn")
        self._queue = deque(request for request in self._queue if request.owner is not Side.ENEMY)
        enemy.clear_effects()

        self.bus.publish(EnemyDefeated(enemy_id, enemy.character_id, turn_number))
        if context is None or context.mark_enemy_defeated(enemy.character_id):
            self.bus.publish(RewardRequested(enemy_id, turn_number))

        self._pending_advances += 1
        logger.info("Enemy %s defeated on turn %d", enemy_id, turn_number)

    def _vanish_cards(self, side: Side):
        zones = self._zones[side]
        for slot in self.slots.clear_owner(side):
            self.bus.publish(SlotChanged(slot.position, None, None))
        for pile in (zones.hand, zones.in_play):
            for card in pile.clear():
                card.hand_slot = None
                card.combat_slot = None
                zones.discard.push(card)

    def _settle(self):
        """Apply deferred stage advances once the current operation is done."""
        if not self.auto_advance or self._executing:
            return
        while self._pending_advances and not self.phases.is_terminal:
            self.advance_stage()

    def advance_stage(self) -> str | None:
        """
        Move past the defeated enemy.

        Returns the next enemy id (spawned through the spawner when one is
        configured) or None when the stage is complete.
        """
        if self._pending_advances <= 0:
            raise InvalidOperationError("No defeated enemy to advance past")
        self._pending_advances -= 1

        if self.stage is None:
            self._finish(victory=True, reason="enemy_defeated")
            return None

        next_id = self.stage.advance_to_next_enemy()
        self.bus.publish(StageAdvanced(self.stage.stage_id, self.stage.defeated_count, next_id))
        if next_id is None:
            self._finish(victory=True, reason="stage_completed")
            return None

        if self.spawner is not None:
            definition = self.spawner.spawn_next_enemy(self.stage)
            if definition is not None:
                self.spawn_enemy(definition)
        return next_id

    def _finish(self, victory: bool, reason: str):
        if self.phases.is_paused:
            self.phases.resume()
        if self.phases.is_terminal:
            return
        if self.phase in (CombatPhase.NONE, CombatPhase.PREPARATION):
            # Outcome phases are only reachable from a running combat
            self.change_phase(CombatPhase.ENDED)
        else:
            self.change_phase(CombatPhase.VICTORY if victory else CombatPhase.DEFEAT)
        self.bus.publish(GameOver(victory=victory, turn_number=self.current_turn_number, reason=reason))
        logger.info("Game over: %s (%s)", "victory" if victory else "defeat", reason)

    # =========================================================================
    # Snapshot support
    # =========================================================================

    @property
    def next_instance_number(self) -> int:
        return self._next_instance_number

    def install_state(self, state: SessionState):
        """
        Swap in a fully validated replacement state.

        Called by snapshot restore after every check has passed; nothing
        here can fail halfway.
        """
        if self._executing:
            raise InvalidOperationError("Cannot restore while the execution queue is running")
        for character in state.characters.values():
            character.bus = self.bus
        self._characters = dict(state.characters)
        self._zones = dict(state.zones)
        self.slots = state.slots
        self.phases.restore(state.phase, state.paused_from)
        self.turn_manager.restore(state.turns, state.reserved_enemy_slot, state.player_guard_registered)
        self._next_instance_number = state.next_instance_number
        self._pending_advances = state.pending_stage_advances
        self._queue.clear()
        if self.stage is not None and state.stage_index is not None:
            self.stage.restore(state.stage_index, state.stage_state)
        logger.info("Session state restored at turn %d (%s)", self.current_turn_number, self.phase.value)
