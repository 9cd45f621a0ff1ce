"""
API Service - Business logic layer between API and engine.

The service:
1. Translates API requests to session commands
2. Manages sessions and save slots
3. Formats engine state for clients

This layer is framework-agnostic (can be used with FastAPI, Flask, etc.)
Failures raise ServiceError carrying an ErrorCode and an HTTP status.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any
import logging

from .schemas import (
    # Requests
    CreateSessionRequest,
    PlayCardRequest,
    ExecuteSlotRequest,
    MoveSlotRequest,
    DiscardRequest,
    SaveRequest,
    LoadRequest,
    # Responses
    ActionResponse,
    GameStateResponse,
    SessionResponse,
    StageListResponse,
    SaveResponse,
    StatisticsResponse,
    # Shared
    CardInfo,
    CharacterInfo,
    SlotInfo,
    StageInfo,
    StatusEffectInfo,
    # Enums
    ErrorCode,
    SessionStatus,
)
from ..engine_core.action import Action
from ..engine_core.errors import CombatError, InvalidArgumentError
from ..engine_core.slots import COMBAT_ORDER, SlotPosition
from ..engine_core.snapshot import CombatSnapshot, capture_snapshot, restore_snapshot
from ..engine_core.stage import StageDefinition
from ..engine_core.state import Character, Side
from ..engine_core.turns import CombatPhase
from ..persistence.save_store import SaveStore
from ..session import LoopState, Session, SessionManager, TurnResult

logger = logging.getLogger(__name__)

# Reducer error codes -> API error codes
_ACTION_ERRORS = {
    "REJECTED": (ErrorCode.ACTION_REJECTED, 409),
    "INVALID_ARGUMENT": (ErrorCode.INVALID_ARGUMENT, 400),
    "INVALID_ACTION": (ErrorCode.INVALID_OPERATION, 409),
    "INVALID_OPERATION": (ErrorCode.INVALID_OPERATION, 409),
    "NOT_YOUR_TURN": (ErrorCode.INVALID_OPERATION, 409),
}


class ServiceError(Exception):
    """A request the service could not honour."""

    def __init__(self, error_code: ErrorCode, message: str, status_code: int = 400,
                 details: dict[str, Any] | None = None):
        super().__init__(message)
        self.error_code = error_code
        self.message = message
        self.status_code = status_code
        self.details = details


@dataclass
class APIService:
    """
    Main API service.

    Usage:
        service = APIService()

        session = service.create_session(CreateSessionRequest(stage_id="outskirts", seed=7))
        state = service.get_game_state(session.session_id)

        result = service.play_card(session.session_id, PlayCardRequest(instance_id=state.hand[0].instance_id))
        result = service.end_turn(session.session_id)
    """
    session_manager: SessionManager = field(default_factory=SessionManager)

    @property
    def save_store(self) -> SaveStore | None:
        return self.session_manager.save_store

    # =========================================================================
    # Stages
    # =========================================================================

    def list_stages(self) -> StageListResponse:
        stages = [self._stage_info(s) for s in self.session_manager.catalog.list_stages()]
        return StageListResponse(stages=stages, count=len(stages))

    # =========================================================================
    # Sessions
    # =========================================================================

    def create_session(self, request: CreateSessionRequest) -> SessionResponse:
        """Create a session and, unless asked not to, start its combat."""
        if self.session_manager.catalog.get_stage(request.stage_id) is None:
            raise ServiceError(ErrorCode.UNKNOWN_STAGE, f"Unknown stage: {request.stage_id}", 404)
        try:
            session = self.session_manager.create_session(
                request.stage_id,
                seed=request.seed,
                player_name=request.player_name,
                deck=request.deck,
                autosave=request.autosave,
            )
        except InvalidArgumentError as e:
            raise ServiceError(ErrorCode.INVALID_ARGUMENT, str(e)) from e

        if request.start:
            session.start()
        return self._session_to_response(session)

    def get_session(self, session_id: str) -> SessionResponse:
        return self._session_to_response(self._require_session(session_id))

    def end_session(self, session_id: str, reason: str = "user_ended") -> bool:
        return self.session_manager.end_session(session_id, reason)

    def list_sessions(self) -> list[str]:
        return [s.session_id for s in self.session_manager.list_sessions(active_only=True)]

    def get_game_state(self, session_id: str) -> GameStateResponse:
        session = self._require_session(session_id)
        return self._build_game_state(session)

    def get_statistics(self, session_id: str) -> StatisticsResponse:
        session = self._require_session(session_id)
        return StatisticsResponse(session_id=session_id, statistics=session.statistics.snapshot())

    # =========================================================================
    # Commands
    # =========================================================================

    def start(self, session_id: str) -> ActionResponse:
        session = self._require_session(session_id)
        try:
            result = session.start()
        except CombatError as e:
            raise ServiceError(ErrorCode.INVALID_OPERATION, str(e), 409) from e
        return self._turn_result_to_response(session, result)

    def draw(self, session_id: str) -> ActionResponse:
        return self._apply(session_id, Action.draw(Side.PLAYER))

    def play_card(self, session_id: str, request: PlayCardRequest) -> ActionResponse:
        position = self._parse_position(request.position) if request.position else None
        return self._apply(session_id, Action.play_card(request.instance_id, position))

    def execute_slot(self, session_id: str, request: ExecuteSlotRequest) -> ActionResponse:
        return self._apply(session_id, Action.execute_slot(self._parse_position(request.position)))

    def move_slot(self, session_id: str, request: MoveSlotRequest) -> ActionResponse:
        action = Action.move_slot(
            self._parse_position(request.from_position),
            self._parse_position(request.to_position),
        )
        return self._apply(session_id, action)

    def discard(self, session_id: str, request: DiscardRequest) -> ActionResponse:
        return self._apply(session_id, Action.discard(request.instance_id))

    def register_guard(self, session_id: str) -> ActionResponse:
        return self._apply(session_id, Action.register_guard())

    def end_turn(self, session_id: str) -> ActionResponse:
        return self._apply(session_id, Action.end_turn())

    def pause(self, session_id: str) -> ActionResponse:
        return self._apply(session_id, Action.pause())

    def resume(self, session_id: str) -> ActionResponse:
        return self._apply(session_id, Action.resume())

    def _apply(self, session_id: str, action: Action) -> ActionResponse:
        session = self._require_session(session_id)
        result = session.apply(action)
        if not result.success:
            error_code, status_code = _ACTION_ERRORS.get(result.error_code, (ErrorCode.INVALID_OPERATION, 409))
            raise ServiceError(
                error_code,
                "; ".join(result.errors) or "Action failed",
                status_code,
                details={"action": action.action_type.value, "engine_code": result.error_code},
            )
        return self._turn_result_to_response(session, result)

    # =========================================================================
    # Snapshots and saves
    # =========================================================================

    def get_snapshot(self, session_id: str) -> CombatSnapshot:
        return capture_snapshot(self._require_session(session_id).combat)

    def restore(self, session_id: str, snapshot: CombatSnapshot) -> GameStateResponse:
        session = self._require_session(session_id)
        try:
            restore_snapshot(session.combat, snapshot)
        except CombatError as e:
            raise ServiceError(ErrorCode.VALIDATION_ERROR, str(e)) from e
        return self._build_game_state(session)

    def save(self, session_id: str, request: SaveRequest) -> SaveResponse:
        self._require_save_store()
        self._require_session(session_id)
        try:
            record = self.session_manager.save_session(session_id, request.save_id)
        except InvalidArgumentError as e:
            raise ServiceError(ErrorCode.INVALID_ARGUMENT, str(e)) from e
        return SaveResponse(
            save_id=record.save_id,
            stage_id=record.stage_id,
            turn_number=record.snapshot.turn_number,
            saved_at=record.saved_at,
        )

    def load(self, request: LoadRequest) -> SessionResponse:
        store = self._require_save_store()
        try:
            record = store.load(request.save_id)
        except InvalidArgumentError as e:
            raise ServiceError(ErrorCode.VALIDATION_ERROR, str(e)) from e
        if record is None:
            raise ServiceError(ErrorCode.SAVE_NOT_FOUND, f"Save {request.save_id} not found", 404)
        if self.session_manager.catalog.get_stage(record.stage_id) is None:
            raise ServiceError(ErrorCode.UNKNOWN_STAGE, f"Save refers to unknown stage {record.stage_id}", 404)
        try:
            session = self.session_manager.restore_session(record, autosave=request.autosave)
        except InvalidArgumentError as e:
            raise ServiceError(ErrorCode.VALIDATION_ERROR, str(e)) from e
        return self._session_to_response(session)

    def list_saves(self) -> list[str]:
        return self._require_save_store().list_saves()

    def delete_save(self, save_id: str) -> bool:
        try:
            return self._require_save_store().delete(save_id)
        except InvalidArgumentError as e:
            raise ServiceError(ErrorCode.INVALID_ARGUMENT, str(e)) from e

    # =========================================================================
    # Helper methods
    # =========================================================================

    def _require_session(self, session_id: str) -> Session:
        session = self.session_manager.get_session(session_id)
        if session is None:
            raise ServiceError(ErrorCode.SESSION_NOT_FOUND, f"Session {session_id} not found", 404)
        return session

    def _require_save_store(self) -> SaveStore:
        if self.save_store is None:
            raise ServiceError(ErrorCode.INVALID_OPERATION, "Saving is not configured", 409)
        return self.save_store

    def _parse_position(self, value: str) -> SlotPosition:
        try:
            return SlotPosition(value)
        except ValueError:
            raise ServiceError(
                ErrorCode.INVALID_ARGUMENT,
                f"Unknown slot position: {value}",
                details={"valid_positions": [p.value for p in COMBAT_ORDER]},
            ) from None

    def _status(self, session: Session) -> SessionStatus:
        """Convert combat phase and loop state to API status."""
        phase = session.combat.phase
        if phase is CombatPhase.VICTORY:
            return SessionStatus.VICTORY
        if phase is CombatPhase.DEFEAT:
            return SessionStatus.DEFEAT
        if phase is CombatPhase.ENDED:
            return SessionStatus.ENDED
        mapping = {
            LoopState.NOT_STARTED: SessionStatus.CREATED,
            LoopState.PLAYER_TURN: SessionStatus.YOUR_TURN,
            LoopState.ENEMY_TURN: SessionStatus.ENEMY_TURN,
            LoopState.PAUSED: SessionStatus.PAUSED,
        }
        return mapping.get(session.loop.state, SessionStatus.YOUR_TURN)

    def _session_to_response(self, session: Session) -> SessionResponse:
        return SessionResponse(
            session_id=session.session_id,
            status=self._status(session),
            stage_id=session.stage_id,
            phase=session.combat.phase.value,
            turn_number=session.combat.current_turn_number,
            seed=session.seed,
            created_at=session.created_at,
        )

    def _turn_result_to_response(self, session: Session, result: TurnResult) -> ActionResponse:
        return ActionResponse(
            session_id=session.session_id,
            success=result.success,
            status=self._status(session),
            turn_number=result.turn_number,
            player_actions=result.player_actions,
            enemy_actions=result.enemy_actions,
            errors=result.errors,
            victory=result.victory,
            game_state=self._build_game_state(session),
        )

    def _build_game_state(self, session: Session) -> GameStateResponse:
        """Build complete game state response."""
        combat = session.combat
        player_zones = combat.zones(Side.PLAYER)
        acting = combat.acting_side
        reserved = combat.turn_manager.reserved_enemy_slot

        hand = sorted(combat.hand(Side.PLAYER), key=lambda c: c.hand_slot.value if c.hand_slot else "")
        slots = []
        for position in COMBAT_ORDER:
            slot = combat.slots.get_slot(position)
            slots.append(SlotInfo(
                position=position.value,
                card_id=slot.card_id,
                owner=slot.owner.value if slot.owner else None,
            ))

        stage = None
        if combat.stage is not None:
            stage = self._stage_info(combat.stage.definition)
            stage.current_index = combat.stage.current_index
            stage.progress_state = combat.stage.progress_state.value

        return GameStateResponse(
            session_id=session.session_id,
            status=self._status(session),
            phase=combat.phase.value,
            turn_number=combat.current_turn_number,
            acting_side=acting.value if acting else None,
            player=self._character_info(combat.player),
            enemy=self._character_info(combat.enemy),
            hand=[self._card_info(card) for card in hand],
            enemy_hand_count=len(combat.zones(Side.ENEMY).hand),
            deck_count=len(player_zones.deck),
            discard_count=len(player_zones.discard),
            combat_slots=slots,
            reserved_enemy_slot=reserved.value if reserved else None,
            player_guard_registered=combat.turn_manager.player_guard_registered,
            stage=stage,
        )

    def _character_info(self, character: Character | None) -> CharacterInfo | None:
        if character is None:
            return None
        resource = character.resource
        return CharacterInfo(
            character_id=character.character_id,
            name=character.name,
            side=character.side.value,
            current_health=character.current_health,
            max_health=character.max_health,
            is_guarded=character.is_guarded,
            is_invincible=character.is_invincible,
            is_stunned=character.is_stunned,
            resource_name=resource.name if resource else None,
            resource_current=resource.current_amount if resource else None,
            resource_max=resource.max_amount if resource else None,
            effects=[
                StatusEffectInfo(kind=e.kind, remaining_turns=e.remaining_turns, amount=e.amount)
                for e in character.effects
            ],
        )

    def _card_info(self, card) -> CardInfo:
        position = card.hand_slot or card.combat_slot
        return CardInfo(
            instance_id=card.instance_id,
            card_id=card.card_id,
            name=card.name,
            description=card.definition.description,
            resource_cost=card.definition.resource_cost,
            base_cooldown=card.definition.base_cooldown,
            current_cooldown=card.current_cooldown,
            is_ready=card.is_ready,
            position=position.value if position else None,
        )

    def _stage_info(self, definition: StageDefinition) -> StageInfo:
        return StageInfo(
            stage_id=definition.stage_id,
            number=definition.number,
            name=definition.name,
            description=definition.description,
            enemy_ids=list(definition.enemy_ids),
        )
