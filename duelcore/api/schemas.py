"""
Pydantic Schemas for API - Request/response models for OpenAPI.

These models define the exact contract between clients and the combat
engine. Slot positions travel as their string values ("battle_slot",
"wait_slot_1", ...).

Error Codes:
- SESSION_NOT_FOUND: Session does not exist or has been cleaned up
- SAVE_NOT_FOUND: No save under that id
- UNKNOWN_STAGE: Stage id not in the catalog
- INVALID_ARGUMENT: A reference or value in the request is wrong
- INVALID_OPERATION: The command is not allowed right now
- ACTION_REJECTED: The command was legal but the engine declined it (card on cooldown, ...)
"""

from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, Field


# =============================================================================
# Enums
# =============================================================================

class SessionStatus(str, Enum):
    """Session status values."""
    CREATED = "created"
    YOUR_TURN = "your_turn"
    ENEMY_TURN = "enemy_turn"
    PAUSED = "paused"
    VICTORY = "victory"
    DEFEAT = "defeat"
    ENDED = "ended"


class ErrorCode(str, Enum):
    """Structured error codes."""
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    SAVE_NOT_FOUND = "SAVE_NOT_FOUND"
    UNKNOWN_STAGE = "UNKNOWN_STAGE"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    INVALID_OPERATION = "INVALID_OPERATION"
    ACTION_REJECTED = "ACTION_REJECTED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# =============================================================================
# Shared Models
# =============================================================================

class CardInfo(BaseModel):
    """A card instance for display."""
    instance_id: str
    card_id: str
    name: str
    description: str = ""
    resource_cost: int = 0
    base_cooldown: int = 0
    current_cooldown: int = 0
    is_ready: bool = True
    position: Optional[str] = Field(None, description="Hand or combat slot the card occupies")

    model_config = {"from_attributes": True}


class StatusEffectInfo(BaseModel):
    kind: str
    remaining_turns: int
    amount: int = 0


class CharacterInfo(BaseModel):
    """A character for display."""
    character_id: str
    name: str
    side: str
    current_health: int
    max_health: int
    is_guarded: bool = False
    is_invincible: bool = False
    is_stunned: bool = False
    resource_name: Optional[str] = None
    resource_current: Optional[int] = None
    resource_max: Optional[int] = None
    effects: list[StatusEffectInfo] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class SlotInfo(BaseModel):
    position: str
    card_id: Optional[str] = None
    owner: Optional[str] = None


class StageInfo(BaseModel):
    """Stage definition plus progress, when a session is running it."""
    stage_id: str
    number: int
    name: str
    description: str = ""
    enemy_ids: list[str]
    current_index: Optional[int] = None
    progress_state: Optional[str] = None


# =============================================================================
# Request Models
# =============================================================================

class CreateSessionRequest(BaseModel):
    """Request to create a new combat session."""
    stage_id: str = Field(..., description="Catalog stage to fight through")
    seed: Optional[int] = Field(None, description="RNG seed for a reproducible combat")
    player_name: str = Field("Hero", min_length=1, max_length=40)
    deck: Optional[list[str]] = Field(None, description="Player deck card ids (defaults to the starter deck)")
    autosave: bool = Field(False, description="Write a snapshot after every completed turn")
    start: bool = Field(True, description="Start the combat immediately")


class PlayCardRequest(BaseModel):
    instance_id: str
    position: Optional[str] = Field(None, description="Combat slot; defaults to the first free one")


class ExecuteSlotRequest(BaseModel):
    position: str = Field("battle_slot", description="Combat slot to resolve now")


class MoveSlotRequest(BaseModel):
    from_position: str
    to_position: str


class DiscardRequest(BaseModel):
    instance_id: str


class SaveRequest(BaseModel):
    save_id: str = Field(..., description="Save slot name (letters, digits, _ . -)")


class LoadRequest(BaseModel):
    save_id: str
    autosave: bool = False


# =============================================================================
# Response Models
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str = Field(..., description="Human-readable error message")
    error_code: ErrorCode = Field(..., description="Machine-readable error code")
    details: Optional[dict[str, Any]] = Field(None, description="Additional error context")
    api_version: str = Field("v1", description="API version")


class GameStateResponse(BaseModel):
    """Complete visible combat state."""
    session_id: str
    status: SessionStatus
    phase: str
    turn_number: int
    acting_side: Optional[str] = None

    player: Optional[CharacterInfo] = None
    enemy: Optional[CharacterInfo] = None

    hand: list[CardInfo] = Field(default_factory=list)
    enemy_hand_count: int = 0
    deck_count: int = 0
    discard_count: int = 0

    combat_slots: list[SlotInfo] = Field(default_factory=list)
    reserved_enemy_slot: Optional[str] = None
    player_guard_registered: bool = False

    stage: Optional[StageInfo] = None
    api_version: str = "v1"


class SessionResponse(BaseModel):
    """Session summary."""
    session_id: str
    status: SessionStatus
    stage_id: str
    phase: str
    turn_number: int = 0
    seed: Optional[int] = None
    created_at: float
    api_version: str = "v1"


class ActionResponse(BaseModel):
    """Outcome of a player command, including the enemy's reply."""
    session_id: str
    success: bool
    status: SessionStatus
    turn_number: int
    player_actions: list[str] = Field(default_factory=list)
    enemy_actions: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    victory: Optional[bool] = None
    game_state: Optional[GameStateResponse] = None
    api_version: str = "v1"


class SessionListResponse(BaseModel):
    """Response listing sessions."""
    sessions: list[str]
    count: int


class EndSessionResponse(BaseModel):
    """Response after ending a session."""
    success: bool
    session_id: str


class StageListResponse(BaseModel):
    stages: list[StageInfo]
    count: int


class SaveResponse(BaseModel):
    save_id: str
    stage_id: str
    turn_number: int
    saved_at: float


class SaveListResponse(BaseModel):
    saves: list[str]
    count: int


class StatisticsResponse(BaseModel):
    session_id: str
    statistics: dict[str, Any]


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    service: str
    version: str
