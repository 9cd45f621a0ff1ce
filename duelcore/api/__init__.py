"""
API Module - HTTP interface to combat sessions.

Exposes the engine via REST API:
1. Lists the stages available in the catalog
2. Creates combat sessions
3. Accepts player commands and returns the enemy's reply
4. Captures, restores, saves and loads snapshots

FastAPI is only imported when create_app() is called; the service
layer works without it.
"""

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
    ErrorResponse,
    # Enums
    ErrorCode,
    SessionStatus,
)
from .service import APIService, ServiceError
from .app import create_app

__all__ = [
    # Requests
    "CreateSessionRequest",
    "PlayCardRequest",
    "ExecuteSlotRequest",
    "MoveSlotRequest",
    "DiscardRequest",
    "SaveRequest",
    "LoadRequest",
    # Responses
    "ActionResponse",
    "GameStateResponse",
    "SessionResponse",
    "ErrorResponse",
    # Enums
    "ErrorCode",
    "SessionStatus",
    # Service
    "APIService",
    "ServiceError",
    "create_app",
]
