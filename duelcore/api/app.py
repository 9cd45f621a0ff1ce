"""
FastAPI Application - REST API for combat sessions.

Endpoints:
    GET    /health                                 Health check
    GET    /api/v1/stages                          List catalog stages
    POST   /api/v1/sessions                        Create combat session
    GET    /api/v1/sessions                        List active sessions
    GET    /api/v1/sessions/{id}                   Get session status
    DELETE /api/v1/sessions/{id}                   End session
    POST   /api/v1/sessions/{id}/start             Start the combat
    GET    /api/v1/sessions/{id}/state             Get visible combat state
    GET    /api/v1/sessions/{id}/statistics        Get combat statistics
    POST   /api/v1/sessions/{id}/draw              Draw a card
    POST   /api/v1/sessions/{id}/play              Play a hand card into a combat slot
    POST   /api/v1/sessions/{id}/execute           Resolve one combat slot now
    POST   /api/v1/sessions/{id}/move              Move a card between combat slots
    POST   /api/v1/sessions/{id}/discard           Discard a hand card
    POST   /api/v1/sessions/{id}/guard             Register the player's guard
    POST   /api/v1/sessions/{id}/end-turn          End the turn (the enemy replies)
    POST   /api/v1/sessions/{id}/pause             Pause
    POST   /api/v1/sessions/{id}/resume            Resume
    GET    /api/v1/sessions/{id}/snapshot          Capture a snapshot
    POST   /api/v1/sessions/{id}/snapshot          Restore a snapshot
    POST   /api/v1/sessions/{id}/save              Save to a slot
    GET    /api/v1/saves                           List save slots
    POST   /api/v1/saves/load                      Start a session from a save
    DELETE /api/v1/saves/{save_id}                 Delete a save slot

Command flow:
    Player commands return once the enemy's reply (if any) has run, so
    every response carries the state the player acts on next.

All responses are JSON with explicit Pydantic schemas.

Run with: uvicorn duelcore.api.app:create_app --factory
"""

from typing import Annotated, Optional, Union
import logging
import os

# Environment configuration
DUELCORE_ENV = os.getenv("DUELCORE_ENV", "development")
DUELCORE_SAVE_DIR = os.getenv("DUELCORE_SAVE_DIR", None)
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")

logger = logging.getLogger(__name__)


def create_app(service=None):
    """
    Create the FastAPI application.

    Args:
        service: Optional APIService instance (creates new if not provided)

    Returns:
        FastAPI application instance
    """
    from fastapi import FastAPI, Query, Request
    from fastapi.middleware.cors import CORSMiddleware
    from fastapi.responses import JSONResponse

    from .. import __version__
    from ..engine_core.config import CombatConfig
    from ..engine_core.snapshot import CombatSnapshot
    from ..persistence.save_store import SaveStore
    from ..session import SessionManager
    from .service import APIService, ServiceError
    from .schemas import (
        # Request models
        CreateSessionRequest,
        PlayCardRequest,
        ExecuteSlotRequest,
        MoveSlotRequest,
        DiscardRequest,
        SaveRequest,
        LoadRequest,
        # Response models
        ActionResponse,
        GameStateResponse,
        SessionResponse,
        SessionListResponse,
        EndSessionResponse,
        StageListResponse,
        SaveResponse,
        SaveListResponse,
        StatisticsResponse,
        ErrorResponse,
        HealthResponse,
        # Enums
        ErrorCode,
    )

    app = FastAPI(
        title="Duelcore Combat API",
        description="""
Turn-based card combat engine.

## Command Flow

1. `POST /sessions` with a `stage_id` creates and starts a combat
2. `POST /play` moves hand cards into combat slots
3. `POST /end-turn` resolves your slots; the enemy's turn runs before the response returns
4. Repeat until `status` is `victory` or `defeat`

## Error Codes

| Code | Description |
|------|-------------|
| `SESSION_NOT_FOUND` | Session does not exist |
| `SAVE_NOT_FOUND` | No save under that id |
| `UNKNOWN_STAGE` | Stage id not in the catalog |
| `INVALID_ARGUMENT` | Bad reference or value |
| `INVALID_OPERATION` | Not allowed right now |
| `ACTION_REJECTED` | Legal command declined by the rules |
        """,
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Service instance
    if service is None:
        store = SaveStore(DUELCORE_SAVE_DIR)
        service = APIService(session_manager=SessionManager(save_store=store, config=CombatConfig.from_env()))
    api_service = service

    # =========================================================================
    # Error helpers
    # =========================================================================

    def make_error_response(
        error_code: ErrorCode,
        message: str,
        status_code: int = 400,
        details: Optional[dict] = None,
    ) -> JSONResponse:
        """Create a standardized error response."""
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(
                error=message,
                error_code=error_code,
                details=details,
            ).model_dump(mode="json"),
        )

    @app.exception_handler(ServiceError)
    async def handle_service_error(request: Request, exc: ServiceError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return make_error_response(exc.error_code, exc.message, exc.status_code, exc.details)

    error_responses = {
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse, "description": "Session not found"},
        409: {"model": ErrorResponse, "description": "Command not allowed or rejected"},
    }

    # =========================================================================
    # System
    # =========================================================================

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["System"],
        summary="Health check",
    )
    async def health_check() -> HealthResponse:
        """Health check endpoint for load balancers."""
        return HealthResponse(status="healthy", service="duelcore", version=__version__)

    @app.get("/", tags=["System"])
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "Duelcore Combat API",
            "version": __version__,
            "environment": DUELCORE_ENV,
            "docs": "/api/docs",
            "health": "/health",
        }

    @app.get(
        "/api/v1/stages",
        response_model=StageListResponse,
        tags=["Content"],
        summary="List catalog stages",
    )
    async def list_stages() -> StageListResponse:
        return api_service.list_stages()

    # =========================================================================
    # Session Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/sessions",
        response_model=SessionResponse,
        responses=error_responses,
        tags=["Sessions"],
        summary="Create a new combat session",
    )
    async def create_session(body: CreateSessionRequest) -> SessionResponse:
        """
        Create a new combat session for a catalog stage.

        With `start=true` (the default) the combat begins immediately; if
        the enemy opens, its first turn has already run.
        """
        return api_service.create_session(body)

    @app.get(
        "/api/v1/sessions",
        response_model=SessionListResponse,
        tags=["Sessions"],
        summary="List active sessions",
    )
    async def list_sessions() -> SessionListResponse:
        sessions = api_service.list_sessions()
        return SessionListResponse(sessions=sessions, count=len(sessions))

    @app.get(
        "/api/v1/sessions/{session_id}",
        response_model=SessionResponse,
        responses=error_responses,
        tags=["Sessions"],
        summary="Get session status",
    )
    async def get_session(session_id: str) -> SessionResponse:
        return api_service.get_session(session_id)

    @app.delete(
        "/api/v1/sessions/{session_id}",
        response_model=EndSessionResponse,
        tags=["Sessions"],
        summary="End a combat session",
    )
    async def end_session(
        session_id: str,
        reason: Annotated[str, Query(description="Reason for ending")] = "user_ended",
    ) -> EndSessionResponse:
        success = api_service.end_session(session_id, reason)
        return EndSessionResponse(success=success, session_id=session_id)

    @app.post(
        "/api/v1/sessions/{session_id}/start",
        response_model=ActionResponse,
        responses=error_responses,
        tags=["Sessions"],
        summary="Start the combat of a session created with start=false",
    )
    async def start_session(session_id: str) -> ActionResponse:
        return api_service.start(session_id)

    @app.get(
        "/api/v1/sessions/{session_id}/state",
        response_model=GameStateResponse,
        responses=error_responses,
        tags=["Combat"],
        summary="Get the visible combat state",
    )
    async def get_state(session_id: str) -> GameStateResponse:
        return api_service.get_game_state(session_id)

    @app.get(
        "/api/v1/sessions/{session_id}/statistics",
        response_model=StatisticsResponse,
        responses=error_responses,
        tags=["Combat"],
        summary="Get combat statistics",
    )
    async def get_statistics(session_id: str) -> StatisticsResponse:
        return api_service.get_statistics(session_id)

    # =========================================================================
    # Command Endpoints
    # =========================================================================

    @app.post("/api/v1/sessions/{session_id}/draw", response_model=ActionResponse,
              responses=error_responses, tags=["Combat"], summary="Draw a card")
    async def draw(session_id: str) -> ActionResponse:
        return api_service.draw(session_id)

    @app.post("/api/v1/sessions/{session_id}/play", response_model=ActionResponse,
              responses=error_responses, tags=["Combat"], summary="Play a hand card")
    async def play_card(session_id: str, body: PlayCardRequest) -> ActionResponse:
        """
        Move a hand card into a combat slot.

        **Request Body:**
        ```json
        {"instance_id": "player-slash-3", "position": "battle_slot"}
        ```
        """
        return api_service.play_card(session_id, body)

    @app.post("/api/v1/sessions/{session_id}/execute", response_model=ActionResponse,
              responses=error_responses, tags=["Combat"], summary="Resolve one combat slot now")
    async def execute_slot(session_id: str, body: ExecuteSlotRequest) -> ActionResponse:
        return api_service.execute_slot(session_id, body)

    @app.post("/api/v1/sessions/{session_id}/move", response_model=ActionResponse,
              responses=error_responses, tags=["Combat"], summary="Move a card between combat slots")
    async def move_slot(session_id: str, body: MoveSlotRequest) -> ActionResponse:
        return api_service.move_slot(session_id, body)

    @app.post("/api/v1/sessions/{session_id}/discard", response_model=ActionResponse,
              responses=error_responses, tags=["Combat"], summary="Discard a hand card")
    async def discard(session_id: str, body: DiscardRequest) -> ActionResponse:
        return api_service.discard(session_id, body)

    @app.post("/api/v1/sessions/{session_id}/guard", response_model=ActionResponse,
              responses=error_responses, tags=["Combat"], summary="Register the player's guard")
    async def register_guard(session_id: str) -> ActionResponse:
        return api_service.register_guard(session_id)

    @app.post("/api/v1/sessions/{session_id}/end-turn", response_model=ActionResponse,
              responses=error_responses, tags=["Combat"], summary="End the turn")
    async def end_turn(session_id: str) -> ActionResponse:
        """
        Resolve the player's combat slots, then run the enemy's turn.

        The response carries both sides' actions and the state at the
        start of the player's next turn (or the outcome).
        """
        return api_service.end_turn(session_id)

    @app.post("/api/v1/sessions/{session_id}/pause", response_model=ActionResponse,
              responses=error_responses, tags=["Combat"], summary="Pause the combat")
    async def pause(session_id: str) -> ActionResponse:
        return api_service.pause(session_id)

    @app.post("/api/v1/sessions/{session_id}/resume", response_model=ActionResponse,
              responses=error_responses, tags=["Combat"], summary="Resume the combat")
    async def resume(session_id: str) -> ActionResponse:
        return api_service.resume(session_id)

    # =========================================================================
    # Snapshot and Save Endpoints
    # =========================================================================

    @app.get("/api/v1/sessions/{session_id}/snapshot", response_model=CombatSnapshot,
             responses=error_responses, tags=["Saves"], summary="Capture a snapshot")
    async def get_snapshot(session_id: str) -> CombatSnapshot:
        return api_service.get_snapshot(session_id)

    @app.post("/api/v1/sessions/{session_id}/snapshot", response_model=GameStateResponse,
              responses=error_responses, tags=["Saves"], summary="Restore a snapshot")
    async def restore_snapshot(session_id: str, body: CombatSnapshot) -> GameStateResponse:
        """Replace the session's combat state. Nothing changes if the snapshot is invalid."""
        return api_service.restore(session_id, body)

    @app.post("/api/v1/sessions/{session_id}/save", response_model=SaveResponse,
              responses=error_responses, tags=["Saves"], summary="Save to a slot")
    async def save(session_id: str, body: SaveRequest) -> SaveResponse:
        return api_service.save(session_id, body)

    @app.get("/api/v1/saves", response_model=SaveListResponse, responses=error_responses,
             tags=["Saves"], summary="List save slots")
    async def list_saves() -> SaveListResponse:
        saves = api_service.list_saves()
        return SaveListResponse(saves=saves, count=len(saves))

    @app.post("/api/v1/saves/load", response_model=SessionResponse, responses=error_responses,
              tags=["Saves"], summary="Start a session from a save")
    async def load(body: LoadRequest) -> SessionResponse:
        return api_service.load(body)

    @app.delete("/api/v1/saves/{save_id}", response_model=None, tags=["Saves"],
                summary="Delete a save slot", responses=error_responses)
    async def delete_save(save_id: str) -> Union[dict, JSONResponse]:
        if not api_service.delete_save(save_id):
            return make_error_response(ErrorCode.SAVE_NOT_FOUND, f"Save {save_id} not found", 404)
        return {"success": True, "save_id": save_id}

    return app
