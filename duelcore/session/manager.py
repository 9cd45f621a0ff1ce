"""
Session Manager - Creates and manages combat sessions.

LIFECYCLE:
1. Caller picks a stage from the catalog → create_session wires the
   combat (RNG, event bus, stage, spawner, player deck)
2. session.start() begins the stage and the combat
3. During combat:
   - Player commands go through the session's BattleLoop / Reducer
   - The enemy's turn runs automatically after the player ends theirs
   - Statistics (and optionally autosave) listen on the event bus
4. Combat ends → session marked GAME_OVER; end_session drops it

Sessions live in memory. Persistence is explicit: snapshots written
through the SaveStore.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
import logging
import time
import uuid

from ..content.catalog import CatalogEnemySpawner, ContentCatalog
from ..content.starter import STARTER_DECK, create_starter_catalog
from ..engine_core.action import Action
from ..engine_core.combat import CombatSession
from ..engine_core.config import CombatConfig
from ..engine_core.errors import InvalidArgumentError
from ..engine_core.events import EventBus, GameOver
from ..engine_core.rng import SeededRandomSource, SystemRandomSource
from ..engine_core.snapshot import capture_snapshot, restore_snapshot
from ..engine_core.stage import Stage
from ..persistence.save_store import AutosaveHook, SaveRecord, SaveStore
from .battle_loop import BattleLoop, TurnResult
from .statistics import CombatStatistics

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """State of a combat session."""
    CREATED = "created"  # Wired, combat not started
    ACTIVE = "active"  # Combat in progress
    GAME_OVER = "game_over"  # Victory or defeat
    ABANDONED = "abandoned"  # Ended before an outcome


class SessionNotFoundError(KeyError):
    """No live session has the requested id."""


@dataclass
class Session:
    """
    One combat play-through.

    Contains:
    - The combat session (all mutable combat state)
    - The battle loop that sequences player and enemy turns
    - Statistics gathered from the event stream
    - Session metadata
    """
    session_id: str
    stage_id: str
    combat: CombatSession
    loop: BattleLoop
    statistics: CombatStatistics
    created_at: float
    seed: int | None = None

    state: SessionState = SessionState.CREATED
    last_active_at: float = 0.0
    autosave: AutosaveHook | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def is_active(self) -> bool:
        """Check if session is still playable."""
        return self.state in {SessionState.CREATED, SessionState.ACTIVE}

    def touch(self):
        self.last_active_at = time.time()

    def start(self) -> TurnResult:
        """Begin the stage and the combat."""
        result = self.loop.start()
        if self.state is SessionState.CREATED:
            self.state = SessionState.ACTIVE
        return self._after_command(result)

    def apply(self, action: Action) -> TurnResult:
        """Run one player command (and the enemy turn it may hand over to)."""
        return self._after_command(self.loop.apply(action))

    def _after_command(self, result: TurnResult) -> TurnResult:
        self.touch()
        if self.autosave is not None:
            self.autosave.flush()
        return result

    def _on_game_over(self, event: GameOver):
        self.state = SessionState.GAME_OVER


class SessionManager:
    """
    Manages combat sessions.

    Responsibilities:
    - Create sessions for catalog stages
    - Track live sessions
    - Clean up finished or idle sessions
    """

    def __init__(
        self,
        catalog: ContentCatalog | None = None,
        save_store: SaveStore | None = None,
        config: CombatConfig | None = None,
    ):
        self.catalog = catalog or create_starter_catalog()
        self.config = config or CombatConfig()
        self.save_store = save_store
        self._sessions: dict[str, Session] = {}

    def create_session(
        self,
        stage_id: str,
        seed: int | None = None,
        config: CombatConfig | None = None,
        player_name: str = "Hero",
        deck: list[str] | None = None,
        autosave: bool = False,
    ) -> Session:
        """
        Create a new combat session.

        Args:
            stage_id: Catalog stage to fight through
            seed: RNG seed (None draws from the operating system)
            config: Rules configuration (defaults to the manager's)
            player_name: Display name of the player character
            deck: Player deck card ids (defaults to the starter deck)
            autosave: Write a snapshot to the save store after every turn

        Returns:
            New Session, not yet started
        """
        definition = self.catalog.require_stage(stage_id)
        deck = list(deck or STARTER_DECK)
        for card_id in deck:
            if self.catalog.get_card(card_id) is None:
                raise InvalidArgumentError(f"Deck references unknown card: {card_id}")

        rng = SeededRandomSource(seed) if seed is not None else SystemRandomSource()
        bus = EventBus()
        combat = CombatSession(
            content=self.catalog,
            config=config or self.config,
            rng=rng,
            bus=bus,
            stage=Stage(definition),
            spawner=CatalogEnemySpawner(self.catalog),
        )
        combat.add_player(player_name, deck)

        now = time.time()
        session = Session(
            session_id=str(uuid.uuid4()),
            stage_id=stage_id,
            combat=combat,
            loop=BattleLoop(combat),
            statistics=CombatStatistics().attach(bus),
            created_at=now,
            seed=seed,
            last_active_at=now,
        )
        bus.subscribe(GameOver, session._on_game_over)

        if autosave:
            if self.save_store is None:
                raise InvalidArgumentError("autosave needs a save store")
            session.autosave = AutosaveHook(self.save_store, session).attach()

        self._sessions[session.session_id] = session
        logger.info("Session %s created for stage %s", session.session_id, stage_id)
        return session

    def restore_session(self, record: SaveRecord, autosave: bool = False) -> Session:
        """
        Rebuild a session from a save.

        The new session gets a fresh id; its combat state is replaced
        wholesale by the saved snapshot. Statistics start from zero.
        """
        session = self.create_session(
            record.stage_id,
            seed=record.seed,
            player_name=record.player_name,
            autosave=autosave,
        )
        try:
            restore_snapshot(session.combat, record.snapshot)
        except InvalidArgumentError:
            self._sessions.pop(session.session_id, None)
            raise

        if session.combat.is_over:
            session.state = SessionState.GAME_OVER
        elif session.combat.current_turn is not None:
            session.state = SessionState.ACTIVE
        session.metadata["restored_from"] = record.save_id
        logger.info("Session %s restored from %s", session.session_id, record.save_id)
        return session

    def save_session(self, session_id: str, save_id: str) -> SaveRecord:
        """Write a session's current snapshot to a save slot."""
        if self.save_store is None:
            raise InvalidArgumentError("No save store configured")
        session = self.require_session(session_id)
        return self.save_store.save(
            save_id,
            stage_id=session.stage_id,
            snapshot=capture_snapshot(session.combat),
            session_id=session.session_id,
            seed=session.seed,
            player_name=session.combat.player.name,
        )

    def get_session(self, session_id: str) -> Session | None:
        """Get a session by ID."""
        return self._sessions.get(session_id)

    def require_session(self, session_id: str) -> Session:
        session = self.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def end_session(self, session_id: str, reason: str = "completed") -> bool:
        """
        End a session and drop it.

        Returns False if no such session exists.
        """
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False

        if session.state is not SessionState.GAME_OVER:
            session.state = SessionState.ABANDONED
        session.combat.end_combat()
        session.statistics.detach()
        if session.autosave is not None:
            session.autosave.detach()
        logger.info("Session %s ended (%s)", session_id, reason)
        return True

    def list_sessions(self, active_only: bool = False) -> list[Session]:
        sessions = list(self._sessions.values())
        if active_only:
            sessions = [s for s in sessions if s.is_active()]
        return sessions

    def cleanup_stale(self, max_age_seconds: int = 3600) -> int:
        """
        End sessions idle longer than max_age_seconds.

        Finished sessions go as soon as they pass the age; live ones are
        measured from their last activity. Returns how many were removed.
        """
        current_time = time.time()
        to_remove = []

        for session_id, session in self._sessions.items():
            reference = session.created_at if not session.is_active() else session.last_active_at
            if current_time - reference > max_age_seconds:
                to_remove.append(session_id)

        for session_id in to_remove:
            self.end_session(session_id, reason="stale")
        return len(to_remove)

    def __len__(self) -> int:
        return len(self._sessions)
