"""
Save Store - File-backed snapshot slots.

The store:
- Keeps one JSON file per save slot
- Wraps each CombatSnapshot with the data needed to rebuild its session
  (stage id, seed, player name)
- Never deletes a file it cannot read; a corrupt save is an error

AutosaveHook writes a session's snapshot to a fixed slot after every
completed turn.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, TYPE_CHECKING
import logging
import re
import time

from pydantic import BaseModel, Field, ValidationError

from ..engine_core.errors import InvalidArgumentError
from ..engine_core.events import GameOver, TurnCompleted
from ..engine_core.snapshot import CombatSnapshot, capture_snapshot

if TYPE_CHECKING:
    from ..session.manager import Session

logger = logging.getLogger(__name__)

_SAVE_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]{0,63}$")


class SaveRecord(BaseModel):
    """A snapshot plus what is needed to rebuild the session around it."""
    save_id: str
    stage_id: str
    session_id: str | None = None
    seed: int | None = None
    player_name: str = "Hero"
    saved_at: float = Field(default_factory=time.time)
    metadata: dict[str, Any] = Field(default_factory=dict)
    snapshot: CombatSnapshot


class SaveStore:
    """
    Directory of save slots.

    Usage:
        store = SaveStore(save_dir="~/.duelcore/saves")
        store.save("slot1", stage_id="outskirts", snapshot=capture_snapshot(combat))

        record = store.load("slot1")
        if record:
            restore_snapshot(combat, record.snapshot)
    """

    def __init__(self, save_dir: str | Path | None = None):
        if save_dir is None:
            save_dir = Path.home() / ".duelcore" / "saves"
        self.save_dir = Path(save_dir).expanduser()

        # Ensure save directory exists
        self.save_dir.mkdir(parents=True, exist_ok=True)

    def save(
        self,
        save_id: str,
        stage_id: str,
        snapshot: CombatSnapshot,
        session_id: str | None = None,
        seed: int | None = None,
        player_name: str = "Hero",
        metadata: dict[str, Any] | None = None,
    ) -> SaveRecord:
        """Write (or overwrite) a save slot."""
        record = SaveRecord(
            save_id=save_id,
            stage_id=stage_id,
            session_id=session_id,
            seed=seed,
            player_name=player_name,
            metadata=metadata or {},
            snapshot=snapshot,
        )
        path = self._get_path(save_id)
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_text(record.model_dump_json(indent=2), encoding="utf-8")
        tmp_path.replace(path)
        logger.info("Saved %s (turn %d)", save_id, snapshot.turn_number)
        return record

    def load(self, save_id: str) -> SaveRecord | None:
        """
        Read a save slot.

        Returns None if the slot is empty; raises InvalidArgumentError if
        the file exists but is not a valid save.
        """
        path = self._get_path(save_id)
        if not path.exists():
            return None
        try:
            record = SaveRecord.model_validate_json(path.read_text(encoding="utf-8"))
        except ValidationError as e:
            raise InvalidArgumentError(f"Save {save_id} is corrupt: {e.error_count()} error(s)") from e
        logger.info("Loaded %s", save_id)
        return record

    def exists(self, save_id: str) -> bool:
        return self._get_path(save_id).exists()

    def delete(self, save_id: str) -> bool:
        path = self._get_path(save_id)
        if not path.exists():
            return False
        path.unlink()
        logger.info("Deleted %s", save_id)
        return True

    def list_saves(self) -> list[str]:
        """Save ids, most recently written first."""
        if not self.save_dir.exists():
            return []
        files = sorted(self.save_dir.glob("*.json"), key=lambda f: f.stat().st_mtime, reverse=True)
        return [f.stem for f in files]

    def _get_path(self, save_id: str) -> Path:
        if not save_id or not _SAVE_ID.match(save_id):
            raise InvalidArgumentError(f"Invalid save id: {save_id!r}")
        return self.save_dir / f"{save_id}.json"


@dataclass
class AutosaveHook:
    """
    Writes a session to its autosave slot after each completed turn.

    TurnCompleted (and GameOver) only mark a save as due; the write
    happens in flush(), which the session calls once a command has
    finished, so the snapshot never catches a turn half-way through.
    """
    store: SaveStore
    session: Session
    save_id: str | None = None
    pending: bool = False
    saves_written: int = 0
    _unsubscribers: list[Callable[[], bool]] = field(default_factory=list, repr=False)

    def __post_init__(self):
        if self.save_id is None:
            self.save_id = f"autosave-{self.session.session_id}"

    def attach(self) -> AutosaveHook:
        bus = self.session.combat.bus
        self._unsubscribers.append(bus.subscribe(TurnCompleted, self._mark_due))
        self._unsubscribers.append(bus.subscribe(GameOver, self._mark_due))
        return self

    def detach(self):
        while self._unsubscribers:
            self._unsubscribers.pop()()

    def _mark_due(self, event):
        self.pending = True

    def flush(self) -> bool:
        """Write the save if one is due. Returns True if a file was written."""
        if not self.pending:
            return False
        session = self.session
        self.store.save(
            self.save_id,
            stage_id=session.stage_id,
            snapshot=capture_snapshot(session.combat),
            session_id=session.session_id,
            seed=session.seed,
            player_name=session.combat.player.name,
            metadata={"autosave": True},
        )
        self.pending = False
        self.saves_written += 1
        return True
