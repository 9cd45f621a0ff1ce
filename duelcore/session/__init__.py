"""
Session Module - Manages combat sessions.

A session represents one play-through of a stage:
- Created when a player picks a stage
- Holds the combat session, battle loop and statistics
- Runs the enemy's turns between player commands
- Dropped when the combat ends or goes idle

Use cases and the enemy card selector interface live here too.
"""

from .manager import SessionManager, Session, SessionNotFoundError, SessionState
from .battle_loop import BattleLoop, LoopState, TurnResult
from .selectors import CardChoice, EnemyCardSelector, FirstReadyCardSelector
from .statistics import CombatStatistics
from .use_cases import (
    AdvanceEnemyUseCase,
    DiscardCardUseCase,
    DrawCardUseCase,
    EndTurnUseCase,
    ExecuteCardUseCase,
    MoveSlotUseCase,
    PlayCardUseCase,
    ShuffleDeckUseCase,
    StartCombatUseCase,
    StartStageUseCase,
)

__all__ = [
    "SessionManager",
    "Session",
    "SessionState",
    "SessionNotFoundError",
    "BattleLoop",
    "LoopState",
    "TurnResult",
    "CardChoice",
    "EnemyCardSelector",
    "FirstReadyCardSelector",
    "CombatStatistics",
    "AdvanceEnemyUseCase",
    "DiscardCardUseCase",
    "DrawCardUseCase",
    "EndTurnUseCase",
    "ExecuteCardUseCase",
    "MoveSlotUseCase",
    "PlayCardUseCase",
    "ShuffleDeckUseCase",
    "StartCombatUseCase",
    "StartStageUseCase",
]
