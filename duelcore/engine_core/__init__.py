"""
Engine Core - Deterministic combat state and effect resolution.

The engine is the runtime that:
1. Holds character, card and slot state
2. Sequences turns and phases
3. Resolves card effects in order
4. Applies commands via the reducer
5. Captures and restores snapshots
"""

from .errors import CombatError, InvalidArgumentError, InvalidOperationError
from .events import EventBus
from .rng import RandomSource, SeededRandomSource, SystemRandomSource, fisher_yates_shuffle
from .state import Side, Character, CharacterStats, Resource
from .effect_dsl import CardDefinition, EffectKind, EffectSpec, EffectTarget
from .slots import SlotPosition, CombatSlot, SlotRegistry
from .cards import CardInstance, CardZones, Pile, PlayRejection
from .effect_resolver import EffectResolver, CardExecutionContext, ResolutionReport
from .turns import CombatPhase, TurnType, Turn, TurnManager, PhaseMachine
from .stage import ProgressState, Stage, StageDefinition
from .providers import CardContentProvider, EnemyDefinition, EnemySpawner
from .config import CombatConfig
from .combat import CombatSession, PlayResult, ExecutionOutcome
from .action import Action, ActionType, ActionPayload, ActionResult
from .reducer import Reducer, apply_action
from .snapshot import CombatSnapshot, capture_snapshot, restore_snapshot

__all__ = [
    "CombatError",
    "InvalidArgumentError",
    "InvalidOperationError",
    "EventBus",
    "RandomSource",
    "SeededRandomSource",
    "SystemRandomSource",
    "fisher_yates_shuffle",
    "Side",
    "Character",
    "CharacterStats",
    "Resource",
    "CardDefinition",
    "EffectKind",
    "EffectSpec",
    "EffectTarget",
    "SlotPosition",
    "CombatSlot",
    "SlotRegistry",
    "CardInstance",
    "CardZones",
    "Pile",
    "PlayRejection",
    "EffectResolver",
    "CardExecutionContext",
    "ResolutionReport",
    "CombatPhase",
    "TurnType",
    "Turn",
    "TurnManager",
    "PhaseMachine",
    "ProgressState",
    "Stage",
    "StageDefinition",
    "CardContentProvider",
    "EnemyDefinition",
    "EnemySpawner",
    "CombatConfig",
    "CombatSession",
    "PlayResult",
    "ExecutionOutcome",
    "Action",
    "ActionType",
    "ActionPayload",
    "ActionResult",
    "Reducer",
    "apply_action",
    "CombatSnapshot",
    "capture_snapshot",
    "restore_snapshot",
]
