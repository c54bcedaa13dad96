"""Service layer exports."""

from .errors import CombatError, EncounterError, InvalidActionError, SnapshotError
from .ability_engine import AbilityEngine, ActionContext, ResolutionResult
from .decision_engine import (
    Choice,
    CompanionScorer,
    DecisionAgent,
    HostileScorer,
    build_companion_agent,
    build_hostile_agent,
    companion_reward,
    hostile_reward,
)
from .turn_orchestrator import PlayerAction, RoundReport, TurnOrchestrator, TurnStep
from .encounter_builder import EncounterBuilder
from .snapshot_service import SnapshotService
from .controllers import BattleController, BattleView, CombatantView

__all__ = [
    "CombatError",
    "EncounterError",
    "InvalidActionError",
    "SnapshotError",
    "AbilityEngine",
    "ActionContext",
    "ResolutionResult",
    "Choice",
    "CompanionScorer",
    "DecisionAgent",
    "HostileScorer",
    "build_companion_agent",
    "build_hostile_agent",
    "companion_reward",
    "hostile_reward",
    "PlayerAction",
    "RoundReport",
    "TurnOrchestrator",
    "TurnStep",
    "EncounterBuilder",
    "SnapshotService",
    "BattleController",
    "BattleView",
    "CombatantView",
]
