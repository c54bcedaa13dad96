"""Structured battle events handed to the presentation layer."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from embercombat.core.types import BattleOutcome, Element, NarrationTone, Side
from embercombat.domain.defs.ability_def import AbilityId
from embercombat.domain.statuses import StatusKind


@dataclass(slots=True, kw_only=True)
class BattleEvent:
    """Base battle event; ``tone`` hints how the presentation layer should style it."""

    tone: NarrationTone = "normal"


@dataclass(slots=True)
class BattleStartedEvent(BattleEvent):
    battle_id: str
    hostile_names: List[str]


@dataclass(slots=True)
class AbilityUsedEvent(BattleEvent):
    actor_id: str
    actor_name: str
    ability_id: AbilityId
    ability_name: str
    target_id: str | None


@dataclass(slots=True)
class DamageDealtEvent(BattleEvent):
    attacker_id: str
    attacker_name: str
    target_id: str
    target_name: str
    damage: int
    absorbed: int
    target_hp: int
    crit: bool = False
    splash: bool = False
    element: Element | None = None


@dataclass(slots=True)
class AttackDodgedEvent(BattleEvent):
    attacker_id: str
    attacker_name: str
    target_id: str
    target_name: str


@dataclass(slots=True)
class HealedEvent(BattleEvent):
    target_id: str
    target_name: str
    amount: int
    target_hp: int
    source: str = "ability"


@dataclass(slots=True)
class ShieldGainedEvent(BattleEvent):
    target_id: str
    target_name: str
    amount: int
    total: int


@dataclass(slots=True)
class ShieldShatteredEvent(BattleEvent):
    target_id: str
    target_name: str
    amount: int


@dataclass(slots=True)
class ResourceDrainedEvent(BattleEvent):
    target_id: str
    target_name: str
    amount: int


@dataclass(slots=True)
class ResourceRestoredEvent(BattleEvent):
    target_id: str
    target_name: str
    amount: int


@dataclass(slots=True)
class StatusAppliedEvent(BattleEvent):
    target_id: str
    target_name: str
    kind: StatusKind
    magnitude: float
    duration: int


@dataclass(slots=True)
class StatusFadedEvent(BattleEvent):
    target_id: str
    target_name: str
    kind: StatusKind


@dataclass(slots=True)
class PeriodicDamageEvent(BattleEvent):
    target_id: str
    target_name: str
    kind: StatusKind
    damage: int
    target_hp: int


@dataclass(slots=True)
class ThornsEvent(BattleEvent):
    source_id: str
    source_name: str
    attacker_id: str
    attacker_name: str
    damage: int


@dataclass(slots=True)
class PostureBrokenEvent(BattleEvent):
    combatant_id: str
    combatant_name: str


@dataclass(slots=True)
class IntentDeclaredEvent(BattleEvent):
    actor_id: str
    actor_name: str
    ability_id: AbilityId
    ability_name: str
    turns_remaining: int


@dataclass(slots=True)
class IntentClearedEvent(BattleEvent):
    actor_id: str
    actor_name: str
    ability_id: AbilityId
    reason: str


@dataclass(slots=True)
class TurnSkippedEvent(BattleEvent):
    combatant_id: str
    combatant_name: str
    reason: str


@dataclass(slots=True)
class CombatantDefeatedEvent(BattleEvent):
    combatant_id: str
    combatant_name: str
    side: Side


@dataclass(slots=True)
class FleeAttemptedEvent(BattleEvent):
    success: bool


@dataclass(slots=True)
class ActionRejectedEvent(BattleEvent):
    reason: str
    message: str


@dataclass(slots=True)
class LootDropRolledEvent(BattleEvent):
    hostile_id: str
    hostile_name: str
    dropped: bool


@dataclass(slots=True)
class RoundEndedEvent(BattleEvent):
    round_index: int


@dataclass(slots=True)
class BattleResolvedEvent(BattleEvent):
    outcome: BattleOutcome
    rounds: int
    defeated_ids: List[str] = field(default_factory=list)
