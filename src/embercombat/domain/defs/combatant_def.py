"""Hostile and companion template structures."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Tuple

from embercombat.core.types import Element
from embercombat.domain.affixes import AffixDef
from embercombat.domain.defs.ability_def import AbilityId


@dataclass(slots=True, frozen=True)
class HostileDef:
    """Template for a hostile combatant."""

    id: str
    name: str
    level: int
    max_hp: int
    attack: int
    magic: int
    armor: int
    magic_resist: int
    speed: int = 10
    abilities: Tuple[AbilityId, ...] = ()
    elite: bool = False
    boss: bool = False
    posture_max: int | None = None
    crit_pct: float = 0.0
    dodge_pct: float = 0.0
    thorns: int = 0
    life_steal_pct: float = 0.0
    affinities: Dict[Element, float] = field(default_factory=dict)
    elemental_resist_pct: Dict[Element, float] = field(default_factory=dict)
    tags: Tuple[str, ...] = ()
    affixes: Tuple[AffixDef, ...] = ()
    xp: int = 0
    gold: int = 0


@dataclass(slots=True, frozen=True)
class CompanionDef:
    """Template for an allied companion; stats grow with the player's level."""

    id: str
    name: str
    base_hp: int
    hp_per_level: int
    base_attack: int
    attack_per_level: float
    base_magic: int
    magic_per_level: float
    armor: int
    magic_resist: int
    speed: int = 10
    max_resource: int = 0
    resource_regen: int = 0
    abilities: Tuple[AbilityId, ...] = ()
    crit_pct: float = 0.0
    description: str = ""


@dataclass(slots=True, frozen=True)
class EncounterGroupDef:
    """Named group of hostile template ids fought together."""

    id: str
    name: str
    member_ids: Tuple[str, ...]
