"""Domain definition exports."""

from .ability_def import (
    BASIC_ATTACK_ID,
    EFFECT_KINDS,
    AbilityDef,
    AbilityId,
    AbilityUpgrade,
    EffectKind,
    StatusRider,
    effective_cost,
    potency_multiplier,
    raise_upgrade,
)
from .combatant_def import CompanionDef, EncounterGroupDef, HostileDef

__all__ = [
    "AbilityDef",
    "AbilityId",
    "AbilityUpgrade",
    "BASIC_ATTACK_ID",
    "CompanionDef",
    "EFFECT_KINDS",
    "EncounterGroupDef",
    "EffectKind",
    "HostileDef",
    "StatusRider",
    "effective_cost",
    "potency_multiplier",
    "raise_upgrade",
]
