"""Factory for creating hostile combatants from definitions."""
from __future__ import annotations

from typing import Collection, Tuple

from embercombat.core.rng import RandomSource
from embercombat.data.repositories import EnemiesRepository
from embercombat.data.repositories.enemies_repo import MAX_GROUP_SIZE
from embercombat.domain.affixes import combine_traits, combined_multipliers, scale_stat
from embercombat.domain.combatant import Combatant, DecisionMemory, Stats
from embercombat.domain.defs import HostileDef
from embercombat.domain.formulas import stable_round
from embercombat.domain.posture import PostureState, compute_posture_max
from embercombat.domain.tuning import DEFAULT_TUNING, CombatTuning
from embercombat.services.errors import EncounterError

from .id_factory import make_instance_id

# group size -> (hp multiplier, attack/magic multiplier)
_GROUP_SCALING = {
    1: (1.0, 1.0),
    2: (0.78, 0.92),
    3: (0.66, 0.88),
}


def group_scaling(group_size: int) -> Tuple[float, float]:
    """Return the (hp, offense) multipliers applied to each member of a group."""
    if group_size < 1 or group_size > MAX_GROUP_SIZE:
        raise EncounterError(f"Encounters hold 1 to {MAX_GROUP_SIZE} hostiles, got {group_size}.")
    return _GROUP_SCALING[group_size]


def create_hostile(
    hostile_id: str,
    enemies_repo: EnemiesRepository,
    rng: RandomSource,
    *,
    group_size: int = 1,
    index: int = 1,
    taken_ids: Collection[str] = (),
    tuning: CombatTuning = DEFAULT_TUNING,
) -> Combatant:
    """Instantiate a hostile, scaled for its group and numbered when it has company."""
    try:
        definition = enemies_repo.get(hostile_id)
    except KeyError as exc:
        raise EncounterError(f"Hostile '{hostile_id}' not found.") from exc
    return build_hostile(definition, rng, group_size=group_size, index=index, taken_ids=taken_ids, tuning=tuning)


def build_hostile(
    definition: HostileDef,
    rng: RandomSource,
    *,
    group_size: int = 1,
    index: int = 1,
    taken_ids: Collection[str] = (),
    tuning: CombatTuning = DEFAULT_TUNING,
) -> Combatant:
    """
    Instantiate ``definition`` as a fresh combatant.

    Group scaling applies first, then the combined affix multipliers; stats
    are rounded after each of the two steps.
    """

    hp_mult, offense_mult = group_scaling(group_size)
    affix_mults = combined_multipliers(definition.affixes)
    max_hp = scale_stat(max(1, stable_round(definition.max_hp * hp_mult)), affix_mults["hp_mult"], minimum=1)
    stats = Stats(
        max_hp=max_hp,
        hp=max_hp,
        attack=float(scale_stat(stable_round(definition.attack * offense_mult), affix_mults["attack_mult"])),
        magic=float(scale_stat(stable_round(definition.magic * offense_mult), affix_mults["magic_mult"])),
        armor=float(scale_stat(definition.armor, affix_mults["armor_mult"])),
        magic_resist=float(scale_stat(definition.magic_resist, affix_mults["magic_resist_mult"])),
        speed=float(definition.speed),
        crit_pct=definition.crit_pct,
        dodge_pct=definition.dodge_pct,
        thorns=definition.thorns,
        life_steal_pct=definition.life_steal_pct,
        elemental_resist_pct=dict(definition.elemental_resist_pct),
        affinities=dict(definition.affinities),
    )
    posture_max = definition.posture_max or compute_posture_max(
        definition.level, elite=definition.elite, boss=definition.boss
    )
    name = definition.name if group_size == 1 else f"{definition.name} #{index}"
    return Combatant(
        instance_id=make_instance_id("hostile", rng, taken_ids),
        display_name=name,
        role="hostile",
        level=definition.level,
        stats=stats,
        abilities=definition.abilities,
        posture=PostureState(current=0, maximum=posture_max),
        memory=DecisionMemory(exploration=tuning.decision.initial_exploration),
        is_elite=definition.elite,
        is_boss=definition.boss,
        source_id=definition.id,
        tags=definition.tags,
        affixes=combine_traits(definition.affixes),
    )
