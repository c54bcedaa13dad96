"""Factory for creating the player's companion."""
from __future__ import annotations

from typing import Collection

from embercombat.core.rng import RandomSource
from embercombat.data.repositories import CompanionsRepository
from embercombat.domain.combatant import Combatant, DecisionMemory, Stats
from embercombat.domain.formulas import stable_round
from embercombat.domain.tuning import DEFAULT_TUNING, CombatTuning
from embercombat.services.errors import EncounterError

from .id_factory import make_instance_id


def create_companion(
    companion_id: str,
    companions_repo: CompanionsRepository,
    player_level: int,
    rng: RandomSource,
    *,
    taken_ids: Collection[str] = (),
    tuning: CombatTuning = DEFAULT_TUNING,
) -> Combatant:
    """Instantiate a companion whose health and offense grow with the player's level."""
    try:
        definition = companions_repo.get(companion_id)
    except KeyError as exc:
        raise EncounterError(f"Companion '{companion_id}' not found.") from exc

    level = max(1, int(player_level))
    max_hp = max(1, definition.base_hp + definition.hp_per_level * level)
    stats = Stats(
        max_hp=max_hp,
        hp=max_hp,
        attack=float(stable_round(definition.base_attack + level * definition.attack_per_level)),
        magic=float(stable_round(definition.base_magic + level * definition.magic_per_level)),
        armor=float(definition.armor),
        magic_resist=float(definition.magic_resist),
        speed=float(definition.speed),
        max_resource=definition.max_resource,
        resource=definition.max_resource,
        resource_regen=definition.resource_regen,
        crit_pct=definition.crit_pct,
    )
    return Combatant(
        instance_id=make_instance_id("companion", rng, taken_ids),
        display_name=definition.name,
        role="companion",
        level=level,
        stats=stats,
        abilities=definition.abilities,
        memory=DecisionMemory(exploration=tuning.decision.initial_exploration),
        source_id=definition.id,
    )
