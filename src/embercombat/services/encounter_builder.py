"""Assembly of the combatant set an encounter starts with."""
from __future__ import annotations

import logging
from typing import List, Sequence, Set

from embercombat.core.rng import RandomSource
from embercombat.data.repositories import CompanionsRepository, EnemiesRepository
from embercombat.domain.battle_context import BattleContext, NarrationSink
from embercombat.domain.combatant import Combatant
from embercombat.domain.tuning import DEFAULT_TUNING, CombatTuning
from embercombat.services.errors import EncounterError
from embercombat.services.factories import MAX_GROUP_SIZE, create_companion, create_hostile, make_instance_id

logger = logging.getLogger(__name__)


class EncounterBuilder:
    """Builds a ready-to-run BattleContext from the player record and definition data."""

    def __init__(
        self,
        enemies_repo: EnemiesRepository,
        companions_repo: CompanionsRepository,
        rng: RandomSource,
        *,
        tuning: CombatTuning = DEFAULT_TUNING,
    ) -> None:
        self._enemies_repo = enemies_repo
        self._companions_repo = companions_repo
        self._rng = rng
        self._tuning = tuning

    def build(
        self,
        encounter_id: str,
        player: Combatant,
        *,
        companion_id: str | None = None,
        sink: NarrationSink | None = None,
    ) -> BattleContext:
        """Instantiate the hostile or group named ``encounter_id`` against ``player``."""
        try:
            hostile_ids = self._enemies_repo.resolve_ids(encounter_id)
        except KeyError as exc:
            raise EncounterError(f"Unknown encounter '{encounter_id}'.") from exc
        return self.build_from_ids(hostile_ids, player, companion_id=companion_id, sink=sink)

    def build_from_ids(
        self,
        hostile_ids: Sequence[str],
        player: Combatant,
        *,
        companion_id: str | None = None,
        sink: NarrationSink | None = None,
    ) -> BattleContext:
        """Instantiate the listed hostile templates as one encounter."""
        if not hostile_ids:
            raise EncounterError("An encounter needs at least one hostile.")
        if len(hostile_ids) > MAX_GROUP_SIZE:
            raise EncounterError(f"Encounters hold at most {MAX_GROUP_SIZE} hostiles, got {len(hostile_ids)}.")
        self._validate_player(player)

        taken: Set[str] = {player.instance_id}
        hostiles: List[Combatant] = []
        for index, hostile_id in enumerate(hostile_ids, start=1):
            hostile = create_hostile(
                hostile_id,
                self._enemies_repo,
                self._rng,
                group_size=len(hostile_ids),
                index=index,
                taken_ids=taken,
                tuning=self._tuning,
            )
            taken.add(hostile.instance_id)
            hostiles.append(hostile)

        companion = None
        if companion_id is not None:
            companion = create_companion(
                companion_id,
                self._companions_repo,
                player.level,
                self._rng,
                taken_ids=taken,
                tuning=self._tuning,
            )
            taken.add(companion.instance_id)

        ctx = BattleContext(
            battle_id=make_instance_id("battle", self._rng, taken),
            player=player,
            hostiles=hostiles,
            companion=companion,
            tuning=self._tuning,
            sink=sink,
        )
        logger.debug("Built encounter %s with %s", ctx.battle_id, [h.source_id for h in hostiles])
        return ctx

    def assemble(
        self,
        player: Combatant,
        hostiles: Sequence[Combatant],
        *,
        companion: Combatant | None = None,
        battle_id: str | None = None,
        sink: NarrationSink | None = None,
    ) -> BattleContext:
        """Wrap caller-built combatant records in a BattleContext after validating them."""
        self._validate_player(player)
        if not hostiles:
            raise EncounterError("An encounter needs at least one hostile.")
        if len(hostiles) > MAX_GROUP_SIZE:
            raise EncounterError(f"Encounters hold at most {MAX_GROUP_SIZE} hostiles, got {len(hostiles)}.")
        for hostile in hostiles:
            if hostile.role != "hostile":
                raise EncounterError(f"Combatant '{hostile.instance_id}' is not a hostile.")
            _validate_pools(hostile)
        if companion is not None:
            if companion.role != "companion":
                raise EncounterError(f"Combatant '{companion.instance_id}' is not a companion.")
            _validate_pools(companion)

        ids = [player.instance_id] + [hostile.instance_id for hostile in hostiles]
        if companion is not None:
            ids.append(companion.instance_id)
        if len(set(ids)) != len(ids):
            raise EncounterError(f"Combatant ids must be unique, got {ids}.")

        return BattleContext(
            battle_id=battle_id or make_instance_id("battle", self._rng, ids),
            player=player,
            hostiles=list(hostiles),
            companion=companion,
            tuning=self._tuning,
            sink=sink,
        )

    @staticmethod
    def _validate_player(player: Combatant) -> None:
        if player.role != "player":
            raise EncounterError(f"Combatant '{player.instance_id}' is not the player.")
        if not player.instance_id:
            raise EncounterError("The player needs an instance id.")
        _validate_pools(player)
        if not player.is_alive:
            raise EncounterError("Cannot start an encounter with a defeated player.")


def _validate_pools(combatant: Combatant) -> None:
    stats = combatant.stats
    if stats.max_hp <= 0:
        raise EncounterError(f"Combatant '{combatant.instance_id}' must have positive max health.")
    if stats.hp > stats.max_hp:
        raise EncounterError(f"Combatant '{combatant.instance_id}' has more health than its maximum.")
    if stats.resource < 0 or stats.resource > stats.max_resource:
        raise EncounterError(f"Combatant '{combatant.instance_id}' has resource outside 0..{stats.max_resource}.")
