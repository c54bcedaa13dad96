"""Hostile templates and encounter groups repository."""
from __future__ import annotations

from typing import Dict, List, Tuple

from embercombat.data.errors import DataReferenceError, DataValidationError
from embercombat.data.repositories.affixes_repo import AffixesRepository
from embercombat.data.repositories.base import RepositoryBase
from embercombat.domain.affixes import AffixDef
from embercombat.domain.defs import EncounterGroupDef, HostileDef

MAX_GROUP_SIZE = 3


class EnemiesRepository(RepositoryBase[HostileDef]):
    """Loads and validates hostile definitions plus named groups of them."""

    def __init__(self, base_path=None, affixes_repo: AffixesRepository | None = None) -> None:
        super().__init__("enemies.json", base_path)
        self._affixes_repo = affixes_repo if affixes_repo is not None else AffixesRepository(base_path)
        self._group_definitions: Dict[str, EncounterGroupDef] = {}

    def _build(self, raw: dict[str, object]) -> Dict[str, HostileDef]:
        hostiles: Dict[str, HostileDef] = {}
        self._group_definitions = {}
        for raw_id, payload in raw.items():
            if not isinstance(raw_id, str):
                raise DataValidationError("Enemy IDs must be strings.")
            context = f"enemy '{raw_id}'"
            data = self._require_mapping(payload, context)
            if "members" in data:
                members = self._require_str_list(data["members"], f"{context} members")
                if not 1 <= len(members) <= MAX_GROUP_SIZE:
                    raise DataValidationError(f"{context} members must list 1 to {MAX_GROUP_SIZE} enemies.")
                self._group_definitions[raw_id] = EncounterGroupDef(
                    id=raw_id,
                    name=self._require_str(data.get("name"), f"{context} name"),
                    member_ids=tuple(members),
                )
                continue

            required_fields = {"name", "level", "hp", "attack", "magic", "armor", "magic_resist", "abilities"}
            self._assert_required(data, required_fields, context)
            posture_max = data.get("posture_max")
            if posture_max is not None:
                posture_max = self._require_int(posture_max, f"{context} posture_max", minimum=1)
            elite = self._require_bool(data.get("elite", False), f"{context} elite")
            affixes = self._resolve_affixes(data.get("affixes", []), context, elite=elite)

            hostiles[raw_id] = HostileDef(
                id=raw_id,
                name=self._require_str(data["name"], f"{context} name"),
                level=self._require_int(data["level"], f"{context} level", minimum=1),
                max_hp=self._require_int(data["hp"], f"{context} hp", minimum=1),
                attack=self._require_int(data["attack"], f"{context} attack", minimum=0),
                magic=self._require_int(data["magic"], f"{context} magic", minimum=0),
                armor=self._require_int(data["armor"], f"{context} armor", minimum=0),
                magic_resist=self._require_int(data["magic_resist"], f"{context} magic_resist", minimum=0),
                speed=self._require_int(data.get("speed", 10), f"{context} speed", minimum=0),
                abilities=self._require_ability_ids(data["abilities"], f"{context} abilities"),
                elite=elite,
                boss=self._require_bool(data.get("boss", False), f"{context} boss"),
                posture_max=posture_max,
                crit_pct=self._require_number(data.get("crit_pct", 0), f"{context} crit_pct", minimum=0),
                dodge_pct=self._require_number(data.get("dodge_pct", 0), f"{context} dodge_pct", minimum=0),
                thorns=self._require_int(data.get("thorns", 0), f"{context} thorns", minimum=0),
                life_steal_pct=self._require_number(
                    data.get("life_steal_pct", 0), f"{context} life_steal_pct", minimum=0
                ),
                affinities=self._require_element_map(data.get("affinities", {}), f"{context} affinities"),
                elemental_resist_pct=self._require_element_map(
                    data.get("elemental_resist_pct", {}), f"{context} elemental_resist_pct"
                ),
                tags=tuple(self._require_str_list(data.get("tags", []), f"{context} tags")),
                affixes=affixes,
                xp=self._require_int(data.get("xp", 0), f"{context} xp", minimum=0),
                gold=self._require_int(data.get("gold", 0), f"{context} gold", minimum=0),
            )

        for group in self._group_definitions.values():
            for member_id in group.member_ids:
                if member_id not in hostiles:
                    raise DataReferenceError(f"enemy group '{group.id}' references unknown enemy '{member_id}'.")
        return hostiles

    def get_group(self, group_id: str) -> EncounterGroupDef:
        """Return a group definition."""
        self._ensure_loaded()
        try:
            return self._group_definitions[group_id]
        except KeyError as exc:
            raise KeyError(group_id) from exc

    def resolve_ids(self, encounter_id: str) -> tuple[str, ...]:
        """Expand a hostile id or group id into the member template ids."""
        self._ensure_loaded()
        assert self._definitions is not None
        if encounter_id in self._definitions:
            return (encounter_id,)
        return self.get_group(encounter_id).member_ids

    def _resolve_affixes(self, value: object, context: str, *, elite: bool) -> Tuple[AffixDef, ...]:
        ids = self._require_str_list(value, f"{context} affixes")
        if len(set(ids)) != len(ids):
            raise DataValidationError(f"{context} affixes must not repeat.")
        affixes: List[AffixDef] = []
        for affix_id in ids:
            try:
                affixes.append(self._affixes_repo.get(affix_id))
            except KeyError as exc:
                raise DataReferenceError(f"{context} references unknown affix '{affix_id}'.") from exc
        elite_affixes = [affix.id for affix in affixes if affix.kind == "elite"]
        if elite_affixes and not elite:
            raise DataValidationError(f"{context} carries elite affix {elite_affixes[0]!r} but is not elite.")
        if len(elite_affixes) > 1:
            raise DataValidationError(f"{context} carries more than one elite affix: {elite_affixes}.")
        return tuple(affixes)
