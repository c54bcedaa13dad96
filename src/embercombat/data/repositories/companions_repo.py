"""Companion templates repository."""
from __future__ import annotations

from typing import Dict

from embercombat.data.errors import DataValidationError
from embercombat.data.repositories.base import RepositoryBase
from embercombat.domain.defs import CompanionDef


class CompanionsRepository(RepositoryBase[CompanionDef]):
    """Loads companion definitions."""

    def __init__(self, base_path=None) -> None:
        super().__init__("companions.json", base_path)

    def _build(self, raw: dict[str, object]) -> Dict[str, CompanionDef]:
        companions: Dict[str, CompanionDef] = {}
        for raw_id, payload in raw.items():
            if not isinstance(raw_id, str):
                raise DataValidationError("Companion IDs must be strings.")
            context = f"companion '{raw_id}'"
            data = self._require_mapping(payload, context)
            self._assert_required(
                data,
                {"name", "base_hp", "hp_per_level", "base_attack", "attack_per_level", "armor", "magic_resist", "abilities"},
                context,
            )
            companions[raw_id] = CompanionDef(
                id=raw_id,
                name=self._require_str(data["name"], f"{context} name"),
                base_hp=self._require_int(data["base_hp"], f"{context} base_hp", minimum=1),
                hp_per_level=self._require_int(data["hp_per_level"], f"{context} hp_per_level", minimum=0),
                base_attack=self._require_int(data["base_attack"], f"{context} base_attack", minimum=0),
                attack_per_level=self._require_number(data["attack_per_level"], f"{context} attack_per_level", minimum=0),
                base_magic=self._require_int(data.get("base_magic", 0), f"{context} base_magic", minimum=0),
                magic_per_level=self._require_number(
                    data.get("magic_per_level", 0), f"{context} magic_per_level", minimum=0
                ),
                armor=self._require_int(data["armor"], f"{context} armor", minimum=0),
                magic_resist=self._require_int(data["magic_resist"], f"{context} magic_resist", minimum=0),
                speed=self._require_int(data.get("speed", 10), f"{context} speed", minimum=0),
                max_resource=self._require_int(data.get("max_resource", 0), f"{context} max_resource", minimum=0),
                resource_regen=self._require_int(data.get("resource_regen", 0), f"{context} resource_regen", minimum=0),
                abilities=self._require_ability_ids(data["abilities"], f"{context} abilities"),
                crit_pct=self._require_number(data.get("crit_pct", 0), f"{context} crit_pct", minimum=0),
                description=self._require_str(data.get("description", ""), f"{context} description"),
            )
        return companions
