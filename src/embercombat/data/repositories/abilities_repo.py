"""Abilities repository."""
from __future__ import annotations

from typing import Dict, List

from embercombat.core.types import ELEMENTS
from embercombat.data.errors import DataValidationError
from embercombat.data.repositories.base import RepositoryBase
from embercombat.domain.defs import EFFECT_KINDS, AbilityDef, AbilityId, StatusRider
from embercombat.domain.defs.ability_def import ABILITY_TAGS
from embercombat.domain.statuses import STATUS_KINDS

VALID_DAMAGE_TYPES = {"physical", "magic"}
VALID_TARGET_MODES = {"enemy", "ally", "self"}
VALID_RIDER_TARGETS = {"target", "self"}
VALID_UPGRADE_PATHS = {"potency", "efficiency"}

_ALLOWED_FIELDS = {
    "name",
    "kind",
    "description",
    "cost",
    "potency",
    "damage_type",
    "element",
    "targeting",
    "splash",
    "telegraph_turns",
    "cooldown",
    "base_amount",
    "riders",
    "drain_pct",
    "shatter_amount",
    "resource_drain_pct",
    "tags",
    "upgrade_path",
}


class AbilitiesRepository(RepositoryBase[AbilityDef]):
    """Loads ability definitions keyed by their closed ability id."""

    def __init__(self, base_path=None) -> None:
        super().__init__("abilities.json", base_path)

    def get_ability(self, ability_id: AbilityId | str) -> AbilityDef:
        """Look up by enum member or raw id string."""
        return self.get(AbilityId.parse(ability_id).value)

    def _build(self, raw: dict[str, object]) -> Dict[str, AbilityDef]:
        abilities: Dict[str, AbilityDef] = {}
        for raw_id, payload in raw.items():
            ability_id = self._require_ability_id(raw_id, "ability id")
            context = f"ability '{raw_id}'"
            data = self._require_mapping(payload, context)
            self._assert_required(data, {"name", "kind"}, context)
            self._assert_known(data, _ALLOWED_FIELDS, context)

            kind = self._require_literal(data["kind"], EFFECT_KINDS, f"{context} kind")
            element = data.get("element")
            if element is not None:
                element = self._require_literal(element, ELEMENTS, f"{context} element")
            upgrade_path = data.get("upgrade_path")
            if upgrade_path is not None:
                upgrade_path = self._require_literal(upgrade_path, VALID_UPGRADE_PATHS, f"{context} upgrade_path")
            tags = tuple(self._require_str_list(data.get("tags", []), f"{context} tags"))
            for tag in tags:
                self._require_literal(tag, ABILITY_TAGS, f"{context} tag")
            splash = self._require_number(data.get("splash", 0), f"{context} splash", minimum=0)
            if splash > 1:
                raise DataValidationError(f"{context} splash must be <= 1.")

            ability = AbilityDef(
                id=ability_id,
                name=self._require_str(data["name"], f"{context} name"),
                kind=kind,  # type: ignore[arg-type]
                description=self._require_str(data.get("description", ""), f"{context} description"),
                cost=self._require_int(data.get("cost", 0), f"{context} cost", minimum=0),
                potency=self._require_number(data.get("potency", 1.0), f"{context} potency", minimum=0),
                damage_type=self._require_literal(
                    data.get("damage_type", "physical"), VALID_DAMAGE_TYPES, f"{context} damage_type"
                ),  # type: ignore[arg-type]
                element=element,  # type: ignore[arg-type]
                targeting=self._require_literal(
                    data.get("targeting", "enemy"), VALID_TARGET_MODES, f"{context} targeting"
                ),  # type: ignore[arg-type]
                splash=splash,
                telegraph_turns=self._require_int(data.get("telegraph_turns", 0), f"{context} telegraph_turns", minimum=0),
                cooldown=self._require_int(data.get("cooldown", 0), f"{context} cooldown", minimum=0),
                base_amount=self._require_int(data.get("base_amount", 0), f"{context} base_amount", minimum=0),
                riders=tuple(self._build_riders(data.get("riders", []), context)),
                drain_pct=self._require_number(data.get("drain_pct", 0), f"{context} drain_pct", minimum=0),
                shatter_amount=self._require_int(data.get("shatter_amount", 0), f"{context} shatter_amount", minimum=0),
                resource_drain_pct=self._require_number(
                    data.get("resource_drain_pct", 0), f"{context} resource_drain_pct", minimum=0
                ),
                tags=tags,
                upgrade_path=upgrade_path,  # type: ignore[arg-type]
            )
            self._validate_shape(ability, context)
            abilities[ability_id.value] = ability
        return abilities

    def _build_riders(self, value: object, context: str) -> List[StatusRider]:
        if not isinstance(value, list):
            raise DataValidationError(f"{context} riders must be a list.")
        riders: List[StatusRider] = []
        for index, entry in enumerate(value):
            rider_context = f"{context} rider {index}"
            data = self._require_mapping(entry, rider_context)
            self._assert_required(data, {"kind", "duration"}, rider_context)
            riders.append(
                StatusRider(
                    kind=self._require_literal(data["kind"], STATUS_KINDS, f"{rider_context} kind"),  # type: ignore[arg-type]
                    magnitude=self._require_number(data.get("magnitude", 0), f"{rider_context} magnitude", minimum=0),
                    duration=self._require_int(data["duration"], f"{rider_context} duration", minimum=1),
                    target=self._require_literal(
                        data.get("target", "target"), VALID_RIDER_TARGETS, f"{rider_context} target"
                    ),  # type: ignore[arg-type]
                )
            )
        return riders

    @staticmethod
    def _validate_shape(ability: AbilityDef, context: str) -> None:
        if ability.kind in ("buff", "debuff", "guard") and not ability.riders:
            raise DataValidationError(f"{context} of kind '{ability.kind}' needs at least one rider.")
        if ability.kind in ("heal", "shield") and ability.base_amount <= 0 and ability.potency <= 0:
            raise DataValidationError(f"{context} restores nothing.")
        if ability.kind in ("ward", "resource"):
            if ability.potency <= 0:
                raise DataValidationError(f"{context} restores nothing.")
            if ability.targeting == "enemy":
                raise DataValidationError(f"{context} of kind '{ability.kind}' must target an ally or self.")
        if ability.is_aoe and not ability.deals_damage:
            raise DataValidationError(f"{context} splash is only valid on damaging abilities.")
