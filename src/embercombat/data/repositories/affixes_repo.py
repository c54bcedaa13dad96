"""Hostile affix definitions repository."""
from __future__ import annotations

from typing import Dict

from embercombat.data.errors import DataValidationError
from embercombat.data.repositories.base import RepositoryBase
from embercombat.domain.affixes import AFFIX_KINDS, STAT_MULTIPLIERS, AffixDef

_FRACTION_FIELDS = ("vampiric_pct", "reflect_pct", "regen_pct", "chill_chance", "berserk_threshold")
_TURN_FIELDS = ("chill_turns", "hex_turns")
_AMOUNT_FIELDS = ("hex_attack_down", "hex_armor_down", "hex_magic_resist_down", "berserk_enrage_pct")

_ALLOWED_FIELDS = {"name", "kind", *STAT_MULTIPLIERS, *_FRACTION_FIELDS, *_TURN_FIELDS, *_AMOUNT_FIELDS}


class AffixesRepository(RepositoryBase[AffixDef]):
    """Loads and validates affix definitions."""

    def __init__(self, base_path=None) -> None:
        super().__init__("affixes.json", base_path)

    def _build(self, raw: dict[str, object]) -> Dict[str, AffixDef]:
        affixes: Dict[str, AffixDef] = {}
        for raw_id, payload in raw.items():
            if not isinstance(raw_id, str):
                raise DataValidationError("Affix IDs must be strings.")
            context = f"affix '{raw_id}'"
            data = self._require_mapping(payload, context)
            self._assert_required(data, {"name", "kind"}, context)
            self._assert_known(data, _ALLOWED_FIELDS, context)

            values: Dict[str, object] = {}
            for name in STAT_MULTIPLIERS:
                mult = self._require_number(data.get(name, 1.0), f"{context} {name}", minimum=0)
                if mult <= 0:
                    raise DataValidationError(f"{context} {name} must be positive.")
                values[name] = mult
            for name in _FRACTION_FIELDS:
                fraction = self._require_number(data.get(name, 0), f"{context} {name}", minimum=0)
                if fraction > 1:
                    raise DataValidationError(f"{context} {name} must be <= 1.")
                values[name] = fraction
            for name in _TURN_FIELDS:
                values[name] = self._require_int(data.get(name, 0), f"{context} {name}", minimum=0)
            for name in _AMOUNT_FIELDS:
                values[name] = self._require_number(data.get(name, 0), f"{context} {name}", minimum=0)

            affix = AffixDef(
                id=raw_id,
                name=self._require_str(data["name"], f"{context} name"),
                kind=self._require_literal(data["kind"], AFFIX_KINDS, f"{context} kind"),  # type: ignore[arg-type]
                **values,  # type: ignore[arg-type]
            )
            self._validate_shape(affix, context)
            affixes[raw_id] = affix
        return affixes

    @staticmethod
    def _validate_shape(affix: AffixDef, context: str) -> None:
        if affix.chill_chance > 0 and affix.chill_turns <= 0:
            raise DataValidationError(f"{context} chills without chill_turns.")
        hex_amount = affix.hex_attack_down + affix.hex_armor_down + affix.hex_magic_resist_down
        if hex_amount > 0 and affix.hex_turns <= 0:
            raise DataValidationError(f"{context} hexes without hex_turns.")
        if (affix.berserk_threshold > 0) != (affix.berserk_enrage_pct > 0):
            raise DataValidationError(f"{context} berserk needs both a threshold and an enrage amount.")
