"""Hostile affixes: stat multipliers plus on-hit and turn-start traits."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Literal, Sequence, Tuple

from embercombat.domain.formulas import stable_round

AffixKind = Literal["elite", "minor"]
AFFIX_KINDS: Tuple[AffixKind, ...] = ("elite", "minor")

# permanent for the rest of the battle
BERSERK_TURNS = 999

STAT_MULTIPLIERS = ("hp_mult", "attack_mult", "magic_mult", "armor_mult", "magic_resist_mult")

TRAIT_FIELDS = (
    "vampiric_pct",
    "reflect_pct",
    "regen_pct",
    "chill_chance",
    "chill_turns",
    "hex_turns",
    "hex_attack_down",
    "hex_armor_down",
    "hex_magic_resist_down",
    "berserk_threshold",
    "berserk_enrage_pct",
)


@dataclass(slots=True, frozen=True)
class AffixDef:
    """
    One named modifier a hostile template may carry.

    Multipliers scale the template's stats when the hostile is built.
    Fractions (``vampiric_pct``, ``reflect_pct``, ``regen_pct``,
    ``chill_chance``, ``berserk_threshold``) are 0..1; hex and berserk
    amounts are flat status magnitudes.
    """

    id: str
    name: str
    kind: AffixKind = "minor"
    hp_mult: float = 1.0
    attack_mult: float = 1.0
    magic_mult: float = 1.0
    armor_mult: float = 1.0
    magic_resist_mult: float = 1.0
    vampiric_pct: float = 0.0
    reflect_pct: float = 0.0
    regen_pct: float = 0.0
    chill_chance: float = 0.0
    chill_turns: int = 0
    hex_turns: int = 0
    hex_attack_down: float = 0.0
    hex_armor_down: float = 0.0
    hex_magic_resist_down: float = 0.0
    berserk_threshold: float = 0.0
    berserk_enrage_pct: float = 0.0


@dataclass(slots=True)
class AffixTraits:
    """Combined runtime knobs of every affix one hostile carries."""

    affix_ids: Tuple[str, ...] = ()
    vampiric_pct: float = 0.0
    reflect_pct: float = 0.0
    regen_pct: float = 0.0
    chill_chance: float = 0.0
    chill_turns: int = 0
    hex_turns: int = 0
    hex_attack_down: float = 0.0
    hex_armor_down: float = 0.0
    hex_magic_resist_down: float = 0.0
    berserk_threshold: float = 0.0
    berserk_enrage_pct: float = 0.0
    berserk_spent: bool = False

    @property
    def hexes(self) -> bool:
        return self.hex_turns > 0 and (self.hex_attack_down + self.hex_armor_down + self.hex_magic_resist_down) > 0

    @property
    def chills(self) -> bool:
        return self.chill_turns > 0 and self.chill_chance > 0

    def berserk_due(self, hp_fraction: float) -> bool:
        if self.berserk_spent or self.berserk_threshold <= 0 or self.berserk_enrage_pct <= 0:
            return False
        return hp_fraction <= self.berserk_threshold


def combine_traits(affixes: Sequence[AffixDef]) -> AffixTraits | None:
    """Merge knobs across affixes, keeping the strongest value of each; None without affixes."""
    if not affixes:
        return None
    values = {name: max(getattr(affix, name) for affix in affixes) for name in TRAIT_FIELDS}
    return AffixTraits(affix_ids=tuple(affix.id for affix in affixes), **values)


def combined_multipliers(affixes: Sequence[AffixDef]) -> Dict[str, float]:
    """Product of each stat multiplier across ``affixes``."""
    result = {name: 1.0 for name in STAT_MULTIPLIERS}
    for affix in affixes:
        for name in STAT_MULTIPLIERS:
            result[name] *= getattr(affix, name)
    return result


def scale_stat(value: float, mult: float, *, minimum: int = 0) -> int:
    return max(minimum, stable_round(value * mult))
