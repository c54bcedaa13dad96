"""
Pure combat math: damage, mitigation, crit and elemental modifiers.

Nothing in this module touches combatants or draws random numbers. Callers
pass in the draws they consumed, so the same inputs always give the same
result. Rounding happens once, on the final total.
"""
from __future__ import annotations

import math
from dataclasses import dataclass

from embercombat.core.types import DamageType, Element
from embercombat.domain.tuning import FormulaTuning

_DEFAULT_FORMULA = FormulaTuning()
_ROUND_EPSILON = 1e-9


def finite(value: object, default: float = 0.0) -> float:
    """Coerce ``value`` to a finite float, or return ``default``."""
    if isinstance(value, bool) or value is None:
        return default
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return number


def clamp(value: object, low: float, high: float, default: float | None = None) -> float:
    number = finite(value, low if default is None else default)
    return max(low, min(high, number))


def stable_round(value: float) -> int:
    """Round half away from zero, absorbing float noise such as 17.499999999."""
    number = finite(value)
    if number < 0:
        return -stable_round(-number)
    return int(math.floor(number + 0.5 + _ROUND_EPSILON))


def mitigation_factor(defense: object, penetration_pct: object, k: float, max_penetration_pct: float = 80.0) -> float:
    """Diminishing-returns mitigation: ``100 / (100 + effective_defense * k)``."""
    pen = clamp(penetration_pct, 0.0, max_penetration_pct)
    effective = max(0.0, finite(defense)) * (1.0 - pen / 100.0)
    return 100.0 / (100.0 + effective * k)


def variance_from_draw(draw: object, spread: float = 0.15) -> float:
    """Map a uniform draw onto the band ``[1 - spread, 1 + spread]``; 0.5 maps to exactly 1.0."""
    unit = clamp(draw, 0.0, 1.0, default=0.5)
    return 1.0 + (unit - 0.5) * 2.0 * spread


def crit_chance(base: float, gear_pct: object, contextual: object, ceiling: float = 0.75) -> float:
    """Clamp base + gear (percent) + contextual bonuses to ``[0, ceiling]``."""
    total = finite(base) + clamp(gear_pct, 0.0, 100.0) / 100.0 + finite(contextual)
    return max(0.0, min(ceiling, total))


def affinity_multiplier(value: object) -> float:
    """Normalize an authored weakness/resistance multiplier."""
    return clamp(value, 0.05, 3.0, default=1.0)


def scaled_heal(amount: object, mult: object = 1.0) -> int:
    """Scale a heal/shield amount and round it once; never negative."""
    return max(0, stable_round(max(0.0, finite(amount)) * finite(mult, 1.0)))


@dataclass(slots=True, frozen=True)
class DamageModifiers:
    """Every multiplicative and additive layer applied to one hit."""

    flat_bonus: float = 0.0
    potency: float = 1.0
    context_mult: float = 1.0
    difficulty_mult: float = 1.0
    outgoing_mult: float = 1.0
    incoming_mult: float = 1.0
    elemental_bonus_pct: float = 0.0
    affinity_mult: float = 1.0
    elemental_resist_pct: float = 0.0
    crit_chance: float = 0.0
    target_broken: bool = False


@dataclass(slots=True, frozen=True)
class DamageBreakdown:
    """Result of one damage computation, kept for logs and tooltips."""

    total: int
    damage_type: DamageType
    element: Element | None
    base: float
    mitigation: float
    variance: float
    crit: bool
    crit_chance: float
    broken: bool


def physical_damage(
    base_stat: object,
    modifiers: DamageModifiers,
    defender_armor: object,
    penetration_pct: object,
    variance_draw: object,
    crit_draw: float | None,
    *,
    element: Element | None = None,
    tuning: FormulaTuning = _DEFAULT_FORMULA,
) -> int:
    """Physical hit total; always at least 1."""
    return compute_damage(
        "physical", base_stat, modifiers, defender_armor, penetration_pct, variance_draw, crit_draw,
        element=element, tuning=tuning,
    ).total


def magic_damage(
    base_stat: object,
    modifiers: DamageModifiers,
    defender_resist: object,
    penetration_pct: object,
    variance_draw: object,
    crit_draw: float | None,
    *,
    element: Element | None = None,
    tuning: FormulaTuning = _DEFAULT_FORMULA,
) -> int:
    """Magic hit total; always at least 1."""
    return compute_damage(
        "magic", base_stat, modifiers, defender_resist, penetration_pct, variance_draw, crit_draw,
        element=element, tuning=tuning,
    ).total


def compute_damage(
    damage_type: DamageType,
    base_stat: object,
    modifiers: DamageModifiers,
    defense: object,
    penetration_pct: object,
    variance_draw: object,
    crit_draw: float | None,
    *,
    element: Element | None = None,
    tuning: FormulaTuning = _DEFAULT_FORMULA,
) -> DamageBreakdown:
    is_magic = damage_type == "magic"
    k = tuning.magic_resist_k if is_magic else tuning.physical_armor_k
    crit_mult = tuning.magic_crit_mult if is_magic else tuning.physical_crit_mult

    base = max(1.0, max(0.0, finite(base_stat)) * finite(modifiers.potency, 1.0) + finite(modifiers.flat_bonus))
    mitigation = mitigation_factor(defense, penetration_pct, k, tuning.max_penetration_pct)
    variance = variance_from_draw(variance_draw, tuning.variance_spread)

    damage = base * mitigation * variance
    damage *= max(0.0, finite(modifiers.difficulty_mult, 1.0))
    damage *= max(0.0, finite(modifiers.context_mult, 1.0))
    damage *= max(0.0, finite(modifiers.outgoing_mult, 1.0))

    bonus_pct = clamp(modifiers.elemental_bonus_pct, 0.0, tuning.max_elemental_bonus_pct) if element else 0.0
    if bonus_pct > 0:
        damage *= 1.0 + bonus_pct / 100.0
    if element:
        damage *= affinity_multiplier(modifiers.affinity_mult)
        resist_pct = clamp(modifiers.elemental_resist_pct, 0.0, tuning.max_elemental_resist_pct)
        if resist_pct > 0:
            damage *= 1.0 - resist_pct / 100.0

    chance = clamp(modifiers.crit_chance, 0.0, tuning.crit_ceiling)
    crit = chance >= 1.0 or (chance > 0 and crit_draw is not None and finite(crit_draw, 1.0) < chance)
    if crit:
        damage *= crit_mult

    if modifiers.target_broken:
        damage *= tuning.broken_damage_mult
    damage *= max(0.0, finite(modifiers.incoming_mult, 1.0))

    return DamageBreakdown(
        total=max(1, stable_round(damage)),
        damage_type=damage_type,
        element=element,
        base=base,
        mitigation=mitigation,
        variance=variance,
        crit=crit,
        crit_chance=chance,
        broken=modifiers.target_broken,
    )


def estimate_damage(
    damage_type: DamageType,
    base_stat: object,
    modifiers: DamageModifiers,
    defense: object,
    penetration_pct: object,
    *,
    element: Element | None = None,
    tuning: FormulaTuning = _DEFAULT_FORMULA,
) -> int:
    """Expected hit without variance or crit; consumes no randomness."""
    return compute_damage(
        damage_type, base_stat, modifiers, defense, penetration_pct, 0.5, None, element=element, tuning=tuning
    ).total
