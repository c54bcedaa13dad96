import math

import pytest

from embercombat.domain.formulas import (
    DamageModifiers,
    affinity_multiplier,
    clamp,
    compute_damage,
    crit_chance,
    estimate_damage,
    finite,
    magic_damage,
    mitigation_factor,
    physical_damage,
    scaled_heal,
    stable_round,
    variance_from_draw,
)
from embercombat.domain.tuning import FormulaTuning


def test_hundred_attack_against_no_armor_without_crit_or_variance() -> None:
    damage = physical_damage(100, DamageModifiers(), 0, 0, 0.5, None)
    assert damage == 100


def test_difficulty_modifier_scales_the_plain_hit() -> None:
    damage = physical_damage(100, DamageModifiers(difficulty_mult=1.25), 0, 0, 0.5, None)
    assert damage == 125


def test_mitigation_has_diminishing_returns() -> None:
    assert mitigation_factor(0, 0, 10) == 1.0
    assert mitigation_factor(10, 0, 10) == pytest.approx(0.5)
    assert mitigation_factor(20, 0, 10) == pytest.approx(1 / 3)


def test_penetration_reduces_armor_before_the_curve_and_is_capped() -> None:
    assert mitigation_factor(10, 50, 10) == pytest.approx(100 / 150)
    assert mitigation_factor(10, 200, 10) == pytest.approx(mitigation_factor(10, 80, 10))


def test_magic_uses_its_own_constant() -> None:
    physical = physical_damage(50, DamageModifiers(), 10, 0, 0.5, None)
    magic = magic_damage(50, DamageModifiers(), 10, 0, 0.5, None)
    assert physical == 25
    assert magic == stable_round(50 * 100 / 190)


def test_variance_band_maps_midpoint_to_one() -> None:
    assert variance_from_draw(0.5) == 1.0
    assert variance_from_draw(0.0) == pytest.approx(0.85)
    assert variance_from_draw(1.0) == pytest.approx(1.15)
    assert variance_from_draw(float("nan")) == 1.0


def test_crit_multiplies_only_when_the_draw_is_below_the_chance() -> None:
    modifiers = DamageModifiers(crit_chance=0.5)
    hit = compute_damage("physical", 100, modifiers, 0, 0, 0.5, 0.2)
    miss = compute_damage("physical", 100, modifiers, 0, 0, 0.5, 0.7)
    assert hit.crit and hit.total == 150
    assert not miss.crit and miss.total == 100


def test_crit_chance_is_clamped_to_the_ceiling() -> None:
    assert crit_chance(0.10, 500, 0.5) == 0.75
    assert crit_chance(0.10, -20, 0.0) == pytest.approx(0.10)
    assert crit_chance(0.10, 5, 0.0) == pytest.approx(0.15)


def test_broken_target_takes_extra_damage() -> None:
    damage = physical_damage(100, DamageModifiers(target_broken=True), 0, 0, 0.5, None)
    assert damage == 120


def test_elemental_layers_apply_only_with_an_element() -> None:
    modifiers = DamageModifiers(elemental_bonus_pct=50, affinity_mult=2.0, elemental_resist_pct=50)
    assert physical_damage(100, modifiers, 0, 0, 0.5, None) == 100
    assert physical_damage(100, modifiers, 0, 0, 0.5, None, element="fire") == 150


def test_elemental_resist_is_capped() -> None:
    modifiers = DamageModifiers(elemental_resist_pct=400)
    assert magic_damage(100, modifiers, 0, 0, 0.5, None, element="frost") == 25


def test_intentional_hits_never_drop_below_one() -> None:
    assert physical_damage(0, DamageModifiers(), 10_000, 0, 0.0, None) == 1
    assert physical_damage(5, DamageModifiers(incoming_mult=0.0), 0, 0, 0.5, None) == 1


def test_non_finite_inputs_degrade_to_safe_defaults() -> None:
    modifiers = DamageModifiers(potency=float("nan"), context_mult=float("inf"), incoming_mult=float("nan"))
    damage = physical_damage(float("nan"), modifiers, float("inf"), float("nan"), float("nan"), None)
    assert damage >= 1
    assert physical_damage(40, modifiers, None, None, 0.5, None) == 40


def test_rounding_happens_once_at_the_end() -> None:
    # base is 1.5; rounding it early would double to 4
    modifiers = DamageModifiers(potency=0.5, context_mult=2.0)
    assert physical_damage(3, modifiers, 0, 0, 0.5, None) == 3


def test_estimate_matches_a_neutral_roll() -> None:
    modifiers = DamageModifiers(potency=1.4, crit_chance=0.5)
    estimate = estimate_damage("physical", 30, modifiers, 4, 0)
    rolled = compute_damage("physical", 30, modifiers, 4, 0, 0.5, None)
    assert estimate == rolled.total


def test_custom_tuning_changes_constants() -> None:
    tuning = FormulaTuning(physical_armor_k=5.0)
    assert physical_damage(100, DamageModifiers(), 20, 0, 0.5, None, tuning=tuning) == 50


def test_numeric_helpers() -> None:
    assert finite("3.5") == 3.5
    assert finite(True, 7.0) == 7.0
    assert finite(math.inf, 2.0) == 2.0
    assert clamp(150, 0, 100) == 100
    assert clamp(None, 0, 100, default=40) == 40
    assert stable_round(2.5) == 3
    assert stable_round(-2.5) == -3
    assert stable_round(2.4999) == 2
    assert affinity_multiplier(10) == 3.0
    assert affinity_multiplier(float("nan")) == 1.0
    assert scaled_heal(10, 1.25) == 13
    assert scaled_heal(-5) == 0
