"""Tunable combat constants."""
from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True, frozen=True)
class FormulaTuning:
    """Damage, mitigation and crit constants."""

    physical_armor_k: float = 10.0
    magic_resist_k: float = 9.0
    max_penetration_pct: float = 80.0
    variance_spread: float = 0.15
    physical_base_crit: float = 0.10
    magic_base_crit: float = 0.08
    crit_ceiling: float = 0.75
    physical_crit_mult: float = 1.5
    magic_crit_mult: float = 1.6
    broken_damage_mult: float = 1.2
    vulnerable_mult: float = 1.15
    damage_reduction_mult: float = 0.75
    chilled_outgoing_mult: float = 0.9
    max_elemental_bonus_pct: float = 200.0
    max_elemental_resist_pct: float = 75.0
    max_resist_all_pct: float = 80.0
    max_dodge_pct: float = 75.0


@dataclass(slots=True, frozen=True)
class PostureTuning:
    """Posture gain, caps and break behavior."""

    gain_pct: float = 0.25
    basic_bonus: int = 1
    crit_mult: float = 1.5
    interrupt_bonus: int = 2
    boss_mult: float = 0.75
    elite_mult: float = 0.85
    hit_cap_pct: float = 0.30
    uncapped_pool_max: int = 12
    instant_break_pool_max: int = 10
    broken_turns: int = 1


@dataclass(slots=True, frozen=True)
class DecisionTuning:
    """Exploration and learning parameters for both agents."""

    initial_exploration: float = 0.2
    hostile_exploration_decay: float = 0.996
    hostile_exploration_floor: float = 0.06
    companion_exploration_decay: float = 0.995
    companion_exploration_floor: float = 0.03
    min_learning_samples: int = 4
    max_learning_samples: int = 20
    hostile_abstain_margin: float = -1000.0
    companion_abstain_margin: float = -2.0
    companion_baseline_mult: float = 1.6


@dataclass(slots=True, frozen=True)
class RewardTuning:
    """Weights used to turn an action outcome into a scalar reward."""

    hostile_damage_weight: float = 1.0
    hostile_heal_weight: float = 0.8
    hostile_shield_weight: float = 0.35
    companion_damage_weight: float = 1.2
    companion_heal_weight: float = 1.5
    companion_shield_weight: float = 0.35
    companion_ward_weight: float = 1.4
    companion_resource_weight: float = 0.8
    kill_bonus: float = 2.0


@dataclass(slots=True, frozen=True)
class TurnTuning:
    """Round-level knobs: difficulty, pacing and end-of-round bookkeeping."""

    player_damage_mod: float = 1.0
    enemy_damage_mod: float = 1.0
    ai_smartness: float = 0.6
    flee_chance: float = 0.45
    pacing_seconds: float = 0.0
    shield_turns: int = 3
    ward_turns: int = 3
    boss_drop_chance: float = 1.0
    elite_drop_chance: float = 0.9
    base_drop_chance: float = 0.7
    group_drop_mult: float = 0.85
    group_drop_cap: int = 2
    max_upgrade_tier: int = 3
    upgrade_step_pct: float = 0.10


@dataclass(slots=True, frozen=True)
class CombatTuning:
    """All tunable constants for one battle."""

    formula: FormulaTuning = field(default_factory=FormulaTuning)
    posture: PostureTuning = field(default_factory=PostureTuning)
    decision: DecisionTuning = field(default_factory=DecisionTuning)
    reward: RewardTuning = field(default_factory=RewardTuning)
    turn: TurnTuning = field(default_factory=TurnTuning)


DEFAULT_TUNING = CombatTuning()
