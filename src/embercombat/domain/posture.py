"""Posture (stagger) accrual and telegraphed intents for hostile combatants."""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from embercombat.domain.defs.ability_def import AbilityDef, AbilityId
from embercombat.domain.formulas import finite, stable_round
from embercombat.domain.tuning import PostureTuning

if TYPE_CHECKING:
    from embercombat.domain.combatant import Combatant

_MIN_POSTURE_MAX = 25
_MAX_POSTURE_MAX = 420


@dataclass(slots=True)
class PostureState:
    """Breakable stagger meter; ``0 <= current <= maximum``."""

    current: int
    maximum: int

    @property
    def fraction(self) -> float:
        return self.current / self.maximum if self.maximum > 0 else 0.0


@dataclass(slots=True)
class IntentState:
    """A declared ability waiting for its telegraph to run out."""

    ability_id: AbilityId
    turns_remaining: int
    target_id: str | None = None


@dataclass(slots=True, frozen=True)
class PostureHit:
    """Outcome of feeding one hit into a posture meter."""

    gained: int
    broke: bool
    intent_cleared: bool = False


def compute_posture_max(level: int, *, elite: bool = False, boss: bool = False) -> int:
    """Default posture pool for a hostile of the given level and rank."""
    base = 34 + 6 * max(1, int(finite(level, 1)))
    mult = 1.0
    if elite:
        mult *= 1.2
    if boss:
        mult *= 1.6
    return max(_MIN_POSTURE_MAX, min(_MAX_POSTURE_MAX, stable_round(base * mult)))


def posture_gain(
    damage: int,
    maximum: int,
    *,
    basic: bool = False,
    crit: bool = False,
    interrupt: bool = False,
    elite: bool = False,
    boss: bool = False,
    tuning: PostureTuning = PostureTuning(),
) -> int:
    """Posture added by a hit of ``damage``; zero for a hit that dealt nothing."""
    dealt = max(0, stable_round(finite(damage)))
    if dealt <= 0 or maximum <= 0:
        return 0

    gain = max(1, stable_round(dealt * tuning.gain_pct))
    if basic:
        gain += tuning.basic_bonus
    if crit:
        gain = stable_round(gain * tuning.crit_mult)
    if interrupt:
        gain += tuning.interrupt_bonus
    if boss:
        gain = max(1, stable_round(gain * tuning.boss_mult))
    if elite:
        gain = max(1, stable_round(gain * tuning.elite_mult))

    if maximum <= tuning.uncapped_pool_max:
        per_hit_cap = maximum
    else:
        per_hit_cap = max(1, stable_round(maximum * tuning.hit_cap_pct))
    if maximum <= tuning.instant_break_pool_max:
        gain = maximum
    return min(per_hit_cap, gain)


def accrue_posture(
    target: "Combatant",
    damage: int,
    *,
    basic: bool = False,
    crit: bool = False,
    interrupt: bool = False,
    tuning: PostureTuning = PostureTuning(),
) -> PostureHit:
    """
    Feed a landed hit into the target's posture meter.

    Filling the meter resets it to zero, applies ``broken`` and drops any
    pending intent. Targets without a meter (allies) are ignored.
    """

    posture = target.posture
    if posture is None or not target.is_alive:
        return PostureHit(gained=0, broke=False)
    gain = posture_gain(
        damage,
        posture.maximum,
        basic=basic,
        crit=crit,
        interrupt=interrupt,
        elite=target.is_elite,
        boss=target.is_boss,
        tuning=tuning,
    )
    if gain <= 0:
        return PostureHit(gained=0, broke=False)
    posture.current = min(posture.maximum, posture.current + gain)
    if posture.current < posture.maximum:
        return PostureHit(gained=gain, broke=False)

    posture.current = 0
    target.statuses.apply_timed("broken", 1, tuning.broken_turns)
    had_intent = clear_intent(target)
    return PostureHit(gained=gain, broke=True, intent_cleared=had_intent)


def declare_intent(actor: "Combatant", ability: AbilityDef, target_id: str | None = None) -> IntentState:
    """Store a telegraphed ability and commit its cooldown right away."""
    if ability.cooldown > 0:
        actor.cooldowns[ability.id] = ability.cooldown
    intent = IntentState(ability_id=ability.id, turns_remaining=max(1, ability.telegraph_turns), target_id=target_id)
    actor.intent = intent
    return intent


def advance_intent(actor: "Combatant") -> IntentState | None:
    """
    Count down the actor's pending intent by one of its own turns.

    Returns the intent when it is ready to execute (and clears it from the
    actor), otherwise None.
    """

    intent = actor.intent
    if intent is None:
        return None
    intent.turns_remaining -= 1
    if intent.turns_remaining > 0:
        return None
    actor.intent = None
    return intent


def clear_intent(actor: "Combatant") -> bool:
    """Drop a pending intent without firing it; cooldown stays committed."""
    if actor.intent is None:
        return False
    actor.intent = None
    return True
