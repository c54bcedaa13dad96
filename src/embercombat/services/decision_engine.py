"""Ability selection for hostile and companion combatants."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, List, Protocol, Tuple

from embercombat.core.rng import RandomSource
from embercombat.domain.battle_context import BattleContext
from embercombat.domain.combatant import Combatant, DecisionMemory
from embercombat.domain.defs.ability_def import BASIC_ATTACK_ID, AbilityDef
from embercombat.domain.tuning import CombatTuning, RewardTuning
from embercombat.services.ability_engine import AbilityEngine, ResolutionResult

logger = logging.getLogger(__name__)

DEBUFF_KINDS = ("attack_down", "magic_down", "armor_down", "magic_resist_down", "vulnerable", "chilled")


@dataclass(slots=True, frozen=True)
class Choice:
    """The ability an agent settled on and why."""

    ability: AbilityDef
    score: float
    explored: bool = False
    abstained: bool = False


class Scorer(Protocol):
    """Heuristic value of using an ability right now."""

    def score(
        self, actor: Combatant, ability: AbilityDef, target: Combatant | None, ctx: BattleContext, engine: AbilityEngine
    ) -> float: ...

    def baseline(self, actor: Combatant, target: Combatant | None, ctx: BattleContext, engine: AbilityEngine) -> float: ...


RewardFn = Callable[[ResolutionResult, RewardTuning], float]


def _fraction(amount: int, maximum: int) -> float:
    return amount / max(1, maximum)


def hostile_reward(result: ResolutionResult, weights: RewardTuning) -> float:
    """
    Damage dealt to the primary target as a fraction of its health, plus
    weighted heal/shield and a bonus when an opponent fell.

    Splash damage and an attacker killed by its target's thorns earn nothing.
    """
    reward = _fraction(result.primary_damage, result.target_max_hp) * weights.hostile_damage_weight
    reward += _fraction(result.healed, result.recipient_max_hp) * weights.hostile_heal_weight
    reward += _fraction(result.shielded, result.recipient_max_hp) * weights.hostile_shield_weight
    if result.kills:
        reward += weights.kill_bonus
    return reward


def companion_reward(result: ResolutionResult, weights: RewardTuning) -> float:
    reward = _fraction(result.primary_damage, result.target_max_hp) * weights.companion_damage_weight
    reward += _fraction(result.healed, result.recipient_max_hp) * weights.companion_heal_weight
    reward += _fraction(result.shielded, result.recipient_max_hp) * weights.companion_shield_weight
    reward += _fraction(result.warded, result.recipient_max_hp) * weights.companion_ward_weight
    reward += _fraction(result.resource_restored, result.recipient_max_resource) * weights.companion_resource_weight
    if result.kills:
        reward += weights.kill_bonus
    return reward


class HostileScorer:
    """
    Scores a hostile's options against the player.

    Guards and buffs gain value as the hostile's health drops, debuffs as the
    player is healthy or shielded, and damage by its estimate plus kill
    pressure. Learned value is mixed in lightly, weighted by smartness.
    """

    def __init__(self, smartness: float = 0.6) -> None:
        self._smartness = smartness

    def score(
        self, actor: Combatant, ability: AbilityDef, target: Combatant | None, ctx: BattleContext, engine: AbilityEngine
    ) -> float:
        hp_ratio = actor.hp_fraction
        target_ratio = target.hp_fraction if target is not None else 1.0
        target_shield = target.statuses.magnitude("shield") if target is not None else 0.0
        score = 0.0

        if ability.kind == "guard":
            score += 8
            if hp_ratio < 0.45:
                score += 18
            if any(actor.statuses.has(rider.kind) for rider in ability.riders):
                score -= 25

        if ability.kind == "buff":
            score += 6
            if hp_ratio < 0.6:
                score += 10
            if any(actor.statuses.has(rider.kind) for rider in ability.riders):
                score -= 30

        target_riders = [rider for rider in ability.riders if rider.target == "target"]
        if ability.kind == "debuff" or any(rider.kind in DEBUFF_KINDS for rider in target_riders):
            score += 10
            if target_ratio > 0.6:
                score += 8
            if target_shield > 0:
                score += 6

        if ability.deals_damage and target is not None:
            estimate = engine.estimate_hit(actor, target, ability, ctx.tuning)
            score += estimate
            if estimate >= target.stats.hp + target_shield:
                score += 65
            if target_ratio < 0.35:
                score += 15
            if ability.shatter_amount and target_shield > 0:
                score += min(target_shield, ability.shatter_amount) * 0.35
            for rider in target_riders:
                if rider.kind in ("bleed", "poison"):
                    score += 4 if target.statuses.has(rider.kind) else 10
                    if target_ratio < 0.5:
                        score += 6
                if rider.kind == "vulnerable":
                    score += 12

        if ability.drain_pct > 0 or ability.kind == "heal":
            if hp_ratio < 0.7:
                score += 12
            if hp_ratio < 0.4:
                score += 18

        learned = actor.memory.peek(ability.id) if actor.memory is not None else None
        if learned is not None:
            score += learned.value * (0.35 + self._smartness * 0.45)
        return score

    def baseline(self, actor: Combatant, target: Combatant | None, ctx: BattleContext, engine: AbilityEngine) -> float:
        return 0.0


class CompanionScorer:
    """Scores a companion's options: keep the player alive, finish wounded foes."""

    def score(
        self, actor: Combatant, ability: AbilityDef, target: Combatant | None, ctx: BattleContext, engine: AbilityEngine
    ) -> float:
        player = ctx.player
        player_ratio = player.hp_fraction
        enemy_ratio = target.hp_fraction if target is not None else 0.0
        score = ability.potency * 12

        if ability.kind == "heal":
            if player_ratio >= 0.95:
                return -math.inf
            score += (1 - player_ratio) * 80
            if target is not None and enemy_ratio < 0.25:
                score -= 15

        if ability.kind == "shield":
            score += min(40.0, (1 - player_ratio) * 50)
            if player.statuses.magnitude("shield") < 6:
                score += 6

        if ability.kind == "ward":
            if player.statuses.has("regen"):
                return -math.inf
            score += 20
            if target is not None and enemy_ratio > 0.65:
                score += 25

        if ability.kind == "resource":
            pool = player.stats.max_resource
            if pool <= 0 or player.stats.resource >= pool:
                return -math.inf
            score += (1 - player.stats.resource / pool) * 60

        if ability.kind in ("buff", "guard"):
            if any(actor.statuses.has(rider.kind) for rider in ability.riders):
                return -math.inf
            if actor.hp_fraction < 0.5:
                score += 10

        if ability.deals_damage and target is not None:
            score += enemy_ratio * 40
            if engine.estimate_hit(actor, target, ability, ctx.tuning) >= target.stats.hp:
                score += 60

        if ability.kind == "debuff" and target is not None:
            if not any(target.statuses.has(rider.kind) for rider in ability.riders):
                score += 18

        score -= ability.cooldown * 1.2
        learned = actor.memory.peek(ability.id) if actor.memory is not None else None
        if learned is not None:
            score += learned.value * 10
            score -= math.log(1 + learned.uses) * 0.9
        return score

    def baseline(self, actor: Combatant, target: Combatant | None, ctx: BattleContext, engine: AbilityEngine) -> float:
        """Score a plain attack must beat: its damage estimate times the baseline multiplier."""
        if target is None:
            return 0.0
        plain = engine.get_ability(BASIC_ATTACK_ID)
        estimate = max(1, engine.estimate_hit(actor, target, plain, ctx.tuning))
        return estimate * ctx.tuning.decision.companion_baseline_mult


class DecisionAgent:
    """
    Epsilon-greedy ability picker with an EMA learned value per ability.

    The same mechanism serves hostiles and companions; the scorer, reward
    function and exploration schedule are what differ.
    """

    def __init__(
        self,
        engine: AbilityEngine,
        scorer: Scorer,
        rewarder: RewardFn,
        *,
        exploration_decay: float,
        exploration_floor: float,
        abstain_margin: float,
        exploration_override: float | None = None,
    ) -> None:
        self._engine = engine
        self._scorer = scorer
        self._rewarder = rewarder
        self._decay = exploration_decay
        self._floor = exploration_floor
        self._abstain_margin = abstain_margin
        self._override = exploration_override

    @property
    def scorer(self) -> Scorer:
        return self._scorer

    def memory_for(self, actor: Combatant, tuning: CombatTuning) -> DecisionMemory:
        if actor.memory is None:
            actor.memory = DecisionMemory(exploration=tuning.decision.initial_exploration)
        return actor.memory

    def rank(self, actor: Combatant, target: Combatant | None, ctx: BattleContext) -> List[Tuple[AbilityDef, float]]:
        """Usable abilities with their scores, in kit order."""
        return [
            (ability, self._scorer.score(actor, ability, target, ctx, self._engine))
            for ability in self._engine.usable_abilities(actor, ctx.tuning)
        ]

    def choose(self, actor: Combatant, target: Combatant | None, ctx: BattleContext, rng: RandomSource) -> Choice:
        """Pick the ability ``actor`` uses this turn."""
        basic = self._engine.get_ability(BASIC_ATTACK_ID)
        ranked = self.rank(actor, target, ctx)
        if not ranked:
            return Choice(ability=basic, score=0.0, abstained=True)

        memory = self.memory_for(actor, ctx.tuning)
        epsilon = memory.exploration if self._override is None else self._override
        if epsilon > 0 and rng.float("ai.explore") < epsilon:
            ability, score = rng.pick("ai.explore_pick", ranked)
            logger.debug("%s explores %s (epsilon=%.3f)", actor.instance_id, ability.id.value, epsilon)
            return Choice(ability=ability, score=score, explored=True)

        best_ability, best_score = ranked[0]
        for ability, score in ranked[1:]:
            if score > best_score:
                best_ability, best_score = ability, score

        baseline = self._scorer.baseline(actor, target, ctx, self._engine)
        if best_ability.id != basic.id and (
            best_score == -math.inf or best_score < baseline + self._abstain_margin
        ):
            return Choice(ability=basic, score=baseline, abstained=True)
        return Choice(ability=best_ability, score=best_score)

    def learn(self, actor: Combatant, result: ResolutionResult, tuning: CombatTuning) -> float:
        """Fold the observed reward into the actor's learned value for the ability used."""
        reward = self._rewarder(result, tuning.reward)
        memory = self.memory_for(actor, tuning)
        stat = memory.stat(result.ability_id)
        stat.uses += 1
        samples = max(tuning.decision.min_learning_samples, min(tuning.decision.max_learning_samples, stat.uses))
        alpha = 1.0 / samples
        stat.value = (1 - alpha) * stat.value + alpha * reward
        memory.exploration = max(self._floor, memory.exploration * self._decay)
        logger.debug(
            "%s learned %s: reward=%.3f value=%.3f uses=%s",
            actor.instance_id,
            result.ability_id.value,
            reward,
            stat.value,
            stat.uses,
        )
        return reward


def build_hostile_agent(
    engine: AbilityEngine, tuning: CombatTuning, *, exploration_override: float | None = None
) -> DecisionAgent:
    return DecisionAgent(
        engine,
        HostileScorer(tuning.turn.ai_smartness),
        hostile_reward,
        exploration_decay=tuning.decision.hostile_exploration_decay,
        exploration_floor=tuning.decision.hostile_exploration_floor,
        abstain_margin=tuning.decision.hostile_abstain_margin,
        exploration_override=exploration_override,
    )


def build_companion_agent(
    engine: AbilityEngine, tuning: CombatTuning, *, exploration_override: float | None = None
) -> DecisionAgent:
    return DecisionAgent(
        engine,
        CompanionScorer(),
        companion_reward,
        exploration_decay=tuning.decision.companion_exploration_decay,
        exploration_floor=tuning.decision.companion_exploration_floor,
        abstain_margin=tuning.decision.companion_abstain_margin,
        exploration_override=exploration_override,
    )
