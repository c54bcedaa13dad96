"""Round sequencing: player, companion, each hostile, then end-of-round bookkeeping."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Literal

from embercombat.core.rng import RandomSource
from embercombat.core.types import BattleOutcome
from embercombat.domain.battle_context import BattleContext
from embercombat.domain.combatant import Combatant
from embercombat.domain.defs.ability_def import BASIC_ATTACK_ID, AbilityDef, AbilityId
from embercombat.domain.events import (
    ActionRejectedEvent,
    BattleEvent,
    BattleResolvedEvent,
    BattleStartedEvent,
    CombatantDefeatedEvent,
    FleeAttemptedEvent,
    HealedEvent,
    IntentClearedEvent,
    LootDropRolledEvent,
    PeriodicDamageEvent,
    RoundEndedEvent,
    StatusFadedEvent,
    TurnSkippedEvent,
)
from embercombat.domain.formulas import stable_round
from embercombat.domain.posture import advance_intent, clear_intent
from embercombat.domain.statuses import should_skip_action
from embercombat.services.ability_engine import AbilityEngine
from embercombat.services.decision_engine import DecisionAgent, build_companion_agent, build_hostile_agent
from embercombat.services.errors import InvalidActionError

logger = logging.getLogger(__name__)

PlayerActionType = Literal["ability", "attack", "flee"]
StepKind = Literal["player", "companion", "hostile", "end_of_round"]
Pacer = Callable[[float], None]


def no_pacing(seconds: float) -> None:
    """Pacer used headless and in tests: never waits."""
    return None


@dataclass(slots=True, frozen=True)
class PlayerAction:
    """A structured action decision from the player."""

    action_type: PlayerActionType
    ability_id: AbilityId | str | None = None
    target_id: str | None = None


@dataclass(slots=True)
class TurnStep:
    """One actor's slice of a round."""

    kind: StepKind
    actor_id: str | None
    events: List[BattleEvent] = field(default_factory=list)


@dataclass(slots=True)
class RoundReport:
    """Outcome of one submitted player action."""

    accepted: bool
    events: List[BattleEvent] = field(default_factory=list)
    steps: List[TurnStep] = field(default_factory=list)
    outcome: BattleOutcome | None = None
    rejection: str | None = None


class TurnOrchestrator:
    """
    Drives a battle one round at a time.

    Only one round resolves at a time: while ``ctx.busy`` is set new
    submissions are rejected, never queued. A defeat check after every
    action ends the battle immediately and skips the remaining actors.
    """

    def __init__(
        self,
        engine: AbilityEngine,
        rng: RandomSource,
        *,
        hostile_agent: DecisionAgent | None = None,
        companion_agent: DecisionAgent | None = None,
        pacer: Pacer = no_pacing,
    ) -> None:
        self._engine = engine
        self._rng = rng
        self._hostile_agent = hostile_agent
        self._companion_agent = companion_agent
        self._pacer = pacer

    @property
    def engine(self) -> AbilityEngine:
        return self._engine

    # -----------------------
    # Battle Lifecycle
    # -----------------------
    def start_battle(self, ctx: BattleContext) -> List[BattleEvent]:
        """Announce the battle and point the target at the first living hostile."""
        start = len(ctx.events)
        ctx.phase = "player"
        ctx.busy = False
        ctx.current_target()
        ctx.emit(
            BattleStartedEvent(
                battle_id=ctx.battle_id,
                hostile_names=[hostile.display_name for hostile in ctx.hostiles],
                tone="system",
            )
        )
        logger.info("Battle %s started against %s", ctx.battle_id, [h.instance_id for h in ctx.hostiles])
        self._check_battle_end(ctx)
        return list(ctx.events[start:])

    def submit_player_action(self, ctx: BattleContext, action: PlayerAction) -> RoundReport:
        """
        Resolve one full round started by the player's ``action``.

        Invalid submissions are answered with an ActionRejectedEvent and leave
        the battle untouched.
        """

        start = len(ctx.events)
        try:
            ability = self._validate(ctx, action)
        except InvalidActionError as exc:
            logger.warning("Rejected player action %s: %s", action.action_type, exc.reason)
            ctx.emit(ActionRejectedEvent(reason=exc.reason, message=str(exc), tone="system"))
            return RoundReport(accepted=False, events=list(ctx.events[start:]), outcome=ctx.outcome, rejection=exc.reason)

        ctx.busy = True
        ctx.phase = "resolving"
        steps: List[TurnStep] = []
        pacing = ctx.tuning.turn.pacing_seconds
        try:
            for step in self.iter_round(ctx, action, ability):
                steps.append(step)
                if pacing > 0 and not ctx.is_over:
                    self._pacer(pacing)
        finally:
            ctx.busy = False
            ctx.phase = "player"
        return RoundReport(accepted=True, events=list(ctx.events[start:]), steps=steps, outcome=ctx.outcome)

    def iter_round(self, ctx: BattleContext, action: PlayerAction, ability: AbilityDef | None = None) -> Iterator[TurnStep]:
        """Yield one step per actor; stops early once the battle ends."""
        yield self._player_step(ctx, action, ability)
        if ctx.is_over:
            return
        companion = ctx.companion
        if companion is not None and companion.is_alive:
            yield self._companion_step(ctx, companion)
            if ctx.is_over:
                return
        for hostile in list(ctx.hostiles):
            if not hostile.is_alive:
                continue
            yield self._hostile_step(ctx, hostile)
            if ctx.is_over:
                return
        yield self._end_of_round(ctx)

    # -----------------------
    # Validation
    # -----------------------
    def _validate(self, ctx: BattleContext, action: PlayerAction) -> AbilityDef | None:
        if ctx.busy:
            raise InvalidActionError("busy", "A turn is already resolving.")
        if ctx.is_over:
            raise InvalidActionError("battle_over", "The battle has ended.")
        if ctx.phase != "player":
            raise InvalidActionError("not_player_turn", "It is not the player's turn.")
        if action.action_type == "flee":
            return None
        if action.action_type == "attack":
            ability = self._engine.get_ability(BASIC_ATTACK_ID)
        elif action.action_type == "ability":
            if action.ability_id is None:
                raise InvalidActionError("missing_ability", "No ability was chosen.")
            try:
                ability = self._engine.get_ability(action.ability_id)
            except (KeyError, ValueError) as exc:
                raise InvalidActionError("unknown_ability", f"Unknown ability '{action.ability_id}'.") from exc
        else:
            raise InvalidActionError("unknown_action", f"Unknown action '{action.action_type}'.")

        self._engine.check_usable(ctx.player, ability, ctx.tuning)
        if action.target_id is not None:
            target = ctx.find_combatant(action.target_id)
            if target is None:
                raise InvalidActionError("invalid_target", f"Unknown target '{action.target_id}'.")
            if ability.targeting == "enemy" and target.side == "allies":
                raise InvalidActionError("invalid_target", f"{ability.name} cannot target an ally.")
            if ability.targeting == "ally" and target.side == "enemies":
                raise InvalidActionError("invalid_target", f"{ability.name} cannot target an enemy.")
        return ability

    # -----------------------
    # Steps
    # -----------------------
    def _player_step(self, ctx: BattleContext, action: PlayerAction, ability: AbilityDef | None) -> TurnStep:
        player = ctx.player
        step = TurnStep(kind="player", actor_id=player.instance_id)
        start = len(ctx.events)

        if player.intent is not None:
            ready = advance_intent(player)
            if ready is not None:
                self._engine.resolve(player, ctx.current_target(), ready.ability_id, ctx, from_intent=True)
                self._after_action(ctx)
                if ctx.is_over:
                    step.events = list(ctx.events[start:])
                    return step

        if action.action_type == "flee":
            success = self._rng.float("battle.flee") < ctx.tuning.turn.flee_chance
            ctx.emit(FleeAttemptedEvent(success=success, tone="system" if success else "danger"))
            if success:
                self._end_battle(ctx, "fled")
            step.events = list(ctx.events[start:])
            return step

        if ability is None:
            ability = self._engine.get_ability(BASIC_ATTACK_ID)
        target = self._player_target(ctx, action, ability)
        self._engine.resolve(player, target, ability.id, ctx)
        self._after_action(ctx)
        step.events = list(ctx.events[start:])
        return step

    def _companion_step(self, ctx: BattleContext, companion: Combatant) -> TurnStep:
        step = TurnStep(kind="companion", actor_id=companion.instance_id)
        start = len(ctx.events)
        if self._begin_turn(ctx, companion):
            enemy = ctx.current_target()
            if enemy is not None:
                agent = self._companion_agent or build_companion_agent(self._engine, ctx.tuning)
                self._act(ctx, companion, agent, enemy, ally=ctx.player)
        step.events = list(ctx.events[start:])
        return step

    def _hostile_step(self, ctx: BattleContext, hostile: Combatant) -> TurnStep:
        step = TurnStep(kind="hostile", actor_id=hostile.instance_id)
        start = len(ctx.events)
        if self._begin_turn(ctx, hostile):
            agent = self._hostile_agent or build_hostile_agent(self._engine, ctx.tuning)
            target = ctx.player if ctx.player.is_alive else None
            if target is not None:
                allies = ctx.living_hostiles()
                self._act(ctx, hostile, agent, target, ally=allies[0] if allies else hostile)
        step.events = list(ctx.events[start:])
        return step

    def _begin_turn(self, ctx: BattleContext, actor: Combatant) -> bool:
        """
        Tick the actor's statuses and decide whether it acts this turn.

        Broken or stunned actors skip (losing any pending intent); actors
        killed by periodic damage simply stop. Regenerating hostiles heal
        after the tick whether or not they act.
        """

        skip = should_skip_action(actor.statuses)
        reason = "broken" if actor.statuses.has("broken") else "stunned"
        self._tick(ctx, actor, ctx.round_index)
        if not actor.is_alive or ctx.is_over:
            return False
        self._affix_regen(ctx, actor)
        if skip:
            pending = actor.intent.ability_id if actor.intent is not None else None
            if clear_intent(actor) and pending is not None:
                ctx.emit(
                    IntentClearedEvent(
                        actor_id=actor.instance_id,
                        actor_name=actor.display_name,
                        ability_id=pending,
                        reason=reason,
                        tone="good" if actor.side == "enemies" else "danger",
                    )
                )
            ctx.emit(TurnSkippedEvent(combatant_id=actor.instance_id, combatant_name=actor.display_name, reason=reason))
            return False
        return True

    def _act(self, ctx: BattleContext, actor: Combatant, agent: DecisionAgent, enemy: Combatant, *, ally: Combatant) -> None:
        if actor.intent is not None:
            ready = advance_intent(actor)
            if ready is None:
                return
            intent_target = ctx.find_combatant(ready.target_id)
            ability = self._engine.get_ability(ready.ability_id)
            target = self._ai_target(ability, actor, enemy, ally, hint=intent_target)
            result = self._engine.resolve(actor, target, ready.ability_id, ctx, from_intent=True)
            agent.learn(actor, result, ctx.tuning)
            self._after_action(ctx)
            return

        choice = agent.choose(actor, enemy, ctx, self._rng)
        target = self._ai_target(choice.ability, actor, enemy, ally)
        try:
            result = self._engine.resolve(actor, target, choice.ability.id, ctx)
        except InvalidActionError as exc:
            logger.warning("%s could not use %s (%s); falling back", actor.instance_id, choice.ability.id.value, exc.reason)
            result = self._engine.resolve(actor, enemy, BASIC_ATTACK_ID, ctx)
        if not result.telegraphed:
            agent.learn(actor, result, ctx.tuning)
        self._after_action(ctx)

    @staticmethod
    def _ai_target(
        ability: AbilityDef, actor: Combatant, enemy: Combatant, ally: Combatant, *, hint: Combatant | None = None
    ) -> Combatant:
        if ability.targeting == "self":
            return actor
        if ability.targeting == "ally":
            return ally if ally.is_alive else actor
        if hint is not None and hint.is_alive and hint.side != actor.side:
            return hint
        return enemy

    def _player_target(self, ctx: BattleContext, action: PlayerAction, ability: AbilityDef) -> Combatant | None:
        if ability.targeting == "self":
            return ctx.player
        if ability.targeting == "ally":
            chosen = ctx.find_combatant(action.target_id)
            return chosen if chosen is not None and chosen.is_alive else ctx.player
        if action.target_id is not None:
            ctx.target_id = action.target_id
        return ctx.current_target()

    def _end_of_round(self, ctx: BattleContext) -> TurnStep:
        step = TurnStep(kind="end_of_round", actor_id=None)
        start = len(ctx.events)
        for ally in ctx.living_allies():
            ally.gain_resource(ally.stats.resource_regen)
        for combatant in ctx.combatants:
            combatant.tick_cooldowns()
        finished = ctx.round_index
        ctx.round_index += 1
        ctx.emit(RoundEndedEvent(round_index=finished, tone="system"))
        self._tick(ctx, ctx.player, ctx.round_index)
        step.events = list(ctx.events[start:])
        return step

    # -----------------------
    # Status ticks, defeats and drops
    # -----------------------
    def _tick(self, ctx: BattleContext, actor: Combatant, round_index: int) -> None:
        report = actor.statuses.tick(round_index)
        if report.already_ticked:
            return
        for kind, amount in report.periodic_damage.items():
            if not actor.is_alive:
                break
            lost = actor.take_damage(amount)
            ctx.emit(
                PeriodicDamageEvent(
                    target_id=actor.instance_id,
                    target_name=actor.display_name,
                    kind=kind,
                    damage=lost,
                    target_hp=actor.stats.hp,
                    tone="danger" if actor.side == "allies" else "normal",
                )
            )
        if report.periodic_heal > 0 and actor.is_alive:
            healed = actor.restore_hp(report.periodic_heal)
            if healed > 0:
                ctx.emit(
                    HealedEvent(
                        target_id=actor.instance_id,
                        target_name=actor.display_name,
                        amount=healed,
                        target_hp=actor.stats.hp,
                        source="regen",
                        tone="good" if actor.side == "allies" else "normal",
                    )
                )
        for kind in report.faded:
            ctx.emit(StatusFadedEvent(target_id=actor.instance_id, target_name=actor.display_name, kind=kind))
        if not actor.is_alive:
            actor.intent = None
            ctx.emit(
                CombatantDefeatedEvent(
                    combatant_id=actor.instance_id,
                    combatant_name=actor.display_name,
                    side=actor.side,
                    tone="good" if actor.side == "enemies" else "danger",
                )
            )
        self._after_action(ctx)

    def _affix_regen(self, ctx: BattleContext, actor: Combatant) -> None:
        traits = actor.affixes
        if traits is None or traits.regen_pct <= 0:
            return
        healed = actor.restore_hp(max(1, stable_round(actor.stats.max_hp * traits.regen_pct)))
        if healed > 0:
            ctx.emit(
                HealedEvent(
                    target_id=actor.instance_id,
                    target_name=actor.display_name,
                    amount=healed,
                    target_hp=actor.stats.hp,
                    source="regenerating",
                )
            )

    def _after_action(self, ctx: BattleContext) -> None:
        for hostile in ctx.hostiles:
            if not hostile.is_alive and hostile.instance_id not in ctx.defeated_ids:
                ctx.defeated_ids.append(hostile.instance_id)
                self._roll_drop(ctx, hostile)
        self._check_battle_end(ctx)

    def _roll_drop(self, ctx: BattleContext, hostile: Combatant) -> None:
        turn = ctx.tuning.turn
        if hostile.is_boss:
            chance = turn.boss_drop_chance
        elif hostile.is_elite:
            chance = turn.elite_drop_chance
        else:
            chance = turn.base_drop_chance
        if ctx.is_group:
            chance *= turn.group_drop_mult
        dropped = False
        if not (ctx.is_group and ctx.drops_this_battle >= turn.group_drop_cap):
            dropped = self._rng.float("loot.drop") < chance
        if dropped:
            ctx.drops_this_battle += 1
        ctx.emit(
            LootDropRolledEvent(
                hostile_id=hostile.instance_id,
                hostile_name=hostile.display_name,
                dropped=dropped,
                tone="good" if dropped else "normal",
            )
        )

    def _check_battle_end(self, ctx: BattleContext) -> None:
        if ctx.is_over:
            return
        if not ctx.player.is_alive:
            self._end_battle(ctx, "defeat")
        elif not ctx.living_hostiles():
            self._end_battle(ctx, "victory")

    def _end_battle(self, ctx: BattleContext, outcome: BattleOutcome) -> None:
        ctx.outcome = outcome
        ctx.target_id = None
        for ally in ctx.allies:
            ally.statuses.clear_fight_scoped()
            ally.intent = None
        ctx.emit(
            BattleResolvedEvent(
                outcome=outcome,
                rounds=ctx.round_index,
                defeated_ids=list(ctx.defeated_ids),
                tone="good" if outcome == "victory" else "danger" if outcome == "defeat" else "system",
            )
        )
        logger.info("Battle %s ended: %s after %s rounds", ctx.battle_id, outcome, ctx.round_index)
