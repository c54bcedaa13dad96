"""Ability resolution: costs, damage, healing, shields and status riders."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Union

from embercombat.core.rng import RandomSource
from embercombat.data.repositories import AbilitiesRepository
from embercombat.domain.affixes import BERSERK_TURNS
from embercombat.domain.battle_context import BattleContext
from embercombat.domain.combatant import Combatant
from embercombat.domain.defs.ability_def import (
    BASIC_ATTACK_ID,
    EFFECT_KINDS,
    AbilityDef,
    AbilityId,
    StatusRider,
    effective_cost,
    potency_multiplier,
)
from embercombat.domain.events import (
    AbilityUsedEvent,
    AttackDodgedEvent,
    BattleEvent,
    CombatantDefeatedEvent,
    DamageDealtEvent,
    HealedEvent,
    IntentClearedEvent,
    IntentDeclaredEvent,
    PostureBrokenEvent,
    ResourceDrainedEvent,
    ResourceRestoredEvent,
    ShieldGainedEvent,
    ShieldShatteredEvent,
    StatusAppliedEvent,
    ThornsEvent,
)
from embercombat.domain.formulas import (
    DamageBreakdown,
    DamageModifiers,
    clamp,
    compute_damage,
    crit_chance,
    estimate_damage,
    finite,
    scaled_heal,
    stable_round,
)
from embercombat.domain.posture import accrue_posture, clear_intent, declare_intent
from embercombat.domain.statuses import (
    compute_effective_armor,
    compute_effective_attack,
    compute_effective_magic,
    compute_effective_magic_resist,
    evasion_bonus_pct,
    incoming_multiplier,
    outgoing_multiplier,
)
from embercombat.domain.tuning import CombatTuning
from embercombat.services.errors import InvalidActionError

logger = logging.getLogger(__name__)

RAGE_MAX_BONUS = 0.25
CRIMSON_PACT_THRESHOLD = 0.5
CRIMSON_PACT_BONUS = 0.15
RESOURCE_RESTORE_FLOOR = 4

HARMFUL_KINDS = frozenset(
    {"bleed", "poison", "attack_down", "magic_down", "armor_down", "magic_resist_down", "vulnerable", "chilled", "stun"}
)


@dataclass(slots=True, frozen=True)
class ActionContext:
    """Modifiers gathered for one action; discarded once it resolves."""

    damage_mult: float = 1.0
    heal_mult: float = 1.0
    crit_bonus: float = 0.0
    potency_mult: float = 1.0


@dataclass(slots=True)
class ResolutionResult:
    """What one ability resolution did."""

    ability_id: AbilityId
    actor_id: str
    target_id: str | None
    events: List[BattleEvent] = field(default_factory=list)
    effects_applied: List[str] = field(default_factory=list)
    damage_to_hp: int = 0
    absorbed: int = 0
    primary_damage_to_hp: int = 0
    primary_absorbed: int = 0
    healed: int = 0
    shielded: int = 0
    warded: int = 0
    resource_restored: int = 0
    target_max_hp: int = 0
    recipient_max_hp: int = 0
    recipient_max_resource: int = 0
    kills: List[str] = field(default_factory=list)  # opponents only
    attacker_defeated: bool = False
    telegraphed: bool = False
    dodged: bool = False
    crit: bool = False

    @property
    def total_damage(self) -> int:
        """Health lost plus shield absorbed across the primary target and every splash target."""
        return self.damage_to_hp + self.absorbed

    @property
    def primary_damage(self) -> int:
        return self.primary_damage_to_hp + self.primary_absorbed


AbilitySource = Union[AbilitiesRepository, Mapping[AbilityId, AbilityDef]]


class AbilityEngine:
    """
    Resolves one ability use against a battle context.

    Responsibilities:
    - validate usability and deduct cost before any state changes
    - declare telegraphed abilities as intents instead of resolving them
    - apply the ability's effect through a handler per effect kind
    - feed landed hits into posture and run on-hit passives
    """

    def __init__(self, abilities: AbilitySource, rng: RandomSource) -> None:
        self._abilities = abilities
        self._rng = rng
        self._handlers: Dict[str, Callable[..., None]] = {
            "damage": self._handle_damage,
            "heal": self._handle_heal,
            "shield": self._handle_shield,
            "buff": self._handle_buff,
            "debuff": self._handle_debuff,
            "guard": self._handle_guard,
            "composite": self._handle_composite,
            "ward": self._handle_ward,
            "resource": self._handle_resource,
        }
        missing = set(EFFECT_KINDS) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler for effect kinds: {sorted(missing)}")

    @property
    def rng(self) -> RandomSource:
        return self._rng

    # -----------------------
    # Lookup & usability
    # -----------------------
    def get_ability(self, ability_id: AbilityId | str) -> AbilityDef:
        parsed = AbilityId.parse(ability_id)
        if isinstance(self._abilities, AbilitiesRepository):
            return self._abilities.get_ability(parsed)
        try:
            return self._abilities[parsed]
        except KeyError as exc:
            raise KeyError(parsed.value) from exc

    def cost_of(self, actor: Combatant, ability: AbilityDef, tuning: CombatTuning) -> int:
        return effective_cost(ability, actor.upgrades.get(ability.id), tuning.turn.upgrade_step_pct)

    def check_usable(self, actor: Combatant, ability: AbilityDef, tuning: CombatTuning) -> None:
        """Raise InvalidActionError unless ``actor`` may use ``ability`` right now."""
        if not actor.is_alive:
            raise InvalidActionError("actor_defeated", f"{actor.display_name} cannot act.")
        if ability.id != BASIC_ATTACK_ID and ability.id not in actor.abilities:
            raise InvalidActionError("not_in_kit", f"{actor.display_name} does not know {ability.name}.")
        if actor.cooldown(ability.id) > 0:
            raise InvalidActionError("on_cooldown", f"{ability.name} is on cooldown.")
        if actor.stats.resource < self.cost_of(actor, ability, tuning):
            raise InvalidActionError("insufficient_resource", f"Not enough resource for {ability.name}.")

    def is_usable(self, actor: Combatant, ability: AbilityDef, tuning: CombatTuning) -> bool:
        try:
            self.check_usable(actor, ability, tuning)
        except InvalidActionError:
            return False
        return True

    def usable_abilities(self, actor: Combatant, tuning: CombatTuning) -> List[AbilityDef]:
        """Usable abilities in kit order."""
        usable: List[AbilityDef] = []
        for ability_id in actor.abilities:
            ability = self.get_ability(ability_id)
            if self.is_usable(actor, ability, tuning):
                usable.append(ability)
        return usable

    # -----------------------
    # Resolution
    # -----------------------
    def resolve(
        self,
        actor: Combatant,
        target: Combatant | None,
        ability_id: AbilityId | str,
        ctx: BattleContext,
        *,
        from_intent: bool = False,
    ) -> ResolutionResult:
        """
        Use ``ability_id`` from ``actor`` on ``target``.

        ``from_intent`` executes a previously declared telegraph: cost and
        cooldown were committed at declaration and are not charged again.
        Raises InvalidActionError with no state change when the ability
        cannot be used.
        """

        ability = self.get_ability(ability_id)
        tuning = ctx.tuning
        if from_intent:
            if not actor.is_alive:
                raise InvalidActionError("actor_defeated", f"{actor.display_name} cannot act.")
        else:
            self.check_usable(actor, ability, tuning)
        self._check_target(actor, target, ability)

        result = ResolutionResult(
            ability_id=ability.id,
            actor_id=actor.instance_id,
            target_id=target.instance_id if target is not None else None,
        )

        if not from_intent:
            actor.spend_resource(self.cost_of(actor, ability, tuning))
            if ability.is_telegraphed:
                intent = declare_intent(actor, ability, result.target_id)
                result.telegraphed = True
                self._emit(
                    ctx,
                    result,
                    IntentDeclaredEvent(
                        actor_id=actor.instance_id,
                        actor_name=actor.display_name,
                        ability_id=ability.id,
                        ability_name=ability.name,
                        turns_remaining=intent.turns_remaining,
                        tone="danger" if actor.side == "enemies" else "normal",
                    ),
                )
                logger.debug("%s declared %s (%s turns)", actor.instance_id, ability.id.value, intent.turns_remaining)
                return result
            if ability.cooldown > 0:
                actor.cooldowns[ability.id] = ability.cooldown

        action = self.build_action_context(actor, ability, tuning)
        self._emit(
            ctx,
            result,
            AbilityUsedEvent(
                actor_id=actor.instance_id,
                actor_name=actor.display_name,
                ability_id=ability.id,
                ability_name=ability.name,
                target_id=result.target_id,
            ),
        )
        self._handlers[ability.kind](actor, target, ability, action, ctx, result)
        if ability.deals_damage and actor.statuses.has("empowered"):
            actor.statuses.remove("empowered")
        logger.debug(
            "%s used %s: damage=%s absorbed=%s healed=%s shield=%s kills=%s",
            actor.instance_id,
            ability.id.value,
            result.damage_to_hp,
            result.absorbed,
            result.healed,
            result.shielded,
            result.kills,
        )
        return result

    def build_action_context(self, actor: Combatant, ability: AbilityDef, tuning: CombatTuning) -> ActionContext:
        damage_mult = 1.0
        heal_mult = 1.0
        if actor.statuses.has("empowered"):
            damage_mult *= 1.0 + actor.statuses.magnitude("empowered") / 100.0
        if actor.mechanic == "rage" and actor.stats.max_resource > 0 and ability.damage_type == "physical":
            damage_mult *= 1.0 + RAGE_MAX_BONUS * actor.stats.resource / actor.stats.max_resource
        if actor.mechanic == "crimson_pact" and actor.hp_fraction < CRIMSON_PACT_THRESHOLD:
            damage_mult *= 1.0 + CRIMSON_PACT_BONUS
        potency = potency_multiplier(actor.upgrades.get(ability.id), tuning.turn.upgrade_step_pct)
        return ActionContext(damage_mult=damage_mult, heal_mult=heal_mult * potency, potency_mult=potency)

    # -----------------------
    # Estimates (no randomness)
    # -----------------------
    def estimate_hit(self, actor: Combatant, target: Combatant, ability: AbilityDef, tuning: CombatTuning) -> int:
        """Expected damage of ``ability`` on ``target`` without variance or crit."""
        if not ability.deals_damage:
            return 0
        action = self.build_action_context(actor, ability, tuning)
        base_stat, defense, penetration = self._offense_inputs(actor, target, ability)
        modifiers = self._modifiers(actor, target, ability, action, tuning, potency_scale=1.0)
        return estimate_damage(
            ability.damage_type, base_stat, modifiers, defense, penetration, element=ability.element, tuning=tuning.formula
        )

    def estimate_restore(self, actor: Combatant, ability: AbilityDef, tuning: CombatTuning) -> int:
        """Expected heal or shield amount of ``ability``."""
        action = self.build_action_context(actor, ability, tuning)
        return self._restore_amount(actor, ability, action)

    # -----------------------
    # Effect handlers
    # -----------------------
    def _handle_damage(
        self,
        actor: Combatant,
        target: Combatant | None,
        ability: AbilityDef,
        action: ActionContext,
        ctx: BattleContext,
        result: ResolutionResult,
    ) -> None:
        self._damage_step(actor, target, ability, action, ctx, result)

    def _handle_composite(
        self,
        actor: Combatant,
        target: Combatant | None,
        ability: AbilityDef,
        action: ActionContext,
        ctx: BattleContext,
        result: ResolutionResult,
    ) -> None:
        primary = self._damage_step(actor, target, ability, action, ctx, result)
        if primary is None or result.dodged:
            return
        if ability.drain_pct > 0 and result.primary_damage_to_hp > 0:
            amount = int(result.primary_damage_to_hp * ability.drain_pct)
            self._restore_hp(actor, amount, "drain", ctx, result)
        for rider in ability.riders:
            recipient = actor if rider.target == "self" else primary
            self._apply_rider(recipient, rider, ctx, result)
        if ability.shatter_amount > 0 and primary.is_alive:
            removed = primary.statuses.shatter(ability.shatter_amount)
            if removed > 0:
                result.effects_applied.append("shatter")
                self._emit(
                    ctx,
                    result,
                    ShieldShatteredEvent(target_id=primary.instance_id, target_name=primary.display_name, amount=removed),
                )
        if ability.resource_drain_pct > 0 and primary.is_alive:
            drained = primary.drain_resource(stable_round(primary.stats.max_resource * ability.resource_drain_pct))
            if drained > 0:
                result.effects_applied.append("resource_drain")
                self._emit(
                    ctx,
                    result,
                    ResourceDrainedEvent(target_id=primary.instance_id, target_name=primary.display_name, amount=drained),
                )

    def _handle_heal(
        self,
        actor: Combatant,
        target: Combatant | None,
        ability: AbilityDef,
        action: ActionContext,
        ctx: BattleContext,
        result: ResolutionResult,
    ) -> None:
        recipient = self._friendly_recipient(actor, target, ability)
        result.target_id = recipient.instance_id
        result.target_max_hp = recipient.stats.max_hp
        self._restore_hp(recipient, self._restore_amount(actor, ability, action), "ability", ctx, result)

    def _handle_shield(
        self,
        actor: Combatant,
        target: Combatant | None,
        ability: AbilityDef,
        action: ActionContext,
        ctx: BattleContext,
        result: ResolutionResult,
    ) -> None:
        recipient = self._friendly_recipient(actor, target, ability)
        result.target_id = recipient.instance_id
        result.target_max_hp = recipient.stats.max_hp
        amount = self._restore_amount(actor, ability, action)
        if amount <= 0:
            return
        entry = recipient.statuses.add_shield(amount, ctx.tuning.turn.shield_turns)
        result.shielded += amount
        result.recipient_max_hp = recipient.stats.max_hp
        result.effects_applied.append("shield")
        self._emit(
            ctx,
            result,
            ShieldGainedEvent(
                target_id=recipient.instance_id,
                target_name=recipient.display_name,
                amount=amount,
                total=int(entry.magnitude) if entry else amount,
                tone="good" if recipient.side == "allies" else "normal",
            ),
        )

    def _handle_buff(
        self,
        actor: Combatant,
        target: Combatant | None,
        ability: AbilityDef,
        action: ActionContext,
        ctx: BattleContext,
        result: ResolutionResult,
    ) -> None:
        recipient = self._friendly_recipient(actor, target, ability)
        result.target_id = recipient.instance_id
        for rider in ability.riders:
            self._apply_rider(actor if rider.target == "self" else recipient, rider, ctx, result)

    def _handle_debuff(
        self,
        actor: Combatant,
        target: Combatant | None,
        ability: AbilityDef,
        action: ActionContext,
        ctx: BattleContext,
        result: ResolutionResult,
    ) -> None:
        victim = self._hostile_target(actor, target, ctx)
        if victim is None:
            return
        result.target_id = victim.instance_id
        result.target_max_hp = victim.stats.max_hp
        for rider in ability.riders:
            self._apply_rider(actor if rider.target == "self" else victim, rider, ctx, result)

    def _handle_guard(
        self,
        actor: Combatant,
        target: Combatant | None,
        ability: AbilityDef,
        action: ActionContext,
        ctx: BattleContext,
        result: ResolutionResult,
    ) -> None:
        result.target_id = actor.instance_id
        for rider in ability.riders:
            self._apply_rider(actor, rider, ctx, result)

    def _handle_ward(
        self,
        actor: Combatant,
        target: Combatant | None,
        ability: AbilityDef,
        action: ActionContext,
        ctx: BattleContext,
        result: ResolutionResult,
    ) -> None:
        """Heal a share of the recipient's max health now, then the same each turn while the ward holds."""
        recipient = self._friendly_recipient(actor, target, ability)
        result.target_id = recipient.instance_id
        result.recipient_max_hp = recipient.stats.max_hp
        per_turn = self.ward_amount(recipient, ability, action)
        turns = ctx.tuning.turn.ward_turns
        self._restore_hp(recipient, per_turn, "ward", ctx, result)
        if turns > 0 and recipient.is_alive:
            result.warded = per_turn * turns
            self._apply_rider(recipient, StatusRider(kind="regen", magnitude=per_turn, duration=turns), ctx, result)
        for rider in ability.riders:
            self._apply_rider(actor if rider.target == "self" else recipient, rider, ctx, result)

    def _handle_resource(
        self,
        actor: Combatant,
        target: Combatant | None,
        ability: AbilityDef,
        action: ActionContext,
        ctx: BattleContext,
        result: ResolutionResult,
    ) -> None:
        recipient = self._friendly_recipient(actor, target, ability)
        result.target_id = recipient.instance_id
        result.recipient_max_resource = recipient.stats.max_resource
        restored = recipient.gain_resource(self.resource_amount(recipient, ability, action))
        if restored > 0:
            result.resource_restored += restored
            result.effects_applied.append("resource")
            self._emit(
                ctx,
                result,
                ResourceRestoredEvent(
                    target_id=recipient.instance_id,
                    target_name=recipient.display_name,
                    amount=restored,
                    tone="good" if recipient.side == "allies" else "normal",
                ),
            )
        for rider in ability.riders:
            self._apply_rider(actor if rider.target == "self" else recipient, rider, ctx, result)

    @staticmethod
    def ward_amount(recipient: Combatant, ability: AbilityDef, action: ActionContext | None = None) -> int:
        mult = action.heal_mult if action is not None else 1.0
        return max(1, stable_round(recipient.stats.max_hp * ability.potency * mult))

    @staticmethod
    def resource_amount(recipient: Combatant, ability: AbilityDef, action: ActionContext | None = None) -> int:
        mult = action.potency_mult if action is not None else 1.0
        return max(RESOURCE_RESTORE_FLOOR, stable_round(recipient.stats.max_resource * ability.potency * mult))

    # -----------------------
    # Damage internals
    # -----------------------
    def _damage_step(
        self,
        actor: Combatant,
        target: Combatant | None,
        ability: AbilityDef,
        action: ActionContext,
        ctx: BattleContext,
        result: ResolutionResult,
    ) -> Combatant | None:
        primary = self._hostile_target(actor, target, ctx)
        if primary is None:
            return None
        result.target_id = primary.instance_id
        result.target_max_hp = primary.stats.max_hp
        tuning = ctx.tuning

        if not ability.is_aoe and self._roll_dodge(primary, ability, tuning):
            result.dodged = True
            self._emit(
                ctx,
                result,
                AttackDodgedEvent(
                    attacker_id=actor.instance_id,
                    attacker_name=actor.display_name,
                    target_id=primary.instance_id,
                    target_name=primary.display_name,
                ),
            )
            return primary

        others = [combatant for combatant in ctx.opponents_of(actor) if combatant is not primary]
        variance_draw = self._rng.float("damage.variance")
        base_stat, defense, penetration = self._offense_inputs(actor, primary, ability)
        modifiers = self._modifiers(actor, primary, ability, action, tuning, potency_scale=1.0)
        crit_draw = None
        if 0 < modifiers.crit_chance < 1:
            crit_draw = self._rng.float("damage.crit")
        breakdown = compute_damage(
            ability.damage_type,
            base_stat,
            modifiers,
            defense,
            penetration,
            variance_draw,
            crit_draw,
            element=ability.element,
            tuning=tuning.formula,
        )
        result.crit = breakdown.crit
        self._land_hit(actor, primary, ability, breakdown, ctx, result, splash=False)

        if ability.is_aoe:
            for other in others:
                if not other.is_alive:
                    continue
                base_stat, defense, penetration = self._offense_inputs(actor, other, ability)
                splash_modifiers = self._modifiers(actor, other, ability, action, tuning, potency_scale=ability.splash)
                splash = compute_damage(
                    ability.damage_type,
                    base_stat,
                    splash_modifiers,
                    defense,
                    penetration,
                    variance_draw,
                    crit_draw,
                    element=ability.element,
                    tuning=tuning.formula,
                )
                self._land_hit(actor, other, ability, splash, ctx, result, splash=True)
        return primary

    def _land_hit(
        self,
        actor: Combatant,
        target: Combatant,
        ability: AbilityDef,
        breakdown: DamageBreakdown,
        ctx: BattleContext,
        result: ResolutionResult,
        *,
        splash: bool,
    ) -> None:
        absorbed, through = target.statuses.absorb(breakdown.total)
        lost = target.take_damage(through)
        result.absorbed += absorbed
        result.damage_to_hp += lost
        if not splash:
            result.primary_absorbed += absorbed
            result.primary_damage_to_hp += lost
        result.effects_applied.append("splash" if splash else "damage")
        self._emit(
            ctx,
            result,
            DamageDealtEvent(
                attacker_id=actor.instance_id,
                attacker_name=actor.display_name,
                target_id=target.instance_id,
                target_name=target.display_name,
                damage=lost,
                absorbed=absorbed,
                target_hp=target.stats.hp,
                crit=breakdown.crit,
                splash=splash,
                element=breakdown.element,
                tone="danger" if target.side == "allies" else "normal",
            ),
        )

        if not splash and ability.is_interrupt and target.intent is not None:
            cleared = target.intent.ability_id
            clear_intent(target)
            result.effects_applied.append("interrupt")
            self._emit(
                ctx,
                result,
                IntentClearedEvent(
                    actor_id=target.instance_id,
                    actor_name=target.display_name,
                    ability_id=cleared,
                    reason="interrupted",
                    tone="good",
                ),
            )

        if target.posture is not None and target.is_alive:
            pending = target.intent.ability_id if target.intent is not None else None
            hit = accrue_posture(
                target,
                breakdown.total,
                basic=ability.is_basic,
                crit=breakdown.crit,
                interrupt=ability.is_interrupt and not splash,
                tuning=ctx.tuning.posture,
            )
            if hit.broke:
                result.effects_applied.append("posture_break")
                self._emit(
                    ctx,
                    result,
                    PostureBrokenEvent(combatant_id=target.instance_id, combatant_name=target.display_name, tone="good"),
                )
                if hit.intent_cleared and pending is not None:
                    self._emit(
                        ctx,
                        result,
                        IntentClearedEvent(
                            actor_id=target.instance_id,
                            actor_name=target.display_name,
                            ability_id=pending,
                            reason="broken",
                            tone="good",
                        ),
                    )

        self._on_hit_passives(actor, target, lost, breakdown.total, ctx, result)
        if not target.is_alive:
            self._record_kill(target, ctx, result)

    def _on_hit_passives(
        self,
        actor: Combatant,
        target: Combatant,
        lost: int,
        connected: int,
        ctx: BattleContext,
        result: ResolutionResult,
    ) -> None:
        if lost > 0 and actor.stats.life_steal_pct > 0:
            stolen = int(lost * clamp(actor.stats.life_steal_pct, 0.0, 100.0) / 100.0)
            self._restore_hp(actor, stolen, "life_steal", ctx, result, count_as_heal=False)
        if lost > 0 and actor.stats.resource_on_hit > 0:
            actor.gain_resource(actor.stats.resource_on_hit)
        if lost > 0 and target.is_alive and target.stats.resource_on_hurt > 0:
            target.gain_resource(target.stats.resource_on_hurt)
        if connected > 0 and actor.affixes is not None:
            self._attacker_affixes(actor, target, lost, ctx, result)
        if target.affixes is not None and target.is_alive and target.affixes.berserk_due(target.hp_fraction):
            target.affixes.berserk_spent = True
            enrage = StatusRider(kind="enrage", magnitude=target.affixes.berserk_enrage_pct, duration=BERSERK_TURNS)
            self._apply_rider(target, enrage, ctx, result)
            logger.debug("%s went berserk at %.2f health", target.instance_id, target.hp_fraction)

        thorns = max(0, int(finite(target.stats.thorns)))
        if connected > 0 and target.affixes is not None and target.affixes.reflect_pct > 0:
            thorns += max(1, stable_round(connected * target.affixes.reflect_pct))
        if connected > 0 and thorns > 0 and actor.is_alive and actor is not target:
            reflected = actor.take_damage(thorns)
            if reflected > 0:
                result.effects_applied.append("thorns")
                self._emit(
                    ctx,
                    result,
                    ThornsEvent(
                        source_id=target.instance_id,
                        source_name=target.display_name,
                        attacker_id=actor.instance_id,
                        attacker_name=actor.display_name,
                        damage=reflected,
                        tone="danger" if actor.side == "allies" else "normal",
                    ),
                )
            if not actor.is_alive:
                result.attacker_defeated = True
                self._announce_defeat(actor, ctx, result)

    def _attacker_affixes(
        self, actor: Combatant, target: Combatant, lost: int, ctx: BattleContext, result: ResolutionResult
    ) -> None:
        traits = actor.affixes
        assert traits is not None
        if lost > 0 and traits.vampiric_pct > 0:
            self._restore_hp(
                actor, max(1, stable_round(lost * traits.vampiric_pct)), "vampiric", ctx, result, count_as_heal=False
            )
        if not target.is_alive:
            return
        if traits.chills and self._rng.float("affix.chill") < traits.chill_chance:
            self._apply_rider(target, StatusRider(kind="chilled", magnitude=1, duration=traits.chill_turns), ctx, result)
        if traits.hexes:
            for kind, amount in (
                ("attack_down", traits.hex_attack_down),
                ("armor_down", traits.hex_armor_down),
                ("magic_resist_down", traits.hex_magic_resist_down),
            ):
                if amount > 0:
                    hex_rider = StatusRider(kind=kind, magnitude=amount, duration=traits.hex_turns)  # type: ignore[arg-type]
                    self._apply_rider(target, hex_rider, ctx, result)

    def _roll_dodge(self, target: Combatant, ability: AbilityDef, tuning: CombatTuning) -> bool:
        if ability.is_undodgeable:
            return False
        chance_pct = clamp(
            finite(target.stats.dodge_pct) + evasion_bonus_pct(target.statuses), 0.0, tuning.formula.max_dodge_pct
        )
        if chance_pct <= 0:
            return False
        return self._rng.float("combat.dodge") < chance_pct / 100.0

    def _offense_inputs(self, actor: Combatant, target: Combatant, ability: AbilityDef) -> tuple[float, float, float]:
        if ability.damage_type == "magic":
            return (
                compute_effective_magic(actor.stats.magic, actor.statuses),
                compute_effective_magic_resist(target.stats.magic_resist, target.statuses),
                finite(actor.stats.magic_pen_pct),
            )
        return (
            compute_effective_attack(actor.stats.attack, actor.statuses),
            compute_effective_armor(target.stats.armor, target.statuses),
            finite(actor.stats.armor_pen_pct),
        )

    def _modifiers(
        self,
        actor: Combatant,
        target: Combatant,
        ability: AbilityDef,
        action: ActionContext,
        tuning: CombatTuning,
        *,
        potency_scale: float,
    ) -> DamageModifiers:
        formula = tuning.formula
        base_crit = formula.magic_base_crit if ability.damage_type == "magic" else formula.physical_base_crit
        difficulty = tuning.turn.player_damage_mod if actor.side == "allies" else tuning.turn.enemy_damage_mod
        resist_all = clamp(target.stats.resist_all_pct, 0.0, formula.max_resist_all_pct)
        element = ability.element
        return DamageModifiers(
            potency=ability.potency * action.potency_mult * potency_scale,
            context_mult=action.damage_mult,
            difficulty_mult=difficulty,
            outgoing_mult=outgoing_multiplier(actor.statuses, formula),
            incoming_mult=incoming_multiplier(target.statuses, formula) * (1.0 - resist_all / 100.0),
            elemental_bonus_pct=actor.stats.elemental_bonus_pct.get(element, 0.0) if element else 0.0,
            affinity_mult=target.stats.affinities.get(element, 1.0) if element else 1.0,
            elemental_resist_pct=target.stats.elemental_resist_pct.get(element, 0.0) if element else 0.0,
            crit_chance=crit_chance(base_crit, actor.stats.crit_pct, action.crit_bonus, formula.crit_ceiling),
            target_broken=target.statuses.has("broken"),
        )

    # -----------------------
    # Shared helpers
    # -----------------------
    def _restore_amount(self, actor: Combatant, ability: AbilityDef, action: ActionContext) -> int:
        magic = compute_effective_magic(actor.stats.magic, actor.statuses)
        return scaled_heal(ability.base_amount + ability.potency * magic, action.heal_mult)

    def _restore_hp(
        self,
        recipient: Combatant,
        amount: int,
        source: str,
        ctx: BattleContext,
        result: ResolutionResult,
        *,
        count_as_heal: bool = True,
    ) -> None:
        restored = recipient.restore_hp(amount)
        if restored <= 0:
            return
        if count_as_heal:
            result.healed += restored
            result.recipient_max_hp = recipient.stats.max_hp
        result.effects_applied.append(source)
        self._emit(
            ctx,
            result,
            HealedEvent(
                target_id=recipient.instance_id,
                target_name=recipient.display_name,
                amount=restored,
                target_hp=recipient.stats.hp,
                source=source,
                tone="good" if recipient.side == "allies" else "normal",
            ),
        )

    def _apply_rider(self, recipient: Combatant, rider: StatusRider, ctx: BattleContext, result: ResolutionResult) -> None:
        if not recipient.is_alive:
            return
        entry = recipient.statuses.apply_timed(rider.kind, rider.magnitude, rider.duration)
        if entry is None:
            return
        result.effects_applied.append(rider.kind)
        harmful = rider.kind in HARMFUL_KINDS
        self._emit(
            ctx,
            result,
            StatusAppliedEvent(
                target_id=recipient.instance_id,
                target_name=recipient.display_name,
                kind=rider.kind,
                magnitude=entry.magnitude,
                duration=entry.remaining,
                tone="danger" if harmful and recipient.side == "allies" else "normal",
            ),
        )

    def _record_kill(self, victim: Combatant, ctx: BattleContext, result: ResolutionResult) -> None:
        if victim.instance_id in result.kills:
            return
        result.kills.append(victim.instance_id)
        self._announce_defeat(victim, ctx, result)

    def _announce_defeat(self, victim: Combatant, ctx: BattleContext, result: ResolutionResult) -> None:
        victim.intent = None
        self._emit(
            ctx,
            result,
            CombatantDefeatedEvent(
                combatant_id=victim.instance_id,
                combatant_name=victim.display_name,
                side=victim.side,
                tone="good" if victim.side == "enemies" else "danger",
            ),
        )

    def _hostile_target(self, actor: Combatant, target: Combatant | None, ctx: BattleContext) -> Combatant | None:
        """The nominal target if it still stands, else the first living opponent."""
        if target is not None and target.is_alive and target.side != actor.side:
            return target
        living = ctx.opponents_of(actor)
        if not living:
            return None
        if target is not None:
            logger.debug("%s retargeted from %s to %s", actor.instance_id, target.instance_id, living[0].instance_id)
        return living[0]

    @staticmethod
    def _friendly_recipient(actor: Combatant, target: Combatant | None, ability: AbilityDef) -> Combatant:
        if ability.targeting == "self":
            return actor
        if target is not None and target.is_alive and target.side == actor.side:
            return target
        return actor

    @staticmethod
    def _check_target(actor: Combatant, target: Combatant | None, ability: AbilityDef) -> None:
        if target is None or not target.is_alive:
            return
        if ability.targeting == "enemy" and target.side == actor.side:
            raise InvalidActionError("invalid_target", f"{ability.name} cannot target an ally.")
        if ability.targeting == "ally" and target.side != actor.side:
            raise InvalidActionError("invalid_target", f"{ability.name} cannot target an enemy.")

    @staticmethod
    def _emit(ctx: BattleContext, result: ResolutionResult, event: BattleEvent) -> None:
        result.events.append(event)
        ctx.emit(event)
