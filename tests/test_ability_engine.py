import dataclasses

import pytest

from embercombat.core.rng import ScriptedRNG
from embercombat.domain.defs import AbilityId, AbilityUpgrade
from embercombat.domain.events import (
    AttackDodgedEvent,
    DamageDealtEvent,
    IntentClearedEvent,
    IntentDeclaredEvent,
    ResourceRestoredEvent,
    ThornsEvent,
)
from embercombat.services.ability_engine import AbilityEngine
from embercombat.services.errors import InvalidActionError
from tests.helpers.builders import (
    abilities_repo,
    make_companion,
    make_context,
    make_engine,
    make_hostile,
    make_player,
    quiet_rng,
)


def test_strike_deals_attack_damage_and_builds_posture() -> None:
    ctx = make_context()
    goblin = ctx.hostiles[0]

    result = make_engine().resolve(ctx.player, goblin, "strike", ctx)

    assert result.damage_to_hp == 10
    assert goblin.stats.hp == 50
    assert goblin.posture.current == 4
    assert [type(event) for event in result.events][-1] is DamageDealtEvent


def test_aoe_splash_hits_every_other_living_target_at_seventy_percent() -> None:
    player = make_player(attack=100, abilities=("strike", "cleave"))
    hostiles = [make_hostile(name, hp=500, posture_max=400) for name in ("a", "b", "c")]
    ctx = make_context(player, hostiles)

    result = make_engine().resolve(player, hostiles[0], "cleave", ctx)

    primary = 500 - hostiles[0].stats.hp
    assert primary == 110
    for other in hostiles[1:]:
        assert 500 - other.stats.hp == max(1, round(primary * 0.7))
    assert result.damage_to_hp == 110 + 77 * 2
    assert sum(1 for event in result.events if isinstance(event, DamageDealtEvent) and event.splash) == 2


def test_primary_falls_back_to_first_living_opponent() -> None:
    dead = make_hostile("dead", hp=10)
    dead.stats.hp = 0
    alive = make_hostile("alive")
    ctx = make_context(hostiles=[dead, alive])

    result = make_engine().resolve(ctx.player, dead, "strike", ctx)

    assert result.target_id == "alive"
    assert alive.stats.hp == 50


def test_shield_absorbs_before_health() -> None:
    ctx = make_context()
    goblin = ctx.hostiles[0]
    goblin.statuses.add_shield(6, 3)

    result = make_engine().resolve(ctx.player, goblin, "strike", ctx)

    assert result.absorbed == 6
    assert result.damage_to_hp == 4
    assert result.total_damage == 10
    assert goblin.stats.hp == 56


def test_rejected_ability_changes_nothing() -> None:
    player = make_player(resource=5, abilities=("strike", "power_strike"))
    ctx = make_context(player)
    goblin = ctx.hostiles[0]

    with pytest.raises(InvalidActionError) as exc_info:
        make_engine().resolve(player, goblin, "power_strike", ctx)

    assert exc_info.value.reason == "insufficient_resource"
    assert player.stats.resource == 5
    assert goblin.stats.hp == 60
    assert ctx.events == []


def test_ability_outside_kit_is_rejected_but_basic_attack_is_always_known() -> None:
    player = make_player(abilities=())
    ctx = make_context(player)
    engine = make_engine()

    with pytest.raises(InvalidActionError) as exc_info:
        engine.resolve(player, ctx.hostiles[0], "fireball", ctx)
    assert exc_info.value.reason == "not_in_kit"
    assert engine.resolve(player, ctx.hostiles[0], "strike", ctx).damage_to_hp == 10


def test_cost_and_cooldown_are_committed() -> None:
    player = make_player(abilities=("strike", "power_strike"))
    ctx = make_context(player)
    engine = make_engine()

    engine.resolve(player, ctx.hostiles[0], "power_strike", ctx)

    assert player.stats.resource == 38
    assert player.cooldown(AbilityId.POWER_STRIKE) == 1
    with pytest.raises(InvalidActionError) as exc_info:
        engine.resolve(player, ctx.hostiles[0], "power_strike", ctx)
    assert exc_info.value.reason == "on_cooldown"


def test_targeting_an_ally_with_an_attack_is_rejected() -> None:
    companion = make_companion()
    ctx = make_context(companion=companion)

    with pytest.raises(InvalidActionError) as exc_info:
        make_engine().resolve(ctx.player, companion, "strike", ctx)
    assert exc_info.value.reason == "invalid_target"


def test_telegraphed_ability_declares_intent_without_damage() -> None:
    drake = make_hostile("drake", abilities=("strike", "heavy_cleave"))
    ctx = make_context(hostiles=[drake])

    result = make_engine().resolve(drake, ctx.player, "heavy_cleave", ctx)

    assert result.telegraphed
    assert result.total_damage == 0
    assert ctx.player.stats.hp == 100
    assert drake.intent is not None and drake.intent.ability_id is AbilityId.HEAVY_CLEAVE
    assert drake.cooldown(AbilityId.HEAVY_CLEAVE) == 2
    assert isinstance(result.events[0], IntentDeclaredEvent)


def test_executing_an_intent_skips_cost_and_cooldown_checks() -> None:
    drake = make_hostile("drake", attack=20, abilities=("strike", "heavy_cleave"))
    ctx = make_context(hostiles=[drake])
    engine = make_engine()
    engine.resolve(drake, ctx.player, "heavy_cleave", ctx)
    drake.intent = None

    result = engine.resolve(drake, ctx.player, "heavy_cleave", ctx, from_intent=True)

    assert result.damage_to_hp == 29
    assert ctx.player.stats.hp == 71


def test_interrupt_clears_intent_but_not_cooldown() -> None:
    player = make_player(abilities=("strike", "shield_bash"))
    drake = make_hostile("drake", abilities=("strike", "heavy_cleave"))
    ctx = make_context(player, [drake])
    engine = make_engine()
    engine.resolve(drake, player, "heavy_cleave", ctx)

    result = engine.resolve(player, drake, "shield_bash", ctx)

    assert drake.intent is None
    assert drake.cooldown(AbilityId.HEAVY_CLEAVE) == 2
    assert "interrupt" in result.effects_applied
    assert any(isinstance(event, IntentClearedEvent) and event.reason == "interrupted" for event in result.events)
    # a quarter of the 8 damage plus the interrupt bonus
    assert drake.posture.current == 4


def test_dodge_avoids_damage_and_riders() -> None:
    rng = quiet_rng({"combat.dodge": [0.1]})
    player = make_player(abilities=("strike", "rend"))
    spider = make_hostile("spider")
    spider.stats.dodge_pct = 50
    ctx = make_context(player, [spider])

    result = make_engine(rng).resolve(player, spider, "rend", ctx)

    assert result.dodged
    assert spider.stats.hp == 60
    assert not spider.statuses.has("bleed")
    assert isinstance(result.events[-1], AttackDodgedEvent)


def test_undodgeable_ability_ignores_dodge() -> None:
    rng = quiet_rng({"combat.dodge": [0.0]})
    player = make_player(abilities=("strike", "shield_bash"))
    spider = make_hostile("spider")
    spider.stats.dodge_pct = 75
    ctx = make_context(player, [spider])

    result = make_engine(rng).resolve(player, spider, "shield_bash", ctx)

    assert not result.dodged
    assert result.damage_to_hp == 8
    assert "combat.dodge" not in rng.calls


def test_crit_draw_multiplies_damage() -> None:
    ctx = make_context()

    result = make_engine(quiet_rng({"damage.crit": [0.0]})).resolve(ctx.player, ctx.hostiles[0], "strike", ctx)

    assert result.crit
    assert result.damage_to_hp == 15


def test_heal_is_capped_at_missing_health() -> None:
    companion = make_companion()
    ctx = make_context(make_player(hp=95, max_hp=100), companion=companion)

    result = make_engine().resolve(companion, ctx.player, "heal", ctx)

    assert result.healed == 5
    assert ctx.player.stats.hp == 100


def test_heal_restores_base_amount_plus_magic() -> None:
    companion = make_companion()
    ctx = make_context(make_player(hp=50, max_hp=100), companion=companion)

    result = make_engine().resolve(companion, ctx.player, "heal", ctx)

    assert result.healed == 24
    assert result.recipient_max_hp == 100


def test_barrier_adds_a_shield_for_the_configured_turns() -> None:
    companion = make_companion()
    ctx = make_context(companion=companion)

    result = make_engine().resolve(companion, ctx.player, "barrier", ctx)

    assert result.shielded == 25
    assert ctx.player.statuses.magnitude("shield") == 25
    assert ctx.player.statuses.remaining("shield") == ctx.tuning.turn.shield_turns


def test_drain_heals_the_caster_by_a_share_of_health_damage() -> None:
    player = make_player(hp=50, max_hp=100, magic=20, abilities=("strike", "drain_life"))
    ctx = make_context(player)

    result = make_engine().resolve(player, ctx.hostiles[0], "drain_life", ctx)

    assert result.damage_to_hp == 24
    assert player.stats.hp == 62


def test_composite_applies_riders_to_the_primary() -> None:
    player = make_player(abilities=("strike", "rend"))
    ctx = make_context(player)

    make_engine().resolve(player, ctx.hostiles[0], "rend", ctx)

    bleed = ctx.hostiles[0].statuses.get("bleed")
    assert bleed is not None and bleed.magnitude == 4 and bleed.remaining == 3


def test_shatter_and_resource_drain() -> None:
    acolyte = make_hostile("acolyte", magic=10, abilities=("strike", "life_drain", "shatter_shield"))
    player = make_player(resource=50)
    player.statuses.add_shield(30, 3)
    ctx = make_context(player, [acolyte])
    engine = make_engine()

    engine.resolve(acolyte, player, "shatter_shield", ctx)
    assert player.statuses.magnitude("shield") == 4

    engine.resolve(acolyte, player, "life_drain", ctx)
    assert player.stats.resource == 44


def test_thorns_reflect_even_when_the_hit_is_absorbed() -> None:
    warden = make_hostile("warden")
    warden.stats.thorns = 2
    warden.statuses.add_shield(50, 3)
    ctx = make_context(hostiles=[warden])

    result = make_engine().resolve(ctx.player, warden, "strike", ctx)

    assert warden.stats.hp == 60
    assert ctx.player.stats.hp == 98
    assert any(isinstance(event, ThornsEvent) for event in result.events)


def test_life_steal_heals_from_health_damage() -> None:
    player = make_player(hp=80, max_hp=100)
    player.stats.life_steal_pct = 50
    ctx = make_context(player)

    result = make_engine().resolve(player, ctx.hostiles[0], "strike", ctx)

    assert player.stats.hp == 85
    assert result.healed == 0


def test_empowered_boosts_one_damaging_ability_then_fades() -> None:
    player = make_player()
    player.statuses.apply_timed("empowered", 50, 3)
    ctx = make_context(player)

    result = make_engine().resolve(player, ctx.hostiles[0], "strike", ctx)

    assert result.damage_to_hp == 15
    assert not player.statuses.has("empowered")


def test_rage_mechanic_scales_physical_damage_with_resource() -> None:
    player = make_player(resource=50)
    player.mechanic = "rage"
    ctx = make_context(player)

    assert make_engine().resolve(player, ctx.hostiles[0], "strike", ctx).damage_to_hp == 13


def test_upgrade_paths_change_potency_and_cost() -> None:
    player = make_player(abilities=("strike", "power_strike", "shield_bash"))
    player.upgrades[AbilityId.POWER_STRIKE] = AbilityUpgrade(path="potency", tier=2)
    player.upgrades[AbilityId.SHIELD_BASH] = AbilityUpgrade(path="efficiency", tier=2)
    ctx = make_context(player)
    engine = make_engine()

    assert engine.resolve(player, ctx.hostiles[0], "power_strike", ctx).damage_to_hp == 19
    assert engine.cost_of(player, engine.get_ability("shield_bash"), ctx.tuning) == 6


def test_killing_blow_is_recorded() -> None:
    goblin = make_hostile(hp=5)
    ctx = make_context(hostiles=[goblin])

    result = make_engine().resolve(ctx.player, goblin, "strike", ctx)

    assert result.kills == [goblin.instance_id]
    assert goblin.stats.hp == 0
    assert goblin.posture.current == 0


def test_same_state_and_draws_resolve_identically() -> None:
    def run() -> tuple:
        rng = ScriptedRNG(fallback_seed=31)
        player = make_player(attack=17, abilities=("strike", "cleave"))
        hostiles = [make_hostile("a", hp=200), make_hostile("b", hp=200)]
        ctx = make_context(player, hostiles)
        result = AbilityEngine(abilities_repo(), rng).resolve(player, hostiles[0], "cleave", ctx)
        return result.damage_to_hp, result.crit, [h.stats.hp for h in hostiles], [type(e).__name__ for e in ctx.events]

    assert run() == run()


def test_usable_abilities_follow_kit_order_and_filter_unaffordable() -> None:
    player = make_player(resource=10, abilities=("strike", "power_strike", "rend", "guard"))
    engine = make_engine()

    usable = [ability.id for ability in engine.usable_abilities(player, make_context(player).tuning)]

    assert usable == [AbilityId.STRIKE, AbilityId.REND, AbilityId.GUARD]


def test_splash_drain_heals_only_from_the_primary_target() -> None:
    wide_drain = dataclasses.replace(abilities_repo().get_ability("drain_life"), splash=0.7)
    engine = AbilityEngine({AbilityId.DRAIN_LIFE: wide_drain}, quiet_rng())
    player = make_player(hp=50, max_hp=100, magic=20, abilities=("strike", "drain_life"))
    hostiles = [make_hostile(name, hp=500, posture_max=400) for name in ("a", "b")]
    ctx = make_context(player, hostiles)

    result = engine.resolve(player, hostiles[0], "drain_life", ctx)

    assert result.primary_damage_to_hp == 24
    assert result.damage_to_hp > 24
    assert player.stats.hp == 62


def test_ward_heals_now_and_leaves_a_regen() -> None:
    companion = make_companion(abilities=("strike", "warding_circle"))
    player = make_player(hp=50, max_hp=100)
    ctx = make_context(player, companion=companion)

    result = make_engine().resolve(companion, player, "warding_circle", ctx)

    assert player.stats.hp == 56
    regen = player.statuses.get("regen")
    assert regen is not None and regen.magnitude == 6 and regen.remaining == 3
    assert result.healed == 6
    assert result.warded == 18
    assert companion.stats.resource == 40 - 14


def test_resource_ability_refills_the_ally_with_a_floor() -> None:
    companion = make_companion(abilities=("strike", "invigorate"))
    player = make_player(resource=10)
    ctx = make_context(player, companion=companion)
    engine = make_engine()

    result = engine.resolve(companion, player, "invigorate", ctx)

    assert player.stats.resource == 10 + 18
    assert result.resource_restored == 18
    assert player.statuses.has("empowered")
    assert any(isinstance(event, ResourceRestoredEvent) for event in result.events)

    dry = make_player(resource=0)
    dry.stats.max_resource = 8
    assert engine.resource_amount(dry, engine.get_ability("invigorate")) == 4


def test_resource_ability_cannot_target_an_enemy() -> None:
    companion = make_companion(abilities=("strike", "invigorate"))
    ctx = make_context(companion=companion)

    with pytest.raises(InvalidActionError):
        make_engine().resolve(companion, ctx.hostiles[0], "invigorate", ctx)
