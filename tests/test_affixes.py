import json
from pathlib import Path

import pytest

from embercombat.core.rng import RNG, ScriptedRNG
from embercombat.data.errors import DataReferenceError, DataValidationError
from embercombat.data.repositories import AffixesRepository, EnemiesRepository
from embercombat.domain.affixes import AffixDef, AffixTraits, combine_traits, combined_multipliers
from embercombat.domain.events import HealedEvent, StatusAppliedEvent, ThornsEvent
from embercombat.services.factories import create_hostile
from embercombat.services.turn_orchestrator import PlayerAction, TurnOrchestrator
from tests.helpers.builders import make_context, make_engine, make_hostile, make_player, quiet_rng


def _affixed(traits: AffixTraits, **kwargs):
    hostile = make_hostile(**kwargs)
    hostile.affixes = traits
    return hostile


def test_shipped_affixes_load() -> None:
    affixes = AffixesRepository()

    assert {affix.id for affix in affixes.all()} == {
        "berserk",
        "bulwark",
        "enraged",
        "frozen",
        "hexed",
        "regenerating",
        "thorns",
        "vampiric",
    }
    assert affixes.get("bulwark").kind == "elite"
    assert affixes.get("frozen").chill_turns == 2


def test_traits_keep_the_strongest_knob_and_multipliers_compound() -> None:
    frozen = AffixDef(id="frozen", name="Frozen", hp_mult=1.1, chill_chance=0.35, chill_turns=2)
    regenerating = AffixDef(id="regenerating", name="Regenerating", hp_mult=1.2, regen_pct=0.04)

    traits = combine_traits([frozen, regenerating])

    assert traits is not None
    assert traits.affix_ids == ("frozen", "regenerating")
    assert traits.chill_chance == pytest.approx(0.35)
    assert traits.regen_pct == pytest.approx(0.04)
    assert combined_multipliers([frozen, regenerating])["hp_mult"] == pytest.approx(1.32)
    assert combine_traits([]) is None


def test_elite_affix_scales_the_built_hostile() -> None:
    warden = create_hostile("bone_warden", EnemiesRepository(), RNG(1))

    assert warden.stats.max_hp == warden.stats.hp == 108
    assert warden.stats.attack == 12
    assert warden.stats.armor == 8
    assert warden.affixes is not None and warden.affixes.affix_ids == ("bulwark",)
    assert warden.posture is not None and warden.posture.maximum == 70


def test_affixes_apply_after_group_scaling() -> None:
    enemies = EnemiesRepository()
    wraith = create_hostile("frost_wraith", enemies, RNG(2), group_size=2, index=1)

    # 46 * 0.78 -> 36, then * 1.1 * 1.2 -> 48
    assert wraith.stats.max_hp == 48
    assert wraith.affixes is not None
    assert wraith.affixes.chills and wraith.affixes.regen_pct == pytest.approx(0.04)


def test_vampiric_hit_heals_the_hostile_without_counting_as_a_heal() -> None:
    vampire = _affixed(AffixTraits(affix_ids=("vampiric",), vampiric_pct=0.18), hp=60, attack=50)
    vampire.stats.hp = 40
    ctx = make_context(hostiles=[vampire])

    result = make_engine().resolve(vampire, ctx.player, "strike", ctx)

    assert ctx.player.stats.hp == 50
    assert vampire.stats.hp == 49
    assert result.healed == 0
    assert any(isinstance(event, HealedEvent) and event.source == "vampiric" for event in result.events)


@pytest.mark.parametrize("draw, chilled", [(0.2, True), (0.9, False)])
def test_frozen_hit_chills_on_a_low_draw(draw: float, chilled: bool) -> None:
    wraith = _affixed(AffixTraits(affix_ids=("frozen",), chill_chance=0.35, chill_turns=2))
    ctx = make_context(hostiles=[wraith])
    engine = make_engine(quiet_rng({"affix.chill": [draw]}))

    engine.resolve(wraith, ctx.player, "strike", ctx)

    assert ctx.player.statuses.has("chilled") is chilled
    if chilled:
        assert ctx.player.statuses.remaining("chilled") == 2


def test_hexed_hit_lowers_three_defenses() -> None:
    traits = AffixTraits(
        affix_ids=("hexed",), hex_turns=3, hex_attack_down=2, hex_armor_down=2, hex_magic_resist_down=2
    )
    acolyte = _affixed(traits)
    ctx = make_context(hostiles=[acolyte])

    make_engine().resolve(acolyte, ctx.player, "strike", ctx)

    for kind in ("attack_down", "armor_down", "magic_resist_down"):
        entry = ctx.player.statuses.get(kind)
        assert entry is not None and entry.magnitude == 2 and entry.remaining == 3


def test_thorned_hostile_reflects_a_share_of_the_hit() -> None:
    boar = _affixed(AffixTraits(affix_ids=("thorns",), reflect_pct=0.12), hp=200, posture_max=400)
    player = make_player(attack=50)
    ctx = make_context(player, [boar])

    result = make_engine().resolve(player, boar, "strike", ctx)

    thorns = [event for event in result.events if isinstance(event, ThornsEvent)]
    assert len(thorns) == 1 and thorns[0].damage == 6
    assert player.stats.hp == 94


def test_flat_and_reflected_thorns_combine() -> None:
    boar = _affixed(AffixTraits(affix_ids=("thorns",), reflect_pct=0.12), hp=200, posture_max=400)
    boar.stats.thorns = 2
    ctx = make_context(hostiles=[boar])

    make_engine().resolve(ctx.player, boar, "strike", ctx)

    # strike connects for 10: 2 flat plus max(1, round(1.2))
    assert ctx.player.stats.hp == 97


def test_berserk_triggers_once_below_its_threshold() -> None:
    drake = _affixed(
        AffixTraits(affix_ids=("berserk",), berserk_threshold=0.4, berserk_enrage_pct=25), hp=100, posture_max=400
    )
    player = make_player(attack=65)
    ctx = make_context(player, [drake])
    engine = make_engine()

    first = engine.resolve(player, drake, "strike", ctx)

    assert drake.stats.hp == 35
    assert drake.statuses.magnitude("enrage") == 25
    assert drake.affixes.berserk_spent
    assert any(isinstance(event, StatusAppliedEvent) and event.kind == "enrage" for event in first.events)

    player.stats.attack = 5
    second = engine.resolve(player, drake, "strike", ctx)
    assert not any(isinstance(event, StatusAppliedEvent) for event in second.events)


def test_berserk_stays_dormant_above_its_threshold() -> None:
    drake = _affixed(AffixTraits(affix_ids=("berserk",), berserk_threshold=0.4, berserk_enrage_pct=25), hp=100)
    ctx = make_context(hostiles=[drake])

    make_engine().resolve(ctx.player, drake, "strike", ctx)

    assert not drake.statuses.has("enrage")
    assert not drake.affixes.berserk_spent


def test_regenerating_hostile_heals_at_its_turn_start() -> None:
    troll = _affixed(AffixTraits(affix_ids=("regenerating",), regen_pct=0.04), hp=100)
    troll.stats.hp = 50
    ctx = make_context(hostiles=[troll])
    rng = ScriptedRNG()

    report = TurnOrchestrator(make_engine(rng), rng).submit_player_action(ctx, PlayerAction(action_type="attack"))

    regen = [event for event in report.events if isinstance(event, HealedEvent) and event.source == "regenerating"]
    assert len(regen) == 1 and regen[0].amount == 4
    assert troll.stats.hp == 50 - 10 + 4


def _write(tmp_path: Path, enemies: dict, affixes: dict) -> None:
    (tmp_path / "enemies.json").write_text(json.dumps(enemies), encoding="utf-8")
    (tmp_path / "affixes.json").write_text(json.dumps(affixes), encoding="utf-8")


_SLIME = {"name": "Slime", "level": 1, "hp": 10, "attack": 1, "magic": 0, "armor": 0, "magic_resist": 0}


def test_unknown_affix_reference_is_rejected(tmp_path: Path) -> None:
    _write(tmp_path, {"slime": {**_SLIME, "abilities": ["strike"], "affixes": ["cursed"]}}, {})

    with pytest.raises(DataReferenceError):
        EnemiesRepository(base_path=tmp_path).get("slime")


def test_elite_affix_on_a_regular_hostile_is_rejected(tmp_path: Path) -> None:
    _write(
        tmp_path,
        {"slime": {**_SLIME, "abilities": ["strike"], "affixes": ["bulwark"]}},
        {"bulwark": {"name": "Bulwark", "kind": "elite", "hp_mult": 1.35}},
    )

    with pytest.raises(DataValidationError):
        EnemiesRepository(base_path=tmp_path).get("slime")


@pytest.mark.parametrize(
    "payload",
    [
        {"name": "Odd", "kind": "legendary"},
        {"name": "Odd", "kind": "minor", "hp_mult": 0},
        {"name": "Odd", "kind": "minor", "chill_chance": 0.5},
        {"name": "Odd", "kind": "minor", "regen_pct": 1.5},
        {"name": "Odd", "kind": "minor", "berserk_threshold": 0.4},
        {"name": "Odd", "kind": "minor", "glow": 1},
    ],
)
def test_malformed_affixes_are_rejected(tmp_path: Path, payload: dict) -> None:
    (tmp_path / "affixes.json").write_text(json.dumps({"odd": payload}), encoding="utf-8")

    with pytest.raises(DataValidationError):
        AffixesRepository(base_path=tmp_path).get("odd")
