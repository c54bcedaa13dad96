import json
from pathlib import Path

import pytest

from embercombat.core.rng import RNG
from embercombat.data.repositories import CompanionsRepository, EnemiesRepository
from embercombat.domain.posture import compute_posture_max
from embercombat.services.encounter_builder import EncounterBuilder
from embercombat.services.errors import EncounterError
from embercombat.services.factories import create_companion, create_hostile, group_scaling, make_instance_id
from tests.helpers.builders import make_companion, make_hostile, make_player


def _builder(seed: int = 4242) -> EncounterBuilder:
    return EncounterBuilder(EnemiesRepository(), CompanionsRepository(), RNG(seed))


def test_make_instance_id_skips_taken_ids() -> None:
    first = make_instance_id("hostile", RNG(5))
    second = make_instance_id("hostile", RNG(5), taken={first})

    assert first.startswith("hostile_")
    assert second.startswith("hostile_") and second != first


def test_single_hostile_keeps_its_template_stats() -> None:
    hostile = create_hostile("goblin_raider", EnemiesRepository(), RNG(1))

    assert hostile.display_name == "Goblin Raider"
    assert hostile.stats.hp == hostile.stats.max_hp == 42
    assert hostile.stats.attack == 8
    assert hostile.posture is not None
    assert hostile.posture.maximum == compute_posture_max(2) == 46
    assert hostile.memory is not None and hostile.memory.exploration == pytest.approx(0.2)
    assert hostile.source_id == "goblin_raider"
    assert hostile.instance_id.startswith("hostile_")


def test_elite_posture_pool_is_larger() -> None:
    warden = create_hostile("bone_warden", EnemiesRepository(), RNG(1))

    assert warden.is_elite
    assert warden.posture is not None and warden.posture.maximum == 70


def test_group_members_are_scaled_and_numbered() -> None:
    ctx = _builder().build("goblin_pack", make_player())

    assert [hostile.display_name for hostile in ctx.hostiles] == [
        "Goblin Raider #1",
        "Goblin Raider #2",
        "Cave Spider #3",
    ]
    raider = ctx.hostiles[0]
    assert raider.stats.max_hp == 28
    assert raider.stats.attack == 7
    assert ctx.hostiles[2].stats.max_hp == 22
    ids = [combatant.instance_id for combatant in ctx.combatants]
    assert len(set(ids)) == len(ids)
    assert ctx.battle_id.startswith("battle_")
    assert ctx.is_group


def test_group_scaling_rejects_oversized_groups() -> None:
    assert group_scaling(1) == (1.0, 1.0)
    with pytest.raises(EncounterError):
        group_scaling(4)
    with pytest.raises(EncounterError):
        group_scaling(0)


def test_companion_scales_with_player_level() -> None:
    companion = create_companion("hedge_cleric", CompanionsRepository(), 3, RNG(2))

    assert companion.role == "companion"
    assert companion.stats.max_hp == 32 + 5 * 3
    assert companion.stats.magic == 14
    assert companion.stats.attack == 6
    assert companion.stats.resource == companion.stats.max_resource == 40
    assert companion.level == 3


def test_build_attaches_the_companion() -> None:
    player = make_player()
    player.level = 4

    ctx = _builder().build("cave_spider", player, companion_id="mercenary")

    assert ctx.companion is not None
    assert ctx.companion.stats.max_hp == 40 + 6 * 4
    assert ctx.companion.stats.attack == 12
    assert [ally.role for ally in ctx.allies] == ["player", "companion"]


def test_unknown_ids_raise_encounter_errors() -> None:
    builder = _builder()
    with pytest.raises(EncounterError):
        builder.build("dragon_horde", make_player())
    with pytest.raises(EncounterError):
        builder.build("goblin_raider", make_player(), companion_id="bard")


def test_build_from_ids_validates_group_size() -> None:
    builder = _builder()
    with pytest.raises(EncounterError):
        builder.build_from_ids([], make_player())
    with pytest.raises(EncounterError):
        builder.build_from_ids(["cave_spider"] * 4, make_player())


def test_invalid_players_are_rejected() -> None:
    builder = _builder()
    dead = make_player(hp=0, max_hp=100)
    overfull = make_player(hp=120, max_hp=100)

    with pytest.raises(EncounterError):
        builder.build("goblin_raider", dead)
    with pytest.raises(EncounterError):
        builder.build("goblin_raider", overfull)
    with pytest.raises(EncounterError):
        builder.build("goblin_raider", make_hostile())


def test_assemble_validates_caller_built_records() -> None:
    builder = _builder()
    player = make_player()

    ctx = builder.assemble(player, [make_hostile("a"), make_hostile("b")], companion=make_companion(), battle_id="b1")
    assert ctx.battle_id == "b1"
    assert len(ctx.hostiles) == 2

    with pytest.raises(EncounterError):
        builder.assemble(player, [make_hostile("a"), make_hostile("a")])
    with pytest.raises(EncounterError):
        builder.assemble(player, [make_companion()])
    with pytest.raises(EncounterError):
        builder.assemble(player, [make_hostile()], companion=make_hostile("c"))


def test_builds_are_reproducible_for_a_seed() -> None:
    first = _builder(99).build("goblin_pack", make_player())
    second = _builder(99).build("goblin_pack", make_player())

    assert [h.instance_id for h in first.hostiles] == [h.instance_id for h in second.hostiles]
    assert first.battle_id == second.battle_id


def test_custom_definitions_directory(tmp_path: Path) -> None:
    (tmp_path / "enemies.json").write_text(
        json.dumps(
            {
                "slime": {
                    "name": "Slime",
                    "level": 1,
                    "hp": 20,
                    "attack": 2,
                    "magic": 0,
                    "armor": 0,
                    "magic_resist": 0,
                    "abilities": ["strike"],
                    "posture_max": 9,
                }
            }
        ),
        encoding="utf-8",
    )

    slime = create_hostile("slime", EnemiesRepository(base_path=tmp_path), RNG(3))

    assert slime.stats.max_hp == 20
    assert slime.posture is not None and slime.posture.maximum == 9
