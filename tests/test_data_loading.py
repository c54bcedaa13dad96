import json
from pathlib import Path

import pytest

from embercombat.data.errors import DataLoadError, DataReferenceError, DataValidationError
from embercombat.data.repositories import AbilitiesRepository, CompanionsRepository, EnemiesRepository
from embercombat.domain.defs import AbilityId


def test_shipped_definitions_load() -> None:
    abilities = AbilitiesRepository()
    enemies = EnemiesRepository()
    companions = CompanionsRepository()

    assert abilities.get_ability("heavy_cleave").telegraph_turns == 1
    assert abilities.get_ability(AbilityId.SHIELD_BASH).is_interrupt
    assert enemies.get("ember_drake").boss
    assert enemies.resolve_ids("goblin_pack") == ("goblin_raider", "goblin_raider", "cave_spider")
    assert enemies.resolve_ids("cave_spider") == ("cave_spider",)
    assert [affix.id for affix in enemies.get("frost_wraith").affixes] == ["frozen", "regenerating"]
    assert companions.get("hedge_cleric").max_resource == 40


def test_every_referenced_ability_is_defined() -> None:
    abilities = AbilitiesRepository()
    for hostile in EnemiesRepository().all():
        for ability_id in hostile.abilities:
            abilities.get_ability(ability_id)
    for companion in CompanionsRepository().all():
        for ability_id in companion.abilities:
            abilities.get_ability(ability_id)


def test_all_is_sorted_by_id() -> None:
    ids = [hostile.id for hostile in EnemiesRepository().all()]
    assert ids == sorted(ids)


def test_missing_file_raises_load_error(tmp_path: Path) -> None:
    with pytest.raises(DataLoadError):
        EnemiesRepository(base_path=tmp_path).get("anything")


def test_invalid_json_raises_load_error(tmp_path: Path) -> None:
    (tmp_path / "abilities.json").write_text("{ not json", encoding="utf-8")
    with pytest.raises(DataLoadError):
        AbilitiesRepository(base_path=tmp_path).get_ability("strike")


def test_unknown_ability_id_is_rejected(tmp_path: Path) -> None:
    _write_json(tmp_path / "enemies.json", {"slime": _hostile(abilities=["strike", "meteor"])})

    with pytest.raises(DataValidationError):
        EnemiesRepository(base_path=tmp_path).get("slime")


def test_repeated_abilities_are_rejected(tmp_path: Path) -> None:
    _write_json(tmp_path / "enemies.json", {"slime": _hostile(abilities=["strike", "strike"])})

    with pytest.raises(DataValidationError):
        EnemiesRepository(base_path=tmp_path).get("slime")


def test_group_with_unknown_member_is_rejected(tmp_path: Path) -> None:
    _write_json(
        tmp_path / "enemies.json",
        {"slime": _hostile(), "slime_pit": {"name": "Slime Pit", "members": ["slime", "ooze"]}},
    )

    with pytest.raises(DataReferenceError):
        EnemiesRepository(base_path=tmp_path).get("slime")


def test_oversized_group_is_rejected(tmp_path: Path) -> None:
    _write_json(
        tmp_path / "enemies.json",
        {"slime": _hostile(), "slime_pit": {"name": "Slime Pit", "members": ["slime"] * 4}},
    )

    with pytest.raises(DataValidationError):
        EnemiesRepository(base_path=tmp_path).get_group("slime_pit")


def test_missing_required_hostile_field(tmp_path: Path) -> None:
    payload = _hostile()
    del payload["armor"]
    _write_json(tmp_path / "enemies.json", {"slime": payload})

    with pytest.raises(DataValidationError):
        EnemiesRepository(base_path=tmp_path).get("slime")


@pytest.mark.parametrize(
    "payload",
    [
        {"name": "Bad", "kind": "teleport"},
        {"name": "Bad", "kind": "damage", "surprise": 1},
        {"name": "Bad", "kind": "damage", "splash": 1.5},
        {"name": "Bad", "kind": "buff"},
        {"name": "Bad", "kind": "heal", "splash": 0.5, "base_amount": 4},
        {"name": "Bad", "kind": "damage", "tags": ["sneaky"]},
        {"name": "Bad", "kind": "debuff", "riders": [{"kind": "burning", "duration": 2}]},
        {"name": "Bad", "kind": "damage", "cost": -3},
    ],
)
def test_malformed_abilities_are_rejected(tmp_path: Path, payload: dict) -> None:
    _write_json(tmp_path / "abilities.json", {"strike": payload})

    with pytest.raises(DataValidationError):
        AbilitiesRepository(base_path=tmp_path).get_ability("strike")


def test_companion_requires_its_growth_fields(tmp_path: Path) -> None:
    _write_json(
        tmp_path / "companions.json",
        {"squire": {"name": "Squire", "base_hp": 30, "armor": 1, "magic_resist": 0, "abilities": ["strike"]}},
    )

    with pytest.raises(DataValidationError):
        CompanionsRepository(base_path=tmp_path).get("squire")


def _hostile(**overrides) -> dict:
    payload = {
        "name": "Slime",
        "level": 1,
        "hp": 20,
        "attack": 2,
        "magic": 0,
        "armor": 0,
        "magic_resist": 0,
        "abilities": ["strike"],
    }
    payload.update(overrides)
    return payload


def _write_json(path: Path, payload: object) -> None:
    path.write_text(json.dumps(payload), encoding="utf-8")
