import json
import logging
from pathlib import Path

import pytest

from embercombat.config import load_tuning, tuning_from_mapping
from embercombat.data.errors import DataLoadError, DataValidationError
from embercombat.domain.tuning import DEFAULT_TUNING, CombatTuning


def test_defaults_match_the_built_in_tuning() -> None:
    tuning = tuning_from_mapping({})

    assert tuning == CombatTuning() == DEFAULT_TUNING
    assert tuning.posture.hit_cap_pct == pytest.approx(0.30)
    assert tuning.turn.flee_chance == pytest.approx(0.45)


def test_overrides_replace_only_named_keys() -> None:
    tuning = tuning_from_mapping({"turn": {"flee_chance": 0.9, "group_drop_cap": 3}, "formula": {"physical_armor_k": 12}})

    assert tuning.turn.flee_chance == pytest.approx(0.9)
    assert tuning.turn.group_drop_cap == 3
    assert isinstance(tuning.turn.group_drop_cap, int)
    assert tuning.formula.physical_armor_k == 12.0
    assert isinstance(tuning.formula.physical_armor_k, float)
    assert tuning.turn.base_drop_chance == DEFAULT_TUNING.turn.base_drop_chance
    assert tuning.decision == DEFAULT_TUNING.decision


@pytest.mark.parametrize(
    "raw",
    [
        {"graphics": {}},
        {"turn": {"warp_speed": 2}},
        {"turn": []},
        {"turn": {"flee_chance": "often"}},
        {"turn": {"flee_chance": True}},
        {"turn": {"group_drop_cap": 2.5}},
    ],
)
def test_bad_overrides_are_rejected(raw: dict) -> None:
    with pytest.raises(DataValidationError):
        tuning_from_mapping(raw)


def test_non_finite_values_keep_the_default(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="embercombat.config"):
        tuning = tuning_from_mapping({"reward": {"kill_bonus": float("nan")}})

    assert tuning.reward.kill_bonus == DEFAULT_TUNING.reward.kill_bonus
    assert "not finite" in caplog.text


def test_load_tuning_reads_a_file(tmp_path: Path) -> None:
    path = tmp_path / "tuning.json"
    path.write_text(json.dumps({"decision": {"initial_exploration": 0.1}}), encoding="utf-8")

    tuning = load_tuning(path)

    assert tuning.decision.initial_exploration == pytest.approx(0.1)


def test_load_tuning_rejects_non_object_files(tmp_path: Path) -> None:
    path = tmp_path / "tuning.json"
    path.write_text("[1, 2]", encoding="utf-8")

    with pytest.raises(DataValidationError):
        load_tuning(path)


def test_explicit_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(DataLoadError):
        load_tuning(tmp_path / "absent.json")


def test_missing_default_file_means_no_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr("embercombat.data.paths.get_tuning_path", lambda base_path=None: tmp_path / "tuning.json")

    assert load_tuning() == CombatTuning()
