"""Loading of tuning overrides from JSON."""
from __future__ import annotations

import dataclasses
import logging
import math
from pathlib import Path
from typing import Any, Dict, Mapping

from embercombat.data import paths
from embercombat.data.errors import DataValidationError
from embercombat.data.json_loader import load_json
from embercombat.domain.tuning import (
    CombatTuning,
    DecisionTuning,
    FormulaTuning,
    PostureTuning,
    RewardTuning,
    TurnTuning,
)

logger = logging.getLogger(__name__)

_SECTIONS: Dict[str, type] = {
    "formula": FormulaTuning,
    "posture": PostureTuning,
    "decision": DecisionTuning,
    "reward": RewardTuning,
    "turn": TurnTuning,
}


def load_tuning(path: Path | str | None = None) -> CombatTuning:
    """
    Return built-in tuning merged with an optional JSON override file.

    Without ``path`` the default ``data/definitions/tuning.json`` is used when
    it exists; a missing default file simply means "no overrides". An explicit
    path that does not exist raises DataLoadError.
    """

    if path is None:
        default_path = paths.get_tuning_path()
        if not default_path.exists():
            return CombatTuning()
        path = default_path
    raw = load_json(Path(path))
    if not isinstance(raw, dict):
        raise DataValidationError(f"Expected top-level object in {path}")
    return tuning_from_mapping(raw)


def tuning_from_mapping(raw: Mapping[str, Any]) -> CombatTuning:
    unknown = set(raw) - set(_SECTIONS)
    if unknown:
        raise DataValidationError(f"tuning has unknown sections: {sorted(unknown)}")
    defaults = CombatTuning()
    sections: Dict[str, Any] = {}
    for name, section_type in _SECTIONS.items():
        current = getattr(defaults, name)
        overrides = raw.get(name)
        if overrides is None:
            sections[name] = current
            continue
        if not isinstance(overrides, dict):
            raise DataValidationError(f"tuning section '{name}' must be an object/dict.")
        sections[name] = _apply_overrides(current, overrides, name)
    return CombatTuning(**sections)


def _apply_overrides(current: Any, overrides: Mapping[str, Any], section: str) -> Any:
    defaults = {field.name: getattr(current, field.name) for field in dataclasses.fields(current)}
    unknown = set(overrides) - set(defaults)
    if unknown:
        raise DataValidationError(f"tuning section '{section}' has unknown keys: {sorted(unknown)}")
    changes: Dict[str, Any] = {}
    for key, value in overrides.items():
        context = f"tuning '{section}.{key}'"
        default = defaults[key]
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise DataValidationError(f"{context} must be a number.")
        if not math.isfinite(value):
            logger.warning("%s is not finite; keeping default %s", context, default)
            continue
        if isinstance(default, int):
            if float(value) != int(value):
                raise DataValidationError(f"{context} must be an integer.")
            changes[key] = int(value)
        else:
            changes[key] = float(value)
    return dataclasses.replace(current, **changes)
