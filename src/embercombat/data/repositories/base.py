"""Base repository implementation for JSON definition data."""
from __future__ import annotations

import math
from pathlib import Path
from typing import Dict, Generic, List, Tuple, TypeVar

from embercombat.core.types import ELEMENTS, Element
from embercombat.data.errors import DataValidationError
from embercombat.data.json_loader import load_json
from embercombat.data import paths
from embercombat.domain.defs.ability_def import AbilityId

T = TypeVar("T")


class RepositoryBase(Generic[T]):
    """Common caching, loading and field validation for repositories."""

    def __init__(self, filename: str, base_path: Path | str | None = None) -> None:
        self._filename = filename
        self._base_path = Path(base_path) if base_path is not None else None
        self._definitions: Dict[str, T] | None = None

    def _get_file_path(self) -> Path:
        definitions_dir = paths.get_definitions_path(self._base_path)
        return definitions_dir / self._filename

    def _load_raw(self) -> dict[str, object]:
        file_path = self._get_file_path()
        raw = load_json(file_path)
        if not isinstance(raw, dict):
            raise DataValidationError(f"Expected top-level object in {file_path}")
        return raw

    def _build(self, raw: dict[str, object]) -> Dict[str, T]:
        """Convert a raw dict into typed definitions."""
        raise NotImplementedError

    def _ensure_loaded(self) -> None:
        if self._definitions is None:
            raw = self._load_raw()
            self._definitions = self._build(raw)

    def get(self, def_id: str) -> T:
        """Return a definition by id."""
        self._ensure_loaded()
        assert self._definitions is not None
        try:
            return self._definitions[def_id]
        except KeyError as exc:
            raise KeyError(def_id) from exc

    def all(self) -> list[T]:
        """Return all definitions sorted deterministically by id."""
        self._ensure_loaded()
        assert self._definitions is not None
        return [self._definitions[key] for key in sorted(self._definitions.keys())]

    @staticmethod
    def _require_mapping(value: object, context: str) -> dict[str, object]:
        if not isinstance(value, dict):
            raise DataValidationError(f"{context} must be an object/dict.")
        return value

    @staticmethod
    def _assert_required(payload: dict[str, object], required: set[str], context: str) -> None:
        missing = required - payload.keys()
        if missing:
            raise DataValidationError(f"{context} missing fields: {sorted(missing)}")

    @staticmethod
    def _assert_known(payload: dict[str, object], allowed: set[str], context: str) -> None:
        unknown = payload.keys() - allowed
        if unknown:
            raise DataValidationError(f"{context} has unknown fields: {sorted(unknown)}")

    @staticmethod
    def _require_str(value: object, context: str) -> str:
        if not isinstance(value, str):
            raise DataValidationError(f"{context} must be a string.")
        return value

    @staticmethod
    def _require_bool(value: object, context: str) -> bool:
        if not isinstance(value, bool):
            raise DataValidationError(f"{context} must be a boolean.")
        return value

    @staticmethod
    def _require_int(value: object, context: str, *, minimum: int | None = None) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise DataValidationError(f"{context} must be an integer.")
        if minimum is not None and value < minimum:
            raise DataValidationError(f"{context} must be >= {minimum}.")
        return value

    @staticmethod
    def _require_number(value: object, context: str, *, minimum: float | None = None) -> float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise DataValidationError(f"{context} must be a number.")
        number = float(value)
        if not math.isfinite(number):
            raise DataValidationError(f"{context} must be finite.")
        if minimum is not None and number < minimum:
            raise DataValidationError(f"{context} must be >= {minimum}.")
        return number

    @staticmethod
    def _require_str_list(value: object, context: str) -> List[str]:
        if not isinstance(value, list):
            raise DataValidationError(f"{context} must be a list.")
        result: List[str] = []
        for entry in value:
            if not isinstance(entry, str):
                raise DataValidationError(f"{context} entries must be strings.")
            result.append(entry)
        return result

    @staticmethod
    def _require_literal(value: object, allowed: set[str] | Tuple[str, ...], context: str) -> str:
        if not isinstance(value, str):
            raise DataValidationError(f"{context} must be a string.")
        if value not in allowed:
            raise DataValidationError(f"{context} must be one of {sorted(allowed)}.")
        return value

    @classmethod
    def _require_ability_id(cls, value: object, context: str) -> AbilityId:
        try:
            return AbilityId.parse(value)
        except ValueError as exc:
            raise DataValidationError(f"{context}: {exc}") from exc

    @classmethod
    def _require_ability_ids(cls, value: object, context: str) -> Tuple[AbilityId, ...]:
        ids = [cls._require_ability_id(entry, context) for entry in cls._require_str_list(value, context)]
        if len(set(ids)) != len(ids):
            raise DataValidationError(f"{context} must not repeat abilities.")
        return tuple(ids)

    @classmethod
    def _require_element_map(cls, value: object, context: str) -> Dict[Element, float]:
        mapping = cls._require_mapping(value, context)
        result: Dict[Element, float] = {}
        for key, raw in mapping.items():
            element = cls._require_literal(key, ELEMENTS, f"{context} key")
            result[element] = cls._require_number(raw, f"{context} '{key}'")  # type: ignore[index]
        return result
