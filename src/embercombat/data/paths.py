"""Helpers for resolving data file locations."""
from __future__ import annotations

from pathlib import Path

TUNING_FILENAME = "tuning.json"


def get_repo_root() -> Path:
    """Return the repository root (the directory holding ``data/``)."""
    return Path(__file__).resolve().parents[3]


def get_definitions_path(base_path: Path | str | None = None) -> Path:
    """Return the directory containing ability, affix, hostile and companion definitions."""
    if base_path is not None:
        return Path(base_path)
    return get_repo_root() / "data" / "definitions"


def get_tuning_path(base_path: Path | str | None = None) -> Path:
    """Return the default location of the optional tuning override file."""
    return get_definitions_path(base_path) / TUNING_FILENAME
