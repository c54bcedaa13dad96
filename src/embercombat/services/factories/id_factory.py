"""Utilities for creating deterministic instance identifiers."""
from __future__ import annotations

from typing import Collection

from embercombat.core.rng import RandomSource


def make_instance_id(prefix: str, rng: RandomSource, taken: Collection[str] = ()) -> str:
    """Generate a deterministic identifier using the provided RNG, avoiding ids in ``taken``."""
    while True:
        suffix = rng.int("ids", 100000, 999999)
        instance_id = f"{prefix}_{suffix}"
        if instance_id not in taken:
            return instance_id
