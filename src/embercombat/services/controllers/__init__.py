"""UI-agnostic controllers for battle flow orchestration."""
from __future__ import annotations

from .battle_controller import BattleController, BattleView, CombatantView

__all__ = [
    "BattleController",
    "BattleView",
    "CombatantView",
]
