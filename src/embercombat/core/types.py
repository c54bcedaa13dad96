"""Shared type aliases for the core and domain layers."""
from typing import Literal

Side = Literal["allies", "enemies"]
Role = Literal["player", "companion", "hostile"]
TurnPhase = Literal["player", "resolving"]
BattleOutcome = Literal["victory", "defeat", "fled"]
NarrationTone = Literal["normal", "good", "danger", "system"]
DamageType = Literal["physical", "magic"]
Element = Literal["fire", "frost", "lightning", "holy", "shadow", "arcane", "earth", "poison", "nature"]
UpgradePath = Literal["potency", "efficiency"]

ELEMENTS: tuple[Element, ...] = (
    "fire",
    "frost",
    "lightning",
    "holy",
    "shadow",
    "arcane",
    "earth",
    "poison",
    "nature",
)

__all__ = [
    "BattleOutcome",
    "DamageType",
    "ELEMENTS",
    "Element",
    "NarrationTone",
    "Role",
    "Side",
    "TurnPhase",
    "UpgradePath",
]
