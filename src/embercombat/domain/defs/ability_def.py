"""Ability definition structures."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Literal, Tuple

from embercombat.core.types import DamageType, Element, UpgradePath
from embercombat.domain.formulas import stable_round
from embercombat.domain.statuses import StatusKind

EffectKind = Literal["damage", "heal", "shield", "buff", "debuff", "guard", "composite", "ward", "resource"]
EFFECT_KINDS: Tuple[EffectKind, ...] = (
    "damage",
    "heal",
    "shield",
    "buff",
    "debuff",
    "guard",
    "composite",
    "ward",
    "resource",
)

TargetMode = Literal["enemy", "ally", "self"]
RiderTarget = Literal["target", "self"]

ABILITY_TAGS = ("basic", "interrupt", "undodgeable")


class AbilityId(str, Enum):
    """Every ability the engine knows how to resolve."""

    STRIKE = "strike"
    POWER_STRIKE = "power_strike"
    CLEAVE = "cleave"
    SHIELD_BASH = "shield_bash"
    REND = "rend"
    FIREBALL = "fireball"
    ICE_SHARD = "ice_shard"
    CHAIN_LIGHTNING = "chain_lightning"
    DRAIN_LIFE = "drain_life"
    HEAL = "heal"
    BARRIER = "barrier"
    WAR_CRY = "war_cry"
    WEAKEN = "weaken"
    GUARD = "guard"
    WARDING_CIRCLE = "warding_circle"
    INVIGORATE = "invigorate"
    HEAVY_CLEAVE = "heavy_cleave"
    GUARD_UP = "guard_up"
    SKEWER = "skewer"
    POISON_SPIT = "poison_spit"
    SUNDER_ARMOR = "sunder_armor"
    SHATTER_SHIELD = "shatter_shield"
    ENRAGE_HOWL = "enrage_howl"
    ARCANE_BURST = "arcane_burst"
    VOID_BREATH = "void_breath"
    LIFE_DRAIN = "life_drain"
    BONE_ARMOR = "bone_armor"

    @classmethod
    def parse(cls, value: object) -> "AbilityId":
        """Return the member for ``value``; raises ValueError for unknown ids."""
        if isinstance(value, AbilityId):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Ability id must be a string, got {type(value).__name__}.")
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"Unknown ability id '{value}'.") from None


BASIC_ATTACK_ID = AbilityId.STRIKE


@dataclass(slots=True, frozen=True)
class StatusRider:
    """A timed status applied alongside an ability's main effect."""

    kind: StatusKind
    magnitude: float
    duration: int
    target: RiderTarget = "target"


@dataclass(slots=True, frozen=True)
class AbilityDef:
    """Immutable description of one ability."""

    id: AbilityId
    name: str
    kind: EffectKind
    description: str = ""
    cost: int = 0
    potency: float = 1.0
    damage_type: DamageType = "physical"
    element: Element | None = None
    targeting: TargetMode = "enemy"
    splash: float = 0.0
    telegraph_turns: int = 0
    cooldown: int = 0
    base_amount: int = 0
    riders: Tuple[StatusRider, ...] = ()
    drain_pct: float = 0.0
    shatter_amount: int = 0
    resource_drain_pct: float = 0.0
    tags: Tuple[str, ...] = ()
    upgrade_path: UpgradePath | None = None

    @property
    def is_aoe(self) -> bool:
        return self.splash > 0

    @property
    def is_telegraphed(self) -> bool:
        return self.telegraph_turns > 0

    @property
    def deals_damage(self) -> bool:
        return self.kind in ("damage", "composite")

    @property
    def is_basic(self) -> bool:
        return "basic" in self.tags

    @property
    def is_interrupt(self) -> bool:
        return "interrupt" in self.tags

    @property
    def is_undodgeable(self) -> bool:
        return "undodgeable" in self.tags


@dataclass(slots=True)
class AbilityUpgrade:
    """Per-instance upgrade tier on one of the ability's two paths."""

    path: UpgradePath
    tier: int = 0


def effective_cost(ability: AbilityDef, upgrade: AbilityUpgrade | None, step_pct: float = 0.10) -> int:
    """Resource cost after the efficiency path discount."""
    if upgrade is None or upgrade.path != "efficiency" or upgrade.tier <= 0:
        return ability.cost
    return max(0, stable_round(ability.cost * (1.0 - step_pct * upgrade.tier)))


def potency_multiplier(upgrade: AbilityUpgrade | None, step_pct: float = 0.10) -> float:
    """Damage/heal/shield multiplier granted by the potency path."""
    if upgrade is None or upgrade.path != "potency" or upgrade.tier <= 0:
        return 1.0
    return 1.0 + step_pct * upgrade.tier


def raise_upgrade(
    current: AbilityUpgrade | None,
    ability: AbilityDef,
    path: UpgradePath,
    max_tier: int = 3,
) -> AbilityUpgrade:
    """
    Return the next upgrade tier for ``ability`` along ``path``.

    An ability commits to one path; authored abilities may pin the path
    themselves. Raises ValueError on a path conflict or when already at the
    maximum tier.
    """

    if ability.upgrade_path is not None and ability.upgrade_path != path:
        raise ValueError(f"{ability.name} can only be upgraded along the {ability.upgrade_path} path.")
    if current is None:
        return AbilityUpgrade(path=path, tier=1)
    if current.path != path:
        raise ValueError(f"{ability.name} is already upgraded along the {current.path} path.")
    if current.tier >= max_tier:
        raise ValueError(f"{ability.name} is already at the maximum tier.")
    return AbilityUpgrade(path=path, tier=current.tier + 1)
