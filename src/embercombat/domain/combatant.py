"""Runtime combatant models."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Literal, Tuple

from embercombat.core.types import Element, Role, Side
from embercombat.domain.affixes import AffixTraits
from embercombat.domain.defs.ability_def import AbilityId, AbilityUpgrade
from embercombat.domain.formulas import finite
from embercombat.domain.posture import IntentState, PostureState
from embercombat.domain.statuses import StatusLedger

ClassMechanic = Literal["rage", "crimson_pact"]


@dataclass(slots=True)
class Stats:
    """Resource pools and combat stats for one combatant."""

    max_hp: int
    hp: int
    attack: float = 0.0
    magic: float = 0.0
    armor: float = 0.0
    magic_resist: float = 0.0
    speed: float = 10.0
    max_resource: int = 0
    resource: int = 0
    resource_regen: int = 0
    crit_pct: float = 0.0
    dodge_pct: float = 0.0
    armor_pen_pct: float = 0.0
    magic_pen_pct: float = 0.0
    life_steal_pct: float = 0.0
    thorns: int = 0
    resource_on_hit: int = 0
    resource_on_hurt: int = 0
    resist_all_pct: float = 0.0
    elemental_bonus_pct: Dict[Element, float] = field(default_factory=dict)
    elemental_resist_pct: Dict[Element, float] = field(default_factory=dict)
    affinities: Dict[Element, float] = field(default_factory=dict)


@dataclass(slots=True)
class LearnedStat:
    """Running estimate of how well one ability has worked for its owner."""

    value: float = 0.0
    uses: int = 0


@dataclass(slots=True)
class DecisionMemory:
    """Per-combatant learned values, keyed by ability id."""

    exploration: float = 0.2
    learned: Dict[AbilityId, LearnedStat] = field(default_factory=dict)

    def stat(self, ability_id: AbilityId) -> LearnedStat:
        """Return the record for ``ability_id``, creating it on first use."""
        record = self.learned.get(ability_id)
        if record is None:
            record = LearnedStat()
            self.learned[ability_id] = record
        return record

    def peek(self, ability_id: AbilityId) -> LearnedStat | None:
        return self.learned.get(ability_id)


@dataclass(slots=True)
class Combatant:
    """An individual participant in battle."""

    instance_id: str
    display_name: str
    role: Role
    level: int
    stats: Stats
    abilities: Tuple[AbilityId, ...] = ()
    statuses: StatusLedger = field(default_factory=StatusLedger)
    posture: PostureState | None = None
    intent: IntentState | None = None
    cooldowns: Dict[AbilityId, int] = field(default_factory=dict)
    upgrades: Dict[AbilityId, AbilityUpgrade] = field(default_factory=dict)
    memory: DecisionMemory | None = None
    is_elite: bool = False
    is_boss: bool = False
    mechanic: ClassMechanic | None = None
    source_id: str | None = None  # original definition id
    tags: Tuple[str, ...] = ()
    affixes: AffixTraits | None = None

    @property
    def side(self) -> Side:
        return "enemies" if self.role == "hostile" else "allies"

    @property
    def is_alive(self) -> bool:
        return self.stats.hp > 0

    @property
    def hp_fraction(self) -> float:
        if self.stats.max_hp <= 0:
            return 0.0
        return max(0.0, min(1.0, self.stats.hp / self.stats.max_hp))

    @property
    def missing_hp(self) -> int:
        return max(0, self.stats.max_hp - self.stats.hp)

    def cooldown(self, ability_id: AbilityId) -> int:
        return self.cooldowns.get(ability_id, 0)

    def take_damage(self, amount: int) -> int:
        """Reduce health, clamped at zero; returns the health actually lost."""
        lost = min(self.stats.hp, max(0, int(finite(amount))))
        self.stats.hp -= lost
        return lost

    def restore_hp(self, amount: int) -> int:
        """Heal up to max health; returns the health actually restored."""
        if not self.is_alive:
            return 0
        gained = min(self.missing_hp, max(0, int(finite(amount))))
        self.stats.hp += gained
        return gained

    def spend_resource(self, amount: int) -> bool:
        cost = max(0, int(amount))
        if self.stats.resource < cost:
            return False
        self.stats.resource -= cost
        return True

    def gain_resource(self, amount: int) -> int:
        gained = min(max(0, self.stats.max_resource - self.stats.resource), max(0, int(finite(amount))))
        self.stats.resource += gained
        return gained

    def drain_resource(self, amount: int) -> int:
        lost = min(self.stats.resource, max(0, int(finite(amount))))
        self.stats.resource -= lost
        return lost

    def tick_cooldowns(self) -> List[AbilityId]:
        """Decrement every cooldown by one; returns abilities that became ready."""
        ready: List[AbilityId] = []
        for ability_id in list(self.cooldowns):
            remaining = self.cooldowns[ability_id] - 1
            if remaining <= 0:
                del self.cooldowns[ability_id]
                ready.append(ability_id)
            else:
                self.cooldowns[ability_id] = remaining
        return ready
