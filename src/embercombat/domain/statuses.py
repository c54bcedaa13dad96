"""Timed status effects owned by a single combatant."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Literal, Mapping, Tuple

from embercombat.domain.formulas import finite, stable_round
from embercombat.domain.tuning import FormulaTuning

StatusKind = Literal[
    "shield",
    "bleed",
    "poison",
    "regen",
    "attack_up",
    "magic_up",
    "attack_down",
    "magic_down",
    "armor_up",
    "magic_resist_up",
    "armor_down",
    "magic_resist_down",
    "vulnerable",
    "damage_reduction",
    "evasion",
    "enrage",
    "empowered",
    "chilled",
    "broken",
    "stun",
]

STATUS_KINDS: Tuple[StatusKind, ...] = (
    "shield",
    "bleed",
    "poison",
    "regen",
    "attack_up",
    "magic_up",
    "attack_down",
    "magic_down",
    "armor_up",
    "magic_resist_up",
    "armor_down",
    "magic_resist_down",
    "vulnerable",
    "damage_reduction",
    "evasion",
    "enrage",
    "empowered",
    "chilled",
    "broken",
    "stun",
)

PERIODIC_DAMAGE_KINDS: Tuple[StatusKind, ...] = ("bleed", "poison")
PERIODIC_HEAL_KINDS: Tuple[StatusKind, ...] = ("regen",)
SKIP_ACTION_KINDS: Tuple[StatusKind, ...] = ("broken", "stun")


def is_status_kind(value: object) -> bool:
    return isinstance(value, str) and value in STATUS_KINDS


@dataclass(slots=True)
class StatusEntry:
    """One active timed modifier."""

    kind: StatusKind
    magnitude: float
    remaining: int


@dataclass(slots=True)
class TickReport:
    """What happened when a ledger ticked at its owner's turn start."""

    round_index: int
    periodic_damage: Dict[StatusKind, int] = field(default_factory=dict)
    periodic_heal: int = 0
    faded: List[StatusKind] = field(default_factory=list)
    already_ticked: bool = False

    @property
    def total_damage(self) -> int:
        return sum(self.periodic_damage.values())


def _clean_magnitude(value: object) -> float:
    return max(0.0, finite(value))


def _clean_duration(value: object) -> int:
    number = finite(value)
    return max(0, int(math.floor(number)))


class StatusLedger:
    """
    Mapping of status kind to ``{magnitude, remaining}`` for one combatant.

    Overlapping applications keep the stronger magnitude and the longer
    duration. Shield is the additive exception through :meth:`add_shield`.
    An entry is removed as soon as its duration or (for shields) its
    magnitude reaches zero.
    """

    def __init__(self, entries: Mapping[StatusKind, StatusEntry] | None = None, last_tick_round: int | None = None) -> None:
        self._entries: Dict[StatusKind, StatusEntry] = {}
        self._last_tick_round = last_tick_round
        for kind, entry in (entries or {}).items():
            if entry.remaining > 0:
                self._entries[kind] = StatusEntry(kind=kind, magnitude=entry.magnitude, remaining=entry.remaining)

    @property
    def last_tick_round(self) -> int | None:
        return self._last_tick_round

    def __iter__(self) -> Iterator[StatusEntry]:
        return iter(list(self._entries.values()))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, kind: object) -> bool:
        return kind in self._entries

    def get(self, kind: StatusKind) -> StatusEntry | None:
        return self._entries.get(kind)

    def has(self, kind: StatusKind) -> bool:
        return kind in self._entries

    def magnitude(self, kind: StatusKind) -> float:
        entry = self._entries.get(kind)
        return entry.magnitude if entry else 0.0

    def remaining(self, kind: StatusKind) -> int:
        entry = self._entries.get(kind)
        return entry.remaining if entry else 0

    def apply_timed(self, kind: StatusKind, magnitude: object, duration: object) -> StatusEntry | None:
        """
        Apply or refresh a timed effect.

        Both magnitude and duration take the max of the existing and incoming
        values; nothing stacks additively. Returns the resulting entry, or
        None when the duration was not positive.
        """

        if not is_status_kind(kind):
            raise ValueError(f"Unknown status kind '{kind}'.")
        turns = _clean_duration(duration)
        if turns <= 0:
            return None
        amount = _clean_magnitude(magnitude)
        existing = self._entries.get(kind)
        if existing is None:
            entry = StatusEntry(kind=kind, magnitude=amount, remaining=turns)
            self._entries[kind] = entry
            return entry
        existing.magnitude = max(existing.magnitude, amount)
        existing.remaining = max(existing.remaining, turns)
        return existing

    def add_shield(self, amount: object, duration: object) -> StatusEntry | None:
        """Add to the shield pool; magnitudes sum and the duration takes the max."""
        turns = _clean_duration(duration)
        value = _clean_magnitude(amount)
        if turns <= 0 or value <= 0:
            return self._entries.get("shield")
        existing = self._entries.get("shield")
        if existing is None:
            entry = StatusEntry(kind="shield", magnitude=value, remaining=turns)
            self._entries["shield"] = entry
            return entry
        existing.magnitude += value
        existing.remaining = max(existing.remaining, turns)
        return existing

    def absorb(self, amount: int) -> Tuple[int, int]:
        """Consume shield against incoming damage; returns ``(absorbed, passed_through)``."""
        incoming = max(0, int(amount))
        entry = self._entries.get("shield")
        if entry is None or incoming == 0:
            return 0, incoming
        absorbed = min(incoming, int(entry.magnitude))
        entry.magnitude -= absorbed
        if entry.magnitude < 1:
            del self._entries["shield"]
        return absorbed, incoming - absorbed

    def shatter(self, amount: int | None = None) -> int:
        """Strip shield without touching health; ``None`` strips all of it."""
        entry = self._entries.get("shield")
        if entry is None:
            return 0
        if amount is None or amount >= entry.magnitude:
            removed = int(entry.magnitude)
            del self._entries["shield"]
            return removed
        removed = max(0, int(amount))
        entry.magnitude -= removed
        if entry.magnitude < 1:
            del self._entries["shield"]
        return removed

    def remove(self, kind: StatusKind) -> bool:
        return self._entries.pop(kind, None) is not None

    def tick(self, round_index: int) -> TickReport:
        """
        Fire periodic effects once, then decrement every duration by one.

        A second call with the same ``round_index`` does nothing. The caller
        applies the reported damage and healing to the owner.
        """

        if self._last_tick_round is not None and round_index <= self._last_tick_round:
            return TickReport(round_index=round_index, already_ticked=True)
        self._last_tick_round = round_index
        report = TickReport(round_index=round_index)

        for kind in PERIODIC_DAMAGE_KINDS:
            entry = self._entries.get(kind)
            if entry is not None:
                amount = stable_round(entry.magnitude)
                if amount > 0:
                    report.periodic_damage[kind] = amount
        for kind in PERIODIC_HEAL_KINDS:
            entry = self._entries.get(kind)
            if entry is not None:
                report.periodic_heal += stable_round(entry.magnitude)

        for kind in list(self._entries):
            entry = self._entries[kind]
            entry.remaining -= 1
            if entry.remaining <= 0:
                del self._entries[kind]
                report.faded.append(kind)
        return report

    def clear(self) -> None:
        self._entries.clear()

    def clear_fight_scoped(self) -> None:
        """Drop every status and the tick stamp when a battle ends."""
        self._entries.clear()
        self._last_tick_round = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "last_tick_round": self._last_tick_round,
            "entries": [
                {"kind": entry.kind, "magnitude": entry.magnitude, "remaining": entry.remaining}
                for entry in self._entries.values()
            ],
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "StatusLedger":
        entries: Dict[StatusKind, StatusEntry] = {}
        for raw in payload.get("entries", []):
            kind = raw.get("kind")
            if not is_status_kind(kind):
                raise ValueError(f"Unknown status kind '{kind}'.")
            entries[kind] = StatusEntry(
                kind=kind,
                magnitude=_clean_magnitude(raw.get("magnitude")),
                remaining=_clean_duration(raw.get("remaining")),
            )
        last_tick = payload.get("last_tick_round")
        return cls(entries, last_tick if isinstance(last_tick, int) else None)


def compute_effective_attack(base: object, ledger: StatusLedger) -> float:
    return max(0.0, finite(base) + ledger.magnitude("attack_up") - ledger.magnitude("attack_down"))


def compute_effective_magic(base: object, ledger: StatusLedger) -> float:
    return max(0.0, finite(base) + ledger.magnitude("magic_up") - ledger.magnitude("magic_down"))


def compute_effective_armor(base: object, ledger: StatusLedger) -> float:
    return max(0.0, finite(base) + ledger.magnitude("armor_up") - ledger.magnitude("armor_down"))


def compute_effective_magic_resist(base: object, ledger: StatusLedger) -> float:
    return max(0.0, finite(base) + ledger.magnitude("magic_resist_up") - ledger.magnitude("magic_resist_down"))


def outgoing_multiplier(ledger: StatusLedger, tuning: FormulaTuning) -> float:
    """Damage multiplier contributed by the attacker's own statuses."""
    mult = 1.0
    if ledger.has("chilled"):
        mult *= tuning.chilled_outgoing_mult
    if ledger.has("enrage"):
        mult *= 1.0 + ledger.magnitude("enrage") / 100.0
    return mult


def incoming_multiplier(ledger: StatusLedger, tuning: FormulaTuning) -> float:
    """Damage multiplier contributed by the defender's statuses (broken is handled by the formula)."""
    mult = 1.0
    if ledger.has("vulnerable"):
        mult *= tuning.vulnerable_mult
    if ledger.has("damage_reduction"):
        mult *= tuning.damage_reduction_mult
    return mult


def evasion_bonus_pct(ledger: StatusLedger) -> float:
    return ledger.magnitude("evasion")


def should_skip_action(ledger: StatusLedger) -> bool:
    return any(ledger.has(kind) for kind in SKIP_ACTION_KINDS)
