"""Explicit per-battle state passed into every engine call."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List

from embercombat.core.types import BattleOutcome, TurnPhase
from embercombat.domain.combatant import Combatant
from embercombat.domain.events import BattleEvent
from embercombat.domain.tuning import DEFAULT_TUNING, CombatTuning

logger = logging.getLogger(__name__)

NarrationSink = Callable[[BattleEvent], None]


@dataclass(slots=True)
class BattleContext:
    """
    Everything one encounter owns: combatants, turn state and the event journal.

    Exactly one of "player turn open" (``phase == "player"`` and not busy) or
    "resolution in progress" (``busy``) holds at any time.
    """

    battle_id: str
    player: Combatant
    hostiles: List[Combatant]
    companion: Combatant | None = None
    tuning: CombatTuning = DEFAULT_TUNING
    phase: TurnPhase = "player"
    busy: bool = False
    round_index: int = 1
    drops_this_battle: int = 0
    target_id: str | None = None
    outcome: BattleOutcome | None = None
    defeated_ids: List[str] = field(default_factory=list)
    events: List[BattleEvent] = field(default_factory=list)
    sink: NarrationSink | None = None

    @property
    def is_over(self) -> bool:
        return self.outcome is not None

    @property
    def is_group(self) -> bool:
        return len(self.hostiles) > 1

    @property
    def allies(self) -> List[Combatant]:
        allies = [self.player]
        if self.companion is not None:
            allies.append(self.companion)
        return allies

    @property
    def combatants(self) -> List[Combatant]:
        return self.allies + list(self.hostiles)

    def living_hostiles(self) -> List[Combatant]:
        return [hostile for hostile in self.hostiles if hostile.is_alive]

    def living_allies(self) -> List[Combatant]:
        return [ally for ally in self.allies if ally.is_alive]

    def opponents_of(self, combatant: Combatant) -> List[Combatant]:
        if combatant.side == "enemies":
            return self.living_allies()
        return self.living_hostiles()

    def get_combatant(self, combatant_id: str) -> Combatant:
        for combatant in self.combatants:
            if combatant.instance_id == combatant_id:
                return combatant
        raise ValueError(f"Unknown combatant id '{combatant_id}'.")

    def find_combatant(self, combatant_id: str | None) -> Combatant | None:
        if combatant_id is None:
            return None
        for combatant in self.combatants:
            if combatant.instance_id == combatant_id:
                return combatant
        return None

    def current_target(self) -> Combatant | None:
        """
        Return the living hostile the target pointer names.

        A pointer at a dead or unknown hostile is repaired to the first living
        hostile; None means no hostile is left standing.
        """

        target = self.find_combatant(self.target_id)
        if target is not None and target.is_alive and target.side == "enemies":
            return target
        living = self.living_hostiles()
        if not living:
            self.target_id = None
            return None
        if self.target_id is not None:
            logger.warning("Target %s is no longer valid; retargeting %s", self.target_id, living[0].instance_id)
        self.target_id = living[0].instance_id
        return living[0]

    def emit(self, event: BattleEvent) -> None:
        self.events.append(event)
        if self.sink is not None:
            self.sink(event)

    def drain_events(self) -> List[BattleEvent]:
        """Return and clear the events recorded since the last drain."""
        drained = list(self.events)
        self.events.clear()
        return drained
