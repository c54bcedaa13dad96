"""UI-agnostic battle controller that separates state progression from rendering."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List

from embercombat.core.types import UpgradePath
from embercombat.domain.battle_context import BattleContext
from embercombat.domain.combatant import Combatant
from embercombat.domain.defs.ability_def import AbilityId, AbilityUpgrade, raise_upgrade
from embercombat.domain.events import BattleEvent
from embercombat.services.errors import InvalidActionError
from embercombat.services.turn_orchestrator import PlayerAction, RoundReport, TurnOrchestrator


@dataclass(slots=True)
class CombatantView:
    """Read-only snapshot of one combatant for rendering."""

    instance_id: str
    display_name: str
    side: str
    hp: int
    max_hp: int
    resource: int
    max_resource: int
    shield: int
    statuses: Dict[str, int]
    posture: int | None
    posture_max: int | None
    intent_ability_id: str | None
    intent_turns: int | None
    is_alive: bool


@dataclass(slots=True)
class BattleView:
    """Presentation view for the current battle state."""

    battle_id: str
    round_index: int
    allies: List[CombatantView]
    hostiles: List[CombatantView]
    target_id: str | None
    accepting_input: bool
    outcome: str | None


class BattleController:
    """
    UI-agnostic controller for battle state progression.

    This controller wraps TurnOrchestrator and exposes only structured state and actions.
    It does NOT handle rendering, formatting, input prompts or pacing animations.

    Responsibilities:
    - Expose structured state (combatants, telegraphs, whose input is awaited)
    - Report which actions the player can take right now
    - Submit player actions and return the round's events
    - Apply ability upgrades between rounds
    """

    def __init__(self, orchestrator: TurnOrchestrator) -> None:
        self._orchestrator = orchestrator

    def start(self, ctx: BattleContext) -> List[BattleEvent]:
        return self._orchestrator.start_battle(ctx)

    def get_battle_view(self, ctx: BattleContext) -> BattleView:
        """Return structured view of current battle state for rendering."""
        return BattleView(
            battle_id=ctx.battle_id,
            round_index=ctx.round_index,
            allies=[self._to_view(ally) for ally in ctx.allies],
            hostiles=[self._to_view(hostile) for hostile in ctx.hostiles],
            target_id=ctx.target_id,
            accepting_input=self.is_accepting_input(ctx),
            outcome=ctx.outcome,
        )

    @staticmethod
    def is_accepting_input(ctx: BattleContext) -> bool:
        """True while the player's turn is open and nothing is resolving."""
        return ctx.phase == "player" and not ctx.busy and not ctx.is_over

    def get_available_actions(self, ctx: BattleContext) -> Dict[str, Any]:
        """
        Return structured data about available actions for the current player turn.

        Returns a dict with:
        - can_attack: bool
        - can_use_ability: bool
        - can_flee: bool
        - available_abilities: List[AbilityDef]
        - costs: Dict[AbilityId, int]
        """
        if not self.is_accepting_input(ctx):
            return {
                "can_attack": False,
                "can_use_ability": False,
                "can_flee": False,
                "available_abilities": [],
                "costs": {},
            }
        engine = self._orchestrator.engine
        abilities = [
            ability
            for ability in engine.usable_abilities(ctx.player, ctx.tuning)
            if ability.id in ctx.player.abilities
        ]
        return {
            "can_attack": True,
            "can_use_ability": bool(abilities),
            "can_flee": True,
            "available_abilities": abilities,
            "costs": {ability.id: engine.cost_of(ctx.player, ability, ctx.tuning) for ability in abilities},
        }

    def apply_player_action(self, ctx: BattleContext, action: PlayerAction) -> RoundReport:
        """
        Submit a player action and return the round's report.

        This method does NOT print or format anything. Rejections come back as
        a report with ``accepted=False``; they never raise.
        """
        return self._orchestrator.submit_player_action(ctx, action)

    def set_target(self, ctx: BattleContext, target_id: str) -> None:
        """Point the player's default target at a living hostile."""
        target = ctx.find_combatant(target_id)
        if target is None or target.side != "enemies" or not target.is_alive:
            raise InvalidActionError("invalid_target", f"'{target_id}' is not a living hostile.")
        ctx.target_id = target_id

    def upgrade_ability(self, ctx: BattleContext, ability_id: AbilityId | str, path: UpgradePath) -> AbilityUpgrade:
        """Raise the player's upgrade tier for an ability; only allowed between rounds."""
        if ctx.busy:
            raise InvalidActionError("busy", "A turn is already resolving.")
        ability = self._orchestrator.engine.get_ability(ability_id)
        if ability.id not in ctx.player.abilities:
            raise InvalidActionError("not_in_kit", f"{ability.name} is not in the player's kit.")
        try:
            upgrade = raise_upgrade(
                ctx.player.upgrades.get(ability.id), ability, path, ctx.tuning.turn.max_upgrade_tier
            )
        except ValueError as exc:
            raise InvalidActionError("upgrade_rejected", str(exc)) from exc
        ctx.player.upgrades[ability.id] = upgrade
        return upgrade

    def estimate_damage(self, ctx: BattleContext, attacker_id: str, target_id: str, ability_id: AbilityId | str) -> int:
        """Estimate damage without mutating battle state."""
        engine = self._orchestrator.engine
        attacker = ctx.get_combatant(attacker_id)
        target = ctx.get_combatant(target_id)
        return engine.estimate_hit(attacker, target, engine.get_ability(ability_id), ctx.tuning)

    def should_render_state_panel(self, ctx: BattleContext, *, is_first_turn: bool) -> bool:
        """
        Determine whether to render the full state panel.

        Rules:
        - Always render on the first turn of the battle
        - Render whenever the player's input is awaited
        """
        if is_first_turn:
            return True
        return self.is_accepting_input(ctx)

    @staticmethod
    def _to_view(combatant: Combatant) -> CombatantView:
        statuses = {
            entry.kind: entry.remaining for entry in combatant.statuses if entry.kind != "shield"
        }
        intent = combatant.intent
        return CombatantView(
            instance_id=combatant.instance_id,
            display_name=combatant.display_name,
            side=combatant.side,
            hp=combatant.stats.hp,
            max_hp=combatant.stats.max_hp,
            resource=combatant.stats.resource,
            max_resource=combatant.stats.max_resource,
            shield=int(combatant.statuses.magnitude("shield")),
            statuses=statuses,
            posture=combatant.posture.current if combatant.posture is not None else None,
            posture_max=combatant.posture.maximum if combatant.posture is not None else None,
            intent_ability_id=intent.ability_id.value if intent is not None else None,
            intent_turns=intent.turns_remaining if intent is not None else None,
            is_alive=combatant.is_alive,
        )
