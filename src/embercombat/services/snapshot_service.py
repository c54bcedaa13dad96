"""Plain-data snapshots of a battle between rounds."""
from __future__ import annotations

import dataclasses
import math
from typing import Any, Dict, List, Mapping, Tuple

from embercombat.core.rng import RNG, RNGStatePayload
from embercombat.core.types import ELEMENTS, Element
from embercombat.domain.affixes import AffixTraits
from embercombat.domain.battle_context import BattleContext
from embercombat.domain.combatant import Combatant, DecisionMemory, LearnedStat, Stats
from embercombat.domain.defs.ability_def import AbilityId, AbilityUpgrade
from embercombat.domain.posture import IntentState, PostureState
from embercombat.domain.statuses import StatusLedger
from embercombat.domain.tuning import DEFAULT_TUNING, CombatTuning
from embercombat.services.errors import SnapshotError

SnapshotPayload = Dict[str, Any]
_VALID_ROLES = ("player", "companion", "hostile")
_VALID_OUTCOMES = ("victory", "defeat", "fled")
_VALID_MECHANICS = ("rage", "crimson_pact")
_VALID_PATHS = ("potency", "efficiency")
_ELEMENT_MAP_FIELDS = ("elemental_bonus_pct", "elemental_resist_pct", "affinities")


class SnapshotService:
    """
    Converts a BattleContext to/from a validated, versioned payload.

    Tuning and the narration journal are not part of a snapshot: the caller
    passes tuning back in on restore, and restored battles start with an
    empty journal.
    """

    SNAPSHOT_VERSION = 1

    def serialize(self, ctx: BattleContext, rng: RNG) -> SnapshotPayload:
        """Return a JSON-serializable payload for the battle and its RNG."""
        if ctx.busy:
            raise SnapshotError("Cannot snapshot a battle while a round is resolving.")
        return {
            "snapshot_version": self.SNAPSHOT_VERSION,
            "rng": rng.export_state(),
            "battle": {
                "battle_id": ctx.battle_id,
                "round_index": ctx.round_index,
                "drops_this_battle": ctx.drops_this_battle,
                "target_id": ctx.target_id,
                "outcome": ctx.outcome,
                "defeated_ids": list(ctx.defeated_ids),
                "player": self._serialize_combatant(ctx.player),
                "companion": self._serialize_combatant(ctx.companion) if ctx.companion is not None else None,
                "hostiles": [self._serialize_combatant(hostile) for hostile in ctx.hostiles],
            },
        }

    def deserialize(
        self, payload: Mapping[str, Any], *, tuning: CombatTuning = DEFAULT_TUNING
    ) -> Tuple[BattleContext, RNG]:
        """Rehydrate a BattleContext + RNG from a snapshot payload."""
        if not isinstance(payload, Mapping):
            raise SnapshotError("Snapshot must be a JSON object.")
        if payload.get("snapshot_version") != self.SNAPSHOT_VERSION:
            raise SnapshotError(f"Unsupported snapshot version: {payload.get('snapshot_version')!r}")
        rng_payload = payload.get("rng")
        battle = payload.get("battle")
        if not isinstance(rng_payload, Mapping) or not isinstance(battle, Mapping):
            raise SnapshotError("Snapshot is missing required sections.")

        rng = RNG(self._require_int(rng_payload.get("seed"), "rng.seed"))
        try:
            rng.restore_state(self._coerce_rng_payload(rng_payload))
        except ValueError as exc:
            raise SnapshotError(f"Invalid RNG state: {exc}") from exc

        player = self._deserialize_combatant(battle.get("player"), "battle.player")
        companion_raw = battle.get("companion")
        companion = (
            self._deserialize_combatant(companion_raw, "battle.companion") if companion_raw is not None else None
        )
        hostiles_raw = battle.get("hostiles")
        if not isinstance(hostiles_raw, list) or not hostiles_raw:
            raise SnapshotError("battle.hostiles must be a non-empty list.")
        hostiles = [
            self._deserialize_combatant(raw, f"battle.hostiles[{index}]") for index, raw in enumerate(hostiles_raw)
        ]

        outcome = battle.get("outcome")
        if outcome is not None and outcome not in _VALID_OUTCOMES:
            raise SnapshotError(f"battle.outcome has invalid value {outcome!r}.")
        ctx = BattleContext(
            battle_id=self._require_str(battle.get("battle_id"), "battle.battle_id"),
            player=player,
            hostiles=hostiles,
            companion=companion,
            tuning=tuning,
            round_index=self._require_int(battle.get("round_index"), "battle.round_index", minimum=1),
            drops_this_battle=self._require_int(battle.get("drops_this_battle", 0), "battle.drops_this_battle"),
            target_id=self._optional_str(battle.get("target_id"), "battle.target_id"),
            outcome=outcome,
            defeated_ids=self._require_str_list(battle.get("defeated_ids", []), "battle.defeated_ids"),
        )
        ids = [combatant.instance_id for combatant in ctx.combatants]
        if len(set(ids)) != len(ids):
            raise SnapshotError(f"Snapshot has duplicate combatant ids: {ids}")
        return ctx, rng

    # -----------------------
    # Combatants
    # -----------------------
    def _serialize_combatant(self, combatant: Combatant) -> Dict[str, Any]:
        stats = {field.name: getattr(combatant.stats, field.name) for field in dataclasses.fields(Stats)}
        for name in _ELEMENT_MAP_FIELDS:
            stats[name] = dict(stats[name])
        memory = combatant.memory
        return {
            "instance_id": combatant.instance_id,
            "display_name": combatant.display_name,
            "role": combatant.role,
            "level": combatant.level,
            "stats": stats,
            "abilities": [ability_id.value for ability_id in combatant.abilities],
            "statuses": combatant.statuses.to_payload(),
            "posture": (
                {"current": combatant.posture.current, "maximum": combatant.posture.maximum}
                if combatant.posture is not None
                else None
            ),
            "intent": (
                {
                    "ability_id": combatant.intent.ability_id.value,
                    "turns_remaining": combatant.intent.turns_remaining,
                    "target_id": combatant.intent.target_id,
                }
                if combatant.intent is not None
                else None
            ),
            "cooldowns": {ability_id.value: turns for ability_id, turns in combatant.cooldowns.items()},
            "upgrades": {
                ability_id.value: {"path": upgrade.path, "tier": upgrade.tier}
                for ability_id, upgrade in combatant.upgrades.items()
            },
            "memory": (
                {
                    "exploration": memory.exploration,
                    "learned": {
                        ability_id.value: {"value": stat.value, "uses": stat.uses}
                        for ability_id, stat in memory.learned.items()
                    },
                }
                if memory is not None
                else None
            ),
            "is_elite": combatant.is_elite,
            "is_boss": combatant.is_boss,
            "mechanic": combatant.mechanic,
            "source_id": combatant.source_id,
            "tags": list(combatant.tags),
            "affixes": self._serialize_affixes(combatant.affixes),
        }

    def _deserialize_combatant(self, value: Any, context: str) -> Combatant:
        data = self._require_dict(value, context)
        role = data.get("role")
        if role not in _VALID_ROLES:
            raise SnapshotError(f"{context}.role has invalid value {role!r}.")
        mechanic = data.get("mechanic")
        if mechanic is not None and mechanic not in _VALID_MECHANICS:
            raise SnapshotError(f"{context}.mechanic has invalid value {mechanic!r}.")
        try:
            statuses = StatusLedger.from_payload(self._require_dict(data.get("statuses", {}), f"{context}.statuses"))
        except (AttributeError, TypeError, ValueError) as exc:
            raise SnapshotError(f"{context}.statuses is invalid: {exc}") from exc

        stats = self._coerce_stats(data.get("stats"), f"{context}.stats")
        return Combatant(
            instance_id=self._require_str(data.get("instance_id"), f"{context}.instance_id"),
            display_name=self._require_str(data.get("display_name"), f"{context}.display_name"),
            role=role,
            level=self._require_int(data.get("level"), f"{context}.level", minimum=1),
            stats=stats,
            abilities=tuple(
                self._ability_id(raw, f"{context}.abilities")
                for raw in self._require_str_list(data.get("abilities", []), f"{context}.abilities")
            ),
            statuses=statuses,
            posture=self._coerce_posture(data.get("posture"), f"{context}.posture"),
            intent=self._coerce_intent(data.get("intent"), f"{context}.intent"),
            cooldowns={
                self._ability_id(key, f"{context}.cooldowns"): self._require_int(turns, f"{context}.cooldowns")
                for key, turns in self._require_dict(data.get("cooldowns", {}), f"{context}.cooldowns").items()
            },
            upgrades=self._coerce_upgrades(data.get("upgrades", {}), f"{context}.upgrades"),
            memory=self._coerce_memory(data.get("memory"), f"{context}.memory"),
            is_elite=self._require_bool(data.get("is_elite", False), f"{context}.is_elite"),
            is_boss=self._require_bool(data.get("is_boss", False), f"{context}.is_boss"),
            mechanic=mechanic,
            source_id=self._optional_str(data.get("source_id"), f"{context}.source_id"),
            tags=tuple(self._require_str_list(data.get("tags", []), f"{context}.tags")),
            affixes=self._coerce_affixes(data.get("affixes"), f"{context}.affixes"),
        )

    @staticmethod
    def _serialize_affixes(traits: AffixTraits | None) -> Dict[str, Any] | None:
        if traits is None:
            return None
        payload = {field.name: getattr(traits, field.name) for field in dataclasses.fields(AffixTraits)}
        payload["affix_ids"] = list(traits.affix_ids)
        return payload

    def _coerce_stats(self, value: Any, context: str) -> Stats:
        data = self._require_dict(value, context)
        known = {field.name: field for field in dataclasses.fields(Stats)}
        unknown = set(data) - set(known)
        if unknown:
            raise SnapshotError(f"{context} has unknown keys: {sorted(unknown)}")
        values: Dict[str, Any] = {}
        for name, raw in data.items():
            if name in _ELEMENT_MAP_FIELDS:
                values[name] = self._coerce_element_map(raw, f"{context}.{name}")
            elif known[name].type in ("int", int):
                values[name] = self._require_int(raw, f"{context}.{name}")
            else:
                values[name] = self._require_number(raw, f"{context}.{name}")
        for required in ("max_hp", "hp"):
            if required not in values:
                raise SnapshotError(f"{context}.{required} is required.")
        stats = Stats(**values)
        if stats.max_hp <= 0 or stats.hp > stats.max_hp:
            raise SnapshotError(f"{context} health must satisfy 0 <= hp <= max_hp and max_hp > 0.")
        return stats

    def _coerce_affixes(self, value: Any, context: str) -> AffixTraits | None:
        if value is None:
            return None
        data = self._require_dict(value, context)
        known = {field.name: field for field in dataclasses.fields(AffixTraits)}
        unknown = set(data) - set(known)
        if unknown:
            raise SnapshotError(f"{context} has unknown keys: {sorted(unknown)}")
        values: Dict[str, Any] = {}
        for name, raw in data.items():
            declared = known[name].type
            if name == "affix_ids":
                values[name] = tuple(self._require_str_list(raw, f"{context}.{name}"))
            elif declared in ("bool", bool):
                values[name] = self._require_bool(raw, f"{context}.{name}")
            elif declared in ("int", int):
                values[name] = self._require_int(raw, f"{context}.{name}")
            else:
                values[name] = self._require_number(raw, f"{context}.{name}")
        return AffixTraits(**values)

    def _coerce_posture(self, value: Any, context: str) -> PostureState | None:
        if value is None:
            return None
        data = self._require_dict(value, context)
        maximum = self._require_int(data.get("maximum"), f"{context}.maximum", minimum=1)
        current = self._require_int(data.get("current"), f"{context}.current")
        if current > maximum:
            raise SnapshotError(f"{context}.current exceeds maximum.")
        return PostureState(current=current, maximum=maximum)

    def _coerce_intent(self, value: Any, context: str) -> IntentState | None:
        if value is None:
            return None
        data = self._require_dict(value, context)
        return IntentState(
            ability_id=self._ability_id(data.get("ability_id"), f"{context}.ability_id"),
            turns_remaining=self._require_int(data.get("turns_remaining"), f"{context}.turns_remaining", minimum=1),
            target_id=self._optional_str(data.get("target_id"), f"{context}.target_id"),
        )

    def _coerce_upgrades(self, value: Any, context: str) -> Dict[AbilityId, AbilityUpgrade]:
        upgrades: Dict[AbilityId, AbilityUpgrade] = {}
        for key, raw in self._require_dict(value, context).items():
            data = self._require_dict(raw, f"{context}.{key}")
            path = data.get("path")
            if path not in _VALID_PATHS:
                raise SnapshotError(f"{context}.{key}.path has invalid value {path!r}.")
            upgrades[self._ability_id(key, context)] = AbilityUpgrade(
                path=path, tier=self._require_int(data.get("tier"), f"{context}.{key}.tier")
            )
        return upgrades

    def _coerce_memory(self, value: Any, context: str) -> DecisionMemory | None:
        if value is None:
            return None
        data = self._require_dict(value, context)
        memory = DecisionMemory(exploration=self._require_number(data.get("exploration"), f"{context}.exploration"))
        for key, raw in self._require_dict(data.get("learned", {}), f"{context}.learned").items():
            stat = self._require_dict(raw, f"{context}.learned.{key}")
            memory.learned[self._ability_id(key, f"{context}.learned")] = LearnedStat(
                value=self._require_number(stat.get("value"), f"{context}.learned.{key}.value"),
                uses=self._require_int(stat.get("uses"), f"{context}.learned.{key}.uses"),
            )
        return memory

    def _coerce_element_map(self, value: Any, context: str) -> Dict[Element, float]:
        result: Dict[Element, float] = {}
        for key, raw in self._require_dict(value, context).items():
            if key not in ELEMENTS:
                raise SnapshotError(f"{context} has unknown element {key!r}.")
            result[key] = self._require_number(raw, f"{context}.{key}")
        return result

    # -----------------------
    # Primitive validators
    # -----------------------
    def _coerce_rng_payload(self, payload: Mapping[str, Any]) -> RNGStatePayload:
        state_values = payload.get("state")
        if not isinstance(state_values, list):
            raise SnapshotError("Invalid RNG state payload.")
        return {
            "seed": self._require_int(payload.get("seed"), "rng.seed"),
            "draws": self._require_int(payload.get("draws", 0), "rng.draws"),
            "state": state_values,
        }

    @staticmethod
    def _ability_id(value: Any, context: str) -> AbilityId:
        try:
            return AbilityId.parse(value)
        except ValueError as exc:
            raise SnapshotError(f"{context} has unknown ability id {value!r}.") from exc

    @staticmethod
    def _require_dict(value: Any, context: str) -> Dict[str, Any]:
        if not isinstance(value, dict):
            raise SnapshotError(f"{context} must be an object.")
        return value

    @staticmethod
    def _require_str(value: Any, context: str) -> str:
        if not isinstance(value, str):
            raise SnapshotError(f"{context} must be a string.")
        return value

    def _optional_str(self, value: Any, context: str) -> str | None:
        if value is None:
            return None
        return self._require_str(value, context)

    @staticmethod
    def _require_bool(value: Any, context: str) -> bool:
        if not isinstance(value, bool):
            raise SnapshotError(f"{context} must be a boolean.")
        return value

    @staticmethod
    def _require_int(value: Any, context: str, *, minimum: int = 0) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise SnapshotError(f"{context} must be an integer.")
        if value < minimum:
            raise SnapshotError(f"{context} must be >= {minimum}.")
        return value

    @staticmethod
    def _require_number(value: Any, context: str) -> float:
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            raise SnapshotError(f"{context} must be a finite number.")
        return float(value)

    def _require_str_list(self, value: Any, context: str) -> List[str]:
        if not isinstance(value, list):
            raise SnapshotError(f"{context} must be a list.")
        return [self._require_str(item, context) for item in value]
