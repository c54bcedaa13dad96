"""Factory helpers for runtime combatants."""

from .companion_factory import create_companion
from .hostile_factory import MAX_GROUP_SIZE, build_hostile, create_hostile, group_scaling
from .id_factory import make_instance_id

__all__ = [
    "MAX_GROUP_SIZE",
    "build_hostile",
    "create_companion",
    "create_hostile",
    "group_scaling",
    "make_instance_id",
]
