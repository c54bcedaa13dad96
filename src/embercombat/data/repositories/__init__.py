"""Repository exports."""

from .abilities_repo import AbilitiesRepository
from .affixes_repo import AffixesRepository
from .companions_repo import CompanionsRepository
from .enemies_repo import EnemiesRepository

__all__ = [
    "AbilitiesRepository",
    "AffixesRepository",
    "CompanionsRepository",
    "EnemiesRepository",
]
