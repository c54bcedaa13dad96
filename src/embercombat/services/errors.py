"""Service-layer exceptions."""


class CombatError(Exception):
    """Base exception for combat engine failures."""


class InvalidActionError(CombatError):
    """Raised when an action cannot be taken in the current battle state."""

    def __init__(self, reason: str, message: str | None = None) -> None:
        super().__init__(message or reason)
        self.reason = reason


class EncounterError(CombatError):
    """Raised when an encounter cannot be assembled from the supplied records."""


class SnapshotError(CombatError):
    """Raised when a battle snapshot cannot be taken or restored."""
