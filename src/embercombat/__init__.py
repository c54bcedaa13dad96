"""Turn-based combat resolution engine."""

__version__ = "0.4.0"
