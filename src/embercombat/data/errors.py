"""Exceptions raised while loading combat definitions."""


class DataError(Exception):
    """Base exception for the data layer."""


class DataLoadError(DataError):
    """Raised when a definition or tuning file is missing or is not valid JSON."""


class DataValidationError(DataError):
    """Raised when definition content has the wrong shape, type or range."""


class DataReferenceError(DataError):
    """Raised when a definition names an ability or template that does not exist."""
