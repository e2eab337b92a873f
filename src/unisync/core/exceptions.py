"""
Exceptions - Centralized exception hierarchy for unisync.

Port-specific errors (external API, state repository) live next to their
ports and derive from UnisyncError as well, so callers can catch the whole
family with one clause.
"""

from typing import Optional

__all__ = [
    "UnisyncError",
    "ConfigError",
    "IdentityError",
    "ExtractionError",
    "ResolutionError",
    "InvalidReferenceError",
    "NotReadyError",
    "ReferenceNotFoundError",
    "AmbiguousReferenceError",
]


class UnisyncError(Exception):
    """Base class for all unisync errors."""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        return self.message


class ConfigError(UnisyncError):
    """Runtime configuration is missing or invalid."""


class IdentityError(UnisyncError):
    """An external identifier transition would break the placeholder rules."""


class ExtractionError(UnisyncError):
    """A contributor's configuration could not be turned into a typed config."""

    def __init__(
        self,
        message: str,
        owner: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message, cause=cause)
        self.owner = owner


# -------------------------------------------------------------------------
# Reference resolution
# -------------------------------------------------------------------------

class ResolutionError(UnisyncError):
    """A reference could not be resolved to an external identifier."""


class InvalidReferenceError(ResolutionError):
    """The reference names neither an id, a local object nor a display name."""


class NotReadyError(ResolutionError):
    """The referenced local object exists but has no external id yet."""


class ReferenceNotFoundError(ResolutionError):
    """Nothing matched the reference."""


class AmbiguousReferenceError(ResolutionError):
    """More than one external resource matched a display name."""
