"""Exception hierarchy for rope walks and arena access."""

from __future__ import annotations


class RopeError(Exception):
    """Base class for all errors raised by gleipnir."""


class BorrowError(RopeError):
    """Raised when an access would create a second live path into the arena."""


class StaleReferenceError(BorrowError):
    """Raised when a scoped node reference is used after its scope closed."""


class RopeConsumedError(RopeError):
    """Raised when a rope is used after being consumed or closed."""


class InvalidPathError(RopeError, ValueError):
    """Raised when a walk asks for a child that does not exist."""


class TreeInvariantError(RopeError, RuntimeError):
    """Raised on an internal-consistency fault; never expected in practice."""


__all__ = [
    "BorrowError",
    "InvalidPathError",
    "RopeConsumedError",
    "RopeError",
    "StaleReferenceError",
    "TreeInvariantError",
]
