"""Error taxonomy shared by the mutation operations and the front door."""

from __future__ import annotations


class ConfrerieError(Exception):
    """Base class for errors that carry a short user-facing message."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ConfrerieError):
    """A required field is missing or invalid."""


class NotFoundError(ConfrerieError):
    """A referenced id does not exist in the document."""


class PermissionDeniedError(ConfrerieError):
    """The acting user lacks the required role or ownership."""


class RateLimitedError(ConfrerieError):
    """The same logical action was submitted again inside its cooldown."""


class PersistenceError(ConfrerieError):
    """The document could not be written back to disk."""
