"""
Engine error taxonomy.

Every error carries a stable ``code`` (e.g. ``NOT_ENOUGH_TEAMS``) so the API
layer can map failures to user-facing messages without parsing text.
"""

from typing import Any, Dict, Optional


class CompetitionError(Exception):
    """Base class for all competition engine failures."""

    default_code = "COMPETITION_ERROR"

    def __init__(self, message: str, code: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.context = context or {}

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class ConfigurationError(CompetitionError):
    """Invalid or insufficient inputs, detected before any computation starts."""

    default_code = "INVALID_CONFIGURATION"


class ValidationError(CompetitionError):
    """Structurally invalid data (duplicate ids, self-pairings, unknown winners)."""

    default_code = "INVALID_DATA"


class IntegrityError(CompetitionError):
    """Computation over data that references unknown entities."""

    default_code = "UNKNOWN_REFERENCE"


class StateError(CompetitionError):
    """Operation attempted before its prerequisites are in place."""

    default_code = "INVALID_STATE"


class ConflictError(CompetitionError):
    """Attempt to overwrite an already-resolved outcome with a different one."""

    default_code = "RESULT_CONFLICT"
