"""
Custom exception hierarchy for Strata.

Every error carries a machine-readable ``kind``, a message and a context
dictionary with the relevant ids, so calling layers can render precise
messages without string matching. All exceptions inherit from StrataError.
"""

from typing import Any


class StrataError(Exception):
    """
    Base exception for all Strata errors.
    All custom exceptions should inherit from this class.
    """

    kind: str = "strata_error"

    def __init__(self, message: str, context: dict | None = None):
        """
        Initialize Strata error.
        Args:
            message: Error message
            context: Optional context dictionary with the ids involved
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Structured representation for calling layers."""
        return {"kind": self.kind, "message": self.message, "context": dict(self.context)}


class ValidationError(StrataError):
    """
    Validation errors.
    Raised when input is malformed or empty. Caller's fault, never retried.
    """

    kind = "validation_error"


class NotFoundError(StrataError):
    """
    Resource not found errors.
    Raised when a user, snapshot, claim or experiment id is unknown.
    """

    kind = "not_found"


class InsufficientDataError(StrataError):
    """
    Valid request without enough evidence to answer it.
    A normal outcome rather than a failure.
    """

    kind = "insufficient_data"


class ConcurrencyConflictError(StrataError):
    """
    Lost the per-user write race.
    The caller should retry once.
    """

    kind = "concurrency_conflict"


class DependencyError(StrataError):
    """
    External collaborator errors.
    Raised when the credit gate, summarizer or identity resolver fails.
    """

    kind = "dependency_error"


class StoreError(StrataError):
    """
    Storage backend errors.
    Raised when profile store operations fail.
    """

    kind = "store_error"


class ConfigurationError(StrataError):
    """
    Configuration errors.
    Raised when configuration is invalid or missing required values.
    """

    kind = "configuration_error"
