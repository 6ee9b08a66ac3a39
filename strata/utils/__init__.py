"""Utility modules for Strata."""

from strata.utils.exceptions import (
    ConcurrencyConflictError,
    ConfigurationError,
    DependencyError,
    InsufficientDataError,
    NotFoundError,
    StoreError,
    StrataError,
    ValidationError,
)
from strata.utils.id_generator import (
    generate_claim_id,
    generate_experiment_id,
    generate_feedback_id,
    generate_signal_id,
    generate_snapshot_id,
    member_set_hash,
)
from strata.utils.locks import KeyedLock
from strata.utils.logger import get_logger, setup_logging

__all__ = [
    # Logging
    "get_logger",
    "setup_logging",
    # Concurrency
    "KeyedLock",
    # ID Generators
    "generate_signal_id",
    "generate_claim_id",
    "generate_snapshot_id",
    "generate_feedback_id",
    "generate_experiment_id",
    "member_set_hash",
    # Exceptions
    "StrataError",
    "ValidationError",
    "NotFoundError",
    "InsufficientDataError",
    "ConcurrencyConflictError",
    "DependencyError",
    "StoreError",
    "ConfigurationError",
]
