"""
Base interface for profile storage.

Holds the append-only snapshot log with a latest pointer per user, the
working claim state with its version counter, the compatibility cache
and thought experiments.
"""

from abc import ABC, abstractmethod

from strata.models.experiment import ThoughtExperiment
from strata.models.relational import CompatibilityScore
from strata.models.snapshot import ClaimState, Snapshot


class ProfileStore(ABC):
    """Abstract base class for profile storage implementations."""

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the store (create tables/schema)."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release connections."""
        pass

    # ═══════════════════════════════════════════════════════════
    # SNAPSHOT OPERATIONS
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def append_snapshot(self, snapshot: Snapshot) -> None:
        """
        Append a snapshot and move the user's latest pointer to it.

        Args:
            snapshot: Snapshot to store

        Raises:
            StoreError: If the id already exists
        """
        pass

    @abstractmethod
    async def get_snapshot(self, snapshot_id: str) -> Snapshot | None:
        """
        Retrieve a snapshot by ID.

        Returns:
            Snapshot or None if not found
        """
        pass

    @abstractmethod
    async def get_latest_snapshot(self, user_id: str) -> Snapshot | None:
        """Latest snapshot of a user, or None."""
        pass

    @abstractmethod
    async def list_snapshots(self, user_id: str, limit: int = 10) -> list[Snapshot]:
        """
        Snapshot history of a user.

        Returns:
            Snapshots newest first (by version)
        """
        pass

    # ═══════════════════════════════════════════════════════════
    # CLAIM STATE OPERATIONS
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def get_claim_state(self, user_id: str) -> ClaimState:
        """
        Working claim state of a user.

        Returns:
            Stored state, or an empty state at version 0
        """
        pass

    @abstractmethod
    async def save_claim_state(self, state: ClaimState, expected_version: int) -> ClaimState:
        """
        Write a claim state if nobody else wrote in between.

        Args:
            state: New state (its version is ignored)
            expected_version: Version the caller read

        Returns:
            Stored state with version expected_version + 1

        Raises:
            ConcurrencyConflictError: If the stored version moved on
        """
        pass

    @abstractmethod
    async def commit_profile(
        self,
        state: ClaimState,
        expected_version: int,
        snapshot: Snapshot | None = None,
        experiment: ThoughtExperiment | None = None,
    ) -> ClaimState:
        """
        Write a claim state together with its snapshot and answered experiment.

        All writes land or none do: a version conflict or a failed snapshot
        append leaves the stored state, history and latest pointer untouched.

        Args:
            state: New state (its version is ignored)
            expected_version: Version the caller read
            snapshot: Snapshot built from ``state``, if any
            experiment: Thought experiment to store alongside, if any

        Returns:
            Stored state with version expected_version + 1

        Raises:
            ConcurrencyConflictError: If the stored version moved on
            StoreError: If the snapshot cannot be appended
        """
        pass

    # ═══════════════════════════════════════════════════════════
    # COMPATIBILITY CACHE
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def get_compatibility_score(self, user_a: str, user_b: str) -> CompatibilityScore | None:
        """Cached score for an unordered pair."""
        pass

    @abstractmethod
    async def save_compatibility_score(self, score: CompatibilityScore) -> None:
        """Cache a score under its unordered pair key."""
        pass

    @abstractmethod
    async def invalidate_compatibility_scores(self, user_id: str) -> int:
        """
        Drop every cached score involving a user.

        Returns:
            Number of scores removed
        """
        pass

    # ═══════════════════════════════════════════════════════════
    # THOUGHT EXPERIMENTS
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def save_thought_experiment(self, experiment: ThoughtExperiment) -> None:
        pass

    @abstractmethod
    async def get_thought_experiment(self, experiment_id: str) -> ThoughtExperiment | None:
        pass

    @abstractmethod
    async def list_thought_experiments(self, user_id: str, layer_id: int | None = None) -> list[ThoughtExperiment]:
        """Experiments of a user, newest first."""
        pass
