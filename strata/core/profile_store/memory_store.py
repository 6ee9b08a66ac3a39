"""
In-memory profile store.

Process-local and lost on exit. Stored models are frozen, so handing out
references cannot alter stored state.
"""

from datetime import UTC, datetime

from strata.core.profile_store.base import ProfileStore
from strata.models.experiment import ThoughtExperiment
from strata.models.relational import CompatibilityScore, pair_key
from strata.models.snapshot import ClaimState, Snapshot
from strata.utils.exceptions import ConcurrencyConflictError, StoreError
from strata.utils.logger import get_logger

logger = get_logger(__name__)


class InMemoryProfileStore(ProfileStore):
    """Dictionary-backed store. Default backend and the one tests use."""

    def __init__(self):
        self._snapshots: dict[str, Snapshot] = {}
        self._history: dict[str, list[str]] = {}
        self._latest: dict[str, str] = {}
        self._claim_states: dict[str, ClaimState] = {}
        self._scores: dict[tuple[str, str], CompatibilityScore] = {}
        self._experiments: dict[str, ThoughtExperiment] = {}

    async def initialize(self) -> None:
        logger.debug("In-memory profile store ready")

    async def close(self) -> None:
        return None

    # Write helpers never await, so a commit cannot interleave with another task

    def _insert_snapshot(self, snapshot: Snapshot) -> None:
        if snapshot.snapshot_id in self._snapshots:
            raise StoreError(
                f"Snapshot already exists: {snapshot.snapshot_id}",
                context={"snapshot_id": snapshot.snapshot_id, "user_id": snapshot.user_id},
            )
        self._snapshots[snapshot.snapshot_id] = snapshot
        self._history.setdefault(snapshot.user_id, []).append(snapshot.snapshot_id)
        self._latest[snapshot.user_id] = snapshot.snapshot_id

    def _check_version(self, user_id: str, expected_version: int) -> None:
        current = self._claim_states.get(user_id)
        current_version = current.version if current else 0
        if current_version != expected_version:
            raise ConcurrencyConflictError(
                f"Claim state of {user_id} moved on",
                context={
                    "user_id": user_id,
                    "expected_version": expected_version,
                    "actual_version": current_version,
                },
            )

    def _put_claim_state(self, state: ClaimState, expected_version: int) -> ClaimState:
        stored = state.model_copy(
            update={"version": expected_version + 1, "updated_at": datetime.now(UTC)}
        )
        self._claim_states[state.user_id] = stored
        return stored

    async def append_snapshot(self, snapshot: Snapshot) -> None:
        self._insert_snapshot(snapshot)

    async def get_snapshot(self, snapshot_id: str) -> Snapshot | None:
        return self._snapshots.get(snapshot_id)

    async def get_latest_snapshot(self, user_id: str) -> Snapshot | None:
        snapshot_id = self._latest.get(user_id)
        return self._snapshots.get(snapshot_id) if snapshot_id else None

    async def list_snapshots(self, user_id: str, limit: int = 10) -> list[Snapshot]:
        snapshots = [self._snapshots[sid] for sid in self._history.get(user_id, [])]
        snapshots.sort(key=lambda s: s.version, reverse=True)
        return snapshots[:limit]

    async def get_claim_state(self, user_id: str) -> ClaimState:
        return self._claim_states.get(user_id) or ClaimState(user_id=user_id)

    async def save_claim_state(self, state: ClaimState, expected_version: int) -> ClaimState:
        self._check_version(state.user_id, expected_version)
        return self._put_claim_state(state, expected_version)

    async def commit_profile(
        self,
        state: ClaimState,
        expected_version: int,
        snapshot: Snapshot | None = None,
        experiment: ThoughtExperiment | None = None,
    ) -> ClaimState:
        self._check_version(state.user_id, expected_version)
        if snapshot is not None:
            self._insert_snapshot(snapshot)
        stored = self._put_claim_state(state, expected_version)
        if experiment is not None:
            self._experiments[experiment.experiment_id] = experiment
        return stored

    async def get_compatibility_score(self, user_a: str, user_b: str) -> CompatibilityScore | None:
        return self._scores.get(pair_key(user_a, user_b))

    async def save_compatibility_score(self, score: CompatibilityScore) -> None:
        self._scores[score.key] = score

    async def invalidate_compatibility_scores(self, user_id: str) -> int:
        stale = [key for key in self._scores if user_id in key]
        for key in stale:
            del self._scores[key]
        return len(stale)

    async def save_thought_experiment(self, experiment: ThoughtExperiment) -> None:
        self._experiments[experiment.experiment_id] = experiment

    async def get_thought_experiment(self, experiment_id: str) -> ThoughtExperiment | None:
        return self._experiments.get(experiment_id)

    async def list_thought_experiments(self, user_id: str, layer_id: int | None = None) -> list[ThoughtExperiment]:
        # Reversed insertion order keeps the newest first among equal timestamps
        experiments = [
            e
            for e in reversed(list(self._experiments.values()))
            if e.user_id == user_id and (layer_id is None or e.layer_id == layer_id)
        ]
        return sorted(experiments, key=lambda e: e.created_at, reverse=True)
