"""
Tests for profile store backends.

Every test runs against the in-memory and the SQLite store.
"""

from datetime import UTC, datetime, timedelta

import pytest

from strata.core.profile_store import InMemoryProfileStore, SQLiteProfileStore
from strata.models.claim import Claim
from strata.models.experiment import ExperimentType, ThoughtExperiment
from strata.models.relational import CompatibilityScore
from strata.models.snapshot import ClaimState, Snapshot, SnapshotSource
from strata.utils.exceptions import ConcurrencyConflictError, StoreError

T0 = datetime(2026, 1, 5, 9, 0, tzinfo=UTC)


@pytest.fixture(params=["memory", "sqlite"])
async def store(request, tmp_path):
    if request.param == "memory":
        backend = InMemoryProfileStore()
    else:
        backend = SQLiteProfileStore(db_path=str(tmp_path / "profiles.db"))
    await backend.initialize()
    yield backend
    await backend.close()


def make_snapshot(user_id: str, version: int, snapshot_id: str | None = None) -> Snapshot:
    claim = Claim(
        claim_id=f"clm_L01_{user_id}",
        user_id=user_id,
        layer_ids=(1,),
        topic="L01",
        confidence=0.71,
        extraction_confidence=0.71,
        supporting_signal_ids=("sig_a", "sig_b", "sig_c"),
    )
    return Snapshot(
        snapshot_id=snapshot_id or f"snap_{user_id}_{version}",
        user_id=user_id,
        version=version,
        source=SnapshotSource.ONBOARDING,
        claims=(claim,),
        generated_at=T0 + timedelta(minutes=version),
    )


def make_experiment(experiment_id: str, user_id: str = "user_1", layer_id: int = 2,
                    created_at: datetime = T0) -> ThoughtExperiment:
    return ThoughtExperiment(
        experiment_id=experiment_id,
        user_id=user_id,
        layer_id=layer_id,
        experiment_type=ExperimentType.DEPTH,
        question="What drives you?",
        created_at=created_at,
    )


@pytest.mark.asyncio
class TestSnapshots:
    """Tests for the append-only snapshot log."""

    async def test_append_and_get(self, store):
        snapshot = make_snapshot("user_1", 1)
        await store.append_snapshot(snapshot)

        loaded = await store.get_snapshot(snapshot.snapshot_id)
        assert loaded == snapshot
        assert await store.get_latest_snapshot("user_1") == snapshot

    async def test_latest_moves_and_history_is_newest_first(self, store):
        for version in (1, 2, 3):
            await store.append_snapshot(make_snapshot("user_1", version))

        latest = await store.get_latest_snapshot("user_1")
        history = await store.list_snapshots("user_1", limit=2)

        assert latest.version == 3
        assert [s.version for s in history] == [3, 2]

    async def test_missing(self, store):
        assert await store.get_snapshot("snap_nope") is None
        assert await store.get_latest_snapshot("nobody") is None
        assert await store.list_snapshots("nobody") == []

    async def test_duplicate_snapshot_rejected(self, store):
        snapshot = make_snapshot("user_1", 1)
        await store.append_snapshot(snapshot)

        with pytest.raises(StoreError):
            await store.append_snapshot(snapshot)

        assert len(await store.list_snapshots("user_1")) == 1


@pytest.mark.asyncio
class TestClaimState:
    """Tests for versioned claim state with compare-and-swap."""

    async def test_empty_state(self, store):
        state = await store.get_claim_state("user_1")
        assert state.version == 0
        assert state.claims == ()

    async def test_save_increments_version(self, store):
        saved = await store.save_claim_state(ClaimState(user_id="user_1", drift_since_snapshot=0.1), 0)
        assert saved.version == 1

        saved = await store.save_claim_state(saved.model_copy(update={"drift_since_snapshot": 0.2}), 1)
        assert saved.version == 2

        loaded = await store.get_claim_state("user_1")
        assert loaded.version == 2
        assert loaded.drift_since_snapshot == 0.2

    async def test_stale_version_conflicts(self, store):
        """Test a writer holding an old version loses the race."""
        await store.save_claim_state(ClaimState(user_id="user_1"), 0)

        with pytest.raises(ConcurrencyConflictError):
            await store.save_claim_state(ClaimState(user_id="user_1"), 0)

        with pytest.raises(ConcurrencyConflictError):
            await store.save_claim_state(ClaimState(user_id="user_1"), 5)

        assert (await store.get_claim_state("user_1")).version == 1


@pytest.mark.asyncio
class TestCommitProfile:
    """Tests for the all-or-nothing state, snapshot and experiment write."""

    async def test_commit_writes_everything(self, store):
        snapshot = make_snapshot("user_1", 1)
        answered = make_experiment("te_1").model_copy(update={"answered_at": T0})
        state = ClaimState(user_id="user_1", claims=snapshot.claims, last_snapshot_id=snapshot.snapshot_id)

        stored = await store.commit_profile(state, 0, snapshot=snapshot, experiment=answered)

        assert stored.version == 1
        assert (await store.get_claim_state("user_1")).last_snapshot_id == snapshot.snapshot_id
        assert await store.get_latest_snapshot("user_1") == snapshot
        assert (await store.get_thought_experiment("te_1")).answered_at == T0

    async def test_duplicate_snapshot_rolls_back_state(self, store):
        existing = make_snapshot("user_1", 1)
        await store.commit_profile(ClaimState(user_id="user_1"), 0, snapshot=existing)

        with pytest.raises(StoreError):
            await store.commit_profile(
                ClaimState(user_id="user_1", drift_since_snapshot=0.3),
                1,
                snapshot=existing,
                experiment=make_experiment("te_1"),
            )

        state = await store.get_claim_state("user_1")
        assert state.version == 1
        assert state.drift_since_snapshot == 0.0
        assert await store.get_thought_experiment("te_1") is None
        assert len(await store.list_snapshots("user_1")) == 1

    async def test_conflict_writes_no_snapshot(self, store):
        await store.save_claim_state(ClaimState(user_id="user_1"), 0)

        with pytest.raises(ConcurrencyConflictError):
            await store.commit_profile(ClaimState(user_id="user_1"), 0, snapshot=make_snapshot("user_1", 1))

        assert await store.get_latest_snapshot("user_1") is None


@pytest.mark.asyncio
class TestCompatibilityCache:
    """Tests for the pair score cache."""

    async def test_saved_under_canonical_pair(self, store):
        score = CompatibilityScore(user_a="alice", user_b="bob", score=72.5, calculated_at=T0)
        await store.save_compatibility_score(score)

        assert (await store.get_compatibility_score("bob", "alice")).score == 72.5

    async def test_invalidate_by_user(self, store):
        for other in ("bob", "carol"):
            await store.save_compatibility_score(
                CompatibilityScore(user_a="alice", user_b=other, score=50.0, calculated_at=T0)
            )
        await store.save_compatibility_score(
            CompatibilityScore(user_a="bob", user_b="carol", score=40.0, calculated_at=T0)
        )

        removed = await store.invalidate_compatibility_scores("alice")

        assert removed == 2
        assert await store.get_compatibility_score("alice", "bob") is None
        assert await store.get_compatibility_score("bob", "carol") is not None


@pytest.mark.asyncio
class TestThoughtExperiments:
    async def test_save_and_update(self, store):
        experiment = make_experiment("te_1")
        await store.save_thought_experiment(experiment)
        await store.save_thought_experiment(experiment.model_copy(update={"answered_at": T0}))

        loaded = await store.get_thought_experiment("te_1")
        assert loaded.answered_at == T0
        assert await store.get_thought_experiment("te_missing") is None

    async def test_list_newest_first_and_filter(self, store):
        await store.save_thought_experiment(make_experiment("te_1", created_at=T0))
        await store.save_thought_experiment(make_experiment("te_2", created_at=T0 + timedelta(hours=1)))
        await store.save_thought_experiment(make_experiment("te_3", layer_id=9))
        await store.save_thought_experiment(make_experiment("te_4", user_id="user_2"))

        on_layer = await store.list_thought_experiments("user_1", layer_id=2)
        everything = await store.list_thought_experiments("user_1")

        assert [e.experiment_id for e in on_layer] == ["te_2", "te_1"]
        assert {e.experiment_id for e in everything} == {"te_1", "te_2", "te_3"}


@pytest.mark.integration
@pytest.mark.asyncio
class TestSQLitePersistence:
    async def test_survives_reconnect(self, tmp_path):
        path = str(tmp_path / "persist.db")
        first = SQLiteProfileStore(db_path=path)
        await first.initialize()
        await first.append_snapshot(make_snapshot("user_1", 1))
        await first.save_claim_state(ClaimState(user_id="user_1"), 0)
        await first.close()

        second = SQLiteProfileStore(db_path=path)
        await second.initialize()
        try:
            assert (await second.get_latest_snapshot("user_1")).version == 1
            assert (await second.get_claim_state("user_1")).version == 1
        finally:
            await second.close()
