"""
Unified Profile Engine - Integrates all components.

Brings together:
- Claim extraction & merge
- Snapshot assembly & history
- Resonance feedback, drift tracking & cascades
- Thought experiments
- Relational comparison (quick score, team matrix, dynamics, deep analysis)
"""

import time
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any, TypeVar

from strata.config import Config
from strata.core.collaborators.entitlement import EntitlementGate, StaticEntitlementGate
from strata.core.collaborators.identity import IdentityResolver
from strata.core.collaborators.summarizer import NarrativeSummarizer, TemplateSummarizer
from strata.core.profile_store.base import ProfileStore
from strata.core.profile_store.factory import ProfileStoreFactory
from strata.core.taxonomy import get_layer
from strata.models.claim import Claim, Resonance
from strata.models.experiment import ThoughtExperiment, ThoughtExperimentResult
from strata.models.relational import (
    CompatibilityMatrix,
    CompatibilityScore,
    DeepAnalysis,
    InsufficientData,
    TeamDynamicsProfile,
    TeamMember,
)
from strata.models.signal import ExtractionOptions, Signal, SignalSource
from strata.models.snapshot import (
    ClaimState,
    FeedbackResult,
    ProcessMetadata,
    ProcessResult,
    Snapshot,
    SnapshotDiff,
    SnapshotSource,
    SnapshotTrigger,
)
from strata.services.claim_extractor import ClaimExtractor, parse_signals
from strata.services.comparator import RelationalComparator
from strata.services.recalibration import RecalibrationEngine
from strata.services.snapshot_service import ClaimMatcher, MergeOutcome, SnapshotService
from strata.services.thought_experiments import ThoughtExperimentService
from strata.utils.exceptions import (
    ConcurrencyConflictError,
    DependencyError,
    NotFoundError,
    ValidationError,
)
from strata.utils.locks import KeyedLock
from strata.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)

T = TypeVar("T")


class ProfileEngine:
    """
    Unified Profile Engine integrating all components.

    Features:
    - Process signal batches into versioned snapshots
    - Resonance feedback with drift-triggered cascade rebuilds
    - Thought experiments routed through the extractor merge path
    - Pairwise and team compatibility over latest snapshots

    Per-user read-modify-write sections run under a per-user lock and an
    optimistic version check; a lost race is retried once.
    """

    def __init__(
        self,
        store: ProfileStore,
        config: Config,
        summarizer: NarrativeSummarizer | None = None,
        entitlement_gate: EntitlementGate | None = None,
        identity_resolver: IdentityResolver | None = None,
        matcher: ClaimMatcher | None = None,
        polarity_classifier=None,
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Initialize Profile Engine.

        Args:
            store: Profile store backend
            config: Configuration object
            summarizer: Narrative provider (default: TemplateSummarizer)
            entitlement_gate: Credit gate for deep analysis (default: allow all)
            identity_resolver: Display-name lookup for teams
            matcher: Claim merge predicate
            polarity_classifier: Claim polarity classifier
            clock: Time source
        """
        self.store = store
        self.config = config
        self.summarizer = summarizer or TemplateSummarizer()
        self.clock = clock or (lambda: datetime.now(UTC))

        self.extractor = ClaimExtractor(config.extraction, polarity_classifier=polarity_classifier)
        self.snapshots = SnapshotService(config, matcher=matcher)
        self.recalibration = RecalibrationEngine(config.recalibration)
        self.thought_experiments = ThoughtExperimentService()
        self.comparator = RelationalComparator(
            store=store,
            config=config,
            entitlement_gate=entitlement_gate or StaticEntitlementGate(allowed=True),
            summarizer=self.summarizer,
            identity_resolver=identity_resolver,
            clock=self.clock,
        )

        self._locks = KeyedLock()

    @classmethod
    def from_config(cls, config: Config | None = None, **kwargs: Any) -> "ProfileEngine":
        """Build an engine with the store backend and logging named in the configuration."""
        config = config or Config()
        setup_logging(**config.logging.model_dump())
        return cls(store=ProfileStoreFactory.create(config), config=config, **kwargs)

    async def initialize(self) -> None:
        """Initialize the store."""
        logger.info("Initializing Profile Engine")
        await self.store.initialize()
        logger.info("Profile Engine ready")

    async def close(self) -> None:
        """Close all connections."""
        logger.info("Closing Profile Engine")
        await self.store.close()
        await self.summarizer.close()

    # ═══════════════════════════════════════════════════════════
    # PER-USER EXCLUSIVE SECTION
    # ═══════════════════════════════════════════════════════════

    async def _exclusive(self, user_id: str, operation: str, body: Callable[[], Awaitable[T]]) -> T:
        """Run a read-modify-write body under the user's lock, retrying lost races."""
        retries = self.config.recalibration.max_conflict_retries
        async with self._locks.hold(user_id):
            attempt = 0
            while True:
                try:
                    return await body()
                except ConcurrencyConflictError as e:
                    if attempt >= retries:
                        logger.error(
                            f"{operation} for {user_id} lost the write race {attempt + 1} times",
                            extra={"user_id": user_id, "operation": operation, "error": e.message},
                        )
                        raise
                    attempt += 1
                    logger.warning(
                        f"{operation} for {user_id} conflicted, retrying",
                        extra={"user_id": user_id, "operation": operation, "attempt": attempt},
                    )

    async def _describe(self, outcome: MergeOutcome, user_id: str) -> list[Claim]:
        """Attach summarizer statements to new and merged claims."""
        changed = {c.claim_id for c in outcome.new_claims + outcome.merged_claims}
        claims = []
        for claim in outcome.claims:
            if claim.claim_id in changed:
                try:
                    statement = await self.summarizer.describe_claim(claim)
                except Exception as e:
                    raise DependencyError(
                        f"Summarizer failed for claim {claim.claim_id}: {e}",
                        context={"user_id": user_id, "claim_id": claim.claim_id},
                    ) from e
                claim = claim.model_copy(update={"statement": statement})
            claims.append(claim)
        return claims

    async def _invalidate_scores(self, user_id: str, reason: str) -> None:
        removed = await self.store.invalidate_compatibility_scores(user_id)
        if removed:
            logger.debug(
                f"Invalidated {removed} compatibility scores for {user_id} ({reason})",
                extra={"user_id": user_id},
            )

    def _cascade_snapshot(
        self, user_id: str, claims: list[Claim], source: SnapshotSource, previous: Snapshot | None, now: datetime
    ) -> Snapshot:
        snapshot = self.snapshots.build_snapshot(
            user_id, claims, source, previous=previous, trigger=SnapshotTrigger.CASCADE, now=now
        )
        logger.info(
            f"Cascade rebuilt snapshot v{snapshot.version} for {user_id}",
            extra={"user_id": user_id, "snapshot_id": snapshot.snapshot_id, "source": source.value},
        )
        return snapshot

    # ═══════════════════════════════════════════════════════════
    # SIGNAL PROCESSING
    # ═══════════════════════════════════════════════════════════

    async def process_signals(
        self,
        user_id: str,
        signals: list[Signal | dict[str, Any]],
        source: SignalSource | str,
        options: ExtractionOptions | None = None,
    ) -> ProcessResult:
        """
        Process a signal batch into a new snapshot.

        Args:
            user_id: Owner of the batch
            signals: Signals (models or dicts)
            source: Batch source
            options: Relational connector options

        Returns:
            ProcessResult with the new snapshot and counters

        Raises:
            ValidationError: If the batch is malformed (nothing is persisted)
            DependencyError: If the summarizer fails
            ConcurrencyConflictError: If the write race is lost twice
        """
        if not user_id:
            raise ValidationError("user_id is required")

        parsed = parse_signals(signals)
        batch_source = self.extractor.validate_batch(user_id, parsed, source)
        options = options or ExtractionOptions()
        started = time.perf_counter()

        logger.info(
            f"Processing {len(parsed)} signals for {user_id}",
            extra={"user_id": user_id, "operation": "process_signals", "source": batch_source.value},
        )

        async def body() -> ProcessResult:
            now = self.clock()
            state = await self.store.get_claim_state(user_id)
            candidates = self.extractor.extract(user_id, parsed, batch_source, options, now=now)
            outcome = self.snapshots.merge(list(state.claims), candidates, now=now)
            claims = await self._describe(outcome, user_id)

            previous = await self.store.get_latest_snapshot(user_id)
            snapshot = self.snapshots.build_snapshot(
                user_id, claims, SnapshotSource(batch_source.value), previous=previous, now=now
            )

            await self.store.commit_profile(
                ClaimState(
                    user_id=user_id,
                    claims=tuple(claims),
                    drift_since_snapshot=0.0,
                    last_snapshot_id=snapshot.snapshot_id,
                ),
                expected_version=state.version,
                snapshot=snapshot,
            )

            if previous is None or self.snapshots.compare(previous, snapshot).has_changes:
                await self._invalidate_scores(user_id, "signals processed")

            active = snapshot.active_claims(self.config.recalibration.retirement_threshold)
            metadata = ProcessMetadata(
                claim_count=len(snapshot.claims),
                pattern_count=len(snapshot.patterns),
                theme_count=len(snapshot.themes),
                emerging_count=sum(1 for c in active if c.is_emerging(self.config.extraction.emerging_threshold)),
                connector_count=sum(len(c.relational_contexts) for c in snapshot.claims),
                new_claim_count=len(outcome.new_claims),
                merged_claim_count=len(outcome.merged_claims),
                processing_time_ms=round((time.perf_counter() - started) * 1000, 3),
            )

            logger.info(
                f"Snapshot v{snapshot.version} created for {user_id}",
                extra={
                    "user_id": user_id,
                    "snapshot_id": snapshot.snapshot_id,
                    "claims": metadata.claim_count,
                    "patterns": metadata.pattern_count,
                },
            )
            return ProcessResult(snapshot=snapshot, metadata=metadata)

        return await self._exclusive(user_id, "process_signals", body)

    # ═══════════════════════════════════════════════════════════
    # SNAPSHOT QUERIES
    # ═══════════════════════════════════════════════════════════

    async def get_latest_output(self, user_id: str) -> Snapshot:
        """
        Latest snapshot of a user.

        Raises:
            NotFoundError: If the user has no snapshot
        """
        snapshot = await self.store.get_latest_snapshot(user_id)
        if snapshot is None:
            raise NotFoundError(f"No snapshot for user {user_id}", context={"user_id": user_id})
        return snapshot

    async def get_claim_state(self, user_id: str) -> ClaimState:
        """Working claim state, including changes not yet snapshotted."""
        return await self.store.get_claim_state(user_id)

    async def get_snapshot_history(self, user_id: str, limit: int = 10) -> list[Snapshot]:
        """
        Snapshot history, newest first.

        Raises:
            ValidationError: If limit is not positive
        """
        if limit < 1:
            raise ValidationError("limit must be positive", context={"limit": limit})
        return await self.store.list_snapshots(user_id, limit=limit)

    async def compare_snapshots(self, user_id: str, older_id: str, newer_id: str) -> SnapshotDiff:
        """
        Diff two snapshots of the same user.

        Raises:
            NotFoundError: If either id is unknown for this user
        """
        snapshots = []
        for snapshot_id in (older_id, newer_id):
            snapshot = await self.store.get_snapshot(snapshot_id)
            if snapshot is None or snapshot.user_id != user_id:
                raise NotFoundError(
                    f"Snapshot not found: {snapshot_id}",
                    context={"user_id": user_id, "snapshot_id": snapshot_id},
                )
            snapshots.append(snapshot)
        return self.snapshots.compare(snapshots[0], snapshots[1])

    # ═══════════════════════════════════════════════════════════
    # FEEDBACK
    # ═══════════════════════════════════════════════════════════

    async def record_claim_feedback(
        self,
        user_id: str,
        claim_id: str,
        resonance: Resonance | str,
        context_tags: list[str] | None = None,
    ) -> FeedbackResult:
        """
        Record one resonance vote.

        Drift crossing the threshold rebuilds a snapshot synchronously.

        Raises:
            ValidationError: Unknown claim id or resonance (isolated to this vote)
        """

        async def body() -> FeedbackResult:
            now = self.clock()
            state = await self.store.get_claim_state(user_id)
            outcome = self.recalibration.apply_feedback(
                state, claim_id, resonance, context_tags or (), now=now
            )
            new_state = outcome.state

            snapshot = None
            if self.recalibration.needs_cascade(new_state.drift_since_snapshot):
                previous = await self.store.get_latest_snapshot(user_id)
                snapshot = self._cascade_snapshot(
                    user_id, list(new_state.claims), SnapshotSource.RECALIBRATION, previous, now
                )

            drift = 0.0 if snapshot else new_state.drift_since_snapshot
            saved = await self.store.commit_profile(
                new_state.model_copy(
                    update={
                        "drift_since_snapshot": drift,
                        "last_snapshot_id": snapshot.snapshot_id if snapshot else new_state.last_snapshot_id,
                    }
                ),
                expected_version=state.version,
                snapshot=snapshot,
            )

            if snapshot or self.recalibration.is_material(outcome.delta):
                await self._invalidate_scores(user_id, "feedback")

            return FeedbackResult(
                accepted=True,
                cascaded=snapshot is not None,
                claim_id=claim_id,
                resonance=outcome.event.resonance,
                feedback_id=outcome.event.feedback_id,
                previous_confidence=outcome.event.previous_confidence,
                new_confidence=outcome.event.new_confidence,
                drift_since_snapshot=saved.drift_since_snapshot,
                snapshot_id=snapshot.snapshot_id if snapshot else None,
            )

        return await self._exclusive(user_id, "record_claim_feedback", body)

    # ═══════════════════════════════════════════════════════════
    # THOUGHT EXPERIMENTS
    # ═══════════════════════════════════════════════════════════

    async def generate_thought_experiment(self, user_id: str, layer_id: int) -> ThoughtExperiment:
        """
        Generate a question targeting one layer.

        Raises:
            ValidationError: If the layer id is unknown
        """
        get_layer(layer_id)
        state = await self.store.get_claim_state(user_id)
        claim = self.thought_experiments.strongest_claim(
            list(state.claims), layer_id, self.config.recalibration.retirement_threshold
        )
        recent = await self.store.list_thought_experiments(user_id, layer_id=layer_id)
        experiment = self.thought_experiments.generate(
            user_id,
            layer_id,
            claim,
            recent_type=recent[0].experiment_type if recent else None,
            now=self.clock(),
        )
        await self.store.save_thought_experiment(experiment)

        logger.info(
            f"Thought experiment {experiment.experiment_type.value} on L{layer_id:02d} for {user_id}",
            extra={"user_id": user_id, "experiment_id": experiment.experiment_id},
        )
        return experiment

    async def record_thought_experiment_response(
        self, user_id: str, experiment_id: str, answer: str
    ) -> ThoughtExperimentResult:
        """
        Route an answer through the extractor merge path.

        Raises:
            NotFoundError: Unknown experiment for this user
            ValidationError: Blank answer or experiment already answered
        """

        async def body() -> ThoughtExperimentResult:
            # Re-read under the lock so only one of two racing answers gets through
            experiment = await self.store.get_thought_experiment(experiment_id)
            if experiment is None or experiment.user_id != user_id:
                raise NotFoundError(
                    f"Thought experiment not found: {experiment_id}",
                    context={"user_id": user_id, "experiment_id": experiment_id},
                )
            if experiment.answered_at is not None:
                raise ValidationError(
                    f"Thought experiment already answered: {experiment_id}",
                    context={"user_id": user_id, "experiment_id": experiment_id},
                )

            now = self.clock()
            signal = self.thought_experiments.answer_to_signal(experiment, answer, now=now)
            state = await self.store.get_claim_state(user_id)
            candidates = self.extractor.extract(user_id, [signal], SignalSource.THOUGHT_EXPERIMENT, now=now)
            outcome = self.snapshots.merge(list(state.claims), candidates, now=now)
            claims = await self._describe(outcome, user_id)

            target = (outcome.new_claims + outcome.merged_claims)[0]
            before = state.get_claim(target.claim_id)
            previous_confidence = before.confidence if before else None
            new_confidence = target.confidence
            delta = new_confidence - (previous_confidence or 0.0)

            new_state = ClaimState(
                user_id=user_id,
                claims=tuple(claims),
                drift_since_snapshot=self.recalibration.add_drift(state.drift_since_snapshot, [delta]),
                last_snapshot_id=state.last_snapshot_id,
            )

            snapshot = None
            if self.recalibration.needs_cascade(new_state.drift_since_snapshot):
                previous = await self.store.get_latest_snapshot(user_id)
                snapshot = self._cascade_snapshot(
                    user_id, claims, SnapshotSource.THOUGHT_EXPERIMENT, previous, now
                )
                new_state = new_state.model_copy(
                    update={"drift_since_snapshot": 0.0, "last_snapshot_id": snapshot.snapshot_id}
                )

            await self.store.commit_profile(
                new_state,
                expected_version=state.version,
                snapshot=snapshot,
                experiment=experiment.model_copy(update={"answered_at": now}),
            )

            if snapshot or self.recalibration.is_material(delta):
                await self._invalidate_scores(user_id, "thought experiment")

            if previous_confidence is None:
                direction = "new"
            elif new_confidence > previous_confidence:
                direction = "strengthened"
            else:
                direction = "stable"

            return ThoughtExperimentResult(
                experiment_id=experiment_id,
                layer_id=experiment.layer_id,
                signal_id=signal.signal_id,
                claim_id=target.claim_id,
                previous_confidence=previous_confidence,
                new_confidence=new_confidence,
                direction=direction,
                cascaded=snapshot is not None,
                snapshot_id=snapshot.snapshot_id if snapshot else None,
            )

        return await self._exclusive(user_id, "record_thought_experiment_response", body)

    # ═══════════════════════════════════════════════════════════
    # RELATIONAL
    # ═══════════════════════════════════════════════════════════

    async def calculate_quick_score(
        self, user_a: str, user_b: str, force_refresh: bool = False
    ) -> CompatibilityScore | InsufficientData:
        """Pairwise compatibility; InsufficientData is a normal result."""
        return await self.comparator.calculate_quick_score(user_a, user_b, force_refresh=force_refresh)

    async def calculate_compatibility_matrix(
        self, team_id: str, members: list[TeamMember | str]
    ) -> CompatibilityMatrix:
        """Scores for all member pairs; failing pairs become error cells."""
        return await self.comparator.calculate_compatibility_matrix(team_id, members)

    async def get_team_dynamics(
        self, team_id: str, members: list[TeamMember | str], force_refresh: bool = False
    ) -> TeamDynamicsProfile:
        return await self.comparator.get_team_dynamics(team_id, members, force_refresh=force_refresh)

    async def generate_deep_analysis(
        self, requesting_user_id: str, user_a: str, user_b: str
    ) -> DeepAnalysis:
        return await self.comparator.generate_deep_analysis(requesting_user_id, user_a, user_b)
