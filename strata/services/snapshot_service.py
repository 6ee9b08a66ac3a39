"""
Snapshot Service - merges candidate claims and assembles snapshots.

Responsibilities:
- Merge candidates into the working claim set without double counting
- Recompute patterns and themes from the full active claim set
- Build immutable snapshots with per-user lineage
- Diff two snapshots of the same user
"""

from collections.abc import Callable
from datetime import UTC, datetime

from strata.config import Config
from strata.core.confidence import extraction_confidence, replay_resonance
from strata.core.derivation import PatternDeriver, ThemeDeriver
from strata.models.claim import Claim
from strata.models.derived import Pattern, Theme
from strata.models.snapshot import (
    ClaimDelta,
    Snapshot,
    SnapshotDiff,
    SnapshotSource,
    SnapshotTrigger,
)
from strata.utils.id_generator import generate_snapshot_id
from strata.utils.logger import get_logger

logger = get_logger(__name__)

ClaimMatcher = Callable[[Claim, Claim], bool]


def same_signature_and_topic(existing: Claim, candidate: Claim) -> bool:
    """Default merge predicate."""
    return (
        tuple(sorted(existing.layer_ids)) == tuple(sorted(candidate.layer_ids))
        and existing.topic == candidate.topic
    )


class MergeOutcome:
    """Claims after a merge plus what changed."""

    def __init__(self, claims: list[Claim], new_claims: list[Claim], merged_claims: list[Claim]):
        self.claims = claims
        self.new_claims = new_claims
        self.merged_claims = merged_claims


class SnapshotService:
    """
    Service for claim merging and snapshot assembly.

    Derivation is deterministic: the same active claims always produce the
    same patterns and themes.
    """

    def __init__(
        self,
        config: Config,
        matcher: ClaimMatcher | None = None,
        pattern_deriver: PatternDeriver | None = None,
        theme_deriver: ThemeDeriver | None = None,
    ):
        """
        Initialize snapshot service.

        Args:
            config: Configuration object
            matcher: Merge predicate (existing, candidate) -> bool
            pattern_deriver: Pattern catalogue evaluator
            theme_deriver: Theme catalogue evaluator
        """
        self.config = config
        self.matcher = matcher or same_signature_and_topic
        self.pattern_deriver = pattern_deriver or PatternDeriver()
        self.theme_deriver = theme_deriver or ThemeDeriver()

    @property
    def retirement_threshold(self) -> float:
        return self.config.recalibration.retirement_threshold

    # ═══════════════════════════════════════════════════════════
    # MERGE
    # ═══════════════════════════════════════════════════════════

    def merge(
        self, existing: list[Claim], candidates: list[Claim], now: datetime | None = None
    ) -> MergeOutcome:
        """
        Merge candidate claims into a working claim set.

        A candidate matching an unretired existing claim adds its supporting
        signals to it; a signal id already present adds nothing. Other
        candidates are appended.

        Args:
            existing: Current working claims
            candidates: Claims fresh from the extractor
            now: Adjustment timestamp

        Returns:
            MergeOutcome with the resulting claim list
        """
        now = now or datetime.now(UTC)
        claims = list(existing)
        new_claims: list[Claim] = []
        merged_claims: list[Claim] = []

        for candidate in candidates:
            index = self._find_match(claims, candidate)
            if index is None:
                claims.append(candidate)
                new_claims.append(candidate)
                continue

            target = claims[index]
            support = set(target.supporting_signal_ids) | set(candidate.supporting_signal_ids)
            if len(support) == len(target.supporting_signal_ids):
                logger.debug(f"Candidate for {target.claim_id} adds no new signals")
                continue

            claims[index] = self._absorb(target, candidate, tuple(sorted(support)), now)
            merged_claims.append(claims[index])

        return MergeOutcome(claims, new_claims, merged_claims)

    def _find_match(self, claims: list[Claim], candidate: Claim) -> int | None:
        for index, claim in enumerate(claims):
            if claim.is_retired(self.retirement_threshold):
                continue
            if self.matcher(claim, candidate):
                return index
        return None

    def _absorb(
        self, target: Claim, candidate: Claim, support: tuple[str, ...], now: datetime
    ) -> Claim:
        base = extraction_confidence(len(support), self.config.extraction)
        confidence = replay_resonance(
            base, (event.resonance for event in target.resonance_history), self.config.recalibration
        )
        contexts = tuple(dict.fromkeys(target.relational_contexts + candidate.relational_contexts))
        return target.model_copy(
            update={
                "supporting_signal_ids": support,
                "extraction_confidence": base,
                "confidence": confidence,
                "last_adjusted_at": now,
                "relational_contexts": contexts,
            }
        )

    # ═══════════════════════════════════════════════════════════
    # DERIVATION
    # ═══════════════════════════════════════════════════════════

    def derive(self, claims: list[Claim]) -> tuple[list[Pattern], list[Theme]]:
        """Recompute patterns and themes from the active claims."""
        active = [c for c in claims if not c.is_retired(self.retirement_threshold)]
        patterns = self.pattern_deriver.derive(active)
        themes = self.theme_deriver.derive(patterns)
        return patterns, themes

    def build_snapshot(
        self,
        user_id: str,
        claims: list[Claim],
        source: SnapshotSource,
        previous: Snapshot | None = None,
        trigger: SnapshotTrigger = SnapshotTrigger.SIGNALS,
        now: datetime | None = None,
    ) -> Snapshot:
        """
        Assemble an immutable snapshot.

        Args:
            user_id: Owner
            claims: Full working claim set (retired claims included)
            source: What produced the snapshot
            previous: Latest snapshot of the user, if any
            trigger: Signal batch or cascade

        Returns:
            Snapshot with version previous.version + 1
        """
        patterns, themes = self.derive(claims)
        snapshot = Snapshot(
            snapshot_id=generate_snapshot_id(),
            user_id=user_id,
            version=previous.version + 1 if previous else 1,
            source=source,
            trigger=trigger,
            claims=tuple(sorted(claims, key=lambda c: (c.topic, c.claim_id))),
            patterns=tuple(patterns),
            themes=tuple(themes),
            generated_at=now or datetime.now(UTC),
            previous_snapshot_id=previous.snapshot_id if previous else None,
        )
        logger.debug(
            f"Built snapshot v{snapshot.version}: {len(claims)} claims, "
            f"{len(patterns)} patterns, {len(themes)} themes",
            extra={"user_id": user_id, "snapshot_id": snapshot.snapshot_id},
        )
        return snapshot

    # ═══════════════════════════════════════════════════════════
    # DIFF
    # ═══════════════════════════════════════════════════════════

    def compare(self, older: Snapshot, newer: Snapshot) -> SnapshotDiff:
        """
        Diff two snapshots.

        Added: active in newer, absent or retired in older.
        Removed: active in older, absent or retired in newer.
        Deltas: active in both with a different confidence.
        """
        threshold = self.retirement_threshold
        old_active = {c.claim_id: c for c in older.active_claims(threshold)}
        new_active = {c.claim_id: c for c in newer.active_claims(threshold)}

        added = [new_active[cid] for cid in sorted(new_active) if cid not in old_active]
        removed = [old_active[cid] for cid in sorted(old_active) if cid not in new_active]

        deltas = []
        for claim_id in sorted(old_active.keys() & new_active.keys()):
            before = old_active[claim_id].confidence
            after = new_active[claim_id].confidence
            if before != after:
                deltas.append(
                    ClaimDelta(
                        claim_id=claim_id,
                        previous_confidence=before,
                        new_confidence=after,
                        delta=round(after - before, 6),
                    )
                )

        old_patterns = {p.pattern_id for p in older.patterns}
        new_patterns = {p.pattern_id for p in newer.patterns}

        return SnapshotDiff(
            older_snapshot_id=older.snapshot_id,
            newer_snapshot_id=newer.snapshot_id,
            added=added,
            removed=removed,
            deltas=deltas,
            added_pattern_ids=sorted(new_patterns - old_patterns),
            removed_pattern_ids=sorted(old_patterns - new_patterns),
            time_delta_seconds=(newer.generated_at - older.generated_at).total_seconds(),
        )
