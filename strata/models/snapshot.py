"""
Snapshot models - immutable point-in-time captures of a profile.
"""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field

from strata.models.claim import Claim, Resonance
from strata.models.derived import Pattern, Theme


class SnapshotSource(str, Enum):
    """What produced a snapshot."""

    ONBOARDING = "onboarding"
    VOICE = "voice"
    REGENERATION = "regeneration"
    THOUGHT_EXPERIMENT = "thought_experiment"
    RECALIBRATION = "recalibration"


class SnapshotTrigger(str, Enum):
    """Which path built the snapshot."""

    SIGNALS = "signals"
    CASCADE = "cascade"


class Snapshot(BaseModel):
    """
    Immutable bundle of claims, patterns and themes.

    A snapshot fully contains every claim, pattern and theme it references,
    so later changes to the working claim set never alter its meaning.
    """

    model_config = {"frozen": True}

    snapshot_id: str = Field(..., description="Unique snapshot ID (snap_xxx)")
    user_id: str
    version: int = Field(..., ge=1, description="Per-user sequence number")
    source: SnapshotSource
    trigger: SnapshotTrigger = SnapshotTrigger.SIGNALS
    claims: tuple[Claim, ...] = ()
    patterns: tuple[Pattern, ...] = ()
    themes: tuple[Theme, ...] = ()
    generated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    previous_snapshot_id: str | None = None

    def get_claim(self, claim_id: str) -> Claim | None:
        for claim in self.claims:
            if claim.claim_id == claim_id:
                return claim
        return None

    def active_claims(self, retirement_threshold: float) -> list[Claim]:
        """Claims still eligible for derivation."""
        return [c for c in self.claims if not c.is_retired(retirement_threshold)]

    def claims_at_or_above(self, threshold: float) -> list[Claim]:
        return [c for c in self.claims if c.confidence >= threshold]


class ClaimState(BaseModel):
    """
    Working claim set of one user, between snapshots.

    ``version`` increases on every write and backs the optimistic
    concurrency check in the profile store.
    """

    model_config = {"frozen": True}

    user_id: str
    version: int = Field(default=0, ge=0)
    claims: tuple[Claim, ...] = ()
    drift_since_snapshot: float = Field(default=0.0, ge=0.0)
    last_snapshot_id: str | None = None
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def get_claim(self, claim_id: str) -> Claim | None:
        for claim in self.claims:
            if claim.claim_id == claim_id:
                return claim
        return None

    def replace_claim(self, claim: Claim) -> tuple[Claim, ...]:
        return tuple(claim if c.claim_id == claim.claim_id else c for c in self.claims)


class ClaimDelta(BaseModel):
    """Confidence change of one claim between two snapshots."""

    claim_id: str
    previous_confidence: float
    new_confidence: float
    delta: float


class SnapshotDiff(BaseModel):
    """Result of comparing two snapshots of the same user."""

    older_snapshot_id: str
    newer_snapshot_id: str
    added: list[Claim] = Field(default_factory=list)
    removed: list[Claim] = Field(default_factory=list)
    deltas: list[ClaimDelta] = Field(default_factory=list)
    added_pattern_ids: list[str] = Field(default_factory=list)
    removed_pattern_ids: list[str] = Field(default_factory=list)
    time_delta_seconds: float = 0.0

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.removed or self.deltas)


class ProcessMetadata(BaseModel):
    """Counters reported alongside a processed snapshot."""

    claim_count: int
    pattern_count: int
    theme_count: int = 0
    emerging_count: int = 0
    connector_count: int = 0
    new_claim_count: int = 0
    merged_claim_count: int = 0
    processing_time_ms: float = 0.0


class ProcessResult(BaseModel):
    """Output of processing a signal batch."""

    snapshot: Snapshot
    metadata: ProcessMetadata


class FeedbackResult(BaseModel):
    """Output of a resonance vote."""

    accepted: bool
    cascaded: bool
    claim_id: str
    resonance: Resonance
    feedback_id: str
    previous_confidence: float
    new_confidence: float
    drift_since_snapshot: float
    snapshot_id: str | None = Field(default=None, description="New snapshot when cascaded")
