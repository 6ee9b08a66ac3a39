"""
Data models for Strata.

Derivation pipeline:
1. Input layer (Signals)
2. Claim layer (confidence-scored claims with resonance history)
3. Derived layer (Patterns, Themes)
4. Snapshot layer (immutable bundles per user version)
5. Relational layer (compatibility scores, team matrices, dynamics)

Core models:
- Signal, SignalSource, ExtractionOptions: Volunteered input
- Claim, ClaimPolarity, Resonance, ResonanceEvent: Claims and feedback
- Pattern, Theme: Derived structures
- Snapshot, ClaimState, SnapshotDiff: Versioned profile state
- CompatibilityScore, InsufficientData, CompatibilityMatrix: Pairwise results
- TeamDynamicsProfile, DeepAnalysis, EntitlementDecision: Team and premium views
- ThoughtExperiment, ExperimentType: Refinement questions
"""

from strata.models.claim import (
    EMERGING_THRESHOLD,
    Claim,
    ClaimPolarity,
    ConfidenceBand,
    Resonance,
    ResonanceEvent,
    confidence_band,
)
from strata.models.derived import Pattern, PatternCategory, Theme, ThemePriority
from strata.models.experiment import ExperimentType, ThoughtExperiment, ThoughtExperimentResult
from strata.models.relational import (
    ClaimPair,
    CollectiveStrength,
    CompatibilityMatrix,
    CompatibilityScore,
    DeepAnalysis,
    EntitlementDecision,
    GapSeverity,
    InsufficientData,
    LensScore,
    MatrixCell,
    MatrixStatus,
    MemberContribution,
    PairStatus,
    PotentialGap,
    TeamDynamicsProfile,
    TeamMember,
    pair_key,
)
from strata.models.signal import ExtractionOptions, Signal, SignalSource
from strata.models.snapshot import (
    ClaimDelta,
    ClaimState,
    FeedbackResult,
    ProcessMetadata,
    ProcessResult,
    Snapshot,
    SnapshotDiff,
    SnapshotSource,
    SnapshotTrigger,
)

__all__ = [
    # Signals
    "Signal",
    "SignalSource",
    "ExtractionOptions",
    # Claims
    "EMERGING_THRESHOLD",
    "Claim",
    "ClaimPolarity",
    "ConfidenceBand",
    "Resonance",
    "ResonanceEvent",
    "confidence_band",
    # Derived
    "Pattern",
    "PatternCategory",
    "Theme",
    "ThemePriority",
    # Snapshots
    "Snapshot",
    "SnapshotSource",
    "SnapshotTrigger",
    "ClaimState",
    "ClaimDelta",
    "SnapshotDiff",
    "ProcessMetadata",
    "ProcessResult",
    "FeedbackResult",
    # Relational
    "pair_key",
    "ClaimPair",
    "CompatibilityScore",
    "InsufficientData",
    "TeamMember",
    "PairStatus",
    "MatrixCell",
    "MatrixStatus",
    "CompatibilityMatrix",
    "CollectiveStrength",
    "GapSeverity",
    "PotentialGap",
    "MemberContribution",
    "TeamDynamicsProfile",
    "EntitlementDecision",
    "LensScore",
    "DeepAnalysis",
    # Thought experiments
    "ExperimentType",
    "ThoughtExperiment",
    "ThoughtExperimentResult",
]
