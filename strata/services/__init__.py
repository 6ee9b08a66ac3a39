"""
Services for Strata.

High-level business logic services:
- ProfileEngine: Unified interface for all profile operations
- ClaimExtractor: Signal batches to candidate claims
- SnapshotService: Claim merge, derivation and snapshot assembly
- RecalibrationEngine: Resonance feedback and drift tracking
- ThoughtExperimentService: Introspective questions per layer
- RelationalComparator: Pairwise and team compatibility
"""

from strata.services.claim_extractor import ClaimExtractor, KeywordPolarityClassifier
from strata.services.comparator import RelationalComparator
from strata.services.profile_engine import ProfileEngine
from strata.services.recalibration import RecalibrationEngine
from strata.services.snapshot_service import SnapshotService
from strata.services.thought_experiments import ThoughtExperimentService

__all__ = [
    "ProfileEngine",
    "ClaimExtractor",
    "KeywordPolarityClassifier",
    "SnapshotService",
    "RecalibrationEngine",
    "ThoughtExperimentService",
    "RelationalComparator",
]
