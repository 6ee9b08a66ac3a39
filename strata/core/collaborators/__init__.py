"""
External collaborators consumed by the engine.

Available defaults:
- TemplateSummarizer: deterministic narrative text
- StaticEntitlementGate: fixed allow/deny decision
- StaticIdentityResolver: in-process name table
"""

from strata.core.collaborators.entitlement import (
    DEEP_ANALYSIS_FEATURE,
    EntitlementGate,
    StaticEntitlementGate,
)
from strata.core.collaborators.identity import IdentityResolver, StaticIdentityResolver
from strata.core.collaborators.summarizer import NarrativeSummarizer, TemplateSummarizer

__all__ = [
    "DEEP_ANALYSIS_FEATURE",
    "EntitlementGate",
    "StaticEntitlementGate",
    "IdentityResolver",
    "StaticIdentityResolver",
    "NarrativeSummarizer",
    "TemplateSummarizer",
]
