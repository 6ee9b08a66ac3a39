"""
Derived models - patterns and themes recomputed from a claim set.

Neither carries a timestamp: two derivations over the same claims are
structurally identical.
"""

from enum import Enum

from pydantic import BaseModel, Field


class PatternCategory(str, Enum):
    """Pattern scope."""

    INDIVIDUAL = "individual"
    RELATIONAL = "relational"


class ThemePriority(str, Enum):
    """Theme priority, from the stability of its patterns."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Pattern(BaseModel):
    """A recurring dynamic promoted from co-occurring claims."""

    model_config = {"frozen": True}

    pattern_id: str = Field(..., description="Catalogue ID (PAT.xxx)")
    category: PatternCategory
    name: str
    one_liner: str
    layer_ids: tuple[int, ...]
    supporting_claim_ids: tuple[str, ...]
    growth_edges: tuple[str, ...] = ()
    confidence: float = Field(..., ge=0.0, le=1.0)
    stability_index: float = Field(..., ge=0.0, le=1.0)


class Theme(BaseModel):
    """A cross-layer polarity tension synthesized from patterns."""

    model_config = {"frozen": True}

    theme_id: str = Field(..., description="Catalogue ID (THM.xxx)")
    name: str
    summary: str
    layer_ids: tuple[int, ...]
    supporting_pattern_ids: tuple[str, ...]
    priority: ThemePriority
