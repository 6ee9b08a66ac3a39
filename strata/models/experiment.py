"""
Thought experiment models.
"""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field


class ExperimentType(str, Enum):
    """Introspective purpose of a question."""

    MIRROR = "mirror"  # verify the current reading
    EDGE = "edge"  # probe where growth or resistance sits
    DEPTH = "depth"  # reach the driver underneath


class ThoughtExperiment(BaseModel):
    """A generated question targeting one layer."""

    model_config = {"frozen": True}

    experiment_id: str = Field(..., description="Unique experiment ID (te_xxx)")
    user_id: str
    layer_id: int = Field(..., ge=1, le=15)
    experiment_type: ExperimentType
    question: str
    context: str = ""
    current_confidence: float | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    answered_at: datetime | None = None


class ThoughtExperimentResult(BaseModel):
    """Effect of an answered thought experiment."""

    experiment_id: str
    layer_id: int
    signal_id: str
    claim_id: str
    previous_confidence: float | None
    new_confidence: float
    direction: str  # strengthened, new, stable
    cascaded: bool
    snapshot_id: str | None = None
