"""
Signal model - one unit of volunteered user input.
"""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field

from strata.core.taxonomy import RelationshipType


class SignalSource(str, Enum):
    """Where a signal came from. Fixed enumeration."""

    ONBOARDING = "onboarding"
    VOICE = "voice"
    REGENERATION = "regeneration"
    THOUGHT_EXPERIMENT = "thought_experiment"


class Signal(BaseModel):
    """
    Immutable unit of user input tagged against one or more layers.

    Layer ids are not validated here: the extractor rejects the whole
    batch when any signal is malformed.
    """

    model_config = {"frozen": True}

    signal_id: str = Field(..., description="Unique signal ID (sig_xxx)")
    user_id: str = Field(..., description="Owner user ID")
    question_id: str = Field(..., description="Question or prompt the signal answers")
    layer_ids: tuple[int, ...] = Field(default=(), description="Layers the signal was tagged against")
    raw_value: str | int | float | bool | tuple[str, ...] = Field(..., description="Value as submitted")
    normalized_value: str | None = Field(default=None, description="Cleaned value")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    source: SignalSource = Field(..., description="Signal source")

    @property
    def layer_signature(self) -> tuple[int, ...]:
        """Sorted, de-duplicated layer ids."""
        return tuple(sorted(set(self.layer_ids)))

    def text_value(self) -> str:
        """Normalized value, falling back to a lower-cased rendering of the raw value."""
        if self.normalized_value is not None and self.normalized_value.strip():
            return self.normalized_value.strip().lower()
        if isinstance(self.raw_value, tuple):
            return ", ".join(str(v).strip().lower() for v in self.raw_value)
        return str(self.raw_value).strip().lower()


class ExtractionOptions(BaseModel):
    """Options for a signal batch."""

    include_relational_connectors: bool = False
    focus_relationship_types: list[RelationshipType] = Field(default_factory=list)
