"""
Layer taxonomy - the fixed catalogue of profile layers.

Fifteen ordered layers grouped into five clusters:
- A: Core architecture (disposition, energy, perception)
- B: Processing & drive (decisions, motivation, stress)
- C: Expression & rhythm (emotion, execution, communication)
- D: Relational (boundaries, patterning, social role)
- E: Identity & growth (coherence, growth arc, current edge)

Also carries the relationship lenses used to weight layers when two
profiles are read through a specific relationship type.
"""

from enum import Enum

from pydantic import BaseModel, Field

from strata.utils.exceptions import ValidationError

LAYER_COUNT = 15


class LayerCluster(str, Enum):
    """Layer clusters."""

    CORE = "A"
    PROCESSING = "B"
    EXPRESSION = "C"
    RELATIONAL = "D"
    GROWTH = "E"


class StabilityType(str, Enum):
    """Whether a layer tends to hold steady or move over time."""

    STABLE = "stable"
    DYNAMIC = "dynamic"


class RelationshipType(str, Enum):
    """Relationship types a profile can be read through."""

    SPOUSE_PARTNER = "spouse_partner"
    PARENT_CHILD = "parent_child"
    FAMILY_MEMBER = "family_member"
    FRIEND = "friend"
    COLLEAGUE_TEAM = "colleague_team"
    MENTOR_STUDENT = "mentor_student"


class LayerDefinition(BaseModel):
    """One profile layer."""

    model_config = {"frozen": True}

    layer_id: int = Field(..., ge=1, le=LAYER_COUNT)
    key: str
    name: str
    cluster: LayerCluster
    primary_focus: str
    stability: StabilityType


class RelationshipLens(BaseModel):
    """Layer weights for reading a profile through one relationship type."""

    model_config = {"frozen": True}

    relationship_type: RelationshipType
    layer_weights: dict[int, float]
    interpretation_focus: str

    @property
    def primary_layers(self) -> tuple[int, ...]:
        return tuple(sorted(self.layer_weights))

    def weight(self, layer_id: int) -> float:
        """Weight for a layer; layers outside the lens count once."""
        return self.layer_weights.get(layer_id, 1.0)


LAYER_DEFINITIONS: tuple[LayerDefinition, ...] = (
    LayerDefinition(layer_id=1, key="L01_CORE_DISPOSITION", name="Core Disposition", cluster=LayerCluster.CORE, primary_focus="Baseline temperament and inner climate", stability=StabilityType.STABLE),
    LayerDefinition(layer_id=2, key="L02_ENERGY_ORIENTATION", name="Energy Orientation", cluster=LayerCluster.CORE, primary_focus="How energy is gained, lost, and paced", stability=StabilityType.DYNAMIC),
    LayerDefinition(layer_id=3, key="L03_PERCEPTION", name="Perception & Information Processing", cluster=LayerCluster.CORE, primary_focus="How information is taken in and structured", stability=StabilityType.STABLE),
    LayerDefinition(layer_id=4, key="L04_DECISION_LOGIC", name="Decision Logic", cluster=LayerCluster.PROCESSING, primary_focus="How conclusions are reached and trade-offs made", stability=StabilityType.DYNAMIC),
    LayerDefinition(layer_id=5, key="L05_MOTIVATIONAL_DRIVERS", name="Motivational Drivers", cluster=LayerCluster.PROCESSING, primary_focus="What deeply motivates and sustains effort", stability=StabilityType.STABLE),
    LayerDefinition(layer_id=6, key="L06_STRESS_PATTERNS", name="Stress & Pressure Patterns", cluster=LayerCluster.PROCESSING, primary_focus="How pressure is experienced and responded to", stability=StabilityType.DYNAMIC),
    LayerDefinition(layer_id=7, key="L07_EMOTIONAL_REGULATION", name="Emotional Regulation & Expression", cluster=LayerCluster.EXPRESSION, primary_focus="How emotions are processed and shared", stability=StabilityType.DYNAMIC),
    LayerDefinition(layer_id=8, key="L08_BEHAVIOURAL_RHYTHM", name="Behavioural Rhythm & Execution", cluster=LayerCluster.EXPRESSION, primary_focus="Work style, pacing, and follow-through", stability=StabilityType.DYNAMIC),
    LayerDefinition(layer_id=9, key="L09_COMMUNICATION_MODE", name="Communication Mode", cluster=LayerCluster.EXPRESSION, primary_focus="Preferred ways of expressing and receiving meaning", stability=StabilityType.DYNAMIC),
    LayerDefinition(layer_id=10, key="L10_RELATIONAL_BOUNDARIES", name="Relational Energy & Boundaries", cluster=LayerCluster.RELATIONAL, primary_focus="How connection, distance, and closeness are managed", stability=StabilityType.DYNAMIC),
    LayerDefinition(layer_id=11, key="L11_RELATIONAL_PATTERNING", name="Relational Patterning", cluster=LayerCluster.RELATIONAL, primary_focus="Repeating patterns in key relationships", stability=StabilityType.DYNAMIC),
    LayerDefinition(layer_id=12, key="L12_SOCIAL_ROLE", name="Social Role & Influence Expression", cluster=LayerCluster.RELATIONAL, primary_focus="How a person shows up in groups and power structures", stability=StabilityType.DYNAMIC),
    LayerDefinition(layer_id=13, key="L13_IDENTITY_COHERENCE", name="Identity Coherence & Maturity", cluster=LayerCluster.GROWTH, primary_focus="How integrated and grounded the sense of self is", stability=StabilityType.STABLE),
    LayerDefinition(layer_id=14, key="L14_GROWTH_ARC", name="Growth Arc & Learning Orientation", cluster=LayerCluster.GROWTH, primary_focus="Long-term developmental direction and learning style", stability=StabilityType.DYNAMIC),
    LayerDefinition(layer_id=15, key="L15_LIFE_NAVIGATION", name="Life Navigation & Current Edge", cluster=LayerCluster.GROWTH, primary_focus="How major decisions are made and where growth pressure sits now", stability=StabilityType.DYNAMIC),
)

_BY_ID: dict[int, LayerDefinition] = {layer.layer_id: layer for layer in LAYER_DEFINITIONS}


RELATIONSHIP_LENSES: dict[RelationshipType, RelationshipLens] = {
    RelationshipType.SPOUSE_PARTNER: RelationshipLens(
        relationship_type=RelationshipType.SPOUSE_PARTNER,
        layer_weights={7: 1.5, 10: 1.4, 11: 1.3, 9: 1.2, 6: 1.1, 2: 1.0},
        interpretation_focus="emotional safety, repair, and deep connection",
    ),
    RelationshipType.PARENT_CHILD: RelationshipLens(
        relationship_type=RelationshipType.PARENT_CHILD,
        layer_weights={7: 1.5, 10: 1.4, 6: 1.3, 9: 1.2, 5: 1.1},
        interpretation_focus="nurturing, protection, and developmental support",
    ),
    RelationshipType.FAMILY_MEMBER: RelationshipLens(
        relationship_type=RelationshipType.FAMILY_MEMBER,
        layer_weights={11: 1.4, 10: 1.3, 7: 1.2, 6: 1.1},
        interpretation_focus="loyalty balance, boundary maintenance, and legacy patterns",
    ),
    RelationshipType.FRIEND: RelationshipLens(
        relationship_type=RelationshipType.FRIEND,
        layer_weights={10: 1.4, 2: 1.3, 9: 1.2, 11: 1.1},
        interpretation_focus="reciprocity, openness, and sustainable connection",
    ),
    RelationshipType.COLLEAGUE_TEAM: RelationshipLens(
        relationship_type=RelationshipType.COLLEAGUE_TEAM,
        layer_weights={8: 1.5, 12: 1.4, 4: 1.3, 9: 1.2, 6: 1.1},
        interpretation_focus="collaboration, clarity, and professional effectiveness",
    ),
    RelationshipType.MENTOR_STUDENT: RelationshipLens(
        relationship_type=RelationshipType.MENTOR_STUDENT,
        layer_weights={14: 1.5, 9: 1.4, 12: 1.3, 7: 1.2},
        interpretation_focus="development, patience, and knowledge transfer",
    ),
}


def is_valid_layer(layer_id: int) -> bool:
    """Check whether a layer id exists in the catalogue."""
    return layer_id in _BY_ID


def get_layer(layer_id: int) -> LayerDefinition:
    """
    Look up a layer definition.

    Raises:
        ValidationError: If the layer id is not one of the 15 layers
    """
    layer = _BY_ID.get(layer_id)
    if layer is None:
        raise ValidationError(
            f"Unknown layer id: {layer_id}",
            context={"layer_id": layer_id, "valid_range": [1, LAYER_COUNT]},
        )
    return layer


def layers_in_cluster(cluster: LayerCluster) -> list[LayerDefinition]:
    """All layers of a cluster, in layer order."""
    return [layer for layer in LAYER_DEFINITIONS if layer.cluster == cluster]


def cluster_of(layer_id: int) -> LayerCluster:
    return get_layer(layer_id).cluster


def get_lens(relationship_type: RelationshipType) -> RelationshipLens:
    return RELATIONSHIP_LENSES[relationship_type]


def layer_coverage(layer_sets: list[tuple[int, ...]]) -> dict[int, int]:
    """
    Count how many entries touch each layer.

    Args:
        layer_sets: Layer ids per claim (or per any layered item)

    Returns:
        Mapping layer_id -> count for every layer (zero when untouched)
    """
    coverage = {layer.layer_id: 0 for layer in LAYER_DEFINITIONS}
    for layer_ids in layer_sets:
        for layer_id in set(layer_ids):
            if layer_id in coverage:
                coverage[layer_id] += 1
    return coverage
