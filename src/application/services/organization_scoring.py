"""Scoring primitives for organization and relationship intelligence.

Pure functions: confidence aggregation, cultural appropriateness,
relationship strength, network diversity and participation metrics.
Every score returned here lies in [0.0, 1.0].
"""

from typing import Iterable, List, Optional, Sequence

from domain.cultural_models import CulturalMetadata, CulturalSensitivityLevel
from domain.organization_models import CategorySuggestion, TagSuggestion
from domain.relationship_models import (
    BASE_RELATIONSHIP_STRENGTH,
    BIDIRECTIONAL_TYPES,
    CULTURAL_RELATIONSHIP_TYPES,
    Relationship,
    RelationshipType,
)

# Substrings that mark a tag as relating to traditional knowledge
TRADITIONAL_KNOWLEDGE_KEYWORDS = (
    "traditional",
    "sacred",
    "ceremonial",
    "ritual",
    "indigenous",
    "tribal",
    "ancestral",
    "spiritual",
    "medicine",
    "healing",
    "elder",
    "wisdom",
    "cultural",
    "heritage",
    "community",
    "oral",
    "storytelling",
)

# Category substrings that cap cultural appropriateness
SENSITIVE_CATEGORY_KEYWORDS = ("sacred", "ceremonial", "ritual", "spiritual")

BASE_APPROPRIATENESS = 0.8
GUARDIAN_APPROPRIATENESS = 0.7
SACRED_APPROPRIATENESS = 0.6
SENSITIVE_CATEGORY_CAP = 0.6

DEFAULT_BASE_STRENGTH = 0.5
EDUCATIONAL_STRENGTH_WEIGHT = 0.2

# Distinct origins at which cultural diversity saturates
DIVERSITY_SATURATION = 10


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def is_traditional_knowledge_tag(tag: str) -> bool:
    lowered = tag.lower()
    return any(keyword in lowered for keyword in TRADITIONAL_KNOWLEDGE_KEYWORDS)


def calculate_cultural_appropriateness(
    category: str,
    cultural_metadata: Optional[CulturalMetadata] = None,
) -> float:
    """Score how appropriate a category is for the item's cultural context.

    Starts at 0.8, drops to 0.6 for SACRED and 0.7 for GUARDIAN content, and
    is capped at 0.6 when the category itself names sacred, ceremonial,
    ritual or spiritual practice.
    """
    score = BASE_APPROPRIATENESS

    if cultural_metadata is not None:
        level = cultural_metadata.sensitivity_level
        if level >= CulturalSensitivityLevel.SACRED:
            score = SACRED_APPROPRIATENESS
        elif level >= CulturalSensitivityLevel.GUARDIAN:
            score = GUARDIAN_APPROPRIATENESS

    lowered = category.lower()
    if any(keyword in lowered for keyword in SENSITIVE_CATEGORY_KEYWORDS):
        score = min(score, SENSITIVE_CATEGORY_CAP)

    return score


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def calculate_overall_confidence(
    tag_suggestions: Sequence[TagSuggestion],
    category_suggestions: Sequence[CategorySuggestion],
) -> float:
    """Mean tag confidence averaged with mean category confidence.

    An empty list contributes 0 to the average.
    """
    avg_tag = _mean([t.confidence for t in tag_suggestions])
    avg_category = _mean([c.confidence for c in category_suggestions])
    return clamp((avg_tag + avg_category) / 2)


def is_bidirectional(relationship_type: RelationshipType) -> bool:
    return RelationshipType(relationship_type) in BIDIRECTIONAL_TYPES


def calculate_relationship_strength(
    relationship_type: RelationshipType,
    educational_value: float,
) -> float:
    """Base strength for the kind plus 0.2 × educational value, capped at 1."""
    base = BASE_RELATIONSHIP_STRENGTH.get(RelationshipType(relationship_type), DEFAULT_BASE_STRENGTH)
    return min(1.0, base + educational_value * EDUCATIONAL_STRENGTH_WEIGHT)


def calculate_educational_value(relationship: Relationship) -> float:
    value = 0.5
    if relationship.relationship_type == RelationshipType.EDUCATIONAL_SUPPLEMENT:
        value += 0.3
    if relationship.cultural_context:
        value += 0.2
    return min(1.0, value)


def calculate_cultural_significance(relationship_type: RelationshipType) -> float:
    significance = 0.5
    if RelationshipType(relationship_type) in CULTURAL_RELATIONSHIP_TYPES:
        significance += 0.3
    return min(1.0, significance)


def calculate_cultural_diversity(cultural_origins: Iterable[Optional[str]]) -> float:
    """Distinct non-empty origins over a fixed saturation point of 10."""
    distinct = {origin for origin in cultural_origins if origin}
    return min(1.0, len(distinct) / DIVERSITY_SATURATION)


def calculate_community_participation(direct_relationships: Sequence[Relationship]) -> float:
    """Share of direct relationships that are community responses."""
    responses = [
        rel for rel in direct_relationships
        if rel.relationship_type == RelationshipType.COMMUNITY_RESPONSE
    ]
    return len(responses) / max(1, len(direct_relationships))


def calculate_cluster_significance(relationships: List[Relationship]) -> float:
    """Mean cultural significance of the edges touching a cluster.

    A cluster with no incident edges gets the neutral 0.5.
    """
    if not relationships:
        return 0.5
    return clamp(_mean([calculate_cultural_significance(r.relationship_type) for r in relationships]))
