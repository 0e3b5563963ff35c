"""Relationship Models.

Defines typed relationships between content items, relationship suggestions
and validation results, and the network analysis outputs built on top of
them (cultural clusters, community networks, educational pathways).
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from domain.cultural_models import ContentItem


class RelationshipType(str, Enum):
    """Relationship kinds between content items."""
    PARENT = "parent"
    CHILD = "child"
    SIBLING = "sibling"
    CULTURAL_VARIANT = "cultural_variant"
    TRANSLATION = "translation"
    COMMUNITY_RESPONSE = "community_response"
    EDUCATIONAL_SUPPLEMENT = "educational_supplement"
    RESEARCH_EXTENSION = "research_extension"
    TRADITIONAL_CONTINUATION = "traditional_continuation"
    MODERN_ADAPTATION = "modern_adaptation"


# Relationship kinds that hold in both directions
BIDIRECTIONAL_TYPES = frozenset({
    RelationshipType.SIBLING,
    RelationshipType.CULTURAL_VARIANT,
    RelationshipType.TRANSLATION,
})

# Base strength by relationship kind, before the educational bonus
BASE_RELATIONSHIP_STRENGTH: Dict[RelationshipType, float] = {
    RelationshipType.PARENT: 0.9,
    RelationshipType.CHILD: 0.9,
    RelationshipType.SIBLING: 0.8,
    RelationshipType.CULTURAL_VARIANT: 0.85,
    RelationshipType.TRANSLATION: 0.8,
    RelationshipType.COMMUNITY_RESPONSE: 0.7,
    RelationshipType.EDUCATIONAL_SUPPLEMENT: 0.75,
    RelationshipType.RESEARCH_EXTENSION: 0.7,
    RelationshipType.TRADITIONAL_CONTINUATION: 0.95,
    RelationshipType.MODERN_ADAPTATION: 0.75,
}

# Kinds that carry extra cultural significance
CULTURAL_RELATIONSHIP_TYPES = frozenset({
    RelationshipType.CULTURAL_VARIANT,
    RelationshipType.TRADITIONAL_CONTINUATION,
    RelationshipType.COMMUNITY_RESPONSE,
})

# Order in which related items are introduced along a learning path
PATHWAY_LEARNING_ORDER: Dict[RelationshipType, int] = {
    RelationshipType.PARENT: 0,
    RelationshipType.TRADITIONAL_CONTINUATION: 1,
    RelationshipType.CHILD: 2,
    RelationshipType.SIBLING: 3,
    RelationshipType.TRANSLATION: 4,
    RelationshipType.CULTURAL_VARIANT: 5,
    RelationshipType.EDUCATIONAL_SUPPLEMENT: 6,
    RelationshipType.COMMUNITY_RESPONSE: 7,
    RelationshipType.MODERN_ADAPTATION: 8,
    RelationshipType.RESEARCH_EXTENSION: 9,
}


class ValidationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMMUNITY_REVIEWED = "community_reviewed"


class DifficultyLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"


class RelationshipSuggestion(BaseModel):
    """Candidate relationship proposed by the backend."""

    model_config = ConfigDict(extra="ignore")

    target_id: str
    target_name: str = ""
    relationship_type: RelationshipType
    confidence: float = Field(..., ge=0.0, le=1.0)
    reason: str = ""
    cultural_appropriateness: float = Field(1.0, ge=0.0, le=1.0)
    bidirectional: bool = False
    cultural_context: Optional[str] = None
    requires_community_validation: bool = False
    educational_benefits: List[str] = Field(default_factory=list)
    traditional_protocols: List[str] = Field(default_factory=list)


class UsageStats(BaseModel):
    view_count: int = 0
    follow_count: int = 0
    educational_access: int = 0


class Relationship(BaseModel):
    """A persisted, typed edge between two items."""

    model_config = ConfigDict(extra="ignore")

    id: str = ""
    source_id: str
    target_id: str
    relationship_type: RelationshipType
    strength: float = Field(0.5, ge=0.0, le=1.0)
    bidirectional: bool = False
    description: Optional[str] = None
    cultural_context: Optional[str] = None
    target_item: Optional[ContentItem] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    created_by: str = "system"
    validation_status: ValidationStatus = ValidationStatus.PENDING
    educational_value: float = Field(0.0, ge=0.0, le=1.0)
    cultural_significance: float = Field(0.0, ge=0.0, le=1.0)
    usage_stats: UsageStats = Field(default_factory=UsageStats)

    def other_end(self, item_id: str) -> str:
        """Id of the endpoint that is not ``item_id``."""
        return self.target_id if self.source_id == item_id else self.source_id


class RelationshipValidation(BaseModel):
    """Result of validating a prospective relationship."""

    model_config = ConfigDict(extra="ignore")

    valid: bool = False
    issues: List[str] = Field(default_factory=list)
    culturally_appropriate: bool = True
    requires_community_approval: bool = False
    educational_value: float = Field(0.0, ge=0.0, le=1.0)
    suggestions: List[str] = Field(default_factory=list)


class EducationalPathway(BaseModel):
    """Ordered sequence of related items forming a learning path."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str = ""
    item_sequence: List[ContentItem] = Field(default_factory=list)
    learning_objectives: List[str] = Field(default_factory=list)
    cultural_learning_goals: List[str] = Field(default_factory=list)
    estimated_time: int = 0  # minutes
    difficulty_level: DifficultyLevel = DifficultyLevel.BEGINNER
    cultural_requirements: List[str] = Field(default_factory=list)


class CulturalCluster(BaseModel):
    """Items sharing a cultural origin, with one representative item."""

    model_config = ConfigDict(extra="ignore")

    id: str
    cultural_origin: str
    items: List[ContentItem] = Field(default_factory=list)
    center_item: ContentItem
    cultural_significance: float = Field(0.0, ge=0.0, le=1.0)
    educational_pathways: List[EducationalPathway] = Field(default_factory=list)
    traditional_protocols: List[str] = Field(default_factory=list)


class CommunityNetwork(BaseModel):
    """Items and relationships belonging to one community."""

    model_config = ConfigDict(extra="ignore")

    id: str
    community_id: str
    community_name: str = ""
    items: List[ContentItem] = Field(default_factory=list)
    relationships: List[Relationship] = Field(default_factory=list)
    cultural_authorities: List[str] = Field(default_factory=list)
    health_score: float = Field(0.0, ge=0.0, le=1.0)


def _empty_type_counts() -> Dict[RelationshipType, int]:
    return {rel_type: 0 for rel_type in RelationshipType}


class NetworkStatistics(BaseModel):
    total_relationships: int = 0
    relationship_types: Dict[RelationshipType, int] = Field(default_factory=_empty_type_counts)
    cultural_diversity: float = Field(0.0, ge=0.0, le=1.0)
    network_density: float = 0.0
    average_path_length: float = 0.0
    community_participation: float = Field(0.0, ge=0.0, le=1.0)
    educational_pathways: int = 0


class RelationshipNetwork(BaseModel):
    """Bounded-depth view of the relationship graph around one item."""

    central_item: ContentItem
    direct_relationships: List[Relationship] = Field(default_factory=list)
    indirect_relationships: List[Relationship] = Field(default_factory=list)
    cultural_clusters: List[CulturalCluster] = Field(default_factory=list)
    community_networks: List[CommunityNetwork] = Field(default_factory=list)
    network_stats: NetworkStatistics = Field(default_factory=NetworkStatistics)

    # Every item reached, central item first, in discovery order
    items: List[ContentItem] = Field(default_factory=list)
    # Hops from the central item for each reached item id
    hop_distances: Dict[str, int] = Field(default_factory=dict)

    @property
    def relationships(self) -> List[Relationship]:
        return self.direct_relationships + self.indirect_relationships
