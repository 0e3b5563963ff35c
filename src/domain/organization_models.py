"""Organization Models.

Domain models for tag/category suggestions, organization rules and their
actions, analysis results, configuration and per-item processing state.

Used by:
- SuggestionEngine: produces and filters suggestions
- OrganizationRulesEngine: evaluates rules into actions
- OrganizationService: caches analyses and applies them
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from domain.cultural_models import CulturalMetadataSuggestion, ItemType


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TagSource(str, Enum):
    """Where a tag suggestion came from."""
    CONTENT_ANALYSIS = "content_analysis"
    CULTURAL_ANALYSIS = "cultural_analysis"
    COMMUNITY_INPUT = "community_input"
    AI_INFERENCE = "ai_inference"


class TagSuggestion(BaseModel):
    """Suggested tag with confidence score."""

    model_config = ConfigDict(extra="ignore")

    tag: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    reason: str = ""
    cultural_context: Optional[str] = None
    source: TagSource = TagSource.CONTENT_ANALYSIS
    traditional_knowledge: bool = False


class CategorySuggestion(BaseModel):
    """Suggested category with cultural awareness.

    ``cultural_appropriateness`` is None until it has been computed.
    ``requires_community_validation`` is advisory and never blocks.
    """

    model_config = ConfigDict(extra="ignore")

    category: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    cultural_appropriateness: Optional[float] = Field(None, ge=0.0, le=1.0)
    subcategories: List[str] = Field(default_factory=list)
    cultural_protocols: List[str] = Field(default_factory=list)
    requires_community_validation: bool = False


# ========================================
# Rules
# ========================================

class ConditionOperator(str, Enum):
    EQUALS = "equals"
    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    IN_RANGE = "in_range"


class ActionType(str, Enum):
    ADD_TAG = "add_tag"
    SET_CATEGORY = "set_category"
    MOVE_TO_COLLECTION = "move_to_collection"
    SET_CULTURAL_CONTEXT = "set_cultural_context"
    REQUEST_VALIDATION = "request_validation"


class RuleCondition(BaseModel):
    field: str
    operator: ConditionOperator
    value: Any = None


class RuleActionSpec(BaseModel):
    """Action declared on a rule (what to do when the condition holds)."""
    type: ActionType
    value: str


class OrganizationRule(BaseModel):
    """Declarative condition → action rule."""

    model_config = ConfigDict(extra="ignore")

    id: str = ""
    name: str = ""
    condition: RuleCondition
    action: RuleActionSpec
    enabled: bool = True
    priority: int = 0


class OrganizationRuleUpdate(BaseModel):
    """Partial update for an existing rule."""

    name: Optional[str] = None
    condition: Optional[RuleCondition] = None
    action: Optional[RuleActionSpec] = None
    enabled: Optional[bool] = None
    priority: Optional[int] = None


class _ActionBase(BaseModel):
    value: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    requires_cultural_validation: bool = False
    educational_context: Optional[str] = None


class AddTagAction(_ActionBase):
    type: Literal["add_tag"] = "add_tag"


class SetCategoryAction(_ActionBase):
    type: Literal["set_category"] = "set_category"


class MoveToCollectionAction(_ActionBase):
    type: Literal["move_to_collection"] = "move_to_collection"


class SetCulturalContextAction(_ActionBase):
    type: Literal["set_cultural_context"] = "set_cultural_context"


class RequestValidationAction(_ActionBase):
    type: Literal["request_validation"] = "request_validation"


OrganizationAction = Annotated[
    Union[
        AddTagAction,
        SetCategoryAction,
        MoveToCollectionAction,
        SetCulturalContextAction,
        RequestValidationAction,
    ],
    Field(discriminator="type"),
]

ACTION_MODELS = {
    ActionType.ADD_TAG: AddTagAction,
    ActionType.SET_CATEGORY: SetCategoryAction,
    ActionType.MOVE_TO_COLLECTION: MoveToCollectionAction,
    ActionType.SET_CULTURAL_CONTEXT: SetCulturalContextAction,
    ActionType.REQUEST_VALIDATION: RequestValidationAction,
}

# Rule-matched actions above this confidence are executed automatically
AUTO_EXECUTE_CONFIDENCE = 0.7


class OrganizationRuleMatch(BaseModel):
    """A rule whose condition held for an item."""

    rule: OrganizationRule
    confidence: float = Field(..., ge=0.0, le=1.0)
    matched_values: List[Any] = Field(default_factory=list)
    suggested_actions: List[OrganizationAction] = Field(default_factory=list)

    def auto_executable_actions(self) -> List[Any]:
        return [a for a in self.suggested_actions if a.confidence > AUTO_EXECUTE_CONFIDENCE]


# ========================================
# Analysis
# ========================================

class OrganizationAnalysis(BaseModel):
    """Organization suggestions for one item."""

    model_config = ConfigDict(extra="ignore")

    item_id: str
    item_type: ItemType
    tag_suggestions: List[TagSuggestion] = Field(default_factory=list)
    category_suggestions: List[CategorySuggestion] = Field(default_factory=list)
    cultural_suggestions: CulturalMetadataSuggestion = Field(
        default_factory=CulturalMetadataSuggestion
    )
    rule_matches: List[OrganizationRuleMatch] = Field(default_factory=list)
    analyzed_at: datetime = Field(default_factory=_utcnow)
    overall_confidence: float = Field(0.0, ge=0.0, le=1.0)


# ========================================
# Configuration
# ========================================

class BatchProcessingConfig(BaseModel):
    enabled: bool = True
    batch_size: int = Field(10, ge=1)
    processing_interval: int = Field(60, ge=1, description="Minutes between batch runs")


class SmartOrganizationConfig(BaseModel):
    """User-facing smart organization settings."""

    model_config = ConfigDict(extra="ignore")

    auto_tagging: bool = True
    auto_tagging_threshold: float = Field(0.8, ge=0.0, le=1.0)
    smart_categorization: bool = True
    categorization_threshold: float = Field(0.7, ge=0.0, le=1.0)
    cultural_analysis: bool = True
    require_cultural_validation: bool = True
    community_input: bool = True
    learning_enabled: bool = True
    batch_processing: BatchProcessingConfig = Field(default_factory=BatchProcessingConfig)


class PopularTag(BaseModel):
    tag: str
    count: int
    cultural_context: Optional[str] = None


class PopularCategory(BaseModel):
    category: str
    count: int
    cultural_context: Optional[str] = None


class ProcessingPerformance(BaseModel):
    average_processing_time: float = 0.0  # milliseconds
    items_processed_today: int = 0
    items_processed_this_week: int = 0


class OrganizationStatistics(BaseModel):
    """Aggregate organization statistics reported by the backend."""

    model_config = ConfigDict(extra="ignore")

    total_analyzed: int = 0
    success_rate: float = 0.0
    average_confidence: float = 0.0
    cultural_validation_requests: int = 0
    community_contributions: int = 0
    popular_tags: List[PopularTag] = Field(default_factory=list)
    popular_categories: List[PopularCategory] = Field(default_factory=list)
    performance: ProcessingPerformance = Field(default_factory=ProcessingPerformance)


# ========================================
# Processing state
# ========================================

class ItemState(str, Enum):
    """Per-item processing state.

    UNANALYZED → ANALYZING → ANALYZED → ORGANIZING → ORGANIZED.
    A failed organization falls back to ANALYZED; every state can be
    re-analyzed.
    """
    UNANALYZED = "unanalyzed"
    ANALYZING = "analyzing"
    ANALYZED = "analyzed"
    ORGANIZING = "organizing"
    ORGANIZED = "organized"


class ItemStatus(BaseModel):
    state: ItemState = ItemState.UNANALYZED
    last_error: Optional[str] = None
    updated_at: datetime = Field(default_factory=_utcnow)


class AppliedOrganization(BaseModel):
    """What an auto-organization run changed on one item."""

    item_id: str
    item_type: ItemType
    tags_applied: List[str] = Field(default_factory=list)
    categories_applied: List[str] = Field(default_factory=list)
    cultural_metadata_applied: bool = False
    actions_executed: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)


class BatchFailure(BaseModel):
    item_id: str
    item_type: ItemType
    error: str


class BatchResult(BaseModel):
    """Outcome of a batch run with per-item isolation."""

    successes: List[Any] = Field(default_factory=list)
    failures: List[BatchFailure] = Field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return len(self.successes)

    @property
    def failed(self) -> int:
        return len(self.failures)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "succeeded": self.succeeded,
            "failed": self.failed,
            "failures": [f.model_dump(mode="json") for f in self.failures],
        }
