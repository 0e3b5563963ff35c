"""Cultural Models.

Defines content items and the cultural metadata attached to them.

Cultural metadata is an informational annotation. The sensitivity level is an
ordinal scale used to decide how much educational context to surface; it is
never a permission. Models in this module carry no visibility, access or
permission fields, and any such keys arriving from the backend are dropped at
the boundary.
"""

import logging
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

logger = logging.getLogger(__name__)


class ItemType(str, Enum):
    """Kind of content item being organized."""
    DOCUMENT = "document"
    COLLECTION = "collection"


class CulturalSensitivityLevel(IntEnum):
    """Ordinal, purely informational sensitivity scale.

    Higher levels surface more cultural context and protocol information.
    No level ever restricts who can read or write the content.
    """
    PUBLIC = 1       # No cultural considerations needed
    EDUCATIONAL = 2  # Benefits from cultural context
    COMMUNITY = 3    # Community cultural significance
    GUARDIAN = 4     # Traditional knowledge protocols
    SACRED = 5       # Sacred or ceremonial significance


# Keys that would turn an annotation into an access rule
ACCESS_RESTRICTING_KEYS = frozenset({
    "visibility",
    "access_level",
    "restricted",
    "allowed_users",
    "requires_permission",
    "hidden",
})


class InformationalAnnotation(BaseModel):
    """Base for models that describe content but never gate access to it."""

    model_config = ConfigDict(extra="ignore", use_enum_values=False)

    @model_validator(mode="before")
    @classmethod
    def _drop_access_restrictions(cls, data: Any) -> Any:
        if isinstance(data, dict):
            blocked = ACCESS_RESTRICTING_KEYS.intersection(data)
            if blocked:
                logger.warning(
                    f"Dropping access-restricting keys from {cls.__name__}: {sorted(blocked)}"
                )
                data = {k: v for k, v in data.items() if k not in ACCESS_RESTRICTING_KEYS}
        return data


class CulturalMetadata(InformationalAnnotation):
    """Cultural annotation attached to a content item."""

    sensitivity_level: CulturalSensitivityLevel = CulturalSensitivityLevel.PUBLIC
    cultural_origin: Optional[str] = None
    community_id: Optional[str] = None
    traditional_protocols: List[str] = Field(default_factory=list)
    educational_context: Optional[str] = None
    cultural_context: Optional[str] = None
    source_attribution: Optional[str] = None
    cultural_group: Optional[str] = None
    related_concepts: List[str] = Field(default_factory=list)
    community_notes: Optional[str] = None


class CulturalMetadataSuggestion(InformationalAnnotation):
    """Partial cultural metadata produced by analysis."""

    sensitivity_level: Optional[CulturalSensitivityLevel] = None
    cultural_origin: Optional[str] = None
    community_id: Optional[str] = None
    traditional_protocols: Optional[List[str]] = None
    educational_context: Optional[str] = None
    cultural_context: Optional[str] = None
    cultural_group: Optional[str] = None
    related_concepts: Optional[List[str]] = None

    def to_payload(self) -> Dict[str, Any]:
        """Only the fields that were actually suggested."""
        return self.model_dump(mode="json", exclude_none=True)


class ContentItem(BaseModel):
    """A document or collection as read from the backend.

    The engine reads and annotates items; it never creates or edits them.
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    item_type: ItemType = ItemType.DOCUMENT
    title: str = ""
    content: str = ""
    tags: List[str] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=list)
    cultural_metadata: CulturalMetadata = Field(default_factory=CulturalMetadata)
    properties: Dict[str, Any] = Field(default_factory=dict)

    @property
    def cultural_origin(self) -> Optional[str]:
        return self.cultural_metadata.cultural_origin

    @property
    def sensitivity_level(self) -> CulturalSensitivityLevel:
        return self.cultural_metadata.sensitivity_level


def sensitivity_at_least(
    metadata: Optional[CulturalMetadata],
    level: CulturalSensitivityLevel,
) -> bool:
    """Whether metadata declares a sensitivity of at least ``level``."""
    if metadata is None:
        return False
    return metadata.sensitivity_level >= level
