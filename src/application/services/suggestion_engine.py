"""Suggestion Engine.

Produces tag and category suggestions for content and annotates them with
cultural appropriateness. Filtering here only ever adds educational context;
it never hides content because of its cultural sensitivity.

Usage:
    engine = SuggestionEngine(backend)
    tags = await engine.generate_tag_suggestions(text, metadata)
    categories = await engine.generate_category_suggestions(text, metadata)
"""

import logging
from typing import List, Optional

from application.services.organization_scoring import (
    calculate_cultural_appropriateness,
    calculate_overall_confidence,
    is_traditional_knowledge_tag,
)
from domain.cultural_models import (
    CulturalMetadata,
    CulturalMetadataSuggestion,
    CulturalSensitivityLevel,
    sensitivity_at_least,
)
from domain.errors import OrganizationServiceError
from domain.organization_backend import OrganizationBackend
from domain.organization_models import (
    CategorySuggestion,
    OrganizationAnalysis,
    TagSource,
    TagSuggestion,
)

logger = logging.getLogger(__name__)

TRADITIONAL_KNOWLEDGE_NOTE = " (Traditional knowledge - educational context provided)"
CONTEXT_UNAVAILABLE = "Cultural context analysis unavailable"
DEFAULT_EDUCATIONAL_CONTEXT = "Content analyzed for cultural context to enhance understanding"

# Traditional-knowledge tags above this confidence are always kept
TRADITIONAL_TAG_CONFIDENCE = 0.9
COMMUNITY_VALIDATION_APPROPRIATENESS = 0.8


class SuggestionEngine:
    """Generates and culturally annotates organization suggestions."""

    def __init__(self, backend: OrganizationBackend):
        self.backend = backend

    async def generate_tag_suggestions(
        self,
        content: str,
        cultural_metadata: Optional[CulturalMetadata] = None,
    ) -> List[TagSuggestion]:
        """Generate tag suggestions with cultural awareness.

        Raises:
            OrganizationServiceError: If the backend call fails
        """
        try:
            raw = await self.backend.generate_tag_suggestions(
                content, _metadata_payload(cultural_metadata)
            )
            suggestions = [TagSuggestion.model_validate(s) for s in raw]
        except Exception as e:
            logger.error(f"Failed to generate tag suggestions: {e}")
            raise OrganizationServiceError("Unable to generate tag suggestions") from e

        return self.filter_culturally_appropriate_tags(suggestions, cultural_metadata)

    async def generate_category_suggestions(
        self,
        content: str,
        cultural_metadata: Optional[CulturalMetadata] = None,
    ) -> List[CategorySuggestion]:
        """Generate category suggestions with cultural validation flags.

        Raises:
            OrganizationServiceError: If the backend call fails
        """
        try:
            raw = await self.backend.generate_category_suggestions(
                content, _metadata_payload(cultural_metadata)
            )
            suggestions = [CategorySuggestion.model_validate(s) for s in raw]
        except Exception as e:
            logger.error(f"Failed to generate category suggestions: {e}")
            raise OrganizationServiceError("Unable to generate category suggestions") from e

        return self.validate_cultural_categories(suggestions, cultural_metadata)

    async def analyze_cultural_context(self, content: str) -> CulturalMetadataSuggestion:
        """Analyze cultural context; never raises.

        On backend failure returns PUBLIC sensitivity with an explanatory
        educational note so the calling operation can complete.
        """
        try:
            raw = await self.backend.analyze_cultural_context(content)
            analysis = CulturalMetadataSuggestion.model_validate(raw or {})
        except Exception as e:
            logger.error(f"Failed to analyze cultural context: {e}")
            return CulturalMetadataSuggestion(
                sensitivity_level=CulturalSensitivityLevel.PUBLIC,
                educational_context=CONTEXT_UNAVAILABLE,
            )

        if not analysis.educational_context:
            analysis = analysis.model_copy(
                update={"educational_context": DEFAULT_EDUCATIONAL_CONTEXT}
            )
        return analysis

    @staticmethod
    def filter_culturally_appropriate_tags(
        suggestions: List[TagSuggestion],
        cultural_metadata: Optional[CulturalMetadata] = None,
    ) -> List[TagSuggestion]:
        """Keep general tags; keep cultural tags with educational annotation.

        - Tags not from cultural analysis are always kept.
        - Traditional-knowledge cultural tags on GUARDIAN-or-higher items are
          kept and annotated regardless of confidence.
        - Other traditional-knowledge cultural tags need confidence > 0.9.
        - Non-traditional cultural tags pass unchanged.
        """
        guardian = sensitivity_at_least(cultural_metadata, CulturalSensitivityLevel.GUARDIAN)
        kept = []

        for tag in suggestions:
            if tag.source != TagSource.CULTURAL_ANALYSIS or not tag.traditional_knowledge:
                kept.append(tag)
            elif guardian:
                kept.append(tag.model_copy(update={"reason": tag.reason + TRADITIONAL_KNOWLEDGE_NOTE}))
            elif tag.confidence > TRADITIONAL_TAG_CONFIDENCE:
                kept.append(tag)
            else:
                logger.debug(f"Dropping low-confidence traditional knowledge tag '{tag.tag}'")

        return kept

    @staticmethod
    def validate_cultural_categories(
        suggestions: List[CategorySuggestion],
        cultural_metadata: Optional[CulturalMetadata] = None,
    ) -> List[CategorySuggestion]:
        community = sensitivity_at_least(cultural_metadata, CulturalSensitivityLevel.COMMUNITY)
        validated = []

        for category in suggestions:
            appropriateness = category.cultural_appropriateness
            if appropriateness is None:
                appropriateness = calculate_cultural_appropriateness(
                    category.category, cultural_metadata
                )

            needs_validation = (
                category.requires_community_validation
                or appropriateness < COMMUNITY_VALIDATION_APPROPRIATENESS
                or community
            )
            validated.append(category.model_copy(update={
                "cultural_appropriateness": appropriateness,
                "requires_community_validation": needs_validation,
            }))

        return validated

    @staticmethod
    def enhance_analysis(analysis: OrganizationAnalysis) -> OrganizationAnalysis:
        """Flag traditional-knowledge tags and compute overall confidence."""
        tags = [
            tag.model_copy(update={"traditional_knowledge": is_traditional_knowledge_tag(tag.tag)})
            for tag in analysis.tag_suggestions
        ]
        overall = calculate_overall_confidence(analysis.tag_suggestions, analysis.category_suggestions)
        return analysis.model_copy(update={
            "tag_suggestions": tags,
            "overall_confidence": overall,
        })


def _metadata_payload(cultural_metadata: Optional[CulturalMetadata]):
    if cultural_metadata is None:
        return None
    return cultural_metadata.model_dump(mode="json")
