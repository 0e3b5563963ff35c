"""Tests for cultural and content item models."""

import pytest

from domain.cultural_models import (
    ACCESS_RESTRICTING_KEYS,
    ContentItem,
    CulturalMetadata,
    CulturalMetadataSuggestion,
    CulturalSensitivityLevel,
    ItemType,
    sensitivity_at_least,
)


class TestCulturalSensitivityLevel:
    """Tests for the sensitivity scale."""

    def test_levels_are_ordered(self):
        """Test that levels compare in ascending order."""
        levels = list(CulturalSensitivityLevel)
        assert levels == sorted(levels)
        assert CulturalSensitivityLevel.PUBLIC == 1
        assert CulturalSensitivityLevel.SACRED == 5

    def test_sensitivity_at_least(self):
        """Test threshold comparison helper."""
        metadata = CulturalMetadata(sensitivity_level=CulturalSensitivityLevel.GUARDIAN)

        assert sensitivity_at_least(metadata, CulturalSensitivityLevel.COMMUNITY)
        assert sensitivity_at_least(metadata, CulturalSensitivityLevel.GUARDIAN)
        assert not sensitivity_at_least(metadata, CulturalSensitivityLevel.SACRED)

    def test_sensitivity_at_least_without_metadata(self):
        """Test that missing metadata never meets a threshold."""
        assert not sensitivity_at_least(None, CulturalSensitivityLevel.EDUCATIONAL)


class TestCulturalMetadata:
    """Tests for CulturalMetadata."""

    def test_defaults(self):
        """Test default metadata is public with no origin."""
        metadata = CulturalMetadata()

        assert metadata.sensitivity_level == CulturalSensitivityLevel.PUBLIC
        assert metadata.cultural_origin is None
        assert metadata.traditional_protocols == []

    def test_access_restricting_keys_are_dropped(self):
        """Test that visibility and permission keys never survive validation."""
        metadata = CulturalMetadata.model_validate({
            "sensitivity_level": 5,
            "cultural_origin": "Kestrel Bay",
            "visibility": "private",
            "restricted": True,
            "allowed_users": ["elder-1"],
        })

        dumped = metadata.model_dump()
        assert metadata.sensitivity_level == CulturalSensitivityLevel.SACRED
        assert metadata.cultural_origin == "Kestrel Bay"
        assert not ACCESS_RESTRICTING_KEYS.intersection(dumped)

    def test_models_declare_no_access_fields(self):
        """Test that no cultural model can express an access rule."""
        for model in (CulturalMetadata, CulturalMetadataSuggestion, ContentItem):
            assert not ACCESS_RESTRICTING_KEYS.intersection(model.model_fields)

    def test_sensitivity_accepts_integers(self):
        """Test level parsing from backend integers."""
        metadata = CulturalMetadata.model_validate({"sensitivity_level": 3})
        assert metadata.sensitivity_level is CulturalSensitivityLevel.COMMUNITY

    def test_invalid_sensitivity_rejected(self):
        """Test that levels outside 1..5 fail validation."""
        with pytest.raises(ValueError):
            CulturalMetadata.model_validate({"sensitivity_level": 9})


class TestCulturalMetadataSuggestion:
    """Tests for CulturalMetadataSuggestion."""

    def test_payload_contains_only_suggested_fields(self):
        """Test that unset fields are left out of the payload."""
        suggestion = CulturalMetadataSuggestion(
            sensitivity_level=CulturalSensitivityLevel.COMMUNITY,
            educational_context="Shared for learners",
        )

        assert suggestion.to_payload() == {
            "sensitivity_level": 3,
            "educational_context": "Shared for learners",
        }

    def test_empty_suggestion_has_empty_payload(self):
        assert CulturalMetadataSuggestion().to_payload() == {}


class TestContentItem:
    """Tests for ContentItem."""

    def test_minimal_item(self):
        """Test item creation with only an id."""
        item = ContentItem(id="doc-1")

        assert item.item_type == ItemType.DOCUMENT
        assert item.tags == []
        assert item.sensitivity_level == CulturalSensitivityLevel.PUBLIC
        assert item.cultural_origin is None

    def test_convenience_properties(self):
        """Test origin and sensitivity shortcuts."""
        item = ContentItem.model_validate({
            "id": "doc-2",
            "item_type": "collection",
            "cultural_metadata": {"sensitivity_level": 4, "cultural_origin": "Miro Highlands"},
        })

        assert item.item_type == ItemType.COLLECTION
        assert item.cultural_origin == "Miro Highlands"
        assert item.sensitivity_level == CulturalSensitivityLevel.GUARDIAN
