"""Tests for the Organization Rules Engine.

Tests rule validation, condition operators, deterministic ordering and the
actions produced for matching rules.
"""

import pytest

from application.rules.organization_rules import (
    OrganizationRulesConfig,
    OrganizationRulesEngine,
    resolve_field,
)
from domain.cultural_models import ContentItem
from domain.errors import RuleValidationError
from domain.organization_models import (
    AddTagAction,
    OrganizationRule,
    RequestValidationAction,
    RuleActionSpec,
    RuleCondition,
    SetCulturalContextAction,
)


def _rule(rule_id, field, operator, value, action_type="add_tag", action_value="tagged", priority=0, enabled=True):
    return OrganizationRule.model_validate({
        "id": rule_id,
        "name": rule_id,
        "condition": {"field": field, "operator": operator, "value": value},
        "action": {"type": action_type, "value": action_value},
        "priority": priority,
        "enabled": enabled,
    })


@pytest.fixture
def engine():
    return OrganizationRulesEngine()


@pytest.fixture
def item():
    return ContentItem.model_validate({
        "id": "doc-1",
        "title": "Weaving Patterns of the Bay",
        "content": "Patterns and stories",
        "tags": ["textiles", "Weaving"],
        "cultural_metadata": {
            "sensitivity_level": 3,
            "cultural_origin": "Kestrel Bay",
        },
        "properties": {"year": 1962, "page_count": "48"},
    })


# ========================================
# Validation
# ========================================

class TestRuleValidation:
    """Tests for validate_rule."""

    def test_cultural_context_without_educational_purpose_rejected(self, engine):
        with pytest.raises(RuleValidationError, match="educational purpose"):
            engine.validate_rule(action=RuleActionSpec(type="set_cultural_context", value="general info"))

    def test_cultural_context_with_educational_purpose_accepted(self, engine):
        engine.validate_rule(action=RuleActionSpec(type="set_cultural_context", value="educational info"))
        engine.validate_rule(action=RuleActionSpec(type="set_cultural_context", value="for learning"))

    def test_other_actions_need_no_purpose(self, engine):
        engine.validate_rule(action=RuleActionSpec(type="add_tag", value="general info"))

    def test_origin_filter_only_warns(self, engine, caplog):
        """Test that cultural-origin equality conditions log a warning without failing."""
        condition = RuleCondition(field="cultural_origin", operator="equals", value="Kestrel Bay")

        engine.validate_rule(condition=condition)

        assert "community validation" in caplog.text


# ========================================
# Conditions
# ========================================

class TestConditions:
    """Tests for condition operators."""

    @pytest.mark.parametrize("field,operator,value,expected", [
        ("title", "equals", "weaving patterns of the bay", True),
        ("title", "equals", "weaving", False),
        ("title", "contains", "PATTERNS", True),
        ("title", "contains", "pottery", False),
        ("title", "starts_with", "weaving", True),
        ("title", "starts_with", "patterns", False),
        ("tags", "contains", "weaving", True),
        ("tags", "equals", "textiles", True),
        ("tags", "starts_with", "tex", True),
        ("cultural_origin", "equals", "kestrel bay", True),
        ("sensitivity_level", "greater_than", 2, True),
        ("sensitivity_level", "less_than", 3, False),
        ("sensitivity_level", "in_range", [3, 5], True),
        ("year", "in_range", {"min": 1900, "max": 1950}, False),
        ("year", "in_range", [1962, 1962], True),
        ("year", "greater_than", 1950, True),
        ("page_count", "less_than", 100, True),
    ])
    def test_operators(self, engine, item, field, operator, value, expected):
        condition = RuleCondition(field=field, operator=operator, value=value)
        matched, _ = engine.evaluate_condition(item, condition)
        assert matched is expected

    @pytest.mark.parametrize("field,value,expected", [
        ("sensitivity_level", "3", True),
        ("sensitivity_level", 3, True),
        ("sensitivity_level", "4", False),
        ("sensitivity_level", "three", False),
        ("page_count", 48, True),
        ("year", "1962", True),
    ])
    def test_equals_matches_numbers_given_as_strings(self, engine, item, field, value, expected):
        """Test that enum and numeric fields compare equal to their numeric text."""
        condition = RuleCondition(field=field, operator="equals", value=value)
        matched, _ = engine.evaluate_condition(item, condition)
        assert matched is expected

    def test_missing_field_never_matches(self, engine, item):
        condition = RuleCondition(field="no_such_field", operator="equals", value=None)
        assert engine.evaluate_condition(item, condition) == (False, [])

    def test_incomparable_values_never_match(self, engine, item):
        """Test that ordering a string against a number is a non-match, not an error."""
        condition = RuleCondition(field="title", operator="greater_than", value=5)
        assert engine.evaluate_condition(item, condition) == (False, [])

    def test_matched_values_reported(self, engine, item):
        condition = RuleCondition(field="tags", operator="contains", value="weaving")
        matched, values = engine.evaluate_condition(item, condition)

        assert matched
        assert values == ["Weaving"]

    def test_resolve_field_order(self, item):
        """Test lookup on the item, then its metadata, then properties."""
        assert resolve_field(item, "title") == "Weaving Patterns of the Bay"
        assert resolve_field(item, "cultural_origin") == "Kestrel Bay"
        assert resolve_field(item, "year") == 1962


# ========================================
# Rule application
# ========================================

class TestApplyRules:
    """Tests for apply_rules."""

    def test_rules_ordered_by_priority_then_input(self, engine, item):
        rules = [
            _rule("low", "title", "contains", "weaving", priority=1),
            _rule("high-a", "title", "contains", "weaving", priority=5),
            _rule("high-b", "title", "contains", "weaving", priority=5),
            _rule("mid", "title", "contains", "weaving", priority=3),
        ]

        matches = engine.apply_rules(item, rules)

        assert [m.rule.id for m in matches] == ["high-a", "high-b", "mid", "low"]

    def test_disabled_rules_skipped(self, engine, item):
        rules = [_rule("off", "title", "contains", "weaving", enabled=False)]
        assert engine.apply_rules(item, rules) == []

    def test_confidence_by_operator(self, engine, item):
        matches = engine.apply_rules(item, [
            _rule("eq", "cultural_origin", "equals", "Kestrel Bay"),
            _rule("has", "title", "contains", "weaving"),
        ])

        assert [m.confidence for m in matches] == [0.95, 0.75]
        assert matches[0].suggested_actions[0].confidence == 0.95

    def test_action_built_from_rule(self, engine, item):
        matches = engine.apply_rules(item, [_rule("r", "title", "contains", "weaving", "add_tag", "textiles")])

        action = matches[0].suggested_actions[0]
        assert isinstance(action, AddTagAction)
        assert action.value == "textiles"
        assert action.requires_cultural_validation is False

    def test_cultural_context_on_community_item_adds_validation_request(self, engine, item):
        """Test the advisory validation request on culturally significant items."""
        matches = engine.apply_rules(item, [
            _rule("ctx", "title", "contains", "weaving", "set_cultural_context", "educational weaving context"),
        ])

        actions = matches[0].suggested_actions
        assert isinstance(actions[0], SetCulturalContextAction)
        assert actions[0].educational_context == "educational weaving context"
        assert isinstance(actions[1], RequestValidationAction)
        assert actions[1].confidence == 0.6
        assert actions[1] not in matches[0].auto_executable_actions()

    def test_validation_request_can_be_disabled(self, item):
        engine = OrganizationRulesEngine(OrganizationRulesConfig(suggest_validation_for_cultural_context=False))

        matches = engine.apply_rules(item, [
            _rule("ctx", "title", "contains", "weaving", "set_cultural_context", "educational context"),
        ])

        assert len(matches[0].suggested_actions) == 1

    def test_public_item_gets_no_validation_request(self, engine):
        public = ContentItem(id="doc-2", title="Weaving basics")

        matches = engine.apply_rules(public, [
            _rule("ctx", "title", "contains", "weaving", "set_cultural_context", "educational context"),
        ])

        assert len(matches[0].suggested_actions) == 1

    def test_statistics(self, engine, item):
        engine.apply_rules(item, [
            _rule("a", "title", "contains", "weaving"),
            _rule("b", "title", "contains", "pottery"),
        ])

        stats = engine.get_statistics()
        assert stats["total_evaluations"] == 1
        assert stats["rules_evaluated"] == 2
        assert stats["rules_matched"] == 1
