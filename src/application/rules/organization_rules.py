"""Organization Rules Engine.

Evaluates declarative condition → action rules against content items:
- Field conditions (equals, contains, starts_with, greater_than, less_than, in_range)
- Tag, category, collection and cultural-context actions
- Advisory community validation requests for culturally significant items

Rules run in a deterministic order: highest priority first, with equal
priorities kept in the order the caller supplied them.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from domain.cultural_models import ContentItem, CulturalMetadata, CulturalSensitivityLevel
from domain.errors import RuleValidationError
from domain.organization_models import (
    ACTION_MODELS,
    ActionType,
    ConditionOperator,
    OrganizationRule,
    OrganizationRuleMatch,
    RequestValidationAction,
    RuleActionSpec,
    RuleCondition,
)

logger = logging.getLogger(__name__)

EDUCATIONAL_PURPOSE_MARKERS = ("educational", "learning")

# How strongly a satisfied condition implies its action
OPERATOR_CONFIDENCE: Dict[ConditionOperator, float] = {
    ConditionOperator.EQUALS: 0.95,
    ConditionOperator.IN_RANGE: 0.9,
    ConditionOperator.STARTS_WITH: 0.85,
    ConditionOperator.GREATER_THAN: 0.85,
    ConditionOperator.LESS_THAN: 0.85,
    ConditionOperator.CONTAINS: 0.75,
}

_MISSING = object()


@dataclass
class OrganizationRulesConfig:
    """Configuration for the Organization Rules Engine."""

    # Emit an advisory validation request alongside cultural-context actions
    suggest_validation_for_cultural_context: bool = True

    # Sensitivity from which that advisory request is emitted
    validation_sensitivity: CulturalSensitivityLevel = CulturalSensitivityLevel.COMMUNITY

    # Confidence of the advisory request; kept below the auto-execute bar
    validation_request_confidence: float = 0.6

    operator_confidence: Dict[ConditionOperator, float] = field(
        default_factory=lambda: dict(OPERATOR_CONFIDENCE)
    )


class OrganizationRulesEngine:
    """Engine for evaluating organization rules against content items.

    Example:
        >>> engine = OrganizationRulesEngine()
        >>> rule = OrganizationRule(
        ...     id="r1",
        ...     condition=RuleCondition(field="title", operator="contains", value="weaving"),
        ...     action=RuleActionSpec(type="add_tag", value="textiles"),
        ... )
        >>> matches = engine.apply_rules(item, [rule])
    """

    def __init__(self, config: Optional[OrganizationRulesConfig] = None):
        self.config = config or OrganizationRulesConfig()
        self.stats = {
            "total_evaluations": 0,
            "rules_evaluated": 0,
            "rules_matched": 0,
        }

    # ========================================
    # Validation
    # ========================================

    def validate_rule(
        self,
        condition: Optional[RuleCondition] = None,
        action: Optional[RuleActionSpec] = None,
    ) -> None:
        """Pre-flight validation; raises before any backend round trip.

        Raises:
            RuleValidationError: If a cultural-context action lacks an
                educational purpose
        """
        if action is not None and action.type == ActionType.SET_CULTURAL_CONTEXT:
            value = action.value or ""
            if not any(marker in value for marker in EDUCATIONAL_PURPOSE_MARKERS):
                raise RuleValidationError("Cultural context rules must include educational purpose")

        if (
            condition is not None
            and condition.field == "cultural_origin"
            and condition.operator == ConditionOperator.EQUALS
        ):
            logger.warning(
                "Organization rule may need community validation for cultural origin filtering"
            )

    # ========================================
    # Evaluation
    # ========================================

    @staticmethod
    def order_rules(rules: Iterable[OrganizationRule]) -> List[OrganizationRule]:
        """Enabled rules, highest priority first, ties in input order."""
        enabled = [rule for rule in rules if rule.enabled]
        return sorted(enabled, key=lambda rule: -rule.priority)

    def apply_rules(
        self,
        item: ContentItem,
        rules: Iterable[OrganizationRule],
    ) -> List[OrganizationRuleMatch]:
        """Evaluate rules against an item and return the matches."""
        self.stats["total_evaluations"] += 1
        matches: List[OrganizationRuleMatch] = []

        for rule in self.order_rules(rules):
            self.stats["rules_evaluated"] += 1
            matched, matched_values = self.evaluate_condition(item, rule.condition)
            if not matched:
                continue

            confidence = self.config.operator_confidence.get(rule.condition.operator, 0.5)
            matches.append(OrganizationRuleMatch(
                rule=rule,
                confidence=confidence,
                matched_values=matched_values,
                suggested_actions=self._build_actions(item, rule, confidence),
            ))
            self.stats["rules_matched"] += 1

        logger.debug(f"Evaluated rules for item {item.id}: {len(matches)} matched")
        return matches

    def evaluate_condition(
        self,
        item: ContentItem,
        condition: RuleCondition,
    ) -> Tuple[bool, List[Any]]:
        """Check one condition against an item field.

        Returns:
            (matched, matched_values). Missing fields and incomparable types
            never match.
        """
        actual = resolve_field(item, condition.field)
        if actual is _MISSING or actual is None:
            return False, []

        try:
            return _OPERATORS[condition.operator](actual, condition.value)
        except (TypeError, ValueError) as e:
            logger.debug(
                f"Condition {condition.field} {condition.operator.value} not comparable: {e}"
            )
            return False, []

    def _build_actions(self, item: ContentItem, rule: OrganizationRule, confidence: float):
        action_type = rule.action.type
        cultural = action_type in (ActionType.SET_CULTURAL_CONTEXT, ActionType.REQUEST_VALIDATION)

        primary = ACTION_MODELS[action_type](
            value=rule.action.value,
            confidence=confidence,
            requires_cultural_validation=cultural,
            educational_context=rule.action.value if action_type == ActionType.SET_CULTURAL_CONTEXT else None,
        )
        actions = [primary]

        if (
            action_type == ActionType.SET_CULTURAL_CONTEXT
            and self.config.suggest_validation_for_cultural_context
            and item.sensitivity_level >= self.config.validation_sensitivity
        ):
            actions.append(RequestValidationAction(
                value=f"Community review suggested for cultural context set by rule {rule.id or rule.name}",
                confidence=self.config.validation_request_confidence,
                requires_cultural_validation=True,
            ))

        return actions

    def get_statistics(self) -> Dict[str, Any]:
        return dict(self.stats)


def resolve_field(item: ContentItem, field_name: str) -> Any:
    """Look a field up on the item, its cultural metadata, then its properties."""
    if field_name in ContentItem.model_fields and field_name != "cultural_metadata":
        return getattr(item, field_name)
    if field_name in CulturalMetadata.model_fields:
        return getattr(item.cultural_metadata, field_name)
    return item.properties.get(field_name, _MISSING)


def _normalize(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower()
    if hasattr(value, "value"):  # enums
        return _normalize(value.value)
    return value


def _same(actual: Any, expected: Any) -> bool:
    left, right = _normalize(actual), _normalize(expected)
    # Numeric fields match numeric strings, e.g. sensitivity_level 4 and "4"
    if _is_number(left) and isinstance(right, str):
        right = _parse_number(right)
    elif _is_number(right) and isinstance(left, str):
        left = _parse_number(left)
    return left == right


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _parse_number(text: str) -> Any:
    try:
        return float(text)
    except ValueError:
        return text


def _equals(actual: Any, expected: Any):
    if isinstance(actual, (list, tuple, set)):
        hits = [v for v in actual if _same(v, expected)]
        return bool(hits), hits
    matched = _same(actual, expected)
    return matched, [actual] if matched else []


def _contains(actual: Any, expected: Any):
    needle = _normalize(expected)
    if isinstance(actual, str):
        matched = isinstance(needle, str) and needle in _normalize(actual)
        return matched, [actual] if matched else []
    if isinstance(actual, (list, tuple, set)):
        hits = [v for v in actual if _normalize(v) == needle]
        return bool(hits), hits
    return False, []


def _starts_with(actual: Any, expected: Any):
    if isinstance(actual, str) and isinstance(expected, str):
        matched = _normalize(actual).startswith(_normalize(expected))
        return matched, [actual] if matched else []
    if isinstance(actual, (list, tuple, set)) and isinstance(expected, str):
        hits = [v for v in actual if isinstance(v, str) and _normalize(v).startswith(_normalize(expected))]
        return bool(hits), hits
    return False, []


def _as_number(value: Any) -> float:
    if isinstance(value, bool):
        raise TypeError("booleans are not ordered values")
    return float(_normalize(value) if hasattr(value, "value") else value)


def _greater_than(actual: Any, expected: Any):
    matched = _as_number(actual) > _as_number(expected)
    return matched, [actual] if matched else []


def _less_than(actual: Any, expected: Any):
    matched = _as_number(actual) < _as_number(expected)
    return matched, [actual] if matched else []


def _in_range(actual: Any, expected: Any):
    if isinstance(expected, dict):
        low, high = expected.get("min"), expected.get("max")
    else:
        low, high = expected
    number = _as_number(actual)
    matched = _as_number(low) <= number <= _as_number(high)
    return matched, [actual] if matched else []


_OPERATORS = {
    ConditionOperator.EQUALS: _equals,
    ConditionOperator.CONTAINS: _contains,
    ConditionOperator.STARTS_WITH: _starts_with,
    ConditionOperator.GREATER_THAN: _greater_than,
    ConditionOperator.LESS_THAN: _less_than,
    ConditionOperator.IN_RANGE: _in_range,
}
