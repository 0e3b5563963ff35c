"""Tests for the OrganizationService.

Covers cached analysis, auto-organization thresholds, action dispatch,
rule management, batching and per-item processing state.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock

from application.services.organization_service import (
    OrganizationService,
    OrganizationServiceConfig,
)
from domain.cultural_models import ItemType
from domain.errors import OrganizationServiceError, RuleValidationError
from domain.organization_models import (
    AddTagAction,
    CategorySuggestion,
    ItemState,
    MoveToCollectionAction,
    OrganizationAnalysis,
    OrganizationRule,
    OrganizationRuleMatch,
    OrganizationRuleUpdate,
    RequestValidationAction,
    RuleActionSpec,
    RuleCondition,
    SetCategoryAction,
    SetCulturalContextAction,
    TagSuggestion,
)


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _raw_analysis(item_id, item_type="document"):
    return {
        "item_id": item_id,
        "item_type": item_type,
        "tag_suggestions": [{"tag": "weaving", "confidence": 0.9}],
        "category_suggestions": [{"category": "arts", "confidence": 0.8}],
    }


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleep():
    return AsyncMock()


@pytest.fixture
def mock_backend():
    backend = AsyncMock()
    backend.get_organization_config.return_value = {}
    backend.analyze_item_organization.side_effect = lambda item_id, item_type: _raw_analysis(item_id, item_type)
    return backend


@pytest.fixture
def service(mock_backend, clock, sleep):
    return OrganizationService(mock_backend, clock=clock, sleep=sleep)


def _rule_match(*actions):
    return OrganizationRuleMatch(
        rule=OrganizationRule(
            id="r1",
            condition=RuleCondition(field="title", operator="contains", value="weaving"),
            action=RuleActionSpec(type="add_tag", value="textiles"),
        ),
        confidence=0.95,
        suggested_actions=list(actions),
    )


# ========================================
# Analysis
# ========================================

class TestAnalyzeItem:
    """Tests for analyze_item caching and state."""

    @pytest.mark.asyncio
    async def test_second_call_within_ttl_served_from_cache(self, service, mock_backend, clock):
        """Test that one backend call serves repeated analyses within the TTL."""
        first = await service.analyze_item("doc-1", ItemType.DOCUMENT)
        clock.advance(599)
        second = await service.analyze_item("doc-1", "document")

        assert first == second
        assert mock_backend.analyze_item_organization.await_count == 1

    @pytest.mark.asyncio
    async def test_callers_cannot_mutate_cached_analysis(self, service):
        """Test that each caller receives its own copy of a cached analysis."""
        first = await service.analyze_item("doc-1", ItemType.DOCUMENT)
        first.tag_suggestions.clear()
        second = await service.analyze_item("doc-1", ItemType.DOCUMENT)
        second.tag_suggestions[0].tag = "changed"

        third = await service.analyze_item("doc-1", ItemType.DOCUMENT)

        assert [t.tag for t in third.tag_suggestions] == ["weaving"]

    @pytest.mark.asyncio
    async def test_expired_entry_refetched(self, service, mock_backend, clock):
        await service.analyze_item("doc-1", ItemType.DOCUMENT)
        clock.advance(600)
        await service.analyze_item("doc-1", ItemType.DOCUMENT)

        assert mock_backend.analyze_item_organization.await_count == 2

    @pytest.mark.asyncio
    async def test_force_bypasses_cache(self, service, mock_backend):
        await service.analyze_item("doc-1", ItemType.DOCUMENT)
        await service.analyze_item("doc-1", ItemType.DOCUMENT, force=True)

        assert mock_backend.analyze_item_organization.await_count == 2

    @pytest.mark.asyncio
    async def test_cache_keyed_by_type_and_id(self, service, mock_backend):
        await service.analyze_item("x", ItemType.DOCUMENT)
        await service.analyze_item("x", ItemType.COLLECTION)

        assert mock_backend.analyze_item_organization.await_count == 2

    @pytest.mark.asyncio
    async def test_analysis_is_enhanced(self, service):
        analysis = await service.analyze_item("doc-1", ItemType.DOCUMENT)

        assert analysis.overall_confidence == pytest.approx(0.85)

    @pytest.mark.asyncio
    async def test_success_marks_item_analyzed(self, service):
        assert service.get_item_status("doc-1", ItemType.DOCUMENT).state == ItemState.UNANALYZED

        await service.analyze_item("doc-1", ItemType.DOCUMENT)

        assert service.get_item_status("doc-1", ItemType.DOCUMENT).state == ItemState.ANALYZED

    @pytest.mark.asyncio
    async def test_item_states_bounded_like_cache(self, mock_backend, clock):
        """Test that the least recently updated item state is dropped first."""
        service = OrganizationService(
            mock_backend, config=OrganizationServiceConfig(cache_max_entries=2), clock=clock
        )

        for item_id in ["doc-1", "doc-2", "doc-3"]:
            await service.analyze_item(item_id, ItemType.DOCUMENT)

        assert service.get_item_status("doc-1", ItemType.DOCUMENT).state == ItemState.UNANALYZED
        assert service.get_item_status("doc-3", ItemType.DOCUMENT).state == ItemState.ANALYZED
        assert len(service._status) == 2

    @pytest.mark.asyncio
    async def test_failure_wrapped_and_state_restored(self, service, mock_backend):
        """Test that a failed analysis keeps the prior state and records the error."""
        mock_backend.analyze_item_organization.side_effect = RuntimeError("inference offline")

        with pytest.raises(OrganizationServiceError, match="Unable to analyze item for organization"):
            await service.analyze_item("doc-1", ItemType.DOCUMENT)

        status = service.get_item_status("doc-1", ItemType.DOCUMENT)
        assert status.state == ItemState.UNANALYZED
        assert status.last_error == "inference offline"

    @pytest.mark.asyncio
    async def test_failed_analysis_not_cached(self, service, mock_backend):
        mock_backend.analyze_item_organization.side_effect = [
            RuntimeError("blip"),
            _raw_analysis("doc-1"),
        ]

        with pytest.raises(OrganizationServiceError):
            await service.analyze_item("doc-1", ItemType.DOCUMENT)
        analysis = await service.analyze_item("doc-1", ItemType.DOCUMENT)

        assert analysis.item_id == "doc-1"


# ========================================
# Auto-organization
# ========================================

class TestAutoOrganization:
    """Tests for apply_auto_organization."""

    @pytest.fixture
    def analysis(self):
        return OrganizationAnalysis(
            item_id="doc-1",
            item_type=ItemType.DOCUMENT,
            tag_suggestions=[
                TagSuggestion(tag="weaving", confidence=0.85),
                TagSuggestion(tag="loom", confidence=0.5),
                TagSuggestion(tag="textiles", confidence=0.8),
            ],
            category_suggestions=[
                CategorySuggestion(category="arts", confidence=0.9, cultural_appropriateness=0.9),
                CategorySuggestion(category="ceremony", confidence=0.9, cultural_appropriateness=0.6),
                CategorySuggestion(category="history", confidence=0.6, cultural_appropriateness=0.95),
                CategorySuggestion(category="ecology", confidence=0.9),
            ],
            cultural_suggestions={"cultural_origin": "Kestrel Bay"},
            overall_confidence=0.75,
        )

    @pytest.mark.asyncio
    async def test_applies_only_confident_suggestions(self, service, mock_backend, analysis):
        """Test the tag, category and cultural metadata thresholds."""
        result = await service.apply_auto_organization("doc-1", ItemType.DOCUMENT, analysis)

        mock_backend.apply_tags_to_item.assert_awaited_once_with("doc-1", "document", ["weaving", "textiles"])
        mock_backend.apply_categories_to_item.assert_awaited_once_with("doc-1", "document", ["arts"])
        mock_backend.apply_cultural_metadata_to_item.assert_awaited_once_with(
            "doc-1", "document", {"cultural_origin": "Kestrel Bay"}
        )
        assert result.tags_applied == ["weaving", "textiles"]
        assert result.categories_applied == ["arts"]
        assert result.cultural_metadata_applied is True
        assert result.errors == []

    @pytest.mark.asyncio
    async def test_low_overall_confidence_skips_cultural_metadata(self, service, mock_backend, analysis):
        analysis = analysis.model_copy(update={"overall_confidence": 0.7})

        result = await service.apply_auto_organization("doc-1", ItemType.DOCUMENT, analysis)

        mock_backend.apply_cultural_metadata_to_item.assert_not_awaited()
        assert result.cultural_metadata_applied is False

    @pytest.mark.asyncio
    async def test_disabled_features_skipped(self, service, mock_backend, analysis):
        mock_backend.get_organization_config.return_value = {
            "auto_tagging": False,
            "smart_categorization": False,
            "cultural_analysis": False,
        }

        result = await service.apply_auto_organization("doc-1", ItemType.DOCUMENT, analysis)

        mock_backend.apply_tags_to_item.assert_not_awaited()
        mock_backend.apply_categories_to_item.assert_not_awaited()
        mock_backend.apply_cultural_metadata_to_item.assert_not_awaited()
        assert result.tags_applied == []

    @pytest.mark.asyncio
    async def test_only_auto_executable_rule_actions_run(self, service, mock_backend):
        """Test that rule actions at or below 0.7 confidence are left for review."""
        analysis = OrganizationAnalysis(
            item_id="doc-1",
            item_type=ItemType.DOCUMENT,
            rule_matches=[_rule_match(
                MoveToCollectionAction(value="coll-textiles", confidence=0.95),
                RequestValidationAction(value="review", confidence=0.6),
            )],
        )

        result = await service.apply_auto_organization("doc-1", ItemType.DOCUMENT, analysis)

        mock_backend.move_item_to_collection.assert_awaited_once_with("doc-1", "document", "coll-textiles")
        mock_backend.request_cultural_validation.assert_not_awaited()
        assert result.actions_executed == ["move_to_collection"]

    @pytest.mark.asyncio
    async def test_failed_step_does_not_stop_others(self, service, mock_backend, analysis):
        """Test that each mutation is attempted independently."""
        mock_backend.apply_tags_to_item.side_effect = RuntimeError("tag store locked")

        result = await service.apply_auto_organization("doc-1", ItemType.DOCUMENT, analysis)

        mock_backend.apply_categories_to_item.assert_awaited_once()
        mock_backend.apply_cultural_metadata_to_item.assert_awaited_once()
        assert result.tags_applied == []
        assert result.categories_applied == ["arts"]
        assert result.errors == ["apply tags: tag store locked"]

        status = service.get_item_status("doc-1", ItemType.DOCUMENT)
        assert status.state == ItemState.ANALYZED
        assert "tag store locked" in status.last_error

    @pytest.mark.asyncio
    async def test_success_marks_item_organized(self, service, analysis):
        await service.apply_auto_organization("doc-1", ItemType.DOCUMENT, analysis)

        assert service.get_item_status("doc-1", ItemType.DOCUMENT).state == ItemState.ORGANIZED

    @pytest.mark.asyncio
    async def test_analyzes_when_no_analysis_given(self, service, mock_backend):
        result = await service.apply_auto_organization("doc-1", ItemType.DOCUMENT)

        mock_backend.analyze_item_organization.assert_awaited_once_with("doc-1", "document")
        assert result.tags_applied == ["weaving"]


class TestExecuteAction:
    """Tests for action dispatch."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("action,method,args", [
        (AddTagAction(value="weaving", confidence=0.9), "apply_tags_to_item", ("doc-1", "document", ["weaving"])),
        (SetCategoryAction(value="arts", confidence=0.9), "apply_categories_to_item", ("doc-1", "document", ["arts"])),
        (MoveToCollectionAction(value="coll-1", confidence=0.9), "move_item_to_collection", ("doc-1", "document", "coll-1")),
        (
            SetCulturalContextAction(value="ctx", confidence=0.9, educational_context="educational ctx"),
            "apply_cultural_metadata_to_item",
            ("doc-1", "document", {"cultural_context": "ctx", "educational_context": "educational ctx"}),
        ),
        (RequestValidationAction(value="review", confidence=0.9), "request_cultural_validation", ("doc-1", "document", "review")),
    ])
    async def test_dispatch(self, service, mock_backend, action, method, args):
        await service.execute_action("doc-1", ItemType.DOCUMENT, action)

        getattr(mock_backend, method).assert_awaited_once_with(*args)


class TestApplyOrganizationRules:
    """Tests for local rule evaluation."""

    @pytest.mark.asyncio
    async def test_rules_evaluated_against_loaded_item(self, service, mock_backend):
        mock_backend.get_item.return_value = {"id": "doc-1", "title": "Weaving at the bay"}
        rule = OrganizationRule(
            id="r1",
            condition=RuleCondition(field="title", operator="contains", value="weaving"),
            action=RuleActionSpec(type="add_tag", value="textiles"),
        )

        matches = await service.apply_organization_rules("doc-1", ItemType.DOCUMENT, [rule])

        assert [m.rule.id for m in matches] == ["r1"]

    @pytest.mark.asyncio
    async def test_missing_item_raises(self, service, mock_backend):
        mock_backend.get_item.return_value = None

        with pytest.raises(OrganizationServiceError, match="not found"):
            await service.apply_organization_rules("ghost", ItemType.DOCUMENT, [])


# ========================================
# Rule management
# ========================================

class TestRuleManagement:
    """Tests for organization rule CRUD."""

    @pytest.mark.asyncio
    async def test_invalid_rule_rejected_before_backend_call(self, service, mock_backend):
        rule = OrganizationRule(
            condition=RuleCondition(field="title", operator="contains", value="x"),
            action=RuleActionSpec(type="set_cultural_context", value="general info"),
        )

        with pytest.raises(RuleValidationError):
            await service.create_organization_rule(rule)

        mock_backend.create_organization_rule.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_create_assigns_id(self, service, mock_backend):
        mock_backend.create_organization_rule.return_value = {}
        rule = OrganizationRule(
            name="Weaving tags",
            condition=RuleCondition(field="title", operator="contains", value="weaving"),
            action=RuleActionSpec(type="add_tag", value="textiles"),
        )

        created = await service.create_organization_rule(rule)

        payload = mock_backend.create_organization_rule.call_args.args[0]
        assert created.id
        assert payload["id"] == created.id
        assert payload["action"] == {"type": "add_tag", "value": "textiles"}

    @pytest.mark.asyncio
    async def test_update_validates_new_action(self, service, mock_backend):
        updates = OrganizationRuleUpdate(action=RuleActionSpec(type="set_cultural_context", value="notes"))

        with pytest.raises(RuleValidationError):
            await service.update_organization_rule("r1", updates)

        mock_backend.update_organization_rule.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_update_sends_only_set_fields(self, service, mock_backend):
        mock_backend.update_organization_rule.return_value = {
            "id": "r1",
            "condition": {"field": "title", "operator": "contains", "value": "x"},
            "action": {"type": "add_tag", "value": "x"},
            "enabled": False,
        }

        updated = await service.update_organization_rule("r1", OrganizationRuleUpdate(enabled=False))

        mock_backend.update_organization_rule.assert_awaited_once_with("r1", {"enabled": False})
        assert updated.enabled is False

    @pytest.mark.asyncio
    async def test_backend_errors_wrapped(self, service, mock_backend):
        mock_backend.delete_organization_rule.side_effect = KeyError("r9")

        with pytest.raises(OrganizationServiceError, match="Unable to delete organization rule"):
            await service.delete_organization_rule("r9")


# ========================================
# Batch processing
# ========================================

class TestBatchAnalyze:
    """Tests for batch_analyze."""

    @pytest.mark.asyncio
    async def test_chunks_run_sequentially(self, service, mock_backend):
        """Test that 23 items run as chunks of 10, 10 and 3."""
        events = []

        async def analyze(item_id, item_type):
            events.append("start")
            await asyncio.sleep(0)
            events.append("end")
            return _raw_analysis(item_id, item_type)

        mock_backend.analyze_item_organization.side_effect = analyze

        result = await service.batch_analyze([f"doc-{i}" for i in range(23)], ItemType.DOCUMENT)

        runs = []
        for event in events:
            if event == "start" and (not runs or runs[-1][0] != "start"):
                runs.append(["start", 0])
            if event == "start":
                runs[-1][1] += 1
            elif not runs or runs[-1][0] != "end":
                runs.append(["end", 0])
        assert [count for kind, count in runs if kind == "start"] == [10, 10, 3]
        assert result.succeeded == 23

    @pytest.mark.asyncio
    async def test_explicit_batch_size(self, service, mock_backend):
        peak = 0
        active = 0

        async def analyze(item_id, item_type):
            nonlocal peak, active
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0)
            active -= 1
            return _raw_analysis(item_id, item_type)

        mock_backend.analyze_item_organization.side_effect = analyze

        await service.batch_analyze([f"doc-{i}" for i in range(7)], ItemType.DOCUMENT, batch_size=3)

        assert peak == 3

    @pytest.mark.asyncio
    async def test_failures_isolated_per_item(self, service, mock_backend):
        """Test that one failing item does not affect the rest of its chunk."""
        def analyze(item_id, item_type):
            if item_id == "doc-bad":
                raise RuntimeError("corrupt record")
            return _raw_analysis(item_id, item_type)

        mock_backend.analyze_item_organization.side_effect = analyze

        result = await service.batch_analyze(["doc-1", "doc-bad", "doc-2"], ItemType.DOCUMENT)

        assert [a.item_id for a in result.successes] == ["doc-1", "doc-2"]
        assert len(result.failures) == 1
        assert result.failures[0].item_id == "doc-bad"
        assert result.failures[0].item_type == ItemType.DOCUMENT
        assert "Unable to analyze" in result.failures[0].error

    @pytest.mark.asyncio
    async def test_empty_input(self, service, mock_backend):
        result = await service.batch_analyze([], ItemType.DOCUMENT)

        assert result.succeeded == 0
        mock_backend.analyze_item_organization.assert_not_awaited()


class TestBatchApply:
    """Tests for batch_apply_organization."""

    @pytest.mark.asyncio
    async def test_pauses_between_chunks(self, service, sleep):
        """Test that 12 analyses run as chunks of 5 with a pause between chunks."""
        analyses = [
            OrganizationAnalysis(item_id=f"doc-{i}", item_type=ItemType.DOCUMENT)
            for i in range(12)
        ]

        result = await service.batch_apply_organization(analyses)

        assert sleep.await_count == 2
        sleep.assert_awaited_with(0.1)
        assert result.succeeded == 12

    @pytest.mark.asyncio
    async def test_single_chunk_has_no_pause(self, service, sleep):
        analyses = [OrganizationAnalysis(item_id="doc-1", item_type=ItemType.DOCUMENT)]

        await service.batch_apply_organization(analyses)

        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_custom_delay(self, mock_backend, sleep):
        service = OrganizationService(
            mock_backend,
            config=OrganizationServiceConfig(apply_batch_size=1, apply_batch_delay_seconds=0.5),
            sleep=sleep,
        )
        analyses = [
            OrganizationAnalysis(item_id=f"doc-{i}", item_type=ItemType.DOCUMENT)
            for i in range(3)
        ]

        await service.batch_apply_organization(analyses)

        assert [c.args for c in sleep.await_args_list] == [(0.5,), (0.5,)]

    @pytest.mark.asyncio
    async def test_failed_mutations_reported_as_failures(self, service, mock_backend):
        """Test that an item left unorganized is not counted as a success."""
        mock_backend.apply_tags_to_item.side_effect = RuntimeError("backend down")
        analyses = [
            OrganizationAnalysis(
                item_id="doc-1",
                item_type=ItemType.DOCUMENT,
                tag_suggestions=[TagSuggestion(tag="weaving", confidence=0.95)],
            ),
            OrganizationAnalysis(item_id="doc-2", item_type=ItemType.DOCUMENT),
        ]

        result = await service.batch_apply_organization(analyses)

        assert result.failed == 1
        assert result.succeeded == 1
        assert result.failures[0].item_id == "doc-1"
        assert result.failures[0].error == "apply tags: backend down"
        assert [a.item_id for a in result.successes] == ["doc-2"]
        assert service.get_item_status("doc-1", ItemType.DOCUMENT).state == ItemState.ANALYZED
        assert service.get_item_status("doc-2", ItemType.DOCUMENT).state == ItemState.ORGANIZED


# ========================================
# Configuration and learning
# ========================================

class TestConfiguration:
    """Tests for organization config caching."""

    @pytest.mark.asyncio
    async def test_config_cached(self, service, mock_backend):
        mock_backend.get_organization_config.return_value = {"auto_tagging_threshold": 0.9}

        first = await service.get_organization_config()
        second = await service.get_organization_config()

        assert first.auto_tagging_threshold == 0.9
        assert second == first
        assert mock_backend.get_organization_config.await_count == 1

    @pytest.mark.asyncio
    async def test_defaults_on_failure_not_cached(self, service, mock_backend):
        mock_backend.get_organization_config.side_effect = [RuntimeError("down"), {"learning_enabled": False}]

        fallback = await service.get_organization_config()
        recovered = await service.get_organization_config()

        assert fallback.learning_enabled is True
        assert recovered.learning_enabled is False

    @pytest.mark.asyncio
    async def test_update_clears_cache(self, service, mock_backend):
        mock_backend.update_organization_config.return_value = {"auto_tagging": False}

        await service.get_organization_config()
        updated = await service.update_organization_config({"auto_tagging": False})
        await service.get_organization_config()

        assert updated.auto_tagging is False
        assert mock_backend.get_organization_config.await_count == 2


class TestUserCorrections:
    """Tests for record_user_correction."""

    @pytest.mark.asyncio
    async def test_correction_recorded(self, service, mock_backend):
        suggestion = TagSuggestion(tag="weaving", confidence=0.7)

        await service.record_user_correction("doc-1", suggestion, "basketry")

        correction = mock_backend.record_user_correction.call_args.args[0]
        assert correction["item_id"] == "doc-1"
        assert correction["original_suggestion"]["tag"] == "weaving"
        assert correction["user_choice"] == "basketry"
        assert "timestamp" in correction

    @pytest.mark.asyncio
    async def test_skipped_when_learning_disabled(self, service, mock_backend):
        mock_backend.get_organization_config.return_value = {"learning_enabled": False}

        await service.record_user_correction("doc-1", TagSuggestion(tag="x", confidence=0.5), "y")

        mock_backend.record_user_correction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_backend_failure_swallowed(self, service, mock_backend):
        mock_backend.record_user_correction.side_effect = RuntimeError("write failed")

        await service.record_user_correction("doc-1", TagSuggestion(tag="x", confidence=0.5), "y")
