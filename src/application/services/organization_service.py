"""Organization Service.

Orchestrates smart organization of content items:
- Cached item analysis (tags, categories, cultural context, rule matches)
- Automatic application of confident suggestions and rule actions
- Organization rule management
- Batch analysis and application
- Per-item processing state and user-correction learning

Collaborators are injected; nothing here is a module-level singleton.

Usage:
    service = OrganizationService(backend)
    analysis = await service.analyze_item("doc-1", ItemType.DOCUMENT)
    applied = await service.apply_auto_organization("doc-1", ItemType.DOCUMENT, analysis)
"""

import asyncio
import logging
import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Union, assert_never

from application.rules.organization_rules import OrganizationRulesEngine
from application.services.suggestion_engine import SuggestionEngine
from domain.cultural_models import ContentItem, CulturalMetadata, CulturalMetadataSuggestion, ItemType
from domain.errors import OrganizationServiceError
from domain.organization_backend import OrganizationBackend
from domain.organization_models import (
    AddTagAction,
    AppliedOrganization,
    BatchFailure,
    BatchResult,
    CategorySuggestion,
    ItemState,
    ItemStatus,
    MoveToCollectionAction,
    OrganizationAction,
    OrganizationAnalysis,
    OrganizationRule,
    OrganizationRuleMatch,
    OrganizationRuleUpdate,
    OrganizationStatistics,
    RequestValidationAction,
    SetCategoryAction,
    SetCulturalContextAction,
    SmartOrganizationConfig,
    TagSuggestion,
)
from infrastructure.ttl_cache import TTLCache

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, str]

_CONFIG_KEY = "organization_config"


@dataclass
class OrganizationServiceConfig:
    """Configuration for the Organization Service."""

    analysis_cache_ttl_seconds: float = 10 * 60
    config_cache_ttl_seconds: float = 10 * 60
    cache_max_entries: Optional[int] = TTLCache.DEFAULT_MAX_ENTRIES

    analyze_batch_size: int = 10
    apply_batch_size: int = 5
    apply_batch_delay_seconds: float = 0.1

    # Cultural metadata is written only above this overall confidence
    cultural_metadata_confidence: float = 0.7
    # Categories must be at least this appropriate to be applied
    category_appropriateness: float = 0.8


class OrganizationService:
    """Smart organization orchestrator over an OrganizationBackend."""

    def __init__(
        self,
        backend: OrganizationBackend,
        suggestion_engine: Optional[SuggestionEngine] = None,
        rules_engine: Optional[OrganizationRulesEngine] = None,
        config: Optional[OrganizationServiceConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Args:
            backend: Storage and inference backend
            suggestion_engine: Tag/category suggestion engine
            rules_engine: Local rule evaluator
            config: Cache, batch and threshold settings
            clock: Monotonic time source for the caches
            sleep: Awaitable delay used between apply batches
        """
        self.backend = backend
        self.suggestions = suggestion_engine or SuggestionEngine(backend)
        self.rules_engine = rules_engine or OrganizationRulesEngine()
        self.config = config or OrganizationServiceConfig()
        self._sleep = sleep

        self._analysis_cache: TTLCache[OrganizationAnalysis] = TTLCache(
            self.config.analysis_cache_ttl_seconds,
            self.config.cache_max_entries,
            clock=clock,
            name="analyses",
        )
        self._config_cache: TTLCache[SmartOrganizationConfig] = TTLCache(
            self.config.config_cache_ttl_seconds,
            max_entries=1,
            clock=clock,
            name="config",
        )
        # Bounded like the analysis cache; evicted items read as unanalyzed
        self._status: "OrderedDict[CacheKey, ItemStatus]" = OrderedDict()

    # ========================================
    # Analysis
    # ========================================

    async def analyze_item(
        self,
        item_id: str,
        item_type: Union[ItemType, str],
        force: bool = False,
    ) -> OrganizationAnalysis:
        """Analyze an item for organization, served from cache when fresh.

        Args:
            item_id: Item to analyze
            item_type: document or collection
            force: Skip the cache and re-analyze

        Raises:
            OrganizationServiceError: If the backend analysis fails
        """
        item_type = ItemType(item_type)
        key = (item_type.value, item_id)

        if not force:
            cached = self._analysis_cache.get(key)
            if cached is not None:
                logger.debug(f"Analysis cache hit for {item_type.value} {item_id}")
                return cached.model_copy(deep=True)

        previous = self.get_item_status(item_id, item_type).state
        self._set_state(key, ItemState.ANALYZING)

        try:
            raw = await self.backend.analyze_item_organization(item_id, item_type.value)
            analysis = OrganizationAnalysis.model_validate(raw)
        except Exception as e:
            logger.error(f"Failed to analyze {item_type.value} {item_id}: {e}")
            self._set_state(key, previous, error=str(e))
            raise OrganizationServiceError("Unable to analyze item for organization") from e

        enhanced = self.suggestions.enhance_analysis(analysis)
        # Callers get their own copy; the cached entry is never handed out
        self._analysis_cache.set(key, enhanced.model_copy(deep=True))
        self._set_state(key, ItemState.ANALYZED)
        return enhanced

    async def generate_tag_suggestions(
        self,
        content: str,
        cultural_metadata: Optional[CulturalMetadata] = None,
    ) -> List[TagSuggestion]:
        return await self.suggestions.generate_tag_suggestions(content, cultural_metadata)

    async def generate_category_suggestions(
        self,
        content: str,
        cultural_metadata: Optional[CulturalMetadata] = None,
    ) -> List[CategorySuggestion]:
        return await self.suggestions.generate_category_suggestions(content, cultural_metadata)

    async def analyze_cultural_context(self, content: str) -> CulturalMetadataSuggestion:
        return await self.suggestions.analyze_cultural_context(content)

    # ========================================
    # Organization
    # ========================================

    async def apply_auto_organization(
        self,
        item_id: str,
        item_type: Union[ItemType, str],
        analysis: Optional[OrganizationAnalysis] = None,
    ) -> AppliedOrganization:
        """Apply confident suggestions and rule actions to an item.

        Each mutation is attempted independently; failures are logged and
        recorded on the result without stopping the remaining steps.

        Raises:
            OrganizationServiceError: If no analysis was given and analyzing fails
        """
        item_type = ItemType(item_type)
        key = (item_type.value, item_id)

        config = await self.get_organization_config()
        if analysis is None:
            analysis = await self.analyze_item(item_id, item_type)

        self._set_state(key, ItemState.ORGANIZING)
        result = AppliedOrganization(item_id=item_id, item_type=item_type)

        if config.auto_tagging:
            tags = [
                t.tag for t in analysis.tag_suggestions
                if t.confidence >= config.auto_tagging_threshold
            ]
            if tags and await self._attempt(
                result, "apply tags",
                self.backend.apply_tags_to_item(item_id, item_type.value, tags),
            ):
                result.tags_applied = tags

        if config.smart_categorization:
            categories = [
                c.category for c in analysis.category_suggestions
                if c.confidence >= config.categorization_threshold
                and (c.cultural_appropriateness or 0.0) > self.config.category_appropriateness
            ]
            if categories and await self._attempt(
                result, "apply categories",
                self.backend.apply_categories_to_item(item_id, item_type.value, categories),
            ):
                result.categories_applied = categories

        if config.cultural_analysis and analysis.overall_confidence > self.config.cultural_metadata_confidence:
            payload = analysis.cultural_suggestions.to_payload()
            if payload and await self._attempt(
                result, "apply cultural metadata",
                self.backend.apply_cultural_metadata_to_item(item_id, item_type.value, payload),
            ):
                result.cultural_metadata_applied = True

        for match in analysis.rule_matches:
            for action in match.auto_executable_actions():
                if await self._attempt(
                    result, f"execute {action.type} action",
                    self.execute_action(item_id, item_type, action),
                ):
                    result.actions_executed.append(action.type)

        if result.errors:
            self._set_state(key, ItemState.ANALYZED, error="; ".join(result.errors))
        else:
            self._set_state(key, ItemState.ORGANIZED)

        logger.info(
            f"Auto-organized {item_type.value} {item_id}: {len(result.tags_applied)} tags, "
            f"{len(result.categories_applied)} categories, {len(result.actions_executed)} actions, "
            f"{len(result.errors)} errors"
        )
        return result

    async def execute_action(
        self,
        item_id: str,
        item_type: ItemType,
        action: OrganizationAction,
    ) -> None:
        """Perform one organization action against the backend."""
        match action:
            case AddTagAction(value=tag):
                await self.backend.apply_tags_to_item(item_id, item_type.value, [tag])
            case SetCategoryAction(value=category):
                await self.backend.apply_categories_to_item(item_id, item_type.value, [category])
            case MoveToCollectionAction(value=collection_id):
                await self.backend.move_item_to_collection(item_id, item_type.value, collection_id)
            case SetCulturalContextAction(value=context, educational_context=educational):
                await self.backend.apply_cultural_metadata_to_item(
                    item_id,
                    item_type.value,
                    {"cultural_context": context, "educational_context": educational or context},
                )
            case RequestValidationAction(value=reason):
                await self.backend.request_cultural_validation(item_id, item_type.value, reason)
            case _:
                assert_never(action)

    async def _attempt(self, result: AppliedOrganization, description: str, operation: Awaitable[Any]) -> bool:
        try:
            await operation
            return True
        except Exception as e:
            logger.error(f"Failed to {description} for {result.item_type.value} {result.item_id}: {e}")
            result.errors.append(f"{description}: {e}")
            return False

    async def apply_organization_rules(
        self,
        item_id: str,
        item_type: Union[ItemType, str],
        rules: Sequence[OrganizationRule],
    ) -> List[OrganizationRuleMatch]:
        """Evaluate rules against an item locally.

        Raises:
            OrganizationServiceError: If the item cannot be loaded
        """
        item_type = ItemType(item_type)
        try:
            raw = await self.backend.get_item(item_id)
        except Exception as e:
            logger.error(f"Failed to load {item_type.value} {item_id} for rules: {e}")
            raise OrganizationServiceError("Unable to apply organization rules") from e

        if not raw:
            raise OrganizationServiceError(f"Item {item_id} not found")

        item = ContentItem.model_validate(raw)
        return self.rules_engine.apply_rules(item, rules)

    # ========================================
    # Rule management
    # ========================================

    async def create_organization_rule(self, rule: OrganizationRule) -> OrganizationRule:
        """Validate locally, assign an id and persist.

        Raises:
            RuleValidationError: If the rule fails local validation
            OrganizationServiceError: If the backend call fails
        """
        self.rules_engine.validate_rule(rule.condition, rule.action)
        payload = rule.model_copy(update={"id": str(uuid.uuid4())}).model_dump(mode="json")

        try:
            created = await self.backend.create_organization_rule(payload)
        except Exception as e:
            logger.error(f"Failed to create organization rule: {e}")
            raise OrganizationServiceError("Unable to create organization rule") from e

        return OrganizationRule.model_validate({**payload, **(created or {})})

    async def update_organization_rule(
        self,
        rule_id: str,
        updates: OrganizationRuleUpdate,
    ) -> OrganizationRule:
        if updates.condition is not None or updates.action is not None:
            self.rules_engine.validate_rule(updates.condition, updates.action)

        try:
            updated = await self.backend.update_organization_rule(
                rule_id, updates.model_dump(mode="json", exclude_none=True)
            )
            return OrganizationRule.model_validate(updated)
        except Exception as e:
            logger.error(f"Failed to update organization rule {rule_id}: {e}")
            raise OrganizationServiceError("Unable to update organization rule") from e

    async def delete_organization_rule(self, rule_id: str) -> None:
        try:
            await self.backend.delete_organization_rule(rule_id)
        except Exception as e:
            logger.error(f"Failed to delete organization rule {rule_id}: {e}")
            raise OrganizationServiceError("Unable to delete organization rule") from e

    async def get_organization_rules(self, collection_id: Optional[str] = None) -> List[OrganizationRule]:
        try:
            raw = await self.backend.get_organization_rules(collection_id)
            return [OrganizationRule.model_validate(r) for r in raw]
        except Exception as e:
            logger.error(f"Failed to load organization rules: {e}")
            raise OrganizationServiceError("Unable to load organization rules") from e

    # ========================================
    # Batch processing
    # ========================================

    async def batch_analyze(
        self,
        item_ids: Sequence[str],
        item_type: Union[ItemType, str],
        batch_size: Optional[int] = None,
    ) -> BatchResult:
        """Analyze items in sequential chunks, concurrently within a chunk.

        A failing item is recorded in ``failures`` and never affects the
        other items.
        """
        item_type = ItemType(item_type)
        size = batch_size or self.config.analyze_batch_size
        result = BatchResult()

        for chunk in _chunks(item_ids, size):
            outcomes = await asyncio.gather(
                *(self.analyze_item(item_id, item_type) for item_id in chunk),
                return_exceptions=True,
            )
            self._collect(result, zip(chunk, outcomes), item_type)

        logger.info(f"Batch analysis finished: {result.succeeded} succeeded, {result.failed} failed")
        return result

    async def batch_apply_organization(self, analyses: Sequence[OrganizationAnalysis]) -> BatchResult:
        """Apply analyses in chunks with a short pause between chunks.

        An item whose organization recorded any error counts as a failure,
        matching the analyzed state it is left in.
        """
        size = self.config.apply_batch_size
        result = BatchResult()

        for index, chunk in enumerate(_chunks(analyses, size)):
            if index > 0:
                await self._sleep(self.config.apply_batch_delay_seconds)

            outcomes = await asyncio.gather(
                *(self.apply_auto_organization(a.item_id, a.item_type, a) for a in chunk),
                return_exceptions=True,
            )
            for analysis, outcome in zip(chunk, outcomes):
                if isinstance(outcome, AppliedOrganization) and outcome.errors:
                    # Item was left in the analyzed state
                    error = "; ".join(outcome.errors)
                    logger.warning(f"Batch item {analysis.item_id} was not organized: {error}")
                    result.failures.append(
                        BatchFailure(item_id=analysis.item_id, item_type=analysis.item_type, error=error)
                    )
                    continue
                self._collect(result, [(analysis.item_id, outcome)], analysis.item_type)

        logger.info(f"Batch organization finished: {result.succeeded} succeeded, {result.failed} failed")
        return result

    @staticmethod
    def _collect(result: BatchResult, outcomes, item_type: ItemType) -> None:
        for item_id, outcome in outcomes:
            if isinstance(outcome, Exception):
                logger.warning(f"Batch item {item_id} failed: {outcome}")
                result.failures.append(BatchFailure(item_id=item_id, item_type=item_type, error=str(outcome)))
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                result.successes.append(outcome)

    # ========================================
    # Configuration
    # ========================================

    async def get_organization_config(self) -> SmartOrganizationConfig:
        """Current settings; defaults when the backend cannot be read."""
        cached = self._config_cache.get(_CONFIG_KEY)
        if cached is not None:
            return cached.model_copy(deep=True)

        try:
            raw = await self.backend.get_organization_config()
            config = SmartOrganizationConfig.model_validate(raw or {})
        except Exception as e:
            logger.error(f"Failed to load organization config, using defaults: {e}")
            return SmartOrganizationConfig()

        self._config_cache.set(_CONFIG_KEY, config.model_copy(deep=True))
        return config

    async def update_organization_config(self, updates: Dict[str, Any]) -> SmartOrganizationConfig:
        try:
            raw = await self.backend.update_organization_config(updates)
            config = SmartOrganizationConfig.model_validate(raw or {})
        except Exception as e:
            logger.error(f"Failed to update organization config: {e}")
            raise OrganizationServiceError("Unable to update organization config") from e

        self._config_cache.clear()
        return config

    # ========================================
    # Learning and state
    # ========================================

    async def record_user_correction(
        self,
        item_id: str,
        original_suggestion: Union[TagSuggestion, CategorySuggestion],
        user_choice: str,
    ) -> None:
        """Record a user's correction of a suggestion; never raises."""
        config = await self.get_organization_config()
        if not config.learning_enabled:
            logger.debug(f"Learning disabled, correction for {item_id} not recorded")
            return

        correction = {
            "item_id": item_id,
            "original_suggestion": original_suggestion.model_dump(mode="json"),
            "user_choice": user_choice,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        try:
            await self.backend.record_user_correction(correction)
        except Exception as e:
            logger.error(f"Failed to record user correction for {item_id}: {e}")

    async def get_organization_statistics(self) -> OrganizationStatistics:
        try:
            raw = await self.backend.get_organization_statistics()
            return OrganizationStatistics.model_validate(raw or {})
        except Exception as e:
            logger.error(f"Failed to get organization statistics: {e}")
            raise OrganizationServiceError("Unable to load organization statistics") from e

    def get_item_status(self, item_id: str, item_type: Union[ItemType, str]) -> ItemStatus:
        return self._status.get((ItemType(item_type).value, item_id), ItemStatus())

    def _set_state(self, key: CacheKey, state: ItemState, error: Optional[str] = None) -> None:
        self._status[key] = ItemStatus(state=state, last_error=error)
        self._status.move_to_end(key)

        limit = self.config.cache_max_entries
        if limit is not None:
            while len(self._status) > limit:
                self._status.popitem(last=False)


def _chunks(values: Sequence[Any], size: int):
    for start in range(0, len(values), size):
        yield values[start:start + size]
