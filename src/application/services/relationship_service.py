"""Relationship Graph Service.

Manages typed relationships between content items and analyzes the graph
they form:
- Relationship validation, creation and maintenance
- Culturally filtered relationship suggestions
- Bounded-depth network analysis (clusters, community networks, statistics)
- Educational pathways through related content

Relationship lists are cached per item and network analyses per
``(item_id, depth)``; any mutation invalidates the affected entries.

Usage:
    service = RelationshipGraphService(backend)
    relationship = await service.create_relationship("doc-1", "doc-2", "translation")
    network = await service.analyze_relationship_network("doc-1", depth=2)
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import networkx as nx

from application.services.organization_scoring import (
    calculate_cluster_significance,
    calculate_community_participation,
    calculate_cultural_diversity,
    calculate_cultural_significance,
    calculate_educational_value,
    calculate_relationship_strength,
    clamp,
    is_bidirectional,
)
from domain.cultural_models import ContentItem, CulturalSensitivityLevel
from domain.errors import InvalidRelationshipError, OrganizationServiceError
from domain.organization_backend import OrganizationBackend
from domain.relationship_models import (
    PATHWAY_LEARNING_ORDER,
    CommunityNetwork,
    CulturalCluster,
    DifficultyLevel,
    EducationalPathway,
    NetworkStatistics,
    Relationship,
    RelationshipNetwork,
    RelationshipSuggestion,
    RelationshipType,
    RelationshipValidation,
    UsageStats,
    ValidationStatus,
)
from infrastructure.ttl_cache import TTLCache

logger = logging.getLogger(__name__)

CULTURAL_VARIANT_EDUCATIONAL_BONUS = 0.2
DEFAULT_NETWORK_HEALTH = 0.5

# Suggestion filtering thresholds
HIGH_CONFIDENCE = 0.8
HIGH_APPROPRIATENESS = 0.8
MIN_CONFIDENCE = 0.5
COMMUNITY_VALIDATION_APPROPRIATENESS = 0.7


@dataclass
class RelationshipServiceConfig:
    """Configuration for the Relationship Graph Service."""

    cache_ttl_seconds: float = 15 * 60
    cache_max_entries: Optional[int] = TTLCache.DEFAULT_MAX_ENTRIES
    default_network_depth: int = 3
    minutes_per_pathway_item: int = 15


class RelationshipGraphService:
    """Relationship CRUD, discovery, network analysis and pathways."""

    def __init__(
        self,
        backend: OrganizationBackend,
        config: Optional[RelationshipServiceConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.backend = backend
        self.config = config or RelationshipServiceConfig()
        self._relationship_cache: TTLCache[List[Relationship]] = TTLCache(
            self.config.cache_ttl_seconds,
            self.config.cache_max_entries,
            clock=clock,
            name="relationships",
        )
        self._network_cache: TTLCache[RelationshipNetwork] = TTLCache(
            self.config.cache_ttl_seconds,
            self.config.cache_max_entries,
            clock=clock,
            name="networks",
        )

    # ========================================
    # Relationship CRUD
    # ========================================

    async def create_relationship(
        self,
        source_id: str,
        target_id: str,
        relationship_type: RelationshipType,
        cultural_context: Optional[str] = None,
    ) -> Relationship:
        """Validate and persist a new relationship.

        Raises:
            InvalidRelationshipError: If validation rejects the relationship
            OrganizationServiceError: If the backend call fails
        """
        relationship_type = RelationshipType(relationship_type)
        validation = await self.validate_relationship(source_id, target_id, relationship_type)
        if not validation.valid:
            raise InvalidRelationshipError(validation.issues)

        if validation.requires_community_approval:
            source = await self._get_item(source_id)
            protocols = await self.get_cultural_protocols(
                relationship_type, (source.cultural_origin if source else None) or ""
            )
            logger.info(
                f"Relationship {source_id} -> {target_id} ({relationship_type.value}) "
                f"pending community approval; {len(protocols)} protocol(s) apply"
            )

        record = {
            "source_id": source_id,
            "target_id": target_id,
            "relationship_type": relationship_type.value,
            "strength": calculate_relationship_strength(relationship_type, validation.educational_value),
            "bidirectional": is_bidirectional(relationship_type),
            "cultural_context": cultural_context,
            "educational_value": validation.educational_value,
            "cultural_significance": calculate_cultural_significance(relationship_type),
            "validation_status": (
                ValidationStatus.PENDING if validation.requires_community_approval
                else ValidationStatus.APPROVED
            ).value,
        }

        try:
            created = await self.backend.create_collection_relationship(record)
            relationship = Relationship.model_validate({**record, **(created or {})})
        except Exception as e:
            logger.error(f"Failed to create relationship {source_id} -> {target_id}: {e}")
            raise OrganizationServiceError("Unable to create collection relationship") from e

        self._invalidate(source_id, target_id)
        logger.info(f"Created relationship {relationship.id} ({relationship_type.value})")
        return relationship

    async def update_relationship(self, relationship_id: str, updates: Dict[str, Any]) -> Relationship:
        try:
            updated = await self.backend.update_collection_relationship(relationship_id, updates)
            relationship = Relationship.model_validate(updated)
        except Exception as e:
            logger.error(f"Failed to update relationship {relationship_id}: {e}")
            raise OrganizationServiceError("Unable to update collection relationship") from e

        # The update may have moved either endpoint
        self._clear_caches()
        return relationship

    async def delete_relationship(self, relationship_id: str) -> None:
        try:
            await self.backend.delete_collection_relationship(relationship_id)
        except Exception as e:
            logger.error(f"Failed to delete relationship {relationship_id}: {e}")
            raise OrganizationServiceError("Unable to delete collection relationship") from e

        # Endpoints are unknown once the edge is gone
        self._clear_caches()

    async def get_relationships(self, item_id: str) -> List[Relationship]:
        """Relationships touching an item, enhanced and cached.

        Raises:
            OrganizationServiceError: If the backend call fails
        """
        cached = self._relationship_cache.get(item_id)
        if cached is not None:
            return _copies(cached)

        try:
            raw = await self.backend.get_collection_relationships(item_id)
            relationships = [Relationship.model_validate(r) for r in raw]
        except Exception as e:
            logger.error(f"Failed to get relationships for {item_id}: {e}")
            raise OrganizationServiceError("Unable to get collection relationships") from e

        enhanced = [self.enhance_relationship(rel) for rel in relationships]
        # Callers get their own copies; cached entries are never handed out
        self._relationship_cache.set(item_id, _copies(enhanced))
        return enhanced

    @staticmethod
    def enhance_relationship(relationship: Relationship) -> Relationship:
        return relationship.model_copy(update={
            "educational_value": calculate_educational_value(relationship),
            "cultural_significance": calculate_cultural_significance(relationship.relationship_type),
            "usage_stats": UsageStats(),
        })

    def _invalidate(self, *item_ids: str) -> None:
        for item_id in item_ids:
            self._relationship_cache.invalidate(item_id)
        self._network_cache.clear()

    def _clear_caches(self) -> None:
        self._relationship_cache.clear()
        self._network_cache.clear()

    # ========================================
    # Discovery
    # ========================================

    async def suggest_relationships(self, item_id: str) -> List[RelationshipSuggestion]:
        suggestions = await self._fetch_suggestions(
            self.backend.suggest_collection_relationships, item_id, "suggest"
        )
        return self.filter_culturally_appropriate_suggestions(suggestions)

    async def optimize_relationships(self, item_id: str) -> List[RelationshipSuggestion]:
        suggestions = await self._fetch_suggestions(
            self.backend.optimize_collection_relationships, item_id, "optimize"
        )
        return self.filter_culturally_appropriate_suggestions(suggestions)

    async def _fetch_suggestions(self, call, item_id: str, verb: str) -> List[RelationshipSuggestion]:
        try:
            raw = await call(item_id)
            return [RelationshipSuggestion.model_validate(s) for s in raw]
        except Exception as e:
            logger.error(f"Failed to {verb} relationships for {item_id}: {e}")
            raise OrganizationServiceError(f"Unable to {verb} collection relationships") from e

    @staticmethod
    def filter_culturally_appropriate_suggestions(
        suggestions: Sequence[RelationshipSuggestion],
    ) -> List[RelationshipSuggestion]:
        """Drop weak suggestions and flag ones that need community input.

        Confident, appropriate suggestions are always kept. Others survive
        when confidence exceeds 0.5, and those with appropriateness below 0.7
        are marked for community validation.
        """
        kept = []
        for suggestion in suggestions:
            updates: Dict[str, Any] = {"bidirectional": is_bidirectional(suggestion.relationship_type)}

            if (
                suggestion.confidence > HIGH_CONFIDENCE
                and suggestion.cultural_appropriateness > HIGH_APPROPRIATENESS
            ):
                kept.append(suggestion.model_copy(update=updates))
                continue

            if suggestion.cultural_appropriateness < COMMUNITY_VALIDATION_APPROPRIATENESS:
                updates["requires_community_validation"] = True
            if suggestion.confidence > MIN_CONFIDENCE:
                kept.append(suggestion.model_copy(update=updates))

        return kept

    async def find_similar_items(self, item_id: str, limit: int = 10) -> List[ContentItem]:
        try:
            raw = await self.backend.find_similar_collections(item_id, limit)
            return [ContentItem.model_validate(r) for r in raw][:limit]
        except Exception as e:
            logger.error(f"Failed to find items similar to {item_id}: {e}")
            raise OrganizationServiceError("Unable to find similar collections") from e

    async def discover_cultural_variants(self, item_id: str) -> List[ContentItem]:
        try:
            raw = await self.backend.discover_cultural_variants(item_id)
            return [ContentItem.model_validate(r) for r in raw]
        except Exception as e:
            logger.error(f"Failed to discover cultural variants for {item_id}: {e}")
            raise OrganizationServiceError("Unable to discover cultural variants") from e

    async def find_community_responses(self, item_id: str) -> List[ContentItem]:
        try:
            raw = await self.backend.find_community_responses(item_id)
            return [ContentItem.model_validate(r) for r in raw]
        except Exception as e:
            logger.error(f"Failed to find community responses for {item_id}: {e}")
            raise OrganizationServiceError("Unable to find community responses") from e

    # ========================================
    # Network analysis
    # ========================================

    async def analyze_relationship_network(
        self,
        item_id: str,
        depth: Optional[int] = None,
    ) -> RelationshipNetwork:
        """Traverse the graph around an item and summarize it.

        Args:
            item_id: Central item
            depth: Maximum hops from the central item

        Raises:
            OrganizationServiceError: If the item or its relationships cannot be read
        """
        depth = self.config.default_network_depth if depth is None else depth
        key = (item_id, depth)
        cached = self._network_cache.get(key)
        if cached is not None:
            return cached.model_copy(deep=True)

        try:
            network = await self._build_network(item_id, depth)
        except OrganizationServiceError:
            raise
        except Exception as e:
            logger.error(f"Failed to analyze relationship network for {item_id}: {e}")
            raise OrganizationServiceError("Unable to analyze relationship network") from e

        self._network_cache.set(key, network.model_copy(deep=True))
        logger.info(
            f"Analyzed network for {item_id} (depth {depth}): "
            f"{len(network.items)} items, {network.network_stats.total_relationships} relationships"
        )
        return network

    async def _build_network(self, item_id: str, depth: int) -> RelationshipNetwork:
        center = await self._get_item(item_id)
        if center is None:
            raise OrganizationServiceError(f"Item {item_id} not found")

        items: Dict[str, ContentItem] = {item_id: center}
        hops: Dict[str, int] = {item_id: 0}
        graph = nx.Graph()
        graph.add_node(item_id)

        direct: List[Relationship] = []
        indirect: List[Relationship] = []
        seen_edges = set()
        frontier = [item_id]

        for hop in range(1, depth + 1):
            if not frontier:
                break

            edge_lists = await asyncio.gather(*(self.get_relationships(node) for node in frontier))
            next_frontier: List[str] = []

            for node, relationships in zip(frontier, edge_lists):
                for rel in relationships:
                    neighbor = rel.other_end(node)
                    edge_key = _edge_key(rel)
                    if neighbor == node or edge_key in seen_edges:
                        continue
                    seen_edges.add(edge_key)

                    (direct if hop == 1 else indirect).append(rel)
                    graph.add_edge(node, neighbor, strength=rel.strength)

                    if neighbor not in hops:
                        hops[neighbor] = hop
                        next_frontier.append(neighbor)
                        if rel.target_item is not None and rel.target_item.id == neighbor:
                            items[neighbor] = rel.target_item

            await self._fill_missing_items(next_frontier, items)
            frontier = next_frontier

        ordered_items = [items[node] for node in hops if node in items]
        clusters = self._build_cultural_clusters(ordered_items, direct + indirect, graph, hops)
        communities = await self._build_community_networks(item_id, ordered_items, direct + indirect)

        stats = NetworkStatistics(
            total_relationships=len(direct) + len(indirect),
            cultural_diversity=calculate_cultural_diversity(
                items[rel.other_end(item_id)].cultural_origin
                for rel in direct
                if rel.other_end(item_id) in items
            ),
            network_density=nx.density(graph),
            average_path_length=_mean_path_length(graph, item_id),
            community_participation=calculate_community_participation(direct),
            educational_pathways=sum(len(c.educational_pathways) for c in clusters),
        )
        for rel in direct + indirect:
            stats.relationship_types[rel.relationship_type] += 1

        return RelationshipNetwork(
            central_item=center,
            direct_relationships=direct,
            indirect_relationships=indirect,
            cultural_clusters=clusters,
            community_networks=communities,
            network_stats=stats,
            items=ordered_items,
            hop_distances=hops,
        )

    async def _fill_missing_items(self, item_ids: List[str], items: Dict[str, ContentItem]) -> None:
        missing = [i for i in item_ids if i not in items]
        if not missing:
            return
        fetched = await asyncio.gather(*(self._get_item(i) for i in missing))
        for item_id, item in zip(missing, fetched):
            if item is not None:
                items[item_id] = item
            else:
                logger.warning(f"Related item {item_id} could not be loaded")

    def _build_cultural_clusters(
        self,
        items: List[ContentItem],
        relationships: List[Relationship],
        graph: nx.Graph,
        hops: Dict[str, int],
    ) -> List[CulturalCluster]:
        by_origin: Dict[str, List[ContentItem]] = {}
        for item in items:
            if item.cultural_origin:
                by_origin.setdefault(item.cultural_origin, []).append(item)

        discovery = {item.id: index for index, item in enumerate(items)}
        clusters = []
        for origin, members in by_origin.items():
            center = min(members, key=lambda i: (-graph.degree(i.id), discovery[i.id]))
            member_ids = {m.id for m in members}
            incident = [
                r for r in relationships
                if r.source_id in member_ids or r.target_id in member_ids
            ]

            protocols: List[str] = []
            for member in members:
                for protocol in member.cultural_metadata.traditional_protocols:
                    if protocol not in protocols:
                        protocols.append(protocol)

            pathways = []
            if len(members) > 1:
                sequence = sorted(members, key=lambda i: (hops.get(i.id, 0), discovery[i.id]))
                pathways.append(self.enhance_educational_pathway(self._pathway_from_sequence(
                    pathway_id=f"pathway_cluster_{origin}",
                    name=f"{origin} cultural collection",
                    sequence=sequence,
                    objectives=[f"Explore related {origin} content together"],
                )))

            clusters.append(CulturalCluster(
                id=f"cluster_{origin}",
                cultural_origin=origin,
                items=members,
                center_item=center,
                cultural_significance=calculate_cluster_significance(incident),
                educational_pathways=pathways,
                traditional_protocols=protocols,
            ))
        return clusters

    async def _build_community_networks(
        self,
        item_id: str,
        items: List[ContentItem],
        relationships: List[Relationship],
    ) -> List[CommunityNetwork]:
        by_community: Dict[str, List[ContentItem]] = {}
        for item in items:
            community_id = item.cultural_metadata.community_id
            if community_id:
                by_community.setdefault(community_id, []).append(item)
        if not by_community:
            return []

        known = await self._known_communities(item_id)
        networks = []
        for community_id, members in by_community.items():
            member_ids = {m.id for m in members}
            internal = [
                r for r in relationships
                if r.source_id in member_ids and r.target_id in member_ids
            ]
            health = sum(r.strength for r in internal) / len(internal) if internal else 0.0
            info = known.get(community_id, {})
            networks.append(CommunityNetwork(
                id=f"community_{community_id}",
                community_id=community_id,
                community_name=info.get("community_name") or community_id,
                items=members,
                relationships=internal,
                cultural_authorities=info.get("cultural_authorities") or [],
                health_score=clamp(health),
            ))
        return networks

    async def _known_communities(self, item_id: str) -> Dict[str, Dict[str, Any]]:
        """Community names and authorities as recorded by the backend."""
        try:
            record = await self.backend.analyze_relationship_network(
                item_id, self.config.default_network_depth
            )
        except Exception as e:
            logger.warning(f"Community details unavailable for {item_id}: {e}")
            return {}

        known = {}
        for entry in (record or {}).get("community_networks") or []:
            if isinstance(entry, dict) and entry.get("community_id"):
                known[entry["community_id"]] = entry
        return known

    async def get_cultural_clusters(self, cultural_origin: Optional[str] = None) -> List[CulturalCluster]:
        try:
            raw = await self.backend.get_cultural_clusters(cultural_origin)
            return [CulturalCluster.model_validate(r) for r in raw]
        except Exception as e:
            logger.error(f"Failed to get cultural clusters: {e}")
            raise OrganizationServiceError("Unable to get cultural clusters") from e

    async def get_community_networks(self, community_id: Optional[str] = None) -> List[CommunityNetwork]:
        try:
            raw = await self.backend.get_community_networks(community_id)
            return [CommunityNetwork.model_validate(r) for r in raw]
        except Exception as e:
            logger.error(f"Failed to get community networks: {e}")
            raise OrganizationServiceError("Unable to get community networks") from e

    async def get_traditional_hierarchies(self, cultural_origin: str) -> List[Dict[str, Any]]:
        try:
            return list(await self.backend.get_traditional_hierarchies(cultural_origin))
        except Exception as e:
            logger.error(f"Failed to get traditional hierarchies for {cultural_origin}: {e}")
            raise OrganizationServiceError("Unable to get traditional hierarchies") from e

    # ========================================
    # Educational pathways
    # ========================================

    async def generate_educational_pathways(self, item_id: str) -> List[EducationalPathway]:
        """Backend pathways plus one derived from the item's relationships.

        Raises:
            OrganizationServiceError: If the backend pathways cannot be read
        """
        try:
            raw = await self.backend.generate_educational_pathways(item_id)
            pathways = [EducationalPathway.model_validate(p) for p in raw]
        except Exception as e:
            logger.error(f"Failed to generate educational pathways for {item_id}: {e}")
            raise OrganizationServiceError("Unable to generate educational pathways") from e

        enhanced = [self.enhance_educational_pathway(p) for p in pathways]

        try:
            network = await self.analyze_relationship_network(item_id)
        except OrganizationServiceError as e:
            logger.warning(f"Relationship pathway skipped for {item_id}: {e}")
            return enhanced

        local = self.build_relationship_pathway(network)
        if local is not None:
            sequence = [i.id for i in local.item_sequence]
            if not any([i.id for i in p.item_sequence] == sequence for p in enhanced):
                enhanced.append(local)
        return enhanced

    def build_relationship_pathway(self, network: RelationshipNetwork) -> Optional[EducationalPathway]:
        """Order the network's items into a learning sequence.

        Items closer to the center come first; within a hop, by the learning
        order of the relationship kind that reached them, then strongest
        relationship first.
        """
        center = network.central_item
        items = {item.id: item for item in network.items}
        hops = network.hop_distances

        reached_by: Dict[str, Tuple[int, int, float, int]] = {}
        for index, rel in enumerate(network.relationships):
            near, far = rel.source_id, rel.target_id
            if hops.get(near, 0) > hops.get(far, 0):
                near, far = far, near
            if far == center.id or far in reached_by or far not in items:
                continue
            reached_by[far] = (
                hops.get(far, 0),
                PATHWAY_LEARNING_ORDER.get(rel.relationship_type, len(PATHWAY_LEARNING_ORDER)),
                -rel.strength,
                index,
            )

        if not reached_by:
            return None

        ordered = sorted(reached_by, key=lambda item_id: reached_by[item_id])
        title = center.title or center.id
        pathway = self._pathway_from_sequence(
            pathway_id=f"pathway_{center.id}_relationships",
            name=f"Exploring {title}",
            sequence=[center] + [items[i] for i in ordered],
            objectives=[f"Understand the content connected to {title}"],
        )
        return self.enhance_educational_pathway(pathway)

    def _pathway_from_sequence(
        self,
        pathway_id: str,
        name: str,
        sequence: List[ContentItem],
        objectives: List[str],
    ) -> EducationalPathway:
        return EducationalPathway(
            id=pathway_id,
            name=name,
            item_sequence=sequence,
            learning_objectives=objectives,
            estimated_time=len(sequence) * self.config.minutes_per_pathway_item,
            difficulty_level=_difficulty_for_length(len(sequence)),
        )

    @staticmethod
    def enhance_educational_pathway(pathway: EducationalPathway) -> EducationalPathway:
        """Add cultural learning goals and requirements from the pathway's items."""
        goals = list(pathway.cultural_learning_goals)
        requirements = list(pathway.cultural_requirements)

        for item in pathway.item_sequence:
            if item.cultural_origin:
                goal = f"Learn about {item.cultural_origin} cultural context"
                if goal not in goals:
                    goals.append(goal)
            for protocol in item.cultural_metadata.traditional_protocols:
                if protocol not in requirements:
                    requirements.append(protocol)

        return pathway.model_copy(update={
            "cultural_learning_goals": goals,
            "cultural_requirements": requirements,
        })

    async def create_custom_pathway(
        self,
        item_ids: List[str],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> EducationalPathway:
        payload = {"id": str(uuid.uuid4()), **(metadata or {})}
        try:
            raw = await self.backend.create_custom_pathway(item_ids, payload)
            pathway = EducationalPathway.model_validate({**payload, **(raw or {})})
        except Exception as e:
            logger.error(f"Failed to create custom pathway: {e}")
            raise OrganizationServiceError("Unable to create custom pathway") from e
        return self.enhance_educational_pathway(pathway)

    async def get_recommended_pathways(
        self,
        user_id: str,
        interests: Optional[List[str]] = None,
    ) -> List[EducationalPathway]:
        try:
            raw = await self.backend.get_recommended_pathways(user_id, interests)
            pathways = [EducationalPathway.model_validate(p) for p in raw]
        except Exception as e:
            logger.error(f"Failed to get recommended pathways for {user_id}: {e}")
            raise OrganizationServiceError("Unable to get recommended pathways") from e
        return [self.enhance_educational_pathway(p) for p in pathways]

    # ========================================
    # Validation and protocols
    # ========================================

    async def validate_relationship(
        self,
        source_id: str,
        target_id: str,
        relationship_type: RelationshipType,
    ) -> RelationshipValidation:
        """Validate a prospective relationship; never raises.

        Either endpoint at GUARDIAN or above requires community approval.
        Cultural variants across different origins gain educational value.
        """
        relationship_type = RelationshipType(relationship_type)
        try:
            raw = await self.backend.validate_collection_relationship(
                source_id, target_id, relationship_type.value
            )
            validation = RelationshipValidation.model_validate(raw or {})
        except Exception as e:
            logger.error(f"Failed to validate relationship {source_id} -> {target_id}: {e}")
            return RelationshipValidation(
                valid=False,
                issues=["Validation failed"],
                culturally_appropriate=False,
                requires_community_approval=True,
                educational_value=0.0,
                suggestions=["Please try again later"],
            )

        source, target = await asyncio.gather(self._get_item(source_id), self._get_item(target_id))
        updates: Dict[str, Any] = {}

        if any(
            item is not None and item.sensitivity_level >= CulturalSensitivityLevel.GUARDIAN
            for item in (source, target)
        ):
            updates["requires_community_approval"] = True

        if (
            source is not None
            and target is not None
            and relationship_type == RelationshipType.CULTURAL_VARIANT
            and source.cultural_origin != target.cultural_origin
        ):
            updates["educational_value"] = clamp(
                validation.educational_value + CULTURAL_VARIANT_EDUCATIONAL_BONUS
            )

        return validation.model_copy(update=updates) if updates else validation

    async def get_network_health(self, item_id: str) -> float:
        try:
            return clamp(float(await self.backend.get_network_health(item_id)))
        except Exception as e:
            logger.error(f"Failed to get network health for {item_id}: {e}")
            return DEFAULT_NETWORK_HEALTH

    async def get_cultural_protocols(
        self,
        relationship_type: RelationshipType,
        cultural_origin: str,
    ) -> List[str]:
        try:
            return list(await self.backend.get_cultural_protocols(
                RelationshipType(relationship_type).value, cultural_origin
            ))
        except Exception as e:
            logger.error(f"Failed to get cultural protocols for {cultural_origin}: {e}")
            return []

    async def request_community_validation(self, relationship_id: str, reason: str) -> None:
        try:
            await self.backend.request_relationship_validation(relationship_id, reason)
        except Exception as e:
            logger.error(f"Failed to request validation for relationship {relationship_id}: {e}")
            raise OrganizationServiceError("Unable to request community validation") from e
        logger.info(f"Requested community validation for relationship {relationship_id}")

    async def _get_item(self, item_id: str) -> Optional[ContentItem]:
        try:
            raw = await self.backend.get_item(item_id)
        except Exception as e:
            logger.warning(f"Failed to load item {item_id}: {e}")
            return None
        return ContentItem.model_validate(raw) if raw else None


def _copies(relationships: List[Relationship]) -> List[Relationship]:
    return [rel.model_copy(deep=True) for rel in relationships]


def _edge_key(relationship: Relationship):
    if relationship.id:
        return relationship.id
    ends = tuple(sorted((relationship.source_id, relationship.target_id)))
    return ends + (relationship.relationship_type.value,)


def _mean_path_length(graph: nx.Graph, item_id: str) -> float:
    lengths = nx.single_source_shortest_path_length(graph, item_id)
    distances = [distance for distance in lengths.values() if distance > 0]
    return sum(distances) / len(distances) if distances else 0.0


def _difficulty_for_length(length: int) -> DifficultyLevel:
    if length <= 3:
        return DifficultyLevel.BEGINNER
    if length <= 6:
        return DifficultyLevel.INTERMEDIATE
    if length <= 10:
        return DifficultyLevel.ADVANCED
    return DifficultyLevel.EXPERT
