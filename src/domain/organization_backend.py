"""Backend contract for content analysis, storage and relationships.

The engine reaches content inference, persistence and the relationship store
only through this interface. Every call is asynchronous, takes and returns
plain records (dicts and lists) and may fail with any exception.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

Record = Dict[str, Any]


class OrganizationBackend(ABC):
    """Abstract async backend used by the organization services."""

    # --- Analysis ---

    @abstractmethod
    async def analyze_item_organization(self, item_id: str, item_type: str) -> Record:
        pass

    @abstractmethod
    async def generate_tag_suggestions(
        self, content: str, cultural_metadata: Optional[Record] = None
    ) -> List[Record]:
        pass

    @abstractmethod
    async def generate_category_suggestions(
        self, content: str, cultural_metadata: Optional[Record] = None
    ) -> List[Record]:
        pass

    @abstractmethod
    async def analyze_cultural_context(self, content: str) -> Record:
        pass

    @abstractmethod
    async def get_item(self, item_id: str) -> Optional[Record]:
        pass

    @abstractmethod
    async def list_item_ids(self) -> List[str]:
        """Ids of every stored item, in a stable order."""
        pass

    # --- Mutation ---

    @abstractmethod
    async def apply_tags_to_item(self, item_id: str, item_type: str, tags: List[str]) -> None:
        pass

    @abstractmethod
    async def apply_categories_to_item(
        self, item_id: str, item_type: str, categories: List[str]
    ) -> None:
        pass

    @abstractmethod
    async def apply_cultural_metadata_to_item(
        self, item_id: str, item_type: str, metadata: Record
    ) -> None:
        pass

    @abstractmethod
    async def move_item_to_collection(
        self, item_id: str, item_type: str, target_collection_id: str
    ) -> None:
        pass

    @abstractmethod
    async def request_cultural_validation(self, item_id: str, item_type: str, reason: str) -> None:
        pass

    # --- Rules ---

    @abstractmethod
    async def create_organization_rule(self, rule: Record) -> Record:
        pass

    @abstractmethod
    async def update_organization_rule(self, rule_id: str, updates: Record) -> Record:
        pass

    @abstractmethod
    async def delete_organization_rule(self, rule_id: str) -> None:
        pass

    @abstractmethod
    async def get_organization_rules(self, collection_id: Optional[str] = None) -> List[Record]:
        pass

    # --- Relationships ---

    @abstractmethod
    async def create_collection_relationship(self, relationship: Record) -> Record:
        pass

    @abstractmethod
    async def update_collection_relationship(self, relationship_id: str, updates: Record) -> Record:
        pass

    @abstractmethod
    async def delete_collection_relationship(self, relationship_id: str) -> None:
        pass

    @abstractmethod
    async def get_collection_relationships(self, item_id: str) -> List[Record]:
        pass

    @abstractmethod
    async def suggest_collection_relationships(self, item_id: str) -> List[Record]:
        pass

    @abstractmethod
    async def optimize_collection_relationships(self, item_id: str) -> List[Record]:
        pass

    @abstractmethod
    async def find_similar_collections(self, item_id: str, limit: int = 10) -> List[Record]:
        pass

    @abstractmethod
    async def discover_cultural_variants(self, item_id: str) -> List[Record]:
        pass

    @abstractmethod
    async def find_community_responses(self, item_id: str) -> List[Record]:
        pass

    @abstractmethod
    async def analyze_relationship_network(self, item_id: str, depth: int = 3) -> Record:
        pass

    @abstractmethod
    async def get_cultural_clusters(self, cultural_origin: Optional[str] = None) -> List[Record]:
        pass

    @abstractmethod
    async def get_community_networks(self, community_id: Optional[str] = None) -> List[Record]:
        pass

    @abstractmethod
    async def generate_educational_pathways(self, item_id: str) -> List[Record]:
        pass

    @abstractmethod
    async def create_custom_pathway(self, item_ids: List[str], metadata: Record) -> Record:
        pass

    @abstractmethod
    async def get_recommended_pathways(
        self, user_id: str, interests: Optional[List[str]] = None
    ) -> List[Record]:
        pass

    @abstractmethod
    async def validate_collection_relationship(
        self, source_id: str, target_id: str, relationship_type: str
    ) -> Record:
        pass

    @abstractmethod
    async def get_network_health(self, item_id: str) -> float:
        pass

    @abstractmethod
    async def get_cultural_protocols(self, relationship_type: str, cultural_origin: str) -> List[str]:
        pass

    @abstractmethod
    async def get_traditional_hierarchies(self, cultural_origin: str) -> List[Record]:
        pass

    @abstractmethod
    async def request_relationship_validation(self, relationship_id: str, reason: str) -> None:
        pass

    # --- Configuration ---

    @abstractmethod
    async def get_organization_config(self) -> Record:
        pass

    @abstractmethod
    async def update_organization_config(self, config: Record) -> Record:
        pass

    # --- Learning ---

    @abstractmethod
    async def record_user_correction(self, correction: Record) -> None:
        pass

    @abstractmethod
    async def get_organization_statistics(self) -> Record:
        pass
