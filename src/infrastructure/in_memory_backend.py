"""In-memory organization backend.

Deterministic, dependency-free implementation of OrganizationBackend for the
CLI, the background job and tests. Suggestions come from keyword heuristics
over item text; relationships, rules, pathways and configuration live in
plain dicts. Seed data can be loaded from a YAML or JSON fixture.

Usage:
    backend = InMemoryOrganizationBackend.from_file("data/sample_library.yaml")
    record = await backend.analyze_item_organization("doc-1", "document")
"""

import copy
import json
import logging
import re
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import yaml

from application.rules.organization_rules import OrganizationRulesEngine
from domain.cultural_models import ContentItem, CulturalMetadata, CulturalSensitivityLevel
from domain.organization_backend import OrganizationBackend, Record
from domain.organization_models import OrganizationRule, SmartOrganizationConfig, TagSource
from domain.relationship_models import EducationalPathway, RelationshipType

logger = logging.getLogger(__name__)

STOPWORDS = frozenset({
    "about", "also", "among", "been", "before", "being", "between", "both", "each",
    "from", "have", "into", "many", "more", "most", "much", "other", "over", "same",
    "some", "such", "than", "that", "their", "them", "then", "there", "these", "they",
    "this", "those", "through", "very", "were", "what", "when", "where", "which",
    "while", "with", "within", "would", "your",
})

# Words that mark content as drawing on cultural or traditional knowledge
CULTURAL_TERMS = frozenset({
    "traditional", "sacred", "ceremonial", "ceremony", "ritual", "indigenous", "tribal",
    "ancestral", "spiritual", "medicine", "healing", "elder", "elders", "wisdom",
    "cultural", "heritage", "community", "oral", "storytelling",
})

CATEGORY_KEYWORDS: Dict[str, tuple] = {
    "arts-and-crafts": ("weaving", "textile", "textiles", "pottery", "carving", "craft", "basket", "beadwork"),
    "music-and-dance": ("song", "songs", "music", "dance", "drum", "chant"),
    "language": ("language", "dialect", "vocabulary", "grammar", "translation", "words"),
    "history": ("history", "historical", "archive", "ancestors", "ancestral", "migration"),
    "ecology": ("plant", "plants", "land", "river", "forest", "water", "seasonal", "harvest"),
    "ceremonial-practice": ("ceremony", "ceremonial", "ritual", "sacred"),
    "oral-tradition": ("story", "stories", "storytelling", "oral", "legend", "teachings"),
}

# Highest level whose marker words appear in the text wins
SENSITIVITY_MARKERS = (
    (CulturalSensitivityLevel.SACRED, ("sacred", "ceremonial", "ceremony")),
    (CulturalSensitivityLevel.GUARDIAN, ("elder", "elders", "medicine", "healing", "ancestral")),
    (CulturalSensitivityLevel.COMMUNITY, ("community", "tribal", "indigenous")),
    (CulturalSensitivityLevel.EDUCATIONAL, ("cultural", "heritage", "traditional", "oral")),
)

MAX_TAGS = 5
_WORD = re.compile(r"[a-z][a-z'-]{3,}")


def _words(text: str) -> List[str]:
    return [w for w in _WORD.findall(text.lower()) if w not in STOPWORDS]


def _jaccard(left: Iterable[str], right: Iterable[str]) -> float:
    a, b = set(left), set(right)
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class InMemoryOrganizationBackend(OrganizationBackend):
    """Keyword-heuristic backend holding all state in memory."""

    def __init__(
        self,
        items: Optional[List[Record]] = None,
        relationships: Optional[List[Record]] = None,
        rules: Optional[List[Record]] = None,
        pathways: Optional[List[Record]] = None,
        communities: Optional[List[Record]] = None,
        protocols: Optional[Dict[str, List[str]]] = None,
        hierarchies: Optional[Dict[str, List[Record]]] = None,
        config: Optional[Record] = None,
        rules_engine: Optional[OrganizationRulesEngine] = None,
    ):
        """
        Args:
            items: Content item records
            relationships: Relationship records (source_id, target_id, relationship_type, ...)
            rules: Organization rule records
            pathways: Educational pathway records with ``item_ids``
            communities: Community records (community_id, community_name, cultural_authorities)
            protocols: Cultural protocols by cultural origin
            hierarchies: Traditional hierarchies by cultural origin
            config: Smart organization config overrides
            rules_engine: Evaluates stored rules during analysis
        """
        self.rules_engine = rules_engine or OrganizationRulesEngine()

        self._items: Dict[str, Record] = {}
        for record in items or []:
            self._items[record["id"]] = ContentItem.model_validate(record).model_dump(mode="json")

        self._relationships: Dict[str, Record] = {}
        self._relationship_seq = 0
        for record in relationships or []:
            self._store_relationship(record)

        self._rules: Dict[str, Record] = {}
        for record in rules or []:
            rule = OrganizationRule.model_validate(record)
            rule_id = rule.id or f"rule_{len(self._rules) + 1:04d}"
            self._rules[rule_id] = {**rule.model_dump(mode="json"), "id": rule_id,
                                    "collection_id": record.get("collection_id")}

        self._pathways: Dict[str, Record] = {p["id"]: dict(p) for p in pathways or []}
        self._communities: Dict[str, Record] = {c["community_id"]: dict(c) for c in communities or []}
        self._protocols = {k: list(v) for k, v in (protocols or {}).items()}
        self._hierarchies = {k: list(v) for k, v in (hierarchies or {}).items()}
        self._config = SmartOrganizationConfig.model_validate(config or {}).model_dump(mode="json")

        self.validation_requests: List[Record] = []
        self.corrections: List[Record] = []
        self._analysis_confidences: List[float] = []
        self._organized_items: set = set()

    @classmethod
    def from_dict(cls, data: Dict[str, Any], rules_engine: Optional[OrganizationRulesEngine] = None):
        """Create a backend from fixture data."""
        return cls(
            items=data.get("items"),
            relationships=data.get("relationships"),
            rules=data.get("rules"),
            pathways=data.get("pathways"),
            communities=data.get("communities"),
            protocols=data.get("protocols"),
            hierarchies=data.get("hierarchies"),
            config=data.get("config"),
            rules_engine=rules_engine,
        )

    @classmethod
    def from_file(cls, path: str, rules_engine: Optional[OrganizationRulesEngine] = None):
        """Load fixture data from a YAML or JSON file."""
        fixture = Path(path)
        with open(fixture, "r") as f:
            if fixture.suffix.lower() == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f) or {}
        logger.info(f"Loaded organization fixture from {fixture}")
        return cls.from_dict(data, rules_engine=rules_engine)

    async def list_item_ids(self) -> List[str]:
        return list(self._items)

    def _require_item(self, item_id: str) -> Record:
        try:
            return self._items[item_id]
        except KeyError:
            raise KeyError(f"Item {item_id} not found") from None

    def _store_relationship(self, record: Record) -> Record:
        self._relationship_seq += 1
        stored = {k: v for k, v in record.items() if k != "target_item"}
        stored["id"] = stored.get("id") or f"rel_{self._relationship_seq:04d}"
        stored["relationship_type"] = RelationshipType(stored["relationship_type"]).value
        stored.setdefault("created_at", _now())
        stored.setdefault("created_by", "system")
        self._relationships[stored["id"]] = stored
        return stored

    def _neighbors(self, item_id: str) -> List[str]:
        neighbors = []
        for rel in self._relationships.values():
            if rel["source_id"] == item_id:
                neighbors.append(rel["target_id"])
            elif rel["target_id"] == item_id:
                neighbors.append(rel["source_id"])
        return neighbors

    # --- Analysis ---

    async def analyze_item_organization(self, item_id: str, item_type: str) -> Record:
        item = self._require_item(item_id)
        text = f"{item['title']} {item['content']}"
        metadata = item["cultural_metadata"]

        tags = [
            t for t in await self.generate_tag_suggestions(text, metadata)
            if t["tag"] not in item["tags"]
        ]
        categories = [
            c for c in await self.generate_category_suggestions(text, metadata)
            if c["category"] not in item["categories"]
        ]

        cultural = await self.analyze_cultural_context(text)
        # Declared metadata takes precedence over detected values
        declared = metadata["sensitivity_level"]
        cultural["sensitivity_level"] = max(declared, cultural.get("sensitivity_level", declared))
        if metadata.get("cultural_origin"):
            cultural["cultural_origin"] = metadata["cultural_origin"]

        rules = [OrganizationRule.model_validate(r) for r in self._rules.values()]
        matches = self.rules_engine.apply_rules(ContentItem.model_validate(item), rules)

        confidences = [t["confidence"] for t in tags] + [c["confidence"] for c in categories]
        if confidences:
            self._analysis_confidences.append(sum(confidences) / len(confidences))
        else:
            self._analysis_confidences.append(0.0)

        return {
            "item_id": item_id,
            "item_type": item_type,
            "tag_suggestions": tags,
            "category_suggestions": categories,
            "cultural_suggestions": cultural,
            "rule_matches": [m.model_dump(mode="json") for m in matches],
            "analyzed_at": _now(),
        }

    async def generate_tag_suggestions(
        self, content: str, cultural_metadata: Optional[Record] = None
    ) -> List[Record]:
        counts = Counter(_words(content))
        ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))[:MAX_TAGS]

        suggestions = []
        for word, count in ranked:
            cultural = word in CULTURAL_TERMS
            suggestions.append({
                "tag": word,
                "confidence": round(min(0.95, 0.55 + 0.1 * count), 2),
                "reason": f"Appears {count} time(s) in the content",
                "source": (TagSource.CULTURAL_ANALYSIS if cultural else TagSource.CONTENT_ANALYSIS).value,
                "traditional_knowledge": cultural,
            })

        origin = (cultural_metadata or {}).get("cultural_origin")
        if origin and origin.lower() not in counts:
            suggestions.append({
                "tag": origin.lower(),
                "confidence": 0.9,
                "reason": "Declared cultural origin",
                "cultural_context": origin,
                "source": TagSource.CULTURAL_ANALYSIS.value,
            })
        return suggestions

    async def generate_category_suggestions(
        self, content: str, cultural_metadata: Optional[Record] = None
    ) -> List[Record]:
        words = _words(content)
        level = CulturalMetadata.model_validate(cultural_metadata or {}).sensitivity_level

        scored = []
        for category, keywords in CATEGORY_KEYWORDS.items():
            hits = sum(words.count(k) for k in keywords)
            if hits:
                scored.append((category, hits))
        scored.sort(key=lambda kv: (-kv[1], kv[0]))

        suggestions = []
        for category, hits in scored:
            if category == "ceremonial-practice" or level >= CulturalSensitivityLevel.SACRED:
                appropriateness = 0.6
            elif level >= CulturalSensitivityLevel.GUARDIAN:
                appropriateness = 0.75
            else:
                appropriateness = 0.95
            suggestions.append({
                "category": category,
                "confidence": round(min(0.95, 0.6 + 0.1 * hits), 2),
                "cultural_appropriateness": appropriateness,
                "requires_community_validation": level >= CulturalSensitivityLevel.COMMUNITY,
            })
        return suggestions

    async def analyze_cultural_context(self, content: str) -> Record:
        words = set(_words(content))
        level = CulturalSensitivityLevel.PUBLIC
        for candidate, markers in SENSITIVITY_MARKERS:
            if words.intersection(markers):
                level = candidate
                break

        found = sorted(words & CULTURAL_TERMS)
        analysis: Record = {"sensitivity_level": int(level)}
        if found:
            analysis["educational_context"] = (
                f"Content references {', '.join(found)}; context is provided to support learning"
            )
            analysis["related_concepts"] = found
        if level >= CulturalSensitivityLevel.COMMUNITY:
            analysis["traditional_protocols"] = ["Acknowledge the source community"]
        return analysis

    async def get_item(self, item_id: str) -> Optional[Record]:
        item = self._items.get(item_id)
        return copy.deepcopy(item) if item is not None else None

    # --- Mutation ---

    async def apply_tags_to_item(self, item_id: str, item_type: str, tags: List[str]) -> None:
        item = self._require_item(item_id)
        item["tags"].extend(t for t in tags if t not in item["tags"])
        self._organized_items.add(item_id)

    async def apply_categories_to_item(
        self, item_id: str, item_type: str, categories: List[str]
    ) -> None:
        item = self._require_item(item_id)
        item["categories"].extend(c for c in categories if c not in item["categories"])
        self._organized_items.add(item_id)

    async def apply_cultural_metadata_to_item(
        self, item_id: str, item_type: str, metadata: Record
    ) -> None:
        item = self._require_item(item_id)
        merged = {**item["cultural_metadata"], **metadata}
        item["cultural_metadata"] = CulturalMetadata.model_validate(merged).model_dump(mode="json")
        self._organized_items.add(item_id)

    async def move_item_to_collection(
        self, item_id: str, item_type: str, target_collection_id: str
    ) -> None:
        item = self._require_item(item_id)
        collection = self._require_item(target_collection_id)
        previous = item["properties"].get("collection_id")
        if previous and previous in self._items:
            members = self._items[previous]["properties"].get("members", [])
            self._items[previous]["properties"]["members"] = [m for m in members if m != item_id]
        item["properties"]["collection_id"] = target_collection_id
        members = collection["properties"].setdefault("members", [])
        if item_id not in members:
            members.append(item_id)
        self._organized_items.add(item_id)

    async def request_cultural_validation(self, item_id: str, item_type: str, reason: str) -> None:
        self._require_item(item_id)
        self.validation_requests.append({
            "item_id": item_id, "item_type": item_type, "reason": reason, "requested_at": _now(),
        })

    # --- Rules ---

    async def create_organization_rule(self, rule: Record) -> Record:
        stored = dict(rule)
        self._rules[stored["id"]] = stored
        return copy.deepcopy(stored)

    async def update_organization_rule(self, rule_id: str, updates: Record) -> Record:
        if rule_id not in self._rules:
            raise KeyError(f"Rule {rule_id} not found")
        self._rules[rule_id].update(updates)
        return copy.deepcopy(self._rules[rule_id])

    async def delete_organization_rule(self, rule_id: str) -> None:
        if self._rules.pop(rule_id, None) is None:
            raise KeyError(f"Rule {rule_id} not found")

    async def get_organization_rules(self, collection_id: Optional[str] = None) -> List[Record]:
        return [
            copy.deepcopy(r) for r in self._rules.values()
            if collection_id is None or r.get("collection_id") in (None, collection_id)
        ]

    # --- Relationships ---

    async def create_collection_relationship(self, relationship: Record) -> Record:
        return copy.deepcopy(self._store_relationship(relationship))

    async def update_collection_relationship(self, relationship_id: str, updates: Record) -> Record:
        if relationship_id not in self._relationships:
            raise KeyError(f"Relationship {relationship_id} not found")
        self._relationships[relationship_id].update(
            {k: v for k, v in updates.items() if k not in ("id", "target_item")}
        )
        return copy.deepcopy(self._relationships[relationship_id])

    async def delete_collection_relationship(self, relationship_id: str) -> None:
        if self._relationships.pop(relationship_id, None) is None:
            raise KeyError(f"Relationship {relationship_id} not found")

    async def get_collection_relationships(self, item_id: str) -> List[Record]:
        self._require_item(item_id)
        records = []
        for rel in self._relationships.values():
            if item_id in (rel["source_id"], rel["target_id"]):
                record = copy.deepcopy(rel)
                target = self._items.get(rel["target_id"])
                if target is not None:
                    record["target_item"] = copy.deepcopy(target)
                records.append(record)
        return records

    def _candidate_suggestions(self, item_id: str, candidates: Iterable[str]) -> List[Record]:
        item = self._require_item(item_id)
        origin = item["cultural_metadata"].get("cultural_origin")
        features = item["tags"] + item["categories"]

        suggestions = []
        for other_id in candidates:
            other = self._items[other_id]
            other_origin = other["cultural_metadata"].get("cultural_origin")
            overlap = _jaccard(features, other["tags"] + other["categories"])
            same_origin = bool(origin) and origin == other_origin
            if overlap == 0.0 and not same_origin:
                continue

            if same_origin:
                rel_type, reason = RelationshipType.SIBLING, f"Shares {origin} cultural origin"
            elif origin and other_origin:
                rel_type, reason = RelationshipType.CULTURAL_VARIANT, "Shared themes across cultural origins"
            else:
                rel_type, reason = RelationshipType.EDUCATIONAL_SUPPLEMENT, "Overlapping tags and categories"

            confidence = min(0.95, 0.4 + 0.6 * overlap + (0.2 if same_origin else 0.0))
            appropriateness = 0.9 if same_origin or not (origin and other_origin) else 0.65
            suggestions.append({
                "target_id": other_id,
                "target_name": other["title"],
                "relationship_type": rel_type.value,
                "confidence": round(confidence, 2),
                "reason": reason,
                "cultural_appropriateness": appropriateness,
                "cultural_context": other_origin,
                "traditional_protocols": list(other["cultural_metadata"].get("traditional_protocols", [])),
            })

        suggestions.sort(key=lambda s: (-s["confidence"], s["target_id"]))
        return suggestions

    async def suggest_collection_relationships(self, item_id: str) -> List[Record]:
        connected = set(self._neighbors(item_id)) | {item_id}
        return self._candidate_suggestions(item_id, [i for i in self._items if i not in connected])

    async def optimize_collection_relationships(self, item_id: str) -> List[Record]:
        """Suggest links to items two hops away that are not yet directly related."""
        direct = set(self._neighbors(item_id))
        two_hop = []
        for neighbor in direct:
            for candidate in self._neighbors(neighbor):
                if candidate != item_id and candidate not in direct and candidate not in two_hop:
                    two_hop.append(candidate)
        return self._candidate_suggestions(item_id, sorted(two_hop))

    async def find_similar_collections(self, item_id: str, limit: int = 10) -> List[Record]:
        item = self._require_item(item_id)
        features = item["tags"] + item["categories"]
        scored = [
            (_jaccard(features, other["tags"] + other["categories"]), other_id)
            for other_id, other in self._items.items()
            if other_id != item_id
        ]
        ranked = sorted((s for s in scored if s[0] > 0), key=lambda s: (-s[0], s[1]))
        return [copy.deepcopy(self._items[other_id]) for _, other_id in ranked[:limit]]

    async def discover_cultural_variants(self, item_id: str) -> List[Record]:
        item = self._require_item(item_id)
        origin = item["cultural_metadata"].get("cultural_origin")
        concepts = set(item["cultural_metadata"].get("related_concepts", []))

        variant_ids = []
        for rel in self._relationships.values():
            if rel["relationship_type"] == RelationshipType.CULTURAL_VARIANT.value and item_id in (
                rel["source_id"], rel["target_id"]
            ):
                other = rel["target_id"] if rel["source_id"] == item_id else rel["source_id"]
                variant_ids.append(other)

        for other_id, other in self._items.items():
            other_meta = other["cultural_metadata"]
            if (
                other_id != item_id
                and other_id not in variant_ids
                and other_meta.get("cultural_origin") != origin
                and concepts & set(other_meta.get("related_concepts", []))
            ):
                variant_ids.append(other_id)

        return [copy.deepcopy(self._items[i]) for i in variant_ids if i in self._items]

    async def find_community_responses(self, item_id: str) -> List[Record]:
        self._require_item(item_id)
        responses = [
            rel["source_id"] for rel in self._relationships.values()
            if rel["relationship_type"] == RelationshipType.COMMUNITY_RESPONSE.value
            and rel["target_id"] == item_id
        ]
        return [copy.deepcopy(self._items[i]) for i in responses if i in self._items]

    async def analyze_relationship_network(self, item_id: str, depth: int = 3) -> Record:
        self._require_item(item_id)
        return {
            "item_id": item_id,
            "depth": depth,
            "community_networks": [copy.deepcopy(c) for c in self._communities.values()],
        }

    async def get_cultural_clusters(self, cultural_origin: Optional[str] = None) -> List[Record]:
        by_origin: Dict[str, List[Record]] = {}
        for item in self._items.values():
            origin = item["cultural_metadata"].get("cultural_origin")
            if origin and (cultural_origin is None or origin == cultural_origin):
                by_origin.setdefault(origin, []).append(copy.deepcopy(item))

        return [
            {
                "id": f"cluster_{origin}",
                "cultural_origin": origin,
                "items": members,
                "center_item": members[0],
                "cultural_significance": 0.5,
                "traditional_protocols": list(self._protocols.get(origin, [])),
            }
            for origin, members in by_origin.items()
        ]

    async def get_community_networks(self, community_id: Optional[str] = None) -> List[Record]:
        by_community: Dict[str, List[Record]] = {}
        for item in self._items.values():
            member_of = item["cultural_metadata"].get("community_id")
            if member_of and (community_id is None or member_of == community_id):
                by_community.setdefault(member_of, []).append(copy.deepcopy(item))

        networks = []
        for member_of, members in by_community.items():
            ids = {m["id"] for m in members}
            internal = [
                copy.deepcopy(r) for r in self._relationships.values()
                if r["source_id"] in ids and r["target_id"] in ids
            ]
            info = self._communities.get(member_of, {})
            networks.append({
                "id": f"community_{member_of}",
                "community_id": member_of,
                "community_name": info.get("community_name", member_of),
                "items": members,
                "relationships": internal,
                "cultural_authorities": list(info.get("cultural_authorities", [])),
                "health_score": 0.5 if internal else 0.0,
            })
        return networks

    def _expand_pathway(self, pathway: Record) -> Record:
        record = {k: copy.deepcopy(v) for k, v in pathway.items() if k != "item_ids"}
        record["item_sequence"] = [
            copy.deepcopy(self._items[i]) for i in pathway.get("item_ids", []) if i in self._items
        ]
        return record

    async def generate_educational_pathways(self, item_id: str) -> List[Record]:
        self._require_item(item_id)
        return [
            self._expand_pathway(p) for p in self._pathways.values()
            if item_id in p.get("item_ids", [])
        ]

    async def create_custom_pathway(self, item_ids: List[str], metadata: Record) -> Record:
        for item_id in item_ids:
            self._require_item(item_id)
        pathway = EducationalPathway.model_validate({"id": metadata["id"], **metadata})
        stored = {
            **pathway.model_dump(mode="json", exclude={"item_sequence"}),
            "item_ids": list(item_ids),
            "estimated_time": pathway.estimated_time or 15 * len(item_ids),
        }
        self._pathways[stored["id"]] = stored
        return self._expand_pathway(stored)

    async def get_recommended_pathways(
        self, user_id: str, interests: Optional[List[str]] = None
    ) -> List[Record]:
        wanted = [i.lower() for i in interests or []]

        def matches(pathway: Record) -> bool:
            if not wanted:
                return True
            text = " ".join([pathway.get("name", "")] + pathway.get("learning_objectives", [])).lower()
            return any(interest in text for interest in wanted)

        return [self._expand_pathway(p) for p in self._pathways.values() if matches(p)]

    async def validate_collection_relationship(
        self, source_id: str, target_id: str, relationship_type: str
    ) -> Record:
        relationship_type = RelationshipType(relationship_type)
        issues = []
        if source_id == target_id:
            issues.append("An item cannot be related to itself")
        for item_id in (source_id, target_id):
            if item_id not in self._items:
                issues.append(f"Item {item_id} not found")
        for rel in self._relationships.values():
            if (
                rel["source_id"] == source_id
                and rel["target_id"] == target_id
                and rel["relationship_type"] == relationship_type.value
            ):
                issues.append("Relationship already exists")
                break

        educational_value = 0.5
        if relationship_type == RelationshipType.EDUCATIONAL_SUPPLEMENT:
            educational_value += 0.3

        return {
            "valid": not issues,
            "issues": issues,
            "culturally_appropriate": True,
            "requires_community_approval": False,
            "educational_value": educational_value,
            "suggestions": [] if not issues else ["Check the item ids and relationship type"],
        }

    async def get_network_health(self, item_id: str) -> float:
        self._require_item(item_id)
        return min(1.0, 0.3 + 0.1 * len(self._neighbors(item_id)))

    async def get_cultural_protocols(self, relationship_type: str, cultural_origin: str) -> List[str]:
        protocols = list(self._protocols.get(cultural_origin, []))
        for item in self._items.values():
            metadata = item["cultural_metadata"]
            if metadata.get("cultural_origin") == cultural_origin:
                protocols.extend(p for p in metadata.get("traditional_protocols", []) if p not in protocols)
        return protocols

    async def get_traditional_hierarchies(self, cultural_origin: str) -> List[Record]:
        return copy.deepcopy(self._hierarchies.get(cultural_origin, []))

    async def request_relationship_validation(self, relationship_id: str, reason: str) -> None:
        if relationship_id not in self._relationships:
            raise KeyError(f"Relationship {relationship_id} not found")
        self._relationships[relationship_id]["validation_status"] = "pending"
        self.validation_requests.append({
            "relationship_id": relationship_id, "reason": reason, "requested_at": _now(),
        })

    # --- Configuration ---

    async def get_organization_config(self) -> Record:
        return copy.deepcopy(self._config)

    async def update_organization_config(self, config: Record) -> Record:
        merged = copy.deepcopy(self._config)
        for key, value in config.items():
            if isinstance(value, dict) and isinstance(merged.get(key), dict):
                merged[key].update(value)
            else:
                merged[key] = value
        self._config = SmartOrganizationConfig.model_validate(merged).model_dump(mode="json")
        return copy.deepcopy(self._config)

    # --- Learning ---

    async def record_user_correction(self, correction: Record) -> None:
        self.corrections.append(copy.deepcopy(correction))

    async def get_organization_statistics(self) -> Record:
        tag_counts = Counter(t for item in self._items.values() for t in item["tags"])
        category_counts = Counter(c for item in self._items.values() for c in item["categories"])
        analyzed = len(self._analysis_confidences)

        return {
            "total_analyzed": analyzed,
            "success_rate": min(1.0, len(self._organized_items) / analyzed) if analyzed else 0.0,
            "average_confidence": sum(self._analysis_confidences) / analyzed if analyzed else 0.0,
            "cultural_validation_requests": len(self.validation_requests),
            "community_contributions": len(self.corrections),
            "popular_tags": [
                {"tag": tag, "count": count}
                for tag, count in sorted(tag_counts.items(), key=lambda kv: (-kv[1], kv[0]))[:10]
            ],
            "popular_categories": [
                {"category": category, "count": count}
                for category, count in sorted(category_counts.items(), key=lambda kv: (-kv[1], kv[0]))[:10]
            ],
            "performance": {"items_processed_today": analyzed, "items_processed_this_week": analyzed},
        }
