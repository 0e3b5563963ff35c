# src/composition_root.py

from dataclasses import dataclass
from typing import Optional

from application.rules.organization_rules import OrganizationRulesEngine
from application.services.organization_service import OrganizationService
from application.services.relationship_service import RelationshipGraphService
from application.services.suggestion_engine import SuggestionEngine
from config.engine_settings import EngineSettings, get_engine_settings
from domain.organization_backend import OrganizationBackend
from infrastructure.in_memory_backend import InMemoryOrganizationBackend


@dataclass
class OrganizationEngine:
    """The wired services sharing one backend."""
    backend: OrganizationBackend
    rules_engine: OrganizationRulesEngine
    suggestions: SuggestionEngine
    organization: OrganizationService
    relationships: RelationshipGraphService


def create_backend(
    settings: EngineSettings,
    rules_engine: Optional[OrganizationRulesEngine] = None,
) -> InMemoryOrganizationBackend:
    """Creates the in-memory backend, seeded from the configured fixture if any."""
    if settings.backend.fixture_path:
        return InMemoryOrganizationBackend.from_file(settings.backend.fixture_path, rules_engine=rules_engine)
    return InMemoryOrganizationBackend(rules_engine=rules_engine)


def build_engine(
    settings: Optional[EngineSettings] = None,
    backend: Optional[OrganizationBackend] = None,
) -> OrganizationEngine:
    """
    Wire the organization services.

    Args:
        settings: Engine settings. Loaded from config/organization.yaml with
                  environment overrides when not provided.
        backend: Backend to use. Defaults to the in-memory backend.

    Usage:
        engine = build_engine()
        analysis = await engine.organization.analyze_item("doc-1", "document")
        network = await engine.relationships.analyze_relationship_network("doc-1")
    """
    settings = settings or get_engine_settings()
    rules_engine = OrganizationRulesEngine(settings.rules_config())
    backend = backend or create_backend(settings, rules_engine)

    suggestions = SuggestionEngine(backend)
    organization = OrganizationService(
        backend,
        suggestion_engine=suggestions,
        rules_engine=rules_engine,
        config=settings.organization_service_config(),
    )
    relationships = RelationshipGraphService(
        backend,
        config=settings.relationship_service_config(),
    )

    return OrganizationEngine(
        backend=backend,
        rules_engine=rules_engine,
        suggestions=suggestions,
        organization=organization,
        relationships=relationships,
    )
