"""
Organization Engine Configuration

Loads engine settings from config/organization.yaml with environment
overrides, and converts them into the per-service configuration objects.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from application.rules.organization_rules import OrganizationRulesConfig
from application.services.organization_service import OrganizationServiceConfig
from application.services.relationship_service import RelationshipServiceConfig
from domain.cultural_models import CulturalSensitivityLevel


@dataclass
class CacheSettings:
    """TTL cache configuration."""
    analysis_ttl_seconds: float = 600.0       # 10 minutes
    config_ttl_seconds: float = 600.0         # 10 minutes
    relationship_ttl_seconds: float = 900.0   # 15 minutes
    max_entries: Optional[int] = 1024


@dataclass
class BatchSettings:
    """Batch processing configuration."""
    analyze_batch_size: int = 10
    apply_batch_size: int = 5
    apply_batch_delay_seconds: float = 0.1


@dataclass
class RuleSettings:
    """Rule engine configuration."""
    suggest_validation_for_cultural_context: bool = True
    validation_sensitivity: CulturalSensitivityLevel = CulturalSensitivityLevel.COMMUNITY


@dataclass
class NetworkSettings:
    """Relationship network configuration."""
    default_depth: int = 3
    minutes_per_pathway_item: int = 15


@dataclass
class BackendSettings:
    """In-memory backend configuration."""
    fixture_path: Optional[str] = None  # YAML or JSON seed data


@dataclass
class EngineSettings:
    """Complete organization engine configuration."""
    cache: CacheSettings = field(default_factory=CacheSettings)
    batch: BatchSettings = field(default_factory=BatchSettings)
    rules: RuleSettings = field(default_factory=RuleSettings)
    network: NetworkSettings = field(default_factory=NetworkSettings)
    backend: BackendSettings = field(default_factory=BackendSettings)
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineSettings":
        """Create settings from dictionary (parsed YAML)."""
        rules_data = dict(data.get("rules") or {})
        if "validation_sensitivity" in rules_data:
            rules_data["validation_sensitivity"] = _sensitivity(rules_data["validation_sensitivity"])

        return cls(
            cache=CacheSettings(**(data.get("cache") or {})),
            batch=BatchSettings(**(data.get("batch") or {})),
            rules=RuleSettings(**rules_data),
            network=NetworkSettings(**(data.get("network") or {})),
            backend=BackendSettings(**(data.get("backend") or {})),
            log_level=str(data.get("log_level", "INFO")).upper(),
        )

    @classmethod
    def from_yaml(cls, path: Optional[str] = None) -> "EngineSettings":
        """Load settings from YAML file; defaults when the file is absent."""
        if path is None:
            path = os.getenv("ORGANIZATION_CONFIG_PATH", "config/organization.yaml")

        config_path = Path(path)
        if not config_path.is_absolute():
            config_path = Path.cwd() / path

        if not config_path.exists():
            return cls()

        with open(config_path, "r") as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data)

    @classmethod
    def from_env(cls) -> "EngineSettings":
        """
        Create settings from YAML, then apply environment overrides.
        """
        settings = cls.from_yaml()

        if os.getenv("ORGANIZATION_ANALYSIS_TTL"):
            settings.cache.analysis_ttl_seconds = float(os.getenv("ORGANIZATION_ANALYSIS_TTL"))

        if os.getenv("ORGANIZATION_RELATIONSHIP_TTL"):
            settings.cache.relationship_ttl_seconds = float(os.getenv("ORGANIZATION_RELATIONSHIP_TTL"))

        if os.getenv("ORGANIZATION_CACHE_MAX_ENTRIES"):
            settings.cache.max_entries = int(os.getenv("ORGANIZATION_CACHE_MAX_ENTRIES"))

        if os.getenv("ORGANIZATION_BATCH_SIZE"):
            settings.batch.analyze_batch_size = int(os.getenv("ORGANIZATION_BATCH_SIZE"))

        if os.getenv("ORGANIZATION_NETWORK_DEPTH"):
            settings.network.default_depth = int(os.getenv("ORGANIZATION_NETWORK_DEPTH"))

        if os.getenv("ORGANIZATION_FIXTURE_PATH"):
            settings.backend.fixture_path = os.getenv("ORGANIZATION_FIXTURE_PATH")

        if os.getenv("LOG_LEVEL"):
            settings.log_level = os.getenv("LOG_LEVEL").upper()

        return settings

    def organization_service_config(self) -> OrganizationServiceConfig:
        return OrganizationServiceConfig(
            analysis_cache_ttl_seconds=self.cache.analysis_ttl_seconds,
            config_cache_ttl_seconds=self.cache.config_ttl_seconds,
            cache_max_entries=self.cache.max_entries,
            analyze_batch_size=self.batch.analyze_batch_size,
            apply_batch_size=self.batch.apply_batch_size,
            apply_batch_delay_seconds=self.batch.apply_batch_delay_seconds,
        )

    def relationship_service_config(self) -> RelationshipServiceConfig:
        return RelationshipServiceConfig(
            cache_ttl_seconds=self.cache.relationship_ttl_seconds,
            cache_max_entries=self.cache.max_entries,
            default_network_depth=self.network.default_depth,
            minutes_per_pathway_item=self.network.minutes_per_pathway_item,
        )

    def rules_config(self) -> OrganizationRulesConfig:
        return OrganizationRulesConfig(
            suggest_validation_for_cultural_context=self.rules.suggest_validation_for_cultural_context,
            validation_sensitivity=self.rules.validation_sensitivity,
        )


def _sensitivity(value: Any) -> CulturalSensitivityLevel:
    """Accept a level number or its name (e.g. ``community``)."""
    if isinstance(value, str) and not value.isdigit():
        return CulturalSensitivityLevel[value.upper()]
    return CulturalSensitivityLevel(int(value))


# Global settings instance (lazy loaded)
_settings: Optional[EngineSettings] = None


def get_engine_settings() -> EngineSettings:
    """Get the engine settings (lazy loaded)."""
    global _settings
    if _settings is None:
        _settings = EngineSettings.from_env()
    return _settings


def reload_settings(path: Optional[str] = None) -> EngineSettings:
    """Reload settings from file."""
    global _settings
    _settings = EngineSettings.from_yaml(path)
    return _settings
