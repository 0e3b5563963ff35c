"""Organization Rules Package.

Provides declarative condition → action rules for organizing content.
"""

from .organization_rules import (
    OrganizationRulesEngine,
    OrganizationRulesConfig,
    resolve_field,
)

__all__ = [
    "OrganizationRulesEngine",
    "OrganizationRulesConfig",
    "resolve_field",
]
