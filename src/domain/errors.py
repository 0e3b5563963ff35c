"""Errors raised by the organization and relationship services."""


class OrganizationError(Exception):
    """Base error for the organization engine."""
    pass


class RuleValidationError(OrganizationError):
    """An organization rule failed local validation.

    Raised before any backend call is made.
    """
    pass


class OrganizationServiceError(OrganizationError):
    """A backend-backed operation failed.

    The message is stable and user-facing; the backend error is chained as
    ``__cause__`` and logged, never embedded in the message.
    """
    pass


class InvalidRelationshipError(OrganizationServiceError):
    """A relationship was rejected by validation."""

    def __init__(self, issues):
        self.issues = list(issues)
        super().__init__(f"Invalid relationship: {', '.join(self.issues)}")
