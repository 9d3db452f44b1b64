"""Error Hierarchy — category-tagged exceptions for every failure a handler may raise.

Invariants:
    - Every TracegateError carries a category (str) before it leaves a handler
    - message is the safe, caller-visible text; sensitive values travel separately
    - Untagged exceptions are never given a category here (classifier treats them as unknown)
    - No HTTP status lives on the exception: status comes from the classification rule

Design Decisions:
    - Single hierarchy with TracegateError base: the request pipeline catches all (ADR: uniform error shape)
    - Category as free-form str with an Enum for the built-in taxonomy: unregistered
      categories must still be raisable and fall through to the catch-all
"""

from collections.abc import Mapping
from enum import Enum
from typing import Any


class FailureCategory(str, Enum):
    """Built-in failure taxonomy. Values are the wire-level category tags."""
    VALIDATION = "validation-error"
    NOT_AUTHENTICATED = "not-authenticated"
    NOT_AUTHORIZED = "not-authorized"
    NOT_FOUND = "not-found"
    METHOD_NOT_ALLOWED = "method-not-allowed"
    CONFLICT = "conflict"
    BUSINESS_RULE = "business-rule-violation"
    DEPENDENCY_UNAVAILABLE = "dependency-unavailable"
    UNKNOWN = "unknown"


class TracegateError(Exception):
    """Base exception for all tagged request failures."""

    def __init__(
        self,
        message: str,
        category: FailureCategory | str = FailureCategory.UNKNOWN,
        sensitive: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = (
            category.value if isinstance(category, FailureCategory) else category
        )
        self.sensitive = dict(sensitive or {})
        self.headers = dict(headers or {})

    @property
    def safe_message(self) -> str:
        """Caller-visible message. Raisers must keep secrets in `sensitive`."""
        return self.message


# ─── Client Errors (400-level) ───────────────────────────────────

class ValidationFailedError(TracegateError):
    """Request input failed validation."""
    def __init__(self, message: str, fields: list[str] | None = None):
        super().__init__(message, FailureCategory.VALIDATION)
        self.fields = fields or []


class NotAuthenticatedError(TracegateError):
    """Caller identity is missing or could not be verified."""
    def __init__(
        self,
        message: str = "Authentication is required",
        headers: Mapping[str, str] | None = None,
    ):
        super().__init__(
            message, FailureCategory.NOT_AUTHENTICATED, headers=headers,
        )


class NotAuthorizedError(TracegateError):
    """Caller is known but not allowed to perform the operation."""
    def __init__(self, message: str = "You are not allowed to perform this action"):
        super().__init__(message, FailureCategory.NOT_AUTHORIZED)


class ResourceNotFoundError(TracegateError):
    """Requested resource does not exist."""
    def __init__(self, resource_type: str, resource_id: object):
        super().__init__(
            f"{resource_type} {resource_id} not found",
            FailureCategory.NOT_FOUND,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class MethodNotAllowedError(TracegateError):
    """Route exists but does not accept the request method."""
    def __init__(
        self,
        message: str = "Method Not Allowed",
        headers: Mapping[str, str] | None = None,
    ):
        super().__init__(
            message, FailureCategory.METHOD_NOT_ALLOWED, headers=headers,
        )


class ConflictError(TracegateError):
    """Request conflicts with the current state of the resource."""
    def __init__(self, message: str):
        super().__init__(message, FailureCategory.CONFLICT)


class BusinessRuleViolationError(TracegateError):
    """Well-formed request rejected by a business rule."""
    def __init__(self, message: str, sensitive: Mapping[str, Any] | None = None):
        super().__init__(message, FailureCategory.BUSINESS_RULE, sensitive)


# ─── Dependency Errors (500-level) ───────────────────────────────

class DependencyUnavailableError(TracegateError):
    """Downstream dependency failed; retryable when the call is idempotent."""
    def __init__(
        self,
        dependency: str,
        message: str | None = None,
        sensitive: Mapping[str, Any] | None = None,
    ):
        super().__init__(
            message or f"{dependency} is temporarily unavailable",
            FailureCategory.DEPENDENCY_UNAVAILABLE,
            sensitive,
        )
        self.dependency = dependency
