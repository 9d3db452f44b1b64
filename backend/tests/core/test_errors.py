"""Error Hierarchy — verifies category tags and payloads on every failure type."""

from tracegate.core.errors import (
    BusinessRuleViolationError,
    ConflictError,
    DependencyUnavailableError,
    FailureCategory,
    MethodNotAllowedError,
    NotAuthenticatedError,
    NotAuthorizedError,
    ResourceNotFoundError,
    TracegateError,
    ValidationFailedError,
)


def test_default_category_is_unknown():
    assert TracegateError("x").category == "unknown"


def test_enum_category_stored_as_tag_string():
    err = TracegateError("x", FailureCategory.CONFLICT)
    assert err.category == "conflict"
    assert type(err.category) is str


def test_free_form_category_is_kept():
    assert TracegateError("volume /data full", "disk-full").category == "disk-full"


def test_safe_message_is_message():
    err = TracegateError("Order 42 not found", "not-found")
    assert err.safe_message == "Order 42 not found"
    assert str(err) == "Order 42 not found"


def test_sensitive_and_headers_are_copied():
    sensitive = {"card": "4111"}
    headers = {"Retry-After": "5"}
    err = TracegateError("x", sensitive=sensitive, headers=headers)
    sensitive["card"] = "changed"
    headers.clear()
    assert err.sensitive == {"card": "4111"}
    assert err.headers == {"Retry-After": "5"}


def test_resource_not_found_message():
    err = ResourceNotFoundError("Order", 42)
    assert err.message == "Order 42 not found"
    assert err.category == "not-found"
    assert err.resource_id == 42


def test_subclass_categories():
    assert ValidationFailedError("bad").category == "validation-error"
    assert NotAuthenticatedError().category == "not-authenticated"
    assert NotAuthorizedError().category == "not-authorized"
    assert MethodNotAllowedError().category == "method-not-allowed"
    assert ConflictError("dup").category == "conflict"
    assert BusinessRuleViolationError("no").category == "business-rule-violation"
    assert DependencyUnavailableError("inventory").category == "dependency-unavailable"


def test_dependency_unavailable_default_message():
    err = DependencyUnavailableError("inventory")
    assert err.message == "inventory is temporarily unavailable"
    assert err.dependency == "inventory"


def test_not_authenticated_carries_headers():
    err = NotAuthenticatedError(headers={"WWW-Authenticate": "Bearer"})
    assert err.headers == {"WWW-Authenticate": "Bearer"}


def test_validation_failed_fields_default_empty():
    assert ValidationFailedError("bad").fields == []
    assert ValidationFailedError("bad", ["body.sku"]).fields == ["body.sku"]


def test_taxonomy_values():
    assert {c.value for c in FailureCategory} >= {
        "validation-error", "not-authenticated", "not-authorized",
        "not-found", "business-rule-violation", "unknown",
    }
