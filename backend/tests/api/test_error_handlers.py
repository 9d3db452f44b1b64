"""Boundary error handlers — framework exceptions are tagged, never answered directly."""

import pytest
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from tracegate.api.error_handlers import tag_http_exception, tag_validation_error
from tracegate.core.errors import (
    MethodNotAllowedError,
    NotAuthenticatedError,
    ValidationFailedError,
)


def test_validation_error_lists_field_paths_and_messages():
    exc = RequestValidationError([
        {"loc": ("body", "sku"), "msg": "String should match pattern", "type": "x"},
        {"loc": ("body", "quantity"), "msg": "Input should be >= 1", "type": "y"},
    ])

    tagged = tag_validation_error(exc)

    assert isinstance(tagged, ValidationFailedError)
    assert tagged.category == "validation-error"
    assert tagged.fields == ["body.sku", "body.quantity"]
    assert tagged.message == (
        "body.sku: String should match pattern; body.quantity: Input should be >= 1"
    )


def test_validation_error_never_echoes_input():
    exc = RequestValidationError([
        {
            "loc": ("body", "sku"), "msg": "String too long",
            "type": "string_too_long", "input": "SECRET-INPUT-VALUE",
        },
    ])
    assert "SECRET-INPUT-VALUE" not in tag_validation_error(exc).message


def test_empty_validation_error_has_generic_message():
    assert tag_validation_error(RequestValidationError([])).message == (
        "Invalid request data"
    )


@pytest.mark.parametrize("status, category", [
    (400, "validation-error"),
    (403, "not-authorized"),
    (404, "not-found"),
    (409, "conflict"),
    (422, "business-rule-violation"),
    (503, "dependency-unavailable"),
    (418, "unknown"),
    (502, "unknown"),
])
def test_http_exception_category_from_status(status, category):
    tagged = tag_http_exception(StarletteHTTPException(status, detail="nope"))
    assert tagged.category == category
    assert tagged.message == "nope"


def test_http_401_keeps_challenge_header():
    tagged = tag_http_exception(StarletteHTTPException(
        401, detail="token expired", headers={"WWW-Authenticate": "Bearer"},
    ))
    assert isinstance(tagged, NotAuthenticatedError)
    assert tagged.headers == {"WWW-Authenticate": "Bearer"}
    assert tagged.message == "token expired"


def test_http_405_keeps_allow_header():
    tagged = tag_http_exception(StarletteHTTPException(
        405, headers={"Allow": "GET, HEAD"},
    ))
    assert isinstance(tagged, MethodNotAllowedError)
    assert tagged.message == "Method Not Allowed"
    assert tagged.headers == {"Allow": "GET, HEAD"}


def test_non_string_detail_is_dropped():
    tagged = tag_http_exception(StarletteHTTPException(409, detail={"id": 1}))
    assert tagged.message == ""


@pytest.mark.asyncio
async def test_http_exception_from_route_becomes_envelope(client):
    res = await client.get("/probe/http/403")

    assert res.status_code == 403
    assert res.json()["title"] == "Not Authorized"
    assert res.json()["detail"] == "http 403"
