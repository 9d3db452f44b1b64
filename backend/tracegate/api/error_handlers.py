"""Error Handlers — tag framework exceptions so the request pipeline can classify them.

Invariants:
    - RequestValidationError → ValidationFailedError (field paths and messages, never input values)
    - Starlette HTTPException → TracegateError with a category derived from its status code
    - No handler here writes a response: every handler raises, the pipeline is the single
      point of translation from failure to response

Design Decisions:
    - Override Starlette's default HTTPException handler: left in place it would write its
      own {"detail": ...} body and bypass the envelope
    - Extracted from main.py (ADR: ExMA import fan-out < 10)
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from tracegate.core.errors import (
    FailureCategory,
    MethodNotAllowedError,
    NotAuthenticatedError,
    TracegateError,
    ValidationFailedError,
)

_STATUS_CATEGORIES = {
    400: FailureCategory.VALIDATION,
    401: FailureCategory.NOT_AUTHENTICATED,
    403: FailureCategory.NOT_AUTHORIZED,
    404: FailureCategory.NOT_FOUND,
    405: FailureCategory.METHOD_NOT_ALLOWED,
    409: FailureCategory.CONFLICT,
    422: FailureCategory.BUSINESS_RULE,
    503: FailureCategory.DEPENDENCY_UNAVAILABLE,
}


def register_error_handlers(app: FastAPI) -> None:
    """Register boundary handlers that re-raise framework errors as tagged failures."""
    _register_validation_error_handler(app)
    _register_http_exception_handler(app)


def _register_validation_error_handler(app: FastAPI) -> None:
    """Register Pydantic validation error handler."""

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError,
    ):
        """Tag request validation failures."""
        raise tag_validation_error(exc) from exc


def _register_http_exception_handler(app: FastAPI) -> None:
    """Register HTTPException handler (routing 404/405 and explicit raises)."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException,
    ):
        """Tag HTTP exceptions by status code."""
        raise tag_http_exception(exc) from exc


def tag_validation_error(exc: RequestValidationError) -> ValidationFailedError:
    """Summarize field errors as `loc: msg` pairs."""
    errors = exc.errors()
    fields = [".".join(str(loc) for loc in e.get("loc", ())) for e in errors]
    parts = [f"{field}: {e.get('msg', 'invalid')}" for field, e in zip(fields, errors)]
    message = "; ".join(parts) if parts else "Invalid request data"
    return ValidationFailedError(message, fields=fields)


def tag_http_exception(exc: StarletteHTTPException) -> TracegateError:
    category = _STATUS_CATEGORIES.get(exc.status_code, FailureCategory.UNKNOWN)
    message = exc.detail if isinstance(exc.detail, str) else ""
    headers = dict(exc.headers or {})
    if category is FailureCategory.NOT_AUTHENTICATED:
        return NotAuthenticatedError(message or "Authentication is required", headers)
    if category is FailureCategory.METHOD_NOT_ALLOWED:
        return MethodNotAllowedError(message or "Method Not Allowed", headers)
    return TracegateError(message, category, headers=headers)
