"""Diagnostic Context — request-scoped traceId and enrichment consumed by the logger.

Invariants:
    - trace_id is fixed at construction and never changes
    - Enrichment is append-only: a key can be added once, never replaced or removed
    - with_trace_id()/scope() restore the previous context on every exit path
    - A context is closed when its scope ends and refuses further enrichment

Design Decisions:
    - ContextVar over thread-locals: asyncio tasks and Starlette's threadpool copy the
      current context, so every unit of work serving a request sees the same object and
      pooled workers never inherit a stale one
    - The context object is also handed to handlers explicitly (request.state.diagnostics);
      the ContextVar exists for the logger, not for business code
"""

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from types import MappingProxyType
from typing import Mapping

RESERVED_KEYS = frozenset({"traceId", "trace_id"})

_active: ContextVar["DiagnosticContext | None"] = ContextVar(
    "diagnostic_context", default=None,
)


class DiagnosticContextError(RuntimeError):
    """Enrichment attempted that would break the append-only contract."""


class DiagnosticContext:
    """Correlation id plus append-only enrichment for one request."""

    def __init__(self, trace_id: str):
        if not trace_id:
            raise ValueError("trace_id must be a non-empty string")
        self._trace_id = trace_id
        self._enrichment: dict[str, str] = {}
        self._closed = False

    @property
    def trace_id(self) -> str:
        return self._trace_id

    @property
    def enrichment(self) -> Mapping[str, str]:
        return MappingProxyType(self._enrichment)

    @property
    def closed(self) -> bool:
        return self._closed

    def enrich(self, key: str, value: object) -> None:
        """Add one enrichment field. Values are stored as strings."""
        if self._closed:
            raise DiagnosticContextError(
                f"context {self._trace_id} is closed; cannot add '{key}'",
            )
        if key in RESERVED_KEYS:
            raise DiagnosticContextError(f"'{key}' is reserved")
        if key in self._enrichment:
            raise DiagnosticContextError(f"'{key}' is already set for this request")
        self._enrichment[key] = str(value)

    @contextmanager
    def scope(self) -> Iterator["DiagnosticContext"]:
        """Make this context the active one until the block exits."""
        token = _active.set(self)
        try:
            yield self
        finally:
            _active.reset(token)
            self._closed = True

    @classmethod
    @contextmanager
    def with_trace_id(cls, trace_id: str) -> Iterator["DiagnosticContext"]:
        """Create a fresh context for `trace_id` and activate it."""
        context = cls(trace_id)
        with context.scope():
            yield context

    def __repr__(self) -> str:
        return f"DiagnosticContext(trace_id={self._trace_id!r})"


def current_context() -> DiagnosticContext | None:
    """Context active on the calling task/thread, if any."""
    return _active.get()
