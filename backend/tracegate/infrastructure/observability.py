"""Structured Logging — JSON formatter, trace stamping and redaction for request diagnostics.

Invariants:
    - Every stdlib LogRecord carries trace_id and enrichment from the active DiagnosticContext
      (None / {} outside a request), whichever logger produced it
    - JSON records include timestamp, level, logger, message, traceId, enrichment and fields
    - Values wrapped in Sensitive never reach a record: StructuredLogger swaps them for
      REDACTED before the record exists, and Sensitive renders as REDACTED anywhere else
    - JSON format in production, human-readable in development

Design Decisions:
    - JSONFormatter over third-party libs: zero dependencies, full control
    - Log record factory over a handler Filter: stamps records before they fan out, so
      pytest's caplog and third-party handlers see the traceId too
    - setup_logging called once on startup via lifespan
"""

import json
import logging
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from tracegate.infrastructure.diagnostics import current_context

REDACTED = "[REDACTED]"

_LEVEL_NAMES = {
    logging.DEBUG: "debug",
    logging.INFO: "information",
    logging.WARNING: "warning",
    logging.ERROR: "error",
    logging.CRITICAL: "critical",
}


class LogLevel(str, Enum):
    """Levels exposed by StructuredLogger."""
    DEBUG = "debug"
    INFORMATION = "information"
    WARNING = "warning"
    ERROR = "error"

    @property
    def stdlib(self) -> int:
        return {
            LogLevel.DEBUG: logging.DEBUG,
            LogLevel.INFORMATION: logging.INFO,
            LogLevel.WARNING: logging.WARNING,
            LogLevel.ERROR: logging.ERROR,
        }[self]


class Sensitive:
    """Marks a value that must never be written to a log record."""

    __slots__ = ("value",)

    def __init__(self, value: Any):
        self.value = value

    def __str__(self) -> str:
        return REDACTED

    def __repr__(self) -> str:
        return f"Sensitive({REDACTED!r})"


def redact(fields: Mapping[str, Any] | None) -> dict[str, Any]:
    """Copy of `fields` with every Sensitive value replaced."""
    return {
        key: REDACTED if isinstance(val, Sensitive) else val
        for key, val in (fields or {}).items()
    }


def scrub(text: str, secrets: Iterable[Any]) -> str:
    """Replace every occurrence of each secret's string form in `text`."""
    for secret in secrets:
        if isinstance(secret, Sensitive):
            secret = secret.value
        needle = str(secret)
        if needle:
            text = text.replace(needle, REDACTED)
    return text


class StructuredLogger:
    """Level/message/fields logging API over a stdlib logger."""

    def __init__(self, name: str):
        self._logger = logging.getLogger(name)

    @property
    def name(self) -> str:
        return self._logger.name

    def log(
        self,
        level: LogLevel | str,
        message: str,
        fields: Mapping[str, Any] | None = None,
        exc_info: Any = None,
    ) -> None:
        stdlib_level = LogLevel(level).stdlib
        if not self._logger.isEnabledFor(stdlib_level):
            return
        self._logger.log(
            stdlib_level, message,
            extra={"fields": redact(fields)}, exc_info=exc_info,
        )

    def debug(self, message: str, fields: Mapping[str, Any] | None = None) -> None:
        self.log(LogLevel.DEBUG, message, fields)

    def information(self, message: str, fields: Mapping[str, Any] | None = None) -> None:
        self.log(LogLevel.INFORMATION, message, fields)

    def warning(self, message: str, fields: Mapping[str, Any] | None = None) -> None:
        self.log(LogLevel.WARNING, message, fields)

    def error(
        self,
        message: str,
        fields: Mapping[str, Any] | None = None,
        exc_info: Any = None,
    ) -> None:
        self.log(LogLevel.ERROR, message, fields, exc_info)


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(name)


def install_log_record_factory() -> None:
    """Stamp trace_id/enrichment on every LogRecord. Idempotent."""
    base = logging.getLogRecordFactory()
    if getattr(base, "_stamps_trace_id", False):
        return

    def factory(*args, **kwargs) -> logging.LogRecord:
        record = base(*args, **kwargs)
        context = current_context()
        record.trace_id = context.trace_id if context else None
        record.enrichment = dict(context.enrichment) if context else {}
        return record

    factory._stamps_trace_id = True  # type: ignore[attr-defined]
    logging.setLogRecordFactory(factory)


class JSONFormatter(logging.Formatter):
    """Format logs as JSON for structured logging in production."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.fromtimestamp(
                record.created, timezone.utc,
            ).isoformat(),
            "level": _LEVEL_NAMES.get(record.levelno, record.levelname.lower()),
            "logger": record.name,
            "message": record.getMessage(),
            "traceId": getattr(record, "trace_id", None),
        }
        for source in (
            getattr(record, "enrichment", None), getattr(record, "fields", None),
        ):
            for key, val in redact(source).items():
                log.setdefault(key, val)
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


class _TraceTextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        record.trace_label = getattr(record, "trace_id", None) or "-"
        return super().format(record)


def setup_logging(level: str = "INFO", fmt: str = "json"):
    """Configure logging for the application."""
    install_log_record_factory()
    handler = logging.StreamHandler()
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(_TraceTextFormatter(
            "%(asctime)s %(levelname)s %(name)s [%(trace_label)s] %(message)s",
        ))
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level.upper(), logging.INFO))
