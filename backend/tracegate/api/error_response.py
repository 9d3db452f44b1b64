"""Error Response Builder — renders a matched rule plus traceId into an ErrorEnvelope.

Invariants:
    - Catch-all rule → detail is GENERIC_DETAIL; the original message goes to the log only
    - Other rules → detail is the failure's safe message, sensitive values replaced by [REDACTED]
    - status/title/category come from the rule; traceId from the caller's DiagnosticContext
    - build() never raises because of the failure it describes

Design Decisions:
    - Catch-all logging happens here, at error level with exc_info: this is the only place
      that still holds both the raw message and the decision to hide it
"""

import traceback

from tracegate.core.classification import ClassificationRule, FailureClassifier
from tracegate.core.errors import TracegateError
from tracegate.infrastructure.observability import StructuredLogger, get_logger, scrub
from tracegate.schemas.error import ErrorEnvelope

GENERIC_DETAIL = "An unexpected error occurred"


def _describe(failure: BaseException) -> str:
    try:
        return str(failure)
    except Exception:
        return f"<unprintable {type(failure).__name__}>"


def _secrets(failure: BaseException) -> list:
    if isinstance(failure, TracegateError):
        return list(failure.sensitive.values())
    return []


class ErrorResponseBuilder:
    """Builds the wire envelope for a classified failure."""

    def __init__(
        self,
        classifier: FailureClassifier,
        logger: StructuredLogger | None = None,
    ):
        self._classifier = classifier
        self._log = logger or get_logger(__name__)

    def build(
        self, rule: ClassificationRule, trace_id: str, failure: BaseException,
    ) -> ErrorEnvelope:
        if rule.catch_all:
            self.report(failure, "Unhandled failure")
            detail = GENERIC_DETAIL
        else:
            detail = self._safe_detail(rule, failure)
        return ErrorEnvelope(
            title=rule.title,
            detail=detail,
            status=rule.status,
            trace_id=trace_id,
            category=rule.category,
        )

    def _safe_detail(self, rule: ClassificationRule, failure: BaseException) -> str:
        if not isinstance(failure, TracegateError):
            return rule.title
        try:
            message = failure.safe_message
        except Exception:
            return rule.title
        if not isinstance(message, str) or not message:
            return rule.title
        return scrub(message, _secrets(failure))

    def report(self, failure: BaseException, summary: str) -> None:
        """Log a failure at error level with secrets scrubbed from message and stack."""
        secrets = _secrets(failure)
        fields = {
            "failure_type": type(failure).__name__,
            "failure_category": self._classifier.category_of(failure),
        }
        exc_info = (type(failure), failure, failure.__traceback__)
        if secrets:
            # formatted tracebacks repeat the message, so scrub them too
            fields["stack"] = scrub(
                "".join(traceback.format_exception(*exc_info)), secrets,
            )
            exc_info = None
        self._log.error(
            f"{summary}: {scrub(_describe(failure), secrets)}",
            fields,
            exc_info=exc_info,
        )
