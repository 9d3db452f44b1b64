"""Request Pipeline — outermost ASGI stage owning trace scope and failure translation.

Invariants:
    - At most one http.response.start reaches the server per request
    - Every record logged while the handler runs carries the request's traceId
    - The trace header is echoed on every HTTP response, success or failure
    - Failure before response start → classified envelope is the only response
    - Failure after response start → logged at error level, never re-raised, nothing written
    - Client disconnect, deadline or response write failure → abort record, nothing written
    - Cancellation of the pipeline task itself is logged and always re-raised

Design Decisions:
    - Pure ASGI middleware over @app.exception_handler(Exception): the handler chain stays
      opaque, and only the send channel can tell whether a response already started
    - Registry injected at construction, never looked up from ambient state
    - Handler runs as a child task so a disconnect seen by the receive pump can cancel it
    - Bounded read-ahead that never blocks the pump: a disconnect queued behind unread
      body is still seen, at the cost of failing handlers that read their body too late
    - A handler that returns without starting a response is a failure (catch-all envelope)
"""

import asyncio
import re
import time
import uuid

from starlette.datastructures import Headers, MutableHeaders
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from tracegate.api.error_response import ErrorResponseBuilder
from tracegate.core.classification import ClassificationRegistry, FailureClassifier
from tracegate.core.errors import TracegateError
from tracegate.infrastructure.diagnostics import DiagnosticContext
from tracegate.infrastructure.observability import get_logger, install_log_record_factory

log = get_logger(__name__)

DEFAULT_TRACE_HEADER = "X-Request-ID"
DEFAULT_TRACE_ID_PATTERN = r"[A-Za-z0-9][A-Za-z0-9._:-]{7,127}"

_READ_AHEAD = 16
_DISCONNECT: Message = {"type": "http.disconnect"}
# Envelope framing is owned by JSONResponse; failures may not override it.
_FRAMING_HEADERS = frozenset({"content-length", "content-type", "transfer-encoding"})


class _ResponseChannel:
    """Send side: stamps the trace header and lets exactly one response through."""

    def __init__(self, send: Send, trace_header: str, trace_id: str):
        self._send = send
        self._trace_header = trace_header
        self._trace_id = trace_id
        self.started = False
        self.complete = False
        self.status: int | None = None
        self.write_failed = False

    async def send(self, message: Message) -> None:
        kind = message["type"]
        if kind == "http.response.start":
            if self.started:
                log.error(
                    "Second response start dropped; a response was already sent",
                    {"status": message.get("status"), "sent_status": self.status},
                )
                return
            self.started = True
            self.status = message["status"]
            message.setdefault("headers", [])
            MutableHeaders(scope=message)[self._trace_header] = self._trace_id
        elif kind == "http.response.body" and self.complete:
            log.error("Response body dropped; the response is already complete")
            return
        try:
            await self._send(message)
        except Exception:
            self.write_failed = True
            raise
        if kind == "http.response.body" and not message.get("more_body", False):
            self.complete = True


class _RequestChannel:
    """Receive side: read-ahead pump that cancels the handler on client disconnect.

    The pump never waits on the handler. Body past the read-ahead limit is
    discarded, and a handler that later reaches the discarded part fails.
    """

    def __init__(self, receive: Receive):
        self._receive = receive
        self._queue: asyncio.Queue[Message] = asyncio.Queue(_READ_AHEAD)
        self._ended = False
        self._pump: asyncio.Task | None = None
        self.disconnected = False
        self.overflowed = False

    async def receive(self) -> Message:
        if self._queue.empty():
            if self._ended:
                return dict(_DISCONNECT)
            if self.overflowed:
                raise TracegateError(
                    f"Request body was not read within the first {_READ_AHEAD} messages",
                )
        return await self._queue.get()

    def watch(self, handler: asyncio.Future, response: _ResponseChannel) -> None:
        self._pump = asyncio.ensure_future(self._run(handler, response))

    async def _run(self, handler: asyncio.Future, response: _ResponseChannel) -> None:
        while True:
            try:
                message = await self._receive()
            except Exception as e:
                log.warning(f"Request channel failed: {e}")
                message = dict(_DISCONNECT)
            if message["type"] == "http.disconnect":
                self._ended = True
                # a full queue means no reader is waiting; receive() reports the end
                if not self._queue.full():
                    self._queue.put_nowait(message)
                if not response.complete and not handler.done():
                    self.disconnected = True
                    handler.cancel()
                return
            self._buffer(message)

    def _buffer(self, message: Message) -> None:
        if self.overflowed or self._queue.full():
            if not self.overflowed:
                log.warning(
                    "Request body read-ahead full; discarding unread body",
                    {"read_ahead": _READ_AHEAD},
                )
            self.overflowed = True
            return
        self._queue.put_nowait(message)

    async def close(self) -> None:
        if self._pump is not None and not self._pump.done():
            self._pump.cancel()
        if self._pump is not None:
            await asyncio.gather(self._pump, return_exceptions=True)


class RequestPipeline:
    """ASGI middleware: trace scope, single response write, failure → envelope."""

    def __init__(
        self,
        app: ASGIApp,
        registry: ClassificationRegistry,
        trace_header: str = DEFAULT_TRACE_HEADER,
        trace_id_pattern: str = DEFAULT_TRACE_ID_PATTERN,
        request_timeout_seconds: float | None = None,
    ):
        self.app = app
        self.classifier = FailureClassifier(registry)
        self.builder = ErrorResponseBuilder(self.classifier)
        self.trace_header = trace_header
        self._trace_id_pattern = re.compile(trace_id_pattern)
        self.request_timeout_seconds = request_timeout_seconds
        install_log_record_factory()

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return
        await self.handle(scope, receive, send)

    async def handle(self, scope: Scope, receive: Receive, send: Send) -> None:
        trace_id = self.resolve_trace_id(scope)
        response = _ResponseChannel(send, self.trace_header, trace_id)
        request = _RequestChannel(receive)
        started_at = time.perf_counter()

        with DiagnosticContext.with_trace_id(trace_id) as context:
            context.enrich("method", scope.get("method", ""))
            context.enrich("path", scope.get("path", ""))
            scope.setdefault("state", {})["diagnostics"] = context

            handler = asyncio.ensure_future(
                self.app(scope, request.receive, response.send),
            )
            request.watch(handler, response)
            deadline = asyncio.timeout(self.request_timeout_seconds)
            try:
                async with deadline:
                    await handler
            except asyncio.CancelledError:
                if request.disconnected and not _cancelling():
                    _log_abort("client disconnected", response)
                    return
                handler.cancel()
                _log_abort("request cancelled", response)
                raise
            except Exception as exc:
                if deadline.expired():
                    _log_abort("deadline exceeded", response)
                elif response.write_failed:
                    _log_abort("response write failed", response)
                else:
                    await self._fail(exc, scope, request, response, context)
            else:
                if not response.started:
                    await self._fail(
                        RuntimeError("Handler returned without starting a response"),
                        scope, request, response, context,
                    )
                else:
                    log.information(
                        "Request completed",
                        {
                            "status": response.status,
                            "duration_ms": _elapsed_ms(started_at),
                        },
                    )
            finally:
                await request.close()

    def resolve_trace_id(self, scope: Scope) -> str:
        """Inbound trace header if well-formed, else a fresh id."""
        inbound = Headers(scope=scope).get(self.trace_header)
        if inbound and self._trace_id_pattern.fullmatch(inbound):
            return inbound
        return uuid.uuid4().hex

    async def _fail(
        self,
        failure: Exception,
        scope: Scope,
        request: _RequestChannel,
        response: _ResponseChannel,
        context: DiagnosticContext,
    ) -> None:
        if response.started:
            self.builder.report(
                failure, "Failure after response started; response left as sent",
            )
            return

        rule = self.classifier.classify(failure)
        envelope = self.builder.build(rule, context.trace_id, failure)
        if not rule.catch_all:
            log.warning(
                f"{rule.title}: {envelope.detail}",
                {
                    "category": rule.category,
                    "status": rule.status,
                    "sensitive_fields": sorted(_sensitive_keys(failure)),
                },
            )
        error_response = JSONResponse(
            envelope.to_wire(),
            status_code=envelope.status,
            headers=_extra_headers(failure),
        )
        try:
            await error_response(scope, request.receive, response.send)
        except Exception:
            if not response.write_failed:
                raise
            _log_abort("response write failed", response)


def _cancelling() -> bool:
    task = asyncio.current_task()
    return task is not None and task.cancelling() > 0


def _elapsed_ms(started_at: float) -> float:
    return round((time.perf_counter() - started_at) * 1000, 2)


def _log_abort(reason: str, response: _ResponseChannel) -> None:
    log.warning(
        f"Request aborted: {reason}",
        {"reason": reason, "response_started": response.started},
    )


def _sensitive_keys(failure: BaseException) -> list[str]:
    if isinstance(failure, TracegateError):
        return list(failure.sensitive)
    return []


def _extra_headers(failure: BaseException) -> dict[str, str] | None:
    if not isinstance(failure, TracegateError) or not failure.headers:
        return None
    return {
        name: value for name, value in failure.headers.items()
        if name.lower() not in _FRAMING_HEADERS
    }


def get_diagnostic_context(request: Request) -> DiagnosticContext:
    """FastAPI dependency: the DiagnosticContext opened for this request."""
    context = getattr(request.state, "diagnostics", None)
    if context is None:
        raise RuntimeError("RequestPipeline is not installed on this application")
    return context
