"""Tracegate API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery, an ExMA anti-pattern)
    - RequestPipeline is the outermost app middleware and the only writer of error responses
    - Boundary error handlers tag framework exceptions instead of answering them
    - CORS configured from settings (not hardcoded) and exposes the trace header
    - Logging configured on startup via lifespan context manager

Design Decisions:
    - create_app() factory: tests inject settings, registry and inventory without
      touching module globals; `app` stays importable for ASGI servers
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tracegate.api.error_handlers import register_error_handlers
from tracegate.api.pipeline import RequestPipeline
from tracegate.api.routes import health, orders
from tracegate.config import Settings, get_settings
from tracegate.core.classification import ClassificationRegistry, default_registry
from tracegate.infrastructure.observability import get_logger, setup_logging
from tracegate.infrastructure.retry import RetryPolicy
from tracegate.services.orders import InMemoryInventory, InventoryGateway, OrderService

log = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings: Settings = app.state.settings
    setup_logging(settings.log_level, settings.log_format)
    log.information("Tracegate API started")
    yield
    log.information("Tracegate API shutting down")


def create_app(
    settings: Settings | None = None,
    registry: ClassificationRegistry | None = None,
    inventory: InventoryGateway | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title="Tracegate API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.order_service = OrderService(
        inventory or InMemoryInventory(settings.inventory_stock),
        RetryPolicy(
            max_attempts=settings.retry_max_attempts,
            base_delay_ms=settings.retry_base_delay_ms,
            max_delay_ms=settings.retry_max_delay_ms,
        ),
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[settings.trace_header],
    )
    register_error_handlers(app)

    # Routes: explicit registration (ExMA: no convention-over-config)
    app.include_router(health.router)
    app.include_router(orders.router)

    # Added last so it wraps CORS and everything below it
    app.add_middleware(
        RequestPipeline,
        registry=registry or default_registry(),
        trace_header=settings.trace_header,
        trace_id_pattern=settings.trace_id_pattern,
        request_timeout_seconds=settings.request_timeout_seconds,
    )
    return app


app = create_app()
