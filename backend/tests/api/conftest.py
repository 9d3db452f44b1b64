"""API test fixtures — FastAPI app with probe routes + httpx test client.

Invariants:
    - Every test gets a fresh app (fresh OrderService and inventory)
    - Probe routes raise each kind of failure the pipeline must translate
    - Retry delays are ~1ms so dependency-failure tests stay fast

Design Decisions:
    - Probe routes live in the fixture, not in tracegate/: they exist only to
      drive the pipeline from the outside
"""

import asyncio
import logging

import pytest
from fastapi import APIRouter, BackgroundTasks, HTTPException
from httpx import ASGITransport, AsyncClient

from tracegate.config import Settings
from tracegate.core.errors import (
    BusinessRuleViolationError,
    NotAuthenticatedError,
    TracegateError,
)
from tracegate.infrastructure.observability import Sensitive, get_logger
from tracegate.main import create_app

probe_logger = logging.getLogger("tests.probe")
structured = get_logger("tests.probe")


def _explode():
    raise RuntimeError("background task exploded")


def build_probe_router() -> APIRouter:
    router = APIRouter(prefix="/probe")

    @router.get("/tagged/{category}")
    async def tagged(category: str, message: str = "boom"):
        raise TracegateError(message, category)

    @router.get("/untagged")
    async def untagged():
        raise RuntimeError("connect failed: postgres://admin:hunter2@db:5432/app")

    @router.get("/sensitive")
    async def sensitive():
        raise BusinessRuleViolationError(
            "Card 4111111111111111 was declined",
            sensitive={"card_number": "4111111111111111"},
        )

    @router.get("/unauthenticated")
    async def unauthenticated():
        raise NotAuthenticatedError(headers={"WWW-Authenticate": "Bearer"})

    @router.get("/http/{status_code}")
    async def http_error(status_code: int):
        raise HTTPException(status_code=status_code, detail=f"http {status_code}")

    @router.get("/logs")
    async def logs():
        probe_logger.info("inside handler")
        structured.information(
            "structured inside handler", {"token": Sensitive("s3cret"), "step": 1},
        )
        return {"ok": True}

    @router.get("/sync-logs")
    def sync_logs():
        probe_logger.info("inside threadpool")
        return {"ok": True}

    @router.get("/echo")
    async def echo(n: int):
        probe_logger.info(f"request {n} start")
        await asyncio.sleep(0)
        probe_logger.info(f"request {n} end")
        return {"n": n}

    @router.get("/late-failure")
    async def late_failure(background: BackgroundTasks):
        background.add_task(_explode)
        return {"ok": True}

    return router


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        log_format="text",
        request_timeout_seconds=5,
        retry_base_delay_ms=1,
        retry_max_delay_ms=2,
        inventory_stock={"SKU-001": 10, "SKU-002": 1},
    )


@pytest.fixture
def app(settings):
    app = create_app(settings)
    app.include_router(build_probe_router())
    return app


@pytest.fixture
async def client(app):
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c


@pytest.fixture
def captured(caplog):
    caplog.set_level(logging.DEBUG)
    return caplog
