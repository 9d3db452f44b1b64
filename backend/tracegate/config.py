"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - All settings come from environment variables or .env (never hardcoded at call sites)
    - get_settings() is cached (lru_cache): single instance per process
    - trace_id_pattern must compile; request_timeout_seconds <= 0 disables the deadline

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support (ADR: developer UX)
    - Defaults provided for every setting: works out-of-the-box locally and in tests
"""

import re
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tracegate.api.pipeline import DEFAULT_TRACE_HEADER, DEFAULT_TRACE_ID_PATTERN


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    service_name: str = "tracegate-api"

    # API
    cors_origins: list[str] = ["http://localhost:5173"]

    # Request pipeline
    trace_header: str = DEFAULT_TRACE_HEADER
    trace_id_pattern: str = DEFAULT_TRACE_ID_PATTERN
    request_timeout_seconds: float | None = 30.0

    @field_validator("trace_id_pattern")
    @classmethod
    def check_pattern_compiles(cls, v: str) -> str:
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"trace_id_pattern does not compile: {e}") from e
        return v

    @field_validator("request_timeout_seconds")
    @classmethod
    def disable_non_positive_timeout(cls, v: float | None) -> float | None:
        """0 or negative means no deadline."""
        if v is not None and v <= 0:
            return None
        return v

    # Downstream retries (idempotent calls only)
    retry_max_attempts: int = 3
    retry_base_delay_ms: int = 100
    retry_max_delay_ms: int = 2_000

    # Sample inventory
    inventory_stock: dict[str, int] = {"SKU-001": 100, "SKU-002": 5}

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"


@lru_cache
def get_settings() -> Settings:
    return Settings()
