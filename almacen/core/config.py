from __future__ import annotations

import os
from functools import lru_cache

from pydantic import BaseModel, Field


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    """Runtime configuration, read once from the environment."""

    database_url: str = "sqlite:///./almacen.db"

    # "sql" talks to the warehouse tables through SQLAlchemy,
    # "rest" to the hosted PostgREST endpoint.
    store_backend: str = "sql"
    store_url: str | None = None
    store_api_key: str | None = None

    page_size: int = Field(1000, ge=1)
    max_rows: int = Field(50_000, ge=1)
    key_batch_size: int = Field(100, ge=1)
    request_timeout_seconds: float = Field(30.0, gt=0)
    # Server-side cap on a single statement; PostgreSQL only.
    store_statement_timeout_seconds: float | None = Field(None, gt=0)
    drain_timeout_seconds: float | None = Field(120.0, gt=0)
    enrichment_max_workers: int = Field(1, ge=1)

    projection_debounce_ms: int = Field(500, ge=0)
    projection_scheduler_enabled: bool = True
    projection_max_sessions: int = Field(256, ge=1)

    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    drain_timeout_raw = os.getenv("STORE_DRAIN_TIMEOUT_SECONDS", "120")
    statement_timeout_raw = os.getenv("STORE_STATEMENT_TIMEOUT_SECONDS", "")
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./almacen.db"),
        store_backend=os.getenv("STORE_BACKEND", "sql").lower(),
        store_url=os.getenv("STORE_URL"),
        store_api_key=os.getenv("STORE_API_KEY"),
        page_size=int(os.getenv("STORE_PAGE_SIZE", "1000")),
        max_rows=int(os.getenv("STORE_MAX_ROWS", "50000")),
        key_batch_size=int(os.getenv("STORE_KEY_BATCH_SIZE", "100")),
        request_timeout_seconds=float(os.getenv("STORE_REQUEST_TIMEOUT_SECONDS", "30")),
        store_statement_timeout_seconds=float(statement_timeout_raw) if statement_timeout_raw else None,
        # An empty value disables the drain deadline.
        drain_timeout_seconds=float(drain_timeout_raw) if drain_timeout_raw else None,
        enrichment_max_workers=int(os.getenv("ENRICHMENT_MAX_WORKERS", "1")),
        projection_debounce_ms=int(os.getenv("PROJECTION_DEBOUNCE_MS", "500")),
        projection_scheduler_enabled=_env_bool("PROJECTION_SCHEDULER_ENABLED", "true"),
        projection_max_sessions=int(os.getenv("PROJECTION_MAX_SESSIONS", "256")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
