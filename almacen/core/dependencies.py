from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from almacen.core.config import Settings, get_settings
from almacen.core.db import SessionLocal, get_db
from almacen.store.base import StoreClient
from almacen.store.rest_store import RestStore
from almacen.store.sql_store import SqlStore


def build_store(settings: Settings, db: Session | None = None) -> StoreClient:
    if settings.store_backend == "rest":
        if not settings.store_url or not settings.store_api_key:
            raise RuntimeError("STORE_URL and STORE_API_KEY are required when STORE_BACKEND=rest")
        return RestStore(
            base_url=settings.store_url,
            api_key=settings.store_api_key,
            timeout=settings.request_timeout_seconds,
        )
    if db is None:
        raise RuntimeError("SqlStore requires a database session")
    return SqlStore(db)


def get_store(db: Session = Depends(get_db)) -> StoreClient:
    return build_store(get_settings(), db)


@contextmanager
def open_store(settings: Settings | None = None) -> Generator[StoreClient, None, None]:
    """Store for work running outside a request, e.g. scheduler jobs."""
    settings = settings or get_settings()
    db = SessionLocal()
    try:
        yield build_store(settings, db)
    finally:
        db.close()
