from __future__ import annotations

from typing import Any, Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from almacen.core.config import get_settings


def engine_connect_args(database_url: str, statement_timeout_seconds: float | None = None) -> dict[str, Any]:
    if database_url.startswith("sqlite"):
        return {"check_same_thread": False}
    if database_url.startswith("postgresql") and statement_timeout_seconds:
        return {"options": f"-c statement_timeout={int(statement_timeout_seconds * 1000)}"}
    return {}


_settings = get_settings()

engine = create_engine(
    _settings.database_url,
    connect_args=engine_connect_args(_settings.database_url, _settings.store_statement_timeout_seconds),
    pool_pre_ping=True,
    future=True,
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
