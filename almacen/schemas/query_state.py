from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel


class QueryStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class QueryState(BaseModel):
    status: QueryStatus = QueryStatus.IDLE
    generation: int = 0
    data: Any | None = None
    empty: bool = False
    error: str | None = None
