from __future__ import annotations

from datetime import date
from typing import Literal

from pydantic import BaseModel, Field


class ConsumptionEvent(BaseModel):
    """One issued line of an article.

    ``event_id`` identifies the parent issue; several lines of one issue share
    it, so per-issue figures must count distinct ``event_id`` values.
    """

    model_config = {"frozen": True}

    event_id: int
    line_id: int | None = None
    occurred_on: date
    quantity: float = Field(ge=0)
    item_code: str
    request_number: str | None = None
    withdrawn_by: str | None = None


class MonthlyBucket(BaseModel):
    period_key: str
    label: str
    total_quantity: float


class RegressionResult(BaseModel):
    slope: float
    intercept: float
    # None when every bucket has the same total (R² is 0/0).
    r_squared: float | None
    predicted_next: float
    predicted_next_rounded: int
    equation: str


class ChartPoint(BaseModel):
    period_key: str
    label: str
    quantity: float
    regression: float | None = None


class ItemHistoryRequest(BaseModel):
    item_code: str | None = None
    date_from: date | None = None
    date_to: date | None = None
    fill_gaps: bool = False


class ItemHistoryStats(BaseModel):
    total_lines: int
    total_quantity: float
    unique_issues: int
    monthly_average: int


class TopConsumer(BaseModel):
    identification: str | None
    name: str
    total_quantity: float
    issues: int


class ItemHistoryResponse(BaseModel):
    item_code: str
    item_name: str
    date_from: date
    date_to: date
    events: list[ConsumptionEvent]
    buckets: list[MonthlyBucket]
    chart: list[ChartPoint]
    regression: RegressionResult | None = None
    trend_status: Literal["ok", "insufficient_data"]
    stats: ItemHistoryStats
    top_consumers: list[TopConsumer]
    total_count: int | None = None
    truncated: bool = False
    warning: str | None = None
