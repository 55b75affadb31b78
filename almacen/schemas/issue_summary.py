from __future__ import annotations

from datetime import date

from pydantic import BaseModel


class IssueSummaryRequest(BaseModel):
    date_from: date | None = None
    date_to: date | None = None
    sort_by: str | None = None
    descending: bool = False


class DailyIssueSummaryRow(BaseModel):
    issued_on: date
    item_code: str
    item_name: str | None = None
    request_number: str | None = None
    department: str | None = None
    maintenance_area: str | None = None
    total_quantity: float = 0.0
    unit_cost: float = 0.0
    total_cost: float = 0.0
    installation: str = "N/A"


class IssueSummaryTotals(BaseModel):
    rows: int
    total_quantity: float
    total_cost: float
    distinct_items: int
    distinct_requests: int


class IssueSummaryResponse(BaseModel):
    date_from: date
    date_to: date
    rows: list[DailyIssueSummaryRow]
    totals: IssueSummaryTotals
    total_count: int | None = None
    truncated: bool = False
    warning: str | None = None
    message: str | None = None
