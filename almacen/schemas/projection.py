from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field


class ProjectionParameters(BaseModel):
    history_months: int = Field(12, ge=1, le=60)
    lead_time_months: int = Field(10, ge=0, le=24)
    cycle_months: int = Field(12, ge=1, le=36)
    safety_factor: float = Field(1.1, ge=1.0, le=2.0)
    as_of: date | None = None


class ProjectionRow(BaseModel):
    item_code: str
    item_name: str | None = None
    unit: str | None = None
    current_stock: float = 0.0
    monthly_average: float = 0.0
    lead_time_consumption: float = 0.0
    residual_stock: float = 0.0
    cycle_demand: float = 0.0
    suggested_quantity: float = Field(0.0, ge=0)
    unit_cost: float = 0.0
    estimated_cost: float = Field(0.0, ge=0)
    expense_code: str | None = None
    expense_category: str = "N/A"


class ProjectionSummary(BaseModel):
    total_budget: float
    items_to_buy: int
    total_items: int
    total_categories: int


class CategorySpend(BaseModel):
    code: str
    name: str
    value: float


class ProjectionTableOptions(BaseModel):
    search: str | None = None
    # "ALL" disables the category filter.
    category: str = "ALL"
    sort_by: str | None = None
    descending: bool = True
    page: int = Field(1, ge=1)
    per_page: int = Field(25, ge=1, le=500)


class ProjectionRequest(BaseModel):
    parameters: ProjectionParameters = Field(default_factory=ProjectionParameters)
    table: ProjectionTableOptions = Field(default_factory=ProjectionTableOptions)


class ProjectionResponse(BaseModel):
    parameters: ProjectionParameters
    rows: list[ProjectionRow]
    matched_rows: int
    page: int
    total_pages: int
    summary: ProjectionSummary
    spend_by_category: list[CategorySpend]
    categories: list[str]
    total_count: int | None = None
    truncated: bool = False
    warning: str | None = None
