from __future__ import annotations

import math
from typing import Any, Sequence

from almacen.core.exceptions import ParameterValidationError
from almacen.schemas.projection import (
    CategorySpend,
    ProjectionParameters,
    ProjectionResponse,
    ProjectionRow,
    ProjectionSummary,
    ProjectionTableOptions,
)
from almacen.services.replenishment_projector import ProjectionResult


ALL_CATEGORIES = "ALL"
UNASSIGNED_CODE = "UNASSIGNED"
SPEND_CHART_LIMIT = 15

SORTABLE_FIELDS = tuple(ProjectionRow.model_fields)


def filter_rows(
    rows: Sequence[ProjectionRow],
    search: str | None = None,
    category: str = ALL_CATEGORIES,
) -> list[ProjectionRow]:
    term = (search or "").strip().lower()
    result = []
    for row in rows:
        if term and term not in (row.item_name or "").lower() and term not in row.item_code.lower():
            continue
        if category != ALL_CATEGORIES and row.expense_category != category:
            continue
        result.append(row)
    return result


def _sort_value(value: Any) -> tuple[int, Any]:
    return (0, "") if value is None else (1, value)


def sort_rows(
    rows: Sequence[ProjectionRow],
    sort_by: str | None,
    descending: bool = True,
) -> list[ProjectionRow]:
    if not sort_by:
        return list(rows)
    if sort_by not in SORTABLE_FIELDS:
        raise ParameterValidationError("sort_by", f"cannot sort by {sort_by!r}")
    return sorted(rows, key=lambda r: _sort_value(getattr(r, sort_by)), reverse=descending)


def paginate(rows: Sequence[ProjectionRow], page: int, per_page: int) -> tuple[list[ProjectionRow], int]:
    """Slice one page; returns the page rows and the number of pages."""
    total_pages = math.ceil(len(rows) / per_page) if rows else 0
    start = (page - 1) * per_page
    return list(rows[start : start + per_page]), total_pages


def category_names(rows: Sequence[ProjectionRow]) -> list[str]:
    return sorted({r.expense_category for r in rows if r.expense_code})


def summarize(rows: Sequence[ProjectionRow]) -> ProjectionSummary:
    return ProjectionSummary(
        total_budget=sum(r.estimated_cost for r in rows),
        items_to_buy=sum(1 for r in rows if r.suggested_quantity > 0),
        total_items=len(rows),
        total_categories=len(category_names(rows)),
    )


def spend_by_category(
    rows: Sequence[ProjectionRow],
    limit: int = SPEND_CHART_LIMIT,
) -> list[CategorySpend]:
    totals: dict[str, CategorySpend] = {}
    for row in rows:
        code = row.expense_code or UNASSIGNED_CODE
        entry = totals.get(code)
        if entry is None:
            entry = CategorySpend(code=code, name=row.expense_category, value=0.0)
            totals[code] = entry
        entry.value += row.estimated_cost
    return sorted(totals.values(), key=lambda c: c.value, reverse=True)[:limit]


def build_projection_response(
    params: ProjectionParameters,
    result: ProjectionResult,
    table: ProjectionTableOptions,
) -> ProjectionResponse:
    """Apply the table options to a projection and assemble the response.

    Summary, spend chart and category list describe the whole projection;
    search, category filter, sort and paging only shape ``rows``.
    """
    matched = filter_rows(result.rows, table.search, table.category)
    matched = sort_rows(matched, table.sort_by, table.descending)
    page_rows, total_pages = paginate(matched, table.page, table.per_page)
    return ProjectionResponse(
        parameters=params,
        rows=page_rows,
        matched_rows=len(matched),
        page=table.page,
        total_pages=total_pages,
        summary=summarize(result.rows),
        spend_by_category=spend_by_category(result.rows),
        categories=category_names(result.rows),
        total_count=result.total_count,
        truncated=result.truncated,
        warning=result.warning,
    )


def validate_table_options(table: ProjectionTableOptions) -> None:
    if table.sort_by and table.sort_by not in SORTABLE_FIELDS:
        raise ParameterValidationError("sort_by", f"cannot sort by {table.sort_by!r}")
