from __future__ import annotations

import logging
from typing import Any, Sequence

from pydantic import ValidationError

from almacen.core.config import Settings
from almacen.core.exceptions import ParameterValidationError, StoreError
from almacen.schemas.issue_summary import (
    DailyIssueSummaryRow,
    IssueSummaryRequest,
    IssueSummaryResponse,
    IssueSummaryTotals,
)
from almacen.services.item_history import validate_date_range
from almacen.services.key_batch_resolver import KeyBatchResolver, extract_keys, lookup_label
from almacen.services.paged_fetcher import PagedFetcher
from almacen.store.base import StoreClient
from almacen.store.query import FilterOp, QueryDescriptor


logger = logging.getLogger(__name__)


SUMMARY_COLLECTION = "daily_issue_summary"
SORTABLE_FIELDS = tuple(DailyIssueSummaryRow.model_fields)
EMPTY_RANGE_MESSAGE = "No issues were recorded in the selected date range."


def to_summary_row(raw: dict[str, Any]) -> DailyIssueSummaryRow:
    try:
        return DailyIssueSummaryRow(
            issued_on=raw.get("issued_on"),
            item_code=str(raw.get("item_code") or ""),
            item_name=raw.get("item_name"),
            request_number=raw.get("request_number"),
            department=raw.get("department"),
            maintenance_area=raw.get("maintenance_area"),
            total_quantity=raw.get("total_quantity") or 0,
            unit_cost=raw.get("unit_cost") or 0,
            total_cost=raw.get("total_cost") or 0,
        )
    except ValidationError as exc:
        raise StoreError(f"malformed summary row: {exc}", source=SUMMARY_COLLECTION) from exc


def sort_summary(
    rows: Sequence[DailyIssueSummaryRow],
    sort_by: str | None,
    descending: bool = False,
) -> list[DailyIssueSummaryRow]:
    """Stable sort by one column; missing values sort as the empty string."""
    if not sort_by:
        return list(rows)
    if sort_by not in SORTABLE_FIELDS:
        raise ParameterValidationError("sort_by", f"cannot sort by {sort_by!r}")

    def key(row: DailyIssueSummaryRow) -> Any:
        value = getattr(row, sort_by)
        return "" if value is None else value

    return sorted(rows, key=key, reverse=descending)


def summarize(rows: Sequence[DailyIssueSummaryRow]) -> IssueSummaryTotals:
    return IssueSummaryTotals(
        rows=len(rows),
        total_quantity=sum(r.total_quantity for r in rows),
        total_cost=sum(r.total_cost for r in rows),
        distinct_items=len({r.item_code for r in rows}),
        distinct_requests=len({r.request_number for r in rows if r.request_number}),
    )


def build_issue_summary(
    store: StoreClient,
    request: IssueSummaryRequest,
    settings: Settings,
) -> IssueSummaryResponse:
    date_from, date_to = validate_date_range(request.date_from, request.date_to)
    if request.sort_by and request.sort_by not in SORTABLE_FIELDS:
        raise ParameterValidationError("sort_by", f"cannot sort by {request.sort_by!r}")

    fetcher = PagedFetcher.from_settings(store, settings)
    query = (
        QueryDescriptor(collection=SUMMARY_COLLECTION, count_exact=True)
        .where("issued_on", FilterOp.GTE, date_from)
        .where("issued_on", FilterOp.LTE, date_to)
        .ordered("issued_on")
        .ordered("item_code")
        .ordered("request_number")
        .ordered("department")
        .ordered("maintenance_area")
    )
    drained = fetcher.drain(query)
    rows = [to_summary_row(raw) for raw in drained.rows]

    requests_by_number = KeyBatchResolver.from_settings(
        store,
        settings,
        "requests",
        "number",
        select=("number", "installation_name"),
        fetcher=fetcher,
    ).resolve(extract_keys(drained.rows, "request_number"))
    for row in rows:
        row.installation = lookup_label(requests_by_number, row.request_number, "installation_name")

    rows = sort_summary(rows, request.sort_by, request.descending)

    logger.info("Issue summary %s..%s: %s rows", date_from, date_to, len(rows))

    return IssueSummaryResponse(
        date_from=date_from,
        date_to=date_to,
        rows=rows,
        totals=summarize(rows),
        total_count=drained.total_count,
        truncated=drained.truncated,
        warning=drained.warning,
        message=None if rows else EMPTY_RANGE_MESSAGE,
    )
