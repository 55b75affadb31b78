from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date
from typing import Any

from pydantic import ValidationError

from almacen.core.config import Settings
from almacen.core.exceptions import ParameterValidationError
from almacen.schemas.consumption import (
    ChartPoint,
    ConsumptionEvent,
    ItemHistoryRequest,
    ItemHistoryResponse,
    ItemHistoryStats,
    TopConsumer,
)
from almacen.services.consumption_aggregator import aggregate_monthly, period_key
from almacen.services.key_batch_resolver import KeyBatchResolver, lookup_label
from almacen.services.paged_fetcher import PagedFetcher
from almacen.services.trend_estimator import fit_trend, fitted_values, round_half_up
from almacen.store.base import StoreClient
from almacen.store.query import FilterOp, QueryDescriptor


logger = logging.getLogger(__name__)


CONSUMPTION_COLLECTION = "consumption_events"
UNIDENTIFIED = "unidentified"
TOP_CONSUMERS_LIMIT = 10


def validate_date_range(date_from: date | None, date_to: date | None) -> tuple[date, date]:
    if date_from is None:
        raise ParameterValidationError("date_from", "select the start of the date range")
    if date_to is None:
        raise ParameterValidationError("date_to", "select the end of the date range")
    if date_from > date_to:
        raise ParameterValidationError("date_to", "date_to cannot be earlier than date_from")
    return date_from, date_to


def to_consumption_event(row: dict[str, Any]) -> ConsumptionEvent | None:
    """Type one store row; rows without a date or with bad values are dropped."""
    if not row.get("occurred_on"):
        return None
    try:
        return ConsumptionEvent(
            event_id=row.get("event_id"),
            line_id=row.get("line_id"),
            occurred_on=row["occurred_on"],
            quantity=row.get("quantity") or 0,
            item_code=str(row.get("item_code") or ""),
            request_number=row.get("request_number"),
            withdrawn_by=row.get("withdrawn_by"),
        )
    except ValidationError:
        logger.warning("Dropping malformed consumption row %r", row, exc_info=True)
        return None


def build_stats(events: list[ConsumptionEvent]) -> ItemHistoryStats:
    """Averages over months that had at least one issue line."""
    total_quantity = sum(e.quantity for e in events)
    months = len({period_key(e.occurred_on) for e in events})
    return ItemHistoryStats(
        total_lines=len(events),
        total_quantity=total_quantity,
        unique_issues=len({e.event_id for e in events}),
        monthly_average=round_half_up(total_quantity / months) if months else 0,
    )


def _top_consumers(
    events: list[ConsumptionEvent],
    people: dict,
    limit: int = TOP_CONSUMERS_LIMIT,
) -> list[TopConsumer]:
    quantity: dict[str | None, float] = defaultdict(float)
    issues: dict[str | None, set[int]] = defaultdict(set)
    for event in events:
        quantity[event.withdrawn_by] += event.quantity
        issues[event.withdrawn_by].add(event.event_id)

    consumers = [
        TopConsumer(
            identification=person_id,
            name=lookup_label(people, person_id, "name", UNIDENTIFIED),
            total_quantity=total,
            issues=len(issues[person_id]),
        )
        for person_id, total in quantity.items()
    ]
    consumers.sort(key=lambda c: (-c.total_quantity, c.identification or ""))
    return consumers[:limit]


def build_item_history(
    store: StoreClient,
    request: ItemHistoryRequest,
    settings: Settings,
) -> ItemHistoryResponse:
    item_code = (request.item_code or "").strip()
    if not item_code:
        raise ParameterValidationError("item_code", "select an article first")
    date_from, date_to = validate_date_range(request.date_from, request.date_to)

    fetcher = PagedFetcher.from_settings(store, settings)
    query = (
        QueryDescriptor(collection=CONSUMPTION_COLLECTION, count_exact=True)
        .where("item_code", FilterOp.EQ, item_code)
        .where("occurred_on", FilterOp.GTE, date_from)
        .where("occurred_on", FilterOp.LTE, date_to)
        .ordered("occurred_on")
        .ordered("line_id")
    )
    drained = fetcher.drain(query)

    events = [e for e in (to_consumption_event(row) for row in drained.rows) if e is not None]

    articles = KeyBatchResolver.from_settings(
        store, settings, "articles", "code", select=("code", "name"), fetcher=fetcher
    ).resolve({item_code})
    people = KeyBatchResolver.from_settings(
        store, settings, "people", "identification", select=("identification", "name", "alias"), fetcher=fetcher
    ).resolve({e.withdrawn_by for e in events})

    buckets = aggregate_monthly(events, fill_gaps=request.fill_gaps)
    regression = fit_trend(buckets)
    line = fitted_values(regression, len(buckets)) if regression else [None] * len(buckets)
    chart = [
        ChartPoint(
            period_key=bucket.period_key,
            label=bucket.label,
            quantity=bucket.total_quantity,
            regression=value,
        )
        for bucket, value in zip(buckets, line)
    ]

    logger.info(
        "Item history %s %s..%s: %s events, %s months, trend=%s",
        item_code,
        date_from,
        date_to,
        len(events),
        len(buckets),
        "ok" if regression else "insufficient_data",
    )

    return ItemHistoryResponse(
        item_code=item_code,
        item_name=lookup_label(articles, item_code, "name"),
        date_from=date_from,
        date_to=date_to,
        events=events,
        buckets=buckets,
        chart=chart,
        regression=regression,
        trend_status="ok" if regression else "insufficient_data",
        stats=build_stats(events),
        top_consumers=_top_consumers(events, people),
        total_count=drained.total_count,
        truncated=drained.truncated,
        warning=drained.warning,
    )
