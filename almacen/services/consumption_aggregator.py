from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import Iterable

from almacen.schemas.consumption import ConsumptionEvent, MonthlyBucket


MONTH_ABBREVIATIONS = (
    "ene",
    "feb",
    "mar",
    "abr",
    "may",
    "jun",
    "jul",
    "ago",
    "sept",
    "oct",
    "nov",
    "dic",
)


def period_key(day: date) -> str:
    return day.isoformat()[:7]


def month_label(key: str) -> str:
    year, month = key.split("-")
    return f"{MONTH_ABBREVIATIONS[int(month) - 1]} {year}"


def _next_period(key: str) -> str:
    year, month = (int(part) for part in key.split("-"))
    if month == 12:
        return f"{year + 1:04d}-01"
    return f"{year:04d}-{month + 1:02d}"


def aggregate_monthly(
    events: Iterable[ConsumptionEvent],
    fill_gaps: bool = False,
) -> list[MonthlyBucket]:
    """Sum event quantities per calendar month.

    Buckets are sorted by their zero-padded "YYYY-MM" key, so lexicographic
    and chronological order coincide. By default only months that have events
    produce a bucket; ``fill_gaps`` inserts zero buckets for the months in
    between the first and last period.
    """
    totals: dict[str, float] = defaultdict(float)
    for event in events:
        totals[period_key(event.occurred_on)] += event.quantity

    keys = sorted(totals)
    if fill_gaps and keys:
        filled = [keys[0]]
        while filled[-1] < keys[-1]:
            filled.append(_next_period(filled[-1]))
        keys = filled

    return [
        MonthlyBucket(
            period_key=key,
            label=month_label(key),
            total_quantity=totals.get(key, 0.0),
        )
        for key in keys
    ]
