from __future__ import annotations

import calendar
from datetime import date
from decimal import ROUND_CEILING, Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from almacen.models.models import Article, Issue, IssueLine


PROJECTION_PROCEDURE = "compute_purchase_projection"


def _dec(value: Any) -> Decimal:
    if value is None:
        return Decimal(0)
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def shift_months(day: date, months: int) -> date:
    """Move ``day`` by whole months, clamping to the last day of the target month."""
    month_index = day.year * 12 + (day.month - 1) + months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def projection_figures(
    current_stock: Any,
    monthly_average: Any,
    unit_cost: Any,
    lead_time_months: Any,
    cycle_months: Any,
    safety_factor: Any,
) -> dict[str, float]:
    """Reorder arithmetic for one article.

    Computed in Decimal so that e.g. 120 * 1.1 ceils to 132, not 133.
    """
    stock = _dec(current_stock)
    average = _dec(monthly_average)
    cost = _dec(unit_cost)

    lead_time_consumption = average * _dec(lead_time_months)
    residual_stock = max(Decimal(0), stock - lead_time_consumption)
    cycle_demand = average * _dec(cycle_months)
    shortfall = max(Decimal(0), cycle_demand - residual_stock)
    suggested_quantity = (shortfall * _dec(safety_factor)).to_integral_value(
        rounding=ROUND_CEILING
    )
    estimated_cost = suggested_quantity * cost

    return {
        "current_stock": float(stock),
        "monthly_average": float(average),
        "lead_time_consumption": float(lead_time_consumption),
        "residual_stock": float(residual_stock),
        "cycle_demand": float(cycle_demand),
        "suggested_quantity": float(suggested_quantity),
        "unit_cost": float(cost),
        "estimated_cost": float(estimated_cost),
    }


def compute_purchase_projection(
    db: Session,
    history_months: int,
    lead_time_months: int,
    cycle_months: int,
    safety_factor: float,
    as_of: date | str | None = None,
) -> list[dict[str, Any]]:
    """One projection row per article, ordered by article code.

    The monthly average is the quantity issued in the ``history_months``
    window ending at ``as_of`` divided by ``history_months``.
    """
    if isinstance(as_of, str):
        as_of = date.fromisoformat(as_of)
    as_of = as_of or date.today()
    window_start = shift_months(as_of, -int(history_months))

    consumed_rows = db.execute(
        select(IssueLine.article_code, func.coalesce(func.sum(IssueLine.quantity), 0))
        .join(Issue, Issue.id == IssueLine.issue_id)
        .where(Issue.issued_on > window_start, Issue.issued_on <= as_of)
        .group_by(IssueLine.article_code)
    ).all()
    consumed_by_code = {code: qty for code, qty in consumed_rows}

    articles = db.execute(select(Article).order_by(Article.code)).scalars().all()

    rows: list[dict[str, Any]] = []
    for article in articles:
        consumed = _dec(consumed_by_code.get(article.code, 0))
        monthly_average = consumed / _dec(history_months)
        figures = projection_figures(
            current_stock=article.available_qty,
            monthly_average=monthly_average,
            unit_cost=article.unit_price,
            lead_time_months=lead_time_months,
            cycle_months=cycle_months,
            safety_factor=safety_factor,
        )
        rows.append(
            {
                "item_code": article.code,
                "item_name": article.name,
                "unit": article.unit,
                "expense_code": article.expense_code,
                **figures,
            }
        )
    return rows
