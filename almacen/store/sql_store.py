from __future__ import annotations

import logging
from typing import Any, Callable

from sqlalchemy import Select, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from almacen.core.exceptions import StoreError
from almacen.models.models import (
    Article,
    ExpenseCategory,
    Installation,
    Issue,
    IssueLine,
    MaterialRequest,
    Person,
)
from almacen.store.base import StoreClient
from almacen.store.procedures import PROJECTION_PROCEDURE, compute_purchase_projection
from almacen.store.query import (
    Filter,
    FilterOp,
    Page,
    ProcedureCall,
    QueryDescriptor,
)


logger = logging.getLogger(__name__)


def _articles() -> Select:
    return select(
        Article.code.label("code"),
        Article.name.label("name"),
        Article.unit.label("unit"),
        Article.brand.label("brand"),
        Article.available_qty.label("available_qty"),
        Article.unit_price.label("unit_price"),
        Article.expense_code.label("expense_code"),
    )


def _expense_categories() -> Select:
    return select(ExpenseCategory.code.label("code"), ExpenseCategory.name.label("name"))


def _installations() -> Select:
    return select(Installation.id.label("id"), Installation.name.label("name"))


def _people() -> Select:
    return select(
        Person.identification.label("identification"),
        Person.name.label("name"),
        Person.alias.label("alias"),
        Person.authorized.label("authorized"),
    )


def _requests() -> Select:
    # Embeds the installation name the way the hosted store embeds the
    # related resource in a single select.
    return select(
        MaterialRequest.number.label("number"),
        MaterialRequest.request_type.label("request_type"),
        MaterialRequest.department.label("department"),
        MaterialRequest.maintenance_area.label("maintenance_area"),
        MaterialRequest.installation_id.label("installation_id"),
        Installation.name.label("installation_name"),
    ).outerjoin(Installation, Installation.id == MaterialRequest.installation_id)


def _consumption_events() -> Select:
    return select(
        IssueLine.id.label("line_id"),
        Issue.id.label("event_id"),
        Issue.issued_on.label("occurred_on"),
        IssueLine.article_code.label("item_code"),
        IssueLine.quantity.label("quantity"),
        IssueLine.unit_price.label("unit_price"),
        IssueLine.subtotal.label("subtotal"),
        Issue.request_number.label("request_number"),
        Issue.withdrawn_by.label("withdrawn_by"),
    ).join(Issue, Issue.id == IssueLine.issue_id)


def _daily_issue_summary() -> Select:
    return (
        select(
            Issue.issued_on.label("issued_on"),
            IssueLine.article_code.label("item_code"),
            Article.name.label("item_name"),
            Issue.request_number.label("request_number"),
            MaterialRequest.department.label("department"),
            MaterialRequest.maintenance_area.label("maintenance_area"),
            func.sum(IssueLine.quantity).label("total_quantity"),
            func.max(IssueLine.unit_price).label("unit_cost"),
            func.sum(IssueLine.subtotal).label("total_cost"),
        )
        .join(Issue, Issue.id == IssueLine.issue_id)
        .join(Article, Article.code == IssueLine.article_code)
        .outerjoin(MaterialRequest, MaterialRequest.number == Issue.request_number)
        .group_by(
            Issue.issued_on,
            IssueLine.article_code,
            Article.name,
            Issue.request_number,
            MaterialRequest.department,
            MaterialRequest.maintenance_area,
        )
    )


COLLECTIONS: dict[str, Callable[[], Select]] = {
    "articles": _articles,
    "expense_categories": _expense_categories,
    "installations": _installations,
    "people": _people,
    "requests": _requests,
    "consumption_events": _consumption_events,
    "daily_issue_summary": _daily_issue_summary,
}


def _filter_clause(column, flt: Filter):
    op = flt.op
    value = flt.value
    if op is FilterOp.EQ:
        return column.is_(None) if value is None else column == value
    if op is FilterOp.NEQ:
        return column.is_not(None) if value is None else column != value
    if op is FilterOp.GT:
        return column > value
    if op is FilterOp.GTE:
        return column >= value
    if op is FilterOp.LT:
        return column < value
    if op is FilterOp.LTE:
        return column <= value
    if op is FilterOp.LIKE:
        return column.like(value)
    if op is FilterOp.ILIKE:
        return column.ilike(value)
    if op is FilterOp.IN:
        return column.in_(list(value))
    raise StoreError(f"unsupported operator {op!r}")


def _sort_key(value: Any) -> tuple[int, Any]:
    # None sorts first, like the hosted store's nullsfirst default for asc.
    return (0, "") if value is None else (1, value)


class SqlStore(StoreClient):
    """Store client over the warehouse tables of a SQLAlchemy session.

    Collections are fixed selects (tables, or joined views standing in for the
    hosted store's views); filters and ordering are applied on top of them.
    """

    def __init__(self, db: Session) -> None:
        self.db = db
        # Last procedure result, reused for the later pages of the same drain.
        self._procedure_cache: tuple[tuple, list[dict[str, Any]]] | None = None

    def _statement(self, query: QueryDescriptor) -> tuple[Select, Callable[[str], Any]]:
        builder = COLLECTIONS.get(query.collection)
        if builder is None:
            raise StoreError("unknown collection", source=query.collection)

        sub = builder().subquery(query.collection)

        def column(name: str):
            if name not in sub.c:
                raise StoreError(f"unknown column {name!r}", source=query.collection)
            return sub.c[name]

        if query.select:
            stmt = select(*[column(name) for name in query.select])
        else:
            stmt = select(sub)

        for flt in query.filters:
            stmt = stmt.where(_filter_clause(column(flt.field), flt))
        return stmt, column

    def select(self, query: QueryDescriptor, offset: int, limit: int) -> Page:
        stmt, column = self._statement(query)
        ordered = stmt.order_by(
            *[
                column(order.field).asc() if order.ascending else column(order.field).desc()
                for order in query.order_by
            ]
        )

        try:
            result = self.db.execute(ordered.offset(offset).limit(limit))
            rows = [dict(row) for row in result.mappings().all()]
            total_count = None
            if query.count_exact:
                total_count = self.db.execute(
                    select(func.count()).select_from(stmt.subquery())
                ).scalar_one()
        except SQLAlchemyError as exc:
            logger.exception("Query against %s failed", query.collection)
            raise StoreError(str(exc), source=query.collection) from exc

        return Page(rows=rows, total_count=total_count)

    def call_procedure(self, call: ProcedureCall, offset: int, limit: int) -> Page:
        if call.name != PROJECTION_PROCEDURE:
            raise StoreError("unknown procedure", source=call.describe())

        cache_key = (call.name, tuple(sorted(call.params.items())), call.order_by)
        if offset > 0 and self._procedure_cache is not None and self._procedure_cache[0] == cache_key:
            rows = self._procedure_cache[1]
            return Page(rows=rows[offset : offset + limit], total_count=len(rows))

        try:
            rows = compute_purchase_projection(self.db, **call.params)
        except SQLAlchemyError as exc:
            logger.exception("Procedure %s failed", call.name)
            raise StoreError(str(exc), source=call.describe()) from exc
        except (TypeError, ValueError) as exc:
            raise StoreError(f"invalid parameters: {exc}", source=call.describe()) from exc

        # Python's sort is stable, so applying keys last-to-first yields a
        # multi-key ordering.
        for order in reversed(call.order_by):
            rows.sort(key=lambda row: _sort_key(row.get(order.field)), reverse=not order.ascending)

        self._procedure_cache = (cache_key, rows)
        return Page(rows=rows[offset : offset + limit], total_count=len(rows))
