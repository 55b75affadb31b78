from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from almacen.core.config import Settings
from almacen.core.exceptions import StoreError
from almacen.schemas.projection import ProjectionParameters, ProjectionRow
from almacen.services.key_batch_resolver import KeyBatchResolver, extract_keys, lookup_label
from almacen.services.paged_fetcher import PagedFetcher
from almacen.store.base import StoreClient
from almacen.store.procedures import PROJECTION_PROCEDURE
from almacen.store.query import OrderBy, ProcedureCall


logger = logging.getLogger(__name__)


NUMERIC_FIELDS = (
    "current_stock",
    "monthly_average",
    "lead_time_consumption",
    "residual_stock",
    "cycle_demand",
    "suggested_quantity",
    "unit_cost",
)


@dataclass
class ProjectionResult:
    rows: list[ProjectionRow]
    truncated: bool
    total_count: int | None
    warning: str | None


def _number(value: Any) -> float:
    if value is None or value == "":
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def to_projection_row(raw: dict[str, Any]) -> ProjectionRow:
    """Type a procedure row, enforcing the non-negative purchase invariants."""
    item_code = raw.get("item_code")
    if not item_code:
        raise StoreError("projection row without item_code", source=PROJECTION_PROCEDURE)

    values = {name: _number(raw.get(name)) for name in NUMERIC_FIELDS}
    values["suggested_quantity"] = max(0.0, values["suggested_quantity"])
    unit_cost = max(0.0, values["unit_cost"])
    values["unit_cost"] = unit_cost

    try:
        return ProjectionRow(
            item_code=str(item_code),
            item_name=raw.get("item_name"),
            unit=raw.get("unit"),
            expense_code=raw.get("expense_code") or None,
            estimated_cost=values["suggested_quantity"] * unit_cost,
            **values,
        )
    except ValidationError as exc:
        raise StoreError(f"malformed projection row {item_code}: {exc}", source=PROJECTION_PROCEDURE) from exc


class ReplenishmentProjector:
    """Runs the store's purchase projection and enriches its rows.

    The reorder arithmetic belongs to the store's procedure; this class
    builds the parameterised call, drains every page of its result, types
    the rows and attaches the expense category name. It never writes.
    """

    def __init__(
        self,
        store: StoreClient,
        fetcher: PagedFetcher | None = None,
        category_resolver: KeyBatchResolver | None = None,
    ) -> None:
        self.store = store
        self.fetcher = fetcher or PagedFetcher(store)
        self.category_resolver = category_resolver or KeyBatchResolver(
            store,
            collection="expense_categories",
            key_field="code",
            select=("code", "name"),
            fetcher=self.fetcher,
        )

    @classmethod
    def from_settings(cls, store: StoreClient, settings: Settings) -> "ReplenishmentProjector":
        fetcher = PagedFetcher.from_settings(store, settings)
        resolver = KeyBatchResolver.from_settings(
            store,
            settings,
            collection="expense_categories",
            key_field="code",
            select=("code", "name"),
            fetcher=fetcher,
        )
        return cls(store, fetcher=fetcher, category_resolver=resolver)

    @staticmethod
    def build_call(params: ProjectionParameters) -> ProcedureCall:
        return ProcedureCall(
            name=PROJECTION_PROCEDURE,
            params={
                "history_months": params.history_months,
                "lead_time_months": params.lead_time_months,
                "cycle_months": params.cycle_months,
                "safety_factor": params.safety_factor,
                "as_of": params.as_of,
            },
            order_by=(OrderBy("item_code"),),
        )

    def project(self, params: ProjectionParameters) -> ProjectionResult:
        drained = self.fetcher.drain(self.build_call(params))
        rows = [to_projection_row(raw) for raw in drained.rows]

        categories = self.category_resolver.resolve(
            extract_keys(drained.rows, "expense_code")
        )
        for row in rows:
            row.expense_category = lookup_label(categories, row.expense_code, "name")

        logger.info(
            "Projection (history=%s, lead=%s, cycle=%s, safety=%s): %s rows, %s to buy",
            params.history_months,
            params.lead_time_months,
            params.cycle_months,
            params.safety_factor,
            len(rows),
            sum(1 for r in rows if r.suggested_quantity > 0),
        )

        return ProjectionResult(
            rows=rows,
            truncated=drained.truncated,
            total_count=drained.total_count,
            warning=drained.warning,
        )
