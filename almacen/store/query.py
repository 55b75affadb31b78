from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Union


class FilterOp(str, Enum):
    EQ = "eq"
    NEQ = "neq"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    LIKE = "like"
    ILIKE = "ilike"
    IN = "in"


@dataclass(frozen=True)
class Filter:
    field: str
    op: FilterOp
    value: Any


@dataclass(frozen=True)
class OrderBy:
    field: str
    ascending: bool = True


@dataclass(frozen=True)
class QueryDescriptor:
    """Filtered, ordered read of one named collection.

    An empty ``select`` means all columns. Pagination is not part of the
    descriptor; the fetcher supplies offset and limit per page.
    """

    collection: str
    select: tuple[str, ...] = ()
    filters: tuple[Filter, ...] = ()
    order_by: tuple[OrderBy, ...] = ()
    count_exact: bool = False

    def where(self, field_name: str, op: FilterOp | str, value: Any) -> "QueryDescriptor":
        return replace(self, filters=self.filters + (Filter(field_name, FilterOp(op), value),))

    def ordered(self, field_name: str, ascending: bool = True) -> "QueryDescriptor":
        return replace(self, order_by=self.order_by + (OrderBy(field_name, ascending),))

    def describe(self) -> str:
        return self.collection


@dataclass(frozen=True)
class ProcedureCall:
    """Invocation of a stored procedure whose result set is paginated."""

    name: str
    params: dict[str, Any] = field(default_factory=dict)
    order_by: tuple[OrderBy, ...] = ()

    def describe(self) -> str:
        return f"rpc/{self.name}"


PageSource = Union[QueryDescriptor, ProcedureCall]


@dataclass
class Page:
    rows: list[dict[str, Any]]
    total_count: int | None = None
