from almacen.store.base import StoreClient
from almacen.store.query import (
    Filter,
    FilterOp,
    OrderBy,
    Page,
    PageSource,
    ProcedureCall,
    QueryDescriptor,
)

__all__ = [
    "Filter",
    "FilterOp",
    "OrderBy",
    "Page",
    "PageSource",
    "ProcedureCall",
    "QueryDescriptor",
    "StoreClient",
]
