from __future__ import annotations

from abc import ABC, abstractmethod

from almacen.store.query import Page, PageSource, ProcedureCall, QueryDescriptor


class StoreClient(ABC):
    """Read-only access to the backing store.

    Implementations raise ``StoreError`` (or ``StoreTimeoutError``) for any
    failure; callers never see driver or transport exceptions.
    """

    def fetch_page(self, source: PageSource, offset: int, limit: int) -> Page:
        if isinstance(source, ProcedureCall):
            return self.call_procedure(source, offset, limit)
        return self.select(source, offset, limit)

    @abstractmethod
    def select(self, query: QueryDescriptor, offset: int, limit: int) -> Page:
        ...

    @abstractmethod
    def call_procedure(self, call: ProcedureCall, offset: int, limit: int) -> Page:
        ...
