from __future__ import annotations


class StoreError(Exception):
    """A page, batch or procedure request against the backing store failed.

    Raised for transport failures as well as for queries the store rejects
    (unknown collection, unknown column, bad operator). Always retryable from
    the caller's point of view: re-issuing the query is the recovery path.
    """

    def __init__(self, message: str, source: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.source = source

    def __str__(self) -> str:
        if self.source:
            return f"{self.source}: {self.message}"
        return self.message


class StoreTimeoutError(StoreError):
    """The store did not answer within the configured request or drain budget."""


class ParameterValidationError(ValueError):
    """Query parameters rejected before any store call is made."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message
