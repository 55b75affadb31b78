from __future__ import annotations

import logging
import threading
from typing import Any, Callable

from almacen.core.exceptions import ParameterValidationError, StoreError
from almacen.schemas.query_state import QueryState, QueryStatus


logger = logging.getLogger(__name__)


def _is_empty(data: Any) -> bool:
    # A paged table is empty only when the whole result set is.
    summary = getattr(data, "summary", None)
    if summary is not None and hasattr(summary, "total_items"):
        return summary.total_items == 0
    rows = getattr(data, "rows", data)
    try:
        return len(rows) == 0
    except TypeError:
        return data is None


class ViewQuery:
    """Lifecycle of one view's query: idle, loading, then success or error.

    Every ``begin`` hands out a new generation. A result is only applied
    while its generation is still the latest one, so when parameters change
    mid-flight the older answer is dropped and the last query wins.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state = QueryState()

    @property
    def state(self) -> QueryState:
        with self._lock:
            return self._state.model_copy()

    @property
    def generation(self) -> int:
        with self._lock:
            return self._state.generation

    def begin(self) -> int:
        with self._lock:
            generation = self._state.generation + 1
            self._state = QueryState(
                status=QueryStatus.LOADING,
                generation=generation,
                data=self._state.data,
            )
            return generation

    def complete(self, generation: int, data: Any) -> bool:
        with self._lock:
            if generation != self._state.generation:
                logger.debug(
                    "Discarding result of superseded query %s (current %s)",
                    generation,
                    self._state.generation,
                )
                return False
            self._state = QueryState(
                status=QueryStatus.SUCCESS,
                generation=generation,
                data=data,
                empty=_is_empty(data),
            )
            return True

    def fail(self, generation: int, error: str) -> bool:
        with self._lock:
            if generation != self._state.generation:
                return False
            self._state = QueryState(
                status=QueryStatus.ERROR,
                generation=generation,
                error=error,
            )
            return True

    def run(self, fn: Callable[[], Any], generation: int | None = None) -> QueryState:
        """Run ``fn`` as the current query and record its outcome."""
        if generation is None:
            generation = self.begin()
        try:
            data = fn()
        except ParameterValidationError as exc:
            self.fail(generation, str(exc))
        except StoreError as exc:
            logger.warning("Query %s failed: %s", generation, exc)
            self.fail(generation, f"{exc}; retry to reload")
        else:
            self.complete(generation, data)
        return self.state
