from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from almacen.core.config import Settings
from almacen.core.exceptions import StoreTimeoutError
from almacen.store.base import StoreClient
from almacen.store.query import PageSource


logger = logging.getLogger(__name__)


DEFAULT_PAGE_SIZE = 1000
DEFAULT_MAX_ROWS = 50_000


@dataclass
class DrainResult:
    rows: list[dict[str, Any]] = field(default_factory=list)
    truncated: bool = False
    total_count: int | None = None
    pages_fetched: int = 0

    @property
    def warning(self) -> str | None:
        if not self.truncated:
            return None
        if self.total_count is not None:
            return f"showing first {len(self.rows)} of {self.total_count} rows"
        return f"showing first {len(self.rows)} rows of possibly more"


class PagedFetcher:
    """Drains a filtered, ordered, server-paginated source into memory.

    Pages are requested strictly one after another, offset advancing by the
    page size, and concatenated in arrival order. The store's ordering is the
    only ordering: rows are never re-sorted across pages, so the source must
    carry an ordering key.

    The drain stops on a short or empty page, or once ``max_rows`` rows have
    been collected. A ceiling stop returns exactly ``max_rows`` rows flagged
    ``truncated`` so callers can warn instead of presenting a partial answer
    as complete. A failing page aborts the whole drain; rows already fetched
    are dropped with it.
    """

    def __init__(
        self,
        store: StoreClient,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_rows: int = DEFAULT_MAX_ROWS,
        timeout_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        if max_rows <= 0:
            raise ValueError("max_rows must be positive")
        self.store = store
        self.page_size = page_size
        self.max_rows = max_rows
        self.timeout_seconds = timeout_seconds
        self._clock = clock

    @classmethod
    def from_settings(cls, store: StoreClient, settings: Settings) -> "PagedFetcher":
        return cls(
            store,
            page_size=settings.page_size,
            max_rows=settings.max_rows,
            timeout_seconds=settings.drain_timeout_seconds,
        )

    def drain(self, source: PageSource) -> DrainResult:
        started = self._clock()
        rows: list[dict[str, Any]] = []
        total_count: int | None = None
        pages = 0
        offset = 0
        truncated = False

        while True:
            if self.timeout_seconds is not None:
                elapsed = self._clock() - started
                if elapsed > self.timeout_seconds:
                    raise StoreTimeoutError(
                        f"drain exceeded {self.timeout_seconds}s after {pages} pages",
                        source=source.describe(),
                    )

            page = self.store.fetch_page(source, offset, self.page_size)
            pages += 1
            if total_count is None and page.total_count is not None:
                total_count = page.total_count

            batch = page.rows
            logger.debug(
                "Fetched page %s of %s (offset=%s, rows=%s)",
                pages,
                source.describe(),
                offset,
                len(batch),
            )
            if not batch:
                break

            rows.extend(batch)
            last_page = len(batch) < self.page_size

            if len(rows) >= self.max_rows:
                overflow = len(rows) > self.max_rows
                del rows[self.max_rows :]
                complete = last_page and not overflow
                if total_count is not None:
                    complete = total_count <= self.max_rows
                truncated = not complete
                break

            if last_page:
                break
            offset += self.page_size

        if truncated:
            logger.warning(
                "Drain of %s stopped at the %s row ceiling (total_count=%s)",
                source.describe(),
                self.max_rows,
                total_count,
            )
        else:
            logger.info(
                "Drained %s rows from %s in %s pages",
                len(rows),
                source.describe(),
                pages,
            )

        return DrainResult(
            rows=rows,
            truncated=truncated,
            total_count=total_count,
            pages_fetched=pages,
        )
