from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Hashable, Iterable

from almacen.core.config import Settings
from almacen.core.exceptions import StoreError
from almacen.services.paged_fetcher import PagedFetcher
from almacen.store.base import StoreClient
from almacen.store.query import FilterOp, QueryDescriptor


logger = logging.getLogger(__name__)


DEFAULT_KEY_BATCH_SIZE = 100


@dataclass(frozen=True)
class ReferenceEntity:
    """Display fields of a secondary entity, keyed by its natural key."""

    key: Hashable
    fields: dict[str, Any] = field(default_factory=dict)

    def label(self, field_name: str, fallback: str = "N/A") -> str:
        value = self.fields.get(field_name)
        if value is None or value == "":
            return fallback
        return str(value)


def extract_keys(rows: Iterable[dict[str, Any]], field_name: str) -> set:
    """Distinct non-empty values of ``field_name`` across ``rows``."""
    return {row.get(field_name) for row in rows if row.get(field_name)}


def lookup_label(
    entities: dict[Hashable, ReferenceEntity],
    key: Hashable,
    field_name: str,
    fallback: str = "N/A",
) -> str:
    entity = entities.get(key) if key else None
    if entity is None:
        return fallback
    return entity.label(field_name, fallback)


class KeyBatchResolver:
    """Client-side join: fetch referenced rows for a set of foreign keys.

    Keys are split into batches small enough for one ``IN (...)`` filter.
    Enrichment is decoration, so a failing batch is logged and its keys
    simply stay unresolved; callers apply their fallback label.
    """

    def __init__(
        self,
        store: StoreClient,
        collection: str,
        key_field: str,
        select: tuple[str, ...] = (),
        batch_size: int = DEFAULT_KEY_BATCH_SIZE,
        max_workers: int = 1,
        fetcher: PagedFetcher | None = None,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        if select and key_field not in select:
            select = (key_field,) + tuple(select)
        self.store = store
        self.collection = collection
        self.key_field = key_field
        self.select = tuple(select)
        self.batch_size = batch_size
        self.max_workers = max_workers
        self.fetcher = fetcher or PagedFetcher(store)

    @classmethod
    def from_settings(
        cls,
        store: StoreClient,
        settings: Settings,
        collection: str,
        key_field: str,
        select: tuple[str, ...] = (),
        fetcher: PagedFetcher | None = None,
    ) -> "KeyBatchResolver":
        return cls(
            store,
            collection=collection,
            key_field=key_field,
            select=select,
            batch_size=settings.key_batch_size,
            max_workers=settings.enrichment_max_workers,
            fetcher=fetcher or PagedFetcher.from_settings(store, settings),
        )

    def _batches(self, keys: Iterable[Hashable]) -> list[list[Hashable]]:
        distinct = sorted({k for k in keys if k}, key=str)
        return [
            distinct[i : i + self.batch_size]
            for i in range(0, len(distinct), self.batch_size)
        ]

    def _fetch_batch(self, batch: list[Hashable]) -> list[dict[str, Any]]:
        query = QueryDescriptor(
            collection=self.collection,
            select=self.select,
        ).where(self.key_field, FilterOp.IN, batch).ordered(self.key_field)
        try:
            return self.fetcher.drain(query).rows
        except StoreError:
            logger.warning(
                "Enrichment batch of %s keys against %s failed; keys left unresolved",
                len(batch),
                self.collection,
                exc_info=True,
            )
            return []

    def resolve(self, keys: Iterable[Hashable]) -> dict[Hashable, ReferenceEntity]:
        batches = self._batches(keys)
        if not batches:
            return {}

        if self.max_workers > 1 and len(batches) > 1:
            workers = min(self.max_workers, len(batches))
            with ThreadPoolExecutor(max_workers=workers) as pool:
                results = list(pool.map(self._fetch_batch, batches))
        else:
            results = [self._fetch_batch(batch) for batch in batches]

        resolved: dict[Hashable, ReferenceEntity] = {}
        for rows in results:
            for row in rows:
                key = row.get(self.key_field)
                if key is None or key in resolved:
                    continue
                resolved[key] = ReferenceEntity(key=key, fields=dict(row))

        logger.debug(
            "Resolved %s keys against %s in %s batches",
            len(resolved),
            self.collection,
            len(batches),
        )
        return resolved
