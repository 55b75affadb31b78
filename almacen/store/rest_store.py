from __future__ import annotations

import logging
import re
from dataclasses import replace
from datetime import date, datetime
from typing import Any, Mapping

import requests

from almacen.core.exceptions import StoreError, StoreTimeoutError
from almacen.store.base import StoreClient
from almacen.store.query import (
    Filter,
    FilterOp,
    OrderBy,
    Page,
    ProcedureCall,
    QueryDescriptor,
)
from almacen.store.remote_schema import (
    REMOTE_COLLECTIONS,
    REMOTE_PROCEDURES,
    RemoteCollection,
    RemoteProcedure,
)


logger = logging.getLogger(__name__)

_CONTENT_RANGE_RE = re.compile(r"^(?:\d+-\d+|\*)/(\d+|\*)$")


def _format_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if value is None:
        return "null"
    return str(value)


def _quote(value: Any) -> str:
    text = _format_scalar(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'


def encode_filter(flt: Filter) -> tuple[str, str]:
    """Render a filter as a PostgREST query parameter."""
    op = flt.op
    if op is FilterOp.IN:
        values = ",".join(_quote(v) for v in flt.value)
        return flt.field, f"in.({values})"
    if op in (FilterOp.LIKE, FilterOp.ILIKE):
        # PostgREST uses * as the wildcard in URLs.
        return flt.field, f"{op.value}.{str(flt.value).replace('%', '*')}"
    if flt.value is None and op in (FilterOp.EQ, FilterOp.NEQ):
        return flt.field, "is.null" if op is FilterOp.EQ else "not.is.null"
    return flt.field, f"{op.value}.{_format_scalar(flt.value)}"


def encode_order(order_by: tuple[OrderBy, ...]) -> str | None:
    if not order_by:
        return None
    return ",".join(f"{o.field}.{'asc' if o.ascending else 'desc'}" for o in order_by)


def parse_content_range(header: str | None) -> int | None:
    if not header:
        return None
    match = _CONTENT_RANGE_RE.match(header.strip())
    if match is None or match.group(1) == "*":
        return None
    return int(match.group(1))


def _json_default(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


class RestStore(StoreClient):
    """Store client for the hosted PostgREST endpoint.

    Logical collection, procedure and column names are translated to the
    hosted schema on the way out and back on the way in; names with no
    mapping are sent unchanged.

    ``requests.Session`` is safe to share across the enrichment worker
    threads, so this client may be used with ``max_workers > 1``.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 30.0,
        session: requests.Session | None = None,
        collections: Mapping[str, RemoteCollection] | None = None,
        procedures: Mapping[str, RemoteProcedure] | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.collections = REMOTE_COLLECTIONS if collections is None else collections
        self.procedures = REMOTE_PROCEDURES if procedures is None else procedures
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
            }
        )

    def _request(
        self,
        method: str,
        path: str,
        source: str,
        params: list[tuple[str, str]],
        headers: dict[str, str] | None = None,
        payload: dict[str, Any] | None = None,
    ) -> requests.Response:
        url = f"{self.base_url}/rest/v1/{path}"
        try:
            response = self.session.request(
                method,
                url,
                params=params,
                headers=headers,
                json=payload,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as exc:
            raise StoreTimeoutError(f"timed out after {self.timeout}s", source=source) from exc
        except requests.exceptions.RequestException as exc:
            raise StoreError(f"transport failure: {exc}", source=source) from exc

        if response.status_code >= 400:
            message = response.text
            try:
                body = response.json()
                if isinstance(body, dict) and body.get("message"):
                    message = body["message"]
            except ValueError:
                pass
            logger.warning("Store returned HTTP %s for %s: %s", response.status_code, source, message)
            raise StoreError(f"HTTP {response.status_code}: {message}", source=source)
        return response

    @staticmethod
    def _rows(response: requests.Response, source: str) -> list[dict[str, Any]]:
        try:
            rows = response.json()
        except ValueError as exc:
            raise StoreError("response is not JSON", source=source) from exc
        if not isinstance(rows, list):
            raise StoreError("expected a JSON array of rows", source=source)
        return rows

    def _collection(self, name: str) -> RemoteCollection:
        return self.collections.get(name) or RemoteCollection(name)

    def _procedure(self, name: str) -> RemoteProcedure:
        return self.procedures.get(name) or RemoteProcedure(name)

    def select(self, query: QueryDescriptor, offset: int, limit: int) -> Page:
        source = query.describe()
        remote = self._collection(query.collection)
        filtered = [f.field for f in query.filters]
        params: list[tuple[str, str]] = [("select", remote.select_clause(query.select, filtered))]
        params.extend(encode_filter(replace(f, field=remote.filter_field(f.field))) for f in query.filters)
        order = encode_order(tuple(replace(o, field=remote.order_field(o.field)) for o in query.order_by))
        if order:
            params.append(("order", order))
        params.extend([("offset", str(offset)), ("limit", str(limit))])

        headers = {"Prefer": "count=exact"} if query.count_exact else None
        response = self._request("GET", remote.name, source, params, headers=headers)
        return Page(
            rows=[remote.to_logical(row, query.select) for row in self._rows(response, source)],
            total_count=parse_content_range(response.headers.get("Content-Range")),
        )

    def call_procedure(self, call: ProcedureCall, offset: int, limit: int) -> Page:
        source = call.describe()
        remote = self._procedure(call.name)
        params: list[tuple[str, str]] = []
        order = encode_order(tuple(replace(o, field=remote.order_field(o.field)) for o in call.order_by))
        if order:
            params.append(("order", order))
        params.extend([("offset", str(offset)), ("limit", str(limit))])

        payload = {k: _json_default(v) for k, v in remote.payload(call.params).items()}
        response = self._request("POST", f"rpc/{remote.name}", source, params, payload=payload)
        return Page(
            rows=[remote.to_logical(row) for row in self._rows(response, source)],
            total_count=parse_content_range(response.headers.get("Content-Range")),
        )
