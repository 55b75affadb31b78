from __future__ import annotations

from datetime import date

import pytest

from almacen.core.db import engine_connect_args
from almacen.core.exceptions import StoreError
from almacen.store import sql_store
from almacen.store.procedures import PROJECTION_PROCEDURE
from almacen.store.query import FilterOp, OrderBy, ProcedureCall, QueryDescriptor
from almacen.store.sql_store import SqlStore
from tests.test_utils import (
    create_article,
    create_issue,
    create_person,
    create_request,
)


@pytest.mark.usefixtures("db_session")
class TestSqlStoreSelect:
    def test_filters_ordering_and_paging(self, db_session):
        for code in ("C", "A", "D", "B"):
            create_article(db_session, code, available_qty=1)
        store = SqlStore(db_session)
        query = QueryDescriptor(collection="articles", select=("code", "name"), count_exact=True)
        query = query.where("code", FilterOp.NEQ, "D").ordered("code")

        first = store.select(query, offset=0, limit=2)
        second = store.select(query, offset=2, limit=2)

        assert [r["code"] for r in first.rows] == ["A", "B"]
        assert [r["code"] for r in second.rows] == ["C"]
        assert first.total_count == 3
        assert set(first.rows[0]) == {"code", "name"}

    def test_in_filter_and_descending_order(self, db_session):
        for code in ("A", "B", "C"):
            create_article(db_session, code)

        page = SqlStore(db_session).select(
            QueryDescriptor(collection="articles").where("code", "in", ["A", "C"]).ordered("code", ascending=False),
            offset=0,
            limit=10,
        )

        assert [r["code"] for r in page.rows] == ["C", "A"]
        assert page.total_count is None

    def test_consumption_events_join_issue_header(self, db_session):
        create_article(db_session, "A")
        create_person(db_session, "0102", "Ana Torres")
        issue = create_issue(db_session, date(2025, 1, 5), [("A", 3), ("A", 2)], withdrawn_by="0102")

        page = SqlStore(db_session).select(
            QueryDescriptor(collection="consumption_events")
            .where("occurred_on", FilterOp.GTE, date(2025, 1, 1))
            .ordered("line_id"),
            offset=0,
            limit=10,
        )

        assert [r["quantity"] for r in page.rows] == [3, 2]
        assert {r["event_id"] for r in page.rows} == {issue.id}
        assert page.rows[0]["occurred_on"] == date(2025, 1, 5)
        assert page.rows[0]["withdrawn_by"] == "0102"

    def test_requests_embed_installation_name(self, db_session):
        create_request(db_session, "R-1", installation_name="Planta Norte")
        create_request(db_session, "R-2")

        page = SqlStore(db_session).select(
            QueryDescriptor(collection="requests").ordered("number"), offset=0, limit=10
        )

        assert [r["installation_name"] for r in page.rows] == ["Planta Norte", None]

    def test_daily_summary_groups_lines(self, db_session):
        create_article(db_session, "A", name="Cloro")
        create_request(db_session, "R-1", department="Obras")
        create_issue(db_session, date(2025, 1, 5), [("A", 3), ("A", 2)], request_number="R-1", unit_price=2)

        page = SqlStore(db_session).select(
            QueryDescriptor(collection="daily_issue_summary").ordered("issued_on"), offset=0, limit=10
        )

        assert len(page.rows) == 1
        row = page.rows[0]
        assert row["total_quantity"] == 5
        assert row["total_cost"] == 10
        assert row["department"] == "Obras"

    def test_unknown_collection_and_column(self, db_session):
        store = SqlStore(db_session)
        with pytest.raises(StoreError):
            store.select(QueryDescriptor(collection="nope"), 0, 10)
        with pytest.raises(StoreError):
            store.select(QueryDescriptor(collection="articles").ordered("nope"), 0, 10)


@pytest.mark.usefixtures("db_session")
class TestSqlStoreProcedure:
    def test_projection_is_paged_and_counted(self, db_session):
        for code in ("A", "B", "C"):
            create_article(db_session, code)
        call = ProcedureCall(
            name=PROJECTION_PROCEDURE,
            params={"history_months": 12, "lead_time_months": 10, "cycle_months": 12, "safety_factor": 1.1},
            order_by=(OrderBy("item_code", ascending=False),),
        )

        page = SqlStore(db_session).call_procedure(call, offset=1, limit=5)

        assert [r["item_code"] for r in page.rows] == ["B", "A"]
        assert page.total_count == 3

    def test_unknown_procedure(self, db_session):
        with pytest.raises(StoreError):
            SqlStore(db_session).call_procedure(ProcedureCall(name="drop_everything"), 0, 10)

    def test_bad_parameters_become_store_error(self, db_session):
        call = ProcedureCall(name=PROJECTION_PROCEDURE, params={"history_months": 12})
        with pytest.raises(StoreError):
            SqlStore(db_session).call_procedure(call, 0, 10)

    def test_drain_computes_projection_once(self, db_session, monkeypatch):
        for code in ("A", "B", "C"):
            create_article(db_session, code)
        calls = []
        original = sql_store.compute_purchase_projection

        def counting(db, **params):
            calls.append(params)
            return original(db, **params)

        monkeypatch.setattr(sql_store, "compute_purchase_projection", counting)
        store = SqlStore(db_session)
        call = ProcedureCall(
            name=PROJECTION_PROCEDURE,
            params={"history_months": 12, "lead_time_months": 10, "cycle_months": 12, "safety_factor": 1.1},
            order_by=(OrderBy("item_code"),),
        )

        first = store.call_procedure(call, offset=0, limit=2)
        second = store.call_procedure(call, offset=2, limit=2)

        assert [r["item_code"] for r in first.rows + second.rows] == ["A", "B", "C"]
        assert len(calls) == 1

        store.call_procedure(call, offset=0, limit=2)
        assert len(calls) == 2


@pytest.mark.parametrize(
    ("url", "timeout", "expected"),
    [
        ("sqlite:///./almacen.db", 5, {"check_same_thread": False}),
        ("postgresql+psycopg2://u@h/db", 2.5, {"options": "-c statement_timeout=2500"}),
        ("postgresql://u@h/db", None, {}),
        ("mysql://u@h/db", 5, {}),
    ],
)
def test_engine_connect_args(url, timeout, expected):
    assert engine_connect_args(url, timeout) == expected
