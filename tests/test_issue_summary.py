from __future__ import annotations

from datetime import date

import pytest

from almacen.core.exceptions import ParameterValidationError
from almacen.schemas import IssueSummaryRequest
from almacen.services.issue_summary import EMPTY_RANGE_MESSAGE, build_issue_summary
from almacen.store.sql_store import SqlStore
from tests.test_utils import FakeStore, create_article, create_issue, create_request


def _summary_row(day, code, request_number, quantity, cost, department=None):
    return {
        "issued_on": day,
        "item_code": code,
        "item_name": f"Item {code}",
        "request_number": request_number,
        "department": department,
        "maintenance_area": None,
        "total_quantity": quantity,
        "unit_cost": cost,
        "total_cost": quantity * cost,
    }


def _request(**kwargs) -> IssueSummaryRequest:
    defaults = {"date_from": date(2025, 1, 1), "date_to": date(2025, 1, 31)}
    defaults.update(kwargs)
    return IssueSummaryRequest(**defaults)


ROWS = [
    _summary_row(date(2025, 1, 2), "B", "R-1", 2, 10, "Obras"),
    _summary_row(date(2025, 1, 2), "A", "R-2", 1, 4),
    _summary_row(date(2025, 1, 5), "C", None, 3, 1, "Agua"),
]


class TestBuildIssueSummary:
    def test_rows_ordered_enriched_and_totalled(self, settings):
        store = FakeStore(
            {
                "daily_issue_summary": ROWS,
                "requests": [
                    {"number": "R-1", "installation_name": "Planta Norte"},
                    {"number": "R-2", "installation_name": None},
                ],
            }
        )

        response = build_issue_summary(store, _request(), settings)

        assert [r.item_code for r in response.rows] == ["A", "B", "C"]
        assert [r.installation for r in response.rows] == ["N/A", "Planta Norte", "N/A"]
        assert response.totals.rows == 3
        assert response.totals.total_quantity == 6
        assert response.totals.total_cost == 27
        assert response.totals.distinct_requests == 2
        assert response.message is None

    def test_paging_order_is_total_across_ties(self, settings):
        tied = [
            _summary_row(date(2025, 1, 3), "A", "R-3", 1, 1, "Obras"),
            _summary_row(date(2025, 1, 3), "A", "R-1", 1, 1, "Obras"),
            _summary_row(date(2025, 1, 3), "A", "R-2", 1, 1, "Obras"),
        ]
        store = FakeStore({"daily_issue_summary": tied})

        response = build_issue_summary(store, _request(), settings)

        pages = store.requests_for("daily_issue_summary")
        assert [offset for _, offset, _ in pages] == [0, 2]
        for query, _, _ in pages:
            assert [o.field for o in query.order_by] == [
                "issued_on",
                "item_code",
                "request_number",
                "department",
                "maintenance_area",
            ]
        assert [r.request_number for r in response.rows] == ["R-1", "R-2", "R-3"]

    def test_sort_puts_missing_values_first(self, settings):
        store = FakeStore({"daily_issue_summary": ROWS})

        response = build_issue_summary(store, _request(sort_by="department"), settings)

        assert [r.department for r in response.rows] == [None, "Agua", "Obras"]

    def test_unknown_sort_key_is_rejected_before_querying(self, settings):
        store = FakeStore({"daily_issue_summary": ROWS})

        with pytest.raises(ParameterValidationError):
            build_issue_summary(store, _request(sort_by="nope"), settings)
        assert store.requests == []

    def test_inverted_range_is_rejected(self, settings):
        with pytest.raises(ParameterValidationError):
            build_issue_summary(FakeStore(), _request(date_from=date(2025, 2, 1)), settings)

    def test_empty_range_has_message(self, settings):
        response = build_issue_summary(FakeStore({"daily_issue_summary": []}), _request(), settings)

        assert response.rows == []
        assert response.message == EMPTY_RANGE_MESSAGE

    def test_installation_failure_falls_back(self, settings):
        store = FakeStore({"daily_issue_summary": ROWS}, fail_on={"requests": 0})

        response = build_issue_summary(store, _request(), settings)

        assert {r.installation for r in response.rows} == {"N/A"}


@pytest.mark.usefixtures("db_session")
def test_issue_summary_over_sql_store(db_session, settings):
    create_article(db_session, "A", name="Cloro")
    create_request(db_session, "R-1", installation_name="Planta Norte", department="Obras")
    create_issue(db_session, date(2025, 1, 5), [("A", 3), ("A", 2)], request_number="R-1", unit_price=2)
    create_issue(db_session, date(2025, 3, 1), [("A", 7)], request_number="R-1", unit_price=2)

    response = build_issue_summary(SqlStore(db_session), _request(), settings)

    assert len(response.rows) == 1
    row = response.rows[0]
    assert row.total_quantity == 5
    assert row.total_cost == 10
    assert row.installation == "Planta Norte"
    assert row.item_name == "Cloro"
