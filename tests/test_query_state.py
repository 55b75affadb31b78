from __future__ import annotations

from almacen.core.exceptions import ParameterValidationError, StoreError
from almacen.schemas import QueryStatus
from almacen.services.query_state import ViewQuery


class TestViewQuery:
    def test_starts_idle(self):
        assert ViewQuery().state.status is QueryStatus.IDLE

    def test_success_and_empty_flag(self):
        view = ViewQuery()

        state = view.run(lambda: [])

        assert state.status is QueryStatus.SUCCESS
        assert state.empty is True
        assert view.run(lambda: [1]).empty is False

    def test_store_error_becomes_error_state(self):
        def failing():
            raise StoreError("connection reset", source="articles")

        state = ViewQuery().run(failing)

        assert state.status is QueryStatus.ERROR
        assert "connection reset" in state.error

    def test_parameter_error_becomes_error_state(self):
        def invalid():
            raise ParameterValidationError("date_to", "before date_from")

        state = ViewQuery().run(invalid)

        assert state.status is QueryStatus.ERROR
        assert state.error.startswith("date_to")

    def test_superseded_result_is_discarded(self):
        view = ViewQuery()
        first = view.begin()
        second = view.begin()

        assert view.complete(second, "fresh") is True
        assert view.complete(first, "stale") is False
        assert view.fail(first, "stale failure") is False

        state = view.state
        assert state.data == "fresh"
        assert state.generation == second
        assert state.status is QueryStatus.SUCCESS

    def test_loading_keeps_previous_data(self):
        view = ViewQuery()
        view.run(lambda: ["old"])

        view.begin()

        assert view.state.status is QueryStatus.LOADING
        assert view.state.data == ["old"]
