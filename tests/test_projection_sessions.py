from __future__ import annotations

from contextlib import contextmanager

import pytest

from almacen.schemas import ProjectionParameters, ProjectionRequest, ProjectionTableOptions, QueryStatus
from almacen.services.projection_sessions import ProjectionSessionRegistry
from almacen.store.procedures import PROJECTION_PROCEDURE
from tests.test_utils import FakeScheduler, FakeStore


PROCEDURE_ROWS = [
    {"item_code": "A", "item_name": "Cloro", "suggested_quantity": 3, "unit_cost": 2},
    {"item_code": "B", "item_name": "Escoba", "suggested_quantity": 0, "unit_cost": 5},
]


@pytest.fixture
def store():
    return FakeStore(procedures={PROJECTION_PROCEDURE: PROCEDURE_ROWS})


@pytest.fixture
def registry(settings, store):
    @contextmanager
    def store_factory(_settings):
        yield store

    scheduler = FakeScheduler()
    registry = ProjectionSessionRegistry(
        settings.model_copy(update={"projection_scheduler_enabled": True}),
        scheduler=scheduler,
        store_factory=store_factory,
    )
    registry.start()
    yield registry
    registry.shutdown()


def _request(history_months: int) -> ProjectionRequest:
    return ProjectionRequest(parameters=ProjectionParameters(history_months=history_months))


class TestProjectionSessions:
    def test_rapid_submissions_collapse_into_one_job(self, registry, store):
        for months in (3, 6, 9, 12):
            state = registry.submit("s1", _request(months))
            assert state.status is QueryStatus.LOADING

        scheduler = registry._scheduler
        assert scheduler.add_calls == 4
        assert list(scheduler.jobs) == ["projection:s1"]

        scheduler.run_pending()

        calls = store.requests_for(PROJECTION_PROCEDURE)
        assert [offset for _, offset, _ in calls] == [0, 2]
        assert {call.params["history_months"] for call, _, _ in calls} == {12}

        state = registry.state("s1")
        assert state.status is QueryStatus.SUCCESS
        assert state.generation == 4
        assert state.data.summary.items_to_buy == 1

    def test_sessions_are_independent(self, registry):
        registry.submit("s1", _request(6))
        registry.submit("s2", _request(12))

        assert sorted(registry._scheduler.jobs) == ["projection:s1", "projection:s2"]
        assert registry.state("unknown").status is QueryStatus.IDLE

    def test_job_superseded_after_scheduling_is_skipped(self, registry, store):
        registry.submit("s1", _request(6))
        stale = registry._scheduler.jobs["projection:s1"]
        registry.submit("s1", _request(12))

        stale.func(*stale.args)

        assert store.requests_for(PROJECTION_PROCEDURE) == []

    def test_store_failure_ends_in_error_state(self, registry, store):
        store.fail_on[PROJECTION_PROCEDURE] = 0
        registry.submit("s1", _request(6))

        registry._scheduler.run_pending()

        state = registry.state("s1")
        assert state.status is QueryStatus.ERROR
        assert "retry" in state.error

    def test_bad_sort_key_ends_in_error_state(self, registry):
        request = ProjectionRequest(table=ProjectionTableOptions(sort_by="nope"))
        registry.submit("s1", request)

        registry._scheduler.run_pending()

        assert registry.state("s1").status is QueryStatus.ERROR

    def test_page_past_the_end_is_not_empty(self, registry):
        request = ProjectionRequest(table=ProjectionTableOptions(page=99))
        registry.submit("s1", request)

        registry._scheduler.run_pending()

        state = registry.state("s1")
        assert state.status is QueryStatus.SUCCESS
        assert state.data.rows == []
        assert state.empty is False

    def test_submit_requires_running_scheduler(self, settings):
        registry = ProjectionSessionRegistry(settings, scheduler=FakeScheduler())

        with pytest.raises(RuntimeError):
            registry.submit("s1", _request(6))


def test_disabled_registry_does_not_start(settings):
    scheduler = FakeScheduler()
    registry = ProjectionSessionRegistry(settings, scheduler=scheduler)

    registry.start()

    assert scheduler.running is False
    assert registry.running is False


def test_least_recently_used_sessions_are_evicted(settings, store):
    @contextmanager
    def store_factory(_settings):
        yield store

    scheduler = FakeScheduler()
    registry = ProjectionSessionRegistry(
        settings.model_copy(update={"projection_scheduler_enabled": True, "projection_max_sessions": 3}),
        scheduler=scheduler,
        store_factory=store_factory,
    )
    registry.start()

    for session_id in ("s1", "s2", "s3"):
        registry.submit(session_id, _request(6))
    registry.state("s1")
    registry.submit("s4", _request(6))
    registry.submit("s5", _request(6))

    assert list(registry._views) == ["s1", "s4", "s5"]
    assert registry.state("s2").status is QueryStatus.IDLE

    scheduler.run_pending()

    assert registry.state("s5").status is QueryStatus.SUCCESS
    assert list(registry._views) == ["s1", "s4", "s5"]
    # Jobs of evicted sessions skip their store calls.
    assert len(store.requests_for(PROJECTION_PROCEDURE)) == 3 * 2
